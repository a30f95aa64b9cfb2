"""Custom SQLAlchemy types for cross-database compatibility.

This module provides custom column types that work across the database
backends (PostgreSQL, SQLite) used in production and testing.
"""

import json
from typing import Any, List, Optional

from sqlalchemy import String, Text, TypeDecorator
from sqlalchemy.dialects.postgresql import ARRAY


class StringList(TypeDecorator):
    """
    An ordered string list type that works with both PostgreSQL and SQLite.

    - On PostgreSQL: Uses native ARRAY(String)
    - On SQLite: Stores as JSON text

    Used for a practice session's ordered question ids and its filters.

    Usage:
        question_ids = Column(StringList(), nullable=False)
    """

    impl = Text  # Default implementation (used for SQLite)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        """Choose implementation based on database dialect."""
        if dialect.name == "postgresql":
            return dialect.type_descriptor(ARRAY(String))
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: Optional[List[str]], dialect) -> Any:
        """Convert Python list to database format."""
        if value is None:
            return None

        if dialect.name == "postgresql":
            return list(value)
        return json.dumps(list(value))

    def process_result_value(self, value: Any, dialect) -> Optional[List[str]]:
        """Convert database value to Python list."""
        if value is None:
            return None

        if isinstance(value, str):
            return json.loads(value)
        return list(value)

"""
Services package: practice use cases and the idempotency coordinator.
"""

"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter

from qbank.api.v1 import bookmarks, health, practice

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(practice.router, prefix="/practice", tags=["practice"])
api_router.include_router(
    bookmarks.router, prefix="/practice/bookmarks", tags=["practice"]
)

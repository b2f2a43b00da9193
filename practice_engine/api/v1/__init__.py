"""
API v1 routes.
"""

from fastapi import APIRouter

from practice_engine.api.v1 import mastery, practice

router = APIRouter()

router.include_router(practice.router, prefix="/practice", tags=["Practice"])
router.include_router(mastery.router, prefix="/mastery", tags=["Mastery"])

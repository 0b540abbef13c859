"""
API v1 package.

Contains versioned API routes for the Account Gateway API: user accounts
under ``/users`` and outgoing email under ``/email``.
"""

from fastapi import APIRouter

from src.api.v1.email import router as email_router
from src.api.v1.routes import router as users_router

router = APIRouter()
router.include_router(users_router)
router.include_router(email_router)

__all__ = ["router"]

"""Storefront API Router - aggregates all API routes."""

from fastapi import APIRouter

from storefront.api import auth, registration, users

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

api_router.include_router(auth.router)
api_router.include_router(auth.admin_router)
api_router.include_router(registration.router)
api_router.include_router(users.router)

__all__ = ["api_router"]

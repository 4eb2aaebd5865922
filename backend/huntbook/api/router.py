"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from huntbook.api.routes import admin, bookings, events, payments, users, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(bookings.router)
api_router.include_router(users.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
api_router.include_router(admin.router)

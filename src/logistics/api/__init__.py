"""Logistics domain API package."""

from logistics.api.errors import register_error_handlers
from logistics.api.routes import parcel_router, settlement_router, user_router

__all__ = ["parcel_router", "user_router", "settlement_router", "register_error_handlers"]

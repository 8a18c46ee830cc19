"""Waitlist API package."""

from waitlist.api.routes import router

__all__ = ["router"]

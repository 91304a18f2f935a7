"""FastAPI routes for Reminder Hub."""

from reminder_hub.api.routes import router

__all__ = ["router"]

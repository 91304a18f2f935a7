"""External capability adapters."""

from reminder_hub.services.gateway import (
    HttpNotificationGateway,
    InMemoryNotificationGateway,
    NotificationGateway,
)

__all__ = [
    "HttpNotificationGateway",
    "InMemoryNotificationGateway",
    "NotificationGateway",
]

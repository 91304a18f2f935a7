"""OS notification/alarm capability.

Contract relied on by the hub: scheduling an id that is already pending
replaces it, and cancelling an unknown id is a no-op.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

import httpx

from reminder_hub.exceptions import GatewayError
from reminder_hub.models.notification import (
    NativeAlarm,
    PendingNotification,
    ScheduledNotification,
)

logger = logging.getLogger(__name__)


# Default timeout for HTTP requests
DEFAULT_TIMEOUT = 10.0


class NotificationGateway(ABC):
    """Base class for OS notification backends."""

    @abstractmethod
    async def schedule(self, notification: ScheduledNotification) -> bool:
        """Schedule a notification. Returns False if the OS rejected it."""
        ...

    @abstractmethod
    async def cancel(self, notification_id: int) -> None:
        """Cancel a pending notification."""
        ...

    @abstractmethod
    async def list_pending(self) -> list[PendingNotification]:
        """List every notification the OS currently holds."""
        ...

    @property
    def supports_native_alarms(self) -> bool:
        """Whether the lower-level native alarm path is available."""
        return False

    async def list_native_alarms(self) -> list[NativeAlarm]:
        return []

    async def cancel_native_alarm(self, alarm_id: int) -> None:
        return None


class InMemoryNotificationGateway(NotificationGateway):
    """Gateway that keeps pending notifications in a dict.

    Rejects fire times in the past, like the device scheduler does.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        native_alarms: bool = False,
    ) -> None:
        self._clock = clock
        self._native_alarms_enabled = native_alarms
        self.pending: dict[int, ScheduledNotification] = {}
        self.native_alarms: dict[int, NativeAlarm] = {}

    async def schedule(self, notification: ScheduledNotification) -> bool:
        if notification.fire_at <= self._clock():
            logger.debug(
                f"Rejected notification {notification.id}: fire time "
                f"{notification.fire_at.isoformat()} is in the past"
            )
            return False
        self.pending[notification.id] = notification
        if self._native_alarms_enabled and notification.use_alarm_mode:
            self.native_alarms[notification.id] = NativeAlarm(
                id=notification.id,
                payload=notification.payload,
                fire_at=notification.fire_at,
            )
        return True

    async def cancel(self, notification_id: int) -> None:
        self.pending.pop(notification_id, None)
        self.native_alarms.pop(notification_id, None)

    async def list_pending(self) -> list[PendingNotification]:
        return [
            PendingNotification(
                id=n.id,
                title=n.title,
                body=n.body,
                payload=n.payload,
                fire_at=n.fire_at,
                channel_key=n.channel_key,
                sound_key=n.sound_key,
                audio_stream=n.audio_stream,
                use_alarm_mode=n.use_alarm_mode,
            )
            for n in self.pending.values()
        ]

    @property
    def supports_native_alarms(self) -> bool:
        return self._native_alarms_enabled

    async def list_native_alarms(self) -> list[NativeAlarm]:
        return list(self.native_alarms.values())

    async def cancel_native_alarm(self, alarm_id: int) -> None:
        self.native_alarms.pop(alarm_id, None)


class HttpNotificationGateway(NotificationGateway):
    """Gateway that forwards to a device-side notification bridge over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        native_alarms: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with the bridge location.

        Args:
            base_url: Root URL of the bridge, e.g. ``http://device:8765``
            timeout: Request timeout in seconds
            native_alarms: Whether the bridge exposes the ``/alarms`` endpoints
            transport: Optional httpx transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._native_alarms_enabled = native_alarms
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def schedule(self, notification: ScheduledNotification) -> bool:
        try:
            async with self._client() as client:
                response = await client.post(
                    "/notifications",
                    json=notification.model_dump(mode="json"),
                )
        except httpx.HTTPError as e:
            raise GatewayError(f"Schedule request failed: {e}") from e

        if response.status_code in (200, 201):
            return True
        logger.warning(
            f"Bridge rejected notification {notification.id}: "
            f"HTTP {response.status_code} {response.text[:200]}"
        )
        return False

    async def cancel(self, notification_id: int) -> None:
        try:
            async with self._client() as client:
                response = await client.delete(f"/notifications/{notification_id}")
        except httpx.HTTPError as e:
            raise GatewayError(f"Cancel request failed: {e}") from e
        if response.status_code not in (200, 204, 404):
            raise GatewayError(
                f"Cancel of {notification_id} returned HTTP {response.status_code}"
            )

    async def list_pending(self) -> list[PendingNotification]:
        try:
            async with self._client() as client:
                response = await client.get("/notifications")
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise GatewayError(f"Pending list request failed: {e}") from e
        return [PendingNotification.model_validate(item) for item in response.json()]

    @property
    def supports_native_alarms(self) -> bool:
        return self._native_alarms_enabled

    async def list_native_alarms(self) -> list[NativeAlarm]:
        try:
            async with self._client() as client:
                response = await client.get("/alarms")
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise GatewayError(f"Native alarm list request failed: {e}") from e
        return [NativeAlarm.model_validate(item) for item in response.json()]

    async def cancel_native_alarm(self, alarm_id: int) -> None:
        try:
            async with self._client() as client:
                await client.delete(f"/alarms/{alarm_id}")
        except httpx.HTTPError as e:
            raise GatewayError(f"Native alarm cancel failed: {e}") from e

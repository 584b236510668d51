"""Notification handlers — log and webhook delivery, plus throttling.

Architecture
~~~~~~~~~~~~
* **NotificationHandler** — abstract base for delivery channels.
* **LogHandler / WebhookHandler** — concrete channels.
* **NotificationThrottle** — at most one notification per title per
  cooldown window.
* **NotificationDispatcher** — throttled fan-out with error isolation.
* **create_dispatcher()** — factory that wires handlers from settings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import httpx
import structlog

from biometric_monitor.models import Notification

if TYPE_CHECKING:
    from biometric_monitor.config import Settings

logger = structlog.get_logger(__name__)


# ── Dispatch result ───────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome summary for a single ``dispatch()`` call."""

    notification_id: str | None
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    throttled: bool = False

    @property
    def all_ok(self) -> bool:
        return len(self.failed) == 0


# ── Throttle ──────────────────────────────────────────────────


class NotificationThrottle:
    """Allow one notification per title within *cooldown*."""

    def __init__(self, cooldown: timedelta = timedelta(minutes=5)) -> None:
        self.cooldown = cooldown
        self._last_sent: dict[str, datetime] = {}

    def allow(self, notification: Notification) -> bool:
        """Return ``True`` and record the send if the title is outside its window."""
        last = self._last_sent.get(notification.title)
        if last is not None and notification.timestamp - last < self.cooldown:
            return False
        self._last_sent[notification.title] = notification.timestamp
        return True

    def reset(self) -> None:
        self._last_sent.clear()


# ── Abstract handler ──────────────────────────────────────────


class NotificationHandler(ABC):
    """Contract for notification delivery channels."""

    name: str = "base"

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Deliver a notification.  Return ``True`` on success."""

    def should_handle(self, notification: Notification) -> bool:  # noqa: ARG002
        return True


# ── Concrete handlers ────────────────────────────────────────


class LogHandler(NotificationHandler):
    """Write notifications to the structured log (always enabled)."""

    name = "log"

    async def send(self, notification: Notification) -> bool:
        logger.info(
            "notification.log",
            category=notification.category.value,
            title=notification.title,
            body=notification.body,
            icon=notification.icon,
        )
        return True


class WebhookHandler(NotificationHandler):
    """POST notification JSON to an external webhook URL."""

    name = "webhook"

    def __init__(self, url: str, *, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    async def send(self, notification: Notification) -> bool:
        payload = notification.model_dump(mode="json")
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=payload)
                resp.raise_for_status()
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=payload)
                    resp.raise_for_status()
            logger.info("notification.webhook_sent", url=self._url, notification_id=notification.id)
            return True
        except httpx.HTTPError as exc:
            logger.error("notification.webhook_failed", url=self._url, error=str(exc))
            return False


# ── Dispatcher ────────────────────────────────────────────────


class NotificationDispatcher:
    """Fan-out notifications to registered handlers with error isolation.

    A throttled notification is dropped before any handler runs.  Each
    handler is invoked independently; a failure in one channel never
    blocks delivery to the others.
    """

    def __init__(
        self,
        *,
        handlers: list[NotificationHandler] | None = None,
        throttle: NotificationThrottle | None = None,
        enabled: bool = True,
    ) -> None:
        self._handlers: list[NotificationHandler] = handlers or [LogHandler()]
        self.throttle = throttle or NotificationThrottle()
        self.enabled = enabled

    def add_handler(self, handler: NotificationHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, name: str) -> bool:
        """Remove the first handler matching *name*. Return ``True`` if found."""
        for i, h in enumerate(self._handlers):
            if h.name == name:
                self._handlers.pop(i)
                return True
        return False

    @property
    def handler_names(self) -> list[str]:
        return [h.name for h in self._handlers]

    async def dispatch(self, notification: Notification) -> DispatchResult:
        if not self.enabled or not self.throttle.allow(notification):
            logger.debug("notification.throttled", title=notification.title)
            return DispatchResult(notification_id=notification.id, throttled=True)

        sent: list[str] = []
        failed: list[str] = []
        for handler in self._handlers:
            if not handler.should_handle(notification):
                continue
            try:
                ok = await handler.send(notification)
                (sent if ok else failed).append(handler.name)
            except Exception:
                logger.exception(
                    "notification.handler_error",
                    handler=handler.name,
                    notification_id=notification.id,
                )
                failed.append(handler.name)

        result = DispatchResult(notification_id=notification.id, sent=sent, failed=failed)
        if result.failed:
            logger.warning(
                "notification.partial_failure",
                notification_id=notification.id,
                failed=result.failed,
            )
        return result


# ── Factory ───────────────────────────────────────────────────


def create_dispatcher(settings: Settings) -> NotificationDispatcher:
    """Build a dispatcher from settings.

    * **LogHandler** is always registered.
    * **WebhookHandler** is added when ``settings.webhook_url`` is non-empty.
    """
    dispatcher = NotificationDispatcher(
        throttle=NotificationThrottle(timedelta(minutes=settings.notification_cooldown_minutes)),
        enabled=settings.notifications_enabled,
    )
    if settings.webhook_url:
        dispatcher.add_handler(WebhookHandler(settings.webhook_url))
    return dispatcher

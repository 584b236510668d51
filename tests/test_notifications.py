"""Tests for notification throttling, handlers and the dispatcher."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

import httpx
import pytest

from biometric_monitor.config import get_settings
from biometric_monitor.models import Notification, NotificationCategory
from biometric_monitor.notifications import (
    NotificationDispatcher,
    NotificationHandler,
    NotificationThrottle,
    create_dispatcher,
)
from biometric_monitor.notifications.handlers import LogHandler, WebhookHandler

T0 = datetime(2024, 5, 6, 9, 0, 0)


def _note(title: str = "Stress Detected", at: datetime = T0) -> Notification:
    return Notification(title=title, body="body", icon="😰", category=NotificationCategory.AROUSAL, timestamp=at)


class _Recorder(NotificationHandler):
    name = "recorder"

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return True


class _Broken(NotificationHandler):
    name = "broken"

    async def send(self, notification: Notification) -> bool:
        raise RuntimeError("channel down")


# ── Throttle ─────────────────────────────────────────────────


class TestThrottle:
    def test_same_title_within_cooldown_blocked(self):
        throttle = NotificationThrottle(timedelta(minutes=5))
        assert throttle.allow(_note(at=T0))
        assert not throttle.allow(_note(at=T0 + timedelta(minutes=4)))
        assert throttle.allow(_note(at=T0 + timedelta(minutes=5)))

    def test_titles_are_independent(self):
        throttle = NotificationThrottle()
        assert throttle.allow(_note("Stress Detected"))
        assert throttle.allow(_note("Deep Calm Achieved"))

    def test_reset(self):
        throttle = NotificationThrottle()
        throttle.allow(_note())
        throttle.reset()
        assert throttle.allow(_note())


# ── Dispatcher ───────────────────────────────────────────────


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_fan_out(self):
        recorder = _Recorder()
        dispatcher = NotificationDispatcher(handlers=[LogHandler(), recorder])
        result = await dispatcher.dispatch(_note())
        assert result.sent == ["log", "recorder"]
        assert result.all_ok
        assert len(recorder.sent) == 1

    @pytest.mark.asyncio
    async def test_throttled_never_reaches_handlers(self):
        recorder = _Recorder()
        dispatcher = NotificationDispatcher(handlers=[recorder])
        await dispatcher.dispatch(_note(at=T0))
        result = await dispatcher.dispatch(_note(at=T0 + timedelta(seconds=30)))
        assert result.throttled
        assert len(recorder.sent) == 1

    @pytest.mark.asyncio
    async def test_disabled(self):
        recorder = _Recorder()
        dispatcher = NotificationDispatcher(handlers=[recorder], enabled=False)
        result = await dispatcher.dispatch(_note())
        assert result.throttled
        assert recorder.sent == []

    @pytest.mark.asyncio
    async def test_broken_handler_isolated(self):
        recorder = _Recorder()
        dispatcher = NotificationDispatcher(handlers=[_Broken(), recorder])
        result = await dispatcher.dispatch(_note())
        assert result.failed == ["broken"]
        assert result.sent == ["recorder"]
        assert not result.all_ok

    def test_handler_registry(self):
        dispatcher = NotificationDispatcher()
        dispatcher.add_handler(_Recorder())
        assert dispatcher.handler_names == ["log", "recorder"]
        assert dispatcher.remove_handler("recorder")
        assert not dispatcher.remove_handler("recorder")


# ── Webhook ──────────────────────────────────────────────────


class TestWebhook:
    @pytest.mark.asyncio
    async def test_posts_notification_json(self):
        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            webhook = WebhookHandler("https://hooks.example/notify", client=client)
            assert await webhook.send(_note())

        assert captured[0]["title"] == "Stress Detected"
        assert captured[0]["category"] == "arousal"

    @pytest.mark.asyncio
    async def test_http_error_reported_as_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            webhook = WebhookHandler("https://hooks.example/notify", client=client)
            assert not await webhook.send(_note())


# ── Factory ──────────────────────────────────────────────────


class TestFactory:
    def test_log_only_by_default(self):
        dispatcher = create_dispatcher(get_settings())
        assert dispatcher.handler_names == ["log"]
        assert dispatcher.throttle.cooldown == timedelta(minutes=5)

    def test_webhook_from_settings(self, monkeypatch):
        monkeypatch.setenv("BIOMETRIC_MONITOR_WEBHOOK_URL", "https://hooks.example/notify")
        monkeypatch.setenv("BIOMETRIC_MONITOR_NOTIFICATION_COOLDOWN_MINUTES", "1")
        get_settings.cache_clear()
        dispatcher = create_dispatcher(get_settings())
        assert dispatcher.handler_names == ["log", "webhook"]
        assert dispatcher.throttle.cooldown == timedelta(minutes=1)

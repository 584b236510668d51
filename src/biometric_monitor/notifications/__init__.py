"""Notification sub-package — throttled multi-channel delivery."""

from biometric_monitor.notifications.handlers import (
    NotificationDispatcher,
    NotificationHandler,
    NotificationThrottle,
    create_dispatcher,
)

__all__ = ["NotificationDispatcher", "NotificationHandler", "NotificationThrottle", "create_dispatcher"]

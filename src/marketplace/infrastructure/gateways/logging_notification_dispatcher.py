"""Notification dispatcher that only records the event in the log."""

from __future__ import annotations

import structlog

from marketplace.domain.gateway.notification_dispatcher import NotificationDispatcher

logger = structlog.get_logger(__name__)


class LoggingNotificationDispatcher(NotificationDispatcher):

    def notify(self, order_ref: str, event_type: str) -> None:
        logger.info("Order notification", order_ref=order_ref, event_type=event_type)

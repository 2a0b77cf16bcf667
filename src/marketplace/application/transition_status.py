"""Application service: Transition Order Status use case.

This is the single entry point that changes an order. The state machine
computes the new revision; this handler persists it, together with the
stock writes its side effects made, in one store transaction.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from marketplace.domain.exceptions import (
    EntityNotFoundError,
    IllegalTransition,
    PersistenceFailure,
    ValidationError,
)
from marketplace.domain.gateway.notification_dispatcher import NotificationDispatcher
from marketplace.domain.model.order import Order, OrderStatus
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.domain.service.order_state_machine import (
    OrderStateMachine,
    TransitionRequest,
)

logger = structlog.get_logger(__name__)


def notify_quietly(
    notifier: NotificationDispatcher | None, order_ref: str, event_type: str
) -> None:
    """Fire-and-forget: a notification failure never fails the order."""
    if notifier is None:
        return
    try:
        notifier.notify(order_ref, event_type)
    except Exception as exc:
        logger.warning(
            "Notification failed",
            order_ref=order_ref,
            event_type=event_type,
            error=str(exc),
        )


class TransitionStatusHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        state_machine: OrderStateMachine,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._order_repo = order_repo
        self._state_machine = state_machine
        self._notifier = notifier

    def handle(
        self,
        order_id: int,
        new_status: OrderStatus | str,
        actor: str | None = None,
        reason: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> Order:
        try:
            status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status '{new_status}'")
        request = TransitionRequest(
            new_status=status,
            reason=reason,
            actor=actor,
            details=dict(details or {}),
        )

        try:
            with self._order_repo.transaction():
                order = self._order_repo.get_by_id(order_id)
                if order is None:
                    raise EntityNotFoundError(f"Order #{order_id} not found")
                updated = self._state_machine.transition(order, request)
                self._order_repo.save(updated)
        except IllegalTransition as exc:
            logger.error(
                "Illegal status transition rejected",
                order_id=order_id,
                current_status=exc.current.value,
                requested_status=exc.requested.value,
                allowed=sorted(s.value for s in exc.allowed),
                actor=actor,
            )
            raise
        except PersistenceFailure as exc:
            logger.error(
                "Failed to persist status transition",
                order_id=order_id,
                requested_status=status.value,
                error=str(exc),
            )
            raise

        notify_quietly(self._notifier, updated.reference, f"order_{status.value}")
        return updated

"""Application service: Request Return use case."""

from __future__ import annotations

from collections.abc import Mapping

from marketplace.application.dto import OrderDTO, order_to_dto
from marketplace.application.transition_status import TransitionStatusHandler
from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.order import OrderStatus
from marketplace.domain.service.order_state_machine import RETURN_REASONS


class RequestReturnHandler:

    def __init__(self, transitions: TransitionStatusHandler) -> None:
        self._transitions = transitions

    def handle(
        self,
        order_id: int,
        items: Mapping[str, int],
        reason: str,
        comment: str | None = None,
        actor: str | None = None,
    ) -> OrderDTO:
        """Open a return for ``items`` (product_id -> qty) on a delivered order.

        Reasons flagged for auto-approval move straight on to
        ``return_approved``.
        """
        return_reason = RETURN_REASONS.get(reason)
        if return_reason is None:
            raise ValidationError(
                f"Unknown return reason '{reason}'. "
                f"Expected one of: {', '.join(sorted(RETURN_REASONS))}"
            )

        order = self._transitions.handle(
            order_id,
            OrderStatus.RETURN_REQUESTED,
            actor=actor,
            reason=f"Return requested: {return_reason.label}",
            details={"items": dict(items), "reason_code": reason, "comment": comment},
        )

        if return_reason.auto_approve:
            order = self._transitions.handle(
                order_id,
                OrderStatus.RETURN_APPROVED,
                reason=f"Return auto-approved: {return_reason.label}",
            )
        return order_to_dto(order)

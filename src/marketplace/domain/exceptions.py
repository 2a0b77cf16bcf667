"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.
Each class carries a stable ``code`` that callers surface as the reason code.
"""

from __future__ import annotations


class DomainException(Exception):
    """Base class for all domain errors."""

    code = "domain_error"


class ValidationError(DomainException):
    """A business rule or invariant was violated.

    When raised by the intake validator, ``reasons`` holds one entry per
    offending field.
    """

    code = "validation_error"

    def __init__(self, message: str, reasons: list[str] | None = None) -> None:
        super().__init__(message)
        self.reasons = list(reasons or [])


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    code = "not_found"


# --- Expected checkout outcomes ----------------------------------------------


class CheckoutRejected(DomainException):
    """A submission was refused for a business reason, not a fault."""


class InsufficientStock(CheckoutRejected):
    """One or more products cannot cover the requested quantity."""

    code = "insufficient_stock"

    def __init__(self, shortages: dict[str, tuple[int, int]]) -> None:
        # shortages: product_id -> (requested, available)
        self.shortages = dict(shortages)
        detail = ", ".join(
            f"{pid} (need {need}, have {have} available)"
            for pid, (need, have) in self.shortages.items()
        )
        super().__init__(f"Insufficient stock for {detail}")


class ReservationNotFound(CheckoutRejected):
    """The reservation is gone, usually reclaimed by the expiry sweep."""

    code = "reservation_expired"


class FraudBlocked(CheckoutRejected):
    """The fraud score reached the hard-block threshold."""

    code = "fraud_blocked"

    def __init__(self, message: str, fraud_check=None) -> None:
        super().__init__(message)
        self.fraud_check = fraud_check


class PaymentFailure(CheckoutRejected):
    """The payment gateway rejected, failed or timed out on a request."""

    code = "payment_failed"


class CheckoutInterrupted(CheckoutRejected):
    """The order left ``pending`` (e.g. a customer cancel) while checkout was running."""

    code = "checkout_interrupted"


# --- Defects and infrastructure faults ---------------------------------------


class IllegalTransition(DomainException):
    """A status change not present in the transition table was requested.

    This signals an integration bug rather than a user error: callers are
    expected to only offer transitions from ``allowed_next``.
    """

    code = "illegal_transition"

    def __init__(self, current, requested, allowed) -> None:
        self.current = current
        self.requested = requested
        self.allowed = frozenset(allowed)
        allowed_names = ", ".join(sorted(s.value for s in self.allowed)) or "none"
        super().__init__(
            f"Invalid status transition from {current.value} to {requested.value}. "
            f"Allowed transitions: {allowed_names}"
        )


class PersistenceFailure(DomainException):
    """The durable store failed to read or write."""

    code = "persistence_failure"


class ConcurrencyConflict(PersistenceFailure):
    """A write lost an optimistic version check against a newer revision."""

    code = "concurrency_conflict"

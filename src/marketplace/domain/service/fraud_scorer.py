"""Domain service: Fraud Risk Scoring.

Fraud rules are tagged variants kept in an open registry. The scorer
iterates them uniformly, so a new rule is a registry addition rather than
a new branch in the scoring flow.

A rule that raises (for example, because the customer directory is down)
must not block checkout. It contributes nothing and is reported as
skipped.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

import structlog

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.gateway.customer_directory import CustomerDirectory, CustomerHistory
from marketplace.domain.model.order import FraudCheck, RiskLevel
from marketplace.domain.model.value_objects import Money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FraudPolicy:
    """Tunable platform policy. None of these numbers are intrinsic."""

    high_value_threshold: Decimal = Decimal("10000")
    repeat_ip_window_hours: int = 24
    repeat_ip_max_orders: int = 3
    new_customer_high_value_threshold: Decimal = Decimal("5000")
    medium_risk_from: int = 20
    high_risk_above: int = 50
    review_above: int = 30
    block_at: int = 75

    @property
    def repeat_ip_window(self) -> timedelta:
        return timedelta(hours=self.repeat_ip_window_hours)


@dataclass(frozen=True)
class FraudSubject:
    """What is being scored: the order as priced from live catalog data."""

    customer_id: str
    items_total: Money
    item_count: int


class FraudContext:
    """Submission context: origin address plus lazily fetched customer history."""

    def __init__(
        self,
        origin_ip: str | None,
        customer_id: str,
        directory: CustomerDirectory | None,
        window: timedelta,
    ) -> None:
        self.origin_ip = origin_ip
        self._customer_id = customer_id
        self._directory = directory
        self._window = window
        self._history: CustomerHistory | None = None

    def customer_history(self) -> CustomerHistory:
        # Fetched on first use so a directory outage only affects the
        # rules that actually need it.
        if self._history is None:
            if self._directory is None:
                raise LookupError("No customer directory configured")
            self._history = self._directory.get_customer_history(self._customer_id, self._window)
        return self._history


@dataclass(frozen=True)
class FraudRule:
    name: str
    weight: int
    evaluate: Callable[[FraudSubject, FraudContext], bool] = field(compare=False)


class FraudRuleRegistry:

    def __init__(self, rules: list[FraudRule] | None = None) -> None:
        self._rules: dict[str, FraudRule] = {}
        for rule in rules or []:
            self.register(rule)

    def register(self, rule: FraudRule) -> FraudRule:
        if rule.name in self._rules:
            raise ValidationError(f"Fraud rule '{rule.name}' is already registered")
        if rule.weight < 0:
            raise ValidationError(f"Fraud rule '{rule.name}' weight must be >= 0")
        self._rules[rule.name] = rule
        return rule

    def rule(self, name: str, weight: int):
        """Decorator form of ``register``."""

        def decorator(evaluate: Callable[[FraudSubject, FraudContext], bool]):
            self.register(FraudRule(name=name, weight=weight, evaluate=evaluate))
            return evaluate

        return decorator

    def get(self, name: str) -> FraudRule | None:
        return self._rules.get(name)

    def __iter__(self) -> Iterator[FraudRule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)


def default_registry(policy: FraudPolicy) -> FraudRuleRegistry:
    """The platform's stock rule set."""
    registry = FraudRuleRegistry()

    @registry.rule("high_value_order", weight=20)
    def high_value_order(subject: FraudSubject, context: FraudContext) -> bool:
        return subject.items_total.amount > policy.high_value_threshold

    @registry.rule("multiple_orders_same_ip", weight=30)
    def multiple_orders_same_ip(subject: FraudSubject, context: FraudContext) -> bool:
        if not context.origin_ip:
            return False
        recent = context.customer_history().recent_order_ips
        return recent.count(context.origin_ip) > policy.repeat_ip_max_orders

    @registry.rule("new_customer_high_value", weight=25)
    def new_customer_high_value(subject: FraudSubject, context: FraudContext) -> bool:
        history = context.customer_history()
        return (
            history.is_first_order
            and subject.items_total.amount > policy.new_customer_high_value_threshold
        )

    return registry


class FraudScorer:

    def __init__(self, registry: FraudRuleRegistry, policy: FraudPolicy | None = None) -> None:
        self._registry = registry
        self._policy = policy or FraudPolicy()

    def score(self, subject: FraudSubject, context: FraudContext) -> FraudCheck:
        total = 0
        triggered: list[str] = []
        skipped: list[str] = []

        for rule in self._registry:
            try:
                hit = bool(rule.evaluate(subject, context))
            except Exception as exc:
                logger.error(
                    "Fraud detection rule failed",
                    rule=rule.name,
                    customer_id=subject.customer_id,
                    error=str(exc),
                )
                skipped.append(rule.name)
                continue

            if hit:
                total += rule.weight
                triggered.append(rule.name)
                logger.warning(
                    "Fraud detection rule triggered",
                    rule=rule.name,
                    customer_id=subject.customer_id,
                    risk_score=rule.weight,
                )

        return FraudCheck(
            score=total,
            risk_level=self.risk_level(total),
            triggered_rules=tuple(triggered),
            skipped_rules=tuple(skipped),
            requires_review=total > self._policy.review_above,
            blocked=total >= self._policy.block_at,
        )

    def risk_level(self, score: int) -> RiskLevel:
        if score > self._policy.high_risk_above:
            return RiskLevel.HIGH
        if score >= self._policy.medium_risk_from:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

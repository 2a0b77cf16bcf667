"""Runtime settings, read from ``MARKETPLACE_*`` environment variables.

Every business threshold lives in one of the domain policy objects; this
module only decides where their values come from.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.service.fraud_scorer import FraudPolicy
from marketplace.domain.service.inventory_reservation_service import ReservationPolicy
from marketplace.domain.service.order_state_machine import LifecyclePolicy
from marketplace.domain.service.pricing_calculator import PricingPolicy

# Resolve data directory relative to the project root.
# When installed in editable mode the project root is the repo root.
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"


@dataclass(frozen=True)
class ProcessingPolicy:
    payment_timeout_seconds: float = 10
    step_log_max_entries: int = 1000
    step_log_retention_minutes: int = 60

    @property
    def step_log_retention(self) -> timedelta:
        return timedelta(minutes=self.step_log_retention_minutes)


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DEFAULT_DATA_DIR
    log_dir: Path | None = None
    reservation: ReservationPolicy = field(default_factory=ReservationPolicy)
    fraud: FraudPolicy = field(default_factory=FraudPolicy)
    pricing: PricingPolicy = field(default_factory=PricingPolicy)
    lifecycle: LifecyclePolicy = field(default_factory=LifecyclePolicy)
    processing: ProcessingPolicy = field(default_factory=ProcessingPolicy)
    declined_payment_methods: frozenset[str] = frozenset()

    @property
    def store_path(self) -> Path:
        return self.data_dir / "marketplace.json"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        log_dir = env.get("MARKETPLACE_LOG_DIR")
        declined = env.get("MARKETPLACE_DECLINE_METHODS", "")

        return cls(
            data_dir=Path(env.get("MARKETPLACE_DATA_DIR", str(DEFAULT_DATA_DIR))),
            log_dir=Path(log_dir) if log_dir else None,
            reservation=ReservationPolicy(
                hold_minutes=_int(env, "MARKETPLACE_RESERVATION_HOLD_MINUTES", 30),
            ),
            fraud=FraudPolicy(
                high_value_threshold=_decimal(env, "MARKETPLACE_FRAUD_HIGH_VALUE", "10000"),
                repeat_ip_window_hours=_int(env, "MARKETPLACE_FRAUD_IP_WINDOW_HOURS", 24),
                repeat_ip_max_orders=_int(env, "MARKETPLACE_FRAUD_IP_MAX_ORDERS", 3),
                new_customer_high_value_threshold=_decimal(
                    env, "MARKETPLACE_FRAUD_NEW_CUSTOMER_HIGH_VALUE", "5000"
                ),
                review_above=_int(env, "MARKETPLACE_FRAUD_REVIEW_ABOVE", 30),
                block_at=_int(env, "MARKETPLACE_FRAUD_BLOCK_AT", 75),
            ),
            pricing=PricingPolicy(
                currency=env.get("MARKETPLACE_CURRENCY", "INR"),
                free_shipping_threshold=_decimal(env, "MARKETPLACE_FREE_SHIPPING_THRESHOLD", "500"),
                base_shipping_fee=_decimal(env, "MARKETPLACE_BASE_SHIPPING_FEE", "50"),
                tax_rate=_decimal(env, "MARKETPLACE_TAX_RATE", "0.18"),
                platform_fee_rate=_decimal(env, "MARKETPLACE_PLATFORM_FEE_RATE", "0.02"),
                default_commission_rate=_decimal(env, "MARKETPLACE_COMMISSION_RATE", "0.05"),
            ),
            lifecycle=LifecyclePolicy(
                delivery_estimate_days=_int(env, "MARKETPLACE_DELIVERY_ESTIMATE_DAYS", 3),
                carrier_eta_hours=_int(env, "MARKETPLACE_CARRIER_ETA_HOURS", 48),
                return_window_days=_int(env, "MARKETPLACE_RETURN_WINDOW_DAYS", 7),
            ),
            processing=ProcessingPolicy(
                payment_timeout_seconds=float(
                    _decimal(env, "MARKETPLACE_PAYMENT_TIMEOUT_SECONDS", "10")
                ),
                step_log_max_entries=_int(env, "MARKETPLACE_STEP_LOG_MAX_ENTRIES", 1000),
                step_log_retention_minutes=_int(env, "MARKETPLACE_STEP_LOG_RETENTION_MINUTES", 60),
            ),
            declined_payment_methods=frozenset(
                m.strip().lower() for m in declined.split(",") if m.strip()
            ),
        )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}")


def _decimal(env: Mapping[str, str], name: str, default: str) -> Decimal:
    raw = env.get(name) or default
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{name} must be a number, got {raw!r}")

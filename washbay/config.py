"""
Centralized configuration with environment variable overrides.

Commission rates, booking rules, and allocation limits are configurable
here. Engine modules read them from ``settings`` instead of hardcoding.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a true/false flag from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class CommissionConfig:
    """Platform commission percentages (0-100)."""

    customer_commission_pct: float = _safe_float("CUSTOMER_COMMISSION_PCT", "5")
    partner_commission_pct: float = _safe_float("PARTNER_COMMISSION_PCT", "10")


@dataclass(frozen=True)
class PricingConfig:
    """Subscription discount and fallback price settings."""

    premium_discount_pct: float = _safe_float("PREMIUM_DISCOUNT_PCT", "10")
    fallback_base_price: float = _safe_float("FALLBACK_BASE_PRICE", "20")


@dataclass(frozen=True)
class BookingRulesConfig:
    """Lead-time rules applied by the lifecycle manager."""

    cancellation_window_hours: int = _safe_int("CANCELLATION_WINDOW_HOURS", "24")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "15")
    allow_rescheduling: bool = _safe_bool("ALLOW_RESCHEDULING", "true")
    max_reschedules: int = _safe_int("MAX_RESCHEDULES", "2")
    default_duration_minutes: int = _safe_int("DEFAULT_DURATION_MINUTES", "30")


@dataclass(frozen=True)
class AllocationConfig:
    """Ledger lock timeout and retry bound for reservation commits."""

    lock_timeout_sec: float = _safe_float("ALLOCATION_LOCK_TIMEOUT", "2.0")
    max_retries: int = _safe_int("ALLOCATION_MAX_RETRIES", "3")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    commission: CommissionConfig = field(default_factory=CommissionConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    booking_rules: BookingRulesConfig = field(default_factory=BookingRulesConfig)
    allocation: AllocationConfig = field(default_factory=AllocationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "washbay-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for pct_name, pct_value in [
        ("CUSTOMER_COMMISSION_PCT", config.commission.customer_commission_pct),
        ("PARTNER_COMMISSION_PCT", config.commission.partner_commission_pct),
        ("PREMIUM_DISCOUNT_PCT", config.pricing.premium_discount_pct),
    ]:
        if not 0.0 <= pct_value <= 100.0:
            raise ValueError(f"{pct_name} must be between 0 and 100, got {pct_value}")

    if config.pricing.fallback_base_price < 0:
        raise ValueError(
            f"FALLBACK_BASE_PRICE must be >= 0, got {config.pricing.fallback_base_price}"
        )

    step = config.booking_rules.slot_step_minutes
    if step < 1 or 60 % step != 0:
        raise ValueError(f"SLOT_STEP_MINUTES must be a positive divisor of 60, got {step}")

    if config.booking_rules.cancellation_window_hours < 0:
        raise ValueError(
            "CANCELLATION_WINDOW_HOURS must be >= 0, "
            f"got {config.booking_rules.cancellation_window_hours}"
        )
    if config.booking_rules.max_reschedules < 0:
        raise ValueError(
            f"MAX_RESCHEDULES must be >= 0, got {config.booking_rules.max_reschedules}"
        )
    if config.booking_rules.default_duration_minutes < 1:
        raise ValueError(
            "DEFAULT_DURATION_MINUTES must be >= 1, "
            f"got {config.booking_rules.default_duration_minutes}"
        )
    if config.allocation.lock_timeout_sec <= 0:
        raise ValueError(
            f"ALLOCATION_LOCK_TIMEOUT must be > 0, got {config.allocation.lock_timeout_sec}"
        )
    if config.allocation.max_retries < 0:
        raise ValueError(
            f"ALLOCATION_MAX_RETRIES must be >= 0, got {config.allocation.max_retries}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()

"""
Centralized configuration with environment variable overrides.

Store details, cache lifetimes, scoring thresholds and flow keys are
configurable here. Flow handlers and the orchestrator read from the
``settings`` singleton instead of hardcoding business values.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from salesflow.logging_context import LOG_FORMAT, attach_conversation_filter

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


@dataclass(frozen=True)
class BusinessConfig:
    """Store identity and human-agent working hours."""

    name: str = os.getenv("BUSINESS_NAME", "Malla Sombra MX")
    storefront_url: str = os.getenv(
        "STOREFRONT_URL", "https://www.mercadolibre.com.mx/tienda/malla-sombra-mx"
    )
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/Mexico_City")
    open_hour: int = _safe_int("BUSINESS_OPEN_HOUR", "9")
    close_hour: int = _safe_int("BUSINESS_CLOSE_HOUR", "18")


@dataclass(frozen=True)
class CatalogConfig:
    """Catalog index cache settings."""

    cache_ttl_seconds: float = _safe_float("CATALOG_CACHE_TTL", "300")


@dataclass(frozen=True)
class FlowConfig:
    """Defaults shared by the product flows and the flow executor."""

    lead_capture_flow_key: str = os.getenv("LEAD_CAPTURE_FLOW_KEY", "lead_capture")
    default_roll_length: float = _safe_float("DEFAULT_ROLL_LENGTH", "100")
    max_alternatives: int = _safe_int("MAX_ALTERNATIVES", "3")


@dataclass(frozen=True)
class ScoringConfig:
    """Bucket thresholds for the purchase intent score (0-100 scale)."""

    high_threshold: int = _safe_int("INTENT_HIGH_THRESHOLD", "70")
    low_threshold: int = _safe_int("INTENT_LOW_THRESHOLD", "30")


@dataclass(frozen=True)
class LinkConfig:
    """Click-tracking redirect settings."""

    tracker_base_url: str = os.getenv("LINK_TRACKER_BASE_URL", "https://go.mallasombra.mx/r")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    flows: FlowConfig = field(default_factory=FlowConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    links: LinkConfig = field(default_factory=LinkConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    bot_name: str = os.getenv("BOT_NAME", "sales-bot")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for name, hour in [
        ("BUSINESS_OPEN_HOUR", config.business.open_hour),
        ("BUSINESS_CLOSE_HOUR", config.business.close_hour),
    ]:
        if not 0 <= hour <= 23:
            raise ValueError(f"{name} must be between 0 and 23, got {hour}")
    if config.business.open_hour >= config.business.close_hour:
        raise ValueError(
            "BUSINESS_OPEN_HOUR must be earlier than BUSINESS_CLOSE_HOUR, "
            f"got {config.business.open_hour} >= {config.business.close_hour}"
        )
    if config.catalog.cache_ttl_seconds <= 0:
        raise ValueError(
            f"CATALOG_CACHE_TTL must be > 0, got {config.catalog.cache_ttl_seconds}"
        )
    if config.flows.default_roll_length <= 0:
        raise ValueError(
            f"DEFAULT_ROLL_LENGTH must be > 0, got {config.flows.default_roll_length}"
        )
    if config.flows.max_alternatives < 1:
        raise ValueError(
            f"MAX_ALTERNATIVES must be >= 1, got {config.flows.max_alternatives}"
        )
    if not config.flows.lead_capture_flow_key.strip():
        raise ValueError("LEAD_CAPTURE_FLOW_KEY must not be empty")

    scoring = config.scoring
    for name, value in [
        ("INTENT_HIGH_THRESHOLD", scoring.high_threshold),
        ("INTENT_LOW_THRESHOLD", scoring.low_threshold),
    ]:
        if not 0 <= value <= 100:
            raise ValueError(f"{name} must be between 0 and 100, got {value}")
    if scoring.low_threshold >= scoring.high_threshold:
        raise ValueError(
            "INTENT_LOW_THRESHOLD must be lower than INTENT_HIGH_THRESHOLD, "
            f"got {scoring.low_threshold} >= {scoring.high_threshold}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    attach_conversation_filter()
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()

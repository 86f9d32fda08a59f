"""
Position Ledger - Configuration.

============================================================
PURPOSE
============================================================
Configuration for the ledger engine.

The same fold serves several call sites that differ in one
policy: whether a full exit resets total invested capital.
That difference is a flag here, not a second implementation.

============================================================
PRESETS
============================================================
- get_portfolio_summary_config(): full exit resets invested
- get_asset_detail_config(): invested capital is kept

============================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from core.exceptions import ConfigurationError


# ============================================================
# INDIVIDUAL CONFIGURATIONS
# ============================================================

@dataclass
class CostTrackerConfig:
    """Weighted-average cost tracker settings."""

    zero_epsilon: float = 1e-10
    """
    Quantity below which a position is considered fully closed.
    Quantity and cost basis snap to exactly 0.
    """

    reset_invested_on_full_exit: bool = False
    """
    Whether a full exit also resets total invested capital.
    The portfolio summary treats a closed position as fresh
    capital; the asset detail view keeps lifetime totals.
    """


@dataclass
class ScaleOutConfig:
    """Scale-out planner settings."""

    default_max_steps: int = 10
    """Steps projected when the caller does not ask for a count."""

    hard_max_steps: int = 50
    """Upper bound on projected steps."""

    next_step_scan_limit: int = 50
    """How many gain multiples to scan for the next unexecuted step."""

    money_digits: int = 2
    quantity_digits: int = 8
    price_digits: int = 8

    step_match_digits: int = 2
    """Precision used to match executions to step gain percents."""


@dataclass
class PriceCacheConfig:
    """Price resolver cache settings."""

    price_ttl_seconds: float = 30.0
    """How long a resolved price is reused."""

    negative_ttl_seconds: float = 60.0
    """How long a failed lookup short-circuits to the fallback price."""

    max_entries: int = 10_000
    """Keys kept per cache before expired and then oldest entries are evicted."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class LedgerConfig:
    """Aggregates all ledger configuration sections."""

    cost_tracker: CostTrackerConfig = field(default_factory=CostTrackerConfig)
    scale_out: ScaleOutConfig = field(default_factory=ScaleOutConfig)
    price_cache: PriceCacheConfig = field(default_factory=PriceCacheConfig)

    def validate(self) -> None:
        """
        Check internal consistency.

        Raises:
            ConfigurationError: If a value is out of range
        """
        if self.cost_tracker.zero_epsilon < 0:
            raise ConfigurationError(
                "zero_epsilon must be non-negative",
                config_key="cost_tracker.zero_epsilon",
                actual_value=self.cost_tracker.zero_epsilon,
            )
        if self.scale_out.hard_max_steps < 1:
            raise ConfigurationError(
                "hard_max_steps must be at least 1",
                config_key="scale_out.hard_max_steps",
                actual_value=self.scale_out.hard_max_steps,
            )
        if not 1 <= self.scale_out.default_max_steps <= self.scale_out.hard_max_steps:
            raise ConfigurationError(
                "default_max_steps must be between 1 and hard_max_steps",
                config_key="scale_out.default_max_steps",
                actual_value=self.scale_out.default_max_steps,
            )
        if self.price_cache.price_ttl_seconds < 0 or self.price_cache.negative_ttl_seconds < 0:
            raise ConfigurationError(
                "cache TTLs must be non-negative",
                config_key="price_cache",
            )
        if self.price_cache.max_entries < 1:
            raise ConfigurationError(
                "max_entries must be at least 1",
                config_key="price_cache.max_entries",
                actual_value=self.price_cache.max_entries,
            )


# ============================================================
# PRESETS
# ============================================================

def get_default_config() -> LedgerConfig:
    return LedgerConfig()


def get_portfolio_summary_config() -> LedgerConfig:
    """Aggregate view: a full exit resets invested capital."""
    return LedgerConfig(
        cost_tracker=CostTrackerConfig(reset_invested_on_full_exit=True),
    )


def get_asset_detail_config() -> LedgerConfig:
    """Single-symbol view: invested capital survives a full exit."""
    return LedgerConfig(
        cost_tracker=CostTrackerConfig(reset_invested_on_full_exit=False),
    )


_SECTIONS = {
    "cost_tracker": CostTrackerConfig,
    "scale_out": ScaleOutConfig,
    "price_cache": PriceCacheConfig,
}


def load_config_from_dict(data: Dict[str, Any]) -> LedgerConfig:
    """
    Load configuration from a nested dictionary.

    Example:
        load_config_from_dict({
            "cost_tracker": {"reset_invested_on_full_exit": True},
            "price_cache": {"price_ttl_seconds": 10},
        })

    Raises:
        ConfigurationError: On unknown sections or keys, or invalid values
    """
    config = get_default_config()

    for section_name, values in data.items():
        section_cls = _SECTIONS.get(section_name)
        if section_cls is None:
            raise ConfigurationError(
                f"Unknown configuration section: {section_name}",
                config_key=section_name,
            )
        if not isinstance(values, dict):
            raise ConfigurationError(
                f"Section {section_name} must be a mapping",
                config_key=section_name,
                actual_value=values,
            )
        try:
            setattr(config, section_name, section_cls(**values))
        except TypeError as e:
            raise ConfigurationError(
                f"Invalid keys for section {section_name}: {e}",
                config_key=section_name,
                actual_value=values,
            ) from e

    config.validate()
    return config

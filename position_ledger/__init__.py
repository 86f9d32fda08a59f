"""
Position Ledger Module.

============================================================
TRADING JOURNAL
Position Ledger - Cost Basis and Scale-Out Engine
============================================================

PURPOSE
-------
Reconstruct spot positions from a chronological list of trade
events and project exit plans against them.

The module computes. It does NOT fetch prices, persist rows or
place orders. Prices arrive through an injected PriceResolver;
events arrive already loaded by the caller.

DESIGN PHILOSOPHY
-----------------
1. One fold, many views: portfolio summary and asset detail
   differ only by a config flag
2. Best-effort on data: malformed rows are dropped, not raised
3. Never NaN: every surfaced number passes to_finite_or_zero
4. Deterministic: same ordered events, same state

PIPELINE
--------
RawTradeRow -> normalize_events -> TradeEvent
TradeEvent  -> WeightedAverageCostTracker -> LedgerResult
LedgerResult + PriceQuote -> AssetPosition -> PortfolioSummary
(qty, avg entry) + ExitStrategyConfig -> ScaleOutPlanner

============================================================
USAGE EXAMPLE
============================================================

```python
from position_ledger import (
    FixedPriceResolver,
    ScaleOutPlanner,
    normalize_events,
    replay_ledger,
    summarize_portfolio,
)

events = normalize_events(rows)

# Account-wide summary
summary = summarize_portfolio(events, FixedPriceResolver({"BTC": 65000.0}))
print(summary.total_profit_usd, summary.top_performer)

# Single symbol
ledger = replay_ledger([e for e in events if e.symbol == "BTC"])
state = ledger.state

# Exit plan: sell 25% every 30% of gain
plan = ScaleOutPlanner().build_plan(
    entry_price_usd=state.average_entry_price_usd,
    qty_open=state.quantity_held,
    sell_percent=25,
    gain_percent=30,
    max_steps=3,
)
for row in plan.rows:
    print(row.gain_percent, row.target_price_usd, row.planned_qty_to_sell)
```

============================================================
COMPONENTS
============================================================

Normalizer (normalizer.py)
--------------------------
- normalize_events: clean, filter and order persisted rows

Tracker (tracker.py)
--------------------
- WeightedAverageCostTracker: moving average-cost fold
- replay_ledger, get_open_spot_holding

Portfolio (portfolio.py)
------------------------
- summarize_portfolio: multi-asset aggregation
- select_top_performer

Planner (planner.py)
--------------------
- ScaleOutPlanner: plan rows, next step, strategy summary

Pricing (pricing.py)
--------------------
- PriceResolver, CachedPriceResolver, FixedPriceResolver
- InMemoryTTLCache

============================================================
"""

# ============================================================
# TYPE EXPORTS
# ============================================================

from .types import (
    # Enums
    MarketKind,
    SpotSide,
    FuturesSide,
    PriceSource,
    ExitStrategyStatus,

    # Events
    SpotLeg,
    FuturesLeg,
    TradeLeg,
    RawTradeRow,
    TradeEvent,

    # Ledger
    PositionState,
    AnnotatedTransaction,
    LedgerResult,

    # Valuation
    PriceQuote,
    AssetPosition,
    TopPerformer,
    PortfolioSummary,

    # Exit strategies
    ExitStrategyConfig,
    ExitStrategyExecution,
    ExitStrategyStepRow,
    ScaleOutPlan,
    ExitStrategySummary,
    compute_execution_figures,

    # Errors
    LedgerError,
    LedgerInputError,
)

# ============================================================
# CONFIGURATION EXPORTS
# ============================================================

from .config import (
    CostTrackerConfig,
    ScaleOutConfig,
    PriceCacheConfig,
    LedgerConfig,
    get_default_config,
    get_portfolio_summary_config,
    get_asset_detail_config,
    load_config_from_dict,
)

# ============================================================
# ENGINE EXPORTS
# ============================================================

from .numeric import (
    to_finite_or_zero,
    is_positive_finite,
    round_half_up,
    round_money,
    round_quantity,
    round_price,
)

from .normalizer import (
    CASH_SYMBOL,
    normalize_events,
    normalize_row,
    group_events_by_symbol,
)

from .tracker import (
    WeightedAverageCostTracker,
    replay_ledger,
    get_open_spot_holding,
)

from .portfolio import (
    build_asset_position,
    select_top_performer,
    summarize_portfolio,
)

from .planner import (
    ScaleOutPlanner,
    clamp_max_steps,
)

from .pricing import (
    CacheEntry,
    PriceCache,
    InMemoryTTLCache,
    PriceResolver,
    CachedPriceResolver,
    FixedPriceResolver,
    create_price_caches,
)


__all__ = [
    # Types
    "MarketKind",
    "SpotSide",
    "FuturesSide",
    "PriceSource",
    "ExitStrategyStatus",
    "SpotLeg",
    "FuturesLeg",
    "TradeLeg",
    "RawTradeRow",
    "TradeEvent",
    "PositionState",
    "AnnotatedTransaction",
    "LedgerResult",
    "PriceQuote",
    "AssetPosition",
    "TopPerformer",
    "PortfolioSummary",
    "ExitStrategyConfig",
    "ExitStrategyExecution",
    "ExitStrategyStepRow",
    "ScaleOutPlan",
    "ExitStrategySummary",
    "compute_execution_figures",
    "LedgerError",
    "LedgerInputError",
    # Config
    "CostTrackerConfig",
    "ScaleOutConfig",
    "PriceCacheConfig",
    "LedgerConfig",
    "get_default_config",
    "get_portfolio_summary_config",
    "get_asset_detail_config",
    "load_config_from_dict",
    # Numeric
    "to_finite_or_zero",
    "is_positive_finite",
    "round_half_up",
    "round_money",
    "round_quantity",
    "round_price",
    # Engine
    "CASH_SYMBOL",
    "normalize_events",
    "normalize_row",
    "group_events_by_symbol",
    "WeightedAverageCostTracker",
    "replay_ledger",
    "get_open_spot_holding",
    "build_asset_position",
    "select_top_performer",
    "summarize_portfolio",
    "ScaleOutPlanner",
    "clamp_max_steps",
    "CacheEntry",
    "PriceCache",
    "InMemoryTTLCache",
    "PriceResolver",
    "CachedPriceResolver",
    "FixedPriceResolver",
    "create_price_caches",
]

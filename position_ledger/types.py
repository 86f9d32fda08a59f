"""
Position Ledger - Type Definitions.

============================================================
PURPOSE
============================================================
Type definitions shared by the normalizer, the cost tracker,
the portfolio aggregation and the scale-out planner.

============================================================
SPOT VS FUTURES
============================================================
A trade leg is an explicit tagged variant:

- SpotLeg(side=BUY|SELL)
- FuturesLeg(side=LONG|SHORT)

The cost tracker is spot-only. Futures legs are representable
(so storage can round-trip them) but are rejected by the tracker
instead of being silently misread as buys or sells.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from .numeric import safe_ratio, to_finite_or_zero


# ============================================================
# ENUMS
# ============================================================

class MarketKind(str, Enum):
    """Ledger a trade belongs to."""

    SPOT = "spot"
    FUTURES = "futures"


class SpotSide(str, Enum):
    """Side of a spot trade."""

    BUY = "buy"
    SELL = "sell"


class FuturesSide(str, Enum):
    """Side of a leveraged trade."""

    LONG = "long"
    SHORT = "short"


class PriceSource(str, Enum):
    """Where a current price came from."""

    BINANCE = "binance"
    COINGECKO = "coingecko"
    DB_CACHE = "db_cache"
    AVG_ENTRY = "avg_entry"


class ExitStrategyStatus(str, Enum):
    """Whether the next scale-out step can be executed now."""

    READY = "ready"
    PENDING = "pending"


# ============================================================
# TRADE LEGS
# ============================================================

@dataclass(frozen=True)
class SpotLeg:
    """Unleveraged buy or sell."""

    side: SpotSide
    kind: MarketKind = field(default=MarketKind.SPOT, init=False)


@dataclass(frozen=True)
class FuturesLeg:
    """Leveraged long or short."""

    side: FuturesSide
    kind: MarketKind = field(default=MarketKind.FUTURES, init=False)


TradeLeg = Union[SpotLeg, FuturesLeg]


# ============================================================
# INPUT TYPES
# ============================================================

@dataclass
class RawTradeRow:
    """
    A persisted trade row before normalization.

    Values are deliberately loose: quantities and prices may be
    Decimals, strings, None or NaN. The normalizer decides what
    survives.
    """

    id: str
    symbol: Any
    side: Any
    quantity: Any
    price_usd: Any
    fee_usd: Any = 0
    executed_at: Optional[datetime] = None
    market_kind: Any = MarketKind.SPOT.value


@dataclass(frozen=True)
class TradeEvent:
    """
    A clean, validated trade event.

    quantity and price_usd are finite and positive, fee_usd is
    finite and non-negative, executed_at is timezone-aware.
    """

    id: str
    symbol: str
    leg: TradeLeg
    quantity: float
    price_usd: float
    fee_usd: float
    executed_at: datetime

    @property
    def side(self) -> Union[SpotSide, FuturesSide]:
        return self.leg.side

    @property
    def is_spot(self) -> bool:
        return isinstance(self.leg, SpotLeg)

    @property
    def is_buy(self) -> bool:
        return self.is_spot and self.leg.side == SpotSide.BUY


# ============================================================
# POSITION STATE
# ============================================================

@dataclass
class PositionState:
    """
    Running state of one (account, symbol) position.

    Never persisted; rebuilt by replaying the event log.
    """

    quantity_held: float = 0.0
    cost_basis_usd: float = 0.0
    total_invested_usd: float = 0.0
    realized_profit_usd: float = 0.0

    @property
    def average_entry_price_usd(self) -> float:
        if self.quantity_held <= 0:
            return 0.0
        return to_finite_or_zero(self.cost_basis_usd / self.quantity_held)

    def unrealized_profit_usd(self, current_price_usd: float) -> float:
        return to_finite_or_zero(
            self.quantity_held * to_finite_or_zero(current_price_usd) - self.cost_basis_usd
        )

    def total_profit_usd(self, current_price_usd: float) -> float:
        return to_finite_or_zero(
            self.realized_profit_usd + self.unrealized_profit_usd(current_price_usd)
        )

    def total_profit_pct(self, current_price_usd: float) -> float:
        return safe_ratio(
            self.total_profit_usd(current_price_usd) * 100, self.total_invested_usd
        )

    def copy(self) -> "PositionState":
        return PositionState(
            quantity_held=self.quantity_held,
            cost_basis_usd=self.cost_basis_usd,
            total_invested_usd=self.total_invested_usd,
            realized_profit_usd=self.realized_profit_usd,
        )


@dataclass(frozen=True)
class AnnotatedTransaction:
    """One row of the per-symbol ledger trail."""

    id: str
    side: SpotSide
    executed_at: datetime
    quantity: float
    price_usd: float
    total_usd: float
    gain_loss_usd: Optional[float] = None
    gain_loss_pct: Optional[float] = None


@dataclass
class LedgerResult:
    """Final state plus the annotated trail produced by a fold."""

    state: PositionState
    transactions: List[AnnotatedTransaction] = field(default_factory=list)
    symbol: Optional[str] = None


# ============================================================
# PRICING
# ============================================================

@dataclass(frozen=True)
class PriceQuote:
    """A resolved current price."""

    price_usd: float
    source: PriceSource
    is_estimated: bool


# ============================================================
# PORTFOLIO
# ============================================================

@dataclass
class AssetPosition:
    """Per-symbol snapshot valued at a current price."""

    symbol: str
    quantity_held: float
    average_price_usd: float
    total_invested_usd: float
    realized_profit_usd: float
    unrealized_profit_usd: float
    current_profit_usd: float
    current_profit_pct: Optional[float]
    price_usd: float
    price_source: PriceSource
    price_is_estimated: bool
    holdings_value_usd: float
    allocation_pct: float = 0.0


@dataclass(frozen=True)
class TopPerformer:
    symbol: str
    profit_usd: float
    profit_pct: Optional[float]


@dataclass
class PortfolioSummary:
    """Aggregate across every symbol of one account."""

    current_balance_usd: float
    total_invested_usd: float
    realized_profit_usd: float
    unrealized_profit_usd: float
    total_profit_usd: float
    total_profit_pct: float
    top_performer: Optional[TopPerformer]
    assets: List[AssetPosition] = field(default_factory=list)


# ============================================================
# EXIT STRATEGY
# ============================================================

@dataclass(frozen=True)
class ExitStrategyConfig:
    """
    Percentage scale-out configuration.

    sell_percent of the remaining quantity is sold every
    gain_percent of price gain above the entry price. Values are
    validated at the API boundary; the planner trusts them.
    """

    coin_symbol: str
    sell_percent: float
    gain_percent: float
    is_active: bool = True
    strategy_id: Optional[str] = None
    strategy_type: str = "percentage"


def compute_execution_figures(
    quantity_sold: float,
    executed_price_usd: float,
    target_price_usd: float,
) -> Tuple[float, float]:
    """
    Proceeds and realized profit of a recorded fill.

    Realized profit is measured against the step target, so it
    captures slippage above or below the planned price.
    """
    proceeds = to_finite_or_zero(quantity_sold * executed_price_usd)
    realized = to_finite_or_zero(quantity_sold * (executed_price_usd - target_price_usd))
    return proceeds, realized


@dataclass(frozen=True)
class ExitStrategyExecution:
    """A concrete fill recorded against one scale-out step."""

    step_gain_percent: float
    target_price_usd: float
    executed_price_usd: float
    quantity_sold: float
    proceeds_usd: float = 0.0
    realized_profit_usd: float = 0.0
    executed_at: Optional[datetime] = None

    @classmethod
    def record(
        cls,
        step_gain_percent: float,
        target_price_usd: float,
        executed_price_usd: float,
        quantity_sold: float,
        executed_at: Optional[datetime] = None,
    ) -> "ExitStrategyExecution":
        """Build an execution with proceeds and profit computed at write time."""
        proceeds, realized = compute_execution_figures(
            quantity_sold, executed_price_usd, target_price_usd
        )
        return cls(
            step_gain_percent=step_gain_percent,
            target_price_usd=target_price_usd,
            executed_price_usd=executed_price_usd,
            quantity_sold=quantity_sold,
            proceeds_usd=proceeds,
            realized_profit_usd=realized,
            executed_at=executed_at,
        )


@dataclass(frozen=True)
class ExitStrategyStepRow:
    """One projected (or executed) step of a scale-out plan."""

    gain_percent: float
    target_price_usd: float
    planned_qty_to_sell: float
    executed_qty_to_sell: Optional[float]
    proceeds_usd: float
    remaining_qty_after: float
    realized_profit_usd: float
    cumulative_realized_profit_usd: float
    is_executed: bool = False


@dataclass
class ScaleOutPlan:
    entry_price_usd: float
    qty_open: float
    rows: List[ExitStrategyStepRow] = field(default_factory=list)


@dataclass
class ExitStrategySummary:
    """Headline numbers for one exit strategy."""

    strategy_id: Optional[str]
    coin_symbol: str
    strategy_type: str
    sell_percent: float
    gain_percent: float
    is_active: bool

    qty_open: float
    entry_price_usd: float

    current_price_usd: float
    current_price_source: PriceSource
    current_price_is_estimated: bool

    next_gain_percent: float
    target_price_usd: float
    qty_to_sell: float
    usd_value_to_sell: float
    distance_to_target_percent: float

    status: ExitStrategyStatus


# ============================================================
# ERRORS
# ============================================================

class LedgerError(Exception):
    """Base class for ledger engine errors."""
    pass


class LedgerInputError(LedgerError):
    """
    The engine was called with input of the wrong kind.

    Raised for programming errors such as feeding a futures
    event to the spot cost tracker. Data-quality problems never
    raise; the normalizer drops them.
    """
    pass

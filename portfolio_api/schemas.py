"""
Pydantic Schemas for the Portfolio API.

JSON bodies use camelCase; Python code uses snake_case. Field
constraints reject invalid input (422) before the ledger runs.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from position_ledger.types import ExitStrategyStatus, MarketKind, PriceSource, SpotSide


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SymbolModel(CamelModel):
    """Request carrying a ticker; normalized to upper case."""

    @field_validator("symbol", "coin_symbol", mode="before", check_fields=False)
    @classmethod
    def _normalize_symbol(cls, value):
        if isinstance(value, str):
            value = value.strip().upper()
        return value


# =============================================================
# PORTFOLIO REQUESTS
# =============================================================

class TransactionCreate(SymbolModel):
    symbol: str = Field(min_length=1, max_length=20)
    side: SpotSide
    quantity: float = Field(gt=0)
    price_usd: float = Field(gt=0)
    fee_usd: float = Field(default=0.0, ge=0)
    executed_at: Optional[datetime] = None
    notes: Optional[str] = None


class BuyRequest(SymbolModel):
    """Spend cash_to_spend (plus fee) from the cash balance."""

    symbol: str = Field(min_length=1, max_length=20)
    cash_to_spend: float = Field(gt=0)
    price_usd: float = Field(gt=0)
    fee_usd: float = Field(default=0.0, ge=0)
    executed_at: Optional[datetime] = None


class SellRequest(SymbolModel):
    symbol: str = Field(min_length=1, max_length=20)
    amount_to_sell: float = Field(gt=0)
    price_usd: float = Field(gt=0)
    fee_usd: float = Field(default=0.0, ge=0)
    executed_at: Optional[datetime] = None


class CashRequest(CamelModel):
    """Set the cash balance; the difference is journaled."""

    amount_usd: float = Field(ge=0)


# =============================================================
# PORTFOLIO RESPONSES
# =============================================================

class TradeEntrySchema(CamelModel):
    id: UUID
    symbol: str
    market_kind: MarketKind
    side: str
    quantity: float
    price_usd: float
    fee_usd: float
    executed_at: datetime
    notes: Optional[str] = None


class TopPerformerSchema(CamelModel):
    symbol: str
    profit_usd: float
    profit_pct: Optional[float] = None


class AssetPositionSchema(CamelModel):
    symbol: str
    quantity_held: float
    average_price_usd: float
    total_invested_usd: float
    realized_profit_usd: float
    unrealized_profit_usd: float
    current_profit_usd: float
    current_profit_pct: Optional[float] = None
    price_usd: float
    price_source: PriceSource
    price_is_estimated: bool
    holdings_value_usd: float
    allocation_pct: float


class PortfolioResponse(CamelModel):
    current_balance_usd: float
    total_invested_usd: float
    realized_profit_usd: float
    unrealized_profit_usd: float
    total_profit_usd: float
    total_profit_pct: float
    top_performer: Optional[TopPerformerSchema] = None
    assets: List[AssetPositionSchema]
    cash_usd: float
    total_value_usd: float


class AnnotatedTransactionSchema(CamelModel):
    id: str
    side: SpotSide
    executed_at: datetime
    quantity: float
    price_usd: float
    total_usd: float
    gain_loss_usd: Optional[float] = None
    gain_loss_pct: Optional[float] = None


class AssetMetricsSchema(CamelModel):
    current_price_usd: float
    price_source: PriceSource
    price_is_estimated: bool
    total_profit_usd: float
    total_profit_pct: Optional[float] = None
    realized_profit_usd: float
    unrealized_profit_usd: float
    average_buy_price_usd: float
    total_invested_usd: float


class AssetDetailResponse(CamelModel):
    symbol: str
    quantity_held: float
    balance_usd: float
    metrics: AssetMetricsSchema
    transactions: List[AnnotatedTransactionSchema]


class CashResponse(CamelModel):
    cash_usd: float
    kind: Optional[Literal["deposit", "withdraw"]] = None
    delta_usd: float = 0.0


class HistoryItemSchema(CamelModel):
    """One journal entry and its effect on cash."""

    id: UUID
    when: datetime
    asset: str
    kind: Literal["buy", "sell", "cash_in", "cash_out"]
    qty: float
    price_usd: float
    fee_usd: float
    cash_delta_usd: float
    note: Optional[str] = None


class HistoryResponse(CamelModel):
    items: List[HistoryItemSchema]


# =============================================================
# EXIT STRATEGY REQUESTS
# =============================================================

class ExitStrategyCreate(SymbolModel):
    coin_symbol: str = Field(min_length=1, max_length=20)
    strategy_type: Literal["percentage"] = "percentage"
    sell_percent: float = Field(gt=0, le=100)
    gain_percent: float = Field(gt=0, le=10_000)


class ExecutionCreate(CamelModel):
    step_gain_percent: float = Field(gt=0)
    target_price_usd: float = Field(gt=0)
    executed_price_usd: float = Field(gt=0)
    quantity_sold: float = Field(gt=0)
    executed_at: Optional[datetime] = None


class SimulateRequest(SymbolModel):
    coin_symbol: str = Field(min_length=1, max_length=20)
    sell_percent: float = Field(gt=0, le=100)
    gain_percent: float = Field(gt=0, le=10_000)
    max_steps: Optional[int] = Field(default=None, ge=1, le=50)


# =============================================================
# EXIT STRATEGY RESPONSES
# =============================================================

class StepRowSchema(CamelModel):
    gain_percent: float
    target_price_usd: float
    planned_qty_to_sell: float
    executed_qty_to_sell: Optional[float] = None
    proceeds_usd: float
    remaining_qty_after: float
    realized_profit_usd: float
    cumulative_realized_profit_usd: float
    is_executed: bool


class ExecutionSchema(CamelModel):
    step_gain_percent: float
    target_price_usd: float
    executed_price_usd: float
    quantity_sold: float
    proceeds_usd: float
    realized_profit_usd: float
    executed_at: Optional[datetime] = None


class ExitStrategySummarySchema(CamelModel):
    strategy_id: Optional[str] = None
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


class ExitStrategyDetailSchema(CamelModel):
    summary: ExitStrategySummarySchema
    rows: List[StepRowSchema]
    executions: List[ExecutionSchema]


class SimulationResponse(CamelModel):
    coin_symbol: str
    qty_open: float
    entry_price_usd: float
    rows: List[StepRowSchema]

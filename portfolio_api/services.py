"""
Portfolio API - Services.

Request-scoped services that load journal rows through the
repositories, run the position ledger and shape responses.

Services raise core exceptions; routers translate them into
HTTP status codes.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import (
    ConflictError,
    DataValidationError,
    InsufficientBalanceError,
    ResourceNotFoundError,
)
from position_ledger import (
    CASH_SYMBOL,
    PriceResolver,
    ScaleOutPlanner,
    SpotSide,
    build_asset_position,
    get_asset_detail_config,
    get_open_spot_holding,
    get_portfolio_summary_config,
    replay_ledger,
    summarize_portfolio,
)
from portfolio_api.schemas import (
    AnnotatedTransactionSchema,
    AssetDetailResponse,
    AssetMetricsSchema,
    AssetPositionSchema,
    BuyRequest,
    CashResponse,
    ExecutionCreate,
    ExecutionSchema,
    ExitStrategyCreate,
    ExitStrategyDetailSchema,
    ExitStrategySummarySchema,
    HistoryItemSchema,
    HistoryResponse,
    PortfolioResponse,
    SellRequest,
    SimulateRequest,
    SimulationResponse,
    StepRowSchema,
    TopPerformerSchema,
    TradeEntrySchema,
    TransactionCreate,
)
from storage.models.exit_strategy import ExitStrategyRecord
from storage.repositories import (
    DuplicateRecordError,
    ExitStrategyRepository,
    RecordNotFoundError,
    TradeEntryRepository,
    to_execution,
    to_strategy_config,
)


logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = 1e-8
HISTORY_DEFAULT_LIMIT = 200
HISTORY_MAX_LIMIT = 1000


def _reject_cash(symbol: str) -> None:
    if symbol == CASH_SYMBOL:
        raise DataValidationError(
            "CASH is not a tradable asset; use the cash endpoint",
            field="symbol",
        )


# =============================================================
# PORTFOLIO
# =============================================================

class PortfolioService:
    """Portfolio summary, asset detail and journal writes."""

    def __init__(self, session: Session, price_resolver: PriceResolver):
        self.session = session
        self.trades = TradeEntryRepository(session)
        self.price_resolver = price_resolver

    # =======================
    # READS
    # =======================

    def get_portfolio(self, account_id: str) -> PortfolioResponse:
        events = self.trades.list_spot_events(account_id)
        summary = summarize_portfolio(events, self.price_resolver, get_portfolio_summary_config())
        cash_usd = self.trades.get_cash_balance(account_id)

        return PortfolioResponse(
            current_balance_usd=summary.current_balance_usd,
            total_invested_usd=summary.total_invested_usd,
            realized_profit_usd=summary.realized_profit_usd,
            unrealized_profit_usd=summary.unrealized_profit_usd,
            total_profit_usd=summary.total_profit_usd,
            total_profit_pct=summary.total_profit_pct,
            top_performer=(
                TopPerformerSchema.model_validate(summary.top_performer)
                if summary.top_performer else None
            ),
            assets=[AssetPositionSchema.model_validate(a) for a in summary.assets],
            cash_usd=cash_usd,
            total_value_usd=summary.current_balance_usd + cash_usd,
        )

    def get_asset_detail(self, account_id: str, symbol: str) -> AssetDetailResponse:
        """
        Single-symbol view. Invested capital is kept across full
        exits. A symbol that was never traded yields zeros.
        """
        symbol = symbol.strip().upper()
        _reject_cash(symbol)

        events = self.trades.list_spot_events(account_id, symbol)
        ledger = replay_ledger(events, get_asset_detail_config())
        quote = self.price_resolver.resolve(symbol, ledger.state.average_entry_price_usd)
        asset = build_asset_position(symbol, ledger, quote)

        return AssetDetailResponse(
            symbol=symbol,
            quantity_held=asset.quantity_held,
            balance_usd=asset.holdings_value_usd,
            metrics=AssetMetricsSchema(
                current_price_usd=asset.price_usd,
                price_source=asset.price_source,
                price_is_estimated=asset.price_is_estimated,
                total_profit_usd=asset.current_profit_usd,
                total_profit_pct=asset.current_profit_pct,
                realized_profit_usd=asset.realized_profit_usd,
                unrealized_profit_usd=asset.unrealized_profit_usd,
                average_buy_price_usd=asset.average_price_usd,
                total_invested_usd=asset.total_invested_usd,
            ),
            transactions=[
                AnnotatedTransactionSchema.model_validate(t) for t in ledger.transactions
            ],
        )

    def get_history(self, account_id: str, limit: int = HISTORY_DEFAULT_LIMIT) -> HistoryResponse:
        """
        Journal entries newest first, each with its cash effect.

        limit is clamped to [1, HISTORY_MAX_LIMIT]. Any non-buy
        side of a traded asset counts as a sell.
        """
        limit = min(max(limit, 1), HISTORY_MAX_LIMIT)
        items = []
        for entry in self.trades.list_recent_entries(account_id, limit):
            gross = entry.quantity * entry.price_usd
            is_buy = entry.side == SpotSide.BUY.value
            if entry.symbol == CASH_SYMBOL:
                kind = "cash_in" if is_buy else "cash_out"
                cash_delta = gross if is_buy else -gross
            elif is_buy:
                kind = "buy"
                cash_delta = -(gross + entry.fee_usd)
            else:
                kind = "sell"
                cash_delta = gross - entry.fee_usd

            items.append(HistoryItemSchema(
                id=entry.id,
                when=entry.executed_at,
                asset=entry.symbol,
                kind=kind,
                qty=entry.quantity,
                price_usd=entry.price_usd,
                fee_usd=entry.fee_usd,
                cash_delta_usd=cash_delta,
                note=entry.notes,
            ))
        return HistoryResponse(items=items)

    # =======================
    # WRITES
    # =======================

    def add_transaction(self, account_id: str, body: TransactionCreate) -> TradeEntrySchema:
        _reject_cash(body.symbol)
        entry = self.trades.create_trade_entry(
            account_id=account_id,
            symbol=body.symbol,
            side=body.side.value,
            quantity=body.quantity,
            price_usd=body.price_usd,
            fee_usd=body.fee_usd,
            executed_at=body.executed_at,
            notes=body.notes,
        )
        self.session.commit()
        self.price_resolver.invalidate(entry.symbol)
        logger.info(
            f"Journaled {body.side.value} {body.quantity} {body.symbol} @ {body.price_usd} "
            f"for {account_id}"
        )
        return TradeEntrySchema.model_validate(entry)

    def buy(self, account_id: str, body: BuyRequest) -> TradeEntrySchema:
        """
        Spend cash on an asset.

        Raises:
            InsufficientBalanceError: cash_to_spend + fee exceeds cash
        """
        _reject_cash(body.symbol)
        required = body.cash_to_spend + body.fee_usd
        available = self.trades.get_cash_balance(account_id)
        if required > available + BALANCE_TOLERANCE:
            raise InsufficientBalanceError(
                "Insufficient cash balance",
                asset=CASH_SYMBOL,
                required=required,
                available=available,
            )

        entry = self.trades.create_trade_entry(
            account_id=account_id,
            symbol=body.symbol,
            side=SpotSide.BUY.value,
            quantity=body.cash_to_spend / body.price_usd,
            price_usd=body.price_usd,
            fee_usd=body.fee_usd,
            executed_at=body.executed_at,
        )
        self.trades.create_cash_entry(
            account_id,
            required,
            deposit=False,
            executed_at=entry.executed_at,
            notes=f"Buy {body.symbol}",
        )
        self.session.commit()
        self.price_resolver.invalidate(entry.symbol)
        logger.info(f"Bought {entry.quantity} {body.symbol} for {required:.2f} USD ({account_id})")
        return TradeEntrySchema.model_validate(entry)

    def sell(self, account_id: str, body: SellRequest) -> TradeEntrySchema:
        """
        Sell part of a holding and credit the net proceeds.

        Raises:
            InsufficientBalanceError: amount_to_sell exceeds the holding
        """
        _reject_cash(body.symbol)
        events = self.trades.list_spot_events(account_id, body.symbol)
        held, _ = get_open_spot_holding(events, body.symbol, get_asset_detail_config())
        if body.amount_to_sell > held + BALANCE_TOLERANCE:
            raise InsufficientBalanceError(
                f"Insufficient {body.symbol} holding",
                asset=body.symbol,
                required=body.amount_to_sell,
                available=held,
            )

        entry = self.trades.create_trade_entry(
            account_id=account_id,
            symbol=body.symbol,
            side=SpotSide.SELL.value,
            quantity=body.amount_to_sell,
            price_usd=body.price_usd,
            fee_usd=body.fee_usd,
            executed_at=body.executed_at,
        )
        net = body.amount_to_sell * body.price_usd - body.fee_usd
        if abs(net) > BALANCE_TOLERANCE:
            self.trades.create_cash_entry(
                account_id,
                abs(net),
                deposit=net > 0,
                executed_at=entry.executed_at,
                notes=f"Sell {body.symbol}",
            )
        self.session.commit()
        self.price_resolver.invalidate(entry.symbol)
        logger.info(f"Sold {body.amount_to_sell} {body.symbol} for net {net:.2f} USD ({account_id})")
        return TradeEntrySchema.model_validate(entry)

    def set_cash_balance(self, account_id: str, target_usd: float) -> CashResponse:
        """Journal the deposit or withdrawal that brings cash to target_usd."""
        current = self.trades.get_cash_balance(account_id)
        delta = target_usd - current
        if abs(delta) < BALANCE_TOLERANCE:
            return CashResponse(cash_usd=current)

        kind = "deposit" if delta > 0 else "withdraw"
        self.trades.create_cash_entry(account_id, abs(delta), deposit=delta > 0)
        self.session.commit()
        logger.info(f"Cash {kind} of {abs(delta):.2f} USD for {account_id}")
        return CashResponse(cash_usd=target_usd, kind=kind, delta_usd=abs(delta))

    def delete_transaction(self, account_id: str, entry_id: UUID) -> None:
        try:
            symbol = self.trades.delete_entry(account_id, entry_id)
            self.session.commit()
        except RecordNotFoundError as e:
            raise ResourceNotFoundError("Transaction", str(entry_id)) from e
        self.price_resolver.invalidate(symbol)


# =============================================================
# EXIT STRATEGIES
# =============================================================

class ExitStrategyService:
    """Exit strategy CRUD, execution recording and simulation."""

    def __init__(
        self,
        session: Session,
        price_resolver: PriceResolver,
        planner: Optional[ScaleOutPlanner] = None,
    ):
        self.session = session
        self.trades = TradeEntryRepository(session)
        self.strategies = ExitStrategyRepository(session)
        self.price_resolver = price_resolver
        self.planner = planner or ScaleOutPlanner()

    def _holding(self, account_id: str, coin: str):
        events = self.trades.list_spot_events(account_id, coin)
        return get_open_spot_holding(events, coin, get_asset_detail_config())

    def _get(self, account_id: str, strategy_id: UUID) -> ExitStrategyRecord:
        try:
            return self.strategies.get_for_account(account_id, strategy_id)
        except RecordNotFoundError as e:
            raise ResourceNotFoundError("Exit strategy", str(strategy_id)) from e

    def _summary(self, account_id: str, record: ExitStrategyRecord) -> ExitStrategySummarySchema:
        qty_open, entry = self._holding(account_id, record.coin_symbol)
        executions = [to_execution(e) for e in self.strategies.list_executions(record.id)]
        quote = self.price_resolver.resolve(record.coin_symbol, entry)
        summary = self.planner.summarize(
            to_strategy_config(record), qty_open, entry, quote, executions
        )
        return ExitStrategySummarySchema.model_validate(summary)

    # =======================
    # READS
    # =======================

    def list_strategies(self, account_id: str) -> List[ExitStrategySummarySchema]:
        return [
            self._summary(account_id, record)
            for record in self.strategies.list_for_account(account_id)
        ]

    def get_summary(self, account_id: str, strategy_id: UUID) -> ExitStrategySummarySchema:
        return self._summary(account_id, self._get(account_id, strategy_id))

    def get_details(
        self,
        account_id: str,
        strategy_id: UUID,
        max_steps: Optional[int] = None,
    ) -> ExitStrategyDetailSchema:
        """Summary plus the plan reconciled with recorded executions."""
        record = self._get(account_id, strategy_id)
        qty_open, entry = self._holding(account_id, record.coin_symbol)
        executions = [to_execution(e) for e in self.strategies.list_executions(record.id)]

        plan = self.planner.build_plan(
            entry_price_usd=entry,
            qty_open=qty_open,
            sell_percent=float(record.sell_percent),
            gain_percent=float(record.gain_percent),
            max_steps=max_steps,
            executions=executions,
        )
        return ExitStrategyDetailSchema(
            summary=self._summary(account_id, record),
            rows=[StepRowSchema.model_validate(r) for r in plan.rows],
            executions=[ExecutionSchema.model_validate(e) for e in executions],
        )

    def simulate(self, account_id: str, body: SimulateRequest) -> SimulationResponse:
        """Project a plan for the current holding without persisting anything."""
        qty_open, entry = self._holding(account_id, body.coin_symbol)
        plan = self.planner.build_plan(
            entry_price_usd=entry,
            qty_open=qty_open,
            sell_percent=body.sell_percent,
            gain_percent=body.gain_percent,
            max_steps=body.max_steps,
        )
        return SimulationResponse(
            coin_symbol=body.coin_symbol,
            qty_open=plan.qty_open,
            entry_price_usd=plan.entry_price_usd,
            rows=[StepRowSchema.model_validate(r) for r in plan.rows],
        )

    # =======================
    # WRITES
    # =======================

    def create_strategy(self, account_id: str, body: ExitStrategyCreate) -> ExitStrategySummarySchema:
        _reject_cash(body.coin_symbol)
        try:
            record = self.strategies.create_strategy(
                account_id=account_id,
                coin_symbol=body.coin_symbol,
                sell_percent=body.sell_percent,
                gain_percent=body.gain_percent,
                strategy_type=body.strategy_type,
            )
        except DuplicateRecordError as e:
            raise ConflictError(
                "An exit strategy already exists for this coin.",
                resource="exit_strategy",
            ) from e
        self.session.commit()
        return self._summary(account_id, record)

    def delete_strategy(self, account_id: str, strategy_id: UUID) -> None:
        self.strategies.delete_strategy(account_id, self._get(account_id, strategy_id).id)
        self.session.commit()

    def record_execution(
        self,
        account_id: str,
        strategy_id: UUID,
        body: ExecutionCreate,
    ) -> ExitStrategyDetailSchema:
        record = self._get(account_id, strategy_id)
        try:
            self.strategies.record_execution(
                account_id=account_id,
                strategy_id=record.id,
                step_gain_percent=body.step_gain_percent,
                target_price_usd=body.target_price_usd,
                executed_price_usd=body.executed_price_usd,
                quantity_sold=body.quantity_sold,
                executed_at=body.executed_at,
            )
        except DuplicateRecordError as e:
            raise ConflictError(
                f"Step {body.step_gain_percent}% already has an execution.",
                resource="exit_strategy_execution",
            ) from e
        self.session.commit()
        return self.get_details(account_id, record.id)

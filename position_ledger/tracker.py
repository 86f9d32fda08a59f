"""
Position Ledger - Weighted-Average Cost Tracker.

============================================================
PURPOSE
============================================================
Folds an ordered spot event stream into a PositionState and
an annotated transaction trail.

============================================================
ALGORITHM (moving weighted-average cost)
============================================================
Buy q @ p, fee f:
    quantity_held      += q
    cost_basis_usd     += q*p + f
    total_invested_usd += q*p + f

Sell q @ p, fee f:
    avg  = cost_basis_usd / quantity_held   (0 when flat)
    gain = (p - avg) * q - f
    realized_profit_usd += gain
    reduce = min(q, quantity_held)
    quantity_held  -= reduce
    cost_basis_usd -= reduce * avg

When quantity_held drops below zero_epsilon, quantity and cost
basis snap to exactly 0. With reset_invested_on_full_exit,
total invested snaps to 0 as well.

============================================================
CRITICAL INVARIANTS
============================================================
1. quantity_held and cost_basis_usd are never negative
2. realized_profit_usd is the sum of every sell's gain
3. Replaying the same ordered events yields the same state

============================================================
"""

import logging
from typing import Iterable, List, Optional, Tuple

from .config import CostTrackerConfig, LedgerConfig, get_default_config
from .numeric import to_finite_or_zero
from .types import (
    AnnotatedTransaction,
    LedgerInputError,
    LedgerResult,
    PositionState,
    SpotSide,
    TradeEvent,
)


logger = logging.getLogger(__name__)


class WeightedAverageCostTracker:
    """
    Stateful fold over one symbol's events.

    One instance per (account, symbol) replay. Instances are
    cheap; callers create a fresh one per request.
    """

    def __init__(self, config: Optional[CostTrackerConfig] = None):
        self._config = config or CostTrackerConfig()
        self._state = PositionState()
        self._transactions: List[AnnotatedTransaction] = []
        self._symbol: Optional[str] = None

    @property
    def state(self) -> PositionState:
        """A copy of the current state."""
        return self._state.copy()

    @property
    def transactions(self) -> List[AnnotatedTransaction]:
        return list(self._transactions)

    def reset(self) -> None:
        self._state = PositionState()
        self._transactions = []
        self._symbol = None

    # --------------------------------------------------------
    # EVENT APPLICATION
    # --------------------------------------------------------

    def apply(self, event: TradeEvent) -> AnnotatedTransaction:
        """
        Apply one event and return its annotated row.

        Raises:
            LedgerInputError: If the event is not a spot event, or
                belongs to a different symbol than earlier events
        """
        if not event.is_spot:
            raise LedgerInputError(
                f"Cost tracker only accepts spot events, got {event.leg.kind.value} event {event.id}"
            )
        if self._symbol is None:
            self._symbol = event.symbol
        elif event.symbol != self._symbol:
            raise LedgerInputError(
                f"Cost tracker is folding {self._symbol}, got {event.symbol} event {event.id}"
            )

        if event.side == SpotSide.BUY:
            row = self._apply_buy(event)
        else:
            row = self._apply_sell(event)

        self._transactions.append(row)
        return row

    def _apply_buy(self, event: TradeEvent) -> AnnotatedTransaction:
        state = self._state
        total = to_finite_or_zero(event.quantity * event.price_usd)
        cost = to_finite_or_zero(total + event.fee_usd)

        state.quantity_held = to_finite_or_zero(state.quantity_held + event.quantity)
        state.cost_basis_usd = to_finite_or_zero(state.cost_basis_usd + cost)
        state.total_invested_usd = to_finite_or_zero(state.total_invested_usd + cost)

        return AnnotatedTransaction(
            id=event.id,
            side=SpotSide.BUY,
            executed_at=event.executed_at,
            quantity=event.quantity,
            price_usd=event.price_usd,
            total_usd=cost,
        )

    def _apply_sell(self, event: TradeEvent) -> AnnotatedTransaction:
        state = self._state
        avg = state.average_entry_price_usd
        gain_usd, gain_pct = sell_gain(event.quantity, event.price_usd, event.fee_usd, avg)

        state.realized_profit_usd = to_finite_or_zero(state.realized_profit_usd + gain_usd)

        reduce_qty = min(event.quantity, state.quantity_held)
        if event.quantity > state.quantity_held:
            logger.debug(
                f"Sell {event.id} of {event.quantity} {event.symbol} exceeds held "
                f"{state.quantity_held}; reducing by held quantity only"
            )
        state.quantity_held = to_finite_or_zero(state.quantity_held - reduce_qty)
        state.cost_basis_usd = to_finite_or_zero(state.cost_basis_usd - reduce_qty * avg)

        if state.quantity_held < self._config.zero_epsilon:
            state.quantity_held = 0.0
            state.cost_basis_usd = 0.0
            if self._config.reset_invested_on_full_exit:
                state.total_invested_usd = 0.0

        total = to_finite_or_zero(event.quantity * event.price_usd)
        return AnnotatedTransaction(
            id=event.id,
            side=SpotSide.SELL,
            executed_at=event.executed_at,
            quantity=event.quantity,
            price_usd=event.price_usd,
            total_usd=to_finite_or_zero(total - event.fee_usd),
            gain_loss_usd=gain_usd,
            gain_loss_pct=gain_pct,
        )

    # --------------------------------------------------------
    # FOLD
    # --------------------------------------------------------

    def fold(self, events: Iterable[TradeEvent]) -> LedgerResult:
        """Apply every event in order and return the result."""
        for event in events:
            self.apply(event)
        return LedgerResult(
            state=self.state,
            transactions=self.transactions,
            symbol=self._symbol,
        )


def sell_gain(
    quantity: float,
    price_usd: float,
    fee_usd: float,
    average_cost_usd: float,
) -> Tuple[float, Optional[float]]:
    """
    Realized gain of a sell against the average cost.

    Returns:
        (gain_loss_usd, gain_loss_pct). The percentage is None
        when there is no average cost to compare against.
    """
    gain_usd = to_finite_or_zero((price_usd - average_cost_usd) * quantity - fee_usd)
    gain_pct: Optional[float] = None
    if average_cost_usd > 0:
        gain_pct = to_finite_or_zero((price_usd - average_cost_usd) / average_cost_usd * 100)
    return gain_usd, gain_pct


def replay_ledger(
    events: Iterable[TradeEvent],
    config: Optional[LedgerConfig] = None,
) -> LedgerResult:
    """One-shot fold of a single symbol's ordered events."""
    config = config or get_default_config()
    return WeightedAverageCostTracker(config.cost_tracker).fold(events)


def get_open_spot_holding(
    events: Iterable[TradeEvent],
    symbol: str,
    config: Optional[LedgerConfig] = None,
) -> Tuple[float, float]:
    """
    Open quantity and average entry price for one symbol.

    Returns (0.0, 0.0) when the symbol was never traded or is flat.
    """
    wanted = symbol.strip().upper()
    state = replay_ledger((e for e in events if e.symbol == wanted), config).state
    return state.quantity_held, state.average_entry_price_usd

"""
Position Ledger - Event Stream Normalizer.

============================================================
PURPOSE
============================================================
Turns persisted trade rows into a clean, ordered sequence of
spot TradeEvents.

============================================================
POLICY
============================================================
Best-effort reconstruction, not strict validation. Historical
rows may be legacy or partial, so malformed rows are dropped
silently (counted at DEBUG level) instead of raising.

Dropped:
- symbol "CASH" (fiat movements are not positions)
- non-spot rows
- unknown sides
- quantity or price not finite or <= 0
- rows without a timestamp

Coerced:
- symbol trimmed and upper-cased
- negative or non-finite fee -> 0
- naive timestamp -> UTC

Ordering is ascending by executed_at. The sort is stable, so
rows with equal timestamps keep their input order.

============================================================
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from core.clock import ensure_utc

from .numeric import is_positive_finite, to_finite_or_zero
from .types import (
    FuturesLeg,
    FuturesSide,
    MarketKind,
    RawTradeRow,
    SpotLeg,
    SpotSide,
    TradeEvent,
    TradeLeg,
)


logger = logging.getLogger(__name__)

CASH_SYMBOL = "CASH"


def normalize_symbol(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().upper()
    return text or None


def parse_leg(market_kind: object, side: object) -> Optional[TradeLeg]:
    """Build the tagged leg for a (market_kind, side) pair, or None if unknown."""
    kind = str(getattr(market_kind, "value", market_kind) or "").strip().lower()
    side_text = str(getattr(side, "value", side) or "").strip().lower()

    try:
        if kind == MarketKind.SPOT.value:
            return SpotLeg(SpotSide(side_text))
        if kind == MarketKind.FUTURES.value:
            return FuturesLeg(FuturesSide(side_text))
    except ValueError:
        return None
    return None


def normalize_row(row: RawTradeRow) -> Optional[TradeEvent]:
    """Validate a single row. Returns None when the row is noise."""
    symbol = normalize_symbol(row.symbol)
    if symbol is None:
        return None

    leg = parse_leg(row.market_kind, row.side)
    if leg is None:
        return None

    if not is_positive_finite(row.quantity) or not is_positive_finite(row.price_usd):
        return None

    if row.executed_at is None:
        return None

    return TradeEvent(
        id=str(row.id),
        symbol=symbol,
        leg=leg,
        quantity=to_finite_or_zero(row.quantity),
        price_usd=to_finite_or_zero(row.price_usd),
        fee_usd=max(to_finite_or_zero(row.fee_usd), 0.0),
        executed_at=ensure_utc(row.executed_at),
    )


def normalize_events(
    rows: Iterable[RawTradeRow],
    symbol: Optional[str] = None,
) -> List[TradeEvent]:
    """
    Clean and order a batch of rows.

    Args:
        rows: Persisted rows in any order
        symbol: Keep only this symbol (case-insensitive) when given

    Returns:
        Spot events, ascending by executed_at
    """
    wanted = normalize_symbol(symbol) if symbol is not None else None

    events: List[TradeEvent] = []
    dropped = 0
    for row in rows:
        event = normalize_row(row)
        if event is None or not event.is_spot or event.symbol == CASH_SYMBOL:
            dropped += 1
            continue
        if wanted is not None and event.symbol != wanted:
            continue
        events.append(event)

    if dropped:
        logger.debug(f"Normalizer dropped {dropped} row(s)")

    events.sort(key=lambda e: e.executed_at)
    return events


def group_events_by_symbol(events: Iterable[TradeEvent]) -> Dict[str, List[TradeEvent]]:
    """Split an ordered stream per symbol, keeping order inside each group."""
    groups: Dict[str, List[TradeEvent]] = OrderedDict()
    for event in events:
        groups.setdefault(event.symbol, []).append(event)
    return groups

"""
Position Ledger - Portfolio Aggregation.

============================================================
PURPOSE
============================================================
Values per-symbol ledgers at current prices and aggregates
them into an account-wide summary.

============================================================
AGGREGATION
============================================================
current_balance_usd   = sum(holdings_value_usd)
total_invested_usd    = sum(per-symbol total invested)
realized_profit_usd   = sum(per-symbol realized)
unrealized_profit_usd = sum(per-symbol unrealized)
total_profit_pct      = total_profit / total_invested * 100 (0 if none)

Flat symbols (quantity 0) are left out of the asset list but
their realized profit still counts in the aggregate.

Top performer: highest current_profit_pct (None sorts last),
ties broken by highest current_profit_usd.

============================================================
"""

import logging
from typing import Iterable, List, Optional

from .config import LedgerConfig, get_portfolio_summary_config
from .normalizer import group_events_by_symbol
from .numeric import safe_ratio, to_finite_or_zero
from .pricing import PriceResolver
from .tracker import replay_ledger
from .types import (
    AssetPosition,
    LedgerResult,
    PortfolioSummary,
    PriceQuote,
    TopPerformer,
    TradeEvent,
)


logger = logging.getLogger(__name__)


def build_asset_position(
    symbol: str,
    ledger: LedgerResult,
    quote: PriceQuote,
) -> AssetPosition:
    """Value one symbol's folded ledger at a quoted price."""
    state = ledger.state
    price = to_finite_or_zero(quote.price_usd)

    unrealized = state.unrealized_profit_usd(price)
    current_profit = to_finite_or_zero(state.realized_profit_usd + unrealized)
    current_profit_pct: Optional[float] = None
    if state.total_invested_usd > 0:
        current_profit_pct = to_finite_or_zero(current_profit / state.total_invested_usd * 100)

    return AssetPosition(
        symbol=symbol,
        quantity_held=state.quantity_held,
        average_price_usd=state.average_entry_price_usd,
        total_invested_usd=state.total_invested_usd,
        realized_profit_usd=state.realized_profit_usd,
        unrealized_profit_usd=unrealized,
        current_profit_usd=current_profit,
        current_profit_pct=current_profit_pct,
        price_usd=price,
        price_source=quote.source,
        price_is_estimated=quote.is_estimated,
        holdings_value_usd=to_finite_or_zero(state.quantity_held * price),
    )


def select_top_performer(assets: Iterable[AssetPosition]) -> Optional[TopPerformer]:
    """Pick the best asset by profit percent, then profit USD."""
    candidates = list(assets)
    if not candidates:
        return None

    best = max(
        candidates,
        key=lambda a: (
            a.current_profit_pct is not None,
            a.current_profit_pct if a.current_profit_pct is not None else 0.0,
            a.current_profit_usd,
        ),
    )
    return TopPerformer(
        symbol=best.symbol,
        profit_usd=best.current_profit_usd,
        profit_pct=best.current_profit_pct,
    )


def summarize_portfolio(
    events: Iterable[TradeEvent],
    price_resolver: PriceResolver,
    config: Optional[LedgerConfig] = None,
) -> PortfolioSummary:
    """
    Fold every symbol independently and aggregate.

    Args:
        events: Normalized spot events for one account (any symbols)
        price_resolver: Current price collaborator
        config: Defaults to the summary preset (reset on full exit)

    Returns:
        PortfolioSummary with assets sorted by holdings value
    """
    config = config or get_portfolio_summary_config()

    assets: List[AssetPosition] = []
    total_invested = 0.0
    realized = 0.0
    unrealized = 0.0

    for symbol, symbol_events in group_events_by_symbol(events).items():
        ledger = replay_ledger(symbol_events, config)
        quote = price_resolver.resolve(symbol, ledger.state.average_entry_price_usd)
        asset = build_asset_position(symbol, ledger, quote)

        total_invested += asset.total_invested_usd
        realized += asset.realized_profit_usd
        unrealized += asset.unrealized_profit_usd

        if asset.quantity_held > 0:
            assets.append(asset)

    balance = to_finite_or_zero(sum(a.holdings_value_usd for a in assets))
    for asset in assets:
        asset.allocation_pct = safe_ratio(asset.holdings_value_usd * 100, balance)
    assets.sort(key=lambda a: a.holdings_value_usd, reverse=True)

    total_profit = to_finite_or_zero(realized + unrealized)
    summary = PortfolioSummary(
        current_balance_usd=balance,
        total_invested_usd=to_finite_or_zero(total_invested),
        realized_profit_usd=to_finite_or_zero(realized),
        unrealized_profit_usd=to_finite_or_zero(unrealized),
        total_profit_usd=total_profit,
        total_profit_pct=safe_ratio(total_profit * 100, total_invested),
        top_performer=select_top_performer(assets),
        assets=assets,
    )
    logger.debug(
        f"Portfolio summary: {len(assets)} open asset(s), balance={summary.current_balance_usd:.2f}"
    )
    return summary

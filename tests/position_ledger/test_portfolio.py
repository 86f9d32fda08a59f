"""
Tests for Portfolio Aggregation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from position_ledger import (
    FixedPriceResolver,
    PriceSource,
    SpotLeg,
    SpotSide,
    TradeEvent,
    select_top_performer,
    summarize_portfolio,
)
from position_ledger.types import AssetPosition


T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)


def ev(n, symbol, side, quantity, price, fee=0.0):
    return TradeEvent(
        id=f"t{n}",
        symbol=symbol,
        leg=SpotLeg(SpotSide(side)),
        quantity=quantity,
        price_usd=price,
        fee_usd=fee,
        executed_at=T0 + timedelta(hours=n),
    )


def asset(symbol, profit_usd, profit_pct):
    return AssetPosition(
        symbol=symbol,
        quantity_held=1,
        average_price_usd=1,
        total_invested_usd=1,
        realized_profit_usd=0,
        unrealized_profit_usd=profit_usd,
        current_profit_usd=profit_usd,
        current_profit_pct=profit_pct,
        price_usd=1,
        price_source=PriceSource.BINANCE,
        price_is_estimated=False,
        holdings_value_usd=1,
    )


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def events():
    """BTC open, ETH open, SOL fully closed at a profit."""
    return [
        ev(1, "BTC", "buy", 1, 20000),
        ev(2, "ETH", "buy", 10, 1000),
        ev(3, "SOL", "buy", 100, 10),
        ev(4, "SOL", "sell", 100, 15),
    ]


@pytest.fixture
def resolver():
    return FixedPriceResolver({"BTC": 30000, "ETH": 500})


# ============================================================
# AGGREGATION
# ============================================================

class TestSummarizePortfolio:

    def test_balance_and_totals(self, events, resolver):
        summary = summarize_portfolio(events, resolver)

        assert summary.current_balance_usd == pytest.approx(35000)
        assert summary.unrealized_profit_usd == pytest.approx(10000 - 5000)
        assert summary.realized_profit_usd == pytest.approx(500)
        assert summary.total_profit_usd == pytest.approx(5500)

    def test_closed_position_resets_invested(self, events, resolver):
        summary = summarize_portfolio(events, resolver)

        assert summary.total_invested_usd == pytest.approx(30000)
        assert summary.total_profit_pct == pytest.approx(5500 / 30000 * 100)

    def test_flat_symbol_excluded_from_assets(self, events, resolver):
        symbols = [a.symbol for a in summarize_portfolio(events, resolver).assets]
        assert "SOL" not in symbols

    def test_sorted_by_value_with_allocation(self, events, resolver):
        assets = summarize_portfolio(events, resolver).assets

        assert [a.symbol for a in assets] == ["BTC", "ETH"]
        assert assets[0].allocation_pct == pytest.approx(30000 / 35000 * 100)
        assert sum(a.allocation_pct for a in assets) == pytest.approx(100)

    def test_top_performer(self, events, resolver):
        top = summarize_portfolio(events, resolver).top_performer

        assert top.symbol == "BTC"
        assert top.profit_usd == pytest.approx(10000)
        assert top.profit_pct == pytest.approx(50)

    def test_missing_price_falls_back_to_average(self, events):
        summary = summarize_portfolio(events, FixedPriceResolver({"BTC": 30000}))
        eth = next(a for a in summary.assets if a.symbol == "ETH")

        assert eth.price_usd == pytest.approx(1000)
        assert eth.price_source == PriceSource.AVG_ENTRY
        assert eth.price_is_estimated
        assert eth.unrealized_profit_usd == pytest.approx(0)

    def test_empty_portfolio(self, resolver):
        summary = summarize_portfolio([], resolver)

        assert summary.current_balance_usd == 0
        assert summary.total_profit_pct == 0
        assert summary.top_performer is None
        assert summary.assets == []

    def test_only_closed_positions(self, resolver):
        events = [ev(1, "SOL", "buy", 1, 10), ev(2, "SOL", "sell", 1, 8)]
        summary = summarize_portfolio(events, resolver)

        assert summary.assets == []
        assert summary.realized_profit_usd == pytest.approx(-2)
        assert summary.total_profit_pct == 0


# ============================================================
# TOP PERFORMER
# ============================================================

class TestSelectTopPerformer:

    def test_none_pct_sorts_last(self):
        top = select_top_performer([asset("A", 999, None), asset("B", 1, -50)])
        assert top.symbol == "B"

    def test_tie_broken_by_usd(self):
        top = select_top_performer([asset("A", 10, 20), asset("B", 30, 20)])
        assert top.symbol == "B"

    def test_empty(self):
        assert select_top_performer([]) is None

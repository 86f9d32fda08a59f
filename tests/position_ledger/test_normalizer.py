"""
Tests for the Event Stream Normalizer.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from position_ledger import (
    FuturesLeg,
    MarketKind,
    RawTradeRow,
    SpotLeg,
    SpotSide,
    group_events_by_symbol,
    normalize_events,
    normalize_row,
)
from position_ledger.normalizer import parse_leg


T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def row(n, symbol="BTC", side="buy", quantity=1.0, price=100.0, fee=0.0,
        executed_at="default", market_kind="spot"):
    return RawTradeRow(
        id=f"r{n}",
        symbol=symbol,
        side=side,
        quantity=quantity,
        price_usd=price,
        fee_usd=fee,
        executed_at=T0 + timedelta(minutes=n) if executed_at == "default" else executed_at,
        market_kind=market_kind,
    )


# ============================================================
# ROW VALIDATION
# ============================================================

class TestNormalizeRow:

    def test_valid_row(self):
        event = normalize_row(row(1, symbol=" btc ", quantity="2.5", price=Decimal("100.5"), fee=1))

        assert event.symbol == "BTC"
        assert event.leg == SpotLeg(SpotSide.BUY)
        assert event.quantity == 2.5
        assert event.price_usd == 100.5
        assert event.fee_usd == 1.0

    @pytest.mark.parametrize("quantity", [0, -1, None, "abc", float("nan"), float("inf")])
    def test_bad_quantity_dropped(self, quantity):
        assert normalize_row(row(1, quantity=quantity)) is None

    @pytest.mark.parametrize("price", [0, -5, None, float("nan")])
    def test_bad_price_dropped(self, price):
        assert normalize_row(row(1, price=price)) is None

    @pytest.mark.parametrize("fee", [-3, None, float("nan"), "junk"])
    def test_bad_fee_coerced_to_zero(self, fee):
        assert normalize_row(row(1, fee=fee)).fee_usd == 0.0

    def test_unknown_side_dropped(self):
        assert normalize_row(row(1, side="hold")) is None

    def test_missing_timestamp_dropped(self):
        assert normalize_row(row(1, executed_at=None)) is None

    def test_blank_symbol_dropped(self):
        assert normalize_row(row(1, symbol="   ")) is None

    def test_naive_timestamp_becomes_utc(self):
        event = normalize_row(row(1, executed_at=datetime(2024, 1, 1, 9, 30)))
        assert event.executed_at == datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)

    def test_futures_row_keeps_futures_leg(self):
        event = normalize_row(row(1, side="short", market_kind="futures"))

        assert isinstance(event.leg, FuturesLeg)
        assert event.leg.kind == MarketKind.FUTURES
        assert not event.is_spot

    def test_parse_leg_accepts_enums(self):
        assert parse_leg(MarketKind.SPOT, SpotSide.SELL) == SpotLeg(SpotSide.SELL)
        assert parse_leg("spot", "long") is None
        assert parse_leg("margin", "buy") is None


# ============================================================
# STREAM NORMALIZATION
# ============================================================

class TestNormalizeEvents:

    def test_drops_cash_and_futures(self):
        rows = [
            row(1, symbol="CASH"),
            row(2, side="long", market_kind="futures"),
            row(3, symbol="ETH"),
        ]
        events = normalize_events(rows)

        assert [e.id for e in events] == ["r3"]

    def test_sorted_by_time(self):
        rows = [row(3), row(1), row(2)]
        assert [e.id for e in normalize_events(rows)] == ["r1", "r2", "r3"]

    def test_sort_is_stable_on_ties(self):
        rows = [row(5, executed_at=T0), row(2, executed_at=T0), row(9, executed_at=T0)]
        assert [e.id for e in normalize_events(rows)] == ["r5", "r2", "r9"]

    def test_symbol_filter_is_case_insensitive(self):
        rows = [row(1, symbol="BTC"), row(2, symbol="eth"), row(3, symbol="ETH")]
        events = normalize_events(rows, symbol="Eth")

        assert [e.id for e in events] == ["r2", "r3"]

    def test_mixed_naive_and_aware_timestamps_sort(self):
        rows = [
            row(1, executed_at=datetime(2024, 1, 2)),
            row(2, executed_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ]
        assert [e.id for e in normalize_events(rows)] == ["r2", "r1"]


class TestGroupEventsBySymbol:

    def test_groups_preserve_order(self):
        events = normalize_events([row(1, "BTC"), row(2, "ETH"), row(3, "BTC")])
        groups = group_events_by_symbol(events)

        assert list(groups) == ["BTC", "ETH"]
        assert [e.id for e in groups["BTC"]] == ["r1", "r3"]

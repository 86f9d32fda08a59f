"""
Tests for the Portfolio API endpoints.

Tests cover:
- Account header enforcement
- Request validation
- Cash, buy and sell flows
- Portfolio summary and asset detail payloads
- Transaction deletion
- Journal history
- Cached prices refreshed by writes
"""

import logging
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from portfolio_api import ApiSettings, create_app


ACCOUNT = {"X-Account-Id": "acct-1"}
OTHER = {"X-Account-Id": "acct-2"}


# =============================================================
# FIXTURES
# =============================================================

@pytest.fixture
def client():
    settings = ApiSettings(
        database_url="sqlite://",
        price_cache_ttl_seconds=0,
        negative_price_cache_ttl_seconds=0,
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def cached_client():
    """App with the default price cache TTLs."""
    with TestClient(create_app(ApiSettings(database_url="sqlite://"))) as test_client:
        yield test_client


@pytest.fixture
def funded(client):
    """Account with 10,000 USD of cash."""
    response = client.post("/portfolio/cash", json={"amountUsd": 10000}, headers=ACCOUNT)
    assert response.status_code == 200
    return client


def journal(client, symbol, side, quantity, price, fee=0.0, headers=ACCOUNT, **extra):
    body = {
        "symbol": symbol,
        "side": side,
        "quantity": quantity,
        "priceUsd": price,
        "feeUsd": fee,
        **extra,
    }
    response = client.post("/portfolio/transactions", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================
# TEST: Account header
# =============================================================

class TestAccountHeader:

    def test_missing_header_is_unauthorized(self, client):
        assert client.get("/portfolio").status_code == 401

    def test_blank_header_is_unauthorized(self, client):
        response = client.get("/portfolio", headers={"X-Account-Id": "   "})
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"

    def test_root_needs_no_account(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


# =============================================================
# TEST: Validation
# =============================================================

class TestRequestValidation:

    @pytest.mark.parametrize("field,value", [
        ("quantity", 0),
        ("quantity", -1),
        ("priceUsd", 0),
        ("feeUsd", -0.5),
        ("side", "long"),
    ])
    def test_invalid_transaction_rejected(self, client, field, value):
        body = {"symbol": "BTC", "side": "buy", "quantity": 1, "priceUsd": 100, field: value}
        response = client.post("/portfolio/transactions", json=body, headers=ACCOUNT)
        assert response.status_code == 422

    def test_negative_cash_rejected(self, client):
        response = client.post("/portfolio/cash", json={"amountUsd": -1}, headers=ACCOUNT)
        assert response.status_code == 422

    def test_cash_symbol_not_tradable(self, client):
        body = {"symbol": "cash", "side": "buy", "quantity": 1, "priceUsd": 1}
        response = client.post("/portfolio/transactions", json=body, headers=ACCOUNT)
        assert response.status_code == 400

    def test_cash_detail_rejected(self, client):
        assert client.get("/portfolio/CASH", headers=ACCOUNT).status_code == 400


# =============================================================
# TEST: Cash
# =============================================================

class TestCash:

    def test_set_balance_deposits_difference(self, client):
        response = client.post("/portfolio/cash", json={"amountUsd": 500}, headers=ACCOUNT)

        assert response.json() == {"cashUsd": 500, "kind": "deposit", "deltaUsd": 500}

    def test_lower_target_withdraws(self, funded):
        response = funded.post("/portfolio/cash", json={"amountUsd": 2500}, headers=ACCOUNT)
        payload = response.json()

        assert payload["kind"] == "withdraw"
        assert payload["deltaUsd"] == pytest.approx(7500)
        assert funded.get("/portfolio", headers=ACCOUNT).json()["cashUsd"] == pytest.approx(2500)

    def test_same_target_is_noop(self, funded):
        payload = funded.post("/portfolio/cash", json={"amountUsd": 10000}, headers=ACCOUNT).json()

        assert payload["kind"] is None
        assert payload["deltaUsd"] == 0

    def test_cash_is_per_account(self, funded):
        assert funded.get("/portfolio", headers=OTHER).json()["cashUsd"] == 0


# =============================================================
# TEST: Buy and sell
# =============================================================

class TestBuySell:

    def test_buy_spends_cash(self, funded):
        response = funded.post(
            "/portfolio/buy",
            json={"symbol": "btc", "cashToSpend": 1000, "priceUsd": 100, "feeUsd": 1},
            headers=ACCOUNT,
        )

        assert response.status_code == 201
        entry = response.json()
        assert entry["symbol"] == "BTC"
        assert entry["side"] == "buy"
        assert entry["quantity"] == pytest.approx(10)

        portfolio = funded.get("/portfolio", headers=ACCOUNT).json()
        assert portfolio["cashUsd"] == pytest.approx(8999)

    def test_buy_over_balance_rejected(self, funded):
        response = funded.post(
            "/portfolio/buy",
            json={"symbol": "BTC", "cashToSpend": 10000, "priceUsd": 100, "feeUsd": 1},
            headers=ACCOUNT,
        )

        assert response.status_code == 400
        assert funded.get("/portfolio", headers=ACCOUNT).json()["assets"] == []

    def test_sell_credits_net_proceeds(self, funded):
        funded.post(
            "/portfolio/buy",
            json={"symbol": "BTC", "cashToSpend": 1000, "priceUsd": 100},
            headers=ACCOUNT,
        )
        response = funded.post(
            "/portfolio/sell",
            json={"symbol": "BTC", "amountToSell": 4, "priceUsd": 150, "feeUsd": 2},
            headers=ACCOUNT,
        )

        assert response.status_code == 201
        assert response.json()["side"] == "sell"
        assert funded.get("/portfolio", headers=ACCOUNT).json()["cashUsd"] == pytest.approx(9598)

    def test_sell_more_than_held_rejected(self, funded):
        funded.post(
            "/portfolio/buy",
            json={"symbol": "BTC", "cashToSpend": 1000, "priceUsd": 100},
            headers=ACCOUNT,
        )
        response = funded.post(
            "/portfolio/sell",
            json={"symbol": "BTC", "amountToSell": 20, "priceUsd": 100},
            headers=ACCOUNT,
        )

        assert response.status_code == 400
        assert "BTC" in response.json()["detail"]


# =============================================================
# TEST: Portfolio summary
# =============================================================

class TestPortfolioSummary:

    def test_empty_portfolio(self, client):
        payload = client.get("/portfolio", headers=ACCOUNT).json()

        assert payload["currentBalanceUsd"] == 0
        assert payload["totalProfitPct"] == 0
        assert payload["topPerformer"] is None
        assert payload["assets"] == []

    def test_summary_valued_at_last_fill(self, client):
        journal(client, "BTC", "buy", 10, 100, fee=1)
        journal(client, "ETH", "buy", 2, 50)
        journal(client, "ETH", "buy", 2, 60)

        payload = client.get("/portfolio", headers=ACCOUNT).json()
        btc, eth = payload["assets"]

        assert btc["symbol"] == "BTC"
        assert btc["averagePriceUsd"] == pytest.approx(100.1)
        assert btc["unrealizedProfitUsd"] == pytest.approx(-1)
        assert btc["priceSource"] == "db_cache"
        assert btc["priceIsEstimated"] is True

        assert eth["priceUsd"] == pytest.approx(60)
        assert eth["holdingsValueUsd"] == pytest.approx(240)
        assert payload["currentBalanceUsd"] == pytest.approx(1240)
        assert payload["totalValueUsd"] == pytest.approx(1240)
        assert payload["topPerformer"]["symbol"] == "ETH"

    def test_closed_position_counts_realized_only(self, client):
        journal(client, "SOL", "buy", 10, 10)
        journal(client, "SOL", "sell", 10, 12)

        payload = client.get("/portfolio", headers=ACCOUNT).json()

        assert payload["assets"] == []
        assert payload["realizedProfitUsd"] == pytest.approx(20)
        assert payload["totalInvestedUsd"] == 0

    def test_accounts_are_isolated(self, client):
        journal(client, "BTC", "buy", 1, 100)
        assert client.get("/portfolio", headers=OTHER).json()["assets"] == []


# =============================================================
# TEST: Asset detail
# =============================================================

class TestAssetDetail:

    def test_detail_keeps_invested_after_exit(self, client):
        journal(client, "SOL", "buy", 10, 10)
        journal(client, "SOL", "sell", 10, 12)

        payload = client.get("/portfolio/sol", headers=ACCOUNT).json()

        assert payload["symbol"] == "SOL"
        assert payload["quantityHeld"] == 0
        assert payload["metrics"]["totalInvestedUsd"] == pytest.approx(100)
        assert payload["metrics"]["totalProfitPct"] == pytest.approx(20)

    def test_transactions_annotated(self, client):
        journal(client, "BTC", "buy", 10, 100, fee=1)
        journal(client, "BTC", "sell", 4, 150, fee=2)

        payload = client.get("/portfolio/BTC", headers=ACCOUNT).json()
        buy, sell = payload["transactions"]

        assert buy["totalUsd"] == pytest.approx(1001)
        assert buy["gainLossUsd"] is None
        assert sell["totalUsd"] == pytest.approx(598)
        assert sell["gainLossUsd"] == pytest.approx(197.6)
        assert payload["quantityHeld"] == pytest.approx(6)
        assert payload["metrics"]["currentPriceUsd"] == pytest.approx(150)

    def test_never_traded_symbol(self, client):
        payload = client.get("/portfolio/DOGE", headers=ACCOUNT).json()

        assert payload["quantityHeld"] == 0
        assert payload["transactions"] == []
        assert payload["metrics"]["totalProfitPct"] is None
        assert payload["metrics"]["priceSource"] == "avg_entry"


# =============================================================
# TEST: Deletion
# =============================================================

class TestDeleteTransaction:

    def test_delete_own_entry(self, client):
        entry = journal(client, "BTC", "buy", 1, 100)

        response = client.delete(f"/portfolio/transactions/{entry['id']}", headers=ACCOUNT)

        assert response.status_code == 204
        assert client.get("/portfolio/BTC", headers=ACCOUNT).json()["transactions"] == []

    def test_delete_unknown_entry(self, client):
        response = client.delete(f"/portfolio/transactions/{uuid4()}", headers=ACCOUNT)
        assert response.status_code == 404

    def test_delete_other_accounts_entry(self, client):
        entry = journal(client, "BTC", "buy", 1, 100)

        response = client.delete(f"/portfolio/transactions/{entry['id']}", headers=OTHER)

        assert response.status_code == 404
        assert len(client.get("/portfolio/BTC", headers=ACCOUNT).json()["transactions"]) == 1


# =============================================================
# TEST: History
# =============================================================

class TestHistory:

    def test_newest_first_with_cash_effects(self, client):
        journal(client, "BTC", "buy", 2, 100, fee=1, executedAt="2024-01-01T00:00:00Z")
        journal(client, "BTC", "sell", 1, 150, fee=2, executedAt="2024-01-02T00:00:00Z", notes="trim")
        client.post("/portfolio/cash", json={"amountUsd": 500}, headers=ACCOUNT)

        response = client.get("/portfolio/history", headers=ACCOUNT)

        assert response.status_code == 200
        cash, sell, buy = response.json()["items"]
        assert cash["asset"] == "CASH"
        assert cash["kind"] == "cash_in"
        assert cash["cashDeltaUsd"] == pytest.approx(500)
        assert sell["kind"] == "sell"
        assert sell["cashDeltaUsd"] == pytest.approx(148)
        assert sell["note"] == "trim"
        assert buy["kind"] == "buy"
        assert buy["qty"] == pytest.approx(2)
        assert buy["priceUsd"] == pytest.approx(100)
        assert buy["feeUsd"] == pytest.approx(1)
        assert buy["cashDeltaUsd"] == pytest.approx(-201)

    def test_withdrawal_is_cash_out(self, client):
        client.post("/portfolio/cash", json={"amountUsd": 500}, headers=ACCOUNT)
        client.post("/portfolio/cash", json={"amountUsd": 200}, headers=ACCOUNT)

        items = client.get("/portfolio/history", headers=ACCOUNT).json()["items"]
        deltas = {item["kind"]: item["cashDeltaUsd"] for item in items}

        assert deltas == {"cash_in": pytest.approx(500), "cash_out": pytest.approx(-300)}

    @pytest.mark.parametrize("limit,expected", [(2, 2), (0, 1), (-5, 1), (5000, 3)])
    def test_limit_is_clamped(self, client, limit, expected):
        for day in (1, 2, 3):
            journal(client, "ETH", "buy", 1, 10, executedAt=f"2024-01-0{day}T00:00:00Z")

        response = client.get(f"/portfolio/history?limit={limit}", headers=ACCOUNT)

        assert response.status_code == 200
        assert len(response.json()["items"]) == expected

    def test_history_is_per_account(self, client):
        journal(client, "BTC", "buy", 1, 100)

        assert client.get("/portfolio/history", headers=OTHER).json()["items"] == []
        assert client.get("/portfolio/history").status_code == 401


# =============================================================
# TEST: Price cache freshness
# =============================================================

class TestPriceCacheFreshness:

    def test_new_fill_reprices_summary(self, cached_client):
        journal(cached_client, "BTC", "buy", 1, 100)
        assert cached_client.get("/portfolio", headers=ACCOUNT).json()["assets"][0]["priceUsd"] == 100

        journal(cached_client, "BTC", "buy", 1, 200)
        btc = cached_client.get("/portfolio", headers=ACCOUNT).json()["assets"][0]

        assert btc["priceUsd"] == pytest.approx(200)
        assert btc["unrealizedProfitUsd"] == pytest.approx(100)

    def test_lookup_before_first_fill_is_not_remembered(self, cached_client):
        before = cached_client.get("/portfolio/ETH", headers=ACCOUNT).json()
        assert before["metrics"]["priceSource"] == "avg_entry"

        journal(cached_client, "ETH", "buy", 1, 100)
        journal(cached_client, "ETH", "buy", 1, 300)
        metrics = cached_client.get("/portfolio/ETH", headers=ACCOUNT).json()["metrics"]

        assert metrics["currentPriceUsd"] == pytest.approx(300)
        assert metrics["priceSource"] == "db_cache"

    def test_buy_and_sell_reprice(self, cached_client):
        cached_client.post("/portfolio/cash", json={"amountUsd": 10000}, headers=ACCOUNT)
        cached_client.post(
            "/portfolio/buy",
            json={"symbol": "SOL", "cashToSpend": 1000, "priceUsd": 100},
            headers=ACCOUNT,
        )
        assert cached_client.get("/portfolio/SOL", headers=ACCOUNT).json()["metrics"]["currentPriceUsd"] == 100

        cached_client.post(
            "/portfolio/sell",
            json={"symbol": "SOL", "amountToSell": 4, "priceUsd": 150},
            headers=ACCOUNT,
        )
        metrics = cached_client.get("/portfolio/SOL", headers=ACCOUNT).json()["metrics"]

        assert metrics["currentPriceUsd"] == pytest.approx(150)

    def test_delete_reprices(self, cached_client):
        journal(cached_client, "BTC", "buy", 1, 100, executedAt="2024-01-01T00:00:00Z")
        latest = journal(cached_client, "BTC", "buy", 1, 200, executedAt="2024-01-02T00:00:00Z")
        assert cached_client.get("/portfolio/BTC", headers=ACCOUNT).json()["metrics"]["currentPriceUsd"] == 200

        cached_client.delete(f"/portfolio/transactions/{latest['id']}", headers=ACCOUNT)
        metrics = cached_client.get("/portfolio/BTC", headers=ACCOUNT).json()["metrics"]

        assert metrics["currentPriceUsd"] == pytest.approx(100)

    def test_other_accounts_cache_untouched(self, cached_client):
        journal(cached_client, "BTC", "buy", 1, 100, headers=OTHER)
        cached_client.get("/portfolio", headers=OTHER)

        journal(cached_client, "BTC", "buy", 1, 500)

        other = cached_client.get("/portfolio", headers=OTHER).json()["assets"][0]
        assert other["priceUsd"] == pytest.approx(100)


# =============================================================
# TEST: Error logging
# =============================================================

class TestClientErrorLogging:

    def test_rejection_logs_error_context(self, funded, caplog):
        caplog.set_level(logging.INFO, logger="portfolio_api")

        funded.post(
            "/portfolio/buy",
            json={"symbol": "BTC", "cashToSpend": 20000, "priceUsd": 100},
            headers=ACCOUNT,
        )

        messages = [r.getMessage() for r in caplog.records if r.name == "portfolio_api"]
        assert any(
            "InsufficientBalanceError" in m and "'available': 10000" in m for m in messages
        )

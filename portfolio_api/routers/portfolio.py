"""
FastAPI Router for Portfolio Endpoints.

- Portfolio summary and per-asset detail
- Journal history with cash effects
- Journal writes: transactions, buy, sell, cash
- Transaction deletion
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from core.exceptions import (
    DataValidationError,
    InsufficientBalanceError,
    ResourceNotFoundError,
)
from portfolio_api.dependencies import get_account_id, get_portfolio_service
from portfolio_api.errors import client_error, internal_error
from portfolio_api.schemas import (
    AssetDetailResponse,
    BuyRequest,
    CashRequest,
    CashResponse,
    HistoryResponse,
    PortfolioResponse,
    SellRequest,
    TradeEntrySchema,
    TransactionCreate,
)
from portfolio_api.services import HISTORY_DEFAULT_LIMIT, PortfolioService


router = APIRouter(prefix="/portfolio", tags=["Portfolio"])


# =============================================================
# READ ENDPOINTS
# =============================================================

@router.get("", response_model=PortfolioResponse)
def get_portfolio(
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """
    Account-wide summary.

    A fully exited asset stops counting toward invested capital.
    """
    try:
        return service.get_portfolio(account_id)
    except Exception as e:
        raise internal_error("GET /portfolio", e)


@router.get("/history", response_model=HistoryResponse)
def get_history(
    limit: int = Query(HISTORY_DEFAULT_LIMIT),
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Journal entries newest first; limit is clamped to [1, 1000]."""
    try:
        return service.get_history(account_id, limit)
    except Exception as e:
        raise internal_error("GET /portfolio/history", e)


@router.get("/{symbol}", response_model=AssetDetailResponse)
def get_asset_detail(
    symbol: str,
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Single asset metrics and its annotated transaction history."""
    try:
        return service.get_asset_detail(account_id, symbol)
    except DataValidationError as e:
        raise client_error(400, "GET /portfolio/{symbol}", e)
    except Exception as e:
        raise internal_error("GET /portfolio/{symbol}", e)


# =============================================================
# WRITE ENDPOINTS
# =============================================================

@router.post("/transactions", response_model=TradeEntrySchema, status_code=status.HTTP_201_CREATED)
def add_transaction(
    body: TransactionCreate,
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    try:
        return service.add_transaction(account_id, body)
    except DataValidationError as e:
        raise client_error(400, "POST /portfolio/transactions", e)
    except Exception as e:
        raise internal_error("POST /portfolio/transactions", e)


@router.post("/buy", response_model=TradeEntrySchema, status_code=status.HTTP_201_CREATED)
def buy(
    body: BuyRequest,
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Buy with cash; the cash balance must cover cash_to_spend plus fee."""
    try:
        return service.buy(account_id, body)
    except (DataValidationError, InsufficientBalanceError) as e:
        raise client_error(400, "POST /portfolio/buy", e)
    except Exception as e:
        raise internal_error("POST /portfolio/buy", e)


@router.post("/sell", response_model=TradeEntrySchema, status_code=status.HTTP_201_CREATED)
def sell(
    body: SellRequest,
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Sell from a holding; net proceeds are credited to cash."""
    try:
        return service.sell(account_id, body)
    except (DataValidationError, InsufficientBalanceError) as e:
        raise client_error(400, "POST /portfolio/sell", e)
    except Exception as e:
        raise internal_error("POST /portfolio/sell", e)


@router.post("/cash", response_model=CashResponse)
def set_cash(
    body: CashRequest,
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    try:
        return service.set_cash_balance(account_id, body.amount_usd)
    except Exception as e:
        raise internal_error("POST /portfolio/cash", e)


@router.delete("/transactions/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    entry_id: UUID,
    account_id: str = Depends(get_account_id),
    service: PortfolioService = Depends(get_portfolio_service),
):
    try:
        service.delete_transaction(account_id, entry_id)
    except ResourceNotFoundError as e:
        raise client_error(404, "DELETE /portfolio/transactions/{id}", e)
    except Exception as e:
        raise internal_error("DELETE /portfolio/transactions/{id}", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

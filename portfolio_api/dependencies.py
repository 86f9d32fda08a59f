"""
Portfolio API - Dependencies.

FastAPI dependencies for the database session, the calling
account and the per-request price resolver.
"""

from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from position_ledger import CachedPriceResolver, PriceResolver, PriceSource
from portfolio_api.services import ExitStrategyService, PortfolioService
from storage.repositories import TradeEntryRepository


# =============================================================
# HELPER: Database dependency
# =============================================================

def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================
# HELPER: Calling account
# =============================================================

def get_account_id(x_account_id: Optional[str] = Header(default=None)) -> str:
    """Tenant identity from the X-Account-Id header."""
    if x_account_id is None or not x_account_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return x_account_id.strip()


# =============================================================
# HELPER: Price resolver
# =============================================================

def get_price_resolver(
    request: Request,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> PriceResolver:
    """
    Resolve prices from the account's last journaled fill.

    Caches live on app.state and are shared across requests;
    keys are namespaced by account.
    """
    trades = TradeEntryRepository(db)
    return CachedPriceResolver(
        quote_source=lambda symbol: trades.get_last_trade_price(account_id, symbol),
        source=PriceSource.DB_CACHE,
        cache=request.app.state.price_cache,
        negative_cache=request.app.state.negative_price_cache,
        namespace=account_id,
    )


# =============================================================
# HELPER: Services
# =============================================================

def get_portfolio_service(
    db: Session = Depends(get_db),
    price_resolver: PriceResolver = Depends(get_price_resolver),
) -> PortfolioService:
    return PortfolioService(db, price_resolver)


def get_exit_strategy_service(
    db: Session = Depends(get_db),
    price_resolver: PriceResolver = Depends(get_price_resolver),
) -> ExitStrategyService:
    return ExitStrategyService(db, price_resolver)

"""
Storage - Trade Entry Repository.

============================================================
RESPONSIBILITY
============================================================
Stores and retrieves journaled trade entries for an account.

- Appends trade and cash entries
- Replays spot events through the normalizer
- Derives the cash balance from CASH entries
- Serves the last journaled price as a price fallback
- Lists the newest entries for the journal history

============================================================
CASH CONVENTION
============================================================
Cash is journaled as symbol "CASH" at price 1:
- buy  = deposit (quantity USD added)
- sell = withdrawal (quantity USD removed)

============================================================
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from core.clock import now_utc
from position_ledger.normalizer import CASH_SYMBOL, normalize_events, normalize_symbol
from position_ledger.types import MarketKind, RawTradeRow, SpotSide, TradeEvent
from storage.models.portfolio import TradeEntryRecord
from storage.repositories.base import BaseRepository


class TradeEntryRepository(BaseRepository[TradeEntryRecord]):
    """
    Repository for trade journal entries.

    Every query is scoped by account_id; an entry that belongs
    to another account is reported as not found.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, TradeEntryRecord, "TradeEntryRepository")

    # =========================================================
    # WRITES
    # =========================================================

    def create_trade_entry(
        self,
        account_id: str,
        symbol: str,
        side: str,
        quantity: float,
        price_usd: float,
        fee_usd: float = 0.0,
        executed_at: Optional[datetime] = None,
        market_kind: str = MarketKind.SPOT.value,
        notes: Optional[str] = None,
    ) -> TradeEntryRecord:
        """
        Append one entry.

        Args:
            account_id: Owning account
            symbol: Ticker (normalized to upper case) or CASH
            side: buy/sell for spot, long/short for futures
            quantity: Filled quantity
            price_usd: Fill price
            fee_usd: Fee paid
            executed_at: Fill time; defaults to now (UTC)
            market_kind: spot or futures
            notes: Free text

        Returns:
            Created TradeEntryRecord
        """
        entity = TradeEntryRecord(
            account_id=account_id,
            symbol=normalize_symbol(symbol),
            market_kind=str(getattr(market_kind, "value", market_kind)),
            side=str(getattr(side, "value", side)),
            quantity=quantity,
            price_usd=price_usd,
            fee_usd=fee_usd,
            executed_at=executed_at or now_utc(),
            notes=notes,
        )
        return self._add(entity)

    def create_cash_entry(
        self,
        account_id: str,
        amount_usd: float,
        deposit: bool,
        executed_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> TradeEntryRecord:
        """Journal a cash deposit (buy) or withdrawal (sell)."""
        return self.create_trade_entry(
            account_id=account_id,
            symbol=CASH_SYMBOL,
            side=SpotSide.BUY.value if deposit else SpotSide.SELL.value,
            quantity=amount_usd,
            price_usd=1.0,
            executed_at=executed_at,
            notes=notes,
        )

    def delete_entry(self, account_id: str, entry_id: UUID) -> str:
        """
        Delete one entry and return its symbol.

        Raises:
            RecordNotFoundError: If the entry is not this account's
        """
        entity = self.get_entry_or_raise(account_id, entry_id)
        symbol = entity.symbol
        self._delete(entity)
        self._logger.info(f"Deleted trade entry {entry_id} for account {account_id}")
        return symbol

    # =========================================================
    # READS
    # =========================================================

    def get_entry_or_raise(self, account_id: str, entry_id: UUID) -> TradeEntryRecord:
        return self._get_owned(account_id, entry_id)

    def list_entries(
        self,
        account_id: str,
        symbol: Optional[str] = None,
    ) -> List[TradeEntryRecord]:
        """Entries in journal order: executed_at, then creation order."""
        stmt = select(TradeEntryRecord).where(TradeEntryRecord.account_id == account_id)
        if symbol is not None:
            stmt = stmt.where(TradeEntryRecord.symbol == normalize_symbol(symbol))
        stmt = stmt.order_by(TradeEntryRecord.executed_at, TradeEntryRecord.created_at)
        return self._all(stmt)

    def list_spot_events(
        self,
        account_id: str,
        symbol: Optional[str] = None,
    ) -> List[TradeEvent]:
        """
        Normalized spot events for the ledger.

        CASH, futures and malformed rows are dropped by the
        normalizer.
        """
        rows = [
            RawTradeRow(
                id=str(entry.id),
                symbol=entry.symbol,
                side=entry.side,
                quantity=entry.quantity,
                price_usd=entry.price_usd,
                fee_usd=entry.fee_usd,
                executed_at=entry.executed_at,
                market_kind=entry.market_kind,
            )
            for entry in self.list_entries(account_id, symbol)
        ]
        return normalize_events(rows, symbol)

    def list_recent_entries(self, account_id: str, limit: int) -> List[TradeEntryRecord]:
        """Newest entries first, CASH and futures included."""
        stmt = (
            select(TradeEntryRecord)
            .where(TradeEntryRecord.account_id == account_id)
            .order_by(TradeEntryRecord.executed_at.desc(), TradeEntryRecord.created_at.desc())
            .limit(limit)
        )
        return self._all(stmt)

    def get_cash_balance(self, account_id: str) -> float:
        """Sum of CASH deposits minus withdrawals."""
        signed = case(
            (TradeEntryRecord.side == SpotSide.BUY.value, TradeEntryRecord.quantity),
            else_=-TradeEntryRecord.quantity,
        )
        stmt = select(func.coalesce(func.sum(signed), 0.0)).where(
            TradeEntryRecord.account_id == account_id,
            TradeEntryRecord.symbol == CASH_SYMBOL,
        )
        return float(self._one_or_none(stmt) or 0.0)

    def get_last_trade_price(self, account_id: str, symbol: str) -> Optional[float]:
        """Price of the latest journaled entry for symbol, or None."""
        stmt = (
            select(TradeEntryRecord.price_usd)
            .where(
                TradeEntryRecord.account_id == account_id,
                TradeEntryRecord.symbol == normalize_symbol(symbol),
            )
            .order_by(TradeEntryRecord.executed_at.desc(), TradeEntryRecord.created_at.desc())
            .limit(1)
        )
        price = self._one_or_none(stmt)
        return float(price) if price is not None else None

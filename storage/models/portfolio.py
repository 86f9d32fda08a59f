"""
Portfolio Domain ORM Models.

============================================================
PURPOSE
============================================================
Persisted trade journal entries. Positions are never stored;
they are rebuilt from these rows on every read.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: OPERATIONAL (journal)
- Mutability: APPEND + DELETE (entries are never edited)
- Source: Portfolio API
- Consumers: Position ledger, exit strategies

============================================================
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin, money_column, quantity_column


class TradeEntryRecord(Base, TimestampMixin):
    """
    One manually journaled trade or cash movement.

    Cash movements use symbol "CASH" with side buy (deposit)
    or sell (withdrawal) at price 1.
    """

    __tablename__ = "trade_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Entry identifier"
    )

    account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Owning account (tenant)"
    )

    symbol: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Upper-case ticker or CASH"
    )

    market_kind: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="spot",
        comment="Market: spot, futures"
    )

    side: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Side: buy, sell, long, short"
    )

    quantity: Mapped[float] = quantity_column(
        nullable=False,
        comment="Filled quantity"
    )

    price_usd: Mapped[float] = money_column(
        nullable=False,
        comment="Fill price in USD"
    )

    fee_usd: Mapped[float] = money_column(
        nullable=False,
        default=0.0,
        comment="Fee in USD"
    )

    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Execution time (UTC)"
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    __table_args__ = (
        Index("ix_trade_entries_account_symbol_time", "account_id", "symbol", "executed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TradeEntryRecord {self.id} {self.account_id} {self.side} "
            f"{self.quantity} {self.symbol} @ {self.price_usd}>"
        )

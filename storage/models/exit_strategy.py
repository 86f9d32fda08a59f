"""
Exit Strategy ORM Models.

============================================================
PURPOSE
============================================================
Percentage scale-out strategies and the fills recorded
against their steps.

============================================================
MODELS
============================================================
- ExitStrategyRecord: one strategy per (account, coin)
- ExitStrategyExecutionRecord: one fill per (strategy, step)

Execution proceeds and realized profit are computed once at
write time and stored.

============================================================
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base, TimestampMixin, money_column, quantity_column


class ExitStrategyRecord(Base, TimestampMixin):
    """Sell sell_percent of the remaining holding every gain_percent above entry."""

    __tablename__ = "exit_strategies"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    coin_symbol: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    strategy_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="percentage",
    )

    sell_percent: Mapped[float] = money_column(
        nullable=False,
        comment="Percent of remaining quantity sold per step"
    )

    gain_percent: Mapped[float] = money_column(
        nullable=False,
        comment="Price gain above entry between steps"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    executions: Mapped[List["ExitStrategyExecutionRecord"]] = relationship(
        back_populates="strategy",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ExitStrategyExecutionRecord.step_gain_percent",
    )

    __table_args__ = (
        UniqueConstraint("account_id", "coin_symbol", name="uq_exit_strategies_account_coin"),
    )


class ExitStrategyExecutionRecord(Base, TimestampMixin):
    """A fill recorded against one step of a strategy."""

    __tablename__ = "exit_strategy_executions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    exit_strategy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("exit_strategies.id", ondelete="CASCADE"),
        nullable=False,
    )

    step_gain_percent: Mapped[float] = money_column(nullable=False)
    target_price_usd: Mapped[float] = money_column(nullable=False)
    executed_price_usd: Mapped[float] = money_column(nullable=False)
    quantity_sold: Mapped[float] = quantity_column(nullable=False)
    proceeds_usd: Mapped[float] = money_column(nullable=False)
    realized_profit_usd: Mapped[float] = money_column(nullable=False)

    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    strategy: Mapped[ExitStrategyRecord] = relationship(back_populates="executions")

    __table_args__ = (
        UniqueConstraint(
            "exit_strategy_id", "step_gain_percent",
            name="uq_exit_strategy_executions_step",
        ),
    )

"""
Exit Strategy Repository.

============================================================
PURPOSE
============================================================
Persistence for percentage exit strategies and their recorded
executions.

============================================================
CONSTRAINTS
============================================================
- One strategy per (account, coin)
- One execution per (strategy, step gain percent)

Both are checked before insert and enforced by unique
constraints; either way a DuplicateRecordError is raised.

============================================================
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.clock import now_utc
from position_ledger.normalizer import normalize_symbol
from position_ledger.numeric import round_half_up
from position_ledger.types import (
    ExitStrategyConfig,
    ExitStrategyExecution,
    compute_execution_figures,
)
from storage.models.exit_strategy import ExitStrategyExecutionRecord, ExitStrategyRecord
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import DuplicateRecordError


STEP_MATCH_DIGITS = 2


class ExitStrategyRepository(BaseRepository[ExitStrategyRecord]):
    """
    Repository for exit strategies.

    Manages ExitStrategyRecord and its ExitStrategyExecutionRecord
    children. Deleting a strategy deletes its executions.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, ExitStrategyRecord, "ExitStrategyRepository")

    # =========================================================
    # STRATEGIES
    # =========================================================

    def create_strategy(
        self,
        account_id: str,
        coin_symbol: str,
        sell_percent: float,
        gain_percent: float,
        strategy_type: str = "percentage",
        is_active: bool = True,
    ) -> ExitStrategyRecord:
        """
        Raises:
            DuplicateRecordError: If the account already has a
                strategy for this coin
        """
        coin = normalize_symbol(coin_symbol)
        if self.get_for_coin(account_id, coin) is not None:
            raise DuplicateRecordError(
                repository_name=self._repository_name,
                constraint_field="coin_symbol",
                value=coin,
            )

        entity = ExitStrategyRecord(
            account_id=account_id,
            coin_symbol=coin,
            strategy_type=strategy_type,
            sell_percent=sell_percent,
            gain_percent=gain_percent,
            is_active=is_active,
        )
        created = self._add(entity, "coin_symbol", coin)
        self._logger.info(f"Created exit strategy {created.id} for {account_id}/{coin}")
        return created

    def get_for_account(self, account_id: str, strategy_id: UUID) -> ExitStrategyRecord:
        """
        Raises:
            RecordNotFoundError: If the strategy is not this account's
        """
        return self._get_owned(account_id, strategy_id)

    def get_for_coin(self, account_id: str, coin_symbol: str) -> Optional[ExitStrategyRecord]:
        stmt = select(ExitStrategyRecord).where(
            ExitStrategyRecord.account_id == account_id,
            ExitStrategyRecord.coin_symbol == normalize_symbol(coin_symbol),
        )
        return self._one_or_none(stmt)

    def list_for_account(self, account_id: str) -> List[ExitStrategyRecord]:
        """Newest first."""
        stmt = (
            select(ExitStrategyRecord)
            .where(ExitStrategyRecord.account_id == account_id)
            .order_by(ExitStrategyRecord.created_at.desc())
        )
        return self._all(stmt)

    def delete_strategy(self, account_id: str, strategy_id: UUID) -> None:
        self._delete(self.get_for_account(account_id, strategy_id))
        self._logger.info(f"Deleted exit strategy {strategy_id}")

    # =========================================================
    # EXECUTIONS
    # =========================================================

    def record_execution(
        self,
        account_id: str,
        strategy_id: UUID,
        step_gain_percent: float,
        target_price_usd: float,
        executed_price_usd: float,
        quantity_sold: float,
        executed_at: Optional[datetime] = None,
    ) -> ExitStrategyExecutionRecord:
        """
        Record a fill against one step.

        Proceeds and realized profit (against the step target)
        are computed here and stored.

        Raises:
            RecordNotFoundError: Unknown strategy for this account
            DuplicateRecordError: The step already has a fill
        """
        strategy = self.get_for_account(account_id, strategy_id)
        step = round_half_up(step_gain_percent, STEP_MATCH_DIGITS)

        for existing in self.list_executions(strategy.id):
            if round_half_up(existing.step_gain_percent, STEP_MATCH_DIGITS) == step:
                raise DuplicateRecordError(
                    repository_name=self._repository_name,
                    constraint_field="step_gain_percent",
                    value=step,
                )

        proceeds, realized = compute_execution_figures(
            quantity_sold, executed_price_usd, target_price_usd
        )
        entity = ExitStrategyExecutionRecord(
            exit_strategy_id=strategy.id,
            step_gain_percent=step,
            target_price_usd=target_price_usd,
            executed_price_usd=executed_price_usd,
            quantity_sold=quantity_sold,
            proceeds_usd=proceeds,
            realized_profit_usd=realized,
            executed_at=executed_at or now_utc(),
        )
        created = self._add(entity, "step_gain_percent", step)
        self._logger.info(
            f"Recorded execution of step {step}% on strategy {strategy.id}: "
            f"{quantity_sold} @ {executed_price_usd}"
        )
        return created

    def list_executions(self, strategy_id: UUID) -> List[ExitStrategyExecutionRecord]:
        stmt = (
            select(ExitStrategyExecutionRecord)
            .where(ExitStrategyExecutionRecord.exit_strategy_id == strategy_id)
            .order_by(ExitStrategyExecutionRecord.step_gain_percent)
        )
        return self._all(stmt)


# =============================================================
# CONVERSIONS
# =============================================================

def to_strategy_config(record: ExitStrategyRecord) -> ExitStrategyConfig:
    return ExitStrategyConfig(
        coin_symbol=record.coin_symbol,
        sell_percent=float(record.sell_percent),
        gain_percent=float(record.gain_percent),
        is_active=record.is_active,
        strategy_id=str(record.id),
        strategy_type=record.strategy_type,
    )


def to_execution(record: ExitStrategyExecutionRecord) -> ExitStrategyExecution:
    return ExitStrategyExecution(
        step_gain_percent=float(record.step_gain_percent),
        target_price_usd=float(record.target_price_usd),
        executed_price_usd=float(record.executed_price_usd),
        quantity_sold=float(record.quantity_sold),
        proceeds_usd=float(record.proceeds_usd),
        realized_profit_usd=float(record.realized_profit_usd),
        executed_at=record.executed_at,
    )

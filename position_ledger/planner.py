"""
Position Ledger - Scale-Out Planner.

============================================================
PURPOSE
============================================================
Projects a percentage-based exit plan: sell sell_percent of
the remaining quantity every gain_percent of price gain above
the entry price. Recorded executions replace the projection
for the step they were recorded against.

============================================================
STEP FORMULA
============================================================
For i = 1..max_steps:
    gain    = round(gain_percent * i, 2)
    target  = entry * (1 + gain / 100)      (0 when entry is 0)
    qty     = executed qty, or remaining * sell_percent / 100
    price   = executed price, or target
    remaining = max(remaining - qty, 0)
    proceeds  = qty * price
    profit    = qty * (price - entry)

The plan stops as soon as nothing remains.

============================================================
ROUNDING
============================================================
Money 2 dp, quantities 8 dp, prices 8 dp, half-up. Running
values are carried unrounded; only emitted values are rounded.

============================================================
"""

import logging
from typing import Dict, Iterable, List, Optional

from .config import ScaleOutConfig
from .numeric import round_half_up, to_finite_or_zero
from .types import (
    ExitStrategyConfig,
    ExitStrategyExecution,
    ExitStrategyStatus,
    ExitStrategyStepRow,
    ExitStrategySummary,
    PriceQuote,
    ScaleOutPlan,
)


logger = logging.getLogger(__name__)


def clamp_max_steps(max_steps: Optional[int], config: Optional[ScaleOutConfig] = None) -> int:
    """Default when missing, otherwise bound to [1, hard_max_steps]."""
    config = config or ScaleOutConfig()
    if max_steps is None:
        return config.default_max_steps
    return max(1, min(int(max_steps), config.hard_max_steps))


class ScaleOutPlanner:
    """
    Builds scale-out plans and strategy summaries.

    Pure computation: the planner never fails on numeric input.
    Strategy values are validated before they reach it.
    """

    def __init__(self, config: Optional[ScaleOutConfig] = None):
        self._config = config or ScaleOutConfig()

    # --------------------------------------------------------
    # ROUNDING
    # --------------------------------------------------------

    def _money(self, value: float) -> float:
        return round_half_up(value, self._config.money_digits)

    def _qty(self, value: float) -> float:
        return round_half_up(value, self._config.quantity_digits)

    def _price(self, value: float) -> float:
        return round_half_up(value, self._config.price_digits)

    def _step_key(self, gain: float) -> float:
        return round_half_up(gain, self._config.step_match_digits)

    def step_gain(self, gain_percent: float, step: int) -> float:
        return self._step_key(to_finite_or_zero(gain_percent) * step)

    @staticmethod
    def target_price(entry_price_usd: float, gain: float) -> float:
        if entry_price_usd <= 0:
            return 0.0
        return to_finite_or_zero(entry_price_usd * (1 + gain / 100))

    def _index_executions(
        self,
        executions: Iterable[ExitStrategyExecution],
    ) -> Dict[float, ExitStrategyExecution]:
        indexed: Dict[float, ExitStrategyExecution] = {}
        for execution in executions:
            indexed[self._step_key(execution.step_gain_percent)] = execution
        return indexed

    # --------------------------------------------------------
    # PLAN
    # --------------------------------------------------------

    def build_plan(
        self,
        entry_price_usd: float,
        qty_open: float,
        sell_percent: float,
        gain_percent: float,
        max_steps: Optional[int] = None,
        executions: Iterable[ExitStrategyExecution] = (),
    ) -> ScaleOutPlan:
        """
        Project the plan, substituting recorded executions.

        A holding that was never traded (entry 0, qty 0) yields a
        single all-zero row.
        """
        entry = to_finite_or_zero(entry_price_usd)
        remaining = max(to_finite_or_zero(qty_open), 0.0)
        fraction = to_finite_or_zero(sell_percent) / 100
        steps = clamp_max_steps(max_steps, self._config)
        recorded = self._index_executions(executions)

        rows: List[ExitStrategyStepRow] = []
        cumulative = 0.0

        for i in range(1, steps + 1):
            gain = self.step_gain(gain_percent, i)
            target = self.target_price(entry, gain)
            planned = remaining * fraction if remaining > 0 else 0.0

            execution = recorded.get(gain)
            if execution is not None:
                sold = to_finite_or_zero(execution.quantity_sold)
                sell_price = to_finite_or_zero(execution.executed_price_usd)
            else:
                sold = planned
                sell_price = target

            remaining = max(remaining - sold, 0.0)
            proceeds = to_finite_or_zero(sold * sell_price)
            profit = to_finite_or_zero(sold * (sell_price - entry))
            cumulative += profit

            rows.append(
                ExitStrategyStepRow(
                    gain_percent=gain,
                    target_price_usd=self._price(target),
                    planned_qty_to_sell=self._qty(planned),
                    executed_qty_to_sell=self._qty(sold) if execution is not None else None,
                    proceeds_usd=self._money(proceeds),
                    remaining_qty_after=self._qty(remaining),
                    realized_profit_usd=self._money(profit),
                    cumulative_realized_profit_usd=self._money(cumulative),
                    is_executed=execution is not None,
                )
            )

            if remaining <= 0:
                break

        logger.debug(f"Scale-out plan: {len(rows)} step(s), {len(recorded)} executed")
        return ScaleOutPlan(
            entry_price_usd=self._price(entry),
            qty_open=self._qty(max(to_finite_or_zero(qty_open), 0.0)),
            rows=rows,
        )

    # --------------------------------------------------------
    # SUMMARY
    # --------------------------------------------------------

    def next_gain_percent(
        self,
        gain_percent: float,
        executions: Iterable[ExitStrategyExecution] = (),
    ) -> float:
        """First gain multiple with no recorded execution."""
        recorded = self._index_executions(executions)
        for i in range(1, self._config.next_step_scan_limit + 1):
            gain = self.step_gain(gain_percent, i)
            if gain not in recorded:
                return gain
        return self._step_key(to_finite_or_zero(gain_percent))

    def summarize(
        self,
        strategy: ExitStrategyConfig,
        qty_open: float,
        entry_price_usd: float,
        quote: PriceQuote,
        executions: Iterable[ExitStrategyExecution] = (),
    ) -> ExitStrategySummary:
        """
        Headline numbers for the next pending step.

        Status is READY once the current price has reached the
        target, inclusive of equality, and the target is set.
        """
        entry = to_finite_or_zero(entry_price_usd)
        qty = max(to_finite_or_zero(qty_open), 0.0)
        current = to_finite_or_zero(quote.price_usd)

        next_gain = self.next_gain_percent(strategy.gain_percent, executions)
        target = self.target_price(entry, next_gain)
        qty_to_sell = qty * to_finite_or_zero(strategy.sell_percent) / 100
        usd_value = qty_to_sell * target

        distance = 0.0
        if target > 0 and current > 0:
            distance = max((target - current) / current * 100, 0.0)

        if target > 0 and current >= target:
            status = ExitStrategyStatus.READY
        else:
            status = ExitStrategyStatus.PENDING

        return ExitStrategySummary(
            strategy_id=strategy.strategy_id,
            coin_symbol=strategy.coin_symbol,
            strategy_type=strategy.strategy_type,
            sell_percent=strategy.sell_percent,
            gain_percent=strategy.gain_percent,
            is_active=strategy.is_active,
            qty_open=self._qty(qty),
            entry_price_usd=self._price(entry),
            current_price_usd=self._price(current),
            current_price_source=quote.source,
            current_price_is_estimated=quote.is_estimated,
            next_gain_percent=next_gain,
            target_price_usd=self._price(target),
            qty_to_sell=self._qty(qty_to_sell),
            usd_value_to_sell=self._money(usd_value),
            distance_to_target_percent=self._money(distance),
            status=status,
        )

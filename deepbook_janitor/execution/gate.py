"""ProfitabilityGate: skip pools whose rebate would not cover one transaction."""

from __future__ import annotations

from deepbook_janitor.execution.rebate import DEFAULT_REBATE_PER_ORDER_MIST

DEFAULT_GAS_COST_ESTIMATE_MIST = 5_000_000


class ProfitabilityGate:
    def __init__(
        self,
        per_order_estimate: int = DEFAULT_REBATE_PER_ORDER_MIST,
        fixed_cost_estimate: int = DEFAULT_GAS_COST_ESTIMATE_MIST,
    ) -> None:
        self.per_order_estimate = per_order_estimate
        self.fixed_cost_estimate = fixed_cost_estimate

    def expected_rebate(self, order_count: int) -> int:
        return order_count * self.per_order_estimate

    def is_worth_submitting(self, order_count: int) -> bool:
        return self.expected_rebate(order_count) >= self.fixed_cost_estimate

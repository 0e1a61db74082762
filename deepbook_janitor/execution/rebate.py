"""
RebateEstimator: how much storage rebate cleaning a set of orders returns.

Each order contributes its known storage rebate when one was fetched, and a
flat per-order estimate otherwise. All sums are exact integer MIST.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from deepbook_janitor.core.types import Order
from deepbook_janitor.core.utils import mist_to_sui

DEFAULT_REBATE_PER_ORDER_MIST = 2_970_000


@dataclass(frozen=True)
class OrderRebate:
    order_id: int
    rebate_mist: int
    is_estimated: bool


@dataclass(frozen=True)
class RebateEstimate:
    total_orders: int
    total_mist: int
    per_order: List[OrderRebate] = field(default_factory=list)
    is_estimated: bool = False

    @property
    def total_sui(self) -> str:
        return mist_to_sui(self.total_mist)


class RebateEstimator:
    def __init__(self, per_order_estimate: int = DEFAULT_REBATE_PER_ORDER_MIST) -> None:
        if per_order_estimate < 0:
            raise ValueError("per_order_estimate must be >= 0")
        self.per_order_estimate = per_order_estimate

    def estimate(self, orders: Sequence[Order]) -> RebateEstimate:
        per_order: List[OrderRebate] = []
        total = 0
        estimated = False
        for order in orders:
            if order.storage_rebate is not None:
                value, guessed = order.storage_rebate, False
            else:
                value, guessed = self.per_order_estimate, True
            estimated = estimated or guessed
            total += value
            per_order.append(OrderRebate(order.order_id, value, guessed))
        return RebateEstimate(
            total_orders=len(per_order),
            total_mist=total,
            per_order=per_order,
            is_estimated=estimated,
        )

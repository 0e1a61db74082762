"""
CleanupBatchBuilder: partitions expired order ids into submittable batches.

Batches are contiguous slices of the input in its original order, each no
larger than min(requested_max, platform_ceiling). A renderer turns one batch
into a BatchDescriptor:

    vector  one call per batch:  clean_up_expired_orders<B, Q>(pool, vector<u128>)
    scalar  one call per order:  clean_up_expired_order<B, Q>(pool, u128)
"""

from __future__ import annotations

from typing import List, Sequence

from deepbook_janitor.config.config import MAX_COMMANDS_PER_PTB
from deepbook_janitor.core.types import BatchDescriptor, CleanupBatch, MoveCall, PoolConfig
from deepbook_janitor.core.utils import chunked

DEFAULT_GAS_BUDGET = 100_000_000


class VectorRenderer:
    def __init__(self, package: str, module: str = "deepbook", function: str = "clean_up_expired_orders") -> None:
        self.package = package
        self.module = module
        self.function = function

    def render(self, batch: CleanupBatch) -> BatchDescriptor:
        call = MoveCall(
            package=self.package,
            module=self.module,
            function=self.function,
            type_arguments=(batch.base_type, batch.quote_type),
            arguments=(batch.pool_id, list(batch.order_ids)),
        )
        return BatchDescriptor(calls=(call,), gas_budget=batch.gas_budget)


class ScalarRenderer:
    def __init__(self, package: str, module: str = "pool", function: str = "clean_up_expired_order") -> None:
        self.package = package
        self.module = module
        self.function = function

    def render(self, batch: CleanupBatch) -> BatchDescriptor:
        calls = tuple(
            MoveCall(
                package=self.package,
                module=self.module,
                function=self.function,
                type_arguments=(batch.base_type, batch.quote_type),
                arguments=(batch.pool_id, order_id),
            )
            for order_id in batch.order_ids
        )
        return BatchDescriptor(calls=calls, gas_budget=batch.gas_budget)


class CleanupBatchBuilder:
    def __init__(self, renderer=None) -> None:
        self.renderer = renderer

    @staticmethod
    def build(
        pool: PoolConfig,
        order_ids: Sequence[int],
        requested_max: int,
        platform_ceiling: int = MAX_COMMANDS_PER_PTB,
        gas_budget: int = DEFAULT_GAS_BUDGET,
    ) -> List[CleanupBatch]:
        if requested_max < 1:
            raise ValueError(f"requested_max must be >= 1, got {requested_max}")
        if platform_ceiling < 1:
            raise ValueError(f"platform_ceiling must be >= 1, got {platform_ceiling}")
        effective_max = min(requested_max, platform_ceiling)
        return [
            CleanupBatch(
                index=i,
                pool_id=pool.pool_id,
                base_type=pool.base_type,
                quote_type=pool.quote_type,
                order_ids=tuple(group),
                gas_budget=gas_budget,
            )
            for i, group in enumerate(chunked(list(order_ids), effective_max))
        ]

    def render(self, batch: CleanupBatch) -> BatchDescriptor:
        if self.renderer is None:
            raise ValueError("no renderer configured")
        return self.renderer.render(batch)


def renderer_for(call_style: str, package: str, settings=None):
    """Pick the renderer for `call_style`; module/function names come from settings when given."""
    if call_style == "vector":
        if settings is None:
            return VectorRenderer(package)
        return VectorRenderer(package, settings.cleanup_module, settings.cleanup_function)
    if call_style == "scalar":
        if settings is None:
            return ScalarRenderer(package)
        return ScalarRenderer(package, settings.single_cleanup_module, settings.single_cleanup_function)
    raise ValueError(f"unknown call style {call_style!r}")

"""
Execution package.

Rebate estimation, the profitability gate, batch building and submission.
"""

from deepbook_janitor.execution.batch_builder import (
    CleanupBatchBuilder,
    ScalarRenderer,
    VectorRenderer,
    renderer_for,
)
from deepbook_janitor.execution.gate import ProfitabilityGate
from deepbook_janitor.execution.rebate import OrderRebate, RebateEstimate, RebateEstimator
from deepbook_janitor.execution.submitter import BatchResult, BatchSubmitter, PoolLockRegistry, SubmitReport

__all__ = [
    "CleanupBatchBuilder",
    "ScalarRenderer",
    "VectorRenderer",
    "renderer_for",
    "ProfitabilityGate",
    "OrderRebate",
    "RebateEstimate",
    "RebateEstimator",
    "BatchResult",
    "BatchSubmitter",
    "PoolLockRegistry",
    "SubmitReport",
]

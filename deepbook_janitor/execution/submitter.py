"""
BatchSubmitter: signs and submits cleanup batches one after another.

A failing batch is reported and the remaining batches still go out. Nothing
is retried.
Submissions for one pool are serialised by a per-pool asyncio.Lock so that
concurrent pool passes never interleave mutations on the same pool.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from deepbook_janitor.core.context import ScanContext
from deepbook_janitor.core.errors import FetchError, SubmissionError
from deepbook_janitor.core.types import BatchDescriptor, CleanupBatch, ObjectGateway, Signer, SubmitOutcome
from deepbook_janitor.core.utils import mist_to_sui

log = logging.getLogger("janitor")


class PoolLockRegistry:
    def __init__(self) -> None:
        # map pool id -> asyncio.Lock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._guard = asyncio.Lock()

    async def get_lock(self, pool_id: str) -> asyncio.Lock:
        """Return the shared lock for `pool_id`, creating it on first use."""
        async with self._guard:
            lock = self._locks.get(pool_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[pool_id] = lock
            return lock


@dataclass
class BatchResult:
    """Outcome of one submitted batch."""
    index: int
    order_count: int
    success: bool
    digest: Optional[str] = None
    error: Optional[str] = None
    gas_used: int = 0
    storage_rebate: int = 0
    net_profit: int = 0
    received: int = 0

    def to_dict(self) -> dict:
        return {
            "batch": self.index,
            "orders": self.order_count,
            "success": self.success,
            "digest": self.digest,
            **({"error": self.error} if self.error else {}),
            "gas_used": self.gas_used,
            "storage_rebate": self.storage_rebate,
            "net_profit_sui": mist_to_sui(self.net_profit),
            "received": self.received,
        }


@dataclass
class SubmitReport:
    pool: str
    results: List[BatchResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def orders_cleaned(self) -> int:
        return sum(r.order_count for r in self.results if r.success)

    @property
    def storage_rebate(self) -> int:
        return sum(r.storage_rebate for r in self.results if r.success)

    @property
    def net_profit(self) -> int:
        return sum(r.net_profit for r in self.results)


def _default_log(event: str, **data) -> None:
    log.info(json.dumps({"event": event, **data}, default=str))


class BatchSubmitter:
    def __init__(
        self,
        gateway: ObjectGateway,
        signer: Signer,
        render: Callable[[CleanupBatch], BatchDescriptor],
        locks: Optional[PoolLockRegistry] = None,
        log_event: Optional[Callable[..., None]] = None,
    ) -> None:
        self.gateway = gateway
        self.signer = signer
        self.render = render
        self.locks = locks or PoolLockRegistry()
        self._log_event = log_event or _default_log

    async def submit_all(self, pool: str, batches: List[CleanupBatch], ctx: Optional[ScanContext] = None) -> SubmitReport:
        report = SubmitReport(pool=pool)
        if not batches:
            return report
        lock = await self.locks.get_lock(batches[0].pool_id)
        async with lock:
            for batch in batches:
                report.results.append(await self._submit_one(batch, ctx))
        return report

    async def _submit_one(self, batch: CleanupBatch, ctx: Optional[ScanContext]) -> BatchResult:
        try:
            outcome = await self._send(batch)
        except SubmissionError as exc:
            payload = dict(batch=exc.batch_index, orders=len(batch), digest=exc.digest, reason=exc.reason)
            if ctx:
                ctx.error("batch_failed", **payload)
            else:
                log.error(json.dumps({"event": "batch_failed", **payload}))
            return BatchResult(index=batch.index, order_count=len(batch), success=False,
                               digest=exc.digest, error=exc.reason)

        result = BatchResult(
            index=batch.index,
            order_count=len(batch),
            success=True,
            digest=outcome.digest,
            gas_used=outcome.cost.gas_used,
            storage_rebate=outcome.cost.storage_rebate,
            net_profit=outcome.cost.net_profit,
            received=outcome.received_by(self.signer.address),
        )
        if ctx:
            ctx.info("batch_submitted", **result.to_dict())
        else:
            self._log_event("batch_submitted", **result.to_dict())
        return result

    async def _send(self, batch: CleanupBatch) -> SubmitOutcome:
        try:
            descriptor = self.render(batch)
            outcome = await self.gateway.submit(self.signer, descriptor)
        except FetchError as exc:
            raise SubmissionError(batch.index, str(exc)) from exc
        except Exception as exc:
            raise SubmissionError(batch.index, repr(exc)) from exc
        if not outcome.succeeded:
            raise SubmissionError(batch.index, outcome.error or f"status {outcome.status}", outcome.digest)
        return outcome

"""
Pass orchestration: resolve, scan, estimate, gate, build and submit per pool.
Also the read-only report of one account's open orders.

Every component is built once into a JanitorContext at startup and handed to
the pass functions; nothing here reaches for module-level state.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional

from deepbook_janitor.config.config import Settings
from deepbook_janitor.core.context import ScanContext
from deepbook_janitor.core.errors import FetchError, TopologyError
from deepbook_janitor.core.types import ObjectGateway, PoolConfig, Side, Signer
from deepbook_janitor.core.utils import now_ms
from deepbook_janitor.execution.batch_builder import CleanupBatchBuilder, renderer_for
from deepbook_janitor.execution.gate import ProfitabilityGate
from deepbook_janitor.execution.rebate import RebateEstimator
from deepbook_janitor.execution.submitter import BatchSubmitter, PoolLockRegistry, SubmitReport
from deepbook_janitor.monitoring.metrics import JanitorMetrics
from deepbook_janitor.scan.scanner import OrderBookScanner, PoolScanResult, scan_book
from deepbook_janitor.scan.topology import PoolTopologyResolver, parse_pool_type_args
from deepbook_janitor.scan.user_orders import UserOrderReader, UserOrdersResult


@dataclass
class JanitorContext:
    settings: Settings
    gateway: ObjectGateway
    signer: Optional[Signer]
    logger: logging.Logger
    metrics: JanitorMetrics
    locks: PoolLockRegistry = field(default_factory=PoolLockRegistry)

    def __post_init__(self) -> None:
        s = self.settings
        self.resolver = PoolTopologyResolver(self.gateway, page_limit=s.page_limit)
        self.scanner = OrderBookScanner(
            self.gateway,
            page_limit=s.page_limit,
            group_size=s.multi_get_batch,
            fetch_actual_rebate=s.fetch_actual_rebate,
            logger=self.logger,
        )
        self.estimator = RebateEstimator(s.rebate_per_order_mist)
        self.gate = ProfitabilityGate(s.rebate_per_order_mist, s.gas_cost_estimate_mist)
        self.builder = CleanupBatchBuilder(renderer_for(s.call_style, s.package_id, s))
        self.submitter: Optional[BatchSubmitter] = None
        if self.signer is not None:
            self.submitter = BatchSubmitter(self.gateway, self.signer, self.builder.render, self.locks)
        self.user_orders = UserOrderReader(
            self.gateway,
            s.package_id,
            page_limit=s.page_limit,
            group_size=s.multi_get_batch,
            limit=s.user_orders_limit,
            fetch_actual_rebate=s.fetch_actual_rebate,
            logger=self.logger,
        )

    @property
    def dry_run(self) -> bool:
        return self.settings.dry_run or self.submitter is None


@dataclass
class PoolPassResult:
    scan: PoolScanResult
    batches_planned: int = 0
    skipped_reason: Optional[str] = None
    report: Optional[SubmitReport] = None

    def to_dict(self) -> dict:
        out = self.scan.to_dict()
        out["batches_planned"] = self.batches_planned
        if self.skipped_reason:
            out["skipped"] = self.skipped_reason
        if self.report is not None:
            out.update(
                batches_ok=self.report.succeeded,
                batches_failed=self.report.failed,
                orders_cleaned=self.report.orders_cleaned,
                storage_rebate=self.report.storage_rebate,
                net_profit=self.report.net_profit,
            )
        return out


def _with_type_args(pool: PoolConfig, type_tag: Optional[str]) -> PoolConfig:
    if pool.base_type and pool.quote_type:
        return pool
    args = parse_pool_type_args(type_tag)
    if args is None:
        return pool
    return replace(pool, base_type=args[0], quote_type=args[1])


async def process_pool(jctx: JanitorContext, pool: PoolConfig, reference_ms: Optional[int] = None) -> PoolPassResult:
    """One pool, end to end. Any failure ends the pool's pass, never the run."""
    ctx = ScanContext(pool.name, pool_id=pool.pool_id, logger=jctx.logger)
    result = PoolPassResult(scan=PoolScanResult(pool=pool.name, pool_id=pool.pool_id))
    ref = reference_ms if reference_ms is not None else now_ms()
    try:
        await _pool_pass(jctx, pool, ref, ctx, result)
    except Exception as exc:
        result.scan.error = repr(exc)
        jctx.metrics.scan_errors.labels(pool=pool.name, kind="unexpected").inc()
        ctx.error("pool_pass_failed", error=repr(exc))
    ctx.info("pool_pass_complete", **result.to_dict())
    return result


async def _pool_pass(jctx: JanitorContext, pool: PoolConfig, ref: int, ctx: ScanContext, result: PoolPassResult) -> None:
    metrics = jctx.metrics
    scan = result.scan
    started = time.perf_counter()

    try:
        topology = await jctx.resolver.resolve(pool.pool_id, ctx)
    except (TopologyError, FetchError) as exc:
        kind = "topology" if isinstance(exc, TopologyError) else "fetch"
        scan.error = str(exc)
        metrics.scan_errors.labels(pool=pool.name, kind=kind).inc()
        ctx.error("pool_unscannable", kind=kind, error=str(exc))
        return
    finally:
        scan.elapsed_ms = (time.perf_counter() - started) * 1000.0

    if topology is None:
        result.skipped_reason = "no_versioned_payload"
        return
    scan.topology = topology
    pool = _with_type_args(pool, jctx.resolver.root_types.get(pool.pool_id))

    scan.expired = await scan_book(jctx.scanner, topology, ref, ctx=ctx)
    scan.elapsed_ms = (time.perf_counter() - started) * 1000.0
    metrics.pools_scanned.labels(pool=pool.name).inc()
    metrics.scan_latency_ms.labels(pool=pool.name).observe(scan.elapsed_ms)

    for side, collection_id in ((Side.BID, topology.bids_id), (Side.ASK, topology.asks_id)):
        summary = jctx.scanner.summary(collection_id, side)
        seen = summary.orders_seen if summary else 0
        expired = len(summary.orders) if summary else 0
        if side is Side.BID:
            scan.bids_seen = seen
        else:
            scan.asks_seen = seen
        metrics.orders_seen.labels(pool=pool.name, side=side.value).inc(seen)
        metrics.orders_expired.labels(pool=pool.name, side=side.value).inc(expired)

    scan.rebate = jctx.estimator.estimate(scan.expired)
    ctx.info(
        "pool_scanned",
        bids_seen=scan.bids_seen,
        asks_seen=scan.asks_seen,
        expired=len(scan.expired),
        rebate_sui=scan.rebate.total_sui,
        rebate_estimated=scan.rebate.is_estimated,
    )
    if not scan.expired:
        result.skipped_reason = "nothing_expired"
        return

    if not jctx.gate.is_worth_submitting(len(scan.expired)):
        result.skipped_reason = "unprofitable"
        metrics.pools_skipped_unprofitable.labels(pool=pool.name).inc()
        ctx.info("pool_skipped_unprofitable", expired=len(scan.expired),
                 expected_rebate=jctx.gate.expected_rebate(len(scan.expired)),
                 fixed_cost=jctx.gate.fixed_cost_estimate)
        return

    s = jctx.settings
    batches = jctx.builder.build(
        pool,
        [o.order_id for o in scan.expired],
        s.max_orders_per_tx,
        s.platform_ceiling,
        s.gas_budget,
    )
    result.batches_planned = len(batches)

    if not pool.base_type or not pool.quote_type:
        result.skipped_reason = "unknown_type_arguments"
        ctx.error("pool_type_arguments_unknown", root_type=jctx.resolver.root_types.get(pool.pool_id))
        return

    if jctx.dry_run:
        result.skipped_reason = "dry_run"
        for batch in batches:
            ctx.info("batch_planned", batch=batch.index, orders=len(batch),
                     operations=jctx.builder.render(batch).operation_count)
        return

    result.report = await jctx.submitter.submit_all(pool.name, batches, ctx)
    metrics.batches_submitted.labels(pool=pool.name).inc(result.report.succeeded)
    metrics.batches_failed.labels(pool=pool.name).inc(result.report.failed)
    metrics.rebate_claimed_mist.labels(pool=pool.name).inc(result.report.storage_rebate)
    metrics.net_profit_mist.labels(pool=pool.name).set(result.report.net_profit)


async def run_pass(jctx: JanitorContext, pools: List[PoolConfig]) -> List[PoolPassResult]:
    """One pass over `pools`, sequential unless concurrent_pools is set."""
    log = jctx.logger
    log.info(json.dumps({"event": "pass_start", "pools": len(pools), "dry_run": jctx.dry_run}))
    reference_ms = now_ms()
    if jctx.settings.concurrent_pools:
        results = list(await asyncio.gather(*(process_pool(jctx, p, reference_ms) for p in pools)))
    else:
        results = [await process_pool(jctx, p, reference_ms) for p in pools]

    jctx.metrics.passes.inc()
    jctx.metrics.last_pass_timestamp.set(time.time())
    expired = sum(len(r.scan.expired) for r in results)
    failed = sum(r.report.failed for r in results if r.report)
    log.info(json.dumps({
        "event": "pass_complete",
        "pools": len(results),
        "unscannable": sum(1 for r in results if r.scan.error),
        "expired": expired,
        "batches_failed": failed,
        "net_profit": sum(r.report.net_profit for r in results if r.report),
    }))
    return results


async def run_forever(jctx: JanitorContext, pools: List[PoolConfig], stop: asyncio.Event) -> None:
    """Repeat passes every loop_interval_sec until `stop` is set; 0 runs a single pass."""
    interval = jctx.settings.loop_interval_sec
    while not stop.is_set():
        await run_pass(jctx, pools)
        if interval <= 0:
            return
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def report_user_orders(jctx: JanitorContext, pools: List[PoolConfig], owner: str) -> List[UserOrdersResult]:
    """List `owner`'s open orders in each pool and the rebate cancelling them would return."""
    results: List[UserOrdersResult] = []
    for pool in pools:
        ctx = ScanContext(pool.name, pool_id=pool.pool_id, logger=jctx.logger)
        try:
            result = await jctx.user_orders.fetch_open_orders(owner, pool.name, pool.pool_id, ctx)
        except FetchError as exc:
            result = UserOrdersResult(owner=owner, pool=pool.name, pool_id=pool.pool_id, error=str(exc))
            ctx.error("user_orders_failed", owner=owner, error=str(exc))
        result.rebate = jctx.estimator.estimate([u.order for u in result.orders])
        for u in result.orders:
            ctx.debug("user_order", order_id=u.order.order_id, side=u.order.side.value, price=u.order.price,
                      quantity=u.order.quantity, expire=u.order.expire_timestamp)
        ctx.info("user_orders", **result.to_dict())
        results.append(result)

    jctx.logger.info(json.dumps({
        "event": "user_orders_complete",
        "owner": owner,
        "pools": len(results),
        "open_orders": sum(len(r.orders) for r in results),
        "rebate_mist": sum(r.rebate.total_mist for r in results),
    }))
    return results

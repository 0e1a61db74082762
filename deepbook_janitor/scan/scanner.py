"""
OrderBookScanner: enumerates one side of a pool's book and decodes its orders.

A side is a BigVector whose slices are dynamic-field children of the
collection id. The scan is best-effort: a failed page ends enumeration with
what was collected, a failed multi-get group contributes nothing, and an
undecodable item is dropped. None of these abort the pass.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from deepbook_janitor.core.context import ScanContext
from deepbook_janitor.core.errors import FetchError
from deepbook_janitor.core.types import ObjectGateway, Order, PoolTopology, Side
from deepbook_janitor.core.utils import chunked
from deepbook_janitor.config.config import MAX_MULTI_GET
from deepbook_janitor.scan.decoder import WrapperShape, decode_slice

if TYPE_CHECKING:
    from deepbook_janitor.execution.rebate import RebateEstimate


@dataclass
class SideScan:
    """Counters for one side of one pass."""
    side: Side
    slices: int = 0
    orders_seen: int = 0
    orders: List[Order] = field(default_factory=list)
    dropped: int = 0
    failed_groups: int = 0
    truncated: bool = False


class OrderBookScanner:
    def __init__(
        self,
        gateway: ObjectGateway,
        page_limit: int = 50,
        group_size: int = MAX_MULTI_GET,
        fetch_actual_rebate: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if page_limit <= 0 or group_size <= 0:
            raise ValueError("page_limit and group_size must be > 0")
        self.gateway = gateway
        self.page_limit = page_limit
        self.group_size = group_size
        self.fetch_actual_rebate = fetch_actual_rebate
        self.logger = logger or logging.getLogger("janitor")
        self.last_scans: Dict[Tuple[str, Side], SideScan] = {}

    async def drain_collection(self, collection_id: str, ctx: Optional[ScanContext] = None) -> Tuple[List[str], bool]:
        """
        All child object ids of `collection_id` in discovery order, without
        repeats. The flag is True when a page failed and the list is partial.
        """
        ids: List[str] = []
        seen: Set[str] = set()
        seen_cursors: Set[str] = set()
        cursor: Optional[str] = None
        while True:
            try:
                page = await self.gateway.get_children(collection_id, cursor, self.page_limit)
            except FetchError as exc:
                self._warn(ctx, "scan_page_error", collection_id=collection_id, cursor=cursor,
                           collected=len(ids), error=str(exc))
                return ids, True
            for child in page.items:
                if child.object_id and child.object_id not in seen:
                    seen.add(child.object_id)
                    ids.append(child.object_id)
            if not page.has_more or not page.next_cursor:
                return ids, False
            if page.next_cursor in seen_cursors:
                self._warn(ctx, "scan_page_error", collection_id=collection_id, cursor=page.next_cursor,
                           collected=len(ids), error="cursor repeated")
                return ids, True
            seen_cursors.add(page.next_cursor)
            cursor = page.next_cursor

    async def scan_side(
        self,
        collection_id: str,
        side: Side,
        reference_ms: int,
        only_expired: bool = True,
        ctx: Optional[ScanContext] = None,
    ) -> List[Order]:
        result = SideScan(side=side)
        self.last_scans[(collection_id, side)] = result

        slice_ids, result.truncated = await self.drain_collection(collection_id, ctx)
        result.slices = len(slice_ids)

        # one outstanding multi-get per side
        for group_no, group in enumerate(chunked(slice_ids, self.group_size)):
            try:
                objects = await self.gateway.multi_get_objects(group, with_rebate=self.fetch_actual_rebate)
            except FetchError as exc:
                result.failed_groups += 1
                self._warn(ctx, "scan_group_error", side=side.value, group=group_no,
                           size=len(group), error=str(exc))
                continue

            for obj in objects:
                if obj is None:
                    continue
                decoded = decode_slice(obj, side)
                if decoded.shape is WrapperShape.UNRECOGNIZED:
                    self._debug(ctx, "slice_unrecognized", side=side.value, object_id=obj.object_id)
                    continue
                if decoded.dropped:
                    result.dropped += decoded.dropped
                    self._warn(ctx, "order_decode_failed", side=side.value, object_id=obj.object_id,
                               dropped=decoded.dropped, errors=decoded.errors[:3])
                result.orders_seen += len(decoded.orders)
                for order in decoded.orders:
                    if not only_expired or order.is_expired_at(reference_ms):
                        result.orders.append(order)

        self._debug(ctx, "side_scanned", side=side.value, slices=result.slices,
                    orders_seen=result.orders_seen, selected=len(result.orders),
                    dropped=result.dropped, failed_groups=result.failed_groups,
                    truncated=result.truncated)
        return list(result.orders)

    def summary(self, collection_id: str, side: Side) -> Optional[SideScan]:
        return self.last_scans.get((collection_id, side))

    def _warn(self, ctx: Optional[ScanContext], event: str, **data) -> None:
        if ctx:
            ctx.warning(event, **data)
        else:
            self.logger.warning(json.dumps({"event": event, **data}, default=str))

    def _debug(self, ctx: Optional[ScanContext], event: str, **data) -> None:
        if ctx:
            ctx.debug(event, **data)


async def scan_book(
    scanner: OrderBookScanner,
    topology: PoolTopology,
    reference_ms: int,
    only_expired: bool = True,
    ctx: Optional[ScanContext] = None,
) -> List[Order]:
    """Scan both sides concurrently; bids first, then asks, each in discovery order."""
    bid_ctx = ctx.for_side(Side.BID) if ctx else None
    ask_ctx = ctx.for_side(Side.ASK) if ctx else None
    bids, asks = await asyncio.gather(
        scanner.scan_side(topology.bids_id, Side.BID, reference_ms, only_expired, bid_ctx),
        scanner.scan_side(topology.asks_id, Side.ASK, reference_ms, only_expired, ask_ctx),
    )
    return bids + asks


@dataclass
class PoolScanResult:
    pool: str
    pool_id: str
    topology: Optional[PoolTopology] = None
    bids_seen: int = 0
    asks_seen: int = 0
    expired: List[Order] = field(default_factory=list)
    rebate: Optional["RebateEstimate"] = None
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    @property
    def scannable(self) -> bool:
        return self.topology is not None and self.error is None

    def to_dict(self) -> dict:
        return {
            "pool": self.pool,
            "pool_id": self.pool_id,
            "scannable": self.scannable,
            "bids_seen": self.bids_seen,
            "asks_seen": self.asks_seen,
            "expired": len(self.expired),
            **({"rebate_mist": self.rebate.total_mist, "rebate_estimated": self.rebate.is_estimated} if self.rebate else {}),
            "elapsed_ms": round(self.elapsed_ms, 1),
            **({"error": self.error} if self.error else {}),
        }

"""
UserOrderReader: one account's open orders, read through its BalanceManager.

The account's BalanceManager objects are found among its owned objects. The
manager's dynamic fields are fetched in multi-get groups and decoded with the
same order decoder the book scanner uses. Only orders with nothing filled are
reported. Like the book scan this is best-effort: a failed page or group is
logged and skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Set

from deepbook_janitor.config.config import MAX_MULTI_GET
from deepbook_janitor.core.context import ScanContext
from deepbook_janitor.core.errors import DecodeError, FetchError
from deepbook_janitor.core.types import ObjectData, ObjectGateway, Order, OrderStatus, Side, order_status
from deepbook_janitor.core.utils import chunked, to_int
from deepbook_janitor.execution.rebate import RebateEstimate
from deepbook_janitor.scan.decoder import decode_order, unwrap_order


def balance_manager_type(package_id: str) -> str:
    return f"{package_id}::balance_manager::BalanceManager"


def _manager_pool(fields: Dict[str, Any]) -> Optional[str]:
    pool = fields.get("pool_id") or fields.get("poolId")
    if isinstance(pool, dict):
        pool = pool.get("id")
    return pool or None


@dataclass(frozen=True)
class UserOrder:
    order: Order
    filled_quantity: int
    status: OrderStatus


@dataclass
class UserOrdersResult:
    owner: str
    pool: str
    pool_id: str
    balance_manager_id: Optional[str] = None
    orders: List[UserOrder] = field(default_factory=list)
    fields_seen: int = 0
    dropped: int = 0
    truncated: bool = False
    rebate: Optional[RebateEstimate] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "pool": self.pool,
            "pool_id": self.pool_id,
            "balance_manager": self.balance_manager_id,
            "open_orders": len(self.orders),
            "fields_seen": self.fields_seen,
            "dropped": self.dropped,
            "truncated": self.truncated,
            **({"rebate_sui": self.rebate.total_sui, "rebate_estimated": self.rebate.is_estimated} if self.rebate else {}),
            **({"error": self.error} if self.error else {}),
        }


class UserOrderReader:
    def __init__(
        self,
        gateway: ObjectGateway,
        package_id: str,
        page_limit: int = 50,
        group_size: int = MAX_MULTI_GET,
        limit: int = 100,
        fetch_actual_rebate: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if page_limit <= 0 or group_size <= 0 or limit <= 0:
            raise ValueError("page_limit, group_size and limit must be > 0")
        self.gateway = gateway
        self.manager_type = balance_manager_type(package_id)
        self.page_limit = page_limit
        self.group_size = group_size
        self.limit = limit
        self.fetch_actual_rebate = fetch_actual_rebate
        self.logger = logger or logging.getLogger("janitor")

    async def find_balance_manager(self, owner: str, pool_id: str) -> Optional[str]:
        """
        First BalanceManager owned by `owner` that is bound to `pool_id`.

        A manager without a pool field serves every pool, so it matches too.
        Raises FetchError when the owned-object listing fails.
        """
        cursor: Optional[str] = None
        seen_cursors: Set[str] = set()
        while True:
            page = await self.gateway.get_owned_objects(owner, self.manager_type, cursor, self.page_limit)
            for obj in page.items:
                bound = _manager_pool(obj.fields)
                if bound is None or bound == pool_id:
                    return obj.object_id
            if not page.has_more or not page.next_cursor or page.next_cursor in seen_cursors:
                return None
            seen_cursors.add(page.next_cursor)
            cursor = page.next_cursor

    async def fetch_open_orders(
        self,
        owner: str,
        pool: str,
        pool_id: str,
        ctx: Optional[ScanContext] = None,
    ) -> UserOrdersResult:
        result = UserOrdersResult(owner=owner, pool=pool, pool_id=pool_id)
        manager_id = await self.find_balance_manager(owner, pool_id)
        if manager_id is None:
            self._info(ctx, "balance_manager_not_found", owner=owner)
            return result
        result.balance_manager_id = manager_id

        cursor: Optional[str] = None
        seen_cursors: Set[str] = set()
        while len(result.orders) < self.limit:
            try:
                page = await self.gateway.get_children(manager_id, cursor, min(self.page_limit, self.limit))
            except FetchError as exc:
                result.truncated = True
                self._warn(ctx, "user_orders_page_error", balance_manager=manager_id, cursor=cursor, error=str(exc))
                break
            ids = [c.object_id for c in page.items if c.object_id]
            result.fields_seen += len(ids)
            for group in chunked(ids, self.group_size):
                try:
                    objects = await self.gateway.multi_get_objects(group, with_rebate=self.fetch_actual_rebate)
                except FetchError as exc:
                    result.dropped += len(group)
                    self._warn(ctx, "user_orders_group_error", size=len(group), error=str(exc))
                    continue
                for obj in objects:
                    if obj is None:
                        continue
                    user_order = self._decode(obj, result)
                    if user_order is not None and user_order.status is OrderStatus.OPEN:
                        result.orders.append(user_order)
            if not page.has_more or not page.next_cursor or page.next_cursor in seen_cursors:
                break
            seen_cursors.add(page.next_cursor)
            cursor = page.next_cursor

        del result.orders[self.limit:]
        return result

    def _decode(self, obj: ObjectData, result: UserOrdersResult) -> Optional[UserOrder]:
        item = unwrap_order(obj.fields)
        if not item.recognized:
            return None
        payload = item.payload
        side = Side.BID if payload.get("is_bid", payload.get("isBid")) else Side.ASK
        try:
            order = decode_order(payload, side, obj.object_id)
            filled = to_int(payload.get("filled_quantity", payload.get("filledQuantity", 0)))
        except (DecodeError, ValueError):
            result.dropped += 1
            return None
        if obj.storage_rebate is not None:
            order = replace(order, storage_rebate=obj.storage_rebate)
        return UserOrder(order, filled, order_status(order.quantity, filled))

    def _info(self, ctx: Optional[ScanContext], event: str, **data) -> None:
        if ctx:
            ctx.info(event, **data)
        else:
            self.logger.info(json.dumps({"event": event, **data}, default=str))

    def _warn(self, ctx: Optional[ScanContext], event: str, **data) -> None:
        if ctx:
            ctx.warning(event, **data)
        else:
            self.logger.warning(json.dumps({"event": event, **data}, default=str))

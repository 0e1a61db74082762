"""
Tagged decoder for order-book slice objects.

RPC content for a BigVector slice may arrive with or without the generic
`value` / `fields` wrappers, and so may each order element inside it. Only
the shapes listed in WrapperShape are accepted; anything else decodes to
UNRECOGNIZED instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from deepbook_janitor.core.errors import DecodeError
from deepbook_janitor.core.types import ObjectData, Order, Side
from deepbook_janitor.core.utils import to_int

_PRICE_MASK = (1 << 63) - 1


class WrapperShape(Enum):
    DIRECT = "direct"
    FIELDS = "fields"
    VALUE = "value"
    VALUE_FIELDS = "value.fields"
    UNRECOGNIZED = "unrecognized"


SLICE_SHAPES = (WrapperShape.VALUE_FIELDS, WrapperShape.VALUE, WrapperShape.FIELDS, WrapperShape.DIRECT)
ITEM_SHAPES = (WrapperShape.FIELDS, WrapperShape.DIRECT, WrapperShape.VALUE_FIELDS, WrapperShape.VALUE)


@dataclass(frozen=True)
class Unwrapped:
    shape: WrapperShape
    payload: Optional[Dict[str, Any]] = None

    @property
    def recognized(self) -> bool:
        return self.shape is not WrapperShape.UNRECOGNIZED


def _peel(node: Any, shape: WrapperShape) -> Any:
    if not isinstance(node, dict):
        return None
    if shape is WrapperShape.DIRECT:
        return node
    if shape is WrapperShape.FIELDS:
        return node.get("fields")
    if shape is WrapperShape.VALUE:
        return node.get("value")
    if shape is WrapperShape.VALUE_FIELDS:
        value = node.get("value")
        return value.get("fields") if isinstance(value, dict) else None
    return None


def unwrap(node: Any, accept: Callable[[Dict[str, Any]], bool], shapes: Sequence[WrapperShape]) -> Unwrapped:
    """First shape whose payload satisfies `accept`, or UNRECOGNIZED."""
    for shape in shapes:
        candidate = _peel(node, shape)
        if isinstance(candidate, dict) and accept(candidate):
            return Unwrapped(shape, candidate)
    return Unwrapped(WrapperShape.UNRECOGNIZED)


def _slice_values(payload: Dict[str, Any]) -> Optional[List[Any]]:
    for key in ("vals", "values"):
        values = payload.get(key)
        if isinstance(values, list):
            return values
    return None


def _is_slice(payload: Dict[str, Any]) -> bool:
    return _slice_values(payload) is not None


def _is_order(payload: Dict[str, Any]) -> bool:
    order_id = payload.get("order_id")
    return order_id is not None and order_id != ""


def unwrap_order(node: Any) -> Unwrapped:
    return unwrap(node, _is_order, ITEM_SHAPES)


def price_from_order_id(order_id: int) -> int:
    """DeepBook encodes the price in bits 64..126 of the order id."""
    return (order_id >> 64) & _PRICE_MASK


def decode_order(item: Dict[str, Any], side: Side, source_object_id: str) -> Order:
    """Build an Order from an unwrapped order payload. Raises DecodeError."""
    try:
        order_id = to_int(item["order_id"])
        quantity = to_int(item.get("quantity", 0))
        raw_price = item.get("price")
        price = to_int(raw_price) if raw_price not in (None, "") else price_from_order_id(order_id)
        raw_expiry = item.get("expire_timestamp")
        expire_timestamp = to_int(raw_expiry) if raw_expiry not in (None, "") else 0
    except (KeyError, ValueError) as exc:
        raise DecodeError(f"order in {source_object_id}: {exc}") from exc
    if order_id < 0 or quantity < 0 or expire_timestamp < 0:
        raise DecodeError(f"order in {source_object_id}: negative field")
    owner = item.get("owner") or item.get("balance_manager_id") or ""
    return Order(
        order_id=order_id,
        owner=str(owner),
        side=side,
        price=price,
        quantity=quantity,
        expire_timestamp=expire_timestamp,
        source_object_id=source_object_id,
    )


@dataclass
class SliceDecode:
    """Result of decoding one fetched slice object."""
    shape: WrapperShape
    orders: List[Order] = field(default_factory=list)
    dropped: int = 0
    errors: List[str] = field(default_factory=list)


def decode_slice(obj: ObjectData, side: Side) -> SliceDecode:
    # the dynamic-field wrapper is obj.fields; the slice sits under it
    sliced = unwrap(obj.fields, _is_slice, SLICE_SHAPES)
    if not sliced.recognized:
        return SliceDecode(shape=WrapperShape.UNRECOGNIZED)

    result = SliceDecode(shape=sliced.shape)
    for element in _slice_values(sliced.payload) or []:
        item = unwrap_order(element)
        if not item.recognized:
            result.dropped += 1
            continue
        try:
            result.orders.append(decode_order(item.payload, side, obj.object_id))
        except DecodeError as exc:
            result.dropped += 1
            result.errors.append(str(exc))

    if obj.storage_rebate is not None and result.orders:
        result.orders = apportion_rebate(result.orders, obj.storage_rebate)
    return result


def apportion_rebate(orders: List[Order], total: int) -> List[Order]:
    """Split an object's storage rebate evenly; the remainder goes to the first order."""
    share, remainder = divmod(total, len(orders))
    return [
        replace(order, storage_rebate=share + (remainder if i == 0 else 0))
        for i, order in enumerate(orders)
    ]

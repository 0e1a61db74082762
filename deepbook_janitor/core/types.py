"""
Shared value types and the gateway / signer protocols.

Every on-chain quantity (order ids, prices, MIST amounts) is a Python int so
u64 and u128 values survive without loss.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

U64_MAX = (1 << 64) - 1

MIST_PER_SUI = 1_000_000_000
SUI_COIN_TYPE = "0x2::sui::SUI"


class Side(str, Enum):
    BID = "bid"
    ASK = "ask"


def is_expired(expire_timestamp: int, reference_ms: int) -> bool:
    """Zero means "no expiry"; U64_MAX is larger than any real clock reading."""
    return 0 < expire_timestamp < reference_ms


class OrderStatus(str, Enum):
    OPEN = "open"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"


def order_status(quantity: int, filled_quantity: int) -> OrderStatus:
    if filled_quantity == 0:
        return OrderStatus.OPEN
    if filled_quantity < quantity:
        return OrderStatus.PARTIALLY_FILLED
    return OrderStatus.FILLED


@dataclass(frozen=True)
class Order:
    """A read-only snapshot of one resting order."""
    order_id: int
    owner: str
    side: Side
    price: int
    quantity: int
    expire_timestamp: int
    source_object_id: str
    storage_rebate: Optional[int] = None

    def is_expired_at(self, reference_ms: int) -> bool:
        return is_expired(self.expire_timestamp, reference_ms)


@dataclass(frozen=True)
class PoolConfig:
    name: str
    pool_id: str
    base_type: str
    quote_type: str


@dataclass(frozen=True)
class PoolTopology:
    """Identifiers recovered by walking a pool's wrapper chain."""
    pool_id: str
    inner_id: str
    payload_id: str
    bids_id: str
    asks_id: str

    def collection_for(self, side: Side) -> str:
        return self.bids_id if side is Side.BID else self.asks_id


@dataclass(frozen=True)
class ChildRef:
    """One entry of a parent's child enumeration (a Sui dynamic field)."""
    object_id: str
    name_type: str
    name_value: Any


@dataclass(frozen=True)
class Page:
    items: Tuple[ChildRef, ...]
    next_cursor: Optional[str]
    has_more: bool


@dataclass(frozen=True)
class ObjectData:
    """Content of one fetched object. `fields` is the raw Move struct JSON."""
    object_id: str
    type_tag: Optional[str]
    fields: Dict[str, Any]
    storage_rebate: Optional[int] = None


@dataclass(frozen=True)
class ObjectPage:
    """One page of an owner's objects."""
    items: Tuple[ObjectData, ...]
    next_cursor: Optional[str]
    has_more: bool


@dataclass(frozen=True)
class CostBreakdown:
    computation: int = 0
    storage: int = 0
    storage_rebate: int = 0

    @property
    def gas_used(self) -> int:
        return self.computation + self.storage - self.storage_rebate

    @property
    def net_profit(self) -> int:
        return self.storage_rebate - self.gas_used


@dataclass(frozen=True)
class BalanceChange:
    owner: Optional[str]
    coin_type: str
    amount: int


@dataclass
class SubmitOutcome:
    digest: Optional[str]
    status: str
    error: Optional[str] = None
    cost: CostBreakdown = field(default_factory=CostBreakdown)
    balance_changes: List[BalanceChange] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def received_by(self, address: str, coin_type: str = SUI_COIN_TYPE) -> int:
        """Sum of positive balance changes credited to `address`."""
        total = 0
        for change in self.balance_changes:
            if change.owner == address and _same_coin(change.coin_type, coin_type) and change.amount > 0:
                total += change.amount
        return total


def _same_coin(a: str, b: str) -> bool:
    # 0x2::sui::SUI and its zero-padded form name the same type
    def norm(t: str) -> str:
        addr, _, rest = t.partition("::")
        if addr.startswith("0x"):
            addr = "0x" + addr[2:].lstrip("0")
        return f"{addr}::{rest}"
    return norm(a) == norm(b)


@dataclass(frozen=True)
class MoveCall:
    package: str
    module: str
    function: str
    type_arguments: Tuple[str, ...]
    arguments: Tuple[Any, ...]

    @property
    def target(self) -> str:
        return f"{self.package}::{self.module}::{self.function}"


@dataclass(frozen=True)
class BatchDescriptor:
    """A signed-later transaction: ordered move calls plus a gas budget."""
    calls: Tuple[MoveCall, ...]
    gas_budget: int

    @property
    def operation_count(self) -> int:
        return len(self.calls)


@dataclass(frozen=True)
class CleanupBatch:
    index: int
    pool_id: str
    base_type: str
    quote_type: str
    order_ids: Tuple[int, ...]
    gas_budget: int

    def __len__(self) -> int:
        return len(self.order_ids)


class Signer(Protocol):
    @property
    def address(self) -> str: ...

    def sign_transaction(self, tx_bytes_b64: str) -> str: ...


class ObjectGateway(Protocol):
    async def get_object(self, object_id: str, *, with_rebate: bool = False) -> ObjectData: ...

    async def get_children(self, parent_id: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page: ...

    async def multi_get_objects(self, object_ids: Sequence[str], *, with_rebate: bool = False) -> List[Optional[ObjectData]]: ...

    async def get_owned_objects(
        self, owner: str, struct_type: str, cursor: Optional[str] = None, limit: Optional[int] = None
    ) -> ObjectPage: ...

    async def submit(self, signer: Signer, descriptor: BatchDescriptor) -> SubmitOutcome: ...

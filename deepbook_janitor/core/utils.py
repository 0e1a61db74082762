"""
Utility helpers.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Iterator, List, Sequence, TypeVar

from deepbook_janitor.core.types import MIST_PER_SUI

T = TypeVar("T")


def now_ms() -> int:
    return int(time.time() * 1000)


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield contiguous slices of `items`, the last one possibly shorter."""
    if size <= 0:
        raise ValueError("chunk size must be > 0")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def mist_to_sui(mist: int) -> str:
    """Render MIST as SUI with 9 decimals, without going through float."""
    return f"{(Decimal(mist) / MIST_PER_SUI):.9f}"


def to_int(value: Any) -> int:
    """Parse a JSON-RPC integer (u64/u128 arrive as decimal strings)."""
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"not an integer: {value!r}")

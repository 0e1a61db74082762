"""
Scan package.

Pool topology resolution, order-book enumeration, the slice decoder and
per-account order listing.
"""

from deepbook_janitor.scan.decoder import WrapperShape, decode_order, decode_slice, unwrap
from deepbook_janitor.scan.scanner import OrderBookScanner, PoolScanResult, SideScan, scan_book
from deepbook_janitor.scan.topology import PoolTopologyResolver, parse_pool_type_args
from deepbook_janitor.scan.user_orders import UserOrder, UserOrderReader, UserOrdersResult

__all__ = [
    "WrapperShape",
    "decode_order",
    "decode_slice",
    "unwrap",
    "OrderBookScanner",
    "PoolScanResult",
    "SideScan",
    "scan_book",
    "PoolTopologyResolver",
    "parse_pool_type_args",
    "UserOrder",
    "UserOrderReader",
    "UserOrdersResult",
]

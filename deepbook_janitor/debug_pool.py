"""Walk one pool and print its topology and the first orders on each side.

    python -m deepbook_janitor.debug_pool SUI_USDC [--max-items 20]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from deepbook_janitor.config.config import Settings
from deepbook_janitor.config.pools import load_pool_registry
from deepbook_janitor.core.errors import ConfigError, FetchError, TopologyError
from deepbook_janitor.core.types import ObjectGateway, Order, Side
from deepbook_janitor.core.utils import chunked, now_ms
from deepbook_janitor.infra.sui_rpc import SuiRpcGateway
from deepbook_janitor.scan.decoder import decode_slice
from deepbook_janitor.scan.topology import PoolTopologyResolver

DEFAULT_MAX_ITEMS = 20


async def sample_side(gateway: ObjectGateway, collection_id: str, side: Side, max_items: int) -> List[Order]:
    """First `max_items` orders of one side, in discovery order. Stops paging early."""
    orders: List[Order] = []
    cursor: Optional[str] = None
    while len(orders) < max_items:
        page = await gateway.get_children(collection_id, cursor, 50)
        ids = [c.object_id for c in page.items]
        for group in chunked(ids, 50):
            for obj in await gateway.multi_get_objects(group):
                if obj is not None:
                    orders.extend(decode_slice(obj, side).orders)
            if len(orders) >= max_items:
                break
        if not page.has_more or not page.next_cursor:
            break
        cursor = page.next_cursor
    return orders[:max_items]


async def debug_pool(name: str, max_items: int = DEFAULT_MAX_ITEMS) -> int:
    settings = Settings.load()
    registry = load_pool_registry(settings.pools_file)
    if name in registry:
        pool_id = registry[name].pool_id
    elif name.startswith("0x"):
        pool_id = name
    else:
        print(f"Unknown pool {name}. Known: {', '.join(sorted(registry))}")
        return 1

    gateway = SuiRpcGateway(settings.rpc_url, timeout=settings.http_timeout)
    try:
        resolver = PoolTopologyResolver(gateway, page_limit=settings.page_limit)
        topology = await resolver.resolve(pool_id)
        print(f"Pool:      {name} ({pool_id})")
        print(f"Root type: {resolver.root_types.get(pool_id)}")
        if topology is None:
            print("No versioned payload (child '1' missing)")
            return 0
        print(f"Inner:     {topology.inner_id}")
        print(f"Payload:   {topology.payload_id}")
        print(f"Bids:      {topology.bids_id}")
        print(f"Asks:      {topology.asks_id}")

        ref = now_ms()
        for side in (Side.BID, Side.ASK):
            orders = await sample_side(gateway, topology.collection_for(side), side, max_items)
            print(f"\n{side.value}s (first {len(orders)}):")
            for o in orders:
                flag = "EXPIRED" if o.is_expired_at(ref) else ""
                print(f"  {o.order_id}  price={o.price}  qty={o.quantity}  expire={o.expire_timestamp}  {flag}")
    except (TopologyError, FetchError) as exc:
        print(f"Walk failed: {exc}")
        return 1
    finally:
        await gateway.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="deepbook_janitor.debug_pool")
    parser.add_argument("pool", help="registry name or pool object id")
    parser.add_argument("--max-items", type=int, default=DEFAULT_MAX_ITEMS)
    args = parser.parse_args(argv)
    try:
        return asyncio.run(debug_pool(args.pool, args.max_items))
    except ConfigError as exc:
        print(f"Config error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

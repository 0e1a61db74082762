"""
PoolTopologyResolver: walks a DeepBook v3 pool down to its two order collections.

    Pool (root) -> Versioned wrapper -> dynamic field "1" (u64)
        -> value.fields.book -> bids / asks BigVector ids

A pool without the version-1 child has nothing to scan and resolves to None.
Any other structural surprise is a TopologyError for that pool.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from deepbook_janitor.core.context import ScanContext
from deepbook_janitor.core.errors import FetchError, NotFoundError, TopologyError, WrongKindError
from deepbook_janitor.core.types import ChildRef, ObjectData, ObjectGateway, PoolTopology

VERSION_KEY_TYPE = "u64"
VERSION_KEY_VALUE = "1"

_POOL_TYPE_RE = re.compile(r"::pool::Pool<\s*(.+?)\s*,\s*(.+?)\s*>$")


def _path(node: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def parse_pool_type_args(type_tag: Optional[str]) -> Optional[Tuple[str, str]]:
    """`<pkg>::pool::Pool<Base, Quote>` -> (Base, Quote)."""
    if not type_tag:
        return None
    match = _POOL_TYPE_RE.search(type_tag)
    if not match:
        return None
    return match.group(1), match.group(2)


class PoolTopologyResolver:
    def __init__(self, gateway: ObjectGateway, page_limit: Optional[int] = None) -> None:
        self.gateway = gateway
        self.page_limit = page_limit
        # root type tag per pool id, recorded for callers that need type args
        self.root_types: Dict[str, Optional[str]] = {}

    async def resolve(self, pool_id: str, ctx: Optional[ScanContext] = None) -> Optional[PoolTopology]:
        root = await self._fetch(pool_id, pool_id, "root")
        self.root_types[pool_id] = root.type_tag

        inner_id = _path(root.fields, "inner", "fields", "id", "id") or _path(root.fields, "id", "id")
        if not inner_id:
            raise TopologyError(pool_id, "root has neither inner.id nor id")

        version_child = await self._find_version_child(pool_id, inner_id)
        if version_child is None:
            if ctx:
                ctx.warning("pool_version_missing", inner_id=inner_id)
            return None

        payload = await self._fetch(pool_id, version_child.object_id, "version payload")
        book = _path(payload.fields, "value", "fields", "book")
        if not isinstance(book, dict):
            raise TopologyError(pool_id, "version payload has no book")

        bids_id = _path(book, "fields", "bids", "fields", "id", "id")
        asks_id = _path(book, "fields", "asks", "fields", "id", "id")
        if not bids_id or not asks_id:
            raise TopologyError(pool_id, "book is missing bids or asks collection id")

        topology = PoolTopology(
            pool_id=pool_id,
            inner_id=inner_id,
            payload_id=version_child.object_id,
            bids_id=bids_id,
            asks_id=asks_id,
        )
        if ctx:
            ctx.debug("pool_topology_resolved", inner_id=inner_id, bids_id=bids_id, asks_id=asks_id)
        return topology

    async def _fetch(self, pool_id: str, object_id: str, label: str) -> ObjectData:
        try:
            return await self.gateway.get_object(object_id)
        except (NotFoundError, WrongKindError) as exc:
            raise TopologyError(pool_id, f"{label}: {exc}") from exc

    async def _find_version_child(self, pool_id: str, inner_id: str) -> Optional[ChildRef]:
        cursor: Optional[str] = None
        seen_cursors: List[Optional[str]] = []
        while True:
            try:
                page = await self.gateway.get_children(inner_id, cursor, self.page_limit)
            except NotFoundError as exc:
                raise TopologyError(pool_id, f"versioned wrapper: {exc}") from exc
            for child in page.items:
                if child.name_type == VERSION_KEY_TYPE and str(child.name_value) == VERSION_KEY_VALUE:
                    return child
            if not page.has_more or page.next_cursor is None:
                return None
            if page.next_cursor in seen_cursors:
                raise FetchError(f"children of {inner_id}: cursor {page.next_cursor} repeated")
            seen_cursors.append(page.next_cursor)
            cursor = page.next_cursor

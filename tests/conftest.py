"""
Pytest configuration and fixtures.

FakeGateway is an in-memory object store standing in for the Sui RPC node.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

import pytest

from deepbook_janitor.core.errors import FetchError, NotFoundError
from deepbook_janitor.core.types import (
    BatchDescriptor,
    ChildRef,
    CostBreakdown,
    ObjectData,
    ObjectPage,
    Page,
    SubmitOutcome,
)

PAGE = Union[Page, Exception]


@dataclass
class FakeSigner:
    address: str = "0x" + "ab" * 32
    signed: List[str] = field(default_factory=list)

    def sign_transaction(self, tx_bytes_b64: str) -> str:
        self.signed.append(tx_bytes_b64)
        return "sig:" + tx_bytes_b64


class FakeGateway:
    """Objects, paged children and scripted submissions, all in memory."""

    def __init__(self) -> None:
        self.objects: Dict[str, ObjectData] = {}
        # parent id -> pages; cursor "n" addresses pages[n]
        self.children: Dict[str, List[PAGE]] = {}
        # owner -> pages of owned objects, addressed like children
        self.owned: Dict[str, List[Union[ObjectPage, Exception]]] = {}
        self.owned_queries: List[str] = []
        self.fail_multi_get: Set[str] = set()
        self.submit_results: List[Union[SubmitOutcome, Exception]] = []
        self.submitted: List[BatchDescriptor] = []
        self.multi_get_calls: List[List[str]] = []
        self.rebate_requested: List[bool] = []
        self._in_flight = 0
        self.max_in_flight = 0

    def add_object(self, object_id: str, fields: Dict[str, Any], type_tag: str = "", storage_rebate: Optional[int] = None) -> None:
        self.objects[object_id] = ObjectData(object_id, type_tag or None, fields, storage_rebate)

    def set_children(self, parent_id: str, refs: Sequence[ChildRef], page_size: int = 50) -> None:
        pages: List[PAGE] = []
        chunks = [list(refs[i:i + page_size]) for i in range(0, len(refs), page_size)] or [[]]
        for n, chunk in enumerate(chunks):
            more = n < len(chunks) - 1
            pages.append(Page(items=tuple(chunk), next_cursor=str(n + 1) if more else None, has_more=more))
        self.children[parent_id] = pages

    def set_owned(self, owner: str, objects: Sequence[ObjectData], page_size: int = 50) -> None:
        chunks = [tuple(objects[i:i + page_size]) for i in range(0, len(objects), page_size)] or [()]
        self.owned[owner] = [
            ObjectPage(items=chunk, next_cursor=str(n + 1) if n < len(chunks) - 1 else None, has_more=n < len(chunks) - 1)
            for n, chunk in enumerate(chunks)
        ]

    async def get_object(self, object_id: str, *, with_rebate: bool = False) -> ObjectData:
        await asyncio.sleep(0)
        if object_id not in self.objects:
            raise NotFoundError(object_id)
        return self.objects[object_id]

    async def get_children(self, parent_id: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page:
        await asyncio.sleep(0)
        pages = self.children.get(parent_id)
        if pages is None:
            return Page(items=(), next_cursor=None, has_more=False)
        page = pages[int(cursor) if cursor else 0]
        if isinstance(page, Exception):
            raise page
        return page

    async def multi_get_objects(self, object_ids: Sequence[str], *, with_rebate: bool = False) -> List[Optional[ObjectData]]:
        self.multi_get_calls.append(list(object_ids))
        self.rebate_requested.append(with_rebate)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail_multi_get.intersection(object_ids):
                raise FetchError("multi get failed")
            return [self.objects.get(oid) for oid in object_ids]
        finally:
            self._in_flight -= 1

    async def get_owned_objects(self, owner: str, struct_type: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> ObjectPage:
        await asyncio.sleep(0)
        self.owned_queries.append(struct_type)
        pages = self.owned.get(owner)
        if pages is None:
            return ObjectPage(items=(), next_cursor=None, has_more=False)
        page = pages[int(cursor) if cursor else 0]
        if isinstance(page, Exception):
            raise page
        return page

    async def submit(self, signer, descriptor: BatchDescriptor) -> SubmitOutcome:
        await asyncio.sleep(0)
        self.submitted.append(descriptor)
        result = self.submit_results.pop(0) if self.submit_results else ok_outcome(f"digest{len(self.submitted)}")
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        pass


def ok_outcome(digest: str, rebate: int = 6_000_000, computation: int = 1_000_000, storage: int = 2_000_000) -> SubmitOutcome:
    return SubmitOutcome(
        digest=digest,
        status="success",
        cost=CostBreakdown(computation=computation, storage=storage, storage_rebate=rebate),
    )


def order_item(order_id: int, expire: int, quantity: int = 1_000, wrapped: bool = True) -> Dict[str, Any]:
    body = {
        "order_id": str(order_id),
        "balance_manager_id": "0xbm",
        "quantity": str(quantity),
        "expire_timestamp": str(expire),
    }
    return {"type": "order::Order", "fields": body} if wrapped else body


def slice_fields(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Dynamic field wrapping one BigVector slice (the value.fields shape)."""
    return {
        "id": {"id": "0xfield"},
        "name": "0",
        "value": {"type": "big_vector::Slice", "fields": {"keys": [], "vals": items}},
    }


def install_side(gw: FakeGateway, collection_id: str, slices: List[List[Dict[str, Any]]], page_size: int = 50) -> List[str]:
    ids = []
    for n, items in enumerate(slices):
        sid = f"{collection_id}-s{n}"
        gw.add_object(sid, slice_fields(items))
        ids.append(sid)
    gw.set_children(collection_id, [ChildRef(sid, "u64", str(n)) for n, sid in enumerate(ids)], page_size)
    return ids


def install_pool(
    gw: FakeGateway,
    pool_id: str = "0xpool",
    bids: Optional[List[List[Dict[str, Any]]]] = None,
    asks: Optional[List[List[Dict[str, Any]]]] = None,
    type_tag: str = "0xdee::pool::Pool<0x2::sui::SUI, 0xusdc::usdc::USDC>",
) -> None:
    inner, payload = pool_id + "-inner", pool_id + "-v1"
    gw.add_object(pool_id, {"id": {"id": pool_id}, "inner": {"type": "versioned::Versioned", "fields": {"id": {"id": inner}, "version": "1"}}}, type_tag)
    gw.set_children(inner, [ChildRef(payload, "u64", "1")])
    book = {
        "fields": {
            "bids": {"fields": {"id": {"id": pool_id + "-bids"}}},
            "asks": {"fields": {"id": {"id": pool_id + "-asks"}}},
        }
    }
    gw.add_object(payload, {"id": {"id": payload}, "name": "1", "value": {"fields": {"book": book}}})
    install_side(gw, pool_id + "-bids", bids or [])
    install_side(gw, pool_id + "-asks", asks or [])


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


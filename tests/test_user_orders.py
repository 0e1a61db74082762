"""
Tests for UserOrderReader.

Tests cover:
- BalanceManager lookup by owner and pool
- Open-order filtering by filled quantity
- Side, limit and best-effort paging
- Actual vs estimated rebates
"""

import pytest

from conftest import FakeGateway
from deepbook_janitor.core.errors import FetchError
from deepbook_janitor.core.types import ChildRef, ObjectData, OrderStatus, Side
from deepbook_janitor.execution.rebate import RebateEstimator
from deepbook_janitor.scan.user_orders import UserOrderReader, balance_manager_type

PKG = "0xdee"
OWNER = "0x" + "ab" * 32
POOL_ID = "0xpool"


def manager(object_id, pool_id=None):
    fields = {"id": {"id": object_id}, "owner": OWNER}
    if pool_id is not None:
        fields["pool_id"] = pool_id
    return ObjectData(object_id, balance_manager_type(PKG), fields)


def order_field(order_id, filled=0, is_bid=True, expire=1_700_000_000_000):
    return {
        "id": {"id": f"0xf{order_id}"},
        "name": str(order_id),
        "value": {
            "type": "order::Order",
            "fields": {
                "order_id": str(order_id),
                "balance_manager_id": "0xbm",
                "quantity": "1000",
                "filled_quantity": str(filled),
                "is_bid": is_bid,
                "expire_timestamp": str(expire),
            },
        },
    }


def install_orders(gw: FakeGateway, bm_id, fields, page_size=50, rebate=None):
    refs = []
    for f in fields:
        oid = f["id"]["id"]
        gw.add_object(oid, f, storage_rebate=rebate)
        refs.append(ChildRef(oid, "u128", f["name"]))
    gw.set_children(bm_id, refs, page_size)


def make_reader(gw, **kwargs):
    return UserOrderReader(gw, PKG, **kwargs)


class TestFindBalanceManager:
    @pytest.mark.asyncio
    async def test_matches_pool_bound_manager(self, gateway):
        gateway.set_owned(OWNER, [manager("0xother", "0xelsewhere"), manager("0xbm", POOL_ID)])
        assert await make_reader(gateway).find_balance_manager(OWNER, POOL_ID) == "0xbm"
        assert gateway.owned_queries == ["0xdee::balance_manager::BalanceManager"]

    @pytest.mark.asyncio
    async def test_unbound_manager_serves_every_pool(self, gateway):
        gateway.set_owned(OWNER, [manager("0xbm")])
        assert await make_reader(gateway).find_balance_manager(OWNER, POOL_ID) == "0xbm"

    @pytest.mark.asyncio
    async def test_searches_later_pages(self, gateway):
        others = [manager(f"0xo{i}", "0xelsewhere") for i in range(3)]
        gateway.set_owned(OWNER, others + [manager("0xbm", POOL_ID)], page_size=2)
        assert await make_reader(gateway).find_balance_manager(OWNER, POOL_ID) == "0xbm"

    @pytest.mark.asyncio
    async def test_none_when_absent(self, gateway):
        gateway.set_owned(OWNER, [manager("0xother", "0xelsewhere")])
        assert await make_reader(gateway).find_balance_manager(OWNER, POOL_ID) is None


class TestFetchOpenOrders:
    @pytest.mark.asyncio
    async def test_lists_unfilled_orders_only(self, gateway):
        gateway.set_owned(OWNER, [manager("0xbm", POOL_ID)])
        install_orders(gateway, "0xbm", [
            order_field(1),
            order_field(2, filled=400),
            order_field(3, filled=1000),
            order_field(4, is_bid=False),
        ])
        result = await make_reader(gateway).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert result.balance_manager_id == "0xbm"
        assert [u.order.order_id for u in result.orders] == [1, 4]
        assert [u.order.side for u in result.orders] == [Side.BID, Side.ASK]
        assert all(u.status is OrderStatus.OPEN for u in result.orders)
        assert result.fields_seen == 4

    @pytest.mark.asyncio
    async def test_no_manager_yields_empty_result(self, gateway):
        result = await make_reader(gateway).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert result.balance_manager_id is None
        assert result.orders == []
        assert result.to_dict()["open_orders"] == 0

    @pytest.mark.asyncio
    async def test_limit_caps_the_listing(self, gateway):
        gateway.set_owned(OWNER, [manager("0xbm")])
        install_orders(gateway, "0xbm", [order_field(i) for i in range(1, 8)], page_size=3)
        result = await make_reader(gateway, limit=5).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert [u.order.order_id for u in result.orders] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_failed_group_and_page_are_skipped(self, gateway):
        gateway.set_owned(OWNER, [manager("0xbm")])
        install_orders(gateway, "0xbm", [order_field(i) for i in range(1, 5)], page_size=2)
        gateway.fail_multi_get.add("0xf1")
        result = await make_reader(gateway).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert [u.order.order_id for u in result.orders] == [3, 4]
        assert result.dropped == 2

        gateway.fail_multi_get.clear()
        gateway.children["0xbm"][1] = FetchError("page gone")
        result = await make_reader(gateway).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert [u.order.order_id for u in result.orders] == [1, 2]
        assert result.truncated

    @pytest.mark.asyncio
    async def test_non_order_fields_are_ignored(self, gateway):
        gateway.set_owned(OWNER, [manager("0xbm")])
        install_orders(gateway, "0xbm", [order_field(1)])
        gateway.add_object("0xbal", {"id": {"id": "0xbal"}, "name": "SUI", "value": "5000"})
        gateway.set_children("0xbm", [ChildRef("0xf1", "u128", "1"), ChildRef("0xbal", "BalanceKey", "SUI")])
        result = await make_reader(gateway).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert [u.order.order_id for u in result.orders] == [1]
        assert result.dropped == 0

    @pytest.mark.asyncio
    async def test_actual_rebate_replaces_estimate(self, gateway):
        gateway.set_owned(OWNER, [manager("0xbm")])
        install_orders(gateway, "0xbm", [order_field(1), order_field(2)], rebate=1_500_000)
        result = await make_reader(gateway, fetch_actual_rebate=True).fetch_open_orders(OWNER, "SUI_USDC", POOL_ID)
        assert gateway.rebate_requested == [True]
        estimate = RebateEstimator().estimate([u.order for u in result.orders])
        assert estimate.total_mist == 3_000_000
        assert not estimate.is_estimated

    def test_rejects_non_positive_limits(self, gateway):
        with pytest.raises(ValueError):
            make_reader(gateway, limit=0)

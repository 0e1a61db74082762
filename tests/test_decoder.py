"""
Tests for the slice decoder.

Tests cover:
- Recognised wrapper shapes
- Fail-closed behaviour on unknown shapes
- Per-item drops
- Price and owner fallbacks
- Rebate apportioning
"""

import pytest

from deepbook_janitor.core.errors import DecodeError
from deepbook_janitor.core.types import ObjectData, Side
from deepbook_janitor.scan.decoder import (
    ITEM_SHAPES,
    SLICE_SHAPES,
    WrapperShape,
    apportion_rebate,
    decode_order,
    decode_slice,
    price_from_order_id,
    unwrap,
)


def order_body(order_id="7", expire="100"):
    return {"order_id": order_id, "quantity": "10", "expire_timestamp": expire, "balance_manager_id": "0xbm"}


def has_vals(payload):
    return isinstance(payload.get("vals"), list)


class TestUnwrap:
    @pytest.mark.parametrize("node,shape", [
        ({"vals": []}, WrapperShape.DIRECT),
        ({"fields": {"vals": []}}, WrapperShape.FIELDS),
        ({"value": {"vals": []}}, WrapperShape.VALUE),
        ({"value": {"fields": {"vals": []}}}, WrapperShape.VALUE_FIELDS),
    ])
    def test_recognised_shapes(self, node, shape):
        result = unwrap(node, has_vals, SLICE_SHAPES)
        assert result.shape is shape
        assert result.payload == {"vals": []}

    def test_deeper_nesting_is_unrecognized(self):
        node = {"value": {"fields": {"value": {"fields": {"vals": []}}}}}
        result = unwrap(node, has_vals, SLICE_SHAPES)
        assert result.shape is WrapperShape.UNRECOGNIZED
        assert not result.recognized
        assert result.payload is None

    def test_non_dict_is_unrecognized(self):
        assert unwrap(["vals"], has_vals, SLICE_SHAPES).shape is WrapperShape.UNRECOGNIZED
        assert unwrap(None, has_vals, SLICE_SHAPES).shape is WrapperShape.UNRECOGNIZED

    @pytest.mark.parametrize("node,shape", [
        ({"fields": order_body()}, WrapperShape.FIELDS),
        (order_body(), WrapperShape.DIRECT),
        ({"value": {"fields": order_body()}}, WrapperShape.VALUE_FIELDS),
        ({"value": order_body()}, WrapperShape.VALUE),
    ])
    def test_items_accept_the_slice_shapes(self, node, shape):
        result = unwrap(node, lambda p: "order_id" in p, ITEM_SHAPES)
        assert result.shape is shape
        assert result.payload["order_id"] == "7"


class TestDecodeOrder:
    def test_decodes_string_integers(self):
        order = decode_order(order_body(order_id=str(1 << 100), expire="123"), Side.ASK, "0xs")
        assert order.order_id == 1 << 100
        assert order.expire_timestamp == 123
        assert order.quantity == 10
        assert order.side is Side.ASK
        assert order.source_object_id == "0xs"

    def test_price_derived_from_order_id_when_absent(self):
        order_id = (1 << 127) | (42 << 64) | 9
        order = decode_order(order_body(order_id=str(order_id)), Side.BID, "0xs")
        assert order.price == 42
        assert price_from_order_id(order_id) == 42

    def test_explicit_price_wins(self):
        body = dict(order_body(), price="555")
        assert decode_order(body, Side.BID, "0xs").price == 555

    def test_owner_falls_back_to_balance_manager(self):
        assert decode_order(order_body(), Side.BID, "0xs").owner == "0xbm"
        body = dict(order_body(), owner="0xowner")
        assert decode_order(body, Side.BID, "0xs").owner == "0xowner"

    def test_missing_expiry_decodes_as_zero(self):
        body = order_body()
        del body["expire_timestamp"]
        assert decode_order(body, Side.BID, "0xs").expire_timestamp == 0

    @pytest.mark.parametrize("bad", [
        {"order_id": "abc"},
        {"order_id": "1", "quantity": "x"},
        {"order_id": "1", "expire_timestamp": "-5"},
        {"quantity": "1"},
    ])
    def test_bad_items_raise_decode_error(self, bad):
        with pytest.raises(DecodeError):
            decode_order(bad, Side.BID, "0xs")


class TestDecodeSlice:
    def slice_obj(self, vals, rebate=None):
        return ObjectData("0xslice", None, {"value": {"fields": {"vals": vals}}}, rebate)

    def test_value_wrapped_items_decode(self):
        obj = self.slice_obj([{"value": {"fields": order_body("4")}}, {"value": order_body("5")}])
        result = decode_slice(obj, Side.BID)
        assert [o.order_id for o in result.orders] == [4, 5]
        assert result.dropped == 0

    def test_decodes_wrapped_and_bare_items(self):
        obj = self.slice_obj([{"fields": order_body("1")}, order_body("2")])
        result = decode_slice(obj, Side.BID)
        assert result.shape is WrapperShape.VALUE_FIELDS
        assert [o.order_id for o in result.orders] == [1, 2]
        assert result.dropped == 0

    def test_items_without_order_id_are_dropped(self):
        obj = self.slice_obj([{"fields": {"order_id": ""}}, "junk", {"fields": order_body("3")}])
        result = decode_slice(obj, Side.ASK)
        assert [o.order_id for o in result.orders] == [3]
        assert result.dropped == 2

    def test_undecodable_item_records_error(self):
        obj = self.slice_obj([{"fields": {"order_id": "1", "quantity": "nope"}}])
        result = decode_slice(obj, Side.ASK)
        assert result.orders == []
        assert result.dropped == 1
        assert "0xslice" in result.errors[0]

    def test_unrecognized_slice_yields_nothing(self):
        obj = ObjectData("0xother", None, {"balance": "10"})
        result = decode_slice(obj, Side.BID)
        assert result.shape is WrapperShape.UNRECOGNIZED
        assert result.orders == []

    def test_storage_rebate_is_apportioned(self):
        obj = self.slice_obj([order_body("1"), order_body("2"), order_body("3")], rebate=10)
        result = decode_slice(obj, Side.BID)
        assert [o.storage_rebate for o in result.orders] == [4, 3, 3]


def test_apportion_rebate_keeps_total():
    orders = decode_slice(ObjectData("0xs", None, {"vals": [order_body(str(i)) for i in range(7)]}), Side.BID).orders
    shared = apportion_rebate(orders, 1_000_003)
    assert sum(o.storage_rebate for o in shared) == 1_000_003
    assert [o.order_id for o in shared] == [o.order_id for o in orders]

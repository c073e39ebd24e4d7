"""Tests for the global id codec."""
import pytest

from shopsync.services.gid_codec import (
    decode_gid,
    encode_gid,
    gid_resource_type,
    remote_id_or_none,
)


def test_encode_gid():
    assert encode_gid("Product", 123) == "gid://shopify/Product/123"
    assert encode_gid("ProductVariant", "456") == "gid://shopify/ProductVariant/456"


@pytest.mark.parametrize("resource_type,numeric_id", [
    ("Product", 1),
    ("ProductVariant", 44123456789012),
    ("MediaImage", 987654321),
])
def test_decode_inverts_encode(resource_type, numeric_id):
    assert decode_gid(encode_gid(resource_type, numeric_id)) == numeric_id


def test_decode_accepts_bare_tail_and_query_suffix():
    assert decode_gid("gid://shopify/Product/42?v=1") == 42
    assert decode_gid("42") == 42


@pytest.mark.parametrize("gid", [None, "", "gid://shopify/Product/", "gid://shopify/Product/abc"])
def test_malformed_decodes_to_zero(gid):
    assert decode_gid(gid) == 0


def test_remote_id_or_none_never_returns_zero():
    assert remote_id_or_none("gid://shopify/Product/abc") is None
    assert remote_id_or_none(None) is None
    assert remote_id_or_none("gid://shopify/Product/7") == 7


def test_resource_type():
    assert gid_resource_type("gid://shopify/ProductVariant/1") == "ProductVariant"

"""Tests for the product/variant sync orchestrator."""
from decimal import Decimal

import pytest

from shopsync.errors import (
    LocalPreconditionError,
    LocalValidationError,
    RemoteProtocolError,
    RemoteValidationError,
    TransportError,
)
from shopsync.models.product import Product
from shopsync.models.variant import Variant
from shopsync.services import sync_service
from shopsync.services.gid_codec import decode_gid


def _product(db, remote_id=None, variants=(("S", "19.00", None),)):
    product = Product(title="Classic Tee", status="active", remote_id=remote_id)
    for option1, price, variant_remote_id in variants:
        product.variants.append(Variant(
            option1=option1, price=Decimal(price), sku=f"TEE-{option1}",
            inventory_quantity=5, remote_id=variant_remote_id,
        ))
    db.session.add(product)
    db.session.commit()
    return product


PAYLOAD = {
    "title": "Classic Tee",
    "description": "<p>Soft cotton</p>",
    "vendor": "Northwind",
    "status": "active",
    "variants": [{"option1": "S", "price": "19.00", "sku": "TEE-S", "inventory_quantity": 4}],
}


def test_status_mapping_round_trips():
    for status in Product.VALID_STATUSES:
        assert sync_service.map_status_from_remote(sync_service.map_status_to_remote(status)) == status
    assert sync_service.map_status_to_remote("unknown") == "DRAFT"
    assert sync_service.map_status_from_remote("UNLISTED") == "draft"


def test_create_writes_back_remote_ids(db, fake_shopify):
    product = sync_service.create_product(PAYLOAD)

    remote = fake_shopify.products[f"gid://shopify/Product/{product.remote_id}"]
    assert product.remote_id == decode_gid(remote.gid)
    assert product.variants[0].remote_id == decode_gid(remote.variants[0].gid)
    assert remote.status == "ACTIVE"
    assert remote.variants[0].price == Decimal("19.00")
    assert fake_shopify.call_names() == ["product_create", "update_variant_rest", "fetch_product"]


def test_create_multi_variant_maps_every_local_variant(db, fake_shopify):
    payload = dict(PAYLOAD, variants=[
        {"option1": "S", "option2": "Red", "price": "19.00"},
        {"option1": "M", "option2": "Red", "price": "21.00"},
        {"option1": "S", "option2": "Blue", "price": "19.00"},
        {"option1": "M", "option2": "Blue", "price": "21.00"},
    ])
    product = sync_service.create_product(payload)

    remote = fake_shopify.products[f"gid://shopify/Product/{product.remote_id}"]
    by_gid = {decode_gid(v.gid): v for v in remote.variants}
    for variant in product.variants:
        remote_variant = by_gid[variant.remote_id]
        selected = {o.name: o.value for o in remote_variant.selected_options}
        assert selected == {"Size": variant.option1, "Color": variant.option2}
        assert remote_variant.price == variant.price


def test_create_sparse_option_grid_gets_distinct_remote_ids(db, fake_shopify):
    payload = dict(PAYLOAD, variants=[
        {"option1": "S", "option2": "Red", "price": "10.00"},
        {"option1": "M", "option2": "Red", "price": "12.00"},
        {"option1": "L", "option2": "Blue", "price": "15.00"},
    ])
    product = sync_service.create_product(payload)

    remote_ids = [v.remote_id for v in product.variants]
    assert None not in remote_ids
    assert len(set(remote_ids)) == 3

    remote = fake_shopify.products[f"gid://shopify/Product/{product.remote_id}"]
    assert len(remote.variants) == len(product.variants)
    assert sorted((v.title, v.price) for v in remote.variants) == [
        ("L / Blue", Decimal("15.00")),
        ("M / Red", Decimal("12.00")),
        ("S / Red", Decimal("10.00")),
    ]


def test_create_degraded_keeps_product_and_first_variant(db, fake_shopify):
    fake_shopify.fail_on(
        "product_options_create",
        RemoteValidationError([{"field": ["options"], "message": "Too many options"}]),
    )
    payload = dict(PAYLOAD, variants=[
        {"option1": "S", "price": "19.00"},
        {"option1": "M", "price": "21.00"},
    ])
    product = sync_service.create_product(payload)

    assert product.remote_id is not None
    assert product.variants[0].remote_id is not None
    assert product.variants[1].remote_id is None


def test_create_rolls_back_on_remote_failure(db, fake_shopify):
    fake_shopify.fail_on("product_create", TransportError("Shopify returned HTTP 500", 500))

    with pytest.raises(TransportError):
        sync_service.create_product(PAYLOAD)

    assert Product.with_deleted().count() == 0
    assert Variant.query.count() == 0


def test_create_rolls_back_when_a_later_step_fails(db, fake_shopify):
    fake_shopify.fail_on("fetch_product", RemoteProtocolError("No product returned"))

    with pytest.raises(RemoteProtocolError):
        sync_service.create_product(PAYLOAD)

    assert Product.with_deleted().count() == 0
    # the remote product is not cleaned up
    assert len(fake_shopify.products) == 1


def test_validation_happens_before_any_remote_call(db, fake_shopify):
    with pytest.raises(LocalValidationError) as exc:
        sync_service.create_product({"title": "", "status": "sold", "variants": [{"price": "-1"}]})

    assert set(exc.value.field_errors) == {"title", "status", "variants.0.price"}
    assert fake_shopify.calls == []


def test_update_path_uses_stored_remote_id(db, fake_shopify):
    product = _product(db, remote_id=555)

    sync_service.update_product(product, {"title": "Heavy Tee", "status": "archived"})

    name, (product_input,) = fake_shopify.calls[0]
    assert name == "product_update"
    assert product_input["id"] == "gid://shopify/Product/555"
    assert product_input["title"] == "Heavy Tee"
    assert product_input["status"] == "ARCHIVED"
    assert "product_create" not in fake_shopify.call_names()


def test_update_rejects_foreign_variant(db, fake_shopify):
    product = _product(db, remote_id=555)
    other = _product(db, remote_id=556)

    with pytest.raises(LocalValidationError):
        sync_service.update_product(product, {"variants": [{"id": other.variants[0].id, "price": "1.00"}]})
    assert fake_shopify.calls == []


def test_delete_soft_deletes_and_removes_remote(db, fake_shopify):
    product = _product(db, remote_id=555)

    sync_service.delete_product(product)

    assert product.is_deleted
    assert Product.live().count() == 0
    assert fake_shopify.calls == [("product_delete", (555,))]


def test_delete_rolls_back_when_remote_fails(db, fake_shopify):
    product = _product(db, remote_id=555)
    fake_shopify.fail_on("product_delete", TransportError("Shopify returned HTTP 404", 404))

    with pytest.raises(TransportError):
        sync_service.delete_product(product)

    assert db.session.get(Product, product.id).deleted_at is None


def test_export_force_create_replaces_remote_ids(db, fake_shopify):
    product = _product(db, remote_id=555, variants=[("S", "19.00", 777)])

    result = sync_service.export_product(product, force_create=True)

    assert result.remote_id != 555
    assert result.gid == f"gid://shopify/Product/{result.remote_id}"
    assert product.remote_id == result.remote_id
    assert product.variants[0].remote_id not in (None, 777)
    assert result.synced_variants == 1


def test_export_force_create_restores_ids_on_failure(db, fake_shopify):
    product = _product(db, remote_id=555, variants=[("S", "19.00", 777)])
    fake_shopify.fail_on("product_create", TransportError("Request to Shopify failed"))

    with pytest.raises(TransportError):
        sync_service.export_product(product, force_create=True)

    db.session.expire_all()
    restored = db.session.get(Product, product.id)
    assert restored.remote_id == 555
    assert restored.variants[0].remote_id == 777


def test_sync_variant_requires_synced_parent(db, fake_shopify):
    product = _product(db)

    with pytest.raises(LocalPreconditionError):
        sync_service.sync_variant(product.variants[0])
    assert fake_shopify.calls == []


def test_create_variant_on_synced_product(db, fake_shopify):
    product = sync_service.create_product(PAYLOAD)

    variant = sync_service.create_variant(product, {"option1": "M", "price": "21.00", "sku": "TEE-M"})

    name, (variant_input,) = fake_shopify.calls[-1]
    assert name == "product_variant_create"
    assert variant_input["productId"] == f"gid://shopify/Product/{product.remote_id}"
    assert variant_input["options"] == ["M"]
    assert variant.remote_id is not None


def test_create_variant_on_unsynced_product_is_rejected(db, fake_shopify):
    product = _product(db)
    with pytest.raises(LocalPreconditionError):
        sync_service.create_variant(product, {"price": "1.00"})
    assert Variant.query.count() == 1


def test_update_variant_uses_variant_update(db, fake_shopify):
    product = _product(db, remote_id=555, variants=[("S", "19.00", 777)])

    sync_service.update_variant(product.variants[0], {"price": "17.50"})

    name, (variant_input,) = fake_shopify.calls[0]
    assert name == "product_variant_update"
    assert variant_input["id"] == "gid://shopify/ProductVariant/777"
    assert variant_input["price"] == "17.50"


def test_delete_variant_remote_failure_is_not_fatal(db, fake_shopify):
    product = _product(db, remote_id=555, variants=[("S", "19.00", 777), ("M", "21.00", 778)])
    fake_shopify.fail_on("delete_variant_rest", TransportError("Shopify returned HTTP 404", 404))

    sync_service.delete_variant(product.variants[0])

    assert Variant.query.count() == 1


def test_inventory_survives_remote_failure(db, fake_shopify):
    product = _product(db, remote_id=555, variants=[("S", "19.00", 777)])
    variant = product.variants[0]
    fake_shopify.fail_on("product_variant_update", TransportError("Request to Shopify failed"))

    change = sync_service.update_inventory(variant, 12, "add")

    assert (change.old_quantity, change.new_quantity, change.change) == (5, 17, 12)
    assert change.synced is False
    db.session.expire_all()
    assert db.session.get(Variant, variant.id).inventory_quantity == 17


def test_inventory_subtract_floors_at_zero(db, fake_shopify):
    product = _product(db, remote_id=555, variants=[("S", "19.00", 777)])

    change = sync_service.update_inventory(product.variants[0], 9, "subtract")

    assert change.new_quantity == 0
    assert change.change == -5
    assert change.synced is True


def test_inventory_on_unsynced_product_is_local_only(db, fake_shopify):
    product = _product(db)

    change = sync_service.update_inventory(product.variants[0], 2, "set", sync=True)

    assert change.new_quantity == 2
    assert change.synced is False
    assert fake_shopify.calls == []


def test_inventory_rejects_bad_input(db, fake_shopify):
    product = _product(db)
    with pytest.raises(LocalValidationError) as exc:
        sync_service.update_inventory(product.variants[0], -1, "multiply")
    assert set(exc.value.field_errors) == {"inventory_quantity", "operation"}


def test_sync_status(db, fake_shopify):
    _product(db, remote_id=555)
    _product(db)
    deleted = _product(db, remote_id=556)
    deleted.soft_delete()
    db.session.commit()

    status = sync_service.sync_status()

    assert status["total_products"] == 2
    assert status["synced_products"] == 1
    assert status["pending_products"] == 1
    assert status["sync_percentage"] == 50.0
    assert status["status"] == "pending"

"""Product/variant sync orchestration.

Create-vs-update is decided by the presence of a stored remote id. Every
operation that writes locally and calls Shopify runs inside one ``atomic()``
block, so a remote failure rolls back all local writes of that operation.
Shopify itself has no rollback: a remote product created before a later step
failed is left behind.

``sync_product`` and ``sync_variant`` do not commit; they run inside the
caller's transaction.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from shopsync.errors import LocalPreconditionError, LocalValidationError, SyncError
from shopsync.extensions import atomic, db
from shopsync.models.product import Product
from shopsync.models.variant import Variant
from shopsync.services import product_service
from shopsync.services.gid_codec import encode_gid, remote_id_or_none
from shopsync.services.shopify_gateway import get_gateway
from shopsync.services.variant_reconciler import reconcile_variants

logger = logging.getLogger(__name__)

STATUS_TO_REMOTE = {"active": "ACTIVE", "draft": "DRAFT", "archived": "ARCHIVED"}
STATUS_FROM_REMOTE = {remote: local for local, remote in STATUS_TO_REMOTE.items()}
INVENTORY_OPERATIONS = ("set", "add", "subtract")


@dataclass
class ExportResult:
    remote_id: Optional[int]
    gid: str
    synced_variants: int


@dataclass
class InventoryChange:
    old_quantity: int
    new_quantity: int
    change: int
    synced: bool


def map_status_to_remote(status):
    return STATUS_TO_REMOTE.get(status, "DRAFT")


def map_status_from_remote(status):
    return STATUS_FROM_REMOTE.get(status, "draft")


def _product_input(product):
    return {
        "title": product.title,
        "descriptionHtml": product.description,
        "vendor": product.vendor,
        "productType": product.product_type,
        "status": map_status_to_remote(product.status),
    }


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def sync_product(product, gateway=None):
    """Create or update the remote counterpart of ``product``.

    Returns the remote product snapshot. On the create path the decoded remote
    ids of the product and of every matched variant are written back onto the
    local rows (flushed, not committed).
    """
    gateway = gateway or get_gateway()

    if product.remote_id:
        product_input = _product_input(product)
        product_input["id"] = encode_gid("Product", product.remote_id)
        return gateway.product_update(product_input)

    remote = gateway.product_create(_product_input(product))
    product.remote_id = remote_id_or_none(remote.gid)
    logger.info("Created Shopify product %s for product %s", remote.gid, product.id)

    if product.variants:
        outcome = reconcile_variants(gateway, remote, product.variants)
        if outcome.degraded:
            logger.warning(
                "Product %s synced with degraded variants: %s", product.id, outcome.error
            )
        for match in outcome.matches:
            match.local.remote_id = remote_id_or_none(match.remote.gid)
        remote = outcome.product

    db.session.flush()
    return remote


def create_product(data):
    """Create a product (and its variants) locally and on Shopify."""
    cleaned = product_service.validate_product(data)
    variants_data = cleaned.pop("variants", [])
    gateway = get_gateway()

    with atomic():
        product = Product(**cleaned)
        for item in variants_data:
            item.pop("id", None)
            product.variants.append(Variant(**item))
        db.session.add(product)
        db.session.flush()
        sync_product(product, gateway)
    return product


def update_product(product, data):
    cleaned = product_service.validate_product(data, partial=True)
    variants_data = cleaned.pop("variants", None) or []
    gateway = get_gateway()

    with atomic():
        for field, value in cleaned.items():
            setattr(product, field, value)
        for item in variants_data:
            variant_id = item.pop("id", None)
            if variant_id is None:
                product.variants.append(Variant(**item))
                continue
            variant = Variant.query.filter_by(id=variant_id, product_id=product.id).first()
            if variant is None:
                raise LocalValidationError(
                    {"variants.id": f"Variant {variant_id} does not belong to this product."}
                )
            for field, value in item.items():
                setattr(variant, field, value)
        db.session.flush()
        sync_product(product, gateway)
    return product


def delete_product(product):
    """Soft-delete locally, then delete the remote counterpart.

    Remote failure propagates and rolls the soft delete back.
    """
    gateway = get_gateway()
    with atomic():
        remote_id = product.remote_id
        product.soft_delete()
        db.session.flush()
        if remote_id:
            gateway.product_delete(remote_id)
            logger.info("Deleted Shopify product %s (local %s)", remote_id, product.id)


def export_product(product, force_create=False):
    """Push ``product`` to Shopify, optionally forcing a brand new counterpart.

    Forcing clears the stored remote ids and commits that before calling
    Shopify; if the create fails the previous ids are written back.
    """
    gateway = get_gateway()
    saved = None
    if force_create and product.remote_id:
        saved = (product.remote_id, {v.id: v.remote_id for v in product.variants})
        product.remote_id = None
        for variant in product.variants:
            variant.remote_id = None
        db.session.commit()

    try:
        with atomic():
            snapshot = sync_product(product, gateway)
    except Exception:
        if saved:
            _restore_remote_ids(product, saved)
        raise

    return ExportResult(
        remote_id=product.remote_id,
        gid=snapshot.gid,
        synced_variants=len(snapshot.variants),
    )


def _restore_remote_ids(product, saved):
    product_remote_id, variant_remote_ids = saved
    logger.warning(
        "Export of product %s failed, restoring remote id %s", product.id, product_remote_id
    )
    product.remote_id = product_remote_id
    for variant in product.variants:
        if variant.id in variant_remote_ids:
            variant.remote_id = variant_remote_ids[variant.id]
    db.session.commit()


def sync_status():
    total = Product.live().count()
    synced = Product.live().filter(Product.remote_id.isnot(None)).count()
    pending = total - synced
    last_sync_at = db.session.query(db.func.max(Product.updated_at)).scalar()
    return {
        "status": "pending" if pending else "synced",
        "last_sync_at": last_sync_at.isoformat() if last_sync_at else None,
        "total_products": total,
        "synced_products": synced,
        "pending_products": pending,
        "sync_percentage": round(synced / total * 100, 2) if total else 100,
    }


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

def _variant_input(variant):
    variant_input = {
        "sku": variant.sku,
        "price": f"{variant.price:.2f}",
        "inventoryQuantity": variant.inventory_quantity or 0,
    }
    if variant.option_values:
        variant_input["options"] = variant.option_values
    return variant_input


def sync_variant(variant, gateway=None):
    """Create or update a single variant on Shopify.

    The parent product must already be synced. The remote id is written back
    on create (flushed, not committed).
    """
    product = variant.product
    if product is None or not product.remote_id:
        raise LocalPreconditionError("Parent product must be synced to Shopify first.")
    gateway = gateway or get_gateway()

    variant_input = _variant_input(variant)
    if variant.remote_id:
        variant_input["id"] = encode_gid("ProductVariant", variant.remote_id)
        return gateway.product_variant_update(variant_input)

    variant_input["productId"] = encode_gid("Product", product.remote_id)
    remote = gateway.product_variant_create(variant_input)
    variant.remote_id = remote_id_or_none(remote.gid)
    db.session.flush()
    return remote


def create_variant(product, data):
    if not product.remote_id:
        raise LocalPreconditionError(
            "Product must be synced to Shopify before creating variants"
        )
    cleaned = product_service.validate_variant(data)
    cleaned.pop("id", None)
    gateway = get_gateway()

    with atomic():
        variant = Variant(product_id=product.id, **cleaned)
        db.session.add(variant)
        db.session.flush()
        sync_variant(variant, gateway)
    return variant


def update_variant(variant, data):
    cleaned = product_service.validate_variant(data, partial=True)
    cleaned.pop("id", None)
    gateway = get_gateway()

    with atomic():
        for field, value in cleaned.items():
            setattr(variant, field, value)
        db.session.flush()
        sync_variant(variant, gateway)
    return variant


def delete_variant(variant):
    """Delete locally; the remote delete is best-effort."""
    remote_id = variant.remote_id
    gateway = get_gateway()
    with atomic():
        db.session.delete(variant)
        if remote_id:
            try:
                gateway.delete_variant_rest(remote_id)
            except SyncError as e:
                logger.warning("Failed to delete Shopify variant %s: %s", remote_id, e.message)


def update_inventory(variant, quantity, operation="set", sync=True):
    """Adjust stock locally; the Shopify push never fails the local write."""
    errors = {}
    quantity = product_service.parse_quantity(quantity)
    if quantity is None:
        errors["inventory_quantity"] = "The inventory quantity must be an integer of at least 0."
    if operation not in INVENTORY_OPERATIONS:
        errors["operation"] = "The operation must be one of: set, add, subtract."
    if errors:
        raise LocalValidationError(errors)

    old_quantity = variant.inventory_quantity or 0
    if operation == "set":
        new_quantity = quantity
    elif operation == "add":
        new_quantity = old_quantity + quantity
    else:
        new_quantity = max(0, old_quantity - quantity)

    variant.inventory_quantity = new_quantity
    db.session.commit()

    synced = False
    if sync:
        try:
            sync_variant(variant)
            db.session.commit()
            synced = True
        except SyncError as e:
            db.session.rollback()
            logger.warning(
                "Failed to sync inventory for variant %s to Shopify: %s", variant.id, e.message
            )

    return InventoryChange(
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        change=new_quantity - old_quantity,
        synced=synced,
    )

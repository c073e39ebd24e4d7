"""Pull one page of the Shopify catalogue into local rows.

Matching is by decoded remote id only and the remote side wins for every
field it carries. Soft-deleted local rows are restored when they reappear.
Local images missing from the remote page are never deleted.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shopsync.errors import LocalValidationError
from shopsync.extensions import atomic, db
from shopsync.models.image import ProductImage
from shopsync.models.product import Product
from shopsync.models.variant import Variant
from shopsync.services.gid_codec import remote_id_or_none
from shopsync.services.shopify_gateway import get_gateway
from shopsync.services.sync_service import map_status_from_remote

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 250


@dataclass
class ImportResult:
    imported: int
    updated: int
    total: int
    has_next_page: bool
    end_cursor: Optional[str] = None

    def to_dict(self):
        return {
            "imported": self.imported,
            "updated": self.updated,
            "total": self.total,
            "has_next_page": self.has_next_page,
            "end_cursor": self.end_cursor,
        }


def import_products(first=50, cursor=None):
    if isinstance(first, bool) or not isinstance(first, int) or not 1 <= first <= MAX_PAGE_SIZE:
        raise LocalValidationError({"first": f"The first field must be between 1 and {MAX_PAGE_SIZE}."})

    page = get_gateway().products_page(first=first, cursor=cursor)
    imported = updated = 0

    with atomic():
        for remote in page.products:
            remote_id = remote_id_or_none(remote.gid)
            if remote_id is None:
                logger.warning("Skipping remote product with unusable id %r", remote.gid)
                continue
            product = Product.with_deleted().filter_by(remote_id=remote_id).first()
            if product is None:
                _create_local(remote, remote_id)
                imported += 1
            else:
                _update_local(product, remote)
                updated += 1

    logger.info(
        "Imported page of %d Shopify products (%d new, %d updated, more=%s)",
        len(page.products), imported, updated, page.has_next_page,
    )
    return ImportResult(
        imported=imported,
        updated=updated,
        total=len(page.products),
        has_next_page=page.has_next_page,
        end_cursor=page.end_cursor,
    )


def _option_fields(remote_variant):
    values = [
        opt.value
        for opt in remote_variant.selected_options
        if opt.name != "Title" and opt.value
    ]
    return {
        key: values[index] if index < len(values) else None
        for index, key in enumerate(Variant.OPTION_KEYS)
    }


def _create_local(remote, remote_id):
    product = Product(
        remote_id=remote_id,
        title=remote.title or "Untitled",
        description=remote.description,
        vendor=remote.vendor,
        product_type=remote.product_type,
        status=map_status_from_remote(remote.status),
    )
    for remote_variant in remote.variants:
        product.variants.append(_new_variant(remote_variant))
    db.session.add(product)
    db.session.flush()
    _add_missing_images(product, remote)
    return product


def _new_variant(remote_variant):
    return Variant(
        remote_id=remote_id_or_none(remote_variant.gid),
        price=remote_variant.price if remote_variant.price is not None else Decimal("0.00"),
        sku=remote_variant.sku,
        inventory_quantity=remote_variant.inventory_quantity or 0,
        **_option_fields(remote_variant),
    )


def _update_local(product, remote):
    product.title = remote.title or product.title
    product.description = remote.description if remote.description is not None else product.description
    product.vendor = remote.vendor if remote.vendor is not None else product.vendor
    product.product_type = (
        remote.product_type if remote.product_type is not None else product.product_type
    )
    if remote.status:
        product.status = map_status_from_remote(remote.status)
    product.restore()

    existing = {v.remote_id: v for v in product.variants if v.remote_id}
    for remote_variant in remote.variants:
        variant = existing.get(remote_id_or_none(remote_variant.gid))
        if variant is None:
            product.variants.append(_new_variant(remote_variant))
            continue
        if remote_variant.price is not None:
            variant.price = remote_variant.price
        if remote_variant.sku is not None:
            variant.sku = remote_variant.sku
        if remote_variant.inventory_quantity is not None:
            variant.inventory_quantity = remote_variant.inventory_quantity
        for key, value in _option_fields(remote_variant).items():
            if value is not None:
                setattr(variant, key, value)

    db.session.flush()
    _add_missing_images(product, remote)


def _add_missing_images(product, remote):
    known = {
        media_id
        for (media_id,) in db.session.query(ProductImage.remote_media_id).filter(
            ProductImage.product_id == product.id,
            ProductImage.remote_media_id.isnot(None),
        )
    }
    for remote_image in remote.images:
        media_id = remote_id_or_none(remote_image.gid)
        if media_id is None or media_id in known or not remote_image.url:
            continue
        db.session.add(
            ProductImage(product_id=product.id, remote_media_id=media_id, path=remote_image.url)
        )
        known.add(media_id)

"""JSON API over the sync services. No authentication."""
import logging

from flask import abort, jsonify, request
from werkzeug.exceptions import HTTPException

from shopsync.blueprints.api import api_bp
from shopsync.errors import LocalValidationError, SyncError
from shopsync.models.image import ProductImage
from shopsync.models.variant import Variant
from shopsync.services import (
    bulk_service,
    image_service,
    import_service,
    product_service,
    sync_service,
)
from shopsync.services.shopify_gateway import get_gateway

logger = logging.getLogger(__name__)


def _ok(data=None, message=None, status=200, **extra):
    payload = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return jsonify(payload), status


def _body():
    return request.get_json(silent=True) or {}


def _product_or_404(product_id):
    product = product_service.get_product(product_id)
    if product is None:
        abort(404, description="Product not found")
    return product


def _variant_or_404(product, variant_id):
    variant = Variant.query.filter_by(id=variant_id, product_id=product.id).first()
    if variant is None:
        abort(404, description="Variant not found")
    return variant


def _image_or_404(product, image_id):
    image = ProductImage.query.filter_by(id=image_id, product_id=product.id).first()
    if image is None:
        abort(404, description="Image not found")
    return image


def _parse_bool(value):
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


@api_bp.errorhandler(SyncError)
def handle_sync_error(e):
    if e.http_status >= 500:
        logger.error("%s on %s %s: %s", type(e).__name__, request.method, request.path, e.message)
    else:
        logger.info("%s on %s %s: %s", type(e).__name__, request.method, request.path, e.message)
    return jsonify(e.to_dict()), e.http_status


@api_bp.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return jsonify({"success": False, "message": e.description}), e.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"success": False, "message": "Internal server error"}), 500


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@api_bp.route("/products")
@api_bp.route("/products/search")
def list_products():
    pagination = product_service.search_products(
        q=request.args.get("q"),
        status=request.args.get("status"),
        vendor=request.args.get("vendor"),
        product_type=request.args.get("product_type"),
        min_price=request.args.get("min_price", type=float),
        max_price=request.args.get("max_price", type=float),
        synced=_parse_bool(request.args.get("synced")),
        sort=request.args.get("sort", "created_at"),
        order=request.args.get("order", "desc"),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 15, type=int),
    )
    return _ok(
        [p.to_dict() for p in pagination.items],
        pagination={
            "page": pagination.page,
            "per_page": pagination.per_page,
            "total": pagination.total,
            "pages": pagination.pages,
        },
    )


@api_bp.route("/products", methods=["POST"])
def create_product():
    product = sync_service.create_product(_body())
    return _ok(product.to_dict(), "Product created and synced to Shopify", status=201)


@api_bp.route("/products/<int:product_id>")
def show_product(product_id):
    return _ok(_product_or_404(product_id).to_dict())


@api_bp.route("/products/<int:product_id>", methods=["PUT", "PATCH"])
def update_product(product_id):
    product = sync_service.update_product(_product_or_404(product_id), _body())
    return _ok(product.to_dict(), "Product updated and synced to Shopify")


@api_bp.route("/products/<int:product_id>", methods=["DELETE"])
def delete_product(product_id):
    sync_service.delete_product(_product_or_404(product_id))
    return _ok(message="Product deleted")


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@api_bp.route("/variants")
def list_variants():
    pagination = product_service.search_variants(
        product_id=request.args.get("product_id", type=int),
        q=request.args.get("search"),
        min_price=request.args.get("min_price", type=float),
        max_price=request.args.get("max_price", type=float),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 15, type=int),
    )
    return _ok(
        [v.to_dict() for v in pagination.items],
        pagination={
            "page": pagination.page,
            "per_page": pagination.per_page,
            "total": pagination.total,
            "pages": pagination.pages,
        },
    )


@api_bp.route("/variants/<int:variant_id>")
def show_variant(variant_id):
    variant = product_service.get_variant(variant_id)
    if variant is None:
        abort(404, description="Variant not found")
    data = variant.to_dict()
    data["product"] = variant.product.to_dict(include=())
    return _ok(data)


@api_bp.route("/products/<int:product_id>/variants")
def product_variants(product_id):
    product = _product_or_404(product_id)
    return _ok([v.to_dict() for v in product.variants])


@api_bp.route("/products/<int:product_id>/variants", methods=["POST"])
def create_variant(product_id):
    variant = sync_service.create_variant(_product_or_404(product_id), _body())
    return _ok(variant.to_dict(), "Variant created and synced to Shopify", status=201)


@api_bp.route("/products/<int:product_id>/variants/<int:variant_id>", methods=["PUT", "PATCH"])
def update_variant(product_id, variant_id):
    variant = _variant_or_404(_product_or_404(product_id), variant_id)
    sync_service.update_variant(variant, _body())
    return _ok(variant.to_dict(), "Variant updated and synced to Shopify")


@api_bp.route("/products/<int:product_id>/variants/<int:variant_id>", methods=["DELETE"])
def delete_variant(product_id, variant_id):
    variant = _variant_or_404(_product_or_404(product_id), variant_id)
    sync_service.delete_variant(variant)
    return _ok(message="Variant deleted")


@api_bp.route(
    "/products/<int:product_id>/variants/<int:variant_id>/inventory", methods=["PATCH"]
)
def update_inventory(product_id, variant_id):
    variant = _variant_or_404(_product_or_404(product_id), variant_id)
    body = _body()
    sync = _parse_bool(body.get("sync"))
    change = sync_service.update_inventory(
        variant,
        body.get("quantity"),
        operation=body.get("operation", "set"),
        sync=True if sync is None else sync,
    )
    return _ok(
        {
            "variant_id": variant.id,
            "old_quantity": change.old_quantity,
            "new_quantity": change.new_quantity,
            "change": change.change,
            "synced": change.synced,
        },
        "Inventory updated",
    )


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

@api_bp.route("/products/<int:product_id>/images", methods=["POST"])
def upload_image(product_id):
    product = _product_or_404(product_id)
    upload = request.files.get("image")
    if upload is None or not upload.filename:
        raise LocalValidationError({"image": "The image field is required."})
    data = upload.read()

    if _parse_bool(request.form.get("local_only")):
        image = image_service.store_image(product, data, upload.filename)
        return _ok(image.to_dict(), "Image stored", status=201)

    image = image_service.attach_uploaded_image(product, data, upload.filename)
    return _ok(image.to_dict(), "Image uploaded to Shopify", status=201)


@api_bp.route("/products/<int:product_id>/images/<int:image_id>", methods=["DELETE"])
def delete_image(product_id, image_id):
    image = _image_or_404(_product_or_404(product_id), image_id)
    image_service.delete_image(image)
    return _ok(message="Image deleted")


@api_bp.route("/products/<int:product_id>/images/<int:image_id>/sync", methods=["POST"])
def sync_image(product_id, image_id):
    image = _image_or_404(_product_or_404(product_id), image_id)
    image_service.sync_stored_image(image)
    return _ok(image.to_dict(), "Image synced to Shopify")


# ---------------------------------------------------------------------------
# Shopify sync
# ---------------------------------------------------------------------------

@api_bp.route("/shopify/import", methods=["POST"])
def import_products():
    body = _body()
    result = import_service.import_products(
        first=body.get("first", 50),
        cursor=body.get("cursor"),
    )
    return _ok(result.to_dict(), "Products imported from Shopify")


@api_bp.route("/shopify/export/<int:product_id>", methods=["POST"])
def export_product(product_id):
    product = _product_or_404(product_id)
    result = sync_service.export_product(
        product, force_create=bool(_parse_bool(_body().get("force_create")))
    )
    return _ok(
        {
            "product_id": product.id,
            "remote_id": result.remote_id,
            "gid": result.gid,
            "synced_variants": result.synced_variants,
        },
        "Product exported to Shopify",
    )


def _accepted(operation):
    return _ok(
        {
            "operation_id": operation.id,
            "status": operation.status,
            "total_items": operation.total_items,
        },
        "Bulk operation queued",
        status=202,
    )


@api_bp.route("/shopify/export/bulk", methods=["POST"])
def export_bulk():
    body = _body()
    operation = bulk_service.start_bulk_operation(
        "export",
        body.get("product_ids"),
        skip_errors=_parse_bool(body.get("skip_errors")) is not False,
        force_create=bool(_parse_bool(body.get("force_create"))),
    )
    return _accepted(operation)


@api_bp.route("/products/bulk", methods=["POST"])
def bulk_create():
    body = _body()
    operation = bulk_service.start_bulk_operation(
        "create",
        body.get("products"),
        skip_errors=_parse_bool(body.get("skip_errors")) is not False,
    )
    return _accepted(operation)


@api_bp.route("/products/bulk", methods=["PATCH"])
def bulk_update():
    body = _body()
    operation = bulk_service.start_bulk_operation(
        "update",
        body.get("products"),
        skip_errors=_parse_bool(body.get("skip_errors")) is not False,
    )
    return _accepted(operation)


@api_bp.route("/products/bulk", methods=["DELETE"])
def bulk_delete():
    body = _body()
    operation = bulk_service.start_bulk_operation(
        "delete",
        body.get("product_ids"),
        skip_errors=_parse_bool(body.get("skip_errors")) is not False,
    )
    return _accepted(operation)


@api_bp.route("/products/bulk/status/<operation_id>")
def bulk_status(operation_id):
    status = bulk_service.bulk_status(operation_id)
    if status is None:
        abort(404, description="Bulk operation not found")
    return _ok(status)


@api_bp.route("/shopify/sync/status")
def sync_status():
    return _ok(sync_service.sync_status())


@api_bp.route("/shopify/sync/validate")
def validate_connection():
    valid = get_gateway().validate_credentials()
    message = "Shopify connection is valid" if valid else "Shopify connection failed"
    return jsonify({"success": valid, "message": message}), 200 if valid else 502

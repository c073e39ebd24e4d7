from decimal import Decimal, InvalidOperation
from shopsync.errors import LocalValidationError
from shopsync.extensions import db
from shopsync.models.product import Product
from shopsync.models.variant import Variant

PRODUCT_STRING_FIELDS = ("vendor", "product_type")
VARIANT_STRING_FIELDS = ("option1", "option2", "option3", "sku")
MAX_STRING = 255
SORT_FIELDS = {"title", "created_at", "updated_at", "vendor", "product_type"}


def _clean_string(errors, field, value, required=False, max_length=MAX_STRING):
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors[field] = f"The {field} field is required."
        return None
    if not isinstance(value, str):
        errors[field] = f"The {field} field must be a string."
        return None
    value = value.strip()
    if max_length and len(value) > max_length:
        errors[field] = f"The {field} field must not exceed {max_length} characters."
    return value


def validate_product(data, partial=False):
    """Validate a product payload and return the cleaned fields.

    With ``partial`` only the keys present are checked (update semantics).
    Raises LocalValidationError with field-level messages.
    """
    data = data or {}
    errors = {}
    cleaned = {}

    if not partial or "title" in data:
        cleaned["title"] = _clean_string(errors, "title", data.get("title"), required=True)
    if "description" in data:
        description = data.get("description")
        if description is not None and not isinstance(description, str):
            errors["description"] = "The description field must be a string."
        cleaned["description"] = description
    for field in PRODUCT_STRING_FIELDS:
        if field in data:
            cleaned[field] = _clean_string(errors, field, data.get(field))
    if not partial or "status" in data:
        status = data.get("status")
        if status not in Product.VALID_STATUSES:
            errors["status"] = "The status must be one of: active, draft, archived."
        cleaned["status"] = status

    variants = []
    if data.get("variants") is not None:
        if not isinstance(data["variants"], list):
            errors["variants"] = "The variants field must be a list."
        else:
            for index, item in enumerate(data["variants"]):
                try:
                    variants.append(validate_variant(item, partial="id" in (item or {})))
                except LocalValidationError as e:
                    for field, message in e.field_errors.items():
                        errors[f"variants.{index}.{field}"] = message
    if errors:
        raise LocalValidationError(errors)
    if data.get("variants") is not None:
        cleaned["variants"] = variants
    return cleaned


def validate_variant(data, partial=False):
    data = data or {}
    errors = {}
    cleaned = {}

    if "id" in data:
        cleaned["id"] = data["id"]
    for field in VARIANT_STRING_FIELDS:
        if field in data:
            cleaned[field] = _clean_string(errors, field, data.get(field))

    if not partial or "price" in data:
        raw = data.get("price")
        try:
            price = Decimal(str(raw)).quantize(Decimal("0.01"))
            if price < 0:
                errors["price"] = "The price must be at least 0."
            cleaned["price"] = price
        except (InvalidOperation, TypeError, ValueError):
            errors["price"] = "The price field is required and must be numeric."

    if "inventory_quantity" in data or not partial:
        raw = data.get("inventory_quantity")
        if raw is None:
            if not partial:
                cleaned["inventory_quantity"] = 0
        else:
            quantity = parse_quantity(raw)
            if quantity is None:
                errors["inventory_quantity"] = "The inventory quantity must be an integer of at least 0."
            else:
                cleaned["inventory_quantity"] = quantity

    if errors:
        raise LocalValidationError(errors)
    return cleaned


def parse_quantity(raw):
    """Non-negative integer from an int or a digit string, else None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def get_product(product_id, include_deleted=False):
    query = Product.with_deleted() if include_deleted else Product.live()
    return query.filter(Product.id == product_id).first()


def search_products(
    q=None, status=None, vendor=None, product_type=None, min_price=None,
    max_price=None, synced=None, sort="created_at", order="desc",
    page=1, per_page=15,
):
    """Filter live products for the listing/search endpoints."""
    query = Product.live()

    if q:
        like = f"%{q}%"
        query = query.filter(
            db.or_(
                Product.title.ilike(like),
                Product.description.ilike(like),
                Product.vendor.ilike(like),
                Product.product_type.ilike(like),
                Product.variants.any(Variant.sku.ilike(like)),
            )
        )
    if status:
        query = query.filter(Product.status == status)
    if vendor:
        query = query.filter(Product.vendor.ilike(f"%{vendor}%"))
    if product_type:
        query = query.filter(Product.product_type.ilike(f"%{product_type}%"))
    if min_price is not None:
        query = query.filter(Product.variants.any(Variant.price >= min_price))
    if max_price is not None:
        query = query.filter(Product.variants.any(Variant.price <= max_price))
    if synced is True:
        query = query.filter(Product.remote_id.isnot(None))
    elif synced is False:
        query = query.filter(Product.remote_id.is_(None))

    if sort in SORT_FIELDS:
        column = getattr(Product, sort)
        query = query.order_by(column.asc() if order == "asc" else column.desc())

    per_page = min(per_page, 100)
    return query.paginate(page=page, per_page=per_page, error_out=False)


def _live_variants():
    return Variant.query.join(Product).filter(Product.deleted_at.is_(None))


def get_variant(variant_id):
    return _live_variants().filter(Variant.id == variant_id).first()


def search_variants(
    product_id=None, q=None, min_price=None, max_price=None, page=1, per_page=15,
):
    """Filter variants of live products for the variant listing endpoint."""
    query = _live_variants()

    if product_id is not None:
        query = query.filter(Variant.product_id == product_id)
    if q:
        like = f"%{q}%"
        query = query.filter(
            db.or_(
                Variant.sku.ilike(like),
                Variant.option1.ilike(like),
                Variant.option2.ilike(like),
                Variant.option3.ilike(like),
            )
        )
    if min_price is not None:
        query = query.filter(Variant.price >= min_price)
    if max_price is not None:
        query = query.filter(Variant.price <= max_price)

    per_page = min(per_page, 100)
    return query.order_by(Variant.id.asc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

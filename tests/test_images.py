"""Tests for image validation and the upload pipeline."""
import io
from unittest.mock import patch

import pytest
from PIL import Image as PILImage

from shopsync.errors import (
    LocalPreconditionError,
    LocalValidationError,
    RemoteValidationError,
    TransportError,
)
from shopsync.models.image import ProductImage
from shopsync.models.product import Product
from shopsync.services import image_service


def _image_bytes(fmt="PNG"):
    buf = io.BytesIO()
    PILImage.new("RGB", (4, 4), "red").save(buf, format=fmt)
    return buf.getvalue()


def _product(db, remote_id=555):
    product = Product(title="Classic Tee", status="active", remote_id=remote_id)
    db.session.add(product)
    db.session.commit()
    return product


def test_validate_image_sniffs_content_type(app):
    assert image_service.validate_image(_image_bytes("PNG")) == "image/png"
    assert image_service.validate_image(_image_bytes("JPEG")) == "image/jpeg"


def test_validate_image_rejects_garbage_and_oversize(app):
    with pytest.raises(LocalValidationError):
        image_service.validate_image(b"not an image")
    with pytest.raises(LocalValidationError):
        image_service.validate_image(b"")
    with pytest.raises(LocalValidationError):
        image_service.validate_image(_image_bytes(), max_size=10)


def test_upload_requires_synced_product(db, fake_shopify):
    product = _product(db, remote_id=None)
    data = _image_bytes()

    with pytest.raises(LocalPreconditionError):
        image_service.upload_product_image(product, data, "tee.png", "image/png", len(data))
    assert fake_shopify.calls == []


def test_upload_runs_three_steps_in_order(db, fake_shopify):
    product = _product(db)
    data = _image_bytes()

    uploaded = image_service.upload_product_image(product, data, "tee.png", "image/png", len(data))

    assert fake_shopify.call_names() == [
        "staged_upload_create", "upload_to_staged_target", "product_create_media",
    ]
    _, (product_id, resource_url, filename) = fake_shopify.calls[2]
    assert product_id == 555
    assert resource_url == "https://uploads.example.test/tmp/tee.png"
    assert uploaded.remote_media_id is not None
    assert uploaded.url.endswith("/tee.png")


def test_upload_stops_at_failed_step(db, fake_shopify):
    product = _product(db)
    fake_shopify.fail_on("upload_to_staged_target", TransportError("Failed to upload file", 403))
    data = _image_bytes()

    with pytest.raises(TransportError):
        image_service.upload_product_image(product, data, "tee.png", "image/png", len(data))
    assert "product_create_media" not in fake_shopify.call_names()


def test_attach_uploaded_image_creates_row(db, fake_shopify):
    product = _product(db)

    image = image_service.attach_uploaded_image(product, _image_bytes(), "tee.png")

    assert image.remote_media_id is not None
    assert image.is_external
    assert image.url == image.path
    assert product.images.count() == 1


def test_attach_rejects_invalid_image_before_remote_calls(db, fake_shopify):
    product = _product(db)
    with pytest.raises(LocalValidationError):
        image_service.attach_uploaded_image(product, b"plain text, not an image", "tee.png")
    assert fake_shopify.calls == []


def test_store_and_sync_local_image(db, fake_shopify):
    product = _product(db)
    data = _image_bytes()

    with patch("shopsync.services.image_service.storage_service") as storage:
        storage.download.return_value = data
        image = image_service.store_image(product, data, "tee.png")
        assert image.remote_media_id is None
        assert image.path.startswith(f"products/{product.id}/")
        assert image.path.endswith(".png")
        storage.upload.assert_called_once()

        image_service.sync_stored_image(image)

    storage.download.assert_called_once_with(image.path)
    assert image.remote_media_id is not None
    _, (filename, mime_type, size) = fake_shopify.calls[0]
    assert mime_type == "image/png"
    assert size == len(data)


def test_stored_image_url_uses_public_base(db):
    product = _product(db)
    image = ProductImage(product_id=product.id, path="products/1/abc.png")
    assert image.url == "https://cdn.example.test/products/1/abc.png"


def test_delete_image_remote_failure_still_deletes_locally(db, fake_shopify):
    product = _product(db)
    image = ProductImage(product_id=product.id, remote_media_id=902, path="https://cdn.test/902.jpg")
    db.session.add(image)
    db.session.commit()
    fake_shopify.fail_on(
        "product_image_delete",
        RemoteValidationError([{"field": ["id"], "message": "Image does not exist"}]),
    )

    image_service.delete_image(image)

    assert ProductImage.query.count() == 0


def test_delete_stored_image_removes_object(db, fake_shopify):
    product = _product(db)
    image = ProductImage(product_id=product.id, path="products/1/abc.png")
    db.session.add(image)
    db.session.commit()

    with patch("shopsync.services.image_service.storage_service") as storage:
        image_service.delete_image(image)

    storage.delete.assert_called_once_with("products/1/abc.png")
    assert fake_shopify.calls == []
    assert ProductImage.query.count() == 0

"""Image validation and the three-step Shopify upload pipeline.

Uploading an image to a product is staged upload -> multipart POST of the
bytes to the staging URL -> ``productCreateMedia`` with the staged resource
URL. Each step's failure propagates.
"""
import io
import logging
import mimetypes
import uuid
from dataclasses import dataclass

from flask import current_app
from PIL import Image as PILImage

from shopsync.errors import LocalPreconditionError, LocalValidationError, SyncError
from shopsync.extensions import db
from shopsync.models.image import ProductImage
from shopsync.services import storage_service
from shopsync.services.gid_codec import remote_id_or_none
from shopsync.services.shopify_gateway import get_gateway

logger = logging.getLogger(__name__)

FORMAT_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}
EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclass
class UploadedImage:
    remote_media_id: int
    url: str


def validate_image(image_bytes, max_size=None):
    """Check size and that Pillow recognises the bytes as a supported image.

    Returns the sniffed content type. Raises LocalValidationError.
    """
    max_size = max_size or current_app.config["MAX_IMAGE_SIZE"]
    if not image_bytes:
        raise LocalValidationError({"image": "The image file is empty."})
    if len(image_bytes) > max_size:
        raise LocalValidationError(
            {"image": f"Image too large: {len(image_bytes)} bytes (max {max_size})"}
        )

    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        image_format = img.format
        img.verify()
    except Exception:
        raise LocalValidationError({"image": "Invalid image file"})

    content_type = FORMAT_CONTENT_TYPES.get(image_format)
    if content_type is None:
        raise LocalValidationError(
            {"image": "The image must be a file of type: jpeg, png, gif, webp."}
        )
    return content_type


def upload_product_image(product, data, filename, mime_type, size):
    """Attach ``data`` to the remote counterpart of ``product``.

    Returns the decoded media id and the served URL.
    """
    if not product.remote_id:
        raise LocalPreconditionError(
            "Product must be synced to Shopify before uploading images"
        )
    gateway = get_gateway()

    target = gateway.staged_upload_create(filename, mime_type, size)
    gateway.upload_to_staged_target(target, filename, data, mime_type)
    media = gateway.product_create_media(product.remote_id, target.resource_url, filename)

    logger.info("Uploaded image %s to product %s as %s", filename, product.id, media.gid)
    return UploadedImage(remote_media_id=remote_id_or_none(media.gid), url=media.url)


def attach_uploaded_image(product, data, filename):
    mime_type = validate_image(data)
    uploaded = upload_product_image(product, data, filename, mime_type, len(data))

    image = ProductImage(
        product_id=product.id,
        remote_media_id=uploaded.remote_media_id,
        path=uploaded.url,
    )
    db.session.add(image)
    db.session.commit()
    return image


def store_image(product, data, filename):
    """Keep a local copy in object storage without touching Shopify."""
    mime_type = validate_image(data)
    storage_key = f"products/{product.id}/{uuid.uuid4().hex}{EXTENSIONS[mime_type]}"
    storage_service.upload(storage_key, data, content_type=mime_type)

    image = ProductImage(product_id=product.id, path=storage_key)
    db.session.add(image)
    db.session.commit()
    logger.info("Stored image %s for product %s", storage_key, product.id)
    return image


def sync_stored_image(image):
    """Push a locally stored image through the upload pipeline."""
    if image.remote_media_id:
        return image
    if image.is_external:
        raise LocalValidationError(
            {"image": "Only images kept in object storage can be synced."}
        )

    data = storage_service.download(image.path)
    filename = image.path.rsplit("/", 1)[-1]
    mime_type = mimetypes.guess_type(filename)[0] or validate_image(data)
    uploaded = upload_product_image(image.product, data, filename, mime_type, len(data))

    image.remote_media_id = uploaded.remote_media_id
    db.session.commit()
    return image


def delete_image(image):
    """Remote deletion is best-effort; the local row always goes."""
    if image.remote_media_id:
        try:
            get_gateway().product_image_delete(image.remote_media_id)
        except SyncError as e:
            logger.warning(
                "Failed to delete Shopify image %s: %s", image.remote_media_id, e.message
            )

    if not image.is_external:
        storage_service.delete(image.path)

    db.session.delete(image)
    db.session.commit()

from datetime import datetime, timezone
from shopsync.extensions import db


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    remote_media_id = db.Column(db.BigInteger, nullable=True, index=True)
    # Full external URL, or a key relative to object storage
    path = db.Column(db.String(1024), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_external(self):
        return self.path.startswith(("http://", "https://"))

    @property
    def url(self):
        if self.is_external:
            return self.path
        from shopsync.services import storage_service

        return storage_service.get_public_url(self.path)

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "remote_media_id": self.remote_media_id,
            "path": self.path,
            "url": self.url,
        }

    def __repr__(self):
        return f"<ProductImage {self.id} [{self.path}]>"

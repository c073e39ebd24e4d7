from datetime import datetime, timezone
from shopsync.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    remote_id = db.Column(db.BigInteger, nullable=True, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    vendor = db.Column(db.String(255))
    product_type = db.Column(db.String(255))
    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    variants = db.relationship(
        "Variant",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="Variant.id",
    )
    images = db.relationship(
        "ProductImage",
        backref="product",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    VALID_STATUSES = ("active", "draft", "archived")

    @classmethod
    def live(cls):
        """Query excluding soft-deleted rows."""
        return cls.query.filter(cls.deleted_at.is_(None))

    @classmethod
    def with_deleted(cls):
        return cls.query

    @property
    def is_synced(self):
        return self.remote_id is not None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def soft_delete(self):
        self.deleted_at = datetime.now(timezone.utc)

    def restore(self):
        self.deleted_at = None

    def to_dict(self, include=("variants", "images")):
        data = {
            "id": self.id,
            "remote_id": self.remote_id,
            "title": self.title,
            "description": self.description,
            "vendor": self.vendor,
            "product_type": self.product_type,
            "status": self.status,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if "variants" in include:
            data["variants"] = [v.to_dict() for v in self.variants]
        if "images" in include:
            data["images"] = [img.to_dict() for img in self.images]
        return data

    def __repr__(self):
        return f"<Product {self.id}: {self.title}>"

from datetime import datetime, timezone
from shopsync.extensions import db


class Variant(db.Model):
    __tablename__ = "variants"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    remote_id = db.Column(db.BigInteger, nullable=True, index=True)
    option1 = db.Column(db.String(255))  # conventionally size
    option2 = db.Column(db.String(255))  # conventionally color
    option3 = db.Column(db.String(255))  # conventionally material
    price = db.Column(db.Numeric(10, 2), nullable=False)
    sku = db.Column(db.String(255))
    inventory_quantity = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    OPTION_KEYS = ("option1", "option2", "option3")

    @property
    def option_values(self):
        """Non-empty option values in option1..3 order."""
        return [v for v in (self.option1, self.option2, self.option3) if v]

    @property
    def title(self):
        return " / ".join(self.option_values) or "Default Title"

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "remote_id": self.remote_id,
            "option1": self.option1,
            "option2": self.option2,
            "option3": self.option3,
            "title": self.title,
            "price": f"{self.price:.2f}" if self.price is not None else None,
            "sku": self.sku,
            "inventory_quantity": self.inventory_quantity,
        }

    def __repr__(self):
        return f"<Variant {self.id}: {self.title}>"

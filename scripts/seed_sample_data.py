#!/usr/bin/env python3
"""Seed unsynced sample products for local development.

Nothing is pushed to Shopify; use `flask export-product ID` afterwards.
"""
import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shopsync import create_app
from shopsync.extensions import db
from shopsync.models.product import Product
from shopsync.models.variant import Variant
from shopsync.models.image import ProductImage

app = create_app()

SAMPLE_PRODUCTS = [
    {
        "title": "Classic Cotton Tee",
        "vendor": "Northwind Apparel",
        "product_type": "T-Shirt",
        "price": "19.00",
        "variants": [("S", "Black"), ("M", "Black"), ("L", "Black"), ("M", "White")],
    },
    {
        "title": "Linen Button Shirt",
        "vendor": "Northwind Apparel",
        "product_type": "Shirt",
        "price": "49.50",
        "variants": [("M", "Navy"), ("L", "Navy")],
    },
    {
        "title": "Wool Beanie",
        "vendor": "Harbor Knits",
        "product_type": "Hat",
        "price": "24.00",
        "variants": [(None, "Grey")],
    },
    {
        "title": "Canvas Tote",
        "vendor": "Harbor Knits",
        "product_type": "Bag",
        "price": "32.00",
        "variants": [(None, None)],
    },
]

COLORS = ["2c3e50", "27ae60", "8e44ad", "f39c12"]


def seed():
    with app.app_context():
        if Product.query.first():
            print("Products already exist, skipping seed.")
            return

        for i, item in enumerate(SAMPLE_PRODUCTS):
            product = Product(
                title=item["title"],
                vendor=item["vendor"],
                product_type=item["product_type"],
                status="draft",
            )
            for j, (size, color) in enumerate(item["variants"]):
                product.variants.append(
                    Variant(
                        option1=size,
                        option2=color,
                        price=Decimal(item["price"]),
                        sku=f"SEED-{i + 1:02d}-{j + 1:02d}",
                        inventory_quantity=10,
                    )
                )
            db.session.add(product)
            db.session.flush()

            color = COLORS[i % len(COLORS)]
            db.session.add(
                ProductImage(
                    product_id=product.id,
                    path=f"https://placehold.co/600x800/{color}/fff?text=P{product.id}",
                )
            )
            print(f"  Created {product.id}: {item['title']}")

        db.session.commit()
        print(f"\nSeeded {len(SAMPLE_PRODUCTS)} products.")


if __name__ == "__main__":
    seed()

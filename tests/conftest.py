import copy
import itertools
from decimal import Decimal

import pytest

from shopsync import create_app
from shopsync.extensions import db as _db
from shopsync.services.gid_codec import decode_gid, encode_gid
from shopsync.services.shopify_types import (
    OptionsCreateResult,
    ProductPage,
    RemoteMedia,
    RemoteOption,
    RemoteProduct,
    RemoteVariant,
    SelectedOption,
    StagedTarget,
)


class FakeShopify:
    """In-memory stand-in for ShopifyGateway.

    Records every call in ``calls`` and raises whatever ``fail_on`` registered
    for a method name.
    """

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.products = {}
        self.pages = {}
        self.credentials_valid = True
        self._ids = itertools.count(1001)

    def fail_on(self, name, error):
        self.failures[name] = error

    def call_names(self):
        return [name for name, _ in self.calls]

    def _record(self, name, *args):
        self.calls.append((name, args))
        error = self.failures.get(name)
        if error is not None:
            raise error

    def _new_gid(self, resource_type):
        return encode_gid(resource_type, next(self._ids))

    def _find_variant(self, variant_gid):
        for product in self.products.values():
            for variant in product.variants:
                if variant.gid == variant_gid:
                    return product, variant
        return None, None

    # Products

    def product_create(self, product_input):
        self._record("product_create", product_input)
        default = RemoteVariant(
            gid=self._new_gid("ProductVariant"),
            title="Default Title",
            price=Decimal("0.00"),
            inventory_quantity=0,
            selected_options=[SelectedOption(name="Title", value="Default Title")],
        )
        product = RemoteProduct(
            gid=self._new_gid("Product"),
            title=product_input.get("title"),
            description=product_input.get("descriptionHtml"),
            vendor=product_input.get("vendor"),
            product_type=product_input.get("productType"),
            status=product_input.get("status"),
            variants=[default],
        )
        self.products[product.gid] = product
        return copy.deepcopy(product)

    def product_update(self, product_input):
        self._record("product_update", product_input)
        product = self.products.setdefault(
            product_input["id"], RemoteProduct(gid=product_input["id"])
        )
        product.title = product_input.get("title", product.title)
        product.description = product_input.get("descriptionHtml", product.description)
        product.vendor = product_input.get("vendor", product.vendor)
        product.product_type = product_input.get("productType", product.product_type)
        product.status = product_input.get("status", product.status)
        return copy.deepcopy(product)

    def product_delete(self, product_id):
        self._record("product_delete", product_id)
        gid = encode_gid("Product", product_id)
        self.products.pop(gid, None)
        return gid

    def fetch_product(self, product_gid):
        self._record("fetch_product", product_gid)
        return copy.deepcopy(self.products[product_gid])

    def products_page(self, first=50, cursor=None):
        self._record("products_page", first, cursor)
        return copy.deepcopy(self.pages.get(cursor, ProductPage(products=[])))

    # Options and variants

    def product_options_create(self, product_id, options, variant_strategy="LEAVE_AS_IS"):
        self._record("product_options_create", product_id, options, variant_strategy)
        product = self.products[encode_gid("Product", product_id)]
        remote_options = [
            RemoteOption(gid=self._new_gid("ProductOption"), name=o["name"],
                         position=i + 1, values=list(o["values"]))
            for i, o in enumerate(options)
        ]
        if variant_strategy == "CREATE":
            names = [o["name"] for o in options]
            product.variants = [
                RemoteVariant(
                    gid=self._new_gid("ProductVariant"),
                    title=" / ".join(combo),
                    price=Decimal("0.00"),
                    inventory_quantity=0,
                    selected_options=[
                        SelectedOption(name=n, value=v) for n, v in zip(names, combo)
                    ],
                )
                for combo in itertools.product(*[o["values"] for o in options])
            ]
        return OptionsCreateResult(
            options=remote_options, variants=copy.deepcopy(product.variants)
        )

    def update_variant_rest(self, variant_id, data):
        self._record("update_variant_rest", variant_id, data)
        _, variant = self._find_variant(encode_gid("ProductVariant", variant_id))
        if variant is None:
            variant = RemoteVariant(gid=encode_gid("ProductVariant", variant_id))
        if data.get("price") is not None:
            variant.price = Decimal(str(data["price"]))
        if "sku" in data:
            variant.sku = data["sku"]
        if "inventory_quantity" in data:
            variant.inventory_quantity = data["inventory_quantity"]
        return copy.deepcopy(variant)

    def product_variant_create(self, variant_input):
        self._record("product_variant_create", variant_input)
        variant = RemoteVariant(
            gid=self._new_gid("ProductVariant"),
            sku=variant_input.get("sku"),
            price=Decimal(variant_input["price"]),
            inventory_quantity=variant_input.get("inventoryQuantity"),
        )
        product = self.products.get(variant_input["productId"])
        if product is not None:
            product.variants.append(variant)
        return copy.deepcopy(variant)

    def product_variant_update(self, variant_input):
        self._record("product_variant_update", variant_input)
        _, variant = self._find_variant(variant_input["id"])
        if variant is None:
            variant = RemoteVariant(gid=variant_input["id"])
        variant.sku = variant_input.get("sku", variant.sku)
        variant.price = Decimal(variant_input["price"])
        variant.inventory_quantity = variant_input.get("inventoryQuantity")
        return copy.deepcopy(variant)

    def delete_variant_rest(self, variant_id):
        self._record("delete_variant_rest", variant_id)
        product, variant = self._find_variant(encode_gid("ProductVariant", variant_id))
        if product is not None:
            product.variants.remove(variant)

    # Media

    def staged_upload_create(self, filename, mime_type, file_size):
        self._record("staged_upload_create", filename, mime_type, file_size)
        return StagedTarget(
            url="https://uploads.example.test/staged",
            resource_url=f"https://uploads.example.test/tmp/{filename}",
            parameters=[("key", f"tmp/{filename}")],
        )

    def upload_to_staged_target(self, target, filename, data, mime_type):
        self._record("upload_to_staged_target", target, filename, len(data), mime_type)

    def product_create_media(self, product_id, resource_url, filename):
        self._record("product_create_media", product_id, resource_url, filename)
        gid = self._new_gid("MediaImage")
        return RemoteMedia(gid=gid, url=f"https://cdn.shopify.test/{decode_gid(gid)}/{filename}")

    def product_image_delete(self, image_id):
        self._record("product_image_delete", image_id)
        return encode_gid("ProductImage", image_id)

    def validate_credentials(self):
        self._record("validate_credentials")
        return self.credentials_valid


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def db(app):
    """Database handle; every table is emptied after each test.

    Services commit on their own, so a rollback-only fixture is not enough.
    """
    yield _db
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


@pytest.fixture
def fake_shopify(app):
    original = app.extensions["shopify"]
    fake = FakeShopify()
    app.extensions["shopify"] = fake
    yield fake
    app.extensions["shopify"] = original

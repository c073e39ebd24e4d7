"""Shopify Admin API gateway (GraphQL + REST).

All remote I/O of the sync engine goes through ``ShopifyGateway``. Every
mutation response is checked in this order:

1. transport failure / non-2xx           -> TransportError
2. top-level ``errors`` array            -> GraphQLError
3. ``userErrors`` / ``mediaUserErrors``  -> RemoteValidationError
4. expected payload key missing          -> RemoteProtocolError
"""
import logging
from dataclasses import dataclass

import httpx
from flask import current_app

from shopsync.errors import (
    GraphQLError,
    RemoteProtocolError,
    RemoteValidationError,
    TransportError,
)
from shopsync.services.gid_codec import encode_gid
from shopsync.services.shopify_types import (
    OptionsCreateResult,
    ProductPage,
    RemoteMedia,
    RemoteOption,
    RemoteProduct,
    RemoteVariant,
    StagedTarget,
    edge_nodes,
    require_key,
)

logger = logging.getLogger(__name__)

VARIANT_FIELDS = """
    id
    title
    sku
    price
    inventoryQuantity
    selectedOptions { name value }
"""

PRODUCT_FIELDS = f"""
    id
    title
    descriptionHtml
    vendor
    productType
    status
    handle
    variants(first: 50) {{ edges {{ node {{ {VARIANT_FIELDS} }} }} }}
"""

PRODUCT_CREATE = f"""
mutation productCreate($input: ProductInput!) {{
  productCreate(input: $input) {{
    product {{ {PRODUCT_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""

PRODUCT_UPDATE = f"""
mutation productUpdate($input: ProductInput!) {{
  productUpdate(input: $input) {{
    product {{ {PRODUCT_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""

PRODUCT_DELETE = """
mutation productDelete($input: ProductDeleteInput!) {
  productDelete(input: $input) {
    deletedProductId
    userErrors { field message }
  }
}
"""

PRODUCT_QUERY = f"""
query getProduct($id: ID!) {{
  product(id: $id) {{ {PRODUCT_FIELDS} }}
}}
"""

PRODUCTS_PAGE = f"""
query getProducts($first: Int!, $cursor: String) {{
  products(first: $first, after: $cursor) {{
    edges {{
      node {{
        id
        title
        description
        vendor
        productType
        status
        handle
        variants(first: 10) {{ edges {{ node {{ {VARIANT_FIELDS} }} }} }}
        images(first: 10) {{ edges {{ node {{ id url altText }} }} }}
      }}
    }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

OPTIONS_CREATE = f"""
mutation productOptionsCreate(
  $productId: ID!,
  $options: [OptionCreateInput!]!,
  $variantStrategy: ProductOptionCreateVariantStrategy
) {{
  productOptionsCreate(productId: $productId, options: $options, variantStrategy: $variantStrategy) {{
    product {{
      id
      options {{ id name values position }}
      variants(first: 100) {{ edges {{ node {{ {VARIANT_FIELDS} }} }} }}
    }}
    userErrors {{ field message }}
  }}
}}
"""

PRODUCT_OPTIONS = """
query getProductOptions($id: ID!) {
  product(id: $id) {
    id
    options { id name values position }
  }
}
"""

VARIANTS_BULK_CREATE = f"""
mutation productVariantsBulkCreate(
  $productId: ID!,
  $variants: [ProductVariantsBulkInput!]!,
  $strategy: ProductVariantsBulkCreateStrategy
) {{
  productVariantsBulkCreate(productId: $productId, variants: $variants, strategy: $strategy) {{
    productVariants {{ {VARIANT_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""

VARIANT_CREATE = f"""
mutation productVariantCreate($input: ProductVariantInput!) {{
  productVariantCreate(input: $input) {{
    productVariant {{ {VARIANT_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""

VARIANT_UPDATE = f"""
mutation productVariantUpdate($input: ProductVariantInput!) {{
  productVariantUpdate(input: $input) {{
    productVariant {{ {VARIANT_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""

STAGED_UPLOADS_CREATE = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters { name value }
    }
    userErrors { field message }
  }
}
"""

PRODUCT_CREATE_MEDIA = """
mutation productCreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media {
      ... on MediaImage {
        id
        image { url altText }
      }
    }
    mediaUserErrors { field message }
    product { id }
  }
}
"""

PRODUCT_IMAGE_DELETE = """
mutation productImageDelete($input: ProductImageDeleteInput!) {
  productImageDelete(input: $input) {
    deletedImageId
    userErrors { field message }
  }
}
"""

SHOP_QUERY = "{ shop { name myshopifyDomain } }"


@dataclass(frozen=True)
class GatewayConfig:
    domain: str
    access_token: str
    api_version: str = "2025-01"
    timeout: float = 30.0

    @classmethod
    def from_mapping(cls, config):
        return cls(
            domain=config.get("SHOPIFY_DOMAIN", "") or "",
            access_token=(config.get("SHOPIFY_ACCESS_TOKEN", "") or "").strip(),
            api_version=config.get("SHOPIFY_API_VERSION") or "2025-01",
            timeout=float(config.get("SHOPIFY_TIMEOUT") or 30),
        )

    @property
    def store_domain(self):
        domain = self.domain.replace("https://", "").replace("http://", "")
        return domain.rstrip("/")

    @property
    def base_url(self):
        return f"https://{self.store_domain}/admin/api/{self.api_version}"

    @property
    def graphql_url(self):
        return f"{self.base_url}/graphql.json"


class ShopifyGateway:
    def __init__(self, config, client=None):
        self.config = config
        self._client = client or httpx.Client(timeout=config.timeout)

    def close(self):
        self._client.close()

    def _headers(self):
        return {
            "X-Shopify-Access-Token": self.config.access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _send(self, method, url, **kwargs):
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Shopify %s %s failed: %s", method, url, e)
            raise TransportError(f"Request to Shopify failed: {e}") from e

        logger.debug("Shopify %s %s -> %s", method, url, resp.status_code)
        if resp.status_code >= 400:
            logger.error(
                "Shopify %s %s returned %s: %s",
                method, url, resp.status_code, resp.text[:500],
            )
            raise TransportError(
                f"Shopify returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp

    @staticmethod
    def _json(resp):
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteProtocolError("Shopify returned a non-JSON response") from e

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def execute_query(self, document, variables=None):
        """POST a GraphQL document and return the decoded response body."""
        resp = self._send(
            "POST",
            self.config.graphql_url,
            headers=self._headers(),
            json={"query": document, "variables": variables or {}},
        )
        return self._json(resp)

    def execute_rest(self, method, path, body=None):
        url = f"{self.config.base_url}/{path.lstrip('/')}"
        kwargs = {"headers": self._headers()}
        if body is not None and method.upper() in ("POST", "PUT"):
            kwargs["json"] = body
        resp = self._send(method.upper(), url, **kwargs)
        return self._json(resp)

    def _query(self, document, variables=None):
        response = self.execute_query(document, variables)
        errors = response.get("errors")
        if errors:
            if isinstance(errors, str):
                errors = [{"message": errors}]
            messages = [e.get("message", "Unknown error") for e in errors]
            logger.error("GraphQL errors: %s", messages)
            raise GraphQLError(messages)
        data = response.get("data")
        if data is None:
            raise RemoteProtocolError("No data returned from Shopify API")
        return data

    def _mutate(self, document, variables, root, errors_key="userErrors"):
        data = self._query(document, variables)
        payload = data.get(root)
        if payload is None:
            raise RemoteProtocolError(f"No {root} payload returned from Shopify API")
        user_errors = payload.get(errors_key) or []
        if user_errors:
            logger.error("%s %s: %s", root, errors_key, user_errors)
            raise RemoteValidationError(user_errors)
        return payload

    @staticmethod
    def _require(payload, key, what):
        value = payload.get(key)
        if not value:
            raise RemoteProtocolError(f"Failed to {what}: no {key} returned from Shopify API")
        return value

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def product_create(self, product_input):
        payload = self._mutate(PRODUCT_CREATE, {"input": product_input}, "productCreate")
        return RemoteProduct.from_node(self._require(payload, "product", "create product"))

    def product_update(self, product_input):
        payload = self._mutate(PRODUCT_UPDATE, {"input": product_input}, "productUpdate")
        return RemoteProduct.from_node(self._require(payload, "product", "update product"))

    def product_delete(self, product_id):
        variables = {"input": {"id": encode_gid("Product", product_id)}}
        payload = self._mutate(PRODUCT_DELETE, variables, "productDelete")
        return self._require(payload, "deletedProductId", "delete product")

    def fetch_product(self, product_gid):
        data = self._query(PRODUCT_QUERY, {"id": product_gid})
        node = data.get("product")
        if not node:
            raise RemoteProtocolError(f"No product returned for {product_gid}")
        return RemoteProduct.from_node(node)

    def products_page(self, first=50, cursor=None):
        data = self._query(PRODUCTS_PAGE, {"first": first, "cursor": cursor})
        connection = data.get("products")
        if connection is None:
            raise RemoteProtocolError("No products returned from Shopify API")
        page_info = connection.get("pageInfo") or {}
        return ProductPage(
            products=[
                RemoteProduct.from_node(node)
                for node in edge_nodes(connection, "product")
            ],
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
        )

    # ------------------------------------------------------------------
    # Options and variants
    # ------------------------------------------------------------------

    def product_options_create(self, product_id, options, variant_strategy="LEAVE_AS_IS"):
        """Create option axes; ``options`` is a list of ``{"name", "values"}``."""
        options_input = [
            {
                "name": option["name"],
                "position": index + 1,
                "values": [{"name": value} for value in option["values"]],
            }
            for index, option in enumerate(options)
        ]
        payload = self._mutate(
            OPTIONS_CREATE,
            {
                "productId": encode_gid("Product", product_id),
                "options": options_input,
                "variantStrategy": variant_strategy,
            },
            "productOptionsCreate",
        )
        product = self._require(payload, "product", "create product options")
        return OptionsCreateResult(
            options=[RemoteOption.from_node(n) for n in product.get("options") or []],
            variants=[
                RemoteVariant.from_node(n)
                for n in edge_nodes(product.get("variants"), "variant")
            ],
        )

    def get_product_options(self, product_id):
        data = self._query(PRODUCT_OPTIONS, {"id": encode_gid("Product", product_id)})
        product = data.get("product") or {}
        return [RemoteOption.from_node(n) for n in product.get("options") or []]

    def product_variants_bulk_create(self, product_id, variants):
        """Bulk-create variants from ``option1..3`` style dictionaries."""
        variants_input = []
        for variant in variants:
            item = {
                "price": str(variant["price"]),
                "sku": variant.get("sku"),
                "inventoryQuantity": variant.get("inventory_quantity") or 0,
                "taxable": variant.get("taxable", True),
            }
            for key in ("option1", "option2", "option3"):
                if variant.get(key):
                    item[key] = variant[key]
            variants_input.append(item)
        return self._variants_bulk_create(product_id, variants_input, strategy=None)

    def product_variants_bulk_create_with_option_values(self, product_id, variants):
        """Bulk-create variants already shaped with ``optionValues``."""
        return self._variants_bulk_create(
            product_id, variants, strategy="REMOVE_STANDALONE_VARIANT"
        )

    def _variants_bulk_create(self, product_id, variants_input, strategy):
        variables = {
            "productId": encode_gid("Product", product_id),
            "variants": variants_input,
        }
        if strategy:
            variables["strategy"] = strategy
        payload = self._mutate(VARIANTS_BULK_CREATE, variables, "productVariantsBulkCreate")
        return [RemoteVariant.from_node(n) for n in payload.get("productVariants") or []]

    def product_variant_create(self, variant_input):
        payload = self._mutate(VARIANT_CREATE, {"input": variant_input}, "productVariantCreate")
        node = self._require(payload, "productVariant", "create variant")
        return RemoteVariant.from_node(node)

    def product_variant_update(self, variant_input):
        payload = self._mutate(VARIANT_UPDATE, {"input": variant_input}, "productVariantUpdate")
        node = self._require(payload, "productVariant", "update variant")
        return RemoteVariant.from_node(node)

    # Per-variant price/SKU/inventory patches go over REST.

    @staticmethod
    def _variant_rest_body(data):
        body = {}
        for key in ("option1", "option2", "option3", "sku"):
            if key in data:
                body[key] = data[key]
        if data.get("price") is not None:
            body["price"] = str(data["price"])
        if "inventory_quantity" in data:
            body["inventory_quantity"] = data["inventory_quantity"] or 0
        return body

    def create_variant_rest(self, product_id, data):
        body = {"variant": self._variant_rest_body(data)}
        response = self.execute_rest("POST", f"products/{int(product_id)}/variants.json", body)
        return RemoteVariant.from_rest(self._require(response, "variant", "create variant"))

    def update_variant_rest(self, variant_id, data):
        body = {"variant": {"id": int(variant_id), **self._variant_rest_body(data)}}
        response = self.execute_rest("PUT", f"variants/{int(variant_id)}.json", body)
        return RemoteVariant.from_rest(self._require(response, "variant", "update variant"))

    def delete_variant_rest(self, variant_id):
        self.execute_rest("DELETE", f"variants/{int(variant_id)}.json")

    def get_variant_rest(self, variant_id):
        response = self.execute_rest("GET", f"variants/{int(variant_id)}.json")
        return RemoteVariant.from_rest(self._require(response, "variant", "fetch variant"))

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def staged_upload_create(self, filename, mime_type, file_size):
        variables = {
            "input": [
                {
                    "filename": filename,
                    "mimeType": mime_type,
                    "fileSize": str(file_size),
                    "resource": "IMAGE",
                    "httpMethod": "POST",
                }
            ]
        }
        payload = self._mutate(STAGED_UPLOADS_CREATE, variables, "stagedUploadsCreate")
        targets = self._require(payload, "stagedTargets", "create staged upload")
        target = targets[0]
        return StagedTarget(
            url=require_key(target, "url", "staged target"),
            resource_url=require_key(target, "resourceUrl", "staged target"),
            parameters=[
                (require_key(p, "name", "staged upload parameter"), p.get("value") or "")
                for p in target.get("parameters") or []
            ],
        )

    def upload_to_staged_target(self, target, filename, data, mime_type):
        """POST the signed form fields plus the file bytes to the staging URL."""
        form = dict(target.parameters)
        try:
            resp = self._client.post(
                target.url,
                data=form,
                files={"file": (filename, data, mime_type)},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to upload file to staged target: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(
                f"Failed to upload file to staged target: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

    def product_create_media(self, product_id, resource_url, filename):
        alt = filename.rsplit(".", 1)[0] if "." in filename else filename
        variables = {
            "productId": encode_gid("Product", product_id),
            "media": [
                {
                    "originalSource": resource_url,
                    "mediaContentType": "IMAGE",
                    "alt": alt,
                }
            ],
        }
        payload = self._mutate(
            PRODUCT_CREATE_MEDIA, variables, "productCreateMedia",
            errors_key="mediaUserErrors",
        )
        media = self._require(payload, "media", "create product media")
        node = media[0]
        image = node.get("image") or {}
        return RemoteMedia(
            gid=require_key(node, "id", "media"),
            url=image.get("url") or resource_url,
            alt_text=image.get("altText"),
        )

    def product_image_delete(self, image_id):
        variables = {"input": {"id": encode_gid("ProductImage", image_id)}}
        payload = self._mutate(PRODUCT_IMAGE_DELETE, variables, "productImageDelete")
        return payload.get("deletedImageId")

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def validate_credentials(self):
        """Cheap shop query.

        Only 401/403 or an unreachable store count as invalid. Any other
        response, error statuses included, leaves the credentials valid.
        """
        try:
            self._send(
                "POST",
                self.config.graphql_url,
                headers=self._headers(),
                json={"query": SHOP_QUERY, "variables": {}},
            )
        except TransportError as e:
            if e.status_code in (401, 403):
                logger.warning("Shopify rejected credentials (HTTP %s)", e.status_code)
                return False
            if e.status_code is None:
                logger.warning("Shopify credential check failed: %s", e.message)
                return False
            logger.warning(
                "Shopify credential check returned HTTP %s, credentials not rejected",
                e.status_code,
            )
        return True


def init_gateway(app):
    app.extensions["shopify"] = ShopifyGateway(GatewayConfig.from_mapping(app.config))


def get_gateway():
    return current_app.extensions["shopify"]

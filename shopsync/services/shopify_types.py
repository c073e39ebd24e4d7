"""Typed results decoded at the gateway boundary.

Raw GraphQL/REST dictionaries never travel past ``ShopifyGateway``; every
public gateway method returns one of these dataclasses instead. A node that
lacks a key the decoder cannot do without raises ``RemoteProtocolError``.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from shopsync.errors import RemoteProtocolError
from shopsync.services.gid_codec import decode_gid


def require_key(node, key, what):
    """Return ``node[key]``, raising ``RemoteProtocolError`` when it is absent."""
    value = node.get(key) if isinstance(node, dict) else None
    if value in (None, ""):
        raise RemoteProtocolError(f"No {what} {key} returned from Shopify API")
    return value


def edge_nodes(connection, what):
    """Unwrap a connection's ``edges[].node`` (or accept a plain list)."""
    if not connection:
        return []
    if isinstance(connection, list):
        return connection
    return [require_key(edge, "node", what) for edge in connection.get("edges") or []]


def _decimal(value):
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


@dataclass(frozen=True)
class SelectedOption:
    name: str
    value: str


@dataclass
class RemoteVariant:
    gid: str
    title: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[Decimal] = None
    inventory_quantity: Optional[int] = None
    selected_options: list = field(default_factory=list)

    @property
    def numeric_id(self):
        return decode_gid(self.gid)

    @classmethod
    def from_node(cls, node):
        return cls(
            gid=require_key(node, "id", "variant"),
            title=node.get("title"),
            sku=node.get("sku") or None,
            price=_decimal(node.get("price")),
            inventory_quantity=node.get("inventoryQuantity"),
            selected_options=[
                SelectedOption(name=opt.get("name", ""), value=opt.get("value", ""))
                for opt in node.get("selectedOptions") or []
            ],
        )

    @classmethod
    def from_rest(cls, payload):
        """Build from a REST ``variant`` object (numeric id, snake_case keys)."""
        return cls(
            gid=f"gid://shopify/ProductVariant/{require_key(payload, 'id', 'variant')}",
            title=payload.get("title"),
            sku=payload.get("sku") or None,
            price=_decimal(payload.get("price")),
            inventory_quantity=payload.get("inventory_quantity"),
            selected_options=[],
        )


@dataclass
class RemoteOption:
    gid: str
    name: str
    position: int
    values: list = field(default_factory=list)

    @classmethod
    def from_node(cls, node):
        values = node.get("values") or []
        if not values and node.get("optionValues"):
            values = [v.get("name") for v in node["optionValues"]]
        return cls(
            gid=node.get("id", ""),
            name=node.get("name", ""),
            position=node.get("position") or 0,
            values=list(values),
        )


@dataclass
class RemoteImage:
    gid: str
    url: str
    alt_text: Optional[str] = None

    @classmethod
    def from_node(cls, node):
        return cls(
            gid=require_key(node, "id", "image"),
            url=require_key(node, "url", "image"),
            alt_text=node.get("altText"),
        )


@dataclass
class RemoteProduct:
    gid: str
    title: Optional[str] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    status: Optional[str] = None
    handle: Optional[str] = None
    variants: list = field(default_factory=list)
    images: list = field(default_factory=list)

    @property
    def numeric_id(self):
        return decode_gid(self.gid)

    @property
    def default_variant(self):
        return self.variants[0] if self.variants else None

    @classmethod
    def from_node(cls, node):
        description = node.get("descriptionHtml")
        if description is None:
            description = node.get("description")
        return cls(
            gid=require_key(node, "id", "product"),
            title=node.get("title"),
            description=description,
            vendor=node.get("vendor"),
            product_type=node.get("productType"),
            status=node.get("status"),
            handle=node.get("handle"),
            variants=[
                RemoteVariant.from_node(n)
                for n in edge_nodes(node.get("variants"), "variant")
            ],
            images=[
                RemoteImage.from_node(n)
                for n in edge_nodes(node.get("images"), "image")
            ],
        )


@dataclass
class OptionsCreateResult:
    options: list
    variants: list


@dataclass
class ProductPage:
    products: list
    has_next_page: bool = False
    end_cursor: Optional[str] = None


@dataclass
class StagedTarget:
    url: str
    resource_url: str
    parameters: list = field(default_factory=list)


@dataclass
class RemoteMedia:
    gid: str
    url: str
    alt_text: Optional[str] = None

    @property
    def numeric_id(self):
        return decode_gid(self.gid)

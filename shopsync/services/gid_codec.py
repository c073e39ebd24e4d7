"""Convert between Shopify global ids and the numeric ids stored locally.

    gid://shopify/Product/123456  <->  ("Product", 123456)
"""
import logging

logger = logging.getLogger(__name__)

GID_PREFIX = "gid://shopify"


def encode_gid(resource_type, numeric_id):
    return f"{GID_PREFIX}/{resource_type}/{int(numeric_id)}"


def decode_gid(gid):
    """Return the trailing numeric segment of a global id.

    Malformed input decodes to 0. Callers that persist the result should go
    through ``remote_id_or_none`` so a 0 never lands in the database.
    """
    if gid is None:
        logger.warning("Cannot decode empty gid")
        return 0
    tail = str(gid).rstrip("/").split("/")[-1]
    # REST ids arrive as bare integers, GraphQL ids may carry a query suffix
    tail = tail.split("?", 1)[0]
    if not tail.isdigit():
        logger.warning("Malformed gid %r decoded as 0", gid)
        return 0
    return int(tail)


def remote_id_or_none(gid):
    numeric_id = decode_gid(gid)
    return numeric_id or None


def gid_resource_type(gid):
    parts = str(gid).split("/")
    return parts[-2] if len(parts) >= 2 else None

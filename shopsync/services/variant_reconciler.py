"""Reconcile local variant rows with the variants Shopify creates.

Shopify models variants as options + variants. A freshly created product has a
single auto-generated default variant; multi-variant products need their
option axes created first, after which Shopify generates the variants and we
map them back to local rows by their selected option values.

Outcomes:
    single    one local variant, pushed onto the default variant
    full      options created, local variants mapped, unmatched combinations
              removed
    degraded  option/variant creation failed, only the default variant was
              updated (with the first local variant's data)
    skipped   Shopify returned no default variant to work with
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from shopsync.errors import SyncError

logger = logging.getLogger(__name__)

SINGLE = "single"
FULL = "full"
DEGRADED = "degraded"
SKIPPED = "skipped"

SIZE_VALUES = {
    "xs", "s", "m", "l", "xl", "xxl",
    "x-small", "small", "medium", "large", "x-large",
}
COLOR_VALUES = {
    "red", "blue", "green", "yellow", "orange", "purple", "pink",
    "black", "white", "gray", "grey", "brown", "navy",
}
MATERIAL_VALUES = {
    "cotton", "polyester", "silk", "wool", "leather", "denim", "linen", "velvet",
}

OPTION_KEYS = ("option1", "option2", "option3")
DEFAULT_OPTION_NAMES = {
    "option1": "Option 1",
    "option2": "Option 2",
    "option3": "Option 3",
}


@dataclass
class OptionAxis:
    key: str
    name: str
    values: list


@dataclass
class VariantMatch:
    local: object
    remote: object


@dataclass
class ReconcileOutcome:
    status: str
    product: object
    matches: list = field(default_factory=list)
    error: Optional[str] = None

    @property
    def degraded(self):
        return self.status == DEGRADED


@dataclass
class _VariantBuild:
    """Result of the option/variant creation attempt (steps c-f)."""

    matches: list = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


def option_name_for(key, values):
    """Guess an axis name from its values, falling back to "Option N"."""
    lowered = {str(v).strip().lower() for v in values}
    if lowered & SIZE_VALUES:
        return "Size"
    if lowered & COLOR_VALUES:
        return "Color"
    if lowered & MATERIAL_VALUES:
        return "Material"
    return DEFAULT_OPTION_NAMES.get(key, "Option")


def extract_option_axes(variants):
    """Distinct non-empty values per option1..3, in first-seen order."""
    axes = []
    for key in OPTION_KEYS:
        values = []
        for variant in variants:
            value = getattr(variant, key)
            if value and value not in values:
                values.append(value)
        if values:
            axes.append(OptionAxis(key=key, name=option_name_for(key, values), values=values))
    return axes


def _matches(local, remote):
    selected = {
        opt.value.lower()
        for opt in remote.selected_options
        if opt.name != "Title" and opt.value
    }
    return all(value.lower() in selected for value in local.option_values)


def match_variants(local_variants, remote_variants):
    """Pair each remote variant with the first unclaimed local variant whose
    non-empty option values all appear among its selected options.

    When nothing matches at all, pair by position instead. Positional pairs
    carry no guarantee: duplicate option tuples or a reordered remote list
    will mismatch.
    """
    local_variants = list(local_variants)
    matches = []
    claimed = set()
    for remote in remote_variants:
        for index, local in enumerate(local_variants):
            if index in claimed:
                continue
            if _matches(local, remote):
                matches.append(VariantMatch(local=local, remote=remote))
                claimed.add(index)
                break

    if not matches:
        logger.warning("No option matches found, falling back to positional matching")
        matches = [
            VariantMatch(local=local, remote=remote)
            for local, remote in zip(local_variants, remote_variants)
        ]
    return matches


def _variant_patch(variant):
    return {
        "price": variant.price,
        "sku": variant.sku,
        "inventory_quantity": variant.inventory_quantity or 0,
    }


def _build_option_variants(gateway, remote_product, local_variants):
    axes = extract_option_axes(local_variants)
    logger.debug(
        "Creating %d option axes for product %s: %s",
        len(axes), remote_product.gid, [(a.name, a.values) for a in axes],
    )
    if not axes:
        return _VariantBuild(error="Local variants carry no option values")

    try:
        result = gateway.product_options_create(
            remote_product.numeric_id,
            [{"name": axis.name, "values": axis.values} for axis in axes],
            variant_strategy="CREATE",
        )
        if not result.variants:
            return _VariantBuild(error="No variants were created by the CREATE strategy")

        matches = match_variants(local_variants, result.variants)
        for match in matches:
            gateway.update_variant_rest(match.remote.numeric_id, _variant_patch(match.local))

        # CREATE generates every option combination; drop the ones no local row holds.
        matched = {match.remote.gid for match in matches}
        unmatched = [v for v in result.variants if v.gid not in matched]
        for remote in unmatched:
            gateway.delete_variant_rest(remote.numeric_id)
    except SyncError as e:
        return _VariantBuild(error=e.message)

    logger.debug(
        "Mapped %d remote variants for product %s, removed %d unmatched",
        len(matches), remote_product.gid, len(unmatched),
    )
    return _VariantBuild(matches=matches)


def reconcile_variants(gateway, remote_product, local_variants):
    """Push local variants onto a freshly created remote product.

    Returns a ``ReconcileOutcome`` whose ``product`` is a re-fetched snapshot
    and whose ``matches`` pair local rows with remote variants.
    """
    local_variants = list(local_variants)
    default_variant = remote_product.default_variant
    if not local_variants or default_variant is None:
        logger.warning("No default variant on %s, skipping variant sync", remote_product.gid)
        return ReconcileOutcome(status=SKIPPED, product=remote_product)

    if len(local_variants) == 1:
        local = local_variants[0]
        gateway.update_variant_rest(default_variant.numeric_id, _variant_patch(local))
        snapshot = gateway.fetch_product(remote_product.gid)
        return ReconcileOutcome(
            status=SINGLE,
            product=snapshot,
            matches=[VariantMatch(local=local, remote=default_variant)],
        )

    build = _build_option_variants(gateway, remote_product, local_variants)
    if build.ok:
        snapshot = gateway.fetch_product(remote_product.gid)
        return ReconcileOutcome(status=FULL, product=snapshot, matches=build.matches)

    logger.error(
        "Option/variant creation failed for %s, degrading to default variant: %s",
        remote_product.gid, build.error,
    )
    first = local_variants[0]
    gateway.update_variant_rest(default_variant.numeric_id, _variant_patch(first))
    snapshot = gateway.fetch_product(remote_product.gid)
    return ReconcileOutcome(
        status=DEGRADED,
        product=snapshot,
        matches=[VariantMatch(local=first, remote=default_variant)],
        error=build.error,
    )

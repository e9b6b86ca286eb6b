"""Collection value estimates based on variant rarity tiers."""

from __future__ import annotations

import math
from typing import Any, Iterator, Mapping, NamedTuple, Union

METADATA_MARKER = "_analyses"
RESERVED_PREFIX = "_"

# Rough catalogue values per variant tier
VARIANT_BASE_VALUES: dict[str, int] = {
    "Base": 2,
    "Refractor": 5,
    "Purple Refractor /299": 15,
    "Blue Refractor /150": 20,
    "Green Refractor /99": 30,
    "Gold Refractor /50": 50,
    "Orange Refractor /25": 75,
    "Red Refractor /5": 150,
    "SuperFractor 1/1": 500,
    "Printing Plate 1/1": 400,
    "Black Refractor /10": 100,
    "Magenta/Pink Refractor /250": 12,
    "Gold Wave /75": 40,
}
DEFAULT_VARIANT_VALUE = 5
# Largest total that fits the INTEGER columns price history is stored in.
MAX_TOTAL = 2**63 - 1


class VariantCount(NamedTuple):
    card: str
    variant: str
    count: Union[int, float]


class VariantMetadata(NamedTuple):
    card: str
    variant: str
    value: Any


VariantValue = Union[VariantCount, VariantMetadata]


def is_metadata_key(variant: str) -> bool:
    return variant == METADATA_MARKER or variant.startswith(RESERVED_PREFIX)


def is_count_value(value: Any) -> bool:
    """Return True for values accepted as an owned count (``None`` included)."""
    if value is None:
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def classify_variant(card: str, variant: str, value: Any) -> VariantValue:
    if is_metadata_key(variant):
        return VariantMetadata(card, variant, value)
    # Missing or falsy counts own nothing.
    return VariantCount(card, variant, value or 0)


def iter_variants(cards: Mapping[str, Mapping[str, Any]]) -> Iterator[VariantValue]:
    for card, variants in cards.items():
        for variant, value in variants.items():
            yield classify_variant(card, variant, value)


def iter_variant_counts(cards: Mapping[str, Mapping[str, Any]]) -> Iterator[VariantCount]:
    for item in iter_variants(cards):
        if isinstance(item, VariantCount):
            yield item


def variant_base_value(variant: str) -> int:
    return VARIANT_BASE_VALUES.get(variant, DEFAULT_VARIANT_VALUE)


def _round_half_up(value: Union[int, float]) -> int:
    if isinstance(value, int):
        return value
    return int(math.floor(value + 0.5))


def count_in_range(variant: str, count: Union[int, float]) -> bool:
    """Return True when ``count`` copies of ``variant`` have a storable value."""
    line_value = count * variant_base_value(variant)
    if isinstance(line_value, float) and not math.isfinite(line_value):
        return False
    return abs(line_value) <= MAX_TOTAL


def compute_value(cards: Mapping[str, Mapping[str, Any]]) -> int:
    """Estimate the total value of ``cards``.

    Every owned variant is priced at its tier's base value; unknown variants
    fall back to :data:`DEFAULT_VARIANT_VALUE`. Negative counts are not
    rejected and reduce the total.
    """
    total = 0
    for item in iter_variant_counts(cards):
        total += item.count * variant_base_value(item.variant)
    return _round_half_up(total)


def count_cards(cards: Mapping[str, Mapping[str, Any]]) -> int:
    """Total number of owned copies across all cards and variants.

    Fractional counts are summed and rounded half-up like the value total.
    """
    count = 0
    for item in iter_variant_counts(cards):
        count += item.count
    return _round_half_up(count)

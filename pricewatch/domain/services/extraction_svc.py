# pricewatch/domain/services/extraction_svc.py

from __future__ import annotations
from typing import Optional, Sequence
import logging
import re
import time

from pricewatch.core.config import get_settings
from pricewatch.core.errors import ExtractionFailed
from pricewatch.domain.models.product import SENTINEL, Platform, ProductSnapshot, is_sentinel
from pricewatch.domain.services.selectors import (
    FIELD_AVAILABILITY,
    FIELD_DISCOUNT,
    FIELD_IMAGE,
    FIELD_PRICE,
    FIELD_RATING,
    FIELD_RATING_COUNT,
    FIELD_TITLE,
    PLATFORM_SELECTORS,
    SelectorChains,
)
from pricewatch.domain.services.strategies import FieldStrategy

logger = logging.getLogger(__name__)

_NON_DECIMAL = re.compile(r"[^0-9.]")
_NON_DIGIT = re.compile(r"[^0-9]")

# ---------- Numeric parsing ---------------------------------------------------

def parse_number(text: Optional[str], *, integer: bool = False) -> float:
    """
    Parse a scraped number: drop every character that is not a digit (or a
    decimal point, unless `integer`), then parse. Empty or unparsable -> 0.
      "₹1,299.00" -> 1299.0, "Rs.499" -> 499.0, "No Data Found" -> 0
    """
    if not text:
        return 0
    pattern = _NON_DIGIT if integer else _NON_DECIMAL
    cleaned = pattern.sub("", text).strip(".")
    if not cleaned:
        return 0
    try:
        value = float(cleaned)
    except ValueError:
        return 0
    return int(value) if integer else value

# ---------- Field resolution --------------------------------------------------

async def extract_field(page, strategies: Sequence[FieldStrategy], *, timeout_ms: int) -> str:
    """First present value from the ordered strategies, else SENTINEL."""
    for strategy in strategies:
        value = await strategy.read(page, timeout_ms)
        if value:
            return value
    return SENTINEL


def _chains_for(platform: Platform) -> SelectorChains:
    try:
        return PLATFORM_SELECTORS[platform]
    except KeyError:
        raise ExtractionFailed(f"No selectors registered for platform {platform}") from None


async def extract_image(page, platform: Platform, *, selector_timeout_ms: Optional[int] = None) -> str:
    timeout_ms = selector_timeout_ms or get_settings().SELECTOR_TIMEOUT_MS
    return await extract_field(page, _chains_for(platform)[FIELD_IMAGE], timeout_ms=timeout_ms)


async def extract_snapshot(
    page, platform: Platform, *, selector_timeout_ms: Optional[int] = None
) -> ProductSnapshot:
    """
    Build a ProductSnapshot from a rendered product page.
    Every field degrades to SENTINEL / 0 on its own, except the title:
    a page without a readable title raises ExtractionFailed.
    """
    timeout_ms = selector_timeout_ms or get_settings().SELECTOR_TIMEOUT_MS
    chains = _chains_for(platform)
    t0 = time.perf_counter()

    title = await extract_field(page, chains[FIELD_TITLE], timeout_ms=timeout_ms)
    if is_sentinel(title):
        raise ExtractionFailed(f"Could not read product title ({platform.value})")

    raw = {name: await extract_field(page, chains[name], timeout_ms=timeout_ms) for name in (
        FIELD_IMAGE, FIELD_PRICE, FIELD_DISCOUNT, FIELD_AVAILABILITY, FIELD_RATING, FIELD_RATING_COUNT,
    )}
    missing = [name for name, value in raw.items() if value == SENTINEL]
    if missing:
        logger.warning("extract partial platform=%s missing=%s", platform.value, missing)

    snapshot = ProductSnapshot(
        title=title,
        image_url=raw[FIELD_IMAGE],
        price=parse_number(raw[FIELD_PRICE]),
        discount_label=raw[FIELD_DISCOUNT],
        availability_label=raw[FIELD_AVAILABILITY],
        rating_avg=parse_number(raw[FIELD_RATING]),
        rating_count=parse_number(raw[FIELD_RATING_COUNT], integer=True),
    )
    logger.debug(
        "extract done platform=%s price=%s image=%s time=%.3fs",
        platform.value, snapshot.price, snapshot.image_url, time.perf_counter() - t0,
    )
    return snapshot

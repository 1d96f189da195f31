# pricewatch/domain/services/tracker_svc.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
import logging
import time

from pricewatch.core.config import Settings, get_settings
from pricewatch.core.errors import StoreConflict
from pricewatch.domain.models.product import (
    Platform,
    PricePoint,
    ProductRecord,
    ProductSnapshot,
    is_sentinel,
)
from pricewatch.domain.repositories.product_repo import ProductRepo
from pricewatch.domain.services.browser import BrowserLauncher, launch_browser
from pricewatch.domain.services.classifier import detect_platform, extract_product_id
from pricewatch.domain.services.extraction_svc import extract_image, extract_snapshot

logger = logging.getLogger(__name__)


def _label(value: str) -> Optional[str]:
    return None if is_sentinel(value) else value


def build_record(
    url: str,
    platform: Platform,
    product_id: str,
    snapshot: ProductSnapshot,
    *,
    owner_ref: Optional[str] = None,
) -> ProductRecord:
    """New catalog entry from a first scrape: single-point history at the observed price."""
    now = datetime.now(timezone.utc)
    return ProductRecord(
        platform=platform,
        product_id=product_id,
        url=url,
        name=snapshot.title,
        current_price=snapshot.price,
        image_url=snapshot.image_url,
        rating_avg=snapshot.rating_avg,
        rating_count=snapshot.rating_count,
        discount_label=_label(snapshot.discount_label),
        availability_label=_label(snapshot.availability_label),
        price_history=[PricePoint(price=snapshot.price, timestamp=now)],
        owner_ref=owner_ref,
        created_at=now,
        updated_at=now,
    )


async def fetch_product_svc(
    db,
    url: str,
    platform: Optional[Platform] = None,
    *,
    launcher: Optional[BrowserLauncher] = None,
    owner_ref: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> ProductRecord:
    """
    Serve one tracking request.

    Steps:
      1) Derive (platform, product_id) from the URL (classifier errors propagate)
      2) Known product with an image -> return it, no browser
      3) Known product missing its image -> reload the page, refresh image only
      4) Unknown product -> scrape, insert with single-entry history

    Concurrent first requests for the same product race on the store's unique
    index; the loser re-reads and returns the winner's record.
    """
    settings = settings or get_settings()
    launcher = launcher or (lambda: launch_browser(settings))
    repo = ProductRepo(db, settings.PRODUCTS_COLLECTION)
    t0 = time.perf_counter()

    platform = platform or detect_platform(url)
    product_id = extract_product_id(url, platform)
    logger.info("fetch start platform=%s product_id=%s", platform.value, product_id)

    existing = await repo.find_one(platform, product_id)
    if existing and not existing.needs_image_refresh:
        logger.info("fetch cache_hit platform=%s product_id=%s", platform.value, product_id)
        return existing

    async with launcher() as browser:
        async with browser.open_page(url) as page:
            if existing:
                image_url = await extract_image(page, platform, selector_timeout_ms=settings.SELECTOR_TIMEOUT_MS)
            else:
                snapshot = await extract_snapshot(page, platform, selector_timeout_ms=settings.SELECTOR_TIMEOUT_MS)

    if existing:
        # Image-only path: price and history stay as they are
        if is_sentinel(image_url):
            logger.warning("fetch image still missing platform=%s product_id=%s", platform.value, product_id)
            return existing
        await repo.set_image(platform, product_id, image_url)
        logger.info(
            "fetch image_refreshed platform=%s product_id=%s total_time=%.3fs",
            platform.value, product_id, time.perf_counter() - t0,
        )
        return existing.model_copy(update={"image_url": image_url})

    record = build_record(url, platform, product_id, snapshot, owner_ref=owner_ref)
    try:
        record = await repo.insert(record)
    except StoreConflict:
        logger.info("fetch insert_conflict platform=%s product_id=%s, re-reading", platform.value, product_id)
        winner = await repo.find_one(platform, product_id)
        if winner is None:
            # Conflicting document vanished between insert and re-read (deleted concurrently)
            raise
        return winner

    logger.info(
        "fetch created platform=%s product_id=%s price=%s total_time=%.3fs",
        platform.value, product_id, record.current_price, time.perf_counter() - t0,
    )
    return record

# pricewatch/api/v1/routers/tracker.py
from __future__ import annotations
from typing import Annotated, Optional
import logging
import time

from fastapi import APIRouter, Depends, Query

from pricewatch.api.deps import browser_launcher, mongo_db, owner_ref
from pricewatch.api.v1.schemas.tracker import (
    AlertIn,
    MessageOut,
    ProductListOut,
    ProductOut,
    TrackRequest,
)
from pricewatch.core.errors import ProductNotFound
from pricewatch.domain.models.product import AlertSettings, Platform
from pricewatch.domain.repositories.product_repo import ProductRepo
from pricewatch.domain.services.browser import BrowserLauncher
from pricewatch.domain.services.classifier import detect_platform
from pricewatch.domain.services.tracker_svc import fetch_product_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

OwnerDep = Annotated[Optional[str], Depends(owner_ref)]


@router.post("", response_model=ProductOut)
async def track_product(
    body: TrackRequest,
    owner: OwnerDep,
    db = Depends(mongo_db),
    launcher: BrowserLauncher = Depends(browser_launcher),
):
    """
    Track a product URL: returns the catalog record (with its price history),
    scraping the page only when the product is new or missing its image.
    """
    # Reject unsupported / non-https URLs before anything else runs
    platform = detect_platform(body.url)
    logger.info("Request: track_product url=%s platform=%s owner=%s", body.url, platform.value, owner)
    start_time = time.perf_counter()

    record = await fetch_product_svc(db, body.url, platform, launcher=launcher, owner_ref=owner)

    if owner and record.owner_ref is None:
        if await ProductRepo(db).claim_owner(record.platform, record.product_id, owner):
            record = record.model_copy(update={"owner_ref": owner})

    logger.info(
        "Response: track_product product_id=%s price=%s elapsed_time=%.4fs",
        record.product_id, record.current_price, time.perf_counter() - start_time,
    )
    return ProductOut.from_record(record)


@router.get("", response_model=ProductListOut)
async def list_products(
    owner: OwnerDep,
    limit: int = Query(100, ge=1, le=500),
    db = Depends(mongo_db),
):
    """Tracked products, most recently updated first (only the caller's when X-Owner-Id is sent)."""
    records = await ProductRepo(db).find_by_owner(owner, limit=limit)
    items = [ProductOut.from_record(r) for r in records]
    return ProductListOut(items=items, count=len(items))


@router.get("/{platform}/{product_id}", response_model=ProductOut)
async def get_product(platform: Platform, product_id: str, db = Depends(mongo_db)):
    record = await ProductRepo(db).find_one(platform, product_id)
    if record is None:
        raise ProductNotFound(f"Product not found: {platform.value}/{product_id}")
    return ProductOut.from_record(record)


@router.post("/{platform}/{product_id}/alert", response_model=MessageOut)
async def set_price_alert(
    platform: Platform,
    product_id: str,
    body: AlertIn,
    owner: OwnerDep,
    db = Depends(mongo_db),
):
    alert = AlertSettings(enabled=True, target_price=body.target_price, owner_ref=owner)
    if not await ProductRepo(db).set_alert(platform, product_id, alert):
        raise ProductNotFound(f"Product not found: {platform.value}/{product_id}")
    logger.info("Alert set platform=%s product_id=%s target=%s owner=%s", platform.value, product_id, body.target_price, owner)
    return MessageOut(message="Alert set")


@router.delete("/{platform}/{product_id}", response_model=MessageOut)
async def delete_product(platform: Platform, product_id: str, owner: OwnerDep, db = Depends(mongo_db)):
    if not await ProductRepo(db).delete(platform, product_id, owner_ref=owner):
        raise ProductNotFound(f"Product not found: {platform.value}/{product_id}")
    logger.info("Product deleted platform=%s product_id=%s owner=%s", platform.value, product_id, owner)
    return MessageOut(message="Product deleted successfully")

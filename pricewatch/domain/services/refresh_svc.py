# pricewatch/domain/services/refresh_svc.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional
import asyncio
import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel, Field

from pricewatch.core.config import Settings, get_settings
from pricewatch.domain.models.product import PricePoint, ProductRecord, is_sentinel
from pricewatch.domain.repositories.product_repo import ProductRepo
from pricewatch.domain.services.browser import BrowserLauncher, BrowserSession, launch_browser
from pricewatch.domain.services.events import PriceChangeEvent, PriceEventPublisher
from pricewatch.domain.services.extraction_svc import extract_snapshot

logger = logging.getLogger(__name__)

JOB_ID = "price_refresh"


class RefreshFailure(BaseModel):
    platform: str
    product_id: str
    error: str


class RefreshReport(BaseModel):
    started: bool = True
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    total: int = 0
    updated: int = 0
    price_changes: int = 0
    skipped: int = 0
    failures: List[RefreshFailure] = Field(default_factory=list)
    error: Optional[str] = None


def _label(value: str) -> Optional[str]:
    return None if is_sentinel(value) else value


async def _refresh_one(
    repo: ProductRepo,
    browser: BrowserSession,
    record: ProductRecord,
    *,
    publisher: Optional[PriceEventPublisher],
    selector_timeout_ms: int,
) -> Optional[bool]:
    """
    Re-scrape one record and persist it. Returns True when the price moved,
    False when it did not, and None when the record was deleted mid-refresh.
    """
    async with browser.open_page(record.url) as page:
        snapshot = await extract_snapshot(page, record.platform, selector_timeout_ms=selector_timeout_ms)

    fields = {
        "rating_avg": snapshot.rating_avg,
        "rating_count": snapshot.rating_count,
        "discount_label": _label(snapshot.discount_label),
        "availability_label": _label(snapshot.availability_label),
    }
    price_point = None
    if snapshot.price != record.current_price:
        price_point = PricePoint(price=snapshot.price, timestamp=datetime.now(timezone.utc))

    stored = await repo.apply_refresh(record.platform, record.product_id, fields=fields, price_point=price_point)
    if not stored:
        logger.info(
            "refresh item_gone platform=%s product_id=%s (deleted during refresh)",
            record.platform.value, record.product_id,
        )
        return None

    if price_point is None:
        return False
    if publisher is not None:
        updated = record.model_copy(update={
            **fields,
            "current_price": price_point.price,
            "price_history": [*record.price_history, price_point],
        })
        await publisher.publish(PriceChangeEvent(
            record=updated,
            previous_price=record.current_price,
            new_price=price_point.price,
            observed_at=price_point.timestamp,
        ))
    return True


async def refresh_catalog_once(
    db,
    *,
    launcher: Optional[BrowserLauncher] = None,
    publisher: Optional[PriceEventPublisher] = None,
    item_delay_s: Optional[float] = None,
    settings: Optional[Settings] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RefreshReport:
    """
    One refresh batch over the whole catalog.
    Items are processed strictly one after another with a fixed delay between
    them; a failing item is logged and skipped. Never raises for item or
    browser-launch failures: everything lands in the returned report.
    """
    settings = settings or get_settings()
    launcher = launcher or (lambda: launch_browser(settings))
    delay = settings.REFRESH_ITEM_DELAY_S if item_delay_s is None else item_delay_s
    repo = ProductRepo(db, settings.PRODUCTS_COLLECTION)
    report = RefreshReport()
    t0 = time.perf_counter()

    records = await repo.find_all()
    report.total = len(records)
    logger.info("refresh start products=%s delay=%.1fs", report.total, delay)
    if not records:
        report.finished_at = datetime.now(timezone.utc)
        logger.info("refresh done: no products to update")
        return report

    try:
        async with launcher() as browser:
            for i, record in enumerate(records):
                if i:
                    await sleep(delay)
                try:
                    changed = await _refresh_one(
                        repo, browser, record,
                        publisher=publisher,
                        selector_timeout_ms=settings.SELECTOR_TIMEOUT_MS,
                    )
                except Exception as e:
                    logger.exception(
                        "refresh item_failed platform=%s product_id=%s",
                        record.platform.value, record.product_id,
                    )
                    report.failures.append(RefreshFailure(
                        platform=record.platform.value,
                        product_id=record.product_id,
                        error=f"{type(e).__name__}: {e}",
                    ))
                    continue
                if changed is None:
                    report.skipped += 1
                    continue
                report.updated += 1
                report.price_changes += int(changed)
    except Exception as e:
        # Browser could not be launched (or torn down); report, never crash the host
        logger.exception("refresh batch_failed")
        report.error = f"{type(e).__name__}: {e}"
        report.started = report.updated > 0 or bool(report.failures)

    report.finished_at = datetime.now(timezone.utc)
    logger.info(
        "refresh done total=%s updated=%s price_changes=%s failed=%s total_time=%.1fs",
        report.total, report.updated, report.price_changes, len(report.failures), time.perf_counter() - t0,
    )
    return report


class RefreshScheduler:
    """
    Periodic refresh job on an APScheduler AsyncIOScheduler.
    max_instances=1 keeps batches from overlapping; run_once() is the same
    entry point the interval job uses.
    """

    def __init__(
        self,
        db_provider: Callable[[], object],
        *,
        launcher: Optional[BrowserLauncher] = None,
        publisher: Optional[PriceEventPublisher] = None,
        settings: Optional[Settings] = None,
        interval_hours: Optional[float] = None,
    ):
        self.settings = settings or get_settings()
        self.db_provider = db_provider
        self.launcher = launcher
        self.publisher = publisher
        self.interval_hours = interval_hours or self.settings.REFRESH_INTERVAL_HOURS
        self.last_report: Optional[RefreshReport] = None
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def run_once(self) -> RefreshReport:
        try:
            db = self.db_provider()
            report = await refresh_catalog_once(
                db,
                launcher=self.launcher,
                publisher=self.publisher,
                settings=self.settings,
            )
        except Exception as e:
            # e.g. catalog read failed: report only, the hosting process keeps running
            logger.exception("refresh could not start")
            report = RefreshReport(started=False, error=f"{type(e).__name__}: {e}")
            report.finished_at = datetime.now(timezone.utc)
        self.last_report = report
        return report

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone=self.settings.REFRESH_TIMEZONE)
        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id=JOB_ID,
            max_instances=1,          # prevent overlapping batches
            coalesce=True,
            misfire_grace_time=self.settings.REFRESH_MISFIRE_GRACE_S,
        )
        self._scheduler.start()
        logger.info("Price refresh scheduled every %sh (tz=%s)", self.interval_hours, self.settings.REFRESH_TIMEZONE)

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Price refresh scheduler stopped")
        self._scheduler = None

# pricewatch/domain/services/events.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional
import json
import logging

from pydantic import BaseModel, Field
from redis.asyncio import Redis

from pricewatch.domain.models.product import ProductRecord

logger = logging.getLogger(__name__)


class PriceChangeEvent(BaseModel):
    """Emitted by the scheduled refresh each time it appends a price_history entry."""
    record: ProductRecord
    previous_price: float
    new_price: float
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model_config = {"frozen": True}

    @property
    def dropped(self) -> bool:
        return self.new_price < self.previous_price


PriceChangeSubscriber = Callable[[PriceChangeEvent], Awaitable[None]]


def crosses_alert_threshold(event: PriceChangeEvent) -> bool:
    """
    True when the record has an enabled alert and this change moved the price
    from above the target to at-or-below it.
    """
    alert = event.record.alert
    if not alert or not alert.enabled or alert.target_price is None:
        return False
    return event.previous_price > alert.target_price >= event.new_price


class PriceEventPublisher:
    """
    Fan-out for price-change events: in-process subscribers, plus a Redis
    pub/sub channel when a client is configured. Delivery problems are logged
    and never propagate into the refresh batch.
    """

    def __init__(self, redis: Optional[Redis] = None, channel: str = "pricewatch:price-change"):
        self.redis = redis
        self.channel = channel
        self._subscribers: List[PriceChangeSubscriber] = []

    def subscribe(self, callback: PriceChangeSubscriber) -> None:
        self._subscribers.append(callback)

    async def publish(self, event: PriceChangeEvent) -> None:
        rec = event.record
        logger.info(
            "price_change platform=%s product_id=%s %s -> %s",
            rec.platform.value, rec.product_id, event.previous_price, event.new_price,
        )
        for callback in self._subscribers:
            try:
                await callback(event)
            except Exception:
                logger.exception("price_change subscriber failed callback=%s", getattr(callback, "__name__", callback))

        if self.redis is None:
            return
        payload = {
            "platform": rec.platform.value,
            "product_id": rec.product_id,
            "url": rec.url,
            "name": rec.name,
            "previous_price": event.previous_price,
            "new_price": event.new_price,
            "observed_at": event.observed_at.isoformat(),
            "alert": rec.alert.model_dump() if rec.alert else None,
        }
        try:
            await self.redis.publish(self.channel, json.dumps(payload, separators=(",", ":")))
        except Exception as e:
            logger.warning("price_change redis.publish error channel=%s err=%s", self.channel, e)


async def log_alert_crossings(event: PriceChangeEvent) -> None:
    """Default subscriber: report alert crossings for the notification side to pick up."""
    if crosses_alert_threshold(event):
        alert = event.record.alert
        logger.info(
            "alert_crossed platform=%s product_id=%s owner=%s target=%s new_price=%s",
            event.record.platform.value, event.record.product_id,
            alert.owner_ref, alert.target_price, event.new_price,
        )

# pricewatch/core/lifespan.py
from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from pricewatch.db import mongo, redis as r
from pricewatch.core.config import get_settings
from pricewatch.domain.repositories.product_repo import ProductRepo
from pricewatch.domain.services.events import PriceEventPublisher, log_alert_crossings
from pricewatch.domain.services.refresh_svc import RefreshScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo is required: the unique index is what keeps the catalog deduplicated
    await mongo.connect()
    try:
        await ProductRepo(mongo.get_db(), settings.PRODUCTS_COLLECTION).ensure_indexes()
        logger.info("Product indexes ensured")
    except Exception as e:
        logger.error("Could not ensure product indexes: %s", e)
        raise

    # Redis optional (price-change events only)
    try:
        await r.connect()
    except Exception as e:
        logger.warning("Redis connection failed (ignored): %s", e)

    publisher = PriceEventPublisher(r.get_redis(), channel=settings.PRICE_EVENTS_CHANNEL)
    publisher.subscribe(log_alert_crossings)
    app.state.price_events = publisher

    app.state.refresh_scheduler = None
    if settings.REFRESH_ENABLED:
        scheduler = RefreshScheduler(mongo.get_db, publisher=publisher, settings=settings)
        scheduler.start()
        app.state.refresh_scheduler = scheduler
    else:
        logger.warning("REFRESH_ENABLED=false, scheduled price refresh is off")

    # Application runs
    yield

    # --- Shutdown ---
    if app.state.refresh_scheduler is not None:
        app.state.refresh_scheduler.shutdown()

    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("Redis disconnect failed: %s", e)

    await mongo.disconnect()
    logger.info("Mongo disconnected")

# pricewatch/core/errors.py
from __future__ import annotations
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TrackerError(Exception):
    """Base class for price tracker failures. `status_code` is the HTTP mapping."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedPlatform(TrackerError):
    """Hostname is not on the supported-platform allow-list."""
    status_code = 400


class MalformedURL(TrackerError):
    """Platform is known but the URL carries no usable product id."""
    status_code = 400


class FetchTimeout(TrackerError):
    """Page navigation did not finish within the navigation timeout."""
    status_code = 500


class NavigationFailed(TrackerError):
    """The browser could not load the page (DNS failure, reset connection, protocol error)."""
    status_code = 500


class ExtractionFailed(TrackerError):
    """The page loaded but a critical field (the title) could not be read."""
    status_code = 500


class StoreConflict(TrackerError):
    """Insert hit the (platform, product_id) unique index."""
    status_code = 409


class ProductNotFound(TrackerError):
    status_code = 404


class RefreshNotRun(TrackerError):
    status_code = 404


class RefreshUnavailable(TrackerError):
    """No refresh scheduler is attached to this app."""
    status_code = 503


async def _tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed path=%s err=%s: %s", request.url.path, type(exc).__name__, exc.message)
    else:
        logger.info("Request rejected path=%s err=%s: %s", request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


def install_error_handlers(app: FastAPI) -> None:
    """Render every TrackerError as {"message": ...} with its status code."""
    app.add_exception_handler(TrackerError, _tracker_error_handler)

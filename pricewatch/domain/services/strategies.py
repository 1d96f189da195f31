# pricewatch/domain/services/strategies.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol
import json
import logging

from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

"""
Field extractor strategies.
Each strategy reads one candidate value from a rendered page and returns
None on a miss (selector absent, wait timed out, empty text). They never
raise for a missing element: fallback order is decided by the pipeline.
"""


class FieldStrategy(Protocol):
    async def read(self, page, timeout_ms: int) -> Optional[str]: ...


async def _wait(page, selector: str, timeout_ms: int):
    try:
        return await page.wait_for_selector(selector, timeout=timeout_ms, state="attached")
    except PlaywrightError as e:  # TimeoutError is a subclass
        logger.debug("selector miss selector=%s err=%s", selector, type(e).__name__)
        return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class TextSelector:
    selector: str

    async def read(self, page, timeout_ms: int) -> Optional[str]:
        el = await _wait(page, self.selector, timeout_ms)
        if el is None:
            return None
        try:
            return _clean(await el.text_content())
        except PlaywrightError:
            return None


@dataclass(frozen=True)
class AttrSelector:
    selector: str
    attr: str

    async def read(self, page, timeout_ms: int) -> Optional[str]:
        el = await _wait(page, self.selector, timeout_ms)
        if el is None:
            return None
        try:
            return _clean(await el.get_attribute(self.attr))
        except PlaywrightError:
            return None


@dataclass(frozen=True)
class DynamicImageSelector:
    """
    Amazon's landing image: the `data-a-dynamic-image` attribute holds a JSON
    object keyed by image URL (first key = preferred size). Falls back to
    `data-old-hires`, then `src`.
    """
    selector: str

    async def read(self, page, timeout_ms: int) -> Optional[str]:
        el = await _wait(page, self.selector, timeout_ms)
        if el is None:
            return None
        try:
            dynamic = await el.get_attribute("data-a-dynamic-image")
            if dynamic:
                try:
                    urls = json.loads(dynamic)
                except ValueError:
                    urls = None
                if isinstance(urls, dict) and urls:
                    return _clean(next(iter(urls)))
            for attr in ("data-old-hires", "src"):
                if value := _clean(await el.get_attribute(attr)):
                    return value
        except PlaywrightError:
            return None
        return None


@dataclass(frozen=True)
class Constant:
    """Fixed value, for fields a platform does not render (e.g. Flipkart availability)."""
    value: str

    async def read(self, page, timeout_ms: int) -> Optional[str]:
        return self.value

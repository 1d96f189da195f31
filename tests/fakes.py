"""In-memory stand-ins for the Mongo collection and the Playwright browser."""

from __future__ import annotations

import asyncio
import copy
import json
import types
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pymongo.errors import DuplicateKeyError

from pricewatch.core.errors import FetchTimeout


# ---------------------------------------------------------------------------
# Mongo
# ---------------------------------------------------------------------------

def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, expected in query.items():
        if expected is None:
            if doc.get(key) is not None:
                return False
        elif doc.get(key) != expected:
            return False
    return True


def _project(doc: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
    out = copy.deepcopy(doc)
    if projection and projection.get("_id") == 0:
        out.pop("_id", None)
    return out


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._docs.sort(key=lambda d: (d.get(key) is not None, d.get(key)), reverse=direction < 0)
        return self

    def limit(self, n: int) -> "FakeCursor":
        if n:
            self._docs = self._docs[:n]
        return self

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for doc in self._docs:
            yield doc

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return list(self._docs if length is None else self._docs[:length])


class FakeCollection:
    """Enough of a Motor collection for ProductRepo, unique indexes included."""

    def __init__(self) -> None:
        self.docs: List[Dict[str, Any]] = []
        self.unique_keys: List[tuple[str, ...]] = []
        self.insert_calls = 0
        self.update_calls = 0
        self._next_id = 1

    async def create_index(self, keys, unique: bool = False, name: Optional[str] = None) -> str:
        fields = tuple(k for k, _ in keys)
        if unique and fields not in self.unique_keys:
            self.unique_keys.append(fields)
        return name or "_".join(fields)

    async def find_one(self, query: Dict[str, Any], projection=None) -> Optional[Dict[str, Any]]:
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def find(self, query: Optional[Dict[str, Any]] = None, projection=None) -> FakeCursor:
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, query or {})])

    async def insert_one(self, doc: Dict[str, Any]):
        self.insert_calls += 1
        for fields in self.unique_keys:
            if any(all(d.get(f) == doc.get(f) for f in fields) for d in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error index: {'_'.join(fields)}", 11000)
        stored = copy.deepcopy(doc)
        stored["_id"] = self._next_id
        self._next_id += 1
        self.docs.append(stored)
        return types.SimpleNamespace(inserted_id=stored["_id"])

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any]):
        self.update_calls += 1
        for doc in self.docs:
            if _matches(doc, query):
                before = copy.deepcopy(doc)
                for key, value in update.get("$set", {}).items():
                    doc[key] = copy.deepcopy(value)
                for key, value in update.get("$push", {}).items():
                    doc.setdefault(key, []).append(copy.deepcopy(value))
                return types.SimpleNamespace(matched_count=1, modified_count=int(doc != before))
        return types.SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query: Dict[str, Any]):
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return types.SimpleNamespace(deleted_count=1)
        return types.SimpleNamespace(deleted_count=0)


class FakeDB:
    def __init__(self) -> None:
        self._collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self._collections.setdefault(name, FakeCollection())

    async def command(self, name: str) -> Dict[str, Any]:
        return {"ok": 1}


# ---------------------------------------------------------------------------
# Playwright
# ---------------------------------------------------------------------------

class FakeElement:
    def __init__(self, text: Optional[str] = None, **attrs: str) -> None:
        self.text = text
        self.attrs = {k.replace("_", "-"): v for k, v in attrs.items()}

    async def text_content(self) -> Optional[str]:
        return self.text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)


class FakePage:
    def __init__(self, elements: Dict[str, FakeElement]) -> None:
        self.elements = elements
        self.waited: List[str] = []
        self.closed = False

    async def wait_for_selector(self, selector: str, timeout: Optional[int] = None, state: Optional[str] = None):
        self.waited.append(selector)
        await asyncio.sleep(0)  # yield like a real browser round-trip
        if selector in self.elements:
            return self.elements[selector]
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")


class FakeBrowserSession:
    def __init__(self, pages: Dict[str, Any]) -> None:
        self.pages = pages
        self.opened: List[str] = []
        self.open_pages = 0

    @asynccontextmanager
    async def open_page(self, url: str):
        self.opened.append(url)
        target = self.pages.get(url)
        if target is None:
            raise FetchTimeout(f"Timed out loading {url}")
        if isinstance(target, Exception):
            raise target
        self.open_pages += 1
        try:
            yield target
        finally:
            target.closed = True
            self.open_pages -= 1


class FakeLauncher:
    """Callable browser factory; counts launches and checks everything got closed."""

    def __init__(self, pages: Optional[Dict[str, Any]] = None, launch_error: Optional[Exception] = None) -> None:
        self.pages = pages or {}
        self.launch_error = launch_error
        self.launches = 0
        self.closes = 0
        self.sessions: List[FakeBrowserSession] = []

    def __call__(self):
        return self._session()

    @asynccontextmanager
    async def _session(self):
        if self.launch_error is not None:
            raise self.launch_error
        self.launches += 1
        session = FakeBrowserSession(self.pages)
        self.sessions.append(session)
        try:
            yield session
        finally:
            self.closes += 1

    @property
    def opened(self) -> List[str]:
        return [url for s in self.sessions for url in s.opened]


# ---------------------------------------------------------------------------
# Product pages
# ---------------------------------------------------------------------------

AMAZON_URL = "https://www.amazon.in/dp/B0ABC12345/ref=xyz"
AMAZON_IMAGE = "https://m.media-amazon.com/images/I/widget-big.jpg"
FLIPKART_URL = "https://www.flipkart.com/p/itm123?pid=XYZ987"
FLIPKART_IMAGE = "https://rukminim2.flixcart.com/image/416/416/widget.jpeg"


def amazon_page(
    title: Optional[str] = "Widget",
    price: Optional[str] = "999",
    *,
    image: Optional[str] = AMAZON_IMAGE,
    discount: Optional[str] = "-23%",
    availability: Optional[str] = "In stock",
    rating: Optional[str] = "4.3",
    rating_count: Optional[str] = "1,234 ratings",
) -> FakePage:
    elements: Dict[str, FakeElement] = {}
    if title is not None:
        elements["#productTitle"] = FakeElement(f"  {title}  ")
    if image is not None:
        elements["#landingImage"] = FakeElement(
            data_a_dynamic_image=json.dumps({image: [1500, 1500], image.replace("big", "small"): [300, 300]}),
            src="https://m.media-amazon.com/images/I/placeholder.jpg",
        )
    if price is not None:
        elements[".a-price-whole"] = FakeElement(price)
    if discount is not None:
        elements[".savingsPercentage"] = FakeElement(discount)
    if availability is not None:
        elements["#availability .a-size-medium"] = FakeElement(availability)
    if rating is not None:
        elements["#acrPopover > span.a-declarative > a > span"] = FakeElement(rating)
    if rating_count is not None:
        elements["#acrCustomerReviewText"] = FakeElement(rating_count)
    return FakePage(elements)


def flipkart_page(title: Optional[str] = "Gadget", price: Optional[str] = "₹1,299") -> FakePage:
    elements: Dict[str, FakeElement] = {
        "img.DByuf4": FakeElement(src=FLIPKART_IMAGE),
        ".UkUFwK span": FakeElement("12% off"),
        ".XQDdHH": FakeElement("4.1"),
        ".Wphh3N span span": FakeElement("8,765 Ratings"),
    }
    if title is not None:
        elements[".VU-ZEz"] = FakeElement(title)
    if price is not None:
        elements[".Nx9bqj"] = FakeElement(price)
    return FakePage(elements)

"""URL classification: supported platform + native product id.

Pure functions, no network access. Hostnames are matched exactly; anything
outside ALLOWED_HOSTS is rejected before a browser is ever launched.
"""
from __future__ import annotations
from typing import Tuple
from urllib.parse import urlsplit, parse_qs

from pricewatch.core.errors import MalformedURL, UnsupportedPlatform
from pricewatch.domain.models.product import Platform

ALLOWED_HOSTS: dict[str, Platform] = {
    "amazon.in": Platform.AMAZON,
    "www.amazon.in": Platform.AMAZON,
    "amazon.com": Platform.AMAZON,
    "www.amazon.com": Platform.AMAZON,
    "amzn.in": Platform.AMAZON,
    "flipkart.com": Platform.FLIPKART,
    "www.flipkart.com": Platform.FLIPKART,
}


def _split(url: str):
    try:
        parts = urlsplit((url or "").strip())
        hostname = parts.hostname  # lowercased, port stripped
    except ValueError as e:
        raise MalformedURL(f"Invalid URL format: {e}") from e
    if not hostname:
        raise MalformedURL("Invalid URL format: no hostname")
    return parts, hostname


def detect_platform(url: str) -> Platform:
    parts, hostname = _split(url)
    platform = ALLOWED_HOSTS.get(hostname)
    if platform is None:
        raise UnsupportedPlatform(f"This site is not supported for price tracking: {hostname}")
    if parts.scheme != "https":
        raise MalformedURL("Only HTTPS product URLs are allowed.")
    return platform


def _amazon_id(path: str) -> str:
    segments = path.split("/")
    try:
        idx = segments.index("dp")
    except ValueError:
        raise MalformedURL("Invalid Amazon URL format: missing /dp/<id>") from None
    pid = segments[idx + 1] if idx + 1 < len(segments) else ""
    if not pid:
        raise MalformedURL("Invalid Amazon URL format: empty /dp/ segment")
    return pid


def _flipkart_id(query: str) -> str:
    pid = (parse_qs(query).get("pid") or [""])[0].strip()
    if not pid:
        raise MalformedURL("Invalid Flipkart URL format: missing pid parameter")
    return pid


def extract_product_id(url: str, platform: Platform) -> str:
    parts, _ = _split(url)
    if platform is Platform.AMAZON:
        return _amazon_id(parts.path)
    if platform is Platform.FLIPKART:
        return _flipkart_id(parts.query)
    raise UnsupportedPlatform(f"Unsupported platform: {platform}")


def classify_url(url: str) -> Tuple[Platform, str]:
    """Return (platform, product_id) for a product URL, or raise UnsupportedPlatform / MalformedURL."""
    platform = detect_platform(url)
    return platform, extract_product_id(url, platform)

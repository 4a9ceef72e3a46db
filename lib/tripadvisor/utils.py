"""TripAdvisor helper functions."""

import asyncio
import hashlib
import random
import re
from typing import Optional


GENERATED_ID_PREFIX = "generated_"


def extract_listing_id(url: str) -> Optional[str]:
    """Extract the numeric listing ID from a TripAdvisor URL.

    Handles:
    - /Hotel_Review-g187147-d188150-Reviews-Name.html
    - /Attraction_Review-g60763-d104365-Reviews-or10-Name.html
    """
    patterns = [
        r'-d(\d+)',  # canonical -g<geo>-d<listing> segment
        r'd(\d+)',   # fallback - any d<digits> run
    ]
    for pattern in patterns:
        match = re.search(pattern, url)
        if match:
            return match.group(1)
    return None


def listing_key(url: str) -> str:
    """Deterministic cache key for a listing URL.

    Pagination offsets (-or10-) share the listing ID, so every page of a
    listing maps to the same key.
    """
    listing_id = extract_listing_id(url)
    if listing_id:
        return listing_id
    return hashlib.sha1(url.strip().encode("utf-8")).hexdigest()[:20]


def build_review_id(
    site_id: Optional[str],
    reviewer_name: str,
    review_text: str,
    review_title: str = "",
) -> str:
    """Review identity: site-provided ID, else a hash of author + content prefix."""
    if site_id:
        return site_id.strip()
    content = (review_text or review_title or "").strip()[:100]
    digest = hashlib.sha1(f"{reviewer_name.strip()}|{content}".encode("utf-8")).hexdigest()
    return f"{GENERATED_ID_PREFIX}{digest[:16]}"


def is_tripadvisor_url(url: str) -> bool:
    return "tripadvisor." in url.lower()


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace runs and strip."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip()


async def random_delay(min_ms: int, max_ms: int) -> None:
    """Sleep a random number of milliseconds in [min_ms, max_ms]."""
    if max_ms <= 0:
        return
    delay = random.randint(min(min_ms, max_ms), max_ms)
    await asyncio.sleep(delay / 1000)

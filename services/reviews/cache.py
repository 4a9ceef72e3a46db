"""Per-listing review cache.

One JSON file per listing, keyed by the listing ID so repeated runs against
the same listing hit the same store. The store is rewritten whole on every
persist() that follows a change; an unreadable file is treated as empty
and is never overwritten unless new reviews arrive.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger
from pydantic import ValidationError

from lib.tripadvisor.models import CacheData, CacheStats, Review, utc_now_iso
from lib.tripadvisor.utils import listing_key


DEFAULT_CACHE_DIR = "cache"


def cache_file_for(url: str, cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR) -> Path:
    return Path(cache_dir) / f"reviews_{listing_key(url)}.json"


class ReviewCache:
    """Review store for a single listing.

    Usage:
        cache = ReviewCache(url, cache_dir="cache")
        if not cache.has(review.id):
            cache.put(review)
        cache.persist()
    """

    def __init__(self, hotel_url: str, cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR, load: bool = True):
        self.hotel_url = hotel_url
        self.cache_dir = Path(cache_dir)
        self.key = listing_key(hotel_url)
        self.path = cache_file_for(hotel_url, self.cache_dir)
        self._data = CacheData(hotel_url=hotel_url)
        self._dirty = False
        if load:
            self.reload()

    def has(self, review_id: str) -> bool:
        return review_id in self._data.reviews

    def get(self, review_id: str) -> Optional[Review]:
        return self._data.reviews.get(review_id)

    def put(self, review: Review) -> None:
        if review.id:
            self._data.reviews[review.id] = review
            self._dirty = True

    def bulk_merge(self, reviews: Iterable[Review]) -> int:
        """Insert reviews whose IDs are not cached yet. Returns the number added."""
        added = 0
        for review in reviews:
            if review.id and not self.has(review.id):
                self.put(review)
                added += 1
        logger.info(f"Added {added} new reviews to cache")
        return added

    def filter_new(self, reviews: Iterable[Review]) -> List[Review]:
        return [r for r in reviews if not self.has(r.id)]

    def all(self) -> List[Review]:
        return list(self._data.reviews.values())

    def count(self) -> int:
        return len(self._data.reviews)

    @property
    def last_updated(self) -> str:
        return self._data.last_updated

    def stats(self) -> CacheStats:
        return CacheStats(
            total=self.count(),
            last_updated=self._data.last_updated,
            listing_key=self.key,
            hotel_url=self._data.hotel_url or self.hotel_url,
        )

    def clear(self) -> bool:
        self._data.reviews = {}
        self._dirty = True
        logger.info(f"Cache cleared for listing {self.key}")
        return self.persist()

    @property
    def dirty(self) -> bool:
        return self._dirty

    def persist(self) -> bool:
        """Write the whole store atomically if it changed since the last load or write.

        Returns False on I/O failure. An unchanged store is left untouched on disk.
        """
        if not self._dirty:
            logger.debug(f"Cache unchanged, skipping write: {self.path}")
            return True
        self._data.last_updated = utc_now_iso()
        payload = json.dumps(self._data.to_dict(), indent=2, ensure_ascii=False)
        tmp_path = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".reviews_", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Error saving cache {self.path}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            return False
        self._dirty = False
        logger.debug(f"Cache saved with {self.count()} reviews: {self.path}")
        return True

    def reload(self) -> None:
        """Load the store from disk; missing or corrupt files give an empty store."""
        self._dirty = False
        if not self.path.exists():
            logger.info(f"No existing cache for listing {self.key}, starting fresh")
            self._data = CacheData(hotel_url=self.hotel_url)
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._data = CacheData.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Error loading cache {self.path}, starting fresh: {e}")
            self._data = CacheData(hotel_url=self.hotel_url)
            return
        if not self._data.hotel_url:
            self._data.hotel_url = self.hotel_url
        logger.info(f"Loaded cache with {self.count()} existing reviews")

    def to_dict(self) -> Dict:
        return self._data.to_dict()

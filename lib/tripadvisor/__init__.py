"""TripAdvisor review extraction library.

Card locating, field extraction, pagination and page guards. No cache or
orchestration here - those live in services.reviews.
"""

from lib.tripadvisor.models import (
    Review,
    CacheData,
    CacheStats,
    PageVisit,
    ScrapeSession,
    ScrapingResult,
    ListingInfo,
    TerminationReason,
)
from lib.tripadvisor.locator import CardLocator, is_review_container
from lib.tripadvisor.extractor import ReviewExtractor, is_plausible_name, parse_bubble_rating
from lib.tripadvisor.pagination import PaginationDriver
from lib.tripadvisor.page_guard import BlockedError
from lib.tripadvisor.strategies import Strategy, first_success
from lib.tripadvisor.utils import build_review_id, extract_listing_id, listing_key

__all__ = [
    # Models
    "Review",
    "CacheData",
    "CacheStats",
    "PageVisit",
    "ScrapeSession",
    "ScrapingResult",
    "ListingInfo",
    "TerminationReason",
    # Engine
    "CardLocator",
    "is_review_container",
    "ReviewExtractor",
    "is_plausible_name",
    "parse_bubble_rating",
    "PaginationDriver",
    "BlockedError",
    "Strategy",
    "first_success",
    # Utils
    "build_review_id",
    "extract_listing_id",
    "listing_key",
]

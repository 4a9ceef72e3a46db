"""
Reviews Service - Scrape TripAdvisor listing reviews into a per-listing cache.

Usage:
    from services.reviews import Service, ReviewCache, ReviewExporter, ScraperConfig

    async with BrowserSession() as session:
        service = Service(session.page, ScraperConfig.from_env())
        result = await service.scrape_listing(url, max_reviews=100)
        ReviewExporter("./output").export_all(result)
"""

from services.reviews.cache import ReviewCache, cache_file_for
from services.reviews.config import ScraperConfig
from services.reviews.exporter import ReviewExporter
from services.reviews.service import IService, Service, merge_reviews

__all__ = [
    "IService",
    "Service",
    "merge_reviews",
    "ReviewCache",
    "cache_file_for",
    "ReviewExporter",
    "ScraperConfig",
]

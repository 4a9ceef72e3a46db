"""
Reviews Service - Crawl listing pages and collect reviews.

Drives one page handle through a listing: locate cards, extract them in
bounded batches, merge against the per-listing cache, paginate, and stop on
cap / no next page / stagnation / block / interruption.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Set

from loguru import logger
from playwright.async_api import Locator, Page

from lib.tripadvisor.extractor import ReviewExtractor
from lib.tripadvisor.locator import CardLocator
from lib.tripadvisor.models import (
    PageVisit,
    Review,
    ScrapeSession,
    ScrapingResult,
    TerminationReason,
)
from lib.tripadvisor.page_guard import (
    BlockedError,
    close_popups,
    human_like_scroll,
    log_page_structure,
    read_listing_info,
    trigger_content_loading,
    wait_out_blocking,
)
from lib.tripadvisor.pagination import PaginationDriver
from lib.tripadvisor.utils import random_delay
from services.reviews.cache import ReviewCache
from services.reviews.config import ScraperConfig


BATCH_DELAY = (500, 1000)
LOAD_SETTLE_DELAY = (3000, 5000)


class IService(ABC):
    """Reviews Service - Collect listing reviews into the per-listing cache."""

    @abstractmethod
    async def scrape_listing(
        self,
        url: str,
        max_reviews: Optional[int] = None,
        cache: Optional[ReviewCache] = None,
    ) -> ScrapingResult:
        """Run one session against a listing.

        Navigation failures raise; everything else ends the session with a
        termination reason on the result.
        """
        pass

    @abstractmethod
    async def scrape_many(self, urls: List[str], max_reviews: Optional[int] = None) -> List[ScrapingResult]:
        """Run sessions for each URL in order. Never raises for a single URL."""
        pass


class Service(IService):

    def __init__(
        self,
        page: Page,
        config: Optional[ScraperConfig] = None,
        locator: Optional[CardLocator] = None,
        extractor: Optional[ReviewExtractor] = None,
        pagination: Optional[PaginationDriver] = None,
        cache_factory: Optional[Callable[[str], ReviewCache]] = None,
    ) -> None:
        self._page = page
        self._config = config or ScraperConfig()
        self._locator = locator or CardLocator()
        self._extractor = extractor or ReviewExtractor()
        self._pagination = pagination or PaginationDriver(
            page,
            card_locator=self._locator,
            settle_delay=(self._config.delay_min, self._config.delay_max),
        )
        self._cache_factory = cache_factory or (lambda url: ReviewCache(url, cache_dir=self._config.cache_dir))
        self._stop_requested = False

    def request_stop(self) -> None:
        """Ask running sessions to stop after the current batch."""
        logger.info("Stop requested, finishing current batch...")
        self._stop_requested = True

    # =========================================================================
    # Batch mode
    # =========================================================================

    async def scrape_many(self, urls: List[str], max_reviews: Optional[int] = None) -> List[ScrapingResult]:
        results: List[ScrapingResult] = []
        logger.info(f"Starting batch scraping for {len(urls)} URLs")

        for i, url in enumerate(urls, 1):
            if self._stop_requested:
                logger.warning(f"Stopping batch before URL {i}/{len(urls)}")
                break

            logger.info(f"Processing URL {i}/{len(urls)}: {url}")
            try:
                result = await self.scrape_listing(url, max_reviews)
                logger.info(f"URL {i}/{len(urls)} done: {result.scraped_reviews} reviews")
            except Exception as e:
                logger.error(f"Error processing URL {i}/{len(urls)}: {e}")
                result = ScrapingResult.failed(url, str(e) or type(e).__name__)
            results.append(result)

            if i < len(urls):
                logger.info("Waiting before next URL...")
                await random_delay(self._config.batch_cooldown_min, self._config.batch_cooldown_max)

        successful = sum(1 for r in results if not r.error)
        total = sum(r.scraped_reviews for r in results)
        logger.info(f"Batch complete: {successful}/{len(urls)} URLs succeeded, {total} reviews collected")
        if successful < len(results):
            logger.warning(f"Failed URLs: {len(results) - successful}")
        return results

    # =========================================================================
    # Single listing
    # =========================================================================

    async def scrape_listing(
        self,
        url: str,
        max_reviews: Optional[int] = None,
        cache: Optional[ReviewCache] = None,
    ) -> ScrapingResult:
        cache = cache or self._cache_factory(url)
        logger.info(f"Cache: {cache.count()} existing reviews for listing {cache.key}")

        session = ScrapeSession(url=url)
        collected: List[Review] = []
        try:
            await self._open_listing(url)
            info = await read_listing_info(self._page)
            await self._crawl(session, cache, collected, max_reviews)
        finally:
            cache.persist()

        logger.info(
            f"Scraped {len(collected)} reviews ({session.new_reviews} new, "
            f"{session.cached_reviews} from cache, {cache.count()} total in cache) - "
            f"{session.termination_reason.value if session.termination_reason else 'unknown'}"
        )
        return ScrapingResult(
            url=url,
            total_reviews=cache.count(),
            scraped_reviews=len(collected),
            reviews=collected,
            business_name=info.business_name,
            business_location=info.business_location,
            overall_rating=info.overall_rating,
            error=session.error,
            termination_reason=session.termination_reason,
            pages_visited=session.pages_visited,
        )

    async def _open_listing(self, url: str) -> None:
        logger.info(f"Opening {url}")
        await self._page.goto(url, wait_until="load", timeout=self._config.navigation_timeout)
        await random_delay(*LOAD_SETTLE_DELAY)
        if self._config.trigger_content:
            await trigger_content_loading(self._page)
        await close_popups(self._page)

    async def _crawl(
        self,
        session: ScrapeSession,
        cache: ReviewCache,
        collected: List[Review],
        cap: Optional[int],
    ) -> None:
        """Page loop: PageLoaded -> CardsLocated -> Extracting -> Merged -> advance/stop."""
        seen_ids: Set[str] = set()
        page_number = 1

        while True:
            if self._stop_requested:
                session.termination_reason = TerminationReason.INTERRUPTED
                break
            if _cap_reached(collected, cap):
                session.termination_reason = TerminationReason.CAP_REACHED
                break

            try:
                await wait_out_blocking(self._page, self._config.max_block_retries)
            except BlockedError as e:
                logger.error(f"Giving up on page {page_number}: {e}")
                session.termination_reason = TerminationReason.BLOCKED
                session.error = str(e)
                break

            visit = await self._process_page(page_number, cache, collected, seen_ids, cap)
            session.record_page(visit)
            logger.info(
                f"Page {page_number}: {visit.cards_found} cards, {visit.new} new, "
                f"{visit.reused} cached, {visit.invalid} invalid, {visit.failed} failed "
                f"({len(collected)} collected)"
            )
            if self._config.persist_every_page:
                cache.persist()

            if _cap_reached(collected, cap):
                logger.info(f"Reached maximum reviews limit ({cap})")
                session.termination_reason = TerminationReason.CAP_REACHED
                break
            if visit.added == 0:
                logger.warning("No new reviews on this page, stopping")
                session.termination_reason = TerminationReason.STAGNATION
                break
            if self._stop_requested:
                session.termination_reason = TerminationReason.INTERRUPTED
                break
            if not await self._pagination.advance():
                session.termination_reason = TerminationReason.NO_NEXT_PAGE
                break

            page_number += 1
            await human_like_scroll(self._page)

    async def _process_page(
        self,
        page_number: int,
        cache: ReviewCache,
        collected: List[Review],
        seen_ids: Set[str],
        cap: Optional[int],
    ) -> PageVisit:
        visit = PageVisit(page_number=page_number, url=self._page.url)

        cards = await self._locator.locate(self._page)
        visit.cards_found = len(cards)
        if not cards:
            await log_page_structure(self._page)
            return visit

        concurrency = self._config.card_concurrency
        total_batches = (len(cards) + concurrency - 1) // concurrency
        for batch_start in range(0, len(cards), concurrency):
            if _cap_reached(collected, cap) or self._stop_requested:
                break

            batch = cards[batch_start:batch_start + concurrency]
            batch_number = batch_start // concurrency + 1
            logger.debug(f"Processing batch {batch_number}/{total_batches} ({len(batch)} cards)")

            results = await asyncio.gather(
                *[
                    self._process_card(card, cache, batch_start + i + 1, len(cards))
                    for i, card in enumerate(batch)
                ],
                return_exceptions=True,
            )

            extracted: List[Review] = []
            for offset, result in enumerate(results):
                if isinstance(result, BaseException):
                    logger.warning(f"Error extracting review {batch_start + offset + 1}: {result}")
                    visit.failed += 1
                else:
                    extracted.append(result)
            visit.extracted += len(extracted)

            merge_reviews(extracted, cache, collected, seen_ids, cap, visit)

            if batch_start + concurrency < len(cards):
                await random_delay(*BATCH_DELAY)

        return visit

    async def _process_card(self, card: Locator, cache: ReviewCache, index: int, total: int) -> Review:
        site_id = await self._extractor.resolve_site_id(card)
        if site_id and cache.has(site_id):
            logger.debug(f"[{index}/{total}] Review {site_id} already cached")
            return cache.get(site_id)

        review = await self._extractor.extract(card, site_id)
        logger.debug(
            f"[{index}/{total}] Extracted: {review.reviewer_name} | {review.rating} | "
            f"{review.review_title[:30]!r}"
        )
        return review


def _cap_reached(collected: List[Review], cap: Optional[int]) -> bool:
    return cap is not None and len(collected) >= cap


def merge_reviews(
    reviews: List[Review],
    cache: ReviewCache,
    collected: List[Review],
    seen_ids: Set[str],
    cap: Optional[int],
    visit: PageVisit,
) -> None:
    """Merge one batch of extracted reviews into the session and cache.

    Runs single-threaded after the batch completes, so the cache is never
    written concurrently. Stops accepting records once the cap is reached.
    """
    for review in reviews:
        if _cap_reached(collected, cap):
            break
        if review.id in seen_ids:
            continue
        seen_ids.add(review.id)

        cached = cache.get(review.id)
        if cached is not None:
            collected.append(cached)
            visit.reused += 1
        elif review.is_valid():
            cache.put(review)
            collected.append(review)
            visit.new += 1
        else:
            logger.debug(f"Skipping review {review.id} - missing required data")
            visit.invalid += 1

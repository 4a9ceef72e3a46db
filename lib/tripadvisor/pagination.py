"""Pagination driver for listing review pages."""

from typing import List, Optional

from loguru import logger
from playwright.async_api import Locator, Page

from lib.tripadvisor.locator import CardLocator
from lib.tripadvisor.utils import random_delay


NEXT_PAGE_SELECTORS = [
    'a[data-smoke-attr="pagination-next-arrow"]',
    'a[aria-label="Next page"]',
    '.IGLCo a',                                              # next arrow container
    'a:has-text("Next")',
    'a[href*="or10-"], a[href*="or20-"], a[href*="or30-"]',  # review offset convention
    '.pagination a:last-child',
    'a:has(svg):last-of-type',
]

IDLE_TIMEOUT = 15000
DOM_READY_TIMEOUT = 7500
FINGERPRINT_TIMEOUT = 1000
FINGERPRINT_TEXT_LENGTH = 200


class PaginationDriver:
    """Finds and follows the "next page" link of a listing."""

    def __init__(
        self,
        page: Page,
        card_locator: Optional[CardLocator] = None,
        selectors: Optional[List[str]] = None,
        settle_delay: tuple = (3000, 5000),
    ):
        self._page = page
        self._card_locator = card_locator or CardLocator()
        self.selectors = selectors or NEXT_PAGE_SELECTORS
        self.settle_delay = settle_delay

    async def find_next(self) -> Optional[Locator]:
        """First visible, enabled next-page link with an href."""
        for selector in self.selectors:
            try:
                button = self._page.locator(selector).first
                if not await button.is_visible():
                    continue
                if await _is_disabled(button):
                    logger.debug(f"Next button is disabled: {selector}")
                    continue
                href = await button.get_attribute('href', timeout=1000)
                if href:
                    logger.debug(f"Next page link via {selector}: {href}")
                    return button
            except Exception as e:
                logger.debug(f"Next selector failed {selector}: {e}")
                continue
        return None

    async def has_next(self) -> bool:
        return await self.find_next() is not None

    async def advance(self) -> bool:
        """Go to the next page. True only if it loaded new review cards."""
        button = await self.find_next()
        if button is None:
            logger.info("No next page button found - reached end")
            return False

        before = await content_fingerprint(await self._card_locator.locate(self._page))

        try:
            await button.click()
        except Exception as e:
            logger.warning(f"Failed to click next page: {e}")
            return False

        await self._wait_for_idle()
        await random_delay(*self.settle_delay)

        cards = await self._card_locator.locate(self._page)
        if not cards:
            logger.warning("Next page loaded but shows no review cards, treating as end")
            return False

        if before is not None and await content_fingerprint(cards) == before:
            logger.warning("Next page shows the same reviews as before, treating as end")
            return False

        logger.info(f"Navigated to next page ({len(cards)} cards)")
        return True

    async def _wait_for_idle(self) -> None:
        try:
            await self._page.wait_for_load_state("networkidle", timeout=IDLE_TIMEOUT)
        except Exception:
            try:
                await self._page.wait_for_load_state("domcontentloaded", timeout=DOM_READY_TIMEOUT)
            except Exception as e:
                logger.debug(f"Page did not settle after navigation: {e}")


async def content_fingerprint(cards: List[Locator]) -> Optional[str]:
    """Identify the reviews on screen by the first card's review ID, else its text."""
    if not cards:
        return None
    first = cards[0]
    try:
        review_id = await first.get_attribute('data-reviewid', timeout=FINGERPRINT_TIMEOUT)
        if review_id:
            return f"id:{review_id}"
        text = await first.text_content(timeout=FINGERPRINT_TIMEOUT)
    except Exception as e:
        logger.debug(f"Could not fingerprint cards: {e}")
        return None
    text = " ".join((text or "").split())
    return f"text:{text[:FINGERPRINT_TEXT_LENGTH]}" if text else None


async def _is_disabled(button: Locator) -> bool:
    disabled = await button.get_attribute('disabled', timeout=1000)
    if disabled is not None:
        return True
    aria_disabled = await button.get_attribute('aria-disabled', timeout=1000)
    return (aria_disabled or "").lower() == "true"

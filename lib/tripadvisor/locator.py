"""Review card locator.

Finds the DOM handles that each represent one review on a listing page.
"""

from typing import List, Optional

from loguru import logger
from playwright.async_api import Locator, Page


# Most specific first. The first selector with any match wins.
CARD_SELECTORS = [
    '[data-reviewid]',                                     # hotel pages
    '[data-test-target="review-card"]',
    '.review-container',
    '#tab-review-content div:has(svg[aria-labelledby])',   # divs holding rating icons
    '#tab-review-content div:has([href*="/Profile/"])',    # divs holding profile links
    '#tab-review-content div:has-text("wrote a review")',
    '#tab-review-content > div > div',
    '#tab-review-content [class*="review"]',
    '#tab-review-content > div',
    '[class*="review"]',
    '.ui_column.is-9 > div',
    'article',
    'div[id*="review"]',
]

# Tried inside a single wrapper match; the first with more than one hit wins.
CONTAINER_CHILD_SELECTORS = [
    ':scope > div > div[class*="review"]',
    ':scope > div > div',
    ':scope > div',
    'div[data-automation]',
    'div[class*="ui_column"]',
]

CONTAINER_ID = "tab-review-content"
FILTERS_SENTINEL = "FiltersEnglish"
FILTER_CHROME_MARKERS = ["Filters", "Sort by", "Traveller type", "Traveler type", "Time of year", "Language"]

ATTRIBUTE_TIMEOUT = 1000


def is_review_container(element_id: Optional[str], text: Optional[str]) -> bool:
    """Decide whether a lone match wraps every review instead of being one.

    True for the known reviews tab container, for text carrying the
    filter-bar sentinel, or for text showing two or more filter/sort controls.
    """
    if element_id == CONTAINER_ID:
        return True
    text = text or ""
    if FILTERS_SENTINEL in text:
        return True
    chrome_hits = sum(1 for marker in FILTER_CHROME_MARKERS if marker in text)
    return chrome_hits >= 2


class CardLocator:
    """Locates review cards using an ordered selector list."""

    def __init__(
        self,
        card_selectors: Optional[List[str]] = None,
        child_selectors: Optional[List[str]] = None,
    ):
        self.card_selectors = card_selectors or CARD_SELECTORS
        self.child_selectors = child_selectors or CONTAINER_CHILD_SELECTORS

    async def locate(self, page: Page) -> List[Locator]:
        """Return card handles in document order; empty list if none found."""
        for selector in self.card_selectors:
            try:
                cards = await page.locator(selector).all()
            except Exception as e:
                logger.debug(f"Card selector {selector} failed: {e}")
                continue

            if not cards:
                logger.debug(f"No cards with: {selector}")
                continue

            logger.info(f"Found {len(cards)} review cards with selector: {selector}")
            if len(cards) == 1:
                return await self._split_container(cards[0])
            return cards

        logger.warning("No review cards found with any selector")
        return []

    async def _split_container(self, card: Locator) -> List[Locator]:
        element_id = await _safe_attribute(card, "id")
        text = await _safe_text(card)
        if not is_review_container(element_id, text):
            return [card]

        logger.info("Single match looks like the reviews container, looking inside")
        for selector in self.child_selectors:
            try:
                inner = await card.locator(selector).all()
            except Exception as e:
                logger.debug(f"Child selector {selector} failed: {e}")
                continue
            if len(inner) > 1:
                logger.info(f"Found {len(inner)} individual reviews with: {selector}")
                return inner

        logger.warning("Could not split reviews container, using it as a single card")
        return [card]


async def _safe_attribute(element: Locator, name: str) -> Optional[str]:
    try:
        return await element.get_attribute(name, timeout=ATTRIBUTE_TIMEOUT)
    except Exception:
        return None


async def _safe_text(element: Locator) -> str:
    try:
        return await element.text_content(timeout=ATTRIBUTE_TIMEOUT) or ""
    except Exception:
        return ""

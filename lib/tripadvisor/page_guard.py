"""Page guard - blocking screens, popups, lazy content and diagnostics.

Everything here is best-effort: failures are logged and swallowed, except a
block that outlasts its retry budget, which raises BlockedError.
"""

import random
from typing import Optional

from loguru import logger
from playwright.async_api import Page

from lib.tripadvisor.models import ListingInfo
from lib.tripadvisor.utils import random_delay


VISIBLE_TIMEOUT = 2000

CHALLENGE_SELECTOR = '.cf-challenge, .cf-checking, #challenge-form'
CAPTCHA_SELECTORS = [
    '.g-recaptcha',
    '#captcha',
    '[data-sitekey]',
    '.captcha',
    'iframe[src*="recaptcha"]',
    '.hcaptcha',
]
RATE_LIMIT_TEXTS = ['too many requests', 'rate limit', 'slow down', 'try again later']

# (min_ms, max_ms) wait per block kind before checking again
BLOCK_WAITS = {
    "challenge": (2000, 4000),
    "captcha": (10000, 15000),
    "rate_limit": (15000, 25000),
}

REVIEWS_TAB_SELECTORS = [
    'a[href*="#REVIEWS"]',
    'button:has-text("Reviews")',
    'a:has-text("Reviews")',
    '[data-tab="REVIEWS"]',
    '.ui_tab[href*="Reviews"]',
]

COOKIE_BUTTON_SELECTOR = 'button:has-text("Accept"), button:has-text("I Accept")'
CLOSE_BUTTON_SELECTOR = '[aria-label="Close"], .ui_close_x, button:has-text("×")'


class BlockedError(RuntimeError):
    """Raised when a challenge, captcha or rate-limit screen does not clear."""

    def __init__(self, kind: str, attempts: int):
        self.kind = kind
        self.attempts = attempts
        super().__init__(f"Page blocked by {kind} after {attempts} checks")


async def _is_visible(page: Page, selector: str) -> bool:
    try:
        return await page.locator(selector).first.is_visible()
    except Exception:
        return False


async def check_blocking(page: Page) -> Optional[str]:
    """Detect a blocking screen. Returns 'challenge', 'captcha', 'rate_limit' or None."""
    if await _is_visible(page, CHALLENGE_SELECTOR):
        return "challenge"
    for selector in CAPTCHA_SELECTORS:
        if await _is_visible(page, selector):
            return "captcha"
    for text in RATE_LIMIT_TEXTS:
        if await _is_visible(page, f':text("{text}")'):
            return "rate_limit"
    return None


async def wait_out_blocking(page: Page, max_attempts: int = 3) -> None:
    """Wait while a blocking screen is shown, with growing backoff.

    Gives up after max_attempts waits and raises BlockedError.
    """
    for attempt in range(1, max_attempts + 1):
        kind = await check_blocking(page)
        if kind is None:
            return
        min_ms, max_ms = BLOCK_WAITS[kind]
        logger.warning(f"Blocking screen detected ({kind}), waiting (attempt {attempt}/{max_attempts})")
        await random_delay(min_ms * attempt, max_ms * attempt)

    kind = await check_blocking(page)
    if kind is not None:
        raise BlockedError(kind, max_attempts)


async def trigger_content_loading(page: Page, delay_scale: float = 1.0) -> None:
    """Scroll and open the Reviews tab so lazy-loaded reviews render."""
    try:
        logger.info("Triggering dynamic content loading...")
        for _ in range(5):
            await page.mouse.wheel(0, 500)
            await random_delay(int(1000 * delay_scale), int(2000 * delay_scale))

        for selector in REVIEWS_TAB_SELECTORS:
            try:
                tab = page.locator(selector).first
                if await tab.is_visible():
                    logger.info(f"Found Reviews tab with selector: {selector}")
                    await tab.click(timeout=VISIBLE_TIMEOUT)
                    await random_delay(int(3000 * delay_scale), int(5000 * delay_scale))
                    break
            except Exception:
                continue

        for _ in range(3):
            await page.mouse.wheel(0, 800)
            await random_delay(int(1500 * delay_scale), int(2500 * delay_scale))
    except Exception as e:
        logger.warning(f"Error triggering content loading, continuing: {e}")


async def close_popups(page: Page) -> None:
    """Dismiss the cookie banner and any modal dialogs."""
    try:
        cookie_button = page.locator(COOKIE_BUTTON_SELECTOR).first
        if await cookie_button.is_visible():
            await cookie_button.click(timeout=VISIBLE_TIMEOUT)
            await random_delay(1000, 2000)

        close_buttons = page.locator(CLOSE_BUTTON_SELECTOR)
        for i in range(await close_buttons.count()):
            button = close_buttons.nth(i)
            if await button.is_visible():
                await button.click(timeout=VISIBLE_TIMEOUT)
                await random_delay(500, 1000)
    except Exception as e:
        logger.debug(f"Popup closing failed: {e}")


async def human_like_scroll(page: Page) -> None:
    for _ in range(random.randint(2, 4)):
        await page.mouse.wheel(0, random.randint(200, 700))
        await random_delay(200, 800)


async def log_page_structure(page: Page) -> None:
    """Log what review-ish markup the page has when no cards were found."""
    logger.warning("Debugging page structure - looking for review elements...")
    try:
        logger.info(f"Page title: {await page.title()}")
        logger.info(f"Current URL: {page.url}")

        for text in ['review', 'rating', 'wrote a review', 'bubble']:
            count = await page.locator(f':text("{text}")').count()
            if count:
                logger.info(f"  {count} elements containing '{text}'")

        for attr in ['data-reviewid', 'data-test', 'data-automation', 'data-track']:
            elements = page.locator(f'[{attr}]')
            count = await elements.count()
            if not count:
                continue
            logger.info(f"  {count} elements with {attr} attribute")
            for i in range(min(3, count)):
                value = await elements.nth(i).get_attribute(attr, timeout=VISIBLE_TIMEOUT)
                logger.debug(f"    - {attr}=\"{value}\"")

        for cls in ['.review', '.ui_column', '.card', '.container']:
            count = await page.locator(cls).count()
            if count:
                logger.info(f"  {count} elements with class '{cls}'")
    except Exception as e:
        logger.warning(f"Error during page structure debugging: {e}")


async def read_listing_info(page: Page) -> ListingInfo:
    """Best-effort business name, location and overall rating from the header."""
    info = {}
    probes = {
        "business_name": ['h1[data-automation="mainH1"]', '#HEADING', 'h1'],
        "business_location": [
            '[data-automation="hotel-address"]',
            'span.biGQs._P.pZUbB.KxBGd',
            '.public-business-listing-ContactInfo__nonWebLinkText--nGymU',
        ],
        "overall_rating": [
            '[data-automation="reviewBubbleScore"]',
            '[data-test-target="review-rating"] span',
            '.uwJeR.P',
        ],
    }
    for key, selectors in probes.items():
        for selector in selectors:
            try:
                element = page.locator(selector).first
                if await element.count() == 0:
                    continue
                text = (await element.text_content(timeout=VISIBLE_TIMEOUT) or "").strip()
            except Exception:
                continue
            if text:
                info[key] = text
                break
    return ListingInfo(**info)

"""Review field extractor.

Pulls typed fields out of one review card using ordered fallback strategies.
Missing markup never raises: absent fields come back as "" or 0.
"""

import asyncio
import re
from typing import List, Optional, Tuple

from loguru import logger
from playwright.async_api import Locator

from lib.tripadvisor.models import Review
from lib.tripadvisor.strategies import Strategy, first_success
from lib.tripadvisor.utils import build_review_id, clean_text


FIELD_TIMEOUT = 2000
NAME_TIMEOUT = 1000

ANONYMOUS = "Anonymous"

MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 200
MIN_TEXT_LENGTH = 20

# Terms that show up in card chrome and must never be taken for a name.
UI_CHROME_TERMS = [
    'filters', 'filter', 'sort', 'menu', 'search', 'show more', 'show less',
    'read more', 'wrote a review', 'wrote', 'contributions', 'contribution',
    'helpful votes', 'helpful', "hotel's favourite", 'response from',
    'date of stay', 'trip type', 'reviews', 'photos', 'location', 'contact',
    'book now', 'check availability', 'overview', 'amenities', 'policies',
    'the area', 'guest reviews', 'map', 'nearby', 'similar', 'more', 'less',
    'all', 'none', 'apply', 'clear', 'close', 'open', 'save', 'share', 'like',
    'follow', 'traveller', 'traveler', 'business', 'family', 'couple', 'solo',
    'friends',
]
_UI_CHROME_RE = re.compile(
    r'\b(?:' + '|'.join(re.escape(t) for t in sorted(UI_CHROME_TERMS, key=len, reverse=True)) + r')\b',
    re.IGNORECASE,
)
_MONTH_RE = re.compile(
    r'^(?:january|february|march|april|may|june|july|august|september|october|november|december'
    r'|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec)\.?(?:\s+\d|\s*$)',
    re.IGNORECASE,
)
_CAPITALIZED_RE = re.compile(r'^[A-Z][a-z]+')

BUBBLE_RE = re.compile(r'(\d+(?:\.\d+)?)\s+of\s+\d+\s+bubble', re.IGNORECASE)
# Filled bubble path; the empty bubble shares the prefix but has an inner ring.
FILLED_BUBBLE_SELECTOR = 'svg path[d*="12 0C5.388"]:not([d*="2a9.983"])'

NAME_PATTERN_SELECTORS = [
    'a[href*="/Profile/"] > span',
    r'span:text-matches("^[A-Z][a-z]+\\s+[A-Z]")',  # First Last
    r'span:text-matches("^[A-Z][a-z]{2,}$")',        # single name
]

TITLE_SELECTORS = [
    '[data-test-target="review-title"]',
    '[data-test-target="review-title"] a',
    '[data-test-target="review-title"] span',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'a[href*="ShowUserReviews"]',
    'a[href*="Reviews"] span',
    'span:text-matches(".{10,100}")',
]

TEXT_SELECTORS = [
    '[data-automation*="reviewText"]',
    '[data-automation^="reviewText"]',
    'span:text-matches(".{50,}")',
    'div:has-text("Read more")',
    'div:text-matches(".{100,}")',
    ':text-matches(".{80,}")',
]

# Anchored on the "Date of stay:" label; a hit here also fills stay_date.
STAY_DATE_SELECTORS = [
    'text="Date of stay:" >> xpath=following-sibling::span',
    ':text("Date of stay:") + span',
    'div:has-text("Date of stay:") span:last-child',
]
DATE_SELECTORS = STAY_DATE_SELECTORS + [
    r'span:text-matches("(January|February|March|April|May|June|July|August|September|October|November|December) \\d{4}")',
    r'span:text-matches("\\w+ \\d{4}")',
    r'span:text-matches("\\d{4}")',
]
DATE_CONTAMINATION = ['contributions', 'helpful votes']
_DATE_LABEL_RE = re.compile(r'^date of stay:\s*', re.IGNORECASE)

TRIP_TYPE_RE = re.compile(
    r'Trip type:\s*(Travell?ed (?:as a couple|on business|with family|with friends|solo)|[A-Z][a-z]+)'
)
LOCATION_SELECTOR = r'span:text-matches("^[A-Z][A-Za-z .\'-]+, [A-Z][A-Za-z .\'-]+$")'
HELPFUL_VOTES_SELECTOR = r'span:text-matches("\\d[\\d,]* helpful votes?", "i")'
HELPFUL_VOTES_RE = re.compile(r'(\d[\d,]*)\s+helpful votes?', re.IGNORECASE)


def is_ui_chrome(text: str) -> bool:
    return bool(_UI_CHROME_RE.search(text))


def is_plausible_name(text: Optional[str], require_capital: bool = False) -> bool:
    """Check a candidate reviewer name against denylist, month and length guards."""
    if not text:
        return False
    text = text.strip()
    if not (2 < len(text) < 50):
        return False
    if not text[0].isalpha():
        return False
    if require_capital and not _CAPITALIZED_RE.match(text):
        return False
    if _MONTH_RE.match(text):
        return False
    return not is_ui_chrome(text)


def parse_bubble_rating(text: Optional[str]) -> Optional[int]:
    """Parse '4 of 5 bubbles' / '4.0 of 5 bubbles' into an int."""
    if not text or 'bubble' not in text.lower():
        return None
    match = BUBBLE_RE.search(text)
    if not match:
        return None
    return int(float(match.group(1)))


def parse_helpful_votes(text: Optional[str]) -> Optional[int]:
    """Parse '12 helpful votes' / '1,204 helpful votes' into an int."""
    match = HELPFUL_VOTES_RE.search(text or "")
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def is_clean_date(text: Optional[str]) -> bool:
    if not text or not text.strip():
        return False
    lower = text.lower()
    return not any(term in lower for term in DATE_CONTAMINATION)


async def _first_text(card: Locator, selector: str, timeout: int = FIELD_TIMEOUT) -> str:
    """Text of the first match of selector, waiting at most timeout ms."""
    element = card.locator(selector).first
    await element.wait_for(timeout=timeout)
    return (await element.text_content(timeout=timeout) or "").strip()


def _selector_strategies(selectors: List[str], timeout: int = FIELD_TIMEOUT) -> List[Strategy[str]]:
    def make(selector: str) -> Strategy[str]:
        async def run(card: Locator) -> Optional[str]:
            return await _first_text(card, selector, timeout)
        return Strategy(selector, run)
    return [make(s) for s in selectors]


# =============================================================================
# Reviewer name
# =============================================================================

async def _name_from_profile_link(card: Locator) -> Optional[str]:
    for link in await card.locator('a[href*="/Profile/"]').all():
        try:
            text = await link.locator('span').first.text_content(timeout=NAME_TIMEOUT)
        except Exception:
            continue
        if is_plausible_name(text):
            return clean_text(text)
    return None


async def _name_near_wrote_marker(card: Locator) -> Optional[str]:
    marker = card.locator('text=/wrote a review/').first
    parent = marker.locator('xpath=..')
    text = await parent.locator('a[href*="/Profile/"] span').first.text_content(timeout=NAME_TIMEOUT)
    if is_plausible_name(text):
        return clean_text(text)
    return None


async def _name_from_patterns(card: Locator) -> Optional[str]:
    for selector in NAME_PATTERN_SELECTORS:
        try:
            elements = await card.locator(selector).all()
        except Exception as e:
            logger.debug(f"Name selector {selector} failed: {e}")
            continue
        for element in elements:
            try:
                await element.wait_for(timeout=NAME_TIMEOUT)
                text = await element.text_content(timeout=NAME_TIMEOUT)
            except Exception:
                continue
            if is_plausible_name(text, require_capital=True):
                return clean_text(text)
    return None


async def _name_from_any_span(card: Locator) -> Optional[str]:
    for span in await card.locator('span').all():
        try:
            text = await span.text_content(timeout=NAME_TIMEOUT)
        except Exception:
            continue
        if is_plausible_name(text, require_capital=True):
            return clean_text(text)
    return None


NAME_STRATEGIES: List[Strategy[str]] = [
    Strategy("profile_link_span", _name_from_profile_link),
    Strategy("wrote_a_review_marker", _name_near_wrote_marker),
    Strategy("capitalized_patterns", _name_from_patterns),
    Strategy("any_capitalized_span", _name_from_any_span),
]


# =============================================================================
# Rating
# =============================================================================

async def _rating_from_svg_title(card: Locator) -> Optional[int]:
    for svg in await card.locator('svg').all():
        title = svg.locator('title')
        if await title.count() == 0:
            continue
        try:
            text = await title.first.text_content(timeout=FIELD_TIMEOUT)
        except Exception:
            continue
        rating = parse_bubble_rating(text)
        if rating is not None:
            return rating
    return None


async def _rating_from_aria_label(card: Locator) -> Optional[int]:
    svg = card.locator('svg[aria-labelledby]').first
    aria_id = await svg.get_attribute('aria-labelledby', timeout=FIELD_TIMEOUT)
    if not aria_id:
        return None
    text = await card.locator(f'title[id="{aria_id}"]').first.text_content(timeout=FIELD_TIMEOUT)
    return parse_bubble_rating(text)


async def _rating_from_bubble_count(card: Locator) -> Optional[int]:
    filled = await card.locator(FILLED_BUBBLE_SELECTOR).count()
    return filled or None


RATING_STRATEGIES: List[Strategy[int]] = [
    Strategy("svg_title", _rating_from_svg_title),
    Strategy("aria_labelledby", _rating_from_aria_label),
    Strategy("filled_bubble_count", _rating_from_bubble_count),
]


# =============================================================================
# Extractor
# =============================================================================

class ReviewExtractor:
    """Extracts a Review from a single card handle."""

    def __init__(self, field_timeout: int = FIELD_TIMEOUT):
        self.field_timeout = field_timeout
        self._title_strategies = _selector_strategies(TITLE_SELECTORS, field_timeout)
        self._text_strategies = _selector_strategies(TEXT_SELECTORS, field_timeout)
        self._date_strategies = _selector_strategies(DATE_SELECTORS, field_timeout)

    async def resolve_site_id(self, card: Locator) -> Optional[str]:
        """Site-provided review identifier, if the card carries one."""
        try:
            review_id = await card.get_attribute('data-reviewid', timeout=NAME_TIMEOUT)
            if review_id:
                return review_id.strip()
            element_id = await card.get_attribute('id', timeout=NAME_TIMEOUT) or ""
        except Exception:
            return None
        if 'review' in element_id.lower():
            return element_id
        return None

    async def extract(self, card: Locator, site_id: Optional[str] = None) -> Review:
        """Extract every field of a card concurrently."""
        name, rating, title, text, (date, stay_date), trip_type, location, votes = await asyncio.gather(
            self.extract_reviewer_name(card),
            self.extract_rating(card),
            self.extract_title(card),
            self.extract_text(card),
            self.extract_date(card),
            self.extract_trip_type(card),
            self.extract_reviewer_location(card),
            self.extract_helpful_votes(card),
        )
        return Review(
            id=build_review_id(site_id, name, text, title),
            reviewer_name=name,
            reviewer_location=location,
            rating=rating,
            review_title=title,
            review_text=text,
            review_date=date,
            stay_date=stay_date,
            trip_type=trip_type,
            helpful_votes=votes,
            is_verified=False,
        )

    async def extract_reviewer_name(self, card: Locator) -> str:
        name, strategy = await first_success(NAME_STRATEGIES, card)
        if name:
            logger.debug(f"Reviewer name via {strategy}: {name}")
            return name
        return ANONYMOUS

    async def extract_rating(self, card: Locator) -> int:
        rating, strategy = await first_success(
            RATING_STRATEGIES, card, accept=lambda r: 1 <= r <= 5,
        )
        if rating:
            logger.debug(f"Rating via {strategy}: {rating}")
            return rating
        return 0

    async def extract_title(self, card: Locator) -> str:
        title, _ = await first_success(
            self._title_strategies, card,
            accept=lambda t: MIN_TITLE_LENGTH < len(t) < MAX_TITLE_LENGTH,
        )
        return clean_text(title)

    async def extract_text(self, card: Locator) -> str:
        text, _ = await first_success(
            self._text_strategies, card,
            accept=lambda t: len(t) > MIN_TEXT_LENGTH,
        )
        return (text or "").strip()

    async def extract_date(self, card: Locator) -> Tuple[str, Optional[str]]:
        """Returns (review_date, stay_date); stay_date only when label-anchored."""
        date, strategy = await first_success(self._date_strategies, card, accept=is_clean_date)
        if not date:
            return "", None
        date = _DATE_LABEL_RE.sub("", clean_text(date))
        stay_date = date if strategy in STAY_DATE_SELECTORS else None
        return date, stay_date

    async def extract_trip_type(self, card: Locator) -> Optional[str]:
        try:
            text = await _first_text(card, ':text("Trip type:") >> xpath=..', self.field_timeout)
        except Exception:
            return None
        match = TRIP_TYPE_RE.search(clean_text(text))
        return match.group(1).strip() if match else None

    async def extract_reviewer_location(self, card: Locator) -> Optional[str]:
        try:
            text = clean_text(await _first_text(card, LOCATION_SELECTOR, NAME_TIMEOUT))
        except Exception:
            return None
        if not text or any(ch.isdigit() for ch in text) or is_ui_chrome(text):
            return None
        return text

    async def extract_helpful_votes(self, card: Locator) -> int:
        try:
            text = await _first_text(card, HELPFUL_VOTES_SELECTOR, NAME_TIMEOUT)
        except Exception:
            return 0
        return parse_helpful_votes(text) or 0

"""TripAdvisor review Pydantic models.

Python attributes are snake_case; JSON (cache files, exports) uses the
camelCase aliases so files stay compatible across runs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        """Convert to camelCase dict for JSON serialization."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Review(_CamelModel):
    """A single review scraped from a listing page."""
    id: str
    reviewer_name: str = ""
    reviewer_location: Optional[str] = None
    rating: int = Field(default=0, ge=0, le=5)  # 0 = unresolved
    review_title: str = ""
    review_text: str = ""
    review_date: str = ""  # site-native format, not normalized
    helpful_votes: Optional[int] = None
    total_votes: Optional[int] = None
    is_verified: Optional[bool] = None
    trip_type: Optional[str] = None
    stay_date: Optional[str] = None

    def is_valid(self) -> bool:
        """A review is persistable only with a reviewer and some content."""
        has_name = bool(self.reviewer_name and self.reviewer_name.strip())
        has_content = bool(self.review_title.strip() or self.review_text.strip())
        return has_name and has_content


class CacheData(_CamelModel):
    """Body of a per-listing cache file."""
    reviews: Dict[str, Review] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=utc_now_iso)
    hotel_url: str = ""


class CacheStats(_CamelModel):
    total: int
    last_updated: str
    listing_key: str
    hotel_url: str


class TerminationReason(str, Enum):
    CAP_REACHED = "cap_reached"
    NO_NEXT_PAGE = "no_next_page"
    STAGNATION = "stagnation"
    BLOCKED = "blocked"
    INTERRUPTED = "interrupted"
    ERROR = "error"


class PageVisit(BaseModel):
    """Outcome of processing one listing page."""
    page_number: int
    url: str = ""
    cards_found: int = 0
    extracted: int = 0
    new: int = 0
    reused: int = 0
    invalid: int = 0
    failed: int = 0

    @property
    def added(self) -> int:
        """Records this page contributed to the session result."""
        return self.new + self.reused


class ScrapeSession(BaseModel):
    """Ephemeral state of one listing crawl. Never persisted."""
    url: str
    pages: List[PageVisit] = Field(default_factory=list)
    new_reviews: int = 0
    cached_reviews: int = 0
    invalid_reviews: int = 0
    failed_cards: int = 0
    termination_reason: Optional[TerminationReason] = None
    error: Optional[str] = None

    @property
    def pages_visited(self) -> int:
        return len(self.pages)

    def record_page(self, visit: PageVisit) -> None:
        self.pages.append(visit)
        self.new_reviews += visit.new
        self.cached_reviews += visit.reused
        self.invalid_reviews += visit.invalid
        self.failed_cards += visit.failed


class ListingInfo(BaseModel):
    """Header information of a listing page (best-effort)."""
    business_name: Optional[str] = None
    business_location: Optional[str] = None
    overall_rating: Optional[str] = None


class ScrapingResult(_CamelModel):
    """Result of one listing session, consumed by the exporter."""
    url: str
    total_reviews: int = 0
    scraped_reviews: int = 0
    reviews: List[Review] = Field(default_factory=list)
    scraped_at: str = Field(default_factory=utc_now_iso)
    business_name: Optional[str] = None
    business_location: Optional[str] = None
    overall_rating: Optional[str] = None
    error: Optional[str] = None
    termination_reason: Optional[TerminationReason] = None
    pages_visited: Optional[int] = None

    @classmethod
    def failed(cls, url: str, error: str) -> "ScrapingResult":
        return cls(url=url, error=error, termination_reason=TerminationReason.ERROR)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

"""Pytest configuration and shared fixtures."""

from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from lib.tripadvisor.models import Review


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test (hits external services)")
    config.addinivalue_line("markers", "online: mark test as online test (hits external APIs)")


# =============================================================================
# In-memory DOM
# =============================================================================
# Minimal stand-ins for Playwright's Locator/Page. An element maps selectors
# to child elements; querying an unknown selector matches nothing. Reads on
# an empty match raise like a Playwright timeout would.


class FakeElement:
    def __init__(
        self,
        text: str = "",
        attrs: Optional[Dict[str, str]] = None,
        children: Optional[Dict[str, List["FakeElement"]]] = None,
        visible: bool = True,
        on_click: Optional[Callable[[], None]] = None,
    ):
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.visible = visible
        self.on_click = on_click


class FakeLocator:
    def __init__(self, elements: List[FakeElement]):
        self._elements = elements

    def _one(self) -> FakeElement:
        if not self._elements:
            raise TimeoutError("Timeout: no element matches")
        return self._elements[0]

    def locator(self, selector: str) -> "FakeLocator":
        matches: List[FakeElement] = []
        for element in self._elements[:1]:
            matches.extend(element.children.get(selector, []))
        return FakeLocator(matches)

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self._elements[:1])

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self._elements[index:index + 1])

    async def all(self) -> List["FakeLocator"]:
        return [FakeLocator([e]) for e in self._elements]

    async def count(self) -> int:
        return len(self._elements)

    async def text_content(self, timeout: Optional[float] = None) -> str:
        return self._one().text

    async def get_attribute(self, name: str, timeout: Optional[float] = None) -> Optional[str]:
        return self._one().attrs.get(name)

    async def wait_for(self, timeout: Optional[float] = None, state: Optional[str] = None) -> None:
        self._one()

    async def is_visible(self) -> bool:
        return bool(self._elements) and self._elements[0].visible

    async def click(self, timeout: Optional[float] = None) -> None:
        element = self._one()
        if element.on_click:
            element.on_click()


class FakePage(FakeLocator):
    """Page whose DOM is the children of a root element; swap `root` to navigate."""

    def __init__(self, root: Optional[FakeElement] = None, url: str = "https://www.tripadvisor.com/"):
        super().__init__([root or FakeElement()])
        self.url = url
        self.mouse = MagicMock()
        self.mouse.wheel = AsyncMock()
        self.goto = AsyncMock()
        self.wait_for_load_state = AsyncMock()

    @property
    def root(self) -> FakeElement:
        return self._elements[0]

    @root.setter
    def root(self, element: FakeElement) -> None:
        self._elements = [element]

    async def title(self) -> str:
        return "Fake page"


@pytest.fixture
def element():
    """Factory for FakeElement nodes."""
    return FakeElement


@pytest.fixture
def card(element):
    """Wrap a FakeElement (or build one from kwargs) into a card locator."""
    def _card(node: Optional[FakeElement] = None, **kwargs) -> FakeLocator:
        return FakeLocator([node or element(**kwargs)])
    return _card


@pytest.fixture
def fake_page(element):
    """Factory for FakePage; pass the root's selector -> children mapping."""
    def _page(children: Optional[Dict[str, List[FakeElement]]] = None, url: str = "https://www.tripadvisor.com/") -> FakePage:
        return FakePage(element(children=children or {}), url=url)
    return _page


# =============================================================================
# Reviews
# =============================================================================

@pytest.fixture
def make_review():
    """Factory for valid Review records."""
    def _make(review_id: str, **overrides) -> Review:
        fields = dict(
            id=review_id,
            reviewer_name=f"Reviewer {review_id}",
            rating=4,
            review_title=f"Title for {review_id}",
            review_text=f"Review text for {review_id} that is long enough to count.",
            review_date="March 2024",
        )
        fields.update(overrides)
        return Review(**fields)
    return _make


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache"
    path.mkdir()
    return path

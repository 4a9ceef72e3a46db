"""Tests for TripAdvisor helper functions."""

from unittest.mock import AsyncMock, patch

import pytest

from lib.tripadvisor.utils import (
    GENERATED_ID_PREFIX,
    build_review_id,
    clean_text,
    extract_listing_id,
    is_tripadvisor_url,
    listing_key,
    random_delay,
)


HOTEL_URL = "https://www.tripadvisor.com/Hotel_Review-g187147-d188150-Reviews-Hotel_Name-Paris.html"


class TestExtractListingId:

    def test_hotel_url(self):
        assert extract_listing_id(HOTEL_URL) == "188150"

    def test_paginated_url_keeps_listing_id(self):
        url = "https://www.tripadvisor.com/Hotel_Review-g187147-d188150-Reviews-or10-Hotel_Name-Paris.html"
        assert extract_listing_id(url) == "188150"

    def test_no_id(self):
        assert extract_listing_id("https://www.tripadvisor.com/Search?q=paris") is None


class TestListingKey:

    def test_uses_listing_id(self):
        assert listing_key(HOTEL_URL) == "188150"

    def test_fallback_is_stable_hash(self):
        url = "https://www.tripadvisor.com/Search?q=paris"
        assert listing_key(url) == listing_key(url)
        assert len(listing_key(url)) == 20

    def test_fallback_keys_do_not_collide(self):
        assert listing_key("https://example.com/a?x=1") != listing_key("https://example.com/a/x=1")


class TestBuildReviewId:

    def test_site_id_wins(self):
        assert build_review_id(" 12345 ", "Alice", "text") == "12345"

    def test_generated_id_is_deterministic(self):
        first = build_review_id(None, "Alice", "Lovely stay, great breakfast")
        second = build_review_id(None, "Alice", "Lovely stay, great breakfast")
        assert first == second
        assert first.startswith(GENERATED_ID_PREFIX)

    def test_generated_id_only_uses_text_prefix(self):
        base = "x" * 100
        assert build_review_id(None, "Alice", base + "tail one") == build_review_id(None, "Alice", base + "tail two")

    def test_title_used_when_text_missing(self):
        assert build_review_id(None, "Alice", "", "Great") != build_review_id(None, "Alice", "", "Awful")


def test_is_tripadvisor_url():
    assert is_tripadvisor_url(HOTEL_URL)
    assert is_tripadvisor_url("https://www.tripadvisor.co.uk/Hotel_Review-d1")
    assert not is_tripadvisor_url("https://www.booking.com/hotel/fr/x.html")


def test_clean_text():
    assert clean_text("  Great \n\n  stay\t here ") == "Great stay here"
    assert clean_text(None) == ""


@pytest.mark.asyncio
async def test_random_delay_zero_does_not_sleep():
    with patch("lib.tripadvisor.utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await random_delay(0, 0)
        mock_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_random_delay_within_bounds():
    with patch("lib.tripadvisor.utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await random_delay(100, 200)
        seconds = mock_sleep.call_args[0][0]
        assert 0.1 <= seconds <= 0.2

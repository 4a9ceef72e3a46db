"""Unit tests for the per-listing review cache."""

import json

from services.reviews.cache import ReviewCache, cache_file_for


HOTEL_URL = "https://www.tripadvisor.com/Hotel_Review-g187147-d188150-Reviews-Hotel_Name-Paris.html"
PAGE_2_URL = "https://www.tripadvisor.com/Hotel_Review-g187147-d188150-Reviews-or10-Hotel_Name-Paris.html"


class TestReviewCache:

    def test_starts_empty_without_file(self, cache_dir):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        assert cache.count() == 0
        assert cache.key == "188150"
        assert cache.path == cache_dir / "reviews_188150.json"

    def test_put_and_get(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        review = make_review("r1")
        cache.put(review)
        assert cache.has("r1")
        assert cache.get("r1") == review
        assert cache.get("missing") is None

    def test_put_ignores_empty_id(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review(""))
        assert cache.count() == 0

    def test_persist_and_reload_round_trip(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1", trip_type="Travelled solo"))
        cache.put(make_review("r2", reviewer_location="Lyon, France"))
        assert cache.persist() is True

        reloaded = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        assert reloaded.count() == 2
        assert reloaded.get("r1") == cache.get("r1")
        assert reloaded.get("r2").reviewer_location == "Lyon, France"
        assert reloaded.last_updated == cache.last_updated

    def test_file_uses_camel_case(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        cache.persist()

        raw = json.loads(cache.path.read_text(encoding="utf-8"))
        assert set(raw) == {"reviews", "lastUpdated", "hotelUrl"}
        assert raw["hotelUrl"] == HOTEL_URL
        assert raw["reviews"]["r1"]["reviewerName"] == "Reviewer r1"

    def test_paginated_urls_share_store(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        cache.persist()

        assert cache_file_for(PAGE_2_URL, cache_dir) == cache.path
        assert ReviewCache(PAGE_2_URL, cache_dir=cache_dir).has("r1")

    def test_corrupt_file_gives_empty_cache(self, cache_dir):
        path = cache_file_for(HOTEL_URL, cache_dir)
        path.write_text("{not json", encoding="utf-8")

        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        assert cache.count() == 0

    def test_invalid_schema_gives_empty_cache(self, cache_dir):
        path = cache_file_for(HOTEL_URL, cache_dir)
        path.write_text(json.dumps({"reviews": {"r1": {"rating": "lots"}}}), encoding="utf-8")

        assert ReviewCache(HOTEL_URL, cache_dir=cache_dir).count() == 0

    def test_clear(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        cache.persist()

        assert cache.clear() is True
        assert cache.count() == 0
        assert ReviewCache(HOTEL_URL, cache_dir=cache_dir).count() == 0

    def test_bulk_merge_only_adds_new(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        original = make_review("r1", review_title="Original title")
        cache.put(original)

        added = cache.bulk_merge([make_review("r1", review_title="Changed"), make_review("r2")])

        assert added == 1
        assert cache.count() == 2
        assert cache.get("r1").review_title == "Original title"

    def test_filter_new(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        fresh = cache.filter_new([make_review("r1"), make_review("r2")])
        assert [r.id for r in fresh] == ["r2"]

    def test_stats(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        stats = cache.stats()
        assert stats.total == 1
        assert stats.listing_key == "188150"
        assert stats.hotel_url == HOTEL_URL

    def test_persist_failure_returns_false(self, tmp_path, make_review):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file in the way", encoding="utf-8")

        cache = ReviewCache(HOTEL_URL, cache_dir=blocker / "cache")
        cache.put(make_review("r1"))
        assert cache.persist() is False

    def test_unchanged_store_is_not_rewritten(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        cache.persist()
        before = cache.path.read_bytes()

        reloaded = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        assert reloaded.dirty is False
        assert reloaded.persist() is True
        assert cache.path.read_bytes() == before
        assert reloaded.last_updated == cache.last_updated

    def test_corrupt_file_survives_persist_without_changes(self, cache_dir):
        path = cache_file_for(HOTEL_URL, cache_dir)
        path.write_text('{"reviews": {"r1": {', encoding="utf-8")

        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        assert cache.persist() is True
        assert path.read_text(encoding="utf-8") == '{"reviews": {"r1": {'

    def test_existing_review_does_not_mark_dirty(self, cache_dir, make_review):
        cache = ReviewCache(HOTEL_URL, cache_dir=cache_dir)
        cache.put(make_review("r1"))
        cache.persist()

        assert cache.bulk_merge([make_review("r1")]) == 0
        assert cache.dirty is False

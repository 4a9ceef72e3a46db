"""TripAdvisor reviews workflow - scrape listing reviews and export them.

USAGE:
    uv run python workflows/scrape_reviews.py scrape <url>
    uv run python workflows/scrape_reviews.py scrape <url1>,<url2> --max-reviews 100
    uv run python workflows/scrape_reviews.py scrape file:urls.txt --max-reviews 100 --profile MyProfile
    uv run python workflows/scrape_reviews.py scrape <url> --local --headless
    uv run python workflows/scrape_reviews.py cache stats <url>
    uv run python workflows/scrape_reviews.py cache clear <url>

A file: input holds one URL per line; blank lines and lines starting with #
are skipped. Without --local the browser comes from AdsPower.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import argparse
import signal
from typing import List, Optional

from loguru import logger

from lib.adspower import AdsPowerClient
from lib.browser import BrowserSession
from lib.tripadvisor.models import ScrapingResult
from lib.tripadvisor.utils import is_tripadvisor_url
from services.reviews import ReviewCache, ReviewExporter, ScraperConfig, Service


LOG_FILE = "scrape_reviews.log"

shutdown_requested = False
_active_service: Optional[Service] = None


def handle_signal(signum, frame):
    global shutdown_requested
    if shutdown_requested:
        logger.warning("Second interrupt, exiting now")
        raise KeyboardInterrupt
    logger.warning(f"Received signal {signum}, finishing current batch and saving cache...")
    shutdown_requested = True
    if _active_service is not None:
        _active_service.request_stop()


def setup_logging(debug: bool = False):
    """Configure loguru logging."""
    logger.remove()

    # Console: INFO by default, DEBUG if flag set
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="DEBUG" if debug else "INFO",
        colorize=True,
    )

    # File: Always DEBUG
    logger.add(
        LOG_FILE,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
        level="DEBUG",
        rotation="10 MB",
    )


def parse_url_input(value: str) -> List[str]:
    """Expand a URL argument: file:<path>, comma-separated list, or a single URL."""
    if value.startswith("file:"):
        path = Path(value[len("file:"):])
        if not path.exists():
            logger.error(f"File not found: {path}")
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error(f"Error reading file {path}: {e}")
            return []
        urls = [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]
        logger.info(f"Loaded {len(urls)} URLs from file: {path}")
        return urls

    if "," in value:
        urls = [url.strip() for url in value.split(",") if url.strip()]
        logger.info(f"Parsed {len(urls)} URLs from comma-separated input")
        return urls

    return [value.strip()] if value.strip() else []


def invalid_urls(urls: List[str]) -> List[str]:
    return [url for url in urls if not is_tripadvisor_url(url)]


# =============================================================================
# Commands
# =============================================================================

async def run_scrape(
    urls: List[str],
    config: ScraperConfig,
    max_reviews: Optional[int] = None,
    profile: Optional[str] = None,
    local: bool = False,
    headless: bool = False,
) -> int:
    """Scrape and export. Returns the process exit code."""
    global _active_service

    if not local:
        missing = config.missing_adspower_settings()
        if missing:
            logger.info(f"Using AdsPower defaults for: {', '.join(missing)}")

    exporter = ReviewExporter(config.output_dir)
    if max_reviews is not None:
        logger.info(f"Max reviews per URL: {max_reviews}")

    adspower = None if local else AdsPowerClient(
        base_url=config.adspower_base_url,
        group_id=config.adspower_group_id,
        headless=config.hide_chrome,
    )
    async with BrowserSession(
        profile_name=profile,
        use_adspower=not local,
        adspower=adspower,
        headless=headless,
    ) as session:
        service = Service(session.page, config)
        _active_service = service
        try:
            if len(urls) == 1:
                logger.info(f"Target URL: {urls[0]}")
                try:
                    result = await service.scrape_listing(urls[0], max_reviews)
                except Exception as e:
                    logger.error(f"Scraping failed: {e}")
                    return 1
                if result.error:
                    logger.error(f"Scraping failed: {result.error}")
                    return 1
                _log_single_result(result)
                data = result
            else:
                logger.info(f"Target URLs: {len(urls)}")
                results = await service.scrape_many(urls, max_reviews)
                successful = sum(1 for r in results if not r.error)
                total = sum(r.scraped_reviews for r in results)
                logger.info(f"Successfully processed: {successful}/{len(urls)} URLs, {total} reviews")
                data = results
        finally:
            _active_service = None

    paths = exporter.export_all(data)
    logger.info("Export complete:")
    for kind, path in paths.items():
        logger.info(f"  {kind}: {path}")
    return 0


def _log_single_result(result: ScrapingResult) -> None:
    logger.info(f"Business: {result.business_name or 'Unknown'}")
    logger.info(f"Location: {result.business_location or 'Unknown'}")
    logger.info(f"Overall rating: {result.overall_rating or 'Unknown'}")
    logger.info(f"Reviews scraped: {result.scraped_reviews} ({result.total_reviews} cached in total)")


def show_cache_stats(url: str, config: ScraperConfig) -> int:
    stats = ReviewCache(url, cache_dir=config.cache_dir).stats()
    logger.info("Cache statistics:")
    logger.info(f"  Listing: {stats.listing_key}")
    logger.info(f"  URL: {stats.hotel_url}")
    logger.info(f"  Total reviews: {stats.total}")
    logger.info(f"  Last updated: {stats.last_updated}")
    return 0


def clear_cache(url: str, config: ScraperConfig) -> int:
    cache = ReviewCache(url, cache_dir=config.cache_dir)
    if not cache.clear():
        logger.error(f"Failed to clear cache for {url}")
        return 1
    logger.info(f"Cache cleared for {url}")
    return 0


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TripAdvisor review scraper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape_parser = subparsers.add_parser("scrape", help="Scrape reviews and export them")
    scrape_parser.add_argument("urls", help="URL, comma-separated URLs, or file:<path>")
    scrape_parser.add_argument("--max-reviews", "-n", type=int, default=None)
    scrape_parser.add_argument("--profile", "-p", default=None, help="AdsPower profile name")
    scrape_parser.add_argument("--local", action="store_true", help="Use a local Chromium instead of AdsPower")
    scrape_parser.add_argument("--headless", action="store_true", help="Headless local Chromium")
    scrape_parser.add_argument("--output-dir", default=None)

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear a listing cache")
    cache_parser.add_argument("action", choices=["stats", "clear"])
    cache_parser.add_argument("url")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)
    config = ScraperConfig.from_env()

    if args.command == "cache":
        if args.action == "stats":
            return show_cache_stats(args.url, config)
        return clear_cache(args.url, config)

    if args.max_reviews is not None and args.max_reviews < 0:
        logger.error("--max-reviews must be >= 0")
        return 1
    if args.output_dir:
        config.output_dir = args.output_dir

    urls = parse_url_input(args.urls)
    if not urls:
        logger.error("No valid URLs found")
        return 1
    bad = invalid_urls(urls)
    if bad:
        for url in bad:
            logger.error(f"Invalid TripAdvisor URL: {url}")
        return 1

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        return asyncio.run(run_scrape(
            urls,
            config,
            max_reviews=args.max_reviews,
            profile=args.profile,
            local=args.local,
            headless=args.headless,
        ))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Scraping failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Review scraper configuration.

Environment variables (read from .env when present):
    ADSPOWER_BASE_URL: AdsPower local API (default http://local.adspower.net:50325)
    ADSPOWER_GROUP_ID: AdsPower group for created profiles
    HIDE_CHROME: "1" to start AdsPower browsers headless
    CACHE_DIR / OUTPUT_DIR: cache and export directories
    CARD_CONCURRENCY: cards extracted concurrently per batch
    DELAY_MIN / DELAY_MAX: settle delay between pages, in ms
    MAX_BLOCK_RETRIES: waits on a blocking screen before giving up
    PERSIST_EVERY_PAGE: "0" to only write the cache at session end
    NAVIGATION_TIMEOUT: page.goto timeout, in ms
"""

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class ScraperConfig(BaseModel):
    """Runtime settings for review scraping sessions."""

    # AdsPower
    adspower_base_url: str = Field(default="http://local.adspower.net:50325")
    adspower_group_id: str = Field(default="3760701")
    hide_chrome: bool = Field(default=False)

    # Storage
    cache_dir: str = Field(default="./cache")
    output_dir: str = Field(default="./output")

    # Session behaviour
    card_concurrency: int = Field(default=10, ge=1, description="Cards extracted concurrently per batch")
    delay_min: int = Field(default=2000, ge=0, description="Min delay between pages (ms)")
    delay_max: int = Field(default=4000, ge=0, description="Max delay between pages (ms)")
    batch_cooldown_min: int = Field(default=3000, ge=0, description="Min cooldown between URLs (ms)")
    batch_cooldown_max: int = Field(default=6000, ge=0, description="Max cooldown between URLs (ms)")
    max_block_retries: int = Field(default=3, ge=0)
    persist_every_page: bool = Field(default=True)
    navigation_timeout: int = Field(default=60000, ge=1000)
    trigger_content: bool = Field(default=True, description="Scroll / open Reviews tab before extracting")

    @classmethod
    def from_env(cls) -> "ScraperConfig":
        return cls(
            adspower_base_url=os.getenv("ADSPOWER_BASE_URL", "http://local.adspower.net:50325"),
            adspower_group_id=os.getenv("ADSPOWER_GROUP_ID", "3760701"),
            hide_chrome=_env_flag("HIDE_CHROME", False),
            cache_dir=os.getenv("CACHE_DIR", "./cache"),
            output_dir=os.getenv("OUTPUT_DIR", "./output"),
            card_concurrency=_env_int("CARD_CONCURRENCY", 10),
            delay_min=_env_int("DELAY_MIN", 2000),
            delay_max=_env_int("DELAY_MAX", 4000),
            max_block_retries=_env_int("MAX_BLOCK_RETRIES", 3),
            persist_every_page=_env_flag("PERSIST_EVERY_PAGE", True),
            navigation_timeout=_env_int("NAVIGATION_TIMEOUT", 60000),
        )

    def missing_adspower_settings(self) -> List[str]:
        """Names of AdsPower settings that are required but not set."""
        missing = []
        if not os.getenv("ADSPOWER_BASE_URL"):
            missing.append("ADSPOWER_BASE_URL")
        if not os.getenv("ADSPOWER_GROUP_ID"):
            missing.append("ADSPOWER_GROUP_ID")
        return missing

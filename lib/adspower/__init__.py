"""AdsPower local API client (anti-detect browser profiles)."""

from lib.adspower.client import AdsPowerClient, AdsPowerError, BrowserEndpoint, Profile

__all__ = [
    "AdsPowerClient",
    "AdsPowerError",
    "BrowserEndpoint",
    "Profile",
]

"""Tests for the browser session."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from lib.adspower.client import BrowserEndpoint, Profile
from lib.browser import BrowserSession


class TestBrowserSession:

    @pytest.fixture
    def mock_playwright_setup(self):
        """Create properly mocked playwright setup."""
        mock_browser = AsyncMock()
        mock_context = AsyncMock()
        mock_page = AsyncMock()
        mock_pw_instance = AsyncMock()

        mock_pw_instance.chromium.launch = AsyncMock(return_value=mock_browser)
        mock_pw_instance.chromium.connect_over_cdp = AsyncMock(return_value=mock_browser)
        mock_pw_instance.stop = AsyncMock()

        mock_browser.contexts = []
        mock_browser.new_context = AsyncMock(return_value=mock_context)
        mock_browser.close = AsyncMock()
        mock_context.new_page = AsyncMock(return_value=mock_page)

        return mock_pw_instance, mock_browser, mock_context, mock_page

    @pytest.fixture
    def mock_adspower(self):
        client = MagicMock()
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=None)
        client.get_or_create_profile = AsyncMock(return_value=Profile(user_id="u1", name="Main"))
        client.start_browser = AsyncMock(return_value=BrowserEndpoint("ws://127.0.0.1:9333/devtools", "9333"))
        client.stop_browser = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_local_launch_applies_stealth(self, mock_playwright_setup):
        mock_pw_instance, mock_browser, mock_context, mock_page = mock_playwright_setup

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            with patch('lib.browser.Stealth') as mock_stealth:
                mock_stealth.return_value.apply_stealth_async = AsyncMock()

                async with BrowserSession(headless=True) as session:
                    assert session.page is mock_page

                mock_pw_instance.chromium.launch.assert_awaited_once_with(headless=True)
                mock_stealth.return_value.apply_stealth_async.assert_awaited_once_with(mock_context)
                mock_browser.close.assert_awaited_once()
                mock_pw_instance.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_adspower_connects_over_cdp(self, mock_playwright_setup, mock_adspower):
        mock_pw_instance, mock_browser, mock_context, mock_page = mock_playwright_setup
        existing_context = AsyncMock()
        existing_context.new_page = AsyncMock(return_value=mock_page)
        mock_browser.contexts = [existing_context]

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            async with BrowserSession(profile_name="Main", adspower=mock_adspower) as session:
                assert session.page is mock_page
                assert session.user_id == "u1"

            mock_pw_instance.chromium.connect_over_cdp.assert_awaited_once_with("ws://127.0.0.1:9333/devtools")
            mock_browser.new_context.assert_not_awaited()
            mock_adspower.get_or_create_profile.assert_awaited_once_with("Main")
            mock_adspower.stop_browser.assert_awaited_once_with("u1")
            mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provisioning_failure_cleans_up(self, mock_playwright_setup, mock_adspower):
        mock_pw_instance, mock_browser, _, _ = mock_playwright_setup
        mock_adspower.start_browser = AsyncMock(side_effect=RuntimeError("AdsPower not running"))

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            with pytest.raises(RuntimeError, match="AdsPower not running"):
                async with BrowserSession(profile_name="Main", adspower=mock_adspower):
                    pass

            mock_pw_instance.stop.assert_awaited_once()
            mock_adspower.__aexit__.assert_awaited_once()
            mock_adspower.stop_browser.assert_not_awaited()

    def test_page_before_start_raises(self):
        with pytest.raises(RuntimeError):
            BrowserSession().page


@pytest.mark.online
class TestBrowserSessionIntegration:
    """Integration tests with real browser."""

    @pytest.mark.asyncio
    async def test_real_local_browser(self):
        async with BrowserSession(headless=True) as session:
            await session.page.goto("https://example.com", timeout=10000)
            assert "Example" in await session.page.title()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

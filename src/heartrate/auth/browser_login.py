"""Headless-browser login to the Whoop web app.

Whoop does not hand out API tokens for personal accounts, so we drive the
regular web login with Playwright and lift the session cookies afterwards.
The flow is treated as one opaque step: it either yields a Credential or
raises ``LoginFailed``.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from src.heartrate.auth.credential import extract_credential
from src.heartrate.base import Credential, LoginProvider
from src.heartrate.errors import LoginFailed

logger = logging.getLogger("heartsync.auth")

_DEFAULT_ORIGIN = "https://app.whoop.com"
_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
_HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"


class BrowserLogin(LoginProvider):
    """Log in through the Whoop web form with headless Chromium."""

    def __init__(
        self,
        email: str,
        password: str,
        origin: str = _DEFAULT_ORIGIN,
        timeout_seconds: float = 60.0,
        headless: bool = True,
    ) -> None:
        """Initialize the login provider.

        Args:
            email:           Whoop account email (LOGIN_EMAIL).
            password:        Whoop account password (LOGIN_PASSWORD).
            origin:          Web app origin that serves the login form.
            timeout_seconds: Page navigation timeout.  Form and redirect waits
                             use half of it.
            headless:        Run Chromium without a window.
        """
        self._email = email
        self._password = password
        self._origin = origin.rstrip("/")
        self._timeout_ms = timeout_seconds * 1000
        self._headless = headless
        host = urlparse(self._origin).netloc or self._origin
        self._dashboard_url = re.compile(re.escape(host) + r"/athlete/")

    async def login(self) -> Credential:
        logger.info("Launching headless browser for login...")
        try:
            cookies = await self._login_and_collect_cookies()
        except PlaywrightTimeoutError as exc:
            raise LoginFailed(f"Login timed out: {exc}") from exc
        except PlaywrightError as exc:
            raise LoginFailed(f"Browser login failed: {exc}") from exc

        logger.info("Login successful, extracting tokens...")
        credential = extract_credential(cookies)
        logger.info(
            "Authenticated as user %s, token expires at %s",
            credential.user_id,
            credential.expires_at_datetime.isoformat(),
        )
        return credential

    async def _login_and_collect_cookies(self) -> list[dict]:
        step_timeout = self._timeout_ms / 2

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=self._headless,
                args=["--disable-blink-features=AutomationControlled"],
            )
            try:
                context = await browser.new_context(
                    user_agent=_USER_AGENT,
                    viewport={"width": 1280, "height": 720},
                )
                page = await context.new_page()
                await page.add_init_script(_HIDE_WEBDRIVER)

                await page.goto(self._origin, timeout=self._timeout_ms)
                logger.info("Redirected to: %s", page.url)

                # The login page is a React SPA; wait for any input to render
                await page.wait_for_selector("input", state="visible", timeout=step_timeout)
                logger.info("Login form visible, filling credentials...")

                await page.get_by_placeholder("Email address").fill(self._email)
                await page.get_by_placeholder("Password").fill(self._password)
                await page.get_by_role("button", name=re.compile("sign in", re.IGNORECASE)).click()

                await page.wait_for_url(self._dashboard_url, timeout=step_timeout)
                return await context.cookies(self._origin)
            finally:
                await browser.close()

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

import requests
from curl_cffi import requests as curl_requests

from .base import SnapshotAcquirer
from .exceptions import AcquisitionError
from .models import FetchOptions, Snapshot

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DESKTOP_VIEWPORT = {"width": 1920, "height": 1080}


def _check_status(address: str, status_code: Optional[int]) -> None:
    if status_code is None or not 200 <= int(status_code) < 300:
        raise AcquisitionError(f"HTTP_{status_code}", address=address, status_code=status_code)


class BrowserAcquirer(SnapshotAcquirer):
    """Renders the page in headless Chromium through Playwright.

    The browser is launched on first use and reused for every subject of the
    run; close() shuts it down. The snapshot text is the body's innerText,
    which keeps the line structure the line-scan heuristic relies on.
    """

    def __init__(
        self,
        options: Optional[FetchOptions] = None,
        user_agent: str = DESKTOP_USER_AGENT,
        headless: bool = True,
    ) -> None:
        super().__init__(options)
        self._user_agent = user_agent
        self._headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

    def _ensure_page(self) -> Any:
        if self._page is not None:
            return self._page
        from playwright.sync_api import sync_playwright

        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self._headless,
            args=["--no-sandbox", "--disable-setuid-sandbox"],
        )
        context = self._browser.new_context(user_agent=self._user_agent, viewport=DESKTOP_VIEWPORT)
        self._page = context.new_page()
        return self._page

    def fetch(self, address: str, options: FetchOptions) -> Snapshot:
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        page = self._ensure_page()
        logger.info("Fetching %s", address)
        try:
            response = page.goto(
                address,
                wait_until=options.wait_strategy,
                timeout=options.timeout_secs * 1000,
            )
        except PlaywrightTimeoutError as exc:
            raise AcquisitionError(f"Timeout: {exc}", address=address) from exc
        except PlaywrightError as exc:
            raise AcquisitionError(f"NavigationError: {exc}", address=address) from exc

        if response is not None:
            _check_status(address, response.status)

        if options.ready_selector:
            try:
                page.wait_for_selector(options.ready_selector, timeout=options.ready_timeout_secs * 1000)
            except PlaywrightTimeoutError:
                logger.warning("Ready selector %s not found on %s, extracting anyway", options.ready_selector, address)

        return Snapshot(address=address, html=page.content(), text=page.inner_text("body"))

    def capture_debug(self, label: str) -> Optional[str]:
        """Screenshot the current page into options.debug_dir."""
        debug_dir = self._options.debug_dir
        if not debug_dir or self._page is None:
            return None
        os.makedirs(debug_dir, exist_ok=True)
        path = os.path.join(debug_dir, f"strava-debug-{label}-{int(time.time() * 1000)}.png")
        self._page.screenshot(path=path, full_page=True)
        logger.info("Saved debug screenshot to %s", path)
        return path

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._page = None
        self._browser = None
        self._playwright = None


class ImpersonatingAcquirer(SnapshotAcquirer):
    """Fetches raw HTML with a curl_cffi session impersonating a desktop Chrome.

    Suitable only where the stats are present in the served markup; nothing
    is rendered."""

    def __init__(self, options: Optional[FetchOptions] = None, impersonate: str = "chrome120") -> None:
        super().__init__(options)
        self._impersonate = impersonate
        self._session: Any = None

    def fetch(self, address: str, options: FetchOptions) -> Snapshot:
        if self._session is None:
            self._session = curl_requests.Session(impersonate=self._impersonate)
        logger.info("Fetching %s", address)
        response = self._session.get(address, timeout=options.timeout_secs)
        _check_status(address, getattr(response, "status_code", None))
        return Snapshot.from_html(address, response.text)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None


class HttpAcquirer(SnapshotAcquirer):
    """Plain requests-based fetch of the served HTML."""

    def __init__(self, options: Optional[FetchOptions] = None, user_agent: str = DESKTOP_USER_AGENT) -> None:
        super().__init__(options)
        self._session = requests.Session()
        self._session.headers["User-Agent"] = user_agent

    def fetch(self, address: str, options: FetchOptions) -> Snapshot:
        logger.info("Fetching %s", address)
        try:
            response = self._session.get(address, timeout=options.timeout_secs)
        except requests.Timeout as exc:
            raise AcquisitionError(f"Timeout: {exc}", address=address) from exc
        except requests.RequestException as exc:
            raise AcquisitionError(f"{type(exc).__name__}: {exc}", address=address) from exc
        _check_status(address, response.status_code)
        return Snapshot.from_html(address, response.text)

    def close(self) -> None:
        self._session.close()

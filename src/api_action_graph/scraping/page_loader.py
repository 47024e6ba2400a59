"""Page fetchers returning plain text, raw markup and a queryable tree.

Two backends are provided: a lightweight httpx fetcher and a heavier
Playwright fetcher for JavaScript-rendered documentation sites.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from ..errors import FetchError
from .logging_config import get_logger

logger = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class FetchedPage:
    """A fetched documentation page."""

    url: str
    text: str
    markup: str
    tree: BeautifulSoup


@runtime_checkable
class PageFetcher(Protocol):
    """Anything that can fetch a page by URL."""

    is_heavy: bool

    async def fetch(self, url: str) -> FetchedPage:
        """Fetch a page, raising FetchError on network, timeout or status failure."""
        ...


def parse_page(url: str, markup: str, text: str | None = None) -> FetchedPage:
    """Build a FetchedPage from raw markup.

    Args:
        url: The URL the markup came from.
        markup: Raw HTML.
        text: Pre-rendered text. If None, uses the body text of the markup.

    Returns:
        FetchedPage with a parsed tree.
    """
    tree = BeautifulSoup(markup, "lxml")
    if text is None:
        root = tree.body or tree
        text = root.get_text(" ", strip=True)
    return FetchedPage(url=url, text=text, markup=markup, tree=tree)


class HttpPageFetcher:
    """Fetches pages over plain HTTP with httpx."""

    is_heavy = False

    def __init__(
        self,
        timeout_s: float = 30.0,
        hard_timeout_s: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the fetcher.

        Args:
            timeout_s: Per-request httpx timeout.
            hard_timeout_s: Ceiling for the whole fetch including redirects.
            client: Optional shared client. If None, one is created per fetch.
        """
        self.timeout_s = timeout_s
        self.hard_timeout_s = max(hard_timeout_s, timeout_s)
        self.client = client

    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        response = await client.get(url)
        response.raise_for_status()
        return response

    async def fetch(self, url: str) -> FetchedPage:
        """Fetch a page.

        Args:
            url: The URL to fetch.

        Returns:
            FetchedPage for the URL.

        Raises:
            FetchError: On network error, timeout or non-2xx status.
        """
        log = logger.bind(url=url, phase="http_fetch")
        log.debug("fetching_page", timeout_s=self.timeout_s)

        try:
            if self.client is not None:
                response = await asyncio.wait_for(
                    self._get(self.client, url), timeout=self.hard_timeout_s
                )
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_s),
                    follow_redirects=True,
                    headers={"User-Agent": USER_AGENT},
                ) as client:
                    response = await asyncio.wait_for(
                        self._get(client, url), timeout=self.hard_timeout_s
                    )
        except httpx.HTTPStatusError as e:
            log.warning("fetch_failed", status=e.response.status_code)
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            log.warning("fetch_timeout")
            raise FetchError(url, "timed out") from e
        except httpx.HTTPError as e:
            log.warning("fetch_failed", error=str(e))
            raise FetchError(url, str(e) or type(e).__name__) from e

        page = parse_page(url, response.text)
        log.debug("page_fetched", text_chars=len(page.text), markup_bytes=len(response.content))
        return page


# Scrolls to the bottom so lazily rendered sections are present in the DOM.
_SCROLL_SCRIPT = """
async () => {
    await new Promise((resolve) => {
        let total = 0;
        const distance = 100;
        const timer = setInterval(() => {
            window.scrollBy(0, distance);
            total += distance;
            if (total >= document.body.scrollHeight) {
                clearInterval(timer);
                resolve();
            }
        }, 100);
    });
}
"""


class BrowserPageFetcher:
    """Fetches JavaScript-rendered pages with a headless Playwright browser."""

    is_heavy = True

    def __init__(
        self,
        headless: bool = True,
        timeout_ms: int = 30000,
        hard_timeout_s: float = 60.0,
    ):
        """Initialize the fetcher.

        Args:
            headless: Whether to run browser in headless mode.
            timeout_ms: Navigation timeout in milliseconds.
            hard_timeout_s: Ceiling for the whole fetch.
        """
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.hard_timeout_s = max(hard_timeout_s, timeout_ms / 1000)

    async def _render(self, url: str, log) -> tuple[str, str]:
        async with async_playwright() as p:
            log.debug("launching_local_browser", headless=self.headless)
            browser = await p.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            try:
                context = await browser.new_context(
                    user_agent=USER_AGENT,
                    viewport={"width": 1280, "height": 800},
                )
                page = await context.new_page()

                log.debug("navigating_to_page", timeout_ms=self.timeout_ms)
                response = await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
                if response is not None and response.status >= 400:
                    raise FetchError(url, f"HTTP {response.status}")

                await page.evaluate(_SCROLL_SCRIPT)

                markup = await page.content()
                text = await page.evaluate("() => document.body ? document.body.innerText : ''")
                return markup, text
            finally:
                await browser.close()

    async def fetch(self, url: str) -> FetchedPage:
        """Render a page in the browser.

        Args:
            url: The URL to load.

        Returns:
            FetchedPage for the rendered DOM.

        Raises:
            FetchError: On navigation failure, timeout or error status.
        """
        log = logger.bind(url=url, phase="browser_fetch")
        log.info("starting_page_load")

        try:
            markup, text = await asyncio.wait_for(
                self._render(url, log), timeout=self.hard_timeout_s
            )
        except asyncio.TimeoutError as e:
            log.warning("page_load_timeout")
            raise FetchError(url, "timed out") from e
        except PlaywrightError as e:
            log.warning("page_load_failed", error=str(e))
            raise FetchError(url, str(e)) from e

        page = parse_page(url, markup, text=text)
        log.info("page_load_complete", text_chars=len(page.text))
        return page

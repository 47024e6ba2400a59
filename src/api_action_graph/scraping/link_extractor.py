"""Candidate link extraction from documentation pages."""

from dataclasses import dataclass, field
from typing import Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..utils import get_origin, is_absolute_http_url
from .logging_config import get_logger

logger = get_logger(__name__)


# Keywords in link text or URL that suggest API documentation
DOCUMENTATION_KEYWORDS = [
    "api",
    "endpoint",
    "reference",
    "documentation",
    "doc",
    "method",
    "resource",
    "rest",
    "service",
    "integration",
]

# Substrings marking links that are not documentation content
NON_CONTENT_MARKERS = ["login", "signup", "contact"]

SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:")

PREREQUISITE_STOPWORDS = {"must", "have", "need", "required", "should", "with", "your"}


@dataclass
class LinkDiscovery:
    """Links found on a single page."""

    api_endpoint_urls: list[str] = field(default_factory=list)
    subsection_urls: list[str] = field(default_factory=list)


def _iter_links(base_url: str, tree: BeautifulSoup) -> Iterator[tuple[str, str, str]]:
    """Yield (href, absolute_url, lowercased link text) for usable anchors."""
    origin = get_origin(base_url)

    for anchor in tree.find_all("a"):
        href = anchor.get("href")
        if not href or not isinstance(href, str):
            continue
        href = href.strip()
        if not href or href.lower().startswith(SKIPPED_HREF_PREFIXES):
            continue

        if href.startswith(("http://", "https://")):
            full_url = href
        else:
            try:
                full_url = urljoin(origin + "/", href)
            except ValueError:
                full_url = ""

        if not is_absolute_http_url(full_url):
            logger.debug("unparseable_link_skipped", base_url=base_url, href=href[:100])
            continue

        yield href, full_url, anchor.get_text(" ").lower()


def extract_api_endpoint_urls(base_url: str, tree: BeautifulSoup) -> list[str]:
    """Extract links that look like API documentation.

    Args:
        base_url: URL of the page the tree came from.
        tree: Parsed page.

    Returns:
        Deduplicated absolute URLs, in document order.
    """
    urls: dict[str, None] = {}

    for _, full_url, link_text in _iter_links(base_url, tree):
        url_lower = full_url.lower()
        if any(kw in link_text or kw in url_lower for kw in DOCUMENTATION_KEYWORDS):
            urls[full_url] = None

    logger.debug("api_endpoint_urls_found", base_url=base_url, count=len(urls))
    return list(urls)


def extract_subsection_urls(base_url: str, tree: BeautifulSoup) -> list[str]:
    """Extract same-origin links to go one level deeper.

    Args:
        base_url: URL of the page the tree came from.
        tree: Parsed page.

    Returns:
        Deduplicated same-origin absolute URLs, in document order.
    """
    origin = get_origin(base_url)
    urls: dict[str, None] = {}

    for href, full_url, _ in _iter_links(base_url, tree):
        if any(marker in href for marker in NON_CONTENT_MARKERS):
            continue
        if get_origin(full_url) == origin:
            urls[full_url] = None

    logger.debug("subsection_urls_found", base_url=base_url, count=len(urls))
    return list(urls)


def discover_links(base_url: str, tree: BeautifulSoup) -> LinkDiscovery:
    """Find endpoint links, falling back to subsection links when there are none."""
    api_endpoint_urls = extract_api_endpoint_urls(base_url, tree)
    subsection_urls = [] if api_endpoint_urls else extract_subsection_urls(base_url, tree)
    return LinkDiscovery(api_endpoint_urls=api_endpoint_urls, subsection_urls=subsection_urls)


def _significant_words(text: str) -> list[str]:
    return [
        word
        for word in text.lower().split()
        if len(word) > 4 and word not in PREREQUISITE_STOPWORDS
    ]


def find_prerequisite_links(
    base_url: str,
    tree: BeautifulSoup,
    prerequisites: dict[str, str],
) -> list[str]:
    """Find links whose text mentions a prerequisite's significant words.

    Args:
        base_url: URL of the page the tree came from.
        tree: Parsed page.
        prerequisites: Requirement key -> free-text requirement.

    Returns:
        Deduplicated absolute URLs.
    """
    keywords: list[str] = []
    for text in prerequisites.values():
        keywords.extend(_significant_words(text))
    if not keywords:
        return []

    urls: dict[str, None] = {}
    for _, full_url, link_text in _iter_links(base_url, tree):
        if full_url.rstrip("/") == base_url.rstrip("/"):
            continue
        if any(keyword in link_text for keyword in keywords):
            urls[full_url] = None

    return list(urls)

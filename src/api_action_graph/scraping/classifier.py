"""Heuristic classifier for API documentation pages.

Decides whether a page is API documentation at all, and whether it likely
describes more than one endpoint. Each multiplicity trigger is its own
policy function so thresholds can be swapped or tested in isolation.
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from .logging_config import get_logger
from .page_loader import FetchedPage

logger = get_logger(__name__)


# Vocabulary of API-ish terms; presence (not count) of each is scored
API_KEYWORDS = [
    "api",
    "endpoint",
    "request",
    "response",
    "method",
    "parameter",
    "header",
    "status code",
    "authentication",
    "authorization",
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "PATCH",
    "REST",
    "JSON",
]

MIN_API_KEYWORDS = 3

HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH"]

_KEYWORD_PATTERNS = [
    re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE) for keyword in API_KEYWORDS
]

ENDPOINT_INDICATOR_PATTERNS = [
    re.compile(r"\bGET\s+[/\w]+", re.IGNORECASE),
    re.compile(r"\bPOST\s+[/\w]+", re.IGNORECASE),
    re.compile(r"\bPUT\s+[/\w]+", re.IGNORECASE),
    re.compile(r"\bDELETE\s+[/\w]+", re.IGNORECASE),
    re.compile(r"\bPATCH\s+[/\w]+", re.IGNORECASE),
    re.compile(r"\bAPI\s+Endpoint\b", re.IGNORECASE),
    re.compile(r"\bEndpoint\s*:", re.IGNORECASE),
    re.compile(r"\bURL\s*:", re.IGNORECASE),
    re.compile(r"\bRequest\s+URL\b", re.IGNORECASE),
    re.compile(r"\bHTTP\s+Method\b", re.IGNORECASE),
]

SECTION_INDICATOR_PATTERNS = [
    re.compile(r"\bEndpoints\b", re.IGNORECASE),
    re.compile(r"\bAPI\s+Reference\b", re.IGNORECASE),
    re.compile(r"\bAvailable\s+Methods\b", re.IGNORECASE),
    re.compile(r"\bResource\s+Types\b", re.IGNORECASE),
    re.compile(r"\bAPI\s+Resources\b", re.IGNORECASE),
    re.compile(r"\bList\s+of\s+APIs\b", re.IGNORECASE),
    re.compile(r"\bAPI\s+Listing\b", re.IGNORECASE),
]

_METHOD_PATTERNS = {
    method: re.compile(rf"\b{method}\b", re.IGNORECASE) for method in HTTP_METHODS
}

_URL_PATTERN = re.compile(r"https?://[^\s\"']+/[^\s\"']+", re.IGNORECASE)
VERSIONED_API_SEGMENTS = ["/api/", "/v1/", "/v2/", "/rest/"]

_NUMBERED_API_HEADING = re.compile(r"\b\d+\.\s+[A-Z][a-zA-Z\s]+API\b", re.IGNORECASE)

# Terms marking an element as API-related in the HTML structure
HEADING_TERMS = ["api", "endpoint", "method", "request", "resource"]
TABLE_TERMS = ["api", "endpoint", "method", "url", "request"]
CONTAINER_TERMS = ["api", "endpoint", "method", "resource"]


@dataclass
class PageClassification:
    """Classification verdict for a single page."""

    is_api_documentation: bool
    multiple_apis: bool
    multiple_from_text: bool = False
    multiple_from_html: bool = False
    matched_terms: list[str] = field(default_factory=list)


def find_api_terms(text: str) -> list[str]:
    """Get the distinct API vocabulary terms present in text."""
    return [
        keyword
        for keyword, pattern in zip(API_KEYWORDS, _KEYWORD_PATTERNS)
        if pattern.search(text)
    ]


def is_api_documentation(text: str) -> bool:
    """Check if text looks like API documentation.

    Args:
        text: The page text.

    Returns:
        True if at least three distinct API terms are present.
    """
    return len(find_api_terms(text)) >= MIN_API_KEYWORDS


def count_endpoint_indicators(text: str) -> int:
    """Count "METHOD /path", "Endpoint:" and similar matches."""
    return sum(len(pattern.findall(text)) for pattern in ENDPOINT_INDICATOR_PATTERNS)


def has_section_indicators(text: str) -> bool:
    """Check for headings such as "Endpoints" or "API Reference"."""
    return any(pattern.search(text) for pattern in SECTION_INDICATOR_PATTERNS)


def count_repeated_methods(text: str) -> int:
    """Count HTTP methods that appear more than once."""
    return sum(
        1 for pattern in _METHOD_PATTERNS.values() if len(pattern.findall(text)) > 1
    )


def count_versioned_api_urls(text: str) -> int:
    """Count URLs containing a versioned API path segment."""
    return sum(
        1
        for url in _URL_PATTERN.findall(text)
        if any(segment in url for segment in VERSIONED_API_SEGMENTS)
    )


def count_numbered_api_headings(text: str) -> int:
    """Count "N. Something API" headings."""
    return len(_NUMBERED_API_HEADING.findall(text))


def detect_multiple_api_endpoints(text: str) -> bool:
    """Check if text likely documents more than one endpoint.

    Any single trigger is sufficient. Under-detection forces the
    single-endpoint prompt onto multi-endpoint pages, so this errs permissive.

    Args:
        text: The page text.

    Returns:
        True if any multiplicity trigger fires.
    """
    return (
        count_endpoint_indicators(text) > 1
        or has_section_indicators(text)
        or count_repeated_methods(text) >= 2
        or count_versioned_api_urls(text) > 1
        or count_numbered_api_headings(text) > 0
    )


def _mentions(text: str, terms: list[str]) -> bool:
    text = text.lower()
    return any(term in text for term in terms)


def detect_multiple_apis_from_html(tree: BeautifulSoup) -> bool:
    """Check if the HTML structure suggests more than one endpoint.

    Args:
        tree: Parsed page.

    Returns:
        True if several API headings, tables or containers, or more than
        two code blocks, are present.
    """
    api_headings = sum(
        1
        for el in tree.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
        if _mentions(el.get_text(" "), HEADING_TERMS)
    )
    if api_headings > 1:
        return True

    api_tables = sum(
        1 for el in tree.find_all("table") if _mentions(el.get_text(" "), TABLE_TERMS)
    )
    if api_tables > 1:
        return True

    api_sections = 0
    for el in tree.find_all(["div", "section"]):
        classes = el.get("class") or []
        if isinstance(classes, str):
            classes = [classes]
        id_and_class = f"{el.get('id') or ''} {' '.join(classes)}"
        if _mentions(id_and_class, CONTAINER_TERMS):
            api_sections += 1
    if api_sections > 1:
        return True

    return len(tree.find_all(["pre", "code"])) > 2


def has_multiple_apis(text: str, tree: BeautifulSoup | None) -> bool:
    """Final per-page multiplicity decision: text OR HTML detector."""
    if detect_multiple_api_endpoints(text):
        return True
    return tree is not None and detect_multiple_apis_from_html(tree)


def classify_page(page: FetchedPage) -> PageClassification:
    """Classify a fetched page.

    Args:
        page: The page to classify.

    Returns:
        PageClassification with documentation and multiplicity verdicts.
    """
    matched = find_api_terms(page.text)
    is_docs = len(matched) >= MIN_API_KEYWORDS

    if not is_docs:
        classification = PageClassification(
            is_api_documentation=False,
            multiple_apis=False,
            matched_terms=matched,
        )
    else:
        from_text = detect_multiple_api_endpoints(page.text)
        from_html = detect_multiple_apis_from_html(page.tree) if page.tree is not None else False
        classification = PageClassification(
            is_api_documentation=True,
            multiple_apis=from_text or from_html,
            multiple_from_text=from_text,
            multiple_from_html=from_html,
            matched_terms=matched,
        )

    logger.debug(
        "page_classified",
        url=page.url[:100],
        is_api_documentation=classification.is_api_documentation,
        multiple_apis=classification.multiple_apis,
        from_text=classification.multiple_from_text,
        from_html=classification.multiple_from_html,
        matched_terms=matched,
    )
    return classification

"""Model-free extraction of actions from well-structured documentation markup.

Used when no model credential is available. Only pages that mark endpoints
up as sections with a heading, a code block and a parameter table yield
anything useful.
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from ..models import Action
from ..utils import generate_action_id
from .logging_config import get_logger

logger = get_logger(__name__)


SECTION_SELECTOR = "section, div.endpoint, div.method, div.api, .api-section"
HEADING_SELECTOR = "h1, h2, h3, h4"

_METHOD_PATTERN = re.compile(r"(GET|POST|PUT|PATCH|DELETE)", re.IGNORECASE)
_ENDPOINT_PATTERN = re.compile(r"(https?://[^\s\"']+|/[a-zA-Z0-9_\-/]+)")


@dataclass
class EndpointSection:
    """Endpoint details mined from one documentation section."""

    name: str
    method: str | None = None
    endpoint: str = ""
    description: str = ""
    parameters: dict[str, str] = field(default_factory=dict)


def to_action_name(heading: str) -> str:
    """Convert a heading into a snake_case action name."""
    cleaned = re.sub(r"[^\w\s]", "", heading.lower()).strip()
    return re.sub(r"\s+", "_", cleaned)


def _parse_parameters(section: Tag) -> dict[str, str]:
    parameters = {}
    for row in section.select("table tr"):
        cells = row.find_all(["td", "th"])
        if len(cells) < 2:
            continue
        # Header rows describe the columns, not a parameter
        if all(cell.name == "th" for cell in cells):
            continue
        name = cells[0].get_text(" ", strip=True)
        description = cells[1].get_text(" ", strip=True)
        if name and description:
            parameters[name] = description
    return parameters


def parse_section(section: Tag) -> EndpointSection | None:
    """Mine one section for endpoint details.

    Returns:
        The endpoint, or None if the section has no heading or shows
        neither an HTTP method nor an endpoint path.
    """
    heading_el = section.select_one(HEADING_SELECTOR)
    heading = heading_el.get_text(" ", strip=True) if heading_el else ""
    if not heading:
        return None

    method_match = _METHOD_PATTERN.search(heading)
    method = method_match.group(1).upper() if method_match else None

    endpoint = ""
    code_block = section.select_one("pre, code")
    if code_block:
        endpoint_match = _ENDPOINT_PATTERN.search(code_block.get_text())
        if endpoint_match:
            endpoint = endpoint_match.group(1)

    if not method and not endpoint:
        return None

    description_el = section.find("p")
    description = description_el.get_text(" ", strip=True) if description_el else ""

    return EndpointSection(
        name=heading,
        method=method,
        endpoint=endpoint,
        description=description,
        parameters=_parse_parameters(section),
    )


def extract_endpoint_sections(tree: BeautifulSoup) -> list[EndpointSection]:
    """Find every endpoint-like section in a page."""
    sections = []
    for section in tree.select(SECTION_SELECTOR):
        parsed = parse_section(section)
        if parsed is not None:
            sections.append(parsed)
    return sections


def section_to_action(section: EndpointSection, page_url: str) -> Action:
    """Convert a mined section into an action."""
    method = section.method or "GET"
    return Action.model_validate(
        {
            "id": generate_action_id(),
            "step_name": section.name,
            "action": to_action_name(section.name),
            "inputs": {
                name: {"type": "string", "description": description}
                for name, description in section.parameters.items()
            },
            "prerequisites": {},
            "api_config": {
                "url": section.endpoint or page_url,
                "method": method,
                "passInputsAsQuery": method == "GET",
                "baseHeaders": {"Content-Type": "application/json"},
            },
            "response_schema": {"type": "object", "properties": {}},
        }
    )


def extract_actions_from_structure(page_url: str, tree: BeautifulSoup) -> list[Action]:
    """Extract actions from structured markup without a model.

    Args:
        page_url: URL of the page, used when a section shows no endpoint.
        tree: Parsed page.

    Returns:
        One action per endpoint-like section, possibly none.
    """
    actions = [section_to_action(section, page_url) for section in extract_endpoint_sections(tree)]
    logger.debug("structure_extraction_complete", url=page_url[:100], actions=len(actions))
    return actions

"""Prompt construction for extraction and prerequisite linking.

The extraction template deliberately contains placeholder markers
("REPLACE WITH", "ACTUAL API") so that an unedited echo of the template
can be recognised and rejected by the response parser.
"""

import json

from ..models import Action
from ..utils import generate_action_id

ACTION_TEMPLATE = """{{
    "id": "{action_id}",
    "step_name": "REPLACE WITH ACTUAL API NAME",
    "action": "REPLACE WITH APPROPRIATE ACTION NAME",
    "inputs": {{
        // REPLACE WITH ACTUAL API INPUTS FROM THE DOCUMENTATION
    }},
    "prerequisites": {{
        // List only user-facing requirements that must be fulfilled before this API can be used
        // For example: "registered_sender": "Must have a registered and confirmed Sender Signature"
        // DO NOT COPY THIS EXAMPLE - extract real prerequisites from the documentation
        // DO NOT include authentication details, rate limits, or API configuration information here
    }},
    "api_config": {{
        "url": "REPLACE WITH ACTUAL API URL",
        "method": "REPLACE WITH ACTUAL HTTP METHOD (GET, POST, PUT, DELETE, etc.)",
        "passInputsAsQuery": true or false,
        "auth": {{
            "type": "REPLACE WITH AUTH TYPE (header, query, etc.)",
            "key": "REPLACE WITH AUTH KEY NAME",
            "paramName": "REPLACE WITH AUTH PARAM NAME"
        }},
        "baseHeaders": {{
            // REPLACE WITH ACTUAL REQUIRED HEADERS
        }},
        "rateLimit": {{
            "requestsPerMinute": null // REPLACE WITH ACTUAL RATE LIMIT IF SPECIFIED
        }}
    }},
    "response_schema": {{
        "type": "object",
        "properties": {{
            // REPLACE WITH ACTUAL RESPONSE PROPERTIES
        }}
    }}
}}"""

SINGLE_HEADER = (
    "IMPORTANT INSTRUCTION: Your response must be ONLY a raw JSON object "
    "without any markdown formatting or code block syntax."
)

MULTIPLE_HEADER = (
    "IMPORTANT INSTRUCTION: This page may contain MULTIPLE API endpoints. "
    "You must identify each distinct API endpoint and return an ARRAY of JSON objects, "
    "one for each endpoint. Each endpoint should have its own complete JSON object."
)

COMMON_INSTRUCTIONS = [
    "DO NOT return the template as-is. You MUST replace all placeholder values with actual data from the documentation.",
    'The "step_name" should be a clear, concise name for the API endpoint.',
    'The "action" should be a snake_case verb_noun combination that describes the action.',
    "For prerequisites, include only user-facing requirements with the field name as the key and the requirement as the value.",
    "Do not put API authentication details, rate limits, or configuration details in prerequisites.",
]

SINGLE_INSTRUCTIONS = [
    'Keep the "id" field exactly as provided in the template. This is a unique identifier for this action.',
    "Do not wrap your response in ```json or any other markdown formatting. Return the raw JSON only.",
]

MULTIPLE_INSTRUCTIONS = [
    'For each API endpoint, generate a unique ID using the format "action_[uuid]". Each endpoint must have a different ID.',
    "Do not wrap your response in ```json or any other markdown formatting. Return the raw JSON only.",
    "If you identify multiple distinct API endpoints, return an array of JSON objects. "
    "If there is only one API endpoint, still return it within an array.",
    "Make sure each API endpoint is complete and has all required fields filled in.",
]

MULTIPLE_FOOTER = (
    "IMPORTANT: Each API endpoint should be represented as a separate, complete JSON object "
    "in the array. Do not combine multiple endpoints into a single object."
)


def build_extraction_prompt(
    page_text: str,
    multiple_apis: bool = False,
    action_id: str | None = None,
) -> str:
    """Build the prompt converting documentation text into action JSON.

    Args:
        page_text: Text content of the documentation page.
        multiple_apis: Ask for an array with one object per endpoint.
        action_id: Id to embed in single mode. Generated if None.

    Returns:
        The prompt string.
    """
    if multiple_apis:
        template = "[\n" + ACTION_TEMPLATE.format(action_id="action_[UNIQUE_ID]")
        template += ",\n// Add more API objects as needed\n]"
        instructions = COMMON_INSTRUCTIONS + MULTIPLE_INSTRUCTIONS
        header, footer = MULTIPLE_HEADER, MULTIPLE_FOOTER
    else:
        template = ACTION_TEMPLATE.format(action_id=action_id or generate_action_id())
        instructions = COMMON_INSTRUCTIONS + SINGLE_INSTRUCTIONS
        header, footer = SINGLE_HEADER, ""

    numbered = "\n".join(f"{i}. {line}" for i, line in enumerate(instructions, start=1))

    sections = [
        header,
        "This data is from an API doc website. Analyze the documentation data "
        "and convert it to the following JSON format:",
        template,
        f"IMPORTANT INSTRUCTIONS:\n{numbered}",
    ]
    if footer:
        sections.append(footer)
    sections.append(f"Documentation data: {page_text}")
    return "\n\n".join(sections)


def build_prerequisite_url_prompt(
    prerequisites: dict[str, str],
    page_text: str,
    page_url: str,
    max_chars: int = 5000,
) -> str:
    """Build the prompt asking which page URLs fulfil the prerequisites.

    Args:
        prerequisites: Requirement key -> free-text requirement.
        page_text: Text or markup of the page to search.
        page_url: URL of the page, used to absolutise relative links.
        max_chars: Page content is truncated to this many characters.

    Returns:
        The prompt string.
    """
    listed = "\n".join(f"- {key}: {value}" for key, value in prerequisites.items())
    content = page_text[:max_chars]
    if len(page_text) > max_chars:
        content += "... (content truncated for brevity)"

    return f"""You are analyzing API documentation to find URLs that satisfy specific prerequisites.

Current page URL: {page_url}

Prerequisites to find URLs for:
{listed}

Page content:
{content}

TASK:
1. Analyze the page content and identify URLs that would help fulfill the listed prerequisites.
2. Return ONLY a JSON array of absolute URLs found in the page content that are relevant to the prerequisites.
3. If a URL is relative, convert it to absolute using the base URL: {page_url}
4. If no relevant URLs are found, return an empty array.

Example response format:
["https://example.com/register", "https://example.com/verify"]

Your response should be ONLY the JSON array, with no additional text or explanation.
"""


def build_relevant_action_prompt(prerequisite_text: str, candidates: list[Action]) -> str:
    """Build the prompt picking the action that fulfils a prerequisite.

    Args:
        prerequisite_text: The free-text requirement.
        candidates: Actions to choose from (the requiring action excluded).

    Returns:
        The prompt string.
    """
    summary = json.dumps(
        [
            {
                "id": a.id,
                "step_name": a.step_name,
                "action": a.action,
                "inputs": a.inputs,
                "description": a.api_config.url,
            }
            for a in candidates
        ],
        indent=2,
        default=str,
    )

    return f"""You are analyzing API documentation to find which API endpoint would fulfill a specific prerequisite.

Return ONLY a JSON object with the format {{"actionId": "id_of_most_relevant_action"}} or {{"actionId": null}} if no action is relevant.

Prerequisite text: "{prerequisite_text}"

Available actions:
{summary}

Determine which action is most relevant to fulfilling the prerequisite.
Consider semantic meaning, not just keyword matching.
If multiple actions could be relevant, select the one that is most directly related to the prerequisite.
If no action is sufficiently related to the prerequisite, return {{"actionId": null}}.
"""

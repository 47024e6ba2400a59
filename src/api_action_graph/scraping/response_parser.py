"""Parsing and repair of raw model output into actions.

Model output is treated as untrusted text: code fences and surrounding
prose are trimmed, common JSON breakage is repaired once, echoed templates
are rejected and incomplete actions are filtered out.
"""

import json
import re
from typing import Any

from pydantic import ValidationError as SchemaError

from ..errors import ParseError, ValidationError
from ..models import Action
from ..utils import generate_action_id
from .logging_config import get_logger

logger = get_logger(__name__)


# Markers from the extraction template that must never survive into an action
PLACEHOLDER_MARKERS = [
    "REPLACE WITH",
    "ACTUAL API",
    "REPLACE THIS",
    "EXAMPLE",
    "PLACEHOLDER",
]

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_ARRAY_SPAN = re.compile(r"(\[[\s\S]*\])")
_OBJECT_SPAN = re.compile(r"(\{[\s\S]*\})")
_FIRST_OBJECT = re.compile(r"\{[\s\S]*?\}")


def strip_code_fence(text: str) -> str:
    """Return the body of the first markdown code block, if any."""
    if "```" in text:
        match = _CODE_FENCE.search(text)
        if match and match.group(1):
            return match.group(1)
    return text


def is_array_text(text: str) -> bool:
    """Decide whether text holds a JSON array rather than an object."""
    stripped = text.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        return True
    if stripped.startswith("{") and stripped.endswith("}"):
        return False

    # Prose around the payload: whichever bracket opens first wins
    first_bracket = stripped.find("[")
    first_brace = stripped.find("{")
    if first_bracket == -1:
        return False
    return first_brace == -1 or first_bracket < first_brace


def extract_json_span(text: str, as_array: bool) -> str:
    """Trim leading and trailing prose around the outermost bracket span."""
    match = (_ARRAY_SPAN if as_array else _OBJECT_SPAN).search(text)
    if match and match.group(1):
        return match.group(1)
    return text


def repair_json_array(text: str) -> str:
    """Fix missing brackets, missing commas between objects and trailing commas."""
    fixed = text.strip()
    if not fixed.startswith("["):
        fixed = "[" + fixed
    if not fixed.endswith("]"):
        fixed = fixed + "]"
    fixed = re.sub(r"}\s*{", "},{", fixed)
    fixed = re.sub(r",\s*]", "]", fixed)
    return fixed


def repair_json_object(text: str) -> str:
    """Fix missing braces and trailing commas."""
    fixed = text.strip()
    if not fixed.startswith("{"):
        fixed = "{" + fixed
    if not fixed.endswith("}"):
        fixed = fixed + "}"
    fixed = re.sub(r",\s*}", "}", fixed)
    return fixed


def load_json_with_repair(text: str, as_array: bool) -> Any:
    """Parse JSON, retrying once after the repair pass.

    Raises:
        ParseError: If the repaired text still does not parse.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as first_error:
        logger.debug("json_parse_failed_attempting_repair", as_array=as_array, error=str(first_error))

    repaired = repair_json_array(text) if as_array else repair_json_object(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse AI response: {e}") from e


def _load_payload(text: str) -> tuple[Any, bool]:
    """Run fence stripping, shape detection, span trimming and parsing."""
    if not text or not text.strip():
        raise ParseError("Failed to parse AI response: empty response")

    cleaned = strip_code_fence(text)
    as_array = is_array_text(cleaned)
    cleaned = extract_json_span(cleaned, as_array)
    return load_json_with_repair(cleaned, as_array), as_array


def is_template_response(raw: dict[str, Any]) -> bool:
    """Check whether an action is an unedited echo of the prompt template."""
    api_config = raw.get("api_config")
    url = api_config.get("url") if isinstance(api_config, dict) else None

    for value in (raw.get("step_name"), raw.get("action"), url):
        if value is None:
            continue
        text = str(value)
        if any(marker in text for marker in PLACEHOLDER_MARKERS):
            return True
    return False


def missing_required_fields(raw: dict[str, Any]) -> list[str]:
    """List the required fields an action lacks."""
    missing = [name for name in ("id", "step_name", "action") if not raw.get(name)]

    api_config = raw.get("api_config")
    if not isinstance(api_config, dict) or not api_config:
        missing.append("api_config")
    elif not api_config.get("url"):
        missing.append("api_config.url")

    return missing


def _normalize_id(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def reconcile_action_ids(raws: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Give every action a distinct id, in place.

    An action without an id, or sharing one with an earlier action in the
    same batch, receives a freshly generated id.
    """
    seen: set[str] = set()

    for raw in raws:
        action_id = _normalize_id(raw.get("id"))
        if not isinstance(action_id, str) or not action_id.strip() or action_id in seen:
            action_id = generate_action_id()
        raw["id"] = action_id
        seen.add(action_id)

    return raws


def _actions_from_list(parsed: Any) -> list[Action]:
    if isinstance(parsed, dict):
        logger.warning("expected_array_got_object")
        parsed = [parsed]
    if not isinstance(parsed, list):
        raise ParseError(f"Failed to parse AI response: unexpected {type(parsed).__name__}")

    raws = [item for item in parsed if isinstance(item, dict)]
    reconcile_action_ids(raws)

    actions = []
    for raw in raws:
        if is_template_response(raw):
            logger.warning("skipping_template_response", step_name=str(raw.get("step_name"))[:80])
            continue

        missing = missing_required_fields(raw)
        if missing:
            logger.warning("skipping_invalid_action", action_id=raw.get("id"), missing=missing)
            continue

        try:
            actions.append(Action.model_validate(raw))
        except SchemaError as e:
            logger.warning("skipping_malformed_action", action_id=raw.get("id"), error=str(e))

    return actions


def _action_from_object(parsed: Any) -> Action:
    if not isinstance(parsed, dict):
        raise ParseError(f"Failed to parse AI response: expected an object, got {type(parsed).__name__}")

    if is_template_response(parsed):
        raise ParseError("AI returned a template response without proper customization")

    if "id" in parsed:
        parsed["id"] = _normalize_id(parsed["id"])

    missing = missing_required_fields(parsed)
    if missing:
        raise ValidationError(
            f"AI returned an invalid action missing required fields: {', '.join(missing)}"
        )

    try:
        return Action.model_validate(parsed)
    except SchemaError as e:
        raise ValidationError(f"AI returned a malformed action: {e}") from e


def parse_action_list(text: str) -> list[Action]:
    """Parse a response into a list of valid actions.

    Template echoes and incomplete actions are dropped; the list may be empty.

    Raises:
        ParseError: If the text is not parseable JSON even after repair.
    """
    parsed, _ = _load_payload(text)
    return _actions_from_list(parsed)


def parse_single_action(text: str) -> Action:
    """Parse a response holding exactly one action.

    Raises:
        ParseError: If unparseable or a template echo.
        ValidationError: If required fields are missing.
    """
    parsed, _ = _load_payload(text)
    return _action_from_object(parsed)


def parse_ai_response(text: str) -> Action | list[Action]:
    """Parse an extraction response of either shape.

    Args:
        text: Raw model output.

    Returns:
        A list of actions for array responses, a single action otherwise.

    Raises:
        ParseError: If unparseable, a template echo, or an array with no
            valid action left.
        ValidationError: If a single object lacks required fields.
    """
    parsed, as_array = _load_payload(text)

    if as_array:
        actions = _actions_from_list(parsed)
        if not actions:
            raise ParseError("No valid API actions found in the response")
        return actions

    return _action_from_object(parsed)


def parse_action_id_response(text: str) -> str | None:
    """Read {"actionId": ...} from a linking response.

    Returns:
        The chosen id, or None for null or unparseable output.
    """
    cleaned = strip_code_fence(text or "").strip()
    match = _FIRST_OBJECT.search(cleaned)
    if not match:
        return None

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.debug("unparseable_action_id_response", response=cleaned[:200])
        return None

    action_id = data.get("actionId") if isinstance(data, dict) else None
    if action_id is None or str(action_id).strip().lower() in ("", "null", "none"):
        return None
    return str(action_id)


def parse_url_list_response(text: str) -> list[str]:
    """Read a JSON array of URLs; empty on any failure."""
    cleaned = strip_code_fence(text or "").strip()
    cleaned = extract_json_span(cleaned, as_array=True)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.debug("unparseable_url_list_response", response=cleaned[:200])
        return []

    if not isinstance(data, list):
        return []
    return [url.strip() for url in data if isinstance(url, str) and url.strip()]

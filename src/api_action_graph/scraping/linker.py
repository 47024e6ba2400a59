"""Prerequisite linking between extracted actions.

Free-text prerequisites are resolved to the action that fulfils them, first
by asking the model (when a credential is available) and otherwise by a
keyword scoring heuristic. Each scoring rule is a separate function.
"""

import json
from typing import Iterable

from ..errors import ModelError
from ..models import Action, ApiResult, ApiSuccessResult, PrerequisiteReference
from ..settings import PipelineSettings
from ..utils import generate_action_id
from .llm_client import CompletionRequester
from .logging_config import get_logger
from .prompts import build_relevant_action_prompt
from .response_parser import parse_action_id_response

logger = get_logger(__name__)


STOPWORDS = {
    "must", "have", "need", "required", "should", "with", "your",
    "this", "that", "these", "those", "will", "been", "being",
    "from", "they", "them", "their", "there", "here", "where",
    "when", "what", "which", "who", "whom", "whose", "how",
}

MIN_TOKEN_LENGTH = 4

# Trigger term in the prerequisite -> related terms in the candidate
DOMAIN_TERMS = {
    "register": ["account", "user", "signup", "create"],
    "authenticate": ["login", "token", "key", "credential"],
    "verify": ["confirm", "validate", "check"],
    "permission": ["access", "right", "authorize"],
    "setup": ["configure", "setting", "initialize"],
}

_TOKEN_PUNCTUATION = ".,;:!?()[]{}\"'`"


def tokenize_prerequisite(text: str) -> list[str]:
    """Split prerequisite text into significant lowercase tokens."""
    tokens = []
    for word in text.lower().split():
        word = word.strip(_TOKEN_PUNCTUATION)
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOPWORDS:
            tokens.append(word)
    return tokens


def serialize_candidate(action: Action) -> str:
    """Lowercase JSON of a candidate, without its prerequisites."""
    data = action.model_dump(by_alias=True, exclude={"prerequisites"})
    return json.dumps(data, separators=(",", ":"), default=str).lower()


def score_name_match(prerequisite_text: str, action: Action) -> int:
    """+10 for an exact name match, +5 when one contains the other."""
    name = action.step_name.strip().lower()
    text = prerequisite_text.strip().lower()
    if not name or not text:
        return 0
    if name == text:
        return 10
    if name in text or text in name:
        return 5
    return 0


def score_input_matches(tokens: list[str], action: Action) -> int:
    """+2 per token found in the candidate's inputs."""
    inputs = json.dumps(action.inputs, separators=(",", ":"), default=str).lower()
    return sum(2 for token in tokens if token in inputs)


def score_serialized_matches(tokens: list[str], serialized: str) -> int:
    """+1 per token in the serialised candidate, plus a coverage bonus."""
    if not tokens:
        return 0

    matched = sum(1 for token in tokens if token in serialized)
    score = matched

    ratio = matched / len(tokens)
    if ratio >= 0.7:
        score += 3
    elif ratio >= 0.5:
        score += 2
    return score


def score_domain_affinity(prerequisite_text: str, action: Action, serialized: str) -> int:
    """Bonus when a trigger term pairs with a related term in the candidate.

    The first related term found per trigger counts: +3 when it is part of
    the action identifier, +2 when it only appears elsewhere.
    """
    text = prerequisite_text.lower()
    action_name = action.action.lower()
    score = 0

    for trigger, related_terms in DOMAIN_TERMS.items():
        if trigger not in text:
            continue
        for term in related_terms:
            if term in action_name:
                score += 3
                break
            if term in serialized:
                score += 2
                break

    return score


def score_candidate(prerequisite_text: str, action: Action, tokens: list[str] | None = None) -> int:
    """Total heuristic score of one candidate for a prerequisite."""
    if tokens is None:
        tokens = tokenize_prerequisite(prerequisite_text)
    serialized = serialize_candidate(action)

    return (
        score_name_match(prerequisite_text, action)
        + score_input_matches(tokens, action)
        + score_serialized_matches(tokens, serialized)
        + score_domain_affinity(prerequisite_text, action, serialized)
    )


def rank_candidates(prerequisite_text: str, candidates: Iterable[Action]) -> list[tuple[Action, int]]:
    """Score candidates, highest first. Ties keep input order."""
    tokens = tokenize_prerequisite(prerequisite_text)
    scored = [(action, score_candidate(prerequisite_text, action, tokens)) for action in candidates]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def find_relevant_action_heuristic(
    prerequisite_text: str,
    candidates: list[Action],
    min_score: int = 5,
) -> Action | None:
    """Pick the best-scoring candidate if it clears min_score."""
    ranked = rank_candidates(prerequisite_text, candidates)
    if not ranked:
        return None

    logger.debug(
        "heuristic_candidates_ranked",
        prerequisite=prerequisite_text[:50],
        top=[(action.step_name, score) for action, score in ranked[:3]],
    )

    best, score = ranked[0]
    return best if score >= min_score else None


class PrerequisiteLinker:
    """Resolves free-text prerequisites into references between actions."""

    def __init__(
        self,
        llm: CompletionRequester | None = None,
        settings: PipelineSettings | None = None,
    ):
        """Initialize the linker.

        Args:
            llm: Completion requester used when a credential is supplied.
            settings: Thresholds for prerequisite length and match score.
        """
        self.llm = llm
        self.settings = settings or PipelineSettings()

    async def _find_with_model(
        self,
        prerequisite_text: str,
        candidates: list[Action],
        credential: str,
        model: str,
    ) -> Action | None:
        prompt = build_relevant_action_prompt(prerequisite_text, candidates)
        try:
            response = await self.llm.complete(prompt, credential, model)
        except ModelError as e:
            logger.warning("model_linking_failed_using_heuristic", backend=e.backend, error=str(e))
            return None

        action_id = parse_action_id_response(response)
        if action_id is None:
            return None

        for candidate in candidates:
            if candidate.id == action_id:
                return candidate

        logger.debug("model_returned_unknown_action_id", action_id=action_id)
        return None

    async def find_relevant_action(
        self,
        prerequisite_text: str,
        actions: list[Action],
        current_action_id: str,
        credential: str | None = None,
        model: str = "openai",
    ) -> Action | None:
        """Find the action that fulfils a prerequisite.

        Args:
            prerequisite_text: The free-text requirement.
            actions: Every action in the collection.
            current_action_id: The requiring action, never a candidate.
            credential: Model credential. Without it only the heuristic runs.
            model: Backend selector.

        Returns:
            The fulfilling action, or None.
        """
        candidates = [a for a in actions if a.id != current_action_id]
        if not candidates:
            return None

        if credential and self.llm is not None:
            chosen = await self._find_with_model(prerequisite_text, candidates, credential, model)
            if chosen is not None:
                return chosen
            logger.debug("no_model_match_using_heuristic", prerequisite=prerequisite_text[:50])

        return find_relevant_action_heuristic(
            prerequisite_text, candidates, min_score=self.settings.min_match_score
        )

    async def link_action_prerequisites(
        self,
        actions: list[Action],
        credential: str | None = None,
        model: str = "openai",
    ) -> list[Action]:
        """Link prerequisites across a collection of actions.

        The input actions are left untouched; linked deep copies are returned.
        Already-resolved references are never revisited.
        """
        linked = [action.model_copy(deep=True) for action in actions]
        resolved = 0

        for action in linked:
            for key, text in action.unresolved_prerequisites().items():
                if len(text) < self.settings.min_prerequisite_length:
                    continue

                target = await self.find_relevant_action(text, linked, action.id, credential, model)
                if target is None:
                    continue

                action.prerequisites[key] = PrerequisiteReference(
                    target_action_id=target.id,
                    description=text,
                    target_action_name=target.step_name,
                )
                resolved += 1
                logger.debug(
                    "prerequisite_linked",
                    action_id=action.id,
                    prerequisite=key,
                    target_action_id=target.id,
                )

        logger.info("prerequisites_linked", actions=len(linked), resolved=resolved)
        return linked

    async def link_prerequisites(
        self,
        results: list[ApiResult],
        credential: str | None = None,
        model: str = "openai",
    ) -> list[ApiResult]:
        """Link the actions of every success result and re-attach them by id."""
        actions = [
            action
            for result in results
            if isinstance(result, ApiSuccessResult)
            for action in result.actions()
        ]
        if not actions:
            return list(results)

        linked = await self.link_action_prerequisites(actions, credential, model)
        return reattach_actions(results, linked)


def reattach_actions(results: list[ApiResult], actions: Iterable[Action]) -> list[ApiResult]:
    """Replace the actions of success results with same-id versions."""
    by_id = {action.id: action for action in actions}

    reattached: list[ApiResult] = []
    for result in results:
        if not isinstance(result, ApiSuccessResult):
            reattached.append(result)
            continue
        if isinstance(result.result, list):
            updated = [by_id.get(a.id, a) for a in result.result]
        else:
            updated = by_id.get(result.result.id, result.result)
        reattached.append(result.model_copy(update={"result": updated}))

    return reattached


def ensure_unique_action_ids(
    results: list[ApiResult],
    reserved_ids: Iterable[str] = (),
) -> list[ApiResult]:
    """Give actions sharing an id across results a fresh id.

    The first occurrence keeps its id, unless the id is reserved by actions
    outside the results. Returns new result objects.
    """
    seen: set[str] = set(reserved_ids)
    reconciled: list[ApiResult] = []

    for result in results:
        if not isinstance(result, ApiSuccessResult):
            reconciled.append(result)
            continue

        updated = []
        for action in result.actions():
            if action.id in seen:
                new_id = generate_action_id()
                logger.debug("duplicate_action_id_replaced", old_id=action.id, new_id=new_id, url=result.url)
                action = action.model_copy(update={"id": new_id})
            seen.add(action.id)
            updated.append(action)

        value = updated if isinstance(result.result, list) else updated[0]
        reconciled.append(result.model_copy(update={"result": value}))

    return reconciled

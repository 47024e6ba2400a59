"""Scraping pipeline for turning API documentation into linked actions."""

from .page_loader import BrowserPageFetcher, FetchedPage, HttpPageFetcher, PageFetcher, parse_page
from .classifier import (
    PageClassification,
    classify_page,
    detect_multiple_api_endpoints,
    detect_multiple_apis_from_html,
    has_multiple_apis,
    is_api_documentation,
)
from .link_extractor import (
    LinkDiscovery,
    discover_links,
    extract_api_endpoint_urls,
    extract_subsection_urls,
    find_prerequisite_links,
)
from .prompts import (
    build_extraction_prompt,
    build_prerequisite_url_prompt,
    build_relevant_action_prompt,
)
from .llm_client import CompletionRequester, LLMClient, ModelBackend, resolve_backend
from .response_parser import (
    parse_action_id_response,
    parse_action_list,
    parse_ai_response,
    parse_single_action,
    parse_url_list_response,
)
from .structure_extractor import extract_actions_from_structure
from .linker import (
    PrerequisiteLinker,
    ensure_unique_action_ids,
    find_relevant_action_heuristic,
    rank_candidates,
)
from .progress import ProgressChannel, TaskStore
from .pipeline import ApiDocsPipeline, link_manual_prerequisites, process_root_url

__all__ = [
    # Page loading
    "BrowserPageFetcher",
    "FetchedPage",
    "HttpPageFetcher",
    "PageFetcher",
    "parse_page",
    # Classification
    "PageClassification",
    "classify_page",
    "detect_multiple_api_endpoints",
    "detect_multiple_apis_from_html",
    "has_multiple_apis",
    "is_api_documentation",
    # Links
    "LinkDiscovery",
    "discover_links",
    "extract_api_endpoint_urls",
    "extract_subsection_urls",
    "find_prerequisite_links",
    # Prompts and completion
    "build_extraction_prompt",
    "build_prerequisite_url_prompt",
    "build_relevant_action_prompt",
    "CompletionRequester",
    "LLMClient",
    "ModelBackend",
    "resolve_backend",
    # Parsing
    "parse_action_id_response",
    "parse_action_list",
    "parse_ai_response",
    "parse_single_action",
    "parse_url_list_response",
    "extract_actions_from_structure",
    # Linking
    "PrerequisiteLinker",
    "ensure_unique_action_ids",
    "find_relevant_action_heuristic",
    "rank_candidates",
    # Progress
    "ProgressChannel",
    "TaskStore",
    # Pipeline
    "ApiDocsPipeline",
    "link_manual_prerequisites",
    "process_root_url",
]

"""Main pipeline orchestrator: discovery, extraction and linking."""

import asyncio
from typing import Callable, Iterable

from ..errors import (
    ClassificationNegative,
    FetchError,
    InvalidRootUrlError,
    ModelError,
    ParseError,
    PipelineError,
)
from ..models import (
    Action,
    ApiErrorResult,
    ApiResult,
    ApiSkippedResult,
    ApiSuccessResult,
    ManualLinkResult,
    PipelineResult,
    ProgressEventType,
    ProgressUpdate,
)
from ..settings import PipelineSettings
from ..utils import is_absolute_http_url
from .classifier import classify_page
from .link_extractor import discover_links, extract_api_endpoint_urls, find_prerequisite_links
from .linker import PrerequisiteLinker, ensure_unique_action_ids, reattach_actions
from .llm_client import CompletionRequester, LLMClient, default_credential, resolve_backend
from .logging_config import bind_run, get_logger, save_debug_artifact
from .page_loader import BrowserPageFetcher, FetchedPage, HttpPageFetcher, PageFetcher
from .progress import ProgressChannel
from .prompts import build_extraction_prompt, build_prerequisite_url_prompt
from .response_parser import parse_ai_response, parse_url_list_response
from .structure_extractor import extract_actions_from_structure

logger = get_logger(__name__)

NO_ENDPOINTS_ERROR = "No API documentation found"
NO_SUCCESS_ERROR = "No valid API documentation found in any of the linked pages"
NO_STRUCTURE_ERROR = (
    "Could not extract structured API data. Consider using the AI-based processor instead."
)

ProgressSink = ProgressChannel | Callable[[ProgressUpdate], object]


def _as_channel(progress: ProgressSink | None) -> ProgressChannel | None:
    if progress is None or isinstance(progress, ProgressChannel):
        return progress
    channel = ProgressChannel()
    channel.subscribe(progress)
    return channel


def _emit(
    channel: ProgressChannel | None,
    type: ProgressEventType,
    message: str,
    data: object = None,
    progress: float | None = None,
) -> None:
    if channel is not None:
        channel.emit(type, message, data=data, progress=progress)


def _dedupe(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(urls))


class ApiDocsPipeline:
    """Turns API documentation sites into linked actions."""

    def __init__(
        self,
        fetcher: PageFetcher | None = None,
        llm: CompletionRequester | None = None,
        settings: PipelineSettings | None = None,
    ):
        """Initialize the pipeline.

        Args:
            fetcher: Page fetcher. Defaults to the httpx fetcher.
            llm: Completion requester. Defaults to the OpenAI/Gemini client.
            settings: Tunable constants. Defaults to the environment.
        """
        self.settings = settings or PipelineSettings.from_env()
        self.fetcher = fetcher or HttpPageFetcher(
            timeout_s=self.settings.fetch_timeout_s,
            hard_timeout_s=self.settings.fetch_hard_timeout_s,
        )
        self.llm = llm or LLMClient(self.settings)
        self.linker = PrerequisiteLinker(self.llm, self.settings)

    @property
    def batch_size(self) -> int:
        """Concurrent URLs per batch; smaller for a heavy fetcher."""
        if getattr(self.fetcher, "is_heavy", False):
            return self.settings.browser_batch_size
        return self.settings.batch_size

    async def discover_endpoints(
        self,
        root_url: str,
        progress: ProgressChannel | None = None,
    ) -> list[str]:
        """Find documentation URLs reachable from the root page.

        Falls back to scanning the first few same-origin subsections when the
        root page links to no API documentation directly.

        Raises:
            FetchError: If the root page cannot be fetched.
        """
        log = logger.bind(root_url=root_url, phase="discovery")

        page = await self.fetcher.fetch(root_url)
        discovery = discover_links(root_url, page.tree)

        log.info(
            "root_page_scraped",
            endpoint_urls=len(discovery.api_endpoint_urls),
            subsection_urls=len(discovery.subsection_urls),
        )
        _emit(
            progress,
            ProgressEventType.SCRAPING_COMPLETE,
            f"Scraping complete. Found {len(discovery.api_endpoint_urls)} direct API endpoints "
            f"and {len(discovery.subsection_urls)} subsections.",
            data={
                "apiEndpointUrls": discovery.api_endpoint_urls,
                "subsectionUrls": discovery.subsection_urls,
            },
            progress=20,
        )

        endpoint_urls = list(discovery.api_endpoint_urls)
        if endpoint_urls or not discovery.subsection_urls:
            return _dedupe(endpoint_urls)

        subsections = discovery.subsection_urls[: self.settings.max_subsections]
        _emit(
            progress,
            ProgressEventType.INFO,
            "No direct API endpoints found, processing subsections",
            data={"subsectionCount": len(subsections)},
            progress=25,
        )

        for i, subsection_url in enumerate(subsections):
            _emit(
                progress,
                ProgressEventType.INFO,
                f"Processing subsection {i + 1}/{len(subsections)}: {subsection_url}",
                data={"url": subsection_url},
                progress=25 + (i / len(subsections)) * 15,
            )
            try:
                subsection_page = await self.fetcher.fetch(subsection_url)
            except FetchError as e:
                log.warning("subsection_fetch_failed", url=subsection_url, error=str(e))
                _emit(
                    progress,
                    ProgressEventType.WARNING,
                    f"Error processing subsection {subsection_url}: {e}",
                    data={"url": subsection_url, "error": str(e)},
                )
                continue
            endpoint_urls.extend(extract_api_endpoint_urls(subsection_url, subsection_page.tree))

        endpoint_urls = _dedupe(endpoint_urls)
        log.info("subsections_scraped", subsections=len(subsections), endpoint_urls=len(endpoint_urls))
        return endpoint_urls

    async def _extract_actions(
        self,
        page: FetchedPage,
        multiple_apis: bool,
        credential: str | None,
        model: str,
    ) -> Action | list[Action]:
        if not credential:
            actions = extract_actions_from_structure(page.url, page.tree)
            if not actions:
                raise ParseError(NO_STRUCTURE_ERROR)
            return actions if len(actions) > 1 else actions[0]

        prompt = build_extraction_prompt(page.text, multiple_apis=multiple_apis)
        save_debug_artifact(
            "prompt",
            {"url": page.url, "multiple_apis": multiple_apis, "prompt": prompt},
            phase="extraction",
        )
        response = await self.llm.complete(prompt, credential, model)
        save_debug_artifact(
            "completion",
            {"url": page.url, "multiple_apis": multiple_apis, "response": response},
            phase="extraction",
        )
        return parse_ai_response(response)

    async def _find_prerequisite_urls(
        self,
        page: FetchedPage,
        prerequisites: dict[str, str],
        credential: str | None,
        model: str,
    ) -> list[str]:
        if credential:
            prompt = build_prerequisite_url_prompt(
                prerequisites,
                page.markup,
                page.url,
                max_chars=self.settings.prerequisite_prompt_chars,
            )
            try:
                response = await self.llm.complete(prompt, credential, model)
                urls = [u for u in parse_url_list_response(response) if is_absolute_http_url(u)]
                return _dedupe(u for u in urls if u.rstrip("/") != page.url.rstrip("/"))
            except ModelError as e:
                logger.warning("prerequisite_url_prompt_failed", url=page.url, error=str(e))

        return find_prerequisite_links(page.url, page.tree, prerequisites)

    async def process_endpoint(
        self,
        url: str,
        credential: str | None = None,
        model: str = "openai",
        progress: ProgressChannel | None = None,
        discover_prerequisites: bool = False,
    ) -> ApiResult:
        """Classify and extract one documentation URL.

        Every failure is converted into an error result for this URL only.

        Args:
            url: The documentation URL.
            credential: Model credential. Without it the structural extractor runs.
            model: Backend selector.
            progress: Optional progress channel.
            discover_prerequisites: Also look for pages fulfilling prerequisites.

        Returns:
            A success, error or skipped result.
        """
        log = logger.bind(url=url[:100], phase="processing")
        _emit(progress, ProgressEventType.PROCESSING_URL, f"Processing {url}", data={"url": url})

        if not is_absolute_http_url(url):
            return ApiErrorResult(url=url, error=f"Invalid URL: {url}")

        try:
            page = await self.fetcher.fetch(url)

            classification = classify_page(page)
            if not classification.is_api_documentation:
                raise ClassificationNegative()

            extracted = await self._extract_actions(
                page, classification.multiple_apis, credential, model
            )
            result = ApiSuccessResult(
                url=url,
                result=extracted,
                multiple_apis=isinstance(extracted, list),
            )

            if discover_prerequisites:
                prerequisites: dict[str, str] = {}
                for action in result.actions():
                    prerequisites.update(action.unresolved_prerequisites())
                if prerequisites:
                    result.prerequisite_urls = await self._find_prerequisite_urls(
                        page, prerequisites, credential, model
                    )

        except ClassificationNegative as e:
            log.info("url_skipped", reason=e.reason)
            return ApiSkippedResult(url=url, reason=e.reason)
        except PipelineError as e:
            log.warning("url_failed", error_type=type(e).__name__, error=str(e))
            return ApiErrorResult(url=url, error=str(e))

        log.info(
            "url_processed",
            actions=len(result.actions()),
            multiple_apis=result.multiple_apis,
            prerequisite_urls=len(result.prerequisite_urls),
        )
        return result

    async def process_endpoints(
        self,
        urls: list[str],
        credential: str | None = None,
        model: str = "openai",
        progress: ProgressChannel | None = None,
        discover_prerequisites: bool = False,
        progress_range: tuple[float, float] | None = (40, 70),
    ) -> list[ApiResult]:
        """Process URLs in fixed-size concurrent batches.

        Batch N+1 starts only once batch N has resolved. Results follow
        submission order.
        """
        size = self.batch_size
        batches = [urls[i : i + size] for i in range(0, len(urls), size)]
        results: list[ApiResult] = []

        for index, batch in enumerate(batches):
            pct = None
            if progress_range is not None:
                start, end = progress_range
                pct = start + (index / len(batches)) * (end - start)
            _emit(
                progress,
                ProgressEventType.PROCESSING_BATCH,
                f"Processing batch {index + 1}/{len(batches)}",
                data={"batch": index + 1, "totalBatches": len(batches), "urls": batch},
                progress=pct,
            )
            logger.debug("processing_batch", batch=index + 1, total_batches=len(batches), size=len(batch))

            batch_results = await asyncio.gather(
                *(
                    self.process_endpoint(url, credential, model, progress, discover_prerequisites)
                    for url in batch
                )
            )
            results.extend(batch_results)

        return results

    async def process_root(
        self,
        root_url: str,
        credential: str | None = None,
        model: str = "openai",
        progress: ProgressSink | None = None,
    ) -> PipelineResult:
        """Run discovery, extraction and linking for a documentation site.

        Args:
            root_url: Entry page of the documentation.
            credential: Model credential. Falls back to the environment.
            model: Backend selector ("openai" or "gemini").
            progress: Optional channel or callback receiving progress updates.

        Returns:
            PipelineResult with partial results and counts. Finding nothing
            is reported through ``error`` rather than raised.

        Raises:
            InvalidRootUrlError: If root_url is not an absolute http(s) URL.
            ValueError: If model names no known backend.
            FetchError: If the root page cannot be fetched.
        """
        if not is_absolute_http_url(root_url):
            raise InvalidRootUrlError(f"Invalid root URL: {root_url!r}")
        resolve_backend(model)
        credential = credential or default_credential(model)
        channel = _as_channel(progress)

        with bind_run(root_url) as run_id:
            result = await self._run_root(root_url, credential, model, channel)
            result.run_id = run_id
            save_debug_artifact("pipeline_result", result, phase="complete")
        return result

    async def _run_root(
        self,
        root_url: str,
        credential: str | None,
        model: str,
        channel: ProgressChannel | None,
    ) -> PipelineResult:
        log = logger.bind(model=model)

        # Phase 1: Discover endpoint URLs
        _emit(channel, ProgressEventType.SCRAPING_START, f"Starting to scrape {root_url}", progress=0)
        log.info("pipeline_started", has_credential=bool(credential))
        endpoint_urls = await self.discover_endpoints(root_url, channel)

        if not endpoint_urls:
            log.warning("no_endpoints_found")
            _emit(channel, ProgressEventType.ERROR, NO_ENDPOINTS_ERROR)
            return PipelineResult(root_url=root_url, error=NO_ENDPOINTS_ERROR)

        # Phase 2: Classify and extract
        _emit(
            channel,
            ProgressEventType.PROCESSING_START,
            f"Processing {len(endpoint_urls)} API endpoints",
            data={"endpointUrls": endpoint_urls},
            progress=40,
        )
        results = await self.process_endpoints(
            endpoint_urls,
            credential,
            model,
            channel,
            discover_prerequisites=self.settings.discover_prerequisite_pages,
        )

        success_count = sum(1 for r in results if isinstance(r, ApiSuccessResult))
        error_count = sum(1 for r in results if isinstance(r, ApiErrorResult))
        skipped_count = sum(1 for r in results if isinstance(r, ApiSkippedResult))
        counts = {
            "successCount": success_count,
            "errorCount": error_count,
            "skippedCount": skipped_count,
        }
        _emit(
            channel,
            ProgressEventType.PROCESSING_COMPLETE,
            f"Processing complete. {success_count} succeeded, {error_count} failed, "
            f"{skipped_count} skipped.",
            data=counts,
            progress=70,
        )
        log.info("processing_complete", **counts)

        result = PipelineResult(
            root_url=root_url,
            endpoint_urls=endpoint_urls,
            results=results,
            success_count=success_count,
            error_count=error_count,
            skipped_count=skipped_count,
            total_scanned=len(endpoint_urls),
        )

        if success_count == 0:
            _emit(channel, ProgressEventType.ERROR, NO_SUCCESS_ERROR, data=counts)
            result.error = NO_SUCCESS_ERROR
            return result

        # Phase 3: Process pages found for prerequisites
        prerequisite_results: list[ApiResult] = []
        if self.settings.discover_prerequisite_pages:
            prerequisite_urls = _dedupe(
                url
                for r in results
                if isinstance(r, ApiSuccessResult)
                for url in r.prerequisite_urls
                if url not in endpoint_urls
            )
            if prerequisite_urls:
                _emit(
                    channel,
                    ProgressEventType.INFO,
                    f"Processing {len(prerequisite_urls)} prerequisite pages",
                    data={"prerequisiteUrls": prerequisite_urls},
                    progress=75,
                )
                prerequisite_results = await self.process_endpoints(
                    prerequisite_urls, credential, model, channel, progress_range=None
                )

        # Phase 4: Link prerequisites
        _emit(channel, ProgressEventType.LINKING_START, "Linking prerequisites", progress=80)
        combined = ensure_unique_action_ids(results + prerequisite_results)
        linked = await self.linker.link_prerequisites(combined, credential, model)
        result.results = linked[: len(results)]
        result.prerequisite_results = linked[len(results) :]

        _emit(
            channel,
            ProgressEventType.LINKING_COMPLETE,
            "Processing complete",
            data={**counts, "totalScanned": len(endpoint_urls)},
            progress=100,
        )
        log.info("pipeline_complete", total_scanned=len(endpoint_urls), **counts)
        return result

    async def link_manual_prerequisites(
        self,
        main_action_id: str,
        candidate_urls: list[str],
        credential: str | None = None,
        model: str = "openai",
        existing_actions: Iterable[Action] = (),
    ) -> ManualLinkResult:
        """Process user-supplied prerequisite pages and link them in.

        Args:
            main_action_id: The action whose prerequisites are being fulfilled.
            candidate_urls: Pages believed to document the prerequisite steps.
            credential: Model credential. Falls back to the environment.
            model: Backend selector.
            existing_actions: Actions already extracted, including the main one.

        Returns:
            ManualLinkResult with the linked main action and one workflow
            result per candidate URL.
        """
        resolve_backend(model)
        credential = credential or default_credential(model)
        existing = list(existing_actions)
        log = logger.bind(main_action_id=main_action_id, phase="manual_prerequisites")

        urls = _dedupe(url.strip() for url in candidate_urls if url and url.strip())
        log.info("processing_manual_prerequisites", candidate_urls=len(urls))

        workflows = await self.process_endpoints(urls, credential, model, progress_range=None)
        workflows = ensure_unique_action_ids(workflows, reserved_ids=(a.id for a in existing))

        workflow_actions = [
            action
            for workflow in workflows
            if isinstance(workflow, ApiSuccessResult)
            for action in workflow.actions()
        ]
        linked = await self.linker.link_action_prerequisites(
            existing + workflow_actions, credential, model
        )

        main_action = next((a for a in linked if a.id == main_action_id), None)
        if main_action is None:
            log.warning("main_action_not_found")

        return ManualLinkResult(
            main_action_id=main_action_id,
            main_action=main_action,
            prerequisite_workflows=reattach_actions(workflows, linked),
        )


def _build_pipeline(use_browser: bool, settings: PipelineSettings | None) -> ApiDocsPipeline:
    settings = settings or PipelineSettings.from_env()
    if use_browser:
        fetcher: PageFetcher = BrowserPageFetcher(
            timeout_ms=int(settings.fetch_timeout_s * 1000),
            hard_timeout_s=settings.fetch_hard_timeout_s,
        )
    else:
        fetcher = HttpPageFetcher(
            timeout_s=settings.fetch_timeout_s,
            hard_timeout_s=settings.fetch_hard_timeout_s,
        )
    return ApiDocsPipeline(fetcher=fetcher, settings=settings)


async def process_root_url(
    root_url: str,
    credential: str | None = None,
    model: str = "openai",
    progress: ProgressSink | None = None,
    use_browser: bool = False,
    settings: PipelineSettings | None = None,
) -> PipelineResult:
    """Convenience function to run the pipeline for one documentation site.

    Args:
        root_url: Entry page of the documentation.
        credential: Model credential. Falls back to the environment.
        model: Backend selector.
        progress: Optional channel or callback receiving progress updates.
        use_browser: Fetch pages with the headless browser.
        settings: Optional settings. Defaults to the environment.

    Returns:
        PipelineResult with extraction and linking results.
    """
    pipeline = _build_pipeline(use_browser, settings)
    return await pipeline.process_root(root_url, credential, model, progress)


async def link_manual_prerequisites(
    main_action_id: str,
    candidate_urls: list[str],
    credential: str | None = None,
    model: str = "openai",
    existing_actions: Iterable[Action] = (),
    use_browser: bool = False,
    settings: PipelineSettings | None = None,
) -> ManualLinkResult:
    """Convenience function to link manually supplied prerequisite pages."""
    pipeline = _build_pipeline(use_browser, settings)
    return await pipeline.link_manual_prerequisites(
        main_action_id, candidate_urls, credential, model, existing_actions
    )

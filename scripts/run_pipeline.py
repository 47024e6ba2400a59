#!/usr/bin/env python3
"""Script to turn an API documentation site into linked actions."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path for local development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from api_action_graph import FetchError, InvalidRootUrlError, PipelineSettings, ProgressUpdate
from api_action_graph.scraping import process_root_url


def print_progress(update: ProgressUpdate) -> None:
    """Print a progress update on one line."""
    pct = f"{update.progress:5.1f}%" if update.progress is not None else "      "
    print(f"[{pct}] {update.type.value}: {update.message}")


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Extract API actions from a documentation site and link their prerequisites."
    )
    parser.add_argument(
        "--url",
        type=str,
        required=True,
        help="Root URL of the API documentation",
    )
    parser.add_argument(
        "--model",
        type=str,
        choices=["openai", "gemini"],
        default="openai",
        help="Completion backend (default: openai)",
    )
    parser.add_argument(
        "--api-key",
        type=str,
        help="Model API key (default: OPENAI_API_KEY / GEMINI_API_KEY)",
    )
    parser.add_argument(
        "--browser",
        action="store_true",
        help="Fetch pages with a headless browser",
    )
    parser.add_argument(
        "--discover-prerequisites",
        action="store_true",
        help="Also process pages linked for unresolved prerequisites",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the full result as JSON to this path",
    )

    args = parser.parse_args()

    settings = PipelineSettings.from_env(
        discover_prerequisite_pages=args.discover_prerequisites
    )

    try:
        result = await process_root_url(
            args.url,
            credential=args.api_key,
            model=args.model,
            progress=print_progress,
            use_browser=args.browser,
            settings=settings,
        )
    except (InvalidRootUrlError, FetchError) as e:
        print(f"\nFailed: {e}")
        sys.exit(1)

    print(f"\n{'='*60}")
    print(f"Root URL: {result.root_url}")
    print(f"Scanned: {result.total_scanned} URLs")
    print(
        f"Success: {result.success_count}, errors: {result.error_count}, "
        f"skipped: {result.skipped_count}"
    )
    if result.prerequisite_results:
        print(f"Prerequisite pages: {len(result.prerequisite_results)}")
    print(f"{'='*60}")

    if args.output:
        args.output.write_text(
            json.dumps(result.model_dump(mode="json", by_alias=True), indent=2),
            encoding="utf-8",
        )
        print(f"\nSaved result to: {args.output}")

    if result.error:
        print(f"\nError: {result.error}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

"""Runtime settings for the pipeline.

All heuristic thresholds and batching constants live here so they can be
tuned without touching orchestration code.
"""

import os

from pydantic import BaseModel, Field

from . import utils  # noqa: F401  (loads .env)

ENV_PREFIX = "APIGRAPH_"


class PipelineSettings(BaseModel):
    """Tunable constants for discovery, extraction and linking."""

    # Batching
    batch_size: int = Field(default=5, ge=1)
    browser_batch_size: int = Field(default=3, ge=1)  # Heavier fetch backend
    max_subsections: int = Field(default=5, ge=0)

    # Fetching
    fetch_timeout_s: float = Field(default=30.0, gt=0)
    fetch_hard_timeout_s: float = Field(default=60.0, gt=0)

    # Linking (empirically tuned)
    min_prerequisite_length: int = Field(default=10, ge=0)
    min_match_score: int = 5
    prerequisite_prompt_chars: int = Field(default=5000, ge=0)
    discover_prerequisite_pages: bool = False

    # Completion backends
    openai_model: str = "gpt-4o"
    gemini_model: str = "gemini-2.0-flash"
    temperature: float = 0.1

    # Progress streaming
    task_ttl_s: float = Field(default=3600.0, gt=0)
    progress_queue_size: int = Field(default=100, ge=1)

    @classmethod
    def from_env(cls, **overrides) -> "PipelineSettings":
        """Build settings from APIGRAPH_* environment variables.

        Args:
            **overrides: Explicit values that win over the environment.

        Returns:
            Validated settings.
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls.model_validate(values)


def get_openai_api_key() -> str | None:
    """Get the OpenAI key from the environment."""
    return os.environ.get("OPENAI_API_KEY")


def get_gemini_api_key() -> str | None:
    """Get the Gemini key from the environment."""
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")

"""Data models for extracted API actions and pipeline results."""

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


class UnresolvedPrerequisite(BaseModel):
    """A free-text requirement not yet linked to another action."""

    kind: Literal["unresolved"] = "unresolved"
    text: str


class PrerequisiteReference(BaseModel):
    """A requirement resolved to the action that fulfils it."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["resolved"] = "resolved"
    target_action_id: str = Field(alias="targetActionId")
    description: str  # Original requirement text, verbatim
    target_action_name: str = Field(alias="targetActionName")


Prerequisite = Annotated[
    Union[UnresolvedPrerequisite, PrerequisiteReference],
    Field(discriminator="kind"),
]


def _coerce_prerequisite(value: Any) -> Any:
    """Turn raw model output into a tagged prerequisite payload."""
    if isinstance(value, (UnresolvedPrerequisite, PrerequisiteReference)):
        return value
    if isinstance(value, str):
        return {"kind": "unresolved", "text": value}
    if isinstance(value, dict):
        if "kind" in value:
            return value
        if "targetActionId" in value or "target_action_id" in value:
            return {"kind": "resolved", **value}
        # Legacy reference shape: {id, description, action_name}
        if "id" in value and "description" in value:
            return {
                "kind": "resolved",
                "targetActionId": str(value["id"]),
                "description": str(value["description"]),
                "targetActionName": str(value.get("action_name", "")),
            }
        if "text" in value:
            return {"kind": "unresolved", "text": str(value["text"])}
        return {"kind": "unresolved", "text": json.dumps(value)}
    return {"kind": "unresolved", "text": str(value)}


class ApiConfig(BaseModel):
    """Declarative HTTP call descriptor for an action."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: str
    method: str = "GET"
    pass_inputs_as_query: bool = Field(default=False, alias="passInputsAsQuery")
    auth: dict[str, Any] | None = None
    base_headers: dict[str, Any] = Field(default_factory=dict, alias="baseHeaders")
    rate_limit: dict[str, Any] = Field(default_factory=dict, alias="rateLimit")

    @field_validator("method", mode="before")
    @classmethod
    def _default_method(cls, value: Any) -> str:
        if not value or not isinstance(value, str):
            return "GET"
        return value.strip().upper()

    @field_validator("pass_inputs_as_query", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    @field_validator("auth", mode="before")
    @classmethod
    def _coerce_auth(cls, value: Any) -> dict[str, Any] | None:
        return value if isinstance(value, dict) else None

    @field_validator("base_headers", "rate_limit", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}


class Action(BaseModel):
    """One API operation extracted from documentation."""

    model_config = ConfigDict(extra="allow")

    id: str
    step_name: str
    action: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    prerequisites: dict[str, Prerequisite] = Field(default_factory=dict)
    api_config: ApiConfig
    response_schema: dict[str, Any] = Field(default_factory=dict)

    @field_validator("inputs", "response_schema", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @field_validator("prerequisites", mode="before")
    @classmethod
    def _coerce_prerequisites(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if isinstance(value, list):
            value = {f"prerequisite_{i + 1}": item for i, item in enumerate(value)}
        if not isinstance(value, dict):
            return {}
        return {
            str(key): _coerce_prerequisite(item)
            for key, item in value.items()
            if item is not None
        }

    @field_serializer("prerequisites")
    def _serialize_prerequisites(self, prerequisites: dict[str, Any], _info) -> dict[str, Any]:
        serialized: dict[str, Any] = {}
        for key, prerequisite in prerequisites.items():
            if isinstance(prerequisite, PrerequisiteReference):
                serialized[key] = prerequisite.model_dump(by_alias=True, exclude={"kind"})
            else:
                serialized[key] = prerequisite.text
        return serialized

    def unresolved_prerequisites(self) -> dict[str, str]:
        """Get the prerequisites still holding free text."""
        return {
            key: p.text
            for key, p in self.prerequisites.items()
            if isinstance(p, UnresolvedPrerequisite)
        }

    def to_template_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape requested by the extraction prompt."""
        return self.model_dump(by_alias=True)


class ApiSuccessResult(BaseModel):
    """A URL whose documentation yielded one or more actions."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    status: Literal["success"] = "success"
    result: Union[Action, list[Action]]
    multiple_apis: bool = Field(default=False, alias="multipleApis")
    prerequisite_urls: list[str] = Field(default_factory=list, alias="prerequisiteUrls")

    def actions(self) -> list[Action]:
        """Get the result as a flat list of actions."""
        if isinstance(self.result, list):
            return list(self.result)
        return [self.result]


class ApiErrorResult(BaseModel):
    """A URL that failed to fetch, classify, complete or parse."""

    url: str
    status: Literal["error"] = "error"
    error: str


class ApiSkippedResult(BaseModel):
    """A URL skipped without a model call."""

    url: str
    status: Literal["skipped"] = "skipped"
    reason: str


ApiResult = Annotated[
    Union[ApiSuccessResult, ApiErrorResult, ApiSkippedResult],
    Field(discriminator="status"),
]

# A manually supplied prerequisite page is processed like any endpoint URL.
PrerequisiteWorkflow = ApiResult


class PipelineResult(BaseModel):
    """Result of processing a root documentation URL."""

    model_config = ConfigDict(populate_by_name=True)

    root_url: str = Field(alias="rootUrl")
    endpoint_urls: list[str] = Field(default_factory=list, alias="endpointUrls")
    results: list[ApiResult] = Field(default_factory=list)
    prerequisite_results: list[ApiResult] = Field(
        default_factory=list, alias="prerequisiteResults"
    )
    success_count: int = Field(default=0, alias="successCount")
    error_count: int = Field(default=0, alias="errorCount")
    skipped_count: int = Field(default=0, alias="skippedCount")
    total_scanned: int = Field(default=0, alias="totalScanned")
    error: str | None = None
    run_id: str | None = Field(default=None, alias="runId")  # Names the debug artifact dir


class ManualLinkResult(BaseModel):
    """Result of linking manually supplied prerequisite pages."""

    model_config = ConfigDict(populate_by_name=True)

    main_action_id: str = Field(alias="mainActionId")
    main_action: Action | None = Field(default=None, alias="mainAction")
    prerequisite_workflows: list[PrerequisiteWorkflow] = Field(
        default_factory=list, alias="prerequisiteWorkflows"
    )


class ProgressEventType(str, Enum):
    """Stage transitions reported while a pipeline runs."""

    SCRAPING_START = "scraping_start"
    SCRAPING_COMPLETE = "scraping_complete"
    PROCESSING_START = "processing_start"
    PROCESSING_BATCH = "processing_batch"
    PROCESSING_URL = "processing_url"
    PROCESSING_COMPLETE = "processing_complete"
    LINKING_START = "linking_start"
    LINKING_COMPLETE = "linking_complete"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class ProgressUpdate(BaseModel):
    """A single progress event."""

    type: ProgressEventType
    message: str = "No message provided"
    data: Any = None
    progress: float | None = Field(default=None, ge=0, le=100)

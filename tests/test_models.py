"""Tests for action and result models."""

import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from api_action_graph.models import (
    Action,
    ApiConfig,
    ApiErrorResult,
    ApiResult,
    ApiSkippedResult,
    ApiSuccessResult,
    ManualLinkResult,
    PipelineResult,
    PrerequisiteReference,
    ProgressEventType,
    ProgressUpdate,
    UnresolvedPrerequisite,
)


def make_action(**overrides):
    data = {
        "id": "action_1",
        "step_name": "Send Email",
        "action": "send_email",
        "api_config": {"url": "https://api.host/email", "method": "POST"},
    }
    data.update(overrides)
    return Action(**data)


class TestApiConfig:
    """Tests for ApiConfig."""

    def test_method_defaults_to_get(self):
        """Test that a missing or empty method becomes GET."""
        assert ApiConfig(url="https://h/x").method == "GET"
        assert ApiConfig(url="https://h/x", method=None).method == "GET"
        assert ApiConfig(url="https://h/x", method="").method == "GET"

    def test_method_uppercased(self):
        """Test that the method is normalised to upper case."""
        assert ApiConfig(url="https://h/x", method=" post ").method == "POST"

    def test_aliases(self):
        """Test camelCase aliases on input and output."""
        config = ApiConfig.model_validate(
            {
                "url": "https://h/x",
                "passInputsAsQuery": "true",
                "baseHeaders": {"Accept": "application/json"},
                "rateLimit": {"requestsPerMinute": 60},
            }
        )

        assert config.pass_inputs_as_query is True
        assert config.base_headers == {"Accept": "application/json"}

        dumped = config.model_dump(by_alias=True)
        assert dumped["passInputsAsQuery"] is True
        assert dumped["rateLimit"] == {"requestsPerMinute": 60}

    def test_non_mapping_fields_dropped(self):
        """Test that malformed auth and header values are replaced."""
        config = ApiConfig(url="https://h/x", auth="bearer", baseHeaders="json")
        assert config.auth is None
        assert config.base_headers == {}

    def test_extra_fields_kept(self):
        """Test that unknown config keys survive."""
        config = ApiConfig.model_validate({"url": "https://h/x", "timeout": 10})
        assert config.model_dump()["timeout"] == 10


class TestPrerequisites:
    """Tests for prerequisite coercion and serialisation."""

    def test_string_becomes_unresolved(self):
        """Test that free text is stored as an unresolved prerequisite."""
        action = make_action(prerequisites={"sender": "Must have a sender"})
        assert action.prerequisites["sender"] == UnresolvedPrerequisite(text="Must have a sender")

    def test_reference_shape(self):
        """Test that a serialised reference is read back as resolved."""
        action = make_action(
            prerequisites={
                "sender": {
                    "targetActionId": "action_2",
                    "description": "Must have a sender",
                    "targetActionName": "Create Sender",
                }
            }
        )
        reference = action.prerequisites["sender"]

        assert isinstance(reference, PrerequisiteReference)
        assert reference.target_action_id == "action_2"

    def test_legacy_reference_shape(self):
        """Test that the older {id, description, action_name} shape is accepted."""
        action = make_action(
            prerequisites={
                "sender": {"id": 2, "description": "Must have a sender", "action_name": "Create Sender"}
            }
        )
        reference = action.prerequisites["sender"]

        assert reference.target_action_id == "2"
        assert reference.target_action_name == "Create Sender"

    def test_list_gets_numbered_keys(self):
        """Test that a list of requirements is keyed by position."""
        action = make_action(prerequisites=["An account", None, "A verified domain"])
        assert action.unresolved_prerequisites() == {
            "prerequisite_1": "An account",
            "prerequisite_3": "A verified domain",
        }

    def test_unknown_dict_kept_as_text(self):
        """Test that an unrecognised object becomes JSON text."""
        action = make_action(prerequisites={"odd": {"foo": 1}})
        assert action.prerequisites["odd"].text == '{"foo": 1}'

    def test_not_a_mapping(self):
        """Test that scalar prerequisites are discarded."""
        assert make_action(prerequisites="none").prerequisites == {}
        assert make_action(prerequisites=None).prerequisites == {}

    def test_serialisation_shape(self):
        """Test that text stays a string and references become objects."""
        action = make_action(
            prerequisites={
                "domain": "A verified domain",
                "sender": PrerequisiteReference(
                    target_action_id="action_2",
                    description="Must have a sender",
                    target_action_name="Create Sender",
                ),
            }
        )

        dumped = action.model_dump(by_alias=True)
        assert dumped["prerequisites"] == {
            "domain": "A verified domain",
            "sender": {
                "targetActionId": "action_2",
                "description": "Must have a sender",
                "targetActionName": "Create Sender",
            },
        }

    def test_dump_round_trip(self):
        """Test that a dumped action validates back to an equal one."""
        action = make_action(
            inputs={"to": {"type": "string"}},
            prerequisites={
                "domain": "A verified domain",
                "sender": {"targetActionId": "a2", "description": "d", "targetActionName": "n"},
            },
        )
        assert Action.model_validate(action.to_template_dict()) == action

    def test_unresolved_prerequisites(self):
        """Test that only free-text prerequisites are reported."""
        action = make_action(
            prerequisites={
                "domain": "A verified domain",
                "sender": {"targetActionId": "a2", "description": "d", "targetActionName": "n"},
            }
        )
        assert action.unresolved_prerequisites() == {"domain": "A verified domain"}


class TestAction:
    """Tests for Action."""

    def test_defaults(self):
        """Test optional fields default to empty mappings."""
        action = make_action(inputs=None, response_schema="object")
        assert action.inputs == {}
        assert action.response_schema == {}
        assert action.prerequisites == {}

    def test_extra_fields_kept(self):
        """Test that extra fields from the model survive serialisation."""
        action = make_action(description="Sends an email")
        assert action.model_dump()["description"] == "Sends an email"

    def test_missing_required_field(self):
        """Test that api_config is required."""
        with pytest.raises(PydanticValidationError):
            Action(id="a", step_name="b", action="c")


class TestResults:
    """Tests for per-URL and pipeline results."""

    def test_discriminated_union(self):
        """Test that results are told apart by status."""
        adapter = TypeAdapter(list[ApiResult])
        results = adapter.validate_python(
            [
                {"url": "https://h/a", "status": "error", "error": "boom"},
                {"url": "https://h/b", "status": "skipped", "reason": "Not API documentation"},
                {
                    "url": "https://h/c",
                    "status": "success",
                    "result": [
                        {
                            "id": "a1",
                            "step_name": "A",
                            "action": "a",
                            "api_config": {"url": "https://api.host/a"},
                        }
                    ],
                    "multipleApis": True,
                },
            ]
        )

        assert isinstance(results[0], ApiErrorResult)
        assert isinstance(results[1], ApiSkippedResult)
        assert isinstance(results[2], ApiSuccessResult)
        assert results[2].multiple_apis is True
        assert isinstance(results[2].result, list)

    def test_actions_flattens(self):
        """Test that a single action is returned as a one-item list."""
        action = make_action()
        assert ApiSuccessResult(url="https://h/a", result=action).actions() == [action]
        assert ApiSuccessResult(url="https://h/a", result=[action, action]).actions() == [action, action]

    def test_pipeline_result_aliases(self):
        """Test camelCase keys in the pipeline result."""
        result = PipelineResult(
            root_url="https://h/",
            results=[ApiErrorResult(url="https://h/a", error="boom")],
            error_count=1,
            total_scanned=1,
        )
        dumped = result.model_dump(mode="json", by_alias=True)

        assert dumped["rootUrl"] == "https://h/"
        assert dumped["errorCount"] == 1
        assert dumped["totalScanned"] == 1
        assert dumped["prerequisiteResults"] == []
        assert dumped["results"][0] == {"url": "https://h/a", "status": "error", "error": "boom"}
        assert dumped["error"] is None
        assert dumped["runId"] is None

    def test_manual_link_result(self):
        """Test the manual link result shape."""
        result = ManualLinkResult(main_action_id="action_1")
        dumped = result.model_dump(by_alias=True)
        assert dumped == {"mainActionId": "action_1", "mainAction": None, "prerequisiteWorkflows": []}


class TestProgressUpdate:
    """Tests for ProgressUpdate."""

    def test_defaults(self):
        """Test default message and empty payload."""
        update = ProgressUpdate(type=ProgressEventType.INFO)
        assert update.message == "No message provided"
        assert update.data is None
        assert update.progress is None

    def test_bounds(self):
        """Test that the percentage must lie within 0..100."""
        with pytest.raises(PydanticValidationError):
            ProgressUpdate(type=ProgressEventType.INFO, progress=101)
        with pytest.raises(PydanticValidationError):
            ProgressUpdate(type=ProgressEventType.INFO, progress=-1)

    def test_type_from_string(self):
        """Test that event types parse from their values."""
        update = ProgressUpdate.model_validate({"type": "linking_complete", "progress": 100})
        assert update.type is ProgressEventType.LINKING_COMPLETE

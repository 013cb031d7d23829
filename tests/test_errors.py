"""Tests for upstream error classification."""
import pytest

from linear_core.errors import (
    EntityNotFoundError,
    ErrorKind,
    InvalidParamsError,
    LinearAPIError,
    classify,
    is_entity_error,
    parse_linear_error,
)

ENTITY_ERROR_MESSAGES = [
    "Argument Validation Error - projectId must be a UUID.",
    "Argument Validation Error - each value in teamIds must be a UUID.",
    "Entity not found: Project - Could not find referenced Project.",
    "Entity not found: Team - Could not find referenced Team.",
    "Entity not found: Team: teamIds contained an entry that could not be found.",
    "Argument Validation Error - each value in labelIds must be a UUID.",
    "Argument Validation Error - stateId is invalid.",
    "Entity not found: assigneeId.",
    "Argument Validation Error - projectMilestoneId is required.",
    "Argument Validation Error - labelId must be a UUID.",
    "Entity not found: labelId - Could not find referenced label.",
    "Argument Validation Error - projectMilestone must be a UUID.",
    "Entity not found: projectMilestone - Could not find referenced milestone.",
    "Argument Validation Error - projectId must be a UUID. Additional info here.",
    "Argument Validation Error - each value in teamIds must be a UUID (details).",
    "Entity not found: Team: teamIds contained an entry that could not be found. Error code 404.",
    "Argument Validation Error - each value in labelIds must be a UUID - invalid format.",
    "Argument Validation Error: stateId is invalid format.",
    "Entity not found: assigneeId not found in workspace.",
    "Argument Validation Error: projectMilestoneId is required field.",
    "Entity not found: projectMilestone - Milestone not found.",
    "Argument Validation Error:projectId must be a UUID.",
    "Entity not found:Project - Could not find referenced Project.",
    "Entity not found:Team:teamIds contained an entry that could not be found.",
]

NON_ENTITY_ERROR_MESSAGES = [
    "Some other random error message.",
    "User permission error.",
    "Network connection timeout.",
    "Argument Validation Error - name must be a string.",
    "Entity not found: User - Could not find user.",
    "Argument Validation Error - invalid input.",
    "Entity not found: SomeOtherEntity.",
    "Argument Validation Error - invalid format provided.",
    "Entity not found: The requested resource was not found.",
    "Argument Validation Error: Input data is malformed.",
    "Entity not found: Resource does not exist.",
    "",
]


def record_not_found(message):
    return [{"message": "Entity not found", "extensions": {"type": "RecordNotFound", "userPresentableMessage": message}}]


class TestIsEntityError:
    """Test recognition of known entity error messages."""

    @pytest.mark.parametrize("message", ENTITY_ERROR_MESSAGES)
    def test_known_entity_errors(self, message):
        """Test that known upstream entity error wordings are recognised."""
        assert is_entity_error(message)

    @pytest.mark.parametrize("message", NON_ENTITY_ERROR_MESSAGES)
    def test_other_messages_rejected(self, message):
        """Test that unrelated messages, and the empty string, are rejected."""
        assert not is_entity_error(message)

    def test_none_rejected(self):
        assert not is_entity_error(None)


class TestClassify:
    """Test message classification into error kinds."""

    def test_validation_error_captures_field(self):
        result = classify("Argument Validation Error - projectMilestoneId is required.")
        assert result.kind is ErrorKind.VALIDATION
        assert result.field_name == "projectMilestoneId"
        assert result.recoverable

    def test_not_found_error(self):
        result = classify("Entity not found: Project - Could not find referenced Project.")
        assert result.kind is ErrorKind.NOT_FOUND
        assert result.field_name == "Project"

    def test_longer_field_name_wins_over_prefix(self):
        """Test that labelIds is not captured as labelId."""
        result = classify("Argument Validation Error - each value in labelIds must be a UUID.")
        assert result.field_name == "labelIds"

    def test_unknown_message(self):
        result = classify("Network connection timeout.")
        assert result.kind is ErrorKind.UNKNOWN
        assert not result.recoverable


class TestParseLinearError:
    """Test structured RecordNotFound parsing."""

    def test_entity_with_id(self):
        result = parse_linear_error(record_not_found('ProjectMilestone with id "m-1" was not found'))
        assert result.kind is ErrorKind.NOT_FOUND
        assert result.entity_name == "ProjectMilestone"
        assert result.field_name == "projectMilestoneId"
        assert result.invalid_id == "m-1"

    def test_referenced_entity(self):
        result = parse_linear_error(record_not_found("Entity not found: Team - Could not find referenced Team."))
        assert result.entity_name == "Team"
        assert result.field_name == "teamId"
        assert result.invalid_id is None

    def test_list_field(self):
        result = parse_linear_error(
            record_not_found("Entity not found: IssueLabel: labelIds contained an entry that could not be found.")
        )
        assert result.entity_name == "IssueLabel"
        assert result.field_name == "labelIds"

    def test_wrong_type_ignored(self):
        errors = [{"message": "x", "extensions": {"type": "InvalidInput", "userPresentableMessage": "x"}}]
        assert parse_linear_error(errors) is None

    def test_unmatched_record_not_found(self):
        assert parse_linear_error(record_not_found("Something else went wrong")) is None

    @pytest.mark.parametrize("errors", [None, [], {}, "oops", [{"message": "no extensions"}], [{"extensions": {}}]])
    def test_malformed_input(self, errors):
        assert parse_linear_error(errors) is None


class TestLinearAPIError:
    """Test classification at the client boundary."""

    def test_structured_errors_take_precedence(self):
        errors = record_not_found('Project with id "p-1" was not found')
        error = LinearAPIError.from_graphql_errors(errors, status_code=200)
        assert error.classification.field_name == "projectId"
        assert error.classification.invalid_id == "p-1"
        assert error.is_not_found
        assert error.user_presentable_message == 'Project with id "p-1" was not found'

    def test_message_classification_fallback(self):
        error = LinearAPIError.from_graphql_errors([{"message": "Argument Validation Error - stateId is invalid."}])
        assert error.classification.kind is ErrorKind.VALIDATION
        assert error.classification.field_name == "stateId"
        assert not error.is_not_found

    def test_unknown_error(self):
        error = LinearAPIError("Authentication required", status_code=401)
        assert not error.classification.recoverable
        assert error.status_code == 401

    def test_entity_not_found_is_invalid_params(self):
        error = EntityNotFoundError("team", "t-1", "Team with ID 't-1' not found.")
        assert isinstance(error, InvalidParamsError)
        assert error.kind == "team"
        assert error.entity_id == "t-1"
        assert str(error) == "Team with ID 't-1' not found."

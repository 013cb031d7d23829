"""Error taxonomy and upstream error classification.

Two families live here:

- LinearAPIError: raised by the GraphQL client at the upstream boundary. It is
  classified exactly once, when constructed, into an ErrorClassification
  (not found / validation / unknown) so callers never re-parse message text.
- LinearToolError and subclasses: failures reported back to the calling agent.
  The server maps InvalidParamsError to an invalid-params protocol error and
  everything else to an internal error.

The classifier recognises the upstream's known "Argument Validation Error" and
"Entity not found" message shapes. Those shapes are owned by the upstream
service; an unrecognised wording classifies as UNKNOWN and is surfaced
verbatim rather than enriched.
"""
import enum
import re
from dataclasses import dataclass
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    """Outcome of classifying an upstream error."""
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorClassification:
    """Tagged classification of an upstream failure."""

    kind: ErrorKind
    entity_name: Optional[str] = None
    field_name: Optional[str] = None
    invalid_id: Optional[str] = None

    @property
    def recoverable(self) -> bool:
        """True when the failure names a known entity/field worth enriching."""
        return self.kind is not ErrorKind.UNKNOWN


UNKNOWN = ErrorClassification(ErrorKind.UNKNOWN)

# Entity and field names whose errors are worth enriching with a listing of valid values
RELEVANT_ENTITY_FIELDS = (
    "projectId",
    "teamIds",
    "Project",
    "Team",
    "stateId",
    "assigneeId",
    "labelId",
    "labelIds",
    "projectMilestoneId",
    "projectMilestone",
)

_ENTITY_ERROR_PATTERN = re.compile(
    r"(Argument Validation Error|Entity not found).*?"
    r"(" + "|".join(RELEVANT_ENTITY_FIELDS) + r")"
    r"(?:[\s:.-]|$)",
    re.IGNORECASE,
)

# "Project with id "abc" was not found"
_NOT_FOUND_WITH_ID = re.compile(r'^(\w+) with id "([^"]+)" was not found$')
# "Entity not found: Project - Could not find referenced Project."
_NOT_FOUND_REFERENCED = re.compile(r"^Entity not found: (\w+) - Could not find referenced \1\.$")
# "Entity not found: Team: teamIds contained an entry that could not be found."
_NOT_FOUND_IN_LIST = re.compile(
    r"^Entity not found: (\w+): (\w+) contained an entry that could not be found\.$"
)


def is_entity_error(message: Optional[str]) -> bool:
    """Check whether an error message concerns an entity or field we can enrich.

    Matches "Argument Validation Error" or "Entity not found" followed by one of
    RELEVANT_ENTITY_FIELDS (case-insensitive) ending at a word boundary.

    Args:
        message: Upstream error message

    Returns:
        True for a recognised entity error, False otherwise (including empty input)
    """
    if not message:
        return False
    return _ENTITY_ERROR_PATTERN.search(message) is not None


def classify(message: Optional[str]) -> ErrorClassification:
    """Classify a free-text upstream error message.

    Args:
        message: Upstream error message

    Returns:
        NOT_FOUND or VALIDATION with the captured field name when the message
        is an entity error, otherwise UNKNOWN
    """
    if not message:
        return UNKNOWN
    match = _ENTITY_ERROR_PATTERN.search(message)
    if match is None:
        return UNKNOWN

    keyword, field_name = match.group(1), match.group(2)
    kind = ErrorKind.NOT_FOUND if keyword.lower() == "entity not found" else ErrorKind.VALIDATION
    return ErrorClassification(kind, field_name=field_name)


def _field_for(entity_name: str) -> str:
    return f"{entity_name[:1].lower()}{entity_name[1:]}Id"


def parse_linear_error(errors: Any) -> Optional[ErrorClassification]:
    """Extract entity-not-found details from a structured GraphQL error list.

    Only the first error is inspected, and only when its extensions mark it as
    RecordNotFound with a user-presentable message.

    Args:
        errors: The ``errors`` array of a GraphQL response

    Returns:
        NOT_FOUND classification with entity/field/id details, or None
    """
    if not isinstance(errors, list) or not errors:
        return None

    first = errors[0]
    if not isinstance(first, dict):
        return None
    extensions = first.get("extensions")
    if not isinstance(extensions, dict) or extensions.get("type") != "RecordNotFound":
        return None
    message = extensions.get("userPresentableMessage")
    if not isinstance(message, str):
        return None

    match = _NOT_FOUND_WITH_ID.match(message)
    if match:
        entity_name, invalid_id = match.group(1), match.group(2)
        return ErrorClassification(
            ErrorKind.NOT_FOUND,
            entity_name=entity_name,
            field_name=_field_for(entity_name),
            invalid_id=invalid_id,
        )

    match = _NOT_FOUND_REFERENCED.match(message)
    if match:
        entity_name = match.group(1)
        return ErrorClassification(
            ErrorKind.NOT_FOUND, entity_name=entity_name, field_name=_field_for(entity_name)
        )

    match = _NOT_FOUND_IN_LIST.match(message)
    if match:
        return ErrorClassification(
            ErrorKind.NOT_FOUND, entity_name=match.group(1), field_name=match.group(2)
        )

    return None


# ============================================================================
# Upstream boundary
# ============================================================================

class LinearAPIError(Exception):
    """Raised by LinearClient when the Linear API reports a failure."""

    def __init__(
        self,
        message: str,
        errors: Optional[list] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.status_code = status_code
        self.classification = parse_linear_error(self.errors) or classify(message)

    @classmethod
    def from_graphql_errors(cls, errors: list, status_code: Optional[int] = None) -> "LinearAPIError":
        """Build an error from the ``errors`` array of a GraphQL response."""
        messages = []
        for error in errors:
            if isinstance(error, dict):
                messages.append(str(error.get("message") or error))
            else:
                messages.append(str(error))
        return cls("; ".join(messages) or "Unknown Linear API error", errors=errors, status_code=status_code)

    @property
    def user_presentable_message(self) -> Optional[str]:
        for error in self.errors:
            if isinstance(error, dict):
                message = (error.get("extensions") or {}).get("userPresentableMessage")
                if message:
                    return message
        return None

    @property
    def is_not_found(self) -> bool:
        """True when the upstream says the requested record does not exist."""
        if self.classification.kind is ErrorKind.NOT_FOUND:
            return True
        for error in self.errors:
            if isinstance(error, dict):
                error_type = str((error.get("extensions") or {}).get("type", "")).lower()
                if error_type in ("recordnotfound", "entity not found"):
                    return True
        return "not found" in self.message.lower()


# ============================================================================
# Tool-facing errors
# ============================================================================

class LinearToolError(Exception):
    """Base class for failures reported back to the calling agent."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidParamsError(LinearToolError):
    """A referenced ID does not resolve, or a dependent parameter is missing."""
    pass


class EntityNotFoundError(InvalidParamsError):
    """A looked-up entity does not exist.

    ``available`` holds the listing of valid alternatives appended to the
    message, when one could be fetched.
    """

    def __init__(self, kind: str, entity_id: str, message: str, available: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.entity_id = entity_id
        self.available = available


class UpstreamError(LinearToolError):
    """Unexpected upstream failure, or a mutation that returned no entity."""
    pass

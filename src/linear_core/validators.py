"""Existence validators, "available X" listings and entity-error enrichment.

Validators fetch a referenced entity before a mutation and raise
InvalidParamsError with a listing of valid alternatives when it does not
exist. Listings are best-effort: if fetching one fails, a placeholder string
is returned instead so the original error is never masked.
"""
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from .client import LinearClient
from .errors import (
    EntityNotFoundError,
    ErrorClassification,
    InvalidParamsError,
    LinearAPIError,
    UpstreamError,
)

logger = logging.getLogger("linear-core.validators")


def _nodes(connection: Optional[dict]) -> list:
    return (connection or {}).get("nodes") or []


def _as_json(items: list) -> str:
    return json.dumps(items, indent=2)


def _prefix(context: str) -> str:
    return f"{context}: " if context else ""


# ============================================================================
# Available listings
# ============================================================================

async def _listing(what: str, build: Callable[[], Awaitable[str]]) -> str:
    try:
        return await build()
    except (LinearAPIError, httpx.HTTPError) as e:
        logger.warning(f"Could not fetch available {what}: {e}")
        return f"(Could not fetch available {what}: {e})"


async def available_teams_json(client: LinearClient) -> str:
    async def build():
        teams = _nodes(await client.teams())
        return _as_json([{"id": t.get("id"), "name": t.get("name"), "key": t.get("key")} for t in teams])
    return await _listing("teams", build)


async def available_projects_json(client: LinearClient) -> str:
    async def build():
        projects = _nodes(await client.projects())
        return _as_json([{"id": p.get("id"), "name": p.get("name")} for p in projects])
    return await _listing("projects", build)


async def available_states_json(client: LinearClient, team_id: Optional[str]) -> str:
    if not team_id:
        return "(Cannot fetch states without a valid teamId.)"

    async def build():
        states = await client.team_states(team_id)
        if states is None:
            return (f"(Could not fetch states: Team with ID '{team_id}' not found. "
                    f"Valid teams are: {await available_teams_json(client)})")
        return _as_json([{"id": s.get("id"), "name": s.get("name"), "type": s.get("type")} for s in _nodes(states)])
    return await _listing(f"states for team {team_id}", build)


async def available_assignees_json(client: LinearClient) -> str:
    async def build():
        users = _nodes(await client.users(filter={"active": {"eq": True}}))
        return _as_json([
            {"id": u.get("id"), "name": u.get("displayName"), "email": u.get("email")} for u in users
        ])
    return await _listing("assignees", build)


async def available_labels_json(client: LinearClient, team_id: Optional[str]) -> str:
    if not team_id:
        return "(Cannot fetch labels without a valid teamId.)"

    async def build():
        labels = await client.team_labels(team_id)
        if labels is None:
            return (f"(Could not fetch labels: Team with ID '{team_id}' not found. "
                    f"Valid teams are: {await available_teams_json(client)})")
        return _as_json([{"id": l.get("id"), "name": l.get("name"), "color": l.get("color")} for l in _nodes(labels)])
    return await _listing(f"labels for team {team_id}", build)


async def available_project_milestones_json(client: LinearClient, project_id: Optional[str]) -> str:
    if not project_id or not project_id.strip():
        return ("(Project milestones are specific to a project. Please provide a valid projectId. "
                f"Available projects: {await available_projects_json(client)})")

    async def build():
        milestones = await client.project_milestones(project_id)
        if milestones is None:
            return (f"(Could not fetch milestones: Project with ID '{project_id}' not found. "
                    f"Valid projects are: {await available_projects_json(client)})")
        return _as_json([{"id": m.get("id"), "name": m.get("name")} for m in _nodes(milestones)])
    return await _listing(f"milestones for project {project_id}", build)


async def recent_issues_json(client: LinearClient, limit: int = 5) -> str:
    async def build():
        issues = _nodes(await client.issues(first=limit, order_by="updatedAt"))
        return _as_json([
            {"id": i.get("id"), "title": i.get("title"), "identifier": i.get("identifier")} for i in issues
        ])
    return await _listing("issues", build)


# ============================================================================
# Reactive enrichment of upstream entity errors
# ============================================================================

# Classified field name -> listing it should be enriched with
_FIELD_LISTINGS = {
    "teamids": "team",
    "team": "team",
    "projectid": "project",
    "project": "project",
    "stateid": "state",
    "assigneeid": "assignee",
    "labelid": "label",
    "labelids": "label",
    "projectmilestoneid": "milestone",
    "projectmilestone": "milestone",
}


def _listing_kind(message: str, classification: ErrorClassification) -> Optional[str]:
    field_name = (classification.field_name or "").lower()
    if field_name in _FIELD_LISTINGS:
        return _FIELD_LISTINGS[field_name]

    lowered = message.lower()
    for keyword, kind in (
        ("team", "team"),
        ("project id", "project"),
        ("state", "state"),
        ("assignee", "assignee"),
        ("label", "label"),
        ("milestone", "milestone"),
    ):
        if keyword in lowered:
            return kind
    return None


async def enrich_entity_error(
    client: LinearClient,
    error: LinearAPIError,
    team_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Optional[InvalidParamsError]:
    """Turn a recoverable upstream entity error into an enriched InvalidParamsError.

    Args:
        client: Linear client used to fetch the listing
        error: Upstream failure from a mutation
        team_id: Team the mutation targeted (scopes state/label listings)
        project_id: Project the mutation targeted (scopes milestone listings)

    Returns:
        InvalidParamsError whose message is the upstream message followed by
        ``Available: <listing>``, or None if the error is not an entity error
    """
    if not error.classification.recoverable:
        return None

    kind = _listing_kind(error.message, error.classification)
    if kind == "team":
        available = await available_teams_json(client)
    elif kind == "project":
        available = await available_projects_json(client)
    elif kind == "state":
        available = await available_states_json(client, team_id)
    elif kind == "assignee":
        available = await available_assignees_json(client)
    elif kind == "label":
        available = await available_labels_json(client, team_id)
    elif kind == "milestone":
        available = await available_project_milestones_json(client, project_id)
    else:
        available = "[]"

    logger.info(f"Enriched {error.classification.kind.value} error on {error.classification.field_name} with {kind} listing")
    return InvalidParamsError(f"{error.message}\nAvailable: {available}")


async def raise_invalid_reference(
    error: LinearAPIError,
    entity_type: str,
    entity_id: str,
    context: str,
    available: Callable[[], Awaitable[str]],
):
    """Re-raise a failed validation lookup as InvalidParamsError with valid alternatives."""
    message = f"Invalid {entity_type}Id: '{entity_id}'."
    if context:
        message = f"{message} {context.strip()}."

    if error.user_presentable_message:
        message = f"{message} Details: {error.user_presentable_message}"
    elif error.is_not_found or "invalid uuid" in error.message.lower():
        message = f"{message} {entity_type} not found or ID is invalid."
    else:
        message = f"{message} Error during validation: {error.message}"

    raise InvalidParamsError(f"{message} Valid {entity_type}s are: {await available()}") from error


# ============================================================================
# Existence validators
# ============================================================================

_FETCHERS = {
    "issue": ("Issue", lambda c: c.issue),
    "team": ("Team", lambda c: c.team),
    "project": ("Project", lambda c: c.project),
    "user": ("User", lambda c: c.user),
    "state": ("Workflow state", lambda c: c.workflow_state),
    "label": ("Label", lambda c: c.issue_label),
    "milestone": ("Project milestone", lambda c: c.project_milestone),
    "cycle": ("Cycle", lambda c: c.cycle),
    "project_update": ("Project update", lambda c: c.project_update),
}


async def ensure_exists(client: LinearClient, kind: str, entity_id: str) -> dict:
    """Fetch an entity by ID or raise EntityNotFoundError.

    Args:
        client: Linear client
        kind: One of issue, team, project, user, state, label, milestone,
            cycle, project_update
        entity_id: ID to look up

    Returns:
        The upstream entity

    Raises:
        EntityNotFoundError: If the entity does not exist
    """
    if kind not in _FETCHERS:
        raise ValueError(f"Unknown entity kind: {kind}")
    label, fetcher = _FETCHERS[kind]
    entity = await fetcher(client)(entity_id)
    if entity is None:
        raise EntityNotFoundError(kind, entity_id, f"{label} with ID '{entity_id}' not found.")
    return entity


async def validate_team(client: LinearClient, team_id: str, context: str = "") -> dict:
    try:
        team = await client.team(team_id)
    except LinearAPIError as e:
        await raise_invalid_reference(e, "team", team_id, context, lambda: available_teams_json(client))
    if team is None:
        raise EntityNotFoundError(
            "team", team_id,
            f"{_prefix(context)}Team with ID '{team_id}' not found. "
            f"Valid teams are: {await available_teams_json(client)}",
        )
    return team


async def validate_project(client: LinearClient, project_id: str, context: str = "") -> dict:
    try:
        project = await client.project(project_id)
    except LinearAPIError as e:
        await raise_invalid_reference(e, "project", project_id, context, lambda: available_projects_json(client))
    if project is None:
        raise EntityNotFoundError(
            "project", project_id,
            f"{_prefix(context)}Project with ID '{project_id}' not found. "
            f"Valid projects are: {await available_projects_json(client)}",
        )
    return project


async def validate_state(client: LinearClient, team_id: str, state_id: str, context: str = "") -> dict:
    """Check that a workflow state exists within the given team."""
    team = await validate_team(client, team_id, f"for state validation {context}".strip())
    try:
        states = await client.team_states(team_id, filter={"id": {"eq": state_id}})
    except LinearAPIError as e:
        await raise_invalid_reference(
            e, "state", state_id, f"for team '{team.get('name')}' {context}",
            lambda: available_states_json(client, team_id),
        )
    matches = _nodes(states)
    if not matches:
        raise EntityNotFoundError(
            "state", state_id,
            f"{_prefix(context)}State with ID '{state_id}' not found for team '{team.get('name')}'. "
            f"Valid states are: {await available_states_json(client, team_id)}",
        )
    return matches[0]


async def validate_assignee(client: LinearClient, assignee_id: str, context: str = "") -> dict:
    """Check that the user exists and is active."""
    try:
        user = await client.user(assignee_id)
    except LinearAPIError as e:
        await raise_invalid_reference(e, "assignee", assignee_id, context, lambda: available_assignees_json(client))
    if user is None or not user.get("active"):
        status = "User not found."
        if user is not None:
            status = f"User '{user.get('displayName')}' is not active."
        raise EntityNotFoundError(
            "user", assignee_id,
            f"{_prefix(context)}Assignee with ID '{assignee_id}' is invalid. {status} "
            f"Valid assignees are: {await available_assignees_json(client)}",
        )
    return user


async def validate_labels(client: LinearClient, team_id: str, label_ids: list, context: str = "") -> list:
    """Check that every label ID belongs to the team. Returns the found labels."""
    team = await validate_team(client, team_id, f"for label validation {context}".strip())
    try:
        labels = await client.team_labels(team_id, filter={"id": {"in": list(label_ids)}})
    except LinearAPIError as e:
        await raise_invalid_reference(
            e, "label(s)", ", ".join(label_ids), f"for team '{team.get('name')}' {context}",
            lambda: available_labels_json(client, team_id),
        )
    found = _nodes(labels)
    found_ids = {label["id"] for label in found}
    missing = [label_id for label_id in label_ids if label_id not in found_ids]
    if missing:
        raise EntityNotFoundError(
            "label", ", ".join(missing),
            f"{_prefix(context)}Label(s) with ID(s) '{', '.join(missing)}' not found for team "
            f"'{team.get('name')}'. Valid labels are: {await available_labels_json(client, team_id)}",
        )
    return found


async def validate_project_milestone(
    client: LinearClient,
    milestone_id: str,
    for_project_id: Optional[str] = None,
    context: str = "",
) -> dict:
    """Check that a milestone exists and, when a project is given, belongs to it."""
    try:
        milestone = await client.project_milestone(milestone_id)
    except LinearAPIError as e:
        await raise_invalid_reference(
            e, "project milestone", milestone_id, context,
            lambda: available_project_milestones_json(client, for_project_id),
        )
    if milestone is None:
        raise EntityNotFoundError(
            "milestone", milestone_id,
            f"{_prefix(context)}Project milestone with ID '{milestone_id}' not found. "
            f"{await available_project_milestones_json(client, for_project_id)}",
        )

    actual_project_id = (milestone.get("project") or {}).get("id")
    if for_project_id and actual_project_id != for_project_id:
        target, actual = await _project_names(client, for_project_id, actual_project_id)
        raise InvalidParamsError(
            f"Project milestone '{milestone.get('name')}' ({milestone_id}) does not belong to project "
            f"'{target}'. It belongs to '{actual}'."
        )
    return milestone


async def _project_names(client: LinearClient, target_id: str, actual_id: Optional[str]) -> tuple:
    """Names for the mismatch message; IDs stand in when a lookup fails."""
    try:
        target = await client.project(target_id)
        actual = await client.project(actual_id) if actual_id else None
    except (LinearAPIError, httpx.HTTPError) as e:
        logger.warning(f"Could not fetch project names for milestone check: {e}")
        return target_id, actual_id
    return (
        target.get("name") if target else target_id,
        actual.get("name") if actual else actual_id,
    )


async def validate_issue_exists(client: LinearClient, issue_id: str, context: str = "") -> dict:
    """Fetch an issue; when missing, the error lists recently updated issues."""
    try:
        issue = await client.issue(issue_id)
    except LinearAPIError as e:
        raise UpstreamError(f"Error fetching issue '{issue_id}' for {context}: {e.message}") from e
    if issue is None:
        recent = await recent_issues_json(client)
        raise EntityNotFoundError(
            "issue", issue_id,
            f"{_prefix(context)}Issue with ID '{issue_id}' not found. Recent issues: {recent}",
            available=recent,
        )
    return issue


# ============================================================================
# ID-or-name lookup
# ============================================================================

@dataclass(frozen=True)
class LookupKind:
    """How to find one kind of entity by ID, then by name."""

    label: str
    plural: str
    fetch_by_id: Callable[[LinearClient, str], Awaitable[Optional[dict]]]
    search_by_name: Callable[[LinearClient, str], Awaitable[dict]]
    list_all: Callable[[LinearClient], Awaitable[dict]]
    summarize: Callable[[dict], str]


TEAM_LOOKUP = LookupKind(
    label="Team",
    plural="teams",
    fetch_by_id=lambda client, query: client.team(query),
    search_by_name=lambda client, query: client.teams(filter={
        "or": [{"name": {"eqIgnoreCase": query}}, {"key": {"eqIgnoreCase": query}}],
    }),
    list_all=lambda client: client.teams(),
    summarize=lambda team: f"{team.get('name')} ({team.get('key')})",
)

USER_LOOKUP = LookupKind(
    label="User",
    plural="users",
    fetch_by_id=lambda client, query: client.user(query),
    search_by_name=lambda client, query: client.users(filter={
        "or": [
            {"name": {"eqIgnoreCase": query}},
            {"email": {"eqIgnoreCase": query}},
            {"displayName": {"eqIgnoreCase": query}},
        ],
    }),
    list_all=lambda client: client.users(),
    summarize=lambda user: f"{user.get('name')} ({user.get('email')})",
)

PROJECT_LOOKUP = LookupKind(
    label="Project",
    plural="projects",
    fetch_by_id=lambda client, query: client.project(query),
    search_by_name=lambda client, query: client.projects(filter={"name": {"eqIgnoreCase": query}}),
    list_all=lambda client: client.projects(),
    summarize=lambda project: f"{project.get('name')}",
)


async def _available_summary(kind: LookupKind, client: LinearClient) -> str:
    async def build():
        entities = _nodes(await kind.list_all(client))
        return ", ".join(kind.summarize(e) for e in entities) or "none"
    return await _listing(kind.plural, build)


async def resolve_by_id_or_name(kind: LookupKind, client: LinearClient, query: str) -> dict:
    """Find an entity by ID, falling back to a case-insensitive name search.

    Multiple name matches resolve to the first one, in upstream order.

    Raises:
        InvalidParamsError: If the ID lookup fails with a recognised entity error
        UpstreamError: If the name search itself fails
        EntityNotFoundError: If neither lookup finds anything
    """
    try:
        entity = await kind.fetch_by_id(client, query)
        if entity is not None:
            return entity
    except LinearAPIError as e:
        if e.classification.recoverable:
            available = await _available_summary(kind, client)
            raise InvalidParamsError(f"{e.message}\nAvailable {kind.plural}: {available}") from e
        logger.info(f"{kind.label} lookup by ID '{query}' failed ({e.message}), searching by name")

    try:
        matches = _nodes(await kind.search_by_name(client, query))
    except LinearAPIError as e:
        raise UpstreamError(f"Error searching {kind.plural} by name \"{query}\": {e.message}") from e
    if matches:
        if len(matches) > 1:
            logger.info(f"{len(matches)} {kind.plural} match \"{query}\", using the first")
        return matches[0]

    available = await _available_summary(kind, client)
    raise EntityNotFoundError(
        kind.label.lower(),
        query,
        f"{kind.label} with ID or name \"{query}\" not found. Available {kind.plural}: {available}",
        available=available,
    )

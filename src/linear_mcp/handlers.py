"""MCP tool handlers for the Linear API.

All handlers follow a consistent pattern:
- Accept: a validated pydantic input model and a LinearClient
- Return: list[TextContent] holding one JSON document
- Raise: LinearToolError subclasses (InvalidParamsError for bad references,
  UpstreamError for upstream failures); the server maps these to MCP errors
- Log all operations for debugging

Where the upstream does not validate a referenced ID well (teams, assignees,
labels, milestones) the reference is validated before the mutation. Otherwise
upstream entity errors are enriched after the fact with a listing of valid
alternatives.
"""
import json
import logging
from typing import Any, Optional

from mcp.types import TextContent

from linear_core import schemas
from linear_core.client import LinearClient
from linear_core.errors import (
    EntityNotFoundError,
    InvalidParamsError,
    LinearAPIError,
    UpstreamError,
)
from linear_core.mappers import (
    map_comment,
    map_cycle,
    map_issue_status,
    map_issue_to_details,
    map_issue_to_git_branch,
    map_issue_to_my_issue,
    map_label,
    map_milestone,
    map_project,
    map_project_update,
    map_project_update_details,
    map_sub_issue_summary,
    map_team,
    map_user,
    resolve_all,
)
from linear_core.validators import (
    PROJECT_LOOKUP,
    TEAM_LOOKUP,
    USER_LOOKUP,
    available_projects_json,
    available_states_json,
    available_teams_json,
    enrich_entity_error,
    ensure_exists,
    validate_assignee,
    validate_issue_exists,
    validate_labels,
    validate_project,
    validate_project_milestone,
    validate_state,
)

from .resource_tools import make_list_handler, make_lookup_handler

logger = logging.getLogger("linear-mcp.handlers")

# Update fields where an explicit null means "clear this relation"
CLEARABLE_ISSUE_FIELDS = {"projectMilestoneId", "cycleId"}


def _json_content(payload: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


def _nodes(connection: Optional[dict]) -> list:
    return (connection or {}).get("nodes") or []


def _ref_id(entity: dict, relation: str) -> Optional[str]:
    return (entity.get(relation) or {}).get("id")


def _returned(payload: dict, key: str, action: str) -> dict:
    """Entity returned by a mutation payload; a missing entity is an upstream failure."""
    entity = payload.get(key)
    if not entity:
        raise UpstreamError(f"Failed to {action} or retrieve details. Sync ID: {payload.get('lastSyncId')}")
    return entity


def _changes(params: schemas.ToolInput, exclude: set, clearable: frozenset = frozenset()) -> dict:
    """Fields the caller actually provided, in wire names.

    Explicit nulls are dropped unless the field is clearable.
    """
    fields = params.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude=exclude)
    return {k: v for k, v in fields.items() if v is not None or k in clearable}


async def _upstream_failure(
    client: LinearClient,
    error: LinearAPIError,
    action: str,
    team_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Exception:
    enriched = await enrich_entity_error(client, error, team_id=team_id, project_id=project_id)
    if enriched is not None:
        return enriched
    return UpstreamError(f"{action}: {error.message}")


# ============================================================================
# Issue Handlers
# ============================================================================

def build_issue_filter(params: schemas.IssueListInput) -> Optional[dict]:
    """Translate list_issues arguments into a Linear IssueFilter."""
    issue_filter: dict = {}
    if params.query:
        issue_filter["or"] = [
            {"title": {"containsIgnoreCase": params.query}},
            {"description": {"containsIgnoreCase": params.query}},
        ]
    for relation, value in (
        ("team", params.team_id),
        ("state", params.state_id),
        ("assignee", params.assignee_id),
        ("project", params.project_id),
        ("projectMilestone", params.project_milestone_id),
        ("cycle", params.cycle_id),
    ):
        if value:
            issue_filter[relation] = {"id": {"eq": value}}
    return issue_filter or None


async def handle_list_issues(params: schemas.IssueListInput, client: LinearClient) -> list[TextContent]:
    """List issues, optionally filtered by text, team, state, assignee, project, milestone or cycle."""
    try:
        connection = await client.issues(
            filter=build_issue_filter(params),
            first=params.limit,
            include_archived=params.include_archived,
        )
    except LinearAPIError as e:
        raise await _upstream_failure(
            client, e, "Error listing issues", team_id=params.team_id, project_id=params.project_id
        ) from e

    issues = await resolve_all(*(map_issue_to_details(client, node) for node in _nodes(connection)))
    logger.info(f"Successfully listed {len(issues)} issues")
    return _json_content(issues)


async def handle_get_issue(params: schemas.IssueIdInput, client: LinearClient) -> list[TextContent]:
    """Get one issue with its relations and attachments."""
    issue = await ensure_exists(client, "issue", params.id)
    details = await map_issue_to_details(client, issue, include_attachments=True)
    logger.info(f"Successfully retrieved issue {details['identifier']}")
    return _json_content(details)


async def handle_create_issue(params: schemas.IssueCreateInput, client: LinearClient) -> list[TextContent]:
    """Create an issue.

    Only provided fields are sent. Upstream entity errors (bad team, project,
    state, assignee, label or milestone) come back with a listing of valid
    values appended.
    """
    payload = params.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        result = await client.create_issue(payload)
    except LinearAPIError as e:
        raise await _upstream_failure(
            client, e, "Failed to create issue", team_id=params.team_id, project_id=params.project_id
        ) from e

    issue = _returned(result, "issue", "create issue")
    details = await map_issue_to_details(client, issue)
    logger.info(f"Successfully created issue {details['identifier']} (ID: {details['id']})")
    return _json_content(details)


async def handle_update_issue(params: schemas.IssueUpdateInput, client: LinearClient) -> list[TextContent]:
    """Update an issue after validating every referenced entity.

    References are checked concurrently: project, state (within the issue's
    team), assignee (must be active), labels (within the issue's team) and
    milestone (must belong to the target project when one is known).
    """
    issue = await ensure_exists(client, "issue", params.id)
    changes = _changes(params, exclude={"id"}, clearable=frozenset(CLEARABLE_ISSUE_FIELDS))
    if not changes:
        raise InvalidParamsError("No fields to update were provided.")

    team_id = _ref_id(issue, "team")
    target_project_id = changes.get("projectId") or _ref_id(issue, "project")
    context = f"update_issue {params.id}"

    if (params.state_id or params.label_ids) and not team_id:
        raise InvalidParamsError(
            f"Issue '{params.id}' has no team, so stateId and labelIds cannot be validated."
        )

    checks = []
    if params.project_id:
        checks.append(validate_project(client, params.project_id, context))
    if params.state_id:
        checks.append(validate_state(client, team_id, params.state_id, context))
    if params.assignee_id:
        checks.append(validate_assignee(client, params.assignee_id, context))
    if params.label_ids:
        checks.append(validate_labels(client, team_id, params.label_ids, context))
    if params.project_milestone_id:
        checks.append(validate_project_milestone(client, params.project_milestone_id, target_project_id, context))
    await resolve_all(*checks)

    try:
        result = await client.update_issue(params.id, changes)
    except LinearAPIError as e:
        raise await _upstream_failure(
            client, e, "Error updating issue", team_id=team_id, project_id=target_project_id
        ) from e

    updated = _returned(result, "issue", "update issue")
    details = await map_issue_to_details(client, updated)
    logger.info(f"Successfully updated issue {details['identifier']}: {sorted(changes)}")
    return _json_content(details)


async def handle_list_comments(params: schemas.CommentListInput, client: LinearClient) -> list[TextContent]:
    """List the comments on an issue."""
    connection = await client.issue_comments(params.issue_id)
    if connection is None:
        raise EntityNotFoundError("issue", params.issue_id, f"Issue with ID '{params.issue_id}' not found.")
    comments = [map_comment(node) for node in _nodes(connection)]
    logger.info(f"Successfully listed {len(comments)} comments for issue {params.issue_id}")
    return _json_content(comments)


async def handle_create_comment(params: schemas.CommentCreateInput, client: LinearClient) -> list[TextContent]:
    """Comment on an issue. A missing issue is reported with recently updated issues."""
    await validate_issue_exists(client, params.issue_id, "create_comment")
    try:
        result = await client.create_comment({"issueId": params.issue_id, "body": params.body})
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to create comment: {e.message}") from e

    comment = _returned(result, "comment", "create comment")
    logger.info(f"Successfully created comment {comment['id']} on issue {params.issue_id}")
    return _json_content(map_comment(comment))


async def handle_get_issue_git_branch_name(params: schemas.IssueIdInput, client: LinearClient) -> list[TextContent]:
    """Derive the git branch name for an issue."""
    issue = await ensure_exists(client, "issue", params.id)
    return _json_content(map_issue_to_git_branch(issue))


async def handle_list_my_issues(params: schemas.MyIssuesInput, client: LinearClient) -> list[TextContent]:
    """List issues assigned to the authenticated user."""
    try:
        connection = await client.assigned_issues(first=params.limit, after=params.after, before=params.before)
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to list my issues: {e.message}") from e

    issues = await resolve_all(*(map_issue_to_my_issue(client, node) for node in _nodes(connection)))
    logger.info(f"Successfully listed {len(issues)} assigned issues")
    return _json_content(issues)


# ============================================================================
# Sub-issue Handlers
# ============================================================================

async def _parent_issue(client: LinearClient, parent_id: str) -> dict:
    parent = await client.issue(parent_id)
    if parent is None:
        raise EntityNotFoundError("issue", parent_id, f"Parent issue with ID '{parent_id}' not found.")
    return parent


def _parent_summary(parent: Optional[dict]) -> Optional[dict]:
    if not parent:
        return None
    return {"id": parent["id"], "identifier": parent.get("identifier"), "title": parent.get("title")}


async def handle_list_sub_issues(params: schemas.SubIssueListInput, client: LinearClient) -> list[TextContent]:
    """List the children of an issue, as summaries or full details."""
    parent = await _parent_issue(client, params.parent_id)
    children = _nodes(await client.issue_children(params.parent_id))

    if params.include_details:
        sub_issues = await resolve_all(*(map_issue_to_details(client, child) for child in children))
    else:
        sub_issues = [map_sub_issue_summary(child) for child in children]

    logger.info(f"Successfully listed {len(sub_issues)} sub-issues of {parent.get('identifier')}")
    return _json_content({
        "parentId": params.parent_id,
        "parentTitle": parent.get("title"),
        "parentIdentifier": parent.get("identifier"),
        "subIssues": sub_issues,
        "totalCount": len(sub_issues),
    })


async def handle_create_sub_issue(params: schemas.SubIssueCreateInput, client: LinearClient) -> list[TextContent]:
    """Create an issue under a parent, in the parent's team."""
    parent = await _parent_issue(client, params.parent_id)

    payload = params.model_dump(
        mode="json", by_alias=True, exclude_none=True, exclude={"copy_properties_from_parent"}
    )
    payload["teamId"] = _ref_id(parent, "team")
    if params.copy_properties_from_parent:
        for field, relation in (("projectId", "project"), ("cycleId", "cycle"), ("projectMilestoneId", "projectMilestone")):
            related_id = _ref_id(parent, relation)
            if related_id:
                payload[field] = related_id

    try:
        result = await client.create_issue(payload)
    except LinearAPIError as e:
        raise await _upstream_failure(
            client, e, "Failed to create sub-issue", team_id=payload["teamId"], project_id=payload.get("projectId")
        ) from e

    sub_issue = _returned(result, "issue", "create sub-issue")
    details = await map_issue_to_details(client, sub_issue)
    logger.info(f"Successfully created sub-issue {details['identifier']} under {parent.get('identifier')}")
    return _json_content({
        "success": True,
        "subIssue": details,
        "parentId": params.parent_id,
        "parentTitle": parent.get("title"),
        "parentIdentifier": parent.get("identifier"),
        "syncId": result.get("lastSyncId"),
    })


async def handle_set_issue_parent(params: schemas.IssueParentSetInput, client: LinearClient) -> list[TextContent]:
    """Make an existing issue a sub-issue of another issue in the same team."""
    if params.issue_id == params.parent_id:
        raise InvalidParamsError("An issue cannot be its own parent.")

    issue, parent = await resolve_all(client.issue(params.issue_id), client.issue(params.parent_id))
    if issue is None:
        raise EntityNotFoundError("issue", params.issue_id, f"Issue with ID '{params.issue_id}' not found.")
    if parent is None:
        raise EntityNotFoundError("issue", params.parent_id, f"Parent issue with ID '{params.parent_id}' not found.")

    current_parent = issue.get("parent")
    if current_parent and not params.replace_existing_parent:
        raise InvalidParamsError(
            f"Issue '{issue.get('identifier')}' already has a parent issue '{current_parent.get('identifier')}'. "
            f"Set replaceExistingParent to true to replace it."
        )

    issue_team, parent_team = _ref_id(issue, "team"), _ref_id(parent, "team")
    if issue_team != parent_team:
        raise InvalidParamsError(
            f"Issue and parent must be in the same team. Issue is in team '{issue_team}', "
            f"parent is in team '{parent_team}'."
        )

    try:
        result = await client.update_issue(params.issue_id, {"parentId": params.parent_id})
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to set issue parent: {e.message}") from e

    updated = _returned(result, "issue", "update issue")
    details = await map_issue_to_details(client, updated)
    logger.info(f"Successfully set parent of {details['identifier']} to {parent.get('identifier')}")
    return _json_content({
        "success": True,
        "subIssue": details,
        "parentId": params.parent_id,
        "parentTitle": parent.get("title"),
        "parentIdentifier": parent.get("identifier"),
        "previousParent": _parent_summary(current_parent),
        "syncId": result.get("lastSyncId"),
    })


async def handle_remove_issue_parent(params: schemas.IssueParentRemoveInput, client: LinearClient) -> list[TextContent]:
    """Detach a sub-issue from its parent."""
    issue = await ensure_exists(client, "issue", params.issue_id)
    current_parent = issue.get("parent")
    if not current_parent:
        raise InvalidParamsError(f"Issue '{issue.get('identifier')}' is not a sub-issue (has no parent).")

    try:
        result = await client.update_issue(params.issue_id, {"parentId": None})
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to remove issue parent: {e.message}") from e

    updated = _returned(result, "issue", "update issue")
    details = await map_issue_to_details(client, updated)
    logger.info(f"Successfully removed parent {current_parent.get('identifier')} from {details['identifier']}")
    return _json_content({
        "success": True,
        "issue": details,
        "removedParent": _parent_summary(current_parent),
        "syncId": result.get("lastSyncId"),
    })


# ============================================================================
# Project Handlers
# ============================================================================

async def _validate_team_ids(client: LinearClient, team_ids: list) -> None:
    teams = await resolve_all(*(client.team(team_id) for team_id in team_ids))
    missing = [team_id for team_id, team in zip(team_ids, teams) if team is None]
    if missing:
        raise InvalidParamsError(
            f"Invalid teamId(s): '{', '.join(missing)}'. Team(s) not found. "
            f"Valid teams are: {await available_teams_json(client)}"
        )


async def handle_list_projects(params: schemas.ProjectListInput, client: LinearClient) -> list[TextContent]:
    """List projects, optionally only those accessible to one team."""
    project_filter = None
    if params.team_id:
        project_filter = {"accessibleTeams": {"some": {"id": {"eq": params.team_id}}}}
    try:
        connection = await client.projects(
            filter=project_filter,
            first=params.limit,
            after=params.after,
            before=params.before,
            include_archived=params.include_archived,
        )
    except LinearAPIError as e:
        raise await _upstream_failure(client, e, "Failed to list projects", team_id=params.team_id) from e

    projects = [map_project(node) for node in _nodes(connection)]
    logger.info(f"Successfully listed {len(projects)} projects")
    return _json_content(projects)


handle_get_project = make_lookup_handler(PROJECT_LOOKUP, map_project)


async def handle_create_project(params: schemas.ProjectCreateInput, client: LinearClient) -> list[TextContent]:
    """Create a project owned by one or more teams."""
    await _validate_team_ids(client, params.team_ids)
    payload = params.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        result = await client.create_project(payload)
    except LinearAPIError as e:
        raise await _upstream_failure(client, e, "Failed to create project") from e

    project = _returned(result, "project", "create project")
    logger.info(f"Successfully created project: {project.get('name')} (ID: {project['id']})")
    return _json_content(map_project(project))


async def handle_update_project(params: schemas.ProjectUpdateInput, client: LinearClient) -> list[TextContent]:
    """Update a project's fields."""
    await validate_project(client, params.id, "update_project")
    changes = _changes(params, exclude={"id"})
    if not changes:
        raise InvalidParamsError("No fields to update were provided.")
    if params.team_ids is not None:
        await _validate_team_ids(client, params.team_ids)

    try:
        result = await client.update_project(params.id, changes)
    except LinearAPIError as e:
        raise await _upstream_failure(client, e, "Failed to update project", project_id=params.id) from e

    project = _returned(result, "project", "update project")
    logger.info(f"Successfully updated project {params.id}: {sorted(changes)}")
    return _json_content(map_project(project))


async def handle_list_project_updates(
    params: schemas.ProjectStatusUpdateListInput, client: LinearClient
) -> list[TextContent]:
    """List status updates posted on a project."""
    connection = await client.project_updates(
        params.project_id, first=params.limit, include_archived=params.include_archived
    )
    if connection is None:
        raise EntityNotFoundError(
            "project", params.project_id, f"Project with ID '{params.project_id}' not found."
        )
    updates = [map_project_update(node) for node in _nodes(connection)]
    logger.info(f"Successfully listed {len(updates)} updates for project {params.project_id}")
    return _json_content(updates)


async def handle_get_project_update(
    params: schemas.ProjectStatusUpdateGetInput, client: LinearClient
) -> list[TextContent]:
    update = await ensure_exists(client, "project_update", params.update_id)
    return _json_content(await map_project_update_details(client, update))


async def handle_create_project_update(
    params: schemas.ProjectStatusUpdateCreateInput, client: LinearClient
) -> list[TextContent]:
    """Post a status update on a project."""
    await ensure_exists(client, "project", params.project_id)
    payload = params.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        result = await client.create_project_update(payload)
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to create project update: {e.message}") from e

    update = _returned(result, "projectUpdate", "create project update")
    logger.info(f"Successfully created update {update['id']} on project {params.project_id}")
    return _json_content(map_project_update(update))


async def handle_update_project_update(
    params: schemas.ProjectStatusUpdateEditInput, client: LinearClient
) -> list[TextContent]:
    """Edit a project status update."""
    await ensure_exists(client, "project_update", params.update_id)
    changes = _changes(params, exclude={"update_id"})
    try:
        result = await client.update_project_update(params.update_id, changes)
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to update project update: {e.message}") from e

    update = _returned(result, "projectUpdate", "update project update")
    logger.info(f"Successfully updated project update {params.update_id}")
    return _json_content(map_project_update(update))


# ============================================================================
# Project Milestone Handlers
# ============================================================================

async def handle_list_project_milestones(params: schemas.MilestoneListInput, client: LinearClient) -> list[TextContent]:
    connection = await client.project_milestones(params.project_id)
    if connection is None:
        raise EntityNotFoundError(
            "project", params.project_id,
            f"Project with ID '{params.project_id}' not found. "
            f"Valid projects are: {await available_projects_json(client)}",
        )
    milestones = [map_milestone(node) for node in _nodes(connection)]
    logger.info(f"Successfully listed {len(milestones)} milestones for project {params.project_id}")
    return _json_content(milestones)


async def handle_create_project_milestone(
    params: schemas.MilestoneCreateInput, client: LinearClient
) -> list[TextContent]:
    await validate_project(client, params.project_id, "create_project_milestone")
    payload = params.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        result = await client.create_project_milestone(payload)
    except LinearAPIError as e:
        raise await _upstream_failure(
            client, e, "Failed to create project milestone", project_id=params.project_id
        ) from e

    milestone = _returned(result, "projectMilestone", "create project milestone")
    logger.info(f"Successfully created milestone {milestone.get('name')} (ID: {milestone['id']})")
    return _json_content(map_milestone(milestone))


async def handle_update_project_milestone(
    params: schemas.MilestoneUpdateInput, client: LinearClient
) -> list[TextContent]:
    await ensure_exists(client, "milestone", params.milestone_id)
    changes = _changes(params, exclude={"milestone_id"})
    try:
        result = await client.update_project_milestone(params.milestone_id, changes)
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to update project milestone: {e.message}") from e

    milestone = _returned(result, "projectMilestone", "update project milestone")
    logger.info(f"Successfully updated milestone {params.milestone_id}")
    return _json_content(map_milestone(milestone))


async def handle_delete_project_milestone(
    params: schemas.MilestoneDeleteInput, client: LinearClient
) -> list[TextContent]:
    await ensure_exists(client, "milestone", params.milestone_id)
    try:
        result = await client.delete_project_milestone(params.milestone_id)
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to delete project milestone: {e.message}") from e

    if not result.get("success"):
        raise UpstreamError(
            f"Failed to delete project milestone '{params.milestone_id}'. Sync ID: {result.get('lastSyncId')}"
        )
    logger.info(f"Successfully deleted milestone {params.milestone_id}")
    return _json_content({
        "success": True,
        "milestoneId": params.milestone_id,
        "lastSyncId": result.get("lastSyncId"),
    })


# ============================================================================
# Team and User Handlers
# ============================================================================

handle_list_teams = make_list_handler("teams", lambda client: client.teams(), map_team)
handle_get_team = make_lookup_handler(TEAM_LOOKUP, map_team)

handle_list_users = make_list_handler("users", lambda client: client.users(), map_user)
handle_get_user = make_lookup_handler(USER_LOOKUP, map_user)


# ============================================================================
# Issue Status and Label Handlers
# ============================================================================

async def _team_not_found(client: LinearClient, team_id: str, action: str) -> EntityNotFoundError:
    available = await available_teams_json(client)
    return EntityNotFoundError(
        "team", team_id,
        f"Team with ID '{team_id}' not found when trying to {action}. Available teams: {available}",
        available=available,
    )


async def handle_list_issue_statuses(params: schemas.TeamIdInput, client: LinearClient) -> list[TextContent]:
    connection = await client.team_states(params.team_id)
    if connection is None:
        raise await _team_not_found(client, params.team_id, "list issue statuses")
    statuses = [map_issue_status(node) for node in _nodes(connection)]
    logger.info(f"Successfully listed {len(statuses)} statuses for team {params.team_id}")
    return _json_content(statuses)


async def handle_get_issue_status(params: schemas.IssueStatusQueryInput, client: LinearClient) -> list[TextContent]:
    """Find a team's workflow state by ID, then by case-insensitive name."""
    team, connection = await resolve_all(client.team(params.team_id), client.team_states(params.team_id))
    if team is None or connection is None:
        raise await _team_not_found(client, params.team_id, "get issue status")

    states = _nodes(connection)
    match = next((s for s in states if s["id"] == params.query), None)
    if match is None:
        wanted = params.query.casefold()
        match = next((s for s in states if (s.get("name") or "").casefold() == wanted), None)
    if match is None:
        available = await available_states_json(client, params.team_id)
        raise EntityNotFoundError(
            "state", params.query,
            f"Issue status with query \"{params.query}\" not found in team '{team.get('name')}' "
            f"({params.team_id}).\nAvailable statuses for this team: {available}",
            available=available,
        )
    return _json_content(map_issue_status(match))


async def handle_list_issue_labels(params: schemas.TeamIdInput, client: LinearClient) -> list[TextContent]:
    connection = await client.team_labels(params.team_id)
    if connection is None:
        raise await _team_not_found(client, params.team_id, "list issue labels")
    labels = [map_label(node) for node in _nodes(connection)]
    logger.info(f"Successfully listed {len(labels)} labels for team {params.team_id}")
    return _json_content(labels)


# ============================================================================
# Cycle Handlers
# ============================================================================

def build_cycle_filter(params: schemas.CycleListInput) -> Optional[dict]:
    """Without includeArchived, completed and archived cycles are excluded."""
    cycle_filter: dict = {}
    if params.team_id:
        cycle_filter["team"] = {"id": {"eq": params.team_id}}
    if not params.include_archived:
        cycle_filter["completedAt"] = {"null": True}
        cycle_filter["archivedAt"] = {"null": True}
    return cycle_filter or None


async def handle_list_cycles(params: schemas.CycleListInput, client: LinearClient) -> list[TextContent]:
    try:
        connection = await client.cycles(
            filter=build_cycle_filter(params),
            first=params.limit,
            after=params.after,
            before=params.before,
            include_archived=params.include_archived,
            order_by=params.order_by,
        )
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to list cycles: {e.message}") from e

    cycles = await resolve_all(*(map_cycle(client, node) for node in _nodes(connection)))
    logger.info(f"Successfully listed {len(cycles)} cycles")
    return _json_content(cycles)


async def handle_get_cycle(params: schemas.CycleIdInput, client: LinearClient) -> list[TextContent]:
    cycle = await ensure_exists(client, "cycle", params.id)
    return _json_content(await map_cycle(client, cycle))


async def handle_create_cycle(params: schemas.CycleCreateInput, client: LinearClient) -> list[TextContent]:
    payload = params.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        result = await client.create_cycle(payload)
    except LinearAPIError as e:
        raise await _upstream_failure(client, e, "Failed to create cycle", team_id=params.team_id) from e

    cycle = _returned(result, "cycle", "create cycle")
    logger.info(f"Successfully created cycle {cycle.get('name')} (ID: {cycle['id']})")
    return _json_content(await map_cycle(client, cycle))


async def handle_update_cycle(params: schemas.CycleUpdateInput, client: LinearClient) -> list[TextContent]:
    await ensure_exists(client, "cycle", params.id)
    changes = _changes(params, exclude={"id"})
    try:
        result = await client.update_cycle(params.id, changes)
    except LinearAPIError as e:
        raise UpstreamError(f"Failed to update cycle: {e.message}") from e

    cycle = _returned(result, "cycle", "update cycle")
    logger.info(f"Successfully updated cycle {params.id}: {sorted(changes)}")
    return _json_content(await map_cycle(client, cycle))

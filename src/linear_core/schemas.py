"""Pydantic schemas for tool input validation.

Wire names are camelCase (``teamId``) to match Linear's own vocabulary; Python
attributes are snake_case. The JSON schema published for each tool is
generated from these models with ``by_alias=True``.
"""
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

PRIORITY_DESCRIPTION = "Priority: 0=No priority, 1=Urgent, 2=High, 3=Medium, 4=Low"


class ToolInput(BaseModel):
    """Base for all tool inputs: accept either alias or attribute name."""

    model_config = ConfigDict(populate_by_name=True)

    def _require_any(self, *names: str) -> None:
        if all(getattr(self, name) is None for name in names):
            aliases = [type(self).model_fields[name].alias or name for name in names]
            raise ValueError(f"At least one of {', '.join(aliases)} must be provided")


class EmptyInput(ToolInput):
    """Tools that take no arguments."""
    pass


class Pagination(ToolInput):
    """Cursor pagination shared by listing tools."""

    limit: int = Field(50, ge=1, le=250, description="Maximum number of results to return")
    before: Optional[str] = Field(None, description="Cursor: return results before this cursor")
    after: Optional[str] = Field(None, description="Cursor: return results after this cursor")


class LookupInput(ToolInput):
    """ID-or-name lookup (teams, users, projects)."""

    query: str = Field(..., min_length=1, description="Entity ID, or a name to search for")


# Issue Schemas

class IssueListInput(ToolInput):
    """Filters for list_issues. Every filter is optional."""

    query: Optional[str] = Field(None, description="Case-insensitive text to match in title or description")
    team_id: Optional[str] = Field(None, alias="teamId", description="Filter by team ID")
    state_id: Optional[str] = Field(None, alias="stateId", description="Filter by workflow state ID")
    assignee_id: Optional[str] = Field(None, alias="assigneeId", description="Filter by assignee user ID")
    project_id: Optional[str] = Field(None, alias="projectId", description="Filter by project ID")
    project_milestone_id: Optional[str] = Field(
        None, alias="projectMilestoneId", description="Filter by project milestone ID"
    )
    cycle_id: Optional[str] = Field(None, alias="cycleId", description="Filter by cycle ID")
    include_archived: bool = Field(True, alias="includeArchived", description="Include archived issues")
    limit: int = Field(50, ge=1, le=250, description="Maximum number of issues to return")


class IssueIdInput(ToolInput):
    id: str = Field(..., min_length=1, description="Issue ID or identifier (e.g. ENG-123)")


class IssueCreateInput(ToolInput):
    """Fields for a new issue. Only the provided fields are sent upstream."""

    title: str = Field(..., min_length=1, description="Issue title")
    team_id: str = Field(..., alias="teamId", min_length=1, description="Team ID the issue belongs to")
    description: Optional[str] = Field(None, description="Markdown description")
    priority: Optional[int] = Field(None, ge=0, le=4, description=PRIORITY_DESCRIPTION)
    project_id: Optional[str] = Field(None, alias="projectId", description="Project ID")
    state_id: Optional[str] = Field(None, alias="stateId", description="Workflow state ID")
    assignee_id: Optional[str] = Field(None, alias="assigneeId", description="Assignee user ID")
    label_ids: Optional[list[str]] = Field(None, alias="labelIds", description="Label IDs")
    due_date: Optional[date] = Field(None, alias="dueDate", description="Due date (YYYY-MM-DD)")
    project_milestone_id: Optional[str] = Field(
        None, alias="projectMilestoneId", pattern=UUID_PATTERN, description="Project milestone ID (UUID)"
    )
    cycle_id: Optional[str] = Field(None, alias="cycleId", description="Cycle ID")


class IssueUpdateInput(ToolInput):
    """Fields to change on an issue.

    Omitted fields are left untouched. ``projectMilestoneId`` and ``cycleId``
    accept an explicit null, which removes the issue from the milestone/cycle.
    """

    id: str = Field(..., min_length=1, description="Issue ID to update")
    title: Optional[str] = Field(None, min_length=1, description="New title")
    description: Optional[str] = Field(None, description="New markdown description")
    priority: Optional[int] = Field(None, ge=0, le=4, description=PRIORITY_DESCRIPTION)
    project_id: Optional[str] = Field(None, alias="projectId", description="Move to this project")
    state_id: Optional[str] = Field(None, alias="stateId", description="New workflow state ID")
    assignee_id: Optional[str] = Field(None, alias="assigneeId", description="New assignee user ID")
    label_ids: Optional[list[str]] = Field(None, alias="labelIds", description="Replacement set of label IDs")
    due_date: Optional[date] = Field(None, alias="dueDate", description="Due date (YYYY-MM-DD)")
    project_milestone_id: Optional[str] = Field(
        None,
        alias="projectMilestoneId",
        pattern=UUID_PATTERN,
        description="Project milestone ID (UUID), or null to remove the milestone",
    )
    cycle_id: Optional[str] = Field(None, alias="cycleId", description="Cycle ID, or null to remove from the cycle")


class CommentListInput(ToolInput):
    issue_id: str = Field(..., alias="issueId", min_length=1, description="Issue ID")


class CommentCreateInput(ToolInput):
    issue_id: str = Field(..., alias="issueId", min_length=1, description="Issue ID to comment on")
    body: str = Field(..., min_length=1, description="Comment body (markdown)")


class MyIssuesInput(Pagination):
    """Pagination for list_my_issues."""
    pass


class SubIssueListInput(ToolInput):
    parent_id: str = Field(..., alias="parentId", min_length=1, description="Parent issue ID")
    include_details: bool = Field(
        False, alias="includeDetails", description="Return full issue details instead of summaries"
    )


class SubIssueCreateInput(ToolInput):
    """A new issue created under an existing parent; the team is always the parent's."""

    parent_id: str = Field(..., alias="parentId", min_length=1, description="Parent issue ID")
    title: str = Field(..., min_length=1, description="Sub-issue title")
    description: Optional[str] = Field(None, description="Markdown description")
    priority: Optional[int] = Field(None, ge=0, le=4, description=PRIORITY_DESCRIPTION)
    assignee_id: Optional[str] = Field(None, alias="assigneeId", description="Assignee user ID")
    label_ids: Optional[list[str]] = Field(None, alias="labelIds", description="Label IDs")
    state_id: Optional[str] = Field(None, alias="stateId", description="Workflow state ID")
    copy_properties_from_parent: bool = Field(
        True,
        alias="copyPropertiesFromParent",
        description="Copy project, cycle and milestone from the parent issue",
    )


class IssueParentSetInput(ToolInput):
    issue_id: str = Field(..., alias="issueId", min_length=1, description="Issue to re-parent")
    parent_id: str = Field(..., alias="parentId", min_length=1, description="New parent issue ID")
    replace_existing_parent: bool = Field(
        False, alias="replaceExistingParent", description="Replace the current parent if one is set"
    )


class IssueParentRemoveInput(ToolInput):
    issue_id: str = Field(..., alias="issueId", min_length=1, description="Issue to detach from its parent")


# Project Schemas

class ProjectListInput(Pagination):
    include_archived: bool = Field(False, alias="includeArchived", description="Include archived projects")
    team_id: Optional[str] = Field(None, alias="teamId", description="Only projects accessible to this team")


class ProjectCreateInput(ToolInput):
    name: str = Field(..., min_length=1, description="Project name")
    team_ids: list[str] = Field(..., alias="teamIds", min_length=1, description="Team IDs the project belongs to")
    description: Optional[str] = Field(None, description="Short description")
    content: Optional[str] = Field(None, description="Project content (markdown)")
    start_date: Optional[date] = Field(None, alias="startDate", description="Start date (YYYY-MM-DD)")
    target_date: Optional[date] = Field(None, alias="targetDate", description="Target date (YYYY-MM-DD)")


class ProjectUpdateInput(ToolInput):
    """Edit a project's own fields (see ProjectStatusUpdate* for status posts)."""

    id: str = Field(..., min_length=1, description="Project ID")
    name: Optional[str] = Field(None, min_length=1, description="New name")
    description: Optional[str] = Field(None, description="New short description")
    content: Optional[str] = Field(None, description="New content (markdown)")
    start_date: Optional[date] = Field(None, alias="startDate", description="Start date (YYYY-MM-DD)")
    target_date: Optional[date] = Field(None, alias="targetDate", description="Target date (YYYY-MM-DD)")
    team_ids: Optional[list[str]] = Field(None, alias="teamIds", min_length=1, description="Replacement set of team IDs")


class ProjectStatusUpdateListInput(ToolInput):
    project_id: str = Field(..., alias="projectId", min_length=1, description="Project ID")
    include_archived: bool = Field(False, alias="includeArchived", description="Include archived updates")
    limit: int = Field(20, ge=1, le=100, description="Maximum number of updates to return")


class ProjectStatusUpdateGetInput(ToolInput):
    update_id: str = Field(..., alias="updateId", min_length=1, description="Project update ID")


class ProjectStatusUpdateCreateInput(ToolInput):
    project_id: str = Field(..., alias="projectId", min_length=1, description="Project ID")
    body: str = Field(..., min_length=1, description="Update body (markdown)")
    is_diff_hidden: bool = Field(False, alias="isDiffHidden", description="Hide the generated diff")


class ProjectStatusUpdateEditInput(ToolInput):
    update_id: str = Field(..., alias="updateId", min_length=1, description="Project update ID")
    body: Optional[str] = Field(None, min_length=1, description="New body (markdown)")
    is_diff_hidden: Optional[bool] = Field(None, alias="isDiffHidden", description="Hide the generated diff")

    @model_validator(mode="after")
    def require_change(self):
        self._require_any("body", "is_diff_hidden")
        return self


# Project Milestone Schemas

class MilestoneListInput(ToolInput):
    project_id: str = Field(..., alias="projectId", min_length=1, description="Project ID")


class MilestoneCreateInput(ToolInput):
    project_id: str = Field(..., alias="projectId", min_length=1, description="Project ID")
    name: str = Field(..., min_length=1, description="Milestone name")
    description: Optional[str] = Field(None, description="Milestone description")
    target_date: Optional[date] = Field(None, alias="targetDate", description="Target date (YYYY-MM-DD)")


class MilestoneUpdateInput(ToolInput):
    milestone_id: str = Field(..., alias="milestoneId", min_length=1, description="Milestone ID")
    name: Optional[str] = Field(None, min_length=1, description="New name")
    description: Optional[str] = Field(None, description="New description")
    target_date: Optional[date] = Field(None, alias="targetDate", description="New target date (YYYY-MM-DD)")

    @model_validator(mode="after")
    def require_change(self):
        self._require_any("name", "description", "target_date")
        return self


class MilestoneDeleteInput(ToolInput):
    milestone_id: str = Field(..., alias="milestoneId", min_length=1, description="Milestone ID")


# Team / Status / Label Schemas

class TeamIdInput(ToolInput):
    team_id: str = Field(..., alias="teamId", min_length=1, description="Team ID")


class IssueStatusQueryInput(ToolInput):
    team_id: str = Field(..., alias="teamId", min_length=1, description="Team ID")
    query: str = Field(..., min_length=1, description="Status ID or name")


# Cycle Schemas

def _check_cycle_range(starts_at: datetime, ends_at: datetime) -> None:
    try:
        out_of_order = ends_at <= starts_at
    except TypeError:
        raise ValueError("startsAt and endsAt must both include a timezone, or both omit it")
    if out_of_order:
        raise ValueError("endsAt must be after startsAt")


class CycleListInput(Pagination):
    order_by: Optional[Literal["createdAt", "updatedAt"]] = Field(
        None, alias="orderBy", description="Sort order"
    )
    include_archived: bool = Field(
        False, alias="includeArchived", description="Include completed and archived cycles"
    )
    team_id: Optional[str] = Field(None, alias="teamId", description="Filter by team ID")


class CycleIdInput(ToolInput):
    id: str = Field(..., min_length=1, description="Cycle ID")


class CycleCreateInput(ToolInput):
    name: str = Field(..., min_length=1, description="Cycle name")
    team_id: str = Field(..., alias="teamId", min_length=1, description="Team ID")
    starts_at: datetime = Field(..., alias="startsAt", description="Start (ISO-8601 datetime)")
    ends_at: datetime = Field(..., alias="endsAt", description="End (ISO-8601 datetime)")
    description: Optional[str] = Field(None, description="Cycle description")

    @model_validator(mode="after")
    def check_range(self):
        _check_cycle_range(self.starts_at, self.ends_at)
        return self


class CycleUpdateInput(ToolInput):
    id: str = Field(..., min_length=1, description="Cycle ID")
    name: Optional[str] = Field(None, min_length=1, description="New name")
    description: Optional[str] = Field(None, description="New description")
    starts_at: Optional[datetime] = Field(None, alias="startsAt", description="New start (ISO-8601 datetime)")
    ends_at: Optional[datetime] = Field(None, alias="endsAt", description="New end (ISO-8601 datetime)")

    @model_validator(mode="after")
    def require_change(self):
        self._require_any("name", "description", "starts_at", "ends_at")
        if self.starts_at is not None and self.ends_at is not None:
            _check_cycle_range(self.starts_at, self.ends_at)
        return self

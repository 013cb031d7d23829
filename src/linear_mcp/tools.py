"""MCP tool definitions for Linear.

This module provides the definitive list of MCP tools. Each tool is a
ToolDefinition pairing a name and description with a pydantic input model
(which generates the published JSON schema) and an async handler.

Tool names must be unique; ToolRegistry rejects duplicates at construction.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from mcp.types import TextContent, Tool
from pydantic import BaseModel, ValidationError

from linear_core import schemas
from linear_core.client import LinearClient
from linear_core.errors import InvalidParamsError

from . import handlers

logger = logging.getLogger("linear-mcp.tools")


@dataclass(frozen=True)
class ToolDefinition:
    """One callable tool: name, description, input model and handler."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[Any, LinearClient], Awaitable[list[TextContent]]]

    def to_mcp_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_model.model_json_schema(by_alias=True),
        )


def define_tool(name: str, description: str, input_model: type[BaseModel], handler) -> ToolDefinition:
    return ToolDefinition(name=name, description=description, input_model=input_model, handler=handler)


class DuplicateToolError(ValueError):
    """Raised when two tool definitions share a name."""
    pass


class ToolRegistry:
    """Ordered collection of tool definitions keyed by unique name."""

    def __init__(self, definitions: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        if definition.name in self._tools:
            raise DuplicateToolError(f"Duplicate tool name: {definition.name}")
        self._tools[definition.name] = definition

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def get_tools(self) -> list[Tool]:
        return [definition.to_mcp_tool() for definition in self._tools.values()]

    async def call(self, name: str, arguments: Optional[dict], client: LinearClient) -> list[TextContent]:
        """Validate arguments against the tool's input model and run its handler.

        Raises:
            KeyError: If no tool has this name
            InvalidParamsError: If the arguments fail validation
        """
        definition = self.get(name)
        if definition is None:
            raise KeyError(name)
        try:
            params = definition.input_model.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidParamsError(f"Invalid arguments for {name}: {e}") from e
        return await definition.handler(params, client)


TOOL_DEFINITIONS = [
    # ============================================================================
    # Issue Tools
    # ============================================================================
    define_tool(
        "list_issues",
        "List issues in the user's Linear workspace. Filter by text (title/description), team, state, "
        "assignee, project, milestone or cycle. Returns detailed issues without attachments.",
        schemas.IssueListInput,
        handlers.handle_list_issues,
    ),
    define_tool(
        "get_issue",
        "Get a Linear issue by ID, including state, assignee, team, project, milestone, labels and attachments.",
        schemas.IssueIdInput,
        handlers.handle_get_issue,
    ),
    define_tool(
        "create_issue",
        "Create a new Linear issue. Use list_teams, list_issue_statuses and list_issue_labels to find valid IDs. "
        "Errors about unknown IDs include a list of valid alternatives.",
        schemas.IssueCreateInput,
        handlers.handle_create_issue,
    ),
    define_tool(
        "update_issue",
        "Update an existing Linear issue. Only provided fields change; pass null for projectMilestoneId "
        "or cycleId to remove the issue from its milestone or cycle.",
        schemas.IssueUpdateInput,
        handlers.handle_update_issue,
    ),
    define_tool(
        "list_comments",
        "List comments on a Linear issue.",
        schemas.CommentListInput,
        handlers.handle_list_comments,
    ),
    define_tool(
        "create_comment",
        "Add a comment to a Linear issue.",
        schemas.CommentCreateInput,
        handlers.handle_create_comment,
    ),
    define_tool(
        "get_issue_git_branch_name",
        "Get the git branch name for a Linear issue (lowercased identifier plus a slug of the title).",
        schemas.IssueIdInput,
        handlers.handle_get_issue_git_branch_name,
    ),
    define_tool(
        "list_my_issues",
        "List issues assigned to the current user.",
        schemas.MyIssuesInput,
        handlers.handle_list_my_issues,
    ),
    define_tool(
        "list_sub_issues",
        "List sub-issues of a parent issue. Set includeDetails for full issue details.",
        schemas.SubIssueListInput,
        handlers.handle_list_sub_issues,
    ),
    define_tool(
        "create_sub_issue",
        "Create a new sub-issue under a parent issue. The sub-issue is created in the parent's team; "
        "project, cycle and milestone are copied from the parent unless copyPropertiesFromParent is false.",
        schemas.SubIssueCreateInput,
        handlers.handle_create_sub_issue,
    ),
    define_tool(
        "set_issue_parent",
        "Convert an existing issue into a sub-issue by setting its parent. Both issues must be in the same team.",
        schemas.IssueParentSetInput,
        handlers.handle_set_issue_parent,
    ),
    define_tool(
        "remove_issue_parent",
        "Remove the parent from a sub-issue, converting it back to a regular issue.",
        schemas.IssueParentRemoveInput,
        handlers.handle_remove_issue_parent,
    ),
    # ============================================================================
    # Project Tools
    # ============================================================================
    define_tool(
        "list_projects",
        "List projects in the user's Linear workspace.",
        schemas.ProjectListInput,
        handlers.handle_list_projects,
    ),
    define_tool(
        "get_project",
        "Get a Linear project by ID or name.",
        schemas.LookupInput,
        handlers.handle_get_project,
    ),
    define_tool(
        "create_project",
        "Create a new Linear project owned by one or more teams.",
        schemas.ProjectCreateInput,
        handlers.handle_create_project,
    ),
    define_tool(
        "update_project",
        "Update an existing Linear project.",
        schemas.ProjectUpdateInput,
        handlers.handle_update_project,
    ),
    define_tool(
        "list_project_updates",
        "List status updates posted on a Linear project.",
        schemas.ProjectStatusUpdateListInput,
        handlers.handle_list_project_updates,
    ),
    define_tool(
        "get_project_update",
        "Get a project status update, including its project and author.",
        schemas.ProjectStatusUpdateGetInput,
        handlers.handle_get_project_update,
    ),
    define_tool(
        "create_project_update",
        "Post a status update on a Linear project.",
        schemas.ProjectStatusUpdateCreateInput,
        handlers.handle_create_project_update,
    ),
    define_tool(
        "update_project_update",
        "Edit a project status update. At least one of body or isDiffHidden is required.",
        schemas.ProjectStatusUpdateEditInput,
        handlers.handle_update_project_update,
    ),
    # ============================================================================
    # Project Milestone Tools
    # ============================================================================
    define_tool(
        "list_project_milestones",
        "List milestones of a Linear project.",
        schemas.MilestoneListInput,
        handlers.handle_list_project_milestones,
    ),
    define_tool(
        "create_project_milestone",
        "Create a milestone in a Linear project.",
        schemas.MilestoneCreateInput,
        handlers.handle_create_project_milestone,
    ),
    define_tool(
        "update_project_milestone",
        "Update a project milestone. At least one of name, description or targetDate is required.",
        schemas.MilestoneUpdateInput,
        handlers.handle_update_project_milestone,
    ),
    define_tool(
        "delete_project_milestone",
        "Delete a project milestone.",
        schemas.MilestoneDeleteInput,
        handlers.handle_delete_project_milestone,
    ),
    # ============================================================================
    # Team and User Tools
    # ============================================================================
    define_tool(
        "list_teams",
        "List all teams in the Linear workspace.",
        schemas.EmptyInput,
        handlers.handle_list_teams,
    ),
    define_tool(
        "get_team",
        "Get a Linear team by ID, name or key.",
        schemas.LookupInput,
        handlers.handle_get_team,
    ),
    define_tool(
        "list_users",
        "List all users in the Linear workspace.",
        schemas.EmptyInput,
        handlers.handle_list_users,
    ),
    define_tool(
        "get_user",
        "Get a Linear user by ID, name, email or display name.",
        schemas.LookupInput,
        handlers.handle_get_user,
    ),
    # ============================================================================
    # Issue Status and Label Tools
    # ============================================================================
    define_tool(
        "list_issue_statuses",
        "List the workflow states (issue statuses) of a team.",
        schemas.TeamIdInput,
        handlers.handle_list_issue_statuses,
    ),
    define_tool(
        "get_issue_status",
        "Get a team's issue status by ID or name.",
        schemas.IssueStatusQueryInput,
        handlers.handle_get_issue_status,
    ),
    define_tool(
        "list_issue_labels",
        "List the issue labels available to a team.",
        schemas.TeamIdInput,
        handlers.handle_list_issue_labels,
    ),
    # ============================================================================
    # Cycle Tools
    # ============================================================================
    define_tool(
        "list_cycles",
        "List cycles. Completed and archived cycles are excluded unless includeArchived is true.",
        schemas.CycleListInput,
        handlers.handle_list_cycles,
    ),
    define_tool(
        "get_cycle",
        "Get a Linear cycle by ID.",
        schemas.CycleIdInput,
        handlers.handle_get_cycle,
    ),
    define_tool(
        "create_cycle",
        "Create a cycle for a team. startsAt and endsAt are ISO-8601 datetimes.",
        schemas.CycleCreateInput,
        handlers.handle_create_cycle,
    ),
    define_tool(
        "update_cycle",
        "Update a cycle. At least one of name, description, startsAt or endsAt is required.",
        schemas.CycleUpdateInput,
        handlers.handle_update_cycle,
    ),
]


def build_registry() -> ToolRegistry:
    """Build the registry of every Linear tool."""
    registry = ToolRegistry(TOOL_DEFINITIONS)
    logger.debug(f"Registered {len(registry)} tools")
    return registry


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for Linear."""
    return build_registry().get_tools()

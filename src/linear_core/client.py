"""Async GraphQL client for the Linear API.

Every accessor is a coroutine. Conventions:

- single-entity fetches return the entity dict, or None when Linear reports
  the record does not exist;
- listings return ``{"nodes": [...], "pageInfo": {...}}``;
- mutations return the upstream payload ``{"success", <entity>, "lastSyncId"}``.

Entities carry relations as ``{id}`` stubs only. Resolving a relation to its
full view is the mapper's job (see linear_core.mappers).
"""
import logging
from typing import Any, Optional

import httpx

from .config import LINEAR_API_URL
from .errors import LinearAPIError

logger = logging.getLogger("linear-core.client")


# ============================================================================
# Field selections
# ============================================================================

PAGE_INFO = "pageInfo { hasNextPage hasPreviousPage startCursor endCursor }"

ISSUE_FIELDS = """
    id
    identifier
    title
    description
    priority
    dueDate
    createdAt
    updatedAt
    url
    state { id }
    assignee { id }
    team { id }
    project { id }
    projectMilestone { id }
    cycle { id }
    parent { id identifier title }
"""

TEAM_FIELDS = "id name key description color icon createdAt updatedAt"

USER_FIELDS = "id name email displayName avatarUrl active admin createdAt updatedAt"

PROJECT_FIELDS = """
    id name description content icon color state
    startDate targetDate createdAt updatedAt url
"""

WORKFLOW_STATE_FIELDS = "id name color type description position"

LABEL_FIELDS = "id name color description createdAt updatedAt"

MILESTONE_FIELDS = "id name description targetDate sortOrder project { id }"

COMMENT_FIELDS = "id body createdAt updatedAt user { id }"

ATTACHMENT_FIELDS = "id title url source metadata groupBySource createdAt updatedAt"

CYCLE_FIELDS = """
    id name description number startsAt endsAt completedAt progress
    issueCountHistory scopeHistory createdAt updatedAt
    team { id }
"""

PROJECT_UPDATE_FIELDS = """
    id body createdAt editedAt archivedAt isStale isDiffHidden
    diff diffMarkdown url
    project { id }
    user { id }
"""


def _empty_connection() -> dict:
    return {
        "nodes": [],
        "pageInfo": {"hasNextPage": False, "hasPreviousPage": False, "startCursor": None, "endCursor": None},
    }


class LinearClient:
    """Thin typed facade over the Linear GraphQL endpoint.

    Args:
        api_key: Linear personal API key, sent verbatim in the Authorization header
        api_url: GraphQL endpoint
        timeout: Request timeout in seconds
        http_client: Optional pre-built httpx.AsyncClient (tests inject one
            backed by httpx.MockTransport). The caller keeps ownership of it.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = LINEAR_API_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self._headers = {"Authorization": api_key, "Content-Type": "application/json"}
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "LinearClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    # ------------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------------

    async def execute(self, query: str, variables: Optional[dict] = None) -> dict:
        """Run a GraphQL operation and return its ``data`` object.

        Args:
            query: GraphQL document
            variables: Operation variables; None values are dropped

        Returns:
            The response ``data`` dict

        Raises:
            LinearAPIError: On GraphQL errors or a non-2xx response
            httpx.RequestError: On network failures
        """
        payload = {"query": query, "variables": {k: v for k, v in (variables or {}).items() if v is not None}}
        response = await self._http.post(self.api_url, json=payload, headers=self._headers)

        try:
            body = response.json()
        except ValueError:
            body = None

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            error = LinearAPIError.from_graphql_errors(errors, status_code=response.status_code)
            logger.warning(f"Linear API returned errors (HTTP {response.status_code}): {errors}")
            raise error

        if response.status_code >= 400:
            logger.error(f"Linear API HTTP {response.status_code}: {response.text}")
            raise LinearAPIError(
                f"Linear API returned HTTP {response.status_code}: {response.text or response.reason_phrase}",
                status_code=response.status_code,
            )

        if not isinstance(body, dict):
            raise LinearAPIError("Linear API returned a non-JSON response", status_code=response.status_code)
        return body.get("data") or {}

    async def _fetch_one(self, query: str, field: str, variables: dict) -> Optional[dict]:
        try:
            data = await self.execute(query, variables)
        except LinearAPIError as e:
            if e.is_not_found:
                logger.debug(f"{field} not found: {variables}")
                return None
            raise
        return data.get(field)

    async def _fetch_connection(self, query: str, path: tuple, variables: dict) -> Optional[dict]:
        """Follow ``path`` into the response and return the connection found there.

        Returns None when an intermediate object (e.g. the parent issue of a
        nested listing) does not exist.
        """
        try:
            node: Any = await self.execute(query, variables)
        except LinearAPIError as e:
            if len(path) > 1 and e.is_not_found:
                return None
            raise
        for key in path:
            if node is None:
                return None
            node = node.get(key)
        if node is None:
            return None if len(path) > 1 else _empty_connection()
        return {"nodes": node.get("nodes") or [], "pageInfo": node.get("pageInfo") or _empty_connection()["pageInfo"]}

    async def _mutate(self, query: str, field: str, variables: dict) -> dict:
        data = await self.execute(query, variables)
        payload = data.get(field) or {}
        logger.info(f"{field} success={payload.get('success')} lastSyncId={payload.get('lastSyncId')}")
        return payload

    # ------------------------------------------------------------------------
    # Viewer
    # ------------------------------------------------------------------------

    async def viewer(self) -> Optional[dict]:
        return await self._fetch_one(f"query Viewer {{ viewer {{ {USER_FIELDS} }} }}", "viewer", {})

    async def assigned_issues(
        self,
        first: int = 50,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> Optional[dict]:
        """Issues assigned to the authenticated user."""
        query = f"""
        query AssignedIssues($first: Int, $after: String, $before: String) {{
          viewer {{
            assignedIssues(first: $first, after: $after, before: $before) {{
              nodes {{ {ISSUE_FIELDS} }}
              {PAGE_INFO}
            }}
          }}
        }}
        """
        return await self._fetch_connection(
            query, ("viewer", "assignedIssues"), {"first": first, "after": after, "before": before}
        )

    # ------------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------------

    async def issue(self, issue_id: str) -> Optional[dict]:
        query = f"query Issue($id: String!) {{ issue(id: $id) {{ {ISSUE_FIELDS} }} }}"
        return await self._fetch_one(query, "issue", {"id": issue_id})

    async def issues(
        self,
        filter: Optional[dict] = None,
        first: int = 50,
        after: Optional[str] = None,
        before: Optional[str] = None,
        include_archived: Optional[bool] = None,
        order_by: Optional[str] = None,
    ) -> dict:
        query = f"""
        query Issues(
          $filter: IssueFilter, $first: Int, $after: String, $before: String,
          $includeArchived: Boolean, $orderBy: PaginationOrderBy
        ) {{
          issues(
            filter: $filter, first: $first, after: $after, before: $before,
            includeArchived: $includeArchived, orderBy: $orderBy
          ) {{
            nodes {{ {ISSUE_FIELDS} }}
            {PAGE_INFO}
          }}
        }}
        """
        return await self._fetch_connection(query, ("issues",), {
            "filter": filter,
            "first": first,
            "after": after,
            "before": before,
            "includeArchived": include_archived,
            "orderBy": order_by,
        })

    async def _issue_connection(self, issue_id: str, field: str, selection: str) -> Optional[dict]:
        query = f"""
        query Issue_{field}($id: String!) {{
          issue(id: $id) {{
            {field} {{
              nodes {{ {selection} }}
              {PAGE_INFO}
            }}
          }}
        }}
        """
        return await self._fetch_connection(query, ("issue", field), {"id": issue_id})

    async def issue_labels(self, issue_id: str) -> Optional[dict]:
        return await self._issue_connection(issue_id, "labels", LABEL_FIELDS)

    async def issue_attachments(self, issue_id: str) -> Optional[dict]:
        return await self._issue_connection(issue_id, "attachments", ATTACHMENT_FIELDS)

    async def issue_comments(self, issue_id: str) -> Optional[dict]:
        return await self._issue_connection(issue_id, "comments", COMMENT_FIELDS)

    async def issue_children(self, issue_id: str) -> Optional[dict]:
        return await self._issue_connection(issue_id, "children", ISSUE_FIELDS)

    async def create_issue(self, input: dict) -> dict:
        query = f"""
        mutation IssueCreate($input: IssueCreateInput!) {{
          issueCreate(input: $input) {{ success lastSyncId issue {{ {ISSUE_FIELDS} }} }}
        }}
        """
        return await self._mutate(query, "issueCreate", {"input": input})

    async def update_issue(self, issue_id: str, input: dict) -> dict:
        query = f"""
        mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {{
          issueUpdate(id: $id, input: $input) {{ success lastSyncId issue {{ {ISSUE_FIELDS} }} }}
        }}
        """
        # Explicit nulls clear a relation, so they must survive variable cleanup
        return await self._mutate(query, "issueUpdate", {"id": issue_id, "input": input})

    async def create_comment(self, input: dict) -> dict:
        query = f"""
        mutation CommentCreate($input: CommentCreateInput!) {{
          commentCreate(input: $input) {{ success lastSyncId comment {{ {COMMENT_FIELDS} }} }}
        }}
        """
        return await self._mutate(query, "commentCreate", {"input": input})

    # ------------------------------------------------------------------------
    # Teams, workflow states, labels
    # ------------------------------------------------------------------------

    async def team(self, team_id: str) -> Optional[dict]:
        query = f"query Team($id: String!) {{ team(id: $id) {{ {TEAM_FIELDS} }} }}"
        return await self._fetch_one(query, "team", {"id": team_id})

    async def teams(self, filter: Optional[dict] = None, first: int = 100) -> dict:
        query = f"""
        query Teams($filter: TeamFilter, $first: Int) {{
          teams(filter: $filter, first: $first) {{ nodes {{ {TEAM_FIELDS} }} {PAGE_INFO} }}
        }}
        """
        return await self._fetch_connection(query, ("teams",), {"filter": filter, "first": first})

    async def team_states(self, team_id: str, filter: Optional[dict] = None) -> Optional[dict]:
        query = f"""
        query TeamStates($id: String!, $filter: WorkflowStateFilter) {{
          team(id: $id) {{
            states(filter: $filter) {{ nodes {{ {WORKFLOW_STATE_FIELDS} }} {PAGE_INFO} }}
          }}
        }}
        """
        return await self._fetch_connection(query, ("team", "states"), {"id": team_id, "filter": filter})

    async def team_labels(self, team_id: str, filter: Optional[dict] = None) -> Optional[dict]:
        query = f"""
        query TeamLabels($id: String!, $filter: IssueLabelFilter) {{
          team(id: $id) {{
            labels(filter: $filter) {{ nodes {{ {LABEL_FIELDS} }} {PAGE_INFO} }}
          }}
        }}
        """
        return await self._fetch_connection(query, ("team", "labels"), {"id": team_id, "filter": filter})

    async def workflow_state(self, state_id: str) -> Optional[dict]:
        query = f"query WorkflowState($id: String!) {{ workflowState(id: $id) {{ {WORKFLOW_STATE_FIELDS} }} }}"
        return await self._fetch_one(query, "workflowState", {"id": state_id})

    async def issue_label(self, label_id: str) -> Optional[dict]:
        query = f"query IssueLabel($id: String!) {{ issueLabel(id: $id) {{ {LABEL_FIELDS} team {{ id }} }} }}"
        return await self._fetch_one(query, "issueLabel", {"id": label_id})

    # ------------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------------

    async def user(self, user_id: str) -> Optional[dict]:
        query = f"query User($id: String!) {{ user(id: $id) {{ {USER_FIELDS} }} }}"
        return await self._fetch_one(query, "user", {"id": user_id})

    async def users(self, filter: Optional[dict] = None, first: int = 100) -> dict:
        query = f"""
        query Users($filter: UserFilter, $first: Int) {{
          users(filter: $filter, first: $first) {{ nodes {{ {USER_FIELDS} }} {PAGE_INFO} }}
        }}
        """
        return await self._fetch_connection(query, ("users",), {"filter": filter, "first": first})

    # ------------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------------

    async def project(self, project_id: str) -> Optional[dict]:
        query = f"query Project($id: String!) {{ project(id: $id) {{ {PROJECT_FIELDS} }} }}"
        return await self._fetch_one(query, "project", {"id": project_id})

    async def projects(
        self,
        filter: Optional[dict] = None,
        first: int = 50,
        after: Optional[str] = None,
        before: Optional[str] = None,
        include_archived: Optional[bool] = None,
    ) -> dict:
        query = f"""
        query Projects(
          $filter: ProjectFilter, $first: Int, $after: String, $before: String, $includeArchived: Boolean
        ) {{
          projects(
            filter: $filter, first: $first, after: $after, before: $before, includeArchived: $includeArchived
          ) {{
            nodes {{ {PROJECT_FIELDS} }}
            {PAGE_INFO}
          }}
        }}
        """
        return await self._fetch_connection(query, ("projects",), {
            "filter": filter,
            "first": first,
            "after": after,
            "before": before,
            "includeArchived": include_archived,
        })

    async def create_project(self, input: dict) -> dict:
        query = f"""
        mutation ProjectCreate($input: ProjectCreateInput!) {{
          projectCreate(input: $input) {{ success lastSyncId project {{ {PROJECT_FIELDS} }} }}
        }}
        """
        return await self._mutate(query, "projectCreate", {"input": input})

    async def update_project(self, project_id: str, input: dict) -> dict:
        query = f"""
        mutation ProjectUpdate($id: String!, $input: ProjectUpdateInput!) {{
          projectUpdate(id: $id, input: $input) {{ success lastSyncId project {{ {PROJECT_FIELDS} }} }}
        }}
        """
        return await self._mutate(query, "projectUpdate", {"id": project_id, "input": input})

    # ------------------------------------------------------------------------
    # Project milestones
    # ------------------------------------------------------------------------

    async def project_milestone(self, milestone_id: str) -> Optional[dict]:
        query = f"""
        query ProjectMilestone($id: String!) {{ projectMilestone(id: $id) {{ {MILESTONE_FIELDS} }} }}
        """
        return await self._fetch_one(query, "projectMilestone", {"id": milestone_id})

    async def project_milestones(self, project_id: str) -> Optional[dict]:
        query = f"""
        query ProjectMilestones($id: String!) {{
          project(id: $id) {{
            projectMilestones {{ nodes {{ {MILESTONE_FIELDS} }} {PAGE_INFO} }}
          }}
        }}
        """
        return await self._fetch_connection(query, ("project", "projectMilestones"), {"id": project_id})

    async def create_project_milestone(self, input: dict) -> dict:
        query = f"""
        mutation ProjectMilestoneCreate($input: ProjectMilestoneCreateInput!) {{
          projectMilestoneCreate(input: $input) {{
            success lastSyncId projectMilestone {{ {MILESTONE_FIELDS} }}
          }}
        }}
        """
        return await self._mutate(query, "projectMilestoneCreate", {"input": input})

    async def update_project_milestone(self, milestone_id: str, input: dict) -> dict:
        query = f"""
        mutation ProjectMilestoneUpdate($id: String!, $input: ProjectMilestoneUpdateInput!) {{
          projectMilestoneUpdate(id: $id, input: $input) {{
            success lastSyncId projectMilestone {{ {MILESTONE_FIELDS} }}
          }}
        }}
        """
        return await self._mutate(query, "projectMilestoneUpdate", {"id": milestone_id, "input": input})

    async def delete_project_milestone(self, milestone_id: str) -> dict:
        query = """
        mutation ProjectMilestoneDelete($id: String!) {
          projectMilestoneDelete(id: $id) { success lastSyncId entityId }
        }
        """
        return await self._mutate(query, "projectMilestoneDelete", {"id": milestone_id})

    # ------------------------------------------------------------------------
    # Project updates (status posts)
    # ------------------------------------------------------------------------

    async def project_update(self, update_id: str) -> Optional[dict]:
        query = f"query ProjectUpdate($id: String!) {{ projectUpdate(id: $id) {{ {PROJECT_UPDATE_FIELDS} }} }}"
        return await self._fetch_one(query, "projectUpdate", {"id": update_id})

    async def project_updates(
        self,
        project_id: str,
        first: int = 20,
        include_archived: Optional[bool] = None,
    ) -> Optional[dict]:
        query = f"""
        query ProjectUpdates($id: String!, $first: Int, $includeArchived: Boolean) {{
          project(id: $id) {{
            projectUpdates(first: $first, includeArchived: $includeArchived) {{
              nodes {{ {PROJECT_UPDATE_FIELDS} }}
              {PAGE_INFO}
            }}
          }}
        }}
        """
        return await self._fetch_connection(query, ("project", "projectUpdates"), {
            "id": project_id,
            "first": first,
            "includeArchived": include_archived,
        })

    async def create_project_update(self, input: dict) -> dict:
        query = f"""
        mutation ProjectUpdateCreate($input: ProjectUpdateCreateInput!) {{
          projectUpdateCreate(input: $input) {{
            success lastSyncId projectUpdate {{ {PROJECT_UPDATE_FIELDS} }}
          }}
        }}
        """
        return await self._mutate(query, "projectUpdateCreate", {"input": input})

    async def update_project_update(self, update_id: str, input: dict) -> dict:
        query = f"""
        mutation ProjectUpdateUpdate($id: String!, $input: ProjectUpdateUpdateInput!) {{
          projectUpdateUpdate(id: $id, input: $input) {{
            success lastSyncId projectUpdate {{ {PROJECT_UPDATE_FIELDS} }}
          }}
        }}
        """
        return await self._mutate(query, "projectUpdateUpdate", {"id": update_id, "input": input})

    # ------------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------------

    async def cycle(self, cycle_id: str) -> Optional[dict]:
        query = f"query Cycle($id: String!) {{ cycle(id: $id) {{ {CYCLE_FIELDS} }} }}"
        return await self._fetch_one(query, "cycle", {"id": cycle_id})

    async def cycles(
        self,
        filter: Optional[dict] = None,
        first: int = 50,
        after: Optional[str] = None,
        before: Optional[str] = None,
        include_archived: Optional[bool] = None,
        order_by: Optional[str] = None,
    ) -> dict:
        query = f"""
        query Cycles(
          $filter: CycleFilter, $first: Int, $after: String, $before: String,
          $includeArchived: Boolean, $orderBy: PaginationOrderBy
        ) {{
          cycles(
            filter: $filter, first: $first, after: $after, before: $before,
            includeArchived: $includeArchived, orderBy: $orderBy
          ) {{
            nodes {{ {CYCLE_FIELDS} }}
            {PAGE_INFO}
          }}
        }}
        """
        return await self._fetch_connection(query, ("cycles",), {
            "filter": filter,
            "first": first,
            "after": after,
            "before": before,
            "includeArchived": include_archived,
            "orderBy": order_by,
        })

    async def create_cycle(self, input: dict) -> dict:
        query = f"""
        mutation CycleCreate($input: CycleCreateInput!) {{
          cycleCreate(input: $input) {{ success lastSyncId cycle {{ {CYCLE_FIELDS} }} }}
        }}
        """
        return await self._mutate(query, "cycleCreate", {"input": input})

    async def update_cycle(self, cycle_id: str, input: dict) -> dict:
        query = f"""
        mutation CycleUpdate($id: String!, $input: CycleUpdateInput!) {{
          cycleUpdate(id: $id, input: $input) {{ success lastSyncId cycle {{ {CYCLE_FIELDS} }} }}
        }}
        """
        return await self._mutate(query, "cycleUpdate", {"id": cycle_id, "input": input})

"""Tests for project, project update, milestone, status, label and cycle handlers."""
import json

import pytest
from pydantic import ValidationError

from linear_core.errors import EntityNotFoundError, InvalidParamsError, UpstreamError
from linear_core.schemas import (
    CycleCreateInput,
    CycleListInput,
    CycleUpdateInput,
    IssueStatusQueryInput,
    MilestoneCreateInput,
    MilestoneDeleteInput,
    MilestoneListInput,
    MilestoneUpdateInput,
    ProjectCreateInput,
    ProjectListInput,
    ProjectStatusUpdateEditInput,
    ProjectStatusUpdateListInput,
    ProjectUpdateInput,
    TeamIdInput,
)
from linear_mcp.handlers import (
    build_cycle_filter,
    handle_create_cycle,
    handle_create_project,
    handle_create_project_milestone,
    handle_delete_project_milestone,
    handle_get_issue_status,
    handle_list_issue_labels,
    handle_list_issue_statuses,
    handle_list_project_milestones,
    handle_list_project_updates,
    handle_list_projects,
    handle_update_project,
    handle_update_project_milestone,
)
from linear_mcp.tools import build_registry

from conftest import LABEL, MILESTONE, PROJECT, STATE, TEAM, connection

DONE = {**STATE, "id": "state-done", "name": "Done", "type": "completed"}


class TestProjects:
    """Test project handlers."""

    async def test_list_filters_by_team(self, fake_client):
        fake_client.projects.return_value = connection(PROJECT)
        params = ProjectListInput.model_validate({"teamId": "team-uuid", "limit": 10})

        result = json.loads((await handle_list_projects(params, fake_client))[0].text)

        assert result[0]["name"] == "Launch"
        fake_client.projects.assert_awaited_once_with(
            filter={"accessibleTeams": {"some": {"id": {"eq": "team-uuid"}}}},
            first=10,
            after=None,
            before=None,
            include_archived=False,
        )

    async def test_create_rejects_unknown_team(self, fake_client):
        fake_client.teams.return_value = connection(TEAM)
        params = ProjectCreateInput.model_validate({"name": "Apollo", "teamIds": ["team-x"]})

        with pytest.raises(InvalidParamsError) as exc_info:
            await handle_create_project(params, fake_client)
        assert str(exc_info.value).startswith("Invalid teamId(s): 'team-x'.")
        fake_client.create_project.assert_not_awaited()

    async def test_create(self, fake_client):
        fake_client.team.return_value = TEAM
        fake_client.create_project.return_value = {"success": True, "project": PROJECT, "lastSyncId": 4}
        params = ProjectCreateInput.model_validate(
            {"name": "Launch", "teamIds": ["team-uuid"], "startDate": "2024-01-01"}
        )

        result = json.loads((await handle_create_project(params, fake_client))[0].text)

        fake_client.create_project.assert_awaited_once_with(
            {"name": "Launch", "teamIds": ["team-uuid"], "startDate": "2024-01-01"}
        )
        assert result["id"] == "project-uuid"

    def test_create_requires_a_team(self):
        with pytest.raises(ValidationError):
            ProjectCreateInput.model_validate({"name": "Launch", "teamIds": []})

    async def test_update_sends_changes_only(self, fake_client):
        fake_client.project.return_value = PROJECT
        fake_client.update_project.return_value = {"success": True, "project": PROJECT}
        params = ProjectUpdateInput.model_validate({"id": "project-uuid", "name": "Launch v2"})

        await handle_update_project(params, fake_client)

        fake_client.update_project.assert_awaited_once_with("project-uuid", {"name": "Launch v2"})

    async def test_update_cannot_remove_every_team(self, fake_client):
        fake_client.project.return_value = PROJECT
        with pytest.raises(InvalidParamsError, match="Invalid arguments for update_project"):
            await build_registry().call("update_project", {"id": "project-uuid", "teamIds": []}, fake_client)
        fake_client.update_project.assert_not_awaited()

    async def test_update_validates_new_teams(self, fake_client):
        fake_client.project.return_value = PROJECT
        params = ProjectUpdateInput.model_validate({"id": "project-uuid", "teamIds": ["team-x"]})
        with pytest.raises(InvalidParamsError, match=r"Invalid teamId\(s\): 'team-x'"):
            await handle_update_project(params, fake_client)
        fake_client.update_project.assert_not_awaited()

    async def test_update_missing_project(self, fake_client):
        params = ProjectUpdateInput.model_validate({"id": "project-x", "name": "Launch v2"})
        with pytest.raises(EntityNotFoundError, match="Project with ID 'project-x' not found"):
            await handle_update_project(params, fake_client)


class TestProjectUpdates:
    """Test project status updates."""

    async def test_list_for_missing_project(self, fake_client):
        fake_client.project_updates.return_value = None
        params = ProjectStatusUpdateListInput.model_validate({"projectId": "project-x"})
        with pytest.raises(EntityNotFoundError, match="Project with ID 'project-x' not found."):
            await handle_list_project_updates(params, fake_client)

    async def test_list_defaults(self, fake_client):
        params = ProjectStatusUpdateListInput.model_validate({"projectId": "project-uuid"})
        await handle_list_project_updates(params, fake_client)
        fake_client.project_updates.assert_awaited_once_with("project-uuid", first=20, include_archived=False)

    def test_edit_requires_a_field(self):
        with pytest.raises(ValidationError, match="At least one of body, isDiffHidden"):
            ProjectStatusUpdateEditInput.model_validate({"updateId": "pu-1"})

    def test_edit_null_body_is_not_a_change(self):
        with pytest.raises(ValidationError, match="At least one of body, isDiffHidden"):
            ProjectStatusUpdateEditInput.model_validate({"updateId": "pu-1", "body": None})


class TestMilestones:
    """Test project milestone handlers."""

    async def test_list_for_missing_project(self, fake_client):
        fake_client.project_milestones.return_value = None
        fake_client.projects.return_value = connection(PROJECT)
        with pytest.raises(EntityNotFoundError) as exc_info:
            await handle_list_project_milestones(MilestoneListInput(project_id="project-x"), fake_client)
        assert "Valid projects are:" in str(exc_info.value)

    async def test_create_validates_project(self, fake_client):
        params = MilestoneCreateInput.model_validate({"projectId": "project-x", "name": "Beta"})
        with pytest.raises(EntityNotFoundError):
            await handle_create_project_milestone(params, fake_client)
        fake_client.create_project_milestone.assert_not_awaited()

    async def test_create(self, fake_client):
        fake_client.project.return_value = PROJECT
        fake_client.create_project_milestone.return_value = {"success": True, "projectMilestone": MILESTONE}
        params = MilestoneCreateInput.model_validate(
            {"projectId": "project-uuid", "name": "Beta", "targetDate": "2024-03-01"}
        )

        result = json.loads((await handle_create_project_milestone(params, fake_client))[0].text)

        fake_client.create_project_milestone.assert_awaited_once_with(
            {"projectId": "project-uuid", "name": "Beta", "targetDate": "2024-03-01"}
        )
        assert result["projectId"] == "project-uuid"

    def test_update_requires_a_field(self):
        with pytest.raises(ValidationError):
            MilestoneUpdateInput.model_validate({"milestoneId": MILESTONE["id"]})

    async def test_update_with_only_null_fields(self, fake_client):
        fake_client.project_milestone.return_value = MILESTONE
        with pytest.raises(InvalidParamsError, match="At least one of name, description, targetDate"):
            await build_registry().call(
                "update_project_milestone", {"milestoneId": MILESTONE["id"], "description": None}, fake_client
            )
        fake_client.update_project_milestone.assert_not_awaited()

    async def test_update_missing_milestone(self, fake_client):
        params = MilestoneUpdateInput.model_validate({"milestoneId": "m-x", "name": "Gamma"})
        with pytest.raises(EntityNotFoundError, match="Project milestone with ID 'm-x' not found."):
            await handle_update_project_milestone(params, fake_client)

    async def test_delete(self, fake_client):
        fake_client.project_milestone.return_value = MILESTONE
        fake_client.delete_project_milestone.return_value = {"success": True, "lastSyncId": 9, "entityId": MILESTONE["id"]}

        result = json.loads(
            (await handle_delete_project_milestone(MilestoneDeleteInput(milestone_id=MILESTONE["id"]), fake_client))[0].text
        )

        assert result == {"success": True, "milestoneId": MILESTONE["id"], "lastSyncId": 9}

    async def test_delete_unsuccessful(self, fake_client):
        fake_client.project_milestone.return_value = MILESTONE
        fake_client.delete_project_milestone.return_value = {"success": False, "lastSyncId": 9}
        with pytest.raises(UpstreamError, match="Sync ID: 9"):
            await handle_delete_project_milestone(MilestoneDeleteInput(milestone_id=MILESTONE["id"]), fake_client)


class TestStatusesAndLabels:
    """Test workflow state and label handlers."""

    async def test_list_statuses_for_missing_team(self, fake_client):
        fake_client.team_states.return_value = None
        with pytest.raises(EntityNotFoundError, match="not found when trying to list issue statuses"):
            await handle_list_issue_statuses(TeamIdInput(team_id="team-x"), fake_client)

    async def test_get_status_by_name_ignores_case(self, fake_client):
        fake_client.team.return_value = TEAM
        fake_client.team_states.return_value = connection(STATE, DONE)
        params = IssueStatusQueryInput.model_validate({"teamId": "team-uuid", "query": "done"})

        result = json.loads((await handle_get_issue_status(params, fake_client))[0].text)

        assert result["id"] == "state-done"

    async def test_get_status_by_id(self, fake_client):
        fake_client.team.return_value = TEAM
        fake_client.team_states.return_value = connection(STATE, DONE)
        params = IssueStatusQueryInput.model_validate({"teamId": "team-uuid", "query": "state-uuid"})

        result = json.loads((await handle_get_issue_status(params, fake_client))[0].text)

        assert result["name"] == "In Progress"

    async def test_get_status_not_found(self, fake_client):
        fake_client.team.return_value = TEAM
        fake_client.team_states.return_value = connection(STATE)
        params = IssueStatusQueryInput.model_validate({"teamId": "team-uuid", "query": "Blocked"})

        with pytest.raises(EntityNotFoundError) as exc_info:
            await handle_get_issue_status(params, fake_client)
        assert "Available statuses for this team" in str(exc_info.value)

    async def test_list_labels(self, fake_client):
        fake_client.team_labels.return_value = connection(LABEL)
        result = json.loads((await handle_list_issue_labels(TeamIdInput(team_id="team-uuid"), fake_client))[0].text)
        assert [label["name"] for label in result] == ["Bug"]


class TestCycles:
    """Test cycle handlers and inputs."""

    def test_default_filter_excludes_completed(self):
        assert build_cycle_filter(CycleListInput()) == {
            "completedAt": {"null": True},
            "archivedAt": {"null": True},
        }

    def test_archived_filter_by_team(self):
        params = CycleListInput.model_validate({"includeArchived": True, "teamId": "team-uuid"})
        assert build_cycle_filter(params) == {"team": {"id": {"eq": "team-uuid"}}}

    def test_archived_without_team(self):
        assert build_cycle_filter(CycleListInput(include_archived=True)) is None

    def test_order_by_is_restricted(self):
        with pytest.raises(ValidationError):
            CycleListInput.model_validate({"orderBy": "name"})

    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError, match="endsAt must be after startsAt"):
            CycleCreateInput.model_validate({
                "name": "Sprint",
                "teamId": "team-uuid",
                "startsAt": "2024-02-01T00:00:00Z",
                "endsAt": "2024-01-01T00:00:00Z",
            })

    def test_update_requires_a_field(self):
        with pytest.raises(ValidationError):
            CycleUpdateInput.model_validate({"id": "cycle-uuid"})

    def test_update_null_name_is_not_a_change(self):
        with pytest.raises(ValidationError, match="At least one of"):
            CycleUpdateInput.model_validate({"id": "cycle-uuid", "name": None})

    def test_update_end_must_follow_start(self):
        with pytest.raises(ValidationError, match="endsAt must be after startsAt"):
            CycleUpdateInput.model_validate({
                "id": "cycle-uuid",
                "startsAt": "2024-02-01T00:00:00Z",
                "endsAt": "2024-01-01T00:00:00Z",
            })

    def test_update_single_date_allowed(self):
        params = CycleUpdateInput.model_validate({"id": "cycle-uuid", "endsAt": "2024-01-01T00:00:00Z"})
        assert params.starts_at is None

    async def test_create(self, fake_client):
        fake_client.team.return_value = TEAM
        fake_client.create_cycle.return_value = {
            "success": True,
            "cycle": {"id": "cycle-uuid", "name": "Sprint", "number": 1, "team": {"id": "team-uuid"},
                      "startsAt": "2024-01-01T00:00:00.000Z", "endsAt": "2024-01-15T00:00:00.000Z"},
        }
        params = CycleCreateInput.model_validate({
            "name": "Sprint",
            "teamId": "team-uuid",
            "startsAt": "2024-01-01T00:00:00Z",
            "endsAt": "2024-01-15T00:00:00Z",
        })

        result = json.loads((await handle_create_cycle(params, fake_client))[0].text)

        payload = fake_client.create_cycle.await_args.args[0]
        assert payload["teamId"] == "team-uuid"
        assert payload["startsAt"].startswith("2024-01-01T00:00:00")
        assert result["team"] == {"id": "team-uuid", "name": "Engineering", "key": "ENG"}

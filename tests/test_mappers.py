"""Tests for entity mappers."""
import asyncio
from datetime import date, datetime, timezone

import pytest

from linear_core.mappers import (
    derive_branch_name,
    iso,
    map_cycle,
    map_issue_to_details,
    map_issue_to_git_branch,
    map_issue_to_my_issue,
    map_milestone,
    map_project_update_details,
    resolve_all,
    slugify,
)

from conftest import MILESTONE, PROJECT, STATE, USER, connection, make_issue


class TestIssueDetails:
    """Test the detailed issue view model."""

    async def test_all_relations_populated(self, populated_client):
        """Test that every populated relation maps to a nested summary."""
        issue = make_issue(
            state={"id": STATE["id"]},
            assignee={"id": USER["id"]},
            project={"id": PROJECT["id"]},
            projectMilestone={"id": MILESTONE["id"]},
        )
        details = await map_issue_to_details(populated_client, issue)

        assert details["state"] == {"id": "state-uuid", "name": "In Progress", "color": "#f2c94c", "type": "started"}
        assert details["assignee"] == {"id": "user-uuid", "name": "Ada Lovelace", "email": "ada@example.com"}
        assert details["team"] == {"id": "team-uuid", "name": "Engineering", "key": "ENG"}
        assert details["project"] == {"id": "project-uuid", "name": "Launch"}
        assert details["projectMilestone"] == {"id": MILESTONE["id"], "name": "Beta"}
        assert details["labels"] == [{"id": "label-uuid", "name": "Bug", "color": "#eb5757"}]
        populated_client.workflow_state.assert_awaited_once_with("state-uuid")

    async def test_absent_relations_are_null(self, fake_client):
        """Test that absent relations map to None, never omitted."""
        details = await map_issue_to_details(fake_client, make_issue(team=None))

        for key in ("state", "assignee", "team", "project", "projectMilestone"):
            assert key in details
            assert details[key] is None
        assert details["labels"] == []
        fake_client.team.assert_not_awaited()

    async def test_attachments_absent_unless_requested(self, fake_client):
        details = await map_issue_to_details(fake_client, make_issue())
        assert "attachments" not in details
        fake_client.issue_attachments.assert_not_awaited()

    async def test_attachments_included_when_requested(self, fake_client):
        fake_client.issue_attachments.return_value = connection({
            "id": "att-1",
            "title": "PR #1",
            "url": "https://github.com/acme/repo/pull/1",
            "source": {"type": "github"},
            "metadata": {},
            "groupBySource": True,
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": "2024-01-01T00:00:00.000Z",
        })
        details = await map_issue_to_details(fake_client, make_issue(), include_attachments=True)

        assert isinstance(details["attachments"], list)
        assert details["attachments"][0]["id"] == "att-1"
        assert details["attachments"][0]["url"] == "https://github.com/acme/repo/pull/1"

    async def test_empty_attachments_is_empty_list(self, fake_client):
        details = await map_issue_to_details(fake_client, make_issue(), include_attachments=True)
        assert details["attachments"] == []

    async def test_input_not_mutated(self, populated_client):
        issue = make_issue(state={"id": STATE["id"]})
        snapshot = dict(issue)
        await map_issue_to_details(populated_client, issue)
        assert issue == snapshot


class TestOtherComposites:
    """Test mappers that resolve relations for other entities."""

    async def test_my_issue_uses_names(self, populated_client):
        populated_client.cycle.return_value = {"id": "cycle-uuid", "name": "Sprint 4"}
        issue = make_issue(state={"id": STATE["id"]}, cycle={"id": "cycle-uuid"})

        result = await map_issue_to_my_issue(populated_client, issue)

        assert result["state"] == "In Progress"
        assert result["team"] == "Engineering"
        assert result["cycleName"] == "Sprint 4"

    async def test_cycle_without_team(self, fake_client):
        cycle = {"id": "cycle-uuid", "name": "Sprint 4", "number": 4, "team": None,
                 "startsAt": "2024-01-01T00:00:00.000Z", "endsAt": "2024-01-15T00:00:00.000Z"}
        result = await map_cycle(fake_client, cycle)
        assert result["team"] is None
        assert result["completedAt"] is None
        assert result["startsAt"] == "2024-01-01T00:00:00.000Z"

    async def test_project_update_details(self, populated_client):
        update = {"id": "pu-1", "body": "On track", "project": {"id": "project-uuid"}, "user": {"id": "user-uuid"}}
        result = await map_project_update_details(populated_client, update)
        assert result["projectId"] == "project-uuid"
        assert result["project"] == {"id": "project-uuid", "name": "Launch", "state": "started", "url": PROJECT["url"]}
        assert result["user"]["displayName"] == "ada"

    def test_milestone_project_id(self):
        assert map_milestone(MILESTONE)["projectId"] == "project-uuid"
        assert map_milestone({**MILESTONE, "project": None})["projectId"] is None


class TestBranchName:
    """Test git branch name derivation."""

    def test_identifier_and_title(self):
        assert derive_branch_name("ENG-123", "Fix: the Bug!!") == "eng-123-fix-the-bug"

    def test_whitespace_and_hyphens_collapse(self):
        assert slugify("  Add   new -- feature  ") == "add-new-feature"

    def test_title_without_slug_characters(self):
        assert derive_branch_name("ENG-7", "!!!") == "eng-7"

    def test_issue_view(self):
        result = map_issue_to_git_branch(make_issue(identifier="ENG-123", title="Fix: the Bug!!"))
        assert result == {
            "id": "issue-uuid",
            "identifier": "ENG-123",
            "title": "Fix: the Bug!!",
            "branchName": "eng-123-fix-the-bug",
        }


class TestHelpers:
    """Test small mapping helpers."""

    def test_iso(self):
        assert iso(None) is None
        assert iso(date(2024, 1, 2)) == "2024-01-02"
        assert iso(datetime(2024, 1, 2, tzinfo=timezone.utc)) == "2024-01-02T00:00:00+00:00"
        assert iso("2024-01-02T00:00:00.000Z") == "2024-01-02T00:00:00.000Z"

    async def test_resolve_all_preserves_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        assert await resolve_all(value(1, 0.02), value(2, 0)) == [1, 2]

    async def test_resolve_all_fails_whole_and_cancels(self):
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def boom():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError, match="upstream down"):
            await resolve_all(slow(), boom())
        await asyncio.sleep(0.01)
        assert cancelled.is_set()

"""Shared fixtures: an AsyncMock-backed stand-in for LinearClient and sample entities."""
from unittest.mock import AsyncMock

import pytest


def connection(*nodes):
    """A Linear connection holding ``nodes``."""
    return {
        "nodes": list(nodes),
        "pageInfo": {"hasNextPage": False, "hasPreviousPage": False, "startCursor": None, "endCursor": None},
    }


SINGLE_FETCHES = (
    "viewer",
    "issue",
    "team",
    "workflow_state",
    "issue_label",
    "user",
    "project",
    "project_milestone",
    "project_update",
    "cycle",
)

CONNECTIONS = (
    "assigned_issues",
    "issues",
    "issue_labels",
    "issue_attachments",
    "issue_comments",
    "issue_children",
    "teams",
    "team_states",
    "team_labels",
    "users",
    "projects",
    "project_milestones",
    "project_updates",
    "cycles",
)

MUTATIONS = (
    "create_issue",
    "update_issue",
    "create_comment",
    "create_project",
    "update_project",
    "create_project_milestone",
    "update_project_milestone",
    "delete_project_milestone",
    "create_project_update",
    "update_project_update",
    "create_cycle",
    "update_cycle",
)


class FakeLinearClient:
    """LinearClient look-alike where every accessor is an AsyncMock.

    Defaults: single fetches return None (not found), listings return an
    empty connection, mutations return a bare successful payload.
    """

    api_url = "https://api.linear.app/graphql"

    def __init__(self):
        for name in SINGLE_FETCHES:
            setattr(self, name, AsyncMock(return_value=None))
        for name in CONNECTIONS:
            setattr(self, name, AsyncMock(return_value=connection()))
        for name in MUTATIONS:
            setattr(self, name, AsyncMock(return_value={"success": True, "lastSyncId": 1}))


def make_issue(**overrides):
    issue = {
        "id": "issue-uuid",
        "identifier": "ENG-1",
        "title": "Test Issue",
        "description": "Test description",
        "priority": 2,
        "dueDate": None,
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": "2024-01-02T00:00:00.000Z",
        "url": "https://linear.app/acme/issue/ENG-1",
        "state": None,
        "assignee": None,
        "team": {"id": "team-uuid"},
        "project": None,
        "projectMilestone": None,
        "cycle": None,
        "parent": None,
    }
    issue.update(overrides)
    return issue


TEAM = {
    "id": "team-uuid",
    "name": "Engineering",
    "key": "ENG",
    "description": None,
    "color": "#000000",
    "icon": None,
    "createdAt": "2024-01-01T00:00:00.000Z",
    "updatedAt": "2024-01-01T00:00:00.000Z",
}

STATE = {"id": "state-uuid", "name": "In Progress", "color": "#f2c94c", "type": "started", "description": None, "position": 2}

USER = {
    "id": "user-uuid",
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "displayName": "ada",
    "avatarUrl": None,
    "active": True,
    "admin": False,
    "createdAt": "2024-01-01T00:00:00.000Z",
    "updatedAt": "2024-01-01T00:00:00.000Z",
}

PROJECT = {
    "id": "project-uuid",
    "name": "Launch",
    "description": "",
    "content": None,
    "icon": None,
    "color": "#bec2c8",
    "state": "started",
    "startDate": "2024-01-01",
    "targetDate": None,
    "createdAt": "2024-01-01T00:00:00.000Z",
    "updatedAt": "2024-01-01T00:00:00.000Z",
    "url": "https://linear.app/acme/project/launch",
}

MILESTONE = {
    "id": "11111111-2222-3333-4444-555555555555",
    "name": "Beta",
    "description": None,
    "targetDate": "2024-03-01",
    "sortOrder": 1.0,
    "project": {"id": "project-uuid"},
}

LABEL = {
    "id": "label-uuid",
    "name": "Bug",
    "color": "#eb5757",
    "description": None,
    "createdAt": "2024-01-01T00:00:00.000Z",
    "updatedAt": "2024-01-01T00:00:00.000Z",
}


@pytest.fixture
def fake_client():
    return FakeLinearClient()


@pytest.fixture
def populated_client():
    """Fake client where every relation of make_issue(...) resolves."""
    client = FakeLinearClient()
    client.team.return_value = TEAM
    client.workflow_state.return_value = STATE
    client.user.return_value = USER
    client.project.return_value = PROJECT
    client.project_milestone.return_value = MILESTONE
    client.issue_labels.return_value = connection(LABEL)
    return client

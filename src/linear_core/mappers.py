"""Entity mappers: upstream entities to flat, JSON-serializable view models.

Upstream entities arrive with relations as ``{id}`` stubs. Mappers for
composite entities resolve those stubs through the client concurrently and
emit ``None`` for any relation that is absent. Mappers never mutate their input.
"""
import asyncio
import re
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Optional

from .client import LinearClient


def iso(value: Any) -> Optional[str]:
    """Normalize a date/datetime (or an upstream ISO string) to an ISO-8601 string."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


async def resolve_all(*aws: Awaitable) -> list:
    """Await all awaitables concurrently; all-or-nothing.

    If any one fails, the others are cancelled and the first exception is
    re-raised. There is no partial result.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def _none() -> None:
    return None


async def _related(fetch: Callable[[str], Awaitable[Optional[dict]]], ref: Optional[dict]) -> Optional[dict]:
    """Resolve a ``{id}`` relation stub, or None when the relation is unset."""
    if not ref or not ref.get("id"):
        return None
    return await fetch(ref["id"])


def _ref_id(ref: Optional[dict]) -> Optional[str]:
    return ref.get("id") if ref else None


def _nodes(connection: Optional[dict]) -> list:
    return (connection or {}).get("nodes") or []


# ============================================================================
# Simple entities
# ============================================================================

def map_team(team: dict) -> dict:
    return {
        "id": team["id"],
        "name": team.get("name"),
        "key": team.get("key"),
        "description": team.get("description"),
        "color": team.get("color"),
        "icon": team.get("icon"),
        "createdAt": iso(team.get("createdAt")),
        "updatedAt": iso(team.get("updatedAt")),
    }


def map_team_summary(team: Optional[dict]) -> Optional[dict]:
    if team is None:
        return None
    return {"id": team["id"], "name": team.get("name"), "key": team.get("key")}


def map_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "name": user.get("name"),
        "email": user.get("email"),
        "displayName": user.get("displayName"),
        "avatarUrl": user.get("avatarUrl"),
        "active": user.get("active"),
        "admin": user.get("admin"),
        "createdAt": iso(user.get("createdAt")),
        "updatedAt": iso(user.get("updatedAt")),
    }


def map_user_summary(user: Optional[dict]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user["id"], "name": user.get("name"), "email": user.get("email")}


def map_project(project: dict) -> dict:
    return {
        "id": project["id"],
        "name": project.get("name"),
        "description": project.get("description"),
        "content": project.get("content"),
        "icon": project.get("icon"),
        "color": project.get("color"),
        "state": project.get("state"),
        "startDate": iso(project.get("startDate")),
        "targetDate": iso(project.get("targetDate")),
        "createdAt": iso(project.get("createdAt")),
        "updatedAt": iso(project.get("updatedAt")),
        "url": project.get("url"),
    }


def map_issue_status(state: dict) -> dict:
    return {
        "id": state["id"],
        "name": state.get("name"),
        "color": state.get("color"),
        "type": state.get("type"),
        "description": state.get("description"),
        "position": state.get("position"),
    }


def map_label(label: dict) -> dict:
    return {
        "id": label["id"],
        "name": label.get("name"),
        "color": label.get("color"),
        "description": label.get("description"),
        "createdAt": iso(label.get("createdAt")),
        "updatedAt": iso(label.get("updatedAt")),
    }


def map_milestone(milestone: dict) -> dict:
    return {
        "id": milestone["id"],
        "name": milestone.get("name"),
        "description": milestone.get("description"),
        "targetDate": iso(milestone.get("targetDate")),
        "sortOrder": milestone.get("sortOrder"),
        "projectId": _ref_id(milestone.get("project")),
    }


def map_comment(comment: dict) -> dict:
    return {
        "id": comment["id"],
        "body": comment.get("body"),
        "createdAt": iso(comment.get("createdAt")),
        "updatedAt": iso(comment.get("updatedAt")),
        "userId": _ref_id(comment.get("user")),
    }


def map_attachment(attachment: dict) -> dict:
    return {
        "id": attachment["id"],
        "title": attachment.get("title"),
        "url": attachment.get("url"),
        "source": attachment.get("source"),
        "metadata": attachment.get("metadata"),
        "groupBySource": attachment.get("groupBySource"),
        "createdAt": iso(attachment.get("createdAt")),
        "updatedAt": iso(attachment.get("updatedAt")),
    }


def map_project_update(update: dict) -> dict:
    return {
        "id": update["id"],
        "body": update.get("body"),
        "projectId": _ref_id(update.get("project")),
        "userId": _ref_id(update.get("user")),
        "createdAt": iso(update.get("createdAt")),
        "editedAt": iso(update.get("editedAt")),
        "archivedAt": iso(update.get("archivedAt")),
        "isStale": update.get("isStale"),
        "isDiffHidden": update.get("isDiffHidden"),
        "diff": update.get("diff"),
        "diffMarkdown": update.get("diffMarkdown"),
        "url": update.get("url"),
    }


def map_sub_issue_summary(issue: dict) -> dict:
    return {
        "id": issue["id"],
        "identifier": issue.get("identifier"),
        "title": issue.get("title"),
        "priority": issue.get("priority"),
        "url": issue.get("url"),
    }


# ============================================================================
# Git branch names
# ============================================================================

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_SEPARATOR_RUNS = re.compile(r"[\s-]+")


def slugify(title: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace/hyphen runs to one hyphen."""
    slug = _NON_SLUG_CHARS.sub("", (title or "").lower())
    return _SEPARATOR_RUNS.sub("-", slug).strip("-")


def derive_branch_name(identifier: str, title: str) -> str:
    """Branch name for an issue, e.g. ("ENG-123", "Fix: the Bug!!") -> "eng-123-fix-the-bug"."""
    prefix = (identifier or "").lower()
    slug = slugify(title)
    return f"{prefix}-{slug}" if slug else prefix


def map_issue_to_git_branch(issue: dict) -> dict:
    return {
        "id": issue["id"],
        "identifier": issue.get("identifier"),
        "title": issue.get("title"),
        "branchName": derive_branch_name(issue.get("identifier"), issue.get("title")),
    }


# ============================================================================
# Composite entities (relations resolved concurrently)
# ============================================================================

async def map_issue_to_details(client: LinearClient, issue: dict, include_attachments: bool = False) -> dict:
    """Detailed issue view with every relation resolved.

    Args:
        client: Linear client used to resolve relation stubs
        issue: Upstream issue entity
        include_attachments: Also fetch attachments. When False the
            ``attachments`` key is absent from the result.

    Returns:
        Flat issue view model; absent relations are None
    """
    state, assignee, team, project, milestone, labels, attachments = await resolve_all(
        _related(client.workflow_state, issue.get("state")),
        _related(client.user, issue.get("assignee")),
        _related(client.team, issue.get("team")),
        _related(client.project, issue.get("project")),
        _related(client.project_milestone, issue.get("projectMilestone")),
        client.issue_labels(issue["id"]),
        client.issue_attachments(issue["id"]) if include_attachments else _none(),
    )

    details = {
        "id": issue["id"],
        "identifier": issue.get("identifier"),
        "title": issue.get("title"),
        "description": issue.get("description"),
        "priority": issue.get("priority"),
        "state": {
            "id": state["id"],
            "name": state.get("name"),
            "color": state.get("color"),
            "type": state.get("type"),
        } if state else None,
        "assignee": map_user_summary(assignee),
        "team": map_team_summary(team),
        "project": {"id": project["id"], "name": project.get("name")} if project else None,
        "projectMilestone": {"id": milestone["id"], "name": milestone.get("name")} if milestone else None,
        "labels": [
            {"id": label["id"], "name": label.get("name"), "color": label.get("color")}
            for label in _nodes(labels)
        ],
    }
    if include_attachments:
        details["attachments"] = [map_attachment(a) for a in _nodes(attachments)]
    details.update({
        "createdAt": iso(issue.get("createdAt")),
        "updatedAt": iso(issue.get("updatedAt")),
        "url": issue.get("url"),
    })
    return details


async def map_issue_to_my_issue(client: LinearClient, issue: dict) -> dict:
    """Compact view for list_my_issues: related entities reduced to their names."""
    state, team, cycle = await resolve_all(
        _related(client.workflow_state, issue.get("state")),
        _related(client.team, issue.get("team")),
        _related(client.cycle, issue.get("cycle")),
    )
    return {
        "id": issue["id"],
        "identifier": issue.get("identifier"),
        "title": issue.get("title"),
        "description": issue.get("description"),
        "priority": issue.get("priority"),
        "state": state.get("name") if state else None,
        "team": team.get("name") if team else None,
        "cycleName": cycle.get("name") if cycle else None,
        "createdAt": iso(issue.get("createdAt")),
        "updatedAt": iso(issue.get("updatedAt")),
        "url": issue.get("url"),
    }


async def map_cycle(client: LinearClient, cycle: dict) -> dict:
    team = await _related(client.team, cycle.get("team"))
    return {
        "id": cycle["id"],
        "name": cycle.get("name"),
        "description": cycle.get("description"),
        "number": cycle.get("number"),
        "startsAt": iso(cycle.get("startsAt")),
        "endsAt": iso(cycle.get("endsAt")),
        "completedAt": iso(cycle.get("completedAt")),
        "progress": cycle.get("progress"),
        "issueCountHistory": cycle.get("issueCountHistory"),
        "scopeHistory": cycle.get("scopeHistory"),
        "team": map_team_summary(team),
        "createdAt": iso(cycle.get("createdAt")),
        "updatedAt": iso(cycle.get("updatedAt")),
    }


async def map_project_update_details(client: LinearClient, update: dict) -> dict:
    """Project update with its project and author resolved."""
    project, user = await resolve_all(
        _related(client.project, update.get("project")),
        _related(client.user, update.get("user")),
    )
    details = map_project_update(update)
    details["project"] = {
        "id": project["id"],
        "name": project.get("name"),
        "state": project.get("state"),
        "url": project.get("url"),
    } if project else None
    details["user"] = {
        "id": user["id"],
        "name": user.get("name"),
        "displayName": user.get("displayName"),
        "email": user.get("email"),
    } if user else None
    return details

"""
Tests for MilestoneBuilder.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from sources.models import Project, ProjectComment, User
from summaries.milestone import MilestoneBuilder, find_milestone_owner


@pytest.fixture
def users():
    return [
        User(id="u1", name="Ada Lovelace", email="ada@example.com", slack_id="S1"),
        User(id="u2", name="Alan Turing", email="alan@example.com", slack_id="S2"),
    ]


@pytest.fixture
def mock_pm_api():
    api = Mock()
    api.get_direct_child_issues = AsyncMock(return_value=[])
    api.get_recent_comments = AsyncMock(return_value=[])
    return api


def test_owner_matched_by_assignee_name(make_issue, users):
    epic = make_issue("PROJ-1", issue_type="Epic", assignee_name="Alan Turing")
    project = Project(id=1, title="Project", project_lead_user_id="ada@example.com")
    assert find_milestone_owner(epic, users, project) == users[1]


def test_unknown_assignee_has_no_owner(make_issue, users):
    """An assignee outside the user pool does not fall back to the lead."""
    epic = make_issue("PROJ-1", issue_type="Epic", assignee_name="Grace Hopper")
    project = Project(id=1, title="Project", project_lead_user_id="ada@example.com")
    assert find_milestone_owner(epic, users, project) is None


def test_unassigned_milestone_falls_back_to_lead(make_issue, users):
    epic = make_issue("PROJ-1", issue_type="Epic", assignee_name="  ")
    project = Project(id=1, title="Project", project_lead_user_id="ada@example.com")
    assert find_milestone_owner(epic, users, project) == users[0]


def test_no_assignee_and_no_lead(make_issue, users):
    epic = make_issue("PROJ-1", issue_type="Epic")
    assert find_milestone_owner(epic, users, Project(id=1, title="Project")) is None


@pytest.mark.asyncio
async def test_build_filters_children_and_window(make_issue, users, mock_pm_api, now):
    epic = make_issue("PROJ-1", issue_type="Epic", assignee_name="Ada Lovelace")
    resolved = make_issue("PROJ-2", completed_days_ago=2)
    created = make_issue("PROJ-3", created_days_ago=1)
    stale = make_issue("PROJ-4", completed_days_ago=20)
    nested_epic = make_issue("PROJ-5", issue_type="Epic", created_days_ago=1)
    mock_pm_api.get_direct_child_issues.return_value = [
        resolved,
        created,
        stale,
        nested_epic,
    ]
    comment = ProjectComment(id="c1", body="On track", created_at=now)
    mock_pm_api.get_recent_comments.return_value = [comment]

    builder = MilestoneBuilder(mock_pm_api, timedelta(days=7), now=now)
    milestone = await builder.build(epic, users, Project(id=1, title="Project"))

    mock_pm_api.get_direct_child_issues.assert_awaited_once_with("PROJ-1")
    mock_pm_api.get_recent_comments.assert_awaited_once_with("PROJ-1", 5)
    assert milestone.assignee == users[0]
    assert milestone.issue == epic
    assert milestone.issues == {resolved, created, stale}
    assert milestone.duration_issues == {resolved, created}
    assert milestone.milestone_comments == {comment}
    assert milestone.duration_merged_pull_requests == frozenset()


@pytest.mark.asyncio
async def test_blank_key_skips_comments(make_issue, users, mock_pm_api, now):
    epic = make_issue(" ", issue_type="Epic")
    builder = MilestoneBuilder(mock_pm_api, timedelta(days=7), now=now)

    milestone = await builder.build(epic, users, Project(id=1, title="Project"))

    mock_pm_api.get_recent_comments.assert_not_awaited()
    assert milestone.milestone_comments == frozenset()


@pytest.mark.asyncio
async def test_api_failure_propagates(make_issue, users, mock_pm_api, now):
    mock_pm_api.get_direct_child_issues.side_effect = RuntimeError("Jira down")
    builder = MilestoneBuilder(mock_pm_api, timedelta(days=7), now=now)

    with pytest.raises(RuntimeError, match="Jira down"):
        await builder.build(
            make_issue("PROJ-1", issue_type="Epic"),
            users,
            Project(id=1, title="Project"),
        )

"""
Tests for issue classification and model equality.
"""

import pytest

from sources.models import PagerDutyIncident, ProjectIssue, User


@pytest.mark.parametrize("issue_type", ["Epic", "epic", "Milestone"])
def test_milestone_types(issue_type):
    issue = ProjectIssue(id="1", key="PROJ-1", issue_type=issue_type)
    assert issue.is_milestone()
    assert not issue.is_issue_or_bug()


@pytest.mark.parametrize("issue_type", ["Bug", "Story", "Task", "Sub-Task Like"])
def test_work_item_types(issue_type):
    issue = ProjectIssue(id="1", key="PROJ-1", issue_type=issue_type)
    assert issue.is_issue_or_bug()
    assert not issue.is_milestone()


@pytest.mark.parametrize("issue_type", ["Theme", "Sub-task", "Company Initiative"])
def test_container_types_are_not_work(issue_type):
    issue = ProjectIssue(id="1", key="PROJ-1", issue_type=issue_type)
    assert not issue.is_issue_or_bug()


def test_missing_issue_type():
    issue = ProjectIssue(id="1", key="PROJ-1")
    assert not issue.is_issue_or_bug()
    assert not issue.is_milestone()


def test_is_completed(make_issue):
    assert make_issue("PROJ-1", completed_days_ago=1).is_completed()
    assert not make_issue("PROJ-2").is_completed()


def test_issue_equality_is_by_value(make_issue):
    """Issues fetched by different queries collapse in a set."""
    first = make_issue("PROJ-1", completed_days_ago=2)
    second = make_issue("PROJ-1", completed_days_ago=2)
    assert first == second
    assert len({first, second}) == 1


def test_user_is_hashable():
    user = User(id="u1", name="Ada")
    assert {user, User(id="u1", name="Ada")} == {user}


def test_pagerduty_incident_from_api_payload():
    incident = PagerDutyIncident.model_validate(
        {
            "id": "P1",
            "incident_number": 42,
            "title": "Database down",
            "description": "Database down",
            "status": "resolved",
            "urgency": "high",
            "created_at": "2025-03-10T10:00:00Z",
            "updated_at": "2025-03-10T11:00:00Z",
            "html_url": "https://example.pagerduty.com/incidents/P1",
            "service": {
                "id": "S1",
                "type": "service_reference",
                "summary": "Database",
                "self": "https://api.pagerduty.com/services/S1",
                "html_url": "https://example.pagerduty.com/services/S1",
            },
        }
    )
    assert incident.incident_number == 42
    assert incident.service.self_url == "https://api.pagerduty.com/services/S1"

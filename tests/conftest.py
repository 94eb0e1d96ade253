"""
Shared test setup.

Credentials are required settings, so placeholder values are exported before the
config module is imported by any test module.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("GITHUB_TOKEN", "test-github-token")
os.environ.setdefault("JIRA_SERVER", "https://example.atlassian.net")
os.environ.setdefault("JIRA_EMAIL", "bot@example.com")
os.environ.setdefault("JIRA_TOKEN", "test-jira-token")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "summary-publisher-logs"))

from sources.models import ProjectIssue  # noqa: E402

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for the reporting window."""
    return NOW


@pytest.fixture
def make_issue():
    """Factory for ProjectIssue objects relative to the reference time."""

    def _make_issue(
        key,
        issue_type="Story",
        completed_days_ago=None,
        created_days_ago=30,
        **fields,
    ):
        completed_at = (
            NOW - timedelta(days=completed_days_ago)
            if completed_days_ago is not None
            else None
        )
        return ProjectIssue(
            id=fields.pop("id", key),
            key=key,
            url=fields.pop("url", f"https://example.atlassian.net/browse/{key}"),
            title=fields.pop("title", f"Title {key}"),
            issue_type=issue_type,
            created_at=NOW - timedelta(days=created_days_ago),
            completed_at=completed_at,
            **fields,
        )

    return _make_issue

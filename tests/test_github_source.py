"""
Tests for the GitHub pull request source.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
from github import GithubException, RateLimitExceededException

from sources.github_source import GitHubSource

END = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
START = END - timedelta(days=7)


def make_search_result(number):
    issue = Mock()
    issue.id = 1000 + number
    issue.number = number
    issue.state = "closed"
    issue.title = f"Fix PROJ-{number}"
    issue.html_url = f"https://github.com/org/repo/pull/{number}"
    issue.repository_url = "https://api.github.com/repos/org/repo"
    issue.body = "Body"
    issue.user.login = "ada"
    label = Mock()
    label.name = "bug"
    issue.labels = [label]
    issue.created_at = START
    issue.updated_at = END
    issue.closed_at = END
    issue.pull_request.raw_data = {
        "url": f"https://api.github.com/repos/org/repo/pulls/{number}",
        "merged_at": "2025-03-13T10:00:00Z",
    }
    return issue


@pytest.fixture
def mock_github():
    github = Mock()
    github.rate_limiting = (4000, 5000)
    github.rate_limiting_resettime = END.timestamp()
    github.search_issues.return_value = [make_search_result(1)]
    return github


@pytest.fixture
def source(mock_github):
    with patch("sources.github_source.Github", return_value=mock_github):
        return GitHubSource("token")


@pytest.mark.asyncio
async def test_search_pull_requests_by_text(source, mock_github):
    pull_requests = await source.search_pull_requests_by_text(
        "PROJ-1", ["org-a", "org-b"], START, END
    )

    mock_github.search_issues.assert_called_once_with(
        "org:org-a org:org-b is:merged merged:2025-03-07T12:00:00Z..2025-03-14T12:00:00Z "
        "is:pr PROJ-1 in:title,body"
    )
    assert len(pull_requests) == 1
    pull_request = pull_requests[0]
    assert pull_request.number == 1
    assert pull_request.labels == ("bug",)
    assert pull_request.author == "ada"
    assert pull_request.merged_at == datetime(2025, 3, 13, 10, tzinfo=timezone.utc)
    assert pull_request.repository_url == "https://api.github.com/repos/org/repo"


@pytest.mark.asyncio
async def test_get_merged_pull_requests(source, mock_github):
    await source.get_merged_pull_requests("ada", ["org-a"], START, END)

    mock_github.search_issues.assert_called_once_with(
        "author:ada org:org-a is:pr is:merged "
        "merged:2025-03-07T12:00:00Z..2025-03-14T12:00:00Z"
    )


@pytest.mark.asyncio
async def test_search_failure_propagates(source, mock_github):
    mock_github.search_issues.side_effect = Exception("API Error")

    with pytest.raises(Exception, match="API Error"):
        await source.get_merged_pull_requests("ada", ["org-a"], START, END)


@pytest.mark.asyncio
async def test_rate_limit_exhausted_raises(source, mock_github):
    mock_github.rate_limiting = (0, 5000)
    mock_github.rate_limiting_resettime = (
        datetime.now(timezone.utc) + timedelta(minutes=30)
    ).timestamp()

    with pytest.raises(Exception, match="rate limit exhausted"):
        await source.search_pull_requests_by_text("PROJ-1", ["org"], START, END)

    mock_github.search_issues.assert_not_called()


@pytest.mark.asyncio
async def test_last_search_point_returns_results(source, mock_github):
    mock_github.rate_limiting = (1, 30)
    mock_github.rate_limiting_resettime = (
        datetime.now(timezone.utc) + timedelta(seconds=40)
    ).timestamp()

    def search(query):
        mock_github.rate_limiting = (0, 30)
        return [make_search_result(1)]

    mock_github.search_issues.side_effect = search

    with patch("sources.github_source.time.sleep") as mock_sleep:
        pull_requests = await source.search_pull_requests_by_text(
            "PROJ-1", ["org"], START, END
        )
        assert [pr.number for pr in pull_requests] == [1]
        mock_sleep.assert_not_called()

        await source.search_pull_requests_by_text("PROJ-2", ["org"], START, END)

    mock_sleep.assert_called_once()
    assert 0 < mock_sleep.call_args.args[0] <= 42
    assert mock_github.search_issues.call_count == 2


@pytest.mark.asyncio
async def test_transient_search_errors_are_retried(source, mock_github, monkeypatch):
    monkeypatch.setattr(GitHubSource._search.retry, "sleep", Mock())
    mock_github.search_issues.side_effect = [
        GithubException(502, {"message": "Bad gateway"}, None),
        RateLimitExceededException(403, {"message": "secondary rate limit"}, None),
        [make_search_result(2)],
    ]

    pull_requests = await source.search_pull_requests_by_text(
        "PROJ-2", ["org"], START, END
    )

    assert [pr.number for pr in pull_requests] == [2]
    assert mock_github.search_issues.call_count == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(source, mock_github, monkeypatch):
    monkeypatch.setattr(GitHubSource._search.retry, "sleep", Mock())
    mock_github.search_issues.side_effect = GithubException(
        422, {"message": "Validation Failed"}, None
    )

    with pytest.raises(GithubException):
        await source.get_merged_pull_requests("ada", ["org"], START, END)

    assert mock_github.search_issues.call_count == 1

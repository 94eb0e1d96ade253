"""
GitHub Pull Request Source Module.

This module searches merged pull requests through the GitHub issue search API.
PyGithub is synchronous, so each search runs in a worker thread to keep the
event loop free while many projects are summarized concurrently.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import List, Optional

from github import Github, GithubException, RateLimitExceededException
from github.Issue import Issue
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config import settings, logger
from sources.base import GitHubApi
from sources.models import PullRequest


def _format_search_date(value: datetime) -> str:
    """Format a datetime for GitHub search qualifiers (UTC, second precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _is_retryable(error: BaseException) -> bool:
    """Rate limiting and server errors are transient, anything else is not."""
    if isinstance(error, RateLimitExceededException):
        return True
    if isinstance(error, GithubException):
        return error.status in (403, 429) or error.status >= 500
    return False


def _organization_qualifiers(organization_ids: List[str]) -> str:
    return " ".join(f"org:{organization_id}" for organization_id in organization_ids)


class GitHubSource(GitHubApi):
    """
    GitHubSource searches merged pull requests in a set of organizations.
    Search results are transformed into PullRequest models.

    Attributes:
        max_rate_limit_wait (int): Longest wait in seconds for an exhausted rate
            limit to reset before giving up
    """

    max_rate_limit_wait = 90

    def __init__(self, github_token: Optional[str] = None):
        """Initialize the GitHub source with authentication.

        Args:
            github_token (Optional[str]): GitHub API token for authentication.
        """
        self.github = Github(github_token or settings.github_token.get_secret_value())

    def _check_rate_limit(self, check_name: str = None) -> None:
        """
        Check and log the GitHub API rate limit status.

        Args:
            check_name (Optional[str]): Identifier for the rate limit check point.

        Search limits reset every minute, so a short wait for the reset is taken
        in place. A longer wait raises.

        Raises:
            Exception: Raised when the rate limit is exhausted, indicating time until reset.
        """
        remaining, limit = self.github.rate_limiting
        reset_time = datetime.fromtimestamp(
            self.github.rate_limiting_resettime, timezone.utc
        )
        now = datetime.now(timezone.utc)

        logger.debug(
            {
                "message": f"{check_name} API rate limit status",
                "remaining_points": remaining,
                "total_points": limit,
                "reset_time": reset_time.isoformat(),
            }
        )

        if remaining < (limit * 0.1) and remaining > 0:
            logger.warning(
                {
                    "message": "GitHub API rate limit running low",
                    "remaining_points": remaining,
                    "reset_time": reset_time.isoformat(),
                }
            )

        if remaining == 0:
            wait_time = max((reset_time - now).total_seconds(), 0)
            if wait_time <= self.max_rate_limit_wait:
                logger.warning(
                    {
                        "message": "GitHub API rate limit exhausted, waiting for reset",
                        "reset_time": reset_time.isoformat(),
                        "wait_time_seconds": wait_time,
                    }
                )
                time.sleep(wait_time + 1)
                return
            logger.critical(
                {
                    "message": "GitHub API rate limit exhausted",
                    "reset_time": reset_time.isoformat(),
                    "wait_time_seconds": wait_time,
                }
            )
            raise Exception(
                f"GitHub API rate limit exhausted. Resets in {wait_time/60:.1f} minutes"
            )

    def _get_pull_request_data(self, issue: Issue) -> PullRequest:
        """Convert a GitHub search Issue object to a Pydantic model.

        Args:
            issue (Issue): Search result representing a pull request.

        Returns:
            PullRequest: A Pydantic model representing the PR.
        """
        pull_request_data = issue.pull_request.raw_data if issue.pull_request else {}
        return PullRequest(
            id=issue.id,
            number=issue.number,
            state=issue.state,
            title=issue.title,
            html_url=issue.html_url,
            url=pull_request_data.get("url"),
            repository_url=issue.repository_url,
            author=issue.user.login if issue.user else None,
            body=issue.body,
            labels=tuple(label.name for label in issue.labels),
            created_at=issue.created_at,
            updated_at=issue.updated_at,
            closed_at=issue.closed_at,
            merged_at=pull_request_data.get("merged_at"),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    def _search(self, query: str) -> List[PullRequest]:
        logger.debug({"message": "Searching pull requests", "query": query})
        self._check_rate_limit("Pull request search")
        try:
            results = self.github.search_issues(query)
            return [self._get_pull_request_data(issue) for issue in results]
        except Exception as e:
            logger.error(
                {
                    "message": "Pull request search failed",
                    "query": query,
                    "error": str(e),
                }
            )
            raise

    async def search_pull_requests_by_text(
        self,
        text: str,
        organization_ids: List[str],
        start_date: datetime,
        end_date: datetime,
    ) -> List[PullRequest]:
        query = (
            f"{_organization_qualifiers(organization_ids)} is:merged "
            f"merged:{_format_search_date(start_date)}..{_format_search_date(end_date)} "
            f"is:pr {text} in:title,body"
        )
        return await asyncio.to_thread(self._search, query)

    async def get_merged_pull_requests(
        self,
        user_id: str,
        organization_ids: List[str],
        start_date: datetime,
        end_date: datetime,
    ) -> List[PullRequest]:
        query = (
            f"author:{user_id} {_organization_qualifiers(organization_ids)} is:pr is:merged "
            f"merged:{_format_search_date(start_date)}..{_format_search_date(end_date)}"
        )
        return await asyncio.to_thread(self._search, query)

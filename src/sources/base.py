"""
Abstract Base Classes for Work Sources.

Defines the interfaces the summary pipeline consumes. Concrete backends (Jira,
GitHub, PagerDuty) implement these and are selected at configuration time.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from sources.models import PagerDutyIncident, ProjectComment, ProjectIssue, PullRequest


class ProjectManagementApi(ABC):
    """
    Abstract base class for project management backends.

    Implementations should handle:
    - Authentication with the project management service
    - Issue, hierarchy and comment retrieval
    - Transformation to the common ProjectIssue / ProjectComment models
    """

    @abstractmethod
    async def get_issues(self, issue_keys: List[str]) -> List[ProjectIssue]:
        """
        Retrieve issues by their keys.

        Args:
            issue_keys (List[str]): Issue keys, e.g. "PROJ-123"

        Returns:
            List[ProjectIssue]: Issues matching the given keys
        """
        pass

    @abstractmethod
    async def get_child_issues(self, issue_keys: List[str]) -> List[ProjectIssue]:
        """
        Retrieve all descendant issues (recursively) of the given parents.

        Args:
            issue_keys (List[str]): Parent issue keys

        Returns:
            List[ProjectIssue]: All descendant issues
        """
        pass

    @abstractmethod
    async def get_direct_child_issues(self, parent_key: str) -> List[ProjectIssue]:
        """
        Retrieve direct (non-recursive) children of a single parent.

        Args:
            parent_key (str): Parent issue key

        Returns:
            List[ProjectIssue]: Direct child issues
        """
        pass

    @abstractmethod
    async def get_recent_comments(
        self, issue_key: str, max_results: int
    ) -> List[ProjectComment]:
        """
        Retrieve the most recent comments of an issue.

        Args:
            issue_key (str): Issue key
            max_results (int): Maximum number of comments to return

        Returns:
            List[ProjectComment]: Comments, most recent first
        """
        pass

    @abstractmethod
    async def get_issues_resolved(
        self, user_id: str, start_date: datetime, end_date: datetime
    ) -> List[ProjectIssue]:
        """
        Retrieve issues resolved by a user within a date range (inclusive).

        Args:
            user_id (str): Backend specific user id
            start_date (datetime): Start of the range
            end_date (datetime): End of the range

        Returns:
            List[ProjectIssue]: Resolved issues
        """
        pass

    @abstractmethod
    async def get_issues_resolved_count(
        self, user_id: str, start_date: datetime, end_date: datetime
    ) -> int:
        """Count issues resolved by a user within a date range (inclusive)."""
        pass


class GitHubApi(ABC):
    """Abstract base class for source-control backends."""

    @abstractmethod
    async def get_merged_pull_requests(
        self,
        user_id: str,
        organization_ids: List[str],
        start_date: datetime,
        end_date: datetime,
    ) -> List[PullRequest]:
        """
        Retrieve pull requests authored by a user and merged within a date range.

        Args:
            user_id (str): GitHub login
            organization_ids (List[str]): Organizations to search in
            start_date (datetime): Start of the range
            end_date (datetime): End of the range

        Returns:
            List[PullRequest]: Merged pull requests
        """
        pass

    @abstractmethod
    async def search_pull_requests_by_text(
        self,
        text: str,
        organization_ids: List[str],
        start_date: datetime,
        end_date: datetime,
    ) -> List[PullRequest]:
        """
        Search merged pull requests whose title or body mention the text.

        Args:
            text (str): Text to search for, usually an issue key
            organization_ids (List[str]): Organizations to search in
            start_date (datetime): Start of the merge range
            end_date (datetime): End of the merge range

        Returns:
            List[PullRequest]: Matching merged pull requests
        """
        pass


class PagerDutyApi(ABC):
    """Abstract base class for incident backends."""

    @abstractmethod
    async def get_service_pages(
        self,
        service_id: str,
        start_time_inclusive: datetime,
        end_time_exclusive: datetime,
    ) -> List[PagerDutyIncident]:
        """
        Get pages of a service within a time range.

        Args:
            service_id (str): PagerDuty service id
            start_time_inclusive (datetime): Start of the range (inclusive)
            end_time_exclusive (datetime): End of the range (exclusive)

        Returns:
            List[PagerDutyIncident]: Incidents raised for the service
        """
        pass

"""
Project Summary Module.

Summarizes a single project over the reporting window:

- Top-level issues and their descendants
- Natural-language rollup of the work items resolved in the window
- Merged pull requests referencing the resolved work items
- Milestones found under the project
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Iterable, List, Optional

from config import logger
from sources.base import GitHubApi, ProjectManagementApi
from sources.models import Project, ProjectIssue, PullRequest, User
from summaries.milestone import MilestoneBuilder, is_in_window
from summaries.models import Milestone, ProjectSummary
from summaries.plugins.text_summarizer import TextSummarizer


def build_rollup_input(resolved_issues: List[ProjectIssue]) -> str:
    """
    Build the markdown block handed to the text summarizer.

    Args:
        resolved_issues (List[ProjectIssue]): Work items resolved in the window

    Returns:
        str: One section per issue with its title, assignee and description
    """
    lines = ["# Issues\n\n"]
    for issue in resolved_issues:
        lines.append(f"## {issue.title}")
        lines.append(f"Assignee: {issue.assignee_name}")
        lines.append(f"Description:\n````{issue.description}````\n")
    return "\n".join(lines) + "\n"


class ProjectSummarizer:
    """
    Creates ProjectSummary objects for configured or synthetic projects.

    All summaries created by one instance share the same reporting window.

    Attributes:
        project_management_api (ProjectManagementApi): Issue source
        github_api (GitHubApi): Pull request source
        organization_ids (List[str]): GitHub organizations searched for PRs
        text_summarizer (TextSummarizer): Rollup generator
        duration (timedelta): Length of the reporting window
        now (datetime): End of the reporting window
        window_start (datetime): Start of the reporting window
        search_slots (asyncio.Semaphore): Bounds the pull request searches in
            flight across every project summarized by this instance
    """

    def __init__(
        self,
        project_management_api: ProjectManagementApi,
        github_api: GitHubApi,
        organization_ids: List[str],
        text_summarizer: TextSummarizer,
        duration: timedelta,
        now: Optional[datetime] = None,
        max_concurrent_searches: int = 2,
    ):
        """
        Initialize the project summarizer.

        Args:
            project_management_api (ProjectManagementApi): Issue source
            github_api (GitHubApi): Pull request source
            organization_ids (List[str]): GitHub organizations searched for PRs
            text_summarizer (TextSummarizer): Rollup generator
            duration (timedelta): Length of the reporting window
            now (Optional[datetime]): End of the window, defaults to the current time
            max_concurrent_searches (int): Pull request searches allowed at once
        """
        self.project_management_api = project_management_api
        self.github_api = github_api
        self.organization_ids = organization_ids
        self.text_summarizer = text_summarizer
        self.duration = duration
        self.now = now or datetime.now(timezone.utc)
        self.window_start = self.now - duration
        self.search_slots = asyncio.Semaphore(max_concurrent_searches)
        self.milestone_builder = MilestoneBuilder(
            project_management_api, duration, now=self.now
        )

    async def _fetch_parent_issues(self, project: Project) -> List[ProjectIssue]:
        if not project.top_level_issue_keys:
            return []
        logger.debug(
            {
                "message": "Getting top-level issues",
                "project": project.title,
                "issue_keys": project.top_level_issue_keys,
            }
        )
        return await self.project_management_api.get_issues(
            project.top_level_issue_keys
        )

    async def _fetch_child_issues(
        self, project: Project, parent_issues: List[ProjectIssue]
    ) -> List[ProjectIssue]:
        parent_keys = [issue.key for issue in parent_issues]
        logger.debug(
            {
                "message": "Getting child issues",
                "project": project.title,
                "parent_keys": parent_keys,
            }
        )
        return await self.project_management_api.get_child_issues(parent_keys)

    async def _generate_summary_text(self, resolved_issues: List[ProjectIssue]) -> str:
        if not resolved_issues:
            return f"* No updates in the last {self.duration.days} days*"
        return await self.text_summarizer.summarize(build_rollup_input(resolved_issues))

    async def _search_related(self, issue: ProjectIssue) -> List[PullRequest]:
        async with self.search_slots:
            return await self.github_api.search_pull_requests_by_text(
                issue.key, self.organization_ids, self.window_start, self.now
            )

    async def _fetch_related_pull_requests(
        self,
        resolved_issues: List[ProjectIssue],
        pull_requests: Iterable[PullRequest],
    ) -> FrozenSet[PullRequest]:
        """
        Find merged pull requests that mention the resolved work items.

        Args:
            resolved_issues (List[ProjectIssue]): Work items resolved in the window
            pull_requests (Iterable[PullRequest]): Pull requests seeded by the caller

        Returns:
            FrozenSet[PullRequest]: Seeded PRs plus every PR found for the issues
        """
        merged_pull_requests = set(pull_requests)
        searches = (self._search_related(issue) for issue in resolved_issues)
        for found in await asyncio.gather(*searches):
            merged_pull_requests.update(found)
        return frozenset(merged_pull_requests)

    async def _build_milestones(
        self,
        project: Project,
        parent_issues: List[ProjectIssue],
        child_issues: List[ProjectIssue],
        users: Iterable[User],
    ) -> FrozenSet[Milestone]:
        users = list(users)
        # dict.fromkeys drops issues present both as parent and child
        candidates = dict.fromkeys(parent_issues + child_issues)
        milestones = await asyncio.gather(
            *(
                self.milestone_builder.build(issue, users, project)
                for issue in candidates
                if issue.is_milestone()
            )
        )
        return frozenset(milestones)

    async def summarize(
        self,
        project: Project,
        users: Iterable[User],
        pull_requests: Iterable[PullRequest] = (),
        parent_issues_are_children: bool = False,
    ) -> ProjectSummary:
        """
        Create the summary of a project.

        Args:
            project (Project): Project to summarize
            users (Iterable[User]): Users that may own the project's milestones
            pull_requests (Iterable[PullRequest]): Extra merged PRs to include
            parent_issues_are_children (bool): Treat the top-level issues as the
                work items themselves, without expanding or building milestones

        Returns:
            ProjectSummary: The project summary

        Raises:
            Exception: Any failure of the underlying APIs or the text summarizer
        """
        logger.info({"message": "Creating project summary", "project": project.title})

        parent_issues = await self._fetch_parent_issues(project)
        if parent_issues_are_children:
            child_issues = parent_issues
        else:
            child_issues = await self._fetch_child_issues(project, parent_issues)

        resolved_issues = [
            issue
            for issue in child_issues
            if issue.completed_at is not None
            and issue.completed_at >= self.window_start
            and issue.is_issue_or_bug()
        ]

        summary_text = await self._generate_summary_text(resolved_issues)
        merged_pull_requests = await self._fetch_related_pull_requests(
            resolved_issues, pull_requests
        )

        if parent_issues_are_children:
            milestones: FrozenSet[Milestone] = frozenset()
        else:
            milestones = await self._build_milestones(
                project, parent_issues, child_issues, users
            )

        issues = frozenset(issue for issue in child_issues if issue.is_issue_or_bug())
        duration_issues = frozenset(
            issue for issue in issues if is_in_window(issue, self.window_start)
        )

        logger.info(
            {
                "message": "Project summary created",
                "project": project.title,
                "issues": len(issues),
                "duration_issues": len(duration_issues),
                "merged_pull_requests": len(merged_pull_requests),
                "milestones": len(milestones),
            }
        )

        return ProjectSummary(
            project=project,
            duration_progress_summary=summary_text,
            issues=issues,
            duration_issues=duration_issues,
            duration_merged_pull_requests=merged_pull_requests,
            milestones=milestones,
            is_tag_milestone_assignees=project.is_tag_milestone_owners,
        )

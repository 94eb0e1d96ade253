"""
Multi-Project Summary Module.

Coordinates a summary run across all configured projects:

- Concurrent project summaries
- Concurrent collection of miscellaneous (untracked) work per user
- Deduplication of miscellaneous work already attributed to a project
- Synthetic "Other (Misc)" project
- PagerDuty pages for the reporting window
"""

import asyncio
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Set

from config import logger
from sources.base import GitHubApi, PagerDutyApi, ProjectManagementApi
from sources.models import PagerDutyIncident, Project, ProjectIssue, PullRequest, User
from summaries.models import MultiProjectSummary, ProjectSummary
from summaries.plugins.text_summarizer import TextSummarizer
from summaries.project import ProjectSummarizer

MISC_PROJECT_ID = 123456789101112
MISC_PROJECT_TITLE = "📋 Other (Misc)"

_LEADING_SYMBOLS = re.compile(r"^[\W_]+")


def project_sort_key(project_summary: ProjectSummary) -> str:
    """Sort key ignoring leading emoji and punctuation in the project title."""
    return _LEADING_SYMBOLS.sub("", project_summary.project.title or "")


async def _collect_misc_issues(
    user: User,
    project_management_api: ProjectManagementApi,
    start: datetime,
    end: datetime,
) -> List[ProjectIssue]:
    logger.info({"message": "Pulling resolved issues for user", "user": user.id})
    return await project_management_api.get_issues_resolved(
        user.jira_id or user.id, start, end
    )


async def _collect_misc_pull_requests(
    user: User,
    github_api: GitHubApi,
    organization_ids: List[str],
    start: datetime,
    end: datetime,
    search_slots: asyncio.Semaphore,
) -> List[PullRequest]:
    if not user.git_hub_id:
        logger.warning(
            {
                "message": "Skipping pull requests for user without a GitHub id",
                "user": user.id,
            }
        )
        return []
    logger.info({"message": "Pulling merged pull requests for user", "user": user.id})
    async with search_slots:
        return await github_api.get_merged_pull_requests(
            user.git_hub_id, organization_ids, start, end
        )


async def _fetch_pagerduty_incidents(
    pagerduty_api: Optional[PagerDutyApi],
    service_ids: List[str],
    start: datetime,
    end: datetime,
) -> Optional[List[PagerDutyIncident]]:
    if pagerduty_api is None or not service_ids:
        return None
    incidents: List[PagerDutyIncident] = []
    for service_id in service_ids:
        incidents.extend(await pagerduty_api.get_service_pages(service_id, start, end))
    return incidents


def _remove_tracked_work(
    project_summaries: List[ProjectSummary],
    misc_issues: Set[ProjectIssue],
    misc_pull_requests: Set[PullRequest],
) -> None:
    for project_summary in project_summaries:
        misc_issues -= project_summary.issues
        for milestone in project_summary.milestones:
            misc_issues.discard(milestone.issue)
            misc_issues -= milestone.issues
        misc_pull_requests -= project_summary.duration_merged_pull_requests


async def create_summary(
    project_management_api: ProjectManagementApi,
    github_api: GitHubApi,
    organization_ids: List[str],
    pagerduty_api: Optional[PagerDutyApi],
    pagerduty_service_ids: List[str],
    text_summarizer: TextSummarizer,
    projects: List[Project],
    duration: timedelta,
    users: List[User],
    misc_users: List[User],
    summary_name: str,
    is_miscellaneous_project_included: bool,
    now: Optional[datetime] = None,
    max_concurrent_searches: int = 2,
) -> MultiProjectSummary:
    """
    Create a summary across multiple projects.

    Project summaries and the per-user miscellaneous work are collected
    concurrently. Deduplication and the Misc project only start once every task
    has finished; the first failing task fails the whole run.

    Args:
        project_management_api (ProjectManagementApi): Issue source
        github_api (GitHubApi): Pull request source
        organization_ids (List[str]): GitHub organizations searched for PRs
        pagerduty_api (Optional[PagerDutyApi]): Incident source, None to disable
        pagerduty_service_ids (List[str]): PagerDuty services to report on
        text_summarizer (TextSummarizer): Rollup generator
        projects (List[Project]): Configured projects
        duration (timedelta): Length of the reporting window
        users (List[User]): Users owning project milestones
        misc_users (List[User]): Users whose untracked work is reported
        summary_name (str): Display name of the summary
        is_miscellaneous_project_included (bool): Add the "Other (Misc)" project
        now (Optional[datetime]): End of the window, defaults to the current time
        max_concurrent_searches (int): GitHub searches allowed in flight at once,
            shared by project and miscellaneous work

    Returns:
        MultiProjectSummary: Sorted project summaries and PagerDuty pages
    """
    now = now or datetime.now(timezone.utc)
    window_start = now - duration
    summarizer = ProjectSummarizer(
        project_management_api,
        github_api,
        organization_ids,
        text_summarizer,
        duration,
        now=now,
        max_concurrent_searches=max_concurrent_searches,
    )

    logger.info(
        {
            "message": "Creating multi-project summary",
            "summary_name": summary_name,
            "projects": len(projects),
            "misc_users": len(misc_users) if is_miscellaneous_project_included else 0,
        }
    )

    project_tasks = [summarizer.summarize(project, users) for project in projects]
    issue_tasks = []
    pull_request_tasks = []
    if is_miscellaneous_project_included:
        issue_tasks = [
            _collect_misc_issues(user, project_management_api, window_start, now)
            for user in misc_users
        ]
        pull_request_tasks = [
            _collect_misc_pull_requests(
                user,
                github_api,
                organization_ids,
                window_start,
                now,
                summarizer.search_slots,
            )
            for user in misc_users
        ]

    results = await asyncio.gather(*project_tasks, *issue_tasks, *pull_request_tasks)

    project_summaries: List[ProjectSummary] = list(results[: len(project_tasks)])
    misc_results = results[len(project_tasks) :]
    misc_issues: Set[ProjectIssue] = set()
    for issues in misc_results[: len(issue_tasks)]:
        misc_issues.update(issues)
    misc_pull_requests: Set[PullRequest] = set()
    for pull_requests in misc_results[len(issue_tasks) :]:
        misc_pull_requests.update(pull_requests)

    _remove_tracked_work(project_summaries, misc_issues, misc_pull_requests)
    project_summaries.sort(key=project_sort_key)

    if is_miscellaneous_project_included:
        misc_project = Project(
            id=MISC_PROJECT_ID,
            title=MISC_PROJECT_TITLE,
            top_level_issue_keys=sorted({issue.key for issue in misc_issues}),
        )
        logger.info(
            {
                "message": "Creating misc project summary",
                "issues": len(misc_issues),
                "pull_requests": len(misc_pull_requests),
            }
        )
        project_summaries.append(
            await summarizer.summarize(
                misc_project,
                misc_users,
                pull_requests=misc_pull_requests,
                parent_issues_are_children=True,
            )
        )

    pager_duty_alerts = await _fetch_pagerduty_incidents(
        pagerduty_api, pagerduty_service_ids, window_start, now
    )

    return MultiProjectSummary(
        start_date=window_start.astimezone(timezone.utc).date(),
        end_date=now.astimezone(timezone.utc).date(),
        summary_name=summary_name,
        project_summaries=project_summaries,
        pager_duty_alerts=pager_duty_alerts,
    )

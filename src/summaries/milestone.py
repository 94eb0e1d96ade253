"""
Milestone Builder Module.

Builds a Milestone for one epic/milestone issue: its direct work items, its owner,
its most recent comments and the work items that changed within the reporting
window.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from config import logger
from sources.base import ProjectManagementApi
from sources.models import Project, ProjectComment, ProjectIssue, User
from summaries.models import Milestone

MAX_MILESTONE_COMMENTS = 5


def is_in_window(issue: ProjectIssue, window_start: datetime) -> bool:
    """Check whether an issue was completed or created since window_start."""
    if issue.completed_at is not None and issue.completed_at >= window_start:
        return True
    return issue.created_at is not None and issue.created_at >= window_start


def find_milestone_owner(
    milestone_issue: ProjectIssue, users: Iterable[User], project: Project
) -> Optional[User]:
    """
    Find the user owning a milestone.

    The milestone assignee is matched by display name. Unassigned milestones fall
    back to the project lead, matched by email.

    Args:
        milestone_issue (ProjectIssue): The milestone anchor issue
        users (Iterable[User]): Known users
        project (Project): Project the milestone belongs to

    Returns:
        Optional[User]: The owner, None when no user matches
    """
    if milestone_issue.assignee_name and milestone_issue.assignee_name.strip():
        return next(
            (user for user in users if user.name == milestone_issue.assignee_name),
            None,
        )
    if project.project_lead_user_id is not None:
        return next(
            (user for user in users if user.email == project.project_lead_user_id),
            None,
        )
    return None


class MilestoneBuilder:
    """
    Builds milestones for the projects of a summary run.

    Attributes:
        project_management_api (ProjectManagementApi): Issue and comment source
        duration (timedelta): Length of the reporting window
        window_start (datetime): Start of the reporting window
    """

    def __init__(
        self,
        project_management_api: ProjectManagementApi,
        duration: timedelta,
        now: Optional[datetime] = None,
    ):
        self.project_management_api = project_management_api
        self.duration = duration
        self.window_start = (now or datetime.now(timezone.utc)) - duration

    async def build(
        self, milestone_issue: ProjectIssue, users: Iterable[User], project: Project
    ) -> Milestone:
        """
        Build the milestone anchored on the given issue.

        Args:
            milestone_issue (ProjectIssue): Epic or milestone issue
            users (Iterable[User]): Users that may own the milestone
            project (Project): Project the milestone belongs to

        Returns:
            Milestone: The milestone with its children, owner and comments
        """
        logger.debug(
            {
                "message": "Building milestone",
                "project": project.title,
                "milestone": milestone_issue.key,
            }
        )
        direct_children = await self.project_management_api.get_direct_child_issues(
            milestone_issue.key
        )
        child_issues = frozenset(
            issue for issue in direct_children if issue.is_issue_or_bug()
        )

        owner = find_milestone_owner(milestone_issue, users, project)

        comments: List[ProjectComment] = []
        if milestone_issue.key.strip():
            comments = await self.project_management_api.get_recent_comments(
                milestone_issue.key, MAX_MILESTONE_COMMENTS
            )

        return Milestone(
            assignee=owner,
            issue=milestone_issue,
            issues=child_issues,
            milestone_comments=frozenset(comments),
            duration_issues=frozenset(
                issue for issue in child_issues if is_in_window(issue, self.window_start)
            ),
            duration_merged_pull_requests=frozenset(),
        )

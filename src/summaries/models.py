"""
Summary Data Models.

Defines the derived models produced by a summary run. They are rebuilt on every
run and discarded after rendering.
"""

from datetime import date
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from sources.models import (
    PagerDutyIncident,
    Project,
    ProjectComment,
    ProjectIssue,
    PullRequest,
    User,
)


class Milestone(BaseModel):
    """An epic or milestone together with its direct work items."""

    model_config = ConfigDict(frozen=True)

    assignee: Optional[User] = None
    issue: ProjectIssue
    issues: FrozenSet[ProjectIssue] = Field(default_factory=frozenset)
    milestone_comments: FrozenSet[ProjectComment] = Field(default_factory=frozenset)
    duration_issues: FrozenSet[ProjectIssue] = Field(default_factory=frozenset)
    # Milestone scoped pull request attribution is not computed yet.
    duration_merged_pull_requests: FrozenSet[PullRequest] = Field(
        default_factory=frozenset
    )


class ProjectSummary(BaseModel):
    """
    Summarized view of a single project.

    Attributes:
        project (Project): The summarized project
        duration_progress_summary (str): Rollup text for the reporting window
        issues (FrozenSet[ProjectIssue]): Work items of the project
        duration_issues (FrozenSet[ProjectIssue]): Work items resolved or created
            within the reporting window
        duration_merged_pull_requests (FrozenSet[PullRequest]): Related merged PRs
        milestones (FrozenSet[Milestone]): Milestones found under the project
        is_tag_milestone_assignees (bool): Mention milestone owners in Slack output
    """

    project: Project
    duration_progress_summary: str
    issues: FrozenSet[ProjectIssue] = Field(default_factory=frozenset)
    duration_issues: FrozenSet[ProjectIssue] = Field(default_factory=frozenset)
    duration_merged_pull_requests: FrozenSet[PullRequest] = Field(
        default_factory=frozenset
    )
    milestones: FrozenSet[Milestone] = Field(default_factory=frozenset)
    is_tag_milestone_assignees: bool = False


class MultiProjectSummary(BaseModel):
    """Top-level result of a summary run."""

    start_date: date
    end_date: date
    summary_name: str
    project_summaries: List[ProjectSummary] = Field(default_factory=list)
    # None when PagerDuty is not configured, empty when there were no pages.
    pager_duty_alerts: Optional[List[PagerDutyIncident]] = None

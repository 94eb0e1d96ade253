"""
Source Data Models.

Defines the common data models shared by the project-management, GitHub and
PagerDuty sources. Uses Pydantic for validation and serialization; value types
that take part in set operations are frozen so equality and hashing are by value.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


MILESTONE_TYPES = frozenset({"epic", "milestone"})

WORK_ITEM_TYPES = frozenset(
    {
        "bug",
        "issue",
        "story",
        "subtask",
        "artifact",
        "task",
        "vulnerability",
        "request",
        "design story",
        "ds story",
        "change request",
    }
)

CONTAINER_TYPES = frozenset(
    {
        "epic",
        "theme",
        "parent artifact",
        "r&d initiative",
        "sub-task",
        "company initiative",
        "milestone",
    }
)


class StatusCategory(Enum):
    """High-level category of an issue's status."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class ProjectIssue(BaseModel):
    """Unified issue representation across project management systems."""

    model_config = ConfigDict(frozen=True)

    id: str
    key: str
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    status_category: Optional[StatusCategory] = None
    issue_type: Optional[str] = None
    priority: Optional[str] = None
    estimate: Optional[float] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    creator_id: Optional[str] = None
    creator_name: Optional[str] = None
    parent_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None

    def is_completed(self) -> bool:
        return self.completed_at is not None

    def is_milestone(self) -> bool:
        """Epics and milestones anchor a set of child work items."""
        if not self.issue_type:
            return False
        return self.issue_type.lower() in MILESTONE_TYPES

    def is_issue_or_bug(self) -> bool:
        """
        Check whether the issue counts as a regular work item.

        Unknown issue types are counted as work; container types are not.

        Returns:
            bool: True for work items, False for containers or a missing type
        """
        if not self.issue_type:
            return False
        issue_type = self.issue_type.lower()
        if issue_type in WORK_ITEM_TYPES:
            return True
        if issue_type in CONTAINER_TYPES:
            return False
        return True


class ProjectComment(BaseModel):
    """Unified comment representation across project management systems."""

    model_config = ConfigDict(frozen=True)

    id: str
    body: Optional[str] = None
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PullRequest(BaseModel):
    """Merged pull request as returned by the GitHub issue search."""

    model_config = ConfigDict(frozen=True)

    id: int
    number: int
    state: str
    title: str
    html_url: str
    url: Optional[str] = None
    repository_url: Optional[str] = None
    author: Optional[str] = None
    body: Optional[str] = None
    labels: Tuple[str, ...] = ()
    draft: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None


class PagerDutyService(BaseModel):
    """Service reference attached to a PagerDuty incident."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    summary: str
    self_url: str = Field(alias="self")
    html_url: str


class PagerDutyIncident(BaseModel):
    """PagerDuty incident (page)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    incident_number: int
    incident_key: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: str
    urgency: str
    created_at: datetime
    updated_at: datetime
    last_status_change_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    html_url: str
    service: Optional[PagerDutyService] = None
    summary: Optional[str] = None


class User(BaseModel):
    """Tracked person and their identities in each system."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: Optional[str] = None
    slack_id: Optional[str] = None
    git_hub_id: Optional[str] = None
    jira_id: Optional[str] = None


class Project(BaseModel):
    """Logical grouping of work anchored to top-level issue keys."""

    model_config = ConfigDict(frozen=True)

    id: int
    parent_id: Optional[int] = None
    title: Optional[str] = None
    links: List[str] = Field(default_factory=list)
    slack_project_channel: Optional[str] = None
    project_lead_user_id: Optional[str] = None
    project_contributors: List[str] = Field(default_factory=list)
    product_manager: Optional[str] = None
    top_level_issue_keys: List[str] = Field(default_factory=list)
    is_verbose_milestones: bool = False
    is_tag_milestone_owners: bool = False

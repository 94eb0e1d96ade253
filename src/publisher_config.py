"""
Summary Publisher Configuration Module.

Loads the JSON file describing what to summarize: the projects, the tracked users,
the GitHub organizations, the PagerDuty services and how the summary is rendered.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from config import logger
from sources.models import Project, User


class SummaryPublisherConfig(BaseModel):
    """
    Publisher configuration.

    Attributes:
        zapier_summary_url (Optional[str]): Zapier hook, overrides the environment
        summary_name (str): Display name used in the summary header
        is_terse_summary_used (bool): Render the top-level message in terse form
        projects (List[Project]): Projects to summarize
        is_miscellaneous_project_included (bool): Add the "Other (Misc)" project
        git_hub_organization_ids (List[str]): Organizations searched for PRs
        pager_duty_service_ids (List[str]): Services reported in the alerts section
        misc_user_ids (List[str]): Ids of the users whose untracked work is reported
        users (List[User]): Every known user
    """

    zapier_summary_url: Optional[str] = None
    summary_name: str = "Project"
    is_terse_summary_used: bool = True
    projects: List[Project] = Field(default_factory=list)
    is_miscellaneous_project_included: bool = True
    git_hub_organization_ids: List[str] = Field(default_factory=list)
    pager_duty_service_ids: List[str] = Field(default_factory=list)
    misc_user_ids: List[str] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)

    def misc_users(self) -> List[User]:
        """
        Resolve misc_user_ids against the configured users.

        Returns:
            List[User]: Users in misc_user_ids order

        Raises:
            ValueError: If an id does not belong to a configured user
        """
        users_by_id = {user.id: user for user in self.users}
        missing = [user_id for user_id in self.misc_user_ids if user_id not in users_by_id]
        if missing:
            raise ValueError(f"Unknown misc user ids: {', '.join(missing)}")
        return [users_by_id[user_id] for user_id in self.misc_user_ids]


def load_summary_publisher_config(path: Union[str, Path]) -> SummaryPublisherConfig:
    """
    Load and validate the publisher configuration.

    Args:
        path (Union[str, Path]): Path to the JSON configuration

    Returns:
        SummaryPublisherConfig: Validated configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the content does not match the schema
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = SummaryPublisherConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(
            {
                "message": "Failed to load summary publisher config",
                "path": str(path),
                "error": str(e),
            }
        )
        raise

    logger.info(
        {
            "message": "Loaded summary publisher config",
            "path": str(path),
            "projects": len(config.projects),
            "users": len(config.users),
        }
    )
    return config

"""
Application Configuration Module.

Manages application settings and environment variables using Pydantic for validation.
Provides centralized configuration management with type safety and validation.

Features:
- Environment variable loading and validation
- Secure credential management for Jira, GitHub, PagerDuty and OpenAI
- Reporting window and publishing configuration
- Path normalization for output directories
"""

from datetime import timedelta
from typing import Optional
import os

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logger import LogManager


class Settings(BaseSettings):
    """
    Application configuration settings with validation.

    Manages and validates all application settings including:
    - Application identification
    - Jira, GitHub and PagerDuty authentication
    - Text summarization settings
    - Logging settings
    - Output and publishing configuration

    Attributes:
        app_name (str): Name of the application
        dev (bool): Debug mode flag
        log_dir (str): Directory for log files
        github_token (SecretStr): GitHub API authentication token
        github_max_concurrent_searches (int): Concurrent pull request searches
        jira_server (str): Jira base URL
        jira_email (str): Jira account email
        jira_token (SecretStr): Jira API token
        pagerduty_api_key (Optional[SecretStr]): PagerDuty API key
        openai_api_key (Optional[SecretStr]): OpenAI API key
        openai_llm_model (str): OpenAI LLM model to use
        ai_based (bool): Whether to summarize with the LLM
        summary_config_path (str): Path to the publisher JSON configuration
        window_days (int): Reporting window in days
        report_output_dir (str): Directory for generated reports
        zapier_summary_url (Optional[str]): Zapier webhook receiving the summary
        publish (bool): Whether to publish the summary to Zapier
    """

    # Application settings
    app_name: str = Field(default="summary-publisher", description="Application name")
    dev: bool = Field(default=False, description="Debug mode")
    log_dir: str = Field(default="logs", description="Logging directory")
    log_level: int = Field(default=20, description="Logging level, default info")

    # GitHub configuration
    github_token: SecretStr = Field(..., description="GitHub token")
    github_max_concurrent_searches: int = Field(
        default=2, description="Pull request searches allowed in flight at once"
    )

    # Jira configuration
    jira_server: str = Field(..., description="Jira base URL")
    jira_email: str = Field(..., description="Jira account email")
    jira_token: SecretStr = Field(..., description="Jira API token")

    # PagerDuty configuration
    pagerduty_api_key: Optional[SecretStr] = Field(
        default=None, description="PagerDuty API key, integration disabled when unset"
    )

    # OpenAI configuration
    openai_api_key: Optional[SecretStr] = Field(default=None, description="OpenAI API key")
    openai_llm_model: str = Field(default="gpt-5-mini", description="OpenAI LLM model")
    openai_encoding_name: str = Field(default="o200k_base", description="Encoding name")
    openai_max_completion_tokens: int = Field(
        default=2048, description="Maximum tokens in a summary completion"
    )

    # Summary configuration
    ai_based: bool = Field(default=False, description="Use AI-based summaries")
    summary_config_path: str = Field(
        default="summary-publisher-config.json",
        description="Publisher configuration with projects and users",
    )
    window_days: int = Field(default=7, description="Reporting window in days")

    report_output_dir: str = Field(
        default="reports", description="Report output directory"
    )

    # Publishing
    zapier_summary_url: Optional[str] = Field(
        default=None, description="Zapier webhook URL"
    )
    publish: bool = Field(default=False, description="Publish the summary to Zapier")

    @property
    def window(self) -> timedelta:
        """
        Get the reporting window.

        Returns:
            timedelta: Trailing duration used to filter recent activity
        """
        return timedelta(days=self.window_days)

    @field_validator("report_output_dir")
    def ensure_absolute_path(cls, v: str) -> str:
        """
        Ensure report directory path is absolute.

        Converts relative paths to absolute paths based on current working directory.

        Args:
            v (str): Directory path to validate

        Returns:
            str: Absolute path to report directory
        """
        if not os.path.isabs(v):
            return os.path.abspath(v)
        return v

    @field_validator("window_days", "github_max_concurrent_searches")
    def ensure_positive(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    # Configure env file loading
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )


# Create global settings instance
settings = Settings()

# Initialize logging configuration
logger = LogManager(
    app_name=settings.app_name.lower(),
    log_dir=settings.log_dir,
    development=settings.dev,
    level=settings.log_level,
).logger

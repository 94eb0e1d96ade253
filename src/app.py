"""
Main Application Entry Point.

This module serves as the primary entry point for the summary publisher.
It orchestrates the summary workflow, including:
- Publisher configuration loading
- Source and summarizer initialization
- Multi-project summary creation
- Slack markdown rendering and report writing
- Optional publishing to Zapier
"""

import asyncio
import os
import sys
from typing import List, Optional

from openai import AsyncOpenAI
import tiktoken

from config import settings, logger
from publisher_config import SummaryPublisherConfig, load_summary_publisher_config
from report.slack_formatter import (
    multi_project_to_slack_markup,
    multi_project_to_terse_slack_markup,
    render_project_message,
)
from report.zapier_publisher import ZapierProjectSummary, ZapierPublisher
from sources.base import PagerDutyApi
from sources.github_source import GitHubSource
from sources.jira_source import JiraSource
from sources.pagerduty_source import PagerDutySource
from summaries.models import MultiProjectSummary
from summaries.multi_project import create_summary
from summaries.plugins.text_summarizer import (
    FakeTextSummarizer,
    OpenAITextSummarizer,
    TextSummarizer,
)


def build_text_summarizer() -> TextSummarizer:
    """Use the LLM summarizer when AI summaries are enabled and a key is set."""
    if settings.ai_based and settings.openai_api_key is not None:
        logger.debug("initializing openai client...")
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key.get_secret_value())
        encoding = tiktoken.get_encoding(settings.openai_encoding_name)
        return OpenAITextSummarizer(openai_client, encoding)
    if settings.ai_based:
        logger.warning("AI_BASED is set without OPENAI_API_KEY, using fake summaries")
    return FakeTextSummarizer()


def build_pagerduty_api(config: SummaryPublisherConfig) -> Optional[PagerDutyApi]:
    if not config.pager_duty_service_ids or settings.pagerduty_api_key is None:
        return None
    return PagerDutySource(settings.pagerduty_api_key.get_secret_value())


def render_messages(
    summary: MultiProjectSummary, config: SummaryPublisherConfig
) -> ZapierProjectSummary:
    """
    Render the top-level message and one message per project.

    Args:
        summary (MultiProjectSummary): Summary to render
        config (SummaryPublisherConfig): Publisher configuration

    Returns:
        ZapierProjectSummary: Rendered messages
    """
    if config.is_terse_summary_used:
        message = multi_project_to_terse_slack_markup(summary)
    else:
        message = multi_project_to_slack_markup(summary)
    project_messages: List[str] = [
        render_project_message(project_summary)
        for project_summary in summary.project_summaries
    ]
    return ZapierProjectSummary(message=message, project_messages=project_messages)


def write_report(messages: ZapierProjectSummary, summary: MultiProjectSummary) -> str:
    """
    Write the rendered messages to the report directory.

    Returns:
        str: Path of the written report
    """
    os.makedirs(settings.report_output_dir, exist_ok=True)
    report_path = os.path.join(
        settings.report_output_dir, f"summary_{summary.end_date.isoformat()}.md"
    )
    with open(report_path, "w", encoding="utf-8") as f:
        f.write(messages.message)
        for project_message in messages.project_messages:
            f.write("\n")
            f.write(project_message)
    return report_path


async def main() -> int:
    """
    Execute the main application workflow.

    Performs the following steps:
    1. Loads the publisher configuration
    2. Initializes the Jira, GitHub and PagerDuty sources and the summarizer
    3. Creates the multi-project summary
    4. Renders and writes the Slack markdown report
    5. Publishes the report to Zapier when enabled

    Returns:
        int: Process exit code

    Note:
        - A failure in any source aborts the run before anything is published
    """
    logger.info("Starting summary publisher...")
    logger.info(f"AI_BASED: {settings.ai_based}")

    try:
        config = load_summary_publisher_config(settings.summary_config_path)
        misc_users = config.misc_users()

        logger.debug("initializing sources...")
        jira_source = JiraSource(
            settings.jira_server,
            settings.jira_email,
            settings.jira_token.get_secret_value(),
        )
        github_source = GitHubSource(settings.github_token.get_secret_value())

        logger.info("creating summary...")
        summary = await create_summary(
            jira_source,
            github_source,
            config.git_hub_organization_ids,
            build_pagerduty_api(config),
            config.pager_duty_service_ids,
            build_text_summarizer(),
            config.projects,
            settings.window,
            config.users,
            misc_users,
            config.summary_name,
            config.is_miscellaneous_project_included,
            max_concurrent_searches=settings.github_max_concurrent_searches,
        )
    except Exception as e:
        logger.error({"message": "Failed to create summary", "error": str(e)})
        return 1

    messages = render_messages(summary, config)
    report_path = write_report(messages, summary)
    logger.info({"message": "Report written", "path": report_path})

    if settings.publish:
        zapier_url = config.zapier_summary_url or settings.zapier_summary_url
        if not zapier_url:
            logger.error("PUBLISH is set but no Zapier URL is configured")
            return 1
        if not await ZapierPublisher(zapier_url).send_summary(messages):
            return 1

    logger.info("application finished")
    return 0


if __name__ == "__main__":
    logger.info("Starting application ...")
    sys.exit(asyncio.run(main()))

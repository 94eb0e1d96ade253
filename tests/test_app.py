"""
Tests for the application workflow.
"""

from datetime import date
from unittest.mock import AsyncMock, Mock, patch

import pytest

import app
from config import settings
from publisher_config import SummaryPublisherConfig
from sources.models import Project
from summaries.models import MultiProjectSummary, ProjectSummary


@pytest.fixture
def summary():
    return MultiProjectSummary(
        start_date=date(2025, 3, 7),
        end_date=date(2025, 3, 14),
        summary_name="Team",
        project_summaries=[
            ProjectSummary(
                project=Project(id=1, title="Rocket", is_verbose_milestones=True),
                duration_progress_summary="* Shipped",
            ),
            ProjectSummary(
                project=Project(id=2, title="Satellite"),
                duration_progress_summary="* Orbiting",
            ),
        ],
        pager_duty_alerts=None,
    )


@pytest.fixture
def publisher_config():
    return SummaryPublisherConfig(
        summary_name="Team",
        zapier_summary_url="https://hooks.zapier.com/hooks/catch/1/abc",
    )


@pytest.fixture
def patched_app(monkeypatch, tmp_path, summary, publisher_config):
    monkeypatch.setattr(settings, "report_output_dir", str(tmp_path))
    monkeypatch.setattr(settings, "publish", False)
    create_summary = AsyncMock(return_value=summary)
    with patch.object(
        app, "load_summary_publisher_config", return_value=publisher_config
    ), patch.object(app, "JiraSource"), patch.object(app, "GitHubSource"), patch.object(
        app, "create_summary", create_summary
    ):
        yield create_summary


def test_render_messages_terse(summary, publisher_config):
    messages = app.render_messages(summary, publisher_config)

    assert messages.message.startswith("*Team update 2025-03-07 - 2025-03-14*")
    assert len(messages.project_messages) == 2
    assert messages.project_messages[1].startswith("*Satellite*\n")


def test_fake_summarizer_without_ai(monkeypatch):
    monkeypatch.setattr(settings, "ai_based", False)
    assert isinstance(app.build_text_summarizer(), app.FakeTextSummarizer)


def test_pagerduty_disabled_without_services(publisher_config):
    assert app.build_pagerduty_api(publisher_config) is None


@pytest.mark.asyncio
async def test_main_writes_report(patched_app, tmp_path):
    assert await app.main() == 0

    patched_app.assert_awaited_once()
    report = (tmp_path / "summary_2025-03-14.md").read_text(encoding="utf-8")
    assert "*Team update 2025-03-07 - 2025-03-14*" in report
    assert "* Orbiting" in report


@pytest.mark.asyncio
async def test_main_publishes(patched_app, monkeypatch):
    monkeypatch.setattr(settings, "publish", True)
    publisher = Mock()
    publisher.send_summary = AsyncMock(return_value=True)

    with patch.object(app, "ZapierPublisher", return_value=publisher) as publisher_cls:
        assert await app.main() == 0

    publisher_cls.assert_called_once_with("https://hooks.zapier.com/hooks/catch/1/abc")
    sent = publisher.send_summary.await_args.args[0]
    assert len(sent.project_messages) == 2


@pytest.mark.asyncio
async def test_main_fails_when_summary_fails(patched_app):
    patched_app.side_effect = RuntimeError("Jira down")

    assert await app.main() == 1

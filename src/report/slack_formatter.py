"""
Slack Markdown Formatter Module.

Renders project and multi-project summaries as Slack flavoured markdown:

- Progress bars with the work closed in the reporting window highlighted
- Terse, full and verbose project sections
- Milestone status with staleness warnings and owner nagging
- PagerDuty alert section
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sources.models import PagerDutyIncident, ProjectComment, ProjectIssue, PullRequest
from summaries.models import Milestone, MultiProjectSummary, ProjectSummary

TOTAL_BAR_COUNT = 10
CHANGE_CHARACTER_LIMIT = 200
RECENT_MILESTONE_WINDOW = timedelta(days=14)
STALE_STATUS_WINDOW = timedelta(days=14)
DUE_DATE_LOOKAHEAD = timedelta(days=90)
DIVIDER = "━━━━━━━━━━━━━━━━━━"
REPORT_TIMEZONE = ZoneInfo("America/New_York")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _issue_links(issues: Iterable[ProjectIssue]) -> str:
    return ", ".join(f"<{issue.url}|{issue.key}>" for issue in issues)


def _pull_request_links(pull_requests: Iterable[PullRequest]) -> str:
    return ", ".join(f"<{pr.html_url}|{pr.number}>" for pr in pull_requests)


def _sorted_issues(issues: Iterable[ProjectIssue]) -> List[ProjectIssue]:
    return sorted(issues, key=lambda issue: issue.key)


def _sorted_pull_requests(pull_requests: Iterable[PullRequest]) -> List[PullRequest]:
    return sorted(pull_requests, key=lambda pr: (pr.html_url, pr.number))


def _sorted_milestones(milestones: Iterable[Milestone]) -> List[Milestone]:
    return sorted(milestones, key=lambda milestone: milestone.issue.title or "")


def _truncate(text: str) -> str:
    suffix = "..." if len(text) > CHANGE_CHARACTER_LIMIT else ""
    return text[:CHANGE_CHARACTER_LIMIT] + suffix


def create_slack_markdown_progress_bar(
    issues: Iterable[ProjectIssue], duration_issues: Iterable[ProjectIssue]
) -> str:
    """
    Render a ten cell progress bar for a set of issues.

    Blue cells are work closed before the window, yellow cells work closed within
    the window and white cells open work. The bar is followed by the percentage
    closed and the net number of issues for the window.

    Args:
        issues (Iterable[ProjectIssue]): All issues
        duration_issues (Iterable[ProjectIssue]): Issues changed within the window

    Returns:
        str: Progress bar line terminated by a newline
    """
    issues = list(issues)
    duration_issues = list(duration_issues)

    issue_count = sum(1 for issue in issues if issue.is_issue_or_bug())
    closed_count = sum(
        1 for issue in issues if issue.is_issue_or_bug() and issue.is_completed()
    )
    closed_percentage = (
        0 if issue_count == 0 else _round_half_up(closed_count / issue_count * 100)
    )

    closed_this_week = sum(
        1 for issue in duration_issues if issue.is_issue_or_bug() and issue.is_completed()
    )
    if not duration_issues or issue_count == 0:
        closed_percentage_this_week = 0
    else:
        closed_percentage_this_week = _round_half_up(
            closed_this_week / issue_count * 100
        )
    bar_count_this_week = math.ceil(closed_percentage_this_week / 10)

    closed_bar_count = closed_percentage // TOTAL_BAR_COUNT
    progress_bar = (
        "🟦" * (closed_bar_count - bar_count_this_week)
        + "🟨" * bar_count_this_week
        + "⬜" * (TOTAL_BAR_COUNT - closed_bar_count)
        + f" {closed_percentage}%"
    )

    completed = sum(1 for issue in duration_issues if issue.is_completed())
    net_issues_resolved = completed - (len(duration_issues) - completed)
    if net_issues_resolved == 0:
        progress_bar += " ⚖️ 0"
    elif net_issues_resolved > 0:
        progress_bar += f" 📉 -{abs(net_issues_resolved)}"
    else:
        progress_bar += f" 📈 +{abs(net_issues_resolved)}"
    return progress_bar + " net issues this week\n"


def _create_title(project_summary: ProjectSummary) -> str:
    project = project_summary.project
    if project.links:
        return f"*<{project.links[0]}|{project.title}>*\n"
    return f"*{project.title}*\n"


def to_terse_slack_markdown(project_summary: ProjectSummary) -> str:
    """Project title followed by its progress bar."""
    progress_bar = create_slack_markdown_progress_bar(
        project_summary.issues, project_summary.duration_issues
    )
    return f"{project_summary.project.title}\n{progress_bar}\n"


def to_slack_markup(
    project_summary: ProjectSummary, now: Optional[datetime] = None
) -> str:
    """
    Render a project with its rollup, issue and pull request links.

    Milestones completed within the last 14 days are listed at the end.

    Args:
        project_summary (ProjectSummary): Project to render
        now (Optional[datetime]): Reference time, defaults to the current time

    Returns:
        str: Slack markdown
    """
    now = now or datetime.now(timezone.utc)
    summary = _create_title(project_summary)
    summary += create_slack_markdown_progress_bar(
        project_summary.issues, project_summary.duration_issues
    )
    summary += "\n" + project_summary.duration_progress_summary + "\n\n"

    duration_issues = _sorted_issues(project_summary.duration_issues)
    issues_resolved = [issue for issue in duration_issues if issue.is_completed()]
    if issues_resolved:
        summary += f"📍 Issues resolved: {_issue_links(issues_resolved)}\n"
    issues_opened = [issue for issue in duration_issues if not issue.is_completed()]
    if issues_opened:
        summary += f"📩 Issues opened: {_issue_links(issues_opened)}\n"
    if project_summary.duration_merged_pull_requests:
        pull_requests = _sorted_pull_requests(
            project_summary.duration_merged_pull_requests
        )
        summary += f"🔹 PRs merged: {_pull_request_links(pull_requests)}\n"

    recently_completed = [
        milestone
        for milestone in _sorted_milestones(project_summary.milestones)
        if milestone.issue.completed_at is not None
        and milestone.issue.completed_at >= now - RECENT_MILESTONE_WINDOW
    ]
    if recently_completed:
        summary += "\n🛣️ *Milestones completed in the last 14 days*\n\n"
        for milestone in recently_completed:
            summary += f"*✅ <{milestone.issue.url}|{milestone.issue.title}>*\n"
    return summary


def _last_comment(
    comments: Iterable[ProjectComment], now: datetime
) -> Optional[ProjectComment]:
    return max(comments, key=lambda comment: comment.created_at or now, default=None)


def _last_resolved_issue(issues: Iterable[ProjectIssue]) -> Optional[ProjectIssue]:
    completed = [issue for issue in issues if issue.completed_at is not None]
    return max(completed, key=lambda issue: issue.completed_at, default=None)


def _last_update(milestone: Milestone, now: datetime) -> Tuple[Optional[str], bool]:
    """
    Describe the most recent activity on a milestone.

    The latest comment wins over the latest resolved child issue when it is at
    least as recent.

    Returns:
        Tuple[Optional[str], bool]: Status line, and whether the activity is
            within the last 14 days
    """
    last_issue = _last_resolved_issue(milestone.issues)
    last_issue_date = last_issue.completed_at if last_issue else None
    last_comment = _last_comment(milestone.milestone_comments, now)
    last_comment_date = last_comment.created_at if last_comment else None

    if last_comment_date is not None and (
        last_issue_date is None or last_comment_date >= last_issue_date
    ):
        is_status_recent = last_comment_date >= now - STALE_STATUS_WINDOW
        warning = "" if is_status_recent else "⚠️ "
        date_str = last_comment_date.astimezone(REPORT_TIMEZONE).date().isoformat()
        body = _truncate(last_comment.body or "")
        return f'{warning}🗓️ Last update {date_str}: "{body}"\n', is_status_recent

    if last_issue_date is not None:
        is_status_recent = last_issue_date >= now - STALE_STATUS_WINDOW
        warning = "" if is_status_recent else "⚠️ "
        date_str = last_issue_date.astimezone(REPORT_TIMEZONE).date().isoformat()
        title = _truncate(last_issue.title or "")
        return (
            f"{warning}🗓️ Last update {date_str}: "
            f'<{last_issue.url}|{last_issue.key}> "{title}"\n',
            is_status_recent,
        )

    return None, False


def _owner_mention(milestone: Milestone, is_tag_milestone_assignees: bool) -> str:
    mention = milestone.assignee.name
    if is_tag_milestone_assignees:
        mention += f" <@{milestone.assignee.slack_id}>"
    return mention


def _nagging_line(
    milestone: Milestone,
    is_status_recent: bool,
    is_tag_milestone_assignees: bool,
    now: datetime,
) -> str:
    due_date = milestone.issue.due_date
    if due_date is None:
        if milestone.assignee is None:
            return "‼️⚠️ This milestone doesn't have a due date or an assignee.\n"
        return (
            f"{_owner_mention(milestone, is_tag_milestone_assignees)}"
            ", please add a due date on the Epic\n"
        )
    if not is_status_recent and due_date - DUE_DATE_LOOKAHEAD < now:
        if milestone.assignee is None:
            return (
                "‼️⚠️ There hasn't been any activity for two weeks, "
                "and this Epic doesn't have an assignee\n"
            )
        return (
            f"{_owner_mention(milestone, is_tag_milestone_assignees)}"
            ", there hasn't been any activity for two weeks, "
            "please add a status update comment on the Epic.\n"
        )
    return ""


def _milestone_section(
    milestone: Milestone, is_tag_milestone_assignees: bool, now: datetime
) -> str:
    issue = milestone.issue
    complete = "" if issue.completed_at is None else "✅ "
    section = (
        f"\n*{complete}<{issue.url}|{issue.title}>: "
        f"{issue.assignee_name or 'No assignee'}*\n"
    )
    section += create_slack_markdown_progress_bar(
        milestone.issues, milestone.duration_issues
    )
    if issue.completed_at is not None:
        return section

    duration_issues = _sorted_issues(milestone.duration_issues)
    issues_resolved = [child for child in duration_issues if child.is_completed()]
    if issues_resolved:
        section += f"📍 Issues resolved: {_issue_links(issues_resolved)}\n"
    else:
        status_line, is_status_recent = _last_update(milestone, now)
        if status_line:
            section += status_line
        section += _nagging_line(
            milestone, is_status_recent, is_tag_milestone_assignees, now
        )

    issues_opened = [child for child in duration_issues if not child.is_completed()]
    if issues_opened:
        section += f"📩 Issues opened: {_issue_links(issues_opened)}\n"
    if milestone.duration_merged_pull_requests:
        pull_requests = _sorted_pull_requests(milestone.duration_merged_pull_requests)
        section += f"🔹 PRs merged: {_pull_request_links(pull_requests)}\n"
    return section


def to_verbose_slack_markdown(
    project_summary: ProjectSummary, now: Optional[datetime] = None
) -> str:
    """
    Render a project with a detailed status block per milestone.

    Milestones completed more than 14 days ago are left out. Open milestones
    without resolved issues in the window show their most recent activity and,
    when needed, ask the owner for a due date or a status update.

    Args:
        project_summary (ProjectSummary): Project to render
        now (Optional[datetime]): Reference time, defaults to the current time

    Returns:
        str: Slack markdown
    """
    now = now or datetime.now(timezone.utc)
    summary = _create_title(project_summary)
    summary += create_slack_markdown_progress_bar(
        project_summary.issues, project_summary.duration_issues
    )
    summary += project_summary.duration_progress_summary + "\n"

    if project_summary.milestones:
        summary += "🛣️ *Milestones*\n\n"
        for milestone in _sorted_milestones(project_summary.milestones):
            completed_at = milestone.issue.completed_at
            if completed_at is not None and completed_at < now - RECENT_MILESTONE_WINDOW:
                continue
            summary += _milestone_section(
                milestone, project_summary.is_tag_milestone_assignees, now
            )
    return summary


def _pager_duty_lines(alerts: List[PagerDutyIncident]) -> str:
    lines = [
        f"- <{alert.html_url}|{alert.incident_number}>: {alert.description}"
        for alert in alerts
    ]
    if not lines:
        lines.append("- No pages! 🎉")
    return "".join(f"{line}\n" for line in lines)


def multi_project_to_terse_slack_markup(summary: MultiProjectSummary) -> str:
    """Summary header, one terse block per project and the PagerDuty alerts."""
    slack_summary = (
        f"*{summary.summary_name} update {summary.start_date} - {summary.end_date}*\n\n"
    )
    slack_summary += "".join(
        to_terse_slack_markdown(project_summary)
        for project_summary in summary.project_summaries
    )
    if summary.pager_duty_alerts is not None:
        slack_summary += "📟 *Pager Duty Alerts*\n"
        slack_summary += _pager_duty_lines(summary.pager_duty_alerts)
    return slack_summary


def multi_project_to_slack_markup(
    summary: MultiProjectSummary, now: Optional[datetime] = None
) -> str:
    """Summary header, every project section and the PagerDuty alerts."""
    slack_summary = (
        f"\n*{summary.summary_name} update {summary.start_date} - {summary.end_date}*"
        f"\n\n{DIVIDER}\n"
    )
    for project_summary in summary.project_summaries:
        slack_summary += to_slack_markup(project_summary, now=now)
        slack_summary += f"{DIVIDER}\n"
    if summary.pager_duty_alerts is not None:
        slack_summary += "\n📟 *Pager Duty Alerts*\n\n"
        slack_summary += _pager_duty_lines(summary.pager_duty_alerts)
    return slack_summary


def render_project_message(
    project_summary: ProjectSummary, now: Optional[datetime] = None
) -> str:
    """Render a project with the verbose layout when the project asks for it."""
    if project_summary.project.is_verbose_milestones:
        return to_verbose_slack_markdown(project_summary, now=now)
    return to_slack_markup(project_summary, now=now)

"""
Jira Project Management Source Module.

Implements the ProjectManagementApi on top of Jira Cloud (REST v3). Searches use
the enhanced JQL search endpoint with token pagination through the authenticated
session of the jira client. Issues and comments are flattened from Atlassian
Document Format into the common ProjectIssue / ProjectComment models.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from jira import JIRA
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config import logger
from sources.base import ProjectManagementApi
from sources.models import ProjectComment, ProjectIssue, StatusCategory

STORY_POINTS_FIELD = "customfield_10100"

_STATUS_CATEGORIES = {
    "new": StatusCategory.TODO,
    "undefined": StatusCategory.TODO,
    "indeterminate": StatusCategory.IN_PROGRESS,
    "done": StatusCategory.DONE,
}


def parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Jira timestamp or date.

    Jira renders offsets without a colon ("+0000") and due dates as bare dates.

    Args:
        value (Optional[str]): Raw value from the REST payload

    Returns:
        Optional[datetime]: Timezone aware datetime, None when unset
    """
    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def adf_to_plain_text(node: Any) -> Optional[str]:
    """
    Flatten an Atlassian Document Format node into plain text.

    Block nodes are separated by newlines; plain strings pass through unchanged.

    Args:
        node (Any): ADF document, node, or plain string

    Returns:
        Optional[str]: Extracted text, None for an empty document
    """
    if node is None:
        return None
    if isinstance(node, str):
        return node

    blocks: List[str] = []

    def walk(current: Dict[str, Any], buffer: List[str]) -> None:
        node_type = current.get("type")
        if node_type == "text":
            buffer.append(current.get("text", ""))
        elif node_type == "hardBreak":
            buffer.append("\n")
        elif node_type == "mention":
            buffer.append(current.get("attrs", {}).get("text", ""))
        for child in current.get("content", []) or []:
            walk(child, buffer)

    for block in node.get("content", []) or []:
        buffer: List[str] = []
        walk(block, buffer)
        text = "".join(buffer).strip()
        if text:
            blocks.append(text)

    return "\n".join(blocks) if blocks else None


def _format_jql_date(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M")


class JiraRequestError(RuntimeError):
    """Jira answered with an error status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, JiraRequestError):
        return error.status in (403, 429) or error.status >= 500
    return False


class JiraSource(ProjectManagementApi):
    """
    Jira backend for the project management interface.

    Attributes:
        server (str): Jira base URL
        client (JIRA): Authenticated jira client
        page_size (int): Issues requested per search page
        portfolio_child_search (bool): Use portfolioChildIssuesOf for descendant
            lookups; when False, or once Jira rejects the function, the hierarchy
            is walked level by level
    """

    def __init__(
        self,
        server: str,
        email: str,
        token: str,
        page_size: int = 100,
        portfolio_child_search: bool = True,
        client: Optional[JIRA] = None,
    ):
        self.server = server.rstrip("/")
        self.client = client or JIRA(
            basic_auth=(email, token),
            options={"server": self.server, "rest_api_version": "3"},
        )
        self.page_size = page_size
        self.portfolio_child_search = portfolio_child_search

    @property
    def _session(self):
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")
        return session

    def _to_project_issue(self, raw: Dict[str, Any]) -> ProjectIssue:
        fields = raw.get("fields", {}) or {}
        status = fields.get("status") or {}
        status_category = (status.get("statusCategory") or {}).get("key")
        assignee = fields.get("assignee") or {}
        creator = fields.get("creator") or {}
        return ProjectIssue(
            id=str(raw["id"]),
            key=raw["key"],
            url=f"{self.server}/browse/{raw['key']}",
            title=fields.get("summary"),
            description=adf_to_plain_text(fields.get("description")),
            status=status.get("name"),
            status_category=_STATUS_CATEGORIES.get((status_category or "").lower()),
            issue_type=(fields.get("issuetype") or {}).get("name"),
            priority=(fields.get("priority") or {}).get("name"),
            estimate=fields.get(STORY_POINTS_FIELD),
            assignee_id=assignee.get("accountId"),
            assignee_name=assignee.get("displayName"),
            creator_id=creator.get("accountId"),
            creator_name=creator.get("displayName"),
            parent_key=(fields.get("parent") or {}).get("key"),
            created_at=parse_jira_datetime(fields.get("created")),
            updated_at=parse_jira_datetime(fields.get("updated")),
            completed_at=parse_jira_datetime(fields.get("resolutiondate")),
            due_date=parse_jira_datetime(fields.get("duedate")),
        )

    def _to_project_comment(self, raw: Dict[str, Any]) -> ProjectComment:
        author = raw.get("author") or {}
        return ProjectComment(
            id=str(raw["id"]),
            body=adf_to_plain_text(raw.get("body")),
            author_id=author.get("accountId"),
            author_name=author.get("displayName"),
            created_at=parse_jira_datetime(raw.get("created")),
            updated_at=parse_jira_datetime(raw.get("updated")),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    def _request(self, method: str, url: str, failure: str, **kwargs) -> Any:
        """
        Send a request through the jira client session.

        Rate limiting (403, 429) and server errors are retried up to three times.

        Args:
            method (str): HTTP method
            url (str): Absolute request URL
            failure (str): Message prefix used when Jira answers with an error

        Returns:
            Any: Decoded JSON body

        Raises:
            JiraRequestError: If Jira answers with an error status
        """
        response = getattr(self._session, method.lower())(url, **kwargs)
        if response.status_code >= 400:
            logger.error(
                {
                    "message": failure,
                    "url": url,
                    "status": response.status_code,
                    "error": response.text[:200],
                }
            )
            raise JiraRequestError(
                f"{failure} {response.status_code}: {response.text[:200]}",
                response.status_code,
            )
        return response.json()

    def _search(self, jql: str) -> List[ProjectIssue]:
        """
        Run a JQL query through the enhanced search endpoint.

        Args:
            jql (str): JQL query

        Returns:
            List[ProjectIssue]: Every matching issue across all pages

        Raises:
            JiraRequestError: If Jira answers with an error status
        """
        url = f"{self.server}/rest/api/3/search/jql"
        params = {"jql": jql, "maxResults": self.page_size, "fields": "*all"}
        issues: List[ProjectIssue] = []
        token = None
        while True:
            query = dict(params)
            if token:
                query["nextPageToken"] = token
            data = self._request("GET", url, "JQL search failed", params=query)
            issues.extend(self._to_project_issue(raw) for raw in data.get("issues", []))
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        logger.debug({"message": "JQL search finished", "jql": jql, "count": len(issues)})
        return issues

    def _walk_descendants(self, issue_keys: List[str]) -> List[ProjectIssue]:
        """Collect descendants level by level, guarding against cycles."""
        visited: Set[str] = set(issue_keys)
        frontier = list(issue_keys)
        descendants: List[ProjectIssue] = []
        while frontier:
            children = self._search(f"parent in ({', '.join(frontier)})")
            frontier = []
            for child in children:
                if child.key in visited:
                    continue
                visited.add(child.key)
                descendants.append(child)
                frontier.append(child.key)
        return descendants

    def _resolved_jql(self, user_id: str, start_date: datetime, end_date: datetime) -> str:
        return (
            f"assignee = {user_id} "
            f'AND resolutiondate >= "{_format_jql_date(start_date)}" '
            f'AND resolutiondate <= "{_format_jql_date(end_date)}"'
        )

    def _recent_comments(self, issue_key: str, max_results: int) -> List[ProjectComment]:
        url = f"{self.server}/rest/api/3/issue/{issue_key}/comment"
        data = self._request(
            "GET",
            url,
            f"Failed to get comments for {issue_key}",
            params={"orderBy": "-created", "maxResults": max_results, "startAt": 0},
        )
        return [self._to_project_comment(raw) for raw in data.get("comments", [])]

    def _resolved_count(self, jql: str) -> int:
        url = f"{self.server}/rest/api/3/search/approximate-count"
        data = self._request(
            "POST", url, f"Failed to count issues for jql={jql}", json={"jql": jql}
        )
        return int(data.get("count", 0))

    def _child_issues(self, issue_keys: List[str]) -> List[ProjectIssue]:
        if self.portfolio_child_search:
            jql = " OR ".join(
                f'issuekey in portfolioChildIssuesOf("{key}")' for key in issue_keys
            )
            try:
                return self._search(jql)
            except JiraRequestError as e:
                if e.status != 400:
                    raise
                logger.warning(
                    {
                        "message": "portfolioChildIssuesOf rejected, walking parent links",
                        "issue_keys": issue_keys,
                    }
                )
                self.portfolio_child_search = False
        return self._walk_descendants(issue_keys)

    async def get_issues(self, issue_keys: List[str]) -> List[ProjectIssue]:
        if not issue_keys:
            return []
        return await asyncio.to_thread(self._search, f"key in ({', '.join(issue_keys)})")

    async def get_child_issues(self, issue_keys: List[str]) -> List[ProjectIssue]:
        if not issue_keys:
            return []
        return await asyncio.to_thread(self._child_issues, issue_keys)

    async def get_direct_child_issues(self, parent_key: str) -> List[ProjectIssue]:
        return await asyncio.to_thread(self._search, f"parent = {parent_key}")

    async def get_recent_comments(
        self, issue_key: str, max_results: int
    ) -> List[ProjectComment]:
        return await asyncio.to_thread(self._recent_comments, issue_key, max_results)

    async def get_issues_resolved(
        self, user_id: str, start_date: datetime, end_date: datetime
    ) -> List[ProjectIssue]:
        jql = f"{self._resolved_jql(user_id, start_date, end_date)} ORDER BY resolutiondate DESC"
        return await asyncio.to_thread(self._search, jql)

    async def get_issues_resolved_count(
        self, user_id: str, start_date: datetime, end_date: datetime
    ) -> int:
        jql = self._resolved_jql(user_id, start_date, end_date)
        return await asyncio.to_thread(self._resolved_count, jql)

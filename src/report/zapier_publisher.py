"""
Zapier Publisher Module.

Posts the rendered summary to a Zapier catch hook, which forwards the messages to
Slack.
"""

from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import logger


class ZapierProjectSummary(BaseModel):
    """Payload expected by the Zapier hook."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    project_messages: List[str] = Field(default_factory=list, alias="projectMessages")


class ZapierPublisher:
    """
    Sends summaries to a Zapier webhook.

    Attributes:
        zapier_url (str): Catch hook URL
        transport (Optional[httpx.AsyncBaseTransport]): Custom transport, used in tests
    """

    DEFAULT_TIMEOUT = 30  # seconds

    def __init__(
        self, zapier_url: str, transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.zapier_url = zapier_url
        self.transport = transport

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, payload: ZapierProjectSummary) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.DEFAULT_TIMEOUT), transport=self.transport
        ) as client:
            return await client.post(
                self.zapier_url,
                headers={"Referer": "https://hooks.zapier.com"},
                json=payload.model_dump(by_alias=True),
            )

    async def send_summary(self, summary: ZapierProjectSummary) -> bool:
        """
        Publish a summary.

        Args:
            summary (ZapierProjectSummary): Top-level message and project messages

        Returns:
            bool: True when Zapier accepted the summary
        """
        try:
            response = await self._post(summary)
        except httpx.HTTPError as e:
            logger.error(
                {
                    "message": "Failed to send summary to Zapier",
                    "error": str(e),
                }
            )
            return False

        logger.debug(
            {
                "message": "Zapier response",
                "status": response.status_code,
                "body": response.text,
            }
        )
        if not response.is_success:
            logger.error(
                {
                    "message": "Zapier request failed",
                    "status": response.status_code,
                }
            )
            return False

        logger.info(
            {
                "message": "Summary published",
                "project_messages": len(summary.project_messages),
            }
        )
        return True

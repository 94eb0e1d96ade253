"""
PagerDuty Incident Source Module.

Retrieves the pages raised for a PagerDuty service within a time window using the
PagerDuty REST API v2 with offset pagination.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config import logger
from sources.base import PagerDutyApi
from sources.models import PagerDutyIncident


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status in (403, 429) or status >= 500
    return isinstance(error, httpx.TransportError)


class PagerDutySource(PagerDutyApi):
    """
    PagerDuty backend for the incident interface.

    Attributes:
        api_key (str): PagerDuty REST API key
        base_url (str): PagerDuty API base URL
        page_size (int): Incidents requested per page
    """

    DEFAULT_TIMEOUT = 30  # seconds

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.pagerduty.com",
        page_size: int = 25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.transport = transport

    def __repr__(self) -> str:
        return "PagerDutySource()"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Token token={self.api_key}",
                "Accept": "application/vnd.pagerduty+json;version=2",
            },
            timeout=httpx.Timeout(self.DEFAULT_TIMEOUT),
            transport=self.transport,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _get_page(
        self, client: httpx.AsyncClient, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await client.get("/incidents", params=params)
        if response.is_error:
            logger.error(
                {
                    "message": "Failed to get PagerDuty incidents",
                    "service_id": params["service_ids[]"],
                    "offset": params["offset"],
                    "status": response.status_code,
                }
            )
            response.raise_for_status()
        return response.json()

    async def get_service_pages(
        self,
        service_id: str,
        start_time_inclusive: datetime,
        end_time_exclusive: datetime,
    ) -> List[PagerDutyIncident]:
        incidents: List[PagerDutyIncident] = []
        offset = 0

        async with self._client() as client:
            while True:
                data = await self._get_page(
                    client,
                    {
                        "service_ids[]": service_id,
                        "since": start_time_inclusive.isoformat(),
                        "until": end_time_exclusive.isoformat(),
                        "limit": self.page_size,
                        "offset": offset,
                    },
                )
                items = data.get("incidents") or []
                if not items:
                    break
                incidents.extend(PagerDutyIncident.model_validate(item) for item in items)
                offset += self.page_size
                if not data.get("more", False):
                    break

        logger.info(
            {
                "message": "Fetched PagerDuty incidents",
                "service_id": service_id,
                "count": len(incidents),
            }
        )
        return incidents

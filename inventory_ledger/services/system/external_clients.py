import logging
from typing import Any, Dict, Optional
import httpx

from inventory_ledger.core.config import settings

logger = logging.getLogger(__name__)


class ExternalCollaboratorClient:
    """POSTs JSON to a collaborator endpoint. An unset URL means delivery is disabled."""

    name = "collaborator"

    def __init__(
        self,
        base_url: Optional[str],
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.transport = transport
        self.timeout = httpx.Timeout(timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS, connect=5.0)

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.enabled:
            logger.info(f"{self.name} endpoint not configured, skipping delivery")
            return {"status": "skipped"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.base_url, json=payload)
            response.raise_for_status()
        return {"status": "ok", "code": response.status_code}


class MovementTrackerClient(ExternalCollaboratorClient):
    """Per-part-per-day movement tracker notified after shipments."""

    name = "Movement tracker"

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, transport=None):
        super().__init__(base_url if base_url is not None else settings.MOVEMENT_TRACKER_URL, timeout, transport)

    async def track_movement(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post(payload)


class DailySummaryClient(ExternalCollaboratorClient):
    """Asks the daily roll-up routine to recompute a business date."""

    name = "Daily summary"

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, transport=None):
        super().__init__(base_url if base_url is not None else settings.DAILY_SUMMARY_URL, timeout, transport)

    async def request_summary(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post(payload)

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..core.logging import get_logger

logger = get_logger(__name__)


class HttpSink:
    """Fire-and-forget JSON poster for analytics and query-log endpoints"""

    def __init__(self, base_url: str, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def url(self, path: str = "") -> str:
        return f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url

    async def send(self, payload: Dict[str, Any], path: str = "", headers: Optional[Dict[str, str]] = None) -> bool:
        url = self.url(path)
        try:
            response = await self.client.post(url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("sink_send_failed", url=url, error=str(e))
            return False

        logger.debug("sink_sent", url=url, status=response.status_code)
        return True

    async def close(self):
        await self.client.aclose()


@dataclass
class AnalyticsSinks:
    """Sinks handed to event handler factories; ``beacon`` is None when BEACON_URL is unset"""

    indexer: HttpSink
    beacon: Optional[HttpSink] = None

    async def close(self):
        await self.indexer.close()
        if self.beacon is not None:
            await self.beacon.close()

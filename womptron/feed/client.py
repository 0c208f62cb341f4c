import json
import time
from typing import List, Optional

import httpx
from loguru import logger

from womptron.core.custom_types import RawRecord

DEFAULT_FEED_URL = "https://voxels.com/api/womps.json"


class FeedClient:
    """
    Fetches the raw womp feed.

    `fetch()` never raises for network or payload problems: it logs them and
    returns None so the caller can skip the tick.
    """

    def __init__(self, url: str = DEFAULT_FEED_URL, timeout: float = 10.0, debug: bool = False,
                 cache_bust: bool = True, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self.debug = debug
        self.cache_bust = cache_bust
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _request_url(self) -> str:
        if not self.cache_bust:
            return self.url
        sep = "&" if "?" in self.url else "?"
        return f"{self.url}{sep}{int(time.time() * 1000)}"

    async def fetch(self) -> Optional[List[RawRecord]]:
        """Return the list of raw records, or None when the fetch failed."""
        try:
            response = await self._client.get(self._request_url(), timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"[Feed] Fetch Error: {e!r}")
            return None

        if not 200 <= response.status_code < 300:
            detail = f" DEBUG: {response.text!r}" if self.debug else ""
            logger.error(f"[Feed] Fetch Error - {response.status_code}: {response.reason_phrase}{detail}")
            return None

        try:
            result = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"[Feed] Fetch Error: invalid JSON payload ({e})")
            return None

        if not isinstance(result, dict):
            logger.error(f"[Feed] Fetch Error: expected an object, got {type(result).__name__}")
            return None

        if result.get("success") is False:
            detail = f" DEBUG - Result: {json.dumps(result)}" if self.debug else ""
            logger.error(f"[Feed] Feed reported failure{detail}")
            return None

        womps = result.get("womps")
        if not womps or not isinstance(womps, list):
            detail = f" DEBUG - Result: {json.dumps(result)}" if self.debug else ""
            logger.error(f"[Feed] No womps returned{detail}")
            return None

        return womps

    async def aclose(self) -> None:
        await self._client.aclose()

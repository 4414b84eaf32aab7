"""HTTP client for the continue-code endpoints of a team instance.

Every call is best-effort: failures are logged and reported through the
return value, never raised. Each request carries an explicit timeout so
a wedged instance cannot hold a worker forever.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from progress_watchdog.cluster.models import ContinueCodePayload
from progress_watchdog.config import WatchdogSettings

logger = structlog.get_logger(__name__)

CONTINUE_CODE_PATH = "/rest/continue-code"
APPLY_PATH = "/rest/continue-code/apply/{code}"


class InstanceClient:
    """Reads and applies continue codes on team instances.

    Args:
        settings: Provides instance addressing and the request timeout.
        transport: Optional httpx transport (used to stub instances in tests).
    """

    def __init__(
        self,
        settings: WatchdogSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.timeout = settings.request_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ── lifecycle ────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Create the HTTP connection pool."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the HTTP connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Call connect() first")
        return self._client

    # ── continue codes ───────────────────────────────────────────────

    async def fetch_live_code(self, team_name: str) -> Optional[str]:
        """GET the instance's current continue code.

        Returns:
            The code on a 200 response with a valid body, otherwise ``None``.
        """
        url = self.settings.instance_url(team_name) + CONTINUE_CODE_PATH
        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as exc:
            await logger.awarning(
                "continue_code_fetch_failed",
                team=team_name,
                url=url,
                error=repr(exc),
            )
            return None

        if resp.status_code != 200:
            await logger.awarning(
                "continue_code_unexpected_status",
                team=team_name,
                status_code=resp.status_code,
            )
            return None

        try:
            payload = ContinueCodePayload.model_validate_json(resp.content)
        except ValidationError as exc:
            await logger.aerror(
                "continue_code_parse_failed",
                team=team_name,
                error=str(exc),
            )
            return None

        await logger.adebug("continue_code_fetched", team=team_name, continue_code=payload.continue_code)
        return payload.continue_code

    async def apply_code(self, team_name: str, continue_code: str) -> bool:
        """PUT *continue_code* onto the instance. The response body is ignored.

        Returns:
            True if the instance answered with a 2xx status.
        """
        url = self.settings.instance_url(team_name) + APPLY_PATH.format(
            code=quote(continue_code, safe="")
        )
        try:
            resp = await self.client.put(url)
        except httpx.HTTPError as exc:
            await logger.awarning(
                "continue_code_apply_failed",
                team=team_name,
                url=url,
                error=repr(exc),
            )
            return False

        if not resp.is_success:
            await logger.awarning(
                "continue_code_apply_rejected",
                team=team_name,
                status_code=resp.status_code,
            )
            return False
        return True

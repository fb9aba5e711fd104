"""
Meta Graph API Client
Read-only access to ad accounts, campaigns and insights over HTTPS (httpx).
External payloads are validated and normalized here; nothing past this module
sees a raw Graph API shape.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional
import httpx

from adpulse.config import get_settings
from adpulse.errors import ConnectivityError, MetaAPIError
from adpulse.utils import to_float, to_int

logger = logging.getLogger(__name__)

CAMPAIGN_INSIGHT_FIELDS = (
    "name,status,id,"
    "insights.date_preset(maximum){spend,impressions,reach,frequency,clicks,actions,account_currency}"
)


# ── Normalized shapes ─────────────────────────────────────────────────

@dataclass
class ExternalCampaign:
    """A campaign as returned by /{account}/campaigns, insights flattened."""
    id: str
    name: str
    status: str
    account_id: str
    spend: float = 0.0
    impressions: int = 0
    reach: int = 0
    frequency: float = 0.0
    clicks: int = 0
    actions: list[dict] = field(default_factory=list)
    currency: str = "USD"

    @property
    def is_deleted(self) -> bool:
        return self.status.upper() == "DELETED"


def _first_insight(raw: dict) -> dict:
    insights = raw.get("insights")
    if isinstance(insights, dict):
        rows = insights.get("data")
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
    return {}


def _currency(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return "USD"


def parse_campaign(raw: Any, account_id: str) -> Optional[ExternalCampaign]:
    """Normalize one campaign entry; returns None when it has no id."""
    if not isinstance(raw, dict) or not raw.get("id"):
        return None
    insight = _first_insight(raw)
    actions = insight.get("actions")
    return ExternalCampaign(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        status=str(raw.get("status") or "UNKNOWN"),
        account_id=str(raw.get("account_id") or account_id),
        spend=to_float(insight.get("spend")),
        impressions=to_int(insight.get("impressions")),
        reach=to_int(insight.get("reach")),
        frequency=to_float(insight.get("frequency")),
        clicks=to_int(insight.get("clicks")),
        actions=[a for a in actions if isinstance(a, dict)] if isinstance(actions, list) else [],
        currency=_currency(insight.get("account_currency")),
    )


# ── Connectivity ──────────────────────────────────────────────────────

class NetworkStatus:
    """
    Tracks whether the ads platform is reachable. A transport-level connect
    failure marks it offline; any successful response marks it online again.
    After ``retry_seconds`` offline, callers may probe again.
    """

    def __init__(self):
        self.online = True
        self.last_failure: Optional[float] = None

    def mark_offline(self) -> None:
        self.online = False
        self.last_failure = time.monotonic()

    def mark_online(self) -> None:
        self.online = True

    def available(self, retry_seconds: float) -> bool:
        if self.online or self.last_failure is None:
            return True
        return time.monotonic() - self.last_failure >= retry_seconds


# ── Client ────────────────────────────────────────────────────────────

class MetaGraphClient:
    """
    Thin async wrapper around the Graph API endpoints the dashboard uses.
    Every call has a timeout. Errors raise MetaAPIError (HTTP/Graph error) or
    ConnectivityError (cannot connect).
    """

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        network: Optional[NetworkStatus] = None,
    ):
        settings = get_settings()
        self.access_token = access_token
        self.base_url = (base_url or settings.graph_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._http = http_client
        self.network = network or NetworkStatus()

    async def _request(self, url: str, params: Optional[dict]) -> dict:
        if self._http is not None:
            return await self._send(self._http, url, params)
        async with httpx.AsyncClient(timeout=self.timeout) as http:
            return await self._send(http, url, params)

    async def _send(self, http: httpx.AsyncClient, url: str, params: Optional[dict]) -> dict:
        try:
            response = await http.get(url, params=params, timeout=self.timeout)
        except httpx.ConnectError as e:
            self.network.mark_offline()
            raise ConnectivityError(f"Cannot reach Graph API: {e}") from e
        except httpx.TimeoutException as e:
            raise MetaAPIError(f"Graph API request timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise MetaAPIError(f"Graph API transport error: {e}") from e

        self.network.mark_online()
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise MetaAPIError(message or "Meta API Error", status_code=response.status_code)
        if response.status_code >= 400:
            raise MetaAPIError(f"Graph API returned HTTP {response.status_code}", status_code=response.status_code)
        if not isinstance(data, dict):
            raise MetaAPIError("Graph API returned a malformed payload", status_code=response.status_code)
        return data

    async def _get(self, path: str, **params) -> dict:
        params["access_token"] = self.access_token
        return await self._request(f"{self.base_url}/{path.lstrip('/')}", params)

    async def _paginated(self, path: str, max_pages: int = 20, **params) -> list:
        """
        Follow ``paging.next`` links to collect every ``data`` row.
        The next link already carries the query string, token included.
        """
        rows = []
        data = await self._get(path, **params)
        page = 1
        while True:
            batch = data.get("data")
            if not isinstance(batch, list):
                raise MetaAPIError(f"Graph API response for {path} has no data list")
            rows.extend(batch)
            paging = data.get("paging")
            if paging is None:
                break
            if not isinstance(paging, dict):
                raise MetaAPIError(f"Graph API response for {path} has malformed paging")
            next_url = paging.get("next")
            if next_url is not None and not isinstance(next_url, str):
                raise MetaAPIError(f"Graph API response for {path} has a malformed next link")
            if not next_url or page >= max_pages:
                break
            data = await self._request(next_url, None)
            page += 1
        logger.debug(f"_paginated({path}): {len(rows)} rows in {page} page(s)")
        return rows

    # ── Endpoints ─────────────────────────────────────────────────────

    async def get_me(self) -> dict:
        return await self._get("me")

    async def test_connection(self) -> dict:
        """Validate the token via /me."""
        try:
            me = await self.get_me()
            return {"status": "connected", "id": me.get("id"), "name": me.get("name")}
        except (MetaAPIError, ConnectivityError) as e:
            return {"status": "error", "error": str(e)}

    async def list_ad_accounts(self) -> list[dict]:
        rows = await self._paginated("me/adaccounts", fields="name,currency,id")
        return [
            {
                "id": str(row["id"]),
                "name": row.get("name") or str(row["id"]),
                "currency": row.get("currency") or "USD",
            }
            for row in rows
            if isinstance(row, dict) and row.get("id")
        ]

    async def list_campaigns(self, account_id: str) -> list[dict]:
        """Campaign picker listing (no insights)."""
        rows = await self._paginated(f"{account_id}/campaigns", fields="name,status,id,account_id")
        campaigns = [parse_campaign(row, account_id) for row in rows]
        return [
            {"id": c.id, "name": c.name, "status": c.status, "account_id": c.account_id}
            for c in campaigns
            if c is not None
        ]

    async def list_campaigns_with_insights(self, account_id: str) -> list[ExternalCampaign]:
        rows = await self._paginated(f"{account_id}/campaigns", fields=CAMPAIGN_INSIGHT_FIELDS)
        campaigns = [parse_campaign(row, account_id) for row in rows]
        return [c for c in campaigns if c is not None]

    async def campaign_insight_history(self, campaign_id: str) -> list[dict]:
        """Daily rows for the last 30 days: date_start, spend, actions."""
        rows = await self._paginated(
            f"{campaign_id}/insights",
            fields="spend,actions,date_start",
            date_preset="last_30d",
            time_increment=1,
        )
        return [
            {
                "date": row.get("date_start"),
                "spend": to_float(row.get("spend")),
                "actions": row.get("actions") if isinstance(row.get("actions"), list) else [],
            }
            for row in rows
            if isinstance(row, dict)
        ]


def create_meta_client(
    access_token: str,
    http_client: Optional[httpx.AsyncClient] = None,
    network: Optional[NetworkStatus] = None,
) -> MetaGraphClient:
    """Factory function to create a Graph API client instance."""
    return MetaGraphClient(access_token=access_token, http_client=http_client, network=network)

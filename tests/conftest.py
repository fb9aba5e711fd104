"""
Shared fixtures: an in-memory document store, a repository backed by a temp
snapshot file, and helpers to build clients, campaigns and Graph API transports.
"""

import httpx
import pytest

from adpulse.cache import LocalCache
from adpulse.crypto import encode_secret
from adpulse.schemas import (
    CampaignStats, Client, DataSource, IntegrationSecret, SecretStatus, SecretType,
)
from adpulse.services.repository import CampaignRepository
from adpulse.store import DocumentStore


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store; set ``fail = True`` to simulate an outage."""

    def __init__(self, collections: dict | None = None):
        self.collections: dict[str, dict[str, dict]] = collections or {}
        self.activity: list[dict] = []
        self.fail = False
        self.replace_calls = 0

    def _check(self):
        if self.fail:
            raise ConnectionError("durable store unavailable")

    async def fetch_collection(self, name):
        self._check()
        return list(self.collections.get(name, {}).values())

    async def replace_collection(self, name, documents):
        self._check()
        self.replace_calls += 1
        self.collections[name] = dict(documents)

    async def append_activity(self, entry):
        self._check()
        self.activity.insert(0, entry)

    async def recent_activity(self, limit=50):
        self._check()
        return self.activity[:limit]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def cache(tmp_path):
    return LocalCache(tmp_path / "snapshot.json")


@pytest.fixture
def repo(store, cache):
    return CampaignRepository(store, cache)


def make_client(client_id="c1", name="Acme", ad_accounts=None, campaign_ids=None):
    return Client(
        id=client_id,
        name=name,
        ad_accounts=ad_accounts or [],
        campaign_ids=campaign_ids or [],
    )


def make_campaign(campaign_id="cp_1", **fields):
    fields.setdefault("name", campaign_id)
    return CampaignStats(campaign_id=campaign_id, **fields)


def valid_facebook_secret(token="fb-token"):
    return IntegrationSecret(type=SecretType.FACEBOOK, value=encode_secret(token), status=SecretStatus.VALID)


def graph_campaign(campaign_id, status="ACTIVE", spend="100", impressions="1000", clicks="50", actions=None, currency=None):
    """A /{account}/campaigns entry as the Graph API returns it (numbers as strings)."""
    insight = {
        "spend": spend,
        "impressions": impressions,
        "clicks": clicks,
        "reach": "500",
        "frequency": "2.0",
        "actions": actions or [],
    }
    if currency:
        insight["account_currency"] = currency
    return {
        "id": campaign_id,
        "name": f"Campaign {campaign_id}",
        "status": status,
        "insights": {"data": [insight]},
    }


def graph_transport(accounts: dict, calls: list | None = None) -> httpx.MockTransport:
    """
    MockTransport serving ``/{account}/campaigns``. ``accounts`` maps an account id
    to a list of campaign entries, to an int HTTP status to fail with, or to a
    dict served as the raw response body.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.rstrip("/")
        if calls is not None:
            calls.append(path)
        if path.endswith("/me"):
            return httpx.Response(200, json={"id": "42", "name": "Agency Owner"})
        account_id = path.split("/")[-2]
        entry = accounts.get(account_id)
        if entry is None:
            return httpx.Response(404, json={"error": {"message": "Unknown account"}})
        if isinstance(entry, int):
            return httpx.Response(entry, json={"error": {"message": f"HTTP {entry}"}})
        if isinstance(entry, dict):
            return httpx.Response(200, json=entry)
        return httpx.Response(200, json={"data": entry})

    return httpx.MockTransport(handler)

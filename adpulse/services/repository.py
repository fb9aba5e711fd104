"""
Campaign Repository — owns the in-memory clients/campaigns/secrets collections
and is the only component that writes to storage.

Writes go to the local snapshot first and then, best-effort, to the durable
document store. A durable failure is logged and never blocks the local write:
the in-memory state is the source of truth for request handling, the store is
an eventually-consistent backup.
"""

import asyncio
import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from adpulse.cache import LocalCache
from adpulse.schemas import ActivityEntry, CampaignStats, Client, IntegrationSecret
from adpulse.store import DocumentStore

logger = logging.getLogger(__name__)

CLIENTS = "clients"
CAMPAIGNS = "campaigns"
SECRETS = "secrets"
COLLECTIONS = (CLIENTS, CAMPAIGNS, SECRETS)

_MODELS = {CLIENTS: Client, CAMPAIGNS: CampaignStats, SECRETS: IntegrationSecret}

MAX_RECENT_ACTIVITY = 50


def _document_key(collection: str, item) -> str:
    if collection == CAMPAIGNS:
        return item.campaign_id
    if collection == SECRETS:
        return item.type.value
    return item.id


def upsert_campaigns(
    current: Iterable[CampaignStats],
    incoming: Iterable[CampaignStats],
) -> list[CampaignStats]:
    """
    Merge ``incoming`` into ``current`` keyed by ``campaign_id``.

    Overwrites every field of a known campaign with the incoming record but keeps
    the existing surrogate ``id``; unknown campaigns are appended. Records absent
    from ``incoming`` are kept untouched. Order of ``current`` is preserved, and
    the result holds at most one record per campaign_id (last writer wins).
    """
    merged: dict[str, CampaignStats] = {}
    for campaign in current:
        merged[campaign.campaign_id] = campaign
    for campaign in incoming:
        existing = merged.get(campaign.campaign_id)
        if existing is not None:
            campaign = campaign.model_copy(update={"id": existing.id})
        merged[campaign.campaign_id] = campaign
    return list(merged.values())


def _parse_items(collection: str, raw_items) -> list:
    """Validate raw documents, skipping malformed ones."""
    model = _MODELS[collection]
    items = []
    for raw in raw_items or []:
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {collection} document: {e.error_count()} error(s)")
    if collection == CAMPAIGNS:
        # Enforce one record per campaign_id even if storage holds duplicates
        items = upsert_campaigns([], items)
    return items


class CampaignRepository:
    def __init__(self, store: Optional[DocumentStore], cache: LocalCache):
        self.store = store
        self.cache = cache
        self.clients: list[Client] = []
        self.campaigns: list[CampaignStats] = []
        self.secrets: list[IntegrationSecret] = []
        self.recent_activity: list[ActivityEntry] = []
        self.durable_ok: Optional[bool] = None

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def load(self) -> dict:
        """
        Load all collections. Durable store first; on any failure fall back to the
        local snapshot; when neither exists, start empty.
        """
        data = None
        if self.store is not None:
            try:
                results = await asyncio.gather(
                    *(self.store.fetch_collection(name) for name in COLLECTIONS)
                )
                data = dict(zip(COLLECTIONS, results))
                self.durable_ok = True
                logger.info("Loaded collections from durable store")
            except Exception as e:
                self.durable_ok = False
                logger.error(f"Durable store unavailable, falling back to local cache: {e}")

        if data is None:
            data = self.cache.read()
            if data is not None:
                logger.info("Using cached local snapshot")
            else:
                data = {}

        self.clients = _parse_items(CLIENTS, data.get(CLIENTS))
        self.campaigns = _parse_items(CAMPAIGNS, data.get(CAMPAIGNS))
        self.secrets = _parse_items(SECRETS, data.get(SECRETS))

        if self.durable_ok:
            # Refresh the snapshot with what the durable store returned
            for name in COLLECTIONS:
                self._write_local(name, self._items(name))

        return {CLIENTS: self.clients, CAMPAIGNS: self.campaigns, SECRETS: self.secrets}

    async def flush(self) -> None:
        """Write every collection to local cache and durable store."""
        for name in COLLECTIONS:
            await self.save(name)

    # ── Reads / in-memory sets ────────────────────────────────────────

    def _items(self, collection: str) -> list:
        if collection not in _MODELS:
            raise ValueError(f"Unknown collection: {collection}")
        return getattr(self, collection)

    def set_clients(self, clients: list[Client]) -> None:
        self.clients = list(clients)

    def set_campaigns(self, campaigns: list[CampaignStats]) -> None:
        self.campaigns = list(campaigns)

    def set_secrets(self, secrets: list[IntegrationSecret]) -> None:
        self.secrets = list(secrets)

    def get_client(self, client_id: str) -> Optional[Client]:
        return next((c for c in self.clients if c.id == client_id), None)

    def get_campaign(self, campaign_id: str) -> Optional[CampaignStats]:
        return next((c for c in self.campaigns if c.campaign_id == campaign_id), None)

    # ── Writes ────────────────────────────────────────────────────────

    async def save(self, collection: str, items: Optional[list] = None) -> None:
        """
        Replace ``collection`` (with ``items`` when given) and persist it:
        local snapshot first, durable store best-effort.
        """
        if items is not None:
            setattr(self, collection, list(items))
        current = self._items(collection)
        self._write_local(collection, current)

        if self.store is None:
            return
        documents = {
            _document_key(collection, item): item.model_dump(mode="json") for item in current
        }
        try:
            await self.store.replace_collection(collection, documents)
            self.durable_ok = True
        except Exception as e:
            self.durable_ok = False
            logger.warning(f"Durable store upsert failed for '{collection}' (kept locally): {e}")

    def _write_local(self, collection: str, items: list) -> None:
        try:
            self.cache.write_collection(collection, [i.model_dump(mode="json") for i in items])
        except OSError as e:
            logger.error(f"Local cache write failed for '{collection}': {e}")

    async def record_activity(
        self,
        action: str,
        resource: str,
        description: str = "",
        status: str = "success",
    ) -> ActivityEntry:
        """Record an admin action. Never raises."""
        entry = ActivityEntry(action=action, resource=resource, description=description, status=status)
        self.recent_activity = [entry, *self.recent_activity][:MAX_RECENT_ACTIVITY]
        if self.store is not None:
            try:
                await self.store.append_activity(entry.model_dump(mode="json"))
            except Exception as e:
                logger.warning(f"Activity log not synced to durable store: {e}")
        return entry

    async def list_activity(self, limit: int = MAX_RECENT_ACTIVITY) -> list[dict]:
        if self.store is not None:
            try:
                return await self.store.recent_activity(limit)
            except Exception as e:
                logger.warning(f"Reading activity from durable store failed: {e}")
        return [e.model_dump(mode="json") for e in self.recent_activity[:limit]]

"""
Tests for the campaign repository: load fallback order, local-first writes and
the campaign_id-keyed upsert.
"""

import pytest

from adpulse.schemas import DataSource
from adpulse.services.repository import CAMPAIGNS, CLIENTS, CampaignRepository, upsert_campaigns
from conftest import MemoryDocumentStore, make_campaign, make_client


def test_upsert_keeps_surrogate_id_and_order():
    current = [make_campaign("cp_1", spend=1), make_campaign("cp_2", spend=2)]
    incoming = [
        make_campaign("cp_2", spend=20, data_source=DataSource.REAL_API),
        make_campaign("cp_3", spend=30),
    ]
    merged = upsert_campaigns(current, incoming)

    assert [c.campaign_id for c in merged] == ["cp_1", "cp_2", "cp_3"]
    assert merged[1].id == current[1].id
    assert merged[1].spend == 20
    assert merged[1].data_source == DataSource.REAL_API


def test_upsert_never_duplicates_campaign_ids():
    merged = []
    for spend in range(5):
        merged = upsert_campaigns(merged, [make_campaign("cp_1", spend=spend), make_campaign("cp_1", spend=spend + 1)])
    assert len(merged) == 1
    assert merged[0].spend == 5


@pytest.mark.anyio
async def test_load_reads_durable_store_and_refreshes_snapshot(cache):
    client = make_client("c1", campaign_ids=["cp_1"])
    store = MemoryDocumentStore({CLIENTS: {"c1": client.model_dump(mode="json")}})
    repo = CampaignRepository(store, cache)

    data = await repo.load()
    assert [c.id for c in data[CLIENTS]] == ["c1"]
    assert repo.durable_ok is True
    assert cache.read()[CLIENTS][0]["id"] == "c1"


@pytest.mark.anyio
async def test_load_falls_back_to_local_snapshot(cache):
    cache.write_collection(CAMPAIGNS, [make_campaign("cp_7").model_dump(mode="json")])
    store = MemoryDocumentStore()
    store.fail = True
    repo = CampaignRepository(store, cache)

    await repo.load()
    assert repo.durable_ok is False
    assert [c.campaign_id for c in repo.campaigns] == ["cp_7"]


@pytest.mark.anyio
async def test_load_starts_empty_without_store_or_snapshot(tmp_path):
    from adpulse.cache import LocalCache
    store = MemoryDocumentStore()
    store.fail = True
    repo = CampaignRepository(store, LocalCache(tmp_path / "missing.json"))
    data = await repo.load()
    assert data == {CLIENTS: [], CAMPAIGNS: [], "secrets": []}


@pytest.mark.anyio
async def test_load_skips_malformed_and_duplicate_documents(cache):
    good = make_campaign("cp_1").model_dump(mode="json")
    dup = make_campaign("cp_1", spend=9).model_dump(mode="json")
    store = MemoryDocumentStore({CAMPAIGNS: {"a": good, "b": {"spend": "x"}, "c": dup}})
    repo = CampaignRepository(store, cache)
    await repo.load()
    assert len(repo.campaigns) == 1


@pytest.mark.anyio
async def test_durable_failure_still_writes_local_snapshot(repo, store, cache):
    store.fail = True
    await repo.save(CAMPAIGNS, [make_campaign("cp_1")])

    assert repo.durable_ok is False
    assert cache.read()[CAMPAIGNS][0]["campaign_id"] == "cp_1"
    assert [c.campaign_id for c in repo.campaigns] == ["cp_1"]


@pytest.mark.anyio
async def test_save_replaces_durable_collection_keyed_by_campaign_id(repo, store):
    await repo.save(CAMPAIGNS, [make_campaign("cp_1"), make_campaign("cp_2")])
    await repo.save(CAMPAIGNS, [make_campaign("cp_2")])
    assert list(store.collections[CAMPAIGNS]) == ["cp_2"]


@pytest.mark.anyio
async def test_record_activity_never_raises(repo, store):
    store.fail = True
    entry = await repo.record_activity("client_created", "client", "Created Acme")
    assert entry.action == "client_created"
    assert (await repo.list_activity())[0]["action"] == "client_created"

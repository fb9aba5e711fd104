"""
Tests for the live sync engine: guards, per-account failure tolerance, merge
semantics and status mapping.
"""

import asyncio
from unittest.mock import patch

import anyio
import httpx
import pytest

from adpulse.errors import SyncFailedError
from adpulse.meta_client import NetworkStatus, parse_campaign
from adpulse.schemas import CampaignStatus, DataSource, SecretStatus, SyncTrigger
from adpulse.services.metrics_service import build_stats
from adpulse.services.secret_vault import SecretVault
from adpulse.services.sync_engine import (
    SKIP_IN_PROGRESS, SKIP_MISSING_CREDENTIAL, SKIP_OFFLINE, SKIP_THROTTLED,
    LiveSyncEngine, SyncOptions, map_status, order_clients,
)
from conftest import graph_campaign, graph_transport, make_client, valid_facebook_secret


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _engine(repo, accounts, calls=None, clock=None):
    http = httpx.AsyncClient(transport=graph_transport(accounts, calls))
    network = NetworkStatus()
    vault = SecretVault(repo, http_client=http, network=network)
    engine = LiveSyncEngine(repo, vault, network=network, http_client=http, clock=clock or FakeClock())
    return engine, http


@pytest.mark.parametrize("external,expected", [
    ("ACTIVE", CampaignStatus.ACTIVE),
    ("PAUSED", CampaignStatus.PAUSED),
    ("CAMPAIGN_PAUSED", CampaignStatus.PAUSED),
    ("ADSET_PAUSED", CampaignStatus.PAUSED),
    ("WITH_ISSUES", CampaignStatus.ARCHIVED),
    ("", CampaignStatus.ARCHIVED),
])
def test_map_status(external, expected):
    assert map_status(external) == expected


def test_order_clients_active_first_and_scope():
    clients = [make_client("a"), make_client("b"), make_client("c")]
    assert [c.id for c in order_clients(clients, active_client_id="c")] == ["c", "a", "b"]
    assert [c.id for c in order_clients(clients, scope_client_id="b", trigger=SyncTrigger.NAVIGATION)] == ["b"]
    # Background ticks ignore the scope
    assert len(order_clients(clients, scope_client_id="b", trigger=SyncTrigger.CLIENT_TICK)) == 3


@pytest.mark.anyio
async def test_sync_merges_linked_campaigns_as_real_api(repo, store):
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1", "cp_del"])])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {"act_1": [
        graph_campaign("cp_1", status="CAMPAIGN_PAUSED", actions=[
            {"action_type": "purchase", "value": "2"},
            {"action_type": "link_click", "value": "30"},
        ]),
        graph_campaign("cp_other"),
        graph_campaign("cp_del", status="DELETED"),
    ]})
    async with http:
        outcome = await engine.sync(SyncOptions(force=True))

    assert outcome.status == "completed"
    assert outcome.updated == ["cp_1"]
    record = repo.get_campaign("cp_1")
    assert record.data_source == DataSource.REAL_API
    assert record.is_validated is True
    assert record.status == CampaignStatus.PAUSED
    assert record.conversions == 2
    assert record.ctr == pytest.approx(0.05)
    assert record.cpc == pytest.approx(2.0)
    assert repo.get_campaign("cp_other") is None
    # cp_del was skipped; the reconciler gave it a placeholder instead
    assert repo.get_campaign("cp_del").data_source == DataSource.MOCK
    assert "cp_1" in store.collections["campaigns"]


@pytest.mark.anyio
async def test_merge_preserves_surrogate_id(repo):
    placeholder = build_stats({"spend": 5}, campaign_id="cp_1", data_source=DataSource.MOCK)
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1"])])
    repo.set_campaigns([placeholder])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {"act_1": [graph_campaign("cp_1")]})
    async with http:
        await engine.sync(SyncOptions(force=True))
        await engine.sync(SyncOptions(force=True))

    assert len(repo.campaigns) == 1
    assert repo.campaigns[0].id == placeholder.id
    assert repo.campaigns[0].data_source == DataSource.REAL_API


@pytest.mark.anyio
async def test_one_failing_account_does_not_block_others(repo, store):
    repo.set_clients([
        make_client("c1", ad_accounts=["act_bad"], campaign_ids=["cp_x"]),
        make_client("c2", ad_accounts=["act_good"], campaign_ids=["cp_2"]),
    ])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {"act_bad": 500, "act_good": [graph_campaign("cp_2")]})
    async with http:
        outcome = await engine.sync(SyncOptions(force=True))

    assert outcome.updated == ["cp_2"]
    assert [f.account_id for f in outcome.failures] == ["act_bad"]
    assert repo.get_campaign("cp_2").data_source == DataSource.REAL_API
    assert "cp_2" in store.collections["campaigns"]


@pytest.mark.anyio
async def test_throttle_and_force(repo):
    calls = []
    clock = FakeClock()
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1"])])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {"act_1": [graph_campaign("cp_1")]}, calls=calls, clock=clock)
    async with http:
        first = await engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK))
        clock.now += 30
        second = await engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK))
        assert len(calls) == 1

        forced = await engine.sync(SyncOptions(force=True))
        assert len(calls) == 2

        clock.now += 90
        client_tick = await engine.sync(SyncOptions(trigger=SyncTrigger.CLIENT_TICK))
        admin_tick = await engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK))

    assert first.status == "completed"
    assert second.reason == SKIP_THROTTLED
    assert forced.status == "completed"
    assert client_tick.reason == SKIP_THROTTLED
    assert admin_tick.status == "completed"


@pytest.mark.anyio
async def test_missing_or_untested_credential_is_a_silent_skip(repo):
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1"])])
    engine, http = _engine(repo, {"act_1": [graph_campaign("cp_1")]})
    async with http:
        assert (await engine.sync(SyncOptions(force=True))).reason == SKIP_MISSING_CREDENTIAL
        untested = valid_facebook_secret().model_copy(update={"status": SecretStatus.UNTESTED})
        repo.set_secrets([untested])
        assert (await engine.sync(SyncOptions(force=True))).reason == SKIP_MISSING_CREDENTIAL
    assert repo.campaigns == []


@pytest.mark.anyio
async def test_overlapping_sync_is_reported(repo):
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1"])])
    repo.set_secrets([valid_facebook_secret()])
    calls = []
    fetching = anyio.Event()
    release = anyio.Event()

    async def handler(request):
        calls.append(request.url.path)
        fetching.set()
        await release.wait()
        return httpx.Response(200, json={"data": [graph_campaign("cp_1")]})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    engine = LiveSyncEngine(repo, SecretVault(repo), http_client=http, clock=FakeClock())

    async def overlapping():
        await fetching.wait()
        outcome = await engine.sync(SyncOptions(force=True))
        release.set()
        return outcome

    async with http:
        first, second = await asyncio.gather(engine.sync(SyncOptions(force=True)), overlapping())

    assert first.status == "completed"
    assert first.updated == ["cp_1"]
    assert second.status == "skipped"
    assert second.reason == SKIP_IN_PROGRESS
    assert calls == ["/v19.0/act_1/campaigns"]
    assert engine.running is False


@pytest.mark.anyio
async def test_malformed_account_response_does_not_block_others(repo, store):
    repo.set_clients([
        make_client("c1", ad_accounts=["act_bad"], campaign_ids=["cp_x"]),
        make_client("c2", ad_accounts=["act_good"], campaign_ids=["cp_2"]),
    ])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {
        "act_bad": {"data": [], "paging": "oops"},
        "act_good": [graph_campaign("cp_2")],
    })
    async with http:
        outcome = await engine.sync(SyncOptions(force=True))

    assert outcome.updated == ["cp_2"]
    assert [f.account_id for f in outcome.failures] == ["act_bad"]
    assert repo.get_campaign("cp_2").data_source == DataSource.REAL_API
    assert "cp_2" in store.collections["campaigns"]


@pytest.mark.anyio
async def test_unreadable_campaign_is_a_partial_failure(repo):
    repo.set_clients([
        make_client("c1", ad_accounts=["act_bad"], campaign_ids=["cp_x"]),
        make_client("c2", ad_accounts=["act_good"], campaign_ids=["cp_2"]),
    ])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {
        "act_bad": [graph_campaign("cp_x")],
        "act_good": [graph_campaign("cp_2")],
    })

    def flaky_parse(raw, account_id):
        if account_id == "act_bad":
            raise KeyError("insights")
        return parse_campaign(raw, account_id)

    async with http:
        with patch("adpulse.meta_client.parse_campaign", side_effect=flaky_parse):
            outcome = await engine.sync(SyncOptions(force=True))

    assert outcome.updated == ["cp_2"]
    assert [f.account_id for f in outcome.failures] == ["act_bad"]
    assert "Malformed response" in outcome.failures[0].message


@pytest.mark.anyio
async def test_synced_records_keep_the_account_currency(repo):
    repo.set_clients([make_client("c1", ad_accounts=["act_eu", "act_us"], campaign_ids=["cp_eu", "cp_us"])])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {
        "act_eu": [graph_campaign("cp_eu", currency="eur")],
        "act_us": [graph_campaign("cp_us")],
    })
    async with http:
        await engine.sync(SyncOptions(force=True))

    assert repo.get_campaign("cp_eu").currency == "EUR"
    assert repo.get_campaign("cp_us").currency == "USD"


@pytest.mark.anyio
async def test_offline_after_connect_error(repo):
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1"])])
    repo.set_secrets([valid_facebook_secret()])

    def handler(request):
        raise httpx.ConnectError("network down", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    network = NetworkStatus()
    engine = LiveSyncEngine(repo, SecretVault(repo), network=network, http_client=http, clock=FakeClock())
    async with http:
        first = await engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK))
        second = await engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK))

    assert len(first.failures) == 1
    assert second.reason == SKIP_OFFLINE
    assert repo.campaigns == []


@pytest.mark.anyio
async def test_manual_forced_sync_raises_when_every_account_fails(repo):
    repo.set_clients([make_client("c1", ad_accounts=["act_1", "act_2"], campaign_ids=["cp_1"])])
    repo.set_secrets([valid_facebook_secret()])
    engine, http = _engine(repo, {"act_1": 500, "act_2": 403})
    async with http:
        with pytest.raises(SyncFailedError) as exc:
            await engine.sync(SyncOptions(force=True, trigger=SyncTrigger.MANUAL))
        # A background tick with the same failures just reports them
        outcome = await engine.sync(SyncOptions(force=True, trigger=SyncTrigger.ADMIN_TICK))

    assert len(exc.value.failures) == 2
    assert len(outcome.failures) == 2
    assert engine.running is False


@pytest.mark.anyio
async def test_merge_keeps_changes_made_during_fetch(repo):
    """A campaign provisioned while the fetch is in flight survives the merge."""
    repo.set_clients([make_client("c1", ad_accounts=["act_1"], campaign_ids=["cp_1"])])
    repo.set_secrets([valid_facebook_secret()])

    def handler(request):
        # Simulate a concurrent reconciler insert during the network phase
        repo.set_campaigns([*repo.campaigns, build_stats({}, campaign_id="cp_late")])
        return httpx.Response(200, json={"data": [graph_campaign("cp_1")]})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    engine = LiveSyncEngine(repo, SecretVault(repo), http_client=http, clock=FakeClock())
    async with http:
        await engine.sync(SyncOptions(force=True))

    assert {c.campaign_id for c in repo.campaigns} == {"cp_1", "cp_late"}

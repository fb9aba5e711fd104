"""
Tests for dashboard read models.
"""

import pytest

from adpulse.services.dashboard_service import admin_overview, campaign_listing, client_dashboard
from adpulse.services.metrics_service import build_stats
from conftest import make_client


def _stats(campaign_id, spend, conversions=0, name=None):
    return build_stats(
        {"spend": spend, "impressions": 1000, "clicks": 10, "conversions": conversions},
        aov=50, campaign_id=campaign_id, name=name or campaign_id,
    )


@pytest.fixture
def portfolio():
    clients = [
        make_client("c1", "Small", campaign_ids=["a"]),
        make_client("c2", "Big", campaign_ids=["b", "c"]),
    ]
    campaigns = [
        _stats("a", 10, conversions=1, name="Spring Sale"),
        _stats("b", 100, conversions=1, name="Remarketing"),
        _stats("c", 200, name="Cold Interest"),
        _stats("orphan", 999, name="Old test"),
    ]
    return clients, campaigns


def test_admin_overview_counts_linked_campaigns_only(portfolio):
    clients, campaigns = portfolio
    overview = admin_overview(clients, campaigns)

    assert overview["totals"]["spend"] == 310
    assert overview["totals"]["campaign_count"] == 3
    assert [s["client_id"] for s in overview["client_stats"]] == ["c2", "c1"]
    assert overview["top_campaigns"][0]["campaign_id"] == "a"
    assert "orphan" not in {c["campaign_id"] for c in overview["top_campaigns"]}


def test_client_dashboard(portfolio):
    clients, campaigns = portfolio
    view = client_dashboard(clients[1], campaigns)
    assert [c["campaign_id"] for c in view["campaigns"]] == ["b", "c"]
    assert view["totals"]["spend"] == 300
    assert view["totals"]["avg_roas"] == pytest.approx(0.25)


def test_campaign_listing_joins_owner_and_filters(portfolio):
    clients, campaigns = portfolio
    rows = campaign_listing(clients, campaigns)
    owners = {r["campaign_id"]: r["client_name"] for r in rows}
    assert owners == {"a": "Small", "b": "Big", "c": "Big", "orphan": "Unassigned"}

    assert [r["campaign_id"] for r in campaign_listing(clients, campaigns, search="REMARK")] == ["b"]
    assert [r["campaign_id"] for r in campaign_listing(clients, campaigns, client_id="c1")] == ["a"]

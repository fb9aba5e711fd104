"""
Dashboard Service — read models for the admin overview, the per-client
dashboard and the campaign listing. Only campaigns linked to a client count
toward portfolio figures.
"""

import logging
from typing import Optional

from adpulse.schemas import CampaignStats, Client
from adpulse.services.metrics_service import summarize
from adpulse.services.reconciler import assigned_campaign_ids, owners_by_campaign

logger = logging.getLogger(__name__)

TOP_CAMPAIGNS = 5


def client_campaigns(client: Client, campaigns: list[CampaignStats]) -> list[CampaignStats]:
    wanted = set(client.campaign_ids)
    return [c for c in campaigns if c.campaign_id in wanted]


def linked_campaigns(clients: list[Client], campaigns: list[CampaignStats]) -> list[CampaignStats]:
    linked = assigned_campaign_ids(clients)
    return [c for c in campaigns if c.campaign_id in linked]


def admin_overview(clients: list[Client], campaigns: list[CampaignStats]) -> dict:
    linked = linked_campaigns(clients, campaigns)

    client_stats = []
    for client in clients:
        related = client_campaigns(client, campaigns)
        summary = summarize(related)
        client_stats.append({
            "client_id": client.id,
            "name": client.name,
            "spend": summary["spend"],
            "conversions": summary["conversions"],
            "roas": summary["avg_roas"],
            "campaign_count": summary["campaign_count"],
        })
    client_stats.sort(key=lambda s: s["spend"], reverse=True)

    top = sorted(linked, key=lambda c: c.roas, reverse=True)[:TOP_CAMPAIGNS]
    return {
        "totals": summarize(linked),
        "client_count": len(clients),
        "client_stats": client_stats,
        "top_campaigns": [c.model_dump(mode="json") for c in top],
    }


def client_dashboard(client: Client, campaigns: list[CampaignStats]) -> dict:
    related = client_campaigns(client, campaigns)
    return {
        "client": client.model_dump(mode="json"),
        "totals": summarize(related),
        "campaigns": [c.model_dump(mode="json") for c in related],
    }


def campaign_listing(
    clients: list[Client],
    campaigns: list[CampaignStats],
    search: str = "",
    client_id: Optional[str] = None,
) -> list[dict]:
    """
    Every cached campaign joined with its owning client ("Unassigned" when none).
    ``search`` matches the campaign name case-insensitively; ``client_id``
    restricts to one owner.
    """
    owners = owners_by_campaign(clients)
    needle = (search or "").lower()
    rows = []
    for campaign in campaigns:
        owner = (owners.get(campaign.campaign_id) or [None])[0]
        if needle and needle not in campaign.name.lower():
            continue
        if client_id and (owner is None or owner.id != client_id):
            continue
        row = campaign.model_dump(mode="json")
        row["client_id"] = owner.id if owner else None
        row["client_name"] = owner.name if owner else "Unassigned"
        rows.append(row)
    return rows

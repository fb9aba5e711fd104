"""
Assignment Reconciler — finds campaigns that are assigned to a client but have
no local record yet and provisions MOCK placeholders for them.

Safe to run on every change: a campaign_id already present in the cache is
never provisioned again, so a second run with the same assignments returns [].
"""

import logging
import random
from typing import Iterable, Optional

from adpulse.schemas import CampaignStats, CampaignStatus, Client, DataSource
from adpulse.services.metrics_service import build_stats

logger = logging.getLogger(__name__)

# Opening state for placeholders: (low, high) inclusive
OPENING_SPEND = (50.0, 500.0)
OPENING_IMPRESSIONS = (2_000, 20_000)
OPENING_CLICKS = (20, 400)
OPENING_CONVERSIONS = (0, 25)


def owners_by_campaign(clients: Iterable[Client]) -> dict[str, list[Client]]:
    """campaign_id → clients that list it, in client order."""
    owners: dict[str, list[Client]] = {}
    for client in clients:
        for campaign_id in dict.fromkeys(client.campaign_ids):
            owners.setdefault(campaign_id, []).append(client)
    return owners


def assigned_campaign_ids(clients: Iterable[Client]) -> set[str]:
    return {cid for client in clients for cid in client.campaign_ids}


def find_conflicts(clients: Iterable[Client]) -> dict[str, list[str]]:
    """Campaign ids claimed by more than one client → owning client ids."""
    return {
        campaign_id: [c.id for c in owners]
        for campaign_id, owners in owners_by_campaign(clients).items()
        if len(owners) > 1
    }


def _opening_counters(rng: random.Random) -> dict:
    impressions = rng.randint(*OPENING_IMPRESSIONS)
    clicks = min(rng.randint(*OPENING_CLICKS), impressions)
    conversions = min(rng.randint(*OPENING_CONVERSIONS), clicks)
    return {
        "spend": round(rng.uniform(*OPENING_SPEND), 2),
        "impressions": impressions,
        "clicks": clicks,
        "conversions": conversions,
    }


def reconcile(
    clients: Iterable[Client],
    campaigns: Iterable[CampaignStats],
    rng: Optional[random.Random] = None,
) -> list[CampaignStats]:
    """
    Return placeholder campaigns for every assigned campaign_id missing from
    ``campaigns``. The caller appends them to the cache.
    """
    rng = rng or random.Random()
    owners = owners_by_campaign(clients)
    existing = {c.campaign_id for c in campaigns}

    created = []
    for campaign_id, campaign_owners in owners.items():
        if campaign_id in existing:
            continue
        owner = campaign_owners[0]
        created.append(build_stats(
            _opening_counters(rng),
            campaign_id=campaign_id,
            name=f"{campaign_id} ({owner.name})",
            status=CampaignStatus.ACTIVE,
            data_source=DataSource.MOCK,
            is_validated=False,
        ))

    if created:
        logger.info(f"Auto-provisioned {len(created)} placeholder campaign(s): "
                    f"{', '.join(c.campaign_id for c in created)}")
    return created


async def apply_reconciliation(repo, rng: Optional[random.Random] = None, persist: bool = True) -> list[CampaignStats]:
    """
    Reconcile the repository's current collections and append any placeholders
    in a single set. Persists the campaigns collection when something was added.
    """
    created = reconcile(repo.clients, repo.campaigns, rng=rng)
    if created:
        repo.set_campaigns([*repo.campaigns, *created])
        if persist:
            await repo.save("campaigns")
    return created

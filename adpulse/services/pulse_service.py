"""
Pulse Simulator — grows metrics of placeholder (MOCK) campaigns between syncs.

Each tick applies one bounded random-walk step to every ACTIVE, MOCK campaign
that is currently assigned to a client. Assignment is re-read every tick, so a
campaign unlinked mid-flight stops growing on the next tick. REAL_API records
are never touched.
"""

import logging
import random
from typing import Optional

from adpulse.config import get_settings
from adpulse.schemas import CampaignStats, CampaignStatus, Client, DataSource
from adpulse.services.metrics_service import recompute
from adpulse.services.reconciler import apply_reconciliation, assigned_campaign_ids

logger = logging.getLogger(__name__)

IMPRESSIONS_STEP = (20, 250)
CLICK_PROBABILITY = 0.3
CLICKS_STEP = (1, 3)
CONVERSION_PROBABILITY = 0.05
SPEND_NOISE = 0.1


def is_eligible(campaign: CampaignStats, assigned: set[str]) -> bool:
    return (
        campaign.status == CampaignStatus.ACTIVE
        and campaign.data_source == DataSource.MOCK
        and campaign.campaign_id in assigned
    )


def step_campaign(campaign: CampaignStats, rng: random.Random, default_cpc: float) -> CampaignStats:
    """One random-walk step; all derived metrics are recomputed afterwards."""
    new_impressions = rng.randint(*IMPRESSIONS_STEP)
    new_clicks = rng.randint(*CLICKS_STEP) if rng.random() < CLICK_PROBABILITY else 0
    new_conversions = 1 if rng.random() < CONVERSION_PROBABILITY else 0

    cpc = campaign.cpc if campaign.cpc > 0 else default_cpc
    noise = 1 + rng.uniform(-SPEND_NOISE, SPEND_NOISE)
    added_spend = max(new_clicks * cpc * noise, 0.0)

    impressions = campaign.impressions + new_impressions
    clicks = min(campaign.clicks + new_clicks, impressions)
    return recompute(
        campaign,
        impressions=impressions,
        clicks=clicks,
        conversions=min(campaign.conversions + new_conversions, clicks),
        spend=campaign.spend + added_spend,
    )


def pulse_tick(
    clients: list[Client],
    campaigns: list[CampaignStats],
    rng: Optional[random.Random] = None,
    default_cpc: Optional[float] = None,
) -> tuple[list[CampaignStats], int]:
    """Return the next campaign list and how many campaigns moved."""
    rng = rng or random.Random()
    if default_cpc is None:
        default_cpc = get_settings().default_cpc
    assigned = assigned_campaign_ids(clients)

    moved = 0
    result = []
    for campaign in campaigns:
        if is_eligible(campaign, assigned):
            campaign = step_campaign(campaign, rng, default_cpc)
            moved += 1
        result.append(campaign)
    return result, moved


class PulseSimulator:
    """
    Runs pulse ticks against the repository. The new list replaces the cache in
    one set; the campaigns collection is persisted every ``persist_every`` ticks.
    """

    def __init__(self, repo, rng: Optional[random.Random] = None, persist_every: int = 12):
        self.repo = repo
        self.rng = rng or random.Random()
        self.persist_every = max(persist_every, 1)
        self.ticks = 0

    async def tick(self) -> int:
        await apply_reconciliation(self.repo, rng=self.rng)
        campaigns, moved = pulse_tick(self.repo.clients, self.repo.campaigns, rng=self.rng)
        self.repo.set_campaigns(campaigns)
        self.ticks += 1
        if moved and self.ticks % self.persist_every == 0:
            await self.repo.save("campaigns")
        logger.debug(f"Pulse tick {self.ticks}: {moved} campaign(s) moved")
        return moved

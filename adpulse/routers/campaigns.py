"""
Campaigns Router — campaign listing, 30-day insight history and sync triggers.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from adpulse.auth import Viewer, get_viewer
from adpulse.deps import get_repo, get_scheduler, get_sync_engine, get_vault
from adpulse.errors import ConnectivityError, MetaAPIError, SyncFailedError
from adpulse.meta_client import create_meta_client
from adpulse.schemas import DataSource, SecretType, SyncTrigger
from adpulse.services.dashboard_service import campaign_listing
from adpulse.services.metrics_service import count_conversions
from adpulse.services.repository import CampaignRepository
from adpulse.services.scheduler import Scheduler
from adpulse.services.secret_vault import SecretVault
from adpulse.services.sync_engine import LiveSyncEngine, SyncOptions

logger = logging.getLogger(__name__)

router = APIRouter()

CLIENT_TRIGGERS = {SyncTrigger.CLIENT_TICK, SyncTrigger.NAVIGATION}


class SyncRequest(BaseModel):
    force: bool = False
    trigger: SyncTrigger = SyncTrigger.MANUAL
    scope_client_id: Optional[str] = None
    active_client_id: Optional[str] = None


@router.get("")
async def list_campaigns(
    search: str = "",
    client_id: Optional[str] = Query(None),
    repo: CampaignRepository = Depends(get_repo),
    viewer: Viewer = Depends(get_viewer),
):
    """Cached campaigns joined with their owning client. Client viewers see their own only."""
    if not viewer.is_admin:
        client_id = viewer.client_id
    return campaign_listing(repo.clients, repo.campaigns, search=search, client_id=client_id)


@router.get("/sync/status")
async def sync_status(
    engine: LiveSyncEngine = Depends(get_sync_engine),
    scheduler: Scheduler = Depends(get_scheduler),
):
    """Engine state plus the background jobs driving it."""
    return {**engine.status(), "scheduler": scheduler.status()}


@router.post("/sync")
async def trigger_sync(
    payload: SyncRequest,
    engine: LiveSyncEngine = Depends(get_sync_engine),
    repo: CampaignRepository = Depends(get_repo),
    viewer: Viewer = Depends(get_viewer),
):
    options = SyncOptions(
        force=payload.force,
        trigger=payload.trigger,
        scope_client_id=payload.scope_client_id,
        active_client_id=payload.active_client_id,
    )
    if not viewer.is_admin:
        if payload.trigger not in CLIENT_TRIGGERS:
            raise HTTPException(403, "Client viewers may only trigger client_tick or navigation syncs")
        options.force = False
        options.scope_client_id = viewer.client_id
        options.active_client_id = viewer.client_id

    try:
        outcome = await engine.sync(options)
    except SyncFailedError as e:
        await repo.record_activity("sync_forced", "campaigns", str(e), status="failed")
        raise HTTPException(502, {
            "message": str(e),
            "failures": [{"account_id": f.account_id, "error": f.message} for f in e.failures],
        })

    if payload.trigger == SyncTrigger.MANUAL and outcome.status == "completed":
        await repo.record_activity(
            "sync_forced", "campaigns",
            f"{len(outcome.updated)} campaign(s) updated, {len(outcome.failures)} account failure(s)",
            status="partial" if outcome.failures else "success",
        )
    return outcome.to_dict()


@router.get("/{campaign_id}/history")
async def campaign_history(
    campaign_id: str,
    repo: CampaignRepository = Depends(get_repo),
    vault: SecretVault = Depends(get_vault),
    engine: LiveSyncEngine = Depends(get_sync_engine),
    viewer: Viewer = Depends(get_viewer),
):
    """Daily spend/conversions for the last 30 days (live campaigns only)."""
    campaign = repo.get_campaign(campaign_id)
    if campaign is None:
        raise HTTPException(404, "Campaign not found")
    if not viewer.is_admin:
        client = repo.get_client(viewer.client_id)
        if client is None or campaign_id not in client.campaign_ids:
            raise HTTPException(403, "Not allowed to view this campaign")
    if campaign.data_source != DataSource.REAL_API:
        return {"campaign_id": campaign_id, "live": False, "history": []}

    token = vault.reveal_type(SecretType.FACEBOOK)
    if not token:
        raise HTTPException(400, "No FACEBOOK token stored")
    client = create_meta_client(token, http_client=engine.http_client, network=engine.network)
    try:
        rows = await client.campaign_insight_history(campaign_id)
    except (MetaAPIError, ConnectivityError) as e:
        raise HTTPException(502, f"Insight history unavailable: {e}")

    history = [
        {"date": row["date"], "spend": row["spend"], "conversions": count_conversions(row["actions"])}
        for row in rows
    ]
    return {"campaign_id": campaign_id, "live": True, "history": history}

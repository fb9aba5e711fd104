"""
Dashboard Router — admin overview and per-client dashboards.
"""

from fastapi import APIRouter, Depends, HTTPException

from adpulse.auth import Viewer, get_viewer, require_admin
from adpulse.deps import get_repo
from adpulse.services.dashboard_service import admin_overview, client_dashboard
from adpulse.services.repository import CampaignRepository

router = APIRouter()


@router.get("/overview")
async def overview(
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    return admin_overview(repo.clients, repo.campaigns)


@router.get("/clients/{client_id}")
async def client_view(
    client_id: str,
    repo: CampaignRepository = Depends(get_repo),
    viewer: Viewer = Depends(get_viewer),
):
    if not viewer.can_see(client_id):
        raise HTTPException(403, "Not allowed to view this client")
    client = repo.get_client(client_id)
    if client is None:
        raise HTTPException(404, "Client not found")
    return client_dashboard(client, repo.campaigns)

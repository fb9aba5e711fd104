"""
Activity Router — recent admin actions (client changes, links, secrets, forced syncs).
"""

from fastapi import APIRouter, Depends, Query

from adpulse.auth import Viewer, require_admin
from adpulse.deps import get_repo
from adpulse.services.repository import CampaignRepository

router = APIRouter()


@router.get("")
async def list_activity(
    limit: int = Query(50, ge=1, le=200),
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    return await repo.list_activity(limit)

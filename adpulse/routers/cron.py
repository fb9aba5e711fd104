"""
Cron / Scheduled Jobs — Endpoints for an external cron (e.g. Upstash QStash).

Useful when the in-process scheduler is disabled (BACKGROUND_SYNC_ENABLED /
PULSE_ENABLED = false), e.g. on hosts that sleep idle processes. Requests must
carry CRON_SECRET as X-Cron-Secret or Authorization: Bearer <CRON_SECRET>.
"""

import logging
from fastapi import APIRouter, Depends, Header, HTTPException

from adpulse.config import get_settings
from adpulse.deps import get_pulse, get_sync_engine
from adpulse.schemas import SyncTrigger
from adpulse.services.pulse_service import PulseSimulator
from adpulse.services.sync_engine import LiveSyncEngine, SyncOptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


async def _require_cron_secret(
    x_cron_secret: str | None = Header(None, alias="X-Cron-Secret"),
    authorization: str | None = Header(None),
) -> None:
    """Verify request came from cron with valid secret."""
    secret = get_settings().cron_secret
    if not secret:
        raise HTTPException(500, "CRON_SECRET not configured")
    # Accept X-Cron-Secret header or Bearer token
    token = x_cron_secret
    if not token and authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
    if token != secret:
        raise HTTPException(401, "Invalid cron secret")


@router.post("/sync")
async def cron_sync(
    _: None = Depends(_require_cron_secret),
    engine: LiveSyncEngine = Depends(get_sync_engine),
):
    """
    Scheduled admin sync (throttled like the in-process admin tick):
    POST /api/cron/sync
    Header: X-Cron-Secret: <CRON_SECRET>
    """
    try:
        outcome = await engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK))
        logger.info(f"Cron sync finished: {outcome.status} {outcome.reason or ''}")
        return {"status": "ok", "result": outcome.to_dict()}
    except Exception as e:
        logger.exception("Cron sync failed")
        raise HTTPException(500, str(e))


@router.post("/pulse")
async def cron_pulse(
    _: None = Depends(_require_cron_secret),
    pulse: PulseSimulator = Depends(get_pulse),
):
    try:
        moved = await pulse.tick()
        return {"status": "ok", "moved": moved}
    except Exception as e:
        logger.exception("Cron pulse failed")
        raise HTTPException(500, str(e))

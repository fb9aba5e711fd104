"""
Accounts Router — ad accounts and campaigns offered when linking a client.
When the live Graph API call fails, demo accounts and campaigns are returned
so the linking flow stays usable; the response says so.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from adpulse.auth import Viewer, require_admin
from adpulse.deps import get_sync_engine, get_vault
from adpulse.errors import ConnectivityError, MetaAPIError
from adpulse.meta_client import create_meta_client
from adpulse.schemas import SecretType
from adpulse.services.secret_vault import SecretVault
from adpulse.services.sync_engine import LiveSyncEngine

logger = logging.getLogger(__name__)

router = APIRouter()

FALLBACK_ACCOUNTS = [
    {"id": "act_12345678", "name": "Elite Fitness Pro (Mock)", "currency": "USD"},
    {"id": "act_87654321", "name": "Bloom Boutique FR (Mock)", "currency": "EUR"},
    {"id": "act_11223344", "name": "Global Tech Store (Mock)", "currency": "USD"},
]

FALLBACK_CAMPAIGNS = {
    "act_12345678": [
        {"id": "cp_1", "name": "Spring Sale - Fitness", "status": "ACTIVE", "account_id": "act_12345678"},
        {"id": "cp_101", "name": "Winter Warmup", "status": "PAUSED", "account_id": "act_12345678"},
    ],
    "act_87654321": [
        {"id": "cp_2", "name": "Remarketing - Bloom", "status": "ACTIVE", "account_id": "act_87654321"},
        {"id": "cp_3", "name": "Cold Interest - Bloom", "status": "ACTIVE", "account_id": "act_87654321"},
    ],
}


class CampaignsRequest(BaseModel):
    account_ids: list[str]


def _client_for(vault: SecretVault, engine: LiveSyncEngine):
    token = vault.reveal_type(SecretType.FACEBOOK)
    if not token:
        return None
    return create_meta_client(token, http_client=engine.http_client, network=engine.network)


@router.get("")
async def list_accounts(
    vault: SecretVault = Depends(get_vault),
    engine: LiveSyncEngine = Depends(get_sync_engine),
    _: Viewer = Depends(require_admin),
):
    client = _client_for(vault, engine)
    if client is None:
        return {"accounts": FALLBACK_ACCOUNTS, "live": False, "error": "No FACEBOOK token stored"}
    try:
        return {"accounts": await client.list_ad_accounts(), "live": True}
    except (MetaAPIError, ConnectivityError) as e:
        logger.warning(f"Falling back to demo accounts: {e}")
        return {"accounts": FALLBACK_ACCOUNTS, "live": False, "error": str(e)}


@router.post("/campaigns")
async def list_account_campaigns(
    payload: CampaignsRequest,
    vault: SecretVault = Depends(get_vault),
    engine: LiveSyncEngine = Depends(get_sync_engine),
    _: Viewer = Depends(require_admin),
):
    if not payload.account_ids:
        raise HTTPException(400, "Select at least one ad account first")

    client = _client_for(vault, engine)
    campaigns = []
    errors = []
    for account_id in dict.fromkeys(payload.account_ids):
        if client is not None:
            try:
                campaigns.extend(await client.list_campaigns(account_id))
                continue
            except (MetaAPIError, ConnectivityError) as e:
                logger.error(f"Failed to fetch campaigns for {account_id}: {e}")
                errors.append({"account_id": account_id, "error": str(e)})
        campaigns.extend(FALLBACK_CAMPAIGNS.get(account_id, []))
    return {"campaigns": campaigns, "errors": errors}

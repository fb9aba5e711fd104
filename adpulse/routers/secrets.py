"""
Secrets Router — integration secrets (ads-platform token, AI key).
Plaintext is accepted on write and never returned; listings are masked.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from adpulse.auth import Viewer, require_admin
from adpulse.deps import get_repo, get_vault
from adpulse.errors import CredentialError
from adpulse.schemas import SecretType
from adpulse.services.repository import CampaignRepository
from adpulse.services.secret_vault import SecretVault, mask

logger = logging.getLogger(__name__)

router = APIRouter()


class SecretUpdate(BaseModel):
    value: str


@router.get("")
async def list_secrets(
    vault: SecretVault = Depends(get_vault),
    _: Viewer = Depends(require_admin),
):
    return vault.describe()


@router.put("/{secret_type}")
async def save_secret(
    secret_type: SecretType,
    payload: SecretUpdate,
    vault: SecretVault = Depends(get_vault),
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    try:
        secret = await vault.store(secret_type, payload.value)
    except CredentialError as e:
        raise HTTPException(400, str(e))
    await repo.record_activity("secret_saved", "secret", f"Saved {secret_type.value} secret")
    return {
        "type": secret.type.value,
        "masked": mask(payload.value.strip()),
        "status": secret.status.value,
        "updated_at": secret.updated_at,
    }


@router.post("/{secret_type}/test")
async def test_secret(
    secret_type: SecretType,
    vault: SecretVault = Depends(get_vault),
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    if vault.get(secret_type) is None:
        raise HTTPException(404, f"No {secret_type.value} secret stored")
    try:
        if secret_type == SecretType.FACEBOOK:
            result = await vault.test_facebook()
        elif secret_type == SecretType.AI:
            result = await vault.test_ai()
        else:
            raise HTTPException(400, f"{secret_type.value} secrets cannot be tested")
    except CredentialError as e:
        await repo.record_activity("secret_tested", "secret", f"{secret_type.value}: {e}", status="failed")
        raise HTTPException(400, str(e))

    await repo.record_activity("secret_tested", "secret", f"{secret_type.value} secret is valid")
    return {"type": secret_type.value, "status": vault.get(secret_type).status.value, "result": result}

"""
AI Router — audit reports, chat, budget forecast, anomaly alerts and ad copy.
The assistant is given reconciled campaigns only: the viewer's own for a
client, every linked campaign for the admin.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from adpulse.auth import Viewer, get_viewer
from adpulse.deps import get_repo, get_vault
from adpulse.schemas import CampaignStats, SecretType
from adpulse.services.ai_service import AIService, create_ai_service
from adpulse.services.dashboard_service import client_campaigns, linked_campaigns
from adpulse.services.repository import CampaignRepository
from adpulse.services.secret_vault import SecretVault
from adpulse.utils import safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request Models ────────────────────────────────────────────────────

class AIRequest(BaseModel):
    client_id: Optional[str] = None  # Narrow the admin's context to one client
    model_id: Optional[str] = None  # Override default LLM for this request


class ChatRequest(AIRequest):
    message: str
    history: list[dict] = []


class ForecastRequest(AIRequest):
    spend_increase_pct: float = 20.0


# ── Helpers ───────────────────────────────────────────────────────────

def _campaigns_for(repo: CampaignRepository, viewer: Viewer, client_id: Optional[str]) -> list[CampaignStats]:
    target = client_id if viewer.is_admin else viewer.client_id
    if target:
        client = repo.get_client(target)
        if client is None:
            raise HTTPException(404, "Client not found")
        return client_campaigns(client, repo.campaigns)
    return linked_campaigns(repo.clients, repo.campaigns)


def _service(vault: SecretVault, model_id: Optional[str]) -> AIService:
    try:
        return create_ai_service(model_id=model_id, api_key=vault.reveal_type(SecretType.AI) or None)
    except ValueError as e:
        raise HTTPException(400, str(e))


# ── Endpoints ─────────────────────────────────────────────────────────

@router.post("/report")
async def generate_report(
    payload: AIRequest,
    repo: CampaignRepository = Depends(get_repo),
    vault: SecretVault = Depends(get_vault),
    viewer: Viewer = Depends(get_viewer),
):
    campaigns = _campaigns_for(repo, viewer, payload.client_id)
    ai = _service(vault, payload.model_id)
    try:
        report = await ai.generate_report(campaigns)
    except Exception as e:
        raise HTTPException(502, safe_error_detail(e, "AI report generation failed."))
    return {"report": report, "campaign_count": len(campaigns)}


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    repo: CampaignRepository = Depends(get_repo),
    vault: SecretVault = Depends(get_vault),
    viewer: Viewer = Depends(get_viewer),
):
    if not payload.message.strip():
        raise HTTPException(400, "Message cannot be empty")
    campaigns = _campaigns_for(repo, viewer, payload.client_id)
    ai = _service(vault, payload.model_id)
    try:
        return await ai.chat(payload.message, payload.history, campaigns=campaigns)
    except Exception as e:
        raise HTTPException(502, safe_error_detail(e, "AI chat failed."))


@router.post("/forecast")
async def forecast(
    payload: ForecastRequest,
    repo: CampaignRepository = Depends(get_repo),
    vault: SecretVault = Depends(get_vault),
    viewer: Viewer = Depends(get_viewer),
):
    campaigns = _campaigns_for(repo, viewer, payload.client_id)
    ai = _service(vault, payload.model_id)
    try:
        return {"forecast": await ai.forecast_budget(campaigns, payload.spend_increase_pct)}
    except Exception as e:
        raise HTTPException(502, safe_error_detail(e, "AI forecast failed."))


@router.post("/anomalies")
async def anomalies(
    payload: AIRequest,
    repo: CampaignRepository = Depends(get_repo),
    vault: SecretVault = Depends(get_vault),
    viewer: Viewer = Depends(get_viewer),
):
    campaigns = _campaigns_for(repo, viewer, payload.client_id)
    ai = _service(vault, payload.model_id)
    try:
        return await ai.detect_anomalies(campaigns)
    except Exception as e:
        raise HTTPException(502, safe_error_detail(e, "AI anomaly detection failed."))


@router.post("/copywriting")
async def copywriting(
    payload: AIRequest,
    repo: CampaignRepository = Depends(get_repo),
    vault: SecretVault = Depends(get_vault),
    viewer: Viewer = Depends(get_viewer),
):
    campaigns = _campaigns_for(repo, viewer, payload.client_id)
    ai = _service(vault, payload.model_id)
    try:
        return {"suggestions": await ai.suggest_copy(campaigns)}
    except Exception as e:
        raise HTTPException(502, safe_error_detail(e, "AI copywriting failed."))

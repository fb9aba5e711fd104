"""
Clients Router — client CRUD and the assignment graph
(client → ad accounts → campaign ids).

Every change to assignments reruns the reconciler so newly linked campaigns get
a placeholder record right away.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from adpulse.auth import Viewer, get_viewer, require_admin
from adpulse.deps import get_repo
from adpulse.errors import AssignmentConflictError
from adpulse.schemas import Client
from adpulse.services.reconciler import apply_reconciliation, owners_by_campaign
from adpulse.services.repository import CLIENTS, CampaignRepository

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Schemas ──────────────────────────────────────────────────────────
class ClientCreate(BaseModel):
    name: str
    email: str = ""
    ad_accounts: list[str] = []
    campaign_ids: list[str] = []


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class LinksUpdate(BaseModel):
    ad_accounts: list[str]
    campaign_ids: list[str]


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def check_assignment(clients: list[Client], client_id: Optional[str], campaign_ids: list[str]) -> None:
    """Raise AssignmentConflictError when a campaign id already belongs to another client."""
    owners = owners_by_campaign(clients)
    taken = [
        cid for cid in campaign_ids
        if any(owner.id != client_id for owner in owners.get(cid, []))
    ]
    if taken:
        raise AssignmentConflictError(taken)


def _get_or_404(repo: CampaignRepository, client_id: str) -> Client:
    client = repo.get_client(client_id)
    if client is None:
        raise HTTPException(404, "Client not found")
    return client


# ── Endpoints ────────────────────────────────────────────────────────
@router.get("")
async def list_clients(
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    return [c.model_dump(mode="json") for c in repo.clients]


@router.post("", status_code=201)
async def create_client(
    payload: ClientCreate,
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    name = payload.name.strip()
    if not name:
        raise HTTPException(400, "Client name is required")
    campaign_ids = _dedupe(payload.campaign_ids)
    try:
        check_assignment(repo.clients, None, campaign_ids)
    except AssignmentConflictError as e:
        raise HTTPException(409, str(e))

    client = Client(
        name=name,
        email=payload.email.strip(),
        ad_accounts=_dedupe(payload.ad_accounts),
        campaign_ids=campaign_ids,
    )
    await repo.save(CLIENTS, [*repo.clients, client])
    await apply_reconciliation(repo)
    await repo.record_activity("client_created", "client", f"Created client {client.name}")
    return client.model_dump(mode="json")


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    repo: CampaignRepository = Depends(get_repo),
    viewer: Viewer = Depends(get_viewer),
):
    if not viewer.can_see(client_id):
        raise HTTPException(403, "Not allowed to view this client")
    return _get_or_404(repo, client_id).model_dump(mode="json")


@router.patch("/{client_id}")
async def update_client(
    client_id: str,
    payload: ClientUpdate,
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    client = _get_or_404(repo, client_id)
    changes = payload.model_dump(exclude_none=True)
    if "name" in changes and not changes["name"].strip():
        raise HTTPException(400, "Client name cannot be empty")
    updated = client.model_copy(update=changes)
    await repo.save(CLIENTS, [updated if c.id == client_id else c for c in repo.clients])
    return updated.model_dump(mode="json")


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    """Remove a client. Its campaigns stay cached but stop simulating and syncing."""
    client = _get_or_404(repo, client_id)
    await repo.save(CLIENTS, [c for c in repo.clients if c.id != client_id])
    await repo.record_activity("client_deleted", "client", f"Deleted client {client.name}")
    return {"status": "deleted", "id": client_id}


@router.put("/{client_id}/links")
async def update_links(
    client_id: str,
    payload: LinksUpdate,
    repo: CampaignRepository = Depends(get_repo),
    _: Viewer = Depends(require_admin),
):
    """Replace a client's ad accounts and campaign ids, then provision placeholders."""
    client = _get_or_404(repo, client_id)
    campaign_ids = _dedupe(payload.campaign_ids)
    try:
        check_assignment(repo.clients, client_id, campaign_ids)
    except AssignmentConflictError as e:
        raise HTTPException(409, str(e))

    updated = client.model_copy(update={
        "ad_accounts": _dedupe(payload.ad_accounts),
        "campaign_ids": campaign_ids,
    })
    await repo.save(CLIENTS, [updated if c.id == client_id else c for c in repo.clients])
    created = await apply_reconciliation(repo)
    await repo.record_activity(
        "campaigns_linked", "client",
        f"Linked {len(campaign_ids)} campaign(s) to {updated.name}",
    )
    return {
        "client": updated.model_dump(mode="json"),
        "provisioned": [c.campaign_id for c in created],
    }

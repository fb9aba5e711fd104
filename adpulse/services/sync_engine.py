"""
Live Sync Engine — pulls lifetime campaign insights from the Graph API and
merges them into the campaign cache.

The network phase is the only place a sync suspends. The merge reads the
current collection after all fetches complete and replaces it in one step, so
pulse ticks and reconciler inserts that happened in between are kept.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from adpulse.config import get_settings
from adpulse.errors import ConnectivityError, MetaAPIError, PartialFetchFailure, SyncFailedError
from adpulse.meta_client import ExternalCampaign, NetworkStatus, create_meta_client
from adpulse.schemas import CampaignStats, CampaignStatus, Client, DataSource, SecretStatus, SecretType, SyncTrigger
from adpulse.services.metrics_service import build_stats, count_conversions
from adpulse.services.reconciler import apply_reconciliation
from adpulse.services.repository import CAMPAIGNS, upsert_campaigns
from adpulse.utils import utcnow

logger = logging.getLogger(__name__)

SKIP_IN_PROGRESS = "in_progress"
SKIP_OFFLINE = "offline"
SKIP_THROTTLED = "throttled"
SKIP_MISSING_CREDENTIAL = "missing_credential"

_PAUSED_STATUSES = {"PAUSED", "CAMPAIGN_PAUSED", "ADSET_PAUSED"}


def map_status(external_status: str) -> CampaignStatus:
    status = (external_status or "").upper()
    if status == "ACTIVE":
        return CampaignStatus.ACTIVE
    if status in _PAUSED_STATUSES:
        return CampaignStatus.PAUSED
    return CampaignStatus.ARCHIVED


def to_campaign_stats(external: ExternalCampaign, currency: Optional[str] = None) -> CampaignStats:
    """Normalize one external campaign into a REAL_API record, in its account's currency."""
    raw = {
        "spend": external.spend,
        "impressions": external.impressions,
        "clicks": external.clicks,
        "reach": external.reach,
        "frequency": external.frequency,
        "conversions": count_conversions(external.actions),
    }
    return build_stats(
        raw,
        campaign_id=external.id,
        name=external.name,
        currency=currency or external.currency,
        account_id=external.account_id,
        status=map_status(external.status),
        data_source=DataSource.REAL_API,
        is_validated=True,
    )


def order_clients(
    clients: list[Client],
    active_client_id: Optional[str] = None,
    scope_client_id: Optional[str] = None,
    trigger: SyncTrigger = SyncTrigger.MANUAL,
) -> list[Client]:
    """Active client first; a scope narrows the run except on background ticks."""
    ordered = sorted(clients, key=lambda c: c.id != active_client_id) if active_client_id else list(clients)
    if scope_client_id and not trigger.is_background:
        ordered = [c for c in ordered if c.id == scope_client_id]
    return ordered


@dataclass
class SyncOptions:
    force: bool = False
    scope_client_id: Optional[str] = None
    active_client_id: Optional[str] = None
    trigger: SyncTrigger = SyncTrigger.MANUAL


@dataclass
class SyncOutcome:
    status: str  # "completed" | "skipped"
    reason: Optional[str] = None
    updated: list[str] = field(default_factory=list)
    failures: list[PartialFetchFailure] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: utcnow().isoformat())
    finished_at: Optional[str] = None
    accounts: int = 0

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "reason": self.reason,
            "updated": self.updated,
            "updated_count": len(self.updated),
            "accounts": self.accounts,
            "failures": [
                {"account_id": f.account_id, "client_id": f.client_id, "error": f.message}
                for f in self.failures
            ],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class LiveSyncEngine:
    def __init__(self, repo, vault, network: Optional[NetworkStatus] = None, http_client=None, clock=time.monotonic):
        self.repo = repo
        self.vault = vault
        self.network = network or NetworkStatus()
        self.http_client = http_client
        self.clock = clock
        self.running = False
        self.last_success: Optional[float] = None
        self.last_success_at: Optional[str] = None
        self.last_outcome: Optional[SyncOutcome] = None

    def _min_interval(self, trigger: SyncTrigger) -> int:
        settings = get_settings()
        if trigger == SyncTrigger.CLIENT_TICK:
            return settings.client_sync_interval_seconds
        return settings.admin_sync_interval_seconds

    def _throttled(self, trigger: SyncTrigger) -> bool:
        if self.last_success is None:
            return False
        return self.clock() - self.last_success < self._min_interval(trigger)

    def _token(self) -> str:
        secret = self.vault.get(SecretType.FACEBOOK)
        if secret is None or secret.status != SecretStatus.VALID:
            return ""
        return self.vault.reveal(secret).strip()

    def _skip(self, reason: str) -> SyncOutcome:
        logger.debug(f"Sync skipped: {reason}")
        return SyncOutcome(status="skipped", reason=reason, finished_at=utcnow().isoformat())

    async def sync(self, options: Optional[SyncOptions] = None) -> SyncOutcome:
        options = options or SyncOptions()
        settings = get_settings()

        if self.running:
            return self._skip(SKIP_IN_PROGRESS)
        if not self.network.available(settings.offline_retry_seconds):
            return self._skip(SKIP_OFFLINE)
        if not options.force and self._throttled(options.trigger):
            return self._skip(SKIP_THROTTLED)
        token = self._token()
        if not token:
            return self._skip(SKIP_MISSING_CREDENTIAL)

        self.running = True
        try:
            outcome = await self._run(token, options)
        finally:
            self.running = False
        self.last_outcome = outcome

        if (
            options.trigger == SyncTrigger.MANUAL
            and options.force
            and outcome.failures
            and not outcome.updated
            and len(outcome.failures) == outcome.accounts
        ):
            raise SyncFailedError(outcome.failures)
        return outcome

    async def _fetch(self, client, clients: list[Client], outcome: SyncOutcome) -> list[CampaignStats]:
        """Fetch every linked account; one account failing never stops the others."""
        fetched: list[CampaignStats] = []
        for owner in clients:
            wanted = set(owner.campaign_ids)
            if not wanted:
                continue
            for account_id in owner.ad_accounts:
                outcome.accounts += 1
                try:
                    externals = await client.list_campaigns_with_insights(account_id)
                    stats = [
                        to_campaign_stats(external)
                        for external in externals
                        if external.id in wanted and not external.is_deleted
                    ]
                except ConnectivityError as e:
                    # Unreachable: NetworkStatus now gates the next attempts
                    logger.warning(f"Sync aborted, ads platform unreachable: {e}")
                    outcome.failures.append(PartialFetchFailure(account_id, owner.id, str(e)))
                    return fetched
                except MetaAPIError as e:
                    logger.warning(f"Sync failed for account {account_id} (client {owner.id}): {e}")
                    outcome.failures.append(PartialFetchFailure(account_id, owner.id, str(e)))
                    continue
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    logger.exception(f"Unreadable campaigns for account {account_id} (client {owner.id})")
                    outcome.failures.append(PartialFetchFailure(account_id, owner.id, f"Malformed response: {e}"))
                    continue
                fetched.extend(stats)
        return fetched

    async def _run(self, token: str, options: SyncOptions) -> SyncOutcome:
        outcome = SyncOutcome(status="completed")
        client = create_meta_client(token, http_client=self.http_client, network=self.network)
        clients = order_clients(
            self.repo.clients,
            active_client_id=options.active_client_id,
            scope_client_id=options.scope_client_id,
            trigger=options.trigger,
        )

        fetched = await self._fetch(client, clients, outcome)

        if fetched:
            # Read the collection as it is now, after every await above
            merged = upsert_campaigns(self.repo.campaigns, fetched)
            self.repo.set_campaigns(merged)
            await self.repo.save(CAMPAIGNS)
            outcome.updated = list(dict.fromkeys(c.campaign_id for c in fetched))
            await apply_reconciliation(self.repo)

        if fetched or not outcome.failures:
            self.last_success = self.clock()
            self.last_success_at = utcnow().isoformat()

        outcome.finished_at = utcnow().isoformat()
        logger.info(
            f"Sync ({options.trigger.value}) finished: {len(outcome.updated)} campaign(s) updated, "
            f"{len(outcome.failures)} of {outcome.accounts} account(s) failed"
        )
        return outcome

    def status(self) -> dict:
        return {
            "running": self.running,
            "online": self.network.online,
            "last_success_at": self.last_success_at,
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
        }

"""
AdPulse — FastAPI Backend
Marketing-agency dashboard: clients, linked Meta ad campaigns, derived metrics,
live Graph API sync and an AI assistant.
Collections are held in memory, snapshotted locally and backed up to PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adpulse.auth import require_auth
from adpulse.cache import LocalCache
from adpulse.config import get_settings
from adpulse.database import check_db_connection, init_db
from adpulse.meta_client import NetworkStatus
from adpulse.routers import accounts, activity, ai, campaigns, clients, cron, dashboard, exchange, secrets
from adpulse.schemas import SyncTrigger
from adpulse.services.exchange_service import ExchangeService
from adpulse.services.pulse_service import PulseSimulator
from adpulse.services.reconciler import apply_reconciliation
from adpulse.services.repository import CampaignRepository
from adpulse.services.scheduler import Scheduler
from adpulse.services.secret_vault import SecretVault
from adpulse.services.sync_engine import LiveSyncEngine, SyncOptions
from adpulse.store import SqlDocumentStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


def build_services(app: FastAPI, repo: CampaignRepository, http_client=None) -> None:
    """Wire the services around ``repo`` and attach them to ``app.state``."""
    network = NetworkStatus()
    vault = SecretVault(repo, http_client=http_client, network=network)
    engine = LiveSyncEngine(repo, vault, network=network, http_client=http_client)
    pulse = PulseSimulator(repo)

    scheduler = Scheduler()
    if settings.background_sync_enabled:
        scheduler.add(
            "admin_sync",
            settings.admin_sync_interval_seconds,
            lambda: engine.sync(SyncOptions(trigger=SyncTrigger.ADMIN_TICK)),
            run_immediately=True,
        )
    if settings.pulse_enabled:
        scheduler.add("pulse", settings.pulse_interval_seconds, pulse.tick)

    app.state.repo = repo
    app.state.vault = vault
    app.state.sync_engine = engine
    app.state.pulse = pulse
    app.state.scheduler = scheduler
    app.state.exchange = ExchangeService(http_client=http_client)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting AdPulse...")
    try:
        await init_db()
        logger.info("Database initialized — all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Keep going: the repository falls back to the local snapshot

    repo = CampaignRepository(SqlDocumentStore(), LocalCache(settings.local_cache_path))
    await repo.load()
    await apply_reconciliation(repo)
    build_services(app, repo)
    app.state.scheduler.start()
    yield
    logger.info("Shutting down...")
    await app.state.scheduler.stop()
    await repo.flush()


app = FastAPI(
    title="AdPulse",
    description="Agency dashboard for Meta ads with live sync and derived analytics",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register Routers (all require auth) ──────────────────────────────
_auth = [Depends(require_auth)]
app.include_router(clients.router, prefix="/api/clients", tags=["Clients"], dependencies=_auth)
app.include_router(accounts.router, prefix="/api/accounts", tags=["Ad Accounts"], dependencies=_auth)
app.include_router(campaigns.router, prefix="/api/campaigns", tags=["Campaigns"], dependencies=_auth)
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"], dependencies=_auth)
app.include_router(secrets.router, prefix="/api/secrets", tags=["Secrets"], dependencies=_auth)
app.include_router(ai.router, prefix="/api/ai", tags=["AI Assistant"], dependencies=_auth)
app.include_router(exchange.router, prefix="/api/exchange-rates", tags=["Exchange Rates"], dependencies=_auth)
app.include_router(activity.router, prefix="/api/activity", tags=["Activity"], dependencies=_auth)
app.include_router(cron.router, prefix="/api")  # No auth, uses CRON_SECRET


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "AdPulse",
        "database": "connected" if db_ok else "disconnected",
    }

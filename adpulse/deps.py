"""
Request dependencies — services built in the lifespan and held on app.state.
"""

from fastapi import Request

from adpulse.services.exchange_service import ExchangeService
from adpulse.services.pulse_service import PulseSimulator
from adpulse.services.repository import CampaignRepository
from adpulse.services.scheduler import Scheduler
from adpulse.services.secret_vault import SecretVault
from adpulse.services.sync_engine import LiveSyncEngine


def get_repo(request: Request) -> CampaignRepository:
    return request.app.state.repo


def get_vault(request: Request) -> SecretVault:
    return request.app.state.vault


def get_sync_engine(request: Request) -> LiveSyncEngine:
    return request.app.state.sync_engine


def get_pulse(request: Request) -> PulseSimulator:
    return request.app.state.pulse


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_exchange(request: Request) -> ExchangeService:
    return request.app.state.exchange

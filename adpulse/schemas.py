"""
AdPulse — Domain schemas.
Clients, campaign stats and integration secrets as held in the in-memory
cache and written to the document store. `campaign_id` is the natural key
for campaigns; `id` is a local surrogate and is never used for joins.
"""

import enum
import uuid
from datetime import date as date_type
from typing import Optional
from pydantic import BaseModel, Field

from adpulse.utils import utcnow


def new_id() -> str:
    """Short surrogate id for locally created records."""
    return uuid.uuid4().hex[:12]


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class CampaignStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ARCHIVED = "ARCHIVED"


class DataSource(str, enum.Enum):
    MOCK = "MOCK"
    REAL_API = "REAL_API"


class SecretType(str, enum.Enum):
    FACEBOOK = "FACEBOOK"
    AI = "AI"
    DATABASE = "DATABASE"


class SecretStatus(str, enum.Enum):
    VALID = "VALID"
    INVALID = "INVALID"
    UNTESTED = "UNTESTED"


class SyncTrigger(str, enum.Enum):
    ADMIN_TICK = "admin_tick"
    CLIENT_TICK = "client_tick"
    NAVIGATION = "navigation"
    MANUAL = "manual"

    @property
    def is_background(self) -> bool:
        return self in (SyncTrigger.ADMIN_TICK, SyncTrigger.CLIENT_TICK)


# ══════════════════════════════════════════════════════════════════════
#  ENTITIES
# ══════════════════════════════════════════════════════════════════════

class Client(BaseModel):
    """An agency client. `campaign_ids` is the authoritative assignment."""
    id: str = Field(default_factory=new_id)
    name: str
    email: str = ""
    created_at: str = Field(default_factory=lambda: date_type.today().isoformat())
    ad_accounts: list[str] = Field(default_factory=list)
    campaign_ids: list[str] = Field(default_factory=list)


class CampaignStats(BaseModel):
    id: str = Field(default_factory=new_id)
    campaign_id: str
    name: str = ""
    date: str = Field(default_factory=lambda: date_type.today().isoformat())
    currency: str = "USD"
    account_id: Optional[str] = None

    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    reach: int = 0
    frequency: float = 0.0
    conversions: int = 0

    ctr: float = 0.0
    cpc: float = 0.0
    cpa: float = 0.0
    cpm: float = 0.0
    roas: float = 0.0

    status: CampaignStatus = CampaignStatus.ACTIVE
    data_source: DataSource = DataSource.MOCK
    last_sync: Optional[str] = None
    is_validated: bool = False


class IntegrationSecret(BaseModel):
    type: SecretType
    value: str  # reversibly encoded, see adpulse.crypto
    updated_at: str = Field(default_factory=lambda: utcnow().isoformat())
    status: SecretStatus = SecretStatus.UNTESTED
    last_tested_at: Optional[str] = None


class ActivityEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    timestamp: str = Field(default_factory=lambda: utcnow().isoformat())
    action: str
    resource: str
    description: str = ""
    status: str = "success"

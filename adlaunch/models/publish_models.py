"""ADLAUNCH — Publish Models.

Database tables for publish state plus the pydantic schemas that flow
through the orchestrator and API.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from sqlmodel import SQLModel, Field

# Placeholder id written while a publish attempt has not produced a real one
PENDING_ID = "pending"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PublishStatus(str, Enum):
    UNPUBLISHED = "unpublished"
    PUBLISHING = "publishing"
    ACTIVE = "active"
    PAUSED = "paused"
    ERROR = "error"


class PublishStage(str, Enum):
    VALIDATION = "validation"
    CAMPAIGN = "campaign"
    ADSET = "adset"
    ADS = "ads"


class RemoteStatus(str, Enum):
    """Status values understood by the Meta API."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class SyncState(str, Enum):
    """Per-object progress of a pause/resume fan-out."""

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class PublishJob(SQLModel, table=True):
    """One row per campaign, upserted on every publish attempt.

    Rows are never deleted; terminal states are only overwritten.
    """

    __tablename__ = "publish_jobs"

    campaign_id: str = Field(primary_key=True)
    status: str = Field(default=PublishStatus.UNPUBLISHED.value, index=True)
    external_campaign_id: Optional[str] = Field(default=None)
    external_adset_id: Optional[str] = Field(default=None)
    external_ad_ids_json: str = Field(default="[]", description="Ordered JSON list of ad ids")
    error_message: Optional[str] = Field(default=None)
    last_completed_stage: Optional[str] = Field(
        default=None, description="Last create stage confirmed by Meta"
    )
    remote_sync_json: Optional[str] = Field(
        default=None, description="Pause/resume per-object progress"
    )
    published_at: Optional[datetime] = Field(default=None)
    paused_at: Optional[datetime] = Field(default=None)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def external_ad_ids(self) -> List[str]:
        return json.loads(self.external_ad_ids_json or "[]")

    @property
    def remote_sync(self) -> Optional[Dict[str, Any]]:
        return json.loads(self.remote_sync_json) if self.remote_sync_json else None

    def has_remote_objects(self) -> bool:
        """True when campaign, ad set and at least one ad exist on Meta."""
        return (
            bool(self.external_campaign_id)
            and self.external_campaign_id != PENDING_ID
            and bool(self.external_adset_id)
            and self.external_adset_id != PENDING_ID
            and len(self.external_ad_ids) > 0
        )


class Campaign(SQLModel, table=True):
    """Owning campaign record. Only the publish mirror is written here."""

    __tablename__ = "campaigns"

    id: str = Field(primary_key=True)
    name: str = Field(default="")
    published_status: Optional[str] = Field(default=None, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class CampaignPublishConfig(SQLModel, table=True):
    """Opaque publish payload assembled by the campaign builder."""

    __tablename__ = "campaign_publish_config"

    campaign_id: str = Field(primary_key=True)
    publish_data: Optional[str] = Field(default=None, description="JSON {campaign, adset, ads[]}")
    updated_at: datetime = Field(default_factory=utc_now)


class CampaignMetaConnection(SQLModel, table=True):
    """Meta connection selected for a campaign. Read-only to publishing."""

    __tablename__ = "campaign_meta_connections"

    campaign_id: str = Field(primary_key=True)
    selected_ad_account_id: Optional[str] = Field(default=None)
    long_lived_user_token: Optional[str] = Field(default=None)
    token_expires_at: Optional[datetime] = Field(default=None)


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS
# ─────────────────────────────────────────────


class PublishConfig(BaseModel):
    """Snapshot of the stored publish payload for one attempt."""

    model_config = ConfigDict(frozen=True)

    campaign: Dict[str, Any]
    adset: Dict[str, Any]
    ads: List[Dict[str, Any]]


class ConnectionCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    ad_account_id: Optional[str] = None
    bearer_token: Optional[str] = None


class PublishResult(BaseModel):
    external_campaign_id: str
    external_adset_id: str
    external_ad_ids: List[str]
    publish_status: str = PublishStatus.ACTIVE.value


class PublishStatusSnapshot(BaseModel):
    publish_status: str
    external_campaign_id: Optional[str] = None
    external_adset_id: Optional[str] = None
    external_ad_ids: List[str] = []
    error_message: Optional[str] = None
    last_completed_stage: Optional[str] = None
    remote_sync: Optional[Dict[str, Any]] = None
    published_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    campaign_status: Optional[str] = None


class VerificationResult(BaseModel):
    success: bool
    campaign_exists: bool = False
    adset_exists: bool = False
    all_ads_exist: bool = False
    campaign_status: Optional[str] = None
    adset_status: Optional[str] = None
    ad_statuses: List[str] = []
    warnings: List[str] = []
    errors: List[str] = []

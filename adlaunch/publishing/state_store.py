"""ADLAUNCH — Publish State Store.

Durable publish status per campaign. ``publish_jobs`` is upserted by
campaign id and ``campaigns.published_status`` is mirrored in a separate
commit; the two writes are not atomic. Last writer wins.
"""

import json
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from adlaunch.core.logging import get_logger
from adlaunch.models.publish_models import (
    PENDING_ID,
    Campaign,
    PublishJob,
    PublishStatus,
    PublishStatusSnapshot,
    utc_now,
)

logger = get_logger("publishing.state")


class PublishStateStore:
    """Reads and writes ``publish_jobs`` and the campaign status mirror."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, campaign_id: str) -> Optional[PublishJob]:
        return self.session.get(PublishJob, campaign_id)

    def _upsert(self, campaign_id: str, **fields: Any) -> PublishJob:
        job = self.get(campaign_id) or PublishJob(campaign_id=campaign_id)
        for name, value in fields.items():
            setattr(job, name, value)
        job.updated_at = utc_now()
        self.session.add(job)
        self.session.commit()
        self.session.refresh(job)
        return job

    def _mirror_campaign_status(self, campaign_id: str, status: PublishStatus) -> None:
        campaign = self.session.get(Campaign, campaign_id)
        if campaign is None:
            logger.warning(f"No campaign row for {campaign_id}; status mirror skipped")
            return
        campaign.published_status = status.value
        campaign.updated_at = utc_now()
        self.session.add(campaign)
        self.session.commit()

    # ── Publish transitions ──

    def mark_publishing(self, campaign_id: str) -> PublishJob:
        """Placeholder row for a new attempt. Does not lock anything."""
        self._mirror_campaign_status(campaign_id, PublishStatus.PUBLISHING)
        return self._upsert(
            campaign_id,
            status=PublishStatus.PUBLISHING.value,
            external_campaign_id=PENDING_ID,
            external_adset_id=PENDING_ID,
            external_ad_ids_json="[]",
            error_message=None,
            last_completed_stage=None,
            remote_sync_json=None,
            published_at=None,
            paused_at=None,
        )

    def mark_active(
        self,
        campaign_id: str,
        external_campaign_id: str,
        external_adset_id: str,
        external_ad_ids: List[str],
        last_completed_stage: Optional[str] = None,
    ) -> PublishJob:
        now = utc_now()
        job = self._upsert(
            campaign_id,
            status=PublishStatus.ACTIVE.value,
            external_campaign_id=external_campaign_id,
            external_adset_id=external_adset_id,
            external_ad_ids_json=json.dumps(external_ad_ids),
            error_message=None,
            last_completed_stage=last_completed_stage,
            remote_sync_json=None,
            published_at=now,
            paused_at=None,
        )
        self._mirror_campaign_status(campaign_id, PublishStatus.ACTIVE)
        return job

    def mark_error(
        self,
        campaign_id: str,
        message: str,
        external_campaign_id: Optional[str] = None,
        external_adset_id: Optional[str] = None,
        external_ad_ids: Optional[List[str]] = None,
        last_completed_stage: Optional[str] = None,
    ) -> PublishJob:
        """Record a failed attempt with whatever Meta ids it produced."""
        job = self._upsert(
            campaign_id,
            status=PublishStatus.ERROR.value,
            external_campaign_id=external_campaign_id or PENDING_ID,
            external_adset_id=external_adset_id or PENDING_ID,
            external_ad_ids_json=json.dumps(external_ad_ids or []),
            error_message=message,
            last_completed_stage=last_completed_stage,
        )
        self._mirror_campaign_status(campaign_id, PublishStatus.ERROR)
        return job

    # ── Pause / resume ──

    def save_remote_sync(self, campaign_id: str, sync: Dict[str, Any]) -> PublishJob:
        return self._upsert(campaign_id, remote_sync_json=json.dumps(sync))

    def mark_remote_status(
        self, campaign_id: str, status: PublishStatus, sync: Dict[str, Any]
    ) -> PublishJob:
        job = self._upsert(
            campaign_id,
            status=status.value,
            paused_at=utc_now() if status == PublishStatus.PAUSED else None,
            remote_sync_json=json.dumps(sync),
        )
        self._mirror_campaign_status(campaign_id, status)
        return job

    # ── Reads ──

    def snapshot(self, campaign_id: str) -> Optional[PublishStatusSnapshot]:
        """Job joined with the campaign mirror; ``None`` if never published."""
        job = self.get(campaign_id)
        if job is None:
            return None
        campaign = self.session.get(Campaign, campaign_id)
        return PublishStatusSnapshot(
            publish_status=job.status or PublishStatus.UNPUBLISHED.value,
            external_campaign_id=job.external_campaign_id,
            external_adset_id=job.external_adset_id,
            external_ad_ids=job.external_ad_ids,
            error_message=job.error_message,
            last_completed_stage=job.last_completed_stage,
            remote_sync=job.remote_sync,
            published_at=job.published_at,
            paused_at=job.paused_at,
            campaign_status=campaign.published_status if campaign else None,
        )

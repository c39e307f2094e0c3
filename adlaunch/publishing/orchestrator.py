"""ADLAUNCH — Publish Orchestrator.

Drives the create pipeline on Meta:
  validate config → credential → Campaign → AdSet → Ads (in order) → persist

and the pause/resume lifecycle on the objects it created.

Every remote object is created PAUSED. A failure at any stage is recorded as
``error`` and re-raised; objects already created on Meta are left in place
and a new attempt always restarts from the campaign stage.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from adlaunch.connectors.meta.client import MetaClient
from adlaunch.core.errors import (
    ConfigurationError,
    ExternalAPIError,
    NotPublishedError,
    PlatformConnectionError,
)
from adlaunch.core.logging import get_logger
from adlaunch.core.publish_logger import LogSink, PublishLogger
from adlaunch.models.publish_models import (
    ConnectionCredential,
    PublishJob,
    PublishResult,
    PublishStage,
    PublishStatus,
    PublishStatusSnapshot,
    RemoteStatus,
    SyncState,
)
from adlaunch.publishing.payloads import (
    account_path,
    build_ad_payload,
    build_adset_payload,
    build_campaign_payload,
    parse_publish_config,
)
from adlaunch.publishing.state_store import PublishStateStore
from adlaunch.publishing.stores import ConfigStore, ConnectionStore

logger = get_logger("publishing.orchestrator")

UNKNOWN_PUBLISH_ERROR = "Unknown error while publishing campaign."


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _extract_id(response: Dict[str, Any], message: str) -> str:
    object_id = response.get("id")
    if not isinstance(object_id, str) or not object_id:
        raise ExternalAPIError(message)
    return object_id


class PublishOrchestrator:
    """Publishes one campaign to Meta and controls its remote status."""

    def __init__(
        self,
        client: MetaClient,
        state_store: PublishStateStore,
        config_store: ConfigStore,
        connection_store: ConnectionStore,
        sink: Optional[LogSink] = None,
    ):
        self.client = client
        self.state_store = state_store
        self.config_store = config_store
        self.connection_store = connection_store
        self.sink = sink

    def _logger_for(
        self, campaign_id: str, publish_logger: Optional[PublishLogger]
    ) -> PublishLogger:
        return publish_logger or PublishLogger(campaign_id, sink=self.sink)

    @staticmethod
    def _require_token(credential: Optional[ConnectionCredential], action: str) -> str:
        if credential is None:
            raise PlatformConnectionError(
                f"Meta connection not found. Please reconnect Meta before {action}."
            )
        if not credential.bearer_token:
            raise PlatformConnectionError(
                f"Missing long-lived Meta token. Please reconnect Meta before {action}."
            )
        return credential.bearer_token

    async def _post(
        self, plog: PublishLogger, token: str, path: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        plog.api_call(path, "POST", payload=payload)
        started = time.monotonic()
        try:
            response = await self.client.post(token, path, payload)
        except ExternalAPIError as e:
            plog.api_response(path, e.status_code, _elapsed_ms(started), error=str(e))
            raise
        plog.api_response(path, 200, _elapsed_ms(started))
        return response

    # ── Publish ──

    async def publish_campaign(
        self, campaign_id: str, publish_logger: Optional[PublishLogger] = None
    ) -> PublishResult:
        """Create Campaign → AdSet → Ads on Meta and persist the resulting ids."""
        plog = self._logger_for(campaign_id, publish_logger)

        plog.stage_start(PublishStage.VALIDATION.value)
        try:
            config = parse_publish_config(self.config_store.get_publish_config(campaign_id))
        except ConfigurationError as e:
            plog.validation_failure(e.details.get("field", "publish_config"), str(e))
            raise

        credential = self.connection_store.get_connection_with_token(campaign_id)
        try:
            token = self._require_token(credential, "publishing")
            act_id = account_path(credential.ad_account_id)
        except PlatformConnectionError as e:
            plog.validation_failure("connection", str(e))
            raise
        plog.stage_complete(PublishStage.VALIDATION.value, ad_count=len(config.ads))

        self.state_store.mark_publishing(campaign_id)

        stage = PublishStage.CAMPAIGN
        last_completed: Optional[PublishStage] = None
        external_campaign_id: Optional[str] = None
        external_adset_id: Optional[str] = None
        external_ad_ids: List[str] = []

        try:
            plog.stage_start(stage.value)
            response = await self._post(
                plog, token, f"{act_id}/campaigns", build_campaign_payload(config.campaign)
            )
            external_campaign_id = _extract_id(
                response, "Meta campaign creation did not return an ID."
            )
            plog.stage_complete(stage.value, external_campaign_id=external_campaign_id)
            last_completed = stage

            stage = PublishStage.ADSET
            plog.stage_start(stage.value)
            response = await self._post(
                plog,
                token,
                f"{act_id}/adsets",
                build_adset_payload(config.adset, external_campaign_id),
            )
            external_adset_id = _extract_id(response, "Meta ad set creation did not return an ID.")
            plog.stage_complete(stage.value, external_adset_id=external_adset_id)
            last_completed = stage

            stage = PublishStage.ADS
            plog.stage_start(stage.value, ad_count=len(config.ads))
            for index, ad in enumerate(config.ads):
                response = await self._post(
                    plog, token, f"{act_id}/ads", build_ad_payload(ad, external_adset_id)
                )
                external_ad_ids.append(
                    _extract_id(
                        response, f"Meta ad creation did not return an ID for ad index {index}."
                    )
                )
            plog.stage_complete(stage.value, external_ad_ids=external_ad_ids)
            last_completed = stage
        except Exception as exc:
            message = str(exc) or UNKNOWN_PUBLISH_ERROR
            plog.error(exc, stage.value)
            self.state_store.mark_error(
                campaign_id,
                message,
                external_campaign_id=external_campaign_id,
                external_adset_id=external_adset_id,
                external_ad_ids=external_ad_ids,
                last_completed_stage=last_completed.value if last_completed else None,
            )
            plog.publish_failure(stage.value, message, created_ad_count=len(external_ad_ids))
            raise

        self.state_store.mark_active(
            campaign_id,
            external_campaign_id,
            external_adset_id,
            external_ad_ids,
            last_completed_stage=last_completed.value,
        )
        plog.publish_success(external_campaign_id, external_adset_id, external_ad_ids)

        return PublishResult(
            external_campaign_id=external_campaign_id,
            external_adset_id=external_adset_id,
            external_ad_ids=external_ad_ids,
        )

    def get_publish_status(self, campaign_id: str) -> Optional[PublishStatusSnapshot]:
        return self.state_store.snapshot(campaign_id)

    # ── Pause / resume ──

    def _require_published(self, campaign_id: str) -> PublishJob:
        job = self.state_store.get(campaign_id)
        if (
            job is None
            or job.status not in (PublishStatus.ACTIVE.value, PublishStatus.PAUSED.value)
            or not job.has_remote_objects()
        ):
            raise NotPublishedError("Campaign has not been published yet.")
        return job

    @staticmethod
    def _sync_plan(job: PublishJob, target: RemoteStatus, done: PublishStatus) -> Dict[str, str]:
        """Per-object states for this fan-out.

        An unfinished fan-out toward the same target keeps its applied
        objects; everything else starts over as pending.
        """
        previous = job.remote_sync or {}
        carried: Dict[str, str] = {}
        if previous.get("target") == target.value and job.status != done.value:
            carried = previous.get("objects") or {}

        object_ids = [job.external_campaign_id, job.external_adset_id, *job.external_ad_ids]
        return {
            object_id: (
                SyncState.APPLIED.value
                if carried.get(object_id) == SyncState.APPLIED.value
                else SyncState.PENDING.value
            )
            for object_id in object_ids
        }

    async def _apply_status(
        self,
        plog: PublishLogger,
        token: str,
        object_id: str,
        target: RemoteStatus,
        objects: Dict[str, str],
    ) -> None:
        if objects.get(object_id) == SyncState.APPLIED.value:
            return
        try:
            await self._post(plog, token, object_id, {"status": target.value})
        except Exception:
            objects[object_id] = SyncState.FAILED.value
            raise
        objects[object_id] = SyncState.APPLIED.value

    async def _update_remote_status(
        self,
        campaign_id: str,
        target: RemoteStatus,
        publish_logger: Optional[PublishLogger],
    ) -> PublishStatusSnapshot:
        job = self._require_published(campaign_id)
        token = self._require_token(
            self.connection_store.get_connection_with_token(campaign_id), "updating status"
        )

        done = PublishStatus.PAUSED if target == RemoteStatus.PAUSED else PublishStatus.ACTIVE
        stage = "pause" if target == RemoteStatus.PAUSED else "resume"
        plog = self._logger_for(campaign_id, publish_logger)
        objects = self._sync_plan(job, target, done)
        sync = {"target": target.value, "objects": objects}

        plog.stage_start(stage, target=target.value)
        try:
            await self._apply_status(plog, token, job.external_campaign_id, target, objects)
            await self._apply_status(plog, token, job.external_adset_id, target, objects)
            results = await asyncio.gather(
                *(
                    self._apply_status(plog, token, ad_id, target, objects)
                    for ad_id in job.external_ad_ids
                ),
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, Exception)]
            if failures:
                raise failures[0]
        except Exception as exc:
            self.state_store.save_remote_sync(campaign_id, sync)
            plog.error(exc, stage, remote_sync=sync)
            raise

        self.state_store.mark_remote_status(campaign_id, done, sync)
        plog.stage_complete(stage, target=target.value, object_count=len(objects))
        return self.state_store.snapshot(campaign_id)

    async def pause_published_campaign(
        self, campaign_id: str, publish_logger: Optional[PublishLogger] = None
    ) -> PublishStatusSnapshot:
        return await self._update_remote_status(campaign_id, RemoteStatus.PAUSED, publish_logger)

    async def resume_published_campaign(
        self, campaign_id: str, publish_logger: Optional[PublishLogger] = None
    ) -> PublishStatusSnapshot:
        return await self._update_remote_status(campaign_id, RemoteStatus.ACTIVE, publish_logger)

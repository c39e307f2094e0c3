"""ADLAUNCH — Post-Publish Verifier.

Reads back every object a publish created and reports whether it exists on
Meta in the expected status. Read-only; nothing is persisted.
"""

from typing import Optional

from adlaunch.connectors.meta.client import MetaClient
from adlaunch.core.errors import NotPublishedError, PlatformConnectionError
from adlaunch.core.publish_logger import LogSink, PublishLogger
from adlaunch.models.publish_models import PublishStatus, RemoteStatus, VerificationResult
from adlaunch.publishing.state_store import PublishStateStore
from adlaunch.publishing.stores import ConnectionStore

VERIFY_FIELDS = ["id", "name", "status"]


class PostPublishVerifier:
    def __init__(
        self,
        client: MetaClient,
        state_store: PublishStateStore,
        connection_store: ConnectionStore,
        sink: Optional[LogSink] = None,
    ):
        self.client = client
        self.state_store = state_store
        self.connection_store = connection_store
        self.sink = sink

    async def verify(
        self, campaign_id: str, publish_logger: Optional[PublishLogger] = None
    ) -> VerificationResult:
        job = self.state_store.get(campaign_id)
        if (
            job is None
            or job.status not in (PublishStatus.ACTIVE.value, PublishStatus.PAUSED.value)
            or not job.has_remote_objects()
        ):
            raise NotPublishedError("Campaign has not been published yet.")

        credential = self.connection_store.get_connection_with_token(campaign_id)
        if credential is None or not credential.bearer_token:
            raise PlatformConnectionError("Meta connection not found")
        token = credential.bearer_token

        # Objects are created PAUSED and only go ACTIVE through a resume
        sync = job.remote_sync or {}
        expected = (
            RemoteStatus.ACTIVE.value
            if job.status == PublishStatus.ACTIVE.value
            and sync.get("target") == RemoteStatus.ACTIVE.value
            else RemoteStatus.PAUSED.value
        )

        plog = publish_logger or PublishLogger(campaign_id, sink=self.sink)
        plog.stage_start("verify", expected_status=expected)
        result = VerificationResult(success=False)

        try:
            campaign = await self.client.get_object(token, job.external_campaign_id, VERIFY_FIELDS)
            result.campaign_exists = bool(campaign.get("id"))
            result.campaign_status = campaign.get("status")
        except Exception as e:
            result.errors.append(f"Campaign verification failed: {e}")

        try:
            adset = await self.client.get_object(token, job.external_adset_id, VERIFY_FIELDS)
            result.adset_exists = bool(adset.get("id"))
            result.adset_status = adset.get("status")
        except Exception as e:
            result.errors.append(f"AdSet verification failed: {e}")

        result.all_ads_exist = True
        ad_mismatches = []
        for position, ad_id in enumerate(job.external_ad_ids, start=1):
            try:
                ad = await self.client.get_object(token, ad_id, VERIFY_FIELDS)
            except Exception as e:
                result.all_ads_exist = False
                result.errors.append(f"Ad {ad_id} verification failed: {e}")
                continue
            if ad.get("id"):
                status = ad.get("status")
                if isinstance(status, str) and status:
                    result.ad_statuses.append(status)
                    if status != expected:
                        ad_mismatches.append(
                            f"Ad {position} status is {status}, expected {expected}"
                        )
                else:
                    result.warnings.append(f"Ad {ad_id} returned no status")
            else:
                result.all_ads_exist = False
                result.errors.append(f"Ad {ad_id} not found")

        if result.campaign_status and result.campaign_status != expected:
            result.warnings.append(
                f"Campaign status is {result.campaign_status}, expected {expected}"
            )
        if result.adset_status and result.adset_status != expected:
            result.warnings.append(f"AdSet status is {result.adset_status}, expected {expected}")
        result.warnings.extend(ad_mismatches)

        result.success = (
            result.campaign_exists
            and result.adset_exists
            and result.all_ads_exist
            and not result.errors
        )
        for warning in result.warnings:
            plog.warning(warning)
        plog.stage_complete(
            "verify", success=result.success, error_count=len(result.errors)
        )
        return result

"""ADLAUNCH — Publish API Routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from adlaunch.connectors.meta.client import MetaClient
from adlaunch.core.errors import (
    ConfigurationError,
    ExternalAPIError,
    NotPublishedError,
    PlatformConnectionError,
    PublishError,
)
from adlaunch.core.logging import get_logger
from adlaunch.core.publish_logger import PublishLogger
from adlaunch.database import get_session
from adlaunch.publishing.orchestrator import PublishOrchestrator
from adlaunch.publishing.state_store import PublishStateStore
from adlaunch.publishing.stores import SQLConfigStore, SQLConnectionStore
from adlaunch.publishing.verifier import PostPublishVerifier

logger = get_logger("api.publish")

router = APIRouter(prefix="/campaigns", tags=["Publish"])


async def get_meta_client():
    """Dependency — yields a Meta client closed after the request."""
    client = MetaClient()
    try:
        yield client
    finally:
        await client.close()


def get_orchestrator(
    session: Session = Depends(get_session),
    client: MetaClient = Depends(get_meta_client),
) -> PublishOrchestrator:
    return PublishOrchestrator(
        client=client,
        state_store=PublishStateStore(session),
        config_store=SQLConfigStore(session),
        connection_store=SQLConnectionStore(session),
    )


def get_verifier(
    session: Session = Depends(get_session),
    client: MetaClient = Depends(get_meta_client),
) -> PostPublishVerifier:
    return PostPublishVerifier(
        client=client,
        state_store=PublishStateStore(session),
        connection_store=SQLConnectionStore(session),
    )


def _to_http(e: PublishError) -> HTTPException:
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=422, detail=e.message)
    if isinstance(e, (PlatformConnectionError, NotPublishedError)):
        return HTTPException(status_code=409, detail=e.message)
    if isinstance(e, ExternalAPIError):
        classification = e.classify()
        return HTTPException(
            status_code=502,
            detail={
                "message": f"Meta API error: {e.message}",
                "code": classification.code,
                "category": classification.category,
                "severity": classification.severity,
                "recoverable": classification.recoverable,
                "user_message": classification.message.user_message,
                "suggested_action": classification.message.suggested_action,
                **e.diagnostics(),
            },
        )
    return HTTPException(status_code=500, detail=e.message)


@router.post("/{campaign_id}/publish")
async def publish_campaign(
    campaign_id: str,
    orchestrator: PublishOrchestrator = Depends(get_orchestrator),
):
    """Create the campaign, ad set and ads on Meta.

    Every object is created PAUSED. Returns the Meta ids and the stored
    publish status.
    """
    plog = PublishLogger(campaign_id)
    try:
        result = await orchestrator.publish_campaign(campaign_id, publish_logger=plog)
    except PublishError as e:
        raise _to_http(e)
    return {
        "status": "success",
        "correlation_id": plog.correlation_id,
        "publish_result": result,
        "publish_status": orchestrator.get_publish_status(campaign_id),
    }


@router.get("/{campaign_id}/publish-status")
async def get_publish_status(
    campaign_id: str,
    orchestrator: PublishOrchestrator = Depends(get_orchestrator),
):
    """Stored publish status joined with the campaign mirror."""
    snapshot = orchestrator.get_publish_status(campaign_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Campaign has not been published yet.")
    return {"status": "success", "publish_status": snapshot}


@router.post("/{campaign_id}/pause")
async def pause_campaign(
    campaign_id: str,
    orchestrator: PublishOrchestrator = Depends(get_orchestrator),
):
    try:
        snapshot = await orchestrator.pause_published_campaign(campaign_id)
    except PublishError as e:
        raise _to_http(e)
    return {"status": "success", "publish_status": snapshot}


@router.post("/{campaign_id}/resume")
async def resume_campaign(
    campaign_id: str,
    orchestrator: PublishOrchestrator = Depends(get_orchestrator),
):
    try:
        snapshot = await orchestrator.resume_published_campaign(campaign_id)
    except PublishError as e:
        raise _to_http(e)
    return {"status": "success", "publish_status": snapshot}


@router.get("/{campaign_id}/verify")
async def verify_campaign(
    campaign_id: str,
    verifier: PostPublishVerifier = Depends(get_verifier),
):
    """Read back the published objects from Meta and compare their status."""
    try:
        result = await verifier.verify(campaign_id)
    except PublishError as e:
        raise _to_http(e)
    return {"status": "success", "verification": result}

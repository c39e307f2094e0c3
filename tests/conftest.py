"""
Shared fixtures for publish tests.

Provides an in-memory SQLite database with the publish tables, seed helpers
for the campaign/config/connection rows the orchestrator reads, a fake Meta
API wired into an AsyncMock client, and a recording log sink.
"""

import json
import os
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite://")

from adlaunch.core.errors import ExternalAPIError
from adlaunch.models.publish_models import (
    Campaign,
    CampaignMetaConnection,
    CampaignPublishConfig,
)
from adlaunch.publishing.orchestrator import PublishOrchestrator
from adlaunch.publishing.state_store import PublishStateStore
from adlaunch.publishing.stores import SQLConfigStore, SQLConnectionStore

CAMPAIGN_ID = "campaign-1"
TOKEN = "EAABtoken1234567890"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db_session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def valid_config() -> Dict[str, Any]:
    return {
        "campaign": {"name": "C1", "objective": "OUTCOME_LEADS"},
        "adset": {"name": "AS1", "dailyBudget": 25},
        "ads": [{"name": "Ad1"}, {"name": "Ad2"}, {"name": "Ad3"}],
    }


@pytest.fixture
def seed_campaign(db_session, valid_config):
    """Factory writing the campaign, publish config and Meta connection rows."""

    def _seed(
        campaign_id: str = CAMPAIGN_ID,
        config: Optional[Any] = None,
        ad_account_id: Optional[str] = "act_123",
        token: Optional[str] = TOKEN,
        with_connection: bool = True,
    ) -> str:
        publish_data = valid_config if config is None else config
        db_session.add(Campaign(id=campaign_id, name="Test Campaign"))
        db_session.add(
            CampaignPublishConfig(
                campaign_id=campaign_id,
                publish_data=json.dumps(publish_data),
            )
        )
        if with_connection:
            db_session.add(
                CampaignMetaConnection(
                    campaign_id=campaign_id,
                    selected_ad_account_id=ad_account_id,
                    long_lived_user_token=token,
                )
            )
        db_session.commit()
        return campaign_id

    return _seed


# =============================================================================
# Meta API Fakes
# =============================================================================

class FakeMetaAPI:
    """In-memory stand-in for the Meta Graph API write endpoints.

    Create endpoints hand out sequential ids per object type. ``failures``
    maps an object id or a trailing path segment to the error to raise.
    """

    PREFIXES = {"campaigns": "cmp", "adsets": "as", "ads": "ad"}

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.missing_id: set = set()
        self._counters: Dict[str, int] = {}

    def _failure_for(self, path: str) -> Optional[Exception]:
        for key, error in self.failures.items():
            if path == key or path.endswith("/" + key):
                return error
        return None

    async def post(self, token: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((path, dict(payload)))
        error = self._failure_for(path)
        if error is not None:
            raise error

        kind = path.rsplit("/", 1)[-1] if "/" in path else None
        if kind in self.PREFIXES:
            if kind in self.missing_id:
                return {"success": True}
            self._counters[kind] = self._counters.get(kind, 0) + 1
            return {"id": f"{self.PREFIXES[kind]}-{self._counters[kind]}"}
        return {"success": True}

    def paths(self) -> List[str]:
        return [path for path, _ in self.calls]

    def payloads_for(self, suffix: str) -> List[Dict[str, Any]]:
        return [payload for path, payload in self.calls if path.endswith(suffix)]


@pytest.fixture
def fake_meta() -> FakeMetaAPI:
    return FakeMetaAPI()


@pytest.fixture
def mock_meta_client(fake_meta):
    client = MagicMock()
    client.post = AsyncMock(side_effect=fake_meta.post)
    client.get_object = AsyncMock()
    return client


def meta_error(message: str = "Invalid parameter", status_code: int = 400) -> ExternalAPIError:
    return ExternalAPIError(message, status_code=status_code, error_code=100)


# =============================================================================
# Logging
# =============================================================================

class RecordingSink:
    """Log sink that keeps every event for assertions."""

    def __init__(self):
        self.events: List[tuple] = []

    def info(self, category, message, context):
        self.events.append(("info", message, context))

    def warn(self, category, message, context):
        self.events.append(("warn", message, context))

    def error(self, category, message, context):
        self.events.append(("error", message, context))

    def operations(self) -> List[str]:
        return [context.get("operation") for _, _, context in self.events]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


# =============================================================================
# Orchestrator
# =============================================================================

@pytest.fixture
def state_store(db_session) -> PublishStateStore:
    return PublishStateStore(db_session)


@pytest.fixture
def orchestrator(db_session, state_store, mock_meta_client, sink) -> PublishOrchestrator:
    return PublishOrchestrator(
        client=mock_meta_client,
        state_store=state_store,
        config_store=SQLConfigStore(db_session),
        connection_store=SQLConnectionStore(db_session),
        sink=sink,
    )

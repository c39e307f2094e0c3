"""ADLAUNCH — Collaborator Stores.

Publishing only reads the campaign's publish payload and its Meta
connection. Both are owned elsewhere; the protocols below are what the
orchestrator depends on, and the SQL implementations read the shared tables.
"""

import json
from typing import Any, Optional, Protocol

from sqlmodel import Session

from adlaunch.core.logging import get_logger
from adlaunch.models.publish_models import (
    CampaignMetaConnection,
    CampaignPublishConfig,
    ConnectionCredential,
)

logger = get_logger("publishing.stores")


class ConfigStore(Protocol):
    def get_publish_config(self, campaign_id: str) -> Optional[Any]: ...


class ConnectionStore(Protocol):
    def get_connection_with_token(self, campaign_id: str) -> Optional[ConnectionCredential]: ...


class SQLConfigStore:
    """Reads ``campaign_publish_config.publish_data``."""

    def __init__(self, session: Session):
        self.session = session

    def get_publish_config(self, campaign_id: str) -> Optional[Any]:
        row = self.session.get(CampaignPublishConfig, campaign_id)
        if row is None or not row.publish_data:
            return None
        try:
            return json.loads(row.publish_data)
        except ValueError:
            logger.warning(f"Stored publish config for {campaign_id} is not valid JSON")
            return None


class SQLConnectionStore:
    """Reads ``campaign_meta_connections``."""

    def __init__(self, session: Session):
        self.session = session

    def get_connection_with_token(self, campaign_id: str) -> Optional[ConnectionCredential]:
        row = self.session.get(CampaignMetaConnection, campaign_id)
        if row is None:
            return None
        return ConnectionCredential(
            ad_account_id=row.selected_ad_account_id,
            bearer_token=row.long_lived_user_token,
        )

"""ADLAUNCH — Publish Payload Builders.

Validation of the stored publish payload and the per-stage field transforms
applied before anything is sent to Meta.
"""

import math
from typing import Any, Dict, Optional

from adlaunch.config import settings
from adlaunch.core.errors import ConfigurationError, PlatformConnectionError
from adlaunch.models.publish_models import PublishConfig, RemoteStatus


def parse_publish_config(raw: Any) -> PublishConfig:
    """Validate the stored ``{campaign, adset, ads[]}`` blob."""
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Missing publish configuration. Please complete the campaign setup before publishing."
        )

    campaign = raw.get("campaign")
    adset = raw.get("adset")
    ads = raw.get("ads")

    if not isinstance(campaign, dict):
        raise ConfigurationError(
            "Publish configuration missing campaign payload.", {"field": "campaign"}
        )
    if not isinstance(adset, dict):
        raise ConfigurationError(
            "Publish configuration missing ad set payload.", {"field": "adset"}
        )
    if not isinstance(ads, list) or not ads or not all(isinstance(ad, dict) for ad in ads):
        raise ConfigurationError(
            "Publish configuration must include at least one ad payload.", {"field": "ads"}
        )

    # json.loads accepts NaN and Infinity
    budget = adset.get("dailyBudget")
    if isinstance(budget, float) and not math.isfinite(budget):
        raise ConfigurationError(
            "Ad set daily budget must be a finite number.", {"field": "adset.dailyBudget"}
        )

    return PublishConfig(campaign=campaign, adset=adset, ads=ads)


def normalize_ad_account_id(raw_id: Optional[str]) -> str:
    """Return the bare numeric account id, without the ``act_`` prefix."""
    prefix = settings.meta_account_prefix
    account = (raw_id or "").strip()
    if account.startswith(prefix):
        account = account[len(prefix):]
    if not account:
        raise PlatformConnectionError(
            "Meta ad account is not connected. Please connect an ad account before publishing."
        )
    return account


def account_path(raw_id: Optional[str]) -> str:
    return f"{settings.meta_account_prefix}{normalize_ad_account_id(raw_id)}"


def to_minor_units(amount: float) -> int:
    """Convert a decimal currency amount to non-negative cents, rounding half up."""
    return max(0, int(math.floor(amount * 100 + 0.5)))


def build_campaign_payload(campaign: Dict[str, Any]) -> Dict[str, Any]:
    return {**campaign, "status": RemoteStatus.PAUSED.value}


def build_adset_payload(adset: Dict[str, Any], external_campaign_id: str) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        **adset,
        "status": RemoteStatus.PAUSED.value,
        "campaign_id": external_campaign_id,
    }
    budget = payload.get("dailyBudget")
    if isinstance(budget, (int, float)) and not isinstance(budget, bool):
        payload["daily_budget"] = to_minor_units(budget)
        del payload["dailyBudget"]
    return payload


def build_ad_payload(ad: Dict[str, Any], external_adset_id: str) -> Dict[str, Any]:
    return {**ad, "status": RemoteStatus.PAUSED.value, "adset_id": external_adset_id}

"""
Tests for publish config validation and per-stage payload transforms.
"""

import pytest

from adlaunch.core.errors import ConfigurationError, PlatformConnectionError
from adlaunch.publishing.payloads import (
    account_path,
    build_ad_payload,
    build_adset_payload,
    build_campaign_payload,
    normalize_ad_account_id,
    parse_publish_config,
    to_minor_units,
)


class TestParsePublishConfig:

    def test_valid_config(self):
        config = parse_publish_config(
            {"campaign": {"name": "C1"}, "adset": {"name": "AS1"}, "ads": [{"name": "Ad1"}]}
        )

        assert config.campaign == {"name": "C1"}
        assert config.ads == [{"name": "Ad1"}]

    @pytest.mark.parametrize(
        "raw, match",
        [
            (None, "Missing publish configuration"),
            ([], "Missing publish configuration"),
            ({"adset": {}, "ads": [{}]}, "campaign payload"),
            ({"campaign": {}, "ads": [{}]}, "ad set payload"),
            ({"campaign": {}, "adset": "x", "ads": [{}]}, "ad set payload"),
            ({"campaign": {}, "adset": {}}, "at least one ad"),
            ({"campaign": {}, "adset": {}, "ads": []}, "at least one ad"),
            ({"campaign": {}, "adset": {}, "ads": [{}, "ad"]}, "at least one ad"),
            ({"campaign": {}, "adset": {"dailyBudget": float("nan")}, "ads": [{}]}, "finite"),
            ({"campaign": {}, "adset": {"dailyBudget": float("inf")}, "ads": [{}]}, "finite"),
        ],
    )
    def test_invalid_config(self, raw, match):
        with pytest.raises(ConfigurationError, match=match):
            parse_publish_config(raw)

    def test_config_is_frozen(self):
        config = parse_publish_config({"campaign": {}, "adset": {}, "ads": [{}]})

        with pytest.raises(Exception):
            config.campaign = {"name": "changed"}


class TestAdAccount:

    def test_prefix_stripped_and_restored(self):
        assert normalize_ad_account_id("act_123") == "123"
        assert normalize_ad_account_id("123") == "123"
        assert account_path("act_123") == "act_123"
        assert account_path("456") == "act_456"

    @pytest.mark.parametrize("raw", [None, "", "act_", "  "])
    def test_missing_account(self, raw):
        with pytest.raises(PlatformConnectionError):
            normalize_ad_account_id(raw)


class TestStagePayloads:

    def test_adset_budget_converted(self):
        payload = build_adset_payload({"name": "AS1", "dailyBudget": 25}, "cmp-1")

        assert payload["daily_budget"] == 2500
        assert "dailyBudget" not in payload
        assert payload["campaign_id"] == "cmp-1"
        assert payload["status"] == "PAUSED"

    def test_budget_rounding(self):
        assert to_minor_units(12.5) == 1250
        assert to_minor_units(0.125) == 13
        assert to_minor_units(0.005) == 1
        assert to_minor_units(19.99) == 1999
        assert to_minor_units(-5) == 0

    def test_non_numeric_budget_left_alone(self):
        payload = build_adset_payload({"dailyBudget": "25"}, "cmp-1")
        assert payload["dailyBudget"] == "25"
        assert "daily_budget" not in payload

        payload = build_adset_payload({"dailyBudget": True}, "cmp-1")
        assert payload["dailyBudget"] is True

    def test_parent_ids_override_config(self):
        assert build_adset_payload({"campaign_id": "old"}, "cmp-9")["campaign_id"] == "cmp-9"
        assert build_ad_payload({"adset_id": "old"}, "as-9")["adset_id"] == "as-9"

    def test_status_forced_paused(self):
        assert build_campaign_payload({"status": "ACTIVE"})["status"] == "PAUSED"
        assert build_ad_payload({"status": "ACTIVE"}, "as-1")["status"] == "PAUSED"

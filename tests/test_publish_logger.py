"""
Tests for the publish flow logger and credential redaction.
"""

import json
import logging

from adlaunch.core.errors import ExternalAPIError
from adlaunch.core.logging import JSONFormatter
from adlaunch.core.publish_logger import REDACTED, PublishLogger, sanitize

from conftest import RecordingSink


class TestSanitize:

    def test_long_token_keeps_edges_and_short_secret_redacted(self):
        result = PublishLogger.sanitize(
            {"access_token": "abcdefgh1234", "nested": {"password": "short"}}
        )

        assert result["access_token"] == "abcd…1234"
        assert result["nested"]["password"] == REDACTED
        assert len(REDACTED) <= 8

    def test_key_match_is_case_insensitive_substring(self):
        result = sanitize({"X-Api-Key": "k" * 20, "Authorization": "Bearer abcdefghijk"})

        assert result["X-Api-Key"] == "kkkk…kkkk"
        assert result["Authorization"] == "Bear…hijk"

    def test_non_string_sensitive_value_redacted(self):
        assert sanitize({"secret": 12345})["secret"] == REDACTED
        assert sanitize({"auth": {"token": "x" * 30}})["auth"] == REDACTED

    def test_lists_not_walked(self):
        data = {"items": [{"token": "abcdefghijklmnop"}]}

        assert sanitize(data) == data

    def test_plain_values_untouched_and_input_not_mutated(self):
        data = {"name": "Campaign", "budget": 25, "meta": {"token": "abcdefghijklm"}}

        result = sanitize(data)

        assert result["name"] == "Campaign"
        assert result["budget"] == 25
        assert data["meta"]["token"] == "abcdefghijklm"


class TestPublishLogger:

    def test_every_event_has_correlation_and_campaign(self):
        sink = RecordingSink()
        plog = PublishLogger("campaign-9", sink=sink)

        plog.stage_start("campaign")
        plog.api_call("act_1/campaigns", "POST")
        plog.api_response("act_1/campaigns", 200, 12)
        plog.stage_complete("campaign")
        plog.warning("slow")

        assert len(sink.events) == 5
        for _, _, ctx in sink.events:
            assert ctx["correlation_id"] == plog.correlation_id
            assert ctx["campaign_id"] == "campaign-9"
            assert ctx["elapsed_ms"] >= 0

    def test_correlation_id_generated_per_instance(self):
        assert PublishLogger("c").correlation_id != PublishLogger("c").correlation_id

    def test_stage_duration_recorded(self):
        sink = RecordingSink()
        plog = PublishLogger("c", sink=sink)

        plog.stage_start("adset")
        plog.stage_complete("adset")
        plog.stage_complete("ads")

        assert sink.events[1][2]["duration_ms"] >= 0
        assert sink.events[2][2]["duration_ms"] is None

    def test_error_responses_logged_as_warnings(self):
        sink = RecordingSink()
        plog = PublishLogger("c", sink=sink)

        plog.api_response("act_1/ads", 400, 5)

        assert sink.events[0][0] == "warn"

    def test_error_carries_platform_diagnostics(self):
        sink = RecordingSink()
        plog = PublishLogger("c", sink=sink)
        err = ExternalAPIError(
            "Invalid", status_code=400, error_code=100, error_subcode=33, fbtrace_id="AbC"
        )

        plog.error(err, "ads")

        level, message, ctx = sink.events[0]
        assert level == "error"
        assert message == "Invalid"
        assert ctx["meta_error_code"] == 100
        assert ctx["meta_error_subcode"] == 33
        assert ctx["fbtrace_id"] == "AbC"
        assert ctx["error_name"] == "ExternalAPIError"
        assert ctx["error_category"] == "validation"
        assert ctx["error_type"] == "validation_error"
        assert ctx["retryable"] is False

    def test_context_sanitized(self):
        sink = RecordingSink()
        plog = PublishLogger("c", sink=sink)

        plog.api_call("act_1/campaigns", "POST", payload={"access_token": "EAAB1234567890"})

        assert sink.events[0][2]["payload"]["access_token"] == "EAAB…7890"

    def test_child_shares_correlation_and_clock(self):
        sink = RecordingSink()
        plog = PublishLogger("c", sink=sink)

        child = plog.child("verify")

        assert child.correlation_id == plog.correlation_id
        assert child._start == plog._start
        assert sink.operations() == ["child_logger_created"]

    def test_summary_events(self):
        sink = RecordingSink()
        plog = PublishLogger("c", sink=sink)

        plog.publish_success("cmp", "as", ["a1", "a2"])
        plog.publish_failure("adset", "boom")
        plog.critical("store unavailable", RuntimeError("db down"))

        assert sink.events[0][2]["ad_count"] == 2
        assert sink.events[1][2]["failed_stage"] == "adset"
        assert sink.events[2][1] == "CRITICAL: store unavailable"
        assert sink.events[2][2]["critical"] is True


class TestStructuredSink:

    def test_default_sink_writes_json_line(self):
        plog = PublishLogger("campaign-json")
        records = []

        class _Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = _Capture()
        target = logging.getLogger("adlaunch.publish")
        target.addHandler(handler)
        try:
            plog.stage_start("campaign")
        finally:
            target.removeHandler(handler)

        line = json.loads(JSONFormatter().format(records[0]))
        assert line["category"] == "PublishFlow"
        assert line["campaign_id"] == "campaign-json"
        assert line["stage"] == "campaign"
        assert line["correlation_id"] == plog.correlation_id

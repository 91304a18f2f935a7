"""Tests for the notification payload codec."""

import pytest

from reminder_hub.exceptions import PayloadError
from reminder_hub.models.payload import NotificationPayload


class TestEncode:
    """Tests for NotificationPayload.encode."""

    def test_required_fields_only(self):
        payload = NotificationPayload(
            module_id="task",
            entity_id="t1",
            reminder_type="before",
            reminder_value="15",
            reminder_unit="minutes",
        )
        assert payload.encode() == "task|t1|before|15|minutes"

    def test_extras_appended_in_order(self):
        payload = NotificationPayload(
            module_id="finance",
            entity_id="bill:b1:r1:20260311",
            extras={"section": "bills", "onceKey": "bill:b1:r1:20260311"},
        )
        assert payload.encode() == (
            "finance|bill:b1:r1:20260311|at_time|0|minutes"
            "|section:bills|onceKey:bill:b1:r1:20260311"
        )

    def test_empty_extra_key_dropped(self):
        payload = NotificationPayload(module_id="task", entity_id="t1", extras={"": "x"})
        assert payload.encode() == "task|t1|at_time|0|minutes"


class TestParse:
    """Tests for strict and lenient decoding."""

    def test_extra_value_may_contain_colons(self):
        parsed = NotificationPayload.parse("finance|e|before|1|days|targetDate:2026-03-11T09:00:00")
        assert parsed.extras == {"targetDate": "2026-03-11T09:00:00"}

    def test_unknown_segments_ignored(self):
        parsed = NotificationPayload.parse("task|t1|before|5|minutes|garbage|k:v")
        assert parsed.extras == {"k": "v"}

    def test_blank_fields_take_defaults(self):
        parsed = NotificationPayload.parse("habit|h1|||")
        assert parsed.reminder_type == "at_time"
        assert parsed.reminder_value == "0"
        assert parsed.reminder_unit == "minutes"

    @pytest.mark.parametrize("raw", [None, "", "   ", "task|t1|before", "|t1|a|b|c"])
    def test_malformed_raises(self, raw):
        with pytest.raises(PayloadError):
            NotificationPayload.parse(raw)

    @pytest.mark.parametrize("raw", [None, "", "task|only"])
    def test_try_parse_returns_none(self, raw):
        assert NotificationPayload.try_parse(raw) is None

    def test_decode_of_encode_preserves_fields(self):
        original = NotificationPayload(
            module_id="sleep",
            entity_id="sleep_winddown_mon",
            reminder_type="before",
            reminder_value="30",
            reminder_unit="minutes",
            extras={"section": "winddown", "universalId": "u-1"},
        )
        assert NotificationPayload.parse(original.encode()) == original


class TestForSource:
    """Tests for the minimal logging payload."""

    def test_with_section(self):
        payload = NotificationPayload.for_source("sleep", "sleep_bedtime", "bedtime")
        assert payload.encode() == "sleep|sleep_bedtime|at_time|0|minutes|section:bedtime"

    def test_without_section(self):
        assert NotificationPayload.for_source("task", "t1").extras == {}

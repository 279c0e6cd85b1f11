"""Tests for payload field extraction and identifier detection."""

import pytest

from hcm_webhooks.webhooks.extraction import (
    UNKNOWN_EVENT_TYPE,
    detect_company_id,
    detect_event_id,
    detect_event_type,
    extract_fields,
)


class TestExtractFields:
    """Tests for extract_fields."""

    def test_keeps_only_configured_present_keys(self):
        payload = {"EventType": "EmployeeHired", "CompanyId": 42, "Salary": 100000}
        assert extract_fields(payload, ["EventType", "CompanyId", "EmployeeId"]) == {
            "EventType": "EmployeeHired",
            "CompanyId": 42,
        }

    def test_empty_field_list_extracts_nothing(self):
        assert extract_fields({"EventType": "X"}, []) == {}

    def test_nested_values_are_kept_as_is(self):
        payload = {"Employee": {"Id": 7}}
        assert extract_fields(payload, ["Employee"]) == {"Employee": {"Id": 7}}

    def test_matching_is_case_sensitive(self):
        assert extract_fields({"eventtype": "X"}, ["EventType"]) == {}

    @pytest.mark.parametrize("payload", [None, [], "text", 42])
    def test_non_object_payload(self, payload):
        assert extract_fields(payload, ["EventType"]) == {}

    def test_non_list_fields(self):
        assert extract_fields({"EventType": "X"}, "EventType") == {}

    def test_non_string_entries_are_ignored(self):
        assert extract_fields({"EventType": "X", "1": "y"}, ["EventType", 1, None]) == {
            "EventType": "X"
        }


class TestDetectEventType:
    """Tests for event type detection priority."""

    def test_event_type_key_wins(self):
        payload = {"type": "generic", "action": "update", "EventType": "EmployeeHired"}
        assert detect_event_type(payload) == "EmployeeHired"

    def test_snake_case_key(self):
        assert detect_event_type({"event_type": "employee.hired"}) == "employee.hired"

    def test_action_before_type(self):
        assert detect_event_type({"type": "generic", "action": "update"}) == "update"

    def test_type_as_last_resort(self):
        assert detect_event_type({"type": "generic"}) == "generic"

    def test_keys_match_case_insensitively(self):
        assert detect_event_type({"EVENTTYPE": "Loud"}) == "Loud"

    def test_empty_value_falls_through(self):
        assert detect_event_type({"EventType": "", "action": "update"}) == "update"

    def test_structured_value_falls_through(self):
        assert detect_event_type({"EventType": {"name": "x"}, "type": "flat"}) == "flat"

    def test_unknown_when_absent(self):
        assert detect_event_type({"Employee": "x"}) == UNKNOWN_EVENT_TYPE

    def test_unknown_for_non_object(self):
        assert detect_event_type(["EventType"]) == UNKNOWN_EVENT_TYPE


class TestDetectIdentifiers:
    """Tests for company and event id detection."""

    def test_company_id_is_stringified(self):
        assert detect_company_id({"CompanyId": 42}) == "42"

    def test_company_id_snake_case(self):
        assert detect_company_id({"company_id": "acme"}) == "acme"

    def test_company_id_absent(self):
        assert detect_company_id({"EventType": "X"}) is None

    def test_event_id_priority(self):
        assert detect_event_id({"id": "3", "EventId": "1"}) == "1"
        assert detect_event_id({"id": "3", "event_id": "2"}) == "2"
        assert detect_event_id({"id": 3}) == "3"

    def test_event_id_absent(self):
        assert detect_event_id({}) is None

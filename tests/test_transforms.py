"""Tests for payload building."""

from datetime import date, datetime

from raintree_sync.engine.transforms import FieldTransformer
from raintree_sync.models.records import LEAD_FIELDS, OPPORTUNITY_FIELDS, RecordKind

from conftest import make_record


class TestFieldTransformer:
    """Tests for FieldTransformer."""

    def test_map_fields_keeps_only_synced_fields(self):
        payload = FieldTransformer.map_fields(
            {"Name": "Deal", "StageName": "Closed Won", "Amount": 10, "CloseDate": "2024-02-01",
             "OwnerId": "005X"},
            OPPORTUNITY_FIELDS,
        )
        assert payload == {"Name": "Deal", "StageName": "Closed Won", "Amount": 10, "CloseDate": "2024-02-01"}

    def test_fields_without_value_or_default_are_omitted(self):
        payload = FieldTransformer.map_fields({"Name": "Deal", "CloseDate": None}, OPPORTUNITY_FIELDS)
        assert payload == {"Name": "Deal", "Amount": 0}

    def test_lead_defaults(self):
        payload = FieldTransformer.map_fields({"LastName": "Lovelace", "Email": ""}, LEAD_FIELDS)
        assert payload == {
            "FirstName": "",
            "LastName": "Lovelace",
            "Company": "",
            "Email": "",
            "Status": "Open - Not Contacted",
        }

    def test_zero_amount_is_kept(self):
        payload = FieldTransformer.map_fields({"Amount": 0}, OPPORTUNITY_FIELDS)
        assert payload["Amount"] == 0

    def test_build_payload_uses_record_kind(self):
        record = make_record("L1", kind=RecordKind.LEAD, Company="Initech")
        payload = FieldTransformer.build_payload(record)
        assert payload["Company"] == "Initech"
        assert "Name" not in payload

    def test_changed_fields(self):
        target = make_record("R1", StageName="Prospecting", Amount=100)
        payload = {"Name": "Deal R1", "StageName": "Closed Won", "Amount": 100}
        assert FieldTransformer.changed_fields(payload, target) == ["StageName"]

    def test_values_are_coerced_to_field_types(self):
        payload = FieldTransformer.map_fields(
            {"Name": 42, "StageName": "Prospecting", "Amount": "1250.50", "CloseDate": date(2024, 6, 30)},
            OPPORTUNITY_FIELDS,
        )
        assert payload == {"Name": "42", "StageName": "Prospecting", "Amount": 1250.5, "CloseDate": "2024-06-30"}

    def test_coerce(self):
        assert FieldTransformer.coerce(datetime(2024, 6, 30, 15, 0), "date") == "2024-06-30"
        assert FieldTransformer.coerce(7, "number") == 7
        assert FieldTransformer.coerce(None, "number") is None

    def test_unconvertible_value_is_passed_through(self):
        assert FieldTransformer.coerce("lots", "number") == "lots"
        assert FieldTransformer.coerce(True, "unknown") is True

"""Tests for backup export and restore parsing."""

import json
from datetime import datetime, timezone

import pytest

from estate_ledger.models import AppConfig
from estate_ledger.services import export_backup, parse_backup
from estate_ledger.validation import ValidationError


def issue_fields(exc_info):
    return [issue.field for issue in exc_info.value.issues]


class TestExport:
    def test_document_is_json_serialisable(self, scenario):
        exported_at = datetime(2025, 3, 31, 9, 0, tzinfo=timezone.utc)

        document = export_backup(scenario, exported_at)

        assert document["exported_at"] == "2025-03-31T09:00:00+00:00"
        assert len(document["properties"]) == 1
        assert document["employees"][0]["category"] == "dispatch"
        json.dumps(document, ensure_ascii=False)

    def test_export_then_parse_restores_the_set(self, scenario):
        text = json.dumps(export_backup(scenario), ensure_ascii=False)
        assert parse_backup(text) == scenario


class TestParse:
    def test_accepts_bytes(self, scenario):
        raw = json.dumps(export_backup(scenario)).encode("utf-8")
        assert parse_backup(raw).tenants == scenario.tenants

    def test_legacy_field_names_and_partial_config(self):
        document = {
            "properties": [{"id": 1, "name": "寮A", "kanri_hi": 2000}],
            "tenants": [],
            "employees": [],
            "config": {"closingDay": 25},
        }

        entities = parse_backup(document, defaults=AppConfig(company_name="Acme"))

        assert entities.properties[0].management_fee == 2000
        assert entities.config.closing_day == 25
        assert entities.config.company_name == "Acme"

    def test_missing_config_uses_defaults(self):
        entities = parse_backup({"properties": [], "tenants": [], "employees": []})
        assert entities.config == AppConfig()

    def test_rejects_invalid_json(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_backup("{oops")
        assert issue_fields(exc_info) == ["backup"]

    def test_rejects_non_object(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_backup("[1, 2]")
        assert issue_fields(exc_info) == ["backup"]

    def test_lists_every_shape_problem(self):
        document = {
            "properties": [{"id": "1", "name": "P"}, "not a record"],
            "tenants": {"oops": True},
            "employees": [{"id": 5, "name": "Sato"}],
            "config": [],
        }

        with pytest.raises(ValidationError) as exc_info:
            parse_backup(document)

        assert issue_fields(exc_info) == [
            "properties.0.id",
            "properties.1",
            "tenants",
            "employees.0.id",
            "config",
        ]

    def test_boolean_id_is_rejected(self):
        document = {"properties": [{"id": True, "name": "P"}], "tenants": [], "employees": []}

        with pytest.raises(ValidationError) as exc_info:
            parse_backup(document)

        assert issue_fields(exc_info) == ["properties.0.id"]

    def test_type_errors_beyond_the_shape_check(self):
        document = {
            "properties": [{"id": 1, "name": "P", "capacity": "many"}],
            "tenants": [],
            "employees": [],
        }

        with pytest.raises(ValidationError) as exc_info:
            parse_backup(document)

        assert issue_fields(exc_info) == ["properties.0.capacity"]

    def test_duplicate_ids_are_rejected(self, scenario):
        document = scenario.model_dump(mode="json")
        document["tenants"][1]["id"] = document["tenants"][0]["id"]

        with pytest.raises(ValidationError) as exc_info:
            parse_backup(document)

        assert issue_fields(exc_info) == ["tenants.id"]
        assert "Duplicate id 1" in str(exc_info.value)

    def test_employee_ids_may_repeat_across_categories(self):
        document = {
            "properties": [],
            "tenants": [],
            "employees": [
                {"id": "E1", "name": "Sato", "category": "dispatch"},
                {"id": "E1", "name": "Sato", "category": "staff"},
            ],
        }

        assert len(parse_backup(document).employees) == 2

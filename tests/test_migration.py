"""Tests for the one-time legacy document import."""

import asyncio
import json

from estate_ledger.audit import AuditLogger
from estate_ledger.models import AuditEventType, BillingCycle, EmployeeCategory, EntitySet
from estate_ledger.reports import build_reports
from estate_ledger.services.storage import LegacyDocumentSource, migrate_from_legacy
from estate_ledger.snapshots import build_snapshot

LEGACY_DOCUMENT = {
    "properties": [
        {
            "id": 1700000000001,
            "name": "サクラハイツ",
            "address": "愛知県 岡崎市",
            "capacity": 2,
            "rent_cost": 50000,
            "kanri_hi": 3000,
            "parking_cost": 0,
            "rent_price_uns": 60000,
            "type": "2DK",
            "room_number": "",
            "contract_end": "",
        },
    ],
    "tenants": [
        {
            "id": 1700000000002,
            "employee_id": 12345,
            "name": "山田 太郎",
            "name_kana": "ヤマダ タロウ",
            "company": "高雄工業",
            "property_id": 1700000000001,
            "rent_contribution": 30000,
            "parking_fee": 0,
            "entry_date": "2024-04-01",
            "status": "active",
        },
    ],
    "employees": [
        {"id": "12345", "name": "山田 太郎", "name_kana": "ヤマダ タロウ", "company": "高雄工業"},
        {"id": "T-1", "name": "Nguyen", "category": "trainee"},
    ],
    "config": {"companyName": "", "closingDay": 20},
}


def write_json(path, document):
    path.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")


class TestMigration:
    def test_happy_path(self, memory_store, legacy_source, now):
        write_json(legacy_source.database_path, LEGACY_DOCUMENT)
        cycle = BillingCycle.for_date(now.date())
        snapshot = build_snapshot(cycle, build_reports(EntitySet(), now))
        write_json(legacy_source.reports_path, {"snapshots": [snapshot.model_dump(mode="json")]})
        audit = AuditLogger()

        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source, audit)
            return (
                migrated,
                await memory_store.load_entities(),
                await memory_store.list_snapshots(),
                await memory_store.get_meta(),
            )

        migrated, entities, snapshots, meta = asyncio.run(run())

        assert migrated
        assert meta.migrated_from_legacy
        assert meta.version == "8.0"

        prop = entities.properties[0]
        assert prop.management_fee == 3000
        assert prop.target_rent == 60000
        assert prop.layout == "2DK"
        assert prop.room_number is None
        assert prop.contract_end is None

        assert entities.tenants[0].employee_id == "12345"
        assert entities.find_employee("T-1").category == EmployeeCategory.TRAINEE
        assert entities.find_employee("12345").category == EmployeeCategory.DISPATCH

        # Gaps in the legacy config take defaults
        assert entities.config.company_name == "UNS-KIKAKU"
        assert entities.config.closing_day == 20
        assert entities.config.default_cleaning_fee == 30000

        assert [s.id for s in snapshots] == [snapshot.id]
        assert audit.recent_events[0].event_type == AuditEventType.MIGRATION_COMPLETED

    def test_runs_only_once(self, memory_store, legacy_source):
        write_json(legacy_source.database_path, LEGACY_DOCUMENT)

        async def run():
            first = await migrate_from_legacy(memory_store, legacy_source)
            await memory_store.replace_entities(EntitySet())
            second = await migrate_from_legacy(memory_store, legacy_source)
            return first, second, await memory_store.load_entities()

        first, second, entities = asyncio.run(run())

        assert first
        assert not second
        assert not entities.has_records

    def test_missing_document_marks_migrated(self, memory_store, legacy_source):
        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source)
            return migrated, await memory_store.get_meta()

        migrated, meta = asyncio.run(run())

        assert not migrated
        assert meta.migrated_from_legacy

    def test_invalid_json_is_skipped_and_marked(self, memory_store, legacy_source):
        legacy_source.database_path.write_text("{not json", encoding="utf-8")
        audit = AuditLogger()

        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source, audit)
            return migrated, await memory_store.load_entities(), await memory_store.get_meta()

        migrated, entities, meta = asyncio.run(run())

        assert not migrated
        assert not entities.has_records
        assert meta.migrated_from_legacy
        event = audit.recent_events[0]
        assert event.event_type == AuditEventType.MIGRATION_SKIPPED_CORRUPT

    def test_non_array_collection_is_corrupt(self, memory_store, legacy_source):
        write_json(legacy_source.database_path, {**LEGACY_DOCUMENT, "tenants": {"1": {}}})

        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source)
            return migrated, await memory_store.load_entities()

        migrated, entities = asyncio.run(run())
        assert not migrated
        assert not entities.has_records

    def test_unparsable_records_are_corrupt(self, memory_store, legacy_source):
        broken = {**LEGACY_DOCUMENT, "properties": [{"id": "abc"}]}
        write_json(legacy_source.database_path, broken)

    def test_duplicate_ids_are_corrupt(self, memory_store, legacy_source):
        tenant = LEGACY_DOCUMENT["tenants"][0]
        write_json(legacy_source.database_path, {
            **LEGACY_DOCUMENT,
            "tenants": [tenant, {**tenant, "name": "山田 花子"}],
        })
        audit = AuditLogger()

        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source, audit)
            return migrated, await memory_store.load_entities(), await memory_store.get_meta()

        migrated, entities, meta = asyncio.run(run())

        assert not migrated
        assert not entities.has_records
        assert meta.migrated_from_legacy
        event = audit.recent_events[0]
        assert event.event_type == AuditEventType.MIGRATION_SKIPPED_CORRUPT
        assert "tenants:1700000000002" in event.error_message

        assert not asyncio.run(migrate_from_legacy(memory_store, legacy_source))

    def test_bad_reports_document_only_skips_snapshots(self, memory_store, legacy_source):
        write_json(legacy_source.database_path, LEGACY_DOCUMENT)
        legacy_source.reports_path.write_text("[]", encoding="utf-8")

        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source)
            return migrated, await memory_store.load_entities(), await memory_store.list_snapshots()

        migrated, entities, snapshots = asyncio.run(run())

        assert migrated
        assert len(entities.tenants) == 1
        assert snapshots == []

    def test_store_failure_leaves_migration_pending(self, memory_store, legacy_source):
        write_json(legacy_source.database_path, LEGACY_DOCUMENT)
        memory_store.fail_writes = True

        async def run():
            migrated = await migrate_from_legacy(memory_store, legacy_source)
            return migrated, await memory_store.get_meta()

        migrated, meta = asyncio.run(run())

        assert not migrated
        assert meta is None


class TestFallbackRead:
    def test_missing_collections_count_as_empty(self, legacy_paths):
        source = LegacyDocumentSource(legacy_paths)
        write_json(source.database_path, {"properties": LEGACY_DOCUMENT["properties"]})

        entities = source.read_fallback()

        assert len(entities.properties) == 1
        assert entities.tenants == []

    def test_unreadable_document_gives_none(self, legacy_paths):
        source = LegacyDocumentSource(legacy_paths)
        source.database_path.write_text("garbage", encoding="utf-8")
        assert source.read_fallback() is None

    def test_missing_document_gives_none(self, legacy_paths):
        assert LegacyDocumentSource(legacy_paths).read_fallback() is None

    def test_duplicate_ids_give_none(self, legacy_paths):
        source = LegacyDocumentSource(legacy_paths)
        prop = LEGACY_DOCUMENT["properties"][0]
        write_json(source.database_path, {"properties": [prop, prop]})

        assert source.read_fallback() is None

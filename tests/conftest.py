"""Shared fixtures: entity factories and stores."""

from datetime import datetime

import pytest

from estate_ledger.config import LegacySettings, ReportSettings, StoreSettings
from estate_ledger.models import (
    AppConfig,
    Employee,
    EntitySet,
    Property,
    Tenant,
)
from estate_ledger.services.storage import (
    InMemoryStore,
    LegacyDocumentSource,
    SqliteStore,
)


# A fixed clock: reports depend on contract end dates relative to "now"
NOW = datetime(2025, 3, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def report_settings():
    return ReportSettings()


@pytest.fixture
def make_property():
    def factory(id=1, **overrides):
        values = {
            "id": id,
            "name": f"Property {id}",
            "address": "愛知県 名古屋市中区",
            "capacity": 2,
            "rent_cost": 80000,
            "management_fee": 5000,
            "parking_cost": 0,
            "target_rent": 100000,
        }
        values.update(overrides)
        return Property(**values)
    return factory


@pytest.fixture
def make_tenant():
    def factory(id=1, property_id=1, **overrides):
        values = {
            "id": id,
            "employee_id": f"E{id:04d}",
            "name": f"Tenant {id}",
            "name_kana": "",
            "company": "A",
            "property_id": property_id,
            "rent_contribution": 45000,
            "parking_fee": 0,
        }
        values.update(overrides)
        return Tenant(**values)
    return factory


@pytest.fixture
def scenario(make_property, make_tenant):
    """P1 shared by one tenant of company A and one of company B."""
    return EntitySet(
        properties=[make_property(1, name="P1")],
        tenants=[
            make_tenant(1, company="A", rent_contribution=45000, parking_fee=0),
            make_tenant(2, company="B", rent_contribution=45000, parking_fee=5000),
        ],
        employees=[
            Employee(id="E9001", name="山田 太郎", name_kana="ヤマダ タロウ", company="C"),
        ],
        config=AppConfig(),
    )


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteStore(StoreSettings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
    ))


@pytest.fixture
def legacy_paths(tmp_path):
    return LegacySettings(
        database_document=str(tmp_path / "uns_db_v6_0.json"),
        reports_document=str(tmp_path / "uns_reports_v1.json"),
    )


@pytest.fixture
def legacy_source(legacy_paths):
    return LegacyDocumentSource(legacy_paths)

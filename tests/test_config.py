from __future__ import annotations

from collections.abc import Generator

import pytest

from sas_crm.core.config import TABLE_KEYS, get_settings, resolve_resource_name, resolve_table_names


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_table_names_read_linked_resource_variables() -> None:
    environ = {
        "SST_Resource_Users": "sas-crm-dev-UsersTable-a1b2",
        "SST_Resource_Deals": "sas-crm-dev-DealsTable-c3d4",
    }

    names = resolve_table_names(environ)

    assert set(names) == set(TABLE_KEYS)
    assert names["Users"] == "sas-crm-dev-UsersTable-a1b2"
    assert names["Deals"] == "sas-crm-dev-DealsTable-c3d4"


def test_missing_or_empty_resource_falls_back_to_key() -> None:
    names = resolve_table_names({"SST_Resource_Tags": ""})
    assert names["Tags"] == "Tags"
    assert names["VerificationTokens"] == "VerificationTokens"


def test_resource_names_default_to_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SST_Resource_Uploads", "sas-crm-dev-uploads-bucket")
    monkeypatch.setenv("SST_Resource_People", "people-table")

    assert resolve_resource_name("Uploads") == "sas-crm-dev-uploads-bucket"
    assert resolve_table_names()["People"] == "people-table"


def test_aws_region_defaults_to_us_east_1(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AWS_REGION", raising=False)
    assert get_settings().aws_region == "us-east-1"


def test_aws_region_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_REGION", "sa-east-1")
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")

    settings = get_settings()

    assert settings.aws_region == "sa-east-1"
    assert settings.database_url == "sqlite+pysqlite:///:memory:"

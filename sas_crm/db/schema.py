from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy import JSON, Column, Index, MetaData, Numeric, String, Table

from sas_crm.infra.stack import TABLES, TableDefinition

ITEM_COLUMN = "item"


def index_identifier(table_name: str, index_name: str) -> str:
    return f"ix_{table_name}_{index_name}"


def table_columns(definition: TableDefinition) -> list[Column]:
    key_fields = set(definition.primary_index.key_fields)
    columns: list[Column] = []
    for name, field_type in definition.fields.items():
        column_type = Numeric(precision=38, scale=10) if field_type == "number" else String(255)
        columns.append(Column(name, column_type, primary_key=name in key_fields, nullable=name not in key_fields))
    columns.append(Column(ITEM_COLUMN, JSON, nullable=False))
    return columns


def build_table(metadata: MetaData, definition: TableDefinition, table_name: str) -> Table:
    table = Table(table_name, metadata, *table_columns(definition))
    for index_name, index in definition.global_indexes.items():
        Index(
            index_identifier(table_name, index_name),
            *(table.c[key_field] for key_field in index.key_fields),
            unique=index.unique,
        )
    return table


def build_metadata(table_names: Mapping[str, str]) -> tuple[MetaData, dict[str, Table]]:
    metadata = MetaData()
    tables = {definition.key: build_table(metadata, definition, table_names[definition.key]) for definition in TABLES}
    return metadata, tables

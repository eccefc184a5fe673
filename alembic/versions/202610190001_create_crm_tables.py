"""create crm and auth tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op

from sas_crm.core.config import resolve_table_names
from sas_crm.db.schema import index_identifier, table_columns
from sas_crm.infra.stack import TABLES


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    table_names = resolve_table_names()
    for definition in TABLES:
        table_name = table_names[definition.key]
        op.create_table(table_name, *table_columns(definition))
        for index_name, index in definition.global_indexes.items():
            op.create_index(
                index_identifier(table_name, index_name),
                table_name,
                list(index.key_fields),
                unique=index.unique,
            )


def downgrade() -> None:
    table_names = resolve_table_names()
    for definition in reversed(TABLES):
        table_name = table_names[definition.key]
        for index_name in definition.global_indexes:
            op.drop_index(index_identifier(table_name, index_name), table_name=table_name)
        op.drop_table(table_name)

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy import ColumnElement, Table, and_, insert, select, update
from sqlalchemy.exc import IntegrityError

from sas_crm.core.database import Database
from sas_crm.db.schema import ITEM_COLUMN
from sas_crm.infra.stack import FieldType, TableDefinition


logger = logging.getLogger("sas_crm.db")


class ItemConflictError(Exception):
    """Raised when a write collides with an existing key or a unique index."""

    def __init__(self, table: str, key: Mapping[str, Any]) -> None:
        self.table = table
        self.key = dict(key)
        super().__init__(f"Conflicting item in table '{table}': {self.key}")


def _attribute_value(field_type: FieldType, value: Any) -> Any:
    if value is None:
        return None
    if field_type == "number":
        return Decimal(str(value))
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class DocumentClient:
    """Key/value document access over the tables of a ``Database``.

    Items are plain JSON-serializable dicts keyed by their camelCase attribute
    names. Declared key attributes are mirrored into indexed columns; the full
    item is kept in the ``item`` column.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def put_item(self, table_key: str, item: Mapping[str, Any], *, if_not_exists: bool = False) -> None:
        table = self._database.table(table_key)
        definition = self._database.definition(table_key)
        key = self._primary_key(definition, item)
        row = {
            name: _attribute_value(field_type, item.get(name))
            for name, field_type in definition.fields.items()
        }
        row[ITEM_COLUMN] = dict(item)

        try:
            with self._database.session() as session:
                existing = session.execute(select(table.c[ITEM_COLUMN]).where(self._key_clause(table, definition, key))).first()
                if existing is None:
                    session.execute(insert(table).values(**row))
                elif if_not_exists:
                    raise ItemConflictError(table_key, key)
                else:
                    session.execute(update(table).where(self._key_clause(table, definition, key)).values(**row))
        except IntegrityError as exc:
            logger.warning(
                "db.item.conflict",
                extra={"table": table_key, "operation": "put_item", "error": str(exc.orig)},
            )
            raise ItemConflictError(table_key, key) from exc

    def get_item(self, table_key: str, key: Mapping[str, Any]) -> dict[str, Any] | None:
        table = self._database.table(table_key)
        definition = self._database.definition(table_key)
        resolved_key = self._primary_key(definition, key)
        with self._database.session() as session:
            item = session.scalar(select(table.c[ITEM_COLUMN]).where(self._key_clause(table, definition, resolved_key)))
        return dict(item) if item is not None else None

    def query(self, table_key: str, hash_value: Any) -> list[dict[str, Any]]:
        """Return every item sharing a partition key, ordered by sort key."""
        definition = self._database.definition(table_key)
        index = definition.primary_index
        return self._select(table_key, {index.hash_key: hash_value})

    def query_index(
        self,
        table_key: str,
        index_name: str,
        hash_value: Any,
        range_value: Any | None = None,
    ) -> list[dict[str, Any]]:
        definition = self._database.definition(table_key)
        try:
            index = definition.global_indexes[index_name]
        except KeyError:
            raise KeyError(f"unknown index '{index_name}' on table '{table_key}'") from None

        conditions = {index.hash_key: hash_value}
        if range_value is not None and index.range_key is not None:
            conditions[index.range_key] = range_value
        return self._select(table_key, conditions)

    def _select(self, table_key: str, conditions: Mapping[str, Any]) -> list[dict[str, Any]]:
        table = self._database.table(table_key)
        definition = self._database.definition(table_key)
        statement = (
            select(table.c[ITEM_COLUMN])
            .where(
                and_(
                    *(
                        table.c[name] == _attribute_value(definition.fields[name], value)
                        for name, value in conditions.items()
                    )
                )
            )
            .order_by(*(table.c[name] for name in definition.primary_index.key_fields))
        )
        with self._database.session() as session:
            return [dict(item) for item in session.scalars(statement)]

    @staticmethod
    def _primary_key(definition: TableDefinition, source: Mapping[str, Any]) -> dict[str, Any]:
        missing = [name for name in definition.primary_index.key_fields if source.get(name) is None]
        if missing:
            raise ValueError(f"{definition.key} item is missing key attribute(s): {', '.join(missing)}")
        return {name: source[name] for name in definition.primary_index.key_fields}

    @staticmethod
    def _key_clause(table: Table, definition: TableDefinition, key: Mapping[str, Any]) -> ColumnElement[bool]:
        return and_(
            *(table.c[name] == _attribute_value(definition.fields[name], value) for name, value in key.items())
        )

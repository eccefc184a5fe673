from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from sqlalchemy import Engine, Table, create_engine
from sqlalchemy.orm import Session, sessionmaker

from sas_crm.core.config import Settings, resolve_table_names
from sas_crm.db.schema import build_metadata
from sas_crm.infra.stack import TABLES_BY_KEY, TableDefinition


class Database:
    """Engine, session factory and rendered tables for one storage backend.

    Nothing is created at import time: callers construct a ``Database`` and
    pass it to the components that need storage.
    """

    def __init__(self, engine: Engine, table_names: Mapping[str, str] | None = None) -> None:
        self.engine = engine
        self.table_names = dict(table_names) if table_names is not None else resolve_table_names()
        self.metadata, self.tables = build_metadata(self.table_names)
        self._session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    @classmethod
    def from_settings(cls, settings: Settings, table_names: Mapping[str, str] | None = None) -> Database:
        engine = create_engine(settings.database_url, pool_pre_ping=True)
        return cls(engine, table_names)

    def table(self, key: str) -> Table:
        try:
            return self.tables[key]
        except KeyError:
            raise KeyError(f"unknown table '{key}'") from None

    @staticmethod
    def definition(key: str) -> TableDefinition:
        try:
            return TABLES_BY_KEY[key]
        except KeyError:
            raise KeyError(f"unknown table '{key}'") from None

    def create_all(self) -> None:
        self.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        self.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional scope: commits on success, rolls back on error."""
        with self._session_factory.begin() as session:
            yield session

    def dispose(self) -> None:
        self.engine.dispose()

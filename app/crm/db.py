from __future__ import annotations

import logging
from contextlib import contextmanager
from collections.abc import Generator
from pathlib import Path

from flask import Flask, current_app
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.crm.errors import NotInitialized

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    # SQLite ships with FK enforcement off; ON DELETE CASCADE depends on it.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class StorageGateway:
    """
    Owns the file-backed store: engine, session factory, schema and transactions.

    One gateway per process. Repositories receive it at construction time.
    """

    def __init__(self) -> None:
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None
        self.path: Path | None = None

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def initialize(self, path: str | Path) -> Engine:
        if self._engine is not None:
            return self._engine

        abs_path = Path(path).expanduser().resolve()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(f"sqlite:///{abs_path}", future=True)
        event.listen(engine, "connect", enable_sqlite_foreign_keys)

        # Import here so every mapped table is registered on Base.metadata.
        from app.crm.models import Base

        Base.metadata.create_all(bind=engine)

        self._engine = engine
        self._sessionmaker = sessionmaker(
            bind=engine,
            class_=Session,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
        self.path = abs_path
        logger.info("SQLite store initialized at %s", abs_path)
        return engine

    def get_connection(self) -> Engine:
        if self._engine is None:
            raise NotInitialized("Database not initialized. Call initialize() first.")
        return self._engine

    def _factory(self) -> sessionmaker[Session]:
        if self._sessionmaker is None:
            raise NotInitialized("Database not initialized. Call initialize() first.")
        return self._sessionmaker

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Read-only helper: yields a session and always closes it."""
        s: Session = self._factory()()
        try:
            yield s
        finally:
            s.close()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Atomic unit of work: commit on normal exit, roll back on any exception.
        """
        s: Session = self._factory()()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessionmaker = None


def init_db(app: Flask) -> StorageGateway:
    from app.crm.modules.customers.repository import CustomerRepository
    from app.crm.modules.customers.service import CustomerService

    gateway = StorageGateway()
    gateway.initialize(app.config["SQLITE_FILE"])
    app.extensions["storage_gateway"] = gateway
    app.extensions["customer_service"] = CustomerService(CustomerRepository(gateway))
    return gateway


def get_gateway(app: Flask | None = None) -> StorageGateway:
    if app is None:
        app = current_app
    gateway = app.extensions.get("storage_gateway")
    if gateway is None:
        raise NotInitialized("Storage gateway is not registered on this app.")
    return gateway

"""Database connection management for PneumaFlow."""

import os
import threading

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from pneumaflow.constants import DEFAULT_DATABASE_PATH
from pneumaflow.database.models import Base


class Database:
    """
    Owns a SQLAlchemy engine and session factory for one SQLite file.

    The caller controls the lifecycle; nothing is shared at module level.

    Usage:
        with Database(path) as database:
            with database.session_scope() as session:
                session.add(obj)
    """

    def __init__(self, database_path: str | None = None):
        """
        Args:
            database_path: Path to the SQLite database file, or ":memory:".
                Defaults to DEFAULT_DATABASE_PATH.

        Raises:
            ValueError: If database path is invalid
        """
        if database_path is None:
            database_path = DEFAULT_DATABASE_PATH

        if not database_path or not isinstance(database_path, str):
            raise ValueError(f"Invalid database path: {database_path}")

        self.database_path = database_path
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._lock = threading.Lock()

    def open(self) -> "Database":
        """
        Create the engine and tables if not already open.

        Raises:
            PermissionError: If directory cannot be created
        """
        with self._lock:
            if self._engine is not None:
                return self

            if self.database_path != ":memory:":
                db_dir = os.path.dirname(self.database_path)
                if db_dir:
                    try:
                        os.makedirs(db_dir, exist_ok=True)
                    except PermissionError as e:
                        raise PermissionError(
                            f"Cannot create database directory {db_dir}: {e}"
                        ) from e

            engine = create_engine(
                f"sqlite:///{self.database_path}",
                echo=False,
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
            )

            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            Base.metadata.create_all(engine)

            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

        return self

    def close(self) -> None:
        """Dispose of the engine and release connections."""
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not open. Call open() first.")
        return self._engine

    def get_session(self) -> Session:
        """
        Get a new database session.

        Raises:
            RuntimeError: If the database has not been opened.
        """
        if self._session_factory is None:
            raise RuntimeError("Database not open. Call open() first.")

        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session]:
        """
        Provide a transactional scope for database operations.

        Commits on success, rolls back on error.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

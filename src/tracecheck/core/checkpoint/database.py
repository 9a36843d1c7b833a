# src/tracecheck/core/checkpoint/database.py
"""Checkpoint database connection management."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Self

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from tracecheck.contracts.enums import CheckName
from tracecheck.contracts.errors import SetupError
from tracecheck.core.checkpoint.schema import metadata


class CheckpointDB:
    """Checkpoint database connection manager.

    One SQLite file per check. WAL mode lets generate-report read while a
    run is writing.
    """

    def __init__(self, connection_string: str) -> None:
        """Open (and create if needed) the database.

        Raises:
            SetupError: If the database cannot be opened or initialized
        """
        self.connection_string = connection_string
        self._engine: Engine | None = create_engine(connection_string, echo=False)
        if connection_string.startswith("sqlite"):
            CheckpointDB._configure_sqlite(self._engine)
        try:
            metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            self.close()
            raise SetupError(f"cannot open checkpoint database {connection_string}: {exc}") from exc

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Register a connect hook setting WAL journal mode and a busy timeout."""

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]  # DBAPI connection typed as object
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not initialized")
        return self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @classmethod
    def in_memory(cls) -> Self:
        """In-memory SQLite database for tests."""
        return cls("sqlite:///:memory:")

    @classmethod
    def from_path(cls, db_path: str | Path, check: CheckName) -> Self:
        """Open the checkpoint file of a check under db_path.

        Raises:
            SetupError: If the directory cannot be created or the file opened
        """
        directory = Path(db_path)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SetupError(f"cannot create checkpoint directory {directory}: {exc}") from exc
        return cls(f"sqlite:///{directory / f'{check.value}.db'}")

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Connection inside a transaction: commits on exit, rolls back on error."""
        with self.engine.begin() as conn:
            yield conn

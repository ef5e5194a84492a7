"""Database handle with an explicit open/close lifecycle."""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from clinic_scheduling.core.config import settings


class Database:
    """
    Owns the engine and session factory for one deployment.

    Constructed once at startup, opened, shared by reference and closed at
    shutdown. Nothing else creates engines.
    """

    def __init__(self, url: str | None = None, echo: bool | None = None):
        self.url = url or settings.DATABASE_URL
        self.echo = settings.SQL_ECHO if echo is None else echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> "Database":
        if self._engine is not None:
            return self

        backend = make_url(self.url).get_backend_name()
        connect_args = {}
        if backend.startswith("postgresql"):
            connect_args["options"] = "-c timezone=utc"
        elif backend == "sqlite":
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = 30

        engine = create_engine(
            self.url, echo=self.echo, pool_pre_ping=True, connect_args=connect_args
        )
        if backend == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        self._engine = engine
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )
        return self

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def new_session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        return self._session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that is always closed afterwards."""
        db = self.new_session()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        """Create tables directly from metadata (tests and local dev)."""
        from clinic_scheduling.db.base import Base
        import clinic_scheduling.db.models  # noqa: F401

        Base.metadata.create_all(self.engine)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

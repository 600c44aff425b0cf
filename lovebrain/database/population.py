"""
Population store: count reference records below a score, per dimension.

SQLAlchemy-backed. Uses DATABASE_URL (PostgreSQL or any SQLAlchemy URL) or a
SQLite file. The ranking path only calls count_below(); replace_records() is for
the seeding tool. Each query opens its own short-lived session so the engine can
fan queries out across threads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import Column, Float, Integer, create_engine, delete, func, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from lovebrain.core.constants import DEFAULT_QUERY_TIMEOUT_SEC, DIMENSIONS
from lovebrain.core.exceptions import StoreQueryFailure, StoreUnavailable
from lovebrain.database.models import PopulationRecord
from lovebrain.lovebrain_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

INSERT_BATCH_SIZE = 500


# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class SimulatedTest(Base):
    """One reference assessment; one REAL column per dimension, each indexed for range counts."""

    __tablename__ = "simulated_tests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    emotional_dependence = Column(Float, nullable=False, index=True)
    idealization_filter = Column(Float, nullable=False, index=True)
    boundary_sacrifice = Column(Float, nullable=False, index=True)
    loss_of_self = Column(Float, nullable=False, index=True)
    relationship_centrality = Column(Float, nullable=False, index=True)


# -----------------------------------------------------------------------------
# Store interface: LiveStore vs Unavailable
# -----------------------------------------------------------------------------


class PopulationStore(ABC):
    """Read capability over the reference population."""

    available: bool = True

    @abstractmethod
    def count_below(self, dimension: str, value: float) -> int:
        """Return the number of records whose `dimension` is strictly less than `value`."""
        ...

    @abstractmethod
    def count_records(self) -> int:
        """Return the total number of records."""
        ...

    def close(self) -> None:
        """Release connections. Safe to call more than once."""


class UnavailableStore(PopulationStore):
    """No connection: every query raises StoreUnavailable."""

    available = False

    def __init__(self, reason: str = "population store not configured") -> None:
        self.reason = reason

    def count_below(self, dimension: str, value: float) -> int:
        raise StoreUnavailable(self.reason)

    def count_records(self) -> int:
        raise StoreUnavailable(self.reason)

    def __repr__(self) -> str:
        return f"UnavailableStore(reason={self.reason!r})"


def _redact_url(url: str) -> str:
    """Strip credentials and query string for logging."""
    return url.split("?")[0].split("@")[-1].split("//")[-1]


def _connect_args(url: str, query_timeout_sec: float) -> dict[str, Any]:
    """
    Driver options that bound a single query, so a worker stuck on a slow database
    is eventually released. SQLite: lock wait timeout; PostgreSQL: statement_timeout.
    """
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return {"check_same_thread": False, "timeout": query_timeout_sec}
    if backend == "postgresql":
        return {"options": f"-c statement_timeout={int(query_timeout_sec * 1000)}"}
    return {}


class SQLPopulationStore(PopulationStore):
    """Live store over the simulated_tests table."""

    def __init__(
        self,
        url: str,
        *,
        engine: Engine | None = None,
        query_timeout_sec: float = DEFAULT_QUERY_TIMEOUT_SEC,
    ) -> None:
        self._url = url
        if engine is None:
            engine = create_engine(
                url,
                connect_args=_connect_args(url, query_timeout_sec),
                pool_pre_ping=True,
            )
        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Context manager for a single session. Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ensure_schema(self) -> None:
        """Create the population table and indexes if they do not exist."""
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot create population schema: {e}") from e

    def ping(self) -> None:
        """Round-trip a trivial statement; raises StoreUnavailable on failure."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Population store unreachable: {e}") from e

    def count_below(self, dimension: str, value: float) -> int:
        if dimension not in DIMENSIONS:
            raise StoreQueryFailure(f"Unknown dimension: {dimension}", dimension=dimension)
        column = getattr(SimulatedTest, dimension)
        stmt = select(func.count()).select_from(SimulatedTest).where(column < value)
        try:
            with self._session_scope() as session:
                return int(session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise StoreQueryFailure(f"Count query failed for {dimension}: {e}", dimension=dimension) from e

    def count_records(self) -> int:
        stmt = select(func.count()).select_from(SimulatedTest)
        try:
            with self._session_scope() as session:
                return int(session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise StoreQueryFailure(f"Record count failed: {e}") from e

    def replace_records(self, records: Iterable[PopulationRecord]) -> int:
        """
        Delete every record, then bulk insert `records` in one transaction.
        Returns the number of rows inserted.
        """
        inserted = 0
        with self._session_scope() as session:
            deleted = session.execute(delete(SimulatedTest)).rowcount
            logger.info("population_cleared", deleted=deleted)
            batch: list[dict[str, float]] = []
            for record in records:
                batch.append(record.to_dict())
                if len(batch) >= INSERT_BATCH_SIZE:
                    session.execute(SimulatedTest.__table__.insert(), batch)
                    inserted += len(batch)
                    batch = []
            if batch:
                session.execute(SimulatedTest.__table__.insert(), batch)
                inserted += len(batch)
        logger.info("population_inserted", inserted=inserted)
        return inserted

    def close(self) -> None:
        self._engine.dispose()

    def __repr__(self) -> str:
        return f"SQLPopulationStore(url={_redact_url(self._url)!r})"


def connect_population_store(
    url: str | None,
    query_timeout_sec: float = DEFAULT_QUERY_TIMEOUT_SEC,
) -> PopulationStore:
    """
    Open the live store, or return UnavailableStore when url is None or the
    database cannot be reached. Never raises; the service keeps running in
    estimated-ranking mode.
    """
    if not url:
        logger.warning("population_store_not_configured", hint="set DATABASE_URL or DATABASE_PATH")
        return UnavailableStore()
    try:
        store = SQLPopulationStore(url, query_timeout_sec=query_timeout_sec)
        store.ensure_schema()
        store.ping()
    except (StoreUnavailable, SQLAlchemyError) as e:
        logger.error("population_store_connect_failed", url=_redact_url(url), error=str(e))
        return UnavailableStore(reason=str(e))
    logger.info("population_store_connected", url=_redact_url(url))
    return store

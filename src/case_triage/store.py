"""Per-case state and append-only step log.

Two implementations share the :class:`CaseStore` contract:

* :class:`InMemoryCaseStore` keeps everything in dictionaries and is the
  default for local runs and tests.
* :class:`SqlCaseStore` persists to SQLite through SQLAlchemy; blocking driver
  calls are pushed to a worker thread so the event loop never stalls.

Both serialise ``append`` per case with an :class:`asyncio.Lock` that is never
exposed to callers. Locks are keyed by case, so writers on different cases do
not wait on each other.
"""

from __future__ import annotations

import asyncio
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .core.errors import CaseStoreError
from .core.logging import get_logger
from .models import CaseState, LogEntry, utcnow


class CaseStore(ABC):
    """Keyed, concurrency-safe case state plus an append-only log."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @abstractmethod
    async def load(self, case_id: str) -> CaseState:
        """Return a copy of the case state, creating it with ``step=0`` if unseen."""

    @abstractmethod
    async def append(self, case_id: str, entry: LogEntry) -> None:
        """Record ``entry``, bump ``step`` and stamp ``updatedAt`` atomically."""

    @abstractmethod
    async def history(self, case_id: str) -> list[LogEntry]:
        """Return the case log in append order."""

    async def aclose(self) -> None:
        """Release resources held by the store. Nothing to release by default."""

    def _lock_for(self, case_id: str) -> asyncio.Lock:
        # entries vanish once no append holds or awaits the lock
        lock = self._locks.get(case_id)
        if lock is None:
            lock = self._locks[case_id] = asyncio.Lock()
        return lock

    @staticmethod
    def _require_case_id(case_id: str) -> str:
        if not isinstance(case_id, str) or not case_id.strip():
            raise CaseStoreError(
                "Case identifier must be a non-empty string",
                details={"case_id": case_id},
            )
        return case_id


class InMemoryCaseStore(CaseStore):
    """Non-persistent store; all data is lost when the process exits."""

    def __init__(self) -> None:
        super().__init__()
        self._states: dict[str, CaseState] = {}
        self._logs: dict[str, list[LogEntry]] = {}

    async def load(self, case_id: str) -> CaseState:
        self._require_case_id(case_id)
        state = self._states.get(case_id)
        if state is None:
            state = CaseState(case_id=case_id)
            self._states[case_id] = state
        return state.model_copy(deep=True)

    async def append(self, case_id: str, entry: LogEntry) -> None:
        self._require_case_id(case_id)
        async with self._lock_for(case_id):
            stored = entry.model_copy(deep=True)
            current = self._states.get(case_id) or CaseState(case_id=case_id)
            self._states[case_id] = current.model_copy(
                update={"step": current.step + 1, "last": stored, "updated_at": utcnow()}
            )
            self._logs.setdefault(case_id, []).append(stored)

    async def history(self, case_id: str) -> list[LogEntry]:
        self._require_case_id(case_id)
        return [entry.model_copy(deep=True) for entry in self._logs.get(case_id, [])]


_SCHEMA: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS case_states (
        case_id TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        step INTEGER NOT NULL DEFAULT 0,
        last_entry TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS case_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        case_id TEXT NOT NULL,
        step INTEGER NOT NULL,
        entry TEXT NOT NULL,
        at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_case_log_case
        ON case_log (case_id, id)
    """,
)


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class SqlCaseStore(CaseStore):
    """SQLite-backed store; every append is one transaction."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        db_path = Path(path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._path = db_path
        self._engine: Engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
        self._logger = get_logger(__name__).bind(component="SqlCaseStore", path=str(db_path))
        self._bootstrap()

    @property
    def path(self) -> Path:
        return self._path

    def _bootstrap(self) -> None:
        try:
            with self._engine.begin() as connection:
                for statement in _SCHEMA:
                    connection.exec_driver_sql(statement)
        except SQLAlchemyError as exc:
            raise CaseStoreError(f"Failed to initialise case store at {self._path}") from exc
        self._logger.info("store.bootstrap.complete")

    async def load(self, case_id: str) -> CaseState:
        self._require_case_id(case_id)
        try:
            return await asyncio.to_thread(self._load_sync, case_id)
        except SQLAlchemyError as exc:
            self._logger.exception("store.load.error", case_id=case_id)
            raise CaseStoreError(f"Failed to load case '{case_id}'") from exc

    async def append(self, case_id: str, entry: LogEntry) -> None:
        self._require_case_id(case_id)
        async with self._lock_for(case_id):
            try:
                await asyncio.to_thread(self._append_sync, case_id, entry)
            except SQLAlchemyError as exc:
                self._logger.exception("store.append.error", case_id=case_id)
                raise CaseStoreError(f"Failed to append to case '{case_id}'") from exc

    async def history(self, case_id: str) -> list[LogEntry]:
        self._require_case_id(case_id)
        try:
            return await asyncio.to_thread(self._history_sync, case_id)
        except SQLAlchemyError as exc:
            raise CaseStoreError(f"Failed to read history for case '{case_id}'") from exc

    def close(self) -> None:
        self._engine.dispose()

    async def aclose(self) -> None:
        await asyncio.to_thread(self.close)

    # ------------------------------------------------------------------
    # Blocking helpers, executed in a worker thread
    # ------------------------------------------------------------------
    def _load_sync(self, case_id: str) -> CaseState:
        with self._engine.begin() as connection:
            connection.execute(
                text(
                    """
                    INSERT OR IGNORE INTO case_states (case_id, created_at, step)
                    VALUES (:case_id, :created_at, 0)
                    """
                ),
                {"case_id": case_id, "created_at": _isoformat(utcnow())},
            )
            row = connection.execute(
                text(
                    """
                    SELECT case_id, created_at, step, last_entry, updated_at
                    FROM case_states WHERE case_id = :case_id
                    """
                ),
                {"case_id": case_id},
            ).one()
        return CaseState(
            case_id=row.case_id,
            created_at=row.created_at,
            step=int(row.step),
            last=LogEntry.model_validate_json(row.last_entry) if row.last_entry else None,
            updated_at=row.updated_at,
        )

    def _append_sync(self, case_id: str, entry: LogEntry) -> None:
        now = _isoformat(utcnow())
        serialized = entry.model_dump_json()
        with self._engine.begin() as connection:
            connection.execute(
                text(
                    """
                    INSERT OR IGNORE INTO case_states (case_id, created_at, step)
                    VALUES (:case_id, :created_at, 0)
                    """
                ),
                {"case_id": case_id, "created_at": now},
            )
            connection.execute(
                text(
                    """
                    UPDATE case_states
                    SET step = step + 1, last_entry = :entry, updated_at = :updated_at
                    WHERE case_id = :case_id
                    """
                ),
                {"case_id": case_id, "entry": serialized, "updated_at": now},
            )
            connection.execute(
                text(
                    """
                    INSERT INTO case_log (case_id, step, entry, at)
                    VALUES (:case_id, :step, :entry, :at)
                    """
                ),
                {
                    "case_id": case_id,
                    "step": entry.step,
                    "entry": serialized,
                    "at": _isoformat(entry.at),
                },
            )

    def _history_sync(self, case_id: str) -> list[LogEntry]:
        with self._engine.begin() as connection:
            rows = connection.execute(
                text("SELECT entry FROM case_log WHERE case_id = :case_id ORDER BY id"),
                {"case_id": case_id},
            )
            return [LogEntry.model_validate_json(row.entry) for row in rows]


__all__ = ["CaseStore", "InMemoryCaseStore", "SqlCaseStore"]

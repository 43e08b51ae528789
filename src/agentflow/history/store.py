"""Bounded, self-expiring build history store.

Two independent eviction rules apply:
- every insert drops the oldest rows of that task beyond ``max_entries_per_task``
  inside the same transaction as the insert;
- rows past ``expires_at`` are hidden from every read and physically removed by
  ``cleanup_expired``.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy import Engine, create_engine, delete, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agentflow.errors import ConfigError
from agentflow.history.models import (
    Base,
    BuildHistoryEntry,
    BuildHistoryRecord,
    CreateBuildHistory,
    as_utc,
)

DEFAULT_RETENTION = timedelta(days=20)
DEFAULT_MAX_ENTRIES_PER_TASK = 100

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _key(value: str | uuid.UUID) -> str:
    return str(value)


def create_history_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``database_url`` and make sure the schema exists."""
    kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in {"sqlite://", "sqlite:///"}:
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        else:
            db_path = database_url.split(":///", 1)[-1]
            if db_path:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    return engine


class BuildHistoryStore:
    def __init__(
        self,
        engine: Engine,
        *,
        retention: timedelta = DEFAULT_RETENTION,
        max_entries_per_task: int = DEFAULT_MAX_ENTRIES_PER_TASK,
        clock: Clock = _utcnow,
    ) -> None:
        if retention <= timedelta(0):
            raise ConfigError("Build history retention must be positive.")
        if max_entries_per_task < 1:
            raise ConfigError("Build history needs room for at least one entry per task.")
        self.engine = engine
        self.retention = retention
        self.max_entries_per_task = max_entries_per_task
        self._clock = clock
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        self._write_lock = threading.Lock()

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def create(self, data: CreateBuildHistory) -> BuildHistoryEntry:
        created_at = self._now()
        record = BuildHistoryRecord(
            id=str(uuid.uuid4()),
            task_id=_key(data.task_id),
            workspace_id=_key(data.workspace_id) if data.workspace_id else None,
            session_id=_key(data.session_id) if data.session_id else None,
            context_type=data.context_type.value,
            content=data.content,
            metadata_json=data.metadata,
            created_at=created_at,
            expires_at=created_at + self.retention,
        )
        with self._write_lock, self._session_factory.begin() as session:
            session.add(record)
            session.flush()
            overflow = session.scalars(
                select(BuildHistoryRecord.seq)
                .where(BuildHistoryRecord.task_id == record.task_id)
                # insertion order, not the clock, decides which rows fall off
                .order_by(BuildHistoryRecord.seq.desc())
                .offset(self.max_entries_per_task)
            ).all()
            if overflow:
                session.execute(
                    delete(BuildHistoryRecord)
                    .where(BuildHistoryRecord.seq.in_(overflow))
                    .execution_options(synchronize_session=False)
                )
            entry = BuildHistoryEntry.from_record(record)
        return entry

    def _find(self, *criteria) -> list[BuildHistoryEntry]:
        now = self._now()
        with self._session_factory() as session:
            records = session.scalars(
                select(BuildHistoryRecord)
                .where(*criteria, BuildHistoryRecord.expires_at >= now)
                .order_by(BuildHistoryRecord.created_at.asc(), BuildHistoryRecord.seq.asc())
            ).all()
            return [BuildHistoryEntry.from_record(record) for record in records]

    def find_by_task_id(self, task_id: str | uuid.UUID) -> list[BuildHistoryEntry]:
        return self._find(BuildHistoryRecord.task_id == _key(task_id))

    def find_by_workspace_id(self, workspace_id: str | uuid.UUID) -> list[BuildHistoryEntry]:
        return self._find(BuildHistoryRecord.workspace_id == _key(workspace_id))

    def find_by_session_id(self, session_id: str | uuid.UUID) -> list[BuildHistoryEntry]:
        return self._find(BuildHistoryRecord.session_id == _key(session_id))

    def count_by_task_id(self, task_id: str | uuid.UUID) -> int:
        now = self._now()
        with self._session_factory() as session:
            count = session.scalar(
                select(func.count())
                .select_from(BuildHistoryRecord)
                .where(
                    BuildHistoryRecord.task_id == _key(task_id),
                    BuildHistoryRecord.expires_at >= now,
                )
            )
        return int(count or 0)

    def cleanup_expired(self) -> int:
        now = self._now()
        with self._write_lock, self._session_factory.begin() as session:
            result = session.execute(
                delete(BuildHistoryRecord)
                .where(BuildHistoryRecord.expires_at < now)
                .execution_options(synchronize_session=False)
            )
        return int(result.rowcount or 0)

    def delete_by_task_id(self, task_id: str | uuid.UUID) -> int:
        with self._write_lock, self._session_factory.begin() as session:
            result = session.execute(
                delete(BuildHistoryRecord)
                .where(BuildHistoryRecord.task_id == _key(task_id))
                .execution_options(synchronize_session=False)
            )
        return int(result.rowcount or 0)

    def get_oldest_entry_date(self, task_id: str | uuid.UUID) -> datetime | None:
        now = self._now()
        with self._session_factory() as session:
            oldest = session.scalar(
                select(func.min(BuildHistoryRecord.created_at)).where(
                    BuildHistoryRecord.task_id == _key(task_id),
                    BuildHistoryRecord.expires_at >= now,
                )
            )
        return as_utc(oldest) if oldest is not None else None

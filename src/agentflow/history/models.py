"""ORM model and value types for the task build history log.

Table:
- task_build_history: per-task audit trail of chat messages, execution steps
  and status changes. Rows expire a fixed time after creation and each task
  keeps at most a bounded number of them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class BuildHistoryContextType(StrEnum):
    CHAT_MESSAGE = "chat_message"
    EXECUTION_STEP = "execution_step"
    AGENT_TURN = "agent_turn"
    SETUP_COMPLETE = "setup_complete"
    ERROR = "error"
    STATUS_CHANGE = "status_change"


def _gen_uuid() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


_CONTEXT_TYPE_VALUES = ", ".join(f"'{item.value}'" for item in BuildHistoryContextType)


class BuildHistoryRecord(Base):
    __tablename__ = "task_build_history"

    # insertion order; breaks ties between rows created in the same instant
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=_gen_uuid)
    task_id: Mapped[str] = mapped_column(String(36), nullable=False)
    workspace_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    context_type: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            f"context_type IN ({_CONTEXT_TYPE_VALUES})",
            name="ck_task_build_history_context_type",
        ),
        CheckConstraint("expires_at > created_at", name="ck_task_build_history_expiry"),
        Index("idx_task_build_history_task_id", "task_id", "created_at"),
        Index("idx_task_build_history_expires_at", "expires_at"),
        Index("idx_task_build_history_context_type", "context_type"),
        Index("idx_task_build_history_workspace_id", "workspace_id"),
        Index("idx_task_build_history_session_id", "session_id"),
    )


@dataclass(slots=True)
class CreateBuildHistory:
    task_id: str
    context_type: BuildHistoryContextType
    content: str
    workspace_id: str | None = None
    session_id: str | None = None
    metadata: str | None = None


@dataclass(frozen=True, slots=True)
class BuildHistoryEntry:
    id: str
    task_id: str
    workspace_id: str | None
    session_id: str | None
    context_type: BuildHistoryContextType
    content: str
    metadata: str | None
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_record(cls, record: BuildHistoryRecord) -> BuildHistoryEntry:
        return cls(
            id=record.id,
            task_id=record.task_id,
            workspace_id=record.workspace_id,
            session_id=record.session_id,
            context_type=BuildHistoryContextType(record.context_type),
            content=record.content,
            metadata=record.metadata_json,
            created_at=as_utc(record.created_at),
            expires_at=as_utc(record.expires_at),
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "workspace_id": self.workspace_id,
            "session_id": self.session_id,
            "context_type": self.context_type.value,
            "content": self.content,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

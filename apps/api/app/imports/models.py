"""Import domain models (import sessions, import errors)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import (
    String,
    ForeignKey,
    Index,
    Integer,
    JSON,
    TIMESTAMP,
    Uuid,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.common.models.base import (
    Base,
    ImportEntityType,
    ImportErrorType,
    ImportMode,
    ImportSessionStatus,
    utcnow,
)

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})
STOPPED_STATUSES = frozenset({"failed", "cancelled"})


class ImportSession(Base):
    """One bulk-import job.

    ``total_records`` is fixed at creation. Counters only move through
    ``ImportSessionService.update_session_progress``.
    """

    __tablename__ = "import_sessions"
    __table_args__ = (
        Index("ix_import_sessions_workspace_created", "workspace_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(ImportEntityType, nullable=False)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    total_records: Mapped[int] = mapped_column(Integer, nullable=False)
    import_mode: Mapped[str] = mapped_column(
        ImportMode, nullable=False, default="create_only"
    )
    duplicate_field: Mapped[Optional[str]] = mapped_column(String(100))
    field_mapping: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    processed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        ImportSessionStatus, nullable=False, default="pending", index=True
    )
    created_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ImportError(Base):
    """A row that failed during batch processing. One record per failed row."""

    __tablename__ = "import_errors"
    __table_args__ = (
        Index("ix_import_errors_session_row", "session_id", "row_number"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based
    field_name: Mapped[Optional[str]] = mapped_column(String(100))
    error_type: Mapped[str] = mapped_column(ImportErrorType, nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    raw_data: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )

"""Import session management: lifecycle, progress counters and error log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.common.audit import create_audit_log
from app.common.models import utcnow
from app.core.business_metrics import BusinessMetric
from app.core.errors import NotFoundError, SessionStateError, ValidationAPIError
from app.core.metrics_service import MetricsService
from app.imports.config import EntityType, ImportModeType, get_import_config
from app.imports.models import ImportError, ImportSession

logger = logging.getLogger(__name__)


@dataclass
class ImportProgress:
    """Session counters plus the full error list, for polling clients."""

    session: ImportSession
    errors: list[ImportError] = field(default_factory=list)

    @property
    def percentage(self) -> float:
        if not self.session.total_records:
            return 100.0 if self.session.status == "completed" else 0.0
        return round(
            self.session.processed_records / self.session.total_records * 100, 2
        )


def session_snapshot(session: ImportSession) -> dict[str, Any]:
    """JSON-safe view of a session for audit logs."""
    return {
        "entity_type": session.entity_type,
        "filename": session.filename,
        "total_records": session.total_records,
        "import_mode": session.import_mode,
        "duplicate_field": session.duplicate_field,
        "status": session.status,
        "processed_records": session.processed_records,
        "successful_records": session.successful_records,
        "failed_records": session.failed_records,
    }


class ImportSessionService:
    """CRUD and lifecycle operations for import sessions.

    Methods that change state commit their own transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self,
        workspace_id: UUID,
        entity_type: str,
        filename: str,
        total_records: int,
        import_mode: str = ImportModeType.CREATE_ONLY.value,
        duplicate_field: Optional[str] = None,
        field_mapping: Optional[dict[str, str]] = None,
        created_by: Optional[UUID] = None,
    ) -> ImportSession:
        """
        Create an import session before any batch is submitted.

        Args:
            workspace_id: Workspace receiving the records
            entity_type: contacts, businesses or donations
            filename: Source file name, for display
            total_records: Number of data rows in the file (fixed)
            import_mode: create_only or update_or_create
            duplicate_field: Field used to find existing records
            field_mapping: Source column -> target field
            created_by: User creating the session

        Returns:
            The committed ImportSession in ``pending`` status

        Raises:
            ValidationAPIError: invalid entity type, mode, counts or mapping
        """
        config = get_import_config(entity_type)
        if config is None:
            raise ValidationAPIError(f"Invalid import type: {entity_type}")
        if import_mode not in {mode.value for mode in ImportModeType}:
            raise ValidationAPIError(f"Invalid import mode: {import_mode}")
        if total_records < 0:
            raise ValidationAPIError("total_records cannot be negative")

        if duplicate_field and duplicate_field not in config.duplicate_fields:
            raise ValidationAPIError(
                f"'{duplicate_field}' cannot be used for duplicate detection of "
                f"{entity_type}",
                errors=[{"field": "duplicate_field", "allowed": list(config.duplicate_fields)}],
            )
        if (
            import_mode == ImportModeType.UPDATE_OR_CREATE.value
            and config.entity_type != EntityType.DONATIONS
            and not duplicate_field
        ):
            raise ValidationAPIError("update_or_create imports require a duplicate_field")

        field_mapping = dict(field_mapping or {})
        unknown_targets = sorted(
            {target for target in field_mapping.values() if not config.is_known_field(target)}
        )
        if unknown_targets:
            raise ValidationAPIError(
                f"Unknown target fields for {entity_type}: {', '.join(unknown_targets)}",
                errors=[{"field": "field_mapping", "unknown": unknown_targets}],
            )

        session = ImportSession(
            workspace_id=workspace_id,
            entity_type=config.entity_type.value,
            filename=filename,
            total_records=total_records,
            import_mode=import_mode,
            duplicate_field=duplicate_field,
            field_mapping=field_mapping,
            status="pending",
            created_by=created_by,
        )
        self.db.add(session)
        self.db.flush()

        create_audit_log(
            self.db,
            workspace_id=workspace_id,
            actor_id=created_by,
            action="import_session.create",
            entity_type="import_session",
            entity_id=session.id,
            after_json=session_snapshot(session),
        )
        self.db.commit()
        self.db.refresh(session)

        logger.info(
            f"Created import session {session.id} ({session.entity_type}, "
            f"{total_records} rows, mode={import_mode})"
        )
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_STARTED,
            workspace_id=workspace_id,
            user_id=created_by,
            entity_type=session.entity_type,
        )
        return session

    def get_session(
        self, session_id: UUID, workspace_id: Optional[UUID] = None
    ) -> ImportSession:
        """
        Load a session, optionally requiring it to belong to a workspace.

        Raises:
            NotFoundError: no such session (in that workspace)
        """
        stmt = select(ImportSession).where(ImportSession.id == session_id)
        if workspace_id is not None:
            stmt = stmt.where(ImportSession.workspace_id == workspace_id)
        session = self.db.execute(stmt).scalar_one_or_none()
        if session is None:
            raise NotFoundError("Import session", str(session_id))
        return session

    def get_status(self, session_id: UUID) -> Optional[str]:
        """Read the persisted status, bypassing the identity map."""
        return self.db.execute(
            select(ImportSession.status).where(ImportSession.id == session_id)
        ).scalar_one_or_none()

    def list_sessions(
        self, workspace_id: UUID, limit: int = 50, offset: int = 0
    ) -> tuple[list[ImportSession], int]:
        """Return a page of sessions (newest first) and the total count."""
        total = self.db.execute(
            select(func.count())
            .select_from(ImportSession)
            .where(ImportSession.workspace_id == workspace_id)
        ).scalar_one()
        sessions = self.db.execute(
            select(ImportSession)
            .where(ImportSession.workspace_id == workspace_id)
            .order_by(ImportSession.created_at.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return list(sessions), total

    def update_session_progress(
        self,
        session: ImportSession,
        processed: Optional[int] = None,
        successful: Optional[int] = None,
        failed: Optional[int] = None,
        status: Optional[str] = None,
    ) -> ImportSession:
        """
        Set counters and/or status on a session and commit.

        The only writer of session counters. Always stamps ``updated_at``.
        """
        if processed is not None:
            session.processed_records = processed
        if successful is not None:
            session.successful_records = successful
        if failed is not None:
            session.failed_records = failed
        if status is not None:
            session.status = status
        session.updated_at = utcnow()
        self.db.commit()
        return session

    def cancel_session(
        self, session_id: UUID, workspace_id: Optional[UUID] = None, actor_id: Optional[UUID] = None
    ) -> ImportSession:
        """
        Cancel a session. In-flight batches stop at their next row.

        Cancelling a cancelled session is a no-op.

        Raises:
            NotFoundError: unknown session
            SessionStateError: session already completed or failed
        """
        session = self.get_session(session_id, workspace_id)
        if session.status == "cancelled":
            return session
        if session.is_terminal:
            raise SessionStateError(session.id, session.status, "cancel")

        before = session_snapshot(session)
        self.update_session_progress(session, status="cancelled")
        create_audit_log(
            self.db,
            workspace_id=session.workspace_id,
            actor_id=actor_id,
            action="import_session.cancel",
            entity_type="import_session",
            entity_id=session.id,
            before_json=before,
            after_json=session_snapshot(session),
        )
        self.db.commit()

        logger.info(f"Cancelled import session {session.id}")
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_CANCELLED,
            workspace_id=session.workspace_id,
            user_id=actor_id,
            entity_type=session.entity_type,
        )
        return session

    def delete_session(
        self, session_id: UUID, workspace_id: Optional[UUID] = None, actor_id: Optional[UUID] = None
    ) -> None:
        """Delete a session together with its error log."""
        session = self.get_session(session_id, workspace_id)
        before = session_snapshot(session)
        workspace = session.workspace_id
        entity_type = session.entity_type

        self.db.execute(delete(ImportError).where(ImportError.session_id == session.id))
        self.db.delete(session)
        create_audit_log(
            self.db,
            workspace_id=workspace,
            actor_id=actor_id,
            action="import_session.delete",
            entity_type="import_session",
            entity_id=session_id,
            before_json=before,
        )
        self.db.commit()

        logger.info(f"Deleted import session {session_id}")
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_DELETED,
            workspace_id=workspace,
            user_id=actor_id,
            entity_type=entity_type,
        )

    def log_import_error(
        self,
        session_id: UUID,
        row_number: int,
        error_message: str,
        raw_data: Optional[dict[str, Any]] = None,
        field_name: Optional[str] = None,
        error_type: str = "processing",
    ) -> Optional[ImportError]:
        """
        Record a failed row and commit. Best effort: a failure to write is
        logged and swallowed so it never fails the row a second time.
        """
        try:
            error = ImportError(
                session_id=session_id,
                row_number=row_number,
                field_name=field_name,
                error_type=error_type,
                error_message=error_message,
                raw_data=_json_safe(raw_data),
            )
            self.db.add(error)
            self.db.commit()
            return error
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to log import error for session {session_id} row {row_number}: {e}",
                exc_info=True,
            )
            return None

    def get_import_errors(self, session_id: UUID) -> list[ImportError]:
        return list(
            self.db.execute(
                select(ImportError)
                .where(ImportError.session_id == session_id)
                .order_by(ImportError.row_number, ImportError.created_at)
            ).scalars()
        )

    def get_import_progress(
        self, session_id: UUID, workspace_id: Optional[UUID] = None
    ) -> ImportProgress:
        session = self.get_session(session_id, workspace_id)
        return ImportProgress(session=session, errors=self.get_import_errors(session.id))


def _json_safe(raw_data: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if raw_data is None:
        return None
    return {
        str(key): (value if value is None or isinstance(value, (str, int, float, bool)) else str(value))
        for key, value in raw_data.items()
    }

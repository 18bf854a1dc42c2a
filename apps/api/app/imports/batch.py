"""Batch processing of import rows.

Callers submit successive batches of parsed rows for a session until it
completes. Rows run strictly in order because later rows may match records
created by earlier rows of the same batch. Each row is its own transaction:
a failing row is rolled back and recorded, and the batch moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.business_metrics import BusinessMetric
from app.core.errors import SessionStateError, ValidationAPIError
from app.core.metrics_service import MetricsService
from app.imports.config import ImportConfig, ImportModeType, get_import_config
from app.imports.duplicates import DuplicateDetector
from app.imports.mappers import map_row
from app.imports.models import STOPPED_STATUSES, ImportSession
from app.imports.processors import EntityProcessor, get_processor
from app.imports.service import ImportSessionService
from app.imports.validators import RowValidationError, validate_row

logger = logging.getLogger(__name__)


@dataclass
class RowError:
    row_number: int
    error: str
    data: dict[str, Any]
    field: Optional[str] = None
    error_type: str = "processing"


@dataclass
class RowWarning:
    row_number: int
    message: str


@dataclass
class BatchResult:
    """Outcome of one ``process_batch`` call (this batch only)."""

    successful: int = 0
    failed: int = 0
    errors: list[RowError] = field(default_factory=list)
    warnings: list[RowWarning] = field(default_factory=list)
    stopped: bool = False


class BatchProcessor:
    """Runs batches of rows against an import session."""

    def __init__(
        self,
        db: Session,
        sessions: Optional[ImportSessionService] = None,
        detector: Optional[DuplicateDetector] = None,
    ):
        self.db = db
        self.sessions = sessions or ImportSessionService(db)
        self.detector = detector or DuplicateDetector(db)

    def process_batch(
        self,
        session_id: UUID,
        rows: list[Mapping[str, Any]],
        start_index: int = 0,
        validate_only: bool = False,
    ) -> BatchResult:
        """
        Process one batch of raw rows.

        Args:
            session_id: Import session ID
            rows: Raw parsed rows (source column -> value)
            start_index: 0-based offset of the first row within the whole file
            validate_only: Validate and run soft checks without writing

        Returns:
            Successful/failed counts, per-row errors and warnings for this batch

        Raises:
            NotFoundError: unknown session
            ValidationAPIError: unknown entity type or rows beyond the total
            SessionStateError: session already completed, failed or cancelled
        """
        session = self.sessions.get_session(session_id)
        config = get_import_config(session.entity_type)
        if config is None:
            raise ValidationAPIError(f"Invalid import type: {session.entity_type}")
        if session.is_terminal:
            raise SessionStateError(session.id, session.status, "process a batch for")
        if start_index < 0:
            raise ValidationAPIError("start_index cannot be negative")
        if session.processed_records + len(rows) > session.total_records:
            raise ValidationAPIError(
                f"Batch of {len(rows)} rows exceeds the session total of "
                f"{session.total_records} ({session.processed_records} already processed)"
            )

        processor = get_processor(config.entity_type, self.db)
        if session.status != "processing":
            self.sessions.update_session_progress(session, status="processing")

        workspace_id = session.workspace_id
        field_mapping = dict(session.field_mapping or {})
        context = _RowContext(
            session_id=session.id,
            workspace_id=workspace_id,
            config=config,
            processor=processor,
            field_mapping=field_mapping,
            import_mode=session.import_mode,
            duplicate_field=session.duplicate_field,
            validate_only=validate_only,
        )

        result = BatchResult()
        try:
            for offset, raw_row in enumerate(rows):
                status = self.sessions.get_status(context.session_id)
                if status in STOPPED_STATUSES:
                    result.stopped = True
                    logger.info(
                        f"Import session {context.session_id} is {status}; "
                        f"stopping batch at row {start_index + offset + 1}"
                    )
                    break
                self._process_row(context, raw_row, start_index + offset + 1, result)

            session = self._finish(context.session_id, len(rows), result)
        except Exception:
            logger.exception(f"Batch processing failed for import session {context.session_id}")
            self._mark_failed(context.session_id)
            raise

        logger.info(
            f"Import session {session.id}: batch at {start_index} "
            f"({len(rows)} rows) -> {result.successful} ok, {result.failed} failed; "
            f"{session.processed_records}/{session.total_records} processed, "
            f"status={session.status}"
        )
        self._emit_metrics(session, context, len(rows), result)
        return result

    def _process_row(
        self,
        context: "_RowContext",
        raw_row: Mapping[str, Any],
        row_number: int,
        result: BatchResult,
    ) -> None:
        try:
            mapped = map_row(raw_row, context.field_mapping, context.config)
            if context.validate_only:
                for message in self._check_row(context, mapped):
                    result.warnings.append(RowWarning(row_number, message))
            else:
                self._write_row(context, mapped)
            self.db.commit()
            result.successful += 1
        except Exception as e:
            self.db.rollback()
            error_type = "validation" if isinstance(e, RowValidationError) else "processing"
            field_name = e.field if isinstance(e, RowValidationError) else None
            message = str(e) or type(e).__name__

            result.failed += 1
            data = dict(raw_row)
            result.errors.append(RowError(row_number, message, data, field_name, error_type))
            logger.warning(
                f"Import session {context.session_id} row {row_number} failed "
                f"({error_type}): {message}"
            )
            self.sessions.log_import_error(
                context.session_id,
                row_number,
                message,
                raw_data=data,
                field_name=field_name,
                error_type=error_type,
            )

    def _check_row(self, context: "_RowContext", mapped: dict[str, str]) -> list[str]:
        failures = validate_row(mapped, context.config)
        if failures:
            raise RowValidationError(failures)

        warnings = context.processor.soft_check(mapped, context.workspace_id)
        if context.import_mode == ImportModeType.UPDATE_OR_CREATE.value:
            match = self.detector.find_existing(
                context.config.entity_type, mapped, context.workspace_id, context.duplicate_field
            )
            if match:
                warnings.append(f"Matches existing record {match['id']}; it will be updated")
        return warnings

    def _write_row(self, context: "_RowContext", mapped: dict[str, str]) -> UUID:
        failures = validate_row(mapped, context.config)
        if failures:
            raise RowValidationError(failures)

        processor = context.processor
        if context.import_mode == ImportModeType.UPDATE_OR_CREATE.value:
            match = self.detector.find_existing(
                context.config.entity_type, mapped, context.workspace_id, context.duplicate_field
            )
            if match:
                MetricsService.emit_data_quality_metric(
                    metric_name=BusinessMetric.DUPLICATE_DETECTED,
                    workspace_id=context.workspace_id,
                    entity_type=context.config.entity_type.value,
                    field=context.duplicate_field,
                )
                return processor.update(match["id"], mapped, context.workspace_id)
        return processor.create(mapped, context.workspace_id)

    def _finish(self, session_id: UUID, row_count: int, result: BatchResult) -> ImportSession:
        # Re-read so a cancellation committed during the batch is kept
        session = self.sessions.get_session(session_id)
        self.db.refresh(session)

        processed = min(session.processed_records + row_count, session.total_records)
        status = session.status
        if status not in STOPPED_STATUSES:
            status = "completed" if processed >= session.total_records else "processing"

        return self.sessions.update_session_progress(
            session,
            processed=processed,
            successful=session.successful_records + result.successful,
            failed=session.failed_records + result.failed,
            status=status,
        )

    def _mark_failed(self, session_id: UUID) -> None:
        try:
            self.db.rollback()
            session = self.sessions.get_session(session_id)
            self.sessions.update_session_progress(session, status="failed")
            MetricsService.emit_import_metric(
                metric_name=BusinessMetric.IMPORT_FAILED,
                workspace_id=session.workspace_id,
                entity_type=session.entity_type,
            )
        except Exception:
            self.db.rollback()
            logger.exception(f"Could not mark import session {session_id} as failed")

    def _emit_metrics(
        self,
        session: ImportSession,
        context: "_RowContext",
        row_count: int,
        result: BatchResult,
    ) -> None:
        entity_type = context.config.entity_type.value
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_BATCH_PROCESSED,
            workspace_id=context.workspace_id,
            entity_type=entity_type,
            validate_only=context.validate_only,
        )
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_ROWS_PROCESSED,
            workspace_id=context.workspace_id,
            entity_type=entity_type,
            rows_processed=result.successful + result.failed,
        )
        if result.failed:
            MetricsService.emit_import_metric(
                metric_name=BusinessMetric.IMPORT_ROWS_FAILED,
                workspace_id=context.workspace_id,
                entity_type=entity_type,
                rows_processed=result.failed,
            )
            validation_errors = sum(1 for e in result.errors if e.error_type == "validation")
            if validation_errors:
                MetricsService.emit_import_metric(
                    metric_name=BusinessMetric.IMPORT_VALIDATION_ERROR,
                    workspace_id=context.workspace_id,
                    entity_type=entity_type,
                    rows_processed=validation_errors,
                )
        if session.status == "completed":
            MetricsService.emit_import_metric(
                metric_name=BusinessMetric.IMPORT_COMPLETED,
                workspace_id=context.workspace_id,
                entity_type=entity_type,
                rows_processed=session.successful_records,
                failed_records=session.failed_records,
            )


@dataclass
class _RowContext:
    """Per-batch values captured once so row rollbacks never reload them."""

    session_id: UUID
    workspace_id: UUID
    config: ImportConfig
    processor: EntityProcessor
    field_mapping: dict[str, str]
    import_mode: str
    duplicate_field: Optional[str]
    validate_only: bool

"""Import API routes."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.auth.dependencies import (
    get_current_user_id,
    get_workspace_membership,
    require_workspace_writer,
)
from app.common.db import get_db
from app.common.models import WorkspaceMember
from app.core.config import settings
from app.core.errors import ValidationAPIError
from app.imports import schemas
from app.imports.batch import BatchProcessor
from app.imports.config import EntityType, get_import_config
from app.imports.duplicates import DuplicateDetector, calculate_duplicate_score
from app.imports.mappers import auto_map_columns, map_row
from app.imports.parsers import parse_csv
from app.imports.service import ImportSessionService
from app.imports.templates import (
    export_failed_rows,
    generate_csv_template,
    generate_template_with_instructions,
    get_available_import_types,
    template_to_csv,
    validate_template_headers,
)
from app.imports.validators import validate_row

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/imports", tags=["imports"])
catalog_router = APIRouter(prefix="/imports", tags=["imports"])


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )


def _require_config(entity_type: str):
    config = get_import_config(entity_type)
    if config is None:
        raise ValidationAPIError(f"Invalid import type: {entity_type}")
    return config


# Sessions
@router.post(
    "/sessions",
    response_model=schemas.ImportSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    workspace_id: UUID,
    request: schemas.ImportSessionCreate,
    membership: WorkspaceMember = Depends(require_workspace_writer),
    db: Session = Depends(get_db),
):
    """Create an import session before submitting batches."""
    session = ImportSessionService(db).create_session(
        workspace_id=workspace_id,
        entity_type=request.entity_type,
        filename=request.filename,
        total_records=request.total_records,
        import_mode=request.import_mode,
        duplicate_field=request.duplicate_field,
        field_mapping=request.field_mapping,
        created_by=membership.user_id,
    )
    return schemas.ImportSessionResponse.model_validate(session)


@router.get("/sessions", response_model=schemas.ImportSessionListResponse)
async def list_sessions(
    workspace_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    membership: WorkspaceMember = Depends(get_workspace_membership),
    db: Session = Depends(get_db),
):
    """List the workspace's import sessions, newest first."""
    sessions, total = ImportSessionService(db).list_sessions(
        workspace_id, limit=limit, offset=offset
    )
    return schemas.ImportSessionListResponse(
        items=[schemas.ImportSessionResponse.model_validate(s) for s in sessions],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/sessions/{session_id}", response_model=schemas.ImportSessionResponse)
async def get_session(
    workspace_id: UUID,
    session_id: UUID,
    membership: WorkspaceMember = Depends(get_workspace_membership),
    db: Session = Depends(get_db),
):
    session = ImportSessionService(db).get_session(session_id, workspace_id)
    return schemas.ImportSessionResponse.model_validate(session)


# Plain def: rows are processed synchronously, so this runs in the threadpool
@router.post(
    "/sessions/{session_id}/batches",
    response_model=schemas.BatchResultResponse,
)
def process_batch(
    workspace_id: UUID,
    session_id: UUID,
    request: schemas.BatchRequest,
    membership: WorkspaceMember = Depends(require_workspace_writer),
    db: Session = Depends(get_db),
):
    """Process one batch of parsed rows for a session."""
    sessions = ImportSessionService(db)
    # Scope check before any row is touched
    sessions.get_session(session_id, workspace_id)

    result = BatchProcessor(db, sessions=sessions).process_batch(
        session_id,
        request.rows,
        start_index=request.start_index,
        validate_only=request.validate_only,
    )
    session = sessions.get_session(session_id, workspace_id)
    return schemas.BatchResultResponse(
        successful=result.successful,
        failed=result.failed,
        errors=[
            schemas.RowErrorResponse(
                row_number=e.row_number,
                error=e.error,
                field=e.field,
                error_type=e.error_type,
                data=e.data,
            )
            for e in result.errors
        ],
        warnings=[
            schemas.RowWarningResponse(row_number=w.row_number, message=w.message)
            for w in result.warnings
        ],
        stopped=result.stopped,
        session=schemas.ImportSessionResponse.model_validate(session),
    )


@router.get(
    "/sessions/{session_id}/progress",
    response_model=schemas.ImportProgressResponse,
)
async def get_progress(
    workspace_id: UUID,
    session_id: UUID,
    membership: WorkspaceMember = Depends(get_workspace_membership),
    db: Session = Depends(get_db),
):
    """Session counters plus every logged row error."""
    progress = ImportSessionService(db).get_import_progress(session_id, workspace_id)
    return schemas.ImportProgressResponse(
        session=schemas.ImportSessionResponse.model_validate(progress.session),
        percentage=progress.percentage,
        errors=[schemas.ImportErrorResponse.model_validate(e) for e in progress.errors],
    )


@router.post(
    "/sessions/{session_id}/cancel",
    response_model=schemas.ImportSessionResponse,
)
async def cancel_session(
    workspace_id: UUID,
    session_id: UUID,
    membership: WorkspaceMember = Depends(require_workspace_writer),
    db: Session = Depends(get_db),
):
    session = ImportSessionService(db).cancel_session(
        session_id, workspace_id=workspace_id, actor_id=membership.user_id
    )
    return schemas.ImportSessionResponse.model_validate(session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    workspace_id: UUID,
    session_id: UUID,
    membership: WorkspaceMember = Depends(require_workspace_writer),
    db: Session = Depends(get_db),
):
    ImportSessionService(db).delete_session(
        session_id, workspace_id=workspace_id, actor_id=membership.user_id
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions/{session_id}/errors.csv")
async def download_failed_rows(
    workspace_id: UUID,
    session_id: UUID,
    membership: WorkspaceMember = Depends(get_workspace_membership),
    db: Session = Depends(get_db),
):
    """Download failed rows with their errors for correction and re-import."""
    sessions = ImportSessionService(db)
    session = sessions.get_session(session_id, workspace_id)
    content = export_failed_rows(sessions.get_import_errors(session.id))
    return _csv_response(content, f"import_errors_{session.id}.csv")


# Stateless helpers
@router.post("/validate", response_model=schemas.ValidateRowsResponse)
async def validate_rows(
    workspace_id: UUID,
    request: schemas.ValidateRowsRequest,
    membership: WorkspaceMember = Depends(get_workspace_membership),
):
    """Validate rows against an entity's rules without a session or writes."""
    config = _require_config(request.entity_type)

    results = []
    for offset, raw_row in enumerate(request.rows):
        failures = validate_row(map_row(raw_row, request.field_mapping, config), config)
        results.append(
            schemas.RowValidationResponse(
                row_number=request.start_index + offset + 1,
                valid=not failures,
                errors=[schemas.FieldErrorResponse(**f.to_dict()) for f in failures],
            )
        )
    invalid = sum(1 for r in results if not r.valid)
    return schemas.ValidateRowsResponse(
        valid_count=len(results) - invalid,
        invalid_count=invalid,
        rows=results,
    )


@router.post("/duplicates/check", response_model=schemas.DuplicateCheckResponse)
async def check_duplicates(
    workspace_id: UUID,
    request: schemas.DuplicateCheckRequest,
    membership: WorkspaceMember = Depends(get_workspace_membership),
    db: Session = Depends(get_db),
):
    """Find existing records a row may duplicate, scored against the row."""
    config = _require_config(request.entity_type)
    if request.duplicate_field and request.duplicate_field not in config.duplicate_fields:
        raise ValidationAPIError(
            f"'{request.duplicate_field}' cannot be used for duplicate detection of "
            f"{request.entity_type}"
        )

    row = map_row(request.row, request.field_mapping, config)
    detector = DuplicateDetector(db)
    candidates = detector.find_duplicates(
        config.entity_type, row, workspace_id, request.duplicate_field
    )
    match_fields = [
        name for name in config.duplicate_fields if row.get(name)
    ] or list(config.duplicate_fields)

    related = None
    if config.entity_type == EntityType.DONATIONS:
        related = detector.find_related_entities(row, workspace_id)

    return schemas.DuplicateCheckResponse(
        candidates=[
            schemas.DuplicateCandidate(
                id=candidate["id"],
                score=calculate_duplicate_score(row, candidate, match_fields),
                record={k: v for k, v in candidate.items() if k != "id"},
            )
            for candidate in candidates
        ],
        related=related,
    )


@router.post("/parse", response_model=schemas.ParseResponse)
async def parse_upload(
    workspace_id: UUID,
    file: UploadFile = File(...),
    entity_type: str = Query(..., description="Entity type: contacts, businesses, donations"),
    membership: WorkspaceMember = Depends(get_workspace_membership),
):
    """Parse an uploaded CSV and suggest a field mapping. Nothing is stored."""
    _require_config(entity_type)

    file_content = await file.read()
    if len(file_content) > settings.import_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=(
                f"File size exceeds maximum of "
                f"{settings.import_max_upload_bytes / (1024 * 1024):.0f}MB"
            ),
        )

    try:
        parsed = parse_csv(file_content)
    except ValueError as e:
        raise ValidationAPIError(str(e))

    suggested = auto_map_columns(parsed.headers, entity_type)
    # Validate the headers as they will look after mapping
    mapped_headers = [suggested.get(header, header) for header in parsed.headers]
    validation = validate_template_headers(mapped_headers, entity_type)

    logger.info(
        f"Parsed upload {file.filename!r} for workspace {workspace_id}: "
        f"{len(parsed.headers)} columns, {parsed.row_count} rows"
    )
    return schemas.ParseResponse(
        filename=file.filename or "upload.csv",
        delimiter=parsed.delimiter,
        headers=parsed.headers,
        total_records=parsed.row_count,
        rows=parsed.rows[: settings.import_preview_rows],
        suggested_mapping=suggested,
        template_validation=schemas.TemplateValidationResponse(
            valid=validation.valid,
            errors=validation.errors,
            warnings=validation.warnings,
        ),
    )


# Catalog
@catalog_router.get("/types", response_model=list[schemas.ImportTypeResponse])
async def list_import_types(user_id: UUID = Depends(get_current_user_id)):
    return get_available_import_types()


@catalog_router.get("/templates/{entity_type}")
async def download_template(
    entity_type: str,
    instructions: bool = Query(False, description="Prepend field instructions"),
    user_id: UUID = Depends(get_current_user_id),
):
    """Download a CSV template for an entity type."""
    _require_config(entity_type)
    if instructions:
        return _csv_response(
            generate_template_with_instructions(entity_type),
            f"{entity_type}_template_with_instructions.csv",
        )
    template = generate_csv_template(entity_type)
    return _csv_response(template_to_csv(template), template.filename)

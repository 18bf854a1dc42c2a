"""Pydantic schemas for the import API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.config import settings


class ImportSessionCreate(BaseModel):
    """Request to start an import session."""

    entity_type: str = Field(..., description="Entity type: contacts, businesses, donations")
    filename: str = Field(..., min_length=1, max_length=500)
    total_records: int = Field(..., ge=0, description="Number of data rows in the file")
    import_mode: str = Field(
        default="create_only",
        pattern="^(create_only|update_or_create)$",
        description="Import mode: create_only or update_or_create",
    )
    duplicate_field: Optional[str] = Field(
        default=None, description="Field used to find existing records"
    )
    field_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Source column -> target field. Empty means columns already use field names",
    )


class ImportSessionResponse(BaseModel):
    id: UUID
    workspace_id: UUID
    entity_type: str
    filename: str
    total_records: int
    import_mode: str
    duplicate_field: Optional[str] = None
    field_mapping: dict[str, str] = Field(default_factory=dict)
    processed_records: int
    successful_records: int
    failed_records: int
    status: str
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ImportSessionListResponse(BaseModel):
    items: list[ImportSessionResponse]
    total: int
    limit: int
    offset: int


class BatchRequest(BaseModel):
    """One batch of parsed rows (source column -> value)."""

    rows: list[dict[str, Any]] = Field(
        ..., max_length=settings.import_max_batch_size
    )
    start_index: int = Field(default=0, ge=0, description="0-based offset of the first row")
    validate_only: bool = Field(
        default=False, description="If true, validate only without writing records"
    )


class RowErrorResponse(BaseModel):
    row_number: int
    error: str
    field: Optional[str] = None
    error_type: str
    data: dict[str, Any] = Field(default_factory=dict)


class RowWarningResponse(BaseModel):
    row_number: int
    message: str


class BatchResultResponse(BaseModel):
    successful: int
    failed: int
    errors: list[RowErrorResponse] = Field(default_factory=list)
    warnings: list[RowWarningResponse] = Field(default_factory=list)
    stopped: bool = False
    session: ImportSessionResponse


class ImportErrorResponse(BaseModel):
    id: UUID
    row_number: int
    field_name: Optional[str] = None
    error_type: str
    error_message: str
    raw_data: Optional[dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ImportProgressResponse(BaseModel):
    session: ImportSessionResponse
    percentage: float
    errors: list[ImportErrorResponse] = Field(default_factory=list)


class ValidateRowsRequest(BaseModel):
    """Validate rows without a session; nothing is written."""

    entity_type: str
    rows: list[dict[str, Any]] = Field(..., max_length=settings.import_max_batch_size)
    field_mapping: dict[str, str] = Field(default_factory=dict)
    start_index: int = Field(default=0, ge=0)


class FieldErrorResponse(BaseModel):
    field: str
    error_type: str
    message: str
    value: Optional[str] = None


class RowValidationResponse(BaseModel):
    row_number: int
    valid: bool
    errors: list[FieldErrorResponse] = Field(default_factory=list)


class ValidateRowsResponse(BaseModel):
    valid_count: int
    invalid_count: int
    rows: list[RowValidationResponse]


class DuplicateCheckRequest(BaseModel):
    entity_type: str
    row: dict[str, Any]
    duplicate_field: Optional[str] = None
    field_mapping: dict[str, str] = Field(default_factory=dict)


class DuplicateCandidate(BaseModel):
    id: UUID
    score: float
    record: dict[str, Any]


class DuplicateCheckResponse(BaseModel):
    candidates: list[DuplicateCandidate]
    related: Optional[dict[str, list[dict[str, Any]]]] = None


class TemplateValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ParseResponse(BaseModel):
    """Parsed upload preview with a suggested column mapping."""

    filename: str
    delimiter: str
    headers: list[str]
    total_records: int
    rows: list[dict[str, str]]
    suggested_mapping: dict[str, str] = Field(default_factory=dict)
    template_validation: TemplateValidationResponse


class ImportTypeResponse(BaseModel):
    type: str
    display_name: str
    description: str
    required_fields: list[str]
    optional_fields: list[str]
    duplicate_fields: list[str]

"""Business metrics catalog with standardized naming.

Use these names when emitting business metrics so that dashboards see a
consistent set of series across the import pipeline.
"""

from enum import Enum


class MetricCategory(str, Enum):
    """Categories for grouping business metrics."""

    IMPORT = "import"
    DATA_QUALITY = "data_quality"


class BusinessMetric:
    """Catalog of business metrics emitted by the service."""

    # Import session lifecycle
    IMPORT_STARTED = "ImportStarted"
    IMPORT_COMPLETED = "ImportCompleted"
    IMPORT_FAILED = "ImportFailed"
    IMPORT_CANCELLED = "ImportCancelled"
    IMPORT_DELETED = "ImportDeleted"

    # Import batch processing
    IMPORT_BATCH_PROCESSED = "ImportBatchProcessed"
    IMPORT_ROWS_PROCESSED = "ImportRowsProcessed"
    IMPORT_ROWS_FAILED = "ImportRowsFailed"
    IMPORT_VALIDATION_ERROR = "ImportValidationError"

    # Data quality
    DUPLICATE_DETECTED = "DuplicateDetected"
    DATA_MERGE_ATTEMPTED = "DataMergeAttempted"

"""Centralized service for emitting business metrics.

Wraps ``emit_business_metric`` so callers pass domain identifiers instead of
building attribute dictionaries by hand.
"""

from typing import Optional
from uuid import UUID

from app.core.otel_metrics import emit_business_metric
from app.core.business_metrics import MetricCategory


class MetricsService:
    """Centralized service for emitting business metrics."""

    @staticmethod
    def emit_import_metric(
        metric_name: str,
        workspace_id: UUID,
        user_id: Optional[UUID] = None,
        entity_type: Optional[str] = None,
        rows_processed: Optional[int] = None,
        **extra_metadata,
    ) -> None:
        """Emit an import-related metric.

        Args:
            metric_name: Metric name from BusinessMetric
            workspace_id: Workspace the import writes into
            user_id: ID of the user performing the import
            entity_type: Entity type being imported
            rows_processed: Row count; used as the metric value when given
            **extra_metadata: Additional metadata to include
        """
        metadata = {"workspace_id": str(workspace_id)}
        if user_id:
            metadata["user_id"] = str(user_id)
        if entity_type:
            metadata["entity_type"] = entity_type
        metadata.update(extra_metadata)

        emit_business_metric(
            metric_name=metric_name,
            value=rows_processed if rows_processed is not None else 1,
            category=MetricCategory.IMPORT.value,
            **metadata,
        )

    @staticmethod
    def emit_data_quality_metric(
        metric_name: str,
        workspace_id: UUID,
        entity_type: str,
        field: Optional[str] = None,
        **extra_metadata,
    ) -> None:
        """Emit a data quality metric (duplicates, merges).

        Args:
            metric_name: Metric name from BusinessMetric
            workspace_id: Workspace ID
            entity_type: Entity type the record belongs to
            field: Field that triggered the event
            **extra_metadata: Additional metadata to include
        """
        metadata = {
            "workspace_id": str(workspace_id),
            "entity_type": entity_type,
        }
        if field:
            metadata["field"] = field
        metadata.update(extra_metadata)

        emit_business_metric(
            metric_name=metric_name,
            value=1,
            category=MetricCategory.DATA_QUALITY.value,
            **metadata,
        )

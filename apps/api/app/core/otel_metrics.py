"""OpenTelemetry metrics implementation.

Instruments are created lazily on the global meter so that importing this
module never requires a configured SDK; without one, every emit is a no-op.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, Meter

from app.core.config import settings

logger = logging.getLogger(__name__)

_meter: Meter | None = None

_http_request_counter: Counter | None = None
_http_request_duration: Histogram | None = None
_error_counter: Counter | None = None
_business_metric_counter: Counter | None = None

_UUID_SEGMENT = re.compile(
    r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    flags=re.IGNORECASE,
)
_NUMERIC_SEGMENT = re.compile(r"/\d+")


def get_meter() -> Meter:
    """Get or create the global OpenTelemetry meter instance."""
    global _meter
    if _meter is None:
        meter_provider = metrics.get_meter_provider()
        _meter = meter_provider.get_meter(
            name=settings.metrics_namespace or settings.service_name.replace(" ", "/"),
            version="1.0.0",
        )
    return _meter


def _get_http_request_counter() -> Counter:
    global _http_request_counter
    if _http_request_counter is None:
        _http_request_counter = get_meter().create_counter(
            name="http_requests_total",
            description="Total number of HTTP requests",
            unit="1",
        )
    return _http_request_counter


def _get_http_request_duration() -> Histogram:
    global _http_request_duration
    if _http_request_duration is None:
        _http_request_duration = get_meter().create_histogram(
            name="http_request_duration_ms",
            description="HTTP request duration in milliseconds",
            unit="ms",
        )
    return _http_request_duration


def _get_error_counter() -> Counter:
    global _error_counter
    if _error_counter is None:
        _error_counter = get_meter().create_counter(
            name="errors_total",
            description="Total number of errors",
            unit="1",
        )
    return _error_counter


def _get_business_metric_counter() -> Counter:
    global _business_metric_counter
    if _business_metric_counter is None:
        _business_metric_counter = get_meter().create_counter(
            name="business_metrics_total",
            description="Total number of business metric events",
            unit="1",
        )
    return _business_metric_counter


def normalize_path(path: str) -> str:
    """Replace UUID and numeric path segments to keep route cardinality low."""
    path = _UUID_SEGMENT.sub("/{id}", path)
    return _NUMERIC_SEGMENT.sub("/{id}", path)


def _attributes(base: dict[str, str], metadata: dict[str, Any]) -> dict[str, str]:
    for key, value in metadata.items():
        if value is not None:
            base[key] = str(value)
    return base


def emit_http_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **metadata: Any,
) -> None:
    """Emit HTTP request count and duration.

    Query parameters are never recorded.
    """
    if not settings.enable_metrics:
        return

    try:
        attributes = _attributes(
            {
                "http.method": method,
                "http.route": normalize_path(path),
                "http.status_code": str(status_code),
            },
            metadata,
        )
        _get_http_request_counter().add(1, attributes=attributes)
        _get_http_request_duration().record(duration_ms, attributes=attributes)
    except Exception as e:
        # Metric emission must not break requests
        logger.warning(f"Failed to emit HTTP request metric: {e}", exc_info=True)


def emit_error(
    error_code: str,
    status_code: int,
    path: str,
    method: str,
    **metadata: Any,
) -> None:
    """Emit an error counter event classified by severity."""
    if not settings.enable_metrics:
        return

    try:
        if status_code >= 500:
            severity = "server_error"
        elif status_code >= 400:
            severity = "client_error"
        else:
            severity = "unknown"

        attributes = _attributes(
            {
                "error.code": error_code,
                "http.status_code": str(status_code),
                "error.severity": severity,
                "http.method": method,
                "http.route": normalize_path(path),
            },
            metadata,
        )
        _get_error_counter().add(1, attributes=attributes)
    except Exception as e:
        logger.warning(f"Failed to emit error metric: {e}", exc_info=True)


def emit_business_metric(
    metric_name: str,
    value: float,
    unit: str = "Count",
    category: str | None = None,
    **metadata: Any,
) -> None:
    """Emit a business metric event.

    Args:
        metric_name: Name of the business metric
        value: Metric value (truncated to int, counters only accept integers)
        unit: Unit of measurement (default: Count)
        category: Optional category for grouping (e.g., "import")
        **metadata: Additional attributes
    """
    if not settings.enable_metrics:
        return

    try:
        attributes = {"metric.name": metric_name, "metric.unit": unit}
        if category:
            attributes["metric.category"] = category
        _get_business_metric_counter().add(
            int(value), attributes=_attributes(attributes, metadata)
        )
    except Exception as e:
        logger.warning(f"Failed to emit business metric: {e}", exc_info=True)

"""OpenTelemetry SDK setup.

Configures tracer and meter providers with an OTLP/HTTP exporter when an
endpoint is configured. Without an endpoint the providers are installed but
nothing leaves the process.
"""

from __future__ import annotations

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.core.config import settings

logger = logging.getLogger(__name__)

_initialized = False


def _build_resource() -> Resource:
    service_name = settings.otel_service_name or settings.service_name
    namespace = settings.metrics_namespace or settings.service_name.replace(" ", "/")
    return Resource.create(
        {
            "service.name": service_name,
            "service.namespace": namespace,
        }
    )


def setup_opentelemetry() -> None:
    """Initialize the OpenTelemetry SDK once per process."""
    global _initialized

    if _initialized:
        return

    if not settings.enable_metrics:
        logger.info("OpenTelemetry metrics disabled via configuration")
        return

    try:
        resource = _build_resource()
        endpoint = settings.otel_exporter_otlp_endpoint

        trace_provider = TracerProvider(resource=resource)
        if endpoint:
            trace_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint + "/v1/traces"))
            )
        trace.set_tracer_provider(trace_provider)

        if endpoint:
            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=endpoint + "/v1/metrics"),
                export_interval_millis=60000,
            )
            meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
            logger.info(f"OpenTelemetry exporters configured: {endpoint}")
        else:
            meter_provider = MeterProvider(resource=resource)
            logger.info("OpenTelemetry exporter not configured (no endpoint specified)")
        metrics.set_meter_provider(meter_provider)

        _initialized = True
        logger.info("OpenTelemetry SDK initialized successfully")

    except Exception as e:
        # Metrics fall back to no-ops
        logger.warning("Failed to initialize OpenTelemetry SDK: %s", e, exc_info=True)

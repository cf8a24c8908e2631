from __future__ import annotations

from typing import Dict

from fastapi import FastAPI
from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.semconv.resource import ResourceAttributes

# Health probes are never traced.
UNTRACED_PATHS = ("healthz", "readyz")

_CONFIGURED = False


def parse_exporter_headers(raw: str | None) -> Dict[str, str] | None:
    """Parse ``key=value,key=value`` exporter headers, skipping malformed pairs."""

    if not raw:
        return None
    headers: Dict[str, str] = {}
    for pair in raw.split(","):
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            continue
        headers[key.strip()] = value.strip()
    return headers or None


def build_span_exporter(endpoint: str | None, headers: str | None = None) -> SpanExporter:
    if endpoint and endpoint.strip():
        return OTLPSpanExporter(endpoint=endpoint.strip(), headers=parse_exporter_headers(headers))
    return ConsoleSpanExporter()


def configure_tracing(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str,
    environment: str,
    enabled: bool = True,
    exporter_endpoint: str | None = None,
    exporter_headers: str | None = None,
) -> bool:
    """Configure OpenTelemetry tracing + log correlation for the key card API.

    Returns ``False`` when tracing is disabled and the app is left uninstrumented.
    """

    global _CONFIGURED

    if not enabled:
        logger.info("Tracing disabled", service=service_name)
        return False

    if not _CONFIGURED:
        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: service_name,
                ResourceAttributes.SERVICE_VERSION: service_version,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: environment,
            }
        )
        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(
            BatchSpanProcessor(build_span_exporter(exporter_endpoint, exporter_headers))
        )
        trace.set_tracer_provider(tracer_provider)
        LoggingInstrumentor().instrument(set_logging_format=False)
        _CONFIGURED = True
        logger.info(
            "Tracing configured",
            service=service_name,
            exporter="otlp" if exporter_endpoint else "console",
        )
    else:
        tracer_provider = trace.get_tracer_provider()

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=tracer_provider,
        excluded_urls=",".join(UNTRACED_PATHS),
    )
    return True


__all__ = ["build_span_exporter", "configure_tracing", "parse_exporter_headers"]

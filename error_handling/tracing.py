"""
OpenTelemetry setup for the tool server.

Spans are exported over OTLP/gRPC when an endpoint is configured; a console
exporter can be switched on for local development.
"""
import os
import sys
from functools import wraps
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode


def setup_tracing(
    service_name: str,
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    service_version: str = "1.0.0",
) -> trace.Tracer:
    """
    Install a global tracer provider for ``service_name``.

    Args:
        service_name: Reported as ``service.name``
        environment: Reported as ``deployment.environment``
        otlp_endpoint: Collector address; falls back to OTEL_EXPORTER_OTLP_ENDPOINT
        service_version: Reported as ``service.version``
    """
    provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: service_name,
        DEPLOYMENT_ENVIRONMENT: environment,
        "service.version": service_version,
    }))

    # console spans are opt-in and never emitted under pytest
    console = os.getenv("ENABLE_CONSOLE_EXPORTERS", "false").lower() == "true"
    if console and environment == "development" and "pytest" not in sys.modules:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(service_name, service_version)


def instrument_fastapi(app):
    """Trace inbound requests to ``app`` and every outbound httpx call."""
    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    return app


def get_tracer(name: Optional[str] = None) -> trace.Tracer:
    return trace.get_tracer(name or "tool_server")


def trace_span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """Run the decorated coroutine inside a span; failures mark the span as errored."""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            with get_tracer(func.__module__).start_as_current_span(name, attributes=attributes) as span:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    raise
        return wrapper
    return decorator


__all__ = [
    'setup_tracing',
    'get_tracer',
    'trace_span',
    'instrument_fastapi',
]

from __future__ import annotations

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from subtrack.core.config import Settings
from subtrack.middleware.correlation_id import CORRELATION_HEADER, resolve_correlation_id


_provider: TracerProvider | None = None
_exporters_installed = False


def _tracer_provider(service_name: str, service_version: str) -> TracerProvider:
    """Install the global provider once; later calls reuse it."""
    global _provider

    if _provider is None:
        resource = Resource.create({"service.name": service_name, "service.version": service_version})
        _provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_provider)
    return _provider


def configure_tracing(settings: Settings) -> TracerProvider | None:
    global _exporters_installed

    if not settings.otel_enabled:
        return None

    provider = _tracer_provider(settings.app_name, settings.app_version)
    if _exporters_installed:
        return provider

    if settings.otel_exporter_otlp_endpoint:
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _exporters_installed = True
    return provider


def install_inmemory_exporter(service_name: str = "subtrack") -> InMemorySpanExporter:
    """Collect finished spans in memory. Used by the test suite."""
    provider = _tracer_provider(service_name, "test")
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def server_request_hook(span: trace.Span | None, scope: dict[str, Any]) -> None:
    if span is None or not span.is_recording():
        return
    raw = dict(scope.get("headers", [])).get(CORRELATION_HEADER.encode("latin-1"))
    if raw is None:
        return
    value = raw.decode("latin-1")
    if resolve_correlation_id(value) == value:
        span.set_attribute("correlation_id", value)

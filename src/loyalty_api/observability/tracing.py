"""OpenTelemetry wiring for the API process and the accrual reconciler."""

from __future__ import annotations

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, ParentBased, Sampler, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

TRACER_NAME = "loyalty_api"

# Health endpoints are not traced.
_EXCLUDED_URLS = "healthz,readyz"

_provider: TracerProvider | None = None


def parse_exporter_headers(raw: str | None) -> dict[str, str] | None:
    """Parse ``key=value,key2=value2`` as used by ``OTEL_EXPORTER_OTLP_HEADERS``."""

    if not raw:
        return None
    headers = {}
    for pair in raw.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers or None


def build_sampler(ratio: float) -> Sampler:
    """Sample root spans at ``ratio``; child spans follow their parent."""

    if ratio >= 1.0:
        return ParentBased(ALWAYS_ON)
    if ratio <= 0.0:
        return ParentBased(ALWAYS_OFF)
    return ParentBased(TraceIdRatioBased(ratio))


def build_exporter(endpoint: str | None, headers: str | None = None) -> SpanExporter:
    if endpoint:
        return OTLPSpanExporter(endpoint=endpoint, headers=parse_exporter_headers(headers))
    return ConsoleSpanExporter()


def _resource(service_name: str, service_version: str, environment: str) -> Resource:
    return Resource.create(
        {
            ResourceAttributes.SERVICE_NAME: service_name,
            ResourceAttributes.SERVICE_VERSION: service_version,
            ResourceAttributes.DEPLOYMENT_ENVIRONMENT: environment,
        }
    )


def configure_tracing(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str,
    environment: str,
    sample_ratio: float = 1.0,
    exporter_endpoint: str | None = None,
    exporter_headers: str | None = None,
) -> TracerProvider:
    """Install the process tracer provider on first use and instrument ``app``.

    Later calls (one per application instance, e.g. in tests) reuse the
    provider installed first and only add the FastAPI instrumentation.
    """

    global _provider

    if _provider is None:
        _provider = TracerProvider(
            resource=_resource(service_name, service_version, environment),
            sampler=build_sampler(sample_ratio),
        )
        _provider.add_span_processor(BatchSpanProcessor(build_exporter(exporter_endpoint, exporter_headers)))
        trace.set_tracer_provider(_provider)
        LoggingInstrumentor().instrument(set_logging_format=False)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=_provider, excluded_urls=_EXCLUDED_URLS)
    return _provider


def get_tracer() -> trace.Tracer:
    """Tracer for spans emitted outside request handling, such as reconcile cycles."""

    return trace.get_tracer(TRACER_NAME)


__all__ = ["build_exporter", "build_sampler", "configure_tracing", "get_tracer", "parse_exporter_headers"]

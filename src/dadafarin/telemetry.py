"""Tracing for the assistant service.

The ``OBSERVABILITY`` setting picks the backend:

- ``"logfire"``: Pydantic Logfire (set ``LOGFIRE_TOKEN`` env var)
- ``"otel"``   : OpenTelemetry SDK with the OTLP HTTP exporter
- ``"off"``    : no tracing (default)

Either backend instruments the FastAPI app, the pydantic-ai agent and the
httpx client used for the payment gateway. Chat turns add their own spans
through ``span`` (retrieval) and ``start_span`` (the streamed reply, which
outlives any single ``with`` block). With tracing off both return no-op spans.

The tracing libraries are optional extras and only imported when enabled.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from loguru import logger

from dadafarin import __version__
from dadafarin.config import Settings

if TYPE_CHECKING:
    from fastapi import FastAPI

_TRACER_NAME = "dadafarin"

# Set by setup_telemetry; None while tracing is off.
_tracer: Any = None


class _NoopSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def end(self) -> None:
        pass


_NOOP_SPAN = _NoopSpan()


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Initialise the tracing backend and instrument the app.

    When ``settings.observability`` is ``"off"`` this function is a no-op.
    """
    global _tracer
    mode = settings.observability.lower()

    if mode == "off":
        logger.info("Observability disabled (OBSERVABILITY=off)")
        return

    if mode == "logfire":
        _setup_logfire(app, settings)
    elif mode == "otel":
        _setup_otel(app, settings)
    else:
        logger.warning("Unknown observability mode '{}', disabling", mode)
        return

    from opentelemetry import trace

    _tracer = trace.get_tracer(_TRACER_NAME, __version__)


def _setup_logfire(app: FastAPI, settings: Settings) -> None:
    import logfire

    logfire.configure(service_name=settings.otel_service_name, service_version=__version__)
    logfire.instrument_fastapi(app)
    logfire.instrument_pydantic_ai()
    logfire.instrument_httpx()

    logger.info("Logfire enabled | service={}", settings.otel_service_name)


def _setup_otel(app: FastAPI, settings: Settings) -> None:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": settings.otel_service_name, "service.version": __version__}
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=f"{settings.otel_exporter_otlp_endpoint}/v1/traces")
        )
    )
    if settings.otel_console_exporter:
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
    # Clients created after this call (the gateway client in the lifespan) are traced.
    HTTPXClientInstrumentor().instrument()

    logger.info(
        "OpenTelemetry enabled | service={} | endpoint={}",
        settings.otel_service_name,
        settings.otel_exporter_otlp_endpoint,
    )


def is_observability_active(settings: Settings) -> bool:
    """Return True when any observability backend is enabled."""
    return settings.observability.lower() in ("logfire", "otel")


@contextmanager
def span(name: str, **attributes: Any) -> Iterator[Any]:
    """Run the block inside a current span named *name*."""
    if _tracer is None:
        yield _NOOP_SPAN
        return
    with _tracer.start_as_current_span(name, attributes=attributes) as current:
        yield current


def start_span(name: str, **attributes: Any) -> Any:
    """Start a span that the caller ends; it is not made current.

    Used for work that spans ``yield`` points of an async generator, where a
    current-span context would leak into the consumer.
    """
    if _tracer is None:
        return _NOOP_SPAN
    return _tracer.start_span(name, attributes=attributes)

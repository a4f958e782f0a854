"""OpenTelemetry tracing setup and utilities."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer
from opentelemetry.util.types import AttributeValue

from bookshelf import __version__
from bookshelf.core.config import get_settings

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

# Global tracer provider reference for shutdown
_tracer_provider: TracerProvider | None = None

TRACER_NAME = "bookshelf"


def setup_tracing(app: "FastAPI") -> None:
    """Initialize OpenTelemetry tracing and instrument the FastAPI application.

    Creates a TracerProvider tagged with the service name, wires the OTLP
    exporter selected in settings, and instruments FastAPI and the async
    SQLAlchemy engine.

    Args:
        app: The FastAPI application instance to instrument.
    """
    global _tracer_provider

    settings = get_settings()

    if not settings.otel_enabled:
        logger.info("OpenTelemetry tracing is disabled")
        return

    logger.info(f"Initializing OpenTelemetry tracing for service '{settings.otel_service_name}'")

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment,
        }
    )

    _tracer_provider = TracerProvider(resource=resource)

    if settings.otel_exporter_otlp_protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
    else:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter,
        )

        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)

    _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(_tracer_provider)

    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(app)

    # Queries run through the sync engine underneath the async one
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    from bookshelf.core.database import engine

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    logger.info(
        f"OpenTelemetry tracing initialized, exporting to {settings.otel_exporter_otlp_endpoint}"
    )


def shutdown_tracing() -> None:
    """Flush pending spans and shut the tracer provider down."""
    global _tracer_provider

    if _tracer_provider is not None:
        logger.info("Shutting down OpenTelemetry tracing")
        _tracer_provider.shutdown()
        _tracer_provider = None


def set_span_attributes(span: Span, prefix: str, **values: AttributeValue | None) -> None:
    """Set ``<prefix>.<name>`` attributes on a span, skipping None values."""
    for name, value in values.items():
        if value is not None:
            span.set_attribute(f"{prefix}.{name}", value)


@contextmanager
def traced_operation(
    name: str,
    prefix: str,
    tracer: Tracer | None = None,
    **attributes: AttributeValue | None,
) -> Iterator[Span]:
    """Run a block inside a span named ``name``.

    ``attributes`` are recorded under ``prefix`` when the span starts; the
    block can add more with :func:`set_span_attributes`. An exception leaving
    the block is recorded on the span and marks it as an error.
    """
    tracer = tracer or trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        set_span_attributes(span, prefix, **attributes)
        yield span

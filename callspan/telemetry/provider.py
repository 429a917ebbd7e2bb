"""Tracer provider bootstrap.

Installs a global SDK ``TracerProvider`` exporting to an OTLP/HTTP collector
and, optionally, to the console. Membership tracers pick their tracer up
through :func:`get_tracer`.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

from callspan.core.logger import logger
from callspan.core.settings import settings

_tracer_provider: TracerProvider | None = None


def _otlp_headers() -> dict[str, str] | None:
    token = settings.telemetry.OTEL_EXPORTER_OTLP_TOKEN
    if not token:
        return None
    return {"Authorization": f"Bearer {token}"}


def setup_tracer_provider() -> TracerProvider | None:
    """Configure and install the global tracer provider.

    Returns the installed provider, or ``None`` when telemetry is disabled
    or no exporter could be configured.
    """
    global _tracer_provider

    if not settings.telemetry.OTEL_ENABLED:
        return None
    if _tracer_provider is not None:
        return _tracer_provider

    endpoint = settings.telemetry.OTEL_EXPORTER_OTLP_ENDPOINT
    console = settings.telemetry.OTEL_CONSOLE_EXPORTER
    if not endpoint and not console:
        logger.warning(
            "Telemetry enabled but neither OTEL_EXPORTER_OTLP_ENDPOINT nor OTEL_CONSOLE_EXPORTER is set"
        )
        return None

    try:
        tracer_provider = TracerProvider(
            resource=Resource.create(
                {SERVICE_NAME: settings.telemetry.OTEL_SERVICE_NAME}
            )
        )
        if endpoint:
            span_exporter = OTLPSpanExporter(endpoint=endpoint, headers=_otlp_headers())
            tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
        if console:
            tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(tracer_provider)
        _tracer_provider = tracer_provider
        logger.info("OTEL tracing configured: endpoint=%s console=%s", endpoint, console)
        return tracer_provider
    except Exception as exc:
        logger.warning(f"Failed to set up OTEL tracing: {exc}")
        return None


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(settings.telemetry.OTEL_TRACER_NAME)


async def flush_tracer_provider(provider: Optional[TracerProvider] = None) -> None:
    """Force-flush pending spans without blocking the event loop."""
    try:
        tracer_provider = provider or trace.get_tracer_provider()
        force_flush = getattr(tracer_provider, "force_flush", None)
        if not callable(force_flush):
            return
        await asyncio.wait_for(
            asyncio.to_thread(force_flush),
            timeout=settings.telemetry.OTEL_FLUSH_TIMEOUT_MS / 1000.0,
        )
    except TimeoutError:
        logger.debug("Tracer force_flush timed out")
    except Exception as exc:
        logger.debug(f"Failed to force flush tracer provider: {exc}")

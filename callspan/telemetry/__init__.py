"""OpenTelemetry helpers: payload flattening and tracer bootstrap."""

from callspan.telemetry.flatten import flatten_attributes, flatten_voip_event
from callspan.telemetry.provider import flush_tracer_provider, get_tracer, setup_tracer_provider

__all__ = [
    "flatten_attributes",
    "flatten_voip_event",
    "flush_tracer_provider",
    "get_tracer",
    "setup_tracer_provider",
]

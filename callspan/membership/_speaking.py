"""Audio activity spans per speaking (member, device) pair."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span

from callspan.membership import names
from callspan.membership.types import RoomMember


class SpeakingActivityTracker:
    def __init__(
        self,
        tracer: trace.Tracer,
        *,
        parent_context: Callable[[], Optional[Context]],
    ) -> None:
        self._tracer = tracer
        self._parent_context = parent_context
        self._spans: dict[RoomMember, dict[str, Span]] = {}

    @property
    def spans(self) -> dict[RoomMember, dict[str, Span]]:
        return self._spans

    def on_speaking_changed(self, member: RoomMember, device_id: str, speaking: bool) -> None:
        if speaking:
            self._start(member, device_id)
        else:
            self._stop(member, device_id)

    def close(self) -> None:
        for device_map in self._spans.values():
            for span in device_map.values():
                span.end()
        self._spans.clear()

    def _start(self, member: RoomMember, device_id: str) -> None:
        device_map = self._spans.get(member)
        if device_map is not None and device_id in device_map:
            return

        ctx = self._parent_context()
        if ctx is None:
            return

        span = self._tracer.start_span(names.AUDIO_ACTIVITY_SPAN, context=ctx)
        span.set_attribute(names.ATTR_USER_ID, member.user_id)
        span.set_attribute(names.ATTR_DISPLAY_NAME, member.display_name)
        self._spans.setdefault(member, {})[device_id] = span

    def _stop(self, member: RoomMember, device_id: str) -> None:
        device_map = self._spans.get(member)
        if device_map is None:
            return
        span = device_map.pop(device_id, None)
        if span is not None:
            span.end()
        if not device_map:
            del self._spans[member]

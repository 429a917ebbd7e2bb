"""Call tracking table and the reconciler keeping it in sync with the call set."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span

from callspan.core.logger import logger
from callspan.membership import names
from callspan.membership.types import Call, CallsByUserAndDevice, RoomMember


@dataclass
class CallTrackingInfo:
    user_id: str
    device_id: str
    call: Call
    span: Span


class CallTrackingTable:
    """Maps call ids to the span and routing metadata of a tracked call."""

    def __init__(self) -> None:
        self._calls: dict[str, CallTrackingInfo] = {}

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    def __iter__(self) -> Iterator[CallTrackingInfo]:
        return iter(list(self._calls.values()))

    def get(self, call_id: str) -> Optional[CallTrackingInfo]:
        return self._calls.get(call_id)

    def insert(self, info: CallTrackingInfo) -> None:
        self._calls[info.call.call_id] = info

    def remove(self, call_id: str) -> Optional[CallTrackingInfo]:
        """Remove an entry and end its span."""
        info = self._calls.pop(call_id, None)
        if info is not None:
            info.span.end()
        return info

    def clear(self) -> list[str]:
        """End every tracked span and empty the table."""
        call_ids = list(self._calls)
        for call_id in call_ids:
            self.remove(call_id)
        return call_ids


@dataclass
class ReconcileResult:
    opened: list[str] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.opened or self.closed)


class CallSetReconciler:
    """Opens and closes call spans as calls appear in and vanish from the call set."""

    def __init__(
        self,
        tracer: trace.Tracer,
        table: CallTrackingTable,
        *,
        parent_context: Callable[[], Optional[Context]],
        lookup_member: Callable[[str], Optional[RoomMember]],
    ) -> None:
        self._tracer = tracer
        self._table = table
        self._parent_context = parent_context
        self._lookup_member = lookup_member

    def reconcile(self, calls: CallsByUserAndDevice) -> ReconcileResult:
        result = ReconcileResult()

        for user_id, user_calls in calls.items():
            for device_id, call in user_calls.items():
                if call.call_id in self._table:
                    continue
                self._table.insert(
                    CallTrackingInfo(
                        user_id=user_id,
                        device_id=device_id,
                        call=call,
                        span=self._start_call_span(user_id, device_id),
                    )
                )
                result.opened.append(call.call_id)

        for info in self._table:
            user_calls = calls.get(info.user_id)
            if user_calls is None or info.device_id not in user_calls:
                self._table.remove(info.call.call_id)
                result.closed.append(info.call.call_id)

        if result.changed:
            logger.debug(
                "Call set reconciled: opened=%s closed=%s tracked=%s",
                result.opened,
                result.closed,
                len(self._table),
            )
        return result

    def _start_call_span(self, user_id: str, device_id: str) -> Span:
        span = self._tracer.start_span(names.CALL_SPAN, context=self._parent_context())
        span.set_attribute(names.ATTR_TARGET_USER_ID, user_id)
        span.set_attribute(names.ATTR_TARGET_DEVICE_ID, device_id)
        member = self._lookup_member(user_id)
        if member is not None:
            span.set_attribute(names.ATTR_TARGET_DISPLAY_NAME, member.name)
        return span

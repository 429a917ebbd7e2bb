"""Owner of the span bracketing the whole joined-to-the-call interval."""

from __future__ import annotations

from typing import Optional

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span
from opentelemetry.util.types import Attributes

from callspan.core.logger import logger
from callspan.membership import names
from callspan.membership.types import IDLE, Joined, MembershipIdentity, MembershipState


class MembershipSpanOwner:
    """Holds the membership span and the context child spans nest under."""

    def __init__(self, tracer: trace.Tracer) -> None:
        self._tracer = tracer
        self._state: MembershipState = IDLE

    @property
    def state(self) -> MembershipState:
        return self._state

    @property
    def is_joined(self) -> bool:
        return isinstance(self._state, Joined)

    @property
    def span(self) -> Optional[Span]:
        if isinstance(self._state, Joined):
            return self._state.span
        return None

    @property
    def context(self) -> Optional[Context]:
        if isinstance(self._state, Joined):
            return self._state.context
        return None

    def join(self, identity: MembershipIdentity) -> None:
        if isinstance(self._state, Joined):
            logger.warning(
                "Joining group call %s while already joined; replacing membership span",
                identity.conf_id,
            )
            self._end_current()

        span = self._tracer.start_span(names.MEMBERSHIP_SPAN)
        span.set_attribute(names.ATTR_CONF_ID, identity.conf_id)
        span.set_attribute(names.ATTR_USER_ID, identity.user_id)
        span.set_attribute(names.ATTR_DEVICE_ID, identity.device_id)
        span.set_attribute(names.ATTR_DISPLAY_NAME, identity.display_name)

        ctx = trace.set_span_in_context(span, otel_context.get_current())
        self._state = Joined(span=span, context=ctx)
        span.add_event(names.EVENT_JOIN_CALL)
        logger.debug("Membership span started: conf_id=%s", identity.conf_id)

    def leave(self) -> bool:
        """End the membership span. Returns False when nothing was joined."""
        if not isinstance(self._state, Joined):
            return False
        self._state.span.add_event(names.EVENT_LEAVE_CALL)
        self._end_current()
        return True

    def add_event(self, name: str, attributes: Attributes = None) -> None:
        if isinstance(self._state, Joined):
            self._state.span.add_event(name, attributes)

    def record_exception(self, error: BaseException) -> bool:
        if not isinstance(self._state, Joined):
            return False
        self._state.span.record_exception(error)
        return True

    def _end_current(self) -> None:
        if isinstance(self._state, Joined):
            span = self._state.span
            self._state = IDLE
            span.end()
            logger.debug("Membership span ended")

"""Pairs connection and byte-sent statistics reports into a single span."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span

from callspan.core.logger import logger
from callspan.membership import names
from callspan.membership.types import MembershipIdentity, StatsReportEvent


@dataclass
class StatsBatchState:
    span: Optional[Span] = None
    stats: list[StatsReportEvent] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.span is not None


class StatsBatchCoordinator:
    """Accumulates one report of each kind into a ``statsReport`` span.

    The first report opens the span. A report of the other kind completes
    the pair and ends it. A report repeating a kind already pending is
    added to the open span as another event and the batch stays open.
    """

    def __init__(
        self,
        tracer: trace.Tracer,
        *,
        parent_context: Callable[[], Optional[Context]],
        identity: Callable[[], MembershipIdentity],
    ) -> None:
        self._tracer = tracer
        self._parent_context = parent_context
        self._identity = identity
        self._batch = StatsBatchState()

    @property
    def batch(self) -> StatsBatchState:
        return self._batch

    def on_report(self, event: StatsReportEvent) -> None:
        ctx = self._parent_context()
        if ctx is None:
            logger.debug("Dropping %s report: not joined to a group call", event.type.value)
            return

        if self._batch.span is None:
            self._batch.span = self._start_span(ctx)
            self._record(self._batch.span, event)
            return

        completes_pair = all(pending.type != event.type for pending in self._batch.stats)
        self._record(self._batch.span, event)
        if completes_pair:
            self._end_batch()

    def close(self) -> None:
        """End an unpaired batch, if any."""
        if self._batch.span is not None:
            logger.debug(
                "Closing unpaired stats batch with %s report(s)", len(self._batch.stats)
            )
            self._end_batch()

    def _record(self, span: Span, event: StatsReportEvent) -> None:
        span.add_event(event.type.value, event.data)
        self._batch.stats.append(event)

    def _end_batch(self) -> None:
        span = self._batch.span
        self._batch = StatsBatchState()
        if span is not None:
            span.end()

    def _start_span(self, ctx: Context) -> Span:
        identity = self._identity()
        span = self._tracer.start_span(names.STATS_REPORT_SPAN, context=ctx)
        span.set_attribute(names.ATTR_CONF_ID, identity.conf_id)
        span.set_attribute(names.ATTR_USER_ID, identity.user_id)
        span.set_attribute(names.ATTR_DISPLAY_NAME, identity.display_name)
        return span

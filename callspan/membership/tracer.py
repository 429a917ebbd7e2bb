"""OpenTelemetry tracing of a user's membership in a group call.

One :class:`GroupCallMembershipTracer` follows one group call. It produces
the span tree::

    matrix.groupCallMembership            (join -> leave)
    ├── matrix.call                       (one per peer call)
    ├── matrix.groupCallMembership.statsReport
    └── matrix.audioActivity              (one per speaking member/device)

The tracer subscribes to ``calls_changed`` and ``error`` on the injected
:class:`~callspan.membership.types.GroupCall`; every other notification is
delivered by calling the matching ``on_*`` method.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Optional

from opentelemetry import trace

from callspan.core.exceptions import CallError, FlatteningError, GroupCallError
from callspan.core.logger import logger
from callspan.core.settings import settings
from callspan.membership import names
from callspan.membership._calls import CallSetReconciler, CallTrackingTable, ReconcileResult
from callspan.membership._membership import MembershipSpanOwner
from callspan.membership._speaking import SpeakingActivityTracker
from callspan.membership._stats import StatsBatchCoordinator
from callspan.membership.types import (
    Call,
    CallsByUserAndDevice,
    GroupCall,
    GroupCallEvent,
    InboundEvent,
    MembershipIdentity,
    RoomMember,
    StatsReportEvent,
    StatsReportType,
    VoipEvent,
)
from callspan.telemetry.flatten import AttributeValue, flatten_attributes, flatten_voip_event
from callspan.telemetry.provider import get_tracer


class GroupCallMembershipTracer:
    """Represents the span of time we intend to be joined to a group call."""

    def __init__(
        self,
        group_call: GroupCall,
        *,
        user_id: str,
        device_id: str,
        tracer: Optional[trace.Tracer] = None,
        max_depth: Optional[int] = None,
    ) -> None:
        self._group_call = group_call
        self._user_id = user_id
        self._device_id = device_id
        self._tracer = tracer or get_tracer()
        self._max_depth = (
            max_depth
            if max_depth is not None
            else settings.membership.MEMBERSHIP_FLATTEN_MAX_DEPTH
        )

        self._membership = MembershipSpanOwner(self._tracer)
        self._calls = CallTrackingTable()
        self._reconciler = CallSetReconciler(
            self._tracer,
            self._calls,
            parent_context=lambda: self._membership.context,
            lookup_member=group_call.get_member,
        )
        self._stats = StatsBatchCoordinator(
            self._tracer,
            parent_context=lambda: self._membership.context,
            identity=self._identity,
        )
        self._speaking = SpeakingActivityTracker(
            self._tracer,
            parent_context=lambda: self._membership.context,
        )

        self._subscriptions: list[tuple[str, Callable[..., None]]] = []
        self._subscribe(GroupCallEvent.CALLS_CHANGED.value, self.on_calls_changed)
        self._subscribe(GroupCallEvent.ERROR.value, self.on_group_call_error)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def membership(self) -> MembershipSpanOwner:
        return self._membership

    @property
    def calls(self) -> CallTrackingTable:
        return self._calls

    @property
    def stats(self) -> StatsBatchCoordinator:
        return self._stats

    @property
    def speaking(self) -> SpeakingActivityTracker:
        return self._speaking

    def dispose(self) -> None:
        """Detach from the group call. Open spans are left to :meth:`on_leave`."""
        while self._subscriptions:
            event, handler = self._subscriptions.pop()
            self._group_call.off(event, handler)

    def _subscribe(self, event: str, handler: Callable[..., None]) -> None:
        self._group_call.on(event, handler)
        self._subscriptions.append((event, handler))

    def _identity(self) -> MembershipIdentity:
        member = self._group_call.get_member(self._user_id)
        return MembershipIdentity(
            conf_id=self._group_call.group_call_id,
            user_id=self._user_id,
            device_id=self._device_id,
            display_name=(
                member.name if member else settings.membership.MEMBERSHIP_UNKNOWN_DISPLAY_NAME
            ),
        )

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def on_join(self) -> None:
        if self._membership.is_joined:
            # Children of the replaced membership span must not outlive it.
            self._close_children()
        self._membership.join(self._identity())

    def on_leave(self) -> None:
        if not self._membership.is_joined:
            return
        self._close_children()
        self._membership.leave()

    def _close_children(self) -> None:
        self._stats.close()
        self._speaking.close()
        closed = self._calls.clear()
        if closed:
            logger.debug("Closed %s call span(s)", len(closed))

    def on_update_room_state(self, event: Optional[InboundEvent]) -> None:
        if not event or not event.type.startswith(names.ROOM_STATE_CALL_TYPE_PREFIXES):
            return
        attributes = self._flatten(event.content, voip=True)
        if attributes is None:
            return
        self._membership.add_event(f"{names.EVENT_ROOM_STATE_PREFIX}{event.type}", attributes)

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def on_calls_changed(self, calls: CallsByUserAndDevice) -> ReconcileResult:
        return self._reconciler.reconcile(calls)

    def on_call_state_change(self, call: Call, new_state: str) -> None:
        info = self._calls.get(call.call_id)
        if info is None:
            logger.error(f"Got call state change for unknown call ID {call.call_id}")
            return
        state = getattr(new_state, "value", new_state)
        info.span.add_event(names.EVENT_CALL_STATE_CHANGE, {"state": str(state)})

    def on_send_event(self, call: Call, event: VoipEvent) -> None:
        if not event.event_type.startswith(names.CALL_EVENT_TYPE_PREFIX):
            return

        info = self._calls.get(call.call_id)
        if info is None:
            logger.error(f"Sent {event.event_type} for unknown call ID {call.call_id}")
            return

        if event.type == "toDevice":
            name = f"{names.EVENT_SEND_TO_DEVICE_PREFIX}{event.event_type}"
        elif event.type == "sendEvent":
            name = f"{names.EVENT_SEND_TO_ROOM_PREFIX}{event.event_type}"
        else:
            logger.debug("Ignoring sent event with delivery channel %s", event.type)
            return

        attributes = self._flatten(event, voip=True)
        if attributes is None:
            return
        info.span.add_event(name, attributes)

    def on_received_voip_event(self, event: InboundEvent) -> None:
        # Events come straight from the signalling layer, so the call they
        # reference may be one we never tracked.
        sender = {names.ATTR_SENDER_USER_ID: event.sender or ""}
        call_id = event.content.get("call_id")
        if not call_id:
            self._membership.add_event(names.EVENT_RECEIVE_NO_CALL_ID, sender)
            logger.error("Received call event with no call ID!")
            return

        info = self._calls.get(call_id)
        if info is None:
            self._membership.add_event(names.EVENT_RECEIVE_UNKNOWN_CALL_ID, sender)
            logger.error(f"Received call event for unknown call ID {call_id}")
            return

        attributes = self._flatten(event.content, voip=True)
        if attributes is None:
            return
        info.span.add_event(names.EVENT_RECEIVE_VOIP, {**sender, **attributes})

    # ------------------------------------------------------------------
    # Local media
    # ------------------------------------------------------------------

    def on_toggle_microphone_muted(self, new_value: bool) -> None:
        self._membership.add_event(
            names.EVENT_TOGGLE_MIC_MUTED, {names.ATTR_MICROPHONE_MUTED: new_value}
        )

    def on_set_microphone_muted(self, set_muted: bool) -> None:
        self._membership.add_event(
            names.EVENT_SET_MIC_MUTED, {names.ATTR_MICROPHONE_MUTED: set_muted}
        )

    def on_toggle_local_video_muted(self, new_value: bool) -> None:
        self._membership.add_event(
            names.EVENT_TOGGLE_VIDEO_MUTED, {names.ATTR_VIDEO_MUTED: new_value}
        )

    def on_set_local_video_muted(self, set_muted: bool) -> None:
        self._membership.add_event(
            names.EVENT_SET_VIDEO_MUTED, {names.ATTR_VIDEO_MUTED: set_muted}
        )

    def on_toggle_screensharing(self, new_value: bool) -> None:
        self._membership.add_event(
            names.EVENT_TOGGLE_SCREENSHARING, {names.ATTR_SCREENSHARING_ENABLED: new_value}
        )

    # ------------------------------------------------------------------
    # Stats and audio activity
    # ------------------------------------------------------------------

    def on_connection_stats_report(self, report: Mapping[str, Any]) -> None:
        self._on_stats_report(StatsReportType.CONNECTION, report)

    def on_byte_sent_stats_report(self, report: Mapping[str, Any]) -> None:
        self._on_stats_report(StatsReportType.BYTE_SENT, report)

    def _on_stats_report(self, kind: StatsReportType, report: Mapping[str, Any]) -> None:
        data = self._flatten(report, prefix=f"{kind.value}.")
        if data is None:
            return
        self._stats.on_report(StatsReportEvent(type=kind, data=data))

    def on_speaking(self, member: RoomMember, device_id: str, speaking: bool) -> None:
        self._speaking.on_speaking_changed(member, device_id, speaking)

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def on_call_error(self, error: CallError, call: Call) -> None:
        info = self._calls.get(call.call_id)
        if info is None:
            logger.error(f"Got error for unknown call ID {call.call_id}")
            return
        info.span.record_exception(error)

    def on_group_call_error(self, error: GroupCallError) -> None:
        if not self._membership.record_exception(error):
            logger.error(f"Got group call error while not joined: {error}")

    def on_undecryptable_to_device(self, event: InboundEvent) -> None:
        self._membership.add_event(
            names.EVENT_UNDECRYPTABLE_TO_DEVICE,
            {names.ATTR_SENDER_USER_ID: event.sender or ""},
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _flatten(
        self,
        payload: Any,
        *,
        prefix: str = "",
        voip: bool = False,
    ) -> Optional[dict[str, AttributeValue]]:
        """Flatten a payload, returning None when it has to be skipped."""
        try:
            if voip:
                return flatten_voip_event(payload, self._max_depth)
            return flatten_attributes(payload, prefix, self._max_depth)
        except FlatteningError as exc:
            logger.warning(f"Skipping event with malformed payload: {exc}")
            return None

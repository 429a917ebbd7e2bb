"""Drives a membership tracer from LiveKit room events.

Each remote participant of the room is treated as one peer call keyed by the
participant sid, so the group call sees ``{identity: {sid: call}}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from livekit import rtc

from callspan.core.logger import logger
from callspan.membership.tracer import GroupCallMembershipTracer
from callspan.membership.types import GroupCall, GroupCallEvent, RoomMember


@dataclass(frozen=True)
class ParticipantCall:
    call_id: str
    identity: str


def member_for(participant: Any) -> RoomMember:
    name = getattr(participant, "name", None) or None
    return RoomMember(
        user_id=participant.identity,
        name=name or participant.identity,
        raw_display_name=name,
    )


class RoomMembershipBridge:
    """Translates ``rtc.Room`` events into group call and tracer notifications."""

    def __init__(
        self,
        room: rtc.Room,
        group_call: GroupCall,
        tracer: GroupCallMembershipTracer,
    ) -> None:
        self._room = room
        self._group_call = group_call
        self._tracer = tracer
        self._speakers: dict[tuple[str, str], RoomMember] = {}
        self._handlers: list[tuple[str, Callable[..., None]]] = []

    def attach(self) -> None:
        if self._handlers:
            return
        self._listen("participant_connected", self._on_participants_changed)
        self._listen("participant_disconnected", self._on_participants_changed)
        self._listen("active_speakers_changed", self._on_active_speakers_changed)
        self._listen("disconnected", self._on_disconnected)
        self.sync_calls()

    def close(self) -> None:
        while self._handlers:
            event, handler = self._handlers.pop()
            self._room.off(event, handler)

    def sync_calls(self) -> None:
        calls: dict[str, dict[str, ParticipantCall]] = {}
        members: dict[str, RoomMember] = {}
        local = getattr(self._room, "local_participant", None)
        if local is not None and local.identity:
            members[local.identity] = member_for(local)
        for participant in self._room.remote_participants.values():
            members[participant.identity] = member_for(participant)
            calls.setdefault(participant.identity, {})[participant.sid] = ParticipantCall(
                call_id=participant.sid,
                identity=participant.identity,
            )
        self._group_call.members = members
        self._group_call.emit(GroupCallEvent.CALLS_CHANGED.value, calls)

    def _listen(self, event: str, handler: Callable[..., None]) -> None:
        self._room.on(event, handler)
        self._handlers.append((event, handler))

    def _on_participants_changed(self, participant: rtc.RemoteParticipant) -> None:
        logger.debug("Participant set changed: identity=%s", participant.identity)
        self.sync_calls()

    def _on_active_speakers_changed(self, speakers: list[rtc.Participant]) -> None:
        current = {
            (p.identity, p.sid): self._speakers.get((p.identity, p.sid)) or member_for(p)
            for p in speakers
        }

        for key, member in list(self._speakers.items()):
            if key not in current:
                self._tracer.on_speaking(member, key[1], False)
        for key, member in current.items():
            if key not in self._speakers:
                self._tracer.on_speaking(member, key[1], True)

        self._speakers = current

    def _on_disconnected(self, reason: Any = None) -> None:
        logger.info("Room disconnected: reason=%s", reason)
        self._speakers.clear()
        self._tracer.on_leave()

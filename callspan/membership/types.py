"""Value types exchanged with the call-signalling layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, Union

from livekit import rtc
from opentelemetry.context import Context
from opentelemetry.trace import Span

from callspan.telemetry.flatten import AttributeValue


@dataclass(frozen=True)
class RoomMember:
    """A participant of the room hosting the group call."""

    user_id: str
    name: str
    raw_display_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.raw_display_name or self.name


class Call(Protocol):
    """One peer-to-peer media connection to a remote device."""

    call_id: str


# user id -> device id -> call
CallsByUserAndDevice = Mapping[str, Mapping[str, Call]]


class GroupCallEvent(str, Enum):
    """Events emitted by a :class:`GroupCall` source."""

    CALLS_CHANGED = "calls_changed"
    ERROR = "error"


class GroupCall(rtc.EventEmitter[str]):
    """Event source for one group call.

    The signalling layer emits ``calls_changed`` with the full
    :data:`CallsByUserAndDevice` mapping whenever the set of peer calls
    changes, and ``error`` with a :class:`~callspan.core.exceptions.GroupCallError`.
    """

    def __init__(
        self,
        group_call_id: str,
        members: Optional[Mapping[str, RoomMember]] = None,
    ) -> None:
        super().__init__()
        self.group_call_id = group_call_id
        self.members: dict[str, RoomMember] = dict(members or {})

    def get_member(self, user_id: str) -> Optional[RoomMember]:
        return self.members.get(user_id)


@dataclass
class VoipEvent:
    """An outbound call signalling event.

    ``type`` is the delivery channel: ``"toDevice"`` or ``"sendEvent"``.
    """

    event_type: str
    type: str
    content: dict[str, Any] = field(default_factory=dict)


@dataclass
class InboundEvent:
    """An event received from the room or delivered to this device."""

    type: str
    sender: Optional[str]
    content: dict[str, Any] = field(default_factory=dict)


class StatsReportType(str, Enum):
    CONNECTION = "matrix.stats.connection"
    BYTE_SENT = "matrix.stats.byteSent"


@dataclass
class StatsReportEvent:
    type: StatsReportType
    data: dict[str, AttributeValue]


@dataclass(frozen=True)
class MembershipIdentity:
    conf_id: str
    user_id: str
    device_id: str
    display_name: str


class Idle:
    """No membership span is live."""

    def __repr__(self) -> str:
        return "Idle"


IDLE = Idle()


@dataclass(frozen=True)
class Joined:
    """A live membership span and the context derived from it."""

    span: Span
    context: Context


MembershipState = Union[Idle, Joined]

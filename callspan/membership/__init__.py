"""Span lifecycle management for group call membership."""

from callspan.membership.tracer import GroupCallMembershipTracer
from callspan.membership.types import (
    GroupCall,
    GroupCallEvent,
    InboundEvent,
    RoomMember,
    StatsReportType,
    VoipEvent,
)

__all__ = [
    "GroupCall",
    "GroupCallEvent",
    "GroupCallMembershipTracer",
    "InboundEvent",
    "RoomMember",
    "StatsReportType",
    "VoipEvent",
]

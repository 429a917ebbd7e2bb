"""Main entry point for group call membership telemetry.

Supports running:
- a scripted demo session exported to the configured tracer provider
- an observer that traces a live LiveKit room
"""

import argparse
import asyncio
import uuid

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

from callspan.core.logger import logger
from callspan.core.settings import settings
from callspan.membership import (
    GroupCall,
    GroupCallMembershipTracer,
    InboundEvent,
    RoomMember,
    VoipEvent,
)
from callspan.livekit_bridge import ParticipantCall
from callspan.telemetry import flush_tracer_provider, setup_tracer_provider


def _demo_tracer() -> trace.Tracer:
    provider = setup_tracer_provider()
    if provider is None:
        logger.info("No exporter configured, printing spans to the console")
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    return provider.get_tracer(settings.telemetry.OTEL_TRACER_NAME)


def run_demo():
    """Replay a short scripted session through the tracer."""
    logger.info("Running demo session...")
    alice = RoomMember(user_id="@alice:example.org", name="Alice")
    bob = RoomMember(user_id="@bob:example.org", name="Bob")
    group_call = GroupCall(
        f"demo-{uuid.uuid4().hex[:8]}",
        members={alice.user_id: alice, bob.user_id: bob},
    )
    tracer = GroupCallMembershipTracer(
        group_call,
        user_id=alice.user_id,
        device_id="ALICEDEVICE",
        tracer=_demo_tracer(),
    )

    call = ParticipantCall(call_id="call-1", identity=bob.user_id)
    tracer.on_join()
    group_call.emit("calls_changed", {bob.user_id: {"BOBDEVICE": call}})
    tracer.on_send_event(
        call,
        VoipEvent(
            event_type="m.call.invite",
            type="toDevice",
            content={"call_id": call.call_id, "offer": {"type": "offer", "sdp": "v=0"}},
        ),
    )
    tracer.on_received_voip_event(
        InboundEvent(
            type="m.call.answer",
            sender=bob.user_id,
            content={"call_id": call.call_id, "answer": {"type": "answer"}},
        )
    )
    tracer.on_call_state_change(call, "connected")
    tracer.on_speaking(bob, "BOBDEVICE", True)
    tracer.on_connection_stats_report({"report": {"bandwidth": {"download": 512}}})
    tracer.on_byte_sent_stats_report({"report": {"bytesSent": 2048}})
    tracer.on_speaking(bob, "BOBDEVICE", False)
    tracer.on_toggle_microphone_muted(True)
    group_call.emit("calls_changed", {})
    tracer.on_leave()
    tracer.dispose()
    asyncio.run(flush_tracer_provider())
    logger.info("Demo session complete")


async def _watch_room(room_name: str) -> None:
    from livekit import rtc

    from callspan.livekit_bridge import RoomMembershipBridge
    from callspan.livekit_tokens import create_observer_token

    if not settings.livekit.LIVEKIT_URL:
        raise SystemExit("LIVEKIT_URL must be set to watch a room")

    setup_tracer_provider()
    token = create_observer_token(room_name=room_name)
    room = rtc.Room()
    disconnected = asyncio.Event()
    room.on("disconnected", lambda *_: disconnected.set())

    await room.connect(settings.livekit.LIVEKIT_URL, token.token)
    logger.info("Connected to room %s as %s", room_name, token.identity)

    group_call = GroupCall(room_name)
    tracer = GroupCallMembershipTracer(
        group_call,
        user_id=token.identity,
        device_id=room.local_participant.sid,
    )
    bridge = RoomMembershipBridge(room, group_call, tracer)
    tracer.on_join()
    bridge.attach()
    try:
        await disconnected.wait()
    finally:
        tracer.on_leave()
        bridge.close()
        tracer.dispose()
        await room.disconnect()
        await flush_tracer_provider()


def run_room(room_name: str):
    """Trace a live LiveKit room until it disconnects or is interrupted."""
    logger.info(f"Watching LiveKit room '{room_name}'...")
    try:
        asyncio.run(_watch_room(room_name))
    except KeyboardInterrupt:
        logger.info("Shutdown complete")


def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Group call membership telemetry"
    )
    parser.add_argument(
        "mode",
        choices=["demo", "room"],
        default="demo",
        nargs="?",
        help="Run mode: 'demo' (scripted session, default) or 'room' (observe a LiveKit room)",
    )
    parser.add_argument("room_name", nargs="?", help="LiveKit room to observe in 'room' mode")

    args = parser.parse_args()

    logger.info(f"Starting in '{args.mode}' mode...")

    if args.mode == "room":
        if not args.room_name:
            parser.error("room mode requires a room name")
        run_room(args.room_name)
    else:
        run_demo()


if __name__ == "__main__":
    main()

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from livekit import rtc

from callspan.livekit_bridge import RoomMembershipBridge, member_for
from callspan.membership import names


class _FakeRoom(rtc.EventEmitter[str]):
    def __init__(self) -> None:
        super().__init__()
        self.remote_participants: dict[str, Any] = {}

    def connect_participant(self, identity: str, sid: str, name: str = "") -> Any:
        participant = SimpleNamespace(identity=identity, sid=sid, name=name)
        self.remote_participants[identity] = participant
        self.emit("participant_connected", participant)
        return participant

    def disconnect_participant(self, identity: str) -> None:
        participant = self.remote_participants.pop(identity)
        self.emit("participant_disconnected", participant)


def _bridge(membership_tracer, group_call):
    room = _FakeRoom()
    bridge = RoomMembershipBridge(room, group_call, membership_tracer)  # type: ignore[arg-type]
    return room, bridge


def test_participants_become_tracked_calls(membership_tracer, group_call, finished_spans):
    room, bridge = _bridge(membership_tracer, group_call)
    membership_tracer.on_join()
    bridge.attach()

    room.connect_participant("carol", "PA_carol", name="Carol")
    room.connect_participant("dave", "PA_dave")

    assert "PA_carol" in membership_tracer.calls
    assert "PA_dave" in membership_tracer.calls
    assert group_call.get_member("carol").name == "Carol"
    assert group_call.get_member("dave").name == "dave"

    room.disconnect_participant("carol")

    (ended,) = finished_spans(names.CALL_SPAN)
    assert ended.attributes[names.ATTR_TARGET_USER_ID] == "carol"
    assert ended.attributes[names.ATTR_TARGET_DEVICE_ID] == "PA_carol"
    assert ended.attributes[names.ATTR_TARGET_DISPLAY_NAME] == "Carol"
    bridge.close()


def test_attach_seeds_existing_participants(membership_tracer, group_call):
    room, bridge = _bridge(membership_tracer, group_call)
    room.remote_participants["erin"] = SimpleNamespace(identity="erin", sid="PA_erin", name="")

    bridge.attach()
    bridge.attach()

    assert "PA_erin" in membership_tracer.calls
    bridge.close()


def test_active_speakers_diffed_into_speaking_spans(membership_tracer, group_call, finished_spans):
    room, bridge = _bridge(membership_tracer, group_call)
    membership_tracer.on_join()
    bridge.attach()
    carol = SimpleNamespace(identity="carol", sid="PA_carol", name="Carol")
    dave = SimpleNamespace(identity="dave", sid="PA_dave", name="")

    room.emit("active_speakers_changed", [carol])
    room.emit("active_speakers_changed", [carol, dave])
    room.emit("active_speakers_changed", [dave])

    (ended,) = finished_spans(names.AUDIO_ACTIVITY_SPAN)
    assert ended.attributes[names.ATTR_USER_ID] == "carol"
    assert ended.attributes[names.ATTR_DISPLAY_NAME] == "Carol"
    assert member_for(dave) in membership_tracer.speaking.spans
    bridge.close()


def test_room_disconnect_leaves_membership(membership_tracer, group_call, finished_spans):
    room, bridge = _bridge(membership_tracer, group_call)
    membership_tracer.on_join()
    bridge.attach()
    room.connect_participant("carol", "PA_carol")

    room.emit("disconnected", "CLIENT_INITIATED")

    assert not membership_tracer.membership.is_joined
    assert len(finished_spans(names.MEMBERSHIP_SPAN)) == 1
    assert len(finished_spans(names.CALL_SPAN)) == 1
    bridge.close()


def test_close_detaches_room_listeners(membership_tracer, group_call):
    room, bridge = _bridge(membership_tracer, group_call)
    bridge.attach()
    bridge.close()

    room.connect_participant("carol", "PA_carol")

    assert len(membership_tracer.calls) == 0


def test_renamed_speaker_still_ends_its_span(membership_tracer, group_call, finished_spans):
    room, bridge = _bridge(membership_tracer, group_call)
    membership_tracer.on_join()
    bridge.attach()

    room.emit("active_speakers_changed", [SimpleNamespace(identity="carol", sid="PA", name="Carol")])
    room.emit(
        "active_speakers_changed", [SimpleNamespace(identity="carol", sid="PA", name="Carol B")]
    )
    room.emit("active_speakers_changed", [])

    (ended,) = finished_spans(names.AUDIO_ACTIVITY_SPAN)
    assert ended.attributes[names.ATTR_DISPLAY_NAME] == "Carol"
    assert membership_tracer.speaking.spans == {}
    bridge.close()


def test_member_directory_follows_room(membership_tracer, group_call):
    room, bridge = _bridge(membership_tracer, group_call)
    room.local_participant = SimpleNamespace(identity="observer", sid="PA_obs", name="")
    bridge.attach()

    room.connect_participant("carol", "PA_carol", name="Carol")
    room.disconnect_participant("carol")

    assert group_call.get_member("carol") is None
    assert group_call.get_member("observer").name == "observer"
    bridge.close()

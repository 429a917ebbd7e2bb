from unittest.mock import MagicMock

from opentelemetry import trace

from callspan.membership import names
from callspan.membership._speaking import SpeakingActivityTracker
from callspan.membership.types import RoomMember

BOB = RoomMember(user_id="@bob:example.org", name="Bob", raw_display_name="bob")


def _tracker(tracer, ctx):
    return SpeakingActivityTracker(tracer, parent_context=lambda: ctx)


def test_repeated_start_creates_one_span():
    mock_tracer = MagicMock()
    tracker = _tracker(mock_tracer, object())

    tracker.on_speaking_changed(BOB, "dev1", True)
    tracker.on_speaking_changed(BOB, "dev1", True)

    mock_tracer.start_span.assert_called_once()
    assert list(tracker.spans[BOB]) == ["dev1"]


def test_stop_ends_span_and_removes_member(tracer, finished_spans):
    parent = tracer.start_span("membership")
    tracker = _tracker(tracer, trace.set_span_in_context(parent))

    tracker.on_speaking_changed(BOB, "dev1", True)
    tracker.on_speaking_changed(BOB, "dev1", False)

    spans = finished_spans(names.AUDIO_ACTIVITY_SPAN)
    assert len(spans) == 1
    assert spans[0].attributes[names.ATTR_USER_ID] == "@bob:example.org"
    assert spans[0].attributes[names.ATTR_DISPLAY_NAME] == "bob"
    assert spans[0].parent.span_id == parent.get_span_context().span_id
    assert BOB not in tracker.spans


def test_member_kept_while_other_device_speaks(tracer, finished_spans):
    tracker = _tracker(tracer, trace.set_span_in_context(tracer.start_span("m")))

    tracker.on_speaking_changed(BOB, "dev1", True)
    tracker.on_speaking_changed(BOB, "dev2", True)
    tracker.on_speaking_changed(BOB, "dev1", False)

    assert list(tracker.spans[BOB]) == ["dev2"]
    assert len(finished_spans(names.AUDIO_ACTIVITY_SPAN)) == 1

    tracker.on_speaking_changed(BOB, "dev2", False)
    assert tracker.spans == {}


def test_stop_without_start_is_a_noop():
    mock_tracer = MagicMock()
    tracker = _tracker(mock_tracer, object())

    tracker.on_speaking_changed(BOB, "dev1", False)

    mock_tracer.start_span.assert_not_called()
    assert tracker.spans == {}


def test_start_without_membership_is_suppressed():
    mock_tracer = MagicMock()
    tracker = _tracker(mock_tracer, None)

    tracker.on_speaking_changed(BOB, "dev1", True)

    mock_tracer.start_span.assert_not_called()
    assert tracker.spans == {}


def test_close_ends_all_open_spans(tracer, finished_spans):
    tracker = _tracker(tracer, trace.set_span_in_context(tracer.start_span("m")))
    carol = RoomMember(user_id="@carol:example.org", name="Carol")

    tracker.on_speaking_changed(BOB, "dev1", True)
    tracker.on_speaking_changed(carol, "dev9", True)
    tracker.close()

    assert len(finished_spans(names.AUDIO_ACTIVITY_SPAN)) == 2
    assert tracker.spans == {}

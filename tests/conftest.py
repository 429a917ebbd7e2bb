import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from callspan.membership import GroupCall, GroupCallMembershipTracer, RoomMember


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    # Local provider only; the global one is never touched in tests
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("callspan-tests")


@pytest.fixture
def alice():
    return RoomMember(user_id="@alice:example.org", name="Alice", raw_display_name="alice")


@pytest.fixture
def bob():
    return RoomMember(user_id="@bob:example.org", name="Bob", raw_display_name="bob")


@pytest.fixture
def group_call(alice, bob):
    return GroupCall(
        "conf-1",
        members={alice.user_id: alice, bob.user_id: bob},
    )


@pytest.fixture
def membership_tracer(group_call, tracer, alice):
    membership_tracer = GroupCallMembershipTracer(
        group_call,
        user_id=alice.user_id,
        device_id="ALICEDEVICE",
        tracer=tracer,
    )
    yield membership_tracer
    membership_tracer.dispose()


@pytest.fixture
def finished_spans(span_exporter):
    def _finished(name=None):
        spans = span_exporter.get_finished_spans()
        if name is None:
            return list(spans)
        return [span for span in spans if span.name == name]

    return _finished

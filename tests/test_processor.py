"""Tests for the event processor."""

import asyncio
import json

import pytest

from rtmlink.rtm.exceptions import ConnectionClosedError
from rtmlink.rtm.models import HandshakeResult, User
from rtmlink.rtm.processor import EventProcessor
from rtmlink.rtm.state import SharedState

from conftest import handshake_payload


class FakeConnection:
    """Records writes and serves reads from a queue."""

    def __init__(self):
        self.handshake = HandshakeResult.model_validate(handshake_payload())
        self.frames: asyncio.Queue = asyncio.Queue()
        self.written: list[str] = []
        self.closed = False

    async def read(self) -> str:
        frame = await self.frames.get()
        if frame is None:
            raise ConnectionClosedError("closed")
        return frame

    async def write(self, frame: str) -> None:
        self.written.append(frame)
        await asyncio.sleep(0)


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def processor(connection) -> EventProcessor:
    return EventProcessor(connection, state=SharedState())


@pytest.mark.asyncio
async def test_hello_loads_handshake_into_state(processor):
    await processor.process('{"type": "hello"}')

    assert processor.state.identity.id == "U0BOT"
    assert processor.state.get_user("U023BECGF").name == "bobby"
    assert processor.state.channels[0].id == "C024BE91L"


@pytest.mark.asyncio
async def test_message_is_forwarded_unchanged(processor):
    raw = '{"type": "message", "channel": "C1", "user": "U1", "text": "hi"}'

    await processor.process(raw)

    assert processor.messages.get_nowait() == raw


@pytest.mark.asyncio
@pytest.mark.parametrize("subtype", ["message_changed", "message_deleted"])
async def test_edits_and_deletions_are_not_forwarded(processor, subtype):
    await processor.process(json.dumps({"type": "message", "subtype": subtype, "channel": "C1"}))

    assert processor.messages.empty()


@pytest.mark.asyncio
async def test_acknowledgment_is_not_dispatched(processor):
    ids = await processor.write("C1", "hello")
    assert processor.unacknowledged == 1

    await processor.process(json.dumps({"ok": True, "reply_to": ids[0], "type": "message", "text": "hello"}))

    assert processor.messages.empty()
    assert processor.unacknowledged == 0


@pytest.mark.asyncio
async def test_acknowledgment_with_user_change_shape_does_not_touch_state(processor):
    await processor.process(
        json.dumps({"reply_to": 99, "type": "user_change", "user": {"id": "U5", "name": "x"}})
    )

    assert processor.state.get_user("U5") is None


@pytest.mark.asyncio
async def test_user_change_upserts_directory(processor):
    processor.state.upsert_user(User(id="U1", name="old", real_name="Old Name"))

    event = json.dumps({"type": "user_change", "user": {"id": "U1", "name": "new"}})
    await processor.process(event)
    await processor.process(event)

    user = processor.state.get_user("U1")
    assert user.name == "new"
    assert user.real_name is None
    assert len(processor.state.users) == 1


@pytest.mark.asyncio
async def test_malformed_user_change_leaves_state_alone(processor):
    processor.state.upsert_user(User(id="U1", name="old"))

    await processor.process('{"type": "user_change", "user": {"name": "no id"}}')

    assert processor.state.get_user("U1").name == "old"
    assert processor.total_errors == 1


@pytest.mark.asyncio
async def test_error_and_unknown_events_change_nothing(processor):
    await processor.process('{"type": "error", "error": {"code": 1, "msg": "Socket URL has expired"}}')
    await processor.process('{"type": "presence_change", "user": "U1", "presence": "away"}')

    assert processor.messages.empty()
    assert processor.state.users == {}
    assert processor.total_errors == 0


@pytest.mark.asyncio
async def test_run_survives_bad_frames(connection, processor):
    for frame in ["{oops", "[]", '{"type": "message", "text": "ok"}', None]:
        connection.frames.put_nowait(frame)

    await asyncio.wait_for(processor.run(), timeout=2.0)

    assert processor.messages.get_nowait() == '{"type": "message", "text": "ok"}'
    assert processor.total_frames == 3
    assert processor.total_errors == 2
    assert not processor.running


@pytest.mark.asyncio
async def test_write_frames_each_chunk_with_next_id(connection):
    processor = EventProcessor(connection, max_message_chars=10, max_message_lines=25)

    ids = await processor.write("C1", "hello world again")

    frames = [json.loads(frame) for frame in connection.written]
    assert ids == [1, 2, 3]
    assert [f["id"] for f in frames] == [1, 2, 3]
    assert [f["text"] for f in frames] == ["hello", "world", "again"]
    assert all(f["type"] == "message" and f["channel"] == "C1" for f in frames)

    assert await processor.write("C1", "more") == [4]
    assert processor.sequence == 4


@pytest.mark.asyncio
async def test_empty_write_sends_nothing(connection, processor):
    assert await processor.write("C1", "") == []
    assert connection.written == []


@pytest.mark.asyncio
async def test_concurrent_writes_do_not_interleave(connection):
    processor = EventProcessor(connection, max_message_chars=5)

    await asyncio.gather(
        processor.write("C1", "aaaa bbbb cccc"),
        processor.write("C2", "dddd eeee ffff"),
    )

    channels = [json.loads(frame)["channel"] for frame in connection.written]
    assert channels in (["C1"] * 3 + ["C2"] * 3, ["C2"] * 3 + ["C1"] * 3)
    ids = [json.loads(frame)["id"] for frame in connection.written]
    assert ids == sorted(ids) == list(range(1, 7))


@pytest.mark.asyncio
async def test_sequence_ids_continue_across_reconnection(service, make_connection, eventually):
    connection = make_connection()
    await connection.start()
    processor = EventProcessor(connection)
    try:
        await processor.write("C1", "one")
        await processor.write("C1", "two")
        await asyncio.wait_for(connection.flush(), timeout=2.0)

        service.socket.drop()
        await eventually(lambda: connection.total_reconnects == 1)

        await processor.write("C1", "three")
        await asyncio.wait_for(connection.flush(), timeout=2.0)
    finally:
        await connection.close()

    sent = [json.loads(frame) for socket in service.sockets for frame in socket.sent]
    assert [f["id"] for f in sent] == [1, 2, 3]
    assert [f["text"] for f in sent] == ["one", "two", "three"]

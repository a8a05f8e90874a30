import asyncio

import pytest

from simdesk.services.broadcaster import ChatBroadcaster, ChatSession, SessionState
from simdesk.services.matcher import FOLLOW_UP

WELCOME = "Welcome to SimDesk support!"


class RecordingChannel:
    def __init__(self):
        self.sent = []

    async def send_text(self, data: str) -> None:
        self.sent.append(data)


class BrokenChannel:
    async def send_text(self, data: str) -> None:
        raise RuntimeError("connection reset")


class StalledChannel:
    def __init__(self):
        self.sent = []

    async def send_text(self, data: str) -> None:
        await asyncio.sleep(60)
        self.sent.append(data)


@pytest.fixture
async def broadcaster(bank):
    b = ChatBroadcaster(bank, welcome_text=WELCOME)
    yield b
    await b.shutdown()


async def _join(broadcaster, channel, **kwargs):
    session = ChatSession(channel, **kwargs)
    await broadcaster.connect(session)
    return session


async def _wait_closed(session):
    while session.is_open:
        await asyncio.sleep(0.01)


async def test_session_state_machine():
    session = ChatSession(RecordingChannel())
    assert session.state is SessionState.CONNECTING
    assert not session.deliver("too early")

    session.open()
    assert session.state is SessionState.OPEN
    with pytest.raises(RuntimeError):
        session.open()

    await session.close()
    assert session.state is SessionState.CLOSED
    assert not session.deliver("too late")


async def test_welcome_is_broadcast_on_join(broadcaster):
    first, second = RecordingChannel(), RecordingChannel()
    s1 = await _join(broadcaster, first)
    s2 = await _join(broadcaster, second)
    await s1.flush()
    await s2.flush()

    assert first.sent == [WELCOME, WELCOME]
    assert second.sent == [WELCOME]
    assert len(broadcaster) == 2


async def test_message_echo_then_reply_to_every_session(broadcaster):
    channels = [RecordingChannel() for _ in range(3)]
    sessions = [await _join(broadcaster, ch) for ch in channels]
    for s in sessions:
        await s.flush()
    for ch in channels:
        ch.sent.clear()

    reply = await broadcaster.handle_message(sessions[1], "How do I save a simulation?")
    for s in sessions:
        await s.flush()

    assert reply == f"Press Save.\n{FOLLOW_UP}"
    for ch in channels:
        assert ch.sent == ["How do I save a simulation?", reply]


async def test_reply_without_follow_up_for_thanks(broadcaster):
    channel = RecordingChannel()
    session = await _join(broadcaster, channel)
    reply = await broadcaster.handle_message(session, "thank you")
    await session.flush()
    assert reply == "No problem! Happy simulating."
    assert channel.sent[-2:] == ["thank you", "No problem! Happy simulating."]


async def test_disconnected_session_receives_nothing(broadcaster):
    staying, leaving = RecordingChannel(), RecordingChannel()
    s1 = await _join(broadcaster, staying)
    s2 = await _join(broadcaster, leaving)
    await s2.flush()
    await broadcaster.disconnect(s2)
    before = list(leaving.sent)

    await broadcaster.handle_message(s1, "hello there")
    await s1.flush()

    assert leaving.sent == before
    assert staying.sent[-2] == "hello there"
    assert s2.state is SessionState.CLOSED
    assert len(broadcaster) == 1


async def test_broken_peer_does_not_stop_broadcast(broadcaster):
    good = RecordingChannel()
    bad_session = await _join(broadcaster, BrokenChannel())
    good_session = await _join(broadcaster, good)
    await good_session.flush()
    await asyncio.wait_for(_wait_closed(bad_session), timeout=1)

    await broadcaster.handle_message(good_session, "How do I run a simulation?")
    await good_session.flush()
    assert good.sent[-2:] == ["How do I run a simulation?", f"Press Run.\n{FOLLOW_UP}"]


async def test_stalled_peer_does_not_delay_others(broadcaster):
    stalled = StalledChannel()
    await _join(broadcaster, stalled, send_timeout=30)
    fast = RecordingChannel()
    fast_session = await _join(broadcaster, fast)

    await broadcaster.handle_message(fast_session, "How do I run a simulation?")
    await asyncio.wait_for(fast_session.flush(), timeout=1)

    assert fast.sent[-2:] == ["How do I run a simulation?", f"Press Run.\n{FOLLOW_UP}"]
    assert stalled.sent == []


async def test_send_timeout_drops_message_but_keeps_session(broadcaster):
    stalled = StalledChannel()
    session = await _join(broadcaster, stalled, send_timeout=0.01)
    await asyncio.wait_for(session.flush(), timeout=1)
    assert session.is_open
    assert stalled.sent == []


async def test_full_queue_drops_instead_of_blocking(broadcaster):
    session = await _join(broadcaster, StalledChannel(), queue_size=1, send_timeout=30)
    # the writer holds the welcome; the queue takes one more
    await asyncio.sleep(0)
    assert session.deliver("one")
    assert not session.deliver("two")


async def test_shutdown_closes_all_sessions(bank):
    b = ChatBroadcaster(bank, welcome_text=WELCOME)
    sessions = [await _join(b, RecordingChannel()) for _ in range(3)]
    await b.shutdown()
    assert len(b) == 0
    assert all(s.state is SessionState.CLOSED for s in sessions)

"""
Live chat session registry and fan-out broadcaster for the support assistant.

Every inbound message is echoed to all open sessions, followed by the
assistant's reply. Each session drains its own outbound queue, so a slow or
dead peer never holds up delivery to the others.
"""

import asyncio
import threading
import uuid
from enum import Enum
from typing import Optional, Protocol, Sequence

from loguru import logger

from simdesk.services.matcher import best_match, compose_reply
from simdesk.services.question_bank import QAEntry


class SessionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class TextChannel(Protocol):
    async def send_text(self, data: str) -> None: ...


class ChatSession:
    """One live chat connection: CONNECTING -> OPEN -> CLOSED."""

    def __init__(self, channel: TextChannel, queue_size: int = 100, send_timeout: float = 5.0):
        self.id = uuid.uuid4().hex
        self.state = SessionState.CONNECTING
        self._channel = channel
        self._send_timeout = send_timeout
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    def open(self) -> None:
        if self.state is not SessionState.CONNECTING:
            raise RuntimeError(f"Session {self.id[:8]} cannot open from state {self.state.value}")
        self.state = SessionState.OPEN
        self._writer = asyncio.create_task(self._drain(), name=f"chat-writer-{self.id[:8]}")

    def deliver(self, text: str) -> bool:
        """Queue ``text`` for this session. Never blocks; returns False when skipped."""
        if not self.is_open:
            logger.debug(f"Skipping send to session {self.id[:8]} in state {self.state.value}")
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for session {self.id[:8]} — message dropped")
            return False
        return True

    async def _drain(self):
        while True:
            text = await self._outbox.get()
            try:
                await asyncio.wait_for(self._channel.send_text(text), timeout=self._send_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Send to session {self.id[:8]} timed out — message dropped")
            except Exception as e:
                logger.warning(f"Send to session {self.id[:8]} failed, closing it: {e}")
                self.state = SessionState.CLOSED
                self._discard_pending()
                return
            finally:
                self._outbox.task_done()

    def _discard_pending(self):
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()

    async def flush(self):
        """Wait until everything queued so far has been handed to the channel."""
        if self.is_open:
            await self._outbox.join()

    async def close(self):
        self.state = SessionState.CLOSED
        writer, self._writer = self._writer, None
        if writer is not None and not writer.done():
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass
        self._discard_pending()


class ChatBroadcaster:
    def __init__(
        self,
        bank: Sequence[QAEntry],
        welcome_text: str,
        threshold: float = 0.5,
        short_input_length: int = 10,
    ):
        self._bank = bank
        self._welcome_text = welcome_text
        self._threshold = threshold
        self._short_input_length = short_input_length
        self._sessions: set[ChatSession] = set()
        self._lock = threading.Lock()

    def sessions(self) -> list[ChatSession]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def reply_for(self, text: str) -> str:
        result = best_match(text, self._bank, self._threshold, self._short_input_length)
        return compose_reply(result.answer)

    def broadcast(self, *messages: str) -> int:
        """Queue ``messages`` in order on every open session; returns how many sessions took all of them."""
        reached = 0
        for session in self.sessions():
            if all([session.deliver(message) for message in messages]):
                reached += 1
        return reached

    async def connect(self, session: ChatSession):
        session.open()
        with self._lock:
            self._sessions.add(session)
        logger.info(f"Chat session {session.id[:8]} connected ({len(self)} live)")
        self.broadcast(self._welcome_text)

    async def handle_message(self, session: ChatSession, text: str) -> str:
        reply = self.reply_for(text)
        reached = self.broadcast(text, reply)
        logger.info(f"Chat [{session.id[:8]}]: '{text[:50]}' -> '{reply[:50]}' ({reached} sessions)")
        return reply

    async def disconnect(self, session: ChatSession):
        with self._lock:
            self._sessions.discard(session)
        await session.close()
        logger.info(f"Chat session {session.id[:8]} disconnected ({len(self)} live)")

    async def shutdown(self):
        with self._lock:
            sessions, self._sessions = list(self._sessions), set()
        for session in sessions:
            await session.close()
        if sessions:
            logger.info(f"Closed {len(sessions)} chat sessions")

"""
Chat Session Stream - live transcript for one open chat session.

State machine: IDLE -> SUBSCRIBED -> (events) -> UNSUBSCRIBED

- open(): load full history (replaces the transcript), then subscribe to the
  session's push channel
- handle_insert(): merge a pushed row through the transcript reducer
- refresh(): manual resynchronization, full replace from history; the only
  recovery path when the channel has silently dropped events
- close(): release the channel. A released stream never mutates again:
  late pushes are dropped, further open/refresh/add_local calls raise

I/O failures (history load, subscribe) come back as StreamResult values and
never raise into the caller; channel status errors are logged only.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from planchat.config import settings
from planchat.errors import StreamReleasedError
from planchat.realtime.transcript import (
    EMPTY_TRANSCRIPT,
    ChatMessage,
    MessageStatus,
    TranscriptState,
    add_local_message,
    apply_insert,
    mark_status,
    replace_history,
)

logger = logging.getLogger(__name__)

CHANNEL_ERROR_STATUSES = ("CHANNEL_ERROR", "TIMED_OUT")


class StreamPhase(str, Enum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


@dataclass
class StreamResult:
    ok: bool
    session_id: str
    error: Optional[str] = None


class PushChannel(ABC):
    """Subscribe/unsubscribe interface keyed by session id."""

    @abstractmethod
    async def subscribe(
        self,
        session_id: str,
        on_insert: Callable[[Dict[str, Any]], None],
        on_status: Callable[[str, Optional[Exception]], None],
    ) -> Any:
        """Start delivering INSERT payloads for the session; returns a handle."""

    @abstractmethod
    async def unsubscribe(self, handle: Any) -> None:
        """Release a handle returned by subscribe()."""


def extract_inserted_row(payload: Any) -> Optional[Dict[str, Any]]:
    """Pull the inserted row out of a realtime payload ({'new': ...} or {'data': {'record': ...}})."""
    if not isinstance(payload, dict):
        return None
    for key in ('new', 'record'):
        if isinstance(payload.get(key), dict):
            return payload[key]
    data = payload.get('data')
    if isinstance(data, dict):
        for key in ('new', 'record'):
            if isinstance(data.get(key), dict):
                return data[key]
    if 'id' in payload and ('message' in payload or 'content' in payload):
        return payload
    return None


class ChatSessionStream:
    """Owns the reconciled transcript of one chat session."""

    def __init__(
        self,
        session_id: str,
        channel: PushChannel,
        history: Any,
        dedup_window_seconds: Optional[float] = None,
        on_change: Optional[Callable[[TranscriptState], None]] = None,
    ):
        """
        Args:
            session_id: Chat session to follow
            channel: PushChannel implementation
            history: Object with load_history(session_id) -> list of rows (sync or async)
            dedup_window_seconds: Near-duplicate window (defaults from settings)
            on_change: Called with the new state after every mutation
        """
        self.session_id = session_id
        self.channel = channel
        self.history = history
        self.dedup_window_seconds = (
            settings.dedup_window_seconds if dedup_window_seconds is None else dedup_window_seconds
        )
        self.on_change = on_change

        self.phase = StreamPhase.IDLE
        self.state: TranscriptState = EMPTY_TRANSCRIPT
        self.last_channel_error: Optional[str] = None
        self._handle: Any = None

    @property
    def released(self) -> bool:
        return self.phase is StreamPhase.UNSUBSCRIBED

    @property
    def transcript(self) -> List[ChatMessage]:
        return list(self.state.messages)

    def _ensure_active(self, operation: str) -> None:
        if self.released:
            raise StreamReleasedError(f"{operation}() on released stream for session {self.session_id}")

    def _set_state(self, state: TranscriptState) -> None:
        if state is self.state:
            return
        self.state = state
        if self.on_change:
            self.on_change(state)

    async def _load_history_rows(self) -> List[Dict[str, Any]]:
        loader = self.history.load_history
        if asyncio.iscoroutinefunction(loader):
            rows = await loader(self.session_id)
        else:
            rows = await asyncio.to_thread(loader, self.session_id)
        return list(rows or [])

    async def _reload(self) -> StreamResult:
        try:
            rows = await self._load_history_rows()
        except Exception as e:
            logger.error(f"[STREAM] Failed to load history for session {self.session_id}: {e}", exc_info=True)
            return StreamResult(ok=False, session_id=self.session_id, error=f"History load failed: {e}")

        if self.released:
            # closed while the load was in flight
            logger.info(f"[STREAM] Discarding history for released session {self.session_id}")
            return StreamResult(ok=False, session_id=self.session_id, error="Stream released during load")

        self._set_state(replace_history(ChatMessage.from_row(row) for row in rows if isinstance(row, dict)))
        logger.info(f"[STREAM] Loaded {len(self.state)} messages for session {self.session_id}")
        return StreamResult(ok=True, session_id=self.session_id)

    async def open(self) -> StreamResult:
        """Load history, then subscribe. Idempotent while subscribed."""
        self._ensure_active("open")
        if self.phase is StreamPhase.SUBSCRIBED:
            return StreamResult(ok=True, session_id=self.session_id)

        history_result = await self._reload()
        if self.released:
            return history_result

        try:
            self._handle = await self.channel.subscribe(self.session_id, self.handle_insert, self.handle_status)
        except Exception as e:
            logger.error(f"[STREAM] Subscribe failed for session {self.session_id}: {e}", exc_info=True)
            return StreamResult(ok=False, session_id=self.session_id, error=f"Subscribe failed: {e}")

        if self.released:
            # closed while subscribe was in flight; release the late handle
            await self._release_handle()
            return StreamResult(ok=False, session_id=self.session_id, error="Stream released during subscribe")

        self.phase = StreamPhase.SUBSCRIBED
        logger.info(f"[STREAM] Subscribed to session {self.session_id}")
        return history_result

    def handle_insert(self, payload: Any) -> None:
        """Channel callback for INSERT events."""
        if self.released:
            logger.warning(f"[STREAM] Dropping event for released session {self.session_id}")
            return

        row = extract_inserted_row(payload)
        if row is None or row.get('id') is None:
            logger.warning(f"[STREAM] Ignoring push payload without a message row: {str(payload)[:200]}")
            return

        row_session = row.get('session_id')
        if row_session is not None and str(row_session) != str(self.session_id):
            logger.warning(f"[STREAM] Dropping stale event from session {row_session} (open: {self.session_id})")
            return

        message = ChatMessage.from_row(row)
        self._set_state(apply_insert(self.state, message, self.dedup_window_seconds))

    def handle_status(self, status: Any, error: Optional[Exception] = None) -> None:
        """Channel callback for subscription status changes. Never raises."""
        status_name = str(getattr(status, 'value', status))
        if status_name in CHANNEL_ERROR_STATUSES:
            self.last_channel_error = f"{status_name}: {error}" if error else status_name
            logger.error(f"[STREAM] Realtime channel for session {self.session_id} reported {self.last_channel_error}")
        elif status_name == "SUBSCRIBED":
            self.last_channel_error = None
            logger.info(f"[STREAM] Realtime subscription active for session {self.session_id}")
        else:
            logger.debug(f"[STREAM] Channel status for session {self.session_id}: {status_name}")

    async def refresh(self) -> StreamResult:
        """Manual resynchronization: full replace from authoritative history."""
        self._ensure_active("refresh")
        logger.info(f"[STREAM] Manual refresh for session {self.session_id}")
        return await self._reload()

    def add_local(self, content: str, role: str = "user") -> ChatMessage:
        """Optimistic local insert; the push copy is absorbed by the duplicate guard."""
        self._ensure_active("add_local")
        state, message = add_local_message(self.state, content, role=role)
        self._set_state(state)
        return message

    def mark_status(self, message_id: str, status: MessageStatus) -> None:
        self._ensure_active("mark_status")
        self._set_state(mark_status(self.state, message_id, status))

    async def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            await self.channel.unsubscribe(handle)
        except Exception as e:
            logger.error(f"[STREAM] Error releasing channel for session {self.session_id}: {e}", exc_info=True)

    async def close(self) -> None:
        """Release the channel. Safe to call more than once."""
        if self.released:
            return
        self.phase = StreamPhase.UNSUBSCRIBED
        logger.info(f"[STREAM] Unsubscribing from session {self.session_id}")
        await self._release_handle()


class SessionSwitcher:
    """Keeps at most one open ChatSessionStream; the old one is released before the next subscribes."""

    def __init__(self, stream_factory: Callable[[str], ChatSessionStream]):
        self.stream_factory = stream_factory
        self.current: Optional[ChatSessionStream] = None
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        # created on first use so it binds to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def switch(self, session_id: str) -> StreamResult:
        """Close the current stream (awaiting unsubscribe), then open one for session_id. Serialized."""
        async with self._get_lock():
            current = self.current
            if current is not None and current.session_id == session_id and not current.released:
                return StreamResult(ok=True, session_id=session_id)

            await self._close_current()
            stream = self.stream_factory(session_id)
            self.current = stream
            return await stream.open()

    async def close(self) -> None:
        async with self._get_lock():
            await self._close_current()

    async def _close_current(self) -> None:
        stream = self.current
        if stream is None:
            return
        await stream.close()
        if self.current is stream:
            self.current = None

"""
Transcript reducer - merge logic for the live chat transcript.

State is an immutable TranscriptState; every operation returns a new state
(or the same object when nothing changed), so merge and de-duplication can be
tested without a live channel.

Insertion rules (apply_insert):
1. A message whose id is already present is ignored
2. A message matching an existing entry on role + content with timestamps
   closer than the dedup window is ignored (optimistic local echo vs. the
   authoritative push copy); a provisional 'sending' entry is promoted to
   'delivered' instead
3. Otherwise the message is inserted and the transcript re-sorted by
   timestamp ascending, ties broken by insertion order
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from planchat.config import settings
from planchat.errors import InvalidStatusTransition

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"


class MessageStatus(str, Enum):
    SENDING = "sending"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


ALLOWED_STATUS_TRANSITIONS = {
    MessageStatus.SENDING: {MessageStatus.DELIVERED, MessageStatus.FAILED},
    MessageStatus.DELIVERED: {MessageStatus.READ, MessageStatus.FAILED},
    MessageStatus.READ: set(),
    MessageStatus.FAILED: set(),
}


def parse_timestamp(value: Any) -> float:
    """ISO-8601 -> epoch seconds. Naive values are UTC; unparseable values sort first."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"[TRANSCRIPT] Unparseable timestamp {value!r}, sorting first")
            return 0.0
    else:
        return 0.0

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ChatMessage:
    id: str
    role: str  # "user" or "assistant"
    content: str
    timestamp: str
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[MessageStatus] = None
    provisional: bool = False

    @property
    def epoch(self) -> float:
        return parse_timestamp(self.timestamp)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChatMessage":
        """Build from a chat_messages row (history load or push payload)."""
        content = row.get('message')
        if content is None:
            content = row.get('content')
        metadata = row.get('retrieval_metadata')
        if metadata is None:
            metadata = row.get('metadata')
        return cls(
            id=str(row.get('id')),
            role=str(row.get('role') or 'assistant'),
            content=content if isinstance(content, str) else ("" if content is None else str(content)),
            timestamp=row.get('created_at') or utc_now_iso(),
            metadata=metadata if isinstance(metadata, dict) else None,
            status=MessageStatus.DELIVERED,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
            "status": self.status.value if self.status else None,
            "provisional": self.provisional,
        }


@dataclass(frozen=True)
class _Entry:
    seq: int  # insertion order, tie-breaker for equal timestamps
    message: ChatMessage

    @property
    def sort_key(self) -> Tuple[float, int]:
        return self.message.epoch, self.seq


@dataclass(frozen=True)
class TranscriptState:
    entries: Tuple[_Entry, ...] = field(default_factory=tuple)
    next_seq: int = 0

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(entry.message for entry in self.entries)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(entry.message.id for entry in self.entries)

    def get(self, message_id: str) -> Optional[ChatMessage]:
        for entry in self.entries:
            if entry.message.id == message_id:
                return entry.message
        return None

    def __len__(self) -> int:
        return len(self.entries)


EMPTY_TRANSCRIPT = TranscriptState()


def _sorted(entries: Iterable[_Entry]) -> Tuple[_Entry, ...]:
    return tuple(sorted(entries, key=lambda entry: entry.sort_key))


def find_near_duplicate(
    state: TranscriptState,
    message: ChatMessage,
    window_seconds: Optional[float] = None,
) -> Optional[ChatMessage]:
    """Existing entry with the same role and content and |dt| < window, if any."""
    window = settings.dedup_window_seconds if window_seconds is None else window_seconds
    epoch = message.epoch
    for entry in state.entries:
        existing = entry.message
        if (existing.role == message.role
                and existing.content == message.content
                and abs(existing.epoch - epoch) < window):
            return existing
    return None


def _replace_message(state: TranscriptState, message: ChatMessage) -> TranscriptState:
    entries = tuple(
        _Entry(entry.seq, message) if entry.message.id == message.id else entry
        for entry in state.entries
    )
    return TranscriptState(entries=entries, next_seq=state.next_seq)


def apply_insert(
    state: TranscriptState,
    message: ChatMessage,
    window_seconds: Optional[float] = None,
) -> TranscriptState:
    """
    Merge one pushed message into the transcript.

    Idempotent and order-insensitive: applying the same events in any order,
    any number of times, converges to the same sorted transcript (up to which
    of two near-duplicates arrives first).
    """
    if state.get(message.id) is not None:
        logger.debug(f"[TRANSCRIPT] Message {message.id} already present, skipping")
        return state

    duplicate = find_near_duplicate(state, message, window_seconds)
    if duplicate is not None:
        logger.info(f"[TRANSCRIPT] Message {message.id} duplicates {duplicate.id} by content/timestamp, skipping")
        if duplicate.provisional and duplicate.status is MessageStatus.SENDING:
            return _replace_message(state, replace(duplicate, status=MessageStatus.DELIVERED))
        return state

    entries = state.entries + (_Entry(state.next_seq, message),)
    logger.debug(f"[TRANSCRIPT] Inserted message {message.id} ({message.role})")
    return TranscriptState(entries=_sorted(entries), next_seq=state.next_seq + 1)


def replace_history(messages: Iterable[ChatMessage]) -> TranscriptState:
    """Full replace from authoritative history, sorted ascending (stable)."""
    entries = []
    seen = set()
    for message in messages:
        if message.id in seen:
            continue
        seen.add(message.id)
        entries.append(_Entry(len(entries), message))
    return TranscriptState(entries=_sorted(entries), next_seq=len(entries))


def add_local_message(
    state: TranscriptState,
    content: str,
    role: str = "user",
    timestamp: Optional[str] = None,
) -> Tuple[TranscriptState, ChatMessage]:
    """Optimistically insert a provisional message ahead of the server write."""
    message = ChatMessage(
        id=f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}",
        role=role,
        content=content,
        timestamp=timestamp or utc_now_iso(),
        status=MessageStatus.SENDING,
        provisional=True,
    )
    entries = state.entries + (_Entry(state.next_seq, message),)
    return TranscriptState(entries=_sorted(entries), next_seq=state.next_seq + 1), message


def mark_status(state: TranscriptState, message_id: str, status: MessageStatus) -> TranscriptState:
    """Move a message along sending -> delivered -> read, or to failed."""
    message = state.get(message_id)
    if message is None:
        logger.warning(f"[TRANSCRIPT] Cannot mark unknown message {message_id} as {status.value}")
        return state

    status = MessageStatus(status)
    if message.status == status:
        return state

    current = message.status or MessageStatus.DELIVERED
    if status not in ALLOWED_STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransition(f"Message {message_id}: {current.value} -> {status.value} is not allowed")

    return _replace_message(state, replace(message, status=status))

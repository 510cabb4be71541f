"""
Live transcript for an open chat session.

- transcript: pure reducer (insert, de-duplicate, order, status lifecycle)
- session_stream: subscription state machine around the reducer
- supabase_channel: Supabase Realtime adapter for the push channel
"""

from planchat.realtime.transcript import (
    ChatMessage,
    MessageStatus,
    TranscriptState,
    add_local_message,
    apply_insert,
    mark_status,
    replace_history
)

from planchat.realtime.session_stream import (
    ChatSessionStream,
    PushChannel,
    SessionSwitcher,
    StreamPhase,
    StreamResult
)

__all__ = [
    'ChatMessage',
    'MessageStatus',
    'TranscriptState',
    'add_local_message',
    'apply_insert',
    'mark_status',
    'replace_history',
    'ChatSessionStream',
    'PushChannel',
    'SessionSwitcher',
    'StreamPhase',
    'StreamResult',
]

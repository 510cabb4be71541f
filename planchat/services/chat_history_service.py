"""
Chat history loader - authoritative persisted transcript for a session.
"""

import logging
from typing import List, Optional

from supabase import Client

from planchat.types import ChatMessageRow
from .supabase_client_factory import get_supabase_client

logger = logging.getLogger(__name__)


class ChatHistoryService:
    """Reads chat_messages rows for one session, oldest first"""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def supabase(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def load_history(self, session_id: str) -> List[ChatMessageRow]:
        """
        Load every persisted message for a chat session.

        Raises on I/O failure; ChatSessionStream turns that into a StreamResult.
        """
        if not session_id:
            logger.warning("[CHAT_HISTORY] load_history called with empty session_id")
            return []

        result = (
            self.supabase
            .table('chat_messages')
            .select('*')
            .eq('session_id', str(session_id))
            .order('created_at')
            .execute()
        )
        rows = result.data if result.data else []
        logger.info(f"[CHAT_HISTORY] Loaded {len(rows)} messages for session {session_id}")
        return rows

"""
Push channel over Supabase Realtime postgres changes.

One realtime channel per chat session, filtered to INSERTs on chat_messages
for that session_id.
"""

import logging
from typing import Any, Callable, Dict, Optional

from supabase import AsyncClient

from planchat.realtime.session_stream import PushChannel

logger = logging.getLogger(__name__)

CHAT_MESSAGES_TABLE = "chat_messages"


class SupabaseRealtimeChannel(PushChannel):
    """PushChannel backed by an async Supabase client."""

    def __init__(self, client: AsyncClient, table: str = CHAT_MESSAGES_TABLE, schema: str = "public"):
        self.client = client
        self.table = table
        self.schema = schema

    async def subscribe(
        self,
        session_id: str,
        on_insert: Callable[[Dict[str, Any]], None],
        on_status: Callable[[str, Optional[Exception]], None],
    ) -> Any:
        channel = self.client.channel(f"chat-{session_id}")
        channel.on_postgres_changes(
            "INSERT",
            schema=self.schema,
            table=self.table,
            filter=f"session_id=eq.{session_id}",
            callback=on_insert,
        )
        await channel.subscribe(on_status)
        logger.info(f"[STREAM] Realtime channel chat-{session_id} requested")
        return channel

    async def unsubscribe(self, handle: Any) -> None:
        await self.client.remove_channel(handle)

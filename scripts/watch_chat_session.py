#!/usr/bin/env python3
"""
Follow a chat session live and print the reconciled transcript on every change.

Loads persisted history, subscribes to Supabase Realtime INSERTs for the
session, and refreshes from history every --refresh seconds (0 disables).

Usage:
    python scripts/watch_chat_session.py SESSION_UUID [--refresh 60]
"""

import sys
import os
import argparse
import asyncio
import logging

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), '..', '.env')
load_dotenv(env_path)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from planchat.realtime import ChatSessionStream, TranscriptState
from planchat.realtime.supabase_channel import SupabaseRealtimeChannel
from planchat.services.chat_history_service import ChatHistoryService
from planchat.services.supabase_client_factory import get_async_supabase_client

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_transcript(state: TranscriptState) -> None:
    print("-" * 60)
    for message in state.messages:
        status = f" [{message.status.value}]" if message.status else ""
        print(f"{message.timestamp} {message.role}{status}: {message.content[:200]}")


async def watch(session_id: str, refresh_seconds: float) -> None:
    client = await get_async_supabase_client()
    stream = ChatSessionStream(
        session_id,
        channel=SupabaseRealtimeChannel(client),
        history=ChatHistoryService(),
        on_change=print_transcript,
    )

    result = await stream.open()
    if not result.ok:
        logger.error(f"Could not open session {session_id}: {result.error}")
        await stream.close()
        return

    try:
        while True:
            if refresh_seconds > 0:
                await asyncio.sleep(refresh_seconds)
                refreshed = await stream.refresh()
                if not refreshed.ok:
                    logger.warning(f"Refresh failed: {refreshed.error}")
            else:
                await asyncio.sleep(3600)
    finally:
        await stream.close()


def main():
    parser = argparse.ArgumentParser(description='Watch a chat session transcript live')
    parser.add_argument('session_id', type=str, help='chat_sessions id')
    parser.add_argument('--refresh', type=float, default=0, help='Seconds between full refreshes (0 = never)')
    args = parser.parse_args()

    try:
        asyncio.run(watch(args.session_id, args.refresh))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == '__main__':
    main()

"""
Shared TypedDict definitions for rows and records received from external collaborators.

None of these shapes are enforced by the producers; every consumer reads them
with .get() and tolerates missing keys.
"""

from typing import TypedDict, Optional, Any


class ChatMessageRow(TypedDict, total=False):
    """Row of the chat_messages table (history load and realtime INSERT payloads)"""
    id: str
    session_id: str
    user_id: Optional[str]
    role: str  # "user" or "assistant"
    message: str
    content: str  # some producers write 'content' instead of 'message'
    created_at: Optional[str]
    retrieval_metadata: Optional[dict[str, Any]]


class ChunkDocument(TypedDict, total=False):
    pageContent: str
    metadata: dict[str, Any]


class ChunkRecord(TypedDict, total=False):
    """Retrieval result unit stored under retrieval_metadata.chunks_retrieved"""
    chunk_id: Optional[int]
    score: Optional[float]
    document: ChunkDocument
    address: Optional[str]
    suburb: Optional[str]


class SourceRecord(TypedDict, total=False):
    """Descriptive source entry stored under retrieval_metadata.sources_cited"""
    address: Optional[str]
    suburb: Optional[str]
    section: Optional[str]
    document_type: Optional[str]
    chunk_lines_from: Optional[int]
    chunk_lines_to: Optional[int]


class ReportRow(TypedDict, total=False):
    """Row of the report_generations table"""
    id: str
    title: Optional[str]
    topic: Optional[str]
    address: Optional[str]
    status: Optional[str]
    file_path: Optional[str]
    file_format: Optional[str]
    generated_content: Optional[str]

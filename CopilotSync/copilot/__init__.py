"""Copilot reply ingestion for CopilotSync."""

from .ingest import ReplyIngestor, ingest_reply, REPLY_MODES

__all__ = [
    "ReplyIngestor",
    "ingest_reply",
    "REPLY_MODES",
]

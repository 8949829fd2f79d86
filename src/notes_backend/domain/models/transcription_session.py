from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class TranscriptionSession(BaseModel):
    """Server-side state for one live meeting transcription.

    Sessions only live in memory: they are created by the first chunk that
    references a new session id and removed a short while after they are
    marked final.
    """

    session_id: str
    workspace_id: str
    accumulated_text: str = ""
    chunk_count: int = 0
    created_at: datetime
    finalized_at: Optional[datetime] = None

    def append_text(self, text: str) -> None:
        """Append a recognized token, separated from earlier text by one space."""

        token = text.strip()
        if not token:
            return
        self.accumulated_text = f"{self.accumulated_text} {token}" if self.accumulated_text else token


class TranscriptionResult(BaseModel):
    partial_transcript: str
    session_id: str
    is_final: bool

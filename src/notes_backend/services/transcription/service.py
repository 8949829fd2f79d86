from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from src.notes_backend.config import settings
from src.notes_backend.core.audio_fragments import AudioFragment, normalize_audio_fragment
from src.notes_backend.core.fragment_classifier import FragmentClassifier
from src.notes_backend.domain.models.transcription_session import TranscriptionResult, TranscriptionSession
from src.notes_backend.services.audit.service import audit_service
from src.notes_backend.services.transcription.backends import SpeechRecognizer, get_speech_recognizer_from_env
from src.notes_backend.services.transcription.exceptions import (
    InvalidInput,
    TranscriptionError,
    WorkspaceMismatch,
)
from src.notes_backend.services.transcription.session_store import SessionStore

logger = logging.getLogger(__name__)


class MeetingTranscriptionService:
    """Incremental meeting transcription over in-memory sessions.

    Each call processes one audio chunk: it validates the request, resolves
    (or starts) the session, runs the chunk through the fragment classifier,
    appends any recognized text and reports whether the session is final.
    Final sessions are evicted from the store after a fixed delay rather than
    immediately, so late requests for the same id still see them.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        recognizer: Optional[SpeechRecognizer] = None,
        classifier: Optional[FragmentClassifier] = None,
        eviction_delay_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._classifier = classifier or FragmentClassifier(
            recognizer=recognizer or get_speech_recognizer_from_env(),
        )
        self._eviction_delay = (
            eviction_delay_seconds
            if eviction_delay_seconds is not None
            else settings.session_eviction_delay_seconds
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    async def process_chunk(
        self,
        audio_chunk: Optional[AudioFragment],
        workspace_id: Optional[str],
        session_id: Optional[str] = None,
    ) -> TranscriptionResult:
        try:
            return await self._process_chunk(audio_chunk, workspace_id, session_id)
        except TranscriptionError as exc:
            logger.warning("Meeting transcription rejected (%s): %s", exc.code, exc.message)
            raise
        except Exception:
            logger.exception("Meeting transcription failed")
            raise

    async def _process_chunk(
        self,
        audio_chunk: Optional[AudioFragment],
        workspace_id: Optional[str],
        session_id: Optional[str],
    ) -> TranscriptionResult:
        if audio_chunk is None or len(audio_chunk) == 0:
            raise InvalidInput("Audio chunk is required and cannot be empty")
        if not workspace_id:
            raise InvalidInput("Workspace ID is required")

        resolved_id = session_id or str(uuid4())

        async with self._store.session_lock(resolved_id):
            session, created = self._store.get_or_create(resolved_id, workspace_id)
            if session.workspace_id != workspace_id:
                audit_service.log_event(
                    action="reject_meeting_chunk",
                    resource_type="transcription_session",
                    resource_id=resolved_id,
                    extra={"reason": WorkspaceMismatch.code},
                )
                raise WorkspaceMismatch("Session workspace_id mismatch")

            if created:
                audit_service.log_event(
                    action="create_transcription_session",
                    resource_type="transcription_session",
                    resource_id=resolved_id,
                    extra={"workspace_id": workspace_id},
                )

            position = self._store.mutate(resolved_id, _increment_chunk_count)

            audio = normalize_audio_fragment(audio_chunk)
            classification = await self._classifier.classify(audio, position)

            def _apply(current: TranscriptionSession) -> str:
                current.append_text(classification.text)
                if classification.is_final and current.finalized_at is None:
                    current.finalized_at = datetime.now(timezone.utc)
                return current.accumulated_text

            partial_transcript = self._store.mutate(resolved_id, _apply)

            if classification.is_final:
                scheduled = self._store.schedule_eviction(resolved_id, self._eviction_delay)
                if scheduled:
                    logger.info(
                        "Session %s is final after %d chunks; evicting in %.1fs",
                        resolved_id,
                        position,
                        self._eviction_delay,
                    )

        audit_service.log_event(
            action="process_meeting_chunk",
            resource_type="transcription_session",
            resource_id=resolved_id,
            extra={
                "chunk_count": position,
                "chunk_bytes": classification.features.size,
                "has_text": bool(classification.text.strip()),
                "is_final": classification.is_final,
            },
        )

        return TranscriptionResult(
            partial_transcript=partial_transcript,
            session_id=resolved_id,
            is_final=classification.is_final,
        )


def _increment_chunk_count(session: TranscriptionSession) -> int:
    session.chunk_count += 1
    return session.chunk_count

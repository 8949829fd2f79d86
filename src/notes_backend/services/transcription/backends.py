from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from src.notes_backend.config import settings
from src.notes_backend.core.fragment_classifier import measure_fragment

logger = logging.getLogger(__name__)


class SpeechRecognizer(Protocol):
    """Protocol for speech recognition backends.

    Implementations take one normalized audio fragment plus its 1-based
    position within the session and return the recognized text for that
    fragment only (an empty string for silence or unusable audio).
    """

    async def recognize(self, audio: memoryview, position: int) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class DemoSpeechRecognizer:
    """Deterministic demo recognizer driven by simple signal features.

    In a real deployment this would call Whisper or a cloud ASR. For now it
    maps the fragment's mean byte amplitude to a fixed phrase so tests remain
    fast and offline. The first chunk of a session opens the meeting, later
    chunks continue it.
    """

    def __init__(
        self,
        *,
        min_analyzable_bytes: int | None = None,
        latency_ms: int | None = None,
    ) -> None:
        self._min_analyzable_bytes = (
            min_analyzable_bytes if min_analyzable_bytes is not None else settings.min_analyzable_bytes
        )
        self._latency_ms = latency_ms if latency_ms is not None else settings.simulated_latency_ms

    async def recognize(self, audio: memoryview, position: int) -> str:
        if self._latency_ms > 0:
            await asyncio.sleep(self._latency_ms / 1000)

        features = measure_fragment(audio)
        if features.size < self._min_analyzable_bytes or features.mean_amplitude is None:
            # Too small, likely silence
            return ""

        first = position == 1
        mean = features.mean_amplitude
        if mean < 50:
            return "Hello" if first else "and"
        if mean < 100:
            return "Welcome" if first else "everyone"
        if mean < 150:
            return "Good morning" if first else "to the meeting"
        return "Thank you" if first else "for joining us today"


def get_speech_recognizer_from_env() -> SpeechRecognizer:
    """Select a speech recognizer based on the ASR_BACKEND environment variable.

    - ASR_BACKEND=demo (or unset) → DemoSpeechRecognizer
    - Anything else → DemoSpeechRecognizer, with a warning, until a real
      backend is wired in
    """

    backend_name = settings.asr_backend.lower()
    if backend_name != "demo":
        logger.warning("Unknown ASR_BACKEND %r; falling back to the demo recognizer", settings.asr_backend)
    return DemoSpeechRecognizer()

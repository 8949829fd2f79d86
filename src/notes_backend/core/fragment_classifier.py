from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from src.notes_backend.config import settings


@dataclass(frozen=True)
class FragmentFeatures:
    """Simple acoustic features of one audio fragment.

    ``mean_amplitude`` is ``None`` for an empty fragment, which has no
    meaningful average.
    """

    size: int
    mean_amplitude: Optional[float]


@dataclass(frozen=True)
class ChunkClassification:
    text: str
    is_final: bool
    features: FragmentFeatures


def measure_fragment(audio: memoryview) -> FragmentFeatures:
    size = len(audio)
    if size == 0:
        return FragmentFeatures(size=0, mean_amplitude=None)
    return FragmentFeatures(size=size, mean_amplitude=sum(audio) / size)


class RecognizerLike(Protocol):
    """Protocol for speech recognizers used by FragmentClassifier.

    This intentionally mirrors the signature of the recognizers in
    src.notes_backend.services.transcription.backends without importing them
    directly, to avoid circular imports.
    """

    async def recognize(self, audio: memoryview, position: int) -> str:  # pragma: no cover - protocol
        ...


class FragmentClassifier:
    """Turns one audio fragment into a text token and a finality signal.

    The token comes from the wrapped recognizer. Finality is decided here: a
    session is final once it reaches ``max_chunks`` chunks, or as soon as a
    chunk is near-silent (mean amplitude below ``silence_threshold``). The
    silence check looks at the fragment's own mean even when the recognizer
    considered the fragment too short to transcribe. An empty fragment has no
    mean and never counts as silence.
    """

    def __init__(
        self,
        *,
        recognizer: RecognizerLike,
        max_chunks: int | None = None,
        silence_threshold: float | None = None,
    ) -> None:
        self._recognizer = recognizer
        self._max_chunks = max_chunks if max_chunks is not None else settings.max_chunks_per_session
        self._silence_threshold = (
            silence_threshold if silence_threshold is not None else settings.silence_amplitude_threshold
        )

    def is_final(self, features: FragmentFeatures, chunk_count: int) -> bool:
        if chunk_count >= self._max_chunks:
            return True
        if features.mean_amplitude is None:
            return False
        return features.mean_amplitude < self._silence_threshold

    async def classify(self, audio: memoryview, position: int) -> ChunkClassification:
        """Classify the fragment at 1-based ``position`` within its session."""

        text = await self._recognizer.recognize(audio, position)
        features = measure_fragment(audio)
        return ChunkClassification(
            text=text,
            is_final=self.is_final(features, position),
            features=features,
        )

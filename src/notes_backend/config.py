from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Speech recognizer selection: "demo" (default) is the deterministic
    # signal-based recognizer used for local development and tests.
    asr_backend: str = os.getenv("ASR_BACKEND", "demo")

    # Seconds a finished session stays readable before it is evicted.
    session_eviction_delay_seconds: float = float(os.getenv("SESSION_EVICTION_DELAY_SECONDS", "5"))

    # A session is final once this many chunks have been processed.
    max_chunks_per_session: int = int(os.getenv("MAX_CHUNKS_PER_SESSION", "5"))

    # Mean byte amplitude below which a chunk counts as end of speech.
    silence_amplitude_threshold: float = float(os.getenv("SILENCE_AMPLITUDE_THRESHOLD", "10"))

    # Chunks shorter than this are too small to analyze and yield no text.
    min_analyzable_bytes: int = int(os.getenv("MIN_ANALYZABLE_BYTES", "100"))

    # Simulated recognizer processing time for the demo backend.
    simulated_latency_ms: int = int(os.getenv("SIMULATED_LATENCY_MS", "10"))

    # Request size limit for a single audio chunk (in bytes).
    max_chunk_bytes: int = int(os.getenv("MAX_CHUNK_BYTES", str(5 * 1024 * 1024)))

    # CORS configuration: comma-separated origins (e.g. "https://app.example.com,https://admin.example.com").
    # Default is "*" (allow all) which is acceptable for local development but
    # should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()

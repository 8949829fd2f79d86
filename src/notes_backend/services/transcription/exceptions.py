from __future__ import annotations


class TranscriptionError(Exception):
    """Base class for errors raised by the meeting transcription engine."""

    code = "transcription_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(TranscriptionError):
    """The request is missing audio or a workspace id; fix it before retrying."""

    code = "invalid_input"


class WorkspaceMismatch(TranscriptionError):
    """The session id is already bound to a different workspace."""

    code = "workspace_mismatch"


class SessionNotFound(TranscriptionError):
    """A session vanished mid-request. Internal error, never caused by the client."""

    code = "session_not_found"

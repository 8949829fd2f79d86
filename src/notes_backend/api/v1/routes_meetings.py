from __future__ import annotations

import base64
import binascii
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel

from src.notes_backend.config import settings
from src.notes_backend.domain.models.transcription_session import TranscriptionResult
from src.notes_backend.services.transcription.exceptions import (
    InvalidInput,
    TranscriptionError,
    WorkspaceMismatch,
)
from src.notes_backend.services.transcription.service import MeetingTranscriptionService

router = APIRouter(
    prefix="/meetings",
    tags=["meetings"],
)

_AUDIO_BASE64_PREFIX = "AUDIO_BASE64:"


def get_transcription_service(request: Request) -> MeetingTranscriptionService:
    """Return the transcription service built at application startup."""

    return request.app.state.transcription_service


class TranscribeChunkRequest(BaseModel):
    audio_chunk_b64: str
    workspace_id: str
    session_id: Optional[str] = None


def _decode_chunk(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Audio chunk is not valid base64") from exc


@router.post("/transcribe", response_model=TranscriptionResult)
async def transcribe_meeting_chunk(
    payload: TranscribeChunkRequest,
    service: MeetingTranscriptionService = Depends(get_transcription_service),
) -> TranscriptionResult:
    """Transcribe one audio chunk of a live meeting.

    Omit ``session_id`` on the first chunk and reuse the returned one for the
    rest of the meeting. The response carries the transcript accumulated so
    far and whether the session is final.
    """

    try:
        chunk = _decode_chunk(payload.audio_chunk_b64)
        if len(chunk) > settings.max_chunk_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Audio chunk too large.",
            )
        return await service.process_chunk(
            chunk,
            workspace_id=payload.workspace_id,
            session_id=payload.session_id,
        )
    except InvalidInput as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except WorkspaceMismatch as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc


@router.websocket("/ws")
async def live_meeting_transcription(websocket: WebSocket) -> None:
    """Live meeting transcription over a WebSocket.

    Clients send binary audio chunks (or text frames prefixed with
    "AUDIO_BASE64:") and receive the result of each chunk as JSON. The
    ``workspace_id`` query parameter is required; ``session_id`` optionally
    resumes an existing session. Rejected chunks are answered with an error
    message and the stream continues. The server closes the stream once the
    session is final, or when the client sends "stop".
    """

    service: MeetingTranscriptionService = websocket.app.state.transcription_service
    qp = websocket.query_params
    workspace_id = qp.get("workspace_id")
    session_id: Optional[str] = qp.get("session_id") or None

    await websocket.accept()
    try:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return

            chunk: Optional[bytes] = None
            if message.get("bytes") is not None:
                chunk = message["bytes"]
            elif message.get("text") is not None:
                text_msg = message["text"]
                if text_msg.lower() == "stop":
                    await websocket.send_json({"type": "stopped", "session_id": session_id})
                    await websocket.close(code=status.WS_1000_NORMAL_CLOSURE)
                    return
                if not text_msg.startswith(_AUDIO_BASE64_PREFIX):
                    await websocket.send_json({"error": "Unsupported text message", "code": "invalid_input"})
                    continue
                try:
                    chunk = _decode_chunk(text_msg[len(_AUDIO_BASE64_PREFIX) :])
                except InvalidInput as exc:
                    await websocket.send_json({"error": exc.message, "code": exc.code})
                    continue

            if chunk is None:
                continue

            if len(chunk) > settings.max_chunk_bytes:
                await websocket.send_json({"error": "Audio chunk too large.", "code": "invalid_input"})
                continue

            try:
                result = await service.process_chunk(chunk, workspace_id=workspace_id, session_id=session_id)
            except (InvalidInput, WorkspaceMismatch) as exc:
                await websocket.send_json({"error": exc.message, "code": exc.code})
                continue
            except TranscriptionError as exc:
                await websocket.send_json({"error": "Internal transcription error", "code": exc.code})
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
                return

            session_id = result.session_id
            await websocket.send_json({"type": "final" if result.is_final else "partial", **result.model_dump()})

            if result.is_final:
                await websocket.close(code=status.WS_1000_NORMAL_CLOSURE)
                return
    except WebSocketDisconnect:
        # Client disconnected; the session is left to finish or expire on its own.
        return

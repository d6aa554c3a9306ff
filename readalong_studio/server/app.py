"""FastAPI application exposing read-along sessions over HTTP.

WHY: A browser-based read-along editor (or a script) needs the same
operations the CLI offers, but against a session that stays alive
between requests: load a text and its alignment once, then ask which
word is read at t, place, move and remove anchors, validate them and
export the result.

HOW: A single FastAPI app with sync endpoints (run on the threadpool).
Sessions live in a SessionStore; every endpoint touching a session's
core objects holds that session's lock. Domain errors are mapped to
HTTP status codes in one place (_http_error). A lifespan task expires
idle sessions every five minutes.

RULES:
- 404: unknown session, word, anchor or format
- 409: duplicate anchor, out-of-order anchors
- 422: no anchors, malformed text/alignment, other rejected edits
- 429: too many sessions
- Error responses use the ErrorResponse schema
- Sessions are created only if both text and alignment load
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from readalong_studio import __version__
from readalong_studio.config import LOG_LEVEL, SERVER_HOST, SERVER_PORT
from readalong_studio.core.ir import anchor_id_for
from readalong_studio.core.session import Asset, AssetStatus, ReadAlongSession
from readalong_studio.errors import (
    AnchorNotFound,
    AnchorOutOfOrder,
    DuplicateAnchor,
    ReadAlongError,
    UnknownWord,
)
from readalong_studio.formatters import FORMATTERS
from readalong_studio.playback import HeadlessAudioBackend, Marker
from readalong_studio.server.models import (
    AnchorCreateRequest,
    AnchorInfo,
    AnchorMoveRequest,
    ErrorResponse,
    FormatInfo,
    HealthResponse,
    LocateResponse,
    SessionCreateRequest,
    SessionResponse,
    ValidationResponse,
)
from readalong_studio.server.sessions import SessionStore, StoredSession

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()


async def _periodic_cleanup() -> None:
    """Run session cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Read-Along Studio API",
    description=(
        "REST API for read-along sessions: load a TEI text with its SMIL "
        "alignment, locate the word read at any time, edit re-alignment "
        "anchors, validate their ordering and export the updated text."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _http_error(exc: ReadAlongError) -> HTTPException:
    """Map a domain error to an HTTPException."""
    if isinstance(exc, (UnknownWord, AnchorNotFound)):
        status_code = 404
    elif isinstance(exc, (DuplicateAnchor, AnchorOutOfOrder)):
        status_code = 409
    else:
        status_code = 422
    return HTTPException(status_code=status_code, detail=str(exc))


def _get_or_404(session_id: str) -> StoredSession:
    stored = session_store.get_session(session_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return stored


def _anchor_info(stored: StoredSession) -> List[AnchorInfo]:
    editor = stored.session.editor
    if editor is None:
        return []
    tree = stored.session.tree
    result = []
    for anchor, marker in editor.anchor_pairs():
        word = tree.word(anchor.word_id)
        result.append(AnchorInfo(
            id=anchor.id,
            word_id=anchor.word_id,
            time=marker.time if marker is not None else anchor.time,
            color=marker.color if marker is not None else None,
            text=word.text if word is not None else "",
        ))
    return result


def _marker_info(marker: Marker) -> AnchorInfo:
    return AnchorInfo(
        id=anchor_id_for(marker.id),
        word_id=marker.id,
        time=marker.time,
        color=marker.color,
        text=marker.text,
    )


def _session_to_response(stored: StoredSession) -> SessionResponse:
    session = stored.session
    return SessionResponse(
        id=stored.id,
        mode=session.mode.value,
        status={asset.value: status.value for asset, status in session.status.items()},
        errors={asset.value: message for asset, message in session.errors.items()},
        diagnostics=list(session.diagnostics),
        word_count=len(session.words()),
        aligned_count=len(session.index) if session.index is not None else 0,
        duration_ms=session.index.duration_ms if session.index is not None else None,
        anchors=_anchor_info(stored),
        update_count=stored.update_count,
        created_at=stored.created_at,
    )


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Load a read-along session",
    description=(
        "Parse the TEI text and SMIL alignment and keep them as a session. "
        "In ANCHOR mode, anchors already present in the text get markers."
    ),
    responses={
        422: {"model": ErrorResponse, "description": "Malformed text or alignment"},
        429: {"model": ErrorResponse, "description": "Too many sessions"},
    },
)
def create_session(request: SessionCreateRequest) -> SessionResponse:
    audio = HeadlessAudioBackend()
    session = ReadAlongSession(audio, mode=request.mode)
    if request.duration is not None:
        audio.load(request.duration)

    session.load_text(request.text)
    session.load_alignment(request.alignment)

    failures = [
        "{}: {}".format(asset.value, session.errors[asset])
        for asset in (Asset.XML, Asset.SMIL)
        if session.status[asset] == AssetStatus.ERROR
    ]
    if failures:
        raise HTTPException(status_code=422, detail="; ".join(failures))

    try:
        stored = session_store.create_session(session)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    session.on_update = stored.record_update
    with stored.lock:
        return _session_to_response(stored)


@app.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Get session state",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
def get_session(session_id: str) -> SessionResponse:
    stored = _get_or_404(session_id)
    with stored.lock:
        return _session_to_response(stored)


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Close a session",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
def delete_session(session_id: str) -> Response:
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


@app.get(
    "/sessions/{session_id}/locate",
    response_model=LocateResponse,
    tags=["sessions"],
    summary="Word being read at a time",
    description="Returns the id and text of the word being read at t seconds.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
def locate_word(
    session_id: str,
    t: float = Query(ge=0, description="Playback time in seconds."),
) -> LocateResponse:
    stored = _get_or_404(session_id)
    with stored.lock:
        try:
            word_id = stored.session.word_at(t)
        except ReadAlongError as exc:
            raise _http_error(exc)
        word = stored.session.tree.word(word_id) if word_id is not None else None
        return LocateResponse(t=t, word_id=word_id, text=word.text if word is not None else None)


# ---------------------------------------------------------------------------
# Endpoints: Anchors
# ---------------------------------------------------------------------------


@app.post(
    "/sessions/{session_id}/anchors",
    response_model=AnchorInfo,
    status_code=201,
    tags=["anchors"],
    summary="Insert an anchor before a word",
    responses={
        404: {"model": ErrorResponse, "description": "Session or word not found"},
        409: {"model": ErrorResponse, "description": "Word already has an anchor"},
        422: {"model": ErrorResponse, "description": "Session not in ANCHOR mode"},
    },
)
def create_anchor(session_id: str, request: AnchorCreateRequest) -> AnchorInfo:
    stored = _get_or_404(session_id)
    with stored.lock:
        try:
            marker = stored.session.insert_anchor(
                request.word_id,
                time=request.time,
                label=request.label,
                color=request.color,
            )
        except ReadAlongError as exc:
            raise _http_error(exc)
        return _marker_info(marker)


@app.delete(
    "/sessions/{session_id}/anchors/{word_id}",
    status_code=204,
    tags=["anchors"],
    summary="Delete the anchor before a word",
    responses={
        404: {"model": ErrorResponse, "description": "Session or anchor not found"},
        422: {"model": ErrorResponse, "description": "Session not in ANCHOR mode"},
    },
)
def delete_anchor(session_id: str, word_id: str) -> Response:
    stored = _get_or_404(session_id)
    with stored.lock:
        try:
            stored.session.delete_anchor(word_id)
        except ReadAlongError as exc:
            raise _http_error(exc)
    return Response(status_code=204)


@app.patch(
    "/sessions/{session_id}/anchors/{word_id}",
    response_model=AnchorInfo,
    tags=["anchors"],
    summary="Move an anchor's marker",
    description="Rejected moves leave the marker where it was.",
    responses={
        404: {"model": ErrorResponse, "description": "Session or anchor not found"},
        409: {"model": ErrorResponse, "description": "Move breaks anchor ordering"},
    },
)
def move_anchor(session_id: str, word_id: str, request: AnchorMoveRequest) -> AnchorInfo:
    stored = _get_or_404(session_id)
    with stored.lock:
        try:
            marker = stored.session.move_anchor(word_id, request.time)
        except ReadAlongError as exc:
            raise _http_error(exc)
        return _marker_info(marker)


@app.get(
    "/sessions/{session_id}/anchors/validate",
    response_model=ValidationResponse,
    tags=["anchors"],
    summary="Check anchor ordering",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Anchors out of order"},
        422: {"model": ErrorResponse, "description": "No anchors"},
    },
)
def validate_anchors(session_id: str) -> ValidationResponse:
    stored = _get_or_404(session_id)
    with stored.lock:
        try:
            ordered = stored.session.validate_anchors()
        except ReadAlongError as exc:
            raise _http_error(exc)
        return ValidationResponse(valid=True, anchors=[_marker_info(m) for m in ordered])


# ---------------------------------------------------------------------------
# Endpoints: Export and formats
# ---------------------------------------------------------------------------


@app.get(
    "/sessions/{session_id}/export/{format_key}",
    tags=["export"],
    summary="Export a session in one output format",
    responses={
        404: {"model": ErrorResponse, "description": "Session or format not found"},
        409: {"model": ErrorResponse, "description": "Anchors out of order"},
        422: {"model": ErrorResponse, "description": "No anchors"},
    },
)
def export_session(session_id: str, format_key: str) -> Response:
    stored = _get_or_404(session_id)
    if format_key not in FORMATTERS:
        raise HTTPException(
            status_code=404,
            detail="Unknown format '{}'. Available: {}".format(
                format_key, ", ".join(sorted(FORMATTERS.keys()))
            ),
        )
    formatter = FORMATTERS[format_key]()
    with stored.lock:
        try:
            outputs = formatter.format(stored.session)
        except ReadAlongError as exc:
            raise _http_error(exc)

    output = outputs[0]
    filename = "readalong{}".format(output.suffix)
    return Response(
        content=output.content,
        media_type=output.media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


@app.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["export"],
    summary="List available output formats",
)
def list_formats() -> List[FormatInfo]:
    result = []
    for key, formatter_cls in sorted(FORMATTERS.items()):
        formatter = formatter_cls()
        result.append(FormatInfo(key=key, name=formatter.name, suffix=formatter.suffix))
    return result


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers and orchestrators.",
)
def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api() -> None:
    """Entry point for the readalong-api console script."""
    import uvicorn

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)

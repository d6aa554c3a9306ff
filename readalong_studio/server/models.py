"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: One model per request body and per response shape. All fields
carry Field descriptions for the /docs UI.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Times are seconds unless the field name ends in _ms
- ReadingMode is imported from core.session (single source of truth)
- Response models never expose live core objects
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from readalong_studio.core.session import ReadingMode


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SessionCreateRequest(BaseModel):
    """Assets for a new read-along session.

    RULES:
    - text and alignment are the raw XML documents
    - duration is the audio length in seconds; omit if unknown
    - mode defaults to READ-ONLY
    """

    text: str = Field(description="TEI text document (XML).")
    alignment: str = Field(description="SMIL alignment document (XML).")
    duration: Optional[float] = Field(
        default=None,
        ge=0,
        description="Audio duration in seconds. Enables the 'all' sprite entry.",
    )
    mode: ReadingMode = Field(
        default=ReadingMode.READ_ONLY,
        description="Reading mode: READ-ONLY, ANCHOR or PREVIEW.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "text": "<TEI><text><body><div type=\"page\" id=\"p1\"><p><s id=\"s1\">"
                        "<w id=\"w1\">Hello</w> <w id=\"w2\">world</w></s></p></div>"
                        "</body></text></TEI>",
                "alignment": "<smil><body><par><text src=\"story.xml#w1\"/>"
                             "<audio clipBegin=\"0\" clipEnd=\"1\"/></par></body></smil>",
                "duration": 3.5,
                "mode": "ANCHOR",
            }
        ]
    }}


class AnchorCreateRequest(BaseModel):
    word_id: str = Field(description="Id of the word the anchor precedes.")
    time: Optional[float] = Field(
        default=None,
        ge=0,
        description="Anchor time in seconds. Defaults to the word's aligned start.",
    )
    label: str = Field(default="", description="Marker label.")
    color: Optional[str] = Field(
        default=None,
        description="Marker color. Defaults to the next palette color.",
    )


class AnchorMoveRequest(BaseModel):
    time: float = Field(ge=0, description="New anchor time in seconds.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AnchorInfo(BaseModel):
    """One anchor with its marker state."""

    id: str = Field(description="Anchor element id (word id + '-anc').")
    word_id: str = Field(description="Id of the word the anchor precedes.")
    time: Optional[float] = Field(default=None, description="Marker time in seconds.")
    color: Optional[str] = Field(default=None, description="Marker color.")
    text: str = Field(default="", description="Text of the anchored word.")


class SessionResponse(BaseModel):
    """Session state: asset status, diagnostics and anchors.

    RULES:
    - status maps AUDIO / XML / SMIL to loading / loaded / error
    - errors only lists assets in error state
    """

    id: str = Field(description="Session identifier.")
    mode: str = Field(description="Reading mode.")
    status: Dict[str, str] = Field(description="Load status per asset.")
    errors: Dict[str, str] = Field(default_factory=dict, description="Load errors per asset.")
    diagnostics: List[str] = Field(
        default_factory=list,
        description="Non-fatal problems noticed while loading.",
    )
    word_count: int = Field(description="Number of words in the text.")
    aligned_count: int = Field(description="Number of words in the alignment.")
    duration_ms: Optional[float] = Field(default=None, description="Audio duration, if known.")
    anchors: List[AnchorInfo] = Field(default_factory=list, description="Anchors in the text.")
    update_count: int = Field(default=0, description="Committed anchor edits so far.")
    created_at: float = Field(description="Creation timestamp (Unix epoch seconds).")


class LocateResponse(BaseModel):
    t: float = Field(description="Queried time in seconds.")
    word_id: Optional[str] = Field(default=None, description="Word being read at t.")
    text: Optional[str] = Field(default=None, description="That word's text.")


class ValidationResponse(BaseModel):
    """Successful anchor validation: anchors in word order."""

    valid: bool = Field(description="Always true; failures are error responses.")
    anchors: List[AnchorInfo] = Field(description="Anchors in word order.")


class FormatInfo(BaseModel):
    key: str = Field(description="Format identifier used in export URLs.")
    name: str = Field(description="Human-readable format name.")
    suffix: str = Field(description="File suffix produced (e.g. '-alignment.json').")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})

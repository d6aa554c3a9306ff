"""Configuration constants, palette, namespaces, and .env loading.

WHY: Centralizes every tunable value (anchor palette, color recycling
policy, server limits, log level) so they are easy to find and override
without touching the logic that uses them.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values; environment variables override the defaults.

RULES:
- ANCHOR_SUFFIX is part of the exported document format, never configurable
- Palette colors are consumed from the END of the list (last color first)
- Color recycling is off by default: deleting an anchor does not return
  its color to the pool
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# XML namespaces
# ---------------------------------------------------------------------------

SMIL_NAMESPACE = "http://www.w3.org/ns/SMIL"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

# ---------------------------------------------------------------------------
# Document conventions
# ---------------------------------------------------------------------------

ANCHOR_SUFFIX = "-anc"
"""Anchor element id = word id + ANCHOR_SUFFIX."""

ALL_SPRITE_ID = "all"
"""Synthetic alignment entry spanning the whole track."""

# ---------------------------------------------------------------------------
# Anchor colors
# ---------------------------------------------------------------------------

DEFAULT_PALETTE: list[str] = [
    "#e6194b", "#3cb44b", "#ffe119", "#4363d8", "#f58231",
    "#911eb4", "#46f0f0", "#f032e6", "#bcf60c", "#fabebe",
    "#008080", "#e6beff", "#9a6324", "#fffac8", "#800000",
    "#aaffc3", "#808000", "#ffd8b1", "#000075", "#808080",
]

FALLBACK_ANCHOR_COLOR = "#000000"
"""Color handed out once the palette is exhausted."""


def _env_palette() -> list[str]:
    raw = os.getenv("READALONG_PALETTE", "").strip()
    if not raw:
        return list(DEFAULT_PALETTE)
    return [c.strip() for c in raw.split(",") if c.strip()]


ANCHOR_PALETTE: list[str] = _env_palette()
RECYCLE_ANCHOR_COLORS = os.getenv("READALONG_RECYCLE_COLORS", "false").lower() == "true"

# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------

SKIP_BACK_SECONDS = float(os.getenv("READALONG_SKIP_BACK_SECONDS", "5"))

# ---------------------------------------------------------------------------
# HTTP server and logging
# ---------------------------------------------------------------------------

SESSION_TTL_SECONDS = int(os.getenv("READALONG_SESSION_TTL", "3600"))
MAX_SESSIONS = int(os.getenv("READALONG_MAX_SESSIONS", "100"))
SERVER_HOST = os.getenv("READALONG_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("READALONG_PORT", "8000"))
LOG_LEVEL = os.getenv("READALONG_LOG_LEVEL", "INFO").upper()

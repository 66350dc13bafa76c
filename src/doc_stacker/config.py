from __future__ import annotations

import os
from pathlib import Path

import pymupdf as fitz  # PyMuPDF


APP_NAME = "DocStacker"
APP_VERSION = "0.1.0"
APP_AUTHOR = "DocStacker"
APP_DESCRIPTION = (
    "Stack PDFs, place signature fields for every signer, "
    "collect their signatures and download the signed document."
)

API_URL = os.environ.get("DOC_STACKER_API_URL", "http://localhost:8080").rstrip("/")
REQUEST_TIMEOUT = float(os.environ.get("DOC_STACKER_TIMEOUT", "30"))
LOG_LEVEL = os.environ.get("DOC_STACKER_LOG_LEVEL", "INFO")
# "local" keeps documents on disk via PyMuPDF, "http" talks to API_URL.
BACKEND = os.environ.get("DOC_STACKER_BACKEND", "local")

# Field placement, in normalized page coordinates.
DEFAULT_FIELD_BOX = (0.30, 0.70, 0.25, 0.08)
UNIT_RECT = fitz.Rect(0, 0, 1, 1)

MAX_SIGNERS = 5
MIN_SIGNERS = 1
SIGNER_COLORS = (
    "#1976d2",  # blue
    "#9c27b0",  # purple
    "#2e7d32",  # green
    "#ed6c02",  # orange
    "#d32f2f",  # red
)

# Signature capture surfaces, in pixels.
CAPTURE_SIZE = (500, 150)
STROKE_WIDTH = 2
TYPED_BASE_FONT_SIZE = 48
TYPED_PADDING = 20
SIGNATURE_STYLES = {
    "Dancing Script": "DancingScript-Regular.ttf",
    "Great Vibes": "GreatVibes-Regular.ttf",
    "Pacifico": "Pacifico-Regular.ttf",
    "Satisfy": "Satisfy-Regular.ttf",
    "Allura": "Allura-Regular.ttf",
}
DEFAULT_SIGNATURE_STYLE = "Dancing Script"


def font_dirs() -> list[Path]:
    dirs = [Path(__file__).resolve().parents[2] / "assets" / "fonts"]
    extra = os.environ.get("DOC_STACKER_FONT_DIR")
    if extra:
        dirs.insert(0, Path(extra))
    return dirs


# Page rendering for the local backend.
PAGE_RENDER_DPI = 150

DEFAULT_CANVAS_BG = "#525659"
DEFAULT_STATUS_BG = "#0f0f0f"
DEFAULT_RENDER_DEBOUNCE_MS = 120


from __future__ import annotations

from typing import Optional, Tuple

import pymupdf as fitz  # PyMuPDF

from .config import UNIT_RECT


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_position(
    x: float, y: float, width: float, height: float
) -> tuple[float, float]:
    """Confine a normalized box's top-left corner so the box stays on the page.

    Each axis is clamped independently to ``[0, 1 - size]``.
    """
    return clamp(x, 0.0, 1.0 - width), clamp(y, 0.0, 1.0 - height)


def clamp_rect(rect: fitz.Rect, bounds: fitz.Rect = UNIT_RECT) -> fitz.Rect:
    """Return a rectangle confined within bounds."""
    clamped = fitz.Rect(rect)
    dx = max(0, clamped.x1 - bounds.x1)
    dy = max(0, clamped.y1 - bounds.y1)
    clamped.x0 -= dx
    clamped.x1 -= dx
    clamped.y0 -= dy
    clamped.y1 -= dy

    if clamped.x0 < bounds.x0:
        clamped.x1 += bounds.x0 - clamped.x0
        clamped.x0 = bounds.x0
    if clamped.y0 < bounds.y0:
        clamped.y1 += bounds.y0 - clamped.y0
        clamped.y0 = bounds.y0
    return clamped


def has_size(image_size: Optional[Tuple[float, float]]) -> bool:
    return bool(image_size) and image_size[0] > 0 and image_size[1] > 0


def pixels_to_norm(
    x: float, y: float, image_size: Tuple[float, float]
) -> tuple[float, float]:
    return x / image_size[0], y / image_size[1]


def norm_to_pixels(
    x: float, y: float, image_size: Tuple[float, float]
) -> tuple[float, float]:
    return x * image_size[0], y * image_size[1]


def norm_box_to_canvas_rect(
    box: Tuple[float, float, float, float], image_size: Tuple[float, float]
) -> tuple[float, float, float, float]:
    x, y, width, height = box
    x0, y0 = norm_to_pixels(x, y, image_size)
    x1, y1 = norm_to_pixels(x + width, y + height, image_size)
    return x0, y0, x1, y1


def norm_box_to_pdf_rect(
    box: Tuple[float, float, float, float], page_rect: fitz.Rect
) -> fitz.Rect:
    """Map a normalized top-left box onto a page rectangle in PDF points.

    PyMuPDF page coordinates grow downwards like the normalized ones, so no
    axis flip is needed.
    """
    x, y, width, height = box
    rect = fitz.Rect(
        page_rect.x0 + x * page_rect.width,
        page_rect.y0 + y * page_rect.height,
        page_rect.x0 + (x + width) * page_rect.width,
        page_rect.y0 + (y + height) * page_rect.height,
    )
    return clamp_rect(rect, page_rect)


def stamp_layout(
    field_rect: fitz.Rect,
    stamp_size: Tuple[int, int],
    page_rect: fitz.Rect,
    margin: float = 5.0,
) -> tuple[fitz.Rect, fitz.Rect]:
    """Return ``(stamp_rect, signature_rect)`` for a field that carries a stamp.

    The stamp is 1.4x the field width (height capped at 2.5x the field
    height), kept ``margin`` points inside the page; the signature sits toward
    the stamp's lower-right corner.
    """
    aspect = stamp_size[0] / stamp_size[1] if stamp_size[1] else 1.0
    stamp_width = field_rect.width * 1.4
    stamp_height = stamp_width / aspect
    max_height = field_rect.height * 2.5
    if stamp_height > max_height:
        stamp_height = max_height
        stamp_width = stamp_height * aspect

    x0 = clamp(field_rect.x0, page_rect.x0 + margin, page_rect.x1 - stamp_width - margin)
    y1 = clamp(field_rect.y1, page_rect.y0 + stamp_height + margin, page_rect.y1 - margin)
    stamp_rect = fitz.Rect(x0, y1 - stamp_height, x0 + stamp_width, y1)

    sig_x0 = stamp_rect.x0 + (stamp_width - field_rect.width) * 0.7
    sig_y1 = stamp_rect.y1 - (stamp_height - field_rect.height) * 0.2
    signature_rect = fitz.Rect(
        sig_x0, sig_y1 - field_rect.height, sig_x0 + field_rect.width, sig_y1
    )
    return stamp_rect, signature_rect

"""Signature capture: freehand strokes or a typed name turned into a PNG raster.

Both capture modes are plain synchronous objects with no knowledge of who is
signing; the signing sequencer decides which signer a raster belongs to.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from .config import (
    CAPTURE_SIZE,
    DEFAULT_SIGNATURE_STYLE,
    SIGNATURE_STYLES,
    STROKE_WIDTH,
    TYPED_BASE_FONT_SIZE,
    TYPED_PADDING,
    font_dirs,
)
from .models import SignatureRaster

logger = logging.getLogger(__name__)

INK = (0, 0, 0, 255)
TRANSPARENT = (0, 0, 0, 0)

Point = Tuple[float, float]


def encode_png(image: Image.Image) -> SignatureRaster:
    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


class FreehandCapture:
    """Accumulates pointer strokes on a fixed-size transparent surface."""

    def __init__(
        self, size: Tuple[int, int] = CAPTURE_SIZE, stroke_width: int = STROKE_WIDTH
    ) -> None:
        self.size = size
        self.stroke_width = stroke_width
        self._surface = Image.new("RGBA", size, TRANSPARENT)
        self._draw = ImageDraw.Draw(self._surface)
        self._stroke: Optional[List[Point]] = None
        self.segment_count = 0

    @property
    def is_drawing(self) -> bool:
        return self._stroke is not None

    @property
    def has_signature(self) -> bool:
        return self.segment_count > 0

    @property
    def last_point(self) -> Optional[Point]:
        return self._stroke[-1] if self._stroke else None

    def pointer_down(self, x: float, y: float) -> None:
        self._stroke = [(x, y)]

    def pointer_move(self, x: float, y: float) -> None:
        if self._stroke is None:
            return
        start = self._stroke[-1]
        self._stroke.append((x, y))
        self._segment(start, (x, y))

    def pointer_up(self) -> Optional[SignatureRaster]:
        """Finish the current stroke and return the raster if anything was drawn."""
        if self._stroke is None:
            return None
        self._stroke = None
        if not self.has_signature:
            return None
        return encode_png(self._surface)

    def clear(self) -> None:
        self._surface = Image.new("RGBA", self.size, TRANSPARENT)
        self._draw = ImageDraw.Draw(self._surface)
        self._stroke = None
        self.segment_count = 0

    def image(self) -> Image.Image:
        return self._surface.copy()

    def _segment(self, start: Point, end: Point) -> None:
        self._draw.line([start, end], fill=INK, width=self.stroke_width, joint="curve")
        # Round caps: Pillow draws butt ends, so cap both ends with a dot.
        radius = self.stroke_width / 2
        for cx, cy in (start, end):
            self._draw.ellipse(
                (cx - radius, cy - radius, cx + radius, cy + radius), fill=INK
            )
        self.segment_count += 1


@lru_cache(maxsize=32)
def load_signature_font(style: str, size: int = TYPED_BASE_FONT_SIZE):
    """Load a calligraphic preset, falling back to Pillow's scalable default."""
    filename = SIGNATURE_STYLES.get(style)
    if filename:
        for directory in font_dirs():
            candidate = directory / filename
            if candidate.exists():
                try:
                    return ImageFont.truetype(str(candidate), size)
                except OSError:
                    logger.warning("Could not load font %s", candidate)
        try:
            return ImageFont.truetype(filename, size)
        except OSError:
            logger.warning(
                "Font %s not found; set DOC_STACKER_FONT_DIR to a folder holding it. "
                "Using the default font.",
                filename,
            )
    return ImageFont.load_default(size=size)


@dataclass(frozen=True)
class TypedRender:
    raster: SignatureRaster
    scale: float
    text_width: float


def render_typed_signature(
    name: str,
    style: str = DEFAULT_SIGNATURE_STYLE,
    size: Tuple[int, int] = CAPTURE_SIZE,
    font_size: int = TYPED_BASE_FONT_SIZE,
    padding: int = TYPED_PADDING,
) -> Optional[TypedRender]:
    """Render ``name`` centered on one line.

    When the text is wider than the canvas minus ``padding`` on both sides the
    whole render is scaled down uniformly. Returns ``None`` for blank names.
    """
    if not name or not name.strip():
        return None
    if style not in SIGNATURE_STYLES:
        raise ValueError(f"Unknown signature style {style!r}.")

    font = load_signature_font(style, font_size)
    left, top, right, bottom = font.getbbox(name)
    text_width = max(1, int(round(right - left)))
    text_height = max(1, int(round(bottom - top)))

    max_width = size[0] - 2 * padding
    scale = 1.0
    if text_width > max_width:
        scale = max_width / text_width

    text = Image.new("RGBA", (text_width, text_height), TRANSPARENT)
    ImageDraw.Draw(text).text((-left, -top), name, font=font, fill=INK)
    if scale < 1.0:
        text = text.resize(
            (max(1, round(text_width * scale)), max(1, round(text_height * scale))),
            Image.Resampling.LANCZOS,
        )

    canvas = Image.new("RGBA", size, TRANSPARENT)
    x = (size[0] - text.width) // 2
    y = (size[1] - text.height) // 2
    canvas.alpha_composite(text, (max(0, x), max(0, y)))
    return TypedRender(raster=encode_png(canvas), scale=scale, text_width=text_width)


class TypedCapture:
    """Typed-name capture; re-renders whenever the name or style changes."""

    def __init__(self, name: str = "", style: str = DEFAULT_SIGNATURE_STYLE) -> None:
        self._name = name
        self._style = style
        self.last: Optional[TypedRender] = None
        self.raster: Optional[SignatureRaster] = None
        self._render()

    @property
    def name(self) -> str:
        return self._name

    @property
    def style(self) -> str:
        return self._style

    @property
    def scale(self) -> Optional[float]:
        return self.last.scale if self.last else None

    def set_name(self, name: str) -> Optional[SignatureRaster]:
        self._name = name
        return self._render()

    def set_style(self, style: str) -> Optional[SignatureRaster]:
        if style not in SIGNATURE_STYLES:
            raise ValueError(f"Unknown signature style {style!r}.")
        self._style = style
        return self._render()

    def _render(self) -> Optional[SignatureRaster]:
        self.last = render_typed_signature(self._name, self._style)
        self.raster = self.last.raster if self.last else None
        return self.raster

from __future__ import annotations

import io

import pytest
from PIL import Image

from doc_stacker.capture import FreehandCapture, TypedCapture, render_typed_signature
from doc_stacker.config import CAPTURE_SIZE, SIGNATURE_STYLES, font_dirs


def _open(raster: bytes) -> Image.Image:
    return Image.open(io.BytesIO(raster))


def test_tap_without_movement_produces_no_signature():
    pad = FreehandCapture()

    pad.pointer_down(10, 10)

    assert pad.is_drawing
    assert pad.pointer_up() is None
    assert not pad.has_signature


def test_moves_without_pointer_down_are_ignored():
    pad = FreehandCapture()
    pad.pointer_move(20, 20)
    assert pad.segment_count == 0
    assert pad.pointer_up() is None


def test_strokes_produce_png_of_capture_size():
    pad = FreehandCapture()
    pad.pointer_down(20, 75)
    pad.pointer_move(120, 40)
    pad.pointer_move(240, 110)

    raster = pad.pointer_up()

    assert raster is not None
    image = _open(raster)
    assert image.format == "PNG"
    assert image.size == CAPTURE_SIZE
    assert image.getpixel((120, 40))[3] == 255
    assert image.getpixel((450, 10))[3] == 0


def test_later_strokes_accumulate_on_the_same_surface():
    pad = FreehandCapture()
    pad.pointer_down(10, 10)
    pad.pointer_move(50, 10)
    pad.pointer_up()
    pad.pointer_down(10, 100)
    pad.pointer_move(50, 100)

    image = _open(pad.pointer_up())

    assert image.crop((0, 0, 60, 20)).getbbox() is not None
    assert image.crop((0, 90, 60, 110)).getbbox() is not None
    assert image.crop((100, 30, 400, 70)).getbbox() is None


def test_clear_resets_surface():
    pad = FreehandCapture()
    pad.pointer_down(10, 10)
    pad.pointer_move(60, 60)
    pad.pointer_up()

    pad.clear()

    assert not pad.has_signature
    assert pad.image().getbbox() is None


@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
def test_blank_typed_name_has_no_raster(name):
    assert render_typed_signature(name) is None
    assert TypedCapture(name).raster is None


def test_short_name_renders_unscaled_and_centered():
    rendered = render_typed_signature("Al")

    assert rendered is not None
    assert rendered.scale == 1.0
    image = _open(rendered.raster)
    assert image.size == CAPTURE_SIZE
    left, _top, right, _bottom = image.getbbox()
    assert abs((left + right) / 2 - CAPTURE_SIZE[0] / 2) <= 4


def test_long_name_is_scaled_to_fit():
    rendered = render_typed_signature("Bartholomew Maximilian Featherstonehaugh-Worthington III")

    assert rendered is not None
    assert rendered.scale < 1.0
    assert rendered.text_width * rendered.scale <= CAPTURE_SIZE[0] - 40 + 1
    image = _open(rendered.raster)
    left, _top, right, _bottom = image.getbbox()
    assert left >= 18 and right <= CAPTURE_SIZE[0] - 18


def test_unknown_style_is_rejected():
    with pytest.raises(ValueError):
        render_typed_signature("Alice", style="Comic Sans")
    with pytest.raises(ValueError):
        TypedCapture("Alice").set_style("Comic Sans")


def test_typed_capture_rerenders_on_change():
    capture = TypedCapture("Alice")
    first = capture.raster

    other_style = next(s for s in SIGNATURE_STYLES if s != capture.style)
    capture.set_style(other_style)
    assert capture.style == other_style
    assert capture.raster is not None

    assert capture.set_name("") is None
    assert capture.raster is None
    assert capture.scale is None

    assert capture.set_name("Alice") is not None
    assert first is not None


def test_font_dir_from_environment_is_searched_first(monkeypatch, tmp_path):
    monkeypatch.setenv("DOC_STACKER_FONT_DIR", str(tmp_path))

    dirs = font_dirs()

    assert dirs[0] == tmp_path
    assert dirs[-1].parts[-2:] == ("assets", "fonts")

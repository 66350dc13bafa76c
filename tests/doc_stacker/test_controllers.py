from __future__ import annotations

import io

import pytest
from PIL import Image

from doc_stacker.controllers import PageViewController


def png_bytes(size=(40, 50)) -> bytes:
    output = io.BytesIO()
    Image.new("RGB", size, "white").save(output, format="PNG")
    return output.getvalue()


class PageFetcher:
    def __init__(self, fail=False):
        self.fail = fail
        self.requested: list[int] = []

    def __call__(self, page: int) -> bytes:
        self.requested.append(page)
        if self.fail:
            raise RuntimeError("backend down")
        return png_bytes()


def test_navigation_is_bounded_and_forgets_image_size():
    view = PageViewController(PageFetcher())
    view.reset(3)
    view.image_size = (400, 500)

    view.prev_page()
    assert view.page_index == 0
    assert view.image_size == (400, 500)

    view.next_page()
    view.next_page()
    view.next_page()
    assert view.page_index == 2
    assert view.image_size is None

    view.go_to(-4)
    assert view.page_index == 0


def test_load_marks_page_loading_until_displayed():
    fetcher = PageFetcher()
    view = PageViewController(fetcher)
    view.reset(2)

    image = view.load_current()

    assert image.size == (40, 50)
    assert fetcher.requested == [0]
    assert view.is_loading
    assert not view.ready

    assert view.image_displayed(0, (400, 500)) is True
    assert view.ready
    assert view.image_size == (400, 500)


def test_stale_display_for_previous_page_is_ignored():
    view = PageViewController(PageFetcher())
    view.reset(2)
    view.load_current()
    view.next_page()

    assert view.image_displayed(0, (400, 500)) is False
    assert view.image_size is None


def test_failed_load_notifies_and_reraises():
    seen = []
    view = PageViewController(PageFetcher(fail=True))
    view.reset(1)
    view.subscribe(lambda page, size: seen.append((page, size)))

    with pytest.raises(RuntimeError):
        view.load_current()

    assert seen == [(0, None)]
    assert not view.is_loading


def test_unsubscribe_stops_notifications():
    seen = []
    view = PageViewController(PageFetcher())
    view.reset(1)
    unsubscribe = view.subscribe(lambda page, size: seen.append(size))

    view.image_displayed(0, (10, 20))
    unsubscribe()
    unsubscribe()
    view.image_displayed(0, (30, 40))

    assert seen == [(10, 20)]


def test_zero_sized_display_keeps_drags_disabled():
    view = PageViewController(PageFetcher())
    view.reset(1)
    assert view.image_displayed(0, (0, 0)) is False
    assert view.image_size is None

from __future__ import annotations

import io
import logging
from typing import Callable, List, Optional, Set, Tuple

from PIL import Image

logger = logging.getLogger(__name__)

PageListener = Callable[[int, Optional[Tuple[int, int]]], None]


class PageViewController:
    """Page navigation plus the per-page image loading state.

    Field drags need the rendered image size, which is only known once the
    current page's image has loaded; until then ``image_size`` is ``None``.
    """

    def __init__(self, page_fetcher: Callable[[int], bytes]) -> None:
        self._fetch_page = page_fetcher
        self.page_count: int = 0
        self.page_index: int = 0
        self.image_size: Optional[Tuple[int, int]] = None
        self._loading: Set[int] = set()
        self._listeners: List[PageListener] = []

    @property
    def is_loading(self) -> bool:
        return self.page_index in self._loading

    @property
    def ready(self) -> bool:
        return not self.is_loading and self.image_size is not None

    def reset(self, page_count: int) -> None:
        self.page_count = max(0, page_count)
        self.page_index = 0
        self.image_size = None
        self._loading.clear()

    def next_page(self) -> None:
        if self.page_index < self.page_count - 1:
            self.go_to(self.page_index + 1)

    def prev_page(self) -> None:
        if self.page_index > 0:
            self.go_to(self.page_index - 1)

    def go_to(self, page_index: int) -> None:
        if self.page_count == 0:
            self.page_index = 0
            return
        target = max(0, min(page_index, self.page_count - 1))
        if target != self.page_index:
            self.page_index = target
            self.image_size = None

    # Image loading ------------------------------------------------------------
    def subscribe(self, listener: PageListener) -> Callable[[], None]:
        """Register a load listener; call the returned function to detach it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load_current(self) -> Image.Image:
        page = self.page_index
        self._loading.add(page)
        self.image_size = None
        try:
            data = self._fetch_page(page)
            image = Image.open(io.BytesIO(data))
            image.load()
        except Exception:
            self._loading.discard(page)
            self._notify(page, None)
            raise
        return image

    def image_displayed(self, page_index: int, size: Tuple[int, int]) -> bool:
        """Record the on-screen size of a page image once it is shown.

        Stale notifications for a page that is no longer current are ignored.
        """
        self._loading.discard(page_index)
        if page_index != self.page_index:
            logger.debug("Ignoring stale image load for page %d", page_index)
            return False
        self.image_size = (int(size[0]), int(size[1])) if size[0] and size[1] else None
        self._notify(page_index, self.image_size)
        return self.image_size is not None

    def _notify(self, page_index: int, size: Optional[Tuple[int, int]]) -> None:
        for listener in list(self._listeners):
            listener(page_index, size)

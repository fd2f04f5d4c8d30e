"""Scroll/page position keeping across reconciliations."""

from collections.abc import Callable
from typing import Protocol

from procview.models import ScrollAnchor


class ScrollSurface(Protocol):
    """Whatever renders the rows: exposes its scroll offset and a render hook."""

    @property
    def anchor_offset(self) -> float: ...

    def apply_anchor_offset(self, offset: float) -> None: ...

    def after_render(self, callback: Callable[[], None]) -> None:
        """Run callback once the surface has rendered its new rows."""
        ...


class ScrollKeeper:
    """
    Preserve the viewer's raw position over a refresh in two phases.

    before_reconcile() captures the offset and page, after_reconcile() reapplies
    the offset on the surface's next render. Only the raw offset is kept; a row
    removed above the viewport still shifts content. If the viewer has moved to
    another page in between, the old offset no longer applies and is dropped.
    """

    def __init__(self, surface: ScrollSurface, page_getter: Callable[[], int]) -> None:
        self._surface = surface
        self._page_getter = page_getter
        self._pending: ScrollAnchor | None = None

    @property
    def pending(self) -> ScrollAnchor | None:
        """Anchor captured but not yet reapplied."""
        return self._pending

    def before_reconcile(self) -> ScrollAnchor:
        anchor = ScrollAnchor(offset=self._surface.anchor_offset, page=self._page_getter())
        self._pending = anchor
        return anchor

    def after_reconcile(self, anchor: ScrollAnchor) -> None:
        self._surface.after_render(lambda: self._reapply(anchor))

    def _reapply(self, anchor: ScrollAnchor) -> bool:
        # A newer capture supersedes this one
        if self._pending is not anchor:
            return False
        self._pending = None
        if self._page_getter() != anchor.page:
            return False
        self._surface.apply_anchor_offset(anchor.offset)
        return True

from __future__ import annotations

import logging
from typing import Dict, Sequence

from .content_store import ContentStore
from .errors import PageNotFound, SectionIndexOutOfRange
from .models.page import Page
from .models.section import Section

logger = logging.getLogger(__name__)


class ContentTree:
    """The persisted, ordered sections of each page."""

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    def page(self, page_id: str) -> Page:
        return self._store.get_page(page_id)

    def load(self, page_id: str) -> list[Section]:
        return list(self._store.get_page(page_id).content)

    def persist(self, page_id: str, content: Sequence[Section]) -> None:
        self._store.update_page(page_id, content=list(content))


class EditBuffer:
    """Per-page overlay of unsaved content.

    An entry always holds a complete replacement list; entries are never
    patched field by field.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, list[Section]] = {}

    def get(self, page_id: str) -> list[Section] | None:
        entry = self._entries.get(page_id)
        return list(entry) if entry is not None else None

    def put(self, page_id: str, content: Sequence[Section]) -> None:
        self._entries[page_id] = list(content)

    def clear(self, page_id: str) -> None:
        self._entries.pop(page_id, None)

    def has_changes(self, page_id: str) -> bool:
        return page_id in self._entries

    def dirty_pages(self) -> list[str]:
        return list(self._entries)

    def discard_all(self) -> None:
        self._entries.clear()


class EditorSession:
    """State of one open builder: selected page, section being edited, unsaved buffers.

    A session opened for a website only selects pages of that website.
    """

    def __init__(
        self,
        store: ContentStore,
        *,
        website_id: str | None = None,
        buffer: EditBuffer | None = None,
    ) -> None:
        self.tree = ContentTree(store)
        self.buffer = buffer or EditBuffer()
        self.website_id = website_id
        self.selected_page_id: str | None = None
        self.editing_index: int | None = None

    def load(self, page_id: str) -> list[Section]:
        return self.tree.load(page_id)

    def effective_content(self, page_id: str) -> list[Section]:
        """Content the editor shows for ``page_id``.

        Returns:
            A fresh list: the buffered content when the page has unsaved
            edits, otherwise the persisted content.
        """
        buffered = self.buffer.get(page_id)
        if buffered is not None:
            return buffered
        return self.tree.load(page_id)

    def mutate(self, page_id: str, new_content: Sequence[Section]) -> None:
        """Replace the page's buffer entry wholesale with ``new_content``."""
        self.buffer.put(page_id, new_content)

    def has_unsaved_changes(self, page_id: str) -> bool:
        return self.buffer.has_changes(page_id)

    def save(self, page_id: str) -> bool:
        """Persist the buffered content of ``page_id`` and clear its buffer entry.

        Args:
            page_id: Page to save.

        Returns:
            False when there was nothing to save, True once the write succeeded.

        Raises:
            PersistenceWriteFailed: the store rejected the write; the buffer is
                left in place for a retry.
        """
        snapshot = self.buffer.get(page_id)
        if snapshot is None:
            return False
        try:
            self.tree.persist(page_id, snapshot)
        except Exception:
            logger.warning(
                "Save failed, keeping unsaved changes",
                exc_info=True,
                extra={"page_id": page_id, "sections_count": len(snapshot)},
            )
            raise
        self.buffer.clear(page_id)
        logger.info("Saved page", extra={"page_id": page_id, "sections_count": len(snapshot)})
        return True

    def select_page(self, page_id: str) -> None:
        """Make ``page_id`` the page being edited.

        Raises:
            PageNotFound: the page does not exist or belongs to another website.
                The current selection is kept.
        """
        page = self.tree.page(page_id)
        if self.website_id is not None and page.website_id != self.website_id:
            raise PageNotFound(page_id)
        # Other pages keep their buffers; only the section selection resets.
        self.selected_page_id = page_id
        self.editing_index = None

    def select_section(self, index: int) -> None:
        if self.selected_page_id is None:
            raise ValueError("No page selected")
        length = len(self.effective_content(self.selected_page_id))
        if not 0 <= index < length:
            raise SectionIndexOutOfRange(index, length)
        self.editing_index = index

    def clear_selection(self) -> None:
        self.editing_index = None

    def discard(self, page_id: str | None = None) -> None:
        """Drop unsaved edits, as when the operator leaves the builder."""
        if page_id is None:
            dropped = self.buffer.dirty_pages()
            self.buffer.discard_all()
            self.selected_page_id = None
            self.editing_index = None
        else:
            dropped = [page_id] if self.buffer.has_changes(page_id) else []
            self.buffer.clear(page_id)
            if page_id == self.selected_page_id:
                self.editing_index = None
        if dropped:
            logger.info("Discarded unsaved changes", extra={"page_ids": dropped})


__all__ = ["ContentTree", "EditBuffer", "EditorSession"]

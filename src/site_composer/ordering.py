from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from .editing import EditorSession
from .errors import (
    ImmutableSectionField,
    InvalidStyleToken,
    SectionIndexOutOfRange,
    UnknownSectionField,
    UnreadableSection,
)
from .models.section import Section, SectionCategory
from .section_registry import (
    FONT_FAMILY_TOKENS,
    FONT_SIZE_TOKENS,
    STYLE_ELEMENTS,
    SectionDefinition,
    category_of,
    defaults_for,
    definition_for,
    is_supported,
)

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset({"kind", "id"})


class Direction(str, Enum):
    up = "up"
    down = "down"


def new_section_id() -> str:
    return uuid.uuid4().hex[:12]


def _check_index(content: list[Section], index: int) -> None:
    if not 0 <= index < len(content):
        raise SectionIndexOutOfRange(index, len(content))


def _editable(content: list[Section], index: int) -> Section:
    _check_index(content, index)
    section = content[index]
    if section.is_opaque:
        raise UnreadableSection(index)
    return section


def _check_entry(definition: SectionDefinition, position: int, entry: Any) -> None:
    if definition.item_model is None:
        return
    try:
        definition.item_model.model_validate(entry)
    except ValidationError as exc:
        raise ValueError(f"Invalid {definition.item_collection} entry {position}: {exc}") from exc


class SectionEditor:
    """Structural edits over a page's effective content.

    Each operation reads the effective content, builds a new list and hands it
    to ``EditorSession.mutate``. Validation happens before the new list is
    built, so a rejected operation leaves the buffer exactly as it was.
    """

    def __init__(self, session: EditorSession) -> None:
        self.session = session

    def add_section(self, page_id: str, kind: str) -> int:
        """Append a section of ``kind`` filled with its registry defaults.

        Args:
            page_id: Page being edited.
            kind: Section kind or one of its legacy aliases.

        Returns:
            Index of the new section, which becomes the selected one.

        Raises:
            UnsupportedSectionKind: ``kind`` is not in the registry.
        """
        section = defaults_for(kind).model_copy(update={"id": new_section_id()})
        content = self.session.effective_content(page_id)
        content.append(section)
        self.session.mutate(page_id, content)
        index = len(content) - 1
        if self.session.selected_page_id in (None, page_id):
            self.session.selected_page_id = page_id
            self.session.editing_index = index
        logger.debug("Added section", extra={"page_id": page_id, "kind": section.kind, "index": index})
        return index

    def delete_section(self, page_id: str, index: int) -> None:
        content = self.session.effective_content(page_id)
        _check_index(content, index)
        del content[index]
        self.session.mutate(page_id, content)
        if self._tracks_selection(page_id):
            editing = self.session.editing_index
            if editing == index:
                self.session.editing_index = None
            elif editing is not None and editing > index:
                self.session.editing_index = editing - 1

    def move_section(self, page_id: str, index: int, direction: Direction | str) -> int:
        """Swap the section with its neighbour; returns its new index.

        Moving past either end is a no-op and returns ``index`` unchanged.
        """
        direction = Direction(direction)
        content = self.session.effective_content(page_id)
        _check_index(content, index)
        target = index - 1 if direction == Direction.up else index + 1
        if not 0 <= target < len(content):
            return index
        content[index], content[target] = content[target], content[index]
        self.session.mutate(page_id, content)
        if self._tracks_selection(page_id):
            self.session.editing_index = target
        return target

    def toggle_visibility(self, page_id: str, index: int) -> bool:
        content = self.session.effective_content(page_id)
        section = _editable(content, index)
        content[index] = section.model_copy(update={"hidden": not section.hidden})
        self.session.mutate(page_id, content)
        return content[index].hidden

    def update_field(self, page_id: str, index: int, field: str, value: Any) -> Section:
        """Replace one field of a section, leaving every other field as it was.

        Args:
            page_id: Page being edited.
            index: Position of the section on the page.
            field: Python or persisted (camelCase) field name.
            value: New value. A replaced item list is checked entry by entry
                against the kind's item shape.

        Returns:
            The updated section.

        Raises:
            ImmutableSectionField: ``field`` is ``kind`` or ``id``.
            UnknownSectionField: the section has no such field.
            ValueError: ``value`` does not validate.
        """
        content = self.session.effective_content(page_id)
        section = _editable(content, index)
        name = Section.field_name(field)
        if name is None and field in (section.model_extra or {}):
            name = field
        if name is None:
            raise UnknownSectionField(field)
        if name in IMMUTABLE_FIELDS:
            raise ImmutableSectionField(field)
        try:
            updated = section.with_updates({name: value})
        except ValidationError as exc:
            raise ValueError(f"Invalid value for {field}: {exc}") from exc
        if is_supported(section.kind):
            definition = definition_for(section.kind)
            if name == definition.item_collection:
                for position, entry in enumerate(getattr(updated, name) or []):
                    _check_entry(definition, position, entry)
        content[index] = updated
        self.session.mutate(page_id, content)
        return updated

    def update_item(
        self,
        page_id: str,
        index: int,
        item_index: int,
        field: str,
        value: Any,
    ) -> Section:
        """Set one field of one list entry (gallery image, review rating, form field...).

        Raises:
            SectionIndexOutOfRange: ``index`` or ``item_index`` is out of range.
            ValueError: the edited entry no longer fits the kind's item shape.
        """
        return self._edit_items(
            page_id,
            index,
            lambda entries: _set_entry_field(entries, item_index, field, value),
        )

    def add_item(self, page_id: str, index: int, item: dict[str, Any]) -> Section:
        return self._edit_items(page_id, index, lambda entries: _append_entry(entries, item))

    def remove_item(self, page_id: str, index: int, item_index: int) -> Section:
        def remove(entries: list[dict[str, Any]]) -> None:
            if not 0 <= item_index < len(entries):
                raise SectionIndexOutOfRange(item_index, len(entries))
            del entries[item_index]

        return self._edit_items(page_id, index, remove)

    def apply_style(
        self,
        page_id: str,
        index: int,
        element: str,
        *,
        font_size: str | None = None,
        font_family: str | None = None,
    ) -> Section:
        """Write the style affordance's choice for one text element.

        Args:
            page_id: Page being edited.
            index: Position of the section on the page.
            element: ``heading``, ``subheading`` or ``content``.
            font_size: A ``FONT_SIZE_TOKENS`` value, or None to keep the current one.
            font_family: A ``FONT_FAMILY_TOKENS`` value, or None to keep the current one.

        Returns:
            The section after the change.
        """
        if element not in STYLE_ELEMENTS:
            raise UnknownSectionField(element)
        changes: dict[str, str] = {}
        if font_size is not None:
            if font_size not in FONT_SIZE_TOKENS:
                raise InvalidStyleToken(element, font_size)
            changes[f"{element}_font_size"] = font_size
        if font_family is not None:
            if font_family not in FONT_FAMILY_TOKENS:
                raise InvalidStyleToken(element, font_family)
            changes[f"{element}_font_family"] = font_family
        content = self.session.effective_content(page_id)
        section = _editable(content, index)
        if not changes:
            return section
        content[index] = section.model_copy(update=changes)
        self.session.mutate(page_id, content)
        return content[index]

    def locate(self, page_id: str, section_id: str) -> int:
        for index, section in enumerate(self.session.effective_content(page_id)):
            if section.id == section_id:
                return index
        raise KeyError(section_id)

    def sections_by_category(self, page_id: str, category: SectionCategory) -> list[tuple[int, Section]]:
        return [
            (index, section)
            for index, section in enumerate(self.session.effective_content(page_id))
            if is_supported(section.kind) and category_of(section.kind) == category
        ]

    def _edit_items(
        self,
        page_id: str,
        index: int,
        edit: Callable[[list[dict[str, Any]]], tuple[int, Any] | None],
    ) -> Section:
        content = self.session.effective_content(page_id)
        section = _editable(content, index)
        definition = definition_for(section.kind)
        collection = definition.item_collection
        entries = [dict(entry) for entry in getattr(section, collection) or []]
        touched = edit(entries)
        if touched is not None:
            _check_entry(definition, *touched)
        content[index] = section.model_copy(update={collection: entries})
        self.session.mutate(page_id, content)
        return content[index]

    def _tracks_selection(self, page_id: str) -> bool:
        return self.session.selected_page_id == page_id


def _set_entry_field(entries: list[dict[str, Any]], item_index: int, field: str, value: Any) -> tuple[int, Any]:
    if not 0 <= item_index < len(entries):
        raise SectionIndexOutOfRange(item_index, len(entries))
    entries[item_index] = {**entries[item_index], field: value}
    return item_index, entries[item_index]


def _append_entry(entries: list[dict[str, Any]], item: dict[str, Any]) -> tuple[int, Any]:
    entries.append(dict(item))
    return len(entries) - 1, entries[-1]


__all__ = ["Direction", "IMMUTABLE_FIELDS", "SectionEditor", "new_section_id"]

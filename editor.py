"""Editing session over a slide collection.

Slides are replaced by ``id``, never by position. Structured edits go through
``content_codec`` (and ``hierarchy`` for tree slides): decode, change one
element, encode, write ``content`` back.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

try:
    from . import hierarchy
    from .content_codec import decode, encode
    from .models import (
        LAYOUTS,
        SLOT_VARIANTS,
        ChartContent,
        ChartPoint,
        FeatureEntry,
        FeaturesContent,
        HierarchyContent,
        ItemListContent,
        Slide,
        SlideContent,
        TimelineContent,
        TimelineEntry,
        slot_fields,
    )
except Exception:
    import hierarchy
    from content_codec import decode, encode
    from models import (
        LAYOUTS,
        SLOT_VARIANTS,
        ChartContent,
        ChartPoint,
        FeatureEntry,
        FeaturesContent,
        HierarchyContent,
        ItemListContent,
        Slide,
        SlideContent,
        TimelineContent,
        TimelineEntry,
        slot_fields,
    )

logger = logging.getLogger("deckstudio")

NEW_CHART_LABEL = "New item"
NEW_CHART_VALUE = 10

# Editable slide fields, by either their python or their wire name.
EDITABLE_FIELDS: Dict[str, str] = {
    "title": "title",
    "content": "content",
    "layout": "layout",
    "image_prompt": "image_prompt",
    "imagePrompt": "image_prompt",
    "image_url": "image_url",
    "imageUrl": "image_url",
    "image_position": "image_position",
    "imagePosition": "image_position",
}


def _merge(entry, value: Any):
    if not isinstance(value, dict):
        raise TypeError(f"{type(entry).__name__} updates take a dict, got {type(value).__name__}")
    return type(entry).model_validate({**entry.model_dump(), **value})


class EditingSession:
    def __init__(self, slides: Iterable[Slide] = ()) -> None:
        self._slides: List[Slide] = list(slides)

    @property
    def slides(self) -> List[Slide]:
        return list(self._slides)

    def __len__(self) -> int:
        return len(self._slides)

    def index_of(self, slide_id: str) -> int:
        for i, slide in enumerate(self._slides):
            if slide.id == slide_id:
                return i
        return -1

    def get(self, slide_id: str) -> Optional[Slide]:
        i = self.index_of(slide_id)
        return self._slides[i] if i >= 0 else None

    def decoded(self, slide_id: str) -> Optional[SlideContent]:
        slide = self.get(slide_id)
        if slide is None:
            return None
        return decode(slide.layout, slide.content)

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------
    def update_field(self, slide_id: str, field: str, value: Any) -> Optional[Slide]:
        """Replace one field on the slide with ``slide_id``.

        Args:
            slide_id (str):
            field (str): title, content, layout, imagePrompt, imageUrl or
                imagePosition (snake_case names work too).
            value (Any):

        Returns:
            Optional[Slide]: the new slide, or ``None`` when no slide matched.
        """
        attr = EDITABLE_FIELDS.get(field)
        if attr is None:
            raise ValueError(f"Field {field!r} is not editable")
        i = self.index_of(slide_id)
        if i < 0:
            logger.debug("update_field ignored: no slide with id %s", slide_id)
            return None
        data = self._slides[i].model_dump()
        data[attr] = value
        updated = Slide.model_validate(data)
        self._slides[i] = updated
        return updated

    def change_layout(self, slide_id: str, layout: str) -> Optional[Slide]:
        """Switch layout. Content is kept as is and simply decoded under the new layout."""
        if layout not in LAYOUTS:
            raise ValueError(f"Unknown layout {layout!r}")
        return self.update_field(slide_id, "layout", layout)

    def set_image(self, slide_id: str, image_url: Optional[str]) -> Optional[Slide]:
        return self.update_field(slide_id, "image_url", image_url)

    def set_image_position(self, slide_id: str, position: str) -> Optional[Slide]:
        return self.update_field(slide_id, "image_position", position)

    def _write(self, slide_id: str, decoded: SlideContent) -> Optional[Slide]:
        return self.update_field(slide_id, "content", encode(decoded))

    # ------------------------------------------------------------------
    # Structured items
    # ------------------------------------------------------------------
    def update_structured_item(self, slide_id: str, index: int, value: Any) -> Optional[Slide]:
        """Change one structured element of a slide's decoded content.

        ``index`` is a slot number for fixed-slot layouts (title, quote,
        comparison, swot-analysis, cta) and an item position otherwise.
        Strings replace slots and list items; dicts are merged into
        timeline entries, feature entries and chart points. For hierarchy
        slides ``index`` is a row and ``value`` its new name.
        """
        decoded = self.decoded(slide_id)
        if decoded is None:
            return None
        if isinstance(decoded, SLOT_VARIANTS):
            names = slot_fields(decoded)
            if not 0 <= index < len(names):
                return None
            decoded = decoded.model_copy(update={names[index]: "" if value is None else str(value)})
        elif isinstance(decoded, ItemListContent):
            if not 0 <= index < len(decoded.items):
                return None
            items = list(decoded.items)
            items[index] = "" if value is None else str(value)
            decoded = decoded.model_copy(update={"items": items})
        elif isinstance(decoded, (TimelineContent, FeaturesContent)):
            if not 0 <= index < len(decoded.entries):
                return None
            entries = list(decoded.entries)
            entries[index] = _merge(entries[index], value)
            decoded = decoded.model_copy(update={"entries": entries})
        elif isinstance(decoded, ChartContent):
            if not 0 <= index < len(decoded.points):
                return None
            points = list(decoded.points)
            points[index] = _merge(points[index], value)
            decoded = decoded.model_copy(update={"points": points})
        elif isinstance(decoded, HierarchyContent):
            name = value.get("name", "") if isinstance(value, dict) else str(value or "")
            return self.rename_node(slide_id, index, name)
        return self._write(slide_id, decoded)

    def add_structured_item(self, slide_id: str) -> Optional[Slide]:
        """Append a default element (empty item, empty entry, or a new chart point)."""
        decoded = self.decoded(slide_id)
        if decoded is None:
            return None
        if isinstance(decoded, ItemListContent):
            decoded = decoded.model_copy(update={"items": decoded.items + [""]})
        elif isinstance(decoded, TimelineContent):
            decoded = decoded.model_copy(update={"entries": decoded.entries + [TimelineEntry()]})
        elif isinstance(decoded, FeaturesContent):
            decoded = decoded.model_copy(update={"entries": decoded.entries + [FeatureEntry()]})
        elif isinstance(decoded, ChartContent):
            point = ChartPoint(label=NEW_CHART_LABEL, value=NEW_CHART_VALUE)
            decoded = decoded.model_copy(update={"points": decoded.points + [point]})
        elif isinstance(decoded, HierarchyContent):
            rows = hierarchy.flatten(decoded.root)
            if not rows:
                return self.create_hierarchy_root(slide_id)
            return self.insert_node_after(slide_id, len(rows) - 1)
        else:
            # fixed-slot layouts have nothing to append
            return self.get(slide_id)
        return self._write(slide_id, decoded)

    def remove_structured_item(self, slide_id: str, index: int) -> Optional[Slide]:
        decoded = self.decoded(slide_id)
        if decoded is None:
            return None
        if isinstance(decoded, ItemListContent):
            if not 0 <= index < len(decoded.items):
                return self.get(slide_id)
            items = decoded.items[:index] + decoded.items[index + 1:]
            decoded = decoded.model_copy(update={"items": items})
        elif isinstance(decoded, (TimelineContent, FeaturesContent)):
            if not 0 <= index < len(decoded.entries):
                return self.get(slide_id)
            entries = decoded.entries[:index] + decoded.entries[index + 1:]
            decoded = decoded.model_copy(update={"entries": entries})
        elif isinstance(decoded, ChartContent):
            if not 0 <= index < len(decoded.points):
                return self.get(slide_id)
            points = decoded.points[:index] + decoded.points[index + 1:]
            decoded = decoded.model_copy(update={"points": points})
        elif isinstance(decoded, HierarchyContent):
            return self.remove_node(slide_id, index)
        else:
            return self.get(slide_id)
        return self._write(slide_id, decoded)

    # ------------------------------------------------------------------
    # Hierarchy rows
    # ------------------------------------------------------------------
    def hierarchy_rows(self, slide_id: str) -> List:
        decoded = self.decoded(slide_id)
        if not isinstance(decoded, HierarchyContent):
            return []
        return hierarchy.flatten(decoded.root)

    def _edit_rows(self, slide_id: str, edit: Callable[[List], List]) -> Optional[Slide]:
        slide = self.get(slide_id)
        if slide is None or slide.layout != "hierarchy":
            return slide
        rows = self.hierarchy_rows(slide_id)
        new_rows = edit(rows)
        if new_rows == rows:
            return slide
        return self.update_field(slide_id, "content", hierarchy.rows_to_content(new_rows))

    def rename_node(self, slide_id: str, index: int, name: str) -> Optional[Slide]:
        return self._edit_rows(slide_id, lambda rows: hierarchy.rename(rows, index, name))

    def indent_node(self, slide_id: str, index: int) -> Optional[Slide]:
        return self._edit_rows(slide_id, lambda rows: hierarchy.indent(rows, index))

    def outdent_node(self, slide_id: str, index: int) -> Optional[Slide]:
        return self._edit_rows(slide_id, lambda rows: hierarchy.outdent(rows, index))

    def insert_node_after(self, slide_id: str, index: int, name: str = hierarchy.NEW_NODE_NAME) -> Optional[Slide]:
        return self._edit_rows(slide_id, lambda rows: hierarchy.insert_after(rows, index, name))

    def remove_node(self, slide_id: str, index: int) -> Optional[Slide]:
        return self._edit_rows(slide_id, lambda rows: hierarchy.remove_with_subtree(rows, index))

    def create_hierarchy_root(self, slide_id: str, name: str = hierarchy.NEW_ROOT_NAME) -> Optional[Slide]:
        """Start a fresh tree on a slide whose hierarchy data is missing or invalid."""
        return self._edit_rows(slide_id, lambda rows: hierarchy.create_root(rows, name))

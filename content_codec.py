"""Per-layout decode/encode rules for a slide's generic ``content`` list.

The same ``content`` list means different things depending on the slide's
layout. ``decode`` turns it into one of the typed variants from ``models`` and
``encode`` turns a variant back into strings. The editor, the presenter and
both exporters only ever look at decoded variants.

Decode never raises: malformed input yields the layout's empty value (an
empty chart, a ``None`` hierarchy root) so callers can show an "invalid data"
state instead of failing.
"""
from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence, Tuple

try:
    from .models import (
        CHART_LAYOUTS,
        LIST_LAYOUTS,
        ChartContent,
        ChartPoint,
        ComparisonContent,
        CtaContent,
        FeatureEntry,
        FeaturesContent,
        HierarchyContent,
        HierarchyNode,
        ItemListContent,
        QuoteContent,
        SlideContent,
        SwotContent,
        TimelineContent,
        TimelineEntry,
        TitleContent,
    )
except Exception:
    from models import (
        CHART_LAYOUTS,
        LIST_LAYOUTS,
        ChartContent,
        ChartPoint,
        ComparisonContent,
        CtaContent,
        FeatureEntry,
        FeaturesContent,
        HierarchyContent,
        HierarchyNode,
        ItemListContent,
        QuoteContent,
        SlideContent,
        SwotContent,
        TimelineContent,
        TimelineEntry,
        TitleContent,
    )

logger = logging.getLogger("deckstudio")

PART_SEP = "::"
JOIN_SEP = " :: "


def item_at(content: Sequence[str], index: int) -> str:
    """Return ``content[index]``, treating missing trailing items as ``""``."""
    if 0 <= index < len(content):
        return content[index] or ""
    return ""


def parse_json_data(raw: Any, fallback: Any = None) -> Any:
    """Parse a JSON payload, unwrapping one level of double encoding.

    Args:
        raw (Any): usually ``content[0]``.
        fallback (Any): returned when ``raw`` is empty or not valid JSON.

    Returns:
        Any: the parsed value or ``fallback``.
    """
    if not isinstance(raw, str) or not raw.strip():
        return fallback
    try:
        data = json.loads(raw)
        if isinstance(data, str):
            data = json.loads(data)
    except (ValueError, TypeError, RecursionError) as exc:
        logger.debug("Unparseable JSON content (%s): %r", exc, raw[:80])
        return fallback
    return data


def split_pair(entry: str) -> Tuple[str, str]:
    """Split ``"key :: value"`` once. Without a separator the whole entry is the value."""
    entry = entry or ""
    if PART_SEP not in entry:
        return "", entry.strip()
    key, value = entry.split(PART_SEP, 1)
    return key.strip(), value.strip()


def split_feature(entry: str) -> Tuple[str, str, str]:
    """Split ``"icon :: title :: description"`` into exactly three parts."""
    parts = [p.strip() for p in (entry or "").split(PART_SEP, 2)]
    while len(parts) < 3:
        parts.append("")
    return parts[0], parts[1], parts[2]


def _json_number(value: float) -> Any:
    return int(value) if float(value).is_integer() else value


def decode_chart(content: Sequence[str]) -> ChartContent:
    data = parse_json_data(item_at(content, 0), [])
    if not isinstance(data, list):
        return ChartContent()
    points = []
    for item in data:
        if not isinstance(item, dict):
            continue
        points.append(ChartPoint(label=item.get("label", ""), value=item.get("value", 0)))
    return ChartContent(points=points)


def encode_chart(points: Sequence[ChartPoint]) -> List[str]:
    data = [{"label": p.label, "value": _json_number(p.value)} for p in points]
    return [json.dumps(data, indent=2, ensure_ascii=False)]


def _node_from_raw(raw: Any) -> Optional[HierarchyNode]:
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    children_raw = raw.get("children")
    if not isinstance(children_raw, list):
        children_raw = []
    children = []
    for child in children_raw:
        node = _node_from_raw(child)
        # Nameless children are dropped with their subtree.
        if node is not None:
            children.append(node)
    return HierarchyNode(name=name, children=children)


def decode_hierarchy(content: Sequence[str]) -> HierarchyContent:
    data = parse_json_data(item_at(content, 0))
    try:
        root = _node_from_raw(data)
    except RecursionError:
        logger.debug("Hierarchy JSON nested too deeply to decode")
        root = None
    return HierarchyContent(root=root)


def encode_hierarchy(root: Optional[HierarchyNode]) -> List[str]:
    if root is None:
        return []
    return [json.dumps(root.model_dump(), indent=2, ensure_ascii=False)]


def decode(layout: str, content: Optional[Sequence[str]]) -> SlideContent:
    """Decode ``content`` according to ``layout``.

    Args:
        layout (str): one of the fifteen layout tags; anything else decodes
            like ``default``.
        content (Optional[Sequence[str]]): the slide's raw content list.

    Returns:
        SlideContent: the layout's typed variant.
    """
    content = list(content or [])
    if layout == "title":
        return TitleContent(subtitle=item_at(content, 0))
    if layout == "quote":
        return QuoteContent(quote=item_at(content, 0), author=item_at(content, 1))
    if layout == "timeline":
        entries = []
        for entry in content:
            key, value = split_pair(entry)
            entries.append(TimelineEntry(key=key, value=value))
        return TimelineContent(entries=entries)
    if layout == "features":
        features = []
        for entry in content:
            icon, title, description = split_feature(entry)
            features.append(FeatureEntry(icon=icon, title=title, description=description))
        return FeaturesContent(entries=features)
    if layout == "comparison":
        return ComparisonContent(
            title_a=item_at(content, 0),
            body_a=item_at(content, 1),
            title_b=item_at(content, 2),
            body_b=item_at(content, 3),
        )
    if layout == "swot-analysis":
        return SwotContent(
            strengths=item_at(content, 0),
            weaknesses=item_at(content, 1),
            opportunities=item_at(content, 2),
            threats=item_at(content, 3),
        )
    if layout in CHART_LAYOUTS:
        return decode_chart(content)
    if layout == "hierarchy":
        return decode_hierarchy(content)
    if layout == "cta":
        return CtaContent(body=item_at(content, 0), action_text=item_at(content, 1))
    if layout not in LIST_LAYOUTS:
        logger.debug("Unknown layout %r decoded as a plain item list", layout)
    return ItemListContent(items=[c or "" for c in content])


def encode(decoded: SlideContent) -> List[str]:
    """Inverse of ``decode`` for every variant."""
    if isinstance(decoded, TitleContent):
        return [decoded.subtitle]
    if isinstance(decoded, QuoteContent):
        return [decoded.quote, decoded.author]
    if isinstance(decoded, TimelineContent):
        return [JOIN_SEP.join([e.key, e.value]) for e in decoded.entries]
    if isinstance(decoded, FeaturesContent):
        return [JOIN_SEP.join([e.icon, e.title, e.description]) for e in decoded.entries]
    if isinstance(decoded, ComparisonContent):
        return [decoded.title_a, decoded.body_a, decoded.title_b, decoded.body_b]
    if isinstance(decoded, SwotContent):
        return [decoded.strengths, decoded.weaknesses, decoded.opportunities, decoded.threats]
    if isinstance(decoded, ChartContent):
        return encode_chart(decoded.points)
    if isinstance(decoded, HierarchyContent):
        return encode_hierarchy(decoded.root)
    if isinstance(decoded, CtaContent):
        return [decoded.body, decoded.action_text]
    if isinstance(decoded, ItemListContent):
        return list(decoded.items)
    raise TypeError(f"Cannot encode content of type {type(decoded).__name__}")

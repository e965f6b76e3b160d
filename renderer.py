"""Read-only slide presentation: strategy dispatch, chart geometry and HTML."""
from __future__ import annotations

import html
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

try:
    from .content_codec import decode
    from .models import (
        FULL_WIDTH_LAYOUTS,
        ChartContent,
        ChartPoint,
        ComparisonContent,
        CtaContent,
        FeatureIcon,
        FeaturesContent,
        HierarchyContent,
        HierarchyNode,
        ItemListContent,
        QuoteContent,
        Slide,
        SlideContent,
        SwotContent,
        TimelineContent,
        TitleContent,
    )
except Exception:
    from content_codec import decode
    from models import (
        FULL_WIDTH_LAYOUTS,
        ChartContent,
        ChartPoint,
        ComparisonContent,
        CtaContent,
        FeatureIcon,
        FeaturesContent,
        HierarchyContent,
        HierarchyNode,
        ItemListContent,
        QuoteContent,
        Slide,
        SlideContent,
        SwotContent,
        TimelineContent,
        TitleContent,
    )

logger = logging.getLogger("deckstudio")

FULL_WIDTH = "full-width"
IMAGE_CONTENT = "image+content"
IMAGE_FRACTION = 0.35

CHART_COLORS = ["#38bdf8", "#818cf8", "#f471b5", "#fbbf24", "#a3e635", "#4ade80"]

MSG_INVALID_CHART = "Invalid chart data"
MSG_ZERO_TOTAL = "Chart values sum to zero"
MSG_LINE_POINTS = "Invalid chart data (at least 2 points required)"
MSG_INVALID_HIERARCHY = "Invalid hierarchy data"

DEFAULT_TOPIC_A = "Topic A"
DEFAULT_TOPIC_B = "Topic B"

ICON_GLYPHS = {
    FeatureIcon.LIGHTBULB: "💡",
    FeatureIcon.SHIELD: "🛡️",
    FeatureIcon.ROCKET: "🚀",
    FeatureIcon.COG: "⚙️",
    FeatureIcon.DEFAULT: "✨",
}


def strategy_for(layout: str) -> str:
    """Full-width layouts own the whole canvas; everything else splits image and content."""
    return FULL_WIDTH if layout in FULL_WIDTH_LAYOUTS else IMAGE_CONTENT


def clamp_index(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(index, count - 1))


class Navigator:
    """Current slide index, clamped to ``[0, count - 1]``."""

    def __init__(self, count: int, index: int = 0) -> None:
        self.count = max(0, count)
        self.index = clamp_index(index, self.count)

    def go(self, index: int) -> int:
        self.index = clamp_index(index, self.count)
        return self.index

    def next(self) -> int:
        return self.go(self.index + 1)

    def prev(self) -> int:
        return self.go(self.index - 1)

    @property
    def at_start(self) -> bool:
        return self.index == 0

    @property
    def at_end(self) -> bool:
        return self.index >= self.count - 1


# ---------------------------------------------------------------------------
# Chart geometry
# ---------------------------------------------------------------------------


@dataclass
class PieSlice:
    label: str
    value: float
    start: float
    end: float
    percent: float
    color: str


def chart_color(index: int) -> str:
    return CHART_COLORS[index % len(CHART_COLORS)]


def bar_heights(points: Sequence[ChartPoint]) -> List[float]:
    """Bar heights as a percentage of the largest value."""
    top = max((p.value for p in points), default=0.0)
    if top <= 0:
        return [0.0 for _ in points]
    return [max(0.0, p.value) / top * 100.0 for p in points]


def pie_slices(points: Sequence[ChartPoint]) -> List[PieSlice]:
    """Slices in degrees, clockwise from 12 o'clock. Empty when the total is zero."""
    total = sum(p.value for p in points)
    if total == 0:
        return []
    slices: List[PieSlice] = []
    angle = 0.0
    for i, p in enumerate(points):
        share = p.value / total
        slices.append(
            PieSlice(
                label=p.label,
                value=p.value,
                start=angle,
                end=angle + share * 360.0,
                percent=share * 100.0,
                color=chart_color(i),
            )
        )
        angle += share * 360.0
    return slices


def line_points(
    points: Sequence[ChartPoint], width: float = 500, height: float = 300, padding: float = 40
) -> List[Tuple[float, float]]:
    """Map points onto an SVG viewbox; y grows downward."""
    if len(points) < 2:
        return []
    values = [p.value for p in points]
    lo, hi = min(values), max(values)
    span = (hi - lo) or 1.0
    step = (width - 2 * padding) / (len(points) - 1)
    out = []
    for i, v in enumerate(values):
        x = padding + i * step
        y = height - padding - (v - lo) / span * (height - 2 * padding)
        out.append((round(x, 2), round(y, 2)))
    return out


def circle_positions(count: int, radius: float = 1.0) -> List[Tuple[float, float]]:
    """Points on a circle starting at 12 o'clock, going clockwise (y grows downward)."""
    out = []
    for i in range(count):
        angle = 2 * math.pi * i / max(count, 1) - math.pi / 2
        out.append((round(radius * math.cos(angle), 4), round(radius * math.sin(angle), 4)))
    return out


def chart_message(layout: str, chart: ChartContent) -> Optional[str]:
    if not chart.points:
        return MSG_INVALID_CHART
    if layout == "pie-chart" and chart.total == 0:
        return MSG_ZERO_TOTAL
    if layout == "line-chart" and len(chart.points) < 2:
        return MSG_LINE_POINTS
    return None


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------


def _e(text: str) -> str:
    return html.escape(text or "")


def _ul(items: Sequence[str], cls: str = "") -> str:
    lis = "".join(f"<li>{_e(item)}</li>" for item in items)
    return f'<ul class="{cls}">{lis}</ul>' if cls else f"<ul>{lis}</ul>"


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _bar_svg(points: Sequence[ChartPoint]) -> str:
    heights = bar_heights(points)
    width = 500
    slot = width / len(points)
    bars = []
    for i, (p, h) in enumerate(zip(points, heights)):
        bh = h / 100.0 * 240
        x = i * slot + slot * 0.15
        bars.append(
            f'<rect x="{x:.1f}" y="{260 - bh:.1f}" width="{slot * 0.7:.1f}" height="{bh:.1f}" fill="{chart_color(i)}"/>'
            f'<text x="{x + slot * 0.35:.1f}" y="285" text-anchor="middle">{_e(p.label)}</text>'
            f'<text x="{x + slot * 0.35:.1f}" y="{252 - bh:.1f}" text-anchor="middle">{_fmt(p.value)}</text>'
        )
    return f'<svg viewBox="0 0 {width} 300" class="chart bar">{"".join(bars)}</svg>'


def _pie_svg(slices: Sequence[PieSlice]) -> str:
    cx = cy = 150
    r = 140
    parts = []
    for s in slices:
        if s.percent >= 99.999:
            parts.append(f'<circle cx="{cx}" cy="{cy}" r="{r}" fill="{s.color}"/>')
            continue
        a0 = math.radians(s.start - 90)
        a1 = math.radians(s.end - 90)
        x0, y0 = cx + r * math.cos(a0), cy + r * math.sin(a0)
        x1, y1 = cx + r * math.cos(a1), cy + r * math.sin(a1)
        large = 1 if s.end - s.start > 180 else 0
        parts.append(
            f'<path d="M{cx},{cy} L{x0:.2f},{y0:.2f} A{r},{r} 0 {large} 1 {x1:.2f},{y1:.2f} Z" fill="{s.color}"/>'
        )
    legend = "".join(
        f'<li><span style="background:{s.color}"></span>{_e(s.label)} ({s.percent:.1f}%)</li>' for s in slices
    )
    return f'<svg viewBox="0 0 300 300" class="chart pie">{"".join(parts)}</svg><ul class="legend">{legend}</ul>'


def _line_svg(points: Sequence[ChartPoint]) -> str:
    coords = line_points(points)
    poly = " ".join(f"{x},{y}" for x, y in coords)
    dots = "".join(
        f'<circle cx="{x}" cy="{y}" r="4" fill="{CHART_COLORS[0]}"/>'
        f'<text x="{x}" y="290" text-anchor="middle">{_e(p.label)}</text>'
        for (x, y), p in zip(coords, points)
    )
    return (
        f'<svg viewBox="0 0 500 300" class="chart line">'
        f'<polyline points="{poly}" fill="none" stroke="{CHART_COLORS[0]}" stroke-width="3"/>{dots}</svg>'
    )


def _tree_html(node: HierarchyNode) -> str:
    children = "".join(_tree_html(c) for c in node.children)
    inner = f"<ul>{children}</ul>" if children else ""
    return f"<li><span>{_e(node.name)}</span>{inner}</li>"


def render_body(layout: str, decoded: SlideContent) -> Tuple[str, Optional[str]]:
    """Return ``(body_html, message)``; ``message`` is set for degraded data."""
    if isinstance(decoded, TitleContent):
        return (f'<p class="subtitle">{_e(decoded.subtitle)}</p>' if decoded.subtitle else ""), None
    if isinstance(decoded, QuoteContent):
        author = f"<cite>{_e(decoded.author)}</cite>" if decoded.author else ""
        return f"<blockquote><p>{_e(decoded.quote)}</p>{author}</blockquote>", None
    if isinstance(decoded, TimelineContent):
        rows = "".join(
            f'<li><span class="key">{_e(e.key)}</span><span class="value">{_e(e.value)}</span></li>'
            for e in decoded.entries
        )
        return f'<ol class="timeline">{rows}</ol>', None
    if isinstance(decoded, FeaturesContent):
        cards = "".join(
            f'<div class="feature"><span class="icon">{ICON_GLYPHS[e.icon_kind]}</span>'
            f"<h3>{_e(e.title)}</h3><p>{_e(e.description)}</p></div>"
            for e in decoded.entries
        )
        return f'<div class="features">{cards}</div>', None
    if isinstance(decoded, ComparisonContent):
        return (
            '<div class="comparison">'
            f"<div><h3>{_e(decoded.title_a or DEFAULT_TOPIC_A)}</h3>{_ul(decoded.items_a)}</div>"
            f"<div><h3>{_e(decoded.title_b or DEFAULT_TOPIC_B)}</h3>{_ul(decoded.items_b)}</div>"
            "</div>"
        ), None
    if isinstance(decoded, SwotContent):
        cells = "".join(
            f'<div class="swot-{name.lower()}"><h3>{name}</h3>{_ul(items)}</div>' for name, items in decoded.quadrants()
        )
        return f'<div class="swot">{cells}</div>', None
    if isinstance(decoded, ChartContent):
        message = chart_message(layout, decoded)
        if message:
            return f'<p class="invalid">{_e(message)}</p>', message
        if layout == "pie-chart":
            return _pie_svg(pie_slices(decoded.points)), None
        if layout == "line-chart":
            return _line_svg(decoded.points), None
        return _bar_svg(decoded.points), None
    if isinstance(decoded, HierarchyContent):
        if decoded.root is None:
            return f'<p class="invalid">{MSG_INVALID_HIERARCHY}</p>', MSG_INVALID_HIERARCHY
        return f'<ul class="tree">{_tree_html(decoded.root)}</ul>', None
    if isinstance(decoded, CtaContent):
        button = f'<span class="action">{_e(decoded.action_text)}</span>' if decoded.action_text else ""
        return f"<p>{_e(decoded.body)}</p>{button}", None
    if isinstance(decoded, ItemListContent):
        if layout == "blocks":
            cols = 1 if len(decoded.items) <= 1 else 2
            blocks = "".join(f'<div class="block">{_e(i)}</div>' for i in decoded.items)
            return f'<div class="blocks cols-{cols}">{blocks}</div>', None
        if layout == "process-flow":
            steps = "".join(
                f'<li><span class="step">{n}</span>{_e(i)}</li>' for n, i in enumerate(decoded.items, 1)
            )
            return f'<ol class="process">{steps}</ol>', None
        if layout == "circular-diagram":
            spots = "".join(
                f'<div class="orbit" style="left:{50 + 40 * x:.1f}%;top:{50 + 40 * y:.1f}%">{_e(i)}</div>'
                for (x, y), i in zip(circle_positions(len(decoded.items)), decoded.items)
            )
            return f'<div class="circle">{spots}</div>', None
        return _ul(decoded.items, "bullets"), None
    raise TypeError(f"No renderer for {type(decoded).__name__}")


@dataclass
class ImageRegion:
    url: str
    position: str
    alt: str = ""
    fraction: float = IMAGE_FRACTION


@dataclass
class SlideView:
    slide_id: str
    layout: str
    strategy: str
    title: str
    content: SlideContent
    body_html: str
    image: Optional[ImageRegion] = None
    background_url: Optional[str] = None
    message: Optional[str] = None
    classes: List[str] = field(default_factory=list)

    @property
    def axis(self) -> Optional[str]:
        if self.image is None:
            return None
        return "horizontal" if self.image.position in ("left", "right") else "vertical"

    @property
    def image_first(self) -> bool:
        return self.image is not None and self.image.position in ("left", "top")

    def to_html(self) -> str:
        title = f"<h2>{_e(self.title)}</h2>"
        content = f'<div class="content">{title}{self.body_html}</div>'
        cls = " ".join(["slide", f"layout-{self.layout}"] + self.classes)
        if self.background_url:
            style = f"background-image:url('{_e(self.background_url)}')"
            return f'<section class="{cls} has-background" style="{style}"><div class="overlay"></div>{content}</section>'
        if self.image is None:
            return f'<section class="{cls}">{content}</section>'
        flex = "row" if self.axis == "horizontal" else "column"
        img = (
            f'<div class="image" style="flex:0 0 {self.image.fraction * 100:.0f}%">'
            f'<img src="{_e(self.image.url)}" alt="{_e(self.image.alt)}"/></div>'
        )
        parts = img + content if self.image_first else content + img
        return f'<section class="{cls}" style="display:flex;flex-direction:{flex}">{parts}</section>'


def render_slide(slide: Slide) -> SlideView:
    decoded = decode(slide.layout, slide.content)
    body, message = render_body(slide.layout, decoded)
    strategy = strategy_for(slide.layout)
    view = SlideView(
        slide_id=slide.id,
        layout=slide.layout,
        strategy=strategy,
        title=slide.title,
        content=decoded,
        body_html=body,
        message=message,
    )
    if not slide.image_url:
        return view
    if strategy == IMAGE_CONTENT:
        view.image = ImageRegion(url=slide.image_url, position=slide.image_position, alt=slide.title)
    elif slide.layout in ("title", "cta"):
        view.background_url = slide.image_url
    return view

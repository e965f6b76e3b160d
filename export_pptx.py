"""Write a slide collection to a .pptx deck with python-pptx.

Every slide goes through its own guard: a slide whose writer fails is
cleared and replaced by an inline error placeholder, and the rest of the
deck is still written.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from pptx import Presentation
from pptx.chart.data import CategoryChartData, ChartData
from pptx.dml.color import RGBColor
from pptx.enum.chart import XL_CHART_TYPE, XL_LEGEND_POSITION
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, PP_ALIGN
from pptx.util import Inches, Pt
from tqdm import tqdm

try:
    from . import hierarchy
    from .content_codec import decode
    from .errors import SlideExportError
    from .images import load_image_bytes
    from .models import (
        ChartContent,
        ComparisonContent,
        CtaContent,
        FeaturesContent,
        HierarchyContent,
        ItemListContent,
        QuoteContent,
        Slide,
        SwotContent,
        TimelineContent,
        TitleContent,
    )
    from .renderer import CHART_COLORS, IMAGE_CONTENT, IMAGE_FRACTION, chart_message, circle_positions, strategy_for
except Exception:
    import hierarchy
    from content_codec import decode
    from errors import SlideExportError
    from images import load_image_bytes
    from models import (
        ChartContent,
        ComparisonContent,
        CtaContent,
        FeaturesContent,
        HierarchyContent,
        ItemListContent,
        QuoteContent,
        Slide,
        SwotContent,
        TimelineContent,
        TitleContent,
    )
    from renderer import CHART_COLORS, IMAGE_CONTENT, IMAGE_FRACTION, chart_message, circle_positions, strategy_for

logger = logging.getLogger("deckstudio")
TQDM_NCOLS = 100

SLIDE_W = 10.0
SLIDE_H = 5.625
MARGIN = 0.5

BG = RGBColor(0x1E, 0x29, 0x3B)
CARD = RGBColor(0x33, 0x41, 0x55)
WHITE = RGBColor(0xF1, 0xF5, 0xF9)
MUTED = RGBColor(0xCB, 0xD5, 0xE1)
ACCENT = RGBColor(0x38, 0xBD, 0xF8)
ERROR = RGBColor(0xF8, 0x71, 0x71)

SWOT_COLORS = [
    RGBColor(0x16, 0x65, 0x34),
    RGBColor(0x99, 0x1B, 0x1B),
    RGBColor(0x1E, 0x40, 0xAF),
    RGBColor(0x92, 0x40, 0x0E),
]

Box = Tuple[float, float, float, float]
ImageLoader = Callable[[str], bytes]


@dataclass
class ExportResult:
    path: Path
    slide_count: int
    failed: List[str] = field(default_factory=list)


def to_rgb(hex_color: str) -> RGBColor:
    return RGBColor.from_string(hex_color.lstrip("#").upper())


def set_bg(slide, color: RGBColor = BG) -> None:
    fill = slide.background.fill
    fill.solid()
    fill.fore_color.rgb = color


def add_text(slide, text: str, box: Box, size: int = 18, color: RGBColor = WHITE, bold: bool = False,
             italic: bool = False, align=PP_ALIGN.LEFT, anchor=MSO_ANCHOR.TOP):
    left, top, width, height = box
    tb = slide.shapes.add_textbox(Inches(left), Inches(top), Inches(width), Inches(height))
    tf = tb.text_frame
    tf.word_wrap = True
    tf.vertical_anchor = anchor
    p = tf.paragraphs[0]
    p.text = text or ""
    p.font.size = Pt(size)
    p.font.color.rgb = color
    p.font.bold = bold
    p.font.italic = italic
    p.alignment = align
    return tb


def add_bullets(slide, items: Sequence[str], box: Box, size: int = 16, color: RGBColor = MUTED,
                levels: Optional[Sequence[int]] = None):
    left, top, width, height = box
    tb = slide.shapes.add_textbox(Inches(left), Inches(top), Inches(width), Inches(height))
    tf = tb.text_frame
    tf.word_wrap = True
    for i, item in enumerate(items):
        p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
        p.text = f"• {item}"
        p.font.size = Pt(size)
        p.font.color.rgb = color
        p.space_after = Pt(6)
        if levels is not None:
            p.level = min(levels[i], 8)
    return tb


def add_card(slide, box: Box, color: RGBColor = CARD, shape=MSO_SHAPE.ROUNDED_RECTANGLE):
    left, top, width, height = box
    card = slide.shapes.add_shape(shape, Inches(left), Inches(top), Inches(width), Inches(height))
    card.fill.solid()
    card.fill.fore_color.rgb = color
    card.line.fill.background()
    return card


def add_image(slide, ref: str, box: Box, loader: ImageLoader) -> bool:
    """Place an image; a reference that cannot be loaded or decoded just leaves the area empty."""
    left, top, width, height = box
    try:
        data = loader(ref)
        slide.shapes.add_picture(io.BytesIO(data), Inches(left), Inches(top), Inches(width), Inches(height))
    except Exception as exc:
        logger.warning("Could not place image in PPTX slide: %s", exc)
        return False
    return True


def split_regions(position: str, fraction: float = IMAGE_FRACTION) -> Tuple[Box, Box]:
    """Return ``(image_box, content_box)`` for an image on the named side."""
    if position in ("left", "right"):
        iw = SLIDE_W * fraction
        if position == "left":
            return (0.0, 0.0, iw, SLIDE_H), (iw, 0.0, SLIDE_W - iw, SLIDE_H)
        return (SLIDE_W - iw, 0.0, iw, SLIDE_H), (0.0, 0.0, SLIDE_W - iw, SLIDE_H)
    ih = SLIDE_H * fraction
    if position == "top":
        return (0.0, 0.0, SLIDE_W, ih), (0.0, ih, SLIDE_W, SLIDE_H - ih)
    return (0.0, SLIDE_H - ih, SLIDE_W, ih), (0.0, 0.0, SLIDE_W, SLIDE_H - ih)


def _inset(box: Box, pad: float = MARGIN) -> Box:
    left, top, width, height = box
    return left + pad, top + pad, max(width - 2 * pad, 0.5), max(height - 2 * pad, 0.5)


def _title_and_body(slide, title: str, region: Box) -> Box:
    left, top, width, height = _inset(region)
    add_text(slide, title, (left, top, width, 0.7), size=26, bold=True)
    return left, top + 0.85, width, height - 0.85


# ---------------------------------------------------------------------------
# Per-layout writers
# ---------------------------------------------------------------------------


def _write_title(slide, s: Slide, content: TitleContent, loader: ImageLoader) -> None:
    if s.image_url and add_image(slide, s.image_url, (0.0, 0.0, SLIDE_W, SLIDE_H), loader):
        add_card(slide, (0.0, SLIDE_H * 0.3, SLIDE_W, SLIDE_H * 0.4), BG, MSO_SHAPE.RECTANGLE)
    add_text(slide, s.title, (MARGIN, SLIDE_H * 0.3, SLIDE_W - 2 * MARGIN, 1.2), size=40, bold=True,
             align=PP_ALIGN.CENTER, anchor=MSO_ANCHOR.MIDDLE)
    if content.subtitle:
        add_text(slide, content.subtitle, (MARGIN, SLIDE_H * 0.3 + 1.2, SLIDE_W - 2 * MARGIN, 0.8), size=20,
                 color=MUTED, align=PP_ALIGN.CENTER)


def _write_quote(slide, region: Box, content: QuoteContent) -> None:
    left, top, width, height = _inset(region)
    add_text(slide, f"“{content.quote}”", (left, top, width, height - 0.8), size=26, italic=True,
             align=PP_ALIGN.CENTER, anchor=MSO_ANCHOR.MIDDLE)
    if content.author:
        add_text(slide, f"- {content.author}", (left, top + height - 0.7, width, 0.6), size=16, color=ACCENT,
                 align=PP_ALIGN.RIGHT)


def _write_timeline(slide, body: Box, content: TimelineContent) -> None:
    if not content.entries:
        return
    left, top, width, height = body
    rows = len(content.entries)
    table = slide.shapes.add_table(rows, 2, Inches(left), Inches(top), Inches(width),
                                   Inches(min(height, 0.45 * rows))).table
    table.columns[0].width = Inches(width * 0.28)
    table.columns[1].width = Inches(width * 0.72)
    for r, entry in enumerate(content.entries):
        for c, text in enumerate((entry.key, entry.value)):
            cell = table.cell(r, c)
            cell.text = text
            cell.fill.solid()
            cell.fill.fore_color.rgb = CARD if r % 2 else BG
            para = cell.text_frame.paragraphs[0]
            para.font.size = Pt(13)
            para.font.bold = c == 0
            para.font.color.rgb = ACCENT if c == 0 else WHITE


def _grid(body: Box, count: int, cols: int, gap: float = 0.2) -> List[Box]:
    left, top, width, height = body
    cols = max(1, min(cols, count))
    rows = (count + cols - 1) // cols
    cw = (width - gap * (cols - 1)) / cols
    ch = (height - gap * (rows - 1)) / max(rows, 1)
    return [(left + (i % cols) * (cw + gap), top + (i // cols) * (ch + gap), cw, ch) for i in range(count)]


def _write_blocks(slide, body: Box, content: ItemListContent) -> None:
    for box, item in zip(_grid(body, len(content.items), 2), content.items):
        add_card(slide, box)
        add_text(slide, item, _inset(box, 0.1), size=14, anchor=MSO_ANCHOR.MIDDLE)


def _write_features(slide, body: Box, content: FeaturesContent) -> None:
    entries = content.entries
    for box, entry in zip(_grid(body, len(entries), len(entries)), entries):
        add_card(slide, box)
        left, top, width, height = _inset(box, 0.15)
        add_text(slide, entry.icon_kind.value.upper(), (left, top, width, 0.35), size=10, color=ACCENT, bold=True)
        add_text(slide, entry.title, (left, top + 0.4, width, 0.6), size=16, bold=True)
        add_text(slide, entry.description, (left, top + 1.0, width, max(height - 1.0, 0.4)), size=12, color=MUTED)


def _write_comparison(slide, body: Box, content: ComparisonContent) -> None:
    halves = _grid(body, 2, 2, gap=0.4)
    sides = ((content.title_a or "Topic A", content.items_a), (content.title_b or "Topic B", content.items_b))
    for box, (title, items) in zip(halves, sides):
        add_card(slide, box)
        left, top, width, height = _inset(box, 0.2)
        add_text(slide, title, (left, top, width, 0.5), size=18, bold=True, color=ACCENT)
        add_bullets(slide, items, (left, top + 0.6, width, height - 0.6), size=13)


def _write_swot(slide, body: Box, content: SwotContent) -> None:
    for i, (box, (name, items)) in enumerate(zip(_grid(body, 4, 2, gap=0.15), content.quadrants())):
        add_card(slide, box, SWOT_COLORS[i])
        left, top, width, height = _inset(box, 0.12)
        add_text(slide, name, (left, top, width, 0.35), size=14, bold=True)
        add_bullets(slide, items, (left, top + 0.35, width, height - 0.35), size=11, color=WHITE)


def _write_chart(slide, s: Slide, body: Box, content: ChartContent) -> None:
    message = chart_message(s.layout, content)
    if message:
        raise SlideExportError(message, s.id)
    left, top, width, height = body
    labels = [p.label for p in content.points]
    values = [p.value for p in content.points]
    if s.layout == "pie-chart":
        data = ChartData()
        data.categories = labels
        data.add_series(s.title, values)
        chart = slide.shapes.add_chart(XL_CHART_TYPE.PIE, Inches(left), Inches(top), Inches(width),
                                       Inches(height), data).chart
        chart.has_legend = True
        chart.legend.position = XL_LEGEND_POSITION.RIGHT
        chart.legend.include_in_layout = False
        chart.legend.font.color.rgb = WHITE
        plot = chart.plots[0]
        plot.has_data_labels = True
        plot.data_labels.number_format = "0%"
        plot.data_labels.number_format_is_linked = False
        plot.data_labels.show_percentage = True
        plot.data_labels.show_value = False
        for i, point in enumerate(chart.series[0].points):
            point.format.fill.solid()
            point.format.fill.fore_color.rgb = to_rgb(CHART_COLORS[i % len(CHART_COLORS)])
        return
    data = CategoryChartData()
    data.categories = labels
    data.add_series(s.title, values)
    chart_type = XL_CHART_TYPE.LINE_MARKERS if s.layout == "line-chart" else XL_CHART_TYPE.COLUMN_CLUSTERED
    chart = slide.shapes.add_chart(chart_type, Inches(left), Inches(top), Inches(width), Inches(height),
                                   data).chart
    chart.has_legend = False
    chart.category_axis.tick_labels.font.color.rgb = WHITE
    chart.value_axis.tick_labels.font.color.rgb = WHITE
    series = chart.series[0]
    if s.layout == "line-chart":
        series.format.line.color.rgb = to_rgb(CHART_COLORS[0])
        series.smooth = False
    else:
        for i, point in enumerate(series.points):
            point.format.fill.solid()
            point.format.fill.fore_color.rgb = to_rgb(CHART_COLORS[i % len(CHART_COLORS)])


def _write_hierarchy(slide, s: Slide, body: Box, content: HierarchyContent) -> None:
    if content.root is None:
        raise SlideExportError("Invalid hierarchy data", s.id)
    rows = hierarchy.flatten(content.root)
    add_bullets(slide, [r.name for r in rows], body, size=14, color=WHITE, levels=[r.level for r in rows])


def _write_process(slide, body: Box, content: ItemListContent) -> None:
    items = content.items
    if not items:
        return
    left, top, width, height = body
    step_w = width / len(items)
    for i, item in enumerate(items):
        box = (left + i * step_w, top + height * 0.25, step_w - 0.05, min(1.4, height * 0.5))
        shape = MSO_SHAPE.PENTAGON if i == 0 else MSO_SHAPE.CHEVRON
        add_card(slide, box, to_rgb(CHART_COLORS[i % len(CHART_COLORS)]), shape)
        add_text(slide, f"{i + 1}. {item}", _inset(box, 0.15), size=11, color=BG, bold=True,
                 align=PP_ALIGN.CENTER, anchor=MSO_ANCHOR.MIDDLE)


def _write_circular(slide, s: Slide, body: Box, content: ItemListContent) -> None:
    left, top, width, height = body
    cx, cy = left + width / 2, top + height / 2
    hub = min(width, height) * 0.32
    add_card(slide, (cx - hub / 2, cy - hub / 2, hub, hub), ACCENT, MSO_SHAPE.OVAL)
    add_text(slide, s.title, (cx - hub / 2, cy - hub / 2, hub, hub), size=12, color=BG, bold=True,
             align=PP_ALIGN.CENTER, anchor=MSO_ANCHOR.MIDDLE)
    radius = min(width, height) * 0.38
    for (x, y), item in zip(circle_positions(len(content.items), radius), content.items):
        box = (cx + x - 0.9, cy + y - 0.3, 1.8, 0.6)
        add_card(slide, box)
        add_text(slide, item, box, size=11, align=PP_ALIGN.CENTER, anchor=MSO_ANCHOR.MIDDLE)


def _write_cta(slide, s: Slide, content: CtaContent, loader: ImageLoader) -> None:
    if s.image_url and add_image(slide, s.image_url, (0.0, 0.0, SLIDE_W, SLIDE_H), loader):
        add_card(slide, (0.0, SLIDE_H * 0.2, SLIDE_W, SLIDE_H * 0.6), BG, MSO_SHAPE.RECTANGLE)
    add_text(slide, s.title, (MARGIN, SLIDE_H * 0.22, SLIDE_W - 2 * MARGIN, 0.9), size=34, bold=True,
             align=PP_ALIGN.CENTER)
    add_text(slide, content.body, (MARGIN + 0.5, SLIDE_H * 0.22 + 1.0, SLIDE_W - 2 * MARGIN - 1.0, 1.0),
             size=16, color=MUTED, align=PP_ALIGN.CENTER)
    if content.action_text:
        button = (SLIDE_W / 2 - 1.5, SLIDE_H * 0.22 + 2.2, 3.0, 0.6)
        add_card(slide, button, ACCENT)
        add_text(slide, content.action_text, button, size=16, color=BG, bold=True, align=PP_ALIGN.CENTER,
                 anchor=MSO_ANCHOR.MIDDLE)


def write_slide(slide, s: Slide, loader: ImageLoader = load_image_bytes) -> None:
    """Fill one blank pptx slide from ``s``. Raises on unusable data."""
    set_bg(slide)
    content = decode(s.layout, s.content)
    if isinstance(content, TitleContent):
        _write_title(slide, s, content, loader)
        return
    if isinstance(content, CtaContent):
        _write_cta(slide, s, content, loader)
        return

    region: Box = (0.0, 0.0, SLIDE_W, SLIDE_H)
    if strategy_for(s.layout) == IMAGE_CONTENT and s.image_url:
        image_box, content_box = split_regions(s.image_position)
        if add_image(slide, s.image_url, image_box, loader):
            region = content_box

    if isinstance(content, QuoteContent):
        _write_quote(slide, region, content)
        return
    body = _title_and_body(slide, s.title, region)
    if isinstance(content, TimelineContent):
        _write_timeline(slide, body, content)
    elif isinstance(content, FeaturesContent):
        _write_features(slide, body, content)
    elif isinstance(content, ComparisonContent):
        _write_comparison(slide, body, content)
    elif isinstance(content, SwotContent):
        _write_swot(slide, body, content)
    elif isinstance(content, ChartContent):
        _write_chart(slide, s, body, content)
    elif isinstance(content, HierarchyContent):
        _write_hierarchy(slide, s, body, content)
    elif s.layout == "blocks":
        _write_blocks(slide, body, content)
    elif s.layout == "process-flow":
        _write_process(slide, body, content)
    elif s.layout == "circular-diagram":
        _write_circular(slide, s, body, content)
    else:
        add_bullets(slide, content.items, body)


def write_placeholder(slide, s: Slide) -> None:
    for shape in list(slide.shapes):
        shape._element.getparent().remove(shape._element)
    set_bg(slide)
    add_text(slide, f"Error rendering slide: #{s.id}", (MARGIN, SLIDE_H / 2 - 0.5, SLIDE_W - 2 * MARGIN, 1.0),
             size=20, color=ERROR, align=PP_ALIGN.CENTER, anchor=MSO_ANCHOR.MIDDLE)


def export_pptx(slides: Sequence[Slide], path: Path, loader: ImageLoader = load_image_bytes,
                show_progress: bool = False) -> ExportResult:
    """Write ``slides`` to ``path``, one pptx slide per entry, in order.

    Args:
        slides (Sequence[Slide]):
        path (Path):
        loader (ImageLoader): resolves ``imageUrl`` references to bytes.
        show_progress (bool):

    Returns:
        ExportResult: the ids of slides written as error placeholders are in ``failed``.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    prs = Presentation()
    prs.slide_width = Inches(SLIDE_W)
    prs.slide_height = Inches(SLIDE_H)
    blank = prs.slide_layouts[6]

    failed: List[str] = []
    for s in tqdm(slides, desc="PPTX", ncols=TQDM_NCOLS, disable=not show_progress):
        slide = prs.slides.add_slide(blank)
        try:
            write_slide(slide, s, loader)
        except Exception:
            logger.exception("Failed to export slide %s (%s)", s.id, s.layout)
            write_placeholder(slide, s)
            failed.append(s.id)

    prs.save(str(path))
    logger.info("Saved PPTX: %s", path)
    return ExportResult(path=path, slide_count=len(prs.slides), failed=failed)

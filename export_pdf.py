"""Paged PDF export: every slide is painted on a 16:9 canvas, rasterised and
placed as one full-page image, in slide order."""
from __future__ import annotations

import logging
from html import escape
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import fitz  # PyMuPDF
from tqdm import tqdm

try:
    from .errors import SlideExportError
    from .export_pptx import ExportResult
    from .images import load_image_bytes
    from .models import ChartContent, HierarchyContent, Slide
    from .renderer import (
        CHART_COLORS,
        bar_heights,
        chart_message,
        line_points,
        pie_slices,
        render_slide,
    )
except Exception:
    from errors import SlideExportError
    from export_pptx import ExportResult
    from images import load_image_bytes
    from models import ChartContent, HierarchyContent, Slide
    from renderer import (
        CHART_COLORS,
        bar_heights,
        chart_message,
        line_points,
        pie_slices,
        render_slide,
    )

logger = logging.getLogger("deckstudio")
TQDM_NCOLS = 100

CANVAS_W = 960
CANVAS_H = 540
PAGE_W = 1920
PAGE_H = 1080
MARGIN = 48

CSS = """
* { font-family: sans-serif; color: #f1f5f9; }
h2 { font-size: 30px; margin: 0 0 16px 0; }
p, li { font-size: 18px; color: #cbd5e1; }
blockquote p { font-size: 26px; font-style: italic; color: #f1f5f9; }
cite { font-size: 16px; color: #38bdf8; }
h3 { font-size: 20px; color: #38bdf8; margin: 8px 0 4px 0; }
.key { font-weight: bold; color: #38bdf8; }
.invalid { color: #f87171; font-size: 22px; }
.subtitle { font-size: 22px; text-align: center; }
"""

ImageLoader = Callable[[str], bytes]


def rgb(hex_color: str) -> Tuple[float, float, float]:
    h = hex_color.lstrip("#")
    return tuple(int(h[i : i + 2], 16) / 255.0 for i in (0, 2, 4))


BG = rgb("#1e293b")
WHITE = rgb("#f1f5f9")


def _image_rects(position: str, fraction: float) -> Tuple[fitz.Rect, fitz.Rect]:
    if position == "left":
        w = CANVAS_W * fraction
        return fitz.Rect(0, 0, w, CANVAS_H), fitz.Rect(w, 0, CANVAS_W, CANVAS_H)
    if position == "right":
        w = CANVAS_W * (1 - fraction)
        return fitz.Rect(w, 0, CANVAS_W, CANVAS_H), fitz.Rect(0, 0, w, CANVAS_H)
    if position == "top":
        h = CANVAS_H * fraction
        return fitz.Rect(0, 0, CANVAS_W, h), fitz.Rect(0, h, CANVAS_W, CANVAS_H)
    h = CANVAS_H * (1 - fraction)
    return fitz.Rect(0, h, CANVAS_W, CANVAS_H), fitz.Rect(0, 0, CANVAS_W, h)


def _inset(rect: fitz.Rect, pad: float = MARGIN) -> fitz.Rect:
    return fitz.Rect(rect.x0 + pad, rect.y0 + pad, rect.x1 - pad, rect.y1 - pad)


def _insert_image(page, ref: str, rect: fitz.Rect, loader: ImageLoader) -> bool:
    try:
        page.insert_image(rect, stream=loader(ref), keep_proportion=False)
    except Exception as exc:
        logger.warning("Could not place image in PDF page: %s", exc)
        return False
    return True


def _draw_bar(page, chart: ChartContent, area: fitz.Rect) -> None:
    n = len(chart.points)
    slot = area.width / n
    plot_h = area.height - 30
    for i, (p, h) in enumerate(zip(chart.points, bar_heights(chart.points))):
        bh = plot_h * h / 100.0
        x0 = area.x0 + i * slot + slot * 0.15
        rect = fitz.Rect(x0, area.y0 + plot_h - bh, x0 + slot * 0.7, area.y0 + plot_h)
        page.draw_rect(rect, color=None, fill=rgb(CHART_COLORS[i % len(CHART_COLORS)]))
        page.insert_text(fitz.Point(x0, area.y1 - 8), p.label[:18], fontsize=11, color=WHITE)


def _draw_pie(page, chart: ChartContent, area: fitz.Rect) -> None:
    r = min(area.width * 0.6, area.height) / 2
    center = fitz.Point(area.x0 + r + 10, area.y0 + area.height / 2)
    start = fitz.Point(center.x, center.y - r)
    legend_y = area.y0 + 20
    for s in pie_slices(chart.points):
        fill = rgb(s.color)
        sweep = s.end - s.start
        if sweep >= 359.999:
            page.draw_circle(center, r, color=None, fill=fill)
        elif sweep > 0:
            start = page.draw_sector(center, start, -sweep, color=None, fill=fill)
        page.draw_rect(fitz.Rect(area.x0 + 2 * r + 40, legend_y - 10, area.x0 + 2 * r + 52, legend_y + 2),
                       color=None, fill=fill)
        page.insert_text(fitz.Point(area.x0 + 2 * r + 60, legend_y), f"{s.label[:24]} ({s.percent:.1f}%)",
                         fontsize=12, color=WHITE)
        legend_y += 22


def _draw_line(page, chart: ChartContent, area: fitz.Rect) -> None:
    coords = line_points(chart.points, area.width, area.height, 30)
    pts = [fitz.Point(area.x0 + x, area.y0 + y) for x, y in coords]
    page.draw_polyline(pts, color=rgb(CHART_COLORS[0]), width=3)
    for pt, p in zip(pts, chart.points):
        page.draw_circle(pt, 4, color=None, fill=rgb(CHART_COLORS[0]))
        page.insert_text(fitz.Point(pt.x - 10, area.y1 - 4), p.label[:12], fontsize=10, color=WHITE)


def paint_slide(page, s: Slide, loader: ImageLoader = load_image_bytes) -> None:
    """Paint one slide onto a blank ``CANVAS_W`` x ``CANVAS_H`` page."""
    view = render_slide(s)
    page.draw_rect(page.rect, color=None, fill=BG)

    content_rect = fitz.Rect(0, 0, CANVAS_W, CANVAS_H)
    if view.background_url and _insert_image(page, view.background_url, page.rect, loader):
        page.draw_rect(page.rect, color=None, fill=BG, fill_opacity=0.6)
    elif view.image is not None:
        image_rect, rest = _image_rects(view.image.position, view.image.fraction)
        if _insert_image(page, view.image.url, image_rect, loader):
            content_rect = rest

    box = _inset(content_rect)
    if isinstance(view.content, ChartContent):
        message = chart_message(s.layout, view.content)
        if message:
            raise SlideExportError(message, s.id)
        page.insert_htmlbox(fitz.Rect(box.x0, box.y0, box.x1, box.y0 + 50), f"<h2>{_esc(view.title)}</h2>", css=CSS)
        area = fitz.Rect(box.x0, box.y0 + 60, box.x1, box.y1)
        if s.layout == "pie-chart":
            _draw_pie(page, view.content, area)
        elif s.layout == "line-chart":
            _draw_line(page, view.content, area)
        else:
            _draw_bar(page, view.content, area)
        return
    if isinstance(view.content, HierarchyContent) and view.content.root is None:
        raise SlideExportError(view.message or "Invalid hierarchy data", s.id)

    if s.layout in ("title", "cta"):
        html = f'<div style="text-align:center"><h2 style="font-size:44px">{_esc(view.title)}</h2>{view.body_html}</div>'
        box = fitz.Rect(box.x0, CANVAS_H * 0.28, box.x1, box.y1)
    else:
        html = f"<h2>{_esc(view.title)}</h2>{view.body_html}"
    page.insert_htmlbox(box, html, css=CSS)


def paint_placeholder(page, s: Slide) -> None:
    page.draw_rect(page.rect, color=None, fill=BG)
    page.insert_htmlbox(
        _inset(page.rect, 120),
        f'<p style="color:#f87171;font-size:28px;text-align:center">Error rendering slide: #{_esc(s.id)}</p>',
    )


def _esc(text: str) -> str:
    return escape(text or "")


def rasterize_slide(s: Slide, loader: ImageLoader = load_image_bytes, zoom: float = PAGE_W / CANVAS_W) -> Tuple[bytes, bool]:
    """Return ``(png_bytes, ok)``; on failure the PNG is the error placeholder."""
    scratch = fitz.open()
    try:
        page = scratch.new_page(width=CANVAS_W, height=CANVAS_H)
        ok = True
        try:
            paint_slide(page, s, loader)
        except Exception:
            logger.exception("Failed to render slide %s (%s) for PDF", s.id, s.layout)
            ok = False
            scratch.delete_page(0)
            page = scratch.new_page(width=CANVAS_W, height=CANVAS_H)
            paint_placeholder(page, s)
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        return pix.tobytes("png"), ok
    finally:
        scratch.close()


def export_pdf(slides: Sequence[Slide], path: Path, loader: ImageLoader = load_image_bytes,
               show_progress: bool = False) -> ExportResult:
    """Write one 1920x1080 landscape page per slide, sequentially and in slide order."""
    if not slides:
        raise ValueError("Nothing to export: the deck has no slides.")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    out = fitz.open()
    failed: List[str] = []
    try:
        for s in tqdm(slides, desc="PDF", ncols=TQDM_NCOLS, disable=not show_progress):
            png, ok = rasterize_slide(s, loader)
            if not ok:
                failed.append(s.id)
            page = out.new_page(width=PAGE_W, height=PAGE_H)
            page.insert_image(page.rect, stream=png)
        count = out.page_count
        out.save(str(path), deflate=True)
    finally:
        out.close()
    logger.info("Saved PDF: %s", path)
    return ExportResult(path=path, slide_count=count, failed=failed)

"""Tests for PPTX and PDF export."""

import base64

import fitz
import pytest
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from export_pdf import PAGE_H, PAGE_W, _esc, export_pdf
from export_pptx import SLIDE_H, SLIDE_W, export_pptx, split_regions
from models import Slide, deck_basename


def png_data_uri():
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, 4, 4), False)
    pix.clear_with(200)
    return "data:image/png;base64," + base64.b64encode(pix.tobytes("png")).decode("ascii")


def sample_deck():
    return [
        Slide(id="s1", title="Quarterly Review", layout="title", content=["Q3"]),
        Slide(id="s2", title="Broken", layout="pie-chart", content=["{not json"]),
        Slide(id="s3", title="Points", layout="default", content=["one", "two"]),
    ]


def slide_texts(slide):
    return [shape.text_frame.text for shape in slide.shapes if shape.has_text_frame]


# =============================================================================
# PPTX
# =============================================================================


class TestExportPptx:
    """Tests for export_pptx()."""

    def test_bad_slide_becomes_placeholder(self, tmp_path):
        result = export_pptx(sample_deck(), tmp_path / "deck.pptx")
        assert result.slide_count == 3
        assert result.failed == ["s2"]

        prs = Presentation(str(result.path))
        assert len(prs.slides) == 3
        assert "Error rendering slide: #s2" in slide_texts(prs.slides[1])
        assert "Quarterly Review" in slide_texts(prs.slides[0])
        assert "Points" in slide_texts(prs.slides[2])

    def test_every_layout_exports(self, tmp_path):
        slides = [
            Slide(id="1", layout="timeline", title="T", content=["2020 :: A", "2021 :: B"]),
            Slide(id="2", layout="blocks", title="B", content=["a", "b", "c"]),
            Slide(id="3", layout="quote", content=["Stay hungry", "Jobs"]),
            Slide(id="4", layout="comparison", title="C", content=["Old", "x\ny", "New", "z"]),
            Slide(id="5", layout="features", title="F", content=["rocket :: Fast :: Quick"]),
            Slide(id="6", layout="cta", title="Go", content=["Join", "Sign up"]),
            Slide(id="7", layout="bar-chart", title="Bar", content=['[{"label":"A","value":3}]']),
            Slide(id="8", layout="line-chart", title="Line", content=['[{"label":"A","value":1},{"label":"B","value":2}]']),
            Slide(id="9", layout="swot-analysis", title="S", content=["s", "w", "o", "t"]),
            Slide(id="10", layout="process-flow", title="P", content=["plan", "build", "ship"]),
            Slide(id="11", layout="circular-diagram", title="Cycle", content=["a", "b", "c", "d"]),
            Slide(id="12", layout="hierarchy", title="H", content=['{"name":"CEO","children":[{"name":"CTO"}]}']),
        ]
        result = export_pptx(slides, tmp_path / "all.pptx")
        assert result.failed == []
        assert result.slide_count == len(slides)

    def test_charts_are_native(self, tmp_path):
        slides = [Slide(id="1", layout="pie-chart", title="Pie", content=['[{"label":"A","value":1},{"label":"B","value":3}]'])]
        prs = Presentation(str(export_pptx(slides, tmp_path / "c.pptx").path))
        assert any(shape.has_chart for shape in prs.slides[0].shapes)

    def test_invalid_hierarchy_is_placeholder(self, tmp_path):
        slides = [Slide(id="h", layout="hierarchy", content=["[]"])]
        assert export_pptx(slides, tmp_path / "h.pptx").failed == ["h"]

    def test_side_image_is_placed(self, tmp_path):
        slides = [Slide(id="1", title="Pic", content=["a"], image_url=png_data_uri(), image_position="right")]
        prs = Presentation(str(export_pptx(slides, tmp_path / "img.pptx").path))
        pictures = [s for s in prs.slides[0].shapes if s.shape_type == MSO_SHAPE_TYPE.PICTURE]
        assert len(pictures) == 1

    def test_unloadable_image_is_skipped(self, tmp_path):
        def loader(ref):
            raise OSError("offline")

        slides = [Slide(id="1", title="Pic", content=["a"], image_url="https://example.invalid/x.png")]
        result = export_pptx(slides, tmp_path / "x.pptx", loader=loader)
        assert result.failed == []

    def test_undecodable_image_is_skipped(self, tmp_path):
        ref = "data:image/png;base64," + base64.b64encode(b"not an image").decode("ascii")
        slides = [Slide(id="1", title="Pic", content=["a"], image_url=ref, image_position="left")]
        result = export_pptx(slides, tmp_path / "bad.pptx")
        assert result.failed == []
        slide = Presentation(str(result.path)).slides[0]
        assert not [s for s in slide.shapes if s.shape_type == MSO_SHAPE_TYPE.PICTURE]
        assert "Pic" in slide_texts(slide)


class TestSplitRegions:
    """Tests for the image/content split."""

    def test_left(self):
        image, content = split_regions("left")
        assert image == (0.0, 0.0, pytest.approx(SLIDE_W * 0.35), SLIDE_H)
        assert content[0] == pytest.approx(SLIDE_W * 0.35)

    def test_bottom(self):
        image, content = split_regions("bottom")
        assert image[1] == pytest.approx(SLIDE_H * 0.65)
        assert content == (0.0, 0.0, SLIDE_W, pytest.approx(SLIDE_H * 0.65))


# =============================================================================
# PDF
# =============================================================================


class TestExportPdf:
    """Tests for export_pdf()."""

    def test_one_page_per_slide_with_placeholder(self, tmp_path):
        result = export_pdf(sample_deck(), tmp_path / "deck.pdf")
        assert result.slide_count == 3
        assert result.failed == ["s2"]
        doc = fitz.open(str(result.path))
        try:
            assert doc.page_count == 3
            for page in doc:
                assert page.rect.width == PAGE_W
                assert page.rect.height == PAGE_H
        finally:
            doc.close()

    def test_charts_and_images_render(self, tmp_path):
        slides = [
            Slide(id="1", layout="pie-chart", title="Pie", content=['[{"label":"A","value":1},{"label":"B","value":3}]']),
            Slide(id="2", layout="line-chart", title="Line", content=['[{"label":"A","value":1},{"label":"B","value":2}]']),
            Slide(id="3", layout="default", title="Pic", content=["a"], image_url=png_data_uri(), image_position="top"),
        ]
        assert export_pdf(slides, tmp_path / "c.pdf").failed == []

    def test_undecodable_image_is_skipped(self, tmp_path):
        ref = "data:image/png;base64," + base64.b64encode(b"not an image").decode("ascii")
        slides = [Slide(id="1", title="Pic", content=["a"], image_url=ref)]
        assert export_pdf(slides, tmp_path / "bad.pdf").failed == []

    def test_markup_in_text_is_escaped(self):
        assert _esc('Say "hi" <b>&') == "Say &quot;hi&quot; &lt;b&gt;&amp;"
        assert _esc(None) == ""

    def test_title_with_markup_renders(self, tmp_path):
        slides = [Slide(id="1", title='<Q&A> "live"', content=["a < b"])]
        assert export_pdf(slides, tmp_path / "q.pdf").failed == []

    def test_empty_deck_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            export_pdf([], tmp_path / "none.pdf")


class TestDeckBasename:
    """Tests for the export file name."""

    def test_from_first_title(self):
        assert deck_basename(sample_deck()) == "Quarterly_Review"

    def test_fallback(self):
        assert deck_basename([]) == "AI-Presentation"
        assert deck_basename([Slide(id="1", title="???")]) == "AI-Presentation"

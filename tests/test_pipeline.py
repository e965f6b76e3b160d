"""Tests for normalization, concurrent image fetching and the generation flow."""

import json
import random
import threading
from unittest.mock import MagicMock

import pytest

from content_codec import decode
from errors import GenerationError
from models import IMAGE_POSITIONS, ChartPoint, RawSlide, Slide
from pipeline import (
    FAILURE_PREFIX,
    DeckJSONStore,
    GenerationFlow,
    Pipeline,
    RunConfig,
    fetch_images,
    normalize_slides,
    wants_image,
)


def reply_with(slides):
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content=json.dumps({"slides": slides}))
    return llm


# =============================================================================
# Normalization
# =============================================================================


class TestNormalizeSlides:
    """Tests for normalize_slides()."""

    def test_bogus_layout_becomes_default(self):
        slides = normalize_slides([RawSlide(title="A", layout="bogus")], stamp=1)
        assert slides[0].layout == "default"

    def test_bare_string_content_becomes_list(self):
        raw = RawSlide.model_validate({"title": "A", "content": "hello"})
        assert normalize_slides([raw], stamp=1)[0].content == ["hello"]

    def test_json_valued_chart_content_is_kept(self):
        raw = RawSlide.model_validate({"layout": "bar-chart", "content": [[{"label": "A", "value": 10}]]})
        slide = normalize_slides([raw], stamp=1)[0]
        assert json.loads(slide.content[0]) == [{"label": "A", "value": 10}]
        assert decode(slide.layout, slide.content).points == [ChartPoint(label="A", value=10)]

    def test_bare_hierarchy_object_is_kept(self):
        tree = {"name": "CEO", "children": [{"name": "Büro"}]}
        raw = RawSlide.model_validate({"layout": "hierarchy", "content": tree})
        slide = normalize_slides([raw], stamp=1)[0]
        assert len(slide.content) == 1
        assert "Büro" in slide.content[0]
        root = decode(slide.layout, slide.content).root
        assert [c.name for c in root.children] == ["Büro"]

    def test_ids_share_one_stamp(self):
        slides = normalize_slides([RawSlide(title="A"), RawSlide(title="B")], stamp=1700000000000)
        assert [s.id for s in slides] == ["1700000000000-0", "1700000000000-1"]

    def test_image_positions_are_valid_and_seeded(self):
        raws = [RawSlide(title=str(i)) for i in range(10)]
        a = normalize_slides(raws, rng=random.Random(7), stamp=1)
        b = normalize_slides(raws, rng=random.Random(7), stamp=1)
        assert all(s.image_position in IMAGE_POSITIONS for s in a)
        assert [s.image_position for s in a] == [s.image_position for s in b]

    def test_images_matched_by_index(self):
        raws = [RawSlide(title="A"), RawSlide(title="B"), RawSlide(title="C")]
        slides = normalize_slides(raws, ["u0", "", "u2"], stamp=1)
        assert [s.image_url for s in slides] == ["u0", None, "u2"]


# =============================================================================
# Images
# =============================================================================


class TestFetchImages:
    """Tests for the settle-all image fan-out."""

    def test_one_failure_does_not_sink_the_batch(self):
        raws = [RawSlide(title=str(i), image_prompt=f"prompt {i}") for i in range(5)]

        def generate(prompt):
            if prompt == "prompt 2":
                raise RuntimeError("boom")
            return f"img:{prompt}"

        urls = fetch_images(raws, generate, max_workers=3)
        assert urls == ["img:prompt 0", "img:prompt 1", "", "img:prompt 3", "img:prompt 4"]

    def test_chart_layouts_and_empty_prompts_are_skipped(self):
        raws = [
            RawSlide(title="a", image_prompt="city", layout="default"),
            RawSlide(title="b", image_prompt="bars", layout="bar-chart"),
            RawSlide(title="c", image_prompt="   "),
        ]
        generate = MagicMock(return_value="img")
        assert fetch_images(raws, generate) == ["img", "", ""]
        generate.assert_called_once_with("city")

    def test_wants_image(self):
        assert wants_image(RawSlide(image_prompt="x", layout="quote"))
        assert not wants_image(RawSlide(image_prompt="x", layout="hierarchy"))

    def test_no_jobs_no_calls(self):
        generate = MagicMock()
        assert fetch_images([RawSlide(title="a")], generate) == [""]
        generate.assert_not_called()


# =============================================================================
# Flow
# =============================================================================


class TestGenerationFlow:
    """Tests for stale-result handling."""

    def test_deliver_moves_to_editing(self):
        flow = GenerationFlow()
        token = flow.start()
        assert flow.is_current(token)
        assert flow.deliver(token, [Slide(id="1")])
        assert flow.stage == "editing"
        assert len(flow.slides) == 1

    def test_reset_drops_late_result(self):
        flow = GenerationFlow()
        token = flow.start()
        flow.reset()
        assert not flow.deliver(token, [Slide(id="1")])
        assert flow.stage == "landing"
        assert flow.slides == []

    def test_restart_drops_older_result(self):
        flow = GenerationFlow()
        old = flow.start()
        new = flow.start()
        assert not flow.fail(old, RuntimeError("late"))
        assert flow.deliver(new, [])
        assert flow.error == ""

    def test_fail_sets_prefixed_message(self):
        flow = GenerationFlow()
        token = flow.start()
        assert flow.fail(token, GenerationError("no slides"))
        assert flow.stage == "error"
        assert flow.error == FAILURE_PREFIX + "no slides"

    def test_delivery_from_worker_thread(self):
        flow = GenerationFlow()
        token = flow.start()
        worker = threading.Thread(target=flow.deliver, args=(token, [Slide(id="x")]))
        worker.start()
        worker.join()
        assert flow.stage == "editing"


# =============================================================================
# Store and pipeline
# =============================================================================


class TestDeckStore:
    """Tests for deck.json persistence."""

    def test_round_trip_uses_wire_names(self, tmp_path):
        slides = [
            Slide(id="1", title="T", layout="quote", content=["q", "a"], image_url="data:x", image_position="top")
        ]
        path = DeckJSONStore(tmp_path).save(slides)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["slides"][0]["imageUrl"] == "data:x"
        assert data["slides"][0]["imagePosition"] == "top"
        assert DeckJSONStore.load(path) == slides

    def test_missing_image_omitted(self, tmp_path):
        path = DeckJSONStore(tmp_path).save([Slide(id="1")])
        assert "imageUrl" not in json.loads(path.read_text(encoding="utf-8"))["slides"][0]


class TestPipeline:
    """Tests for Pipeline with a stubbed chat model."""

    def test_read_source_prefers_text_file(self, tmp_path):
        src = tmp_path / "notes.txt"
        src.write_text("hello world", encoding="utf-8")
        cfg = RunConfig(out_dir=tmp_path, text="ignored", text_file=src)
        assert Pipeline(cfg).read_source() == ("text", "hello world")

    def test_read_source_audio(self, tmp_path):
        src = tmp_path / "talk.mp3"
        src.write_bytes(b"ID3")
        kind, (data, mime) = Pipeline(RunConfig(out_dir=tmp_path, audio_path=src)).read_source()
        assert kind == "audio"
        assert data == b"ID3"
        assert mime == "audio/mpeg"

    def test_generate_without_model(self, tmp_path):
        with pytest.raises(GenerationError):
            Pipeline(RunConfig(out_dir=tmp_path, text="x")).generate()

    def test_generate_attaches_images(self, tmp_path):
        llm = reply_with(
            [
                {"title": "Intro", "content": ["Sub"], "layout": "title", "imagePrompt": "sunrise"},
                {"title": "Data", "content": ['[{"label":"A","value":1}]'], "layout": "bar-chart"},
            ]
        )
        images = MagicMock()
        images.generate.return_value = "data:image/png;base64,AAAA"
        cfg = RunConfig(out_dir=tmp_path, text="some notes", slide_count=2)
        slides = Pipeline(cfg, llm, images).generate()
        assert [s.layout for s in slides] == ["title", "bar-chart"]
        assert slides[0].image_url == "data:image/png;base64,AAAA"
        assert slides[1].image_url is None
        images.generate.assert_called_once_with("sunrise")

    def test_generate_without_images(self, tmp_path):
        llm = reply_with([{"title": "A", "content": ["x"], "imagePrompt": "cat"}])
        images = MagicMock()
        cfg = RunConfig(out_dir=tmp_path, text="notes", with_images=False)
        slides = Pipeline(cfg, llm, images).generate()
        assert slides[0].image_url is None
        images.generate.assert_not_called()

from __future__ import annotations

"""Generation pipeline: source -> raw slides -> images -> normalized deck -> exports."""
import json
import logging
import mimetypes
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from tqdm import tqdm

try:
    from .errors import GenerationError
    from .export_pdf import export_pdf
    from .export_pptx import ExportResult, export_pptx
    from .generation import SlideGenerator
    from .models import IMAGE_POSITIONS, NO_IMAGE_LAYOUTS, RawSlide, Slide, coerce_layout, deck_basename
    from .pdf_utils import extract_pdf_text
except Exception:
    from errors import GenerationError
    from export_pdf import export_pdf
    from export_pptx import ExportResult, export_pptx
    from generation import SlideGenerator
    from models import IMAGE_POSITIONS, NO_IMAGE_LAYOUTS, RawSlide, Slide, coerce_layout, deck_basename
    from pdf_utils import extract_pdf_text

logger = logging.getLogger("deckstudio")
TQDM_NCOLS = 100
FAILURE_PREFIX = "Failed to generate presentation: "


@dataclass
class RunConfig:
    out_dir: Path
    slide_count: int = 10
    text: str = ""
    text_file: Optional[Path] = None
    pdf_path: Optional[Path] = None
    audio_path: Optional[Path] = None
    llm_model: str = ""
    max_workers: int = 4
    with_images: bool = True
    export_pptx: bool = True
    export_pdf: bool = True
    verbose: bool = False


class DeckJSONStore:
    def __init__(self, out_dir: Path) -> None:
        self.out_dir = Path(out_dir)
        self.out_dir.mkdir(parents=True, exist_ok=True)

    def save(self, slides: Sequence[Slide], name: str = "deck.json") -> Path:
        path = self.out_dir / name
        with path.open("w", encoding="utf-8") as f:
            json.dump({"slides": [s.to_dict() for s in slides]}, f, indent=2, ensure_ascii=False)
        return path

    @staticmethod
    def load(path: Path) -> List[Slide]:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
        items = data.get("slides", []) if isinstance(data, dict) else data
        return [Slide.model_validate(item) for item in items]


def wants_image(raw: RawSlide) -> bool:
    return bool(raw.image_prompt.strip()) and coerce_layout(raw.layout) not in NO_IMAGE_LAYOUTS


def fetch_images(
    raw_slides: Sequence[RawSlide],
    generate_image: Callable[[str], str],
    max_workers: int = 4,
    show_progress: bool = False,
) -> List[str]:
    """Request every slide's image concurrently and wait for all of them.

    Results are matched to slides by position. A failed request, a skipped
    layout or an empty prompt yields ``""`` for that slide only.
    """
    urls = ["" for _ in raw_slides]
    jobs = {i: raw.image_prompt for i, raw in enumerate(raw_slides) if wants_image(raw)}
    if not jobs:
        return urls
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as ex:
        futures = {ex.submit(generate_image, prompt): i for i, prompt in jobs.items()}
        for fut in tqdm(
            as_completed(futures),
            total=len(futures),
            desc="Images",
            ncols=TQDM_NCOLS,
            disable=not show_progress,
        ):
            i = futures[fut]
            try:
                urls[i] = fut.result() or ""
            except Exception as exc:
                logger.warning("Image request for slide %s failed: %s", i + 1, exc)
                urls[i] = ""
    logger.info("Images ready for %s/%s slides", sum(1 for u in urls if u), len(urls))
    return urls


def normalize_slides(
    raw_slides: Sequence[RawSlide],
    image_urls: Optional[Sequence[str]] = None,
    rng: Optional[random.Random] = None,
    stamp: Optional[int] = None,
) -> List[Slide]:
    """Assign ids, coerce layouts and attach images.

    Ids are ``"<ms timestamp>-<index>"`` with one timestamp per batch. The
    image position is drawn at random.
    """
    rng = rng or random.Random()
    stamp = int(time.time() * 1000) if stamp is None else stamp
    slides: List[Slide] = []
    for i, raw in enumerate(raw_slides):
        layout = coerce_layout(raw.layout)
        if layout != raw.layout:
            logger.debug("Slide %s: layout %r coerced to %r", i + 1, raw.layout, layout)
        url = image_urls[i] if image_urls is not None and i < len(image_urls) else ""
        slides.append(
            Slide(
                id=f"{stamp}-{i}",
                title=raw.title,
                content=raw.content,
                layout=layout,
                image_prompt=raw.image_prompt,
                image_url=url or None,
                image_position=rng.choice(IMAGE_POSITIONS),
            )
        )
    return slides


class GenerationFlow:
    """Tracks one generation attempt at a time.

    ``start`` hands out a token; a later ``reset`` or ``start`` makes older
    tokens stale, and results delivered with a stale token are dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._token = 0
        self.stage = "landing"
        self.slides: List[Slide] = []
        self.error = ""

    def start(self) -> int:
        with self._lock:
            self._token += 1
            self.stage = "generating"
            self.slides = []
            self.error = ""
            return self._token

    def reset(self) -> None:
        with self._lock:
            self._token += 1
            self.stage = "landing"
            self.slides = []
            self.error = ""

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._token and self.stage == "generating"

    def deliver(self, token: int, slides: List[Slide]) -> bool:
        with self._lock:
            if token != self._token or self.stage != "generating":
                logger.info("Ignoring result of an abandoned generation")
                return False
            self.slides = list(slides)
            self.stage = "editing"
            return True

    def fail(self, token: int, exc: BaseException) -> bool:
        with self._lock:
            if token != self._token or self.stage != "generating":
                return False
            self.error = FAILURE_PREFIX + str(exc)
            self.stage = "error"
            return True


class Pipeline:
    def __init__(self, cfg: RunConfig, llm=None, image_client=None) -> None:
        self.cfg = cfg
        self.llm = llm
        self.image_client = image_client

    def read_source(self) -> Tuple[str, object]:
        """Return ``("text", str)`` or ``("audio", (bytes, mime_type))``."""
        cfg = self.cfg
        if cfg.audio_path:
            path = Path(cfg.audio_path)
            mime = mimetypes.guess_type(path.name)[0] or "audio/wav"
            return "audio", (path.read_bytes(), mime)
        if cfg.pdf_path:
            return "text", extract_pdf_text(Path(cfg.pdf_path))
        if cfg.text_file:
            return "text", Path(cfg.text_file).read_text(encoding="utf-8")
        return "text", cfg.text

    def generate(self) -> List[Slide]:
        if self.llm is None:
            raise GenerationError("No chat model configured.")
        generator = SlideGenerator(self.llm)
        kind, payload = self.read_source()
        t0 = time.time()
        if kind == "audio":
            data, mime = payload
            raw = generator.generate_from_audio(data, mime, self.cfg.slide_count)
        else:
            raw = generator.generate_from_text(payload, self.cfg.slide_count)
        urls = None
        if self.cfg.with_images and self.image_client is not None:
            urls = fetch_images(raw, self.image_client.generate, self.cfg.max_workers, show_progress=True)
        slides = normalize_slides(raw, urls)
        logger.info("Generated %s slides in %.1fs", len(slides), time.time() - t0)
        return slides

    def export(self, slides: Sequence[Slide]) -> List[ExportResult]:
        out_dir = Path(self.cfg.out_dir)
        base = deck_basename(list(slides))
        results: List[ExportResult] = []
        if self.cfg.export_pptx:
            results.append(export_pptx(slides, out_dir / f"{base}.pptx", show_progress=True))
        if self.cfg.export_pdf:
            results.append(export_pdf(slides, out_dir / f"{base}.pdf", show_progress=True))
        for r in results:
            if r.failed:
                logger.warning("%s: %s slide(s) exported as placeholders: %s", r.path.name, len(r.failed), r.failed)
        return results

    def run(self) -> Tuple[List[Slide], Path, List[ExportResult]]:
        slides = self.generate()
        deck_path = DeckJSONStore(self.cfg.out_dir).save(slides)
        logger.info("Saved deck: %s", deck_path)
        return slides, deck_path, self.export(slides)

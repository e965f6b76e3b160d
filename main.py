"""CLI entrypoint: turn text, a PDF or an audio recording into an exported slide deck."""
from __future__ import annotations

import argparse
import logging
import os
import re
import sys
import time
from importlib import metadata
from pathlib import Path

from dotenv import load_dotenv

try:
    from .errors import ConfigurationError, GenerationError
    from .images import ImageClient, ImageConfig
    from .llm import init_llm, load_llm_config
    from .logging_utils import setup_logging
    from .pipeline import DeckJSONStore, Pipeline, RunConfig
except Exception:
    sys.path.append(str(Path(__file__).resolve().parent))
    from errors import ConfigurationError, GenerationError
    from images import ImageClient, ImageConfig
    from llm import init_llm, load_llm_config
    from logging_utils import setup_logging
    from pipeline import DeckJSONStore, Pipeline, RunConfig

logger = logging.getLogger("deckstudio")


def _load_version() -> str:
    try:
        return metadata.version("deckstudio")
    except Exception:
        return "0.0.0"


VERSION = _load_version()


def print_helper() -> None:
    """Print helper.

    Returns:
        None:
    """
    print("deckstudio help")
    print("")
    print("Quick start:")
    print('  deckstudio --text-file notes.txt --slides 8')
    print('  deckstudio --pdf "/path/to/report.pdf" --slides 12')
    print('  deckstudio --audio meeting.mp3 --slides 6 --no-images')
    print('  deckstudio --deck ~/deckstudio_runs/My_Talk/deck.json')
    print("")
    print("Defaults:")
    print("  Root runs dir: ~/deckstudio_runs or $DECKSTUDIO_ROOT_DIR")
    print("  Per-run structure: <root>/<source_slug>_<timestamp>/")
    print("")
    print("Environment:")
    print("  NVIDIA_API_KEY         required for generation and images")
    print("  DECKSTUDIO_MODEL       chat model override")
    print("  DECKSTUDIO_IMAGE_URL   image endpoint override")
    print("")
    print("Full options:")
    print("  deckstudio --help")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse args.

    Returns:
        argparse.Namespace:
    """
    p = argparse.ArgumentParser(description="Generate an editable slide deck from text, a PDF or an audio recording.")
    p.add_argument("--version", action="version", version=f"deckstudio {VERSION}")
    src = p.add_mutually_exclusive_group()
    src.add_argument("--text-file", "-f", help="Path to a UTF-8 text file")
    src.add_argument("--text", "-t", help="Source text given inline")
    src.add_argument("--pdf", "-p", help="Path to a local PDF file")
    src.add_argument("--audio", "-a", help="Path to an audio recording")
    src.add_argument("--deck", "-D", help="Re-export a saved deck.json instead of generating")
    p.add_argument("--slides", "-s", type=int, default=10, help="Target number of slides")
    p.add_argument("--no-images", action="store_true", help="Skip image generation")
    p.add_argument("--no-pptx", action="store_true", help="Do not write the .pptx deck")
    p.add_argument("--no-pdf", action="store_true", help="Do not write the paged PDF")
    p.add_argument("--root-dir", default="", help="Override root runs directory")
    p.add_argument("--out-dir", "-o", default="", help="Override output directory")
    p.add_argument("--model", "-m", default="", help="Chat model name")
    p.add_argument("--max-workers", "-w", type=int, default=4, help="Concurrent image requests")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return p.parse_args(argv)


def _slugify(s: str, max_len: int = 60) -> str:
    s = (s or "").strip()
    s = re.sub(r"[^a-zA-Z0-9]+", "_", s)
    s = s.strip("_")
    return (s or "deck")[:max_len]


def _source_label(args: argparse.Namespace) -> str:
    for value in (args.text_file, args.pdf, args.audio, args.deck):
        if value:
            return Path(value).stem
    return "text"


def _resolve_out_dir(args: argparse.Namespace) -> Path:
    if args.out_dir:
        return Path(args.out_dir).expanduser().resolve()
    if args.deck:
        return Path(args.deck).expanduser().resolve().parent
    root_dir = args.root_dir or os.environ.get("DECKSTUDIO_ROOT_DIR", "~/deckstudio_runs")
    run_name = f"{_slugify(_source_label(args))}_{time.strftime('%Y%m%d-%H%M%S')}"
    return Path(root_dir).expanduser().resolve() / run_name


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        int: 0 on success, 1 on a failed run, 2 on bad input or configuration.
    """
    argv = sys.argv[1:] if argv is None else argv
    if argv and argv[0] == "help":
        print_helper()
        return 0

    env_path = Path(__file__).parent / ".env"
    load_dotenv(env_path, override=False)
    args = parse_args(argv)

    if not any([args.text_file, args.text, args.pdf, args.audio, args.deck]):
        setup_logging(args.verbose)
        logger.error("Provide a source: --text-file, --text, --pdf, --audio, or --deck.")
        return 2
    if args.slides < 1:
        setup_logging(args.verbose)
        logger.error("--slides must be at least 1.")
        return 2

    out_dir = _resolve_out_dir(args)
    out_dir.mkdir(parents=True, exist_ok=True)
    log_file = setup_logging(args.verbose, log_path=out_dir / "run.log")

    cfg = RunConfig(
        out_dir=out_dir,
        slide_count=args.slides,
        text=args.text or "",
        text_file=Path(args.text_file).expanduser().resolve() if args.text_file else None,
        pdf_path=Path(args.pdf).expanduser().resolve() if args.pdf else None,
        audio_path=Path(args.audio).expanduser().resolve() if args.audio else None,
        llm_model=args.model,
        max_workers=args.max_workers,
        with_images=not args.no_images,
        export_pptx=not args.no_pptx,
        export_pdf=not args.no_pdf,
        verbose=args.verbose,
    )

    for path in (cfg.text_file, cfg.pdf_path, cfg.audio_path):
        if path is not None and not path.exists():
            logger.error("Source not found: %s", path)
            return 2

    try:
        if args.deck:
            deck_path = Path(args.deck).expanduser().resolve()
            if not deck_path.exists():
                logger.error("Deck not found: %s", deck_path)
                return 2
            slides = DeckJSONStore.load(deck_path)
            results = Pipeline(cfg).export(slides)
        else:
            llm_cfg = load_llm_config(cfg.llm_model or None)
            cfg.llm_model = llm_cfg.model
            llm = init_llm(llm_cfg)
            image_client = ImageClient(ImageConfig.from_env()) if cfg.with_images else None
            logger.info("Model: %s", cfg.llm_model)
            slides, deck_path, results = Pipeline(cfg, llm, image_client).run()

        print("\nOutput directory:", out_dir)
        print("Deck:", deck_path)
        if log_file:
            print("Run log:", log_file)
        for r in results:
            print(f"{r.path.suffix[1:].upper()}: {r.path} ({r.slide_count} pages, {len(r.failed)} placeholder)")
        return 0
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2
    except GenerationError as exc:
        logger.error("Failed to generate presentation: %s", exc)
        return 1
    except Exception:
        logger.exception("Unhandled error in pipeline run")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

"""
Example Run Command:
deckstudio --pdf ~/papers/annual_report.pdf --slides 12 --max-workers 6 --verbose

deckstudio --deck ~/deckstudio_runs/annual_report_20260101-120000/deck.json --no-pdf
"""

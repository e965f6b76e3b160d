"""Console and run-log setup shared by the CLI and the GUI."""
import logging
import sys
import tempfile
from pathlib import Path
from typing import Optional

# HTTP and imaging libraries that are chatty at DEBUG.
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "PIL", "openai", "langchain_nvidia_ai_endpoints")


def _file_handler(log_path: Path) -> Optional[logging.FileHandler]:
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, mode="w", encoding="utf-8")
    except OSError as exc:
        fallback = Path(tempfile.gettempdir()) / "deckstudio.run.log"
        print(f"[WARN] Cannot write run log to {log_path} ({exc}); using {fallback}.", file=sys.stderr)
    try:
        return logging.FileHandler(fallback, mode="w", encoding="utf-8")
    except OSError:
        print("[WARN] Continuing without a run log.", file=sys.stderr)
        return None


def setup_logging(verbose: bool = False, log_path: Optional[Path] = None) -> Optional[Path]:
    """Configure the root logger for a deckstudio run.

    Args:
        verbose (bool): DEBUG instead of INFO for the ``deckstudio`` logger.
        log_path (Optional[Path]): also write the run log here; falls back to
            a file in the temp dir when the path cannot be opened.

    Returns:
        Optional[Path]: the file the run log is written to, if any.
    """
    level = logging.DEBUG if verbose else logging.INFO
    try:
        from rich.logging import RichHandler  # type: ignore

        console_handler = RichHandler(rich_tracebacks=False, markup=False, show_path=verbose)
    except Exception:
        console_handler = logging.StreamHandler()

    handlers = [console_handler]
    written_to = None
    if log_path is not None:
        fh = _file_handler(Path(log_path))
        if fh is not None:
            fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
            handlers.append(fh)
            written_to = Path(fh.baseFilename)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
    logging.getLogger("deckstudio").setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return written_to

"""Utilities for extracting text from local PDF sources."""
from __future__ import annotations

import re
from pathlib import Path
from typing import List

import fitz  # PyMuPDF


def _clean_text(s: str) -> str:
    s = (s or "").replace("\x00", " ")
    s = re.sub(r"[ \t]+", " ", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def extract_pdf_text(pdf_path: Path, max_pages: int | None = None) -> str:
    """Extract the plain text of a PDF, page by page.

    Returns:
        str: cleaned text; empty when the PDF has no text layer.
    """
    pdf_path = Path(pdf_path).expanduser().resolve()
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF not found: {pdf_path}")

    all_text: List[str] = []
    with fitz.open(pdf_path) as doc:
        pages = list(range(len(doc)))
        if max_pages is not None:
            pages = pages[:max_pages]
        for pno in pages:
            text = doc.load_page(pno).get_text("text")
            if text:
                all_text.append(text)

    return _clean_text("\n\n".join(all_text))

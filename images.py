"""Image generation and stock-photo search clients."""
from __future__ import annotations

import base64
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import unquote

import requests

try:
    from .errors import ConfigurationError
    from .llm import read_api_key
except Exception:
    from errors import ConfigurationError
    from llm import read_api_key

logger = logging.getLogger("deckstudio")

DEFAULT_IMAGE_URL = "https://ai.api.nvidia.com/v1/genai/stabilityai/stable-diffusion-xl"
PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
PROMPT_PREFIX = "Professional presentation background image, clear and modern, minimalist style: "
SEARCH_PAGE_SIZE = 24

_DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


@dataclass
class ImageConfig:
    api_key: str
    endpoint: str = DEFAULT_IMAGE_URL
    width: int = 1344
    height: int = 768
    timeout: int = 120

    @classmethod
    def from_env(cls) -> "ImageConfig":
        return cls(api_key=read_api_key(), endpoint=os.environ.get("DECKSTUDIO_IMAGE_URL") or DEFAULT_IMAGE_URL)


class ImageClient:
    """One prompt in, one data URI (or ``""``) out. Failures are logged, never raised."""

    def __init__(self, cfg: ImageConfig, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()

    def generate(self, prompt: str) -> str:
        if not (prompt or "").strip():
            return ""
        payload = {
            "text_prompts": [{"text": PROMPT_PREFIX + prompt.strip(), "weight": 1}],
            "width": self.cfg.width,
            "height": self.cfg.height,
            "samples": 1,
            "cfg_scale": 5,
            "steps": 25,
        }
        headers = {
            "Authorization": f"Bearer {self.cfg.api_key}",
            "Accept": "application/json",
        }
        try:
            r = self.session.post(self.cfg.endpoint, json=payload, headers=headers, timeout=self.cfg.timeout)
            r.raise_for_status()
            artifacts = r.json().get("artifacts") or []
            if not artifacts or not artifacts[0].get("base64"):
                raise ValueError("Image generation returned no images.")
            return f"data:image/png;base64,{artifacts[0]['base64']}"
        except Exception as exc:
            logger.warning("Image generation failed for prompt %r: %s", prompt, exc)
            return ""


@dataclass
class ImageCandidate:
    id: str
    thumbnail_url: str
    full_url: str
    alt: str = ""


class ImageSearchClient:
    def __init__(self, api_key: str, session: Optional[requests.Session] = None, timeout: int = 20) -> None:
        if not api_key:
            raise ConfigurationError("PEXELS_API_KEY is not set; image search is unavailable.")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> Optional["ImageSearchClient"]:
        key = (os.environ.get("PEXELS_API_KEY") or "").strip()
        return cls(key) if key else None

    def search(self, query: str) -> List[ImageCandidate]:
        """Search stock photos. An empty query or no hits gives an empty list."""
        if not (query or "").strip():
            return []
        r = self.session.get(
            PEXELS_SEARCH_URL,
            params={"query": query.strip(), "per_page": SEARCH_PAGE_SIZE},
            headers={"Authorization": self.api_key},
            timeout=self.timeout,
        )
        r.raise_for_status()
        out: List[ImageCandidate] = []
        for photo in r.json().get("photos") or []:
            src = photo.get("src") or {}
            if not src.get("medium") or not src.get("large2x"):
                continue
            out.append(
                ImageCandidate(
                    id=str(photo.get("id", "")),
                    thumbnail_url=src["medium"],
                    full_url=src["large2x"],
                    alt=photo.get("alt") or "",
                )
            )
        logger.debug("Image search %r -> %s results", query, len(out))
        return out


def load_image_bytes(ref: str, timeout: int = 30) -> bytes:
    """Resolve an image reference (data URI or http(s) URL) to raw bytes."""
    m = _DATA_URI.match(ref or "")
    if m:
        data = m.group("data")
        if m.group("b64"):
            return base64.b64decode(data)
        return unquote(data).encode("utf-8")
    if not ref:
        raise ValueError("Empty image reference")
    r = requests.get(ref, timeout=timeout)
    r.raise_for_status()
    return r.content

"""LLM wrapper utilities (config + init + safe invoke)."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional

try:
    from .errors import ConfigurationError
except Exception:
    from errors import ConfigurationError

try:
    from langchain_nvidia_ai_endpoints import ChatNVIDIA
except Exception as e:  # pragma: no cover
    ChatNVIDIA = None
    _IMPORT_ERR = e

logger = logging.getLogger("deckstudio")

DEFAULT_MODEL = "meta/llama-3.3-70b-instruct"


@dataclass
class LLMConfig:
    model: str
    api_key: str


def read_api_key(env_var: str = "NVIDIA_API_KEY") -> str:
    """Return the credential from the environment or raise ``ConfigurationError``.

    The literal ``"undefined"`` counts as missing; it shows up when a build
    step interpolates an unset variable.
    """
    key = (os.environ.get(env_var) or "").strip()
    if not key or key == "undefined":
        raise ConfigurationError(f"{env_var} is not set. Add it to your environment or .env file.")
    return key


def load_llm_config(model: Optional[str] = None) -> LLMConfig:
    """Build the chat model config from the environment.

    Args:
        model (Optional[str]): overrides ``DECKSTUDIO_MODEL``.

    Returns:
        LLMConfig:
    """
    name = model or os.environ.get("DECKSTUDIO_MODEL") or DEFAULT_MODEL
    return LLMConfig(model=name, api_key=read_api_key())


def init_llm(cfg: LLMConfig):
    """Initialize llm.

    Args:
        cfg (LLMConfig):

    Returns:
        Any:
    """
    if ChatNVIDIA is None:
        raise RuntimeError(f"langchain_nvidia_ai_endpoints not available: {_IMPORT_ERR}")
    if not cfg.api_key:
        raise ConfigurationError("An API key is required to initialize the chat model.")
    return ChatNVIDIA(model=cfg.model, api_key=cfg.api_key)


def safe_invoke(logger, llm, prompt: Any, retries: int = 3, sleep_base: float = 0.8, debug: bool = False) -> str:
    """Invoke ``llm`` until it returns non-empty text.

    Args:
        logger (Any):
        llm (Any):
        prompt (Any): a prompt string or a list of chat messages.
        retries (int):
        sleep_base (float):
        debug (bool):

    Returns:
        str: the last reply, possibly empty.
    """
    last = ""
    for k in range(retries):
        out = llm.invoke(prompt).content or ""
        if not isinstance(out, str):
            # multimodal replies come back as a list of parts
            out = "".join(p.get("text", "") if isinstance(p, dict) else str(p) for p in out)
        if debug:
            logger.debug("[safe_invoke] attempt %s/%s -> len=%s head=%r", k + 1, retries, len(out), out[:40])
        if out.strip():
            return out
        last = out
        if k + 1 < retries:
            time.sleep(sleep_base * (k + 1))
    return last

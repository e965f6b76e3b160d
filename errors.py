"""Exception types shared across generation, clients, and export."""
from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A required setting (usually a credential) is missing at startup."""


class GenerationError(RuntimeError):
    """The slide generator could not produce a usable slide list."""


class SlideExportError(RuntimeError):
    """One slide could not be exported; the batch continues without it."""

    def __init__(self, message: str, slide_id: str = "") -> None:
        super().__init__(message)
        self.slide_id = slide_id

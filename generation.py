"""Slide-list generation through the chat model."""
from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

try:
    from .errors import GenerationError
    from .llm import safe_invoke
    from .models import RawSlide
except Exception:
    from errors import GenerationError
    from llm import safe_invoke
    from models import RawSlide

logger = logging.getLogger("deckstudio")

SYSTEM_PROMPT = """
You are a professional presentation creation assistant. Structure the user's material into a clear,
concise, professional presentation of approximately {slide_count} slides. For each slide:
1. Provide a title and content.
2. Choose the most appropriate layout:
   - 'default': standard text with bullet points.
   - 'timeline': chronological events. Each content item is 'DATE :: Event description'.
   - 'blocks': 2-4 distinct ideas.
   - 'title': main title slide. content has one item: the subtitle.
   - 'quote': content has two items: [quote, author].
   - 'comparison': content has four items: [left_title, left_content, right_title, right_content].
   - 'features': 2-4 key features. Each item is 'icon_name :: Feature Title :: Description' where
     icon_name is one of 'lightbulb', 'shield', 'rocket', 'cog'.
   - 'cta': closing call to action. content has two items: [body, action_text].
   - 'process-flow': each content item is one step.
   - 'swot-analysis': exactly four items in order [strengths, weaknesses, opportunities, threats];
     each item may contain newlines.
   - 'circular-diagram': items arranged around the slide title as a central theme.
   For data-driven layouts the content array holds a SINGLE string of valid JSON:
   - 'bar-chart', 'pie-chart', 'line-chart': '[{{"label": "string", "value": number}}]'.
   - 'hierarchy': '{{"name": "Root", "children": [{{"name": "Child 1", "children": []}}]}}'.
3. Provide a short English imagePrompt (5-10 words) for a background image. For chart or
   diagram layouts it may be an empty string.
Respond with a single JSON object and nothing else:
{{"slides": [{{"title": "...", "content": ["..."], "imagePrompt": "...", "layout": "default"}}]}}
""".strip()

TEXT_REQUEST = (
    "Please organize the following text into a presentation of about {slide_count} slides. "
    "Each slide should have a title, several key points, a layout, and an image prompt.\n\nTEXT: \"{text}\""
)

AUDIO_REQUEST = (
    "Please transcribe the audio and then organize the transcribed text into a presentation of about "
    "{slide_count} slides. Each slide should have a title, several key points, a layout, and an image prompt."
)


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` block in ``text``.

    Leading/trailing code fences are stripped and braces inside JSON strings
    are ignored.
    """
    t = (text or "").strip()
    if t.startswith("```"):
        t = re.sub(r"^```[a-zA-Z]*\n", "", t)
        t = re.sub(r"\n```$", "", t).strip()

    start = t.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for j in range(start, len(t)):
        ch = t[j]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return t[start : j + 1]
    return None


def parse_slides(reply: str) -> List[RawSlide]:
    """Parse the model reply into raw slides or raise ``GenerationError``."""
    block = extract_json_object(reply)
    if block is None:
        raise GenerationError("The model reply did not contain a JSON object.")
    try:
        data = json.loads(block)
    except ValueError as exc:
        raise GenerationError(f"The model reply was not valid JSON: {exc}") from exc
    slides = data.get("slides") if isinstance(data, dict) else None
    if not isinstance(slides, list) or not slides:
        raise GenerationError("Invalid JSON structure received. 'slides' array is missing or empty.")
    out: List[RawSlide] = []
    for i, item in enumerate(slides):
        if not isinstance(item, dict):
            logger.warning("Skipping slide %s: expected an object, got %s", i + 1, type(item).__name__)
            continue
        try:
            out.append(RawSlide.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping slide %s: %s", i + 1, exc)
    if not out:
        raise GenerationError("The model returned no usable slides.")
    return out


def audio_format(mime_type: str) -> str:
    sub = (mime_type or "").split("/")[-1].split(";")[0].strip().lower()
    if sub in ("mpeg", "mp3"):
        return "mp3"
    if sub in ("wav", "x-wav", "wave"):
        return "wav"
    return sub or "wav"


class SlideGenerator:
    def __init__(self, llm, retries: int = 3) -> None:
        self.llm = llm
        self.retries = retries

    def _system(self, slide_count: int) -> SystemMessage:
        return SystemMessage(content=SYSTEM_PROMPT.format(slide_count=slide_count))

    def _run(self, messages: List[Any]) -> List[RawSlide]:
        try:
            reply = safe_invoke(logger, self.llm, messages, retries=self.retries)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"Chat model request failed: {exc}") from exc
        if not reply.strip():
            raise GenerationError("Received an empty response from the model.")
        slides = parse_slides(reply)
        logger.info("Model returned %s slides", len(slides))
        return slides

    def generate_from_text(self, text: str, slide_count: int = 10) -> List[RawSlide]:
        if not (text or "").strip():
            raise GenerationError("The source text is empty.")
        logger.info("Generating ~%s slides from %s characters of text", slide_count, len(text))
        messages = [
            self._system(slide_count),
            HumanMessage(content=TEXT_REQUEST.format(slide_count=slide_count, text=text)),
        ]
        return self._run(messages)

    def generate_from_audio(self, data: bytes, mime_type: str, slide_count: int = 10) -> List[RawSlide]:
        if not data:
            raise GenerationError("The audio recording is empty.")
        logger.info("Generating ~%s slides from %s bytes of %s audio", slide_count, len(data), mime_type)
        encoded = base64.b64encode(data).decode("ascii")
        messages = [
            self._system(slide_count),
            HumanMessage(
                content=[
                    {"type": "text", "text": AUDIO_REQUEST.format(slide_count=slide_count)},
                    {"type": "input_audio", "input_audio": {"data": encoded, "format": audio_format(mime_type)}},
                ]
            ),
        ]
        return self._run(messages)

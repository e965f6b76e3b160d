"""Pydantic models for slides, decoded slide content, and hierarchy rows."""
from __future__ import annotations

import json
import re
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

LAYOUTS = (
    "default",
    "timeline",
    "blocks",
    "title",
    "quote",
    "comparison",
    "features",
    "cta",
    "bar-chart",
    "pie-chart",
    "line-chart",
    "swot-analysis",
    "process-flow",
    "circular-diagram",
    "hierarchy",
)
DEFAULT_LAYOUT = "default"
IMAGE_POSITIONS = ("left", "right", "top", "bottom")

CHART_LAYOUTS = ("bar-chart", "pie-chart", "line-chart")
LIST_LAYOUTS = ("default", "blocks", "process-flow", "circular-diagram")

# Layouts that take the whole canvas and never show a side image.
FULL_WIDTH_LAYOUTS = frozenset(
    {
        "title",
        "cta",
        "comparison",
        "features",
        "bar-chart",
        "pie-chart",
        "line-chart",
        "swot-analysis",
        "process-flow",
        "circular-diagram",
        "hierarchy",
    }
)

# Chart and diagram layouts never request a photographic image.
NO_IMAGE_LAYOUTS = frozenset(
    {
        "bar-chart",
        "pie-chart",
        "line-chart",
        "swot-analysis",
        "process-flow",
        "circular-diagram",
        "hierarchy",
    }
)


def coerce_layout(value: Any) -> str:
    """Return ``value`` if it is a known layout tag, else ``"default"``."""
    if isinstance(value, str) and value.strip() in LAYOUTS:
        return value.strip()
    return DEFAULT_LAYOUT


def _content_item(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (dict, list)):
        # chart and hierarchy payloads sometimes arrive as JSON values instead of strings
        return json.dumps(v, ensure_ascii=False)
    return str(v)


def coerce_content(value: Any) -> List[str]:
    """Coerce an untrusted content payload into a list of strings.

    A bare string or object becomes a single-element list; ``None`` or an
    empty string becomes an empty list. Object and array items are kept as
    JSON text.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [_content_item(v) for v in value]
    text = _content_item(value)
    return [text] if text else []


def supports_image_position(layout: str) -> bool:
    return layout not in FULL_WIDTH_LAYOUTS


class FeatureIcon(str, Enum):
    LIGHTBULB = "lightbulb"
    SHIELD = "shield"
    ROCKET = "rocket"
    COG = "cog"
    DEFAULT = "default"

    @classmethod
    def from_name(cls, name: str) -> "FeatureIcon":
        key = (name or "").strip().lower()
        if key == "lightbulb":
            return cls.LIGHTBULB
        if key == "shield":
            return cls.SHIELD
        if key == "rocket":
            return cls.ROCKET
        if key == "cog":
            return cls.COG
        return cls.DEFAULT


class RawSlide(BaseModel):
    """One slide as returned by the generator, before normalization."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    content: List[str] = Field(default_factory=list)
    image_prompt: str = Field(default="", alias="imagePrompt")
    layout: str = ""

    @field_validator("title", "image_prompt", "layout", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> List[str]:
        return coerce_content(v)


class Slide(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    content: List[str] = Field(default_factory=list)
    layout: str = DEFAULT_LAYOUT
    image_prompt: str = Field(default="", alias="imagePrompt")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_position: str = Field(default="left", alias="imagePosition")

    @field_validator("title", "image_prompt", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> List[str]:
        return coerce_content(v)

    @field_validator("layout", mode="before")
    @classmethod
    def _layout(cls, v: Any) -> str:
        return coerce_layout(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def _image_url(cls, v: Any) -> Optional[str]:
        # An empty reference means "no image".
        return str(v) if v else None

    @field_validator("image_position")
    @classmethod
    def _image_position(cls, v: str) -> str:
        if v not in IMAGE_POSITIONS:
            raise ValueError(f"image position must be one of {IMAGE_POSITIONS}, got {v!r}")
        return v

    def text_at(self, index: int) -> str:
        if 0 <= index < len(self.content):
            return self.content[index]
        return ""

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChartPoint(BaseModel):
    label: str = ""
    value: float = 0.0

    @field_validator("label", mode="before")
    @classmethod
    def _label(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, v: Any) -> float:
        if isinstance(v, bool):
            return float(v)
        try:
            number = float(v)
        except (TypeError, ValueError):
            return 0.0
        if number != number or number in (float("inf"), float("-inf")):
            return 0.0
        return number


class HierarchyNode(BaseModel):
    name: str
    children: List["HierarchyNode"] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("hierarchy node name must not be empty")
        return v


HierarchyNode.model_rebuild()


class HierarchyRow(BaseModel):
    """Pre-order projection of one hierarchy node, used while editing."""

    name: str
    level: int = Field(default=0, ge=0)


# --- Decoded content variants -------------------------------------------------


class TitleContent(BaseModel):
    kind: Literal["title"] = "title"
    subtitle: str = ""


class QuoteContent(BaseModel):
    kind: Literal["quote"] = "quote"
    quote: str = ""
    author: str = ""


class TimelineEntry(BaseModel):
    key: str = ""
    value: str = ""


class TimelineContent(BaseModel):
    kind: Literal["timeline"] = "timeline"
    entries: List[TimelineEntry] = Field(default_factory=list)


class FeatureEntry(BaseModel):
    icon: str = ""
    title: str = ""
    description: str = ""

    @property
    def icon_kind(self) -> FeatureIcon:
        return FeatureIcon.from_name(self.icon)


class FeaturesContent(BaseModel):
    kind: Literal["features"] = "features"
    entries: List[FeatureEntry] = Field(default_factory=list)


def _lines(text: str) -> List[str]:
    return [line for line in (text or "").split("\n") if line.strip()]


class ComparisonContent(BaseModel):
    kind: Literal["comparison"] = "comparison"
    title_a: str = ""
    body_a: str = ""
    title_b: str = ""
    body_b: str = ""

    @property
    def items_a(self) -> List[str]:
        return _lines(self.body_a)

    @property
    def items_b(self) -> List[str]:
        return _lines(self.body_b)


class SwotContent(BaseModel):
    kind: Literal["swot-analysis"] = "swot-analysis"
    strengths: str = ""
    weaknesses: str = ""
    opportunities: str = ""
    threats: str = ""

    def quadrants(self) -> List[tuple[str, List[str]]]:
        return [
            ("Strengths", _lines(self.strengths)),
            ("Weaknesses", _lines(self.weaknesses)),
            ("Opportunities", _lines(self.opportunities)),
            ("Threats", _lines(self.threats)),
        ]


class ChartContent(BaseModel):
    kind: Literal["chart"] = "chart"
    points: List[ChartPoint] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(p.value for p in self.points)


class HierarchyContent(BaseModel):
    kind: Literal["hierarchy"] = "hierarchy"
    root: Optional[HierarchyNode] = None

    @property
    def is_valid(self) -> bool:
        return self.root is not None


class ItemListContent(BaseModel):
    kind: Literal["items"] = "items"
    items: List[str] = Field(default_factory=list)


class CtaContent(BaseModel):
    kind: Literal["cta"] = "cta"
    body: str = ""
    action_text: str = ""


SlideContent = Annotated[
    Union[
        TitleContent,
        QuoteContent,
        TimelineContent,
        FeaturesContent,
        ComparisonContent,
        SwotContent,
        ChartContent,
        HierarchyContent,
        ItemListContent,
        CtaContent,
    ],
    Field(discriminator="kind"),
]

# Variants whose content is a fixed run of slots (index == slot).
SLOT_VARIANTS = (TitleContent, QuoteContent, ComparisonContent, SwotContent, CtaContent)


def slot_fields(variant: BaseModel) -> List[str]:
    return [name for name in type(variant).model_fields if name != "kind"]


def deck_basename(slides: List[Slide], fallback: str = "AI-Presentation") -> str:
    """File name stem derived from the first slide's title."""
    title = slides[0].title if slides else ""
    stem = re.sub(r"[^\w\s-]", "", title or fallback).strip()
    stem = re.sub(r"\s+", "_", stem)
    return stem or fallback

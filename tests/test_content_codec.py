"""Tests for the per-layout content codec."""

import json

import pytest

from content_codec import (
    decode,
    encode,
    item_at,
    parse_json_data,
    split_feature,
    split_pair,
)
from models import (
    LAYOUTS,
    ChartContent,
    ChartPoint,
    ComparisonContent,
    CtaContent,
    FeatureEntry,
    FeatureIcon,
    FeaturesContent,
    HierarchyContent,
    HierarchyNode,
    ItemListContent,
    QuoteContent,
    SwotContent,
    TimelineContent,
    TimelineEntry,
    TitleContent,
)


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    """Tests for the small parsing helpers."""

    def test_item_at_tolerates_missing_indices(self):
        assert item_at(["a"], 0) == "a"
        assert item_at(["a"], 3) == ""
        assert item_at([], 0) == ""

    def test_split_pair_once(self):
        assert split_pair("2020 :: Founded") == ("2020", "Founded")
        assert split_pair("Q1 :: a :: b") == ("Q1", "a :: b")

    def test_split_pair_without_separator(self):
        assert split_pair("  just a value ") == ("", "just a value")

    def test_split_feature_pads_missing_parts(self):
        assert split_feature("rocket :: Fast") == ("rocket", "Fast", "")
        assert split_feature("") == ("", "", "")
        assert split_feature("a::b::c::d") == ("a", "b", "c::d")

    def test_parse_json_data_unwraps_double_encoding(self):
        inner = [{"label": "A", "value": 1}]
        assert parse_json_data(json.dumps(json.dumps(inner))) == inner

    def test_parse_json_data_fallback(self):
        assert parse_json_data("{not json", []) == []
        assert parse_json_data("", "x") == "x"
        assert parse_json_data(None) is None


# =============================================================================
# Decode
# =============================================================================


class TestDecode:
    """Tests for decode() across layouts."""

    def test_title(self):
        assert decode("title", ["Sub"]) == TitleContent(subtitle="Sub")
        assert decode("title", []) == TitleContent(subtitle="")

    def test_quote(self):
        assert decode("quote", ["Be bold", "Ada"]) == QuoteContent(quote="Be bold", author="Ada")
        assert decode("quote", ["Be bold"]).author == ""

    def test_timeline(self):
        decoded = decode("timeline", ["2020 :: Founded", "Later on"])
        assert decoded.entries == [
            TimelineEntry(key="2020", value="Founded"),
            TimelineEntry(key="", value="Later on"),
        ]

    def test_features(self):
        decoded = decode("features", ["shield :: Secure :: Encrypted at rest", "unknown :: Odd"])
        assert decoded.entries[0] == FeatureEntry(icon="shield", title="Secure", description="Encrypted at rest")
        assert decoded.entries[0].icon_kind is FeatureIcon.SHIELD
        assert decoded.entries[1].icon_kind is FeatureIcon.DEFAULT
        assert decoded.entries[1].description == ""

    def test_comparison_pads_slots(self):
        decoded = decode("comparison", ["Old", "slow\n\nmanual"])
        assert decoded == ComparisonContent(title_a="Old", body_a="slow\n\nmanual", title_b="", body_b="")
        assert decoded.items_a == ["slow", "manual"]
        assert decoded.items_b == []

    def test_swot_quadrants_skip_blank_lines(self):
        decoded = decode("swot-analysis", ["Brand\n\nTeam", "Cost", "", "Rivals"])
        quadrants = dict(decoded.quadrants())
        assert quadrants["Strengths"] == ["Brand", "Team"]
        assert quadrants["Opportunities"] == []

    def test_chart_points_sum(self):
        decoded = decode("pie-chart", ['[{"label":"A","value":10},{"label":"B","value":30}]'])
        assert isinstance(decoded, ChartContent)
        assert len(decoded.points) == 2
        assert decoded.total == 40

    def test_chart_double_encoded(self):
        raw = json.dumps(json.dumps([{"label": "A", "value": 2}]))
        assert decode("bar-chart", [raw]).points == [ChartPoint(label="A", value=2)]

    def test_chart_non_array_is_empty(self):
        assert decode("line-chart", ['{"label": "A"}']).points == []

    def test_chart_skips_non_objects_and_coerces_values(self):
        decoded = decode("bar-chart", ['[1, {"label": "A", "value": "abc"}, {"label": "B", "value": "4.5"}]'])
        assert decoded.points == [ChartPoint(label="A", value=0), ChartPoint(label="B", value=4.5)]

    def test_hierarchy(self):
        raw = json.dumps({"name": "CEO", "children": [{"name": "CTO"}, {"name": "", "children": [{"name": "X"}]}]})
        decoded = decode("hierarchy", [raw])
        assert decoded.root.name == "CEO"
        # the nameless child is dropped together with its subtree
        assert [c.name for c in decoded.root.children] == ["CTO"]
        assert decoded.root.children[0].children == []

    def test_hierarchy_invalid_is_none(self):
        assert decode("hierarchy", ["[]"]).root is None
        assert decode("hierarchy", []).is_valid is False
        assert decode("hierarchy", ['{"children": []}']).root is None

    def test_list_layouts(self):
        for layout in ("default", "blocks", "process-flow", "circular-diagram"):
            assert decode(layout, ["a", "b"]) == ItemListContent(items=["a", "b"])

    def test_cta(self):
        assert decode("cta", ["Join us"]) == CtaContent(body="Join us", action_text="")

    def test_unknown_layout_is_item_list(self):
        assert decode("bogus", ["x"]) == ItemListContent(items=["x"])

    @pytest.mark.parametrize("layout", LAYOUTS)
    def test_malformed_never_raises(self, layout):
        for content in (["{{{"], ["::", None], [json.dumps("[")], ["[" * 5000]):
            decode(layout, content)


# =============================================================================
# Encode
# =============================================================================


class TestEncode:
    """Tests for encode() and the decode/encode round trip."""

    def test_features_joined_with_spaced_separator(self):
        decoded = FeaturesContent(entries=[FeatureEntry(icon="rocket", title="Fast", description="Quick")])
        assert encode(decoded) == ["rocket :: Fast :: Quick"]

    def test_chart_pretty_json_with_int_values(self):
        encoded = encode(ChartContent(points=[ChartPoint(label="A", value=10), ChartPoint(label="B", value=2.5)]))
        assert len(encoded) == 1
        assert json.loads(encoded[0]) == [{"label": "A", "value": 10}, {"label": "B", "value": 2.5}]
        assert '"value": 10\n' in encoded[0]

    def test_hierarchy_none_encodes_empty(self):
        assert encode(HierarchyContent(root=None)) == []

    def test_round_trips(self):
        values = [
            ("title", TitleContent(subtitle="Hello")),
            ("quote", QuoteContent(quote="Q", author="A")),
            ("timeline", TimelineContent(entries=[TimelineEntry(key="1999", value="Launch")])),
            ("features", FeaturesContent(entries=[FeatureEntry(icon="cog", title="T", description="D")])),
            ("comparison", ComparisonContent(title_a="A", body_a="x\ny", title_b="B", body_b="z")),
            ("swot-analysis", SwotContent(strengths="s", weaknesses="w", opportunities="o", threats="t")),
            ("bar-chart", ChartContent(points=[ChartPoint(label="Q1", value=3)])),
            (
                "hierarchy",
                HierarchyContent(root=HierarchyNode(name="R", children=[HierarchyNode(name="C")])),
            ),
            ("blocks", ItemListContent(items=["one", "two"])),
            ("cta", CtaContent(body="Body", action_text="Go")),
        ]
        for layout, value in values:
            assert decode(layout, encode(value)) == value, layout

"""Tests for the editing session."""

import json

import pytest

from content_codec import decode
from editor import EditingSession
from models import ChartPoint, Slide


def make_session():
    return EditingSession(
        [
            Slide(id="s1", title="Intro", layout="title", content=["Sub"]),
            Slide(id="s2", title="Numbers", layout="bar-chart", content=['[{"label": "A", "value": 1}]']),
            Slide(
                id="s3",
                title="Org",
                layout="hierarchy",
                content=[json.dumps({"name": "Root", "children": [{"name": "A"}, {"name": "B"}]})],
            ),
            Slide(id="s4", title="Points", layout="default", content=["one", "two"]),
            Slide(id="s5", title="History", layout="timeline", content=["2001 :: Start"]),
        ]
    )


class TestFieldUpdates:
    """Tests for update_field and friends."""

    def test_update_title_replaces_by_id(self):
        session = make_session()
        before = session.slides
        updated = session.update_field("s4", "title", "Key points")
        assert updated.title == "Key points"
        assert session.get("s4").title == "Key points"
        assert session.index_of("s4") == 3
        # other slides are the same objects
        assert session.slides[0] is before[0]

    def test_unmatched_id_is_noop(self):
        session = make_session()
        before = [s.model_dump() for s in session.slides]
        assert session.update_field("missing", "title", "x") is None
        assert [s.model_dump() for s in session.slides] == before

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            make_session().update_field("s1", "id", "other")

    def test_wire_names_accepted(self):
        session = make_session()
        session.update_field("s4", "imagePosition", "bottom")
        session.update_field("s4", "imageUrl", "https://example.com/a.png")
        slide = session.get("s4")
        assert slide.image_position == "bottom"
        assert slide.image_url == "https://example.com/a.png"

    def test_invalid_position_rejected(self):
        with pytest.raises(ValueError):
            make_session().set_image_position("s4", "diagonal")

    def test_clear_image(self):
        session = make_session()
        session.set_image("s4", "data:image/png;base64,AAAA")
        session.set_image("s4", "")
        assert session.get("s4").image_url is None

    def test_change_layout_keeps_content(self):
        session = make_session()
        session.change_layout("s4", "bar-chart")
        slide = session.get("s4")
        assert slide.layout == "bar-chart"
        assert slide.content == ["one", "two"]
        assert decode(slide.layout, slide.content).points == []

    def test_change_layout_unknown_rejected(self):
        with pytest.raises(ValueError):
            make_session().change_layout("s4", "bogus")


class TestStructuredItems:
    """Tests for per-layout structured edits."""

    def test_slot_update(self):
        session = make_session()
        session.update_structured_item("s1", 0, "New subtitle")
        assert session.get("s1").content == ["New subtitle"]

    def test_slot_out_of_range(self):
        session = make_session()
        assert session.update_structured_item("s1", 3, "x") is None
        assert session.get("s1").content == ["Sub"]

    def test_list_item_update_and_remove(self):
        session = make_session()
        session.update_structured_item("s4", 1, "TWO")
        assert session.get("s4").content == ["one", "TWO"]
        session.remove_structured_item("s4", 0)
        assert session.get("s4").content == ["TWO"]

    def test_list_item_add(self):
        session = make_session()
        session.add_structured_item("s4")
        assert session.get("s4").content == ["one", "two", ""]

    def test_timeline_partial_update(self):
        session = make_session()
        session.update_structured_item("s5", 0, {"value": "Founded"})
        assert session.get("s5").content == ["2001 :: Founded"]

    def test_timeline_requires_dict(self):
        with pytest.raises(TypeError):
            make_session().update_structured_item("s5", 0, "plain")

    def test_chart_add_default_point(self):
        session = make_session()
        session.add_structured_item("s2")
        points = decode("bar-chart", session.get("s2").content).points
        assert points[-1] == ChartPoint(label="New item", value=10)

    def test_chart_non_numeric_value_becomes_zero(self):
        session = make_session()
        session.update_structured_item("s2", 0, {"value": "lots"})
        points = decode("bar-chart", session.get("s2").content).points
        assert points == [ChartPoint(label="A", value=0)]

    def test_chart_remove(self):
        session = make_session()
        session.remove_structured_item("s2", 0)
        assert decode("bar-chart", session.get("s2").content).points == []

    def test_add_on_slot_layout_is_noop(self):
        session = make_session()
        session.add_structured_item("s1")
        assert session.get("s1").content == ["Sub"]


class TestHierarchyEdits:
    """Tests for hierarchy row edits routed through the session."""

    def names(self, session):
        return [(r.name, r.level) for r in session.hierarchy_rows("s3")]

    def test_rows(self):
        assert self.names(make_session()) == [("Root", 0), ("A", 1), ("B", 1)]

    def test_indent_and_outdent(self):
        session = make_session()
        session.indent_node("s3", 2)
        assert self.names(session) == [("Root", 0), ("A", 1), ("B", 2)]
        tree = decode("hierarchy", session.get("s3").content).root
        assert [c.name for c in tree.children[0].children] == ["B"]
        session.outdent_node("s3", 2)
        assert self.names(session) == [("Root", 0), ("A", 1), ("B", 1)]

    def test_invalid_ops_leave_content(self):
        session = make_session()
        before = session.get("s3").content
        session.indent_node("s3", 0)
        session.outdent_node("s3", 0)
        session.indent_node("s3", 1)
        assert session.get("s3").content == before

    def test_insert_rename_remove(self):
        session = make_session()
        session.insert_node_after("s3", 1)
        session.rename_node("s3", 2, "A2")
        assert self.names(session) == [("Root", 0), ("A", 1), ("A2", 1), ("B", 1)]
        session.remove_node("s3", 0)
        assert session.get("s3").content == []
        assert decode("hierarchy", session.get("s3").content).root is None

    def test_structured_item_routes_to_rename(self):
        session = make_session()
        session.update_structured_item("s3", 1, "Alpha")
        assert self.names(session)[1] == ("Alpha", 1)

    def test_create_root_on_invalid_data(self):
        session = make_session()
        session.update_field("s3", "content", ["not json"])
        session.create_hierarchy_root("s3")
        assert self.names(session) == [("Root", 0)]

    def test_hierarchy_ops_ignore_other_layouts(self):
        session = make_session()
        session.indent_node("s4", 1)
        session.create_hierarchy_root("s4")
        assert session.get("s4").content == ["one", "two"]

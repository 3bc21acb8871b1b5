"""Tests for TreeBuilder and streaming XML dispatch into it."""

import dataclasses

import pytest

from pathing.packs.builder import TreeBuilder
from pathing.packs.errors import XmlSyntaxError
from pathing.packs.marker import Behavior, BehaviorKind, MarkerKind, TrailData, Vec3
from pathing.packs.parsers.xml_tags import MarkerTag, PoiTag, TrailTag, parse_xml


def _marker(name: str, **fields) -> MarkerTag:
    return MarkerTag(name=name, label=fields.pop("label", name), **fields)


def _paths(tree) -> list[str]:
    return [node.path for root in tree.roots() for node in tree.recurse(root.id)]


@pytest.fixture
def builder():
    return TreeBuilder("test.taco")


class TestAddMarker:
    """Insertion, nesting, and sibling merging."""

    def test_nesting_follows_the_stack(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("B"))
        builder.up()
        builder.add_marker(_marker("C"))
        tree = builder.build()
        assert _paths(tree) == ["A", "A.B", "A.C"]
        b = tree.find_by_name("A.B")
        assert b.depth == 1
        assert b.parent == tree.find_by_name("A").id

    def test_up_never_pops_past_root(self, builder):
        builder.up()
        builder.up()
        builder.add_marker(_marker("A"))
        builder.up()
        builder.up()
        builder.add_marker(_marker("B"))
        tree = builder.build()
        assert [r.name for r in tree.roots()] == ["A", "B"]

    def test_new_root_clears_stack(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("B"))
        builder.new_root()
        builder.add_marker(_marker("C"))
        tree = builder.build()
        assert [r.name for r in tree.roots()] == ["A", "C"]

    def test_duplicate_sibling_is_merged(self, builder):
        first = builder.add_marker(_marker("A", label="First"))
        builder.up()
        second = builder.add_marker(_marker("A", label="Second", icon_file="a.png"))
        builder.up()
        tree = builder.build()
        assert first == second
        assert len(tree.roots()) == 1
        node = tree.roots()[0]
        assert node.label == "First"
        assert node.icon_file == "a.png"

    def test_duplicate_never_overwrites_set_fields(self, builder):
        builder.add_marker(_marker("A", icon_file="first.png"))
        builder.up()
        builder.add_marker(_marker("A", icon_file="second.png"))
        tree = builder.build()
        assert tree.roots()[0].icon_file == "first.png"

    def test_merged_node_receives_new_children(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("B"))
        builder.new_root()
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("C"))
        tree = builder.build()
        assert _paths(tree) == ["A", "A.B", "A.C"]

    def test_same_name_under_different_parents(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("X"))
        builder.new_root()
        builder.add_marker(_marker("B"))
        builder.add_marker(_marker("X"))
        tree = builder.build()
        assert tree.find_by_name("A.X").id != tree.find_by_name("B.X").id


class TestInheritance:
    """Unset fields copy from the parent once, at insertion."""

    def test_child_inherits_unset_fields(self, builder):
        builder.add_marker(_marker(
            "A",
            behavior=Behavior(BehaviorKind.REAPPEAR_DAILY),
            tip_name="Tip",
            icon_file="a.png",
            texture="t.png",
            fade_far=500.0,
        ))
        builder.add_marker(_marker("B"))
        tree = builder.build()
        b = tree.find_by_name("A.B")
        assert b.behavior == Behavior(BehaviorKind.REAPPEAR_DAILY)
        assert b.tip_name == "Tip"
        assert b.icon_file == "a.png"
        assert b.texture == "t.png"
        assert b.fade_far == 500.0

    def test_child_keeps_own_fields(self, builder):
        builder.add_marker(_marker("A", icon_file="a.png"))
        builder.add_marker(_marker("B", icon_file="b.png"))
        tree = builder.build()
        assert tree.find_by_name("A.B").icon_file == "b.png"

    def test_achievement_is_not_inherited(self, builder):
        builder.add_marker(_marker("A", achievement_id=7))
        builder.add_marker(_marker("B"))
        tree = builder.build()
        assert tree.find_by_name("A.B").achievement_id is None

    def test_inheritance_is_frozen(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("B"))
        builder.new_root()
        # A gains a texture after B was inserted
        builder.add_marker(_marker("A", texture="late.png"))
        tree = builder.build()
        assert tree.find_by_name("A").texture == "late.png"
        assert tree.find_by_name("A.B").texture is None


class TestDeferredAttachment:
    """POIs and trails resolve in build(), regardless of order."""

    def test_poi_before_target(self, builder):
        builder.add_poi(PoiTag(marker="A.B", map_id=15, position=Vec3(1, 2, 3)))
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("B"))
        tree = builder.build()
        b = tree.find_by_name("A.B")
        assert len(b.pois) == 1
        assert b.pois[0].position == Vec3(1, 2, 3)
        assert b.pois[0].marker == "A.B"
        assert b.map_ids == frozenset({15})

    def test_unresolved_poi_is_dropped(self, builder, log_messages):
        builder.add_marker(_marker("A"))
        builder.add_poi(PoiTag(marker="A.Missing", map_id=15))
        tree = builder.build()
        assert tree.find_by_name("A").pois == ()
        assert any("A.Missing" in m for m in log_messages)

    def test_poi_without_map_id_adds_no_map(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_poi(PoiTag(marker="A"))
        tree = builder.build()
        a = tree.find_by_name("A")
        assert len(a.pois) == 1
        assert a.map_ids == frozenset()

    def test_trail_attached_with_payload_map_id(self, builder):
        builder.add_trail_tag(TrailTag(marker="A", trail_file="a.trl", texture_file="t.png"))
        builder.add_marker(_marker("A"))
        builder.add_trail_data("A.trl", TrailData(1, 20, (Vec3(0, 0, 0), Vec3(1, 1, 1))))
        tree = builder.build()
        a = tree.find_by_name("A")
        assert len(a.routes) == 1
        route = a.routes[0]
        assert route.map_id == 20
        assert route.points == (Vec3(0, 0, 0), Vec3(1, 1, 1))
        assert route.texture_file == "t.png"
        assert route.trail_file == "a.trl"
        assert a.map_ids == frozenset({20})

    def test_trail_texture_falls_back_to_marker(self, builder):
        builder.add_marker(_marker("A", texture="cat.png"))
        builder.add_trail_tag(TrailTag(marker="A", trail_file="a.trl"))
        builder.add_trail_data("a.trl", TrailData(1, 20, ()))
        tree = builder.build()
        assert tree.find_by_name("A").routes[0].texture_file == "cat.png"

    def test_trail_without_texture_is_dropped(self, builder, log_messages):
        builder.add_marker(_marker("A"))
        builder.add_trail_tag(TrailTag(marker="A", trail_file="a.trl"))
        builder.add_trail_data("a.trl", TrailData(1, 20, ()))
        tree = builder.build()
        assert tree.find_by_name("A").routes == ()
        assert log_messages

    def test_trail_without_payload_is_dropped(self, builder, log_messages):
        builder.add_marker(_marker("A"))
        builder.add_trail_tag(TrailTag(marker="A", trail_file="missing.trl", texture_file="t.png"))
        tree = builder.build()
        a = tree.find_by_name("A")
        assert a.routes == ()
        assert a.map_ids == frozenset()
        assert any("missing.trl" in m for m in log_messages)

    def test_payload_shared_by_two_trails(self, builder):
        builder.add_marker(_marker("A"))
        builder.up()
        builder.add_marker(_marker("B"))
        builder.add_trail_data("a.trl", TrailData(1, 20, ()))
        builder.add_trail_tag(TrailTag(marker="A", trail_file="a.trl", texture_file="t.png"))
        builder.add_trail_tag(TrailTag(marker="B", trail_file="a.trl", texture_file="t.png"))
        tree = builder.build()
        assert len(tree.find_by_name("A").routes) == 1
        assert len(tree.find_by_name("B").routes) == 1

    def test_duplicate_trail_data_first_wins(self, builder, log_messages):
        builder.add_trail_data("a.trl", TrailData(1, 20, ()))
        builder.add_trail_data("A.TRL", TrailData(1, 99, ()))
        builder.add_marker(_marker("A"))
        builder.add_trail_tag(TrailTag(marker="A", trail_file="a.trl", texture_file="t.png"))
        tree = builder.build()
        assert tree.find_by_name("A").routes[0].map_id == 20
        assert any("already exists" in m for m in log_messages)


class TestBuild:

    def test_build_is_single_use(self, builder):
        builder.build()
        with pytest.raises(RuntimeError):
            builder.build()

    def test_kinds(self, builder):
        builder.add_marker(_marker("A"))
        builder.add_marker(_marker("B"))
        builder.up()
        builder.add_marker(_marker("Sep", is_separator=True))
        tree = builder.build()
        assert tree.find_by_name("A").kind is MarkerKind.CATEGORY
        assert tree.find_by_name("A.B").kind is MarkerKind.LEAF
        assert tree.find_by_name("A.Sep").kind is MarkerKind.SEPARATOR

    def test_nodes_are_frozen(self, builder):
        builder.add_marker(_marker("A"))
        tree = builder.build()
        with pytest.raises(dataclasses.FrozenInstanceError):
            tree.roots()[0].label = "changed"


NESTED_XML = """\
<?xml version="1.0" encoding="utf-8"?>
<OverlayData>
  <MarkerCategory name="A" DisplayName="Alpha" iconFile="Data\\A.png">
    <MarkerCategory name="B" DisplayName="Bravo" />
    <MarkerCategory name="C" DisplayName="Charlie">
      <MarkerCategory name="D" DisplayName="Delta" />
    </MarkerCategory>
  </MarkerCategory>
  <POIs>
    <POI MapID="15" xpos="1" ypos="2" zpos="3" type="A.C.D" />
    <Trail type="A.B" trailData="b.trl" texture="t.png" />
  </POIs>
</OverlayData>
"""


class TestParseXml:
    """Streaming dispatch of XML members into the builder."""

    def test_nesting_and_self_closing(self, builder):
        parse_xml(builder, "a.xml", NESTED_XML.encode())
        builder.add_trail_data("b.trl", TrailData(1, 15, ()))
        tree = builder.build()
        assert _paths(tree) == ["A", "A.B", "A.C", "A.C.D"]
        assert tree.find_by_name("A.C.D").icon_file == "data/a.png"
        assert len(tree.find_by_name("A.C.D").pois) == 1
        assert len(tree.find_by_name("A.B").routes) == 1

    @pytest.mark.parametrize("chunk_size", [1, 7, 64])
    def test_small_chunks_give_same_tree(self, builder, chunk_size):
        parse_xml(builder, "a.xml", NESTED_XML.encode(), chunk_size=chunk_size)
        tree = builder.build()
        assert _paths(tree) == ["A", "A.B", "A.C", "A.C.D"]

    def test_members_merge_as_siblings(self, builder):
        parse_xml(builder, "1.xml", b'<OverlayData><MarkerCategory name="A"/></OverlayData>')
        parse_xml(builder, "2.xml", b'<OverlayData><MarkerCategory name="B"/></OverlayData>')
        tree = builder.build()
        assert [r.name for r in tree.roots()] == ["A", "B"]

    def test_case_insensitive_elements(self, builder):
        xml = b'<overlaydata><MARKERCATEGORY NAME="A"><markercategory name="B"/></MARKERCATEGORY></overlaydata>'
        parse_xml(builder, "a.xml", xml)
        assert _paths(builder.build()) == ["A", "A.B"]

    def test_unknown_element_is_ignored(self, builder, log_messages):
        xml = (
            b'<OverlayData><MarkerCategory name="A">'
            b'<Extra><MarkerCategory name="B"/></Extra>'
            b'</MarkerCategory><MarkerCategory name="C"/></OverlayData>'
        )
        parse_xml(builder, "a.xml", xml)
        assert _paths(builder.build()) == ["A", "A.B", "C"]
        assert any("extra" in m for m in log_messages)

    def test_bad_category_drops_its_subtree(self, builder, log_messages):
        xml = (
            b'<OverlayData>'
            b'<MarkerCategory DisplayName="nameless"><MarkerCategory name="Lost"/></MarkerCategory>'
            b'<MarkerCategory name="Kept"/>'
            b'</OverlayData>'
        )
        parse_xml(builder, "a.xml", xml)
        assert _paths(builder.build()) == ["Kept"]
        assert any("name" in m for m in log_messages)

    def test_bad_poi_does_not_stop_document(self, builder, log_messages):
        xml = (
            b'<OverlayData><MarkerCategory name="A"/><POIs>'
            b'<POI MapID="1"/>'
            b'<POI MapID="2" type="A"/>'
            b'</POIs></OverlayData>'
        )
        parse_xml(builder, "a.xml", xml)
        tree = builder.build()
        assert [p.map_id for p in tree.find_by_name("A").pois] == [2]
        assert log_messages

    def test_behavior_4_without_reset_drops_node(self, builder):
        xml = (
            b'<OverlayData><MarkerCategory name="Timed" behavior="4"/>'
            b'<MarkerCategory name="Ok" behavior="4" resetLength="60"/></OverlayData>'
        )
        parse_xml(builder, "a.xml", xml)
        tree = builder.build()
        assert tree.find_by_name("Timed") is None
        assert tree.find_by_name("Ok").behavior.reset_length == 60.0

    def test_malformed_xml_keeps_earlier_elements(self, builder):
        xml = b'<OverlayData><MarkerCategory name="X"/><MarkerCategory name="Y"></Oops>'
        with pytest.raises(XmlSyntaxError):
            parse_xml(builder, "bad.xml", xml)
        parse_xml(builder, "good.xml", b'<OverlayData><MarkerCategory name="Z"/></OverlayData>')
        tree = builder.build()
        assert [r.name for r in tree.roots()] == ["X", "Y", "Z"]

    def test_empty_member_is_syntax_error(self, builder):
        with pytest.raises(XmlSyntaxError):
            parse_xml(builder, "empty.xml", b"")

    @pytest.mark.parametrize("encoding", ["bogus-enc", "shift_jis"])
    def test_undecodable_encoding_is_syntax_error(self, builder, encoding):
        xml = f'<?xml version="1.0" encoding="{encoding}"?><OverlayData/>'.encode("ascii")
        with pytest.raises(XmlSyntaxError):
            parse_xml(builder, "enc.xml", xml)
        parse_xml(builder, "ok.xml", b'<OverlayData><MarkerCategory name="A"/></OverlayData>')
        assert _paths(builder.build()) == ["A"]

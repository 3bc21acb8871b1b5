"""Streaming XML tag dispatch for marker pack documents.

Uses xml.etree.ElementTree.XMLPullParser so each member is consumed as a
sequence of start/end events instead of a materialized document. Every start
event is converted into one of a small set of tags:

    <OverlayData>      -> OverlayDataTag   (starts a new root)
    <MarkerCategory>   -> MarkerTag        (pushed onto the builder stack)
    <POIs>             -> PoisTag          (plain container)
    <POI>              -> PoiTag           (queued until build)
    <Trail>            -> TrailTag         (queued until build)
    anything else      -> UnknownTag       (logged, ignored)

Element and attribute names are matched case-insensitively.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from loguru import logger

from pathing.packs.errors import TagAttributeError, XmlSyntaxError
from pathing.packs.marker import Behavior, Vec3

if TYPE_CHECKING:
    from pathing.packs.builder import TreeBuilder

DEFAULT_CHUNK_SIZE = 64 * 1024

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

@dataclass
class OverlayDataTag:
    pass


@dataclass
class PoisTag:
    pass


@dataclass
class UnknownTag:
    name: str


@dataclass
class MarkerTag:
    """Attributes of a <MarkerCategory> element.

    Only `name` is required. Every other field is None when the attribute is
    absent or could not be coerced, which lets the builder inherit it.
    """

    name: str
    label: str
    is_separator: bool = False
    behavior: Behavior | None = None
    tip_name: str | None = None
    tip_description: str | None = None
    icon_file: str | None = None
    texture: str | None = None
    fade_near: float | None = None
    fade_far: float | None = None
    icon_size: float | None = None
    height_offset: float | None = None
    min_size: float | None = None
    achievement_id: int | None = None
    achievement_bit: int | None = None
    in_game_visible: bool | None = None
    map_visible: bool | None = None
    mini_map_visible: bool | None = None

    @classmethod
    def from_attrs(cls, attrib: dict[str, str]) -> MarkerTag:
        attrs = _lower_keys(attrib)
        name = attrs.get("name") or attrs.get("bh-name")
        if not name:
            raise TagAttributeError("MarkerCategory missing field `name`")
        label = attrs.get("displayname") or attrs.get("bh-displayname") or name

        behavior = None
        code = _optional_int(attrs, "behavior", name)
        if code is not None:
            reset_length = _optional_float(attrs, "resetlength", name)
            behavior = Behavior.from_code(code, reset_length)
            if behavior is None:
                logger.warning(f"Unknown behavior {code} on marker {name}")

        return cls(
            name=name,
            label=label,
            is_separator=bool(_optional_bool(attrs, "isseparator", name)),
            behavior=behavior,
            tip_name=attrs.get("tip-name"),
            tip_description=attrs.get("tip-description"),
            icon_file=_optional_path(attrs, "iconfile"),
            texture=_optional_path(attrs, "texture"),
            fade_near=_optional_float(attrs, "fadenear", name),
            fade_far=_optional_float(attrs, "fadefar", name),
            icon_size=_first_float(attrs, ("iconsize", "bh-iconsize"), name),
            height_offset=_first_float(attrs, ("heightoffset", "bh-heightoffset"), name),
            min_size=_optional_float(attrs, "minsize", name),
            achievement_id=_optional_int(attrs, "achievementid", name),
            achievement_bit=_optional_int(attrs, "achievementbit", name),
            in_game_visible=_first_bool(
                attrs, ("ingamevisibility", "bh-ingamevisibility"), name
            ),
            map_visible=_first_bool(attrs, ("mapvisibility", "bh-mapvisibility"), name),
            mini_map_visible=_first_bool(
                attrs, ("minimapvisibility", "bh-minimapvisibility"), name
            ),
        )


@dataclass
class PoiTag:
    """Attributes of a <POI> element. `marker` comes from the required `type`."""

    marker: str
    map_id: int | None = None
    position: Vec3 | None = None
    icon_file: str | None = None
    guid: str | None = None

    @classmethod
    def from_attrs(cls, attrib: dict[str, str]) -> PoiTag:
        attrs = _lower_keys(attrib)
        marker = attrs.get("type")
        if not marker:
            raise TagAttributeError("POI missing field `type`")

        coords = [_optional_float(attrs, key, marker) for key in ("xpos", "ypos", "zpos")]
        present = sum(1 for c in coords if c is not None)
        position = None
        if present == 3:
            position = Vec3(*coords)
        elif present:
            logger.warning(f"POI has an invalid position: {marker}")

        return cls(
            marker=marker,
            map_id=_optional_int(attrs, "mapid", marker),
            position=position,
            icon_file=_optional_path(attrs, "iconfile"),
            guid=attrs.get("guid"),
        )


@dataclass
class TrailTag:
    """Attributes of a <Trail> element."""

    marker: str
    trail_file: str
    texture_file: str | None = None

    @classmethod
    def from_attrs(cls, attrib: dict[str, str]) -> TrailTag:
        attrs = _lower_keys(attrib)
        marker = attrs.get("type")
        if not marker:
            raise TagAttributeError("Trail missing field `type`")
        trail_file = _optional_path(attrs, "traildata")
        if not trail_file:
            raise TagAttributeError(f"Trail {marker} missing field `trailData`")
        return cls(
            marker=marker,
            trail_file=trail_file,
            texture_file=_optional_path(attrs, "texture"),
        )


Tag = Union[OverlayDataTag, MarkerTag, PoisTag, PoiTag, TrailTag, UnknownTag]


def tag_from_element(name: str, attrib: dict[str, str]) -> Tag:
    """Convert an element name and its attributes into a Tag.

    Raises:
        TagAttributeError: A required attribute is missing or invalid.
    """
    local = _local_name(name).lower()
    if local == "overlaydata":
        return OverlayDataTag()
    if local == "markercategory":
        return MarkerTag.from_attrs(attrib)
    if local == "pois":
        return PoisTag()
    if local == "poi":
        return PoiTag.from_attrs(attrib)
    if local == "trail":
        return TrailTag.from_attrs(attrib)
    return UnknownTag(local)


def apply_tag(tag: Tag, builder: TreeBuilder) -> bool:
    """Apply a tag to the builder.

    Returns:
        True if the builder pushed a level that the matching end event
        must pop.
    """
    if isinstance(tag, OverlayDataTag):
        builder.new_root()
    elif isinstance(tag, MarkerTag):
        builder.add_marker(tag)
        return True
    elif isinstance(tag, PoiTag):
        builder.add_poi(tag)
    elif isinstance(tag, TrailTag):
        builder.add_trail_tag(tag)
    elif isinstance(tag, UnknownTag):
        logger.warning(f"Unknown field: {tag.name}")
    return False


# ---------------------------------------------------------------------------
# Streaming dispatch
# ---------------------------------------------------------------------------

# Per-element frame kinds, one per open element.
_PUSHED = "pushed"
_PLAIN = "plain"
_SKIPPED = "skipped"


def parse_xml(
    builder: TreeBuilder,
    filename: str,
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Stream one XML member of a pack into the builder.

    The builder stack is reset before and after the member so top-level
    categories of different members become siblings. Elements that fail
    attribute parsing are dropped together with their subtree.

    Raises:
        XmlSyntaxError: The member is not well-formed or declares an
            encoding the parser cannot read. Everything parsed before the
            error stays in the builder.
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    frames: list[str] = []
    builder.new_root()
    try:
        for offset in range(0, len(data), chunk_size):
            parser.feed(data[offset:offset + chunk_size])
            _drain(parser, builder, filename, frames)
        parser.close()
        _drain(parser, builder, filename, frames)
    except (ET.ParseError, LookupError, ValueError) as e:
        raise XmlSyntaxError(f"Error reading {filename}: {e}") from e
    finally:
        builder.new_root()


def _drain(
    parser: ET.XMLPullParser,
    builder: TreeBuilder,
    filename: str,
    frames: list[str],
) -> None:
    for event, elem in parser.read_events():
        if event == "start":
            frames.append(_start(builder, filename, elem, frames))
        else:
            if frames and frames.pop() == _PUSHED:
                builder.up()
            elem.clear()


def _start(
    builder: TreeBuilder, filename: str, elem: ET.Element, frames: list[str]
) -> str:
    if frames and frames[-1] == _SKIPPED:
        return _SKIPPED
    try:
        tag = tag_from_element(elem.tag, elem.attrib)
    except TagAttributeError as e:
        logger.warning(f"Error parsing tag <{_local_name(elem.tag)}> in file {filename}: {e}")
        return _SKIPPED
    return _PUSHED if apply_tag(tag, builder) else _PLAIN


# ---------------------------------------------------------------------------
# Attribute helpers
# ---------------------------------------------------------------------------

def normalize_path(path: str) -> str:
    """Normalize an in-archive path: forward slashes, no leading `./` or `/`,
    lowercase."""
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/").lower()


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _lower_keys(attrib: dict[str, str]) -> dict[str, str]:
    return {_local_name(k).lower(): v.strip() for k, v in attrib.items()}


def _optional_path(attrs: dict[str, str], key: str) -> str | None:
    value = attrs.get(key)
    if not value:
        return None
    return normalize_path(value)


def _optional_float(attrs: dict[str, str], key: str, owner: str) -> float | None:
    value = attrs.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {key}={value!r} on {owner}")
        return None


def _optional_int(attrs: dict[str, str], key: str, owner: str) -> int | None:
    value = attrs.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid {key}={value!r} on {owner}")
        return None


def _optional_bool(attrs: dict[str, str], key: str, owner: str) -> bool | None:
    value = attrs.get(key)
    if value is None or value == "":
        return None
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    logger.warning(f"Invalid {key}={value!r} on {owner}")
    return None


def _first_float(attrs: dict[str, str], keys: tuple[str, ...], owner: str) -> float | None:
    for key in keys:
        value = _optional_float(attrs, key, owner)
        if value is not None:
            return value
    return None


def _first_bool(attrs: dict[str, str], keys: tuple[str, ...], owner: str) -> bool | None:
    for key in keys:
        value = _optional_bool(attrs, key, owner)
        if value is not None:
            return value
    return None

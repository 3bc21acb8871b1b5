"""Data model for parsed marker packs.

Nodes live in an arena owned by a MarkerTree and refer to each other by
integer NodeId handles. Every value here is immutable once the tree is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import NamedTuple

import numpy as np

from pathing.packs.errors import TagAttributeError

PackId = str
NodeId = int


class Vec3(NamedTuple):
    """A point in game world space."""

    x: float
    y: float
    z: float


class MarkerKind(str, Enum):
    CATEGORY = "category"
    LEAF = "leaf"
    SEPARATOR = "separator"


class BehaviorKind(IntEnum):
    """Visibility/respawn rule codes as they appear in the `behavior` attribute."""

    ALWAYS_VISIBLE = 0
    REAPPEAR_ON_MAP_CHANGE = 1
    REAPPEAR_DAILY = 2
    DISAPPEAR_ON_USE = 3
    REAPPEAR_AFTER_TIME = 4
    REAPPEAR_MAP_RESET = 5
    REAPPEAR_INSTANCE_CHANGE = 6
    REAPPEAR_DAILY_PER_CHARACTER = 7


@dataclass(frozen=True)
class Behavior:
    """A decoded marker behavior.

    Attributes:
        kind: The behavior code.
        reset_length: Seconds until the marker reappears. Only set for
            REAPPEAR_AFTER_TIME.
    """

    kind: BehaviorKind
    reset_length: float | None = None

    @classmethod
    def from_code(cls, code: int, reset_length: float | None = None) -> Behavior | None:
        """Decode a behavior code.

        Returns None for codes outside 0-7.

        Raises:
            TagAttributeError: Code 4 without a reset length.
        """
        try:
            kind = BehaviorKind(code)
        except ValueError:
            return None
        if kind is BehaviorKind.REAPPEAR_AFTER_TIME:
            if reset_length is None:
                raise TagAttributeError("resetLength must be defined to use behavior 4")
            return cls(kind, reset_length)
        return cls(kind)


@dataclass(frozen=True)
class FullMarkerId:
    """Stable address of a marker: the pack it came from plus its dotted path."""

    pack_id: PackId
    path: str

    def contains(self, other: FullMarkerId) -> bool:
        """True when `other` is a descendant of this marker."""
        return (
            self.pack_id == other.pack_id
            and other.path.startswith(self.path + ".")
        )

    def within(self, other: FullMarkerId) -> bool:
        """True when `other` is an ancestor of this marker."""
        return other.contains(self)

    def __str__(self) -> str:
        return f"{self.pack_id}:{self.path}"


@dataclass(frozen=True)
class Poi:
    """A single point of interest attached to a marker.

    Attributes:
        marker: Dotted path of the marker this POI belongs to.
        map_id: Map the POI is shown on, if declared.
        position: World position. Either complete or absent.
        icon_file: Normalized in-archive path overriding the marker icon.
        guid: Opaque identifier from the pack, if any.
    """

    marker: str
    map_id: int | None = None
    position: Vec3 | None = None
    icon_file: str | None = None
    guid: str | None = None


@dataclass(frozen=True)
class TrailData:
    """Decoded contents of a .trl file."""

    version: int
    map_id: int
    points: tuple[Vec3, ...]


@dataclass(frozen=True)
class Route:
    """A trail attached to a marker.

    Attributes:
        map_id: Map the trail belongs to (taken from the trail payload).
        points: Ordered world positions.
        texture_file: Normalized in-archive path of the trail texture.
        trail_file: Normalized in-archive path of the .trl payload.
    """

    map_id: int
    points: tuple[Vec3, ...]
    texture_file: str
    trail_file: str


@dataclass(frozen=True, eq=False)
class ImageHandle:
    """An embedded image decoded from a pack.

    `pixels` is the decoded array (height x width x channels); `data` keeps
    the original encoded bytes for consumers that upload them elsewhere.
    """

    path: str
    width: int
    height: int
    channels: int
    pixels: np.ndarray = field(repr=False)
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class MarkerNode:
    """One category, leaf or separator in a marker tree.

    Attributes:
        id: Arena handle of this node.
        name: Local name (unique among siblings).
        path: Dotted path from the root down to this node.
        label: Display label.
        kind: Category, leaf or separator.
        depth: 0 for roots.
        parent: Handle of the parent, None for roots.
        children: Ordered handles of direct children.
        behavior: Visibility rule, own or inherited.
        tip_name: Tooltip title, own or inherited.
        tip_description: Tooltip body, own or inherited.
        map_ids: Map ids declared by this node's own POIs and routes.
        icon_file: Normalized icon path, own or inherited.
        texture: Normalized default trail texture, own or inherited.
        pois: POIs attached to this node.
        routes: Trails attached to this node.
    """

    id: NodeId
    name: str
    path: str
    label: str
    kind: MarkerKind
    depth: int
    parent: NodeId | None = None
    children: tuple[NodeId, ...] = ()
    behavior: Behavior | None = None
    tip_name: str | None = None
    tip_description: str | None = None
    map_ids: frozenset[int] = frozenset()
    icon_file: str | None = None
    texture: str | None = None
    pois: tuple[Poi, ...] = ()
    routes: tuple[Route, ...] = ()
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

    @property
    def is_separator(self) -> bool:
        return self.kind is MarkerKind.SEPARATOR

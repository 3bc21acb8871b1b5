"""TreeBuilder — single-pass, single-use construction of a MarkerTree.

The builder mirrors the streaming parser's nesting with a plain parent stack.
Categories are inserted immediately; POIs and trails are queued and only
resolved in build(), once every XML member of the archive has been seen, so
references may point forwards, backwards, or into another member.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType

from loguru import logger

from pathing.packs.errors import UnresolvedReference
from pathing.packs.marker import (
    Behavior,
    ImageHandle,
    MarkerKind,
    MarkerNode,
    NodeId,
    PackId,
    Poi,
    Route,
    TrailData,
)
from pathing.packs.parsers.xml_tags import MarkerTag, PoiTag, TrailTag, normalize_path
from pathing.packs.tree import MarkerTree

# Fields a new node copies from its parent when it leaves them unset.
_INHERITED = (
    "behavior",
    "tip_name",
    "tip_description",
    "icon_file",
    "texture",
    "fade_near",
    "fade_far",
    "icon_size",
    "height_offset",
    "min_size",
    "in_game_visible",
    "map_visible",
    "mini_map_visible",
)

# Fields a duplicate insertion may fill in if the existing node left them unset.
_MERGEABLE = _INHERITED + ("achievement_id", "achievement_bit")


@dataclass
class _Draft:
    """Mutable node used while building; frozen into a MarkerNode by build()."""

    id: NodeId
    name: str
    path: str
    label: str
    is_separator: bool
    depth: int
    parent: NodeId | None
    children: list[NodeId] = field(default_factory=list)
    child_names: dict[str, NodeId] = field(default_factory=dict)
    map_ids: set[int] = field(default_factory=set)
    pois: list[Poi] = field(default_factory=list)
    routes: list[Route] = field(default_factory=list)
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

    def freeze(self) -> MarkerNode:
        if self.is_separator:
            kind = MarkerKind.SEPARATOR
        elif self.children:
            kind = MarkerKind.CATEGORY
        else:
            kind = MarkerKind.LEAF
        extra = {name: getattr(self, name) for name in _MERGEABLE}
        return MarkerNode(
            id=self.id,
            name=self.name,
            path=self.path,
            label=self.label,
            kind=kind,
            depth=self.depth,
            parent=self.parent,
            children=tuple(self.children),
            map_ids=frozenset(self.map_ids),
            pois=tuple(self.pois),
            routes=tuple(self.routes),
            **extra,
        )


class TreeBuilder:
    """Builds the MarkerTree of one pack."""

    def __init__(self, pack_id: PackId) -> None:
        self.pack_id = pack_id
        self._nodes: list[_Draft] = []
        self._roots: list[NodeId] = []
        self._root_names: dict[str, NodeId] = {}
        self._index: dict[str, NodeId] = {}
        self._stack: list[NodeId] = []
        self._pending_pois: list[PoiTag] = []
        self._pending_trails: list[TrailTag] = []
        self._trail_data: dict[str, TrailData] = {}
        self._images: dict[str, ImageHandle] = {}
        self._built = False

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def add_marker(self, tag: MarkerTag) -> NodeId:
        """Insert a category under the current parent and descend into it.

        A sibling with the same name is reused: fields it already has are
        kept, fields it left unset are filled from `tag`.
        """
        parent = self._stack[-1] if self._stack else None
        siblings = self._root_names if parent is None else self._nodes[parent].child_names

        node_id = siblings.get(tag.name)
        if node_id is None:
            node_id = self._create(tag, parent)
            siblings[tag.name] = node_id
        else:
            draft = self._nodes[node_id]
            for name in _MERGEABLE:
                if getattr(draft, name) is None:
                    setattr(draft, name, getattr(tag, name))

        self._stack.append(node_id)
        return node_id

    def _create(self, tag: MarkerTag, parent: NodeId | None) -> NodeId:
        node_id = len(self._nodes)
        values = {name: getattr(tag, name) for name in _MERGEABLE}

        if parent is None:
            path, depth = tag.name, 0
            self._roots.append(node_id)
        else:
            parent_draft = self._nodes[parent]
            path, depth = f"{parent_draft.path}.{tag.name}", parent_draft.depth + 1
            parent_draft.children.append(node_id)
            for name in _INHERITED:
                if values[name] is None:
                    values[name] = getattr(parent_draft, name)

        self._nodes.append(_Draft(
            id=node_id,
            name=tag.name,
            path=path,
            label=tag.label,
            is_separator=tag.is_separator,
            depth=depth,
            parent=parent,
            **values,
        ))
        self._index[path] = node_id
        return node_id

    def up(self) -> None:
        """Leave the current category. Never pops past the pack root."""
        if self._stack:
            self._stack.pop()

    def new_root(self) -> None:
        """Reset nesting so the next category is inserted at the top level."""
        self._stack.clear()

    def add_poi(self, tag: PoiTag) -> None:
        self._pending_pois.append(tag)

    def add_trail_tag(self, tag: TrailTag) -> None:
        self._pending_trails.append(tag)

    def add_trail_data(self, filename: str, data: TrailData) -> None:
        """Register a decoded trail payload under its in-archive path."""
        key = normalize_path(filename)
        if key in self._trail_data:
            logger.warning(f"{self.pack_id}/{filename} already exists!")
            return
        self._trail_data[key] = data

    def add_image(self, filename: str, image: ImageHandle) -> None:
        """Register a decoded image under its in-archive path."""
        key = normalize_path(filename)
        if key in self._images:
            logger.warning(f"{self.pack_id}/{filename} already exists!")
            return
        self._images[key] = image

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> MarkerTree:
        """Resolve queued POIs and trails and return the finished tree.

        Raises:
            RuntimeError: The builder has already been built.
        """
        if self._built:
            raise RuntimeError(f"Builder for {self.pack_id} already built")
        self._built = True
        self._stack.clear()

        for poi in self._pending_pois:
            try:
                self._attach_poi(poi)
            except UnresolvedReference as e:
                logger.warning(f"Dropping POI in {self.pack_id}: {e}")

        for trail in self._pending_trails:
            try:
                self._attach_trail(trail)
            except UnresolvedReference as e:
                logger.warning(f"Dropping trail in {self.pack_id}: {e}")

        nodes = tuple(draft.freeze() for draft in self._nodes)
        return MarkerTree(
            pack_id=self.pack_id,
            nodes=nodes,
            roots=tuple(self._roots),
            images=MappingProxyType(dict(self._images)),
        )

    def _resolve(self, path: str) -> _Draft:
        node_id = self._index.get(path)
        if node_id is None:
            raise UnresolvedReference(f"Marker not found: {path}")
        return self._nodes[node_id]

    def _attach_poi(self, tag: PoiTag) -> None:
        draft = self._resolve(tag.marker)
        draft.pois.append(Poi(
            marker=draft.path,
            map_id=tag.map_id,
            position=tag.position,
            icon_file=tag.icon_file,
            guid=tag.guid,
        ))
        if tag.map_id is not None:
            draft.map_ids.add(tag.map_id)

    def _attach_trail(self, tag: TrailTag) -> None:
        draft = self._resolve(tag.marker)
        data = self._trail_data.get(tag.trail_file)
        if data is None:
            raise UnresolvedReference(
                f"TrailData {tag.trail_file} not found for XML tag {tag.marker}"
            )
        texture = tag.texture_file or draft.texture
        if texture is None:
            raise UnresolvedReference(f"No texture for trail {tag.trail_file} on {tag.marker}")
        draft.routes.append(Route(
            map_id=data.map_id,
            points=data.points,
            texture_file=texture,
            trail_file=tag.trail_file,
        ))
        draft.map_ids.add(data.map_id)

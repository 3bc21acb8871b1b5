"""MarkerTree — the finished, read-only marker hierarchy of one pack.

Nodes are stored in a tuple arena indexed by NodeId. Nothing here mutates
the tree, so a MarkerTree can be shared between threads without locking.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from pathing.packs.marker import FullMarkerId, ImageHandle, MarkerNode, NodeId, PackId
from pathing.packs.parsers.xml_tags import normalize_path


class MarkerTree:
    """Immutable tree of markers with their POIs, routes, and images."""

    def __init__(
        self,
        pack_id: PackId,
        nodes: tuple[MarkerNode, ...],
        roots: tuple[NodeId, ...],
        images: Mapping[str, ImageHandle] | None = None,
    ) -> None:
        self._pack_id = pack_id
        self._nodes = nodes
        self._roots = roots
        self._images = images if images is not None else MappingProxyType({})

    @property
    def pack_id(self) -> PackId:
        return self._pack_id

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"MarkerTree({self._pack_id!r}, nodes={len(self._nodes)}, images={len(self._images)})"

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def get(self, node_id: NodeId) -> MarkerNode | None:
        """Get a node by handle, or None if the handle is not in this tree."""
        if 0 <= node_id < len(self._nodes):
            return self._nodes[node_id]
        return None

    def roots(self) -> list[MarkerNode]:
        """Top-level nodes in insertion order."""
        return [self._nodes[i] for i in self._roots]

    def children(self, node_id: NodeId) -> list[MarkerNode]:
        """Direct children of a node in insertion order.

        Raises:
            KeyError: Unknown node handle.
        """
        return [self._nodes[i] for i in self._require(node_id).children]

    def recurse(self, node_id: NodeId) -> Iterator[MarkerNode]:
        """Pre-order depth-first walk of the subtree rooted at `node_id`.

        The node itself is yielded first. Each call returns a fresh iterator.

        Raises:
            KeyError: Unknown node handle.
        """
        start = self._require(node_id)
        return self._walk(start)

    def _walk(self, start: MarkerNode) -> Iterator[MarkerNode]:
        stack = [start]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(self._nodes[i] for i in reversed(node.children))

    def find_by_name(self, path: str) -> MarkerNode | None:
        """Find a node by dotted path, e.g. "A.B.C".

        Walks from the root matching the first segment, then matches each
        following segment against the current node's children. Returns None
        on the first segment that does not match.
        """
        if not path:
            return None
        first, *rest = path.split(".")
        current = next((n for n in self.roots() if n.name == first), None)
        for segment in rest:
            if current is None:
                return None
            current = next(
                (self._nodes[i] for i in current.children if self._nodes[i].name == segment),
                None,
            )
        return current

    # ------------------------------------------------------------------
    # Map queries
    # ------------------------------------------------------------------

    def contains_map_id(self, node_id: NodeId, map_id: int) -> bool:
        """True if the node or any descendant declares `map_id`.

        Raises:
            KeyError: Unknown node handle.
        """
        return any(map_id in node.map_ids for node in self.recurse(node_id))

    def map_markers(self, map_id: int) -> list[FullMarkerId]:
        """Full ids of every node whose subtree declares `map_id`, pre-order."""
        # Mark every declaring node and its ancestors.
        visible: set[NodeId] = set()
        for node in self._nodes:
            if map_id in node.map_ids:
                current: NodeId | None = node.id
                while current is not None and current not in visible:
                    visible.add(current)
                    current = self._nodes[current].parent
        return [
            self.full_id(node.id)
            for root in self.roots()
            for node in self._walk(root)
            if node.id in visible
        ]

    def full_id(self, node_id: NodeId) -> FullMarkerId:
        """Stable pack-qualified address of a node.

        Raises:
            KeyError: Unknown node handle.
        """
        return FullMarkerId(self._pack_id, self._require(node_id).path)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def get_image(self, path: str) -> ImageHandle | None:
        """Look up an embedded image by in-archive path (case and slash
        insensitive)."""
        return self._images.get(normalize_path(path))

    def images(self) -> Mapping[str, ImageHandle]:
        return self._images

    def _require(self, node_id: NodeId) -> MarkerNode:
        node = self.get(node_id)
        if node is None:
            raise KeyError(f"Node {node_id} not in pack {self._pack_id}")
        return node

"""PackManager — registry of loaded marker packs.

Holds the current {pack_id: MarkerTree} snapshot and replaces it wholesale on
reload. Readers grab the snapshot reference and never observe a partially
loaded set. Reloads are serialized: a reload requested while another is
running waits for it, then runs to completion itself, so the last reload
requested is also the last one to publish.
"""

from __future__ import annotations

import threading
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from loguru import logger

from pathing.packs.archive import load_directory
from pathing.packs.marker import FullMarkerId, MarkerNode, PackId
from pathing.packs.parsers.xml_tags import DEFAULT_CHUNK_SIZE
from pathing.packs.tree import MarkerTree


class PackManager:
    """Loads marker packs from a directory and serves read-only snapshots."""

    def __init__(self, markers_dir: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.markers_dir = Path(markers_dir).expanduser()
        self._chunk_size = chunk_size
        self._packs: Mapping[PackId, MarkerTree] = MappingProxyType({})
        self._reload_lock = threading.Lock()
        self._generation = 0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def reload(self) -> int:
        """Load every pack in the markers directory and publish the result.

        Blocks until any reload already in progress has finished.

        Returns:
            Number of packs loaded.
        """
        with self._reload_lock:
            logger.info(f"Loading marker packs from {self.markers_dir}...")
            packs = load_directory(self.markers_dir, self._chunk_size)
            self._packs = MappingProxyType(packs)
            self._generation += 1
            return len(packs)

    def start_reload(self) -> threading.Thread:
        """Run reload() on a background thread and return the thread."""
        thread = threading.Thread(target=self._reload_logged, name="pack-reload", daemon=True)
        thread.start()
        return thread

    def _reload_logged(self) -> None:
        try:
            self.reload()
        except Exception as e:
            logger.error(f"Error loading marker packs: {e}")

    @property
    def generation(self) -> int:
        """Number of reloads that have published a snapshot."""
        return self._generation

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def packs(self) -> Mapping[PackId, MarkerTree]:
        """The current snapshot. Safe to hold across reloads."""
        return self._packs

    def get_pack(self, pack_id: PackId) -> MarkerTree | None:
        return self._packs.get(pack_id)

    def list_packs(self) -> list[dict]:
        """Summaries of all loaded packs, sorted by pack id."""
        return [
            {
                "id": pack_id,
                "markers": len(tree),
                "roots": [node.path for node in tree.roots()],
                "images": len(tree.images()),
            }
            for pack_id, tree in sorted(self._packs.items())
        ]

    def find(self, full_id: FullMarkerId) -> MarkerNode | None:
        """Resolve a pack-qualified marker id against the current snapshot."""
        tree = self._packs.get(full_id.pack_id)
        if tree is None:
            return None
        return tree.find_by_name(full_id.path)

    def map_markers(self, map_id: int) -> list[FullMarkerId]:
        """Full ids of markers visible on `map_id`, across all packs."""
        packs = self._packs
        return [
            full_id
            for pack_id in sorted(packs)
            for full_id in packs[pack_id].map_markers(map_id)
        ]

"""Marker pack system — parse .taco/.zip packs into read-only marker trees.

A pack bundles XML category/POI/trail definitions, PNG icons, and binary
.trl trails. load_pack() turns one archive into a MarkerTree; PackManager
keeps the trees of a whole directory and swaps them atomically on reload.
"""

from pathing.packs.archive import load_directory, load_pack, open_archive
from pathing.packs.builder import TreeBuilder
from pathing.packs.errors import (
    ArchiveError,
    BinaryFormatError,
    ImageDecodeError,
    PackError,
    TagAttributeError,
    UnresolvedReference,
    XmlSyntaxError,
)
from pathing.packs.manager import PackManager
from pathing.packs.marker import (
    Behavior,
    BehaviorKind,
    FullMarkerId,
    ImageHandle,
    MarkerKind,
    MarkerNode,
    Poi,
    Route,
    TrailData,
    Vec3,
)
from pathing.packs.tree import MarkerTree

__all__ = [
    "ArchiveError",
    "Behavior",
    "BehaviorKind",
    "BinaryFormatError",
    "FullMarkerId",
    "ImageDecodeError",
    "ImageHandle",
    "MarkerKind",
    "MarkerNode",
    "MarkerTree",
    "PackError",
    "PackManager",
    "Poi",
    "Route",
    "TagAttributeError",
    "TrailData",
    "TreeBuilder",
    "UnresolvedReference",
    "Vec3",
    "XmlSyntaxError",
    "load_directory",
    "load_pack",
    "open_archive",
]

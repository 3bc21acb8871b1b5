"""Read marker pack archives (.taco / .zip) into MarkerTrees.

A pack is a zip container. Each member is routed by extension:

    .xml -> streaming tag dispatch into the TreeBuilder
    .png -> image decode
    .trl -> binary trail decode

A broken member is logged and skipped. A broken container raises
ArchiveError, which the directory loader logs before moving on to the next
pack.
"""

from __future__ import annotations

import os
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from loguru import logger

from pathing.packs.builder import TreeBuilder
from pathing.packs.errors import (
    ArchiveError,
    BinaryFormatError,
    ImageDecodeError,
    XmlSyntaxError,
)
from pathing.packs.marker import PackId
from pathing.packs.parsers.image import load_image
from pathing.packs.parsers.trail import decode_trail
from pathing.packs.parsers.xml_tags import DEFAULT_CHUNK_SIZE, parse_xml
from pathing.packs.tree import MarkerTree

PACK_EXTENSIONS = (".taco", ".zip")


@dataclass(frozen=True)
class PackEntry:
    """One member of a pack archive."""

    name: str
    data: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lower().lstrip(".")


class PackArchive:
    """An open pack container. Iterating yields readable members in order."""

    def __init__(self, path: Path, zf: zipfile.ZipFile) -> None:
        self.path = path
        self._zip = zf

    def __enter__(self) -> PackArchive:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def __iter__(self) -> Iterator[PackEntry]:
        for info in self._zip.infolist():
            if info.is_dir():
                continue
            try:
                data = self._zip.read(info)
            except (
                zipfile.BadZipFile,
                zlib.error,
                EOFError,
                NotImplementedError,
                RuntimeError,
                ValueError,
            ) as e:
                logger.warning(f"Skipping corrupt entry {info.filename} in {self.path.name}: {e}")
                continue
            except OSError as e:
                raise ArchiveError(f"Could not read {self.path}: {e}") from e
            yield PackEntry(info.filename, data)


def open_archive(path: str | Path) -> PackArchive:
    """Open a pack container.

    Raises:
        ArchiveError: The file is missing, unreadable, or not a zip archive.
    """
    path = Path(path)
    try:
        zf = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Could not open pack {path}: {e}") from e
    return PackArchive(path, zf)


def load_pack(path: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> MarkerTree:
    """Parse one pack archive into a MarkerTree.

    The pack id is the archive's file name.

    Raises:
        ArchiveError: The container cannot be read, or one of its entries
            failed in a way no entry-level handler covers.
    """
    path = Path(path)
    builder = TreeBuilder(path.name)
    logger.info(f"Parsing: {builder.pack_id}")

    with open_archive(path) as archive:
        for entry in archive:
            try:
                _route_entry(builder, entry, chunk_size)
            except Exception as e:
                raise ArchiveError(f"Failed to load {entry.name} from {path.name}: {e}") from e

    logger.info(f"Building: {builder.pack_id}")
    tree = builder.build()
    logger.info(f"Finished: {tree.pack_id} ({len(tree)} markers)")
    return tree


def _route_entry(builder: TreeBuilder, entry: PackEntry, chunk_size: int) -> None:
    ext = entry.extension
    if ext == "xml":
        try:
            parse_xml(builder, entry.name, entry.data, chunk_size)
        except XmlSyntaxError as e:
            logger.warning(f"{builder.pack_id}: {e}")
    elif ext == "png":
        try:
            builder.add_image(entry.name, load_image(entry.name, entry.data))
        except ImageDecodeError as e:
            logger.warning(f"{builder.pack_id}: {e}")
    elif ext == "trl":
        try:
            builder.add_trail_data(entry.name, decode_trail(entry.data))
        except BinaryFormatError as e:
            logger.warning(f"Error parsing trail file {builder.pack_id}/{entry.name}: {e}")
    else:
        logger.debug(f"Skipping unknown extension {ext!r}: {entry.name}")


def load_directory(
    path: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> dict[PackId, MarkerTree]:
    """Load every pack in a directory, creating the directory if absent.

    Packs are visited in file-name order. A pack that fails to load is
    logged and left out; the others still load.

    Raises:
        ArchiveError: The directory cannot be created or listed.
    """
    directory = Path(path).expanduser()
    try:
        directory.mkdir(parents=True, exist_ok=True)
        files = sorted(p for p in directory.iterdir() if p.is_file())
    except OSError as e:
        raise ArchiveError(f"Could not read marker directory {directory}: {e}") from e

    packs: dict[PackId, MarkerTree] = {}
    for file in files:
        if file.suffix.lower() not in PACK_EXTENSIONS:
            logger.warning(f"Unknown file extension: {file}")
            continue
        try:
            packs[file.name] = load_pack(file, chunk_size)
        except ArchiveError as e:
            logger.warning(f"Error when reading marker pack {file.name}: {e}")
        except Exception as e:
            logger.warning(f"Failed to build marker pack {file.name}: {e}")

    logger.info(f"Finished loading {len(packs)} pack(s)")
    return packs

"""Decode and encode .trl binary trail files.

Layout (little-endian):
    u32 version
    u32 map id
    repeated: f32 x, f32 y, f32 z   (12 bytes per point, until end of input)
"""

from __future__ import annotations

import struct

import numpy as np

from pathing.packs.errors import BinaryFormatError
from pathing.packs.marker import TrailData, Vec3

_HEADER = struct.Struct("<II")
_RECORD_SIZE = 12
_POINT_DTYPE = np.dtype("<f4")


def decode_trail(data: bytes) -> TrailData:
    """Decode a .trl payload.

    Args:
        data: Raw file contents.

    Returns:
        TrailData with the header fields and the ordered points.

    Raises:
        BinaryFormatError: Header shorter than 8 bytes, or a trailing
            record with fewer than 12 bytes.
    """
    if len(data) < _HEADER.size:
        raise BinaryFormatError(
            f"Trail header truncated: {len(data)} of {_HEADER.size} bytes"
        )
    version, map_id = _HEADER.unpack_from(data, 0)

    body = memoryview(data)[_HEADER.size:]
    remainder = len(body) % _RECORD_SIZE
    if remainder:
        raise BinaryFormatError(
            f"Trail record truncated: {remainder} of {_RECORD_SIZE} bytes"
        )

    coords = np.frombuffer(body, dtype=_POINT_DTYPE).reshape(-1, 3)
    points = tuple(Vec3(float(x), float(y), float(z)) for x, y, z in coords)
    return TrailData(version=version, map_id=map_id, points=points)


def encode_trail(trail: TrailData) -> bytes:
    """Encode a TrailData back into the .trl layout."""
    coords = np.asarray(trail.points, dtype=_POINT_DTYPE).reshape(-1, 3)
    return _HEADER.pack(trail.version, trail.map_id) + coords.tobytes()

"""Decode embedded PNG images into ImageHandle objects with OpenCV."""

from __future__ import annotations

import cv2
import numpy as np

from pathing.packs.errors import ImageDecodeError
from pathing.packs.marker import ImageHandle


def load_image(path: str, data: bytes) -> ImageHandle:
    """Decode image bytes, keeping the alpha channel when present.

    Raises:
        ImageDecodeError: The bytes are empty or not a decodable image.
    """
    if not data:
        raise ImageDecodeError(f"Empty image: {path}")

    arr = np.frombuffer(data, dtype=np.uint8)
    pixels = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if pixels is None:
        raise ImageDecodeError(f"Could not decode image: {path}")

    height, width = pixels.shape[:2]
    channels = 1 if pixels.ndim == 2 else pixels.shape[2]
    pixels.setflags(write=False)
    return ImageHandle(
        path=path,
        width=width,
        height=height,
        channels=channels,
        pixels=pixels,
        data=bytes(data),
    )

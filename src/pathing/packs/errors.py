"""Error taxonomy for marker pack loading.

Each exception is scoped to the smallest unit it invalidates. The component
that owns the next-larger unit catches it, logs a warning, and keeps going.
"""

from __future__ import annotations


class PackError(Exception):
    """Base class for all marker pack errors."""


class ArchiveError(PackError):
    """Raised when a pack container cannot be opened or read. Pack-fatal."""


class XmlSyntaxError(PackError):
    """Raised when an XML member is malformed. Fatal for that member only."""


class TagAttributeError(PackError):
    """Raised when an element is missing a required attribute or carries an
    invalid one. The element is dropped."""


class BinaryFormatError(PackError):
    """Raised when a .trl trail payload is truncated or malformed."""


class ImageDecodeError(PackError):
    """Raised when an embedded image cannot be decoded."""


class UnresolvedReference(PackError):
    """Raised when a POI or trail references an unknown marker or payload."""

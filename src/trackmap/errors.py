"""Central error types used across the package."""

from __future__ import annotations


class TrackMapError(RuntimeError):
    """Base error for track and map failures."""


class TrackFileNotFound(TrackMapError, FileNotFoundError):
    """Raised when a GPX or track database file does not exist."""


class MapFileNotFound(TrackMapError, FileNotFoundError):
    """Raised when an OSM file, map directory or cached map does not exist."""


class BadMagicError(TrackMapError):
    """Raised when a binary file has a wrong signature or format revision."""


class ParseError(TrackMapError):
    """Base error for malformed input documents."""


class GpxParseError(ParseError):
    """Raised when a GPX document is not well-formed or lacks required attributes."""


class OsmParseError(ParseError):
    """Raised when an OSM XML or PBF document cannot be decoded."""


class TruncatedError(TrackMapError):
    """Raised when a binary file ends before all declared data was read."""


class TrackMapIOError(TrackMapError):
    """Raised when the underlying read or write fails."""


class OutOfBoundsError(TrackMapError):
    """Raised when a map file does not cover the requested bounding box."""


class ImportCancelled(TrackMapError):
    """Raised when the progress callback requests a stop."""


__all__ = [
    "TrackMapError",
    "TrackFileNotFound",
    "MapFileNotFound",
    "BadMagicError",
    "ParseError",
    "GpxParseError",
    "OsmParseError",
    "TruncatedError",
    "TrackMapIOError",
    "OutOfBoundsError",
    "ImportCancelled",
]

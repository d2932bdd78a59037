"""TRACKMAP binary codec.

Layout (little-endian):

    b"TRACKMAP\\0"  u8 revision
    f64 min_lat, max_lat, min_lon, max_lon
    u8 flags (bit0 skip_buildings, bit1 skip_labels, bit2 skip_unnecessary_tags)
    vertices, label_vertices, segments, background segments,
    foreground segments, multi-segments

Each collection is a u64 count followed by (u64 local id, fields, tags)
per item. Tags are a u64 count of (key, value) string pairs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from trackmap.binio import BinaryReader, BinaryWriter
from trackmap.errors import MapFileNotFound, TrackMapIOError
from trackmap.models import BoundingBox, MapMultiSegment, MapSegment, MapVertex

if TYPE_CHECKING:
    from trackmap.osm_map import Map

logger = logging.getLogger(__name__)

TRACKMAP_MAGIC = b"TRACKMAP\0"

FLAG_SKIP_BUILDINGS = 1 << 0
FLAG_SKIP_LABELS = 1 << 1
FLAG_SKIP_UNNECESSARY_TAGS = 1 << 2

SEGMENT_IS_AREA = 1 << 0


def import_flags(skip_buildings: bool, skip_labels: bool, skip_unnecessary_tags: bool) -> int:
    """Import options packed into the TRACKMAP flags byte."""
    flags = 0
    if skip_buildings:
        flags |= FLAG_SKIP_BUILDINGS
    if skip_labels:
        flags |= FLAG_SKIP_LABELS
    if skip_unnecessary_tags:
        flags |= FLAG_SKIP_UNNECESSARY_TAGS
    return flags


def _write_tags(writer: BinaryWriter, tags: dict[str, str]) -> None:
    writer.write_u64(len(tags))
    for key, value in tags.items():
        writer.write_str(key)
        writer.write_str(value)


def _read_tags(reader: BinaryReader) -> dict[str, str]:
    tags = {}
    for _ in range(reader.read_u64()):
        key = reader.read_str()
        tags[key] = reader.read_str()
    return tags


def _write_ids(writer: BinaryWriter, ids: list[int]) -> None:
    writer.write_u64(len(ids))
    for local_id in ids:
        writer.write_u64(local_id)


def _read_ids(reader: BinaryReader) -> list[int]:
    return [reader.read_u64() for _ in range(reader.read_u64())]


def _write_vertices(writer: BinaryWriter, vertices: dict[int, MapVertex]) -> None:
    writer.write_u64(len(vertices))
    for local_id, vertex in vertices.items():
        writer.write_u64(local_id)
        writer.write_f64(vertex.latitude)
        writer.write_f64(vertex.longitude)
        _write_tags(writer, vertex.tags)


def _read_vertices(reader: BinaryReader) -> dict[int, MapVertex]:
    vertices = {}
    for _ in range(reader.read_u64()):
        local_id = reader.read_u64()
        latitude = reader.read_f64()
        longitude = reader.read_f64()
        vertices[local_id] = MapVertex(
            longitude=longitude,
            latitude=latitude,
            tags=_read_tags(reader),
            referenced=True,
        )
    return vertices


def _write_segments(writer: BinaryWriter, segments: dict[int, MapSegment]) -> None:
    writer.write_u64(len(segments))
    for local_id, seg in segments.items():
        writer.write_u64(local_id)
        writer.write_u8(SEGMENT_IS_AREA if seg.is_area else 0)
        _write_ids(writer, seg.vertex_ids)
        _write_tags(writer, seg.tags)


def _read_segments(reader: BinaryReader) -> dict[int, MapSegment]:
    segments = {}
    for _ in range(reader.read_u64()):
        local_id = reader.read_u64()
        flags = reader.read_u8()
        vertex_ids = _read_ids(reader)
        segments[local_id] = MapSegment(
            vertex_ids=vertex_ids,
            is_area=bool(flags & SEGMENT_IS_AREA),
            tags=_read_tags(reader),
        )
    return segments


def _write_multisegments(writer: BinaryWriter, multisegments: dict[int, MapMultiSegment]) -> None:
    writer.write_u64(len(multisegments))
    for local_id, multiseg in multisegments.items():
        writer.write_u64(local_id)
        _write_ids(writer, multiseg.vertex_ids)
        _write_ids(writer, multiseg.segment_inner_ids)
        _write_ids(writer, multiseg.segment_ids)
        _write_tags(writer, multiseg.tags)


def _read_multisegments(reader: BinaryReader) -> dict[int, MapMultiSegment]:
    multisegments = {}
    for _ in range(reader.read_u64()):
        local_id = reader.read_u64()
        vertex_ids = _read_ids(reader)
        inner_ids = _read_ids(reader)
        outer_ids = _read_ids(reader)
        multisegments[local_id] = MapMultiSegment(
            vertex_ids=vertex_ids,
            segment_inner_ids=inner_ids,
            segment_ids=outer_ids,
            tags=_read_tags(reader),
        )
    return multisegments


def save_map(m: Map, filepath: str | Path) -> bool:
    filepath = Path(filepath)
    flags = import_flags(m.skip_buildings, m.skip_labels, m.skip_unnecessary_tags)

    try:
        with open(filepath, "wb") as f:
            writer = BinaryWriter(f)
            writer.write_header(TRACKMAP_MAGIC)
            for value in (m.bounds.min_lat, m.bounds.max_lat, m.bounds.min_lon, m.bounds.max_lon):
                writer.write_f64(value)
            writer.write_u8(flags)

            _write_vertices(writer, m.vertices)
            _write_vertices(writer, m.label_vertices)
            _write_segments(writer, m.segments)
            _write_segments(writer, m.segments_background)
            _write_segments(writer, m.segments_foreground)
            _write_multisegments(writer, m.multisegments)
    except OSError as e:
        raise TrackMapIOError(f"Cannot write map {filepath}: {e}") from e

    logger.info("Saved map to %s", filepath)
    return True


def load_map(m: Map, filepath: str | Path) -> bool:
    """Replace the map's data with a TRACKMAP file; the track polyline is kept.

    Raises:
        MapFileNotFound: If the file does not exist.
        BadMagicError: On a wrong signature or revision.
        TruncatedError: If the file ends early.
        TrackMapIOError: On other read failures.
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise MapFileNotFound(f"Map file not found: {filepath}")

    try:
        with open(filepath, "rb") as f:
            reader = BinaryReader(f)
            reader.read_header(TRACKMAP_MAGIC)
            min_lat, max_lat, min_lon, max_lon = (reader.read_f64() for _ in range(4))
            flags = reader.read_u8()

            vertices = _read_vertices(reader)
            label_vertices = _read_vertices(reader)
            segments = _read_segments(reader)
            segments_background = _read_segments(reader)
            segments_foreground = _read_segments(reader)
            multisegments = _read_multisegments(reader)
    except OSError as e:
        raise TrackMapIOError(f"Cannot read map {filepath}: {e}") from e

    m.clear()
    m.file_name = str(filepath)
    m.bounds = BoundingBox(min_lon, max_lon, min_lat, max_lat)
    m.skip_buildings = bool(flags & FLAG_SKIP_BUILDINGS)
    m.skip_labels = bool(flags & FLAG_SKIP_LABELS)
    m.skip_unnecessary_tags = bool(flags & FLAG_SKIP_UNNECESSARY_TAGS)
    m.vertices = vertices
    m.label_vertices = label_vertices
    m.segments = segments
    m.segments_background = segments_background
    m.segments_foreground = segments_foreground
    m.multisegments = multisegments

    logger.debug("Loaded %r", m)
    return True

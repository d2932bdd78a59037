"""Map model and OpenStreetMap importer.

OSM nodes, ways and relations become vertices, segments and
multi-segments keyed by dense local ids. A streaming import crops nodes to
a bounding box and prunes geometry nothing refers to.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Iterable, TextIO

from trackmap import osm_pbf, osm_xml
from trackmap.errors import ImportCancelled, MapFileNotFound, OutOfBoundsError, TrackMapError, TrackMapIOError
from trackmap.map_codec import load_map, save_map
from trackmap.models import BoundingBox, MapMultiSegment, MapSegment, MapVertex, OsmNode, OsmRelation, OsmWay
from trackmap.progress import ProgressCallback, ProgressReporter
from trackmap.renderer import render_svg
from trackmap.styles import has_road_tag, is_styled_tag

logger = logging.getLogger(__name__)

MAP_EXTENSIONS = (osm_xml.XML_EXTENSION, osm_pbf.PBF_EXTENSION)

# tags a label vertex always keeps
LABEL_TAGS = ("place", "name")


def is_pbf_file(filepath: Path) -> bool:
    """Decide between PBF and XML by extension, else by the first byte."""
    suffix = filepath.suffix.lower()
    if suffix == osm_pbf.PBF_EXTENSION:
        return True
    if suffix == osm_xml.XML_EXTENSION:
        return False
    with open(filepath, "rb") as f:
        start = f.read(64).lstrip(b"\xef\xbb\xbf \t\r\n")
    return not start.startswith(b"<")


def _is_building(tags: dict[str, str]) -> bool:
    return "building" in tags or tags.get("leisure") == "swimming_pool"


class _IdMap:
    """OSM id -> local id translation for one object class during one import."""

    def __init__(self):
        self.ids: dict[int, int] = {}

    def add(self, osm_id: int) -> int:
        local_id = len(self.ids)
        self.ids[osm_id] = local_id
        return local_id

    def get(self, osm_id: int) -> int | None:
        return self.ids.get(osm_id)


class Map:
    """Cropped OSM extract with an optional track polyline."""

    def __init__(
        self,
        skip_buildings: bool = True,
        skip_labels: bool = True,
        skip_unnecessary_tags: bool = True,
    ):
        self.skip_buildings = skip_buildings
        self.skip_labels = skip_labels
        self.skip_unnecessary_tags = skip_unnecessary_tags
        self.track: list[MapVertex] = []
        self.clear()

    def clear(self) -> None:
        """Drop all map data; flags and the track polyline are kept."""
        self.vertices: dict[int, MapVertex] = {}
        self.label_vertices: dict[int, MapVertex] = {}
        self.segments: dict[int, MapSegment] = {}
        self.segments_background: dict[int, MapSegment] = {}
        self.segments_foreground: dict[int, MapSegment] = {}
        self.multisegments: dict[int, MapMultiSegment] = {}
        self.bounds = BoundingBox()
        self.file_name = ""
        self.version = ""
        self.creator = ""

    def __repr__(self) -> str:
        return (
            f"Map({self.file_name!r}, vertices={len(self.vertices)}, labels={len(self.label_vertices)}, "
            f"segments={self.segment_count()}, multisegments={len(self.multisegments)})"
        )

    def is_empty(self) -> bool:
        return not (self.vertices or self.label_vertices or self.segment_count() or self.multisegments)

    def segment_count(self) -> int:
        return len(self.segments) + len(self.segments_background) + len(self.segments_foreground)

    def segment_buckets(self) -> tuple[dict[int, MapSegment], ...]:
        return self.segments, self.segments_background, self.segments_foreground

    def find_vertex(self, vertex_id: int) -> MapVertex | None:
        vertex = self.vertices.get(vertex_id)
        if vertex is None:
            vertex = self.label_vertices.get(vertex_id)
        return vertex

    def find_segment(self, segment_id: int) -> MapSegment | None:
        for bucket in self.segment_buckets():
            seg = bucket.get(segment_id)
            if seg is not None:
                return seg
        return None

    def get_bounds(self) -> BoundingBox:
        return self.bounds

    def set_track(self, points: Iterable) -> None:
        """Attach a polyline from anything with longitude/latitude in radians."""
        self.track = [MapVertex(longitude=pt.longitude, latitude=pt.latitude) for pt in points]

    def summary(self) -> str:
        min_lon, max_lon, min_lat, max_lat = (
            self.bounds.to_degrees() if not self.bounds.is_empty() else (0.0, 0.0, 0.0, 0.0)
        )
        return "\n".join([
            f"Map file: {self.file_name}",
            f"Version: {self.version}, creator: {self.creator}",
            f"Longitude range: [ {min_lon:.6f}, {max_lon:.6f} ] deg",
            f"Latitude range: [ {min_lat:.6f}, {max_lat:.6f} ] deg",
            f"Vertices: {len(self.vertices)}, labels: {len(self.label_vertices)}",
            f"Segments: {len(self.segments)}, background: {len(self.segments_background)}, "
            f"foreground: {len(self.segments_foreground)}",
            f"Multi-segments: {len(self.multisegments)}",
        ])

    # Import

    def import_xml(self, filepath: str | Path, progress: ProgressCallback | None = None) -> bool:
        """Import a whole OSM XML file without cropping or pruning."""
        filepath = Path(filepath)
        if not filepath.is_file():
            raise MapFileNotFound(f"OSM file not found: {filepath}")

        header = osm_xml.read_header(filepath)
        self._begin_import(filepath, header.version, header.generator)
        reporter = ProgressReporter(progress, total=filepath.stat().st_size)
        self._visit(osm_xml.iter_elements(filepath, reporter), bbox=None)
        logger.info("Imported %s", self)
        return True

    def import_file(
        self,
        filepath: str | Path,
        bbox: BoundingBox | None = None,
        progress: ProgressCallback | None = None,
        check_bounds: bool = False,
        strict: bool = False,
    ) -> bool:
        """Stream an OSM XML or PBF file, keeping only nodes inside bbox.

        With check_bounds the file is only accepted if one of its header
        boxes contains bbox; otherwise False is returned and the map is left
        untouched, or OutOfBoundsError is raised when strict.

        Raises:
            MapFileNotFound: If the file does not exist.
            OsmParseError: On undecodable input.
            ImportCancelled: If the progress callback returns False.
            TrackMapIOError: On read failures.
        """
        filepath = Path(filepath)
        if not filepath.is_file():
            raise MapFileNotFound(f"OSM file not found: {filepath}")

        reader = osm_pbf if is_pbf_file(filepath) else osm_xml
        try:
            header = reader.read_header(filepath)

            if check_bounds and bbox is not None and bbox.is_valid():
                if not any(box.contains(bbox) for box in header.bounds):
                    if strict:
                        raise OutOfBoundsError(f"{filepath} does not cover the requested area")
                    logger.debug("%s does not cover the requested area", filepath)
                    return False

            self._begin_import(filepath, header.version, header.generator)
            reporter = ProgressReporter(progress, total=filepath.stat().st_size)
            self._visit(reader.iter_elements(filepath, reporter), bbox=bbox)
        except OSError as e:
            raise TrackMapIOError(f"Cannot read {filepath}: {e}") from e

        self.prune()
        logger.info("Imported %s", self)
        return True

    def import_dir(
        self,
        dirname: str | Path,
        bbox: BoundingBox | None = None,
        progress: ProgressCallback | None = None,
    ) -> bool:
        """Import the first map file in a directory that covers bbox.

        A regular file is imported directly without a bounds check.
        """
        dirname = Path(dirname)
        if dirname.is_file():
            return self.import_file(dirname, bbox, progress, check_bounds=False)
        if not dirname.is_dir():
            raise MapFileNotFound(f"Map directory not found: {dirname}")

        candidates = sorted(
            (p for p in dirname.iterdir() if p.is_file() and p.suffix.lower() in MAP_EXTENSIONS),
            key=lambda p: p.name,
        )
        for filepath in candidates:
            try:
                if self.import_file(filepath, bbox, progress, check_bounds=True):
                    return True
            except ImportCancelled:
                raise
            except TrackMapError as e:
                logger.warning("Skipping map file %s: %s", filepath, e)
                self.clear()

        return False

    def _begin_import(self, filepath: Path, version: str, creator: str) -> None:
        self.clear()
        self.file_name = str(filepath)
        self.version = version
        self.creator = creator

    def _visit(self, elements: Iterable, bbox: BoundingBox | None) -> None:
        vertex_ids = _IdMap()
        segment_ids = _IdMap()
        multisegment_ids = _IdMap()

        for elem in elements:
            if not elem.visible:
                continue
            if isinstance(elem, OsmNode):
                self._add_node(elem, bbox, vertex_ids)
            elif isinstance(elem, OsmWay):
                self._add_way(elem, vertex_ids, segment_ids)
            elif isinstance(elem, OsmRelation):
                self._add_relation(elem, vertex_ids, segment_ids, multisegment_ids)

    def _filter_tags(self, tags: dict[str, str], keep: tuple[str, ...] = ()) -> dict[str, str]:
        if not self.skip_unnecessary_tags:
            return dict(tags)
        return {k: v for k, v in tags.items() if k in keep or is_styled_tag(k, v)}

    def _add_node(self, node: OsmNode, bbox: BoundingBox | None, vertex_ids: _IdMap) -> None:
        if bbox is not None and not bbox.contains_point(node.longitude, node.latitude):
            return

        is_label = all(key in node.tags for key in LABEL_TAGS)
        if is_label and self.skip_labels:
            return

        vertex = MapVertex(
            longitude=node.longitude,
            latitude=node.latitude,
            tags=self._filter_tags(node.tags, LABEL_TAGS if is_label else ()),
        )
        local_id = vertex_ids.add(node.id)
        if is_label:
            self.label_vertices[local_id] = vertex
        else:
            self.vertices[local_id] = vertex
        self.bounds.extend(node.longitude, node.latitude)

    def _add_way(self, way: OsmWay, vertex_ids: _IdMap, segment_ids: _IdMap) -> None:
        if self.skip_buildings and _is_building(way.tags):
            return

        ids = []
        for ref in way.refs:
            local_id = vertex_ids.get(ref)
            if local_id is None:
                continue
            ids.append(local_id)
            self.find_vertex(local_id).referenced = True

        if not ids:
            logger.debug("Dropping way %d without vertices", way.id)
            return

        seg = MapSegment(
            vertex_ids=ids,
            is_area=len(ids) >= 2 and ids[0] == ids[-1] and not has_road_tag(way.tags),
            tags=self._filter_tags(way.tags),
        )

        local_id = segment_ids.add(way.id)
        if way.tags.get("natural") == "water":
            self.segments_foreground[local_id] = seg
        elif "landuse" in way.tags or "natural" in way.tags:
            self.segments_background[local_id] = seg
        else:
            self.segments[local_id] = seg

    def _add_relation(
        self,
        rel: OsmRelation,
        vertex_ids: _IdMap,
        segment_ids: _IdMap,
        multisegment_ids: _IdMap,
    ) -> None:
        if self.skip_buildings and _is_building(rel.tags):
            return

        multiseg = MapMultiSegment(tags=self._filter_tags(rel.tags))
        for member in rel.members:
            if member.type == "node":
                local_id = vertex_ids.get(member.ref)
                if local_id is not None:
                    multiseg.vertex_ids.append(local_id)
                    self.find_vertex(local_id).referenced = True
            elif member.type == "way":
                local_id = segment_ids.get(member.ref)
                if local_id is None:
                    continue
                self.find_segment(local_id).referenced = True
                if member.role == "inner":
                    multiseg.segment_inner_ids.append(local_id)
                else:
                    multiseg.segment_ids.append(local_id)

        if not (multiseg.vertex_ids or multiseg.segment_ids or multiseg.segment_inner_ids):
            logger.debug("Dropping relation %d without members", rel.id)
            return
        self.multisegments[multisegment_ids.add(rel.id)] = multiseg

    def prune(self) -> None:
        """Drop unreferenced vertices and untagged segments no relation uses."""
        self.vertices = {vid: v for vid, v in self.vertices.items() if v.referenced}
        for bucket in self.segment_buckets():
            for sid in [sid for sid, seg in bucket.items() if not seg.referenced and not seg.tags]:
                del bucket[sid]

    # Persistence and output

    def save(self, filepath: str | Path) -> bool:
        return save_map(self, filepath)

    def load(self, filepath: str | Path) -> bool:
        return load_map(self, filepath)

    def export_svg(
        self,
        out: str | Path | BinaryIO | TextIO,
        scale: float = 1.0,
        min_lon: float | None = None,
        max_lon: float | None = None,
        min_lat: float | None = None,
        max_lat: float | None = None,
    ) -> bool:
        """Render to SVG; missing bounds default to the map's own extent (radians)."""
        bounds = None
        if any(v is not None for v in (min_lon, max_lon, min_lat, max_lat)):
            own = self.bounds
            bounds = BoundingBox(
                own.min_lon if min_lon is None else min_lon,
                own.max_lon if max_lon is None else max_lon,
                own.min_lat if min_lat is None else min_lat,
                own.max_lat if max_lat is None else max_lat,
            )
        render_svg(self, out, scale=scale, bounds=bounds)
        return True


def track_bounds(points: Iterable) -> BoundingBox:
    """Extent of points with longitude/latitude in radians."""
    bbox = BoundingBox()
    for pt in points:
        bbox.extend(pt.longitude, pt.latitude)
    return bbox

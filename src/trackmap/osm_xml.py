"""Streaming reader for OSM XML files."""

import logging
import math
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator

from trackmap.errors import MapFileNotFound, OsmParseError
from trackmap.models import BoundingBox, OsmHeader, OsmMember, OsmNode, OsmRelation, OsmWay
from trackmap.progress import ProgressReporter

logger = logging.getLogger(__name__)

XML_EXTENSION = ".osm"

OsmElement = OsmNode | OsmWay | OsmRelation


def _tags(elem: ET.Element) -> dict[str, str]:
    tags = {}
    for tag in elem.iter("tag"):
        key = tag.get("k")
        if key is not None:
            tags[key] = tag.get("v", "")
    return tags


def _visible(elem: ET.Element) -> bool:
    return elem.get("visible", "true").lower() != "false"


def _node(elem: ET.Element) -> OsmNode:
    return OsmNode(
        id=int(elem.attrib["id"]),
        longitude=math.radians(float(elem.attrib["lon"])),
        latitude=math.radians(float(elem.attrib["lat"])),
        tags=_tags(elem),
        visible=_visible(elem),
    )


def _way(elem: ET.Element) -> OsmWay:
    refs = [int(nd.attrib["ref"]) for nd in elem.iter("nd")]
    return OsmWay(id=int(elem.attrib["id"]), refs=refs, tags=_tags(elem), visible=_visible(elem))


def _relation(elem: ET.Element) -> OsmRelation:
    members = [
        OsmMember(type=m.attrib["type"], ref=int(m.attrib["ref"]), role=m.get("role", ""))
        for m in elem.iter("member")
    ]
    return OsmRelation(id=int(elem.attrib["id"]), members=members, tags=_tags(elem), visible=_visible(elem))


_BUILDERS = {"node": _node, "way": _way, "relation": _relation}


def _bounds(elem: ET.Element) -> BoundingBox:
    if elem.tag == "bound":
        # osmosis style: box="minlat,minlon,maxlat,maxlon"
        min_lat, min_lon, max_lat, max_lon = (float(v) for v in elem.attrib["box"].split(","))
    else:
        min_lat = float(elem.attrib["minlat"])
        min_lon = float(elem.attrib["minlon"])
        max_lat = float(elem.attrib["maxlat"])
        max_lon = float(elem.attrib["maxlon"])
    return BoundingBox.from_degrees(min_lon, max_lon, min_lat, max_lat)


def read_header(filepath: str | Path) -> OsmHeader:
    """Root attributes and the <bounds>/<bound> boxes preceding the data."""
    header = OsmHeader()
    try:
        with open(filepath, "rb") as f:
            for event, elem in ET.iterparse(f, events=("start", "end")):
                if event == "start":
                    if elem.tag == "osm":
                        header.version = elem.get("version", "")
                        header.generator = elem.get("generator", "")
                    elif elem.tag in _BUILDERS:
                        break
                elif elem.tag in ("bounds", "bound"):
                    try:
                        header.bounds.append(_bounds(elem))
                    except (KeyError, ValueError):
                        logger.debug("Ignoring malformed <%s> in %s", elem.tag, filepath)
    except ET.ParseError as e:
        raise OsmParseError(f"Malformed OSM XML {filepath}: {e}") from e
    return header


def iter_elements(filepath: str | Path, progress: ProgressReporter | None = None) -> Iterator[OsmElement]:
    """Yield nodes, ways and relations in document order.

    Elements lacking a required attribute are skipped. Progress is
    reported with the stream position after each element.

    Raises:
        MapFileNotFound: If the file does not exist.
        OsmParseError: On malformed XML.
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise MapFileNotFound(f"OSM file not found: {filepath}")

    with open(filepath, "rb") as f:
        depth = 0
        root = None
        try:
            for event, elem in ET.iterparse(f, events=("start", "end")):
                if event == "start":
                    if root is None:
                        root = elem
                    depth += 1
                    continue

                depth -= 1
                # top-level elements sit directly under <osm>
                if depth != 1 or elem.tag not in _BUILDERS:
                    continue

                try:
                    element = _BUILDERS[elem.tag](elem)
                except (KeyError, ValueError) as e:
                    logger.debug("Skipping <%s> without valid %s", elem.tag, e)
                    element = None

                root.clear()
                if element is not None:
                    yield element
                if progress is not None:
                    progress.report(f.tell())
        except ET.ParseError as e:
            raise OsmParseError(f"Malformed OSM XML {filepath}: {e}") from e

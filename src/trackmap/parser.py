import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import timedelta, timezone
from pathlib import Path

import gpxpy
import gpxpy.gpx

from trackmap.errors import GpxParseError, TrackFileNotFound
from trackmap.models import TrackPoint
from trackmap.timepoint import EPOCH

logger = logging.getLogger(__name__)

UNKNOWN = "<unknown>"


@dataclass
class GpxDocument:
    points: list[TrackPoint] = field(default_factory=list)
    version: str = UNKNOWN
    creator: str = UNKNOWN


def _root_tag(filepath: Path) -> str:
    """Local name of the document's root element."""
    try:
        with open(filepath, "rb") as f:
            for _event, elem in ET.iterparse(f, events=("start",)):
                return elem.tag.rsplit("}", 1)[-1]
    except ET.ParseError as e:
        raise GpxParseError(f"Malformed GPX file {filepath}: {e}") from e
    raise GpxParseError(f"Empty GPX file {filepath}")


def parse_gpx(filepath: str | Path, assume_dt: float = 1.0) -> GpxDocument | None:
    """Parse a GPX file into track points with radian coordinates.

    Points without a <time> get a synthesized time point, assume_dt seconds
    apart and counted over all points of the file, starting at the epoch.

    Returns:
        The parsed document, or None if the root element is not <gpx>.

    Raises:
        TrackFileNotFound: If the file does not exist.
        GpxParseError: On malformed XML or a track point without lat/lon.
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise TrackFileNotFound(f"GPX file not found: {filepath}")

    root = _root_tag(filepath)
    if root != "gpx":
        logger.debug("Root element of %s is <%s>, not <gpx>", filepath, root)
        return None

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            gpx = gpxpy.parse(f)
    except gpxpy.gpx.GPXException as e:
        raise GpxParseError(f"Invalid GPX file {filepath}: {e}") from e

    doc = GpxDocument(
        version=gpx.version or UNKNOWN,
        creator=gpx.creator or UNKNOWN,
    )

    idx = 0
    for track in gpx.tracks:
        for segment in track.segments:
            for pt in segment.points:
                if pt.time is None:
                    timept = EPOCH + timedelta(seconds=idx * assume_dt)
                elif pt.time.tzinfo is None:
                    timept = pt.time.replace(tzinfo=timezone.utc)
                else:
                    timept = pt.time.astimezone(timezone.utc)

                doc.points.append(
                    TrackPoint(
                        latitude=math.radians(pt.latitude),
                        longitude=math.radians(pt.longitude),
                        elevation=pt.elevation if pt.elevation is not None else 0.0,
                        timept=timept,
                    )
                )
                idx += 1

    logger.debug("Parsed %d points from %s", len(doc.points), filepath)
    return doc

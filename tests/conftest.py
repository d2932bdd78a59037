import math
import os
import struct
import zlib
from datetime import datetime, timedelta, timezone

import pytest

from trackmap import proto
from trackmap.models import TrackPoint

DATA_DIR = os.path.join(os.path.dirname(__file__), "functional", "data")
SAMPLE_GPX_PATH = os.path.join(DATA_DIR, "sample_ride.gpx")
SAMPLE_OSM_PATH = os.path.join(DATA_DIR, "sample_town.osm")

BASE_TIME = datetime(2024, 6, 15, 8, 0, 0, tzinfo=timezone.utc)


def gpx_document(points, version="1.1", creator="trackmap-tests"):
    """GPX text for (lat, lon, ele, time) tuples in degrees; ele/time may be None."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<gpx version="{version}" creator="{creator}" xmlns="http://www.topografix.com/GPX/1/1">',
        "  <trk><trkseg>",
    ]
    for lat, lon, ele, time in points:
        lines.append(f'    <trkpt lat="{lat}" lon="{lon}">')
        if ele is not None:
            lines.append(f"      <ele>{ele}</ele>")
        if time is not None:
            lines.append(f"      <time>{time:%Y-%m-%dT%H:%M:%SZ}</time>")
        lines.append("    </trkpt>")
    lines += ["  </trkseg></trk>", "</gpx>"]
    return "\n".join(lines)


def write_pbf(path, bbox=None, nodes=(), ways=(), relations=(), dense=True, generator="trackmap-tests"):
    """Write a single-block OSM PBF file.

    bbox is (min_lon, max_lon, min_lat, max_lat) in degrees. nodes are
    (id, lat, lon, tags) in degrees, ways (id, refs, tags), relations
    (id, [(type, ref, role)], tags). Tags are dicts.
    """
    strings = [""]

    def sid(s):
        if s not in strings:
            strings.append(s)
        return strings.index(s)

    header = proto.HeaderBlock(writingprogram=generator)
    header.required_features.append("OsmSchema-V0.6")
    if bbox is not None:
        min_lon, max_lon, min_lat, max_lat = bbox
        header.bbox.left = round(min_lon * 1e9)
        header.bbox.right = round(max_lon * 1e9)
        header.bbox.bottom = round(min_lat * 1e9)
        header.bbox.top = round(max_lat * 1e9)

    block = proto.PrimitiveBlock()
    group = block.primitivegroup.add()

    if dense and nodes:
        last_id = last_lat = last_lon = 0
        for node_id, lat, lon, tags in nodes:
            raw_lat, raw_lon = round(lat * 1e7), round(lon * 1e7)
            group.dense.id.append(node_id - last_id)
            group.dense.lat.append(raw_lat - last_lat)
            group.dense.lon.append(raw_lon - last_lon)
            last_id, last_lat, last_lon = node_id, raw_lat, raw_lon
            for key, value in tags.items():
                group.dense.keys_vals.extend([sid(key), sid(value)])
            group.dense.keys_vals.append(0)
    else:
        for node_id, lat, lon, tags in nodes:
            node = group.nodes.add(id=node_id, lat=round(lat * 1e7), lon=round(lon * 1e7))
            for key, value in tags.items():
                node.keys.append(sid(key))
                node.vals.append(sid(value))

    type_codes = {"node": 0, "way": 1, "relation": 2}
    for way_id, refs, tags in ways:
        way = group.ways.add(id=way_id)
        last = 0
        for ref in refs:
            way.refs.append(ref - last)
            last = ref
        for key, value in tags.items():
            way.keys.append(sid(key))
            way.vals.append(sid(value))

    for rel_id, members, tags in relations:
        rel = group.relations.add(id=rel_id)
        last = 0
        for mtype, ref, role in members:
            rel.memids.append(ref - last)
            rel.types.append(type_codes[mtype])
            rel.roles_sid.append(sid(role))
            last = ref
        for key, value in tags.items():
            rel.keys.append(sid(key))
            rel.vals.append(sid(value))

    block.stringtable.s.extend(s.encode("utf-8") for s in strings)

    with open(path, "wb") as f:
        _write_blob(f, "OSMHeader", header.SerializeToString())
        _write_blob(f, "OSMData", block.SerializeToString())
    return path


def _write_blob(f, block_type, data):
    blob = proto.Blob(raw_size=len(data), zlib_data=zlib.compress(data))
    blob_bytes = blob.SerializeToString()
    blob_header = proto.BlobHeader(type=block_type, datasize=len(blob_bytes))
    header_bytes = blob_header.SerializeToString()
    f.write(struct.pack(">I", len(header_bytes)))
    f.write(header_bytes)
    f.write(blob_bytes)


# Unit square [0°, 1°] x [0°, 1°] with a road and a wood
SQUARE_NODES = [
    (1, 0.25, 0.25, {}),
    (2, 0.25, 0.75, {}),
    (3, 0.75, 0.75, {}),
    (4, 0.75, 0.25, {}),
    (5, 0.5, 0.1, {}),
    (6, 0.5, 0.9, {}),
]
SQUARE_WAYS = [
    (10, [1, 2, 3, 4, 1], {"natural": "wood"}),
    (11, [5, 6], {"highway": "primary", "name": "Equator Road"}),
]


@pytest.fixture
def gpx_file(tmp_path):
    """Factory writing GPX points to a file in tmp_path."""
    def write(points, name="track.gpx", **kwargs):
        path = tmp_path / name
        path.write_text(gpx_document(points, **kwargs), encoding="utf-8")
        return path
    return write


@pytest.fixture
def square_pbf(tmp_path):
    """PBF file whose header box covers [0°, 1°] x [0°, 1°]."""
    map_dir = tmp_path / "maps"
    map_dir.mkdir()
    return write_pbf(
        map_dir / "square.osm.pbf",
        bbox=(0.0, 1.0, 0.0, 1.0),
        nodes=SQUARE_NODES,
        ways=SQUARE_WAYS,
    )


@pytest.fixture
def straight_track_points():
    """Two points on the equator, one degree of longitude and 60 s apart."""
    return [
        TrackPoint(latitude=0.0, longitude=0.0, elevation=0.0, timept=BASE_TIME),
        TrackPoint(
            latitude=0.0,
            longitude=math.radians(1.0),
            elevation=0.0,
            timept=BASE_TIME + timedelta(seconds=60),
        ),
    ]


@pytest.fixture
def climb_track_points():
    """Points climbing 2 m per step, ~22 m apart, 10 s apart."""
    return [
        TrackPoint(
            latitude=math.radians(49.003 + 0.0002 * i),
            longitude=math.radians(8.003 + 0.0002 * i),
            elevation=100.0 + 2.0 * i,
            timept=BASE_TIME + timedelta(seconds=10 * i),
        )
        for i in range(20)
    ]


@pytest.fixture
def pbf_writer():
    return write_pbf

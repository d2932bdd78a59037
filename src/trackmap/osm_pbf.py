"""Streaming reader for OSM PBF files.

A PBF file is a sequence of blocks, each a 4-byte big-endian BlobHeader
length, the BlobHeader and a Blob. The first block is an OSMHeader with the
file's bounding box, the rest are OSMData primitive blocks.
"""

import logging
import lzma
import math
import struct
import zlib
from pathlib import Path
from typing import BinaryIO, Iterator

from google.protobuf.message import DecodeError

from trackmap import proto
from trackmap.errors import MapFileNotFound, OsmParseError
from trackmap.models import BoundingBox, OsmHeader, OsmMember, OsmNode, OsmRelation, OsmWay
from trackmap.progress import ProgressReporter

logger = logging.getLogger(__name__)

PBF_EXTENSION = ".pbf"

_MAX_HEADER_SIZE = 64 * 1024
_MAX_BLOB_SIZE = 32 * 1024 * 1024
_NANO = 1e-9

_MEMBER_TYPES = {0: "node", 1: "way", 2: "relation"}

OsmElement = OsmNode | OsmWay | OsmRelation


def _read_block(f: BinaryIO) -> tuple[str, bytes] | None:
    """Read the next (type, decompressed payload), or None at end of file."""
    size_bytes = f.read(4)
    if not size_bytes:
        return None
    if len(size_bytes) != 4:
        raise OsmParseError("Truncated blob header length")

    (header_size,) = struct.unpack(">I", size_bytes)
    if header_size > _MAX_HEADER_SIZE:
        raise OsmParseError(f"Blob header too large: {header_size}")

    try:
        header = proto.BlobHeader()
        header.ParseFromString(_read_exact(f, header_size))
        if header.datasize > _MAX_BLOB_SIZE:
            raise OsmParseError(f"Blob too large: {header.datasize}")
        blob = proto.Blob()
        blob.ParseFromString(_read_exact(f, header.datasize))
    except DecodeError as e:
        raise OsmParseError(f"Invalid PBF block: {e}") from e

    return header.type, _decompress(blob)


def _read_exact(f: BinaryIO, size: int) -> bytes:
    data = f.read(size)
    if len(data) != size:
        raise OsmParseError(f"Truncated PBF block: expected {size} bytes, got {len(data)}")
    return data


def _decompress(blob) -> bytes:
    try:
        if blob.HasField("raw"):
            return blob.raw
        if blob.HasField("zlib_data"):
            return zlib.decompress(blob.zlib_data)
        if blob.HasField("lzma_data"):
            return lzma.decompress(blob.lzma_data)
    except (zlib.error, lzma.LZMAError) as e:
        raise OsmParseError(f"Cannot decompress PBF blob: {e}") from e
    raise OsmParseError("Unsupported PBF blob compression")


def _header_bounds(header) -> list[BoundingBox]:
    if not header.HasField("bbox"):
        return []
    bbox = header.bbox
    return [
        BoundingBox(
            math.radians(bbox.left * _NANO), math.radians(bbox.right * _NANO),
            math.radians(bbox.bottom * _NANO), math.radians(bbox.top * _NANO),
        )
    ]


def read_header(filepath: str | Path) -> OsmHeader:
    """Writing program and bounding box from the OSMHeader block."""
    with open(filepath, "rb") as f:
        while (block := _read_block(f)) is not None:
            block_type, data = block
            if block_type == "OSMHeader":
                header = proto.HeaderBlock()
                try:
                    header.ParseFromString(data)
                except DecodeError as e:
                    raise OsmParseError(f"Invalid OSMHeader in {filepath}: {e}") from e
                return OsmHeader(
                    version="pbf",
                    generator=header.writingprogram,
                    bounds=_header_bounds(header),
                )
    return OsmHeader(version="pbf")


def _tags(keys, vals, strings: list[str]) -> dict[str, str]:
    return {strings[k]: strings[v] for k, v in zip(keys, vals)}


def _is_visible(elem) -> bool:
    return not (elem.HasField("info") and elem.info.HasField("visible") and not elem.info.visible)


class _Block:
    """Decoding context of one primitive block."""

    def __init__(self, block):
        self.block = block
        self.strings = [s.decode("utf-8") for s in block.stringtable.s]
        self.granularity = block.granularity
        self.lat_offset = block.lat_offset
        self.lon_offset = block.lon_offset

    def lat(self, raw: int) -> float:
        return math.radians(_NANO * (self.lat_offset + self.granularity * raw))

    def lon(self, raw: int) -> float:
        return math.radians(_NANO * (self.lon_offset + self.granularity * raw))

    def elements(self) -> Iterator[OsmElement]:
        for group in self.block.primitivegroup:
            yield from self._nodes(group)
            yield from self._dense_nodes(group)
            yield from self._ways(group)
            yield from self._relations(group)

    def _nodes(self, group) -> Iterator[OsmNode]:
        for node in group.nodes:
            yield OsmNode(
                id=node.id,
                longitude=self.lon(node.lon),
                latitude=self.lat(node.lat),
                tags=_tags(node.keys, node.vals, self.strings),
                visible=_is_visible(node),
            )

    def _dense_nodes(self, group) -> Iterator[OsmNode]:
        if not group.HasField("dense"):
            return
        dense = group.dense
        visible = list(dense.denseinfo.visible) if dense.HasField("denseinfo") else []
        keys_vals = dense.keys_vals
        kv_idx = 0

        node_id = lat = lon = 0
        for i, (d_id, d_lat, d_lon) in enumerate(zip(dense.id, dense.lat, dense.lon)):
            node_id += d_id
            lat += d_lat
            lon += d_lon

            tags = {}
            # keys_vals: (key, val)* 0 per node, absent when no node has tags
            while kv_idx < len(keys_vals) and keys_vals[kv_idx] != 0:
                key, val = keys_vals[kv_idx], keys_vals[kv_idx + 1]
                tags[self.strings[key]] = self.strings[val]
                kv_idx += 2
            kv_idx += 1

            yield OsmNode(
                id=node_id,
                longitude=self.lon(lon),
                latitude=self.lat(lat),
                tags=tags,
                visible=visible[i] if i < len(visible) else True,
            )

    def _ways(self, group) -> Iterator[OsmWay]:
        for way in group.ways:
            refs = []
            ref = 0
            for delta in way.refs:
                ref += delta
                refs.append(ref)
            yield OsmWay(
                id=way.id,
                refs=refs,
                tags=_tags(way.keys, way.vals, self.strings),
                visible=_is_visible(way),
            )

    def _relations(self, group) -> Iterator[OsmRelation]:
        for rel in group.relations:
            members = []
            memid = 0
            for role_sid, delta, mtype in zip(rel.roles_sid, rel.memids, rel.types):
                memid += delta
                members.append(
                    OsmMember(
                        type=_MEMBER_TYPES.get(mtype, "relation"),
                        ref=memid,
                        role=self.strings[role_sid],
                    )
                )
            yield OsmRelation(
                id=rel.id,
                members=members,
                tags=_tags(rel.keys, rel.vals, self.strings),
                visible=_is_visible(rel),
            )


def iter_elements(filepath: str | Path, progress: ProgressReporter | None = None) -> Iterator[OsmElement]:
    """Yield nodes, ways and relations in file order.

    Progress is reported with the file offset after each block.

    Raises:
        MapFileNotFound: If the file does not exist.
        OsmParseError: If a block cannot be decoded.
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise MapFileNotFound(f"OSM file not found: {filepath}")

    with open(filepath, "rb") as f:
        while (block := _read_block(f)) is not None:
            block_type, data = block
            if block_type == "OSMData":
                primitive = proto.PrimitiveBlock()
                try:
                    primitive.ParseFromString(data)
                except DecodeError as e:
                    raise OsmParseError(f"Invalid OSMData block in {filepath}: {e}") from e
                try:
                    yield from _Block(primitive).elements()
                except IndexError as e:
                    raise OsmParseError(f"Bad string table reference in {filepath}") from e
            elif block_type != "OSMHeader":
                logger.debug("Skipping unknown PBF block type %r", block_type)

            if progress is not None:
                progress.report(f.tell())

import math
import struct

import pytest

from trackmap import proto
from trackmap.errors import ImportCancelled, MapFileNotFound, OsmParseError
from trackmap.models import OsmNode, OsmRelation, OsmWay
from trackmap.osm_pbf import iter_elements, read_header
from trackmap.progress import ProgressReporter

NODES = [
    (100, 49.001, 8.001, {}),
    (105, 49.002, 8.003, {"place": "village", "name": "Pbfdorf"}),
    (103, 49.0, 8.0, {"natural": "tree"}),
]
WAYS = [(200, [100, 105, 103], {"highway": "track"})]
RELATIONS = [(300, [("way", 200, "outer"), ("node", 103, "")], {"type": "multipolygon"})]


@pytest.fixture
def sample_pbf(tmp_path, pbf_writer):
    return pbf_writer(
        tmp_path / "sample.osm.pbf",
        bbox=(8.0, 8.01, 49.0, 49.01),
        nodes=NODES,
        ways=WAYS,
        relations=RELATIONS,
    )


class TestReadHeader:
    def test_bbox_and_generator(self, sample_pbf):
        header = read_header(sample_pbf)
        assert header.version == "pbf"
        assert header.generator == "trackmap-tests"
        assert header.bounds[0].to_degrees() == pytest.approx((8.0, 8.01, 49.0, 49.01))

    def test_without_bbox(self, tmp_path, pbf_writer):
        path = pbf_writer(tmp_path / "nobox.pbf", nodes=NODES)
        assert read_header(path).bounds == []

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.pbf"
        path.write_bytes(b"")
        assert read_header(path).bounds == []


class TestIterElements:
    @pytest.mark.parametrize("dense", [True, False])
    def test_nodes(self, tmp_path, pbf_writer, dense):
        path = pbf_writer(tmp_path / "nodes.pbf", nodes=NODES, dense=dense)
        nodes = list(iter_elements(path))
        assert [n.id for n in nodes] == [100, 105, 103]
        assert nodes[0].latitude == pytest.approx(math.radians(49.001))
        assert nodes[0].longitude == pytest.approx(math.radians(8.001))
        assert nodes[0].tags == {}
        assert nodes[1].tags == {"place": "village", "name": "Pbfdorf"}
        assert nodes[2].tags == {"natural": "tree"}
        assert all(n.visible for n in nodes)

    def test_ways_and_relations(self, sample_pbf):
        elements = list(iter_elements(sample_pbf))
        ways = [e for e in elements if isinstance(e, OsmWay)]
        rels = [e for e in elements if isinstance(e, OsmRelation)]
        assert ways[0].refs == [100, 105, 103]
        assert ways[0].tags == {"highway": "track"}
        assert [(m.type, m.ref, m.role) for m in rels[0].members] == [("way", 200, "outer"), ("node", 103, "")]
        assert rels[0].tags == {"type": "multipolygon"}

    def test_element_order(self, sample_pbf):
        kinds = [type(e) for e in iter_elements(sample_pbf)]
        assert kinds == [OsmNode, OsmNode, OsmNode, OsmWay, OsmRelation]

    def test_granularity_and_offsets(self, tmp_path):
        block = proto.PrimitiveBlock(granularity=1000, lat_offset=1_000_000_000, lon_offset=-500_000_000)
        block.stringtable.s.append(b"")
        group = block.primitivegroup.add()
        group.nodes.add(id=1, lat=2_000, lon=3_000)
        path = tmp_path / "offsets.pbf"
        _write_data_only(path, block)

        (node,) = list(iter_elements(path))
        # 1e-9 * (offset + granularity * raw)
        assert math.degrees(node.latitude) == pytest.approx(1.0 + 2e-3)
        assert math.degrees(node.longitude) == pytest.approx(-0.5 + 3e-3)

    def test_dense_visibility(self, tmp_path):
        block = proto.PrimitiveBlock()
        block.stringtable.s.append(b"")
        dense = block.primitivegroup.add().dense
        dense.id.extend([1, 1])
        dense.lat.extend([0, 10])
        dense.lon.extend([0, 10])
        dense.denseinfo.visible.extend([True, False])
        path = tmp_path / "hidden.pbf"
        _write_data_only(path, block)

        nodes = list(iter_elements(path))
        assert [(n.id, n.visible) for n in nodes] == [(1, True), (2, False)]

    def test_missing_file(self, tmp_path):
        with pytest.raises(MapFileNotFound):
            list(iter_elements(tmp_path / "missing.pbf"))

    def test_truncated_block(self, sample_pbf):
        data = sample_pbf.read_bytes()
        sample_pbf.write_bytes(data[:-10])
        with pytest.raises(OsmParseError):
            list(iter_elements(sample_pbf))

    def test_garbage(self, tmp_path):
        path = tmp_path / "garbage.pbf"
        path.write_bytes(struct.pack(">I", 5) + b"\xff\xff\xff\xff\xff")
        with pytest.raises(OsmParseError):
            list(iter_elements(path))

    def test_progress_after_each_block(self, sample_pbf):
        offsets = []
        size = sample_pbf.stat().st_size
        reporter = ProgressReporter(lambda offset, total: offsets.append(offset) or True, total=size)
        list(iter_elements(sample_pbf, reporter))
        assert len(offsets) == 2
        assert offsets[-1] == size

    def test_cancel(self, sample_pbf):
        reporter = ProgressReporter(lambda offset, total: False, total=1)
        with pytest.raises(ImportCancelled):
            list(iter_elements(sample_pbf, reporter))


def _write_data_only(path, block):
    data = block.SerializeToString()
    blob = proto.Blob(raw=data, raw_size=len(data)).SerializeToString()
    header = proto.BlobHeader(type="OSMData", datasize=len(blob)).SerializeToString()
    with open(path, "wb") as f:
        f.write(struct.pack(">I", len(header)))
        f.write(header)
        f.write(blob)

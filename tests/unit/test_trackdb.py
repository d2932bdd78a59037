import math
import os
import struct
from datetime import datetime, timedelta, timezone

import pytest

from trackmap.errors import BadMagicError, TrackFileNotFound, TruncatedError
from trackmap.models import TrackPoint
from trackmap.track import Track
from trackmap.trackdb import TRACKDB_MAGIC, TrackDB

SAMPLE_GPX_PATH = os.path.join(
    os.path.dirname(__file__), "..", "functional", "data", "sample_ride.gpx"
)


def _make_track(start, n=5, name="", comment="", lat0=49.0):
    track = Track()
    track.points = [
        TrackPoint(
            latitude=math.radians(lat0 + 0.001 * i),
            longitude=math.radians(8.0 + 0.0005 * i),
            elevation=100.0 + 7.5 * i,
            timept=start + timedelta(seconds=30 * i),
        )
        for i in range(n)
    ]
    track.set_file_name(name)
    track.set_comment(comment)
    track.calculate()
    return track


def _date(year, month, day=1):
    return datetime(year, month, day, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def three_tracks():
    return [
        _make_track(_date(2024, 3, 10), name="march.gpx", comment="third"),
        _make_track(_date(2024, 2, 10), name="february.gpx", comment="second", n=7),
        _make_track(_date(2024, 1, 10), name="january.gpx", comment="first ünïcode", n=4),
    ]


class TestCollection:
    def test_add_track_copies(self, three_tracks):
        db = TrackDB()
        stored = db.add_track(three_tracks[0])
        assert stored is not three_tracks[0]
        assert stored == three_tracks[0]
        three_tracks[0].set_comment("edited")
        assert db.get_track(0).comment == "third"

    def test_emplace_track_stores_object(self, three_tracks):
        db = TrackDB()
        stored = db.emplace_track(three_tracks[0])
        assert stored is three_tracks[0]
        assert db.get_track(0) is three_tracks[0]

    def test_get_track_out_of_range(self, three_tracks):
        db = TrackDB()
        db.add_track(three_tracks[0])
        assert db.get_track(1) is None
        assert db.get_track(-1) is None

    def test_delete_and_clear(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        db.delete_track(1)
        assert [t.comment for t in db] == ["third", "first ünïcode"]
        db.delete_track(10)
        assert db.get_track_count() == 2
        db.clear_tracks()
        assert len(db) == 0

    def test_find_track_by_hash(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        assert db.find_track_by_hash(three_tracks[1].hash).comment == "second"
        assert db.find_track_by_hash(12345) is None

    def test_import_gpx(self):
        db = TrackDB(smooth_rad=3)
        assert db.import_gpx(SAMPLE_GPX_PATH)
        track = db.get_track(0)
        assert len(track.points) == 20
        assert track.smooth_rad == 3

    def test_import_non_gpx(self, tmp_path):
        path = tmp_path / "other.xml"
        path.write_text("<kml/>")
        db = TrackDB()
        assert not db.import_gpx(path)
        assert len(db) == 0


class TestSettings:
    def test_new_tracks_inherit_distance_function(self, three_tracks):
        db = TrackDB()
        db.set_distance_function(2)
        stored = db.add_track(three_tracks[0])
        assert stored.dist_func == 2
        assert db.new_track().dist_func == 2

    def test_settings_propagate(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        db.set_distance_function(3)
        db.set_ascent_epsilon(1.0)
        db.set_smooth_radius(0)
        for track in db:
            assert (track.dist_func, track.asc_eps, track.smooth_rad) == (3, 1.0, 0)

    def test_calculate_fans_out(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        before = [t.get_total_distance() for t in db]
        db.set_distance_function(3)
        db.calculate()
        after = [t.get_total_distance() for t in db]
        assert after != before
        assert after == pytest.approx(before, rel=1e-2)

    def test_invalid_distance_function(self):
        with pytest.raises(ValueError):
            TrackDB().set_distance_function(4)


class TestSort:
    def test_descending_start_time(self, three_tracks):
        db = TrackDB()
        for track in reversed(three_tracks):
            db.add_track(track)
        db.sort_tracks()
        assert [t.comment for t in db] == ["third", "second", "first ünïcode"]

    def test_tracks_without_start_time_last_in_insertion_order(self, three_tracks):
        db = TrackDB()
        empty_a, empty_b = Track(), Track()
        empty_a.set_comment("a")
        empty_b.set_comment("b")
        db.emplace_track(empty_a)
        db.add_track(three_tracks[2])
        db.emplace_track(empty_b)
        db.add_track(three_tracks[0])
        db.sort_tracks()
        assert [t.comment for t in db] == ["third", "first ünïcode", "a", "b"]

    def test_stable_for_equal_start(self):
        start = _date(2024, 5, 5)
        db = TrackDB()
        for comment in ("x", "y", "z"):
            db.add_track(_make_track(start, comment=comment))
        db.sort_tracks()
        assert [t.comment for t in db] == ["x", "y", "z"]


class TestSummaries:
    def test_distance_per_month(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        db.add_track(_make_track(_date(2024, 2, 20), comment="also february"))
        db.emplace_track(Track())

        per_month = db.get_distance_per_month()
        assert list(per_month) == [_date(2024, m).replace(hour=0) for m in (1, 2, 3)]
        february = three_tracks[1].get_total_distance() + db.get_track(3).get_total_distance()
        assert per_month[datetime(2024, 2, 1, tzinfo=timezone.utc)] == pytest.approx(february)

    def test_planar_distance_per_month(self, three_tracks):
        db = TrackDB()
        db.add_track(three_tracks[0])
        (planar,) = db.get_distance_per_month(planar=True).values()
        assert planar == pytest.approx(three_tracks[0].get_total_distance(planar=True))

    def test_distance_per_year(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        db.add_track(_make_track(_date(2023, 12, 30)))
        per_year = db.get_distance_per_year()
        assert list(per_year) == [2023, 2024]
        assert per_year[2024] == pytest.approx(sum(t.get_total_distance() for t in three_tracks))

    def test_totals(self, three_tracks):
        db = TrackDB()
        for track in three_tracks:
            db.add_track(track)
        assert db.get_total_time() == sum(t.get_total_time() for t in three_tracks)
        assert db.get_total_distance() == pytest.approx(sum(t.get_total_distance() for t in three_tracks))


class TestPersistence:
    def _saved(self, tmp_path, tracks):
        db = TrackDB()
        for track in tracks:
            db.add_track(track)
        path = tmp_path / "tracks.trackdb"
        db.save(path)
        return path

    def test_random_access_after_load(self, tmp_path, three_tracks):
        path = self._saved(tmp_path, three_tracks)
        loaded = TrackDB()
        loaded.load(path)
        assert loaded.get_track_count() == 3
        middle = loaded.get_track(1)
        assert middle == three_tracks[1]
        assert middle.hash == three_tracks[1].hash

    def test_round_trip_is_bit_exact(self, tmp_path, three_tracks):
        path = self._saved(tmp_path, three_tracks)
        loaded = TrackDB()
        loaded.load(path)
        for original, restored in zip(three_tracks, loaded):
            assert restored.points == original.points
            assert restored.aggregates() == original.aggregates()
            assert restored.file_name == original.file_name
            assert restored.comment == original.comment

    def test_load_sorts(self, tmp_path, three_tracks):
        path = self._saved(tmp_path, list(reversed(three_tracks)))
        loaded = TrackDB()
        loaded.load(path)
        assert [t.comment for t in loaded] == ["third", "second", "first ünïcode"]

    def test_load_replaces_contents(self, tmp_path, three_tracks):
        path = self._saved(tmp_path, three_tracks[:1])
        db = TrackDB()
        db.add_track(three_tracks[1])
        db.load(path)
        assert [t.comment for t in db] == ["third"]

    def test_empty_database(self, tmp_path):
        path = self._saved(tmp_path, [])
        loaded = TrackDB()
        loaded.load(path)
        assert len(loaded) == 0

    def test_file_layout(self, tmp_path, three_tracks):
        path = self._saved(tmp_path, three_tracks)
        data = path.read_bytes()
        assert data.startswith(TRACKDB_MAGIC + b"\x01")
        (count,) = struct.unpack_from("<Q", data, len(TRACKDB_MAGIC) + 1)
        assert count == 3
        offsets = struct.unpack_from("<3Q", data, len(TRACKDB_MAGIC) + 9)
        for offset, track in zip(offsets, three_tracks):
            (stored_hash,) = struct.unpack_from("<Q", data, offset)
            assert stored_hash == track.hash

    def test_missing_file(self, tmp_path):
        with pytest.raises(TrackFileNotFound):
            TrackDB().load(tmp_path / "missing.trackdb")

    def test_bad_magic(self, tmp_path):
        path = tmp_path / "bad.trackdb"
        path.write_bytes(b"NOTADB\0\0\x01" + b"\0" * 8)
        with pytest.raises(BadMagicError):
            TrackDB().load(path)

    def test_unknown_revision(self, tmp_path):
        path = tmp_path / "future.trackdb"
        path.write_bytes(TRACKDB_MAGIC + b"\x02" + b"\0" * 8)
        with pytest.raises(BadMagicError):
            TrackDB().load(path)

    def test_truncated(self, tmp_path, three_tracks):
        path = self._saved(tmp_path, three_tracks)
        path.write_bytes(path.read_bytes()[:-20])
        db = TrackDB()
        db.add_track(three_tracks[0])
        with pytest.raises(TruncatedError):
            db.load(path)
        assert len(db) == 1

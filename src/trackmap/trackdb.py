"""Ordered track collection and its TRACKDB binary format.

Layout (little-endian):

    b"TRACKDB\\0"  u8 revision  u64 num_tracks  u64 offsets[num_tracks]
    payload per track at its offset:
        u64 hash, u64 num_points,
        per point 10 x f64 (lat, lon, elev, elapsed, elapsed_total,
            planar, planar_total, full, full_total, secs_since_epoch),
        11 x f64 totals and ranges, str file_name, str comment
"""

import copy
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from trackmap.binio import BinaryReader, BinaryWriter
from trackmap.errors import TrackFileNotFound, TrackMapIOError
from trackmap.models import TrackPoint
from trackmap.timepoint import from_epoch_seconds, round_timepoint_to_month, to_epoch_seconds
from trackmap.track import Track

logger = logging.getLogger(__name__)

TRACKDB_MAGIC = b"TRACKDB\0"

_MIN_TIME = datetime.min.replace(tzinfo=timezone.utc)


class TrackDB:
    """Ordered collection of tracks sharing calculation settings."""

    def __init__(
        self,
        dist_func: int = 0,
        asc_eps: float = 5.0,
        smooth_rad: int = 10,
        assume_dt: float = 1.0,
    ):
        self.dist_func = dist_func
        self.asc_eps = asc_eps
        self.smooth_rad = smooth_rad
        self.assume_dt = assume_dt
        self.tracks: list[Track] = []

    def __len__(self) -> int:
        return len(self.tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self.tracks)

    def new_track(self) -> Track:
        """Create an empty track with this database's settings."""
        return Track(
            dist_func=self.dist_func,
            asc_eps=self.asc_eps,
            smooth_rad=self.smooth_rad,
            assume_dt=self.assume_dt,
        )

    def _adopt(self, track: Track) -> None:
        track.set_distance_function(self.dist_func)
        track.set_ascent_epsilon(self.asc_eps)
        track.set_smooth_radius(self.smooth_rad)

    def add_track(self, track: Track) -> Track:
        """Store a copy of the track."""
        stored = copy.deepcopy(track)
        self._adopt(stored)
        self.tracks.append(stored)
        return stored

    def emplace_track(self, track: Track) -> Track:
        """Store the track object itself."""
        self._adopt(track)
        self.tracks.append(track)
        return track

    def import_gpx(self, filepath: str | Path) -> bool:
        """Import a GPX file as a new track; False if it has no <gpx> root."""
        track = self.new_track()
        if not track.import_gpx(filepath):
            return False
        self.emplace_track(track)
        return True

    def delete_track(self, idx: int) -> None:
        if 0 <= idx < len(self.tracks):
            del self.tracks[idx]

    def clear_tracks(self) -> None:
        self.tracks.clear()

    def get_track(self, idx: int) -> Track | None:
        if 0 <= idx < len(self.tracks):
            return self.tracks[idx]
        return None

    def get_track_count(self) -> int:
        return len(self.tracks)

    def find_track_by_hash(self, track_hash: int) -> Track | None:
        for track in self.tracks:
            if track.hash == track_hash:
                return track
        return None

    def sort_tracks(self) -> None:
        """Most recent first; tracks without a start time keep their order at the end."""
        def key(track: Track) -> tuple[bool, datetime]:
            start = track.get_start_time()
            return (start is not None, start or _MIN_TIME)

        self.tracks.sort(key=key, reverse=True)

    def calculate(self) -> None:
        for track in self.tracks:
            track.calculate()

    def set_distance_function(self, dist_func: int) -> None:
        self.dist_func = dist_func
        for track in self.tracks:
            track.set_distance_function(dist_func)

    def set_ascent_epsilon(self, asc_eps: float) -> None:
        self.asc_eps = asc_eps
        for track in self.tracks:
            track.set_ascent_epsilon(asc_eps)

    def set_smooth_radius(self, smooth_rad: int) -> None:
        self.smooth_rad = smooth_rad
        for track in self.tracks:
            track.set_smooth_radius(smooth_rad)

    # Summaries

    def get_total_distance(self, planar: bool = False) -> float:
        return sum(track.get_total_distance(planar) for track in self.tracks)

    def get_total_time(self) -> float:
        return sum(track.get_total_time() for track in self.tracks)

    def get_distance_per_month(self, planar: bool = False) -> "OrderedDict[datetime, float]":
        """Summed distance per month start, in ascending month order."""
        per_month: dict[datetime, float] = {}
        for track in self.tracks:
            start = track.get_start_time()
            if start is None:
                continue
            month = round_timepoint_to_month(start)
            per_month[month] = per_month.get(month, 0.0) + track.get_total_distance(planar)
        return OrderedDict(sorted(per_month.items()))

    def get_distance_per_year(self, planar: bool = False) -> "OrderedDict[int, float]":
        per_year: dict[int, float] = {}
        for month, dist in self.get_distance_per_month(planar).items():
            per_year[month.year] = per_year.get(month.year, 0.0) + dist
        return OrderedDict(sorted(per_year.items()))

    # Persistence

    def save(self, filepath: str | Path) -> bool:
        filepath = Path(filepath)
        try:
            with open(filepath, "wb") as f:
                writer = BinaryWriter(f)
                writer.write_header(TRACKDB_MAGIC)
                writer.write_u64(len(self.tracks))

                table_pos = writer.tell()
                for _ in self.tracks:
                    writer.write_u64(0)

                offsets = []
                for track in self.tracks:
                    offsets.append(writer.tell())
                    _write_track(writer, track)

                writer.seek(table_pos)
                for offset in offsets:
                    writer.write_u64(offset)
        except OSError as e:
            raise TrackMapIOError(f"Cannot write track database {filepath}: {e}") from e

        logger.info("Saved %d tracks to %s", len(self.tracks), filepath)
        return True

    def load(self, filepath: str | Path) -> bool:
        """Replace the contents with the tracks stored in a TRACKDB file.

        Raises:
            TrackFileNotFound: If the file does not exist.
            BadMagicError: On a wrong signature or revision.
            TruncatedError: If the file ends early.
            TrackMapIOError: On other read failures.
        """
        filepath = Path(filepath)
        if not filepath.is_file():
            raise TrackFileNotFound(f"Track database not found: {filepath}")

        tracks = []
        try:
            with open(filepath, "rb") as f:
                reader = BinaryReader(f)
                reader.read_header(TRACKDB_MAGIC)
                num_tracks = reader.read_u64()
                offsets = [reader.read_u64() for _ in range(num_tracks)]

                for offset in offsets:
                    reader.seek(offset)
                    track = self.new_track()
                    _read_track(reader, track)
                    tracks.append(track)
        except OSError as e:
            raise TrackMapIOError(f"Cannot read track database {filepath}: {e}") from e

        self.tracks = tracks
        self.sort_tracks()
        logger.info("Loaded %d tracks from %s", len(self.tracks), filepath)
        return True


def _write_track(writer: BinaryWriter, track: Track) -> None:
    writer.write_u64(track.hash)
    writer.write_u64(len(track.points))
    for pt in track.points:
        for value in (
            pt.latitude, pt.longitude, pt.elevation,
            pt.elapsed, pt.elapsed_total,
            pt.distance_planar, pt.distance_planar_total,
            pt.distance, pt.distance_total,
            to_epoch_seconds(pt.timept),
        ):
            writer.write_f64(value)

    for value in track.aggregates():
        writer.write_f64(value)

    writer.write_str(track.file_name)
    writer.write_str(track.comment)


def _read_track(reader: BinaryReader, track: Track) -> None:
    track.hash = reader.read_u64()
    num_points = reader.read_u64()
    for _ in range(num_points):
        values = [reader.read_f64() for _ in range(10)]
        track.points.append(
            TrackPoint(
                latitude=values[0],
                longitude=values[1],
                elevation=values[2],
                elapsed=values[3],
                elapsed_total=values[4],
                distance_planar=values[5],
                distance_planar_total=values[6],
                distance=values[7],
                distance_total=values[8],
                timept=from_epoch_seconds(values[9]),
            )
        )

    (
        track.total_time, track.total_distance_planar, track.total_distance,
        track.min_lat, track.max_lat, track.min_lon, track.max_lon,
        track.min_elev, track.max_elev, track.ascent, track.descent,
    ) = [reader.read_f64() for _ in range(11)]

    track.file_name = reader.read_str()
    track.comment = reader.read_str()

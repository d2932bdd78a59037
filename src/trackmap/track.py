"""A single GPS track and its derived kinematics."""

import hashlib
import logging
import math
import struct
from datetime import datetime
from pathlib import Path

from trackmap.distance import get_distance_function
from trackmap.formatters import format_distance, get_pace_str, get_time_str, speed_to_pace
from trackmap.models import TrackPoint
from trackmap.parser import UNKNOWN, parse_gpx
from trackmap.smoothing import calculate_ascent_descent, smooth_laplacian
from trackmap.timepoint import from_timepoint, to_epoch_ms

logger = logging.getLogger(__name__)

_HASH_POINT = struct.Struct("<dddq")


class Track:
    """Ordered track points plus aggregates kept in sync by calculate()."""

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

        self.points: list[TrackPoint] = []
        self.file_name = ""
        self.version = UNKNOWN
        self.creator = UNKNOWN
        self.comment = ""
        self._reset_aggregates()

    def _reset_aggregates(self) -> None:
        self.total_time = 0.0
        self.total_distance = 0.0
        self.total_distance_planar = 0.0
        self.min_lat = self.max_lat = 0.0
        self.min_lon = self.max_lon = 0.0
        self.min_elev = self.max_elev = 0.0
        self.ascent = 0.0
        self.descent = 0.0
        self.hash = 0

    def clear(self) -> None:
        self.points = []
        self.file_name = ""
        self.version = UNKNOWN
        self.creator = UNKNOWN
        self.comment = ""
        self._reset_aggregates()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Track):
            return NotImplemented
        return (
            self.points == other.points
            and self.file_name == other.file_name
            and self.comment == other.comment
            and self.hash == other.hash
            and self.aggregates() == other.aggregates()
        )

    def __repr__(self) -> str:
        return f"Track({self.file_name!r}, points={len(self.points)}, hash={self.hash:016x})"

    def import_gpx(self, filepath: str | Path) -> bool:
        """Load a GPX file and calculate all aggregates.

        Returns False and leaves an empty track if the root is not <gpx>.
        """
        self.clear()
        doc = parse_gpx(filepath, assume_dt=self.assume_dt)
        if doc is None:
            return False

        self.points = doc.points
        self.version = doc.version
        self.creator = doc.creator
        self.file_name = str(filepath)
        self.calculate()
        logger.info("Imported %d points from %s", len(self.points), filepath)
        return True

    def calculate(self) -> None:
        """Recompute per-point derivations, totals, ranges, ascent and hash."""
        self._reset_aggregates()
        if not self.points:
            return

        geo_dist = get_distance_function(self.dist_func)

        first = self.points[0]
        self.min_lat = self.max_lat = first.latitude
        self.min_lon = self.max_lon = first.longitude
        self.min_elev = self.max_elev = first.elevation

        prev = None
        for pt in self.points:
            if prev is None:
                pt.elapsed = 0.0
                pt.distance_planar = pt.distance = 0.0
            else:
                pt.elapsed = (pt.timept - prev.timept).total_seconds()
                pt.distance_planar, pt.distance = geo_dist(
                    prev.latitude, pt.latitude,
                    prev.longitude, pt.longitude,
                    prev.elevation, pt.elevation,
                )

            self.total_time += pt.elapsed
            self.total_distance_planar += pt.distance_planar
            self.total_distance += pt.distance
            pt.elapsed_total = self.total_time
            pt.distance_planar_total = self.total_distance_planar
            pt.distance_total = self.total_distance

            self.min_lat = min(self.min_lat, pt.latitude)
            self.max_lat = max(self.max_lat, pt.latitude)
            self.min_lon = min(self.min_lon, pt.longitude)
            self.max_lon = max(self.max_lon, pt.longitude)
            self.min_elev = min(self.min_elev, pt.elevation)
            self.max_elev = max(self.max_elev, pt.elevation)
            prev = pt

        smoothed = smooth_laplacian([pt.elevation for pt in self.points], self.smooth_rad)
        self.ascent, self.descent = calculate_ascent_descent(smoothed, self.asc_eps)
        self.hash = self.calculate_hash()

    def calculate_hash(self) -> int:
        """64-bit content hash over (lat, lon, elev, epoch ms) of every point."""
        h = hashlib.blake2b(digest_size=8)
        for pt in self.points:
            h.update(_HASH_POINT.pack(pt.latitude, pt.longitude, pt.elevation, to_epoch_ms(pt.timept)))
        return int.from_bytes(h.digest(), "little")

    # Setters

    def set_file_name(self, name: str) -> None:
        self.file_name = name

    def set_comment(self, comment: str) -> None:
        self.comment = comment

    def set_distance_function(self, dist_func: int) -> None:
        get_distance_function(dist_func)
        self.dist_func = dist_func

    def set_ascent_epsilon(self, asc_eps: float) -> None:
        self.asc_eps = asc_eps

    def set_smooth_radius(self, smooth_rad: int) -> None:
        self.smooth_rad = smooth_rad

    # Queries

    def get_start_time(self) -> datetime | None:
        return self.points[0].timept if self.points else None

    def get_end_time(self) -> datetime | None:
        return self.points[-1].timept if self.points else None

    def get_total_time(self) -> float:
        return self.total_time

    def get_total_distance(self, planar: bool = False) -> float:
        return self.total_distance_planar if planar else self.total_distance

    def get_latitude_range(self) -> tuple[float, float]:
        return self.min_lat, self.max_lat

    def get_longitude_range(self) -> tuple[float, float]:
        return self.min_lon, self.max_lon

    def get_elevation_range(self) -> tuple[float, float]:
        return self.min_elev, self.max_elev

    def aggregates(self) -> tuple[float, ...]:
        """Totals and ranges in the order they are stored on disk."""
        return (
            self.total_time, self.total_distance_planar, self.total_distance,
            self.min_lat, self.max_lat, self.min_lon, self.max_lon,
            self.min_elev, self.max_elev, self.ascent, self.descent,
        )

    def get_average_speed(self, planar: bool = False) -> float:
        """Average speed in m/s, 0 if no time elapsed."""
        if self.total_time <= 0:
            return 0.0
        return self.get_total_distance(planar) / self.total_time

    def get_average_pace(self, planar: bool = False) -> float:
        """Average pace in min/km, 0 if the track did not move."""
        speed_kmh = self.get_average_speed(planar) * 3.6
        if speed_kmh <= 0:
            return 0.0
        return speed_to_pace(speed_kmh)

    def get_speeds(self, planar: bool = False) -> list[float]:
        """Per-point speed in km/h; points without elapsed time get 0."""
        speeds = []
        for pt in self.points:
            dist = pt.distance_planar if planar else pt.distance
            speeds.append(dist / pt.elapsed * 3.6 if pt.elapsed > 0 else 0.0)
        return speeds

    def get_time_per_distance(self, dist_bin: float, planar: bool = False) -> tuple[list[float], list[float]]:
        """Bin elapsed time into fixed distance buckets.

        Returns:
            (times, dists): seconds spent per bin and the bin end distance,
            dist_bin * (i + 1) for the i-th bin. A trailing partial bin is
            scaled up to a full bin.
        """
        if dist_bin <= 0:
            raise ValueError(f"Distance bin must be positive, got {dist_bin}")

        times: list[float] = []
        dists: list[float] = []
        time = dist = 0.0
        for pt in self.points:
            time += pt.elapsed
            dist += pt.distance_planar if planar else pt.distance

            while dist >= dist_bin:
                time_part = time * dist_bin / dist
                times.append(time_part)
                dists.append(dist_bin * (len(dists) + 1))
                dist -= dist_bin
                time -= time_part

        if time != 0 or dist != 0:
            times.append(time * dist_bin / dist if dist != 0 else time)
            dists.append(dist_bin * (len(dists) + 1))

        return times, dists

    # Output

    def format_table(self) -> str:
        """Point table followed by a summary block."""
        header = f"{'Lat.':<12} {'Lon.':<12} {'h':<9} {'Δt':<9} {'Δs':<10} {'t':<10} {'s':<11} {'Time'}"
        lines = [header]
        for pt in self.points:
            lines.append(
                f"{math.degrees(pt.latitude):<12.6f} {math.degrees(pt.longitude):<12.6f} "
                f"{pt.elevation:<9.1f} {pt.elapsed:<9.1f} {pt.distance:<10.2f} "
                f"{pt.elapsed_total:<10.1f} {pt.distance_total:<11.2f} {from_timepoint(pt.timept)}"
            )

        lines.append("")
        lines.extend(self._summary_lines())
        return "\n".join(lines)

    def _summary_lines(self) -> list[str]:
        t = self.total_time
        lines = [
            f"Number of track points: {len(self.points)}",
            f"Elevation range: [ {self.min_elev:.1f}, {self.max_elev:.1f} ] m",
            f"Height difference: {self.max_elev - self.min_elev:.1f} m",
            f"Ascent: {self.ascent:.1f} m, descent: {self.descent:.1f} m",
            f"Total distance: {self.total_distance:.1f} m = {format_distance(self.total_distance)}",
            f"Total planar distance: {format_distance(self.total_distance_planar)}",
            f"Total time: {get_time_str(t)}",
        ]
        if t > 0:
            for label, planar in (("Speed", False), ("Planar speed", True)):
                v = self.get_average_speed(planar)
                lines.append(f"{label}: {v:.2f} m/s = {v * 3.6:.2f} km/h")
            for label, planar in (("Pace", False), ("Planar pace", True)):
                pace = self.get_average_pace(planar)
                if pace > 0:
                    lines.append(f"{label}: {get_pace_str(pace)}")
        return lines

    def to_html(self) -> str:
        """Short HTML summary list."""
        start, end = self.get_start_time(), self.get_end_time()
        items = [f"Number of track points: {len(self.points)}."]
        if start is not None and end is not None:
            items.append(
                f"Track time: {from_timepoint(start)} - {from_timepoint(end, show_date=False)}"
                f" ({get_time_str(self.total_time)})."
            )
        items.append(
            f"Elevation range: [ {self.min_elev:.1f}, {self.max_elev:.1f} ] m"
            f" (height difference: {self.max_elev - self.min_elev:.1f} m)."
        )
        items.append(
            f"Distance: {format_distance(self.total_distance)}"
            f" (planar: {format_distance(self.total_distance_planar)})."
        )
        pace, pace_planar = self.get_average_pace(), self.get_average_pace(planar=True)
        if pace > 0 and pace_planar > 0:
            items.append(f"Pace: {get_pace_str(pace)} (planar: {get_pace_str(pace_planar)}).")
        body = "".join(f"<li>{item}</li>" for item in items)
        return f"<html><ul>{body}</ul></html>"

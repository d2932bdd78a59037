"""Disk cache of cropped per-track maps.

Each track's map is imported once from a directory of OSM files and stored
as ``<cache_dir>/<track hash>-<import flags>.trackmap``.
"""

import logging
from pathlib import Path
from typing import BinaryIO, TextIO

from trackmap.errors import TrackMapError
from trackmap.map_codec import import_flags
from trackmap.osm_map import Map, track_bounds
from trackmap.progress import ProgressCallback
from trackmap.renderer import RenderPlan, render_svg
from trackmap.track import Track

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".trackmap"


class MapCache:
    """Disk-backed store of track maps keyed by track hash."""

    def __init__(
        self,
        cache_dir: str | Path,
        map_source: str | Path,
        overdraw: float = 0.1,
        skip_buildings: bool = True,
        skip_labels: bool = True,
        skip_unnecessary_tags: bool = True,
    ):
        self.cache_dir = Path(cache_dir)
        self.map_source = Path(map_source)
        self.overdraw = overdraw
        self.skip_buildings = skip_buildings
        self.skip_labels = skip_labels
        self.skip_unnecessary_tags = skip_unnecessary_tags
        self._stats = {"hits": 0, "misses": 0}

    def cache_path(self, track: Track) -> Path:
        """<track hash>-<import flags>.trackmap; maps imported with other flags do not match."""
        flags = import_flags(self.skip_buildings, self.skip_labels, self.skip_unnecessary_tags)
        return self.cache_dir / f"{track.hash:016x}-{flags:x}{CACHE_SUFFIX}"

    def _new_map(self) -> Map:
        return Map(
            skip_buildings=self.skip_buildings,
            skip_labels=self.skip_labels,
            skip_unnecessary_tags=self.skip_unnecessary_tags,
        )

    def get_map(
        self,
        track: Track,
        progress: ProgressCallback | None = None,
        load_cached: bool = True,
    ) -> Map | None:
        """Map around the track with its polyline attached.

        Loads the cached map if present; otherwise imports the track's
        area widened by the overdraw fraction and caches the result.

        Returns:
            The map, or None if no source map covers the track.
        """
        if not track.points:
            return None

        path = self.cache_path(track)
        m = self._new_map()

        if load_cached and path.is_file():
            try:
                m.load(path)
                self._stats["hits"] += 1
                logger.debug("Map cache hit for %s", path.name)
                m.set_track(track.points)
                return m
            except TrackMapError as e:
                logger.warning("Ignoring unreadable cached map %s: %s", path, e)

        self._stats["misses"] += 1
        bbox = track_bounds(track.points).widened(self.overdraw)
        if not m.import_dir(self.map_source, bbox, progress):
            logger.info("No map in %s covers %s", self.map_source, track.file_name or path.stem)
            return None

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        m.save(path)
        m.set_track(track.points)
        return m

    def render(
        self,
        track: Track,
        out: str | Path | BinaryIO | TextIO,
        scale: float = 1.0,
        progress: ProgressCallback | None = None,
    ) -> RenderPlan | None:
        """Render the track over its map, framed with half the overdraw margin."""
        m = self.get_map(track, progress)
        if m is None:
            return None
        bounds = track_bounds(track.points).widened(self.overdraw / 2)
        return render_svg(m, out, scale=scale, bounds=bounds)

    def clear(self) -> int:
        """Remove all cached maps. Returns number of files removed."""
        if not self.cache_dir.is_dir():
            return 0
        count = 0
        for path in self.cache_dir.glob(f"*{CACHE_SUFFIX}"):
            path.unlink()
            count += 1
        self._stats = {"hits": 0, "misses": 0}
        return count

    def stats(self) -> dict:
        """Return cache statistics."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0
        size = len(list(self.cache_dir.glob(f"*{CACHE_SUFFIX}"))) if self.cache_dir.is_dir() else 0
        return {
            "hit_rate": f"{hit_rate:.1f}%",
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "size": size,
        }

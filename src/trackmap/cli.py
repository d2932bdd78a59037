import argparse
import logging
import sys
from pathlib import Path

from trackmap import __version__, __version_date__
from trackmap.config import DEFAULTS, get_setting, load_config
from trackmap.errors import TrackMapError
from trackmap.formatters import format_distance, get_pace_str, get_time_str
from trackmap.map_cache import MapCache
from trackmap.models import BoundingBox
from trackmap.osm_map import Map, is_pbf_file
from trackmap.timepoint import from_timepoint
from trackmap.track import Track
from trackmap.trackdb import TrackDB


def build_parser(config: dict | None = None) -> argparse.ArgumentParser:
    """Build argument parser with defaults from config file."""
    if config is None:
        config = {}

    def get_default(key: str):
        return get_setting(config, key)

    parser = argparse.ArgumentParser(
        prog="trackmap",
        description="Analyze GPX tracks and render them over OpenStreetMap extracts.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__} ({__version_date__})")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log output (-v, -vv)")
    parser.add_argument(
        "--dist-func",
        type=int,
        choices=range(4),
        default=get_default("dist_func"),
        help=f"Distance function: 0 haversine, 1 thomas, 2 vincenty, 3 karney (default: {DEFAULTS['dist_func']})",
    )
    parser.add_argument(
        "--asc-eps",
        type=float,
        default=get_default("asc_eps"),
        help=f"Minimum elevation change in m counted as ascent/descent (default: {DEFAULTS['asc_eps']})",
    )
    parser.add_argument(
        "--smooth-rad",
        type=int,
        default=get_default("smooth_rad"),
        help=f"Elevation smoothing half-window in points, 0 disables (default: {DEFAULTS['smooth_rad']})",
    )
    parser.add_argument(
        "--assume-dt",
        type=float,
        default=get_default("assume_dt"),
        help=f"Seconds between points without timestamps (default: {DEFAULTS['assume_dt']})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    track_parser = subparsers.add_parser("track", help="Print the point table and summary of a GPX file")
    track_parser.add_argument("gpx_file", help="Path to GPX file")
    track_parser.add_argument(
        "--bins",
        type=float,
        default=None,
        metavar="METERS",
        help=f"Also print the pace per distance bin (config default: {DEFAULTS['dist_bin']})",
    )
    track_parser.add_argument("--planar", action="store_true", help="Use planar distances for bins")

    map_parser = subparsers.add_parser("map", help="Import an OSM file and export it as SVG")
    map_parser.add_argument("osm_file", help="Path to OSM XML or PBF file")
    map_parser.add_argument("svg_file", help="Output SVG path")
    map_parser.add_argument(
        "--bbox",
        type=float,
        nargs=4,
        metavar=("MIN_LON", "MAX_LON", "MIN_LAT", "MAX_LAT"),
        help="Crop to this box in degrees",
    )
    map_parser.add_argument(
        "--scale",
        type=float,
        default=get_default("map_scale"),
        help=f"Canvas scale, 1 = 5000 px (default: {DEFAULTS['map_scale']})",
    )
    map_parser.add_argument("--save", metavar="TRACKMAP", help="Also save the imported map in binary form")
    _add_map_flags(map_parser, get_default)

    db_parser = subparsers.add_parser("db", help="Build and query a track database")
    db_sub = db_parser.add_subparsers(dest="db_command", required=True)

    db_import = db_sub.add_parser("import", help="Add GPX files to a database")
    db_import.add_argument("db_file", help="Track database path")
    db_import.add_argument("gpx_files", nargs="+", help="GPX files to add")
    db_import.add_argument("--append", action="store_true", help="Add to an existing database")

    db_list = db_sub.add_parser("list", help="List the tracks of a database")
    db_list.add_argument("db_file", help="Track database path")

    db_months = db_sub.add_parser("months", help="Print distance per month")
    db_months.add_argument("db_file", help="Track database path")
    db_months.add_argument("--planar", action="store_true", help="Use planar distances")

    render_parser = subparsers.add_parser("render", help="Render a stored track over its cached map")
    render_parser.add_argument("db_file", help="Track database path")
    render_parser.add_argument("index", type=int, help="Track index in the database")
    render_parser.add_argument("map_source", help="Directory of OSM files, or a single OSM file")
    render_parser.add_argument("svg_file", help="Output SVG path")
    render_parser.add_argument(
        "--scale",
        type=float,
        default=get_default("map_scale"),
        help=f"Canvas scale, 1 = 5000 px (default: {DEFAULTS['map_scale']})",
    )
    render_parser.add_argument(
        "--overdraw",
        type=float,
        default=get_default("map_overdraw"),
        help=f"Margin around the track as fraction of its extent (default: {DEFAULTS['map_overdraw']})",
    )
    render_parser.add_argument(
        "--cache-dir",
        default=get_default("cache_dir"),
        help="Directory for cached track maps",
    )
    render_parser.add_argument("--no-cache", action="store_true", help="Re-import even if a cached map exists")
    _add_map_flags(render_parser, get_default)

    return parser


def _add_map_flags(parser: argparse.ArgumentParser, get_default) -> None:
    parser.add_argument(
        "--buildings",
        dest="skip_buildings",
        action="store_false",
        default=get_default("skip_buildings"),
        help="Keep buildings and swimming pools",
    )
    parser.add_argument(
        "--labels",
        dest="skip_labels",
        action="store_false",
        default=get_default("skip_labels"),
        help="Keep and draw place labels",
    )
    parser.add_argument(
        "--all-tags",
        dest="skip_unnecessary_tags",
        action="store_false",
        default=get_default("skip_unnecessary_tags"),
        help="Keep tags that do not affect rendering",
    )
    parser.add_argument("--progress", action="store_true", help="Show import progress on stderr")


def _progress_printer(offset: int, total: int) -> bool:
    if total > 0:
        print(f"\rImporting: {offset * 100 / total:5.1f}%", end="", file=sys.stderr, flush=True)
    return True


def _load_db(args) -> TrackDB:
    db = TrackDB(
        dist_func=args.dist_func,
        asc_eps=args.asc_eps,
        smooth_rad=args.smooth_rad,
        assume_dt=args.assume_dt,
    )
    db.load(args.db_file)
    return db


def cmd_track(args, config: dict) -> None:
    track = Track(
        dist_func=args.dist_func,
        asc_eps=args.asc_eps,
        smooth_rad=args.smooth_rad,
        assume_dt=args.assume_dt,
    )
    if not track.import_gpx(args.gpx_file):
        print(f"Error: Not a GPX file: {args.gpx_file}", file=sys.stderr)
        sys.exit(1)

    print(track.format_table())

    if args.bins is not None:
        dist_bin = args.bins if args.bins > 0 else get_setting(config, "dist_bin")
        times, dists = track.get_time_per_distance(dist_bin, planar=args.planar)
        print("")
        print("Pace per distance bin:")
        for time, dist in zip(times, dists):
            pace = (time / 60) / (dist_bin / 1000)
            print(f"  {format_distance(dist):>12}  {get_pace_str(pace)}")


def cmd_map(args) -> None:
    osm_path = Path(args.osm_file)
    m = Map(
        skip_buildings=args.skip_buildings,
        skip_labels=args.skip_labels,
        skip_unnecessary_tags=args.skip_unnecessary_tags,
    )
    progress = _progress_printer if args.progress else None

    if args.bbox is None and osm_path.is_file() and not is_pbf_file(osm_path):
        m.import_xml(osm_path, progress)
    else:
        bbox = BoundingBox.from_degrees(*args.bbox) if args.bbox else None
        m.import_file(osm_path, bbox, progress)
    if args.progress:
        print(file=sys.stderr)

    print(m.summary())
    if args.save:
        m.save(args.save)
        print(f"Saved map: {args.save}")

    m.export_svg(args.svg_file, args.scale)
    print(f"Wrote SVG: {args.svg_file}")


def cmd_db(args) -> None:
    if args.db_command == "import":
        db = TrackDB(
            dist_func=args.dist_func,
            asc_eps=args.asc_eps,
            smooth_rad=args.smooth_rad,
            assume_dt=args.assume_dt,
        )
        if args.append and Path(args.db_file).exists():
            db.load(args.db_file)

        for gpx_file in args.gpx_files:
            if db.import_gpx(gpx_file):
                print(f"Added: {gpx_file}")
            else:
                print(f"Skipped (not a GPX file): {gpx_file}", file=sys.stderr)

        db.sort_tracks()
        db.save(args.db_file)
        print(f"Saved {db.get_track_count()} tracks to {args.db_file}")

    elif args.db_command == "list":
        db = _load_db(args)
        for idx, track in enumerate(db):
            start = track.get_start_time()
            when = from_timepoint(start) if start is not None else "-"
            print(
                f"{idx:4d}  {when:19}  {format_distance(track.get_total_distance()):>10}  "
                f"{get_time_str(track.get_total_time()):>20}  {Path(track.file_name).name}"
            )
        print(f"Total: {format_distance(db.get_total_distance())} in {get_time_str(db.get_total_time())}")

    elif args.db_command == "months":
        db = _load_db(args)
        for month, dist in db.get_distance_per_month(planar=args.planar).items():
            print(f"{month:%Y-%m}  {format_distance(dist):>12}")


def cmd_render(args) -> None:
    db = _load_db(args)
    track = db.get_track(args.index)
    if track is None:
        print(f"Error: No track with index {args.index} ({db.get_track_count()} tracks)", file=sys.stderr)
        sys.exit(1)

    cache = MapCache(
        args.cache_dir,
        args.map_source,
        overdraw=args.overdraw,
        skip_buildings=args.skip_buildings,
        skip_labels=args.skip_labels,
        skip_unnecessary_tags=args.skip_unnecessary_tags,
    )
    if args.no_cache:
        cache_path = cache.cache_path(track)
        if cache_path.exists():
            cache_path.unlink()

    progress = _progress_printer if args.progress else None
    plan = cache.render(track, args.svg_file, args.scale, progress)
    if args.progress:
        print(file=sys.stderr)
    if plan is None:
        print(f"Error: No map in {args.map_source} covers the track", file=sys.stderr)
        sys.exit(1)
    print(f"Wrote SVG: {args.svg_file}")


def main(argv: list[str] | None = None) -> None:
    config = load_config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "track":
            cmd_track(args, config)
        elif args.command == "map":
            cmd_map(args)
        elif args.command == "db":
            cmd_db(args)
        elif args.command == "render":
            cmd_render(args)
    except (TrackMapError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

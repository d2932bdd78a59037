import os
import subprocess
import sys

import pytest

from trackmap import __version__

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")
SAMPLE_GPX_PATH = os.path.join(DATA_DIR, "sample_ride.gpx")
SAMPLE_OSM_PATH = os.path.join(DATA_DIR, "sample_town.osm")


def run_cli(*args, cwd=None):
    env = dict(os.environ, PYTHONIOENCODING="utf-8")
    return subprocess.run(
        [sys.executable, "-m", "trackmap", *map(str, args)],
        capture_output=True,
        text=True,
        encoding="utf-8",
        env=env,
        cwd=cwd,
    )


@pytest.fixture
def ride_db(tmp_path):
    db_path = tmp_path / "rides.trackdb"
    result = run_cli("db", "import", db_path, SAMPLE_GPX_PATH, cwd=tmp_path)
    assert result.returncode == 0, result.stderr
    return db_path


class TestCli:
    def test_no_arguments(self, tmp_path):
        result = run_cli(cwd=tmp_path)
        assert result.returncode != 0

    def test_version(self, tmp_path):
        result = run_cli("--version", cwd=tmp_path)
        assert result.returncode == 0
        assert __version__ in result.stdout


class TestTrackCommand:
    def test_sample_file(self, tmp_path):
        result = run_cli("track", SAMPLE_GPX_PATH, cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        output = result.stdout
        assert "Number of track points: 20" in output
        assert "Elevation range: [ 100.0, 138.0 ] m" in output
        assert "Total time: " in output
        assert "Pace: " in output

    def test_bins(self, tmp_path):
        result = run_cli("track", SAMPLE_GPX_PATH, "--bins", "100", cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Pace per distance bin:" in result.stdout

    def test_distance_function_option(self, tmp_path):
        result = run_cli("--dist-func", "3", "--smooth-rad", "0", "track", SAMPLE_GPX_PATH, cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Number of track points: 20" in result.stdout

    def test_invalid_distance_function(self, tmp_path):
        result = run_cli("--dist-func", "9", "track", SAMPLE_GPX_PATH, cwd=tmp_path)
        assert result.returncode != 0

    def test_missing_file(self, tmp_path):
        result = run_cli("track", tmp_path / "nonexistent.gpx", cwd=tmp_path)
        assert result.returncode == 1
        assert "Error" in result.stderr

    def test_not_a_gpx_file(self, tmp_path):
        path = tmp_path / "notes.xml"
        path.write_text('<?xml version="1.0"?><notes/>')
        result = run_cli("track", path, cwd=tmp_path)
        assert result.returncode == 1
        assert "Not a GPX file" in result.stderr


class TestMapCommand:
    def test_xml_to_svg(self, tmp_path):
        out = tmp_path / "town.svg"
        result = run_cli("map", SAMPLE_OSM_PATH, out, "--scale", "0.05", cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Vertices: 20, labels: 0" in result.stdout
        assert "<svg" in out.read_text()

    def test_bbox_and_save(self, tmp_path):
        out = tmp_path / "town.svg"
        saved = tmp_path / "town.trackmap"
        result = run_cli(
            "map", SAMPLE_OSM_PATH, out,
            "--bbox", "7.999", "8.011", "48.999", "49.011",
            "--scale", "0.05", "--labels", "--save", saved,
            cwd=tmp_path,
        )
        assert result.returncode == 0, result.stderr
        assert "labels: 1" in result.stdout
        assert saved.read_bytes().startswith(b"TRACKMAP\0")
        assert out.exists()

    def test_missing_map(self, tmp_path):
        result = run_cli("map", tmp_path / "missing.osm", tmp_path / "out.svg", cwd=tmp_path)
        assert result.returncode == 1
        assert "Error" in result.stderr


class TestDbCommand:
    def test_import_and_list(self, ride_db, tmp_path):
        result = run_cli("db", "list", ride_db, cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "sample_ride.gpx" in result.stdout
        assert "Total:" in result.stdout

    def test_months(self, ride_db, tmp_path):
        result = run_cli("db", "months", ride_db, cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert result.stdout.startswith("2024-06")

    def test_append(self, ride_db, tmp_path):
        result = run_cli("db", "import", ride_db, SAMPLE_GPX_PATH, "--append", cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Saved 2 tracks" in result.stdout

    def test_skips_non_gpx(self, tmp_path):
        notes = tmp_path / "notes.xml"
        notes.write_text('<?xml version="1.0"?><notes/>')
        result = run_cli("db", "import", tmp_path / "db.trackdb", notes, SAMPLE_GPX_PATH, cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Skipped (not a GPX file)" in result.stderr
        assert "Saved 1 tracks" in result.stdout

    def test_bad_database(self, tmp_path):
        path = tmp_path / "bad.trackdb"
        path.write_bytes(b"not a database")
        result = run_cli("db", "list", path, cwd=tmp_path)
        assert result.returncode == 1
        assert "Error" in result.stderr


class TestRenderCommand:
    def test_render(self, ride_db, tmp_path):
        out = tmp_path / "ride.svg"
        cache_dir = tmp_path / "cache"
        result = run_cli(
            "render", ride_db, "0", DATA_DIR, out,
            "--scale", "0.05", "--cache-dir", cache_dir,
            cwd=tmp_path,
        )
        assert result.returncode == 0, result.stderr
        assert "Wrote SVG" in result.stdout
        assert 'id="track-marker"' in out.read_text()
        assert len(list(cache_dir.glob("*.trackmap"))) == 1

    def test_bad_index(self, ride_db, tmp_path):
        result = run_cli("render", ride_db, "5", DATA_DIR, tmp_path / "x.svg", cwd=tmp_path)
        assert result.returncode == 1
        assert "No track with index 5" in result.stderr

    def test_no_covering_map(self, ride_db, tmp_path):
        empty = tmp_path / "maps"
        empty.mkdir()
        result = run_cli(
            "render", ride_db, "0", empty, tmp_path / "x.svg",
            "--cache-dir", tmp_path / "cache",
            cwd=tmp_path,
        )
        assert result.returncode == 1
        assert "covers the track" in result.stderr

"""trackmap - GPS track analysis and OpenStreetMap rendering."""

__version__ = "0.1.0"
__version_date__ = "2025-01-30"

"""Tag-driven styling tables for map rendering.

See https://wiki.openstreetmap.org/wiki/Key:highway and
https://wiki.openstreetmap.org/wiki/Key:surface for the tag values.
"""

from typing import Mapping

ANY = "*"

# Line widths in px, keyed by (key, value)
ROAD_WIDTHS = {
    ("highway", "motorway"): 70.0,
    ("highway", "motorway_link"): 65.0,
    ("highway", "trunk"): 60.0,
    ("highway", "primary"): 50.0,
    ("highway", "secondary"): 40.0,
    ("highway", "tertiary"): 30.0,
    ("highway", "residential"): 20.0,
    ("highway", "track"): 10.0,
    ("highway", "service"): 10.0,
    ("highway", "pedestrian"): 10.0,
    ("railway", "rail"): 50.0,
    ("railway", "tram"): 40.0,
    ("cycleway", "track"): 10.0,
}

# Fill colours keyed by (key, value); ANY matches every value of the key
FILL_COLOURS = {
    ("building", ANY): "#dddddd",
    ("surface", "asphalt"): "#222222",
    ("surface", "concrete"): "#333333",
    ("surface", "wood"): "#009900",
    ("surface", "grass"): "#44ff44",
    ("landuse", "residential"): "#bbbbcc",
    ("landuse", "retail"): "#ff4444",
    ("landuse", "commercial"): "#ff4444",
    ("landuse", "industrial"): "#aaaa44",
    ("landuse", "forest"): "#009900",
    ("landuse", "grass"): "#44ff44",
    ("landuse", "greenery"): "#44ff44",
    ("landuse", "orchard"): "#44ff44",
    ("landuse", "meadow"): "#44ff44",
    ("landuse", "scrub"): "#44ee44",
    ("landuse", "vineyard"): "#55ff55",
    ("landuse", "farmland"): "#883322",
    ("landuse", "farmyard"): "#883322",
    ("landuse", "brownfield"): "#773322",
    ("natural", "water"): "#4444ff",
    ("natural", "wood"): "#009900",
    ("natural", "scrub"): "#22aa22",
    ("natural", "bare_rock"): "#7d7d80",
    ("natural", "grassland"): "#44ff44",
    ("natural", "shingle"): "#5555ff",
    ("waterway", "river"): "#5555ff",
    ("leisure", "park"): "#55ff55",
    ("leisure", "garden"): "#55ff55",
    ("leisure", "pitch"): "#55bb55",
    ("amenity", "research_institute"): "#999999",
    ("amenity", "university"): "#999999",
    ("amenity", "school"): "#888888",
    ("amenity", "college"): "#888888",
    ("quarter", "suburb"): "#995555",
}

AREA_FILL = "#ffffff"
AREA_STROKE = "#000000"
AREA_STROKE_WIDTH = 2.0

ROAD_WIDTH = 8.0
ROAD_STROKE = "#222222"

TRACK_OUTLINE = "#000000"
TRACK_OUTLINE_WIDTH = 48.0
TRACK_CORE = "#ffff00"
TRACK_CORE_WIDTH = 24.0
TRACK_START_FILL = "#ff0000"
TRACK_END_FILL = "#00ff00"
MARKER_STROKE = "#000000"
MARKER_STROKE_WIDTH = 16.0
MARKER_RADIUS = 42.0

LABEL_FONT_FAMILY = "sans-serif"
LABEL_FONT_SIZE = 180.0  # pt
LABEL_FONT_WEIGHT = "bold"
LABEL_FILL = "#cccc44"
LABEL_STROKE = "#000000"
LABEL_STROKE_WIDTH = 12.0


def is_road_tag(key: str, value: str) -> bool:
    return (key, value) in ROAD_WIDTHS


def has_road_tag(tags: Mapping[str, str]) -> bool:
    return any(is_road_tag(k, v) for k, v in tags.items())


def fill_colour(key: str, value: str) -> str | None:
    colour = FILL_COLOURS.get((key, value))
    if colour is None:
        colour = FILL_COLOURS.get((key, ANY))
    return colour


def is_styled_tag(key: str, value: str) -> bool:
    """True if the tag affects rendering, so it survives tag dropping."""
    return is_road_tag(key, value) or fill_colour(key, value) is not None


def find_fill_colour(*tag_maps: Mapping[str, str]) -> str | None:
    """First matching colour, searching the tag maps in the given order."""
    for tags in tag_maps:
        for key, value in tags.items():
            colour = fill_colour(key, value)
            if colour is not None:
                return colour
    return None


def area_style(*tag_maps: Mapping[str, str]) -> dict:
    return {
        "fill": find_fill_colour(*tag_maps) or AREA_FILL,
        "stroke": AREA_STROKE,
        "width": AREA_STROKE_WIDTH,
    }


def road_style(tags: Mapping[str, str]) -> dict:
    width = next((ROAD_WIDTHS[(k, v)] for k, v in tags.items() if (k, v) in ROAD_WIDTHS), ROAD_WIDTH)
    return {
        "fill": None,
        "stroke": find_fill_colour(tags) or ROAD_STROKE,
        "width": width,
    }

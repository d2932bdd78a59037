"""SVG rendering of a map and its track.

Rendering happens in two steps: build_render_plan() turns the map into an
ordered list of draw items, draw_plan() paints them with matplotlib and
writes an SVG. Items are painted in plan order, back to front.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, TextIO

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
from matplotlib import patheffects
from matplotlib.lines import Line2D
from matplotlib.patches import Polygon

from trackmap import styles
from trackmap.models import BoundingBox, MapSegment

if TYPE_CHECKING:
    from trackmap.osm_map import Map

logger = logging.getLogger(__name__)

CANVAS_PX = 5000
PX_PER_INCH = 96
PT_PER_PX = 72 / PX_PER_INCH

# Layers, back to front
LAYER_BACKGROUND = "background"
LAYER_MULTI = "multi"
LAYER_AREA = "area"
LAYER_FOREGROUND = "foreground"
LAYER_ROAD = "road"
LAYER_TRACK = "track"
LAYER_LABEL = "label"

AREA_LAYERS = (LAYER_BACKGROUND, LAYER_MULTI, LAYER_AREA, LAYER_FOREGROUND)


@dataclass
class DrawItem:
    layer: str
    kind: str  # polygon, polyline, marker or text
    id: int | None
    coords: list[tuple[float, float]]  # (lon, lat) in degrees
    style: dict = field(default_factory=dict)
    text: str = ""

    @property
    def gid(self) -> str:
        if self.id is None:
            return f"{self.layer}-{self.kind}"
        return f"{self.layer}-{self.id}"


@dataclass
class RenderPlan:
    bounds: BoundingBox  # radians
    size_px: float
    items: list[DrawItem] = field(default_factory=list)

    def layer(self, name: str) -> list[DrawItem]:
        return [item for item in self.items if item.layer == name]

    def area_ids(self) -> list[int]:
        """Segment ids of all drawn areas, in drawing order."""
        return [item.id for item in self.items if item.layer in AREA_LAYERS]

    def layer_order(self) -> list[str]:
        """Distinct layers in the order they are painted."""
        order: list[str] = []
        for item in self.items:
            if not order or order[-1] != item.layer:
                order.append(item.layer)
        return order


def _deg(lon: float, lat: float) -> tuple[float, float]:
    return math.degrees(lon), math.degrees(lat)


def _segment_coords(m: Map, seg: MapSegment) -> list[tuple[float, float]]:
    coords = []
    for vertex_id in seg.vertex_ids:
        vertex = m.find_vertex(vertex_id)
        if vertex is not None:
            coords.append(_deg(vertex.longitude, vertex.latitude))
    return coords


def _plot_bounds(m: Map, bounds: BoundingBox | None) -> BoundingBox:
    if bounds is not None:
        return bounds
    if not m.bounds.is_empty():
        return m.bounds
    bbox = BoundingBox()
    for vertex in m.track:
        bbox.extend(vertex.longitude, vertex.latitude)
    if bbox.is_empty():
        return BoundingBox(0.0, 0.0, 0.0, 0.0)
    return bbox


def build_render_plan(m: Map, scale: float = 1.0, bounds: BoundingBox | None = None) -> RenderPlan:
    """Collect draw items in painting order.

    Each area segment appears at most once. Multi-segment members are
    styled by the relation's tags first, then their own.
    """
    plan = RenderPlan(bounds=_plot_bounds(m, bounds), size_px=CANVAS_PX * scale)
    drawn: set[int] = set()

    def add_area(layer: str, seg_id: int, seg: MapSegment | None, *tag_maps: dict) -> None:
        if seg_id in drawn:
            return
        drawn.add(seg_id)
        if seg is None or not seg.is_area:
            return
        coords = _segment_coords(m, seg)
        if coords:
            plan.items.append(DrawItem(layer, "polygon", seg_id, coords, styles.area_style(*tag_maps, seg.tags)))

    for seg_id, seg in m.segments_background.items():
        add_area(LAYER_BACKGROUND, seg_id, seg)

    for multiseg in m.multisegments.values():
        for seg_id in [*multiseg.segment_ids, *multiseg.segment_inner_ids]:
            add_area(LAYER_MULTI, seg_id, m.find_segment(seg_id), multiseg.tags)

    for seg_id, seg in m.segments.items():
        add_area(LAYER_AREA, seg_id, seg)

    for seg_id, seg in m.segments_foreground.items():
        add_area(LAYER_FOREGROUND, seg_id, seg)

    for seg_id, seg in m.segments.items():
        if seg.is_area:
            continue
        coords = _segment_coords(m, seg)
        if coords:
            plan.items.append(DrawItem(LAYER_ROAD, "polyline", seg_id, coords, styles.road_style(seg.tags)))

    if m.track:
        coords = [_deg(v.longitude, v.latitude) for v in m.track]
        plan.items.append(DrawItem(LAYER_TRACK, "polyline", None, coords, {
            "stroke": styles.TRACK_OUTLINE, "width": styles.TRACK_OUTLINE_WIDTH,
        }))
        plan.items.append(DrawItem(LAYER_TRACK, "polyline", None, coords, {
            "stroke": styles.TRACK_CORE, "width": styles.TRACK_CORE_WIDTH,
        }))
        for pos, fill in ((0, styles.TRACK_START_FILL), (-1, styles.TRACK_END_FILL)):
            plan.items.append(DrawItem(LAYER_TRACK, "marker", None, [coords[pos]], {
                "fill": fill,
                "stroke": styles.MARKER_STROKE,
                "width": styles.MARKER_STROKE_WIDTH,
                "radius": styles.MARKER_RADIUS,
            }))

    if not m.skip_labels:
        for vertex_id, vertex in m.label_vertices.items():
            name = vertex.tags.get("name")
            if "place" not in vertex.tags or name is None:
                continue
            plan.items.append(DrawItem(LAYER_LABEL, "text", vertex_id, [_deg(vertex.longitude, vertex.latitude)], {
                "fill": styles.LABEL_FILL,
                "stroke": styles.LABEL_STROKE,
                "width": styles.LABEL_STROKE_WIDTH,
                "font_size": styles.LABEL_FONT_SIZE,
                "font_weight": styles.LABEL_FONT_WEIGHT,
                "font_family": styles.LABEL_FONT_FAMILY,
            }, text=name))

    return plan


def _pt(px: float) -> float:
    return px * PT_PER_PX


def _draw_item(ax, item: DrawItem, zorder: int) -> None:
    style = item.style
    if item.kind == "polygon":
        ax.add_patch(Polygon(
            item.coords, closed=True,
            facecolor=style["fill"], edgecolor=style["stroke"], linewidth=_pt(style["width"]),
            zorder=zorder, gid=item.gid,
        ))
    elif item.kind == "polyline":
        xs, ys = zip(*item.coords)
        ax.add_line(Line2D(
            xs, ys, color=style["stroke"], linewidth=_pt(style["width"]),
            solid_capstyle="round", solid_joinstyle="round",
            zorder=zorder, gid=item.gid,
        ))
    elif item.kind == "marker":
        x, y = item.coords[0]
        ax.add_line(Line2D(
            [x], [y], linestyle="none", marker="o",
            markersize=_pt(2 * style["radius"]),
            markerfacecolor=style["fill"], markeredgecolor=style["stroke"],
            markeredgewidth=_pt(style["width"]),
            zorder=zorder, gid=item.gid,
        ))
    elif item.kind == "text":
        x, y = item.coords[0]
        ax.text(
            x, y, item.text,
            fontsize=style["font_size"], fontweight=style["font_weight"], family=style["font_family"],
            color=style["fill"], ha="center", va="center", clip_on=True,
            path_effects=[patheffects.withStroke(linewidth=_pt(style["width"]), foreground=style["stroke"])],
            zorder=zorder, gid=item.gid,
        )


def draw_plan(plan: RenderPlan, out: str | Path | BinaryIO | TextIO) -> None:
    """Paint a plan onto a square canvas and write it as SVG."""
    size_in = plan.size_px / PX_PER_INCH
    min_lon, max_lon, min_lat, max_lat = plan.bounds.to_degrees()
    # keep a drawable extent for single-point maps
    if max_lon - min_lon <= 0:
        min_lon, max_lon = min_lon - 1e-6, max_lon + 1e-6
    if max_lat - min_lat <= 0:
        min_lat, max_lat = min_lat - 1e-6, max_lat + 1e-6

    with matplotlib.rc_context({"svg.fonttype": "none", "svg.hashsalt": "trackmap"}):
        fig = plt.figure(figsize=(size_in, size_in), dpi=PX_PER_INCH, facecolor="white")
        try:
            ax = fig.add_axes([0, 0, 1, 1])
            ax.set_axis_off()
            ax.set_xlim(min_lon, max_lon)
            ax.set_ylim(min_lat, max_lat)
            ax.set_aspect("equal", adjustable="datalim")

            for zorder, item in enumerate(plan.items, start=1):
                _draw_item(ax, item, zorder)

            fig.savefig(out, format="svg", metadata={"Date": None})
        finally:
            plt.close(fig)


def render_svg(
    m: Map,
    out: str | Path | BinaryIO | TextIO,
    scale: float = 1.0,
    bounds: BoundingBox | None = None,
) -> RenderPlan:
    """Render a map (and its track) to SVG and return the plan that was drawn."""
    plan = build_render_plan(m, scale=scale, bounds=bounds)
    draw_plan(plan, out)
    logger.info("Rendered %d items at %.0f px", len(plan.items), plan.size_px)
    return plan

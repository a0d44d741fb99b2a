"""
slope_analysis.py — Turn visible path features into slope-colored hill lines.

Usage (importable):
    from slope_analysis import compute_hill_lines
    lines, labels = compute_hill_lines(features, elevation_lookup, zoom)

Stages:
  1. Graph     — build the connectivity graph of every visible line
  2. Coalesce  — merge pass-through chains into junction-to-junction paths
  3. Analyze   — length, climb, slope and opacity per path; drop short/steep ones
  4. Draw      — trimmed line + arrowhead, plus a midpoint for the label
  5. Collect   — two GeoJSON FeatureCollections (lines, labels)
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from config import (
    MIN_SEGMENT_LENGTH_M, MAX_SLOPE_PCT, TRIM_FACTOR, ARROW_FACTOR,
    OPACITY_SLOPE_SCALE, OPACITY_DELTA_SCALE, OPACITY_LENGTH_SCALE,
)
from trail_geometry import line_midpoint, make_arrow, shrink_line
from trail_graph import (
    Coord, ConnectivityGraph, ElevationLookup, NodeKey, build_graph, coalesce_paths,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371008.8


# ── Helpers ───────────────────────────────────────────────────────────

def haversine_m(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Return the great-circle distance in meters between two points."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lng2 - lng1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def geodesic_length(line: Sequence[Sequence[float]]) -> float:
    return sum(
        haversine_m(line[i][0], line[i][1], line[i + 1][0], line[i + 1][1])
        for i in range(len(line) - 1)
    )


def clamp(x: float, lo: float, hi: float) -> float:
    return max(min(x, hi), lo)


def opacity_score(slope: float, elevation_delta: float, length: float) -> float:
    """Visual weight in [0, 1]; short, flat or low-climb segments fade out."""
    return (
        clamp(slope / OPACITY_SLOPE_SCALE, 0, 1) *
        clamp(elevation_delta / OPACITY_DELTA_SCALE, 0, 1) *
        clamp(length / OPACITY_LENGTH_SCALE, 0, 1)
    )


def uniq(items: Iterable) -> list:
    """Drop repeated items (compared by JSON value), keeping first-seen order."""
    found = set()
    results = []
    for item in items:
        key = json.dumps(item, sort_keys=True)
        if key in found:
            continue
        found.add(key)
        results.append(item)
    return results


def extract_line_strings(features: Iterable[dict]) -> list[list[list[float]]]:
    """Pull every line out of LineString / MultiLineString features.

    Other geometry types are ignored; the same line reported twice (e.g. once
    per map tile) is kept only once.
    """
    lines = []
    for feature in features:
        geometry = feature.get("geometry") or {}
        if geometry.get("type") == "LineString":
            lines.append(geometry["coordinates"])
        elif geometry.get("type") == "MultiLineString":
            lines.extend(geometry["coordinates"])
    return uniq(lines)


# ── Segments ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TrailSegment:
    length: float
    elevation_low: float
    elevation_high: float
    slope: float
    opacity: float
    arrow_line: list
    label_point: Coord

    @property
    def elevation_delta(self) -> float:
        return abs(self.elevation_high - self.elevation_low)

    @property
    def slope_label(self) -> str:
        return f"{self.slope:,.0f}%"

    @property
    def elevation_delta_label(self) -> str:
        return f"▲{self.elevation_delta:,.0f}/{self.length:,.0f}m"

    def properties(self) -> dict:
        return {
            "length": self.length,
            "elevationDelta": self.elevation_delta,
            "negElevationDelta": -self.elevation_delta,
            "slope": self.slope,
            "slopeLabel": self.slope_label,
            "elevationDeltaLabel": self.elevation_delta_label,
            "opacity": self.opacity,
        }


def sort_path(graph: ConnectivityGraph, path: list[NodeKey]) -> tuple[list[NodeKey], float, float]:
    """Order ``path`` low end first; returns (path, low elevation, high elevation)."""
    elev1 = graph.elevation(path[0])
    elev2 = graph.elevation(path[-1])
    if elev1 < elev2:
        return path, elev1, elev2
    return path[::-1], elev2, elev1


def analyze_path(graph: ConnectivityGraph, path: list[NodeKey], zoom: float) -> TrailSegment | None:
    """Measure one coalesced path; None when it is filtered out."""
    coords = [key.coord for key in path]
    length = geodesic_length(coords)
    if length < MIN_SEGMENT_LENGTH_M:
        logger.debug(f"Dropped {path[0]} -> {path[-1]}: too short ({length:.1f} m)")
        return None

    sorted_path, elev_low, elev_high = sort_path(graph, path)
    elevation_delta = abs(elev_high - elev_low)
    slope = elevation_delta / length * 100
    if slope >= MAX_SLOPE_PCT:
        logger.debug(f"Dropped {path[0]} -> {path[-1]}: too steep ({slope:.0f}%)")
        return None

    scale = math.pow(2, -zoom)
    sorted_coords = [key.coord for key in sorted_path]
    mid = line_midpoint(sorted_coords)
    shrunk = shrink_line(sorted_coords, scale * TRIM_FACTOR)
    if len(shrunk) < 2:
        logger.debug(f"Dropped {path[0]} -> {path[-1]}: nothing left after trimming")
        return None

    return TrailSegment(
        length=length,
        elevation_low=elev_low,
        elevation_high=elev_high,
        slope=slope,
        opacity=opacity_score(slope, elevation_delta, length),
        arrow_line=make_arrow(shrunk, scale * ARROW_FACTOR),
        label_point=mid,
    )


# ── Render sink ───────────────────────────────────────────────────────

def _feature(geometry_type: str, coordinates, properties: dict) -> dict:
    return {
        "type": "Feature",
        "geometry": {"type": geometry_type, "coordinates": coordinates},
        "properties": properties,
    }


def build_collections(segments: Iterable[TrailSegment]) -> tuple[dict, dict]:
    """Return (line/arrow collection, label collection) for ``segments``."""
    line_features = []
    label_features = []
    for segment in segments:
        properties = segment.properties()
        line_features.append(_feature(
            "MultiLineString",
            [[list(c) for c in part] for part in segment.arrow_line],
            properties,
        ))
        label_features.append(_feature("Point", list(segment.label_point), dict(properties)))

    # Biggest climbs first so they win label collisions
    label_features.sort(key=lambda f: f["properties"]["negElevationDelta"])
    return (
        {"type": "FeatureCollection", "features": line_features},
        {"type": "FeatureCollection", "features": label_features},
    )


def compute_hill_lines(
    features: Iterable[dict],
    elevation_lookup: ElevationLookup,
    zoom: float,
) -> tuple[dict, dict]:
    """Run one full pass from raw path features to the two output collections.

    Raises TrailNetworkError if the network is inconsistent; nothing partial is
    returned in that case.
    """
    graph = build_graph(extract_line_strings(features), elevation_lookup)
    paths = coalesce_paths(graph)

    segments = []
    for path in paths:
        segment = analyze_path(graph, path, zoom)
        if segment is not None:
            segments.append(segment)

    logger.info(f"Kept {len(segments)} of {len(paths)} trail segments at zoom {zoom:.2f}")
    return build_collections(segments)


# ── Map layers ────────────────────────────────────────────────────────

SLOPE_COLOR = ["interpolate", ["linear"], ["get", "slope"], 0, "white", 5, "yellow", 10, "red"]


def hill_layers(line_source: str = "hill-line-source", label_source: str = "hill-label-source") -> list[dict]:
    """Map style layers that draw the two collections."""
    line_layout = {"line-join": "miter", "line-cap": "square"}
    return [
        {
            "id": "hill-lines",
            "type": "line",
            "source": line_source,
            "layout": line_layout,
            "paint": {
                "line-color": "black",
                "line-width": 10,
                "line-opacity": ["get", "opacity"],
            },
        },
        {
            "id": "hill-lines2",
            "type": "line",
            "source": line_source,
            "layout": line_layout,
            "paint": {
                "line-color": SLOPE_COLOR,
                "line-width": 3,
                "line-blur": 0,
                "line-opacity": ["get", "opacity"],
            },
        },
        {
            "id": "hill-labels",
            "type": "symbol",
            "source": label_source,
            "layout": {
                "symbol-placement": "point",
                "symbol-spacing": 100,
                "text-field": [
                    "format",
                    ["get", "slopeLabel"], {},
                    "\n", {},
                    ["get", "elevationDeltaLabel"], {"font-scale": 0.8},
                ],
                "text-font": ["Arial Unicode MS Regular"],
                "symbol-sort-key": ["get", "negElevationDelta"],
                "text-size": 16,
            },
            "paint": {
                "text-color": SLOPE_COLOR,
                "text-halo-color": "black",
                "text-halo-width": 5,
                "text-opacity": ["get", "opacity"],
            },
        },
    ]

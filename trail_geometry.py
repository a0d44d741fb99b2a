"""
trail_geometry.py — Planar helpers for drawing coalesced trail segments.

All distances here are in coordinate units (degrees), not meters: they are
scaled by 2^-zoom upstream so the result has a constant on-screen size.
"""

import math
from typing import Sequence

from shapely.geometry import LineString
from shapely.ops import substring

from trail_graph import Coord, TrailNetworkError


class DegenerateInterpolationError(TrailNetworkError):
    """A point could not be located along a line."""


def _as_line(line: Sequence[Sequence[float]]) -> LineString:
    if len(line) < 2:
        raise DegenerateInterpolationError(f"Need at least 2 points, got {len(line)}")
    return LineString([(c[0], c[1]) for c in line])


def interpolate_line(
    line: Sequence[Sequence[float]],
    t: float,
    is_percent: bool = True,
    reverse: bool = False,
) -> Coord:
    """Return the point at ``t`` along ``line``.

    ``t`` is a fraction of the total length when ``is_percent`` is set,
    otherwise a distance. With ``reverse`` the distance is measured back from
    the last point.
    """
    geom = _as_line(line)
    total = geom.length
    desired = total * t if is_percent else t
    if reverse:
        desired = total - desired
    if total == 0 or not 0 <= desired <= total or math.isnan(desired):
        raise DegenerateInterpolationError(
            f"No point at {desired} along a line of length {total}"
        )
    point = geom.interpolate(desired)
    return (point.x, point.y)


def line_midpoint(line: Sequence[Sequence[float]]) -> Coord:
    return interpolate_line(line, 0.5)


def shrink_line(line: Sequence[Sequence[float]], dist: float) -> list[Coord]:
    """Trim ``dist / 2`` off each end of ``line``.

    Returns an empty list when nothing is left.
    """
    geom = _as_line(line)
    total = geom.length
    if total <= dist:
        return []
    trimmed = substring(geom, dist / 2, total - dist / 2)
    return [(x, y) for x, y in trimmed.coords]


def make_arrow(line: Sequence[Sequence[float]], dist: float) -> list[list[Coord]]:
    """Return ``[line, [wing1, tip, wing2]]`` with the tip at the last point."""
    body = [(c[0], c[1]) for c in line]
    tip = body[-1]
    back = interpolate_line(body, min(dist, _as_line(body).length), is_percent=False, reverse=True)

    # Bearing from the tip back along the line; wings sit 45° either side of it
    angle = math.atan2(back[0] - tip[0], back[1] - tip[1])
    wing1 = (
        tip[0] + math.sin(angle - math.pi / 4) * dist,
        tip[1] + math.cos(angle - math.pi / 4) * dist,
    )
    wing2 = (
        tip[0] + math.sin(angle + math.pi / 4) * dist,
        tip[1] + math.cos(angle + math.pi / 4) * dist,
    )
    return [body, [wing1, tip, wing2]]

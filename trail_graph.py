"""
trail_graph.py — Rebuild the visible trail network as a graph and coalesce it.

How it works:
  1. Every consecutive coordinate pair of every line geometry becomes an
     undirected edge between two exact-coordinate nodes.
  2. Nodes with exactly two neighbours are pass-through waypoints; everything
     else (dead ends, forks) is a junction.
  3. Each junction-to-junction run of pass-through nodes is walked once and
     returned as one coalesced path.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

logger = logging.getLogger(__name__)

Coord = tuple[float, float]
ElevationLookup = Callable[[Coord], float]


class TrailNetworkError(Exception):
    """A computation pass over the trail network could not complete."""


class MalformedChainError(TrailNetworkError):
    """A pass-through node did not have exactly one way forward."""


# ── Node keys ────────────────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class NodeKey:
    """Exact-value identity of a network vertex.

    Ordering is by longitude, then latitude; that order decides which end of
    an edge is stored in the canonical adjacency.
    """
    lng: float
    lat: float

    @classmethod
    def from_coord(cls, coord: Sequence[float]) -> "NodeKey":
        return cls(float(coord[0]), float(coord[1]))

    @classmethod
    def parse(cls, text: str) -> "NodeKey":
        lng, lat = text.split(",")
        return cls(float(lng), float(lat))

    @property
    def coord(self) -> Coord:
        return (self.lng, self.lat)

    def __str__(self) -> str:
        # repr() of a float is the shortest string that round-trips exactly
        return f"{self.lng!r},{self.lat!r}"


# ── Connectivity graph ───────────────────────────────────────────────

class ConnectivityGraph:
    """Canonical and full adjacency of the trail network, plus node elevations.

    ``canonical`` records each edge once, lower key -> upper key.
    ``full`` records each edge in both directions and is always symmetric.
    """

    def __init__(self, elevation_lookup: ElevationLookup):
        self.elevation_lookup = elevation_lookup
        self.canonical: dict[NodeKey, set[NodeKey]] = defaultdict(set)
        self.full: dict[NodeKey, set[NodeKey]] = defaultdict(set)
        self.elevations: dict[NodeKey, float] = {}

    def _resolve_elevation(self, key: NodeKey) -> None:
        if key in self.elevations:
            return
        self.elevations[key] = self.elevation_lookup(key.coord)

    def add_segment(self, coord1: Sequence[float], coord2: Sequence[float]) -> None:
        key1 = NodeKey.from_coord(coord1)
        key2 = NodeKey.from_coord(coord2)
        if key1 == key2:
            return  # repeated vertex
        self._resolve_elevation(key1)
        self._resolve_elevation(key2)
        lower, upper = sorted((key1, key2))
        self.canonical[lower].add(upper)
        self.full[key1].add(key2)
        self.full[key2].add(key1)

    def add_line_string(self, coords: Sequence[Sequence[float]]) -> None:
        for i in range(len(coords) - 1):
            self.add_segment(coords[i], coords[i + 1])

    def add_geometry(self, geometry: dict) -> None:
        """Add a GeoJSON LineString or MultiLineString geometry."""
        geom_type = geometry.get("type")
        if geom_type == "LineString":
            self.add_line_string(geometry["coordinates"])
        elif geom_type == "MultiLineString":
            for line in geometry["coordinates"]:
                self.add_line_string(line)
        else:
            raise ValueError(f"Unsupported geometry type: {geom_type}")

    def neighbors(self, key: NodeKey) -> set[NodeKey]:
        return self.full.get(key, set())

    def degree(self, key: NodeKey) -> int:
        return len(self.full.get(key, ()))

    def elevation(self, key: NodeKey) -> float:
        return self.elevations[key]

    def nodes(self) -> list[NodeKey]:
        return list(self.full)

    def edge_count(self) -> int:
        return sum(len(v) for v in self.canonical.values())


def build_graph(
    line_strings: Iterable[Sequence[Sequence[float]]],
    elevation_lookup: ElevationLookup,
) -> ConnectivityGraph:
    graph = ConnectivityGraph(elevation_lookup)
    for coords in line_strings:
        graph.add_line_string(coords)
    logger.info(f"Graph has {len(graph.full)} nodes and {graph.edge_count()} edges")
    return graph


# ── Intersection classifier ──────────────────────────────────────────

def is_intersection(graph: ConnectivityGraph, key: NodeKey) -> bool:
    """Dead ends (degree 1) and forks (degree > 2) are junctions."""
    degree = graph.degree(key)
    return degree > 2 or degree == 1


# ── Path coalescer ───────────────────────────────────────────────────

def _edge(a: NodeKey, b: NodeKey) -> tuple[NodeKey, NodeKey]:
    return (a, b) if a < b else (b, a)


class PathCoalescer:
    """Walks junction-to-junction chains of a ConnectivityGraph.

    ``walked[a][b]`` holds the path that leaves node ``a`` through neighbour
    ``b``; both ends of every path are registered so no chain is walked twice.
    """

    def __init__(self, graph: ConnectivityGraph):
        self.graph = graph
        self.walked: dict[NodeKey, dict[NodeKey, list[NodeKey]]] = defaultdict(dict)
        self.covered: set[tuple[NodeKey, NodeKey]] = set()
        self.paths: list[list[NodeKey]] = []

    def _next_node(self, prev: NodeKey, current: NodeKey) -> NodeKey:
        candidates = [k for k in self.graph.neighbors(current) if k != prev]
        if len(candidates) != 1:
            raise MalformedChainError(
                f"Expected one continuation from {current} (coming from {prev}), "
                f"found {len(candidates)}: {[str(k) for k in candidates]}"
            )
        return candidates[0]

    def _walk(self, start: NodeKey, second: NodeKey) -> list[NodeKey]:
        path = [start, second]
        prev, current = start, second
        while not is_intersection(self.graph, current):
            prev, current = current, self._next_node(prev, current)
            path.append(current)
        return path

    def _record(self, path: list[NodeKey]) -> None:
        self.walked[path[0]][path[1]] = path
        self.walked[path[-1]][path[-2]] = path[::-1]
        for a, b in zip(path, path[1:]):
            self.covered.add(_edge(a, b))
        self.paths.append(path)

    def _seed(self, junction: NodeKey, neighbor: NodeKey) -> None:
        if neighbor in self.walked.get(junction, {}):
            return
        self._record(self._walk(junction, neighbor))

    def _sweep_loops(self) -> None:
        """Pick up closed rings made only of pass-through nodes."""
        for lower in sorted(self.graph.canonical):
            for upper in sorted(self.graph.canonical[lower]):
                if (lower, upper) in self.covered:
                    continue
                path = [lower, upper]
                prev, current = lower, upper
                while current != lower:
                    prev, current = current, self._next_node(prev, current)
                    path.append(current)
                logger.debug(f"Found junction-free loop of {len(path) - 1} edges at {lower}")
                self._record(path)

    def coalesce(self) -> list[list[NodeKey]]:
        for lower, uppers in list(self.graph.canonical.items()):
            lower_is_junction = is_intersection(self.graph, lower)
            for upper in uppers:
                if lower_is_junction:
                    self._seed(lower, upper)
                if is_intersection(self.graph, upper):
                    self._seed(upper, lower)
        self._sweep_loops()
        logger.info(f"Coalesced {self.graph.edge_count()} edges into {len(self.paths)} paths")
        return self.paths


def coalesce_paths(graph: ConnectivityGraph) -> list[list[NodeKey]]:
    return PathCoalescer(graph).coalesce()

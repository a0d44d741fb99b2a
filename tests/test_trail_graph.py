"""Tests for trail_graph.py"""

import pytest

from trail_graph import (
    ConnectivityGraph,
    MalformedChainError,
    NodeKey,
    PathCoalescer,
    build_graph,
    coalesce_paths,
    is_intersection,
)


# --- Helpers -------------------------------------------------------------- #

def flat(coord):
    return 100.0


def _graph(*lines):
    return build_graph(lines, flat)


def _edges_of(path):
    return [tuple(sorted((a, b))) for a, b in zip(path, path[1:])]


A = (0.0, 0.0)
B = (0.0, 1.0)
C = (0.0, 2.0)
D = (1.0, 1.0)
E = (2.0, 1.0)


# --- Tests ---------------------------------------------------------------- #

class TestNodeKey:
    @pytest.mark.parametrize("coord", [
        (-78.91926884651184, 35.98589793405729),
        (0.1, 0.2),
        (1e-300, -1e300),
        (180.0, -90.0),
    ])
    def test_round_trip(self, coord):
        key = NodeKey.from_coord(coord)
        assert NodeKey.parse(str(key)) == key
        assert NodeKey.parse(str(key)).coord == coord

    def test_exact_equality_only(self):
        assert NodeKey(1.0, 2.0) == NodeKey.from_coord([1.0, 2.0])
        assert NodeKey(1.0, 2.0) != NodeKey(1.0, 2.0000000001)

    def test_ignores_altitude_component(self):
        assert NodeKey.from_coord([1.0, 2.0, 350.0]) == NodeKey(1.0, 2.0)

    def test_ordering_is_lng_then_lat(self):
        assert NodeKey(0.0, 5.0) < NodeKey(1.0, 0.0)
        assert NodeKey(1.0, 0.0) < NodeKey(1.0, 1.0)


class TestConnectivityGraph:
    def test_full_adjacency_is_symmetric(self):
        graph = _graph([A, B, C], [B, D, E], [D, C])
        for a, neighbors in graph.full.items():
            for b in neighbors:
                assert a in graph.full[b]

    def test_canonical_records_each_edge_once(self):
        graph = _graph([A, B], [B, A])
        ka, kb = NodeKey.from_coord(A), NodeKey.from_coord(B)
        assert graph.canonical[ka] == {kb}
        assert kb not in graph.canonical or ka not in graph.canonical[kb]
        assert graph.edge_count() == 1

    def test_duplicate_segments_deduplicated(self):
        graph = _graph([A, B, C], [A, B])
        ka, kb = NodeKey.from_coord(A), NodeKey.from_coord(B)
        assert graph.full[ka] == {kb}
        assert ka in graph.full[kb]
        assert graph.degree(kb) == 2
        assert len(coalesce_paths(graph)) == 1

    def test_repeated_vertex_is_skipped(self):
        graph = _graph([A, A, B])
        ka = NodeKey.from_coord(A)
        assert ka not in graph.full[ka]
        assert graph.degree(ka) == 1

    def test_elevation_resolved_once_per_node(self):
        calls = []

        def lookup(coord):
            calls.append(coord)
            return 0.0  # sea level must still count as cached

        graph = ConnectivityGraph(lookup)
        graph.add_line_string([A, B, C])
        graph.add_line_string([C, B, A])
        assert sorted(calls) == sorted([A, B, C])
        assert graph.elevation(NodeKey.from_coord(B)) == 0.0

    def test_multilinestring_geometry(self):
        graph = ConnectivityGraph(flat)
        graph.add_geometry({"type": "MultiLineString", "coordinates": [[A, B], [D, E]]})
        assert len(graph.nodes()) == 4
        assert graph.edge_count() == 2

    def test_unsupported_geometry(self):
        graph = ConnectivityGraph(flat)
        with pytest.raises(ValueError):
            graph.add_geometry({"type": "Point", "coordinates": A})


class TestIsIntersection:
    def test_degrees(self):
        graph = _graph([A, B, C], [B, D])
        assert is_intersection(graph, NodeKey.from_coord(A))      # dead end
        assert is_intersection(graph, NodeKey.from_coord(B))      # fork
        assert not is_intersection(
            _graph([A, B, C]), NodeKey.from_coord(B)
        )                                                         # waypoint


class TestCoalesce:
    def test_straight_chain_is_one_path(self):
        paths = coalesce_paths(_graph([A, B, C]))
        assert len(paths) == 1
        ends = {paths[0][0], paths[0][-1]}
        assert ends == {NodeKey.from_coord(A), NodeKey.from_coord(C)}
        assert NodeKey.from_coord(B) in paths[0][1:-1]

    def test_chain_split_across_features(self):
        paths = coalesce_paths(_graph([A, B], [B, C]))
        assert len(paths) == 1
        assert len(paths[0]) == 3

    def test_three_way_junction(self):
        paths = coalesce_paths(_graph([A, B], [C, B], [D, B]))
        kb = NodeKey.from_coord(B)
        assert len(paths) == 3
        for path in paths:
            assert kb in (path[0], path[-1])

    def test_junction_on_upper_end_of_first_edge(self):
        # (0,0) is the canonical "lower" end of both of its edges but is a
        # pass-through node; both junctions sit on the upper ends.
        mid = (0.0, 0.0)
        paths = coalesce_paths(_graph([(1.0, 0.0), mid, (0.0, 1.0)]))
        assert len(paths) == 1
        assert len(paths[0]) == 3

    def test_every_edge_in_exactly_one_path(self):
        graph = _graph(
            [A, B, C],
            [B, D, E],
            [E, (3.0, 1.0), (4.0, 1.0)],
            [E, (2.0, 2.0)],
        )
        paths = coalesce_paths(graph)
        seen = [edge for path in paths for edge in _edges_of(path)]
        assert len(seen) == len(set(seen)) == graph.edge_count()

    def test_walked_in_both_directions(self):
        graph = _graph([A, B, C])
        coalescer = PathCoalescer(graph)
        coalescer.coalesce()
        ka, kb, kc = (NodeKey.from_coord(c) for c in (A, B, C))
        assert coalescer.walked[ka][kb] == [ka, kb, kc]
        assert coalescer.walked[kc][kb] == [kc, kb, ka]

    def test_loop_hanging_off_junction(self):
        tail = (-1.0, 0.0)
        graph = _graph([tail, A, B, D, A])
        paths = coalesce_paths(graph)
        assert len(paths) == 2
        loop = next(p for p in paths if len(p) == 4)
        assert loop[0] == loop[-1] == NodeKey.from_coord(A)

    def test_junction_free_ring_is_found(self):
        ring = [A, B, D, (1.0, 0.0), A]
        graph = _graph(ring)
        paths = coalesce_paths(graph)
        assert len(paths) == 1
        assert len(paths[0]) == 5
        assert paths[0][0] == paths[0][-1] == min(graph.nodes())

    def test_malformed_chain_aborts(self):
        graph = _graph([A, B, C])
        # Corrupt B so it no longer points back to either end it came from
        graph.full[NodeKey.from_coord(B)] = {NodeKey.from_coord(D), NodeKey.from_coord(E)}
        with pytest.raises(MalformedChainError):
            coalesce_paths(graph)

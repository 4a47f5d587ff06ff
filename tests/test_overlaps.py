"""
Tests for alignment overlaps.
"""
import pytest

from phygecluster.cluster import Cluster
from phygecluster.overlaps import (
    NO_OVERLAP,
    Overlap,
    alignment_overlaps,
    best_overlaps,
    calculate_overlaps,
    overlap_spans,
    ungapped_span,
)

from tests.conftest import make_cluster


class TestUngappedSpan:

    @pytest.mark.parametrize("sequence,expected", [
        ("ACGT--AC", (1, 8)),
        ("--GTACAC", (3, 8)),
        ("..AC**", (3, 4)),
        ("A", (1, 1)),
        ("----", (0, 0)),
    ])
    def test_spans(self, sequence, expected):
        assert ungapped_span(sequence) == expected


class TestOverlapSpans:

    def test_example_pair(self):
        assert overlap_spans((1, 8), (3, 8)) == Overlap(3, 8, 5)
        assert overlap_spans((3, 8), (1, 8)) == Overlap(3, 8, 5)

    def test_contained_span(self):
        assert overlap_spans((1, 20), (5, 10)) == Overlap(5, 10, 5)

    def test_disjoint_spans(self):
        assert overlap_spans((1, 4), (6, 9)) == NO_OVERLAP
        assert overlap_spans((6, 9), (1, 4)) == NO_OVERLAP

    def test_touching_spans_do_not_overlap(self):
        assert overlap_spans((1, 5), (5, 9)) == NO_OVERLAP

    def test_empty_span(self):
        assert overlap_spans((0, 0), (1, 9)) == NO_OVERLAP


class TestOverlapMatrix:

    def setup_method(self):
        self.cluster = make_cluster('c1', {'a': "ACGT--AC", 'b': "--GTACAC", 'c': "ACG-----"})

    def test_pair_overlaps(self):
        matrix = alignment_overlaps(self.cluster.alignment)
        assert matrix.names == ['a', 'b', 'c']
        assert matrix['a', 'b'] == Overlap(3, 8, 5)
        assert matrix['b', 'a'] == Overlap(3, 8, 5)
        assert matrix['a', 'c'] == Overlap(1, 3, 2)
        assert matrix['b', 'c'] == NO_OVERLAP

    def test_self_pairs_are_zero(self):
        matrix = alignment_overlaps(self.cluster.alignment)
        for name in matrix.names:
            assert matrix[name, name] == Overlap(0, 0, 0)

    def test_to_frame(self):
        frame = alignment_overlaps(self.cluster.alignment).to_frame()
        assert len(frame) == 9
        row = frame[(frame['member_a'] == 'a') & (frame['member_b'] == 'b')].iloc[0]
        assert (row['start'], row['end'], row['length']) == (3, 8, 5)

    def test_clusters_without_alignment_are_skipped(self):
        clusters = {'c1': self.cluster, 'c2': Cluster('c2', ['x', 'y'])}
        assert list(calculate_overlaps(clusters)) == ['c1']


class TestBestOverlaps:

    def test_longest_pair(self):
        clusters = {'c1': make_cluster('c1', {'a': "ACGT--AC", 'b': "--GTACAC", 'c': "ACG-----"})}
        assert best_overlaps(clusters) == {'c1': ('a', 'b')}

    def test_ties_use_smallest_pair(self):
        clusters = {'c1': make_cluster('c1', {'z': "ACGTAC", 'm': "ACGTAC", 'a': "ACGTAC"})}
        assert best_overlaps(clusters) == {'c1': ('a', 'm')}

    def test_deterministic(self):
        clusters = {'c1': make_cluster('c1', {'z': "ACGTAC", 'm': "ACGTAC", 'a': "ACGTAC"})}
        assert best_overlaps(clusters) == best_overlaps(clusters)

    def test_single_member_cluster_is_skipped(self):
        clusters = {'c1': make_cluster('c1', {'a': "ACGT"})}
        assert best_overlaps(clusters) == {}

"""
Pairwise overlap of the ungapped regions of aligned sequences.
"""

import logging
from collections import namedtuple

import pandas as pd

from .parsers import GAP_CHARS

Overlap = namedtuple('Overlap', ['start', 'end', 'length'])
NO_OVERLAP = Overlap(0, 0, 0)


def ungapped_span(sequence, gap_chars=GAP_CHARS):
    """
    Returns the 1-based ``(first, last)`` positions holding a residue.

    A sequence made only of gaps returns ``(0, 0)``.
    """
    sequence = str(sequence)
    positions = [i for i, char in enumerate(sequence, start=1) if char not in gap_chars]
    if not positions:
        return 0, 0
    return positions[0], positions[-1]


def overlap_spans(span_a, span_b):
    """
    Intersects two spans.

    The spans overlap when ``As <= Bs`` or ``As >= Bs``, with ``As < Be`` and
    ``Ae > Bs`` in both cases. The length is ``end - start``.
    """
    a_start, a_end = span_a
    b_start, b_end = span_b
    start, end = 0, 0
    if a_start <= b_start and a_start < b_end and a_end > b_start:
        start, end = b_start, min(a_end, b_end)
    elif a_start >= b_start and a_start < b_end and a_end > b_start:
        start, end = a_start, min(a_end, b_end)

    if start > 0 and end > 0:
        return Overlap(start, end, end - start)
    return NO_OVERLAP


class OverlapMatrix:
    """Square matrix of Overlap records indexed by member id on both axes."""

    def __init__(self, names, cluster_id=None):
        self.cluster_id = cluster_id
        self.names = list(names)
        self._values = {a: {b: NO_OVERLAP for b in self.names} for a in self.names}

    def __getitem__(self, pair):
        member_a, member_b = pair
        return self._values[member_a][member_b]

    def __setitem__(self, pair, overlap):
        member_a, member_b = pair
        self._values[member_a][member_b] = overlap

    def __len__(self):
        return len(self.names)

    def pairs(self):
        for member_a in self.names:
            for member_b in self.names:
                yield member_a, member_b

    def to_frame(self):
        """Long-format DataFrame with one row per ordered pair."""
        rows = [
            {'member_a': a, 'member_b': b, **self[a, b]._asdict()}
            for a, b in self.pairs()
        ]
        return pd.DataFrame(rows, columns=['member_a', 'member_b', 'start', 'end', 'length'])


def alignment_overlaps(alignment, cluster_id=None):
    """Builds the OverlapMatrix of one alignment. Self pairs are always (0, 0, 0)."""
    spans = {record.id: ungapped_span(record.seq) for record in alignment}
    matrix = OverlapMatrix(spans, cluster_id=cluster_id)
    for member_a, member_b in matrix.pairs():
        if member_a != member_b:
            matrix[member_a, member_b] = overlap_spans(spans[member_a], spans[member_b])
    return matrix


def calculate_overlaps(clusters):
    """
    Computes the overlap matrix of every cluster holding an alignment.

    Args:
        clusters (dict): Mapping of cluster id to Cluster.

    Returns:
        dict: Mapping of cluster id to OverlapMatrix.
    """
    overlaps = {}
    for cluster_id, cluster in clusters.items():
        if cluster.alignment is None:
            continue
        overlaps[cluster_id] = alignment_overlaps(cluster.alignment, cluster_id=cluster_id)
    logging.info(f"Calculated overlaps for {len(overlaps)} aligned clusters.")
    return overlaps


def best_overlaps(clusters):
    """
    Returns the pair of distinct members with the longest overlap per cluster.

    Ties go to the lexicographically smallest ``(member_a, member_b)`` pair.
    Clusters with fewer than two aligned members are skipped.

    Returns:
        dict: Mapping of cluster id to a ``(member_a, member_b)`` tuple.
    """
    best = {}
    for cluster_id, matrix in calculate_overlaps(clusters).items():
        candidates = [(a, b) for a, b in matrix.pairs() if a != b]
        if not candidates:
            continue
        best[cluster_id] = min(candidates, key=lambda pair: (-matrix[pair].length, pair))
    return best

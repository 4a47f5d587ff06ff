"""
Metrics, consensus, distances and bootstrap replicates of cluster alignments.

All of the statistics here run on Bio.Align.MultipleSeqAlignment objects; the
distance models are the ones offered by Bio.Phylo's DistanceCalculator.
"""

import logging
from collections import Counter

import numpy as np
from Bio.Align import MultipleSeqAlignment
from Bio.Phylo.TreeConstruction import DistanceCalculator
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from .exceptions import ConfigurationError
from .parsers import GAP_CHARS

ALIGN_METRICS = ('score', 'length', 'num_residues', 'num_sequences', 'percentage_identity')
DISTANCE_METHODS = tuple(DistanceCalculator.models)
DEFAULT_DISTANCE_METHOD = 'identity'


def _as_array(alignment):
    return np.array([list(str(record.seq).upper()) for record in alignment], dtype='<U1')


def num_residues(alignment):
    """Counts the non-gap characters over all sequences."""
    if len(alignment) == 0:
        return 0
    chars = _as_array(alignment)
    return int((~np.isin(chars, GAP_CHARS)).sum())


def percentage_identity(alignment):
    """
    Average percentage identity of the alignment.

    For every column the most frequent residue is counted; the sum over all
    columns is divided by ``length * num_sequences``.
    """
    n_seqs = len(alignment)
    length = alignment.get_alignment_length() if n_seqs else 0
    if n_seqs == 0 or length == 0:
        return 0.0

    chars = _as_array(alignment)
    residues = ~np.isin(chars, GAP_CHARS)
    identical = 0
    for column in range(length):
        column_residues = chars[residues[:, column], column]
        if column_residues.size:
            _, counts = np.unique(column_residues, return_counts=True)
            identical += counts.max()
    return float(identical) / (length * n_seqs) * 100


def alignment_metrics(alignment):
    """
    Returns every metric usable by prune_by_align().

    ``score`` comes from ``alignment.annotations['score']`` and is None when the
    aligner did not report one.
    """
    annotations = getattr(alignment, 'annotations', {}) or {}
    n_seqs = len(alignment)
    return {
        'score': annotations.get('score'),
        'length': alignment.get_alignment_length() if n_seqs else 0,
        'num_residues': num_residues(alignment),
        'num_sequences': n_seqs,
        'percentage_identity': percentage_identity(alignment),
    }


def consensus_sequence(alignment):
    """
    Majority-rule consensus, ignoring gaps. A stored ``consensus`` annotation
    (as read from an .ace file) takes precedence.
    """
    annotations = getattr(alignment, 'annotations', {}) or {}
    if annotations.get('consensus'):
        return str(annotations['consensus']).replace('-', '')

    consensus = []
    length = alignment.get_alignment_length() if len(alignment) else 0
    for column in range(length):
        counts = Counter(char for char in alignment[:, column] if char not in GAP_CHARS)
        if counts:
            consensus.append(counts.most_common(1)[0][0])
    return ''.join(consensus)


def validate_distance_method(method):
    if method not in DISTANCE_METHODS:
        raise ConfigurationError(
            f"ERROR METHOD: {method} is not an available method for run_distances(). "
            f"Available distance methods: {', '.join(DISTANCE_METHODS)}"
        )
    return method


def calculate_distances(alignment, method=DEFAULT_DISTANCE_METHOD):
    """
    Computes the pairwise distance matrix of an alignment.

    Args:
        alignment (MultipleSeqAlignment): Aligned cluster members.
        method (str): A Bio.Phylo DistanceCalculator model.

    Returns:
        DistanceMatrix: Lower-triangular matrix indexed by member id.
    """
    calculator = DistanceCalculator(validate_distance_method(method))
    return calculator.get_distance(alignment)


def bootstrap_alignments(alignment, replicates=100, seed=None, rng=None):
    """
    Returns ``replicates`` column-resampled copies of the alignment.

    Args:
        alignment (MultipleSeqAlignment): Aligned cluster members.
        replicates (int): Number of replicates.
        seed (int, optional): Seed for a new generator, used when ``rng`` is not given.
        rng (numpy.random.Generator, optional): Shared generator, so that
            successive clusters draw different columns.

    Returns:
        list: MultipleSeqAlignment replicates with the original record ids.
    """
    if rng is None:
        rng = np.random.default_rng(seed)
    sequences = [str(record.seq) for record in alignment]
    length = alignment.get_alignment_length() if len(alignment) > 0 else 0
    replicas = []
    for _ in range(replicates):
        columns = rng.integers(0, length, size=length) if length else []
        records = [
            SeqRecord(Seq(''.join(sequence[i] for i in columns)), id=record.id,
                      name=record.name, description=record.description)
            for record, sequence in zip(alignment, sequences)
        ]
        replicas.append(MultipleSeqAlignment(records))
    logging.debug(f"Generated {len(replicas)} bootstrap replicates")
    return replicas

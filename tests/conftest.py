"""
Pytest fixtures for PhyGeCluster tests.

Provides small BLAST, FASTA, strain and ace files plus helpers to build
alignments and distance matrices in memory.
"""
import pytest
from Bio.Align import MultipleSeqAlignment
from Bio.Phylo.TreeConstruction import DistanceMatrix
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from phygecluster.cluster import Cluster


def blast_line(query, subject, identity=100.0, length=100, evalue='1e-50', bits=200):
    return "\t".join(str(x) for x in (query, subject, identity, length, 0, 0, 1, length, 1, length, evalue, bits))


def make_alignment(seqs, annotations=None):
    """Builds a MultipleSeqAlignment from ``{id: gapped_sequence}``."""
    alignment = MultipleSeqAlignment(
        [SeqRecord(Seq(seq), id=seq_id, name=seq_id, description='') for seq_id, seq in seqs.items()]
    )
    alignment.annotations = dict(annotations or {})
    return alignment


def make_distance_matrix(names, distances):
    """Builds a DistanceMatrix from ``{(a, b): distance}``; missing pairs are 0."""
    matrix = []
    for i, name_a in enumerate(names):
        row = []
        for name_b in names[:i]:
            row.append(distances.get((name_a, name_b), distances.get((name_b, name_a), 0)))
        row.append(0)
        matrix.append(row)
    return DistanceMatrix(list(names), matrix)


def make_cluster(cluster_id, seqs):
    """Cluster whose members and alignment come from ``{id: gapped_sequence}``."""
    members = [SeqRecord(Seq(seq.replace('-', '')), id=seq_id, description='') for seq_id, seq in seqs.items()]
    return Cluster(cluster_id, members, make_alignment(seqs))


@pytest.fixture
def blast_lines():
    return [
        blast_line('s1', 's1'),
        blast_line('s1', 's2', identity=95.0),
        blast_line('s1', 's3', identity=80.0),
        blast_line('s3', 's3'),
        blast_line('s4', 's2', identity=99.0),
        blast_line('s4', 's4'),
        blast_line('s5', 's5'),
        blast_line('s5', 's6', identity=97.0, length=120),
    ]


@pytest.fixture
def blast_file(tmp_path, blast_lines):
    path = tmp_path / "hits.m8"
    path.write_text("\n".join(blast_lines) + "\n")
    return str(path)


@pytest.fixture
def fasta_file(tmp_path):
    path = tmp_path / "seqs.fasta"
    path.write_text(
        ">s1 first\nACGTACGTAC\n"
        ">s2\nACGTACGTAA\n"
        ">s3\nTTGTACGTAC\n"
        ">s4\nACGTTCGTAC\n"
        ">s5\nGGGTACGTAC\n"
        ">s6\nGGGTACGTAA\n"
        ">unused\nAAAA\n"
    )
    return str(path)


@pytest.fixture
def strain_file(tmp_path):
    path = tmp_path / "strains.tsv"
    path.write_text("s1\tA\ns2\tB\ns3\tA\ns4\tB\ns5\tA\ns6\tB\n")
    return str(path)


ACE_TEXT = """AS 1 2

CO Contig1 10 2 1 U
ACGTACGTAC

BQ
20 20 20 20 20 20 20 20 20 20

AF read1 U 1
AF read2 C 3
BS 1 10 read1

RD read1 8 0 0
ACGTACGT

QA 1 8 1 8
DS CHROMAT_FILE: read1 PHD_FILE: read1.phd.1 TIME: Thu Jan  1 00:00:00 2009

RD read2 8 0 0
GTACGTAC

QA 1 8 1 8
DS CHROMAT_FILE: read2 PHD_FILE: read2.phd.1 TIME: Thu Jan  1 00:00:00 2009"""


@pytest.fixture
def ace_file(tmp_path):
    path = tmp_path / "assembly.ace"
    path.write_text(ACE_TEXT)
    return str(path)


@pytest.fixture
def strain_distances():
    """Two A members and two B members."""
    names = ['a1', 'a2', 'b1', 'b2']
    distances = {
        ('a1', 'a2'): 0.05,
        ('b1', 'b2'): 0.05,
        ('a1', 'b1'): 0.5,
        ('a1', 'b2'): 0.2,
        ('a2', 'b1'): 0.4,
        ('a2', 'b2'): 0.3,
    }
    strains = {'a1': 'A', 'a2': 'A', 'b1': 'B', 'b2': 'B'}
    return make_distance_matrix(names, distances), strains

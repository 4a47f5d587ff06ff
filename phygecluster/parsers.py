"""
Readers for the flat files PhyGeCluster works with.

BLAST tabular output and strain files are read with pandas; FASTA, SearchIO
formats and .ace assemblies are delegated to Biopython.
"""

import logging

import pandas as pd
from Bio import SearchIO, SeqIO
from Bio.Align import MultipleSeqAlignment
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord
from Bio.Sequencing import Ace
from tqdm import tqdm

from .cluster import Cluster
from .exceptions import ConfigurationError

# BLAST -outfmt 6 / -m 8 columns, in file order
BLAST_TABLE_COLUMNS = [
    'query_id', 'subject_id', 'percent_identity', 'align_length',
    'mismatches', 'gaps_openings', 'q_start', 'q_end',
    's_start', 's_end', 'e_value', 'bit_score',
]
TABULAR_FORMATS = ('blasttable', 'm8')

# Metric name -> Bio.SearchIO HSP attribute
SEARCHIO_METRICS = {
    'evalue': 'evalue',
    'expect': 'evalue',
    'bits': 'bitscore',
    'score': 'bitscore_raw',
    'hsp_length': 'aln_span',
    'gaps': 'gap_num',
    'num_identical': 'ident_num',
    'num_conserved': 'pos_num',
    'percent_identity': None,
    'frac_identical': None,
    'frac_conserved': None,
}
SEARCHIO_FORMATS = {
    'blasttable': 'blast-tab',
    'm8': 'blast-tab',
    'blastxml': 'blast-xml',
    'blast-tab': 'blast-tab',
    'blast-xml': 'blast-xml',
    'blast-text': 'blast-text',
    'hmmer3-tab': 'hmmer3-tab',
}

GAP_CHARS = ('-', '*', '.')


def read_blast_table(blastfile):
    """
    Reads a 12-column BLAST tabular file into a DataFrame.

    Args:
        blastfile (str): Path to the BLAST -outfmt 6 file.

    Returns:
        DataFrame: One row per hit, columns named after BLAST_TABLE_COLUMNS.
    """
    dtype_dict = {'query_id': 'string', 'subject_id': 'string'}
    hits_df = pd.read_csv(blastfile, sep='\t', header=None, names=BLAST_TABLE_COLUMNS,
                          dtype=dtype_dict, comment='#', keep_default_na=False, na_values=[])
    if hits_df.empty:
        logging.warning(f"No hits found in BLAST file: {blastfile}")
    return hits_df


def iter_blast_table_hits(blastfile, report_status=False):
    """
    Yields ``(query_id, subject_id, metrics)`` per line of a BLAST tabular file.

    ``metrics`` holds every column keyed by its BLAST_TABLE_COLUMNS name.
    """
    hits_df = read_blast_table(blastfile)
    rows = hits_df.to_dict('records')
    for row in tqdm(rows, desc="Parsing BLAST file", disable=not report_status):
        yield str(row['query_id']), str(row['subject_id']), row


def _searchio_metrics(hsp):
    metrics = {}
    for name, attribute in SEARCHIO_METRICS.items():
        if attribute is not None:
            metrics[name] = getattr(hsp, attribute, None)

    aln_span = getattr(hsp, 'aln_span', None)
    ident_num = getattr(hsp, 'ident_num', None)
    pos_num = getattr(hsp, 'pos_num', None)
    if aln_span:
        if ident_num is not None:
            metrics['frac_identical'] = ident_num / aln_span
        if pos_num is not None:
            metrics['frac_conserved'] = pos_num / aln_span
    if metrics.get('frac_identical') is not None:
        metrics['percent_identity'] = metrics['frac_identical'] * 100
    else:
        metrics['percent_identity'] = getattr(hsp, 'ident_pct', None)
    return metrics


def iter_searchio_hits(blastfile, blastformat='blasttable', report_status=False):
    """
    Yields ``(query_id, subject_id, metrics)`` per HSP using Bio.SearchIO.

    Args:
        blastfile (str): Path to the search output.
        blastformat (str): Format name (``blasttable``, ``m8``, ``blastxml`` or a SearchIO name).
        report_status (bool): Show a progress bar over query results.

    Raises:
        ConfigurationError: If the format is not supported.
    """
    searchio_format = SEARCHIO_FORMATS.get(blastformat)
    if searchio_format is None:
        raise ConfigurationError(f"ARG. ERROR: blast format {blastformat} is not supported ({', '.join(SEARCHIO_FORMATS)}).")

    for result in tqdm(SearchIO.parse(blastfile, searchio_format), desc="Parsing BLAST results", disable=not report_status):
        for hit in result:
            for hsp in hit.hsps:
                yield result.id, hit.id, _searchio_metrics(hsp)


def parse_seqfile(sequencefile, report_status=False):
    """
    Parses a FASTA file into a dict of ``{seq_id: SeqRecord}``. Later duplicates replace earlier ones.
    """
    logging.info(f"Parsing sequence file {sequencefile}...")
    seqs = {}
    for record in tqdm(SeqIO.parse(sequencefile, "fasta"), desc="Parsing sequence file", disable=not report_status):
        seqs[record.id] = record
    logging.info(f"Parsed {len(seqs)} sequences.")
    return seqs


def parse_strainfile(strainfile):
    """
    Parses a two-column tab-separated file (sequence id, strain).

    Returns:
        dict: Mapping of sequence id to strain label.
    """
    logging.info(f"Parsing strain file {strainfile}...")
    strains_df = pd.read_csv(strainfile, sep='\t', header=None, usecols=[0, 1],
                             names=['member_id', 'strain'], dtype=str,
                             keep_default_na=False, na_values=[])
    no_strain = strains_df['strain'].isna() | (strains_df['strain'] == '')
    missing = no_strain.sum()
    if missing > 0:
        logging.warning(f"{missing} entries in {strainfile} have no strain and were skipped.")
        strains_df = strains_df[~no_strain]
    return dict(zip(strains_df['member_id'], strains_df['strain']))


def _clip_read(read, padded_start, contig_length):
    """
    Places the aligned clip of a read on the padded consensus coordinates.

    Read base ``i`` (1-based) sits at consensus position ``padded_start + i - 1``.
    The returned string is padded with gaps to the contig length, and .ace pad
    characters ('*') become gaps.
    """
    sequence = read.rd.sequence
    clip_start, clip_end = read.qa.align_clipping_start, read.qa.align_clipping_end
    if clip_start < 1 or clip_end < 1:
        clip_start, clip_end = 1, len(sequence)

    # read bases falling before consensus position 1 or after its end are dropped
    first = max(clip_start, 2 - padded_start)
    last = min(clip_end, contig_length - padded_start + 1)
    if first > last:
        return '-' * contig_length

    leading = padded_start + first - 2
    trailing = contig_length - (padded_start + last - 1)
    trimmed = '-' * leading + sequence[first - 1:last] + '-' * trailing
    return trimmed.replace('*', '-')


def parse_acefile(acefile, report_status=False):
    """
    Parses an .ace assembly into clusters, one per contig.

    Each cluster holds the unpadded reads as members and an alignment of the
    clipped, padded reads on the contig coordinates. The contig consensus is
    stored in ``alignment.annotations['consensus']``.

    Args:
        acefile (str): Path to the .ace file.
        report_status (bool): Show a progress bar over contigs.

    Returns:
        dict: Mapping of contig id to Cluster.
    """
    logging.info(f"Parsing ace file {acefile}...")
    clusters = {}
    with open(acefile) as handle:
        for contig in tqdm(Ace.parse(handle), desc="Parsing ace file", disable=not report_status):
            assembled = {af.name: af for af in contig.af}
            members = []
            aligned = []
            for read in contig.reads:
                read_id = read.rd.name
                af = assembled.get(read_id)
                padded_start = af.padded_start if af is not None else 1
                strand = -1 if af is not None and af.coru == 'C' else 1

                trimmed = _clip_read(read, padded_start, contig.nbases)
                unpadded = trimmed.replace('-', '')
                members.append(SeqRecord(Seq(unpadded), id=read_id, name=read_id, description=''))

                aligned_record = SeqRecord(Seq(trimmed), id=read_id, name=read_id, description='')
                aligned_record.annotations['start'] = max(padded_start, 1)
                aligned_record.annotations['end'] = max(padded_start, 1) + len(unpadded) - 1
                aligned_record.annotations['strand'] = strand
                aligned.append(aligned_record)

            alignment = MultipleSeqAlignment(aligned)
            alignment.annotations = {
                'source': '.ace, assembly file',
                'consensus': contig.sequence.replace('*', '-'),
            }
            clusters[contig.name] = Cluster(contig.name, members, alignment)

    logging.info(f"Parsed {len(clusters)} contigs from {acefile}.")
    return clusters

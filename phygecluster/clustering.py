"""
Greedy clustering of BLAST hits.

Hits are consumed in file order. A subject joins its query's cluster when
every condition holds for the hit; ids already placed in a cluster are never
moved. New clusters are named ``{rootname}_{n + 1}`` where ``n`` is the
number of clusters at the time of creation.
"""

import logging

from .cluster import Cluster
from .conditions import all_conditions_hold, parse_conditions
from .exceptions import ConfigurationError
from .parsers import (
    BLAST_TABLE_COLUMNS,
    SEARCHIO_METRICS,
    TABULAR_FORMATS,
    iter_blast_table_hits,
    iter_searchio_hits,
)

FAST_METRICS = tuple(BLAST_TABLE_COLUMNS)
SEARCHIO_PERMITTED = tuple(SEARCHIO_METRICS)

DEFAULT_FAST_CONDITIONS = {'percent_identity': ('>', 90), 'align_length': ('>', 60)}
DEFAULT_SEARCHIO_CONDITIONS = {'percent_identity': ('>', 90), 'hsp_length': ('>', 60)}

# Id columns can be named in a condition but never compare as numbers
_ID_COLUMNS = ('query_id', 'subject_id')


def _new_cluster(clusters, assigned, rootname, member_id):
    cluster_id = f"{rootname}_{len(clusters) + 1}"
    clusters[cluster_id] = Cluster(cluster_id, [member_id])
    assigned[member_id] = cluster_id
    return cluster_id


def cluster_blast_hits(hits, conditions, rootname='cluster'):
    """
    Groups query and subject ids into clusters.

    Args:
        hits (Iterable): ``(query_id, subject_id, metrics)`` tuples in file order.
        conditions (list): Validated Condition records, all of which must hold.
        rootname (str): Prefix of the generated cluster ids.

    Returns:
        dict: Mapping of cluster id to Cluster, in creation order.
    """
    clusters = {}
    assigned = {}
    hit_count = 0

    for query_id, subject_id, metrics in hits:
        hit_count += 1
        if query_id == subject_id:
            if query_id not in assigned:
                _new_cluster(clusters, assigned, rootname, query_id)
            continue

        if subject_id in assigned:
            continue

        if all_conditions_hold(conditions, metrics):
            if query_id not in assigned:
                _new_cluster(clusters, assigned, rootname, query_id)
            cluster_id = assigned[query_id]
            clusters[cluster_id].add_members([subject_id])
            assigned[subject_id] = cluster_id
        else:
            _new_cluster(clusters, assigned, rootname, subject_id)

    logging.info(f"Clustered {len(assigned)} sequences from {hit_count} hits into {len(clusters)} clusters.")
    return clusters


def fastparse_blastfile(blastfile, blastformat='blasttable', clusters_conditions=None,
                        rootname='cluster', report_status=False):
    """
    Clusters a 12-column BLAST tabular file read directly with pandas.

    Args:
        blastfile (str): Path to the BLAST file.
        blastformat (str): ``blasttable`` or ``m8``.
        clusters_conditions (dict, optional): Metric -> (comparator, threshold).
            Defaults to percent_identity > 90 and align_length > 60.
        rootname (str): Prefix of the generated cluster ids.
        report_status (bool): Show a progress bar.

    Returns:
        dict: Mapping of cluster id to Cluster.

    Raises:
        ConfigurationError: On an unsupported format or invalid conditions.
    """
    if blastformat not in TABULAR_FORMATS:
        raise ConfigurationError(
            f"ARG. ERROR: fastparse_blastfile() only accepts {', '.join(TABULAR_FORMATS)} formats, got {blastformat}."
        )
    if clusters_conditions is None:
        clusters_conditions = DEFAULT_FAST_CONDITIONS
    conditions = parse_conditions(clusters_conditions, FAST_METRICS, caller='fastparse_blastfile')

    logging.info(f"Clustering BLAST hits from {blastfile} ({', '.join(str(c) for c in conditions) or 'no conditions'})")
    hits = (
        (query_id, subject_id, {k: v for k, v in metrics.items() if k not in _ID_COLUMNS})
        for query_id, subject_id, metrics in iter_blast_table_hits(blastfile, report_status=report_status)
    )
    return cluster_blast_hits(hits, conditions, rootname=rootname)


def parse_blastfile(blastfile, blastformat='blasttable', clusters_conditions=None,
                    rootname='cluster', report_status=False):
    """
    Clusters any Bio.SearchIO-readable BLAST output, one record per HSP.

    Conditions default to percent_identity > 90 and hsp_length > 60.
    """
    if clusters_conditions is None:
        clusters_conditions = DEFAULT_SEARCHIO_CONDITIONS
    conditions = parse_conditions(clusters_conditions, SEARCHIO_PERMITTED, caller='parse_blastfile')

    logging.info(f"Clustering BLAST hits from {blastfile} ({', '.join(str(c) for c in conditions) or 'no conditions'})")
    hits = iter_searchio_hits(blastfile, blastformat=blastformat, report_status=report_status)
    return cluster_blast_hits(hits, conditions, rootname=rootname)

"""
PhyGeCluster: clustering of homologous sequences for phylogenomic pipelines

Builds sequence clusters from BLAST hits or .ace assemblies, aligns them with
external programs, computes distances and bootstrap replicates, and prunes
clusters by alignment quality or strain composition.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .phygecluster import PhyGeCluster

from .cluster import Cluster

from .clustering import (
    cluster_blast_hits,
    fastparse_blastfile,
    parse_blastfile
)

from .overlaps import (
    Overlap,
    OverlapMatrix,
    calculate_overlaps,
    best_overlaps
)

from .strains import select_by_composition

from .parsers import (
    parse_seqfile,
    parse_strainfile,
    parse_acefile
)

from .exceptions import (
    PhyGeClusterError,
    ConfigurationError,
    MissingStrainError,
    MissingDataError
)

__all__ = [
    # Metadata
    '__version__',
    '__license__',
    # Core
    'PhyGeCluster',
    'Cluster',
    # Clustering
    'cluster_blast_hits',
    'fastparse_blastfile',
    'parse_blastfile',
    # Overlaps
    'Overlap',
    'OverlapMatrix',
    'calculate_overlaps',
    'best_overlaps',
    # Strains
    'select_by_composition',
    # Parsers
    'parse_seqfile',
    'parse_strainfile',
    'parse_acefile',
    # Errors
    'PhyGeClusterError',
    'ConfigurationError',
    'MissingStrainError',
    'MissingDataError'
]

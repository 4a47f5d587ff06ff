"""
PhyGeCluster Workflow Modules

High-level workflow functions for running complete analysis pipelines.
"""

from .cluster_workflow import run_cluster_workflow

__all__ = [
    'run_cluster_workflow',
]

"""
Exceptions raised by PhyGeCluster.

Configuration problems are raised before any data is processed. Data problems
(missing strains, missing distance matrices) are fatal for the operation that
needs them. Failures of external binaries are not wrapped: they reach the
caller as ``subprocess.CalledProcessError`` or ``FileNotFoundError``.
"""


class PhyGeClusterError(Exception):
    """Base class for all PhyGeCluster errors."""


class ConfigurationError(PhyGeClusterError, ValueError):
    """Invalid argument shape, unknown key, bad comparator or threshold."""


class MissingStrainError(PhyGeClusterError, KeyError):
    """A member used in strain-based pruning has no strain assigned."""

    def __init__(self, member_id):
        super().__init__(member_id)
        self.member_id = member_id

    def __str__(self):
        return f"{self.member_id} has no strain defined"


class MissingDataError(PhyGeClusterError):
    """Data required by an operation (strains, distances, sequences) was not loaded."""

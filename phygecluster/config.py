"""
Validated configuration records for pruning, bootstrapping and file output.

Each record is built from the plain mappings accepted by the PhyGeCluster
methods (``from_mapping``) and raises ConfigurationError on bad input.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .exceptions import ConfigurationError

DISTANCE_CONSTRAINTS = ('min_distance', 'max_distance')
DISTRIBUTIONS = ('single', 'multiple')

# Bio.AlignIO formats with a writer
ALIGNMENT_FORMATS = (
    'clustal', 'fasta', 'maf', 'mauve', 'nexus', 'phylip',
    'phylip-relaxed', 'phylip-sequential', 'stockholm',
)
DISTANCE_FORMATS = ('phylip', 'tsv')


@dataclass(frozen=True)
class StrainConstraint:
    """Prefer the closest (min_distance) or farthest (max_distance) pair between two strains."""
    kind: str
    strain_a: str
    strain_b: str

    @property
    def farthest_first(self):
        return self.kind == 'max_distance'


@dataclass
class StrainPruneConfig:
    composition: Dict[str, int]
    constraints: List[StrainConstraint] = field(default_factory=list)

    @property
    def expected_total(self):
        return sum(self.composition.values())

    @classmethod
    def from_mapping(cls, args):
        """
        Builds the config from ``{'composition': {...}, 'min_distance': [...], 'max_distance': [...]}``.

        Constraints keep the mapping order, and each list keeps its own order.
        """
        if not isinstance(args, dict):
            raise ConfigurationError(f"ARG. ERROR: {args!r} is not a dict for prune_by_strains().")
        if not args.get('composition'):
            raise ConfigurationError("ARG. ERROR: No composition arg. was used for prune_by_strains().")

        for key in args:
            if key != 'composition' and key not in DISTANCE_CONSTRAINTS:
                raise ConfigurationError(f"ERROR: Constraint {key} is not available for prune_by_strains().")

        composition = args['composition']
        if not isinstance(composition, dict):
            raise ConfigurationError("ERROR: composition must be a dict of strain -> count.")
        for strain, count in composition.items():
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ConfigurationError(f"ERROR: composition count for {strain} must be a non-negative integer, got {count!r}.")

        constraints = []
        for kind, pairs in args.items():
            if kind == 'composition':
                continue
            if not isinstance(pairs, (list, tuple)):
                raise ConfigurationError(f"ERROR: Value for {kind} must be a list of strain pairs.")
            for pair in pairs:
                if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                    raise ConfigurationError(f"ERROR: {pair!r} in {kind} is not a strain pair.")
                constraints.append(StrainConstraint(kind, pair[0], pair[1]))

        return cls(dict(composition), constraints)


@dataclass
class BootstrapConfig:
    replicates: int = 100
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.replicates, bool) or not isinstance(self.replicates, int) or self.replicates < 1:
            raise ConfigurationError(f"ARG. ERROR: replicates must be a positive integer, got {self.replicates!r}.")
        if self.seed is not None and not isinstance(self.seed, int):
            raise ConfigurationError(f"ARG. ERROR: seed must be an integer, got {self.seed!r}.")


@dataclass
class OutputConfig:
    rootname: str
    distribution: str = 'multiple'
    format: Optional[str] = None
    extension: Optional[str] = None

    def validate(self, formats=None):
        if self.distribution not in DISTRIBUTIONS:
            raise ConfigurationError(f"ARG. ERROR: distribution must be one of {DISTRIBUTIONS}, got {self.distribution!r}.")
        if formats is not None and self.format not in formats:
            raise ConfigurationError(f"ARG. ERROR: format {self.format!r} is not one of {', '.join(formats)}.")
        return self

"""
PhyGeCluster: the in-memory collection of clusters, strains, distance
matrices and bootstrap replicates, with the operations that build, prune and
write them.
"""

import logging

import numpy as np
import pandas as pd
from Bio import AlignIO
from Bio.Phylo.TreeConstruction import DistanceMatrix
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from . import alignment as align_stats
from . import overlaps
from .cluster import Cluster
from .clustering import SEARCHIO_PERMITTED, fastparse_blastfile, parse_blastfile
from .conditions import all_conditions_hold, any_condition_holds, parse_conditions
from .config import (
    ALIGNMENT_FORMATS,
    DISTANCE_FORMATS,
    BootstrapConfig,
    OutputConfig,
    StrainPruneConfig,
)
from .exceptions import ConfigurationError, MissingDataError, MissingStrainError
from .parsers import parse_acefile, parse_seqfile, parse_strainfile
from .strains import select_by_composition
from .tools import AlignerConfig, run_aligner, run_blast_search


def _check_mapping(value, value_type, name):
    if not isinstance(value, dict):
        raise ConfigurationError(f"ARG. ERROR: {name} must be a dict, got {type(value).__name__}.")
    for key, item in value.items():
        if not isinstance(item, value_type):
            raise ConfigurationError(
                f"ARG. ERROR: value for {key} in {name} is not a {value_type.__name__} ({type(item).__name__})."
            )
    return value


def _as_aligner_config(run_alignments):
    if isinstance(run_alignments, AlignerConfig):
        return run_alignments
    if not isinstance(run_alignments, dict) or 'program' not in run_alignments:
        raise ConfigurationError("ARG. ERROR: run_alignments needs a 'program' specification.")
    return AlignerConfig(
        run_alignments['program'],
        parameters=run_alignments.get('parameters') or [],
        executable=run_alignments.get('executable'),
    )


def _as_bootstrap_config(run_bootstrapping):
    if isinstance(run_bootstrapping, BootstrapConfig):
        return run_bootstrapping
    if isinstance(run_bootstrapping, dict):
        unknown = set(run_bootstrapping) - {'replicates', 'seed'}
        if unknown:
            raise ConfigurationError(f"ARG. ERROR: {', '.join(sorted(unknown))} not permitted for run_bootstrapping().")
        return BootstrapConfig(**run_bootstrapping)
    return BootstrapConfig(replicates=run_bootstrapping)


class PhyGeCluster:
    """
    Clusters of homologous sequences and the data derived from them.

    ``clusters`` maps cluster id to Cluster, ``strains`` maps member id to
    strain, ``distances`` maps cluster id to a Bio.Phylo DistanceMatrix and
    ``bootstraps`` maps cluster id to a list of resampled alignments.
    """

    def __init__(self, clusters=None, strains=None, distances=None, bootstraps=None):
        self._clusters = {}
        self._strains = {}
        self._distances = {}
        self._bootstraps = {}
        self.clusters = clusters if clusters is not None else {}
        self.strains = strains if strains is not None else {}
        self.distances = distances if distances is not None else {}
        self.bootstraps = bootstraps if bootstraps is not None else {}

    def __repr__(self):
        return f"PhyGeCluster(clusters={len(self._clusters)}, strains={len(self._strains)})"

    def __len__(self):
        return len(self._clusters)

    # Construction

    @classmethod
    def from_files(cls, blastfile=None, acefile=None, blastformat='blasttable', fastblast_parser=False,
                   clusters_conditions=None, rootname='cluster', sequencefile=None, strainfile=None,
                   run_alignments=None, run_distances=None, run_bootstrapping=None, report_status=False):
        """
        Builds a PhyGeCluster from a BLAST file or an .ace assembly and runs the optional steps.

        Args:
            blastfile (str, optional): BLAST output to cluster.
            acefile (str, optional): Assembly to read clusters and alignments from.
            blastformat (str): Format of ``blastfile``.
            fastblast_parser (bool): Read ``blastfile`` as a plain 12-column table.
            clusters_conditions (dict, optional): Conditions for joining a cluster.
            rootname (str): Prefix of the generated cluster ids.
            sequencefile (str, optional): FASTA with the member sequences.
            strainfile (str, optional): Member id to strain TSV.
            run_alignments (dict or AlignerConfig, optional): ``{'program': ..., 'parameters': [...]}``.
            run_distances (str, optional): Distance method.
            run_bootstrapping (dict, int or BootstrapConfig, optional): Replicates and seed.
            report_status (bool): Show progress bars.

        Raises:
            ConfigurationError: If the arguments are incompatible.
        """
        err = "ARGUMENT INCOMPATIBILITY: "
        if blastfile is None:
            if fastblast_parser:
                raise ConfigurationError(err + "fastblast_parser can not be used without blastfile.")
            if acefile is None and strainfile is not None:
                raise ConfigurationError(err + "strainfile can not be used without blastfile or acefile.")
            if sequencefile is not None:
                raise ConfigurationError(err + "sequencefile can not be used without blastfile.")
        else:
            if acefile is not None:
                raise ConfigurationError(err + "acefile can not be used with blastfile.")
            if sequencefile is None and run_alignments is not None:
                raise ConfigurationError(err + "run_alignments can not be used without sequencefile.")
            if run_alignments is None:
                if run_distances is not None:
                    raise ConfigurationError(err + "run_distances can not be used without run_alignments.")
                if run_bootstrapping is not None:
                    raise ConfigurationError(err + "run_bootstrapping can not be used without run_alignments.")

        aligner = _as_aligner_config(run_alignments) if run_alignments is not None else None
        bootstrap = _as_bootstrap_config(run_bootstrapping) if run_bootstrapping is not None else None
        if run_distances is not None:
            align_stats.validate_distance_method(run_distances)

        if blastfile is not None:
            parser = fastparse_blastfile if fastblast_parser else parse_blastfile
            clusters = parser(blastfile, blastformat=blastformat, clusters_conditions=clusters_conditions,
                              rootname=rootname, report_status=report_status)
        elif acefile is not None:
            clusters = parse_acefile(acefile, report_status=report_status)
        else:
            clusters = {}

        phygecluster = cls(clusters)
        if sequencefile is not None:
            phygecluster.load_seqfile(sequencefile, report_status=report_status)
        if strainfile is not None:
            phygecluster.load_strainfile(strainfile)
        if aligner is not None:
            phygecluster.run_alignments(aligner)
        if run_distances is not None:
            phygecluster.run_distances(run_distances)
        if bootstrap is not None:
            phygecluster.run_bootstrapping(bootstrap.replicates, seed=bootstrap.seed)
        return phygecluster

    @classmethod
    def from_blast(cls, blastfile, **kwargs):
        return cls.from_files(blastfile=blastfile, **kwargs)

    @classmethod
    def from_ace(cls, acefile, **kwargs):
        return cls.from_files(acefile=acefile, **kwargs)

    def clone(self):
        """Independent copy: clusters and alignments are copied, sequence records are shared."""
        return PhyGeCluster(
            {cluster_id: cluster.copy() for cluster_id, cluster in self._clusters.items()},
            dict(self._strains),
            dict(self._distances),
            {cluster_id: list(replicas) for cluster_id, replicas in self._bootstraps.items()},
        )

    # Accessors

    @property
    def clusters(self):
        return self._clusters

    @clusters.setter
    def clusters(self, clusters):
        self._clusters = _check_mapping(clusters, Cluster, 'clusters')

    @property
    def strains(self):
        return self._strains

    @strains.setter
    def strains(self, strains):
        self._strains = _check_mapping(strains, str, 'strains')

    @property
    def distances(self):
        return self._distances

    @distances.setter
    def distances(self, distances):
        self._distances = _check_mapping(distances, DistanceMatrix, 'distances')

    @property
    def bootstraps(self):
        return self._bootstraps

    @bootstraps.setter
    def bootstraps(self, bootstraps):
        self._bootstraps = _check_mapping(bootstraps, list, 'bootstraps')

    def add_cluster(self, cluster_id, members):
        """Adds a new cluster of SeqRecords or ids."""
        if cluster_id in self._clusters:
            raise ConfigurationError(f"ARG. ERROR: cluster {cluster_id} already exists.")
        if not isinstance(members, (list, tuple)):
            raise ConfigurationError(f"ARG. ERROR: members for {cluster_id} must be a list.")
        self._clusters[cluster_id] = Cluster(cluster_id, members)
        return self._clusters[cluster_id]

    def remove_cluster(self, cluster_id):
        """Removes a cluster with its distances and bootstraps. Returns it, or None if absent."""
        self._distances.pop(cluster_id, None)
        self._bootstraps.pop(cluster_id, None)
        return self._clusters.pop(cluster_id, None)

    def find_cluster(self, member_id):
        for cluster in self._clusters.values():
            if member_id in cluster:
                return cluster
        return None

    def cluster_sizes(self, min_size=None, max_size=None):
        """
        Returns ``{cluster_id: size}``, limited to ``min_size <= size <= max_size``
        when ``min_size`` is given. ``max_size`` defaults to ``min_size``.
        """
        if min_size is not None and max_size is None:
            max_size = min_size
        sizes = {}
        for cluster_id, cluster in self._clusters.items():
            if min_size is None or min_size <= cluster.size <= max_size:
                sizes[cluster_id] = cluster.size
        return sizes

    # Loading

    def load_seqfile(self, sequencefile, report_status=False):
        """Replaces member records by the FASTA records with the same id. Unknown ids are ignored."""
        seqs = parse_seqfile(sequencefile, report_status=report_status)
        loaded = 0
        for cluster in self._clusters.values():
            records = [seqs[member_id] for member_id in cluster.member_ids() if member_id in seqs]
            cluster.add_members(records)
            loaded += len(records)
        logging.info(f"Loaded sequences for {loaded} cluster members.")
        return loaded

    def load_strainfile(self, strainfile):
        self._strains.update(parse_strainfile(strainfile))
        logging.info(f"{len(self._strains)} strain assignments loaded.")

    # Overlaps

    def calculate_overlaps(self):
        return overlaps.calculate_overlaps(self._clusters)

    def best_overlaps(self):
        return overlaps.best_overlaps(self._clusters)

    # External tools

    def homologous_search(self, database, program='blastn', parameters=None, strain=None,
                          filters=None, executable=None, sequencefile=None):
        """
        Searches a database with the consensus of every aligned cluster and adds the matches.

        Without ``filters`` only the first subject reported for a cluster is
        added. With ``filters``, every subject whose HSP satisfies all the
        conditions is added.

        Args:
            database (str): BLAST database path, also read as FASTA for the new
                members unless ``sequencefile`` is given.
            program (str): BLAST program.
            parameters (list or dict, optional): Extra BLAST options.
            strain (str, optional): Strain assigned to the added members.
            filters (dict, optional): Conditions on evalue, hsp_length, percent_identity...
            executable (str, optional): BLAST binary to run.
            sequencefile (str, optional): FASTA holding the database sequences.

        Returns:
            dict: Mapping of cluster id to the list of added member ids.

        Raises:
            ConfigurationError: On invalid filters.
            MissingDataError: If a matched subject is not in the database FASTA.
        """
        conditions = None
        if filters is not None:
            conditions = parse_conditions(filters, SEARCHIO_PERMITTED, caller='homologous_search')

        homologs = {}
        for cluster_id, cluster in self._clusters.items():
            if cluster.alignment is None:
                continue
            consensus = align_stats.consensus_sequence(cluster.alignment)
            if not consensus:
                logging.warning(f"Empty consensus for {cluster_id}; skipping homologous search.")
                continue

            query = SeqRecord(Seq(consensus), id=cluster_id, description='consensus')
            found = []
            for subject_id, metrics in run_blast_search(query, database, program=program,
                                                        parameters=parameters, executable=executable):
                if conditions is None:
                    found.append(subject_id)
                    break
                if subject_id not in found and all_conditions_hold(conditions, metrics):
                    found.append(subject_id)
            if found:
                homologs[cluster_id] = found

        if not homologs:
            logging.info("No homologous sequences found.")
            return homologs

        db_seqs = parse_seqfile(sequencefile or database)
        for cluster_id, member_ids in homologs.items():
            for member_id in member_ids:
                record = db_seqs.get(member_id)
                if record is None:
                    logging.error(f"{member_id} was found by BLAST but is not in {sequencefile or database}")
                    raise MissingDataError(f"Sequence {member_id} not found in {sequencefile or database}.")
                self._clusters[cluster_id].add_members([record])
                if strain is not None:
                    self._strains[member_id] = strain
        logging.info(f"Added {sum(len(ids) for ids in homologs.values())} homologous sequences to {len(homologs)} clusters.")
        return homologs

    def run_alignments(self, program, parameters=None, executable=None):
        """
        Aligns every cluster with more than one member and stores the alignment in the cluster.

        Args:
            program (str, AlignmentProgram or AlignerConfig): Aligner to run.
            parameters (list or dict, optional): Extra aligner options.
            executable (str, optional): Binary to run instead of the default one.

        Raises:
            MissingDataError: If a member to align has no sequence loaded.
        """
        if isinstance(program, AlignerConfig):
            config = program
        else:
            config = AlignerConfig(program, parameters=parameters or [], executable=executable)

        aligned = 0
        for cluster_id, cluster in self._clusters.items():
            if cluster.size < 2:
                continue
            records = list(cluster.members.values())
            for record in records:
                if record.seq is None or len(record.seq) == 0:
                    raise MissingDataError(f"Member {record.id} of {cluster_id} has no sequence; load a sequence file first.")
            cluster.alignment = run_aligner(records, config)
            aligned += 1
        logging.info(f"Aligned {aligned} clusters with {config.program.value}.")
        return aligned

    def run_distances(self, method=align_stats.DEFAULT_DISTANCE_METHOD):
        """Computes a distance matrix per aligned cluster and replaces the stored distances."""
        align_stats.validate_distance_method(method)
        distances = {}
        for cluster_id, cluster in self._clusters.items():
            if cluster.alignment is not None and len(cluster.alignment) > 0:
                distances[cluster_id] = align_stats.calculate_distances(cluster.alignment, method)
        self._distances = distances
        logging.info(f"Calculated {method} distances for {len(distances)} clusters.")
        return distances

    def run_bootstrapping(self, replicates=100, seed=None):
        """Resamples every aligned cluster and replaces the stored bootstraps."""
        config = BootstrapConfig(replicates=replicates, seed=seed)
        rng = np.random.default_rng(config.seed)
        bootstraps = {}
        for cluster_id, cluster in self._clusters.items():
            if cluster.alignment is not None and len(cluster.alignment) > 0:
                bootstraps[cluster_id] = align_stats.bootstrap_alignments(
                    cluster.alignment, config.replicates, rng=rng
                )
        self._bootstraps = bootstraps
        logging.info(f"Generated {config.replicates} bootstrap replicates for {len(bootstraps)} clusters.")
        return bootstraps

    # Pruning

    def prune_by_align(self, conditions):
        """
        Removes every aligned cluster for which at least one condition holds.

        Args:
            conditions (dict): Metric -> (comparator, threshold) with metrics
                score, length, num_residues, num_sequences, percentage_identity.

        Returns:
            dict: Removed clusters keyed by id.
        """
        parsed = parse_conditions(conditions, align_stats.ALIGN_METRICS, caller='prune_by_align')

        removed = {}
        for cluster_id in list(self._clusters):
            cluster = self._clusters[cluster_id]
            if cluster.alignment is None:
                continue
            if any_condition_holds(parsed, align_stats.alignment_metrics(cluster.alignment)):
                removed[cluster_id] = self.remove_cluster(cluster_id)
        logging.info(f"prune_by_align removed {len(removed)} clusters.")
        return removed

    def prune_by_strains(self, args):
        """
        Keeps the members of each cluster that match a strain composition.

        Clusters that can not give exactly the requested composition, or that
        have no distance matrix, are removed.

        Args:
            args (dict or StrainPruneConfig): ``{'composition': {strain: count},
                'min_distance': [[strain_a, strain_b], ...], 'max_distance': [...]}``.

        Returns:
            tuple: ``(removed_clusters, removed_members)``, removed clusters keyed
            by id and removed member ids keyed by the id of their kept cluster.

        Raises:
            ConfigurationError: On invalid arguments.
            MissingDataError: If no strains or no distances are loaded.
            MissingStrainError: If a member of a distance matrix has no strain.
        """
        config = args if isinstance(args, StrainPruneConfig) else StrainPruneConfig.from_mapping(args)

        if not self._strains:
            logging.error("No strains were loaded into the PhyGeCluster object.")
            raise MissingDataError("No strains were loaded into the PhyGeCluster object.")
        if not self._distances:
            logging.error("No distances were loaded into the PhyGeCluster object.")
            raise MissingDataError("No distances were loaded into the PhyGeCluster object.")

        # Every member must have a strain before any cluster is modified.
        for cluster_id in self._clusters:
            distance_matrix = self._distances.get(cluster_id)
            if distance_matrix is None:
                continue
            for member_id in distance_matrix.names:
                if member_id not in self._strains:
                    logging.error(f"{member_id} in {cluster_id} has no strain defined.")
                    raise MissingStrainError(member_id)

        removed_clusters = {}
        removed_members = {}
        for cluster_id in list(self._clusters):
            cluster = self._clusters[cluster_id]
            distance_matrix = self._distances.get(cluster_id)
            if distance_matrix is None:
                logging.debug(f"{cluster_id} has no distance matrix; removing it.")
                removed_clusters[cluster_id] = self.remove_cluster(cluster_id)
                continue

            selection = select_by_composition(distance_matrix, self._strains, config)
            if selection.satisfied and selection.selected:
                removed_ids = cluster.retain_members(selection.selected)
                if len(cluster) > 0:
                    removed_members[cluster_id] = removed_ids
                    continue
            removed_clusters[cluster_id] = self.remove_cluster(cluster_id)

        logging.info(
            f"prune_by_strains removed {len(removed_clusters)} clusters and "
            f"{sum(len(ids) for ids in removed_members.values())} members."
        )
        return removed_clusters, removed_members

    # Output

    def out_clusterfile(self, rootname='clustercomp', distribution='multiple'):
        """
        Writes ``cluster_id<TAB>member_id`` lines, clusters and members sorted.

        Returns:
            dict: ``{'multiple': filename}`` or ``{cluster_id: filename}``.
        """
        OutputConfig(rootname, distribution).validate()
        outfiles = {}
        rows = [
            (cluster_id, member_id)
            for cluster_id in sorted(self._clusters)
            for member_id in sorted(self._clusters[cluster_id].member_ids())
        ]
        cluster_df = pd.DataFrame(rows, columns=['cluster_id', 'member_id'])

        if distribution == 'multiple':
            outname = f"{rootname}.multiplecluster.txt"
            cluster_df.to_csv(outname, sep='\t', index=False, header=False)
            outfiles['multiple'] = outname
        else:
            for cluster_id in sorted(self._clusters):
                outname = f"{rootname}.{cluster_id}.txt"
                cluster_df[cluster_df['cluster_id'] == cluster_id].to_csv(outname, sep='\t', index=False, header=False)
                outfiles[cluster_id] = outname
        return outfiles

    def _write_alignments(self, alignments, rootname, distribution, fmt, extension, multiple_tag):
        if distribution == 'multiple':
            outname = f"{rootname}.{multiple_tag}.{extension}"
            flat = [aln for cluster_id in sorted(alignments) for aln in alignments[cluster_id]]
            AlignIO.write(flat, outname, fmt)
            return {'multiple': outname}

        outfiles = {}
        for cluster_id in sorted(alignments):
            outname = f"{rootname}.{cluster_id}.{extension}"
            AlignIO.write(alignments[cluster_id], outname, fmt)
            outfiles[cluster_id] = outname
        return outfiles

    def out_alignfile(self, rootname='alignment', distribution='multiple', format='clustal', extension='aln'):
        """Writes the cluster alignments with Bio.AlignIO. Clusters without alignment are skipped."""
        OutputConfig(rootname, distribution, format, extension).validate(ALIGNMENT_FORMATS)
        alignments = {
            cluster_id: [cluster.alignment]
            for cluster_id, cluster in self._clusters.items()
            if cluster.alignment is not None
        }
        return self._write_alignments(alignments, rootname, distribution, format, extension, 'multiplealignments')

    def out_bootstrapfile(self, rootname='bootstrap', distribution='single', format='clustal', extension='aln'):
        """Writes the bootstrap replicates, by default one file per cluster."""
        OutputConfig(rootname, distribution, format, extension).validate(ALIGNMENT_FORMATS)
        return self._write_alignments(self._bootstraps, rootname, distribution, format, extension, 'multiplebootstraps')

    def out_distancefile(self, rootname='distance', distribution='multiple', format='phylip', extension='txt'):
        """
        Writes the distance matrices as PHYLIP square matrices or as a long
        ``cluster_id, member_a, member_b, distance`` TSV.
        """
        OutputConfig(rootname, distribution, format, extension).validate(DISTANCE_FORMATS)

        if distribution == 'multiple':
            targets = {'multiple': (f"{rootname}.multipledistances.{extension}", sorted(self._distances))}
        else:
            targets = {
                cluster_id: (f"{rootname}.{cluster_id}.{extension}", [cluster_id])
                for cluster_id in sorted(self._distances)
            }

        outfiles = {}
        for key, (outname, cluster_ids) in targets.items():
            if format == 'phylip':
                with open(outname, 'w') as handle:
                    for cluster_id in cluster_ids:
                        self._distances[cluster_id].format_phylip(handle)
            else:
                rows = []
                for cluster_id in cluster_ids:
                    matrix = self._distances[cluster_id]
                    for member_a in matrix.names:
                        for member_b in matrix.names:
                            rows.append((cluster_id, member_a, member_b, matrix[member_a, member_b]))
                pd.DataFrame(rows, columns=['cluster_id', 'member_a', 'member_b', 'distance']).to_csv(
                    outname, sep='\t', index=False
                )
            outfiles[key] = outname
        return outfiles

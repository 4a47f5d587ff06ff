import os
import re
import time
import argparse
import logging

import pandas as pd
import psutil

from phygecluster.phygecluster import PhyGeCluster
from phygecluster.config import ALIGNMENT_FORMATS, DISTANCE_FORMATS, OutputConfig
from phygecluster.exceptions import ConfigurationError

CONDITION_PATTERN = re.compile(r'^(\w+)\s*(<=|>=|==|<|>)\s*(\d+)$')


def setup_logging(output_dir, log_filename="cluster_workflow.log"):
    """
    Set up logging to both console and file if logging is not already configured.

    Args:
        output_dir (str): Directory where the log file will be saved.
        log_filename (str): Name of the log file. Default is "cluster_workflow.log".
    """
    if not logging.getLogger().hasHandlers():
        os.makedirs(output_dir, exist_ok=True)
        log_file = os.path.join(output_dir, log_filename)

        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(log_file, mode='w'),
                logging.StreamHandler()
            ]
        )
        logging.info("Logging initialized. Logs will be written to: %s", log_file)
    else:
        logging.info("Logging is already configured by the calling workflow.")


def parse_condition_args(condition_args):
    """
    Converts command-line conditions such as ``percent_identity>90`` into a condition dict.

    Args:
        condition_args (list or None): Condition strings.

    Returns:
        dict or None: Metric -> (comparator, threshold), or None when no conditions were given.
    """
    if not condition_args:
        return None
    conditions = {}
    for arg in condition_args:
        match = CONDITION_PATTERN.match(arg.strip())
        if not match:
            raise ConfigurationError(f"Condition '{arg}' is not in the form metric<comparator><integer>, e.g. length<100")
        metric, comparator, threshold = match.groups()
        conditions[metric] = (comparator, int(threshold))
    return conditions


def parse_composition_args(composition_args, min_distance=None, max_distance=None):
    """
    Builds the prune_by_strains() argument from ``STRAIN=COUNT`` and ``STRAIN_A,STRAIN_B`` strings.
    """
    if not composition_args:
        return None
    composition = {}
    for arg in composition_args:
        strain, sep, count = arg.partition('=')
        if not sep or not count.isdigit():
            raise ConfigurationError(f"Composition '{arg}' is not in the form STRAIN=COUNT")
        composition[strain] = int(count)

    args = {'composition': composition}
    for kind, pairs in (('min_distance', min_distance), ('max_distance', max_distance)):
        if pairs:
            args[kind] = []
            for pair in pairs:
                strains = pair.split(',')
                if len(strains) != 2:
                    raise ConfigurationError(f"Strain pair '{pair}' for {kind} is not in the form STRAIN_A,STRAIN_B")
                args[kind].append(strains)
    return args


def write_overlaps(phygecluster, output_file):
    """Writes the best overlapping pair of every aligned cluster as a TSV."""
    overlap_matrices = phygecluster.calculate_overlaps()
    rows = []
    for cluster_id, (member_a, member_b) in sorted(phygecluster.best_overlaps().items()):
        overlap = overlap_matrices[cluster_id][member_a, member_b]
        rows.append({
            'cluster_id': cluster_id,
            'member_a': member_a,
            'member_b': member_b,
            'start': overlap.start,
            'end': overlap.end,
            'length': overlap.length,
        })
    overlaps_df = pd.DataFrame(rows, columns=['cluster_id', 'member_a', 'member_b', 'start', 'end', 'length'])
    overlaps_df.to_csv(output_file, sep='\t', index=False)
    logging.info(f"Best overlaps saved to {output_file}")
    return overlaps_df


def write_report(output_dir, start_time, end_time, ram_usage, avg_cpu_usage, max_cpu_usage,
                 input_clusters, output_clusters, aligned_clusters, removed_by_align, removed_by_strains):
    """
    Writes the workflow report to a text file.

    Args:
        output_dir (str): Directory where the report file will be saved.
        start_time (float): Workflow start time.
        end_time (float): Workflow end time.
        ram_usage (int): Maximum RAM usage in bytes.
        avg_cpu_usage (float): Average CPU usage during workflow.
        max_cpu_usage (float): Maximum CPU usage during workflow.
        input_clusters (int): Clusters built from the input file.
        output_clusters (int): Clusters left after pruning.
        aligned_clusters (int): Clusters holding an alignment.
        removed_by_align (int): Clusters removed by alignment conditions.
        removed_by_strains (int): Clusters removed by strain composition.
    """
    report_file = os.path.join(output_dir, "cluster_workflow_report.txt")
    with open(report_file, "w") as report:
        report.write("Workflow Report\n")
        report.write("=" * 40 + "\n")
        report.write(f"Start Time: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(start_time))}\n")
        report.write(f"End Time: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(end_time))}\n")
        report.write(f"Total Runtime: {end_time - start_time:.2f} seconds\n")
        report.write(f"Max RAM Usage: {ram_usage / (1024 ** 3):.2f} GB\n")
        report.write(f"Average CPU Usage: {avg_cpu_usage:.2f}%\n")
        report.write(f"Max CPU Usage: {max_cpu_usage:.2f}%\n")
        report.write(f"Input Clusters: {input_clusters}\n")
        report.write(f"Aligned Clusters: {aligned_clusters}\n")
        report.write(f"Clusters Removed by Alignment: {removed_by_align}\n")
        report.write(f"Clusters Removed by Strains: {removed_by_strains}\n")
        report.write(f"Output Clusters: {output_clusters}\n")
    logging.info(f"Report saved to: {report_file}")
    return report_file


def run_cluster_workflow(
    output_dir,
    blastfile=None,
    acefile=None,
    blastformat='blasttable',
    fastblast_parser=False,
    clusters_conditions=None,
    rootname='cluster',
    sequencefile=None,
    strainfile=None,
    aligner=None,
    aligner_parameters=None,
    distance_method=None,
    bootstrap_replicates=None,
    seed=None,
    prune_align=None,
    prune_strains=None,
    alignment_format='clustal',
    distance_format='phylip',
    report_status=False
):
    """
    Builds clusters from a BLAST or .ace file, optionally aligns, prunes and writes every result.

    Args:
        output_dir (str): Directory for the result files, log and report.
        blastfile (str, optional): BLAST output to cluster.
        acefile (str, optional): .ace assembly to read instead of a BLAST file.
        blastformat (str): Format of the BLAST file.
        fastblast_parser (bool): Read the BLAST file as a plain 12-column table.
        clusters_conditions (dict, optional): Conditions for joining a cluster.
        rootname (str): Prefix of cluster ids.
        sequencefile (str, optional): FASTA with member sequences.
        strainfile (str, optional): Member to strain TSV.
        aligner (str, optional): clustalw, kalign, mafft, muscle or tcoffee.
        aligner_parameters (list, optional): Extra aligner options.
        distance_method (str, optional): DistanceCalculator model.
        bootstrap_replicates (int, optional): Number of bootstrap replicates.
        seed (int, optional): Random seed for bootstrapping.
        prune_align (dict, optional): Conditions for prune_by_align().
        prune_strains (dict, optional): Argument for prune_by_strains().
        alignment_format (str): Bio.AlignIO format for alignments and bootstraps.
        distance_format (str): 'phylip' or 'tsv'.
        report_status (bool): Show progress bars.

    Returns:
        PhyGeCluster: The pruned collection.
    """
    os.makedirs(output_dir, exist_ok=True)
    setup_logging(output_dir)

    start_time = time.time()
    ram_monitor = psutil.Process()
    cpu_usage_points = []
    max_ram_usage = 0

    logging.info("=== Starting PhyGeCluster Workflow ===")
    OutputConfig(rootname, format=alignment_format).validate(ALIGNMENT_FORMATS)
    OutputConfig(rootname, format=distance_format).validate(DISTANCE_FORMATS)
    for path, name in ((blastfile, 'BLAST file'), (acefile, 'Ace file'), (sequencefile, 'Sequence file'), (strainfile, 'Strain file')):
        if path is not None and not os.path.exists(path):
            raise FileNotFoundError(f"{name} not found: {path}")

    run_alignments = None
    if aligner is not None:
        run_alignments = {'program': aligner, 'parameters': aligner_parameters or []}
    if acefile is not None and run_alignments is not None:
        logging.info("Reads from the ace file are already aligned; they will be realigned.")

    # Step 1: Build clusters
    logging.info("Step 1: Building clusters...")
    phygecluster = PhyGeCluster.from_files(
        blastfile=blastfile,
        acefile=acefile,
        blastformat=blastformat,
        fastblast_parser=fastblast_parser,
        clusters_conditions=clusters_conditions,
        rootname=rootname,
        sequencefile=sequencefile,
        strainfile=strainfile,
        run_alignments=run_alignments,
        run_distances=distance_method,
        run_bootstrapping={'replicates': bootstrap_replicates, 'seed': seed} if bootstrap_replicates else None,
        report_status=report_status
    )
    input_clusters = len(phygecluster)
    max_ram_usage = max(max_ram_usage, ram_monitor.memory_info().rss)
    cpu_usage_points.append(psutil.cpu_percent(interval=None))

    # Step 2: Pruning
    removed_by_align = 0
    removed_by_strains = 0
    if prune_align:
        logging.info("Step 2a: Pruning clusters by alignment...")
        removed_by_align = len(phygecluster.prune_by_align(prune_align))
    if prune_strains:
        logging.info("Step 2b: Pruning clusters by strain composition...")
        removed_clusters, removed_members = phygecluster.prune_by_strains(prune_strains)
        removed_by_strains = len(removed_clusters)
        if removed_members:
            # Trimmed clusters need fresh distances and replicates
            if distance_method is not None:
                phygecluster.run_distances(distance_method)
            if bootstrap_replicates:
                phygecluster.run_bootstrapping(bootstrap_replicates, seed=seed)
    max_ram_usage = max(max_ram_usage, ram_monitor.memory_info().rss)
    cpu_usage_points.append(psutil.cpu_percent(interval=None))

    # Step 3: Outputs
    logging.info("Step 3: Writing results...")
    root = os.path.join(output_dir, rootname)
    phygecluster.out_clusterfile(rootname=root)
    aligned_clusters = sum(1 for cluster in phygecluster.clusters.values() if cluster.alignment is not None)
    if aligned_clusters:
        phygecluster.out_alignfile(rootname=root, format=alignment_format)
        write_overlaps(phygecluster, os.path.join(output_dir, f"{rootname}.best_overlaps.tsv"))
    if phygecluster.distances:
        extension = 'tsv' if distance_format == 'tsv' else 'txt'
        phygecluster.out_distancefile(rootname=root, format=distance_format, extension=extension)
    if phygecluster.bootstraps:
        phygecluster.out_bootstrapfile(rootname=root, format=alignment_format)

    end_time = time.time()
    max_ram_usage = max(max_ram_usage, ram_monitor.memory_info().rss)
    cpu_usage_points.append(psutil.cpu_percent(interval=None))

    avg_cpu_usage = sum(cpu_usage_points) / len(cpu_usage_points) if cpu_usage_points else 0
    max_cpu_usage = max(cpu_usage_points) if cpu_usage_points else 0

    write_report(output_dir, start_time, end_time, max_ram_usage, avg_cpu_usage, max_cpu_usage,
                 input_clusters, len(phygecluster), aligned_clusters, removed_by_align, removed_by_strains)
    logging.info("=== PhyGeCluster Workflow Completed ===")
    return phygecluster


def add_workflow_arguments(parser):
    """Adds the workflow options to an argparse parser."""
    input_group = parser.add_argument_group('Input data')
    source = input_group.add_mutually_exclusive_group(required=True)
    source.add_argument('-b', '--blastfile', type=str, help='BLAST output to cluster.')
    source.add_argument('-a', '--acefile', type=str, help='Assembly .ace file (one cluster per contig).')
    input_group.add_argument('-s', '--sequencefile', type=str, help='FASTA file with the member sequences.')
    input_group.add_argument('-t', '--strainfile', type=str, help='Two-column TSV: sequence id, strain.')
    input_group.add_argument('-o', '--output_dir', type=str, required=True, help='Directory to save results.')

    cluster_group = parser.add_argument_group('Clustering')
    cluster_group.add_argument('--blastformat', type=str, default='blasttable',
                               help='BLAST format: blasttable, m8, blastxml (default: blasttable).')
    cluster_group.add_argument('--fast', action='store_true',
                               help='Read the BLAST file as a plain 12-column table.')
    cluster_group.add_argument('--condition', action='append', dest='conditions',
                               help='Clustering condition, e.g. percent_identity>90. Repeat for more.')
    cluster_group.add_argument('--rootname', type=str, default='cluster',
                               help='Prefix for cluster ids (default: cluster).')

    tools_group = parser.add_argument_group('Alignment, distances and bootstrapping')
    tools_group.add_argument('--aligner', type=str, choices=['clustalw', 'kalign', 'mafft', 'muscle', 'tcoffee'],
                             help='Aligner to run on each cluster.')
    tools_group.add_argument('--aligner_parameter', action='append', dest='aligner_parameters',
                             help='Extra option passed to the aligner. Repeat for more.')
    tools_group.add_argument('--distance', type=str, dest='distance_method',
                             help='Distance model (e.g. identity, blastn, trans).')
    tools_group.add_argument('--bootstrap', type=int, dest='bootstrap_replicates',
                             help='Number of bootstrap replicates.')
    tools_group.add_argument('--seed', type=int, help='Random seed for bootstrapping.')

    prune_group = parser.add_argument_group('Pruning')
    prune_group.add_argument('--prune_align', action='append',
                             help='Remove clusters whose alignment matches, e.g. length<100. Repeat for more.')
    prune_group.add_argument('--composition', nargs='+',
                             help='Strain composition to keep, e.g. A=2 B=1.')
    prune_group.add_argument('--min_distance', action='append',
                             help='Strain pair to select by minimum distance, e.g. A,B.')
    prune_group.add_argument('--max_distance', action='append',
                             help='Strain pair to select by maximum distance, e.g. A,B.')

    output_group = parser.add_argument_group('Output')
    output_group.add_argument('--alignment_format', type=str, default='clustal',
                              help='Bio.AlignIO format for alignments (default: clustal).')
    output_group.add_argument('--distance_format', type=str, default='phylip', choices=['phylip', 'tsv'],
                              help='Distance matrix format (default: phylip).')
    output_group.add_argument('--report_status', action='store_true', help='Show progress bars.')
    return parser


def run_from_args(args):
    return run_cluster_workflow(
        output_dir=args.output_dir,
        blastfile=args.blastfile,
        acefile=args.acefile,
        blastformat=args.blastformat,
        fastblast_parser=args.fast,
        clusters_conditions=parse_condition_args(args.conditions),
        rootname=args.rootname,
        sequencefile=args.sequencefile,
        strainfile=args.strainfile,
        aligner=args.aligner,
        aligner_parameters=args.aligner_parameters,
        distance_method=args.distance_method,
        bootstrap_replicates=args.bootstrap_replicates,
        seed=args.seed,
        prune_align=parse_condition_args(args.prune_align),
        prune_strains=parse_composition_args(args.composition, args.min_distance, args.max_distance),
        alignment_format=args.alignment_format,
        distance_format=args.distance_format,
        report_status=args.report_status
    )


def main():
    parser = argparse.ArgumentParser(description='Cluster BLAST hits or assembly reads, align, prune and write the results.')
    add_workflow_arguments(parser)
    args = parser.parse_args()
    run_from_args(args)


if __name__ == "__main__":
    main()

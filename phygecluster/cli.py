#!/usr/bin/env python
"""
PhyGeCluster Command-Line Interface

Unified entry point for the PhyGeCluster commands.
"""

import sys
import os
import argparse
import logging

import pandas as pd

from phygecluster import __version__
from phygecluster.exceptions import PhyGeClusterError


def setup_logging(verbose=False):
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def validate_file(path, name):
    """Validate that a file exists."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"{name} not found: {path}")
    if not os.path.isfile(path):
        raise ValueError(f"{name} is not a file: {path}")


def validate_directory(path, name, create=False):
    """Validate or create a directory."""
    if create:
        os.makedirs(path, exist_ok=True)
    elif not os.path.exists(path):
        raise FileNotFoundError(f"{name} not found: {path}")
    elif not os.path.isdir(path):
        raise ValueError(f"{name} is not a directory: {path}")


def add_common_args(parser):
    """Add common arguments shared across commands."""
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')


def create_parser():
    """Create the argument parser with all subcommands."""
    from phygecluster.workflows.cluster_workflow import add_workflow_arguments

    parser = argparse.ArgumentParser(
        prog='phygecluster',
        description='PhyGeCluster: clustering of homologous sequences for phylogenomics',
        epilog='Use phygecluster <command> --help for detailed information on each command.'
    )

    parser.add_argument('--version', action='version', version=f'phygecluster {__version__}')
    subparsers = parser.add_subparsers(dest='command', required=True,
                                       help='Available commands')

    # CLUSTER - Full pipeline
    p = subparsers.add_parser(
        'cluster',
        help='Cluster, align, prune and write results',
        description='Build clusters from a BLAST or ace file, optionally align, compute distances, '
                    'bootstrap and prune them, and write every result to the output directory.'
    )
    add_workflow_arguments(p)
    add_common_args(p)

    # SIZES - Cluster size table
    p = subparsers.add_parser(
        'sizes',
        help='Report cluster sizes from a BLAST file',
        description='Cluster a BLAST file and print the size of every cluster.'
    )
    p.add_argument('--blastfile', '-b', required=True,
                   help='BLAST output to cluster')
    p.add_argument('--blastformat', default='blasttable',
                   help='BLAST format (default: blasttable)')
    p.add_argument('--fast', action='store_true',
                   help='Read the BLAST file as a plain 12-column table')
    p.add_argument('--condition', action='append', dest='conditions',
                   help='Clustering condition, e.g. percent_identity>90')
    p.add_argument('--min_size', type=int,
                   help='Only report clusters with at least this many members')
    p.add_argument('--max_size', type=int,
                   help='Only report clusters with at most this many members (default: min_size)')
    p.add_argument('--output', '-o',
                   help='TSV file to write instead of printing')
    add_common_args(p)

    # OVERLAPS - Best overlaps of an assembly
    p = subparsers.add_parser(
        'overlaps',
        help='Report the best overlapping read pair of each contig',
        description='Read an ace assembly and report the pair of reads with the longest overlap per contig.'
    )
    p.add_argument('--acefile', '-a', required=True,
                   help='Assembly .ace file')
    p.add_argument('--output', '-o', required=True,
                   help='TSV file for the best overlaps')
    add_common_args(p)

    return parser


def run_cluster(args):
    """Run the full clustering workflow."""
    from phygecluster.workflows.cluster_workflow import run_from_args

    for path, name in ((args.blastfile, "BLAST file"), (args.acefile, "Ace file"),
                       (args.sequencefile, "Sequence file"), (args.strainfile, "Strain file")):
        if path:
            validate_file(path, name)
    validate_directory(args.output_dir, "Output directory", create=True)

    run_from_args(args)


def run_sizes(args):
    """Cluster a BLAST file and report the cluster sizes."""
    from phygecluster.phygecluster import PhyGeCluster
    from phygecluster.workflows.cluster_workflow import parse_condition_args

    validate_file(args.blastfile, "BLAST file")
    phygecluster = PhyGeCluster.from_blast(
        args.blastfile,
        blastformat=args.blastformat,
        fastblast_parser=args.fast,
        clusters_conditions=parse_condition_args(args.conditions)
    )
    sizes = phygecluster.cluster_sizes(args.min_size, args.max_size)
    sizes_df = pd.DataFrame(sorted(sizes.items()), columns=['cluster_id', 'size'])
    if args.output:
        sizes_df.to_csv(args.output, sep='\t', index=False)
        logging.info(f"Cluster sizes saved to {args.output}")
    else:
        print(sizes_df.to_string(index=False))


def run_overlaps(args):
    """Report the best overlaps of an ace assembly."""
    from phygecluster.phygecluster import PhyGeCluster
    from phygecluster.workflows.cluster_workflow import write_overlaps

    validate_file(args.acefile, "Ace file")
    phygecluster = PhyGeCluster.from_ace(args.acefile)
    write_overlaps(phygecluster, args.output)


def main():
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if hasattr(args, 'verbose'):
        setup_logging(args.verbose)
    else:
        setup_logging(False)

    try:
        if args.command == 'cluster':
            run_cluster(args)
        elif args.command == 'sizes':
            run_sizes(args)
        elif args.command == 'overlaps':
            run_overlaps(args)
        else:
            parser.print_help()
            sys.exit(1)

    except FileNotFoundError as e:
        logging.error(f"File not found: {e}")
        sys.exit(1)
    except ValueError as e:
        logging.error(f"Invalid value: {e}")
        sys.exit(1)
    except PhyGeClusterError as e:
        logging.error(f"PhyGeCluster error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("\nOperation cancelled by user")
        sys.exit(130)


if __name__ == '__main__':
    main()

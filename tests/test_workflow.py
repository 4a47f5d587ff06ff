"""
Tests for the cluster workflow and the command-line interface.
"""
import os
import sys
from unittest.mock import patch

import pandas as pd
import pytest
from Bio import AlignIO

from phygecluster import cli
from phygecluster.exceptions import ConfigurationError
from phygecluster.workflows.cluster_workflow import (
    parse_composition_args,
    parse_condition_args,
    run_cluster_workflow,
)


class TestArgumentParsing:

    def test_condition_args(self):
        assert parse_condition_args(None) is None
        assert parse_condition_args(['percent_identity>90', 'align_length >= 60']) == {
            'percent_identity': ('>', 90),
            'align_length': ('>=', 60),
        }

    @pytest.mark.parametrize("arg", ['percent_identity', 'length<1.5', 'length=>3', '<100'])
    def test_bad_condition_args(self, arg):
        with pytest.raises(ConfigurationError):
            parse_condition_args([arg])

    def test_composition_args(self):
        args = parse_composition_args(['A=2', 'B=1'], min_distance=['A,B'], max_distance=None)
        assert args == {'composition': {'A': 2, 'B': 1}, 'min_distance': [['A', 'B']]}
        assert parse_composition_args(None) is None

    def test_bad_composition_args(self):
        with pytest.raises(ConfigurationError):
            parse_composition_args(['A:2'])
        with pytest.raises(ConfigurationError):
            parse_composition_args(['A=2'], max_distance=['A,B,C'])


class TestRunClusterWorkflow:

    def test_blast_workflow(self, tmp_path, blast_file, fasta_file, strain_file):
        output_dir = str(tmp_path / "results")
        phyg = run_cluster_workflow(
            output_dir,
            blastfile=blast_file,
            fastblast_parser=True,
            sequencefile=fasta_file,
            strainfile=strain_file,
        )
        assert len(phyg) == 4
        clusters_df = pd.read_csv(os.path.join(output_dir, "cluster.multiplecluster.txt"), sep='\t', header=None)
        assert len(clusters_df) == 6
        report = open(os.path.join(output_dir, "cluster_workflow_report.txt")).read()
        assert "Input Clusters: 4" in report
        assert "Output Clusters: 4" in report

    def test_ace_workflow_writes_alignments_and_overlaps(self, tmp_path, ace_file):
        output_dir = str(tmp_path / "results")
        run_cluster_workflow(output_dir, acefile=ace_file, rootname='asm', distance_method='identity',
                             distance_format='tsv')
        assert os.path.exists(os.path.join(output_dir, "asm.multiplealignments.aln"))
        assert os.path.exists(os.path.join(output_dir, "asm.multipledistances.tsv"))
        overlaps_df = pd.read_csv(os.path.join(output_dir, "asm.best_overlaps.tsv"), sep='\t')
        assert overlaps_df.iloc[0][['member_a', 'member_b', 'length']].tolist() == ['read1', 'read2', 5]

    def test_strain_pruning_refreshes_distances_and_bootstraps(self, tmp_path, ace_file):
        strain_file = tmp_path / "reads.tsv"
        strain_file.write_text("read1\tA\nread2\tB\n")
        output_dir = str(tmp_path / "results")
        phyg = run_cluster_workflow(
            output_dir,
            acefile=ace_file,
            strainfile=str(strain_file),
            rootname='asm',
            distance_method='identity',
            bootstrap_replicates=2,
            seed=1,
            prune_strains={'composition': {'A': 1}},
            alignment_format='fasta',
            distance_format='tsv',
        )
        assert phyg.clusters['Contig1'].member_ids() == ['read1']
        distances_df = pd.read_csv(os.path.join(output_dir, "asm.multipledistances.tsv"), sep='\t')
        assert set(distances_df['member_a']) | set(distances_df['member_b']) == {'read1'}
        replicas = list(AlignIO.parse(os.path.join(output_dir, "asm.Contig1.aln"), 'fasta'))
        assert len(replicas) == 2
        assert all([record.id for record in replica] == ['read1'] for replica in replicas)

    def test_bad_output_format_fails_before_any_step(self, tmp_path, ace_file):
        output_dir = str(tmp_path / "results")
        with patch('phygecluster.workflows.cluster_workflow.PhyGeCluster.from_files') as mock_build:
            with pytest.raises(ConfigurationError):
                run_cluster_workflow(output_dir, acefile=ace_file, alignment_format='clustalx')
            with pytest.raises(ConfigurationError):
                run_cluster_workflow(output_dir, acefile=ace_file, distance_format='csv')
        mock_build.assert_not_called()

    def test_missing_input(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            run_cluster_workflow(str(tmp_path / "results"), blastfile=str(tmp_path / "missing.m8"))


class TestCli:

    def test_sizes(self, tmp_path, blast_file):
        output = str(tmp_path / "sizes.tsv")
        argv = ['phygecluster', 'sizes', '-b', blast_file, '--fast', '--min_size', '2', '-o', output]
        with patch.object(sys, 'argv', argv):
            cli.main()
        sizes_df = pd.read_csv(output, sep='\t')
        assert sizes_df.values.tolist() == [['cluster_1', 2], ['cluster_4', 2]]

    def test_overlaps(self, tmp_path, ace_file):
        output = str(tmp_path / "overlaps.tsv")
        with patch.object(sys, 'argv', ['phygecluster', 'overlaps', '-a', ace_file, '-o', output]):
            cli.main()
        assert pd.read_csv(output, sep='\t')['cluster_id'].tolist() == ['Contig1']

    def test_missing_file_exits(self, tmp_path):
        argv = ['phygecluster', 'sizes', '-b', str(tmp_path / "missing.m8")]
        with patch.object(sys, 'argv', argv):
            with pytest.raises(SystemExit) as excinfo:
                cli.main()
        assert excinfo.value.code == 1

    def test_bad_condition_exits(self, tmp_path, blast_file):
        argv = ['phygecluster', 'sizes', '-b', blast_file, '--fast', '--condition', 'bogus>1']
        with patch.object(sys, 'argv', argv):
            with pytest.raises(SystemExit) as excinfo:
                cli.main()
        assert excinfo.value.code == 1

"""
External programs: multiple sequence aligners and BLAST.

Every program runs as a blocking subprocess on temporary files. Failures
(``subprocess.CalledProcessError`` or a missing binary) are logged and
re-raised unchanged.
"""

import logging
import os
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from Bio import AlignIO, SeqIO

from .exceptions import ConfigurationError
from .parsers import iter_searchio_hits


class AlignmentProgram(Enum):
    CLUSTALW = 'clustalw'
    KALIGN = 'kalign'
    MAFFT = 'mafft'
    MUSCLE = 'muscle'
    TCOFFEE = 'tcoffee'

    @classmethod
    def from_name(cls, name):
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            permitted = ','.join(sorted(program.value for program in cls))
            raise ConfigurationError(
                f"ARG. ERROR: program {name!r} selected for run_alignments() is not in the list "
                f"of permitted programs ({permitted})"
            ) from None


# program -> (default executable, format written by the program)
ALIGNER_DEFAULTS = {
    AlignmentProgram.CLUSTALW: ('clustalw2', 'clustal'),
    AlignmentProgram.KALIGN: ('kalign', 'fasta'),
    AlignmentProgram.MAFFT: ('mafft', 'fasta'),
    AlignmentProgram.MUSCLE: ('muscle', 'fasta'),
    AlignmentProgram.TCOFFEE: ('t_coffee', 'fasta'),
}

BLAST_PROGRAMS = ('blastn', 'blastp', 'blastx', 'tblastn', 'tblastx')

CLUSTALW_SCORE = re.compile(r'Alignment Score\s+(-?\d+)')


def expand_parameters(parameters, joiner=None):
    """
    Turns extra program options into command-line tokens.

    A list is used as is. A dict gives ``[key, value]`` per item, or
    ``key=value`` when ``joiner`` is '='; a value of None or True gives the key alone.
    """
    if parameters is None:
        return []
    if isinstance(parameters, (list, tuple)):
        return [str(parameter) for parameter in parameters]
    if not isinstance(parameters, dict):
        raise ConfigurationError(f"ARG. ERROR: parameters {parameters!r} must be a list or a dict.")

    tokens = []
    for key, value in parameters.items():
        if value is None or value is True:
            tokens.append(str(key))
        elif joiner:
            tokens.append(f"{key}{joiner}{value}")
        else:
            tokens.extend([str(key), str(value)])
    return tokens


@dataclass
class AlignerConfig:
    program: AlignmentProgram
    parameters: Union[List[str], Dict[str, object]] = field(default_factory=list)
    executable: Optional[str] = None

    def __post_init__(self):
        self.program = AlignmentProgram.from_name(self.program)
        if self.executable is None:
            self.executable = ALIGNER_DEFAULTS[self.program][0]
        expand_parameters(self.parameters)

    @property
    def output_format(self):
        return ALIGNER_DEFAULTS[self.program][1]

    def build_command(self, input_file, output_file):
        """Returns the argument list. For MAFFT the alignment is read from stdout."""
        exe = self.executable
        if self.program is AlignmentProgram.CLUSTALW:
            return [exe, f"-INFILE={input_file}", f"-OUTFILE={output_file}", "-OUTPUT=CLUSTAL",
                    *expand_parameters(self.parameters, joiner='=')]
        if self.program is AlignmentProgram.KALIGN:
            return [exe, "-i", input_file, "-o", output_file, "-f", "fasta", *expand_parameters(self.parameters)]
        if self.program is AlignmentProgram.MAFFT:
            return [exe, *expand_parameters(self.parameters), input_file]
        if self.program is AlignmentProgram.MUSCLE:
            return [exe, "-align", input_file, "-output", output_file, *expand_parameters(self.parameters)]
        return [exe, input_file, "-output", "fasta_aln", "-outfile", output_file, *expand_parameters(self.parameters)]


def run_aligner(records, config):
    """
    Aligns sequences with an external program.

    Args:
        records (list): SeqRecord objects with sequences.
        config (AlignerConfig): Program, extra parameters and executable.

    Returns:
        MultipleSeqAlignment: The alignment, with ``annotations['score']`` set
        when the program reports a score (ClustalW).
    """
    with tempfile.TemporaryDirectory(prefix='phygecluster_') as tmp_dir:
        input_file = os.path.join(tmp_dir, 'input.fasta')
        output_file = os.path.join(tmp_dir, 'output.aln')
        SeqIO.write(records, input_file, 'fasta')

        cmd = config.build_command(input_file, output_file)
        logging.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            logging.error(f"{config.program.value} failed: {e.stderr}")
            raise
        except FileNotFoundError:
            logging.error(f"{config.executable} not found in PATH")
            raise

        if config.program is AlignmentProgram.MAFFT:
            with open(output_file, 'w') as f:
                f.write(result.stdout)

        alignment = AlignIO.read(output_file, config.output_format)

    alignment.annotations = dict(alignment.annotations or {})
    match = CLUSTALW_SCORE.search(result.stdout or '')
    if match:
        alignment.annotations['score'] = int(match.group(1))
    return alignment


def run_blast_search(query, database, program='blastn', parameters=None, executable=None):
    """
    Runs BLAST for a single query sequence and reads the XML report.

    Args:
        query (SeqRecord): Query sequence.
        database (str): Path of a formatted BLAST database.
        program (str): One of BLAST_PROGRAMS.
        parameters (list or dict, optional): Extra BLAST options, e.g. ``{'-evalue': 1e-10}``.
        executable (str, optional): Binary to run instead of ``program``.

    Returns:
        list: ``(subject_id, metrics)`` per HSP in report order.
    """
    if program not in BLAST_PROGRAMS:
        raise ConfigurationError(f"ARG. ERROR: {program} is not a BLAST program ({', '.join(BLAST_PROGRAMS)}).")

    with tempfile.TemporaryDirectory(prefix='phygecluster_') as tmp_dir:
        query_file = os.path.join(tmp_dir, 'query.fasta')
        output_file = os.path.join(tmp_dir, 'blast.xml')
        SeqIO.write([query], query_file, 'fasta')

        cmd = [executable or program, '-query', query_file, '-db', database,
               '-outfmt', '5', '-out', output_file, *expand_parameters(parameters)]
        logging.debug(f"Running: {' '.join(cmd)}")
        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            logging.error(f"{program} failed: {e.stderr}")
            raise

        return [(subject_id, metrics) for _, subject_id, metrics in iter_searchio_hits(output_file, 'blastxml')]

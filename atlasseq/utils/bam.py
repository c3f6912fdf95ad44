#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Function, processing BAM files

Bam:
  - sort
  - index
  - count
  - rmdup
  - to_bedgraph
"""

import os
import pysam
import pybedtools
from shutil import which
from atlasseq.utils.utils import log, run_shell_cmd
from atlasseq.utils.file import check_file


def picard_cmd(picard=None, mem='8g'):
    """The command to launch picard

    picard : str or None
        Path to picard.jar, or the directory containing picard.jar;
        if None, search `picard` in $PATH
    """
    if isinstance(picard, str) and os.path.isdir(picard):
        picard = os.path.join(picard, 'picard.jar')
    if isinstance(picard, str) and picard.endswith('.jar'):
        if not check_file(picard):
            raise ValueError('picard.jar not found: {}'.format(picard))
        out = '{} -Xmx{} -jar {}'.format(which('java') or 'java', mem, picard)
    else:
        out = which('picard')
        if out is None:
            raise ValueError('picard not found, set --picard or install it')
    return out


class Bam(object):
    """Manipulate BAM files
    - sort
    - index
    - count
    - rmdup
    - to_bedgraph

    Using Pysam, Pybedtools, ...
    """
    def __init__(self, infile, threads=4):
        self.bam = infile
        self.threads = threads


    def index(self):
        """Create index for bam
        """
        bai = self.bam + '.bai'
        if not os.path.exists(bai):
            pysam.index(self.bam)
        return bai


    def sort(self, outfile=None, by_name=False, overwrite=False):
        """Sort bam file by position (default)
        save to *.sorted.bam (or specify the name)
        """
        if outfile is None:
            outfile = os.path.splitext(self.bam)[0] + '.sorted.bam'
        if os.path.exists(outfile) and overwrite is False:
            log.info('file exists: {}'.format(outfile))
        else:
            if by_name:
                pysam.sort('-@', str(self.threads), '-n', '-o', outfile, self.bam)
            else:
                pysam.sort('-@', str(self.threads), '-o', outfile, self.bam)
        return outfile


    def count(self):
        """Using samtools view -c
        0 for missing bam file, or header-only bam
        """
        if not check_file(self.bam, check_empty=True):
            return 0
        x = pysam.view('-c', self.bam)
        return int(x.strip())


    def is_empty(self):
        """No alignments in bam (header only)"""
        return self.count() == 0


    def rmdup(self, outfile=None, overwrite=False, picard=None, mem='8g'):
        """Remove duplicates using picard
        picard MarkDuplicates REMOVE_DUPLICATES=true I=in.bam O=out.bam M=metrics.txt

        duplicates scored by sum of base qualities, input sorted by coordinate
        """
        if outfile is None:
            outfile = os.path.splitext(self.bam)[0] + '.rmdup.bam'
        log_stderr = outfile + '.picard.log'
        metrics_file = outfile + '.metrics.txt'
        cmd = ' '.join([
            '{} MarkDuplicates'.format(picard_cmd(picard, mem)),
            'INPUT={}'.format(self.bam),
            'OUTPUT={}'.format(outfile),
            'METRICS_FILE={}'.format(metrics_file),
            'REMOVE_DUPLICATES=true',
            'DUPLICATE_SCORING_STRATEGY=SUM_OF_BASE_QUALITIES',
            'ASSUME_SORTED=true',
            'VALIDATION_STRINGENCY=LENIENT',
            'QUIET=true',
            'VERBOSITY=ERROR',
            '2>{}'.format(log_stderr),
        ])
        cmd_txt = os.path.splitext(outfile)[0] + '.cmd.sh'
        with open(cmd_txt, 'wt') as w:
            w.write(cmd+'\n')
        if check_file(outfile, check_empty=True) and not overwrite:
            log.info('rmdup() skipped, file exists: {}'.format(outfile))
        else:
            rc, _, _ = run_shell_cmd(cmd)
            if rc or not check_file(outfile, check_empty=True):
                raise RuntimeError('rmdup() failed, see: {}'.format(log_stderr))
        Bam(outfile).index()
        return outfile


    def to_bedgraph(self, outfile, strand=None, track_line=None):
        """Coverage in bedGraph format
        bedtools genomecov -ibam in.bam -bg -strand +

        strand : str or None
            '+' or '-', strand specific coverage
        track_line : str or None
            The UCSC header line
        """
        kwargs = {'bg': True}
        if strand in ['+', '-']:
            kwargs['strand'] = strand
        with open(outfile, 'wt') as w:
            if isinstance(track_line, str):
                w.write(track_line + '\n')
            if not self.is_empty():
                bg = pybedtools.BedTool(self.bam).genome_coverage(**kwargs)
                for i in bg:
                    w.write(str(i))
        return outfile

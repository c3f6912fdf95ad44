# -*- coding: utf-8 -*-

"""
Functions for sequence, fastx

"""

import os
import shutil
from xopen import xopen
from atlasseq.utils.utils import log, update_obj, run_shell_cmd
from atlasseq.utils.file import check_path, check_file


class Fastx(object):
    """
    Collection of tools to manipulate fastx file
    1. fq_counter: number of fastq records
    2. sample: [seqtk sample]
    """
    def __init__(self, input, **kwargs):
        """
        read fastq/a file
        """
        self = update_obj(self, kwargs, force=True)
        self.input = input


    def sample(self, out, fraction=1.0, seed=11, overwrite=False):
        """
        Extract a random subset of fastq file using seqtk

        fraction: float, (0, 1], fraction of reads to keep
        """
        fraction = float(fraction)
        if not 0 < fraction <= 1:
            raise ValueError('fraction expect (0, 1], got {}'.format(fraction))
        check_path(os.path.dirname(os.path.abspath(out)), create_dirs=True)
        if check_file(out, check_empty=True) and not overwrite:
            log.info('sample() skipped, file exists: {}'.format(out))
            return out
        cmd = ' '.join([
            '{} sample'.format(shutil.which('seqtk')),
            '-s {}'.format(seed),
            '{} {}'.format(self.input, fraction),
            '> {}'.format(out),
            ])
        rc, _, _ = run_shell_cmd(cmd)
        if rc or not check_file(out):
            raise RuntimeError('sample() failed, {}'.format(self.input))
        return out


    def count(self, x=None):
        """
        count the number of lines
        source: by Michael Bacon on StackOverflow forum:
        url: https://stackoverflow.com/a/27518377/2530783.
        """
        if x is None:
            x = self.input
        if not check_file(x):
            return 0
        def _make_gen(fh):
            block = fh(1024*1024)
            while block:
                yield block
                block = fh(1024*1024)

        with xopen(x, 'rb') as fh:
            return sum(buf.count(b'\n') for buf in _make_gen(fh.read))


    def fq_counter(self, x=None):
        """
        Count fastq records
        N = (total lines) / 4
        """
        return int(self.count(x) / 4)

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Matched random control (MRC)

Random genomic intervals with the same size, strand and base composition
(GC content) as the experimental intervals

input BED: fixed interval length (= window), strand in column 6, GC fraction
in column 7

loop, until every (GC, strand) bin is filled:
  bedtools shuffle -noOverlapping -incl allowed.bed -excl accepted.bed \
      -i template.bed -g genome.size
  | bedtools nuc -fi genome.fa -bed -
  # keep candidates without N, in the bins not filled yet

Example:

>>> args = {
    'genome_size': 'hg19.genome',
    'genome_fa': 'hg19.fa',
    'input': 'insertions.gc10.bed',
    'output': 'insertions.mrc.bed',
    'window': 10,
}
>>> Mrc(**args).run()
"""

import os
import collections
import pybedtools
from atlasseq.utils.utils import log, update_obj, Config
from atlasseq.utils.file import (
    check_file, check_path, file_abspath, remove_path
)
from atlasseq.utils.argsParser import add_mrc_args


def gc_bin(x):
    """GC fraction as bin label, two decimals
    '0.4', '0.40', 0.4 -> '0.40'
    """
    return '{:.2f}'.format(float(x))


def read_intervals(x):
    """Non-comment records of BED file, as list of fields"""
    out = []
    with open(x) as r:
        for line in r:
            if line.startswith('#') or not line.strip():
                continue
            out.append(line.rstrip('\r\n').split('\t'))
    return out


def check_intervals(rows, window, name='input'):
    """Interval length: fixed, equal to window
    strand: + or -
    """
    for i in rows:
        if len(i) < 7:
            raise ValueError('BED expect 7 columns (strand, GC), got: {}'.format(
                '\t'.join(i)))
        if i[5] not in ['+', '-']:
            raise ValueError('strand expect + or -, got {} in {}: {}'.format(
                i[5], name, '\t'.join(i)))
    sizes = set(int(i[2]) - int(i[1]) for i in rows)
    if len(sizes) > 1:
        raise ValueError('Interval length in {} is not fixed.'.format(name))
    if len(sizes) == 1 and sizes.pop() != window:
        raise ValueError('Interval length is not {} bp in {}.'.format(
            window, name))
    return True


def remove_tempfiles(bt_list):
    """Remove the temp files of BedTool objects"""
    for bt in bt_list:
        if bt.fn in pybedtools.BedTool.TEMPFILES:
            pybedtools.BedTool.TEMPFILES.remove(bt.fn)
        if check_file(bt.fn):
            os.remove(bt.fn)


class GcBins(object):
    """Number of intervals required, per (GC, strand)

    >>> b = GcBins([('0.40', '+'), ('0.40', '+'), ('0.50', '-')])
    >>> b.remaining('+')
    2
    >>> b.take('0.4', '+')
    True
    """
    def __init__(self, keys=None):
        self.bins = collections.Counter()
        if keys is not None:
            for gc, strand in keys:
                self.bins[(gc_bin(gc), strand)] += 1


    def take(self, gc, strand):
        """Fill one slot of the bin, False if the bin is full"""
        k = (gc_bin(gc), strand)
        if self.bins.get(k, 0) > 0:
            self.bins[k] -= 1
            return True
        return False


    def remaining(self, strand=None):
        return sum(v for (_, s), v in self.bins.items()
            if strand is None or s == strand)


    def next_strand(self):
        """The strand to draw: + first, then -"""
        for s in ['+', '-']:
            if self.remaining(s) > 0:
                return s
        return None


class RandomIntervalSampler(object):
    """Draw random intervals, and their GC content
    using bedtools shuffle, nuc

    Return list of tuple: (chrom, start, end, strand, gc, num_N)
    """
    def __init__(self, genome_size, genome_fa, window=10, allowed=None,
        seed=None, tmp_dir=None):
        self.genome_size = genome_size
        self.genome_fa = genome_fa
        self.window = window
        self.allowed = allowed
        self.seed = seed
        self.tmp_dir = tmp_dir
        self.n_call = 0
        with open(genome_size) as r:
            self.chrom = r.readline().split('\t')[0].strip()
        # temp files of pybedtools, next to the output
        if isinstance(tmp_dir, str):
            check_path(tmp_dir, create_dirs=True)
            pybedtools.helpers.set_tempdir(tmp_dir)


    def template(self, strand, n):
        start = 10
        line = '\t'.join(map(str, [self.chrom, start, start + self.window,
            '.', 1, strand]))
        return pybedtools.BedTool('\n'.join([line] * n) + '\n', from_string=True)


    def draw(self, strand, n=100, exclude=None):
        """Random intervals on strand
        exclude : list
            intervals (chrom, start, end, ...) not to overlap
        """
        kwargs = {
            'g': self.genome_size,
            'noOverlapping': True,
        }
        if self.allowed is not None:
            kwargs['incl'] = self.allowed
        bt_list = [self.template(strand, n)]
        if exclude:
            s = '\n'.join(['\t'.join(map(str, i[:3])) for i in exclude]) + '\n'
            bt_list.append(pybedtools.BedTool(s, from_string=True))
            kwargs['excl'] = bt_list[-1].fn
        if self.seed is not None:
            # new seed for each call, the same seed gives the same intervals
            kwargs['seed'] = self.seed + self.n_call
        self.n_call += 1
        bt_list.append(bt_list[0].shuffle(**kwargs))
        bt_list.append(bt_list[-1].nuc(fi=self.genome_fa))
        bt = bt_list[-1]
        out = []
        for i in bt:
            f = i.fields
            if f[0].startswith('#'):
                continue
            # BED6 + pct_at, pct_gc, num_A, num_C, num_G, num_T, num_N, ...
            out.append((f[0], int(f[1]), int(f[2]), f[5], float(f[7]),
                int(f[12])))
        remove_tempfiles(bt_list)
        return out


class MrcConfig(object):
    """Check arguments for Mrc
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'genome_size': None,
            'genome_fa': None,
            'input': None,
            'output': None,
            'allowed': None,
            'window': 10,
            'seed': None,
            'batch_size': 100,
            'max_draws': 1000000,
            'sampler': None,
        }
        self = update_obj(self, args_init, force=False)
        if not check_file(self.genome_size):
            raise ValueError(
                'Reference genome size file (.genome) not specified or not existing: {}'.format(
                    self.genome_size))
        if not check_file(self.genome_fa):
            raise ValueError(
                'Reference genome sequence file (.fa) not specified or not existing: {}'.format(
                    self.genome_fa))
        if not check_file(self.input):
            raise ValueError('Input file not specified or not existing: {}'.format(
                self.input))
        if not isinstance(self.output, str):
            raise ValueError('Output file not specified.')
        if self.allowed is not None and not check_file(self.allowed):
            raise ValueError('Allowed genomic space file {} not found.'.format(
                self.allowed))
        if self.batch_size < 1:
            raise ValueError('batch_size expect >= 1, got {}'.format(
                self.batch_size))
        self.genome_size = file_abspath(self.genome_size)
        self.genome_fa = file_abspath(self.genome_fa)
        self.input = file_abspath(self.input)
        self.output = file_abspath(self.output)
        self.allowed = file_abspath(self.allowed)
        self.rows = read_intervals(self.input)
        check_intervals(self.rows, self.window, self.input)
        check_path(os.path.dirname(self.output), create_dirs=True)
        self.config_yaml = os.path.splitext(self.output)[0] + '.config.yaml'
        self.tmp_dir = os.path.splitext(self.output)[0] + '.tmp'
        self.tempdir_orig = pybedtools.helpers.get_tempdir()


class Mrc(object):
    """Generate matched random control intervals
    sampler: object with draw(strand, n, exclude), default:
    RandomIntervalSampler (bedtools)
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_local = MrcConfig(**self.__dict__)
        self = update_obj(self, args_local.__dict__, force=True)
        if self.sampler is None:
            self.sampler = RandomIntervalSampler(self.genome_size,
                self.genome_fa, self.window, self.allowed, self.seed,
                self.tmp_dir)
        self.bins = GcBins([(i[6], i[5]) for i in self.rows])
        Config().dump(self.__dict__.copy(), self.config_yaml)


    def sample(self):
        """Fill the bins
        Return list of BED7: chrom, start, end, '.', 1, strand, gc
        """
        accepted = []
        n_draw = 0
        while True:
            strand = self.bins.next_strand()
            if strand is None:
                break
            if self.max_draws > 0 and n_draw >= self.max_draws:
                raise RuntimeError(
                    'Mrc() failed, {} intervals drawn, {} bins not filled'.format(
                        n_draw, self.bins.remaining()))
            n = self.batch_size
            if self.max_draws > 0:
                n = min(n, self.max_draws - n_draw)
            candidates = self.sampler.draw(strand, n, accepted)
            n_draw += n
            for chrom, start, end, s, gc, num_n in candidates:
                if num_n > 0:
                    continue
                if s != strand:
                    continue
                if self.bins.take(gc, s):
                    accepted.append((chrom, start, end, '.', 1, s, gc_bin(gc)))
                    if self.bins.remaining(strand) == 0:
                        break
        log.info('Mrc() {} intervals accepted, {} drawn'.format(
            len(accepted), n_draw))
        return sorted(accepted, key=lambda i:(i[0], i[1]))


    def run(self):
        rows = self.sample()
        with open(self.output, 'wt') as w:
            for i in rows:
                w.write('\t'.join(map(str, i)) + '\n')
        if os.path.isdir(self.tmp_dir):
            pybedtools.helpers.set_tempdir(self.tempdir_orig)
            remove_path(self.tmp_dir)
        return self.output


def main():
    args = vars(add_mrc_args().parse_args())
    Mrc(**args).run()


if __name__ == '__main__':
    main()

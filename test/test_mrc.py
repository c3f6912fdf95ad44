#!/usr/bin/env python3
# -*- coding: UTF-8 -*-


import os
import tempfile
import collections
import pytest
import pybedtools
from atlasseq.mrc.mrc import (
    Mrc, GcBins, RandomIntervalSampler, gc_bin, check_intervals,
    read_intervals
)


class FakeSampler(object):
    """Candidates from a fixed list of GC values, no overlap"""
    def __init__(self, gc_list, num_n=0):
        self.gc_list = gc_list
        self.num_n = num_n
        self.n = 0
        self.calls = []


    def draw(self, strand, n=100, exclude=None):
        self.calls.append((strand, n, len(exclude or [])))
        out = []
        for _ in range(n):
            gc = self.gc_list[self.n % len(self.gc_list)]
            chrom = ['chr2', 'chr10', 'chr1'][self.n % 3]
            start = 1000 * (self.n + 1)
            out.append((chrom, start, start + 10, strand, gc, self.num_n))
            self.n += 1
        return out


def write_files(tmp_path, rows):
    gs = tmp_path / 'genome.size'
    gs.write_text('chr1\t100000\nchr2\t100000\nchr10\t100000\n')
    fa = tmp_path / 'genome.fa'
    fa.write_text('>chr1\nACGT\n')
    bed = tmp_path / 'input.bed'
    bed.write_text('# chr start end name score strand gc\n' +
        '\n'.join(['\t'.join(map(str, i)) for i in rows]) + '\n')
    return {
        'genome_size': str(gs),
        'genome_fa': str(fa),
        'input': str(bed),
        'output': str(tmp_path / 'out' / 'mrc.bed'),
    }


ROWS = [
    ('chr1', 100, 110, 'ins1', 1, '+', '0.40'),
    ('chr1', 300, 310, 'ins2', 1, '+', '0.4'),
    ('chr2', 50, 60, 'ins3', 1, '-', '0.50'),
    ('chr3', 70, 80, 'ins4', 1, '-', '0.30'),
]


def test_gc_bin():
    assert gc_bin('0.4') == gc_bin('0.40') == gc_bin(0.4) == '0.40'
    assert gc_bin(0.3333) == '0.33'


def test_gc_bins():
    b = GcBins([('0.40', '+'), ('0.4', '+'), ('0.50', '-')])
    assert b.remaining() == 3
    assert b.remaining('+') == 2
    assert b.next_strand() == '+'
    assert b.take('0.40', '+')
    assert b.take('0.40', '+')
    assert not b.take('0.40', '+')
    assert b.next_strand() == '-'
    assert b.take(0.5, '-')
    assert b.next_strand() is None


def test_check_intervals():
    assert check_intervals([['chr1', '0', '10', '.', '1', '+', '0.4']], 10)
    with pytest.raises(ValueError, match='not fixed'):
        check_intervals([
            ['chr1', '0', '10', '.', '1', '+', '0.4'],
            ['chr1', '0', '12', '.', '1', '+', '0.4'],
        ], 10)
    with pytest.raises(ValueError, match='is not 10 bp'):
        check_intervals([['chr1', '0', '12', '.', '1', '+', '0.4']], 10)
    with pytest.raises(ValueError):
        check_intervals([['chr1', '0', '10']], 10)
    with pytest.raises(ValueError, match='strand expect'):
        check_intervals([['chr1', '0', '10', '.', '1', '.', '0.4']], 10)


def test_read_intervals(tmp_path):
    f = tmp_path / 'a.bed'
    f.write_text('#header\nchr1\t0\t10\t.\t1\t+\t0.40\n\n')
    assert read_intervals(str(f)) == [['chr1', '0', '10', '.', '1', '+', '0.40']]


def test_mrc(tmp_path):
    args = write_files(tmp_path, ROWS)
    sampler = FakeSampler(['0.10', '0.40', '0.50', '0.30'])
    out = Mrc(sampler=sampler, batch_size=5, **args).run()
    rows = read_intervals(out)
    assert len(rows) == len(ROWS)
    got = collections.Counter((i[6], i[5]) for i in rows)
    assert got == collections.Counter({('0.40', '+'): 2, ('0.50', '-'): 1,
        ('0.30', '-'): 1})
    # sorted by chrom, start
    keys = [(i[0], int(i[1])) for i in rows]
    assert keys == sorted(keys)
    assert all(i[3] == '.' and i[4] == '1' for i in rows)
    # plus strand first, accepted intervals excluded
    assert sampler.calls[0] == ('+', 5, 0)
    assert sampler.calls[-1][0] == '-'
    assert sampler.calls[-1][2] == 2
    # accepted intervals never overlap
    iv = sorted((i[0], int(i[1]), int(i[2])) for i in rows)
    for a, b in zip(iv[:-1], iv[1:]):
        assert a[0] != b[0] or a[2] <= b[1]


def test_mrc_unknown_strand(tmp_path):
    rows = [
        ('chr1', 100, 110, 'a', 1, '+', '0.40'),
        ('chr1', 300, 310, 'b', 1, '.', '0.40'),
    ]
    args = write_files(tmp_path, rows)
    with pytest.raises(ValueError, match='strand expect'):
        Mrc(sampler=FakeSampler(['0.40']), **args)


def test_mrc_skip_n(tmp_path):
    args = write_files(tmp_path, ROWS[:1])
    with pytest.raises(RuntimeError):
        Mrc(sampler=FakeSampler(['0.40'], num_n=1), batch_size=10,
            max_draws=50, **args).run()


def test_mrc_empty_input(tmp_path):
    args = write_files(tmp_path, [])
    out = Mrc(sampler=FakeSampler(['0.40']), **args).run()
    assert read_intervals(out) == []


def test_mrc_args(tmp_path):
    args = write_files(tmp_path, ROWS)
    with pytest.raises(ValueError, match='is not 20 bp'):
        Mrc(sampler=FakeSampler(['0.40']), window=20, **args)
    bad = dict(args, genome_fa=str(tmp_path / 'missing.fa'))
    with pytest.raises(ValueError):
        Mrc(sampler=FakeSampler(['0.40']), **bad)
    bad = dict(args, allowed=str(tmp_path / 'missing.bed'))
    with pytest.raises(ValueError):
        Mrc(sampler=FakeSampler(['0.40']), **bad)


def test_sampler_draw(tmp_path, monkeypatch):
    args = write_files(tmp_path, ROWS)
    tmp_dir = str(tmp_path / 'tmp')
    monkeypatch.setattr(tempfile, 'tempdir', tempfile.tempdir)
    calls = []
    def shuffle(self, **kwargs):
        calls.append(dict(kwargs))
        # excl file exists during the call
        if 'excl' in kwargs:
            with open(kwargs['excl']) as r:
                calls[-1]['excl_rows'] = r.read().splitlines()
        return pybedtools.BedTool('chr1\t500\t510\t.\t1\t+\n', from_string=True)
    def nuc(self, **kwargs):
        calls.append(dict(kwargs))
        return pybedtools.BedTool('\n'.join([
            '#1_usercol\t2_usercol\t3_usercol\t4_usercol\t5_usercol\t6_usercol\t'
            '7_pct_at\t8_pct_gc\t9_num_A\t10_num_C\t11_num_G\t12_num_T\t'
            '13_num_N\t14_num_oth\t15_seq_len',
            'chr1\t500\t510\t.\t1\t+\t0.600000\t0.400000\t3\t2\t2\t3\t0\t0\t10',
            '',
        ]), from_string=True)
    monkeypatch.setattr(pybedtools.BedTool, 'shuffle', shuffle)
    monkeypatch.setattr(pybedtools.BedTool, 'nuc', nuc)
    n_tmp = len(pybedtools.BedTool.TEMPFILES)
    s = RandomIntervalSampler(args['genome_size'], args['genome_fa'],
        window=10, allowed=args['input'], seed=7, tmp_dir=tmp_dir)
    assert s.draw('+', 1) == [('chr1', 500, 510, '+', 0.4, 0)]
    assert calls[0]['g'] == args['genome_size']
    assert calls[0]['noOverlapping']
    assert calls[0]['incl'] == args['input']
    assert calls[0]['seed'] == 7
    assert 'excl' not in calls[0]
    assert calls[1]['fi'] == args['genome_fa']
    # second call: new seed, accepted intervals excluded
    s.draw('-', 1, exclude=[('chr1', 500, 510, '.', 1, '+', '0.40')])
    assert calls[2]['seed'] == 8
    assert calls[2]['excl_rows'] == ['chr1\t500\t510']
    assert os.path.dirname(calls[2]['excl']) == tmp_dir
    # temp files removed after each draw
    assert not os.path.exists(calls[2]['excl'])
    assert os.listdir(tmp_dir) == []
    assert len(pybedtools.BedTool.TEMPFILES) == n_tmp

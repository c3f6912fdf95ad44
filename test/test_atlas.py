#!/usr/bin/env python3
# -*- coding: UTF-8 -*-


import os
import shutil
import pysam
import pytest
from atlasseq.utils.bam import Bam, picard_cmd
from atlasseq.atlas import atlas, atlas_utils
from atlasseq.atlas.atlas import AtlasConfig, AtlasR1
from atlasseq.atlas.atlas_utils import (
    best_coordinate, parse_atlas_conf, legacy_to_config, load_atlas_config,
    insertion_points, call_insertions, write_insertions, flank_fasta,
    bedgraph_track, sample_stat, demx_stat, run_header, INSERTION_HEADER,
    LINKER
)


def make_bam(bam, reads):
    """reads: (name, ref_id, start, flag, mapq), 50M"""
    header = {
        'HD': {'VN': '1.6', 'SO': 'unsorted'},
        'SQ': [{'SN': 'chr1', 'LN': 10000}, {'SN': 'chr2', 'LN': 10000}],
    }
    with pysam.AlignmentFile(bam, 'wb', header=header) as w:
        for name, ref_id, start, flag, mapq in reads:
            a = pysam.AlignedSegment()
            a.query_name = name
            a.query_sequence = 'A' * 50
            a.flag = flag
            a.reference_id = ref_id
            a.reference_start = start
            a.mapping_quality = mapq
            a.cigartuples = [(0, 50)]
            a.query_qualities = pysam.qualitystring_to_array('I' * 50)
            w.write(a)
    return bam


def test_best_coordinate():
    assert best_coordinate([100]) == 100
    assert best_coordinate([100, 100, 105]) == 100
    assert best_coordinate(['105', '100', '105']) == 105
    # tie, mean of the positions
    assert best_coordinate([100, 100, 106, 106]) == 103
    # tie, rounded half to even
    assert best_coordinate([100, 105]) == 102
    assert best_coordinate([101, 106]) == 104
    assert best_coordinate([100, 101, 102]) == 101


def test_insertion_points(tmp_path):
    bam = make_bam(str(tmp_path / 'a.bam'), [
        ('r1', 0, 100, 0, 30),   # forward, end of alignment, minus
        ('r2', 0, 200, 16, 30),  # reverse, start of alignment, plus
        ('r3', 0, 300, 0, 10),   # low MAPQ
        ('r4', 0, 400, 256, 30), # secondary
        ('r5', 1, 50, 16, 60),
    ])
    points = insertion_points(bam)
    assert points == [
        ('chr1', 150, 150, 'r1', 30, '-'),
        ('chr1', 200, 200, 'r2', 30, '+'),
        ('chr2', 50, 50, 'r5', 60, '+'),
    ]
    assert Bam(bam).count() == 5
    assert insertion_points(str(tmp_path / 'missing.bam')) == []


@pytest.mark.skipif(shutil.which('bedtools') is None,
    reason='bedtools not installed')
def test_call_insertions():
    points = [
        ('chr1', 100, 100, 'r1', 60, '+'),
        ('chr1', 100, 100, 'r2', 60, '+'),
        ('chr1', 105, 105, 'r3', 60, '+'),
        ('chr1', 500, 500, 'r4', 60, '-'),
        ('chr2', 80, 80, 'r5', 60, '+'),
    ]
    rows = call_insertions(points, 'S1', distance=10)
    assert [(i[0], i[1], i[2], i[4], i[5]) for i in rows] == [
        ('chr1', 100, 100, 3, '+'),
        ('chr1', 500, 500, 1, '-'),
        ('chr2', 80, 80, 1, '+'),
    ]
    assert sorted(i[3] for i in rows) == ['S1_3ATLAS_0001', 'S1_3ATLAS_0002',
        'S1_3ATLAS_0003']
    assert call_insertions([], 'S1') == []


def test_call_insertions_numbering(monkeypatch):
    calls = []
    def merge_points(points, distance=10):
        calls.append(distance)
        return [
            ('chr2', 1, '+', ['80']),
            ('chr1', 1, '-', ['500']),
            ('chr1', 4, '+', ['100', '100', '106', '106']),
        ]
    monkeypatch.setattr(atlas_utils, 'merge_points', merge_points)
    rows = call_insertions([('chr1', 100, 100, 'r1', 60, '+')], 'S1', distance=20)
    assert calls == [20]
    # numbered in merge order, then sorted
    assert rows == [
        ('chr1', 103, 103, 'S1_3ATLAS_0003', 4, '+'),
        ('chr1', 500, 500, 'S1_3ATLAS_0002', 1, '-'),
        ('chr2', 80, 80, 'S1_3ATLAS_0001', 1, '+'),
    ]


def test_write_insertions(tmp_path):
    f = str(tmp_path / 'ins.bed')
    write_insertions([('chr1', 100, 100, 'S1_3ATLAS_0001', 3, '+')], f)
    with open(f) as r:
        lines = r.read().splitlines()
    assert lines[0] == '\t'.join(INSERTION_HEADER)
    assert lines[1] == 'chr1\t100\t100\tS1_3ATLAS_0001\t3\t+'


def test_flank_fasta_empty(tmp_path):
    f = str(tmp_path / 'flank.fa')
    flank_fasta([], 'genome.fa', 'genome.size', 10, f)
    assert os.path.getsize(f) == 0


def test_bedgraph_track():
    s = bedgraph_track('S1', '-')
    assert s.startswith('track type=bedGraph name=S1.neo.3atlas(-) ')
    assert 'viewLimits=0:300' in s
    assert s.endswith('smoothingWindow=3')


def test_sample_stat():
    d = {
        'smp_name': 'S1',
        'barcode_name': 'BC01',
        'total': 1000,
        'barcode_out': 400,
        'size_selected': 380,
        'linker_out': 350,
        'mapped': 200,
        'unique': 150,
        'insertions': 12,
    }
    lines = sample_stat(d).split('\n')
    assert lines[0] == 'Sample:\t\t\tS1'
    assert lines[1] == 'Barcode:\t\t\tBC01'
    assert lines[3] == 'Barcode sorting:\t1000\t->\t400'
    assert lines[-1] == 'Insertions:\t150\t->\t12'
    assert len(lines) == 9


def test_demx_stat():
    s = demx_stat(100, 10, [('BC01', 'ACGT', 'S1')], {'BC01': 90})
    assert 'Total processed reads:\t100' in s
    assert '  - no barcode found:\t10/100' in s
    assert '  - S1 (BC01):\t90/100' in s


def test_run_header():
    s = run_header('[01-01-2024] [10:00:00]', 'run.fq', 'hg19.fa', 'bc.txt',
        cmd_line='atlasseq atlas -b bc.txt run.fq').split('\n')
    assert s[1] == '[01-01-2024] [10:00:00] ATLAS-seq ANALYSIS PIPELINE v3.3'
    assert s[2] == 'Command line:\tatlasseq atlas -b bc.txt run.fq'
    assert s[3] == s[0]
    assert 'Command line' not in run_header('day', 'run.fq', 'hg19.fa', 'bc.txt')


def test_parse_atlas_conf(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    f = tmp_path / '.atlas.conf'
    f.write_text('\n'.join([
        '# ATLAS-seq config',
        'PATH_TO_PICARD="/opt/picard"',
        'ref_genome_dir="$HOME/genome"',
        "ref_genome='hg19.fa'",
        'results_root=$HOME/results # output',
        '',
    ]))
    d = parse_atlas_conf(str(f))
    assert d['PATH_TO_PICARD'] == '/opt/picard'
    assert d['ref_genome_dir'] == str(tmp_path / 'genome')
    assert d['results_root'] == str(tmp_path / 'results')
    c = legacy_to_config(d)
    assert c == {
        'picard': '/opt/picard',
        'genome_fa': str(tmp_path / 'genome' / 'hg19.fa'),
        'genome_size': str(tmp_path / 'genome' / 'hg19.genome'),
        'results_root': str(tmp_path / 'results'),
    }
    # search home directory
    assert load_atlas_config()['genome_fa'] == str(tmp_path / 'genome' / 'hg19.fa')


def test_load_atlas_config_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    (tmp_path / '.atlas.yaml').write_text('genome_fa: /data/hg19.fa\npicard: /opt/picard.jar\n')
    (tmp_path / '.atlas.conf').write_text('ref_genome="mm10.fa"\n')
    d = load_atlas_config()
    assert d['genome_fa'] == '/data/hg19.fa'
    assert d['picard'] == '/opt/picard.jar'
    assert d['genome_size'] is None


def test_load_atlas_config_missing(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    assert load_atlas_config() == {}
    with pytest.raises(ValueError):
        load_atlas_config(str(tmp_path / 'missing.yaml'))


def test_picard_cmd(tmp_path):
    jar = tmp_path / 'picard.jar'
    jar.write_text('')
    assert picard_cmd(str(tmp_path), mem='4g').endswith('-Xmx4g -jar {}'.format(jar))
    with pytest.raises(ValueError):
        picard_cmd(str(tmp_path / 'missing.jar'))


def test_atlas_5end():
    with pytest.raises(NotImplementedError):
        AtlasConfig(fq='run.fq', barcode='barcode.txt', end='5')


def test_atlas_config(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    fq = tmp_path / 'run.fq'
    fq.write_text('@r1\nACGTACGGGG\n+\nIIIIIIIIII\n')
    bc = tmp_path / 'barcode.txt'
    bc.write_text('BC01 ACGTAC S1\nBC02 TGCATG S2\n')
    fa = tmp_path / 'hg19.fa'
    fa.write_text('>chr1\nACGT\n')
    (tmp_path / 'hg19.fa.bwt').write_text('')
    gs = tmp_path / 'hg19.genome'
    gs.write_text('chr1\t4\n')
    (tmp_path / '.atlas.yaml').write_text('\n'.join([
        'genome_fa: {}'.format(fa),
        'genome_size: {}'.format(gs),
        'results_root: {}'.format(tmp_path / 'results'),
        'picard: /opt/from_config.jar',
        '',
    ]))
    args = AtlasConfig(fq=str(fq), barcode=str(bc), picard='/opt/picard.jar')
    assert args.picard == '/opt/picard.jar'
    assert args.genome_fa == str(fa)
    name = os.path.basename(args.outdir)
    assert os.path.dirname(args.outdir) == str(tmp_path / 'results')
    assert name.endswith('_neo.3atlas_3.3_S1_S2')
    assert args.global_log == os.path.join(args.outdir, 'global.neo.3atlas.v3.3.log')
    with pytest.raises(ValueError):
        AtlasConfig(fq=str(fq), barcode=str(bc), sampling=0)


class FakeCutadapt(object):
    """Linker trimming: 1 read too short, 2 clean reads"""
    calls = []
    def __init__(self, **kwargs):
        FakeCutadapt.calls.append(kwargs)
        self.clean_fq = os.path.join(kwargs['outdir'],
            kwargs['smp_name'] + '.02a.trimmed_linker.fastq')


    def run(self):
        return {'name': 'BC01', 'input': 3, 'too_short': 1, 'size_selected': 2,
            'clean': 2}


class FakeBwa(object):
    """Alignment: 2 junction reads"""
    calls = []
    def __init__(self, **kwargs):
        FakeBwa.calls.append(kwargs)
        self.bam = os.path.join(kwargs['outdir'],
            kwargs['smp_name'] + '.06.triminfo.aligned.bam')


    def run(self):
        make_bam(self.bam, [
            ('r1', 0, 100, 16, 60), # insertion on plus strand, at 100
            ('r2', 0, 300, 0, 60),  # insertion on minus strand, at 350
        ])
        self.n_map = 2
        return self.bam


def test_atlas_r1_run(tmp_path, monkeypatch):
    def rmdup(self, outfile=None, overwrite=False, picard=None, mem='8g'):
        shutil.copy(self.bam, outfile)
        Bam(outfile).index()
        return outfile
    def to_bedgraph(self, outfile, strand=None, track_line=None):
        with open(outfile, 'wt') as w:
            w.write(track_line + '\n')
        return outfile
    def merge_points(points, distance=10):
        return [(i[0], 1, i[5], [str(i[1])]) for i in points]
    def flank_fasta(rows, genome_fa, genome_size, width, out):
        open(out, 'wt').close()
        return out
    FakeCutadapt.calls = []
    FakeBwa.calls = []
    monkeypatch.setattr(atlas, 'Cutadapt', FakeCutadapt)
    monkeypatch.setattr(atlas, 'Bwa', FakeBwa)
    monkeypatch.setattr(Bam, 'rmdup', rmdup)
    monkeypatch.setattr(Bam, 'to_bedgraph', to_bedgraph)
    monkeypatch.setattr(atlas_utils, 'merge_points', merge_points)
    monkeypatch.setattr(atlas, 'flank_fasta', flank_fasta)
    fq = tmp_path / 'BC01.fq'
    fq.write_text(''.join(['@r{}\nACGTACGT\n+\nIIIIIIII\n'.format(i)
        for i in range(3)]))
    outdir = tmp_path / 'out'
    r1 = AtlasR1(fq=str(fq), smp_name='S1', barcode_name='BC01', total=10,
        outdir=str(outdir), tmp_dir=str(outdir / 'tmp'),
        genome_fa='hg19.fa', genome_size='hg19.genome')
    stat = r1.run()
    assert stat == {
        'smp_name': 'S1',
        'barcode_name': 'BC01',
        'total': 10,
        'barcode_out': 3,
        'size_selected': 2,
        'linker_out': 2,
        'mapped': 2,
        'unique': 2,
        'insertions': 2,
    }
    assert FakeCutadapt.calls[0]['linker'] == LINKER
    assert FakeBwa.calls[0]['fq'] == FakeCutadapt.calls[0]['outdir'] + \
        '/BC01.02a.trimmed_linker.fastq'
    # final files
    p = str(outdir / 'S1.neo.3atlas.v3.3')
    for suffix in ['.log', '.bam', '.bai', '.insertions.true.bed',
        '.plus.bedgraph', '.minus.bedgraph', '.target.site.2x10.fasta',
        '.target.site.2x1000.fasta']:
        assert os.path.exists(p + suffix)
    assert not os.path.exists(p + '.bam.bai')
    assert not os.path.exists(r1.rmdup_bam + '.bai')
    with open(p + '.log') as r:
        assert 'Size selection:\t3\t->\t2' in r.read()
    with open(p + '.insertions.true.bed') as r:
        lines = r.read().splitlines()
    assert lines[1:] == [
        'chr1\t100\t100\tS1_3ATLAS_0001\t1\t+',
        'chr1\t350\t350\tS1_3ATLAS_0002\t1\t-',
    ]

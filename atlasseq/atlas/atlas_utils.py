#!/usr/bin/env python3
# -*- coding:utf-8 -*-

"""
Functions for ATLAS-seq analysis

- load_atlas_config: user configuration, ~/.atlas.yaml, ~/.atlas.conf, ...
- insertion_points: one insertion point per non-redundant read
- call_insertions: merge nearby points, pick the best coordinate
- flank_fasta: sequence around insertion sites
- sample_stat: per sample statistics
"""

import os
import re
import collections
import pysam
import pybedtools
from atlasseq.utils.utils import log, Config
from atlasseq.utils.file import check_file, file_abspath


VERSION = '3.3'
EXP_NAME = 'neo.3'
STARLINE = '*' * 105
FLANK_WIDTH = [10, 25, 50, 100, 250, 1000]
INSERTION_HEADER = ['#CHR', 'INS_START', 'INS_END', 'INS_ID', 'NB_NRR', 'INS_STRAND']

# ATLAS specific sequences
LINKER = 'GTGGCGGCCAGTATTCGTAGGAGGGCGCGTAGCATAGAACGT' # RBMSL2 +T from A-tailing


##----------------------------------------------------------------------------##
## configuration
def parse_atlas_conf(x):
    """Parse the shell-style config file: ~/.atlas.conf

    # comments
    PATH_TO_PICARD="/usr/local/picard"
    ref_genome_dir="$HOME/references/human"
    ref_genome="hg19.fa"
    results_root="$HOME/results"

    Return dict, with values expanded
    """
    d = {}
    p = re.compile(r'^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$')
    with open(x) as r:
        for line in r:
            s = line.strip()
            if not s or s.startswith('#'):
                continue
            m = p.match(s)
            if m is None:
                continue
            k, v = m.groups()
            v = v.strip()
            if len(v) >= 2 and v[0] == v[-1] and v[0] in '"\'':
                v = v[1:-1]
            else:
                v = re.sub(r'\s+#.*$', '', v) # inline comment
            # variables defined above
            for dk, dv in sorted(d.items(), key=lambda i:-len(i[0])):
                v = v.replace('${' + dk + '}', dv).replace('$' + dk, dv)
            d[k] = os.path.expanduser(os.path.expandvars(v))
    return d


def legacy_to_config(d):
    """Convert keys of ~/.atlas.conf to atlasseq arguments
    PATH_TO_PICARD -> picard
    ref_genome_dir, ref_genome -> genome_fa, genome_size
    results_root -> results_root
    """
    out = {}
    if 'PATH_TO_PICARD' in d:
        out['picard'] = d['PATH_TO_PICARD']
    ref_dir = d.get('ref_genome_dir', None)
    ref = d.get('ref_genome', None)
    if isinstance(ref, str):
        if isinstance(ref_dir, str):
            out['genome_fa'] = os.path.join(ref_dir, ref)
        else:
            out['genome_fa'] = ref
        genome = os.path.splitext(os.path.basename(ref))[0]
        out['genome_size'] = os.path.join(
            os.path.dirname(out['genome_fa']), genome + '.genome')
    if 'results_root' in d:
        out['results_root'] = d['results_root']
    return out


def load_atlas_config(x=None):
    """Load user configuration

    x : str or None
        The config file, yaml/toml/json or the legacy .atlas.conf;
        if None, search the home directory:
        ~/.atlas.yaml, ~/.atlas.toml, ~/.atlas.json, ~/.atlas.conf

    Return dict: picard, genome_fa, genome_size, results_root
    """
    if x is None:
        home = os.path.expanduser('~')
        for i in ['.atlas.yaml', '.atlas.yml', '.atlas.toml', '.atlas.json', '.atlas.conf']:
            f = os.path.join(home, i)
            if check_file(f):
                x = f
                break
    if x is None:
        log.warning('no config file found in home directory: ~/.atlas.yaml')
        return {}
    if not check_file(x):
        raise ValueError('config file not exists: {}'.format(x))
    if x.endswith('.conf'):
        d = legacy_to_config(parse_atlas_conf(x))
    else:
        d = Config().load(x) or {}
    keys = ['picard', 'genome_fa', 'genome_size', 'results_root']
    out = {}
    for k in keys:
        v = d.get(k, None)
        out[k] = file_abspath(v) if isinstance(v, str) else v
    return out


##----------------------------------------------------------------------------##
## insertion sites
def read_to_point(read):
    """The insertion point of one read, in BED6
    forward read: at the end of alignment, insertion on minus strand
    reverse read: at the start of alignment, insertion on plus strand
    """
    if read.is_reverse:
        pos = read.reference_start
        strand = '+'
    else:
        pos = read.reference_end
        strand = '-'
    return (read.reference_name, pos, pos, read.query_name,
        read.mapping_quality, strand)


def insertion_points(bam, mapq_min=20):
    """One insertion point per read
    samtools view -q 20 -F 260 | bedtools bamtobed
    sorted by chrom, position
    """
    out = []
    if check_file(bam, check_empty=True):
        with pysam.AlignmentFile(bam, 'rb') as r:
            for read in r.fetch(until_eof=True):
                if read.flag & 260 or read.mapping_quality < mapq_min:
                    continue
                out.append(read_to_point(read))
    return sorted(out, key=lambda i:(i[0], i[1]))


def best_coordinate(coords):
    """The most frequent coordinate in the cluster
    ties between different coordinates: mean of them (rounded half to even)

    >>> best_coordinate([100, 100, 105])
    100
    >>> best_coordinate([100, 100, 105, 105])
    102
    """
    coords = [int(i) for i in coords]
    freq = collections.Counter(coords)
    n_max = max(freq.values())
    best = sorted(k for k, v in freq.items() if v == n_max)
    return int(round(sum(best) / len(best)))


def merge_points(points, distance=10):
    """Merge insertion points on the same strand, within distance
    bedtools merge -s -d distance -c 2,6,2 -o count,distinct,collapse

    Return list of tuple: (chrom, count, strand, [coords])
    """
    if len(points) == 0:
        return []
    s = '\n'.join(['\t'.join(map(str, i)) for i in points]) + '\n'
    bt = pybedtools.BedTool(s, from_string=True).sort()
    merged = bt.merge(s=True, d=distance, c='2,6,2', o='count,distinct,collapse')
    out = []
    for i in merged:
        f = i.fields
        # the last three columns, strand column added by some bedtools versions
        n, strand, coords = f[-3:]
        out.append((f[0], int(n), strand, coords.split(',')))
    return out


def call_insertions(points, smp_name, distance=10):
    """Call insertions from insertion points

    Return list of BED6: chrom, start, end, name, count, strand
    numbered in merge order, sorted by chrom, position
    """
    out = []
    for k, (chrom, n, strand, coords) in enumerate(merge_points(points, distance), start=1):
        pos = best_coordinate(coords)
        name = '{}_3ATLAS_{:04d}'.format(smp_name, k)
        out.append((chrom, pos, pos, name, n, strand))
    return sorted(out, key=lambda i:(i[0], i[1]))


def write_insertions(rows, out):
    """Save insertions to BED file, with header"""
    with open(out, 'wt') as w:
        w.write('\t'.join(INSERTION_HEADER) + '\n')
        for i in rows:
            w.write('\t'.join(map(str, i)) + '\n')
    return out


def flank_fasta(rows, genome_fa, genome_size, width, out):
    """Sequence surrounding insertion sites
    bedtools slop -b {width} -g genome | bedtools getfasta -s -name
    """
    if len(rows) == 0:
        open(out, 'wt').close()
    else:
        s = '\n'.join(['\t'.join(map(str, i)) for i in rows]) + '\n'
        bt = pybedtools.BedTool(s, from_string=True)
        bt = bt.slop(b=width, g=genome_size).sequence(fi=genome_fa, s=True,
            name=True)
        bt.save_seqs(out)
    return out


def bedgraph_track(smp_name, strand='+'):
    """The UCSC track line for bedGraph"""
    return ' '.join([
        'track type=bedGraph',
        'name={}.{}atlas({})'.format(smp_name, EXP_NAME, strand),
        'description=""',
        'visibility=full color=0,150,0 priority=20 autoScale=off alwaysZero=on',
        'maxHeightPixels=32 graphType=bar viewLimits=0:300 yLineMark=0',
        'yLineOnOff=on windowingFunction=mean smoothingWindow=3',
    ])


##----------------------------------------------------------------------------##
## statistics
def sample_stat(d):
    """Per sample statistics, as text

    d : dict
        smp_name, barcode_name, total, barcode_out, size_selected,
        linker_out, mapped, unique, insertions
    """
    return '\n'.join([
        'Sample:\t\t\t{}'.format(d['smp_name']),
        'Barcode:\t\t\t{}'.format(d['barcode_name']),
        'Reads in the run:\t\t\t{}'.format(d['total']),
        'Barcode sorting:\t{}\t->\t{}'.format(d['total'], d['barcode_out']),
        'Size selection:\t{}\t->\t{}'.format(d['barcode_out'], d['size_selected']),
        'Linker trimming:\t{}\t->\t{}'.format(d['size_selected'], d['linker_out']),
        'Unambigously mapped:\t{}\t->\t{}'.format(d['linker_out'], d['mapped']),
        'Non-redundant reads:\t{}\t->\t{}'.format(d['mapped'], d['unique']),
        'Insertions:\t{}\t->\t{}'.format(d['unique'], d['insertions']),
    ])


def run_header(date, fq, genome_fa, barcode, title=None, cmd_line=None):
    """The header of the global log
    cmd_line : str or None
        The command line called, after the title
    """
    if title is None:
        title = 'ATLAS-seq ANALYSIS PIPELINE v{}'.format(VERSION)
    lines = [STARLINE, '{} {}'.format(date, title)]
    if isinstance(cmd_line, str):
        lines.append('Command line:\t{}'.format(cmd_line))
    return '\n'.join(lines + [
        STARLINE,
        "{}' ATLAS-seq experiment".format(EXP_NAME),
        'Sequencing data:\t{}'.format(fq),
        'Reference genome file:\t{}'.format(genome_fa),
        'Barcodes:\t\t{}'.format(barcode),
    ])


def demx_stat(total, undemx, barcodes, counts):
    """Reads per barcode

    barcodes : list
        [(barcode_name, barcode_seq, sample_name), ...]
    counts : dict
        {barcode_name: count}
    """
    lines = [
        STARLINE,
        'Total processed reads:\t{}'.format(total),
        '  - no barcode found:\t{}/{}'.format(undemx, total),
    ]
    for name, _, smp in barcodes:
        lines.append('  - {} ({}):\t{}/{}'.format(smp, name, counts.get(name, 0), total))
    lines.append(STARLINE)
    return '\n'.join(lines)

# -*- coding: utf-8 -*-


"""
Parse arguments from command line

- demx
- trim
- align
- sample
- mrc
- atlas
"""

import argparse


def add_demx_args():
    """
    Demultiplexing, inline barcode at the 5' end of reads
    """
    parser = argparse.ArgumentParser(description='atlasseq demx')
    parser.add_argument('-i', '--fq', required=True,
        help='reads in fastq format, gzipped or not')
    parser.add_argument('-b', '--barcode', required=True,
        help='barcode table, whitespace separated: \
        barcode_name barcode_seq sample_name')
    parser.add_argument('-o', '--outdir', default=None,
        help='directory to save the results, default: current directory')
    parser.add_argument('-e', '--error-rate', dest='error_rate', type=float,
        default=0.1, help='maximum error rate for barcode search, default: [0.1]')
    parser.add_argument('-q', '--qual-min', dest='qual_min', type=int,
        default=10, help='trim low-quality bases from 3\' end, default: [10]')
    parser.add_argument('-w', '--overwrite', action='store_true',
        help='Overwrite exists files, default: off')
    return parser


def add_trim_args():
    """
    Trim the ATLAS linker at the 5' end of reads
    """
    parser = argparse.ArgumentParser(description='atlasseq trim')
    parser.add_argument('-i', '--fq', required=True,
        help='reads in fastq format')
    parser.add_argument('-o', '--outdir', default=None,
        help='directory to save the results, default: current directory')
    parser.add_argument('-n', '--smp-name', dest='smp_name', default=None,
        help='name of the sample, default: from fastq file name')
    parser.add_argument('-l', '--linker', default=None,
        help='linker sequence, anchored at 5\' end, default: RBMSL2')
    parser.add_argument('-m', '--len-min', dest='len_min', type=int,
        default=None, help='discard reads shorter than this, \
        default: [length of linker + 25]')
    parser.add_argument('-q', '--qual-min', dest='qual_min', type=int,
        default=10, help='trim low-quality bases from 3\' end, default: [10]')
    parser.add_argument('-e', '--error-rate', dest='error_rate', type=float,
        default=0.12, help='maximum error rate for linker search, default: [0.12]')
    parser.add_argument('-w', '--overwrite', action='store_true',
        help='Overwrite exists files, default: off')
    return parser


def add_align_args():
    """
    Mapping SE reads to reference genome, using bwa mem
    keep reads at the L1 junction
    """
    parser = argparse.ArgumentParser(
        description='Align ATLAS-seq reads to reference genome')
    parser.add_argument('-i', '--fq', required=True,
        help='reads in fastq format, linker trimmed')
    parser.add_argument('-x', '--index', required=True,
        help='bwa index, the genome fasta file with .bwt, ...')
    parser.add_argument('-o', '--outdir', default=None,
        help='The directory to save results, default, \
        current working directory.')
    parser.add_argument('-n', '--smp-name', dest='smp_name', default=None,
        help='Name of the sample')
    parser.add_argument('-t', '--threads', type=int, default=4,
        help='Number of threads, default: [4]')
    parser.add_argument('-q', '--mapq-min', dest='mapq_min', type=int,
        default=20, help='minimum mapping quality, default: [20]')
    parser.add_argument('--keep-tmp', dest='keep_tmp', action='store_true',
        help='keep the temp files: sam, unsorted bam')
    parser.add_argument('-w', '--overwrite', action='store_true',
        help='Overwrite exists files, default: off')
    return parser


def add_sample_args():
    """
    required:
        'fx':
        'outdir':
        'fraction':
    """
    parser = argparse.ArgumentParser(description='atlasseq sample')
    parser.add_argument('-i', '--fx', nargs='+', required=True,
        help='fastq files')
    parser.add_argument('-o', '--outdir', default=None,
        help='output directory to save results')
    parser.add_argument('-f', '--fraction', type=float, default=1.0,
        help='fraction of reads to keep, (0, 1], default: 1')
    parser.add_argument('-s', '--seed', type=int, default=11,
        help='random seed for seqtk, default: [11]')
    parser.add_argument('-w', '--overwrite', action='store_true',
        help='Overwrite the exists files')
    parser.add_argument('-j', '--parallel-jobs', dest='parallel_jobs',
        default=1, type=int,
        help='Number of threads run in parallel, default [1]')
    return parser


def add_mrc_args():
    """
    Matched random control, random intervals with the same GC content
    """
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description='Generate GC-matched random intervals',
        epilog='''Description:
input : BED, strand in column 6, GC fraction in column 7, fixed length

Example:
atlasseq mrc -g hg19.genome -f hg19.fa -i insertions.bed -o mrc.bed -w 10'''
    )
    parser.add_argument('-g', '--genome-size', dest='genome_size', required=True,
        help='chromosome sizes, bedtools style .genome file')
    parser.add_argument('-f', '--genome-fa', dest='genome_fa', required=True,
        help='genome sequence in fasta format')
    parser.add_argument('-i', '--input', required=True,
        help='experimental intervals in BED format')
    parser.add_argument('-o', '--output', required=True,
        help='file to save the random intervals, BED')
    parser.add_argument('-a', '--allowed', default=None,
        help='BED file, draw random intervals inside these regions')
    parser.add_argument('-w', '--window', type=int, default=10,
        help='length of the intervals, default: [10]')
    parser.add_argument('-s', '--seed', type=int, default=None,
        help='random seed for bedtools shuffle')
    parser.add_argument('--batch-size', dest='batch_size', type=int,
        default=100, help='number of intervals per draw, default: [100]')
    parser.add_argument('--max-draws', dest='max_draws', type=int,
        default=1000000,
        help='stop after drawing this number of intervals, 0 for no limit, \
        default: [1000000]')
    return parser


def add_atlas_args():
    """
    ATLAS-seq pipeline, call L1 insertions
    """
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description='ATLAS-seq analysis pipeline, call L1 insertions',
        epilog='''Description:
Reference genome, picard and results_root are read from the config file:
~/.atlas.yaml, ~/.atlas.toml, ~/.atlas.json or ~/.atlas.conf

Example:
atlasseq atlas -b barcode.txt -o results run.fastq.gz'''
    )
    parser.add_argument('fq',
        help='sequencing data in fastq format, gzipped or not')
    parser.add_argument('-b', '--barcode', required=True,
        help='barcode table, whitespace separated: \
        barcode_name barcode_seq sample_name')
    parser.add_argument('-d', '--distance', type=int, default=10,
        help='maximum distance between reads to merge, default: [10]')
    parser.add_argument('-s', '--sampling', type=float, default=1,
        help='fraction of reads to analyze, default: [1]')
    parser.add_argument('-t', '--threads', type=int, default=4,
        help='number of threads for bwa, default: [4]')
    parser.add_argument('-o', '--outdir', default=None,
        help='output directory, default: {results_root}/{date}_neo.3atlas_{version}_{samples}')
    parser.add_argument('-e', '--end', default='3', choices=['3', '5'],
        help='ATLAS-seq type, 3\' or 5\', default: [3]')
    parser.add_argument('-c', '--config', default=None,
        help='config file, default: ~/.atlas.yaml, ~/.atlas.conf, ...')
    parser.add_argument('--genome-fa', dest='genome_fa', default=None,
        help='reference genome, fasta file with bwa index')
    parser.add_argument('--genome-size', dest='genome_size', default=None,
        help='chromosome sizes, bedtools style .genome file')
    parser.add_argument('--picard', default=None,
        help='picard.jar or the directory of picard.jar')
    parser.add_argument('--results-root', dest='results_root', default=None,
        help='the parent directory of output directory')
    parser.add_argument('--seed', type=int, default=11,
        help='random seed for subsampling, default: [11]')
    parser.add_argument('--keep-tmp', dest='keep_tmp', action='store_true',
        help='keep the temp files')
    parser.add_argument('-w', '--overwrite', action='store_true',
        help='Overwrite exists files, default: off')
    return parser

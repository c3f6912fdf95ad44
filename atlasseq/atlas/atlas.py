#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
ATLAS-seq pipeline, 3' ATLAS-seq (ectopic L1 retrotransposition)

1. subsample reads (seqtk sample, optional)
2. demultiplex (cutadapt)
3. for each sample
   - trim linker (cutadapt)
   - align and keep junction reads (bwa mem)
   - remove PCR duplicates (picard MarkDuplicates)
   - insertion points, clustering (bedtools merge)
   - strand specific coverage (bedtools genomecov)
   - flanking sequence (bedtools slop, getfasta)
4. global log and summary table

Example:

>>> args = {
    'fq': 'run.fastq.gz',
    'barcode': 'barcode.txt',
    'outdir': 'results',
}
>>> Atlas(**args).run()
"""

import os
import sys
import shutil
import pandas as pd
from atlasseq.utils.utils import (
    log, update_obj, Config, get_date, format_runtime
)
from atlasseq.utils.file import (
    check_file, check_path, check_fx, file_abspath, move_file,
    remove_path
)
from atlasseq.utils.seq import Fastx
from atlasseq.utils.bam import Bam
from atlasseq.utils.argsParser import add_atlas_args
from atlasseq.demx.demx import Demx, load_barcode, check_barcode
from atlasseq.trim.cutadapt import Cutadapt
from atlasseq.align.bwa import Bwa
from atlasseq.atlas.atlas_utils import (
    VERSION, EXP_NAME, LINKER, STARLINE, FLANK_WIDTH, load_atlas_config,
    insertion_points, call_insertions, write_insertions, flank_fasta,
    bedgraph_track, sample_stat, run_header, demx_stat
)


class AtlasConfig(object):
    """Check arguments for ATLAS-seq
    values from the command line win over the config file
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'fq': None,
            'barcode': None,
            'outdir': None,
            'distance': 10,
            'sampling': 1,
            'threads': 4,
            'end': '3',
            'config': None,
            'genome_fa': None,
            'genome_size': None,
            'picard': None,
            'results_root': None,
            'seed': 11,
            'keep_tmp': False,
            'overwrite': False,
        }
        self = update_obj(self, args_init, force=False)
        self.version = VERSION
        self.exp_name = EXP_NAME
        if str(self.end) == '5':
            raise NotImplementedError(
                'Analysis of 5\' ATLAS-seq data obtained from ectopic L1 '
                'expression has not yet been implemented.')
        # user config
        user_config = load_atlas_config(self.config)
        for k, v in user_config.items():
            if getattr(self, k, None) is None:
                setattr(self, k, v)
        self.init_input()
        self.init_genome()
        self.init_files()


    def init_input(self):
        if not check_fx(self.fq):
            raise ValueError('Input file not specified or not existing: {}'.format(
                self.fq))
        self.fq = file_abspath(self.fq)
        self.barcode = file_abspath(self.barcode)
        self.barcode_list = load_barcode(self.barcode)
        check_barcode(self.barcode_list)
        self.sampling = float(self.sampling)
        if not 0 < self.sampling <= 1:
            raise ValueError('--sampling expect (0, 1], got {}'.format(
                self.sampling))
        if not isinstance(self.distance, int) or self.distance < 0:
            raise ValueError('--distance expect int >= 0, got {}'.format(
                self.distance))


    def init_genome(self):
        if not check_file(self.genome_fa):
            raise ValueError('Reference genome file not existing: {}'.format(
                self.genome_fa))
        if not check_file(self.genome_fa + '.bwt'):
            raise ValueError('bwa index not found: {}.bwt'.format(self.genome_fa))
        if not check_file(self.genome_size):
            raise ValueError('Reference genome size file not existing: {}'.format(
                self.genome_size))
        self.genome_fa = file_abspath(self.genome_fa)
        self.genome_size = file_abspath(self.genome_size)


    def default_outdir(self):
        """{results_root}/{yymmdd_HHMMSS}_neo.3atlas_{version}_{sample}..."""
        root = self.results_root
        if not isinstance(root, str):
            root = os.getcwd()
        name = '_'.join(
            ['{}_{}atlas_{}'.format(get_date(fmt='%y%m%d_%H%M%S'), EXP_NAME, VERSION)] +
            [i[2] for i in self.barcode_list])
        return os.path.join(file_abspath(root), name)


    def init_files(self):
        if not isinstance(self.outdir, str):
            self.outdir = self.default_outdir()
        self.outdir = file_abspath(self.outdir)
        self.tmp_dir = os.path.join(self.outdir, 'tmp')
        self.config_dir = os.path.join(self.outdir, 'config')
        prefix = os.path.join(self.outdir,
            'global.{}atlas.v{}'.format(EXP_NAME, VERSION))
        default_files = {
            'config_yaml': os.path.join(self.config_dir, 'config.yaml'),
            'global_log': prefix + '.log',
            'stat_csv': prefix + '.stat.csv',
            'sampled_fq': os.path.join(self.tmp_dir,
                'sub.' + os.path.basename(self.fq)),
        }
        self = update_obj(self, default_files, force=True)
        check_path([self.outdir, self.tmp_dir, self.config_dir],
            create_dirs=True)


class AtlasR1(object):
    """Process one sample of ATLAS-seq
    fq: the demultiplexed reads of the sample
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'fq': None,
            'smp_name': None,
            'barcode_name': None,
            'total': 0,
            'outdir': None,
            'tmp_dir': None,
            'genome_fa': None,
            'genome_size': None,
            'picard': None,
            'linker': LINKER,
            'distance': 10,
            'threads': 4,
            'keep_tmp': False,
            'overwrite': False,
        }
        self = update_obj(self, args_init, force=False)
        if not check_file(self.fq):
            raise ValueError('fq not exists: {}'.format(self.fq))
        if self.barcode_name is None:
            self.barcode_name = self.smp_name
        if not isinstance(self.outdir, str):
            self.outdir = os.getcwd()
        if not isinstance(self.tmp_dir, str):
            self.tmp_dir = os.path.join(self.outdir, 'tmp')
        self.init_files()


    def init_files(self):
        tmp = os.path.join(self.tmp_dir, self.barcode_name)
        out = os.path.join(self.outdir,
            '{}.{}atlas.v{}'.format(self.smp_name, EXP_NAME, VERSION))
        default_files = {
            'rmdup_bam': tmp + '.07.triminfo.aligned.noduplicate.bam',
            'plus_bg': tmp + '.07b.triminfo.aligned.noduplicate.plus.bedgraph',
            'minus_bg': tmp + '.07b.triminfo.aligned.noduplicate.minus.bedgraph',
            'insert_bed': tmp + '.12.insertions.display.bed',
            'stat_log': tmp + '.log',
            'out_prefix': out,
        }
        self = update_obj(self, default_files, force=True)
        self.flank_fa = {w: '{}.13.target.site.2x{}.fasta'.format(tmp, w)
            for w in FLANK_WIDTH}
        check_path([self.outdir, self.tmp_dir], create_dirs=True)


    def trim(self):
        args = {
            'fq': self.fq,
            'outdir': self.tmp_dir,
            'smp_name': self.barcode_name,
            'linker': self.linker,
            'overwrite': self.overwrite,
        }
        trimmer = Cutadapt(**args)
        stat = trimmer.run()
        self.clean_fq = trimmer.clean_fq
        return stat


    def align(self):
        args = {
            'fq': self.clean_fq,
            'index': self.genome_fa,
            'outdir': self.tmp_dir,
            'smp_name': self.barcode_name,
            'threads': self.threads,
            'keep_tmp': self.keep_tmp,
            'overwrite': self.overwrite,
        }
        aligner = Bwa(**args)
        bam = aligner.run()
        return (bam, aligner.n_map)


    def rmdup(self, bam):
        """Remove PCR duplicates, picard
        empty bam is copied as is
        """
        if Bam(bam).is_empty():
            log.warning('rmdup() skipped, no alignments: {}'.format(bam))
            shutil.copy(bam, self.rmdup_bam)
            Bam(self.rmdup_bam).index()
        else:
            Bam(bam).rmdup(self.rmdup_bam, overwrite=self.overwrite,
                picard=self.picard)
        return Bam(self.rmdup_bam).count()


    def insertions(self):
        points = insertion_points(self.rmdup_bam)
        rows = call_insertions(points, self.smp_name, self.distance)
        write_insertions(rows, self.insert_bed)
        return rows


    def coverage(self):
        bam = Bam(self.rmdup_bam)
        bam.to_bedgraph(self.plus_bg, strand='+',
            track_line=bedgraph_track(self.smp_name, '+'))
        bam.to_bedgraph(self.minus_bg, strand='-',
            track_line=bedgraph_track(self.smp_name, '-'))


    def flanks(self, rows):
        for w, f in self.flank_fa.items():
            flank_fasta(rows, self.genome_fa, self.genome_size, w, f)


    def final_files(self):
        """Rename files to keep, in outdir
        {sample}.neo.3atlas.v{version}.{suffix}
        """
        p = self.out_prefix
        bai = os.path.splitext(self.rmdup_bam)[0] + '.bai'
        if check_file(self.rmdup_bam + '.bai'):
            move_file(self.rmdup_bam + '.bai', bai)
        files = [
            (self.stat_log, p + '.log'),
            (self.rmdup_bam, p + '.bam'),
            (bai, p + '.bai'),
            (self.insert_bed, p + '.insertions.true.bed'),
            (self.plus_bg, p + '.plus.bedgraph'),
            (self.minus_bg, p + '.minus.bedgraph'),
        ]
        files += [(f, '{}.target.site.2x{}.fasta'.format(p, w))
            for w, f in self.flank_fa.items()]
        for src, dest in files:
            move_file(src, dest)


    def run(self):
        log.info('Processing sample {}'.format(self.smp_name))
        barcode_out = Fastx(self.fq).fq_counter()
        log.info('  - Trim ATLAS linker')
        trim_stat = self.trim()
        log.info('  - Align reads to genome')
        bam, n_map = self.align()
        log.info('  - Remove PCR duplicates')
        n_unique = self.rmdup(bam)
        log.info('  - Call insertions')
        rows = self.insertions()
        log.info('  - Coverage')
        self.coverage()
        log.info('  - Extract target site flanking sequence')
        self.flanks(rows)
        self.stat = {
            'smp_name': self.smp_name,
            'barcode_name': self.barcode_name,
            'total': self.total,
            'barcode_out': barcode_out,
            'size_selected': barcode_out - trim_stat['too_short'],
            'linker_out': trim_stat['clean'],
            'mapped': n_map,
            'unique': n_unique,
            'insertions': len(rows),
        }
        with open(self.stat_log, 'wt') as w:
            w.write(sample_stat(self.stat) + '\n')
        self.final_files()
        return self.stat


class Atlas(object):
    """The ATLAS-seq pipeline, for one sequencing run
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_local = AtlasConfig(**self.__dict__)
        self = update_obj(self, args_local.__dict__, force=True)
        Config().dump(self.__dict__.copy(), self.config_yaml)


    def load_data(self):
        """Subsample reads, if sampling < 1"""
        if self.sampling < 1:
            log.info('[Step 1 - Data loading] sampling: {}'.format(self.sampling))
            fq = self.sampled_fq
            if fq.endswith('.gz'):
                fq = os.path.splitext(fq)[0] # seqtk writes plain text
            return Fastx(self.fq).sample(fq, fraction=self.sampling,
                seed=self.seed, overwrite=self.overwrite)
        return self.fq


    def demx(self, fq):
        log.info('[Step 2 - Demultiplexing]')
        args = {
            'fq': fq,
            'barcode': self.barcode,
            'outdir': self.tmp_dir,
            'overwrite': self.overwrite,
        }
        d = Demx(**args)
        fq_list = d.run()
        return (fq_list, d.count)


    def run_header(self):
        day = get_date(fmt='[%d-%m-%Y] [%H:%M:%S]')
        return run_header(day, self.fq, self.genome_fa, self.barcode,
            cmd_line=' '.join(sys.argv))


    def run(self):
        t0 = get_date(timestamp=True)
        header = self.run_header()
        print('\n'.join([
            header,
            'Output directory:\t{}'.format(self.outdir),
            'Samples:',
            '\n'.join(['\t- {}: {}'.format(n, s) for n, _, s in self.barcode_list]),
            STARLINE,
        ]))
        fq = self.load_data()
        fq_list, count = self.demx(fq)
        total = count.get('total', 0)
        msg = [header, demx_stat(total, count.get('undemx', 0),
            self.barcode_list, count)]
        # samples
        stat_list = []
        for i, ((name, _, smp), smp_fq) in enumerate(
            zip(self.barcode_list, fq_list), start=3):
            log.info('[Step {} - Processing sample {}]'.format(i, smp))
            args = {
                'fq': smp_fq,
                'smp_name': smp,
                'barcode_name': name,
                'total': total,
                'outdir': self.outdir,
                'tmp_dir': self.tmp_dir,
                'genome_fa': self.genome_fa,
                'genome_size': self.genome_size,
                'picard': self.picard,
                'distance': self.distance,
                'threads': self.threads,
                'keep_tmp': self.keep_tmp,
                'overwrite': self.overwrite,
            }
            r1 = AtlasR1(**args)
            stat = r1.run()
            stat_list.append(stat)
            msg.extend([sample_stat(stat), STARLINE])
        # summary
        t1 = get_date(timestamp=True)
        day = get_date(fmt='[%d-%m-%Y] [%H:%M:%S]')
        msg.extend([
            '{} \tRunning time: {} (hh:mm:ss)'.format(day, format_runtime(t1 - t0)),
            STARLINE,
        ])
        msg = '\n'.join(msg)
        with open(self.global_log, 'wt') as w:
            w.write(msg + '\n')
        print(msg)
        self.save_stat(stat_list)
        if not self.keep_tmp:
            remove_path(self.tmp_dir)
        return stat_list


    def save_stat(self, stat_list):
        """Summary table, one row per sample"""
        cols = ['smp_name', 'barcode_name', 'total', 'barcode_out',
            'size_selected', 'linker_out', 'mapped', 'unique', 'insertions']
        df = pd.DataFrame(stat_list, columns=cols)
        df.to_csv(self.stat_csv, index=False)
        return df


def main():
    args = vars(add_atlas_args().parse_args())
    Atlas(**args).run()


if __name__ == '__main__':
    main()

#!/usr/bin/env python3


"""
Function:
1. Demultiplex inline barcode at the 5' end of reads, using cutadapt

barcode table, whitespace separated, '#' for comments:
    barcode_name    barcode_seq    sample_name

cutadapt -e 0.10 -q 10 -g name1=^seq1 -g name2=^seq2 \
    --untrimmed-output=discarded_missing_bc.fastq \
    -o {name}.01.trimmed_bc.fastq in.fastq
"""


import os
import re
import shutil
from itertools import combinations
from atlasseq.utils.utils import log, update_obj, Config, run_shell_cmd
from atlasseq.utils.file import (
    check_file, check_path, check_fx, file_abspath, str_distance
)
from atlasseq.utils.seq import Fastx
from atlasseq.utils.argsParser import add_demx_args


def load_barcode(x):
    """Read barcode table

    Return list of tuple: [(barcode_name, barcode_seq, sample_name), ...]
    in the order of the file
    """
    if not check_file(x, check_empty=True):
        raise ValueError('Barcode file not specified or not existing: {}'.format(x))
    out = []
    with open(x) as r:
        for line in r:
            if line.startswith('#') or not line.strip():
                continue
            s = line.strip().split()
            if len(s) < 3:
                raise ValueError('illegal barcode line, expect: name seq sample, got: {}'.format(
                    line.strip()))
            name, seq, smp = s[:3]
            seq = seq.upper()
            if not re.match('^[ACGTN]+$', seq):
                raise ValueError('illegal barcode sequence: {}'.format(seq))
            out.append((name, seq, smp))
    if len(out) == 0:
        raise ValueError('no barcode found in: {}'.format(x))
    return out


def check_barcode(barcodes, error_rate=0.1):
    """Make sure the barcodes are compatible
    1. names unique
    2. sequences unique
    3. no two barcodes within the error budget of cutadapt
    """
    names = [i[0] for i in barcodes]
    seqs = [i[1] for i in barcodes]
    if len(set(names)) < len(names):
        raise ValueError('barcode names not unique: {}'.format(names))
    if len(set(seqs)) < len(seqs):
        raise ValueError('barcode sequences not unique: {}'.format(seqs))
    for (n1, s1, _), (n2, s2, _) in combinations(barcodes, 2):
        mm = int(min(len(s1), len(s2)) * error_rate)
        if str_distance(s1, s2, partial=False) <= mm:
            raise ValueError(
                'barcodes too close, {}={} and {}={}, with error_rate={}'.format(
                    n1, s1, n2, s2, error_rate))
    return True


class Demx(object):
    """Demultiplex barcode, locate in the head of read

    Example:

    >>> args = {
        'fq': 'run.fastq',
        'barcode': 'barcode.txt',
        'outdir': 'tmp',
    }

    >>> Demx(**args).run()

    --------------------------------------------------------------------------------
    Demultiplex report
    Input reads :       1000    0.0M
    order filename                                      count percent
      1 Sample_A (BC01)                                   450  45.00%
      2 Sample_B (BC02)                                   500  50.00%
      3 undemx                                             50   5.00%
    --------------------------------------------------------------------------------
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'fq': None,
            'barcode': None,
            'outdir': None,
            'error_rate': 0.1,
            'qual_min': 10,
            'overwrite': False,
        }
        self = update_obj(self, args_init, force=False)
        if not check_fx(self.fq):
            raise ValueError('Input file not specified or not existing: {}'.format(
                self.fq))
        self.fq = file_abspath(self.fq)
        self.barcode = file_abspath(self.barcode)
        self.barcode_list = load_barcode(self.barcode)
        check_barcode(self.barcode_list, self.error_rate)
        if not isinstance(self.outdir, str):
            self.outdir = os.getcwd()
        self.outdir = file_abspath(self.outdir)
        self.init_files()


    def init_files(self):
        self.config_dir = os.path.join(self.outdir, 'config')
        default_files = {
            'config_yaml': os.path.join(self.config_dir, 'demx.config.yaml'),
            'cmd_shell': os.path.join(self.outdir, 'demx.cmd.sh'),
            'demx_log': os.path.join(self.outdir, 'demx.cutadapt.log'),
            'undemx_fq': os.path.join(self.outdir, 'discarded_missing_bc.fastq'),
            'read_count_json': os.path.join(self.outdir, 'demx.read_count.json'),
            'report_txt': os.path.join(self.outdir, 'demx.report.txt'),
        }
        self = update_obj(self, default_files, force=True)
        self.fq_list = [self.barcode_fq(i[0]) for i in self.barcode_list]
        check_path([self.outdir, self.config_dir], create_dirs=True)


    def barcode_fq(self, name):
        return os.path.join(self.outdir, name + '.01.trimmed_bc.fastq')


    def get_cmd(self):
        adapters = ' '.join([
            '-g {}=^{}'.format(name, seq) for name, seq, _ in self.barcode_list
        ])
        cmd = ' '.join([
            '{}'.format(shutil.which('cutadapt')),
            '-e {}'.format(self.error_rate),
            '-q {}'.format(self.qual_min),
            adapters,
            '--untrimmed-output={}'.format(self.undemx_fq),
            '-o {}'.format(os.path.join(self.outdir, '{name}.01.trimmed_bc.fastq')),
            self.fq,
            '1>{} 2>&1'.format(self.demx_log),
        ])
        return cmd


    def run_cmd(self):
        if all([check_file(i) for i in self.fq_list]) and not self.overwrite:
            log.info('Demx() skipped, file exists: {}'.format(self.fq_list[0]))
            return None
        cmd = self.get_cmd()
        with open(self.cmd_shell, 'wt') as w:
            w.write(cmd + '\n')
        rc, _, _ = run_shell_cmd(cmd)
        if rc:
            raise RuntimeError('Demx() failed, see: {}'.format(self.demx_log))
        # missing files, for barcodes without reads
        for f in self.fq_list + [self.undemx_fq]:
            if not check_file(f):
                open(f, 'wt').close()


    def read_count(self):
        """Number of reads
        total, undemx, each barcode
        """
        d = {
            'total': Fastx(self.fq).fq_counter(),
            'undemx': Fastx(self.undemx_fq).fq_counter(),
        }
        for (name, _, _), f in zip(self.barcode_list, self.fq_list):
            d[name] = Fastx(f).fq_counter()
        Config().dump(d, self.read_count_json)
        self.count = d
        return d


    def report(self):
        """Organize the report
        name, count, pct
        """
        d = self.count
        total = d.get('total', 0)
        f_stat = []
        rows = [('{} ({})'.format(smp, name), d.get(name, 0))
            for name, _, smp in self.barcode_list]
        rows.append(('undemx', d.get('undemx', 0)))
        for i, (k, v) in enumerate(rows, start=1):
            pct = v / total * 100 if total > 0 else 0
            f_stat.append('{:>3} {:<40s} {:>10,} {:6.2f}%'.format(i, k, v, pct))
        msg = '\n'.join([
            '-'*80,
            'Demultiplex report',
            '{} : {:>10} {:6.1f}M'.format('Input reads', total, total/1e6),
            '{:>3} {:<40s} {:>10} {:6}'.format(
                'order', 'filename', 'count', 'percent'),
            '\n'.join(f_stat),
            '-'*80,
        ])
        with open(self.report_txt, 'wt') as w:
            w.write(msg+'\n')
        print(msg)


    def run(self):
        Config().dump(self.__dict__.copy(), self.config_yaml)
        self.run_cmd()
        self.read_count()
        self.report()
        return self.fq_list


def main():
    args = vars(add_demx_args().parse_args())
    Demx(**args).run()


if __name__ == '__main__':
    main()

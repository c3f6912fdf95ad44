#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Wrap cutadapt commands, trim the ATLAS linker at 5' end of reads
"""


import os
import shutil
from atlasseq.utils.seq import Fastx
from atlasseq.utils.file import check_path, check_file, check_fx, file_abspath, fx_name
from atlasseq.utils.utils import log, update_obj, Config, run_shell_cmd
from atlasseq.utils.argsParser import add_trim_args


# RBMSL2 +T from A-tailing
LINKER = 'GTGGCGGCCAGTATTCGTAGGAGGGCGCGTAGCATAGAACGT'


class Cutadapt(object):
    """
    single file, SE
    Trim the ATLAS linker at the 5' end of reads

    cutadapt -e 0.12 -q 10 -m {len_min} -g ^{linker} \
        --info-file={prefix}.02b.trimmed_linker.tab \
        --too-short-output={prefix}.02c.discarded_tooshort.fastq \
        --untrimmed-output={prefix}.02d.discarded_missing_adapter.fastq \
        -o {prefix}.02a.trimmed_linker.fastq \
        in.fastq

    len_min: length of the linker + 25
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'fq': None,
            'outdir': None,
            'smp_name': None,
            'linker': LINKER,
            'len_min': None,
            'qual_min': 10,
            'error_rate': 0.12,
            'overwrite': False,
        }
        self = update_obj(self, args_init, force=False)
        if not check_file(self.fq):
            raise ValueError('fq not exists: {}'.format(self.fq))
        self.fq = file_abspath(self.fq)
        if not isinstance(self.outdir, str):
            self.outdir = os.getcwd()
        self.outdir = file_abspath(self.outdir)
        if self.smp_name is None:
            self.smp_name = fx_name(self.fq)
        if self.linker is None:
            self.linker = LINKER
        self.linker = self.linker.upper()
        if self.len_min is None:
            self.len_min = len(self.linker) + 25 # minimal amplicon size
        self.init_files()


    def init_files(self):
        self.config_dir = os.path.join(self.outdir, 'config')
        prefix = os.path.join(self.outdir, self.smp_name)
        default_files = {
            'config_yaml': os.path.join(self.config_dir, self.smp_name + '.trim.config.yaml'),
            'cmd_shell': prefix + '.trim.cmd.sh',
            'clean_fq': prefix + '.02a.trimmed_linker.fastq',
            'info_file': prefix + '.02b.trimmed_linker.tab',
            'too_short_fq': prefix + '.02c.discarded_tooshort.fastq',
            'untrim_fq': prefix + '.02d.discarded_missing_adapter.fastq',
            'log': prefix + '.cutadapt.log',
            'trim_json': prefix + '.cutadapt.trim.json',
        }
        self = update_obj(self, default_files, force=True)
        check_path([self.outdir, self.config_dir], create_dirs=True)


    def get_cmd(self):
        cmd = ' '.join([
            '{}'.format(shutil.which('cutadapt')),
            '-e {}'.format(self.error_rate),
            '-q {}'.format(self.qual_min),
            '-m {}'.format(self.len_min),
            '-g ^{}'.format(self.linker),
            '--info-file={}'.format(self.info_file),
            '--too-short-output={}'.format(self.too_short_fq),
            '--untrimmed-output={}'.format(self.untrim_fq),
            '-o {}'.format(self.clean_fq),
            '{}'.format(self.fq),
            '1>{} 2>&1'.format(self.log)
            ])
        return cmd


    def parse_stat(self):
        """Read counts
        input: reads in
        too_short: discarded, shorter than len_min
        size_selected: input - too_short
        clean: reads with the linker trimmed
        """
        n_in = Fastx(self.fq).fq_counter()
        n_short = Fastx(self.too_short_fq).fq_counter()
        n_clean = Fastx(self.clean_fq).fq_counter()
        d = {
            'name': self.smp_name,
            'input': n_in,
            'too_short': n_short,
            'size_selected': n_in - n_short,
            'clean': n_clean,
        }
        Config().dump(d, self.trim_json)
        self.stat = d
        return d


    def run(self):
        if check_file(self.clean_fq) and not self.overwrite:
            log.info('Cutadapt() skipped, file exists: {}'.format(self.clean_fq))
        else:
            Config().dump(self.__dict__.copy(), self.config_yaml)
            cmd = self.get_cmd()
            with open(self.cmd_shell, 'wt') as w:
                w.write(cmd + '\n')
            if check_fx(self.fq):
                rc, _, _ = run_shell_cmd(cmd)
                if rc:
                    raise RuntimeError('Cutadapt() failed, see: {}'.format(self.log))
            else:
                log.warning('Cutadapt() skipped, empty input: {}'.format(self.fq))
            for f in [self.clean_fq, self.too_short_fq, self.untrim_fq]:
                if not check_file(f):
                    open(f, 'wt').close()
        return self.parse_stat()


def main():
    args = vars(add_trim_args().parse_args())
    Cutadapt(**args).run()


if __name__ == '__main__':
    main()

#!/usr/bin/env python3

"""
Align reads to genome, using bwa mem

Keep the reads that are soft-clipped at the L1 junction, with a poly(A)
(or poly(T)) stretch in the clipped part:

1. reverse strand (flag=16), clipped at 5' end: clipped seq ends with A
2. forward strand (flag=0), clipped at 3' end: clipped seq starts with T

bwa mem -t 4 -C -M -v 1 genome.fa in.fq > out.sam
# filter: MAPQ >= 20, primary, mapped, polyA junction
samtools sort -o out.bam && samtools index out.bam
"""

import os
import re
import shutil
import pysam
from atlasseq.utils.utils import update_obj, Config, log, run_shell_cmd
from atlasseq.utils.file import (
    check_file, check_path, check_fx, file_abspath, fx_name
)
from atlasseq.utils.bam import Bam
from atlasseq.utils.argsParser import add_align_args


POLYA_MIN = 5 # number of A/T at the junction


def is_polya_junction(flag, cigar, seq, n=POLYA_MIN):
    """Check if the read is soft-clipped at the junction, with polyA

    Parameters
    ----------
    flag : int
        SAM flag, only 0 and 16 are considered
    cigar : str
        CIGAR string, eg: 20S80M
    seq : str
        The read sequence, as in SAM (reference orientation)
    n : int
        The number of A/T required at the junction, fewer if the clipped part
        is shorter than n

    >>> is_polya_junction(16, '8S42M', 'GGGAAAAACCCC...')
    True
    >>> is_polya_junction(0, '42M6S', '...CCCTTTTTTG')
    True
    """
    if not isinstance(cigar, str) or not isinstance(seq, str):
        return False
    seq = seq.upper()
    if flag == 16:
        m = re.match(r'^(\d+)S', cigar)
        if m is None:
            return False
        l = int(m.group(1))
        clipped = seq[:l]
        return clipped.endswith('A' * min(l, n))
    elif flag == 0:
        m = re.search(r'(\d+)S$', cigar)
        if m is None:
            return False
        l = int(m.group(1))
        clipped = seq[len(seq)-l:]
        return clipped.startswith('T' * min(l, n))
    else:
        return False


class BwaConfig(object):
    """Check args, prepare files for bwa
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'aligner': 'bwa',
            'fq': None,
            'outdir': None,
            'index': None,
            'smp_name': None,
            'threads': 4,
            'mapq_min': 20,
            'polya_min': POLYA_MIN,
            'overwrite': False,
            'keep_tmp': False,
        }
        self = update_obj(self, args_init, force=False)
        if not check_file(self.fq):
            raise ValueError('--fq, not exists: {}'.format(self.fq))
        self.fq = file_abspath(self.fq)
        if not isinstance(self.index, str) or \
            not check_file(self.index + '.bwt'):
            raise ValueError('bwa index not valid: {}'.format(self.index))
        self.index = file_abspath(self.index)
        if not isinstance(self.outdir, str):
            self.outdir = os.getcwd()
        self.outdir = file_abspath(self.outdir)
        if self.smp_name is None:
            self.smp_name = fx_name(self.fq)
        self.init_files()


    def init_files(self):
        self.config_dir = os.path.join(self.outdir, 'config')
        prefix = os.path.join(self.outdir, self.smp_name)
        default_files = {
            'config_yaml': os.path.join(self.config_dir, self.smp_name + '.align.config.yaml'),
            'cmd_shell': prefix + '.align.cmd.sh',
            'sam': prefix + '.05.aligned.sam',
            'bam_unsorted': prefix + '.06.triminfo.aligned.unsorted.bam',
            'bam': prefix + '.06.triminfo.aligned.bam',
            'align_log': prefix + '.align.log',
            'align_json': prefix + '.align.json',
        }
        self = update_obj(self, default_files, force=True)
        check_path([self.outdir, self.config_dir], create_dirs=True)


class Bwa(object):
    """Alignment, using bwa mem
    Single index, SE

    bwa mem -t 4 -C -M -v 1 genome.fa in.fq > out.sam 2> out.log
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_local = BwaConfig(**self.__dict__)
        self = update_obj(self, args_local.__dict__, force=True)
        self.aligner = 'bwa' # force changed
        self.get_cmd()
        Config().dump(self.__dict__.copy(), self.config_yaml)


    def get_cmd(self):
        """The command line
        -t: number of threads
        -M: mark shorter split hits as secondary, for Picard compatibility
        -v: verbosity level
        -C: append FASTA/FASTQ comment to SAM output
        """
        self.cmd = ' '.join([
            '{} mem'.format(shutil.which('bwa')),
            '-t {}'.format(self.threads),
            '-C -M -v 1',
            self.index,
            self.fq,
            '1> {} 2> {}'.format(self.sam, self.align_log),
        ])


    def filter_junction(self):
        """Keep reads at L1 junction
        MAPQ >= mapq_min; flag 0 or 16; polyA at soft-clip
        """
        n_total = 0
        n_keep = 0
        with pysam.AlignmentFile(self.sam, 'r') as r, \
            pysam.AlignmentFile(self.bam_unsorted, 'wb', template=r) as w:
            for read in r:
                n_total += 1
                if read.mapping_quality < self.mapq_min:
                    continue
                if is_polya_junction(read.flag, read.cigarstring,
                    read.query_sequence, self.polya_min):
                    w.write(read)
                    n_keep += 1
        log.info('junction reads: {} of {} alignments'.format(n_keep, n_total))
        return n_keep


    def run(self):
        if check_file(self.bam, check_empty=True) and not self.overwrite:
            log.info('Bwa() skipped, file exists: {}'.format(self.bam))
        else:
            with open(self.cmd_shell, 'wt') as w:
                w.write(self.cmd + '\n')
            if check_fx(self.fq):
                rc, _, _ = run_shell_cmd(self.cmd)
                if rc or not check_file(self.sam, check_empty=True):
                    raise RuntimeError('Bwa() failed, check {}'.format(self.align_log))
                self.filter_junction()
            else:
                log.warning('Bwa() empty input: {}'.format(self.fq))
                self.empty_bam()
            Bam(self.bam_unsorted, self.threads).sort(self.bam, overwrite=True)
            Bam(self.bam).index()
            if not self.keep_tmp:
                for f in [self.sam, self.bam_unsorted]:
                    if check_file(f):
                        os.remove(f)
        n_map = Bam(self.bam).count()
        Config().dump({
            'name': self.smp_name,
            'index': self.index,
            'map': n_map,
            }, self.align_json)
        self.n_map = n_map
        return self.bam


    def empty_bam(self):
        """Header-only bam, from the sequence dictionary of the index
        requires: genome.fa.fai
        """
        fai = self.index + '.fai'
        if not check_file(fai):
            pysam.faidx(self.index)
        header = {'HD': {'VN': '1.6', 'SO': 'unsorted'}, 'SQ': []}
        with open(fai) as r:
            for line in r:
                s = line.strip().split('\t')
                header['SQ'].append({'SN': s[0], 'LN': int(s[1])})
        with pysam.AlignmentFile(self.bam_unsorted, 'wb', header=header):
            pass


def main():
    args = vars(add_align_args().parse_args())
    Bwa(**args).run()


if __name__ == '__main__':
    main()

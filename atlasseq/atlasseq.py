#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""This is the main script for regular usage,
call sub-commands

atlasseq atlas -b barcode.txt run.fastq.gz
atlasseq mrc -g hg19.genome -f hg19.fa -i in.bed -o out.bed
"""

__version__ = '3.3'

import sys
import argparse
from .utils.argsParser import *
from .demx.demx import Demx
from .trim.cutadapt import Cutadapt
from .align.bwa import Bwa
from .sample.sample import FxSample
from .mrc.mrc import Mrc
from .atlas.atlas import Atlas


class Atlasseq(object):
    """The 1st-level of command, choose which sub-command to use
    atlas, mrc, demx, trim, align, sample
    """
    def __init__(self):
        parser = argparse.ArgumentParser(
            prog = 'atlasseq',
            description = 'ATLAS-seq analysis, L1 insertions and matched random control',
            epilog = '',
            usage = """ atlasseq <command> [<args>]

    The most commonly used sub-commands are:

        atlas        ATLAS-seq pipeline, call L1 insertions
        mrc          Matched random control, GC-matched random intervals

        demx         Demultiplexing reads (inline barcode)
        trim         Trim the ATLAS linker
        align        Align reads to genome, keep L1 junction reads
        sample       Sample fastq file
    """
        )
        parser.add_argument('command', help='Subcommand to run')
        parser.add_argument('-v', '--version', action='version',
            version='%(prog)s {}'.format(__version__))

        # parse_args defaults to [1:] for args
        args = parser.parse_args(sys.argv[1:2])
        if not hasattr(self, args.command):
            print('Unrecognized command')
            parser.print_help()
            sys.exit(1)

        # use dispatch pattern to invoke method with same name
        getattr(self, args.command)()


    def atlas(self):
        """
        ATLAS-seq pipeline
        """
        parser = add_atlas_args()
        args = vars(parser.parse_args(sys.argv[2:]))
        Atlas(**args).run()


    def mrc(self):
        """
        Matched random control
        """
        parser = add_mrc_args()
        args = vars(parser.parse_args(sys.argv[2:]))
        Mrc(**args).run()


    def demx(self):
        """
        Demultiplexing reads: inline barcode
        """
        parser = add_demx_args()
        args = vars(parser.parse_args(sys.argv[2:]))
        Demx(**args).run()


    def trim(self):
        """
        Trim the ATLAS linker
        """
        parser = add_trim_args()
        args = vars(parser.parse_args(sys.argv[2:]))
        Cutadapt(**args).run()


    def align(self):
        """
        Align reads, keep L1 junction reads
        """
        parser = add_align_args()
        args = vars(parser.parse_args(sys.argv[2:]))
        Bwa(**args).run()


    def sample(self):
        """
        Sample fastq file
        """
        parser = add_sample_args()
        args = vars(parser.parse_args(sys.argv[2:]))
        FxSample(**args).run()


def main():
    Atlasseq()


if __name__ == '__main__':
    main()

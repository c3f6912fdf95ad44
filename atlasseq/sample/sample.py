"""
FxSample

Generate a random subset of fastq file

seqtk sample -s {seed} in.fq {fraction} > out.fq
"""


import os
from multiprocessing import Pool
from atlasseq.utils.utils import log, update_obj
from atlasseq.utils.file import check_file, check_path, file_abspath
from atlasseq.utils.seq import Fastx
from atlasseq.utils.argsParser import add_sample_args


class FxSample(object):
    """
    Get subset of fastx file
    fraction: (0, 1]
    """
    def __init__(self, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.init_args()


    def init_args(self):
        args_init = {
            'fx': None,
            'fraction': 1.0,
            'seed': 11,
            'outdir': None,
            'overwrite': False,
            'parallel_jobs': 1
        }
        self = update_obj(self, args_init, force=False)

        # file exists
        if isinstance(self.fx, str):
            self.fx = [self.fx]
        elif isinstance(self.fx, list):
            pass
        else:
            raise ValueError('-i expect str or list, got {}'.format(
                type(self.fx).__name__))
        missing = [i for i in self.fx if not check_file(i)]
        if len(missing) > 0:
            raise ValueError('-i, file not exists: {}'.format(missing))

        # fraction
        if not isinstance(self.fraction, (int, float)) or \
            not 0 < self.fraction <= 1:
            raise ValueError('-f expect (0, 1], got {}'.format(self.fraction))

        # output
        if not isinstance(self.outdir, str):
            self.outdir = os.getcwd()
        self.outdir = file_abspath(self.outdir)
        check_path(self.outdir, create_dirs=True)


    def out_file(self, fx):
        """seqtk writes plain text, remove .gz"""
        name = os.path.basename(fx)
        if name.endswith('.gz'):
            name = os.path.splitext(name)[0]
        return os.path.join(self.outdir, name)


    def sampleR1(self, fx):
        """
        extract sample for single fq file
        """
        fx_out = self.out_file(fx)
        if fx_out == file_abspath(fx):
            raise ValueError('-o, output overwrites the input: {}'.format(fx))
        log.info('extract {} of records from: {}'.format(self.fraction, fx))
        return Fastx(fx).sample(fx_out, fraction=self.fraction, seed=self.seed,
            overwrite=self.overwrite)


    def sampleRn(self):
        """
        Run for multiple fastq files
        """
        with Pool(processes=self.parallel_jobs) as pool:
            out = pool.map(self.sampleR1, self.fx)
        return out


    def run(self):
        return self.sampleRn()


def main():
    args = vars(add_sample_args().parse_args())
    FxSample(**args).run()


if __name__ == '__main__':
    main()

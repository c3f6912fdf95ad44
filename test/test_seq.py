#!/usr/bin/env python3
# -*- coding: UTF-8 -*-


import gzip
import pytest
from atlasseq.utils.seq import Fastx


FQ = '@r1 1:N:0\nACGTACGT\n+\nIIIIIIII\n@r2\nTTTT\n+\nIIII\n'


def test_fq_counter(tmp_path):
    fq = tmp_path / 'a.fq'
    fq.write_text(FQ)
    assert Fastx(str(fq)).fq_counter() == 2


def test_fq_counter_gzip(tmp_path):
    fq = str(tmp_path / 'a.fq.gz')
    with gzip.open(fq, 'wt') as w:
        w.write(FQ)
    assert Fastx(fq).fq_counter() == 2


def test_fq_counter_missing(tmp_path):
    assert Fastx(str(tmp_path / 'missing.fq')).fq_counter() == 0


def test_sample_fraction(tmp_path):
    fq = tmp_path / 'a.fq'
    fq.write_text(FQ)
    with pytest.raises(ValueError):
        Fastx(str(fq)).sample(str(tmp_path / 'out.fq'), fraction=1.5)

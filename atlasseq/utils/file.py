#!/usr/bin/env python3

"""
General functions for file manipulation

check_file : file exists, check_empty
move_file : str
file_abspath : str
file_prefix : str
check_path : str
remove_path : str
fx_name : str
check_fx : str
read_lines : str
str_distance : str
"""

import os
from sys import stdout
from re import sub, IGNORECASE
from shutil import move, rmtree
from logging import basicConfig, getLogger
from xopen import xopen
import Levenshtein as lev # distance


basicConfig(
    format='[%(asctime)s %(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    stream=stdout)
log = getLogger(__name__)
log.setLevel('INFO')


# file: only for single file, str
def check_file(x, **kwargs):
    """Check if x is file and exists
    Parameters
    ----------
    x : str
        Path to a file

    Keyword Parameters
    ------------------
    show_error : bool
        Show the error messages

    show_log : bool
        Show the log messages

    check_empty : bool
        Check if the file is empty or not,  gzipped empty file, size=20
    """
    args = {
        'show_error': False,
        'show_log': False,
        'check_empty': False
    }
    args.update(kwargs)
    if isinstance(x, str):
        if os.path.isfile(x): # symlink/file
            out = True
            if args['check_empty']:
                x_size = os.stat(x).st_size
                out = x_size > 20 if x.endswith('.gz') else x_size > 0
        else:
            if args['show_error']:
                log.error('file not exists: {}'.format(x))
            out = False # failed
        if args['show_log']:
            flag = 'ok' if out else 'failed'
            log.info('{:<6s} : {}'.format(flag, x))
    else:
        if args['show_error']:
            log.error('x expect str, got {}'.format(type(x).__name__))
        out = False
    return out


def move_file(src, dest, force=True):
    """Move file, src to dest
    skipped if src not exists
    """
    if check_file(src):
        if check_file(dest) and not force:
            log.info('move_file() skipped, file exists: {}'.format(dest))
        else:
            move(src, dest) # shutil.move
    else:
        log.warning('move_file() skipped, src not exists: {}'.format(src))


def file_abspath(x):
    """Expand the absolute path of file
    Parameters
    ----------
    x : str
        Path to a file
    """
    if isinstance(x, str):
        out = os.path.abspath(os.path.expanduser(os.path.expandvars(x)))
    else:
        out = x
    return out


def file_prefix(x, with_path=False):
    """Extract the prefix of file, compatiabe for None

    remove extensions
    .gz, .fq.gz, tar.gz, ...
    """
    if isinstance(x, str):
        if x.endswith('.gz') or x.endswith('.bz2'):
            x = os.path.splitext(x)[0]
        out = os.path.splitext(x)[0]
        if not with_path:
            out = os.path.basename(out)
    else:
        out = None
    return out


# path: only for single path, str
def check_path(x, **kwargs):
    """Check if x is path
    Parameters
    ----------
    x : str or list
        Path to a path

    Keyword Parameters
    ------------------
    show_error : bool
        Show the error messages

    show_log : bool
        Show the log messages

    create_dirs : bool
        Create the dirs
    """
    args = {
        'show_error': False,
        'show_log': False,
        'create_dirs': True
    }
    args.update(kwargs)
    out = False
    if isinstance(x, str):
        if os.path.isdir(x):
            out = True
        elif os.path.isfile(x):
            if args['show_error']:
                log.error('not a directory: {}'.format(x))
        else:
            if args['create_dirs']:
                try:
                    os.makedirs(x)
                    out = True
                except OSError as e:
                    if args['show_error']:
                        log.error('`os.makedirs` failed: {}, {}'.format(x, e))
        flag = 'ok' if out else 'failed'
        if args['show_log'] is True:
            log.info('{:<6s} : {}'.format(flag, x))
    elif isinstance(x, list):
        out = all([check_path(i, **kwargs) for i in x])
    else:
        if args['show_error']:
            log.error('x expect str or list, got {}'.format(type(x).__name__))
    return out


def remove_path(x, show_log=False):
    """Remove directory, and all files in it"""
    if isinstance(x, str) and os.path.isdir(x):
        rmtree(x)
        if show_log:
            log.info('{:<6s} : {}'.format('removed', x))
    else:
        log.warning('remove_path() skipped, not a directory: {}'.format(x))


# fastx file:
def fx_name(x, fix_pe=False):
    """The name of fastx
    fix the pe_suffix, '_1, _2', '_R1, _R2'
    """
    out = file_prefix(x)
    if isinstance(out, str) and fix_pe:
        out = sub('[._](r)?[12]$', '', out, flags=IGNORECASE) # re.sub
    return out


def check_fx(x):
    """Check if x is fastx file
    1. file exist, not empty
    2. fx type: determined by first character: @/>
    """
    if check_file(x, check_empty=True):
        a = read_lines(x, nrows=1)
        out = len(a) > 0 and a[0][:1] in ['>', '@']
    else:
        out = False
    return out


def read_lines(x, nrows=0, skip=0, comment=''):
    """Read plain text file; warning for large file
    save each line as list()

    Parameters
    ----------
    x:  str
        Path to a file

    nrows:  int
        The maximum number of rows to read
        default: [0], ignored

    skip:  int
        The number of lines of the data to skip before beginning to read data
        default: [0]

    comment:  str
        A string of one character, default [''], empty
    """
    out = []
    if check_file(x, check_empty=True):
        i = 0
        with xopen(x) as r:
            for line in r:
                i += 1
                if skip > 0 and i <= skip:
                    continue
                s = line.strip()
                if len(comment) == 1 and s.startswith(comment):
                    continue
                if nrows > 0 and len(out) >= nrows:
                    break
                out.append(s)
    else:
        log.error('read_lines() failed: {}'.format(x))
    return out


def str_distance(x, y, partial=True):
    """Check distance between a, b
    """
    out = -1
    if isinstance(x, str) and isinstance(y, str):
        if partial:
            x = x[:len(y)]
            y = y[:len(x)]
        out = lev.distance(x, y)
    return out

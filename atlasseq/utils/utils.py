#!/usr/bin/env python3

"""Functions for string, list, dict, ...
config files, shell commands, dates
"""


import os
import sys
import json
import yaml
import toml
import pickle
import signal
import numbers
import logging
import subprocess
from datetime import datetime
from dateutil import tz


logging.basicConfig(
    format='[%(asctime)s %(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    stream=sys.stdout)
log = logging.getLogger(__name__)
log.setLevel('INFO')


def get_date(timestamp=False, fmt='%Y-%m-%d %H:%M:%S'):
    """
    Return the current date in UTC.timestamp or local-formated-string

    Example:
    >>> get_date()
    '2021-05-18 17:08:53'

    >>> get_date(True)
    1621328957.280303

    >>> get_date(fmt='%y%m%d_%H%M%S')
    '210518_170853'
    """
    now = datetime.now(tz.tzlocal())
    if isinstance(timestamp, bool) and timestamp:
        out = now.timestamp()
    else:
        out = now.strftime(fmt)
    return out


def format_runtime(seconds):
    """Format seconds as hh:mm:ss"""
    seconds = int(round(seconds))
    h, r = divmod(seconds, 3600)
    m, s = divmod(r, 60)
    return '{:02d}:{:02d}:{:02d}'.format(h, m, s)


def run_shell_cmd(cmd):
    """This command is from 'ENCODE-DCC/atac-seq-pipeline'
    https://github.com/ENCODE-DCC/atac-seq-pipeline/blob/master/src/encode_common.py

    return (returncode, stdout, stderr)
    """
    p = subprocess.Popen(['/bin/bash','-o','pipefail'], # to catch error in pipe
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        universal_newlines=True,
        preexec_fn=os.setsid) # to make a new process with a new PGID
    pid = p.pid
    pgid = os.getpgid(pid)
    log.info('run_shell_cmd: PID={}, PGID={}, CMD={}'.format(pid, pgid, cmd))
    stdout, stderr = p.communicate(cmd)
    rc = p.returncode
    err_str = 'PID={}, PGID={}, RC={}\nSTDERR={}\nSTDOUT={}'.format(
        pid,
        pgid,
        rc,
        stderr.strip(),
        stdout.strip())
    if rc:
        log.error(err_str)
        # kill all child processes
        try:
            os.killpg(pgid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    return (rc, stdout.strip('\n'), stderr.strip('\n'))


def update_obj(obj, d, force=True, remove=False):
    """Update the object, by dict
    d: dict
    force: bool, update exists attributes
    remove: bool, remove exists attributes
    """
    if remove is True:
        for k in list(obj.__dict__):
            delattr(obj, k)
    # add attributes
    if isinstance(d, dict):
        for k, v in d.items():
            if not hasattr(obj, k) or force:
                setattr(obj, k, v)
    return obj


class Config(object):
    """Working with config, in dict/yaml/toml/json/pickle formats
    load/dump

    Example:
    1. write to file
    >>> Config().dump(d, 'out.json')
    >>> Config().dump(d, 'out.toml')
    >>> Config().dump(d, 'out.pickle')

    2. load from file
    >>> d = Config().load('in.yaml')
    """
    def __init__(self, x=None, **kwargs):
        self = update_obj(self, kwargs, force=True)
        self.x = x


    def load(self, x=None):
        """Read data from x, auto-recognize the file-type
        yaml, toml, json, pickle
        """
        if x is None:
            x = self.x # dict or str
        if x is None:
            x_dict = None
        elif isinstance(x, dict):
            x_dict = dict(sorted(x.items(), key=lambda i:i[0]))
        elif isinstance(x, str):
            reader = self.get_reader(x)
            if reader is None:
                x_dict = None
                log.error('unknown x, {}'.format(x))
            else:
                x_dict = reader(x)
        else:
            x_dict = None
            log.warning('load(x=) dict,str expect, got {}'.format(
                type(x).__name__))
        return x_dict


    def dump(self, d=None, x=None):
        """Write data to file x, auto-recognize the file-type
        d dict, data
        x str, file to save data(dict)
        """
        if d is None:
            d = self.load(self.x)
        if isinstance(x, str):
            writer = self.get_writer(x)
            if writer is None:
                log.error('unknown x, {}'.format(x))
            else:
                writer(self.to_builtin(d), x)
        else:
            log.warning('dump(x=) expect str, got {}'.format(
                type(x).__name__))


    def to_builtin(self, d):
        """Keep the values that yaml/toml/json could save
        str, numbers, bool, None, list, dict
        """
        if isinstance(d, dict):
            out = {}
            for k, v in d.items():
                if isinstance(v, (str, numbers.Number, bool)) or v is None:
                    out[k] = v
                elif isinstance(v, (list, tuple, dict)):
                    out[k] = self.to_builtin(v)
                else:
                    continue # skip objects
        elif isinstance(d, (list, tuple)):
            out = [i for i in d if isinstance(i, (str, numbers.Number, bool))]
        else:
            out = d
        return out


    def guess_format(self, x):
        """Guess the file format, by file extension"""
        formats = {
            'json': 'json',
            'yaml': 'yaml',
            'yml': "yaml",
            'toml': 'toml',
            'pickle': 'pickle'
        }
        if isinstance(x, str):
            x_ext = os.path.splitext(x)[1]
            x_ext = x_ext.lstrip('.').lower()
            x_format = formats.get(x_ext, None)
        elif isinstance(x, dict):
            x_format = 'dict'
        else:
            x_format = None
        return x_format


    def get_reader(self, x):
        x_format = self.guess_format(x)
        readers = {
            'json': self.from_json,
            'yaml': self.from_yaml,
            'toml': self.from_toml,
            'pickle': self.from_pickle
        }
        return readers.get(x_format, None)


    def get_writer(self, x):
        x_format = self.guess_format(x)
        writers = {
            'json': self.to_json,
            'yaml': self.to_yaml,
            'toml': self.to_toml,
            'pickle': self.to_pickle
        }
        return writers.get(x_format, None)


    def from_json(self, x):
        """Loding data from JSON file"""
        d = None
        if os.path.exists(x):
            try:
                with open(x, 'r') as r:
                    if os.path.getsize(x) > 0:
                        d = json.load(r)
                        d = dict(sorted(d.items(), key=lambda x:x[0]))
            except Exception as exc:
                log.error('from_json() failed, {}'.format(exc))
        else:
            log.error('from_json() failed, file not exists: {}'.format(x))
        return d


    def from_yaml(self, x):
        """Loding data from YAML file"""
        d = None
        if os.path.exists(x):
            try:
                with open(x, 'r') as r:
                    if os.path.getsize(x) > 0:
                        d = yaml.load(r, Loader=yaml.FullLoader)
                        d = dict(sorted(d.items(), key=lambda x:x[0]))
            except Exception as exc:
                log.error('from_yaml() failed, {}'.format(exc))
        else:
            log.error('from_yaml() failed, file not exists: {}'.format(x))
        return d


    def from_toml(self, x):
        """Loding data from TOML file"""
        d = None
        if os.path.exists(x):
            try:
                if os.path.getsize(x) > 0:
                    d = toml.load(x)
                    d = dict(sorted(d.items(), key=lambda x:x[0]))
            except Exception as exc:
                log.error('from_toml() failed, {}'.format(exc))
        else:
            log.error('from_toml() failed, file not exists: {}'.format(x))
        return d


    def from_pickle(self, x):
        """Loding data from pickle file"""
        d = None
        if os.path.exists(x):
            try:
                with open(x, 'rb') as r:
                    if os.path.getsize(x) > 0:
                        d = pickle.load(r)
                        d = dict(sorted(d.items(), key=lambda x:x[0]))
            except Exception as exc:
                log.error('from_pickle() failed, {}'.format(exc))
        else:
            log.error('from_pickle() failed, file not exists: {}'.format(x))
        return d


    def _check_dest(self, d, x, fn):
        if not isinstance(d, dict):
            log.error('{}(d=) failed, dict expect, got {}'.format(
                fn, type(d).__name__))
            return False
        if not os.path.exists(os.path.dirname(os.path.abspath(x))):
            log.error('{}(x=) failed, dir not exists: {}'.format(fn, x))
            return False
        return True


    def to_json(self, d, x):
        """Writing data to JSON file"""
        if self._check_dest(d, x, 'to_json'):
            with open(x, 'wt') as w:
                json.dump(d, w, indent=4, sort_keys=True)


    def to_yaml(self, d, x):
        """Writing data to YAML file"""
        if self._check_dest(d, x, 'to_yaml'):
            try:
                with open(x, 'wt') as w:
                    yaml.dump(d, w)
            except yaml.YAMLError:
                log.warning('saving as YAML failed, use TOML instead')
                x_toml = os.path.splitext(x)[0] + '.toml'
                with open(x_toml, 'wt') as w:
                    toml.dump(d, w)


    def to_toml(self, d, x):
        """Writing data to TOML file"""
        if self._check_dest(d, x, 'to_toml'):
            with open(x, 'wt') as w:
                toml.dump(d, w)


    def to_pickle(self, d, x):
        """Writing data to pickle file"""
        if self._check_dest(d, x, 'to_pickle'):
            with open(x, 'wb') as w:
                pickle.dump(d, w, protocol=pickle.HIGHEST_PROTOCOL)

# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

import argparse
import logging
import re
import shlex
import subprocess
import sys
from typing import Dict, List, Optional

RET_SUCCESS = 0
RET_FAIL = 1

_HEX_U64_RE = re.compile(r'0x([0-9a-fA-F]{1,16})')


def setup_logging(verbose: bool) -> None:
    '''Set up the root logger for a command line entry point'''
    if verbose:
        logging.basicConfig(
            format="%(asctime)s %(filename)s:%(lineno)-5s %(levelname)-8s "
                   "%(message)s",
            datefmt='%a, %d %b %Y %H:%M:%S',
            level=logging.DEBUG)
    else:
        logging.basicConfig(format="%(asctime)s %(levelname)-8s %(message)s",
                            datefmt='%a, %d %b %Y %H:%M:%S',
                            level=logging.INFO)


def _open_dest(path: Optional[str]):
    if path is None:
        return None
    if path == '/dev/null':
        return subprocess.DEVNULL
    return open(path, 'wb')


def run_one(verbose: bool,
            cmd: List[str],
            redirect_stdout: Optional[str] = None,
            redirect_stderr: Optional[str] = None,
            env: Dict[str, str] = None) -> int:
    '''Run a command, returning its return code

    If verbose is true, print the command to stderr first (a bit like bash -x).

    If redirect_stdout or redirect_stderr is set, the corresponding stream of
    the subprocess is written to that path. If they are the same path, both
    streams go to one file.

    '''
    if verbose:
        # The equivalent of bash -x
        cmd_str = ' '.join(shlex.quote(w) for w in cmd)
        if redirect_stdout is not None:
            cmd_str += f' >{shlex.quote(redirect_stdout)}'
        if redirect_stderr is not None:
            if redirect_stderr == redirect_stdout:
                cmd_str += ' 2>&1'
            else:
                cmd_str += f' 2>{shlex.quote(redirect_stderr)}'

        print('+ ' + cmd_str, file=sys.stderr)

    stdout_dest = _open_dest(redirect_stdout)
    if redirect_stderr is not None and redirect_stderr == redirect_stdout:
        stderr_dest = stdout_dest
    else:
        stderr_dest = _open_dest(redirect_stderr)

    try:
        return subprocess.run(cmd,
                              stdout=stdout_dest,
                              stderr=stderr_dest,
                              env=env).returncode
    finally:
        if stdout_dest not in [None, subprocess.DEVNULL]:
            stdout_dest.close()
        if (stderr_dest is not stdout_dest and
                stderr_dest not in [None, subprocess.DEVNULL]):
            stderr_dest.close()


def read_hex_u64(arg: str) -> int:
    '''Read a "0x"-prefixed 64-bit hex value from the command line'''
    match = _HEX_U64_RE.fullmatch(arg)
    if match is None:
        raise argparse.ArgumentTypeError('Bad hex value ({}): should be of '
                                         'the form 0x1234 and fit in 64 bits.'
                                         .format(arg))

    return int(match.group(1), 16)

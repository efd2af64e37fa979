# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''Run Spike and boat on one ELF file, keeping their logs.'''

import logging
import os
import shutil
from typing import List

import pathlib3x as pathlib

from sail_difftest.scripts_lib import run_one

logger = logging.getLogger(__name__)

BOAT_EVENT_LOG = 'boat_trace_event.jsonl'


def find_tool(name: str, env_var: str) -> str:
    '''Locate a simulator executable

    If the environment variable env_var is set, it names the directory holding
    the executable (as with SPIKE_PATH for the Ibex flow). Otherwise, look it
    up on PATH.
    '''
    tool_dir = os.getenv(env_var)
    if tool_dir is not None:
        path = os.path.join(tool_dir, name)
        if not os.access(path, os.X_OK):
            raise RuntimeError(f'{name} exec not found: ${env_var} is set '
                               f'but {path} is not executable')
        return path

    path = shutil.which(name)
    if path is None:
        raise RuntimeError(f'{name} exec not found: set ${env_var} or add '
                           f'{name} to PATH')
    return path


def get_spike_cmd(spike: str, args: List[str], elf: pathlib.Path) -> List[str]:
    return [spike] + args + [str(elf)]


def get_boat_cmd(boat: str, args: List[str], elf: pathlib.Path,
                 event_log: pathlib.Path) -> List[str]:
    return ([boat, '-vvv',
             '--elf-path', str(elf),
             '--output-log-path', str(event_log)] +
            args)


def run_spike(verbose: bool, args: List[str], elf: pathlib.Path,
              run_dir: pathlib.Path) -> pathlib.Path:
    '''Run Spike on elf, returning the path to its commit log

    Spike writes its commit log to stderr, so that is what ends up in the log
    file. Anything the test prints on stdout goes to a separate file.
    '''
    spike = find_tool('spike', 'SPIKE_PATH')
    cmd = get_spike_cmd(spike, args, elf)

    commit_log = run_dir / 'spike.log'
    stdout_log = run_dir / 'spike.stdout'
    ret = run_one(verbose, cmd,
                  redirect_stdout=str(stdout_log),
                  redirect_stderr=str(commit_log))
    if ret != 0:
        raise RuntimeError(f"fail to execute '{spike}' with args "
                           f"{' '.join(args)} for elf {elf} "
                           f"(exit code {ret}, see {commit_log})")
    return commit_log


def run_boat(verbose: bool, args: List[str], elf: pathlib.Path,
             run_dir: pathlib.Path) -> pathlib.Path:
    '''Run boat on elf, returning the path to its JSON event log'''
    boat = find_tool('boat', 'BOAT_PATH')
    event_log = run_dir / BOAT_EVENT_LOG
    cmd = get_boat_cmd(boat, args, elf, event_log)

    stdout_log = run_dir / 'boat.log'
    ret = run_one(verbose, cmd,
                  redirect_stdout=str(stdout_log),
                  redirect_stderr=str(stdout_log))
    if ret != 0:
        raise RuntimeError(f'fail to execute boat with args {args} for elf '
                           f'{elf} (exit code {ret}, see {stdout_log})')
    if not event_log.exists():
        raise RuntimeError(f'boat exited successfully but did not write '
                           f'{event_log}')
    return event_log

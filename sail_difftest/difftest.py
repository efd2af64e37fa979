#!/usr/bin/env python3
# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''
Run Spike and boat on every ELF matched by the case config and compare their
traces.
'''

import argparse
import glob
import logging
import sys
from typing import List, Optional

import pathlib3x as pathlib

from sail_difftest.boat_log import process_boat_log
from sail_difftest.case_config import (CaseConfig, ConfigException,
                                       get_config_file_location,
                                       read_case_config)
from sail_difftest.compare import compare_traces
from sail_difftest.report import (CaseResult, dump_results_yaml, on_result,
                                  summary_line, summary_table)
from sail_difftest.run_sim import run_boat, run_spike
from sail_difftest.scripts_lib import RET_FAIL, setup_logging
from sail_difftest.spike_log import process_spike_log

logger = logging.getLogger(__name__)


def find_elfs(elf_path_glob: str) -> List[pathlib.Path]:
    '''Return the ELF files matched by elf_path_glob, in a stable order'''
    return [pathlib.Path(p)
            for p in sorted(glob.glob(elf_path_glob, recursive=True))
            if pathlib.Path(p).is_file()]


def get_run_dir(work_dir: pathlib.Path, elf: pathlib.Path) -> pathlib.Path:
    '''Pick (and create) the directory that holds the logs for one ELF'''
    run_dir = work_dir / elf.name
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def difftest_one(cfg: CaseConfig,
                 elf: pathlib.Path,
                 work_dir: pathlib.Path,
                 verbose: bool) -> CaseResult:
    '''Run both simulators on elf and compare the traces

    A divergence is reported through the verdict in the returned CaseResult.
    Problems running the simulators or parsing their logs raise a
    RuntimeError.
    '''
    run_dir = get_run_dir(work_dir, elf)
    kv_data = {'elf': str(elf)}

    spike_log_path = run_spike(verbose, cfg.spike_args, elf, run_dir)
    kv_data['spike log'] = str(spike_log_path)
    boat_log_path = run_boat(verbose, cfg.boat_args, elf, run_dir)
    kv_data['boat log'] = str(boat_log_path)

    spike_log = process_spike_log(str(spike_log_path))
    boat_log = process_boat_log(str(boat_log_path))
    verdict = compare_traces(spike_log, boat_log, cfg.end_pattern)

    result_file = run_dir / 'compare.log'
    kv_data['comparison log'] = str(result_file)
    with open(result_file, 'w', encoding='UTF-8') as outfile:
        on_result(verdict, kv_data, outfile)

    return CaseResult(str(elf), verdict, kv_data)


def run_difftest(cfg: CaseConfig,
                 work_dir: pathlib.Path,
                 verbose: bool) -> List[CaseResult]:
    elfs = find_elfs(cfg.elf_path_glob)
    if not elfs:
        raise RuntimeError(f'No ELF file matches {cfg.elf_path_glob!r}')

    results = []
    for elf in elfs:
        logger.info("running difftest for %s", elf)
        result = difftest_one(cfg, elf, work_dir, verbose)
        if result.verdict.passed:
            logger.info("difftest pass")
        else:
            logger.error("\n%s", result.verdict.diagnostic)
        results.append(result)

    return results


def write_report(results: List[CaseResult], path: str) -> None:
    '''Write every per-test result into a single report, failures first'''
    bad = [r for r in results if not r.verdict.passed]
    good = [r for r in results if r.verdict.passed]
    hr = '#' * 80
    with open(path, 'w', encoding='UTF-8') as outfile:
        print(summary_line(results), file=outfile)
        for title, group in [('Details of failing tests', bad),
                             ('Details of passing tests', good)]:
            if not group:
                continue
            print('\n\n' + hr + '\n# ' + title + '\n' + hr, file=outfile)
            for result in group:
                print('\n{}:'.format(result.elf), file=outfile)
                on_result(result.verdict, result.kv_data, outfile)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Differential test of boat against Spike')
    parser.add_argument('-c', '--config-path',
                        default=get_config_file_location(),
                        help='Case config file (hjson)')
    parser.add_argument('--work-dir', type=pathlib.Path,
                        default=pathlib.Path('./difftest_out'),
                        help='Directory for simulator logs')
    parser.add_argument('--output',
                        help='Write a report of every test here')
    parser.add_argument('--results-yaml',
                        help='Write the results in YAML form here')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose logging')
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    cfg = read_case_config(args.config_path)
    results = run_difftest(cfg, args.work_dir, args.verbose)

    msg = summary_line(results)
    logger.info("Summary:\n%s\n%s", summary_table(results), msg)

    if args.output is not None:
        write_report(results, args.output)
    if args.results_yaml is not None:
        dump_results_yaml(results, args.results_yaml)

    # Succeed if no tests failed
    return 0 if all(r.verdict.passed for r in results) else 1


def cli() -> None:
    try:
        sys.exit(main())
    except (RuntimeError, ConfigException) as err:
        sys.stderr.write('Error: {}\n'.format(err))
        sys.exit(RET_FAIL)


if __name__ == '__main__':
    cli()

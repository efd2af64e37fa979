# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''Write per-test result files and the summary of a difftest run.'''

from dataclasses import dataclass, field
from typing import Dict, List, TextIO

import yaml
from tabulate import tabulate

from sail_difftest.trace_events import DiffVerdict


@dataclass
class CaseResult:
    elf: str
    verdict: DiffVerdict
    kv_data: Dict[str, str] = field(default_factory=dict)


def on_result(verdict: DiffVerdict, kv_data: Dict[str, str],
              output: TextIO) -> None:
    if verdict.passed:
        output.write('PASS\n\n')
    else:
        output.write('FAIL\n\n')
        output.write('Test failed: spike and boat traces differ\n')
        output.write('---\n\n')
        output.write(verdict.diagnostic)
        if not verdict.diagnostic.endswith('\n'):
            output.write('\n')
        output.write('---\n\n')

    klen = 1
    for k in kv_data:
        klen = max(klen, len(k))

    for k, v in kv_data.items():
        kpad = ' ' * (klen - len(k))
        output.write(f'{k}:{kpad} | {v}\n')


def summary_line(results: List[CaseResult]) -> str:
    passed = sum(1 for r in results if r.verdict.passed)
    return '{} PASSED, {} FAILED'.format(passed, len(results) - passed)


def summary_table(results: List[CaseResult]) -> str:
    rows = [[r.elf, 'PASS' if r.verdict.passed else 'FAIL']
            for r in results]
    return tabulate(rows, headers=['ELF', 'Result'], tablefmt='psql')


def dump_results_yaml(results: List[CaseResult], path: str) -> None:
    '''Write the results of a run to path in YAML form'''
    data = {
        'summary': summary_line(results),
        'tests': [
            {
                'elf': r.elf,
                'passed': r.verdict.passed,
                'diagnostic': r.verdict.diagnostic,
                'logs': dict(r.kv_data),
            }
            for r in results
        ],
    }
    with open(path, 'w', encoding='UTF-8') as fd:
        yaml.safe_dump(data, fd, sort_keys=False)

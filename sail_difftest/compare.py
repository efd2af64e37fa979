#!/usr/bin/env python3
# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''
Compare a Spike commit trace with a boat event trace to make sure nothing has
diverged.

Spike runs its vendored boot ROM before jumping to the test, and there is no
way to turn that off. boat doesn't model the boot ROM at all: it logs a
reset_vector event and starts executing the test directly. So the comparison
only starts at the first Spike commit whose PC is boat's reset vector.

From there, every Spike commit that writes a register must have a matching
group of arch_state events in the boat trace at the same PC, and every write in
that group must appear among the writes Spike reports for the commit.
'''

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from sail_difftest.boat_log import process_boat_log
from sail_difftest.report import on_result
from sail_difftest.scripts_lib import RET_FAIL, read_hex_u64, setup_logging
from sail_difftest.spike_log import process_spike_log
from sail_difftest.trace_events import (ArchStateChange, DiffVerdict,
                                        EndPattern, ImplementationEvent,
                                        InstructionFetch, ReferenceEvent,
                                        ResetVector)

logger = logging.getLogger(__name__)


class DiffPreconditionError(RuntimeError):
    '''The two traces can't be compared at all'''
    pass


def find_reset_vector(boat_log: Sequence[ImplementationEvent]) -> int:
    '''Return the address of the single reset_vector event in boat_log'''
    vectors = [event.target_address
               for event in boat_log if isinstance(event, ResetVector)]
    if not vectors:
        raise DiffPreconditionError('reset_vector event not found in boat log')
    if len(vectors) > 1:
        raise DiffPreconditionError('Expected exactly one reset_vector event '
                                    f'in boat log, but found {len(vectors)}.')
    return vectors[0]


def find_sync_point(spike_log: Sequence[ReferenceEvent],
                    reset_vector: int) -> Optional[int]:
    '''Return the index of the first Spike commit at reset_vector'''
    for idx, event in enumerate(spike_log):
        if event.pc == reset_vector:
            return idx
    return None


def find_end_pc(spike_log: Sequence[ReferenceEvent],
                end_pattern: EndPattern) -> Optional[int]:
    '''Return the PC of the first Spike commit that performs end_pattern'''
    for event in spike_log:
        if any(end_pattern.matches(acc) for acc in event.memory_accesses):
            return event.pc
    return None


def next_retirement(boat_log: Sequence[ImplementationEvent],
                    cursor: int,
                    pc: int) -> Tuple[List[ArchStateChange], int]:
    '''Find the next group of boat register writes retired at pc

    The search starts at cursor. The group starts at the first arch_state
    event at pc and runs until an arch_state event at some other PC or the next
    instruction fetch. Returns the group together with the index just past its
    last member, or ([], cursor) if boat never retires anything at pc.
    '''
    idx = cursor
    while idx < len(boat_log):
        event = boat_log[idx]
        if isinstance(event, ArchStateChange) and event.pc == pc:
            break
        idx += 1
    else:
        return ([], cursor)

    group = [boat_log[idx]]
    end = idx + 1
    for idx in range(end, len(boat_log)):
        event = boat_log[idx]
        if isinstance(event, InstructionFetch):
            break
        if isinstance(event, ArchStateChange):
            if event.pc != pc:
                break
            group.append(event)
            end = idx + 1

    return (group, end)


def _missing_commit_diag(spike_event: ReferenceEvent) -> str:
    return (f'At PC=0x{spike_event.pc:016x} spike have following commit '
            'events that are not occur at boat side:\n'
            '\n'
            f'{spike_event}\n')


def _mismatch_diag(spike_event: ReferenceEvent,
                   boat_event: ArchStateChange) -> str:
    lines = [f'At PC=0x{boat_event.pc:016x} boat write '
             f'0x{boat_event.value:016x} to register x{boat_event.reg_idx},',
             'but this action was not found at spike side.']

    spike_write = spike_event.find_register_write(boat_event.reg_idx)
    if spike_write is not None:
        lines.append(f'Spike wrote 0x{spike_write.value:016x} to '
                     f'x{boat_event.reg_idx} ({spike_write.name}) instead.')

    lines += ['',
              '------------',
              '|Event Dump|',
              '------------',
              '',
              'We get boat:',
              str(boat_event),
              '',
              'But have spike:',
              str(spike_event),
              '']
    return '\n'.join(lines)


def compare_traces(spike_log: Sequence[ReferenceEvent],
                   boat_log: Sequence[ImplementationEvent],
                   end_pattern: Optional[EndPattern] = None) -> DiffVerdict:
    '''Compare a Spike trace against a boat trace

    Raises DiffPreconditionError if either trace is empty or if boat didn't log
    exactly one reset vector. Any divergence between the two is reported in the
    returned DiffVerdict instead.

    Only boat's writes are checked for a counterpart in Spike: if Spike reports
    several register writes for a commit and boat only shows some of them, the
    commit still matches.
    '''
    if not spike_log:
        raise DiffPreconditionError('Spike trace is empty')
    if not boat_log:
        raise DiffPreconditionError('boat trace is empty')

    reset_vector = find_reset_vector(boat_log)
    sync_idx = find_sync_point(spike_log, reset_vector)
    if sync_idx is None:
        return DiffVerdict.failure(
            f'sync point not found: reset vector 0x{reset_vector:016x} is '
            'never executed in the spike trace\n')
    logger.debug("Spike trace reaches reset vector 0x%016x at commit %d",
                 reset_vector, sync_idx)

    end_pc = None
    if end_pattern is not None:
        end_pc = find_end_pc(spike_log, end_pattern)
        if end_pc is None:
            return DiffVerdict.failure(
                'no end pattern found in reference trace: spike never writes '
                f'0x{end_pattern.data:016x} to '
                f'0x{end_pattern.memory_address:016x}\n')
        logger.debug("End pattern found at PC 0x%016x", end_pc)

    boat_cursor = 0
    compared = 0
    for spike_event in spike_log[sync_idx:]:
        if end_pc is not None and spike_event.pc == end_pc:
            break

        # Memory-only commits and commits with no visible effect
        if not spike_event.has_register_writes():
            continue

        group, boat_cursor = next_retirement(boat_log, boat_cursor,
                                             spike_event.pc)
        if not group:
            return DiffVerdict.failure(_missing_commit_diag(spike_event))

        for boat_event in group:
            if not any(write.matches(boat_event.reg_idx, boat_event.value)
                       for write in spike_event.register_writes):
                return DiffVerdict.failure(_mismatch_diag(spike_event,
                                                          boat_event))
        compared += 1

    logger.debug("Compared %d commits", compared)
    return DiffVerdict.success()


def compare_log_files(spike_log_path: str,
                      boat_log_path: str,
                      end_pattern: Optional[EndPattern] = None) -> DiffVerdict:
    '''Parse two saved logs and compare them'''
    spike_log = process_spike_log(spike_log_path)
    boat_log = process_boat_log(boat_log_path)
    return compare_traces(spike_log, boat_log, end_pattern)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Compare a saved Spike commit log with a boat event log')
    parser.add_argument('--spike-log', required=True,
                        help='Output of `spike --log-commits`')
    parser.add_argument('--boat-log', required=True,
                        help='JSON event log written by boat')
    parser.add_argument('--end-address', type=read_hex_u64,
                        help='Address of the store that ends the test')
    parser.add_argument('--end-data', type=read_hex_u64,
                        help='Data of the store that ends the test')
    parser.add_argument('--output',
                        help='Write a result file here as well')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose logging')
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if (args.end_address is None) != (args.end_data is None):
        parser.error('--end-address and --end-data must be given together')

    end_pattern = None
    if args.end_address is not None:
        end_pattern = EndPattern(args.end_address, args.end_data)

    verdict = compare_log_files(args.spike_log, args.boat_log, end_pattern)
    kv_data = {
        'spike log': args.spike_log,
        'boat log': args.boat_log,
    }
    if verdict.passed:
        logger.info("difftest pass")
    else:
        logger.error("\n%s", verdict.diagnostic)

    if args.output is not None:
        with open(args.output, 'w', encoding='UTF-8') as outfile:
            on_result(verdict, kv_data, outfile)

    return 0 if verdict.passed else 1


def cli() -> None:
    try:
        sys.exit(main())
    except RuntimeError as err:
        sys.stderr.write('Error: {}\n'.format(err))
        sys.exit(RET_FAIL)


if __name__ == '__main__':
    cli()

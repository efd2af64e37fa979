# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''
Parse the JSON event log written by boat (`--output-log-path`).

Every line is one JSON object of the form {"fields": {"event_type": ..., ...}}.
The log is machine-generated, so anything unexpected (an unknown event type, a
missing or mistyped field) is treated as a bug in boat and aborts parsing.
'''

import json
import logging
from typing import Callable, Dict, List, Mapping

from sail_difftest.trace_events import (ArchStateChange, ImplementationEvent,
                                        InstructionFetch, LogParseError,
                                        PhysicalMemoryAccess, ResetVector)

logger = logging.getLogger(__name__)


class _DecodeError(Exception):
    pass


def _get_str(fields: Mapping[str, object], key: str) -> str:
    if key not in fields:
        raise _DecodeError(f'missing field `{key}`')
    value = fields[key]
    if not isinstance(value, str):
        raise _DecodeError(f'invalid type for `{key}`: expected a string, '
                           f'got {value!r}')
    return value


def _get_uint(fields: Mapping[str, object], key: str, width: int) -> int:
    if key not in fields:
        raise _DecodeError(f'missing field `{key}`')
    value = fields[key]
    # bool is a subclass of int, but true/false is never a valid number here.
    if isinstance(value, bool) or not isinstance(value, int):
        raise _DecodeError(f'invalid type for `{key}`: expected u{width}, '
                           f'got {value!r}')
    if not 0 <= value < (1 << width):
        raise _DecodeError(f'invalid value for `{key}`: {value} does not fit '
                           f'in u{width}')
    return value


def _decode_physical_memory(fields: Mapping[str, object]) -> ImplementationEvent:
    return PhysicalMemoryAccess(_get_str(fields, 'action'),
                                _get_uint(fields, 'bytes', 8),
                                _get_uint(fields, 'address', 64))


def _decode_arch_state(fields: Mapping[str, object]) -> ImplementationEvent:
    return ArchStateChange(_get_str(fields, 'action'),
                           _get_uint(fields, 'pc', 64),
                           _get_uint(fields, 'reg_idx', 8),
                           _get_uint(fields, 'data', 64))


def _decode_instruction_fetch(fields: Mapping[str, object]) -> ImplementationEvent:
    return InstructionFetch(_get_uint(fields, 'data', 32))


def _decode_reset_vector(fields: Mapping[str, object]) -> ImplementationEvent:
    return ResetVector(_get_uint(fields, 'new_addr', 64))


_DECODERS: Dict[str, Callable[[Mapping[str, object]], ImplementationEvent]] = {
    'physical_memory': _decode_physical_memory,
    'arch_state': _decode_arch_state,
    'instruction_fetch': _decode_instruction_fetch,
    'reset_vector': _decode_reset_vector,
}


def decode_boat_event(raw: object) -> ImplementationEvent:
    '''Decode one already-loaded JSON log object into an event'''
    if not isinstance(raw, dict):
        raise _DecodeError(f'expected a JSON object, got {raw!r}')
    fields = raw.get('fields')
    if not isinstance(fields, dict):
        raise _DecodeError('missing or invalid `fields` object')

    event_type = _get_str(fields, 'event_type')
    decoder = _DECODERS.get(event_type)
    if decoder is None:
        raise _DecodeError(f'unknown variant `{event_type}`, expected one of '
                           + ', '.join(f'`{k}`' for k in _DECODERS))
    return decoder(fields)


def parse_boat_line(line: str, line_number: int = 1) -> ImplementationEvent:
    try:
        return decode_boat_event(json.loads(line))
    except (json.JSONDecodeError, _DecodeError) as err:
        raise LogParseError(line_number, line,
                            f'fail parsing boat log: {err}') from None


def parse_boat_log(text: str) -> List[ImplementationEvent]:
    '''Parse a whole boat event log (one JSON object per line)

    Blank lines are skipped; any other line that fails to decode raises a
    LogParseError naming the line.'''
    events = []
    # Only \n ends a line: JSON strings may hold U+2028 and friends unescaped
    for line_number, line in enumerate(text.split('\n'), start=1):
        line = line.rstrip('\r')
        if not line.strip():
            continue
        events.append(parse_boat_line(line, line_number))
    return events


def process_boat_log(boat_log: str) -> List[ImplementationEvent]:
    '''Read and parse the boat event log stored at boat_log'''
    logger.info("Processing boat log : %s", boat_log)
    with open(boat_log, 'r', encoding='UTF-8', errors='replace') as fd:
        events = parse_boat_log(fd.read())
    logger.info("Processed event count : %d", len(events))
    return events

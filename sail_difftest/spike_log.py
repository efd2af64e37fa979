# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''
Parse the output of `spike --log-commits` into ReferenceEvent objects.

Each commit line has the form

  core   0: 3 0x0000000080000000 (0x00000297) x5  0x0000000080000000

that is: an optional literal "core", the core id with a trailing colon, the
privilege level, the PC, the instruction word in parentheses and then zero or
more "<reg> <value>" pairs. Spike also appends memory annotations ("mem ADDR"
for a load and "mem ADDR DATA" for a store). Those are never taken for
register writes: they are recorded separately so that the end of a test can be
located by its final store.
'''

import enum
import logging
import re
from typing import List

from sail_difftest.trace_events import (LogParseError, MemoryAccess,
                                        ReferenceEvent, RegisterWrite)

logger = logging.getLogger(__name__)

_DEC_RE = re.compile(r'[0-9]+')
_HEX_RE = re.compile(r'[0-9a-fA-F]+')


class _TokenError(Exception):
    def __init__(self, expect: str, actual: str, cause: str):
        super().__init__(f"expected {expect}, got '{actual}': {cause}")


class _Cursor(enum.Enum):
    CORE = enum.auto()
    PRIV = enum.auto()
    PC = enum.auto()
    INSN = enum.auto()
    REG_BEGIN = enum.auto()
    REG_VALUE = enum.auto()
    MEM_ADDR = enum.auto()
    MEM_DATA = enum.auto()


def _parse_uint(text: str, width: int, radix: int, what: str,
                token: str) -> int:
    pattern = _DEC_RE if radix == 10 else _HEX_RE
    if pattern.fullmatch(text) is None:
        raise _TokenError(f'u{width} value {what}', token,
                          f'invalid digit in {text!r}')
    value = int(text, radix)
    if value >= 1 << width:
        raise _TokenError(f'u{width} value {what}', token,
                          f'number too large to fit in {width} bits')
    return value


def _is_hex_u64(token: str) -> bool:
    return (token.startswith('0x') and
            _HEX_RE.fullmatch(token[2:]) is not None and
            len(token[2:].lstrip('0')) <= 16)


class _LineParser:
    '''Walk the tokens of one commit line, building up a ReferenceEvent'''

    def __init__(self) -> None:
        self.cursor = _Cursor.CORE
        self.core_id = 0
        self.privilege = 0
        self.pc = 0
        self.instruction = 0
        self.reg_name = ''
        self.mem_addr = 0
        self.reg_writes: List[RegisterWrite] = []
        self.mem_accesses: List[MemoryAccess] = []

    def feed(self, token: str) -> None:
        if self.cursor == _Cursor.CORE:
            if token == 'core':
                return
            # The core id always comes with a trailing ':'
            if not token.endswith(':'):
                raise _TokenError("':' suffixed string", token,
                                  "core_id not colon-suffixed")
            self.core_id = _parse_uint(token[:-1], 8, 10, 'core_id', token)
            self.cursor = _Cursor.PRIV

        elif self.cursor == _Cursor.PRIV:
            self.privilege = _parse_uint(token, 8, 10, 'priv_id', token)
            self.cursor = _Cursor.PC

        elif self.cursor == _Cursor.PC:
            if not token.startswith('0x'):
                raise _TokenError('hex string', token,
                                  "pc value not prefixed with '0x'")
            self.pc = _parse_uint(token[2:], 64, 16, 'pc', token)
            self.cursor = _Cursor.INSN

        elif self.cursor == _Cursor.INSN:
            if not token.startswith('(0x'):
                raise _TokenError('parentheses surrounding hex string', token,
                                  "instruction not started with '(0x'")
            if not token.endswith(')'):
                raise _TokenError('parentheses surrounding hex string', token,
                                  "instruction not ends with ')'")
            self.instruction = _parse_uint(token[3:-1], 32, 16,
                                           'instruction', token)
            self.cursor = _Cursor.REG_BEGIN

        elif self.cursor == _Cursor.REG_VALUE:
            if not token.startswith('0x'):
                raise _TokenError('hex string', token,
                                  f"value of {self.reg_name} not prefixed "
                                  "with '0x'")
            value = _parse_uint(token[2:], 64, 16, 'register_value', token)
            self.reg_writes.append(RegisterWrite(self.reg_name, value))
            self.cursor = _Cursor.REG_BEGIN

        elif self.cursor == _Cursor.MEM_ADDR:
            if _is_hex_u64(token):
                self.mem_addr = int(token[2:], 16)
                self.cursor = _Cursor.MEM_DATA
            else:
                # A "mem" with no usable address: drop it.
                self.cursor = _Cursor.REG_BEGIN
                self._feed_reg_begin(token)

        elif self.cursor == _Cursor.MEM_DATA:
            if _is_hex_u64(token):
                self.mem_accesses.append(MemoryAccess(self.mem_addr,
                                                      int(token[2:], 16)))
                self.cursor = _Cursor.REG_BEGIN
            else:
                self.mem_accesses.append(MemoryAccess(self.mem_addr))
                self.cursor = _Cursor.REG_BEGIN
                self._feed_reg_begin(token)

        else:
            self._feed_reg_begin(token)

    def _feed_reg_begin(self, token: str) -> None:
        if token == 'mem':
            self.cursor = _Cursor.MEM_ADDR
        elif token.startswith('0x'):
            # Stray value with no register name in front of it
            pass
        else:
            self.reg_name = token
            self.cursor = _Cursor.REG_VALUE

    def finish(self) -> ReferenceEvent:
        if self.cursor in [_Cursor.CORE, _Cursor.PRIV, _Cursor.PC,
                           _Cursor.INSN]:
            expect = {
                _Cursor.CORE: "':' suffixed core_id",
                _Cursor.PRIV: 'u8 value priv_id',
                _Cursor.PC: 'hex string pc',
                _Cursor.INSN: 'parentheses surrounding hex string',
            }[self.cursor]
            raise _TokenError(expect, '', 'got end of line')
        if self.cursor == _Cursor.REG_VALUE:
            raise _TokenError('hex string', '',
                              f'got end of line after register '
                              f'{self.reg_name}')
        if self.cursor == _Cursor.MEM_DATA:
            self.mem_accesses.append(MemoryAccess(self.mem_addr))

        return ReferenceEvent(self.core_id, self.privilege, self.pc,
                              self.instruction, tuple(self.reg_writes),
                              tuple(self.mem_accesses))


def parse_spike_line(line: str, line_number: int = 1) -> ReferenceEvent:
    '''Parse a single commit line, raising LogParseError on bad input'''
    parser = _LineParser()
    try:
        for token in line.split():
            parser.feed(token)
        return parser.finish()
    except _TokenError as err:
        raise LogParseError(line_number, line, str(err)) from None


def parse_spike_log(text: str) -> List[ReferenceEvent]:
    '''Parse the whole of a Spike commit log

    Blank lines are skipped. Any other line that doesn't parse aborts the
    whole log with a LogParseError.'''
    events = []
    for line_number, line in enumerate(text.split('\n'), start=1):
        line = line.rstrip('\r')
        if not line.strip():
            continue
        events.append(parse_spike_line(line, line_number))
    return events


def process_spike_log(spike_log: str) -> List[ReferenceEvent]:
    '''Read and parse a Spike commit log stored at spike_log'''
    logger.info("Processing spike log : %s", spike_log)
    with open(spike_log, 'r', encoding='UTF-8', errors='replace') as fd:
        events = parse_spike_log(fd.read())
    logger.info("Processed commit count : %d", len(events))
    return events

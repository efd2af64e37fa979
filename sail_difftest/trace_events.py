# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''
Event types shared by the Spike and boat log parsers and the trace comparison.

Spike produces ReferenceEvent objects (one per commit line). boat produces one
of PhysicalMemoryAccess, ArchStateChange, InstructionFetch or ResetVector per
line of its JSON event log.
'''

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

GPR_NAMES = ["zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2", "s0", "s1",
             "a0", "a1", "a2", "a3", "a4", "a5", "a6", "a7",
             "s2", "s3", "s4", "s5", "s6", "s7", "s8", "s9", "s10", "s11",
             "t3", "t4", "t5", "t6"]

_ABI_TO_XREG: Dict[str, str] = {name: f'x{idx}'
                                for idx, name in enumerate(GPR_NAMES)}
_ABI_TO_XREG['fp'] = 'x8'


def canonical_reg_name(name: str) -> str:
    '''Map an ABI register name (a0, sp, ...) to its xN form

    Names that are not general purpose registers (CSRs, FP registers, xN
    itself) are returned unchanged.'''
    return _ABI_TO_XREG.get(name, name)


@dataclass(frozen=True)
class RegisterWrite:
    name: str
    value: int

    def matches(self, reg_idx: int, value: int) -> bool:
        return (canonical_reg_name(self.name) == f'x{reg_idx}' and
                self.value == value)


@dataclass(frozen=True)
class MemoryAccess:
    '''A "mem" annotation on a Spike commit line

    Spike prints loads as "mem ADDR" and stores as "mem ADDR DATA", so data is
    only set for writes.'''
    address: int
    data: Optional[int] = None

    @property
    def is_write(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class ReferenceEvent:
    core_id: int
    privilege: int
    pc: int
    instruction: int
    register_writes: Tuple[RegisterWrite, ...] = ()
    memory_accesses: Tuple[MemoryAccess, ...] = ()

    def has_register_writes(self) -> bool:
        return bool(self.register_writes)

    def memory_writes(self) -> Tuple[MemoryAccess, ...]:
        return tuple(acc for acc in self.memory_accesses if acc.is_write)

    def find_register_write(self, reg_idx: int) -> Optional[RegisterWrite]:
        '''Return the first write Spike reports for xN, if any'''
        for write in self.register_writes:
            if canonical_reg_name(write.name) == f'x{reg_idx}':
                return write
        return None

    def __str__(self) -> str:
        # Same layout as a line of `spike --log-commits`
        parts = [f'core {self.core_id:3}: {self.privilege}',
                 f'0x{self.pc:016x}',
                 f'(0x{self.instruction:08x})']
        for write in self.register_writes:
            parts.append(f'{write.name} 0x{write.value:016x}')
        for acc in self.memory_accesses:
            if acc.is_write:
                parts.append(f'mem 0x{acc.address:016x} 0x{acc.data:016x}')
            else:
                parts.append(f'mem 0x{acc.address:016x}')
        return ' '.join(parts)


@dataclass(frozen=True)
class PhysicalMemoryAccess:
    action: str
    width_bytes: int
    address: int


@dataclass(frozen=True)
class ArchStateChange:
    action: str
    pc: int
    reg_idx: int
    value: int

    def __str__(self) -> str:
        return (f'PC=0x{self.pc:016x} {self.action} to register '
                f'[x{self.reg_idx}] with [0x{self.value:016x}]')


@dataclass(frozen=True)
class InstructionFetch:
    raw_word: int


@dataclass(frozen=True)
class ResetVector:
    target_address: int


ImplementationEvent = Union[PhysicalMemoryAccess, ArchStateChange,
                            InstructionFetch, ResetVector]


class LogParseError(RuntimeError):
    '''A log line didn't match the expected format

    This means the simulator (or its log format) is broken, so it isn't
    something we try to recover from.'''
    def __init__(self, line_number: int, line: str, msg: str):
        super().__init__(f'line {line_number}: {msg}. '
                         f'Original line: {line!r}')
        self.line_number = line_number
        self.line = line


def _hex_to_u64(key: str, text: object) -> int:
    if not isinstance(text, str) or not text.startswith('0x'):
        raise ValueError(f'{key} must be a hex string with a "0x" prefix, '
                         f'got {text!r}')
    try:
        value = int(text[2:], 16)
    except ValueError as err:
        raise ValueError(f'cannot convert {key} value {text!r} to u64: '
                         f'{err}') from None
    if value >= 1 << 64:
        raise ValueError(f'{key} value {text!r} does not fit in 64 bits')
    return value


@dataclass(frozen=True)
class EndPattern:
    '''The memory write that marks the end of a test in the Spike trace'''
    memory_address: int
    data: int
    action: str = 'write'

    @staticmethod
    def from_dict(raw: Dict[str, object]) -> 'EndPattern':
        '''Build an EndPattern from its config form

        memory_address and data are hex strings with a "0x" prefix. Raises
        ValueError if anything is missing or malformed.'''
        action = raw.get('action', 'write')
        if action != 'write':
            raise ValueError(f'unsupported end pattern action {action!r} '
                             '(only "write" is supported)')
        for key in ['memory_address', 'data']:
            if key not in raw:
                raise ValueError(f'end pattern is missing {key!r}')

        return EndPattern(_hex_to_u64('memory_address', raw['memory_address']),
                          _hex_to_u64('data', raw['data']),
                          action)

    def matches(self, access: MemoryAccess) -> bool:
        return (access.is_write and
                access.address == self.memory_address and
                access.data == self.data)


@dataclass(frozen=True)
class DiffVerdict:
    passed: bool
    diagnostic: str = ''

    @staticmethod
    def success() -> 'DiffVerdict':
        return DiffVerdict(True, '')

    @staticmethod
    def failure(diagnostic: str) -> 'DiffVerdict':
        return DiffVerdict(False, diagnostic)

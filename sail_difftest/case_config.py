# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

'''
Read the difftest case configuration.

The file is hjson (so plain JSON works too) and looks like:

  {
    elf_path_glob: "./tests/*.elf",
    boat_args: [],
    spike_args: ["--isa=rv64gc", "--log-commits"],
    end_pattern: {
      action: "write",
      memory_address: "0x80001000",
      data: "0x1"
    }
  }

end_pattern is optional. Without it the whole Spike trace is compared.
'''

import collections.abc
import os
from dataclasses import dataclass, field
from typing import List, Optional, TextIO

import hjson

from sail_difftest.trace_events import EndPattern

DEFAULT_CONFIG_FILE = './sail_difftest_config.json'


class ConfigException(Exception):
    pass


@dataclass
class CaseConfig:
    elf_path_glob: str
    boat_args: List[str] = field(default_factory=list)
    spike_args: List[str] = field(default_factory=list)
    end_pattern: Optional[EndPattern] = None


def _verify_str_list(config_dict, key: str) -> List[str]:
    value = config_dict.get(key, [])
    if not isinstance(value, list) or \
       not all(isinstance(arg, str) for arg in value):
        raise ConfigException('Parameter ' + key +
                              ' must be a list of strings, got ' + repr(value))
    return list(value)


def verify_config(config_dict) -> CaseConfig:
    """Check config_dict matches expectations and convert it to a CaseConfig:
        - It's a mapping object e.g. OrderedDict
        - elf_path_glob is a string
        - boat_args and spike_args are lists of strings
        - end_pattern, if present, is a valid EndPattern"""
    if not isinstance(config_dict, collections.abc.Mapping):
        raise ConfigException('Config must be a dictionary of parameters')

    elf_path_glob = config_dict.get('elf_path_glob')
    if not isinstance(elf_path_glob, str) or not elf_path_glob:
        raise ConfigException('Parameter elf_path_glob must be a non-empty '
                              'string, got ' + repr(elf_path_glob))

    end_pattern = None
    raw_end_pattern = config_dict.get('end_pattern')
    if raw_end_pattern is not None:
        if not isinstance(raw_end_pattern, collections.abc.Mapping):
            raise ConfigException('Parameter end_pattern must be a '
                                  'dictionary, got ' + repr(raw_end_pattern))
        try:
            end_pattern = EndPattern.from_dict(raw_end_pattern)
        except ValueError as e:
            raise ConfigException('Invalid end_pattern: ' + str(e))

    return CaseConfig(elf_path_glob,
                      _verify_str_list(config_dict, 'boat_args'),
                      _verify_str_list(config_dict, 'spike_args'),
                      end_pattern)


def get_case_config(config_file: TextIO) -> CaseConfig:
    """From an open file config_file read the case configuration

    Throws ConfigException on any error"""
    try:
        config_hjson = hjson.load(config_file)
    except hjson.HjsonDecodeError as e:
        raise ConfigException('Could not decode hjson ' + str(e))

    return verify_config(config_hjson)


def read_case_config(path: str) -> CaseConfig:
    try:
        with open(path, 'r', encoding='UTF-8') as config_file:
            return get_case_config(config_file)
    except OSError as e:
        raise ConfigException(f'fail to read sail difftest config {path}: {e}')


def get_config_file_location() -> str:
    """Returns the location of the config file, SAIL_DIFFTEST_CONFIG
    environment variable overrides the default"""

    if 'SAIL_DIFFTEST_CONFIG' in os.environ:
        return os.environ['SAIL_DIFFTEST_CONFIG']

    return DEFAULT_CONFIG_FILE

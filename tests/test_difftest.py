# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

import pytest
import yaml

from sail_difftest import difftest
from sail_difftest.case_config import CaseConfig

SPIKE_LOG = """\
core   0: 3 0x0000000000001000 (0x00000297) x5  0x0000000000001000
core   0: 3 0x0000000000001004 (0x02028593) x11 0x0000000000001020
core   0: 3 0x0000000080000000 (0x00100513) x10 0x0000000000000001
core   0: 3 0x0000000080000004 (0x00a50593) x11 0x0000000000000002
"""


def boat_log(last_value):
    return "\n".join([
        '{"fields":{"event_type":"reset_vector","new_addr":2147483648}}',
        '{"fields":{"event_type":"instruction_fetch","data":1050899}}',
        '{"fields":{"event_type":"arch_state","action":"write",'
        '"pc":2147483648,"reg_idx":10,"data":1}}',
        '{"fields":{"event_type":"instruction_fetch","data":10814867}}',
        '{"fields":{"event_type":"arch_state","action":"write",'
        f'"pc":2147483652,"reg_idx":11,"data":{last_value}}}}}',
    ]) + "\n"


@pytest.fixture
def fake_sims(monkeypatch):
    '''Replace the simulators with functions that drop canned logs'''
    def fake_spike(verbose, args, elf, run_dir):
        log = run_dir / "spike.log"
        log.write_text(SPIKE_LOG)
        return log

    def fake_boat(verbose, args, elf, run_dir):
        log = run_dir / "boat_trace_event.jsonl"
        log.write_text(boat_log(3 if elf.name.startswith("bad") else 2))
        return log

    monkeypatch.setattr(difftest, "run_spike", fake_spike)
    monkeypatch.setattr(difftest, "run_boat", fake_boat)


def make_case(tmp_path, *elf_names):
    elf_dir = tmp_path / "elfs"
    elf_dir.mkdir()
    for name in elf_names:
        (elf_dir / name).write_bytes(b"\x7fELF")
    config = tmp_path / "sail_difftest_config.json"
    config.write_text('{"elf_path_glob": "%s/*.elf",'
                      ' "spike_args": ["--log-commits"]}' % elf_dir)
    return config


class TestDifftest:
    def test_find_elfs(self, tmp_path) -> None:
        (tmp_path / "sub").mkdir()
        (tmp_path / "b.elf").write_bytes(b"")
        (tmp_path / "a.elf").write_bytes(b"")
        (tmp_path / "sub" / "c.elf").write_bytes(b"")
        (tmp_path / "dir.elf").mkdir()
        found = difftest.find_elfs(f"{tmp_path}/**/*.elf")
        assert [p.name for p in found] == ["a.elf", "b.elf", "c.elf"]

    def test_all_pass(self, tmp_path, fake_sims) -> None:
        config = make_case(tmp_path, "add.elf", "sub.elf")
        results_yaml = tmp_path / "results.yaml"
        report = tmp_path / "report.txt"
        assert difftest.main(["-c", str(config),
                              "--work-dir", str(tmp_path / "out"),
                              "--output", str(report),
                              "--results-yaml", str(results_yaml)]) == 0

        data = yaml.safe_load(results_yaml.read_text())
        assert data["summary"] == "2 PASSED, 0 FAILED"
        assert report.read_text().startswith("2 PASSED, 0 FAILED\n")
        compare_log = tmp_path / "out" / "add.elf" / "compare.log"
        assert compare_log.read_text().startswith("PASS\n")

    def test_failure(self, tmp_path, fake_sims) -> None:
        config = make_case(tmp_path, "add.elf", "bad.elf")
        report = tmp_path / "report.txt"
        assert difftest.main(["-c", str(config),
                              "--work-dir", str(tmp_path / "out"),
                              "--output", str(report)]) == 1

        text = report.read_text()
        assert text.startswith("1 PASSED, 1 FAILED\n")
        # Failures are listed first
        assert text.index("bad.elf:") < text.index("add.elf:")
        assert "At PC=0x0000000080000004" in text
        bad_log = tmp_path / "out" / "bad.elf" / "compare.log"
        assert bad_log.read_text().startswith("FAIL\n")

    def test_no_matching_elf(self, tmp_path, fake_sims) -> None:
        cfg = CaseConfig(f"{tmp_path}/*.elf")
        with pytest.raises(RuntimeError, match="No ELF file matches"):
            difftest.run_difftest(cfg, tmp_path, False)

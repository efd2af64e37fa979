# Copyright lowRISC contributors.
# Licensed under the Apache License, Version 2.0, see LICENSE for details.
# SPDX-License-Identifier: Apache-2.0

import argparse
import os
import stat
import sys

import pathlib3x as pathlib
import pytest

from sail_difftest import run_sim
from sail_difftest.scripts_lib import read_hex_u64, run_one


def _make_exe(path: pathlib.Path) -> None:
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)


class TestScriptsLib:
    @pytest.mark.parametrize("arg, value", [
        ("0x80001000", 0x8000_1000),
        ("0xDEADbeef", 0xDEAD_BEEF),
        ("0xffffffffffffffff", (1 << 64) - 1),
    ])
    def test_read_hex_u64(self, arg, value) -> None:
        assert read_hex_u64(arg) == value

    @pytest.mark.parametrize("arg", ["80001000", "0x", "0xzz", "0x12\n",
                                     "0x10000000000000000"])
    def test_read_hex_u64_bad(self, arg) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            read_hex_u64(arg)

    def test_run_one_split_streams(self, tmp_path) -> None:
        out = tmp_path / "out.txt"
        err = tmp_path / "err.txt"
        cmd = [sys.executable, "-c",
               "import sys; print('to stdout'); "
               "print('to stderr', file=sys.stderr); sys.exit(3)"]
        assert run_one(False, cmd, redirect_stdout=str(out),
                       redirect_stderr=str(err)) == 3
        assert out.read_text().strip() == "to stdout"
        assert err.read_text().strip() == "to stderr"

    def test_run_one_shared_file(self, tmp_path, capsys) -> None:
        log = tmp_path / "both.txt"
        cmd = [sys.executable, "-c",
               "import sys; print('a', flush=True); "
               "print('b', file=sys.stderr)"]
        assert run_one(True, cmd, redirect_stdout=str(log),
                       redirect_stderr=str(log)) == 0
        assert sorted(log.read_text().split()) == ["a", "b"]
        assert "2>&1" in capsys.readouterr().err


class TestFindTool:
    def test_env_var(self, tmp_path, monkeypatch) -> None:
        _make_exe(tmp_path / "spike")
        monkeypatch.setenv("SPIKE_PATH", str(tmp_path))
        assert run_sim.find_tool("spike", "SPIKE_PATH") == \
            os.path.join(str(tmp_path), "spike")

    def test_env_var_without_exe(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("SPIKE_PATH", str(tmp_path))
        with pytest.raises(RuntimeError, match="not executable"):
            run_sim.find_tool("spike", "SPIKE_PATH")

    def test_not_on_path(self, monkeypatch) -> None:
        monkeypatch.delenv("BOAT_PATH", raising=False)
        monkeypatch.setattr(run_sim.shutil, "which", lambda name: None)
        with pytest.raises(RuntimeError, match="boat exec not found"):
            run_sim.find_tool("boat", "BOAT_PATH")


class TestRunSim:
    def test_boat_cmd(self) -> None:
        cmd = run_sim.get_boat_cmd("boat", ["--max-same-instruction", "10"],
                                   pathlib.Path("t.elf"),
                                   pathlib.Path("out/boat_trace_event.jsonl"))
        assert cmd == ["boat", "-vvv", "--elf-path", "t.elf",
                       "--output-log-path", "out/boat_trace_event.jsonl",
                       "--max-same-instruction", "10"]

    def test_spike_cmd(self) -> None:
        assert run_sim.get_spike_cmd("spike", ["--log-commits"],
                                     pathlib.Path("t.elf")) == \
            ["spike", "--log-commits", "t.elf"]

    def test_run_spike(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(run_sim, "find_tool", lambda name, var: name)
        calls = []

        def fake_run_one(verbose, cmd, redirect_stdout=None,
                         redirect_stderr=None):
            calls.append((cmd, redirect_stdout, redirect_stderr))
            return 0

        monkeypatch.setattr(run_sim, "run_one", fake_run_one)
        log = run_sim.run_spike(False, ["--log-commits"],
                                pathlib.Path("t.elf"), tmp_path)
        assert log == tmp_path / "spike.log"
        assert calls == [(["spike", "--log-commits", "t.elf"],
                          str(tmp_path / "spike.stdout"),
                          str(tmp_path / "spike.log"))]

    def test_run_spike_failure(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(run_sim, "find_tool", lambda name, var: name)
        monkeypatch.setattr(run_sim, "run_one", lambda *args, **kwargs: 1)
        with pytest.raises(RuntimeError, match="exit code 1"):
            run_sim.run_spike(False, [], pathlib.Path("t.elf"), tmp_path)

    def test_run_boat_without_event_log(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(run_sim, "find_tool", lambda name, var: name)
        monkeypatch.setattr(run_sim, "run_one", lambda *args, **kwargs: 0)
        with pytest.raises(RuntimeError, match="did not write"):
            run_sim.run_boat(False, [], pathlib.Path("t.elf"), tmp_path)

    def test_run_boat(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(run_sim, "find_tool", lambda name, var: name)

        def fake_run_one(verbose, cmd, redirect_stdout=None,
                         redirect_stderr=None):
            pathlib.Path(cmd[cmd.index("--output-log-path") + 1]).write_text(
                "{}\n")
            return 0

        monkeypatch.setattr(run_sim, "run_one", fake_run_one)
        log = run_sim.run_boat(False, [], pathlib.Path("t.elf"), tmp_path)
        assert log == tmp_path / run_sim.BOAT_EVENT_LOG
        assert log.exists()

"""Tests for the client launcher command lines."""
from __future__ import annotations

import sys
from pathlib import Path

from run_smpc_protocol import ClientLauncher


def test_build_command(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    launcher = ClientLauncher(2, 3, "toy", 21000, "data", hosts=["h0", "h1", "h2"], timeout=5)
    assert launcher.build_command(1) == [
        sys.executable, "protocol.py", "1", "3", "toy", "21000",
        "--data-root", "data", "--hosts", "h0", "h1", "h2", "--timeout", "5",
    ]
    assert (tmp_path / "logs").is_dir()

"""Tests for field parameter loading."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from config import default_engine_hosts, get_prep_dir, load_field_params
from engine_sim import TEST_MODULUS


def test_get_prep_dir_layout() -> None:
    assert get_prep_dir(3) == os.path.join("Player-Data", "3-128-128") + os.sep


def test_load_field_params(tmp_path: Path) -> None:
    (tmp_path / "Params-Data").write_text(f"{TEST_MODULUS}\n40\n")
    params = load_field_params(str(tmp_path))
    assert params.modulus == TEST_MODULUS
    assert params.gf2n_degree == 40


def test_load_field_params_missing_or_malformed(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_field_params(str(tmp_path))

    (tmp_path / "Params-Data").write_text("not-a-prime 40\n")
    with pytest.raises(ValueError):
        load_field_params(str(tmp_path))

    (tmp_path / "Params-Data").write_text("2 40\n")
    with pytest.raises(ValueError):
        load_field_params(str(tmp_path))


def test_default_engine_hosts() -> None:
    assert default_engine_hosts(3) == ["127.0.0.1"] * 3

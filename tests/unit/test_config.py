"""Tests for configuration helpers."""

from pathlib import Path

import pytest

from prose_vcs import config
from prose_vcs.config import DATA_DIR_ENV_VAR, resolve_data_directory


def test_env_var_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DATA_DIR_ENV_VAR, str(tmp_path / "custom"))
    assert resolve_data_directory() == tmp_path / "custom"


def test_first_existing_candidate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    first, second = tmp_path / "first", tmp_path / "second"
    second.mkdir()
    monkeypatch.delenv(DATA_DIR_ENV_VAR, raising=False)
    monkeypatch.setattr(config, "DATA_DIRECTORIES", [first, second])
    assert resolve_data_directory() == second


def test_falls_back_to_first_candidate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    first, second = tmp_path / "first", tmp_path / "second"
    monkeypatch.delenv(DATA_DIR_ENV_VAR, raising=False)
    monkeypatch.setattr(config, "DATA_DIRECTORIES", [first, second])
    assert resolve_data_directory() == first

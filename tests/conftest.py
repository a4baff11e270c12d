"""Shared fixtures: content trees built in a temporary site root."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from quire.core.config import QuireConfig
from tests.helpers.content import ContentTree


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep QUIRE_* variables of the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("QUIRE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def content(site_root: Path) -> ContentTree:
    return ContentTree(site_root)


@pytest.fixture
def config(site_root: Path) -> QuireConfig:
    return QuireConfig.load(site_root)

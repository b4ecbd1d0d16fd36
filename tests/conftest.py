"""Shared fixtures for refswap tests."""

from __future__ import annotations

import logging
import pathlib
from collections.abc import Iterator

import pytest

from tests.helpers import LEGACY_PROJECT, SDK_PROJECT, write_project


@pytest.fixture
def legacy_project(tmp_path: pathlib.Path) -> pathlib.Path:
    """A namespaced, CRLF, XML-declared project with one convertible DLL reference."""
    return write_project(tmp_path, "Legacy.csproj", LEGACY_PROJECT)


@pytest.fixture
def sdk_project(tmp_path: pathlib.Path) -> pathlib.Path:
    """An SDK-style project with existing package references and two DLL references."""
    return write_project(tmp_path, "Modern.csproj", SDK_PROJECT)


@pytest.fixture(autouse=True)
def isolated_nuget_config(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> None:
    """Keep the developer's own NuGet.Config files out of every test."""
    monkeypatch.delenv("REFSWAP_NUGET_CONFIG", raising=False)
    monkeypatch.setattr(
        "refswap.config.user_config_path",
        lambda: tmp_path / "no-user-config" / "NuGet.Config",
    )


@pytest.fixture(autouse=True)
def reset_refswap_logger() -> Iterator[None]:
    """Undo the CLI's logging setup so caplog sees records in later tests."""
    yield
    logger = logging.getLogger("refswap")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)

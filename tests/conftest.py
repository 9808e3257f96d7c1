from __future__ import annotations

import os
from collections.abc import Callable, Generator

import pytest

from adapters.solver.highs_solver import HighsSolver
from app.config import AppSettings, LayoutSettings
from tests.helpers.storylines import RecordingSolver


def _clear_storyline_env() -> None:
    for key in list(os.environ):
        if key.startswith("STORYLINE_"):
            os.environ.pop(key, None)


_clear_storyline_env()


@pytest.fixture(autouse=True)
def clear_storyline_env() -> Generator[None, None, None]:
    _clear_storyline_env()
    yield
    _clear_storyline_env()


@pytest.fixture
def solver() -> HighsSolver:
    return HighsSolver()


@pytest.fixture
def recording_solver(solver: HighsSolver) -> RecordingSolver:
    return RecordingSolver(inner=solver)


@pytest.fixture
def layout_settings() -> LayoutSettings:
    return LayoutSettings()


@pytest.fixture
def layout_settings_factory(layout_settings: LayoutSettings) -> Callable[..., LayoutSettings]:
    def _factory(**overrides: object) -> LayoutSettings:
        return layout_settings.model_copy(update=overrides)

    return _factory


@pytest.fixture
def app_settings(layout_settings: LayoutSettings) -> AppSettings:
    return AppSettings(layout=layout_settings)

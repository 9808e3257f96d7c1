from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.ports.solver import SolveStatus


class StoryLayoutError(Exception):
    """Base class for errors raised while laying out a storyline."""


class StructuralError(StoryLayoutError, ValueError):
    """The storyline violates a structural invariant (e.g. an empty group)."""


class UnsupportedModel(StoryLayoutError):
    """An algebra operation would produce a term of degree greater than two."""


class SolveFailure(StoryLayoutError):
    def __init__(self, status: SolveStatus, message: str = "") -> None:
        self.status = status
        self.message = message
        detail = f"solver finished with status {status.value}"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)

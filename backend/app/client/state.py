"""Request state for DesignRequestController.

Exactly one variant is live at a time, so "loading with data" or
"success with an error message" cannot be represented.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.models.contracts import GenerationResult


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Succeeded:
    result: GenerationResult


@dataclass(frozen=True)
class Failed:
    message: str


ClientState = Idle | Loading | Succeeded | Failed

IDLE = Idle()
LOADING = Loading()

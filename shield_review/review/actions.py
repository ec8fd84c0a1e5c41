"""
Action vocabulary of the review reducer.

Network operations come in pairs: a synchronous *Started action that flips the
machine into a busy state, and a later *Succeeded / *Failed action carrying
the outcome. Local edits are single actions.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from shield_review.models.enums import ApplyMode
from shield_review.schemas.shields import (
    CleanupShield,
    PageTarget,
    PrecedenceExplanation,
    ZoneConflict,
    ZoneTarget,
)


# ── Network lifecycle ────────────────────────────────────────

@dataclass(frozen=True)
class LoadStarted:
    pass


@dataclass(frozen=True)
class LoadSucceeded:
    shields: list[CleanupShield]
    explanations: list[PrecedenceExplanation] = field(default_factory=list)
    conflicts: list[ZoneConflict] = field(default_factory=list)


@dataclass(frozen=True)
class LoadFailed:
    error: str


@dataclass(frozen=True)
class SaveVendorStarted:
    pass


@dataclass(frozen=True)
class SaveTemplateStarted:
    pass


@dataclass(frozen=True)
class RerunStarted:
    pass


@dataclass(frozen=True)
class OperationSucceeded:
    # None keeps the current shields
    shields: Optional[list[CleanupShield]] = None


@dataclass(frozen=True)
class OperationFailed:
    error: str


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class DismissError:
    pass


# ── Local edits ──────────────────────────────────────────────

@dataclass(frozen=True)
class AddShield:
    shield: CleanupShield


@dataclass(frozen=True)
class UpdateShield:
    shield: CleanupShield


@dataclass(frozen=True)
class RemoveShield:
    shield_id: str


@dataclass(frozen=True)
class SetApplyMode:
    shield_id: str
    mode: ApplyMode


@dataclass(frozen=True)
class SetPageTarget:
    shield_id: str
    target: PageTarget


@dataclass(frozen=True)
class SetZoneTarget:
    shield_id: str
    target: ZoneTarget


@dataclass(frozen=True)
class RestoreSession:
    overrides: list[CleanupShield]


ReviewAction = Union[
    LoadStarted,
    LoadSucceeded,
    LoadFailed,
    SaveVendorStarted,
    SaveTemplateStarted,
    RerunStarted,
    OperationSucceeded,
    OperationFailed,
    Retry,
    DismissError,
    AddShield,
    UpdateShield,
    RemoveShield,
    SetApplyMode,
    SetPageTarget,
    SetZoneTarget,
    RestoreSession,
]

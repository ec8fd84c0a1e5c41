"""
Review session schemas: the state machine aggregate, the durability
snapshot, and request/response bodies for the review API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from shield_review.models.enums import (
    ApplyMode,
    OPERATION_STATES,
    PendingAction,
    ReviewStateType,
    RiskLevel,
    ShieldType,
)
from shield_review.schemas.shields import (
    CleanupShield,
    DocumentZone,
    PageTarget,
    PrecedenceExplanation,
    ZoneConflict,
    ZoneTarget,
)


class ReviewState(BaseModel):
    """
    The machine's sole aggregate. Only review_reducer produces new instances.

    Invariants:
    - session_overrides holds at most one entry per shield id
    - every id in session_overrides has an entry in override_versions
    - edit_version never decreases
    """
    type: ReviewStateType = ReviewStateType.LOADING_CASE
    shields: list[CleanupShield] = []
    session_overrides: list[CleanupShield] = []
    precedence_explanations: list[PrecedenceExplanation] = []
    zone_conflicts: list[ZoneConflict] = []
    error: Optional[str] = None
    previous_type: Optional[ReviewStateType] = None

    # Version stamps so a sync only clears the edits it actually sent
    edit_version: int = 0
    override_versions: dict[str, int] = {}
    sync_version: Optional[int] = None

    @property
    def is_loading(self) -> bool:
        return self.type == ReviewStateType.LOADING_CASE

    @property
    def is_ready(self) -> bool:
        return self.type == ReviewStateType.READY

    @property
    def is_saving(self) -> bool:
        return self.type in (
            ReviewStateType.SAVING_RULES_VENDOR,
            ReviewStateType.SAVING_RULES_TEMPLATE,
        )

    @property
    def is_rerunning(self) -> bool:
        return self.type == ReviewStateType.RERUNNING_EXTRACTION

    @property
    def is_busy(self) -> bool:
        return self.type in OPERATION_STATES

    @property
    def has_error(self) -> bool:
        return self.type == ReviewStateType.ERROR_NONBLOCKING

    @property
    def has_unsaved_changes(self) -> bool:
        return len(self.session_overrides) > 0


class SessionSnapshot(BaseModel):
    """Durability record for one case: the unsynced overrides."""
    case_id: str
    shields: list[CleanupShield]
    last_modified: datetime
    pending_action: Optional[PendingAction] = None


# ── Request Schemas ──────────────────────────────────────────

class OpenSessionRequest(BaseModel):
    vendor_id: Optional[str] = None
    template_id: Optional[str] = None
    load: bool = True


class DrawShieldRequest(BaseModel):
    """A shield drawn by dragging from start to end, normalised coordinates."""
    start: tuple[float, float]
    end: tuple[float, float]
    shield_type: ShieldType = ShieldType.USER_DEFINED
    user_id: Optional[str] = None
    reason: Optional[str] = None


class ApplyModeRequest(BaseModel):
    mode: ApplyMode


class PageTargetRequest(BaseModel):
    target: PageTarget


class ZoneTargetRequest(BaseModel):
    target: ZoneTarget


class ZoneEvaluationRequest(BaseModel):
    zones: list[DocumentZone]
    page_count: Optional[int] = Field(default=None, ge=1)


# ── Response Schemas ─────────────────────────────────────────

class ReviewStateResponse(BaseModel):
    """Review state plus the derived flags the UI renders from."""
    case_id: str
    vendor_id: Optional[str] = None
    template_id: Optional[str] = None
    type: ReviewStateType
    shields: list[CleanupShield]
    session_overrides: list[CleanupShield]
    precedence_explanations: list[PrecedenceExplanation]
    zone_conflicts: list[ZoneConflict]
    error: Optional[str] = None
    previous_type: Optional[ReviewStateType] = None
    is_busy: bool
    has_error: bool
    has_unsaved_changes: bool


class ShieldEffect(BaseModel):
    """Displayed mode/risk of one shield after the zone policy ran."""
    shield_id: str
    stored_mode: ApplyMode
    effective_mode: ApplyMode
    effective_risk: RiskLevel
    blocked: bool = False

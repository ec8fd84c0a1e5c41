"""
Review state reducer: (state, action) -> state.

Pure and total. It never performs I/O, never blocks on a pending network
operation, and never mutates its input; every branch returns a new ReviewState.

Durability guarantee: no failure action touches shields or session_overrides.
A failed sync is an annoyance, never a data-loss event.
"""

from typing import Optional

from shield_review.models.enums import OPERATION_STATES, SYNC_STATES, ReviewStateType
from shield_review.review.actions import (
    AddShield,
    DismissError,
    LoadFailed,
    LoadStarted,
    LoadSucceeded,
    OperationFailed,
    OperationSucceeded,
    RemoveShield,
    RerunStarted,
    RestoreSession,
    Retry,
    ReviewAction,
    SaveTemplateStarted,
    SaveVendorStarted,
    SetApplyMode,
    SetPageTarget,
    SetZoneTarget,
    UpdateShield,
)
from shield_review.schemas.review import ReviewState
from shield_review.schemas.shields import CleanupShield


def initial_state() -> ReviewState:
    return ReviewState()


# ─── List Helpers ────────────────────────────────────────────

def _find(shields: list[CleanupShield], shield_id: str) -> Optional[CleanupShield]:
    for shield in shields:
        if shield.id == shield_id:
            return shield
    return None


def _upsert(shields: list[CleanupShield], shield: CleanupShield) -> list[CleanupShield]:
    """Replace the entry with the same id in place, or append."""
    if _find(shields, shield.id) is None:
        return [*shields, shield]
    return [shield if s.id == shield.id else s for s in shields]


# ─── Edit Bookkeeping ────────────────────────────────────────

def _record_edit(
    state: ReviewState,
    shields: list[CleanupShield],
    edited: CleanupShield,
) -> ReviewState:
    version = state.edit_version + 1
    return state.model_copy(update={
        "shields": shields,
        "session_overrides": _upsert(state.session_overrides, edited),
        "edit_version": version,
        "override_versions": {**state.override_versions, edited.id: version},
    })


def _edit_field(state: ReviewState, shield_id: str, **changes) -> ReviewState:
    shield = _find(state.shields, shield_id)
    if shield is None:
        return state
    edited = shield.model_copy(update=changes)
    return _record_edit(state, _upsert(state.shields, edited), edited)


def _start_operation(state: ReviewState, target: ReviewStateType) -> ReviewState:
    return state.model_copy(update={
        "type": target,
        "error": None,
        "sync_version": state.edit_version,
    })


def _clear_synced(state: ReviewState) -> tuple[list[CleanupShield], dict[str, int]]:
    """
    Drop overrides that were part of the payload sent when the operation
    started. Edits stamped after that point stay pending.
    """
    stamp = state.sync_version
    if stamp is None:
        return [], {}
    remaining = [
        s for s in state.session_overrides
        if state.override_versions.get(s.id, 0) > stamp
    ]
    versions = {s.id: state.override_versions[s.id] for s in remaining}
    return remaining, versions


# ─── Reducer ─────────────────────────────────────────────────

def review_reducer(state: ReviewState, action: ReviewAction) -> ReviewState:
    # ── Case loading ──
    if isinstance(action, LoadStarted):
        return state.model_copy(update={
            "type": ReviewStateType.LOADING_CASE,
            "error": None,
        })

    if isinstance(action, LoadSucceeded):
        # A load is not a sync: session_overrides stay pending
        return state.model_copy(update={
            "type": ReviewStateType.READY,
            "shields": list(action.shields),
            "precedence_explanations": list(action.explanations),
            "zone_conflicts": list(action.conflicts),
            "error": None,
            "previous_type": None,
        })

    if isinstance(action, LoadFailed):
        return state.model_copy(update={
            "type": ReviewStateType.ERROR_NONBLOCKING,
            "previous_type": ReviewStateType.LOADING_CASE,
            "error": action.error,
        })

    # ── Sync operations ──
    if isinstance(action, SaveVendorStarted):
        return _start_operation(state, ReviewStateType.SAVING_RULES_VENDOR)

    if isinstance(action, SaveTemplateStarted):
        return _start_operation(state, ReviewStateType.SAVING_RULES_TEMPLATE)

    if isinstance(action, RerunStarted):
        return _start_operation(state, ReviewStateType.RERUNNING_EXTRACTION)

    if isinstance(action, OperationSucceeded):
        remaining, versions = _clear_synced(state)
        return state.model_copy(update={
            "type": ReviewStateType.READY,
            "shields": list(action.shields) if action.shields is not None else state.shields,
            "session_overrides": remaining,
            "override_versions": versions,
            "sync_version": None,
            "error": None,
            "previous_type": None,
        })

    if isinstance(action, OperationFailed):
        # Failing from a non-operation state (local validation) leaves
        # nothing to replay.
        previous = state.type if state.type in OPERATION_STATES else None
        return state.model_copy(update={
            "type": ReviewStateType.ERROR_NONBLOCKING,
            "previous_type": previous,
            "error": action.error,
            "sync_version": None,
        })

    # ── Error handling ──
    if isinstance(action, Retry):
        previous = state.previous_type
        if previous in OPERATION_STATES:
            update = {"type": previous, "error": None}
            if previous in SYNC_STATES:
                update["sync_version"] = state.edit_version
            return state.model_copy(update=update)
        return state.model_copy(update={
            "type": ReviewStateType.READY,
            "error": None,
        })

    if isinstance(action, DismissError):
        return state.model_copy(update={
            "type": ReviewStateType.READY,
            "error": None,
            "previous_type": None,
            "sync_version": None,
        })

    # ── Local edits ──
    if isinstance(action, (AddShield, UpdateShield)):
        return _record_edit(state, _upsert(state.shields, action.shield), action.shield)

    if isinstance(action, RemoveShield):
        versions = dict(state.override_versions)
        versions.pop(action.shield_id, None)
        return state.model_copy(update={
            "shields": [s for s in state.shields if s.id != action.shield_id],
            "session_overrides": [s for s in state.session_overrides if s.id != action.shield_id],
            "override_versions": versions,
        })

    if isinstance(action, SetApplyMode):
        return _edit_field(state, action.shield_id, apply_mode=action.mode)

    if isinstance(action, SetPageTarget):
        return _edit_field(state, action.shield_id, page_target=action.target)

    if isinstance(action, SetZoneTarget):
        return _edit_field(state, action.shield_id, zone_target=action.target)

    if isinstance(action, RestoreSession):
        restored = state.model_copy(update={"session_overrides": [], "override_versions": {}})
        for shield in action.overrides:
            restored = _record_edit(restored, _upsert(restored.shields, shield), shield)
        return restored

    raise TypeError(f"Unknown review action: {type(action).__name__}")

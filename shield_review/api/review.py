"""
/api/v1/review-cases/{case_id}/cleanup endpoints.
Hosts one review state machine per case: network operations, local shield
edits, retry/dismiss, and zone conflict evaluation.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from shield_review.dependencies import get_registry, get_review_session, verify_api_key
from shield_review.review.geometry import bbox_from_drag
from shield_review.review.machine import ReviewStateMachine
from shield_review.review.registry import ReviewSessionRegistry
from shield_review.review.zone_conflicts import ConflictEvaluation
from shield_review.schemas.review import (
    ApplyModeRequest,
    DrawShieldRequest,
    OpenSessionRequest,
    PageTargetRequest,
    ReviewStateResponse,
    ZoneEvaluationRequest,
    ZoneTargetRequest,
)
from shield_review.schemas.shields import CleanupShield

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/review-cases/{case_id}/cleanup",
    tags=["review"],
    dependencies=[Depends(verify_api_key)],
)


def _state_response(machine: ReviewStateMachine) -> ReviewStateResponse:
    state = machine.state
    return ReviewStateResponse(
        case_id=machine.case_id,
        vendor_id=machine.vendor_id,
        template_id=machine.template_id,
        type=state.type,
        shields=state.shields,
        session_overrides=state.session_overrides,
        precedence_explanations=state.precedence_explanations,
        zone_conflicts=state.zone_conflicts,
        error=state.error,
        previous_type=state.previous_type,
        is_busy=state.is_busy,
        has_error=state.has_error,
        has_unsaved_changes=state.has_unsaved_changes,
    )


def _ensure_idle(machine: ReviewStateMachine) -> None:
    """At most one network operation in flight per session."""
    if machine.in_flight:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Operation already in progress: {machine.state.type.value}",
        )


def _ensure_shield(machine: ReviewStateMachine, shield_id: str) -> None:
    if not any(s.id == shield_id for s in machine.state.shields):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Shield not found: {shield_id}",
        )


# ── Session lifecycle ────────────────────────────────────────

@router.post("/session", response_model=ReviewStateResponse, status_code=status.HTTP_201_CREATED)
async def open_session(
    case_id: str,
    body: Optional[OpenSessionRequest] = None,
    registry: ReviewSessionRegistry = Depends(get_registry),
):
    """Open (or re-attach to) the review session for a case and load it."""
    body = body or OpenSessionRequest()
    machine = registry.open(case_id, vendor_id=body.vendor_id, template_id=body.template_id)
    # A fresh machine sits in loading_case until its first load completes.
    # An open racing that first load returns without starting another.
    never_loaded = machine.state.is_loading and machine.state.previous_type is None
    if body.load and never_loaded and not machine.in_flight:
        await machine.load_case()
    return _state_response(machine)


@router.delete("/session")
async def close_session(case_id: str, registry: ReviewSessionRegistry = Depends(get_registry)):
    """Discard the session. Unsynced edits stay in the session store."""
    return {"case_id": case_id, "closed": registry.close(case_id)}


@router.get("", response_model=ReviewStateResponse)
async def get_state(machine: ReviewStateMachine = Depends(get_review_session)):
    return _state_response(machine)


# ── Network operations ───────────────────────────────────────

@router.post("/load", response_model=ReviewStateResponse)
async def load_case(machine: ReviewStateMachine = Depends(get_review_session)):
    _ensure_idle(machine)
    await machine.load_case()
    return _state_response(machine)


@router.post("/save-vendor-rule", response_model=ReviewStateResponse)
async def save_vendor_rule(machine: ReviewStateMachine = Depends(get_review_session)):
    _ensure_idle(machine)
    await machine.save_as_vendor_rule()
    return _state_response(machine)


@router.post("/save-template-rule", response_model=ReviewStateResponse)
async def save_template_rule(machine: ReviewStateMachine = Depends(get_review_session)):
    _ensure_idle(machine)
    await machine.save_as_template_rule()
    return _state_response(machine)


@router.post("/rerun", response_model=ReviewStateResponse)
async def rerun_extraction(machine: ReviewStateMachine = Depends(get_review_session)):
    _ensure_idle(machine)
    await machine.rerun_extraction()
    return _state_response(machine)


@router.post("/retry", response_model=ReviewStateResponse)
async def retry(machine: ReviewStateMachine = Depends(get_review_session)):
    _ensure_idle(machine)
    await machine.retry()
    return _state_response(machine)


@router.post("/dismiss-error", response_model=ReviewStateResponse)
async def dismiss_error(machine: ReviewStateMachine = Depends(get_review_session)):
    machine.dismiss_error()
    return _state_response(machine)


# ── Local shield edits ───────────────────────────────────────

@router.post("/shields", response_model=ReviewStateResponse, status_code=status.HTTP_201_CREATED)
async def add_shield(shield: CleanupShield, machine: ReviewStateMachine = Depends(get_review_session)):
    machine.add_shield(shield)
    logger.info("shield_added", case_id=machine.case_id, shield_id=shield.id, shield_type=shield.shield_type.value)
    return _state_response(machine)


@router.post("/shields/draw", response_model=ReviewStateResponse, status_code=status.HTTP_201_CREATED)
async def draw_shield(body: DrawShieldRequest, machine: ReviewStateMachine = Depends(get_review_session)):
    """Commit a drag gesture as a user-defined, Applied shield."""
    bbox = bbox_from_drag(body.start, body.end)
    if bbox is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Shield too small",
        )
    shield = CleanupShield.user_defined(
        bbox,
        user_id=body.user_id,
        vendor_id=machine.vendor_id,
        template_id=machine.template_id,
        shield_type=body.shield_type,
        reason=body.reason,
    )
    machine.add_shield(shield)
    logger.info("shield_drawn", case_id=machine.case_id, shield_id=shield.id)
    return _state_response(machine)


@router.put("/shields/{shield_id}", response_model=ReviewStateResponse)
async def update_shield(
    shield_id: str,
    shield: CleanupShield,
    machine: ReviewStateMachine = Depends(get_review_session),
):
    if shield.id != shield_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Shield id mismatch: path {shield_id}, body {shield.id}",
        )
    machine.update_shield(shield)
    return _state_response(machine)


@router.delete("/shields/{shield_id}", response_model=ReviewStateResponse)
async def remove_shield(shield_id: str, machine: ReviewStateMachine = Depends(get_review_session)):
    machine.remove_shield(shield_id)
    logger.info("shield_removed", case_id=machine.case_id, shield_id=shield_id)
    return _state_response(machine)


@router.put("/shields/{shield_id}/apply-mode", response_model=ReviewStateResponse)
async def set_apply_mode(
    shield_id: str,
    body: ApplyModeRequest,
    machine: ReviewStateMachine = Depends(get_review_session),
):
    _ensure_shield(machine, shield_id)
    machine.set_apply_mode(shield_id, body.mode)
    return _state_response(machine)


@router.put("/shields/{shield_id}/page-target", response_model=ReviewStateResponse)
async def set_page_target(
    shield_id: str,
    body: PageTargetRequest,
    machine: ReviewStateMachine = Depends(get_review_session),
):
    _ensure_shield(machine, shield_id)
    machine.set_page_target(shield_id, body.target)
    return _state_response(machine)


@router.put("/shields/{shield_id}/zone-target", response_model=ReviewStateResponse)
async def set_zone_target(
    shield_id: str,
    body: ZoneTargetRequest,
    machine: ReviewStateMachine = Depends(get_review_session),
):
    _ensure_shield(machine, shield_id)
    machine.set_zone_target(shield_id, body.target)
    return _state_response(machine)


# ── Zone conflicts ───────────────────────────────────────────

@router.post("/zone-conflicts", response_model=ConflictEvaluation)
async def evaluate_zone_conflicts(
    body: ZoneEvaluationRequest,
    machine: ReviewStateMachine = Depends(get_review_session),
):
    """Run the zone policy against the session's current shields."""
    return machine.evaluate_zone_conflicts(body.zones, page_count=body.page_count)

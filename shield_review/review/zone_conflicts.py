"""
Shield / document zone conflict detection.

Policy:
1. overlap >= warn threshold                      -> conflict recorded (warning_added)
2. overlap >= block threshold AND zone is critical -> blocking conflict,
   Applied shields are displayed as Suggested, risk becomes High
3. below warn threshold                           -> nothing recorded

A shield must never fully mask a critical zone without suggestion-only status.
Results are derived from the current shields and zones every time; they are
not machine state.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from shield_review.config import settings
from shield_review.models.enums import ApplyMode, ConflictAction, RiskLevel
from shield_review.review.geometry import overlap_ratio
from shield_review.schemas.review import ShieldEffect
from shield_review.schemas.shields import CleanupShield, DocumentZone, ZoneConflict


class ConflictEvaluation(BaseModel):
    conflicts: list[ZoneConflict] = []
    effects: list[ShieldEffect] = []

    def effect_for(self, shield_id: str) -> Optional[ShieldEffect]:
        for effect in self.effects:
            if effect.shield_id == shield_id:
                return effect
        return None

    def conflicts_for(self, shield_id: str) -> list[ZoneConflict]:
        return [c for c in self.conflicts if c.shield_id == shield_id]


def _zone_in_scope(shield: CleanupShield, zone: DocumentZone, page_count: Optional[int]) -> bool:
    zone_type = zone.zone_type.value if zone.zone_type else None
    if not shield.zone_target.targets(zone.zone_id, zone_type):
        return False
    if zone.page is not None and page_count is not None:
        return shield.page_target.covers(zone.page, page_count)
    return True


def evaluate_shield(
    shield: CleanupShield,
    zones: Iterable[DocumentZone],
    critical_types: Iterable[str],
    warn_threshold: float,
    block_threshold: float,
    page_count: Optional[int] = None,
) -> tuple[list[ZoneConflict], ShieldEffect]:
    """Run the zone policy for a single shield."""
    critical_types = list(critical_types)
    conflicts = []
    effective_mode = shield.apply_mode
    effective_risk = shield.risk_level
    blocked = False

    for zone in zones:
        if not _zone_in_scope(shield, zone, page_count):
            continue

        ratio = overlap_ratio(shield.normalized_bbox, zone.bbox)
        if ratio < warn_threshold:
            continue

        if ratio >= block_threshold and zone.is_critical(critical_types):
            blocked = True
            effective_risk = RiskLevel.HIGH
            if shield.apply_mode == ApplyMode.APPLIED:
                effective_mode = ApplyMode.SUGGESTED
                action = ConflictAction.DOWNGRADED_TO_SUGGESTED
            else:
                action = ConflictAction.ELEVATED_RISK
            conflicts.append(ZoneConflict(
                shield_id=shield.id,
                zone_id=zone.zone_id,
                overlap_ratio=ratio,
                action_taken=action.value,
                blocking=True,
            ))
        else:
            conflicts.append(ZoneConflict(
                shield_id=shield.id,
                zone_id=zone.zone_id,
                overlap_ratio=ratio,
                action_taken=ConflictAction.WARNING_ADDED.value,
            ))

    effect = ShieldEffect(
        shield_id=shield.id,
        stored_mode=shield.apply_mode,
        effective_mode=effective_mode,
        effective_risk=effective_risk,
        blocked=blocked,
    )
    return conflicts, effect


def evaluate_zone_conflicts(
    shields: Iterable[CleanupShield],
    zones: Iterable[DocumentZone],
    critical_types: Optional[Iterable[str]] = None,
    warn_threshold: Optional[float] = None,
    block_threshold: Optional[float] = None,
    page_count: Optional[int] = None,
) -> ConflictEvaluation:
    """
    Evaluate every shield against every zone.
    Thresholds and critical zone types default to settings.
    """
    if critical_types is None:
        critical_types = settings.critical_zone_types
    if warn_threshold is None:
        warn_threshold = settings.ZONE_OVERLAP_WARN_THRESHOLD
    if block_threshold is None:
        block_threshold = settings.ZONE_OVERLAP_BLOCK_THRESHOLD

    critical_types = list(critical_types)
    zones = list(zones)
    evaluation = ConflictEvaluation()
    for shield in shields:
        conflicts, effect = evaluate_shield(
            shield, zones, critical_types, warn_threshold, block_threshold, page_count,
        )
        evaluation.conflicts.extend(conflicts)
        evaluation.effects.append(effect)
    return evaluation


def apply_effects(
    shields: Iterable[CleanupShield],
    evaluation: ConflictEvaluation,
) -> list[CleanupShield]:
    """Copies of the shields as they should be displayed (effective mode and risk)."""
    displayed = []
    for shield in shields:
        effect = evaluation.effect_for(shield.id)
        if effect is None:
            displayed.append(shield)
            continue
        displayed.append(shield.model_copy(update={
            "apply_mode": effect.effective_mode,
            "risk_level": effect.effective_risk,
        }))
    return displayed

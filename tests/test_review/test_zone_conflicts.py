"""
Tests for shield / zone conflict detection.
"""

import pytest

from shield_review.models.enums import ApplyMode, ConflictAction, RiskLevel, ZoneType
from shield_review.review.zone_conflicts import apply_effects, evaluate_zone_conflicts
from shield_review.schemas.shields import FirstPage, SpecificPages, ZoneTarget

THRESHOLDS = {"critical_types": ["LineItems", "Totals"], "warn_threshold": 0.05, "block_threshold": 0.10}


class TestCriticalZoneForcing:
    """Shields over critical zones can never stay Applied."""

    def test_small_shield_inside_critical_zone_downgraded(self, make_shield, make_zone):
        shield = make_shield(x=0.1, y=0.1, width=0.2, height=0.2, apply_mode=ApplyMode.APPLIED)
        zone = make_zone(zone_type=ZoneType.LINE_ITEMS, x=0.0, y=0.0, width=0.5, height=0.5)

        evaluation = evaluate_zone_conflicts([shield], [zone], **THRESHOLDS)

        assert len(evaluation.conflicts) == 1
        conflict = evaluation.conflicts[0]
        assert conflict.overlap_ratio == pytest.approx(1.0)
        assert conflict.blocking
        assert conflict.action_taken == ConflictAction.DOWNGRADED_TO_SUGGESTED.value
        effect = evaluation.effect_for(shield.id)
        assert effect.stored_mode == ApplyMode.APPLIED
        assert effect.effective_mode == ApplyMode.SUGGESTED
        assert effect.effective_risk == RiskLevel.HIGH

    def test_suggested_shield_gets_elevated_risk(self, make_shield, make_zone):
        shield = make_shield(apply_mode=ApplyMode.SUGGESTED)
        evaluation = evaluate_zone_conflicts([shield], [make_zone()], **THRESHOLDS)
        assert evaluation.conflicts[0].action_taken == ConflictAction.ELEVATED_RISK.value
        assert evaluation.effect_for(shield.id).effective_mode == ApplyMode.SUGGESTED
        assert evaluation.effect_for(shield.id).effective_risk == RiskLevel.HIGH

    def test_disabled_shield_stays_disabled(self, make_shield, make_zone):
        shield = make_shield(apply_mode=ApplyMode.DISABLED)
        evaluation = evaluate_zone_conflicts([shield], [make_zone()], **THRESHOLDS)
        assert evaluation.effect_for(shield.id).effective_mode == ApplyMode.DISABLED
        assert evaluation.effect_for(shield.id).blocked

    def test_explicit_critical_flag(self, make_shield, make_zone):
        shield = make_shield()
        zone = make_zone(zone_type=ZoneType.HEADER, critical=True)
        evaluation = evaluate_zone_conflicts([shield], [zone], **THRESHOLDS)
        assert evaluation.conflicts[0].blocking

    def test_stored_shield_not_mutated(self, make_shield, make_zone):
        shield = make_shield(apply_mode=ApplyMode.APPLIED)
        evaluate_zone_conflicts([shield], [make_zone()], **THRESHOLDS)
        assert shield.apply_mode == ApplyMode.APPLIED


class TestWarnings:

    def test_non_critical_zone_only_warns(self, make_shield, make_zone):
        shield = make_shield()
        zone = make_zone(zone_type=ZoneType.HEADER)
        evaluation = evaluate_zone_conflicts([shield], [zone], **THRESHOLDS)
        assert evaluation.conflicts[0].action_taken == ConflictAction.WARNING_ADDED.value
        assert not evaluation.conflicts[0].blocking
        assert evaluation.effect_for(shield.id).effective_mode == ApplyMode.APPLIED

    def test_between_thresholds_on_critical_zone_warns(self, make_shield, make_zone):
        # 8% of the shield's area lies in the zone
        shield = make_shield(x=0.46, y=0.0, width=0.5, height=0.2)
        zone = make_zone(zone_type=ZoneType.TOTALS, x=0.0, y=0.0, width=0.5, height=0.5)
        evaluation = evaluate_zone_conflicts([shield], [zone], **THRESHOLDS)
        assert evaluation.conflicts[0].overlap_ratio == pytest.approx(0.08)
        assert evaluation.conflicts[0].action_taken == ConflictAction.WARNING_ADDED.value
        assert evaluation.effect_for(shield.id).effective_mode == ApplyMode.APPLIED

    def test_below_warn_threshold_records_nothing(self, make_shield, make_zone):
        shield = make_shield(x=0.49, y=0.0, width=0.5, height=0.2)
        evaluation = evaluate_zone_conflicts([shield], [make_zone()], **THRESHOLDS)
        assert evaluation.conflicts == []
        assert evaluation.effect_for(shield.id).effective_mode == ApplyMode.APPLIED

    def test_disjoint_records_nothing(self, make_shield, make_zone):
        shield = make_shield(x=0.7, y=0.7, width=0.1, height=0.1)
        evaluation = evaluate_zone_conflicts([shield], [make_zone()], **THRESHOLDS)
        assert evaluation.conflicts == []


class TestScope:
    """Zones outside a shield's zone or page target are ignored."""

    def test_excluded_zone_skipped(self, make_shield, make_zone):
        shield = make_shield(zone_target=ZoneTarget(exclude_zones=["z1"]))
        evaluation = evaluate_zone_conflicts([shield], [make_zone(zone_id="z1")], **THRESHOLDS)
        assert evaluation.conflicts == []

    def test_excluded_by_zone_type(self, make_shield, make_zone):
        shield = make_shield(zone_target=ZoneTarget(exclude_zones=["Totals"]))
        evaluation = evaluate_zone_conflicts([shield], [make_zone()], **THRESHOLDS)
        assert evaluation.conflicts == []

    def test_include_list_limits_zones(self, make_shield, make_zone):
        shield = make_shield(zone_target=ZoneTarget(include_zones=["z2"]))
        zones = [make_zone(zone_id="z1"), make_zone(zone_id="z2")]
        evaluation = evaluate_zone_conflicts([shield], zones, **THRESHOLDS)
        assert [c.zone_id for c in evaluation.conflicts] == ["z2"]

    def test_zone_on_uncovered_page_skipped(self, make_shield, make_zone):
        shield = make_shield(page_target=FirstPage())
        zone = make_zone(page=3)
        evaluation = evaluate_zone_conflicts([shield], [zone], page_count=3, **THRESHOLDS)
        assert evaluation.conflicts == []

    def test_zone_on_covered_page_checked(self, make_shield, make_zone):
        shield = make_shield(page_target=SpecificPages(pages=[2, 3]))
        zone = make_zone(page=3)
        evaluation = evaluate_zone_conflicts([shield], [zone], page_count=3, **THRESHOLDS)
        assert len(evaluation.conflicts) == 1


class TestApplyEffects:

    def test_displayed_copies_carry_effective_mode(self, make_shield, make_zone):
        forced = make_shield(shield_id="a")
        free = make_shield(shield_id="b", x=0.7, y=0.7, width=0.1, height=0.1)
        evaluation = evaluate_zone_conflicts([forced, free], [make_zone()], **THRESHOLDS)

        displayed = apply_effects([forced, free], evaluation)

        assert displayed[0].apply_mode == ApplyMode.SUGGESTED
        assert displayed[0].risk_level == RiskLevel.HIGH
        assert displayed[1].apply_mode == ApplyMode.APPLIED
        assert forced.apply_mode == ApplyMode.APPLIED

    def test_defaults_come_from_settings(self, make_shield, make_zone):
        evaluation = evaluate_zone_conflicts([make_shield()], [make_zone(zone_type=ZoneType.LINE_ITEMS)])
        assert evaluation.conflicts[0].blocking

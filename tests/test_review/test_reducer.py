"""
Tests for the review reducer.
"""

import pytest

from shield_review.models.enums import ApplyMode, ReviewStateType
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
    SaveTemplateStarted,
    SaveVendorStarted,
    SetApplyMode,
    SetPageTarget,
    SetZoneTarget,
    UpdateShield,
)
from shield_review.review.reducer import initial_state, review_reducer
from shield_review.schemas.shields import LastPage, ZoneTarget


def _reduce(state, *actions):
    for action in actions:
        state = review_reducer(state, action)
    return state


@pytest.fixture
def ready(make_shield):
    """A loaded case with one resolved shield and no local edits."""
    return _reduce(initial_state(), LoadSucceeded(shields=[make_shield("x")]))


class TestLoading:

    def test_initial_state_is_loading(self):
        state = initial_state()
        assert state.type == ReviewStateType.LOADING_CASE
        assert state.shields == []
        assert state.session_overrides == []

    def test_load_success_keeps_pending_overrides(self, make_shield):
        x, y = make_shield("x"), make_shield("y")
        state = _reduce(initial_state(), RestoreSession(overrides=[y]))

        state = _reduce(state, LoadStarted(), LoadSucceeded(shields=[x]))

        assert state.type == ReviewStateType.READY
        assert [s.id for s in state.shields] == ["x"]
        assert [s.id for s in state.session_overrides] == ["y"]

    def test_load_failure_records_previous(self):
        state = _reduce(initial_state(), LoadFailed(error="boom"))
        assert state.type == ReviewStateType.ERROR_NONBLOCKING
        assert state.previous_type == ReviewStateType.LOADING_CASE
        assert state.error == "boom"


class TestLocalEdits:

    def test_add_records_override(self, ready, make_shield):
        state = _reduce(ready, AddShield(shield=make_shield("new")))
        assert [s.id for s in state.shields] == ["x", "new"]
        assert [s.id for s in state.session_overrides] == ["new"]
        assert state.has_unsaved_changes

    def test_repeated_updates_dedup(self, ready, make_shield):
        state = _reduce(
            ready,
            UpdateShield(shield=make_shield("x", width=0.3)),
            UpdateShield(shield=make_shield("x", width=0.4)),
        )
        assert len(state.session_overrides) == 1
        assert state.session_overrides[0].normalized_bbox.width == pytest.approx(0.4)
        assert len(state.shields) == 1

    def test_add_then_remove_leaves_no_override(self, ready, make_shield):
        state = _reduce(ready, AddShield(shield=make_shield("new")), RemoveShield(shield_id="new"))
        assert state.session_overrides == []
        assert state.override_versions == {}
        assert [s.id for s in state.shields] == ["x"]

    def test_setters_record_edit(self, ready):
        state = _reduce(
            ready,
            SetApplyMode(shield_id="x", mode=ApplyMode.DISABLED),
            SetPageTarget(shield_id="x", target=LastPage()),
            SetZoneTarget(shield_id="x", target=ZoneTarget(exclude_zones=["Totals"])),
        )
        edited = state.session_overrides[0]
        assert len(state.session_overrides) == 1
        assert edited.apply_mode == ApplyMode.DISABLED
        assert edited.page_target.type == "Last"
        assert edited.zone_target.exclude_zones == ["Totals"]
        assert state.shields[0] == edited

    def test_setter_on_unknown_shield_is_noop(self, ready):
        state = _reduce(ready, SetApplyMode(shield_id="missing", mode=ApplyMode.DISABLED))
        assert state == ready

    def test_edits_allowed_while_busy(self, ready, make_shield):
        state = _reduce(ready, SaveVendorStarted(), AddShield(shield=make_shield("late")))
        assert state.type == ReviewStateType.SAVING_RULES_VENDOR
        assert [s.id for s in state.session_overrides] == ["late"]

    def test_input_state_not_mutated(self, ready, make_shield):
        review_reducer(ready, AddShield(shield=make_shield("new")))
        assert ready.session_overrides == []
        assert len(ready.shields) == 1


class TestSyncOperations:

    @pytest.mark.parametrize("started, busy", [
        (SaveVendorStarted(), ReviewStateType.SAVING_RULES_VENDOR),
        (SaveTemplateStarted(), ReviewStateType.SAVING_RULES_TEMPLATE),
        (RerunStarted(), ReviewStateType.RERUNNING_EXTRACTION),
    ])
    def test_success_clears_overrides(self, ready, make_shield, started, busy):
        state = _reduce(ready, AddShield(shield=make_shield("new")), started)
        assert state.type == busy
        assert state.is_busy

        state = _reduce(state, OperationSucceeded())

        assert state.type == ReviewStateType.READY
        assert state.session_overrides == []
        assert [s.id for s in state.shields] == ["x", "new"]

    def test_failure_preserves_everything(self, ready, make_shield):
        edited = _reduce(ready, AddShield(shield=make_shield("new")))
        state = _reduce(edited, SaveTemplateStarted(), OperationFailed(error="HTTP 500"))

        assert state.type == ReviewStateType.ERROR_NONBLOCKING
        assert state.previous_type == ReviewStateType.SAVING_RULES_TEMPLATE
        assert state.shields == edited.shields
        assert state.session_overrides == edited.session_overrides

    def test_edit_during_save_stays_pending(self, ready, make_shield):
        state = _reduce(
            ready,
            AddShield(shield=make_shield("sent")),
            SaveVendorStarted(),
            AddShield(shield=make_shield("late")),
            OperationSucceeded(),
        )
        assert [s.id for s in state.session_overrides] == ["late"]
        assert state.has_unsaved_changes

    def test_re_edit_of_sent_shield_during_save_stays_pending(self, ready, make_shield):
        state = _reduce(
            ready,
            AddShield(shield=make_shield("s", width=0.2)),
            RerunStarted(),
            UpdateShield(shield=make_shield("s", width=0.3)),
            OperationSucceeded(),
        )
        assert len(state.session_overrides) == 1
        assert state.session_overrides[0].normalized_bbox.width == pytest.approx(0.3)

    def test_success_with_shields_replaces_list(self, ready, make_shield):
        state = _reduce(ready, RerunStarted(), OperationSucceeded(shields=[make_shield("fresh")]))
        assert [s.id for s in state.shields] == ["fresh"]


class TestErrorRecovery:

    def test_retry_returns_to_failed_operation(self, ready):
        state = _reduce(ready, SaveVendorStarted(), OperationFailed(error="nope"), Retry())
        assert state.type == ReviewStateType.SAVING_RULES_VENDOR
        assert state.error is None
        assert state.sync_version == state.edit_version

    def test_retry_after_load_failure_reloads(self):
        state = _reduce(initial_state(), LoadFailed(error="down"), Retry())
        assert state.type == ReviewStateType.LOADING_CASE

    def test_retry_after_validation_failure_returns_ready(self, ready):
        state = _reduce(ready, OperationFailed(error="No vendor ID specified"))
        assert state.previous_type is None

        state = _reduce(state, Retry())
        assert state.type == ReviewStateType.READY

    def test_retry_then_success_clears_edits_made_before_retry(self, ready, make_shield):
        state = _reduce(
            ready,
            AddShield(shield=make_shield("a")),
            SaveVendorStarted(),
            OperationFailed(error="down"),
            AddShield(shield=make_shield("b")),
            Retry(),
            OperationSucceeded(),
        )
        assert state.session_overrides == []

    def test_dismiss_keeps_overrides(self, ready, make_shield):
        state = _reduce(
            ready,
            AddShield(shield=make_shield("a")),
            RerunStarted(),
            OperationFailed(error="down"),
            DismissError(),
        )
        assert state.type == ReviewStateType.READY
        assert state.error is None
        assert state.previous_type is None
        assert [s.id for s in state.session_overrides] == ["a"]


class TestRestoreSession:

    def test_restore_merges_into_shields(self, ready, make_shield):
        state = _reduce(ready, RestoreSession(overrides=[make_shield("x", width=0.4), make_shield("y")]))
        assert [s.id for s in state.shields] == ["x", "y"]
        assert state.shields[0].normalized_bbox.width == pytest.approx(0.4)
        assert [s.id for s in state.session_overrides] == ["x", "y"]

    def test_restore_is_idempotent(self, make_shield):
        overrides = [make_shield("a"), make_shield("b")]
        once = _reduce(initial_state(), RestoreSession(overrides=overrides))
        twice = _reduce(once, RestoreSession(overrides=overrides))
        assert twice.session_overrides == once.session_overrides
        assert twice.shields == once.shields


class TestUnknownAction:

    def test_raises(self):
        with pytest.raises(TypeError):
            review_reducer(initial_state(), object())

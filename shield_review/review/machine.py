"""
Review state machine orchestration.

Wraps the pure reducer with:
- async network operations (load, save vendor/template rule, rerun) that feed
  their outcome back as actions
- session durability: restore on construction, persist after every change to
  the session overrides
- the convenience API the hosting UI calls

Single-flight: at most one network operation per session is assumed. The
machine does not enforce it; the hosting surface must refuse to start a second
operation while in_flight is set.
"""

import time
from typing import Awaitable, Callable, Optional

import structlog

from shield_review.clients.base import ShieldBackend, ShieldBackendError
from shield_review.config import settings
from shield_review.models.enums import (
    ApplyMode,
    PENDING_ACTION_BY_STATE,
    ReviewStateType,
)
from shield_review.observability.metrics import (
    review_operation_duration_seconds,
    review_operations_total,
    zone_conflicts_total,
)
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
from shield_review.review.reducer import initial_state, review_reducer
from shield_review.review.zone_conflicts import (
    ConflictEvaluation,
    apply_effects,
    evaluate_zone_conflicts,
)
from shield_review.schemas.resolver import ResolveRequest
from shield_review.schemas.review import ReviewState
from shield_review.schemas.shields import (
    CleanupShield,
    DocumentZone,
    PageTarget,
    ZoneTarget,
)
from shield_review.storage.session_store import SessionOverrideStore

logger = structlog.get_logger(__name__)


class ReviewStateMachine:
    """
    One case review session.
    Owns its ReviewState exclusively; nothing else mutates it.
    """

    def __init__(
        self,
        case_id: str,
        backend: ShieldBackend,
        store: SessionOverrideStore,
        vendor_id: Optional[str] = None,
        template_id: Optional[str] = None,
    ):
        self.case_id = case_id
        self.vendor_id = vendor_id
        self.template_id = template_id
        self.backend = backend
        self.store = store
        self._state = initial_state()
        self._in_flight: Optional[str] = None
        self._restore_session()

    @property
    def state(self) -> ReviewState:
        return self._state

    @property
    def in_flight(self) -> bool:
        """Whether a backend call is awaiting right now."""
        return self._in_flight is not None

    # ── Dispatch & durability ────────────────────────────────

    def dispatch(self, action: ReviewAction) -> ReviewState:
        before = self._state
        after = review_reducer(before, action)
        self._state = after

        overrides_changed = after.session_overrides != before.session_overrides
        pending_changed = (
            PENDING_ACTION_BY_STATE.get(after.type) != PENDING_ACTION_BY_STATE.get(before.type)
        )
        if overrides_changed or pending_changed:
            self._persist()

        if after.type != before.type:
            logger.debug(
                "review_state_transition",
                case_id=self.case_id,
                action=type(action).__name__,
                from_state=before.type.value,
                to_state=after.type.value,
            )
        return after

    def _persist(self) -> None:
        overrides = self._state.session_overrides
        if overrides:
            self.store.save(
                self.case_id,
                overrides,
                pending_action=PENDING_ACTION_BY_STATE.get(self._state.type),
            )
        else:
            self.store.clear(self.case_id)

    def _restore_session(self) -> None:
        snapshot = self.store.load_snapshot(self.case_id)
        if snapshot is None:
            return
        if not snapshot.shields:
            self.store.clear(self.case_id)
            return
        logger.info(
            "session_restored",
            case_id=self.case_id,
            override_count=len(snapshot.shields),
            pending_action=snapshot.pending_action.value if snapshot.pending_action else None,
            last_modified=snapshot.last_modified.isoformat(),
        )
        self.dispatch(RestoreSession(overrides=list(snapshot.shields)))

    # ── Network operations ───────────────────────────────────

    async def load_case(self) -> ReviewState:
        """Resolve the case's shields with the local overrides still in play."""
        self.dispatch(LoadStarted())
        return await self._exclusive("load", self._run_load)

    async def save_as_vendor_rule(self) -> ReviewState:
        if not self.vendor_id:
            logger.warning("save_rejected", case_id=self.case_id, operation="save_vendor", reason="no_vendor_id")
            return self.dispatch(OperationFailed(error="No vendor ID specified"))
        self.dispatch(SaveVendorStarted())
        return await self._exclusive("save_vendor", self._run_save_vendor)

    async def save_as_template_rule(self) -> ReviewState:
        if not self.template_id:
            logger.warning("save_rejected", case_id=self.case_id, operation="save_template", reason="no_template_id")
            return self.dispatch(OperationFailed(error="No template ID specified"))
        self.dispatch(SaveTemplateStarted())
        return await self._exclusive("save_template", self._run_save_template)

    async def rerun_extraction(self) -> ReviewState:
        """Snapshot the current shields upstream, then trigger re-extraction."""
        self.dispatch(RerunStarted())
        return await self._exclusive("rerun", self._run_rerun)

    async def retry(self) -> ReviewState:
        """Re-enter the failed operation's state and replay its network half."""
        state = self.dispatch(Retry())
        runners = {
            ReviewStateType.LOADING_CASE: self._run_load,
            ReviewStateType.SAVING_RULES_VENDOR: self._run_save_vendor,
            ReviewStateType.SAVING_RULES_TEMPLATE: self._run_save_template,
            ReviewStateType.RERUNNING_EXTRACTION: self._run_rerun,
        }
        runner = runners.get(state.type)
        if runner is None:
            return state
        logger.info("operation_retried", case_id=self.case_id, state=state.type.value)
        return await self._exclusive(f"retry_{state.type.value}", runner)

    def dismiss_error(self) -> ReviewState:
        return self.dispatch(DismissError())

    async def _exclusive(
        self,
        operation: str,
        runner: Callable[[], Awaitable[ReviewState]],
    ) -> ReviewState:
        self._in_flight = operation
        try:
            return await runner()
        finally:
            self._in_flight = None

    async def _run_load(self) -> ReviewState:
        request = ResolveRequest(
            review_case_id=self.case_id,
            vendor_id=self.vendor_id,
            template_id=self.template_id,
            session_overrides=list(self._state.session_overrides),
        )
        started = time.monotonic()
        try:
            response = await self.backend.resolve(request)
        except ShieldBackendError as e:
            self._observe("load", "error", started)
            logger.warning("case_load_failed", case_id=self.case_id, error=e.message)
            return self.dispatch(LoadFailed(error=e.message))
        except Exception as e:
            self._observe("load", "error", started)
            logger.exception("case_load_crashed", case_id=self.case_id)
            return self.dispatch(LoadFailed(error=str(e) or "Failed to load case"))

        self._observe("load", "success", started)
        logger.info(
            "case_loaded",
            case_id=self.case_id,
            shield_count=len(response.resolved_shields),
            conflict_count=len(response.critical_zone_conflicts),
            pending_overrides=len(self._state.session_overrides),
        )
        for warning in response.warnings:
            logger.info("resolver_warning", case_id=self.case_id, warning=warning)
        return self.dispatch(LoadSucceeded(
            shields=response.resolved_shields,
            explanations=response.precedence_explanations,
            conflicts=response.critical_zone_conflicts,
        ))

    async def _run_save_vendor(self) -> ReviewState:
        shields = list(self._state.shields)
        return await self._run_sync(
            "save_vendor",
            lambda: self.backend.save_vendor_rules(self.vendor_id, shields),
            default_error="Failed to save vendor rules",
        )

    async def _run_save_template(self) -> ReviewState:
        shields = list(self._state.shields)
        return await self._run_sync(
            "save_template",
            lambda: self.backend.save_template_rules(self.template_id, shields, vendor_id=self.vendor_id),
            default_error="Failed to save template rules",
        )

    async def _run_rerun(self) -> ReviewState:
        shields = list(self._state.shields)

        async def snapshot_and_trigger() -> None:
            await self.backend.save_snapshot(self.case_id, shields)
            await self.backend.trigger_extraction(self.case_id)

        return await self._run_sync(
            "rerun",
            snapshot_and_trigger,
            default_error="Failed to re-run extraction",
        )

    async def _run_sync(
        self,
        operation: str,
        call: Callable[[], Awaitable[None]],
        default_error: str,
    ) -> ReviewState:
        """Run a save/rerun call; overrides are only cleared on success."""
        started = time.monotonic()
        try:
            await call()
        except ShieldBackendError as e:
            self._observe(operation, "error", started)
            logger.warning(
                "operation_failed",
                case_id=self.case_id,
                operation=operation,
                error=e.message,
                overrides_preserved=len(self._state.session_overrides),
            )
            return self.dispatch(OperationFailed(error=e.message))
        except Exception as e:
            self._observe(operation, "error", started)
            logger.exception("operation_crashed", case_id=self.case_id, operation=operation)
            return self.dispatch(OperationFailed(error=str(e) or default_error))

        self._observe(operation, "success", started)
        state = self.dispatch(OperationSucceeded())
        logger.info(
            "operation_succeeded",
            case_id=self.case_id,
            operation=operation,
            still_pending=len(state.session_overrides),
        )
        return state

    @staticmethod
    def _observe(operation: str, outcome: str, started: float) -> None:
        review_operations_total.labels(operation=operation, outcome=outcome).inc()
        review_operation_duration_seconds.labels(operation=operation).observe(time.monotonic() - started)

    # ── Local edits ──────────────────────────────────────────

    def add_shield(self, shield: CleanupShield) -> ReviewState:
        return self.dispatch(AddShield(shield=shield))

    def update_shield(self, shield: CleanupShield) -> ReviewState:
        return self.dispatch(UpdateShield(shield=shield))

    def remove_shield(self, shield_id: str) -> ReviewState:
        return self.dispatch(RemoveShield(shield_id=shield_id))

    def set_apply_mode(self, shield_id: str, mode: ApplyMode) -> ReviewState:
        return self.dispatch(SetApplyMode(shield_id=shield_id, mode=mode))

    def set_page_target(self, shield_id: str, target: PageTarget) -> ReviewState:
        return self.dispatch(SetPageTarget(shield_id=shield_id, target=target))

    def set_zone_target(self, shield_id: str, target: ZoneTarget) -> ReviewState:
        return self.dispatch(SetZoneTarget(shield_id=shield_id, target=target))

    # ── Derived views ────────────────────────────────────────

    def evaluate_zone_conflicts(
        self,
        zones: list[DocumentZone],
        page_count: Optional[int] = None,
    ) -> ConflictEvaluation:
        """Zone policy over the current shields. Computed fresh on every call."""
        evaluation = evaluate_zone_conflicts(
            self._state.shields,
            zones,
            critical_types=settings.critical_zone_types,
            warn_threshold=settings.ZONE_OVERLAP_WARN_THRESHOLD,
            block_threshold=settings.ZONE_OVERLAP_BLOCK_THRESHOLD,
            page_count=page_count,
        )
        for conflict in evaluation.conflicts:
            zone_conflicts_total.labels(action_taken=conflict.action_taken).inc()
        return evaluation

    def displayed_shields(
        self,
        zones: list[DocumentZone],
        page_count: Optional[int] = None,
    ) -> list[CleanupShield]:
        return apply_effects(self._state.shields, self.evaluate_zone_conflicts(zones, page_count))

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def is_ready(self) -> bool:
        return self._state.is_ready

    @property
    def is_saving(self) -> bool:
        return self._state.is_saving

    @property
    def is_rerunning(self) -> bool:
        return self._state.is_rerunning

    @property
    def has_error(self) -> bool:
        return self._state.has_error

    @property
    def has_unsaved_changes(self) -> bool:
        return self._state.has_unsaved_changes

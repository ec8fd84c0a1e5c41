"""
Live review sessions, one state machine per case id.
The durability layer's key namespacing assumes no two machines share a case.
"""

from typing import Optional

import structlog

from shield_review.clients.base import ShieldBackend
from shield_review.observability.metrics import review_sessions_active
from shield_review.review.machine import ReviewStateMachine
from shield_review.storage.session_store import SessionOverrideStore

logger = structlog.get_logger(__name__)


class ReviewSessionRegistry:

    def __init__(self, backend: ShieldBackend, store: SessionOverrideStore):
        self.backend = backend
        self.store = store
        self._sessions: dict[str, ReviewStateMachine] = {}

    def open(
        self,
        case_id: str,
        vendor_id: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> ReviewStateMachine:
        """
        Existing session for the case, or a new one seeded from the store.
        Vendor/template ids of an existing session are kept.
        """
        machine = self._sessions.get(case_id)
        if machine is not None:
            return machine

        machine = ReviewStateMachine(
            case_id=case_id,
            backend=self.backend,
            store=self.store,
            vendor_id=vendor_id,
            template_id=template_id,
        )
        self._sessions[case_id] = machine
        review_sessions_active.set(len(self._sessions))
        logger.info(
            "review_session_opened",
            case_id=case_id,
            vendor_id=vendor_id,
            template_id=template_id,
            restored_overrides=len(machine.state.session_overrides),
        )
        return machine

    def get(self, case_id: str) -> Optional[ReviewStateMachine]:
        return self._sessions.get(case_id)

    def close(self, case_id: str) -> bool:
        """
        Discard the in-memory session. The durability snapshot is left alone,
        so unsynced edits come back on the next open.
        """
        machine = self._sessions.pop(case_id, None)
        review_sessions_active.set(len(self._sessions))
        if machine is None:
            return False
        logger.info(
            "review_session_closed",
            case_id=case_id,
            unsynced_overrides=len(machine.state.session_overrides),
        )
        return True

    def __contains__(self, case_id: str) -> bool:
        return case_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

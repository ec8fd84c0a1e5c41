"""
Abstract base class for the resolver / rules-persistence backend.
The review state machine depends on this contract only.
"""

from abc import ABC, abstractmethod
from typing import Optional

from shield_review.schemas.resolver import ResolveRequest, ResolveResponse
from shield_review.schemas.shields import CleanupShield


class ShieldBackend(ABC):
    """
    Everything the review state machine needs from the server side.

    Every implementation must:
    1. Treat resolve() as idempotent and side-effect free
    2. Report any failure as ShieldBackendError with a human-readable message
    3. Never return partial results on failure
    """

    @abstractmethod
    async def resolve(self, request: ResolveRequest) -> ResolveResponse:
        """Merge provenance layers into the effective shield list for a case."""
        ...

    @abstractmethod
    async def save_vendor_rules(self, vendor_id: str, shields: list[CleanupShield]) -> None:
        ...

    @abstractmethod
    async def save_template_rules(
        self,
        template_id: str,
        shields: list[CleanupShield],
        vendor_id: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    async def save_snapshot(self, case_id: str, shields: list[CleanupShield]) -> None:
        """Record the shields a re-extraction should run with."""
        ...

    @abstractmethod
    async def trigger_extraction(self, case_id: str) -> None:
        ...

    async def health_check(self) -> bool:
        """Verify the backend is reachable."""
        return True


class ShieldBackendError(Exception):
    """Raised when a backend operation fails. The message is shown to the user."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(message)

"""
Shared test fixtures.
"""

import asyncio
from typing import Callable, Optional

import pytest

from shield_review.clients.base import ShieldBackend, ShieldBackendError
from shield_review.models.enums import ApplyMode, ShieldType, ZoneType
from shield_review.schemas.resolver import ResolveRequest, ResolveResponse
from shield_review.schemas.shields import CleanupShield, DocumentZone, NormalizedBBox
from shield_review.storage.session_store import MemorySnapshotBackend, SessionOverrideStore


class FakeShieldBackend(ShieldBackend):
    """
    In-memory backend. Records every call; `failures` maps an operation name
    to the error message it should raise; `during` runs inside each call,
    i.e. while the machine is still in the busy state; `delay` seconds are
    slept before each call returns.
    """

    def __init__(self, resolved: Optional[list[CleanupShield]] = None):
        self.resolved = list(resolved or [])
        self.failures: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.during: Optional[Callable[[str], None]] = None
        self.healthy = True
        self.delay = 0.0

    async def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        if self.during is not None:
            self.during(operation)
        if operation in self.failures:
            raise ShieldBackendError(operation, self.failures[operation])
        if self.delay:
            await asyncio.sleep(self.delay)

    def operations(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def resolve(self, request: ResolveRequest) -> ResolveResponse:
        await self._enter("resolve", request)
        return ResolveResponse(resolved_shields=list(self.resolved))

    async def save_vendor_rules(self, vendor_id, shields):
        await self._enter("save_vendor_rules", vendor_id, list(shields))

    async def save_template_rules(self, template_id, shields, vendor_id=None):
        await self._enter("save_template_rules", template_id, list(shields), vendor_id)

    async def save_snapshot(self, case_id, shields):
        await self._enter("save_snapshot", case_id, list(shields))

    async def trigger_extraction(self, case_id):
        await self._enter("trigger_extraction", case_id)

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def make_shield():
    """Factory for shields with a predictable id and geometry."""

    def _make(
        shield_id: str = "s1",
        x: float = 0.1,
        y: float = 0.1,
        width: float = 0.2,
        height: float = 0.2,
        apply_mode: ApplyMode = ApplyMode.APPLIED,
        shield_type: ShieldType = ShieldType.USER_DEFINED,
        **kwargs,
    ) -> CleanupShield:
        return CleanupShield(
            id=shield_id,
            shield_type=shield_type,
            normalized_bbox=NormalizedBBox(x=x, y=y, width=width, height=height),
            apply_mode=apply_mode,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_zone():
    def _make(
        zone_id: str = "z1",
        zone_type: Optional[ZoneType] = ZoneType.TOTALS,
        x: float = 0.0,
        y: float = 0.0,
        width: float = 0.5,
        height: float = 0.5,
        **kwargs,
    ) -> DocumentZone:
        return DocumentZone(
            zone_id=zone_id,
            zone_type=zone_type,
            bbox=NormalizedBBox(x=x, y=y, width=width, height=height),
            **kwargs,
        )

    return _make


@pytest.fixture
def snapshot_backend():
    return MemorySnapshotBackend()


@pytest.fixture
def store(snapshot_backend):
    return SessionOverrideStore(snapshot_backend, key_prefix="cleanup_overrides_")


@pytest.fixture
def backend():
    return FakeShieldBackend()

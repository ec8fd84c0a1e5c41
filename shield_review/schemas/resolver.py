"""
Wire contracts for the resolver and rules-persistence service.
The service merges provenance layers server-side; we only consume its output.
"""

from typing import Optional

from pydantic import BaseModel

from shield_review.schemas.shields import CleanupShield, PrecedenceExplanation, ZoneConflict


class ResolveRequest(BaseModel):
    review_case_id: str
    vendor_id: Optional[str] = None
    template_id: Optional[str] = None
    session_overrides: list[CleanupShield] = []


class ResolveResponse(BaseModel):
    resolved_shields: list[CleanupShield] = []
    precedence_explanations: list[PrecedenceExplanation] = []
    critical_zone_conflicts: list[ZoneConflict] = []
    warnings: list[str] = []


class SaveVendorRulesRequest(BaseModel):
    rules: list[CleanupShield]


class SaveTemplateRulesRequest(BaseModel):
    rules: list[CleanupShield]
    vendor_id: Optional[str] = None


class SaveSnapshotRequest(BaseModel):
    resolved_shields: list[CleanupShield]

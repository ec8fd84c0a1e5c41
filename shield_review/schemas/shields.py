"""
Core shield contracts.
CleanupShield is THE central schema: the resolver returns it, the review
state machine edits it, and the session store persists it.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Iterable, Literal, Optional, Union

from pydantic import BaseModel, Field, PositiveInt, field_validator, model_validator

from shield_review.models.enums import (
    ApplyMode,
    RiskLevel,
    ShieldSource,
    ShieldType,
    ZoneType,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class NormalizedBBox(BaseModel):
    """
    Bounding box, normalised to page dimensions (0.0 to 1.0).

    Components are clamped on construction so the box never leaves the page:
    x, y in [0, 1], x + width <= 1, y + height <= 1.
    """
    x: float
    y: float
    width: float
    height: float

    @model_validator(mode="before")
    @classmethod
    def _clamp_to_page(cls, data):
        if not isinstance(data, dict):
            return data
        values = dict(data)
        for key in ("x", "y", "width", "height"):
            if isinstance(values.get(key), (int, float)):
                values[key] = _clamp01(float(values[key]))
        if isinstance(values.get("width"), float) and isinstance(values.get("x"), float):
            values["width"] = min(values["width"], 1.0 - values["x"])
        if isinstance(values.get("height"), float) and isinstance(values.get("y"), float):
            values["height"] = min(values["height"], 1.0 - values["y"])
        return values

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    def area(self) -> float:
        return self.width * self.height


# ── Page targeting (closed tagged union) ─────────────────────

class AllPages(BaseModel):
    type: Literal["All"] = "All"

    def covers(self, page: int, page_count: int) -> bool:
        return 1 <= page <= page_count


class FirstPage(BaseModel):
    type: Literal["First"] = "First"

    def covers(self, page: int, page_count: int) -> bool:
        return page == 1 and page_count >= 1


class LastPage(BaseModel):
    type: Literal["Last"] = "Last"

    def covers(self, page: int, page_count: int) -> bool:
        return page_count >= 1 and page == page_count


class SpecificPages(BaseModel):
    """Explicit 1-based page numbers, kept sorted and unique."""
    type: Literal["Specific"] = "Specific"
    pages: list[PositiveInt] = Field(min_length=1)

    @field_validator("pages")
    @classmethod
    def _ordered_set(cls, pages: list[int]) -> list[int]:
        return sorted(set(pages))

    def covers(self, page: int, page_count: int) -> bool:
        return page in self.pages and page <= page_count


PageTarget = Annotated[
    Union[AllPages, FirstPage, LastPage, SpecificPages],
    Field(discriminator="type"),
]


class ZoneTarget(BaseModel):
    """
    Which document zones a shield may act in.
    include_zones=None means every zone; the literal "all" is accepted on input.
    """
    include_zones: Optional[list[str]] = None
    exclude_zones: list[str] = []

    @field_validator("include_zones", mode="before")
    @classmethod
    def _all_means_none(cls, value):
        if isinstance(value, str) and value.lower() == "all":
            return None
        return value

    def targets(self, zone_id: str, zone_type: Optional[str] = None) -> bool:
        keys = {zone_id}
        if zone_type:
            keys.add(zone_type)
        if keys & set(self.exclude_zones):
            return False
        if self.include_zones is None:
            return True
        return bool(keys & set(self.include_zones))


class ShieldProvenance(BaseModel):
    """Where a shield came from and who touched it last."""
    source: ShieldSource = ShieldSource.AUTO_DETECTED
    user_id: Optional[str] = None
    vendor_id: Optional[str] = None
    template_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None


class CleanupShield(BaseModel):
    """
    THE CORE CONTRACT.

    Invariants:
    - normalized_bbox is clamped to the page (see NormalizedBBox)
    - a committed shield has positive width and height
    - confidence values are [0.0, 1.0]
    """
    id: str
    shield_type: ShieldType
    normalized_bbox: NormalizedBBox
    page_target: PageTarget = Field(default_factory=AllPages)
    zone_target: ZoneTarget = Field(default_factory=ZoneTarget)
    apply_mode: ApplyMode = ApplyMode.SUGGESTED
    risk_level: RiskLevel = RiskLevel.LOW
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)
    min_confidence: float = Field(ge=0.0, le=1.0, default=0.6)
    why_detected: str = ""
    provenance: ShieldProvenance = Field(default_factory=ShieldProvenance)

    @model_validator(mode="after")
    def _positive_area(self):
        if self.normalized_bbox.width <= 0 or self.normalized_bbox.height <= 0:
            raise ValueError("shield bbox must have positive width and height")
        return self

    @classmethod
    def user_defined(
        cls,
        bbox: NormalizedBBox,
        user_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
        template_id: Optional[str] = None,
        shield_type: ShieldType = ShieldType.USER_DEFINED,
        reason: Optional[str] = None,
    ) -> "CleanupShield":
        """A shield drawn by the reviewer during this session."""
        return cls(
            id=str(uuid.uuid4()),
            shield_type=shield_type,
            normalized_bbox=bbox,
            apply_mode=ApplyMode.APPLIED,
            confidence=1.0,
            min_confidence=0.0,
            why_detected=reason or "User-defined shield",
            provenance=ShieldProvenance(
                source=ShieldSource.SESSION_OVERRIDE,
                user_id=user_id,
                vendor_id=vendor_id,
                template_id=template_id,
            ),
        )

    @classmethod
    def auto_detected(
        cls,
        shield_type: ShieldType,
        bbox: NormalizedBBox,
        confidence: float,
        why_detected: str,
    ) -> "CleanupShield":
        return cls(
            id=str(uuid.uuid4()),
            shield_type=shield_type,
            normalized_bbox=bbox,
            apply_mode=ApplyMode.SUGGESTED,
            confidence=confidence,
            min_confidence=0.6,
            why_detected=why_detected,
        )


class PrecedenceExplanation(BaseModel):
    """Why the resolver picked one provenance layer over others for a shield."""
    shield_id: str
    winning_source: ShieldSource
    overridden_sources: list[ShieldSource] = []
    reason: str = ""


class ZoneConflict(BaseModel):
    """A shield overlapping a document zone beyond the warning threshold."""
    shield_id: str
    zone_id: str
    overlap_ratio: float = Field(ge=0.0, le=1.0)
    action_taken: str
    blocking: bool = False


class DocumentZone(BaseModel):
    """
    A region of the document, e.g. the totals box.
    critical=None defers to the configured critical zone types.
    page=None means the zone exists on every page.
    """
    zone_id: str
    zone_type: Optional[ZoneType] = None
    bbox: NormalizedBBox
    critical: Optional[bool] = None
    page: Optional[PositiveInt] = None

    def is_critical(self, critical_types: Iterable[str]) -> bool:
        if self.critical is not None:
            return self.critical
        if self.zone_type is None:
            return False
        return self.zone_type.value in set(critical_types)

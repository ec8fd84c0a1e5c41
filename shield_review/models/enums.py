"""
Python enums for every closed tag in the shield review data model.
Values MUST match the resolver wire format exactly.
"""

from enum import Enum


class ShieldType(str, Enum):
    LOGO = "Logo"
    WATERMARK = "Watermark"
    REPETITIVE_HEADER = "RepetitiveHeader"
    REPETITIVE_FOOTER = "RepetitiveFooter"
    STAMP = "Stamp"
    USER_DEFINED = "UserDefined"
    VENDOR_SPECIFIC = "VendorSpecific"
    TEMPLATE_SPECIFIC = "TemplateSpecific"


class ApplyMode(str, Enum):
    """Whether a shield masks, hints, or does nothing."""
    APPLIED = "Applied"
    SUGGESTED = "Suggested"
    DISABLED = "Disabled"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ShieldSource(str, Enum):
    """Provenance layer a shield came from, lowest precedence first."""
    AUTO_DETECTED = "AutoDetected"
    VENDOR_RULE = "VendorRule"
    TEMPLATE_RULE = "TemplateRule"
    SESSION_OVERRIDE = "SessionOverride"


class ZoneType(str, Enum):
    LINE_ITEMS = "LineItems"
    TOTALS = "Totals"
    HEADER = "Header"
    FOOTER = "Footer"
    BARCODE = "Barcode"
    LOGO = "Logo"


class ReviewStateType(str, Enum):
    """States of the review state machine."""
    LOADING_CASE = "loading_case"
    READY = "ready"
    SAVING_RULES_VENDOR = "saving_rules_vendor"
    SAVING_RULES_TEMPLATE = "saving_rules_template"
    RERUNNING_EXTRACTION = "rerunning_extraction"
    ERROR_NONBLOCKING = "error_nonblocking"


class PendingAction(str, Enum):
    """Operation that was in flight when a session snapshot was written."""
    SAVE_VENDOR = "save_vendor"
    SAVE_TEMPLATE = "save_template"
    RERUN = "rerun"


class ConflictAction(str, Enum):
    WARNING_ADDED = "warning_added"
    ELEVATED_RISK = "elevated_risk"
    DOWNGRADED_TO_SUGGESTED = "downgraded_to_suggested"


# States that represent a network operation in flight
OPERATION_STATES = frozenset({
    ReviewStateType.LOADING_CASE,
    ReviewStateType.SAVING_RULES_VENDOR,
    ReviewStateType.SAVING_RULES_TEMPLATE,
    ReviewStateType.RERUNNING_EXTRACTION,
})

# Operations whose success means the overrides are durable upstream
SYNC_STATES = frozenset({
    ReviewStateType.SAVING_RULES_VENDOR,
    ReviewStateType.SAVING_RULES_TEMPLATE,
    ReviewStateType.RERUNNING_EXTRACTION,
})

PENDING_ACTION_BY_STATE = {
    ReviewStateType.SAVING_RULES_VENDOR: PendingAction.SAVE_VENDOR,
    ReviewStateType.SAVING_RULES_TEMPLATE: PendingAction.SAVE_TEMPLATE,
    ReviewStateType.RERUNNING_EXTRACTION: PendingAction.RERUN,
}

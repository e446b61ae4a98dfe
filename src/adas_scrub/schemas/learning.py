"""Pydantic schemas for shop-taught learning rules and their audit events."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from adas_scrub.schemas.calibration import ScrubResult


class LearningAction(str, Enum):
    """What a taught rule does to matching results."""

    ADD = "add"
    SUPPRESS = "suppress"


class ReviewStatus(str, Enum):
    """Human review state of a learning event. Transitions are one-way."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LearningRule(BaseModel):
    """A shop-scoped ADD/SUPPRESS association for a vehicle range."""

    id: str
    shop_id: str
    action: LearningAction
    make: str
    model: str
    year_start: int
    year_end: int
    keyword: str
    system_name: str
    calibration_type: Optional[str] = None
    reason: str = ""
    confidence_weight: float = Field(0.8, ge=0.1, le=1.0)
    usage_count: int = 0
    correction_count: int = 1
    created_at: str
    updated_at: str
    last_applied_at: Optional[str] = None
    last_edited_by: Optional[str] = None


class LearningEvent(BaseModel):
    """Audit record of one taught correction."""

    id: str
    shop_id: str
    created_at: str
    action: LearningAction
    rule_id: str = ""
    make: str
    model: str
    year_start: int
    year_end: int
    keyword: str
    system_name: str
    calibration_type: Optional[str] = None
    reason: str = ""
    confidence_weight: float = 0.8
    report_id: Optional[str] = None
    estimate_reference: Optional[str] = None
    vehicle_vin: Optional[str] = None
    trigger_lines: List[int] = Field(default_factory=list)
    trigger_descriptions: List[str] = Field(default_factory=list)
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_email: Optional[str] = None
    review_status: ReviewStatus = ReviewStatus.PENDING
    reviewed_at: Optional[str] = None


class LearningApplication(BaseModel):
    """Result of applying learned rules to a scrub result set."""

    results: List[ScrubResult] = Field(default_factory=list)
    applied_rule_ids: List[str] = Field(default_factory=list)

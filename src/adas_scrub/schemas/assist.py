"""Schemas for the optional external text-understanding assist.

Assist output is untrusted. Every field is cleaned and clamped by
``adas_scrub.assist.extractor`` before one of these models is built.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DocumentType(str, Enum):
    """Assist classification of the uploaded document."""

    ESTIMATE = "estimate"
    ADAS_REPORT = "adas_report"
    UNKNOWN = "unknown"


class AssistOperation(BaseModel):
    """Estimate operation recognized by the assist."""

    line_number: Optional[int] = Field(None, ge=1, le=999)
    op_code: str
    component: str
    raw_text: Optional[str] = None


class AssistVehicle(BaseModel):
    vin: Optional[str] = None
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None


class AssistMetadata(BaseModel):
    shop_name: Optional[str] = None
    ro_number: Optional[str] = None
    po_number: Optional[str] = None
    claim_number: Optional[str] = None
    policy_number: Optional[str] = None
    customer_name: Optional[str] = None
    estimator_name: Optional[str] = None
    adjuster_name: Optional[str] = None
    loss_date: Optional[str] = None
    create_date: Optional[str] = None


class AssistExtraction(BaseModel):
    """Normalized assist response."""

    model: str
    document_type: DocumentType = DocumentType.UNKNOWN
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    vehicle: AssistVehicle = Field(default_factory=AssistVehicle)
    metadata: AssistMetadata = Field(default_factory=AssistMetadata)
    operations: List[AssistOperation] = Field(default_factory=list)

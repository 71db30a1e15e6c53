from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum
import uuid


# Field names shared by every extraction strategy
BUNDLE_FIELDS = (
    "vendor",
    "contract_title",
    "doc_type",
    "effective_date",
    "termination_date",
)

BASELINE_CONFIDENCE = 0.3


class AnalysisStatus(str, Enum):
    """Lifecycle states of an analysis record."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Allowed forward moves; anything else is a regression or a repeat
STATUS_TRANSITIONS = {
    AnalysisStatus.PENDING: {AnalysisStatus.PROCESSING},
    AnalysisStatus.PROCESSING: {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED},
    AnalysisStatus.COMPLETED: set(),
    AnalysisStatus.FAILED: set(),
}


def can_transition(current: AnalysisStatus, requested: AnalysisStatus) -> bool:
    return requested in STATUS_TRANSITIONS[current]


class ContractDocType(str, Enum):
    """Document types the rule-based extractor can assign."""
    SERVICE_AGREEMENT = "SERVICE_AGREEMENT"
    NDA = "NDA"
    EMPLOYMENT = "EMPLOYMENT"
    LEASE = "LEASE"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    STATEMENT_OF_WORK = "STATEMENT_OF_WORK"
    LICENSE = "LICENSE"
    SUBSCRIPTION_AGREEMENT = "SUBSCRIPTION_AGREEMENT"
    MSA = "MSA"


class ExtractionStrategy(str, Enum):
    """Which extractor produced a field bundle."""
    AI = "ai"
    RULE_BASED = "rule_based"


def clamp_confidence(value: Any, default: float = 0.0) -> float:
    """Coerce a confidence score into [0, 1]."""
    if isinstance(value, bool):
        return default
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score:  # NaN
        return default
    return min(1.0, max(0.0, score))


class FieldBundle(BaseModel):
    """Extracted contract fields plus a parallel confidence map."""
    vendor: Optional[str] = None
    contract_title: Optional[str] = None
    doc_type: Optional[str] = None
    effective_date: Optional[str] = None
    termination_date: Optional[str] = None
    confidence: Dict[str, float] = Field(default_factory=dict)
    strategy: ExtractionStrategy
    raw: Any = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_scores(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            return {}
        return {str(name): clamp_confidence(score) for name, score in value.items()}

    def fields(self) -> Dict[str, Optional[str]]:
        """Return the extracted values keyed by field name."""
        return {name: getattr(self, name) for name in BUNDLE_FIELDS}


class AnalysisRecord(BaseModel):
    """One extraction request and its outcome."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    tenant_id: str
    user_id: Optional[str] = None
    status: AnalysisStatus = AnalysisStatus.PENDING
    vendor: Optional[str] = None
    contract_title: Optional[str] = None
    doc_type: Optional[str] = None
    effective_date: Optional[str] = None
    termination_date: Optional[str] = None
    confidence: Dict[str, float] = Field(default_factory=dict)
    suggested_contract_id: Optional[str] = None
    error: Optional[str] = None
    raw_result: Any = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_scores(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            return {}
        return {str(name): clamp_confidence(score) for name, score in value.items()}


class SubmitResponse(BaseModel):
    """Response returned as soon as an analysis is queued."""
    id: str
    status: AnalysisStatus
    document_id: str


class AnalysisView(BaseModel):
    """Caller-facing view of an analysis record."""
    id: str
    document_id: str
    status: AnalysisStatus
    vendor: Optional[str] = None
    contract_title: Optional[str] = None
    doc_type: Optional[str] = None
    effective_date: Optional[str] = None
    termination_date: Optional[str] = None
    confidence: Dict[str, float] = Field(default_factory=dict)
    suggested_contract_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "AnalysisView":
        return cls(**record.model_dump(exclude={"raw_result", "tenant_id", "user_id"}))

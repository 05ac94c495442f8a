"""Pydantic schemas for API request/response validation"""

import math
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from smartloan_core.domain.models import (
    ApplicationValidationResult,
    IdentityRecord,
    IncomeRecord,
    LoanOffer,
    ValidationOutcome,
)


def _json_safe(value: Any) -> Any:
    """Infinite DSR sentinels have no JSON form; they are sent as null"""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


class IdentityExtractionRequest(BaseModel):
    """Request body for POST /v1/extract/identity"""

    front_text: str = Field("", description="Inference answer for the front of the ID card")
    back_text: str = Field("", description="Inference answer for the back of the ID card")


class IncomeExtractionRequest(BaseModel):
    """Request body for POST /v1/extract/income"""

    text: str = Field(..., description="Inference answer for one payslip")


class IdentitySchema(BaseModel):
    full_name: str = ""
    id_number: str = ""
    date_of_birth: str = ""
    expiry_date: str = ""
    place_of_birth: str = ""
    confidence: float = Field(0.0, ge=0, le=1)
    is_valid: bool = False

    @classmethod
    def from_record(cls, record: IdentityRecord) -> "IdentitySchema":
        data = asdict(record)
        data.pop("captured_at")
        return cls(**data)

    def to_record(self) -> IdentityRecord:
        return IdentityRecord(**self.model_dump())


class IncomeSchema(BaseModel):
    employee_name: str = ""
    employer_name: str = ""
    gross_salary: float = 0.0
    net_salary: float = 0.0
    pay_period: str = ""
    deductions: Dict[str, float] = Field(default_factory=dict)
    allowances: Dict[str, float] = Field(default_factory=dict)
    confidence: float = Field(0.0, ge=0, le=1)
    is_valid: bool = False

    @classmethod
    def from_record(cls, record: IncomeRecord) -> "IncomeSchema":
        data = asdict(record)
        data.pop("captured_at")
        return cls(**data)

    def to_record(self) -> IncomeRecord:
        return IncomeRecord(**self.model_dump())


class ApplicationRequest(BaseModel):
    """Request body for POST /v1/validate and POST /v1/offer/options"""

    identity: IdentitySchema
    income_records: List[IncomeSchema] = Field(default_factory=list)
    requested_amount: float = Field(0.0, ge=0, description="0 lets the policy choose a conservative amount")


class OfferRequest(ApplicationRequest):
    """Request body for POST /v1/offer"""

    preferred_term: int = Field(0, ge=0, description="Months; 0 or an unavailable term uses the default")


class OutcomeSchema(BaseModel):
    rule_name: str
    is_valid: bool
    error_message: Optional[str] = None
    warning_message: Optional[str] = None
    confidence: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_outcome(cls, outcome: ValidationOutcome) -> "OutcomeSchema":
        data = asdict(outcome)
        data["metadata"] = _json_safe(data["metadata"])
        return cls(**data)


class ValidationResponse(BaseModel):
    """Response for POST /v1/validate"""

    is_eligible: bool
    failed_rules: List[str]
    warning_rules: List[str]
    overall_confidence: float
    outcomes: List[OutcomeSchema]
    issues: List[str] = Field(default_factory=list, description="Points worth a manual review")
    summary: str = ""

    @classmethod
    def from_result(cls, result: ApplicationValidationResult, issues: List[str]) -> "ValidationResponse":
        return cls(
            is_eligible=result.is_eligible,
            failed_rules=list(result.failed_rules),
            warning_rules=list(result.warning_rules),
            overall_confidence=result.overall_confidence,
            outcomes=[OutcomeSchema.from_outcome(o) for o in result.outcomes],
            issues=issues,
            summary=result.summary(),
        )


class OfferSchema(BaseModel):
    max_loan_amount: float
    recommended_amount: float
    interest_rate: float
    term_months: int
    monthly_payment: float
    total_repayment: float
    total_interest: float
    processing_fee: float
    dsr: Optional[float] = Field(..., description="Percent; null when there is no income to measure against")
    valid_until: datetime
    conditions: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_offer(cls, offer: LoanOffer) -> "OfferSchema":
        data = asdict(offer)
        data["conditions"] = list(offer.conditions)
        data["warnings"] = list(offer.warnings)
        data["dsr"] = _json_safe(offer.dsr)
        data["metadata"] = _json_safe(data["metadata"])
        return cls(**data)

    def to_offer(self) -> LoanOffer:
        data = self.model_dump()
        data["conditions"] = tuple(self.conditions)
        data["warnings"] = tuple(self.warnings)
        if data["dsr"] is None:
            data["dsr"] = float("inf")
        return LoanOffer(**data)


class OfferResponse(BaseModel):
    """Response for POST /v1/offer and POST /v1/offer/recalculate; offer is null when none can be made"""

    offer: Optional[OfferSchema] = None
    reason: Optional[str] = None


class OfferOptionsResponse(BaseModel):
    """Response for POST /v1/offer/options"""

    offers: List[OfferSchema]


class RecalculateRequest(BaseModel):
    """Request body for POST /v1/offer/recalculate"""

    offer: OfferSchema
    new_amount: float
    income_records: List[IncomeSchema] = Field(default_factory=list)


class AffordabilityRequest(BaseModel):
    """Request body for POST /v1/affordability"""

    income_records: List[IncomeSchema]


class AffordabilityResponse(BaseModel):
    max_affordable_loan: float

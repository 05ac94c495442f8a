"""Lending policy schema - validated, immutable view of policy_rules.json"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

# Rate applied to terms missing from the interest-rate table
FALLBACK_INTEREST_RATE = 0.15

# Keys of the validationRules block, one per business rule
PAYSLIP_RECENCY = "payslipRecency"
PAYSLIP_COUNT = "payslipCount"
NAME_CONSISTENCY = "nameConsistency"
RETIREMENT_AGE = "retirementAge"
DATA_QUALITY = "dataQuality"
AFFORDABILITY = "affordability"


class _PolicyModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class LendingPolicy(_PolicyModel):
    """Core lending parameters"""

    max_dsr: float = Field(..., alias="maxDSR", gt=0, le=1)
    min_age: int = Field(..., alias="minAge", ge=0)
    max_age: int = Field(..., alias="maxAge", gt=0)
    min_salary: float = Field(..., alias="minSalary", ge=0)
    max_loan_amount: float = Field(..., alias="maxLoanAmount", gt=0)
    default_interest_rate: float = Field(..., alias="defaultInterestRate", ge=0)
    default_term_months: int = Field(..., alias="defaultTermMonths", gt=0)
    payslip_recency_months: int = Field(..., alias="payslipRecencyMonths", ge=0)
    min_extraction_confidence: float = Field(..., alias="minExtractionConfidence", ge=0, le=1)
    conservative_offer_ratio: float = Field(..., alias="conservativeOfferRatio", gt=0, le=1)
    processing_fee_rate: float = Field(0.02, alias="processingFeeRate", ge=0)
    min_processing_fee: float = Field(1000.0, alias="minProcessingFee", ge=0)
    max_processing_fee: float = Field(5000.0, alias="maxProcessingFee", ge=0)


class RuleConfig(_PolicyModel):
    """Per-rule switches, ordering, message and optional parameters"""

    enabled: bool = True
    priority: int = 100
    error_message: str = Field("", alias="errorMessage")

    max_age_months: Optional[int] = Field(None, alias="maxAgeMonths")
    fuzzy_match_threshold: Optional[float] = Field(None, alias="fuzzyMatchThreshold")
    max_age: Optional[int] = Field(None, alias="maxAge")
    min_age: Optional[int] = Field(None, alias="minAge")
    min_confidence: Optional[float] = Field(None, alias="minConfidence")
    max_dsr: Optional[float] = Field(None, alias="maxDSR")
    min_salary: Optional[float] = Field(None, alias="minSalary")
    min_payslips: Optional[int] = Field(None, alias="minPayslips")


class LoanTermsConfig(_PolicyModel):
    """Offered repayment terms and their annual interest rates"""

    available_terms: List[int] = Field(..., alias="availableTerms")
    default_term: int = Field(..., alias="defaultTerm", gt=0)
    interest_rates: Dict[str, float] = Field(default_factory=dict, alias="interestRates")

    def interest_rate_for(self, term_months: int) -> float:
        return self.interest_rates.get(str(term_months), FALLBACK_INTEREST_RATE)


class PolicyConfiguration(_PolicyModel):
    """Complete lending policy, loaded once per process"""

    lending_policy: LendingPolicy = Field(..., alias="lendingPolicy")
    validation_rules: Dict[str, RuleConfig] = Field(default_factory=dict, alias="validationRules")
    loan_terms: LoanTermsConfig = Field(..., alias="loanTerms")
    error_messages: Dict[str, str] = Field(default_factory=dict, alias="errorMessages")

    def rule_config(self, key: str) -> Optional[RuleConfig]:
        return self.validation_rules.get(key)

    def message_template(self, key: str, default: str) -> str:
        """Rule errorMessage, then errorMessages[key], then the built-in default"""
        config = self.validation_rules.get(key)
        if config is not None and config.error_message:
            return config.error_message
        return self.error_messages.get(key) or default

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PolicyConfiguration":
        return cls.model_validate(dict(data))

"""Business rules - independent eligibility checks configured by the lending policy"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from smartloan_core.domain import affordability
from smartloan_core.domain.models import ApplicationDataset, IncomeRecord, ValidationOutcome
from smartloan_core.domain.names import name_similarity
from smartloan_core.domain.policy import (
    AFFORDABILITY,
    DATA_QUALITY,
    NAME_CONSISTENCY,
    PAYSLIP_COUNT,
    PAYSLIP_RECENCY,
    RETIREMENT_AGE,
    LendingPolicy,
    PolicyConfiguration,
    RuleConfig,
)
from smartloan_core.utils.date_utils import add_months, parse_date, parse_year_month, years_between

logger = logging.getLogger(__name__)

DEFAULT_MIN_PAYSLIPS = 3
DEFAULT_NAME_THRESHOLD = 0.8

# Affordable applications above this DSR (percent) carry a warning
DSR_WARNING_PERCENT = 40.0


@dataclass(frozen=True)
class RuleContext:
    """Per-run inputs every rule may read besides the dataset"""

    requested_amount: float = 0.0
    as_of: date = field(default_factory=date.today)


class _TemplateFields(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def render_message(template: str, fields: Optional[Mapping[str, Any]] = None, details: str = "") -> str:
    """
    Fill {placeholders} in a policy message and append run details.

    Unknown placeholders are left as written; a template that cannot be
    formatted at all is used verbatim.
    """
    try:
        message = template.format_map(_TemplateFields(fields or {}))
    except (ValueError, IndexError, KeyError, AttributeError, TypeError):
        message = template

    if details:
        return f"{message}. {details}" if message else details
    return message


def _percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def max_affordable_loan(income_records: Sequence[IncomeRecord], lending: LendingPolicy) -> float:
    """
    Largest amount the records' average gross salary supports at the policy
    DSR ceiling, default rate and default term.
    """
    if not income_records:
        return 0.0

    return affordability.max_loan_amount(
        gross_salary=affordability.average_gross_salary(income_records),
        existing_deductions=affordability.average_deductions(income_records),
        max_dsr_percent=lending.max_dsr * 100,
        annual_rate=lending.default_interest_rate,
        months=lending.default_term_months,
    )


def default_loan_amount(income_records: Sequence[IncomeRecord], lending: LendingPolicy) -> float:
    """Conservative share of the maximum, used when no amount was requested"""
    return max_affordable_loan(income_records, lending) * lending.conservative_offer_ratio


class BusinessRule:
    """
    Base class for eligibility rules.

    Every rule receives the whole ApplicationDataset and projects the part
    it checks. validate() may raise; the engine turns that into a failure.
    """

    key = ""
    name = ""
    description = ""
    default_message = ""

    def __init__(self, config: RuleConfig, policy: PolicyConfiguration):
        self.config = config
        self.policy = policy
        self.lending = policy.lending_policy

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def message(self, details: str = "", **fields) -> str:
        template = self.policy.message_template(self.key, self.default_message)
        return render_message(template, fields, details)

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        raise NotImplementedError


class PayslipRecencyRule(BusinessRule):
    key = PAYSLIP_RECENCY
    name = "PayslipRecency"
    description = "Validates income documents are within the required timeframe"
    default_message = "Payslips must be from the last {max_age_months} months"

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        max_age_months = self.config.max_age_months
        if max_age_months is None:
            max_age_months = self.lending.payslip_recency_months
        cutoff = add_months(context.as_of, -max_age_months)
        logger.debug("Checking income document recency", extra={"cutoff": cutoff.isoformat()})

        # Blank or unparsable periods count as violations
        outdated = []
        for record in dataset.income_records:
            period = parse_year_month(record.pay_period)
            if period is None or period < cutoff:
                outdated.append(record.pay_period or "<missing>")

        if not outdated:
            return ValidationOutcome.success(
                metadata={"validated_payslips": len(dataset.income_records), "cutoff": cutoff.isoformat()}
            )

        return ValidationOutcome.failure(
            self.message(f"Found payslips from: {', '.join(outdated)}", max_age_months=max_age_months),
            metadata={"old_payslips": outdated, "cutoff": cutoff.isoformat()},
        )


class PayslipCountRule(BusinessRule):
    key = PAYSLIP_COUNT
    name = "PayslipCount"
    description = "Validates sufficient income documents for a reliable income assessment"
    default_message = "Insufficient payslips provided"

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        required = self.config.min_payslips if self.config.min_payslips is not None else DEFAULT_MIN_PAYSLIPS
        valid = dataset.valid_income_records()
        provided = len(valid)

        if provided < required:
            return ValidationOutcome.failure(
                self.message(
                    f"Provided: {provided} payslips, Required: {required} for accurate income assessment",
                    min_payslips=required,
                    provided=provided,
                ),
                metadata={"payslip_count": provided, "required_count": required, "missing_count": required - provided},
            )

        metadata = {
            "payslip_count": provided,
            "required_count": required,
            "payslip_periods": [r.pay_period for r in valid],
        }
        unusable = len(dataset.income_records) - provided
        if unusable:
            return ValidationOutcome.warning(
                f"{unusable} of {len(dataset.income_records)} income documents could not be used",
                metadata=metadata,
            )
        return ValidationOutcome.success(metadata=metadata)


class NameConsistencyRule(BusinessRule):
    key = NAME_CONSISTENCY
    name = "NameConsistency"
    description = "Validates the identity name matches the income document names"
    default_message = "Name on ID does not match payslip"

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        threshold = self.config.fuzzy_match_threshold
        if threshold is None:
            threshold = DEFAULT_NAME_THRESHOLD

        id_name = dataset.identity.full_name.strip()
        if not id_name:
            return ValidationOutcome.failure("ID name is missing or empty")

        records = [r for r in dataset.valid_income_records() if r.employee_name.strip()]
        if not records:
            return ValidationOutcome.failure("No valid employee names found in income documents")

        scores = [name_similarity(id_name, r.employee_name) for r in records]
        mismatches = [(r.employee_name, s) for r, s in zip(records, scores) if s < threshold]

        average = sum(scores) / len(scores)
        metadata: Dict[str, Any] = {"similarity_scores": scores, "average_similarity": average}

        if mismatches:
            listed = ", ".join(f"'{name}' ({score:.2f})" for name, score in mismatches)
            return ValidationOutcome.failure(
                self.message(f"ID: '{id_name}', Payslips: {listed}", threshold=threshold),
                confidence=average,
                metadata={**metadata, "mismatched_names": [name for name, _ in mismatches]},
            )

        if average < 1.0:
            return ValidationOutcome.warning(
                f"Names match only partially (average similarity {_percent(average)})",
                confidence=average,
                metadata=metadata,
            )
        return ValidationOutcome.success(confidence=average, metadata=metadata)


class RetirementAgeRule(BusinessRule):
    key = RETIREMENT_AGE
    name = "RetirementAge"
    description = "Validates applicant age is within lending limits for the whole loan term"
    default_message = "Applicant would exceed the maximum age of {max_age} before the loan is repaid"

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        raw_dob = dataset.identity.date_of_birth.strip()
        if not raw_dob:
            return ValidationOutcome.failure("Date of birth is missing from ID")

        born = parse_date(raw_dob)
        if born is None:
            return ValidationOutcome.failure(f"Invalid date of birth format: {raw_dob}")

        min_age = self.config.min_age if self.config.min_age is not None else self.lending.min_age
        max_age = self.config.max_age if self.config.max_age is not None else self.lending.max_age

        age = years_between(born, context.as_of)
        loan_end = add_months(context.as_of, self.lending.default_term_months)
        age_at_loan_end = years_between(born, loan_end)

        if age < min_age:
            return ValidationOutcome.failure(
                f"Applicant age ({age}) is below minimum age ({min_age})",
                metadata={"current_age": age, "min_age": min_age},
            )

        if age_at_loan_end > max_age:
            return ValidationOutcome.failure(
                self.message(
                    f"Current age: {age}, Age at loan completion: {age_at_loan_end}",
                    max_age=max_age,
                    min_age=min_age,
                ),
                metadata={"current_age": age, "age_at_loan_end": age_at_loan_end, "max_allowed_age": max_age},
            )

        return ValidationOutcome.success(metadata={"age": age, "age_at_loan_end": age_at_loan_end})


class DataQualityRule(BusinessRule):
    key = DATA_QUALITY
    name = "DataQuality"
    description = "Validates extraction confidence meets minimum requirements"
    default_message = "Document extraction quality is too low"

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        min_confidence = self.config.min_confidence
        if min_confidence is None:
            min_confidence = self.lending.min_extraction_confidence
        overall = dataset.overall_confidence

        low = []
        if dataset.identity.confidence < min_confidence:
            low.append(f"ID Card ({_percent(dataset.identity.confidence)})")
        for index, record in enumerate(dataset.income_records, start=1):
            if record.confidence < min_confidence:
                low.append(f"Payslip {index} ({_percent(record.confidence)})")

        if low or overall < min_confidence:
            details = f"Overall confidence: {_percent(overall)}, Required: {_percent(min_confidence)}"
            if low:
                details += f", Low confidence: {', '.join(low)}"
            return ValidationOutcome.failure(
                self.message(details, min_confidence=min_confidence),
                confidence=overall,
                metadata={
                    "low_confidence_fields": low,
                    "overall_confidence": overall,
                    "required_confidence": min_confidence,
                },
            )

        concerns = []
        if dataset.identity.is_expired(context.as_of):
            concerns.append("ID card appears to be expired")
        for index, record in enumerate(dataset.income_records, start=1):
            if record.is_valid and not record.is_net_salary_consistent():
                concerns.append(f"Payslip {index}: net salary does not match gross, allowances and deductions")

        metadata = {"overall_confidence": overall}
        if concerns:
            return ValidationOutcome.warning("; ".join(concerns), confidence=overall, metadata=metadata)
        return ValidationOutcome.success(confidence=overall, metadata=metadata)


class AffordabilityRule(BusinessRule):
    key = AFFORDABILITY
    name = "Affordability"
    description = "Validates income sufficiency and DSR limits"
    default_message = "Loan repayments would exceed the affordable debt service ratio"

    def validate(self, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        return self.check(dataset.valid_income_records(), context.requested_amount)

    def check(self, income_records: Sequence[IncomeRecord], requested_amount: float) -> ValidationOutcome:
        min_salary = self.config.min_salary if self.config.min_salary is not None else self.lending.min_salary
        max_dsr = self.config.max_dsr if self.config.max_dsr is not None else self.lending.max_dsr

        if not income_records:
            return ValidationOutcome.failure("No valid income data available for affordability assessment")

        average_gross = affordability.average_gross_salary(income_records)
        if average_gross < min_salary:
            return ValidationOutcome.failure(
                f"Average salary ({average_gross:.0f}) is below minimum requirement ({min_salary:.0f})",
                metadata={"average_salary": average_gross, "min_salary": min_salary},
            )

        amount = requested_amount if requested_amount > 0 else default_loan_amount(income_records, self.lending)
        result = affordability.assess_affordability(
            gross_salary=average_gross,
            existing_deductions=affordability.average_deductions(income_records),
            proposed_amount=amount,
            annual_rate=self.lending.default_interest_rate,
            months=self.lending.default_term_months,
            max_dsr_percent=max_dsr * 100,
        )
        metadata = {
            "loan_amount": amount,
            "dsr": result.dsr,
            "monthly_payment": result.monthly_payment,
            "max_affordable": result.max_affordable_amount,
        }

        if not result.is_affordable:
            return ValidationOutcome.failure(
                self.message(
                    f"DSR: {result.dsr:.1f}%, Max allowed: {max_dsr * 100:.1f}%",
                    max_dsr=max_dsr,
                ),
                metadata={**metadata, "max_dsr": max_dsr * 100, "excess_amount": result.excess_amount},
            )

        if result.dsr > DSR_WARNING_PERCENT:
            return ValidationOutcome.warning(
                f"DSR of {result.dsr:.1f}% is close to the {max_dsr * 100:.1f}% limit",
                metadata=metadata,
            )
        return ValidationOutcome.success(metadata=metadata)


RULE_TYPES: List[Type[BusinessRule]] = [
    PayslipRecencyRule,
    PayslipCountRule,
    NameConsistencyRule,
    RetirementAgeRule,
    DataQualityRule,
    AffordabilityRule,
]


def build_rules(policy: PolicyConfiguration) -> List[BusinessRule]:
    """Instantiate every rule the policy configures and enables, lowest priority first"""
    rules = []
    for rule_type in RULE_TYPES:
        config = policy.rule_config(rule_type.key)
        if config is None or not config.enabled:
            continue
        rules.append(rule_type(config, policy))
    # sorted() is stable: equal priorities keep declaration order
    return sorted(rules, key=lambda rule: rule.priority)

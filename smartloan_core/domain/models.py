"""Domain models - immutable dataclasses representing loan application entities"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from smartloan_core.domain.names import name_similarity
from smartloan_core.utils.date_utils import MONTH_NAMES, parse_date, parse_year_month, years_between

# Records must score strictly above this to be marked valid when no policy value is supplied
DEFAULT_MIN_CONFIDENCE = 0.7

# Oldest pay period year accepted as plausible
EARLIEST_PAY_PERIOD_YEAR = 2020

ID_NUMBER_LENGTH = 8


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IdentityRecord:
    """Fields read from the front/back of a national identity card"""

    full_name: str = ""
    id_number: str = ""
    date_of_birth: str = ""
    expiry_date: str = ""
    place_of_birth: str = ""
    confidence: float = 0.0
    is_valid: bool = False
    captured_at: datetime = field(default_factory=_utc_now)

    def validate(self, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> "IdentityRecord":
        """
        Return a copy with is_valid recomputed.

        Valid when the name has at least two characters, the id number is
        exactly eight digits and the confidence exceeds min_confidence.
        """
        name_ok = len(self.full_name.strip()) >= 2
        id_ok = self.id_number.isdigit() and len(self.id_number) == ID_NUMBER_LENGTH
        return replace(self, is_valid=name_ok and id_ok and self.confidence > min_confidence)

    def is_blank(self) -> bool:
        return not any(
            value.strip()
            for value in (
                self.full_name,
                self.id_number,
                self.date_of_birth,
                self.expiry_date,
                self.place_of_birth,
            )
        )

    def age(self, as_of: Optional[date] = None) -> Optional[int]:
        born = parse_date(self.date_of_birth)
        if born is None:
            return None
        return years_between(born, as_of or date.today())

    def is_expired(self, as_of: Optional[date] = None) -> bool:
        """Blank or unreadable expiry dates are not treated as expired"""
        expiry = parse_date(self.expiry_date)
        if expiry is None:
            return False
        return expiry < (as_of or date.today())


@dataclass(frozen=True)
class IncomeRecord:
    """Fields read from one monthly payslip"""

    employee_name: str = ""
    employer_name: str = ""
    gross_salary: float = 0.0
    net_salary: float = 0.0
    pay_period: str = ""  # "YYYY-MM"
    deductions: Dict[str, float] = field(default_factory=dict)
    allowances: Dict[str, float] = field(default_factory=dict)
    confidence: float = 0.0
    is_valid: bool = False
    captured_at: datetime = field(default_factory=_utc_now)

    def validate(
        self,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        as_of: Optional[date] = None,
    ) -> "IncomeRecord":
        """
        Return a copy with is_valid recomputed.

        Requirements:
        - employee and employer names present
        - 0 < net <= gross
        - pay period is YYYY-MM with a year between 2020 and next year
        - confidence exceeds min_confidence
        """
        names_ok = bool(self.employee_name.strip()) and bool(self.employer_name.strip())
        salary_ok = self.gross_salary > 0 and 0 < self.net_salary <= self.gross_salary
        period_ok = self._period_is_plausible(as_of or date.today())
        return replace(
            self,
            is_valid=names_ok and salary_ok and period_ok and self.confidence > min_confidence,
        )

    def _period_is_plausible(self, as_of: date) -> bool:
        period = parse_year_month(self.pay_period)
        if period is None:
            return False
        return EARLIEST_PAY_PERIOD_YEAR <= period.year <= as_of.year + 1

    def total_deductions(self) -> float:
        return sum(self.deductions.values())

    def total_allowances(self) -> float:
        return sum(self.allowances.values())

    def calculated_net_salary(self) -> float:
        """Net salary implied by gross, allowances and deductions"""
        return self.gross_salary + self.total_allowances() - self.total_deductions()

    def is_net_salary_consistent(self, tolerance: float = 1000.0) -> bool:
        return abs(self.net_salary - self.calculated_net_salary()) <= tolerance

    def formatted_pay_period(self) -> str:
        """Display form of the pay period, e.g. "January 2024"; unparsable values pass through"""
        period = parse_year_month(self.pay_period)
        if period is None:
            return self.pay_period
        return f"{MONTH_NAMES[period.month - 1]} {period.year}"


@dataclass(frozen=True)
class ApplicationDataset:
    """One identity record plus the income records captured for an application"""

    identity: IdentityRecord = field(default_factory=IdentityRecord)
    income_records: Tuple[IncomeRecord, ...] = ()
    overall_confidence: float = 0.0
    is_complete: bool = False

    @classmethod
    def assemble(
        cls,
        identity: IdentityRecord,
        income_records: Iterable[IncomeRecord] = (),
    ) -> "ApplicationDataset":
        """
        Build a dataset with its derived fields computed.

        overall_confidence averages the identity confidence (0 when invalid)
        with the mean confidence of valid income records; with no valid
        income records it is the identity figure alone.
        """
        records = tuple(income_records)
        id_confidence = identity.confidence if identity.is_valid else 0.0
        income_confidences = [r.confidence for r in records if r.is_valid]

        if income_confidences:
            overall = (id_confidence + sum(income_confidences) / len(income_confidences)) / 2.0
        else:
            overall = id_confidence

        return cls(
            identity=identity,
            income_records=records,
            overall_confidence=overall,
            is_complete=identity.is_valid and any(r.is_valid for r in records),
        )

    def valid_income_records(self) -> List[IncomeRecord]:
        return [r for r in self.income_records if r.is_valid]

    def average_monthly_income(self) -> float:
        """Mean net salary over valid income records"""
        nets = [r.net_salary for r in self.valid_income_records() if r.net_salary > 0]
        return sum(nets) / len(nets) if nets else 0.0

    def most_recent_income(self) -> Optional[IncomeRecord]:
        valid = self.valid_income_records()
        return max(valid, key=lambda r: r.pay_period) if valid else None

    def is_name_consistent(self, threshold: float = 0.8) -> bool:
        """True when at least one valid income record's name matches the ID name"""
        if not self.identity.is_valid or not self.income_records:
            return True
        return any(
            name_similarity(self.identity.full_name, r.employee_name) >= threshold
            for r in self.valid_income_records()
        )

    def validation_issues(self, min_confidence: float = 0.8, as_of: Optional[date] = None) -> List[str]:
        """Human-readable issues worth a manual review before rules are run"""
        issues = []

        if not self.identity.is_valid:
            issues.append("ID card data incomplete or low confidence")

        if self.identity.is_expired(as_of):
            issues.append("ID card appears to be expired")

        if not self.valid_income_records():
            issues.append("No valid payslip data extracted")

        if not self.is_name_consistent():
            issues.append("Name mismatch between ID and payslip")

        for index, record in enumerate(self.income_records, start=1):
            if record.is_valid and not record.is_net_salary_consistent():
                issues.append(f"Payslip {index}: Net salary calculation doesn't match")

        if self.overall_confidence < min_confidence:
            issues.append(f"Overall extraction confidence is low ({int(self.overall_confidence * 100)}%)")

        return issues


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of running one business rule"""

    is_valid: bool
    error_message: Optional[str] = None
    warning_message: Optional[str] = None
    confidence: float = 1.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    rule_name: str = ""

    @classmethod
    def success(cls, confidence: float = 1.0, metadata: Optional[Dict[str, Any]] = None) -> "ValidationOutcome":
        return cls(is_valid=True, confidence=confidence, metadata=metadata or {})

    @classmethod
    def failure(
        cls,
        error_message: str,
        confidence: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ValidationOutcome":
        return cls(is_valid=False, error_message=error_message, confidence=confidence, metadata=metadata or {})

    @classmethod
    def warning(
        cls,
        warning_message: str,
        confidence: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ValidationOutcome":
        return cls(is_valid=True, warning_message=warning_message, confidence=confidence, metadata=metadata or {})


@dataclass(frozen=True)
class ApplicationValidationResult:
    """Aggregate of every rule outcome for one validation run"""

    is_eligible: bool
    outcomes: Tuple[ValidationOutcome, ...] = ()
    failed_rules: Tuple[str, ...] = ()
    warning_rules: Tuple[str, ...] = ()
    overall_confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def error_messages(self) -> List[str]:
        return [o.error_message for o in self.outcomes if o.error_message]

    def warning_messages(self) -> List[str]:
        return [o.warning_message for o in self.outcomes if o.warning_message]

    def has_warnings(self) -> bool:
        """Warnings present on an otherwise eligible application"""
        return bool(self.warning_rules) and self.is_eligible

    def summary(self) -> str:
        lines = [
            "=== LOAN APPLICATION VALIDATION SUMMARY ===",
            f"Overall Eligible: {self.is_eligible}",
            f"Overall Confidence: {self.overall_confidence * 100:.1f}%",
            f"Total Rules: {len(self.outcomes)}",
            f"Failed Rules: {len(self.failed_rules)}",
            f"Warning Rules: {len(self.warning_rules)}",
            "",
        ]
        if self.failed_rules:
            lines.append("FAILED RULES:")
            lines.extend(f"  - {message}" for message in self.error_messages())
            lines.append("")
        if self.warning_rules:
            lines.append("WARNINGS:")
            lines.extend(f"  - {message}" for message in self.warning_messages())
            lines.append("")
        lines.append("=== END VALIDATION SUMMARY ===")
        return "\n".join(lines)


@dataclass(frozen=True)
class AffordabilityResult:
    """Outcome of checking a proposed loan against a DSR ceiling"""

    is_affordable: bool
    dsr: float
    monthly_payment: float
    max_affordable_amount: float
    excess_amount: float = 0.0


@dataclass(frozen=True)
class LoanOffer:
    """Concrete loan terms offered to an eligible applicant"""

    max_loan_amount: float
    recommended_amount: float
    interest_rate: float  # annual, as a fraction
    term_months: int
    monthly_payment: float
    total_repayment: float
    total_interest: float
    processing_fee: float
    dsr: float  # percentage
    valid_until: datetime
    conditions: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def formatted_dsr(self) -> str:
        return f"{self.dsr:.1f}%"

    def formatted_interest_rate(self) -> str:
        return f"{self.interest_rate * 100:.1f}%"

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return (now or _utc_now()) < self.valid_until

    def validity_hours_remaining(self, now: Optional[datetime] = None) -> int:
        remaining = self.valid_until - (now or _utc_now())
        return max(0, int(remaining.total_seconds() // 3600))

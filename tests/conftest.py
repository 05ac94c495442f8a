"""Pytest fixtures for testing"""

import copy
import pytest
from datetime import date, datetime, timezone
from typing import Any, Dict, List
from fastapi.testclient import TestClient
from smartloan_core.api.dependencies import get_service
from smartloan_core.api.main import create_app
from smartloan_core.domain.models import ApplicationDataset, IdentityRecord, IncomeRecord
from smartloan_core.domain.policy import PolicyConfiguration
from smartloan_core.service import LoanAssessmentService

# Fixed clock so recency, age and offer validity are deterministic
TODAY = date(2024, 2, 15)
NOW = datetime(2024, 2, 15, 9, 0, tzinfo=timezone.utc)

POLICY_DATA: Dict[str, Any] = {
    "lendingPolicy": {
        "maxDSR": 0.5,
        "minAge": 18,
        "maxAge": 60,
        "minSalary": 20000,
        "maxLoanAmount": 1000000,
        "defaultInterestRate": 0.15,
        "defaultTermMonths": 12,
        "payslipRecencyMonths": 3,
        "minExtractionConfidence": 0.7,
        "conservativeOfferRatio": 0.8,
    },
    "validationRules": {
        "payslipRecency": {"enabled": True, "priority": 1, "maxAgeMonths": 3,
                           "errorMessage": "Payslips must be from the last {max_age_months} months"},
        "payslipCount": {"enabled": True, "priority": 2, "minPayslips": 3,
                         "errorMessage": "Insufficient payslips provided"},
        "nameConsistency": {"enabled": True, "priority": 3, "fuzzyMatchThreshold": 0.8,
                            "errorMessage": "Name on ID does not match payslip"},
        "retirementAge": {"enabled": True, "priority": 4, "maxAge": 60,
                          "errorMessage": "Applicant would exceed the maximum age of {max_age}"},
        "dataQuality": {"enabled": True, "priority": 5, "minConfidence": 0.7,
                        "errorMessage": "Document extraction quality is too low"},
        "affordability": {"enabled": True, "priority": 6, "maxDSR": 0.5, "minSalary": 20000,
                          "errorMessage": "Loan repayments would exceed the affordable debt service ratio"},
    },
    "loanTerms": {
        "availableTerms": [6, 12, 18, 24],
        "defaultTerm": 12,
        "interestRates": {"6": 0.13, "12": 0.15, "18": 0.16, "24": 0.18},
    },
    "errorMessages": {},
}


def make_policy(**overrides: Dict[str, Any]) -> PolicyConfiguration:
    """Build a policy from POLICY_DATA, merging per-section overrides"""
    data = copy.deepcopy(POLICY_DATA)
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(data.get(section), dict):
            data[section].update(values)
        else:
            data[section] = values
    return PolicyConfiguration.from_mapping(data)


def make_income(
    pay_period: str,
    gross: float = 60000,
    net: float = 50000,
    deductions: Dict[str, float] | None = None,
    employee_name: str = "John Otieno Kamau",
    confidence: float = 0.8,
) -> IncomeRecord:
    return IncomeRecord(
        employee_name=employee_name,
        employer_name="ACME LTD",
        gross_salary=gross,
        net_salary=net,
        pay_period=pay_period,
        deductions={"PAYE": 8000, "NSSF": 2000} if deductions is None else deductions,
        confidence=confidence,
    ).validate(0.7, as_of=TODAY)


@pytest.fixture
def policy() -> PolicyConfiguration:
    return make_policy()


@pytest.fixture
def identity() -> IdentityRecord:
    """Valid identity: born 1985, 38 at TODAY"""
    return IdentityRecord(
        full_name="JOHN OTIENO KAMAU",
        id_number="12345678",
        date_of_birth="15.03.1985",
        place_of_birth="NAIROBI",
        confidence=0.8,
    ).validate(0.7)


@pytest.fixture
def income_records() -> List[IncomeRecord]:
    """Three recent, consistent payslips: gross 60000, deductions 10000"""
    return [make_income("2023-12"), make_income("2024-01"), make_income("2024-02")]


@pytest.fixture
def dataset(identity: IdentityRecord, income_records: List[IncomeRecord]) -> ApplicationDataset:
    return ApplicationDataset.assemble(identity, income_records)


@pytest.fixture
def id_front_text() -> str:
    return (
        "Here is the information extracted from the ID card:\n\n"
        "**Full Name:** JOHN OTIENO KAMAU\n"
        "**ID Number:** 12345678\n"
        "**Date of Birth:** 15.03.1985\n"
        "**Sex:** Male\n"
    )


@pytest.fixture
def id_back_text() -> str:
    return (
        "The back of the card shows:\n"
        "- District of Birth: NAIROBI\n"
        "- Date of Expiry: 01.01.2030\n"
    )


@pytest.fixture
def payslip_text() -> str:
    return (
        "**Employee Name:** John Otieno Kamau\n"
        "**Employer:** ACME LTD\n"
        "**Pay Period:** January 2024\n"
        "**Gross Salary:** KSh 60,000.00\n"
        "\n"
        "**Allowances:**\n"
        "* Housing Allowance: KSh 5,000\n"
        "* Commuter Allowance: 2,000\n"
        "\n"
        "**Deductions:**\n"
        "* PAYE: KSh 12,000\n"
        "* NSSF: 200\n"
        "* Co-operative Loan: 4,800\n"
        "\n"
        "**Net Salary:** KSh 50,000\n"
    )


@pytest.fixture
def service(policy: PolicyConfiguration) -> LoanAssessmentService:
    return LoanAssessmentService(policy, today=lambda: TODAY, now=lambda: NOW)


@pytest.fixture
def client(service: LoanAssessmentService) -> TestClient:
    """Create FastAPI test client bound to the in-memory policy and fixed clock"""
    app = create_app()
    app.dependency_overrides[get_service] = lambda: service
    return TestClient(app)

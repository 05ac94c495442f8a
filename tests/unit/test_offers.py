"""Unit tests for offer generation and recalculation"""

from datetime import timedelta
from dataclasses import replace
import pytest
from conftest import NOW, TODAY, make_income, make_policy
from smartloan_core.domain.affordability import monthly_payment, principal_from_payment
from smartloan_core.domain.models import ApplicationDataset, ApplicationValidationResult
from smartloan_core.domain.offers import OfferEngine
from smartloan_core.domain.rule_engine import RuleEngine

# 50% of 60,000 gross less 10,000 existing deductions, at 15% over 12 months
MAX_AFFORDABLE = principal_from_payment(20000, 0.15, 12)


@pytest.fixture
def offer_engine(policy) -> OfferEngine:
    return OfferEngine(policy, clock=lambda: NOW)


@pytest.fixture
def validation(policy, dataset) -> ApplicationValidationResult:
    return RuleEngine(policy, clock=lambda: TODAY).validate(dataset, requested_amount=100000)


@pytest.fixture
def base_offer(offer_engine, dataset, validation):
    return offer_engine.generate(dataset, validation, requested_amount=100000)


def test_generate_offer_for_requested_amount(base_offer):
    """Test the requested amount is offered at the default term and its rate"""
    assert base_offer.recommended_amount == 100000
    assert base_offer.max_loan_amount == pytest.approx(MAX_AFFORDABLE)
    assert base_offer.term_months == 12
    assert base_offer.interest_rate == 0.15
    assert base_offer.monthly_payment == pytest.approx(monthly_payment(100000, 0.15, 12))
    assert base_offer.total_repayment == pytest.approx(base_offer.monthly_payment * 12)
    assert base_offer.total_interest == pytest.approx(base_offer.total_repayment - 100000)
    assert base_offer.processing_fee == 2000
    assert base_offer.dsr == pytest.approx(31.7, abs=0.1)
    assert base_offer.valid_until == NOW + timedelta(hours=48)


def test_generate_offer_conditions_and_warnings(base_offer):
    """Test a confident, warning-free application gets the standard conditions only"""
    assert base_offer.conditions[0] == "This offer is valid for 48 hours from generation time"
    assert len(base_offer.conditions) == 4
    assert base_offer.warnings == ()


def test_generate_offer_ineligible_returns_none(offer_engine, dataset):
    validation = ApplicationValidationResult(is_eligible=False, failed_rules=("Affordability",))

    assert offer_engine.generate(dataset, validation, requested_amount=100000) is None
    assert offer_engine.generate_offer_options(dataset, validation) == []


def test_generate_offer_without_valid_income_returns_none(offer_engine, identity):
    dataset = ApplicationDataset.assemble(identity, [make_income("2024-02", confidence=0.2)])
    validation = ApplicationValidationResult(is_eligible=True)

    assert offer_engine.generate(dataset, validation, requested_amount=100000) is None


def test_generate_offer_without_budget_returns_none(offer_engine, identity):
    """Test existing deductions above the ceiling leave nothing to offer"""
    records = [make_income("2024-02", net=20000, deductions={"Loan": 40000})]
    dataset = ApplicationDataset.assemble(identity, records)
    validation = ApplicationValidationResult(is_eligible=True)

    assert offer_engine.generate(dataset, validation) is None


def test_requested_amount_is_clipped_to_max(offer_engine, dataset, validation):
    offer = offer_engine.generate(dataset, validation, requested_amount=5000000)

    assert offer.recommended_amount == pytest.approx(MAX_AFFORDABLE)
    assert offer.recommended_amount <= offer.max_loan_amount


def test_no_requested_amount_uses_conservative_ratio(offer_engine, dataset, validation):
    offer = offer_engine.generate(dataset, validation)

    assert offer.recommended_amount == pytest.approx(MAX_AFFORDABLE * 0.8)
    # 16,000 payment on 10,000 existing deductions against 60,000 gross
    assert offer.dsr == pytest.approx(43.33, abs=0.05)
    assert offer.warnings[0].startswith("Your debt service ratio is 43.3%")


def test_policy_max_caps_offer(dataset, validation):
    engine = OfferEngine(make_policy(lendingPolicy={"maxLoanAmount": 150000}), clock=lambda: NOW)

    offer = engine.generate(dataset, validation, requested_amount=200000)

    assert offer.max_loan_amount == 150000
    assert offer.recommended_amount == 150000
    assert offer.metadata["max_affordable"] == pytest.approx(MAX_AFFORDABLE)


@pytest.mark.parametrize("preferred,term,rate", [(24, 24, 0.18), (6, 6, 0.13), (9, 12, 0.15), (0, 12, 0.15)])
def test_term_selection(offer_engine, dataset, validation, preferred, term, rate):
    """Test unsupported terms fall back to the default term"""
    offer = offer_engine.generate(dataset, validation, requested_amount=100000, preferred_term=preferred)

    assert offer.term_months == term
    assert offer.interest_rate == rate


def test_missing_rate_uses_fallback(dataset, validation):
    policy = make_policy(loanTerms={"availableTerms": [6, 12, 36], "defaultTerm": 12, "interestRates": {"12": 0.15}})
    engine = OfferEngine(policy, clock=lambda: NOW)

    offer = engine.generate(dataset, validation, requested_amount=100000, preferred_term=36)

    assert offer.term_months == 36
    assert offer.interest_rate == 0.15


@pytest.mark.parametrize("amount,fee", [(10000, 1000), (100000, 2000), (1000000, 5000)])
def test_processing_fee_is_clamped(offer_engine, amount, fee):
    assert offer_engine.processing_fee(amount) == fee


def test_low_confidence_adds_condition_and_warning(offer_engine, dataset, validation):
    shaky = replace(validation, overall_confidence=0.85)

    offer = offer_engine.generate(dataset, shaky, requested_amount=100000)

    assert "Additional document verification may be required due to extraction confidence" in offer.conditions
    assert "Document extraction confidence is below optimal levels" in offer.warnings


def test_custom_validity_window(policy, dataset, validation):
    engine = OfferEngine(policy, clock=lambda: NOW, validity=timedelta(hours=24))

    offer = engine.generate(dataset, validation, requested_amount=100000)

    assert offer.valid_until == NOW + timedelta(hours=24)
    assert offer.validity_hours_remaining(NOW) == 24
    assert offer.conditions[0] == "This offer is valid for 24 hours from generation time"


def test_offer_options_one_per_term(offer_engine, dataset, validation):
    options = offer_engine.generate_offer_options(dataset, validation, requested_amount=100000)

    assert [o.term_months for o in options] == [6, 12, 18, 24]
    assert [o.interest_rate for o in options] == [0.13, 0.15, 0.16, 0.18]
    # Longer terms mean smaller instalments
    payments = [o.monthly_payment for o in options]
    assert payments == sorted(payments, reverse=True)


def test_offer_options_skip_failing_term(offer_engine, dataset, validation, monkeypatch):
    original = OfferEngine.generate

    def flaky(self, dataset, validation, requested_amount=0.0, preferred_term=0):
        if preferred_term == 18:
            raise RuntimeError("rate table unavailable")
        return original(self, dataset, validation, requested_amount, preferred_term)

    monkeypatch.setattr(OfferEngine, "generate", flaky)

    options = offer_engine.generate_offer_options(dataset, validation, requested_amount=100000)

    assert [o.term_months for o in options] == [6, 12, 24]


def test_recalculate_above_max_returns_none(offer_engine, base_offer, income_records):
    """Test an amount above the offer's max is rejected and the base offer is untouched"""
    snapshot = replace(base_offer)

    assert offer_engine.recalculate_offer_for_amount(base_offer, base_offer.max_loan_amount + 1, income_records) is None
    assert base_offer == snapshot


@pytest.mark.parametrize("amount", [0, -100])
def test_recalculate_non_positive_returns_none(offer_engine, base_offer, income_records, amount):
    assert offer_engine.recalculate_offer_for_amount(base_offer, amount, income_records) is None


def test_recalculate_keeps_rate_and_term(offer_engine, base_offer, income_records):
    offer = offer_engine.recalculate_offer_for_amount(base_offer, 50000, income_records)

    assert offer is not base_offer
    assert offer.recommended_amount == 50000
    assert offer.term_months == base_offer.term_months
    assert offer.interest_rate == base_offer.interest_rate
    assert offer.max_loan_amount == base_offer.max_loan_amount
    assert offer.valid_until == base_offer.valid_until
    assert offer.monthly_payment == pytest.approx(monthly_payment(50000, 0.15, 12))
    assert offer.processing_fee == 1000
    assert offer.metadata["original_amount"] == 100000
    assert offer.metadata["recalculated_at"] == NOW.isoformat()
    assert base_offer.recommended_amount == 100000

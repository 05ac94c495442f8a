"""Offer engine - turns an eligible application into concrete loan terms"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from smartloan_core.domain import affordability
from smartloan_core.domain.models import (
    ApplicationDataset,
    ApplicationValidationResult,
    IncomeRecord,
    LoanOffer,
)
from smartloan_core.domain.policy import PolicyConfiguration

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY = timedelta(hours=48)

# Validation confidence below these adds a verification condition / a warning
VERIFICATION_CONFIDENCE = 0.95
OPTIMAL_CONFIDENCE = 0.9

HIGH_DSR_PERCENT = 40.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OfferEngine:
    """
    Builds LoanOffer snapshots from validated applications.

    "No offer" is an ordinary outcome and is returned as None, never raised.
    """

    def __init__(
        self,
        policy: PolicyConfiguration,
        clock: Callable[[], datetime] = _utc_now,
        validity: timedelta = DEFAULT_VALIDITY,
    ):
        self.policy = policy
        self.lending = policy.lending_policy
        self.clock = clock
        self.validity = validity

    def processing_fee(self, amount: float) -> float:
        """Fee rate times the amount, clamped to the policy's minimum and maximum fee"""
        fee = amount * self.lending.processing_fee_rate
        return min(max(fee, self.lending.min_processing_fee), self.lending.max_processing_fee)

    def select_term(self, preferred_term: int) -> int:
        if preferred_term > 0 and preferred_term in self.policy.loan_terms.available_terms:
            return preferred_term
        return self.policy.loan_terms.default_term

    def generate(
        self,
        dataset: ApplicationDataset,
        validation: ApplicationValidationResult,
        requested_amount: float = 0.0,
        preferred_term: int = 0,
    ) -> Optional[LoanOffer]:
        """
        Generate an offer for an eligible application.

        Requirements:
        - None when the application is ineligible or has no usable income record
        - Max amount = affordable principal at the policy DSR ceiling, capped by maxLoanAmount
        - Recommended = requested amount clipped to the max, or max * conservativeOfferRatio
        - Term = preferred term if the policy offers it, else the default term
        - DSR is recomputed for the recommended amount

        Returns:
            LoanOffer, or None when no offer can be made
        """
        if not validation.is_eligible:
            logger.info("No offer: application is not eligible", extra={"failed_rules": list(validation.failed_rules)})
            return None

        income_records = dataset.valid_income_records()
        if not income_records:
            logger.info("No offer: no usable income records")
            return None

        average_gross = affordability.average_gross_salary(income_records)
        existing_deductions = affordability.average_deductions(income_records)

        max_affordable = affordability.max_loan_amount(
            gross_salary=average_gross,
            existing_deductions=existing_deductions,
            max_dsr_percent=self.lending.max_dsr * 100,
            annual_rate=self.lending.default_interest_rate,
            months=self.lending.default_term_months,
        )
        max_amount = min(max_affordable, self.lending.max_loan_amount)
        if max_amount <= 0:
            logger.info("No offer: no affordable amount", extra={"max_affordable": max_affordable})
            return None

        if requested_amount > 0:
            recommended = min(requested_amount, max_amount)
        else:
            recommended = max_amount * self.lending.conservative_offer_ratio

        term = self.select_term(preferred_term)
        rate = self.policy.loan_terms.interest_rate_for(term)

        payment = affordability.monthly_payment(recommended, rate, term)
        ratio = affordability.dsr(average_gross, existing_deductions, payment)
        now = self.clock()

        offer = LoanOffer(
            max_loan_amount=max_amount,
            recommended_amount=recommended,
            interest_rate=rate,
            term_months=term,
            monthly_payment=payment,
            total_repayment=payment * term,
            total_interest=payment * term - recommended,
            processing_fee=self.processing_fee(recommended),
            dsr=ratio,
            valid_until=now + self.validity,
            conditions=tuple(self._conditions(validation)),
            warnings=tuple(self._warnings(validation, ratio)),
            metadata={
                "average_salary": average_gross,
                "max_affordable": max_affordable,
                "policy_max": self.lending.max_loan_amount,
                "validation_confidence": validation.overall_confidence,
                "generated_at": now.isoformat(),
            },
        )

        logger.debug(
            "Loan offer generated",
            extra={
                "max_loan_amount": offer.max_loan_amount,
                "recommended_amount": offer.recommended_amount,
                "term_months": offer.term_months,
                "dsr": offer.dsr,
            },
        )
        return offer

    def generate_offer_options(
        self,
        dataset: ApplicationDataset,
        validation: ApplicationValidationResult,
        requested_amount: float = 0.0,
    ) -> List[LoanOffer]:
        """One offer per available term, shortest term first; a failing term is skipped"""
        if not validation.is_eligible:
            return []

        offers = []
        for term in self.policy.loan_terms.available_terms:
            try:
                offer = self.generate(dataset, validation, requested_amount, preferred_term=term)
            except Exception as e:
                logger.warning("Skipping offer term", extra={"term_months": term, "error": str(e)}, exc_info=True)
                continue
            if offer is not None:
                offers.append(offer)

        return sorted(offers, key=lambda o: o.term_months)

    def recalculate_offer_for_amount(
        self,
        base_offer: LoanOffer,
        new_amount: float,
        income_records: Sequence[IncomeRecord],
    ) -> Optional[LoanOffer]:
        """
        Re-price an offer for a different amount at the same rate and term.

        Returns None for a non-positive amount or one above the offer's
        max_loan_amount. The base offer is left untouched.
        """
        if new_amount <= 0 or new_amount > base_offer.max_loan_amount:
            logger.warning(
                "Invalid amount for recalculation",
                extra={"new_amount": new_amount, "max_loan_amount": base_offer.max_loan_amount},
            )
            return None

        average_gross = affordability.average_gross_salary(income_records)
        existing_deductions = affordability.average_deductions(income_records)

        payment = affordability.monthly_payment(new_amount, base_offer.interest_rate, base_offer.term_months)
        total_repayment = payment * base_offer.term_months

        return replace(
            base_offer,
            recommended_amount=new_amount,
            monthly_payment=payment,
            total_repayment=total_repayment,
            total_interest=total_repayment - new_amount,
            processing_fee=self.processing_fee(new_amount),
            dsr=affordability.dsr(average_gross, existing_deductions, payment),
            metadata={
                **base_offer.metadata,
                "recalculated_at": self.clock().isoformat(),
                "original_amount": base_offer.recommended_amount,
            },
        )

    def _conditions(self, validation: ApplicationValidationResult) -> List[str]:
        hours = int(self.validity.total_seconds() // 3600)
        conditions = [
            f"This offer is valid for {hours} hours from generation time",
            "Final approval subject to document verification",
            "Loan disbursement will be made to your registered bank account",
            "Early repayment is allowed without penalties",
        ]
        if validation.overall_confidence < VERIFICATION_CONFIDENCE:
            conditions.append("Additional document verification may be required due to extraction confidence")
        if validation.has_warnings():
            conditions.append("Offer subject to resolution of data quality warnings")
        return conditions

    def _warnings(self, validation: ApplicationValidationResult, ratio: float) -> List[str]:
        warnings = []
        if ratio > HIGH_DSR_PERCENT:
            warnings.append(f"Your debt service ratio is {ratio:.1f}%, which is relatively high")
        if validation.overall_confidence < OPTIMAL_CONFIDENCE:
            warnings.append("Document extraction confidence is below optimal levels")
        warnings.extend(validation.warning_messages())
        return warnings

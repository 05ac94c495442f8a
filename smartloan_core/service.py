"""Loan assessment service - caller-facing entry points over the lending core"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from smartloan_core.domain.extraction import FieldExtractor
from smartloan_core.domain.merging import build_dataset, merge_identities
from smartloan_core.domain.models import (
    ApplicationDataset,
    ApplicationValidationResult,
    IdentityRecord,
    IncomeRecord,
    LoanOffer,
)
from smartloan_core.domain.offers import DEFAULT_VALIDITY, OfferEngine
from smartloan_core.domain.policy import PolicyConfiguration
from smartloan_core.domain.rule_engine import RuleEngine


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LoanAssessmentService:
    """
    Wires the extractor, rule engine and offer engine to one policy.

    Holds no per-application state: every call takes and returns
    immutable snapshots owned by the caller.
    """

    def __init__(
        self,
        policy: PolicyConfiguration,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utc_now,
        offer_validity: timedelta = DEFAULT_VALIDITY,
    ):
        self.policy = policy
        self.extractor = FieldExtractor(policy.lending_policy.min_extraction_confidence, clock=today)
        self.rule_engine = RuleEngine(policy, clock=today)
        self.offer_engine = OfferEngine(policy, clock=now, validity=offer_validity)

    def extract_identity(self, front_text: Optional[str], back_text: Optional[str] = None) -> IdentityRecord:
        """Parse both sides of an identity card and merge them into one record"""
        observations = [self.extractor.extract_identity(text) for text in (front_text, back_text) if text]
        return merge_identities(observations, self.extractor.min_confidence)

    def extract_income(self, text: str) -> IncomeRecord:
        return self.extractor.extract_income(text)

    def assemble_dataset(self, identity: IdentityRecord, income_records: Iterable[IncomeRecord]) -> ApplicationDataset:
        """Re-derive validity of caller-supplied records before building the dataset"""
        min_confidence = self.extractor.min_confidence
        as_of = self.extractor.clock()
        return build_dataset(
            identity.validate(min_confidence),
            [record.validate(min_confidence, as_of=as_of) for record in income_records],
        )

    def review_issues(self, dataset: ApplicationDataset) -> List[str]:
        """Points a loan officer should look at, independent of the rule verdict"""
        return dataset.validation_issues(as_of=self.extractor.clock())

    def validate_application(self, dataset: ApplicationDataset, requested_amount: float = 0.0) -> ApplicationValidationResult:
        return self.rule_engine.validate(dataset, requested_amount)

    def generate_offer(
        self,
        dataset: ApplicationDataset,
        validation: ApplicationValidationResult,
        requested_amount: float = 0.0,
        preferred_term: int = 0,
    ) -> Optional[LoanOffer]:
        return self.offer_engine.generate(dataset, validation, requested_amount, preferred_term)

    def generate_offer_options(
        self,
        dataset: ApplicationDataset,
        validation: ApplicationValidationResult,
        requested_amount: float = 0.0,
    ) -> List[LoanOffer]:
        return self.offer_engine.generate_offer_options(dataset, validation, requested_amount)

    def recalculate_offer(
        self,
        offer: LoanOffer,
        new_amount: float,
        income_records: Sequence[IncomeRecord],
    ) -> Optional[LoanOffer]:
        return self.offer_engine.recalculate_offer_for_amount(offer, new_amount, income_records)

    def max_affordable_loan(self, income_records: Sequence[IncomeRecord]) -> float:
        return self.rule_engine.max_affordable_loan(income_records)

"""Rule engine - runs every enabled business rule and aggregates an eligibility verdict"""

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Sequence

from smartloan_core.domain.models import (
    ApplicationDataset,
    ApplicationValidationResult,
    IncomeRecord,
    ValidationOutcome,
)
from smartloan_core.domain.policy import PolicyConfiguration
from smartloan_core.domain.rules import (
    AffordabilityRule,
    BusinessRule,
    DataQualityRule,
    RuleContext,
    build_rules,
    default_loan_amount,
    max_affordable_loan,
)

logger = logging.getLogger(__name__)


def _execution_error(rule: BusinessRule, error: Exception) -> ValidationOutcome:
    logger.error("Rule execution error", extra={"rule": rule.name, "error": str(error)}, exc_info=True)
    return ValidationOutcome(
        is_valid=False,
        error_message=f"Rule execution error: {error}",
        confidence=0.0,
        rule_name=rule.name,
    )


class RuleEngine:
    """
    Evaluates a loan application against the policy's business rules.

    Rules run in ascending priority and all of them always run: a failing
    rule never stops the others, and a rule that raises is recorded as a
    failed outcome instead of aborting the run.
    """

    def __init__(self, policy: PolicyConfiguration, clock: Callable[[], date] = date.today):
        self.policy = policy
        self.clock = clock
        self.rules: List[BusinessRule] = build_rules(policy)
        logger.info("Rule engine initialised", extra={"rules": [rule.name for rule in self.rules]})

    def _run_rule(self, rule: BusinessRule, dataset: ApplicationDataset, context: RuleContext) -> ValidationOutcome:
        try:
            outcome = rule.validate(dataset, context)
        except Exception as e:
            return _execution_error(rule, e)
        return replace(outcome, rule_name=rule.name)

    def validate(self, dataset: ApplicationDataset, requested_amount: float = 0.0) -> ApplicationValidationResult:
        """
        Run every enabled rule against the dataset.

        Args:
            dataset: Identity plus income records for one application
            requested_amount: Loan amount to check affordability for; 0 uses
                the conservative default amount

        Returns:
            ApplicationValidationResult - eligible iff no rule failed
        """
        context = RuleContext(requested_amount=requested_amount, as_of=self.clock())

        outcomes = []
        failed_rules = []
        warning_rules = []

        for rule in self.rules:
            outcome = self._run_rule(rule, dataset, context)
            outcomes.append(outcome)

            if not outcome.is_valid:
                failed_rules.append(rule.name)
                logger.warning("Rule failed", extra={"rule": rule.name, "reason": outcome.error_message})
            elif outcome.warning_message:
                warning_rules.append(rule.name)
                logger.warning("Rule warning", extra={"rule": rule.name, "reason": outcome.warning_message})
            else:
                logger.debug("Rule passed", extra={"rule": rule.name})

        overall_confidence = sum(o.confidence for o in outcomes) / len(outcomes) if outcomes else 0.0

        return ApplicationValidationResult(
            is_eligible=not failed_rules,
            outcomes=tuple(outcomes),
            failed_rules=tuple(failed_rules),
            warning_rules=tuple(warning_rules),
            overall_confidence=overall_confidence,
            metadata={
                "total_rules_executed": len(outcomes),
                "executed_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _find_rule(self, rule_type) -> Optional[BusinessRule]:
        return next((rule for rule in self.rules if isinstance(rule, rule_type)), None)

    def validate_data_quality(self, dataset: ApplicationDataset) -> ValidationOutcome:
        """Run only the data-quality rule"""
        rule = self._find_rule(DataQualityRule)
        if rule is None:
            return ValidationOutcome.failure("Data quality rule not found")
        return self._run_rule(rule, dataset, RuleContext(as_of=self.clock()))

    def validate_affordability(self, income_records: Sequence[IncomeRecord], requested_amount: float) -> ValidationOutcome:
        """Run only the affordability rule against the given income records"""
        rule = self._find_rule(AffordabilityRule)
        if rule is None:
            return ValidationOutcome.failure("Affordability rule not found")
        try:
            outcome = rule.check(list(income_records), requested_amount)
        except Exception as e:
            return _execution_error(rule, e)
        return replace(outcome, rule_name=rule.name)

    def max_affordable_loan(self, income_records: Sequence[IncomeRecord]) -> float:
        return max_affordable_loan(list(income_records), self.policy.lending_policy)

    def default_loan_amount(self, income_records: Sequence[IncomeRecord]) -> float:
        return default_loan_amount(list(income_records), self.policy.lending_policy)

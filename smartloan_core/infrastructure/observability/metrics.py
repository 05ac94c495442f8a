"""Prometheus metrics for monitoring eligibility rates, rule outcomes, and extraction quality"""

from prometheus_client import Counter, Histogram

from smartloan_core.domain.models import ApplicationValidationResult

# Validation metrics
validation_counter = Counter(
    "smartloan_validation_total",
    "Total loan applications validated",
    ["outcome"],  # eligible | ineligible
)

rule_outcome_counter = Counter(
    "smartloan_rule_outcome_total",
    "Business rule outcomes",
    ["rule", "outcome"],  # passed | warning | failed | error
)

# Offer metrics
offer_counter = Counter(
    "smartloan_offer_total",
    "Loan offer requests by result",
    ["outcome"],  # generated | declined
)

# Extraction metrics
extraction_confidence_histogram = Histogram(
    "smartloan_extraction_confidence",
    "Confidence assigned to extracted document records",
    ["document"],  # identity | income
    buckets=[0.1, 0.3, 0.5, 0.7, 0.8, 0.9, 1.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_validation(result: ApplicationValidationResult) -> None:
    """Record the verdict and the outcome of every rule that ran"""
    validation_counter.labels(outcome="eligible" if result.is_eligible else "ineligible").inc()

    for outcome in result.outcomes:
        if not outcome.is_valid:
            label = "error" if (outcome.error_message or "").startswith("Rule execution error") else "failed"
        elif outcome.warning_message:
            label = "warning"
        else:
            label = "passed"
        rule_outcome_counter.labels(rule=outcome.rule_name, outcome=label).inc()


def record_offer(offered: bool) -> None:
    offer_counter.labels(outcome="generated" if offered else "declined").inc()


def record_extraction(document: str, confidence: float) -> None:
    extraction_confidence_histogram.labels(document=document).observe(confidence)

"""POST /v1/validate and /v1/affordability - eligibility checks"""

import time
import logging
from fastapi import APIRouter, Depends, Request

from smartloan_core.api.dependencies import get_request_id, get_service
from smartloan_core.api.v1.schemas import (
    AffordabilityRequest,
    AffordabilityResponse,
    ApplicationRequest,
    ValidationResponse,
)
from smartloan_core.infrastructure.observability.logging import log_validation
from smartloan_core.infrastructure.observability.metrics import record_validation
from smartloan_core.service import LoanAssessmentService

router = APIRouter()


@router.post("/validate", response_model=ValidationResponse)
def validate_application(
    request_body: ApplicationRequest,
    request: Request,
    service: LoanAssessmentService = Depends(get_service),
):
    """
    Run every enabled business rule against the application.

    Always answers 200: an ineligible application is a normal result and
    the failed rules explain why.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    dataset = service.assemble_dataset(
        request_body.identity.to_record(),
        [r.to_record() for r in request_body.income_records],
    )
    result = service.validate_application(dataset, request_body.requested_amount)
    issues = service.review_issues(dataset)

    duration_ms = (time.time() - start_time) * 1000
    record_validation(result)
    log_validation(
        request_id,
        result.is_eligible,
        list(result.failed_rules),
        list(result.warning_rules),
        result.overall_confidence,
        duration_ms,
    )
    if issues:
        logging.info("Application flagged for review", extra={"request_id": request_id, "issues": issues})

    return ValidationResponse.from_result(result, issues)


@router.post("/affordability", response_model=AffordabilityResponse)
def max_affordable_loan(
    request_body: AffordabilityRequest,
    service: LoanAssessmentService = Depends(get_service),
):
    """Largest loan the given income records support under the policy"""
    records = [r.to_record() for r in request_body.income_records]
    return AffordabilityResponse(max_affordable_loan=service.max_affordable_loan(records))

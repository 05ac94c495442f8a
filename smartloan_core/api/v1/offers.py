"""POST /v1/offer* - loan offer generation and re-pricing"""

import time
from fastapi import APIRouter, Depends, Request

from smartloan_core.api.dependencies import get_request_id, get_service
from smartloan_core.api.v1.schemas import (
    ApplicationRequest,
    OfferOptionsResponse,
    OfferRequest,
    OfferResponse,
    OfferSchema,
    RecalculateRequest,
)
from smartloan_core.infrastructure.observability.logging import log_offer
from smartloan_core.infrastructure.observability.metrics import record_offer, record_validation
from smartloan_core.service import LoanAssessmentService

router = APIRouter()


def _validated(service: LoanAssessmentService, request_body: ApplicationRequest):
    dataset = service.assemble_dataset(
        request_body.identity.to_record(),
        [r.to_record() for r in request_body.income_records],
    )
    result = service.validate_application(dataset, request_body.requested_amount)
    record_validation(result)
    return dataset, result


@router.post("/offer", response_model=OfferResponse)
def generate_offer(
    request_body: OfferRequest,
    request: Request,
    service: LoanAssessmentService = Depends(get_service),
):
    """
    Validate the application and price a loan offer.

    Flow:
    1. Rebuild the dataset from the submitted records
    2. Run the business rules
    3. Generate the offer for the requested amount and preferred term
    """
    start_time = time.time()
    request_id = get_request_id(request)

    dataset, result = _validated(service, request_body)
    offer = service.generate_offer(
        dataset,
        result,
        requested_amount=request_body.requested_amount,
        preferred_term=request_body.preferred_term,
    )

    duration_ms = (time.time() - start_time) * 1000
    record_offer(offer is not None)
    log_offer(
        request_id,
        offer is not None,
        offer.recommended_amount if offer else None,
        offer.term_months if offer else None,
        duration_ms,
    )

    if offer is None:
        reason = (
            "Application is not eligible: " + ", ".join(result.failed_rules)
            if not result.is_eligible
            else "No affordable loan amount for this income"
        )
        return OfferResponse(offer=None, reason=reason)

    return OfferResponse(offer=OfferSchema.from_offer(offer))


@router.post("/offer/options", response_model=OfferOptionsResponse)
def generate_offer_options(
    request_body: ApplicationRequest,
    service: LoanAssessmentService = Depends(get_service),
):
    """One offer per available term, shortest first"""
    dataset, result = _validated(service, request_body)
    offers = service.generate_offer_options(dataset, result, request_body.requested_amount)
    record_offer(bool(offers))
    return OfferOptionsResponse(offers=[OfferSchema.from_offer(o) for o in offers])


@router.post("/offer/recalculate", response_model=OfferResponse)
def recalculate_offer(
    request_body: RecalculateRequest,
    service: LoanAssessmentService = Depends(get_service),
):
    """Re-price an existing offer for a new amount within its maximum"""
    base_offer = request_body.offer.to_offer()
    records = [r.to_record() for r in request_body.income_records]

    offer = service.recalculate_offer(base_offer, request_body.new_amount, records)
    if offer is None:
        return OfferResponse(
            offer=None,
            reason=f"Amount must be greater than 0 and at most {base_offer.max_loan_amount:.2f}",
        )
    return OfferResponse(offer=OfferSchema.from_offer(offer))

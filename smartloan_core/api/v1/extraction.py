"""POST /v1/extract/* - parse inference answers into document records"""

from fastapi import APIRouter, Depends

from smartloan_core.api.dependencies import get_service
from smartloan_core.api.v1.schemas import (
    IdentityExtractionRequest,
    IdentitySchema,
    IncomeExtractionRequest,
    IncomeSchema,
)
from smartloan_core.infrastructure.observability.metrics import record_extraction
from smartloan_core.service import LoanAssessmentService

router = APIRouter()


@router.post("/extract/identity", response_model=IdentitySchema)
def extract_identity(
    request_body: IdentityExtractionRequest,
    service: LoanAssessmentService = Depends(get_service),
):
    """Merge the front and back readings of one identity card"""
    record = service.extract_identity(request_body.front_text, request_body.back_text)
    record_extraction("identity", record.confidence)
    return IdentitySchema.from_record(record)


@router.post("/extract/income", response_model=IncomeSchema)
def extract_income(
    request_body: IncomeExtractionRequest,
    service: LoanAssessmentService = Depends(get_service),
):
    record = service.extract_income(request_body.text)
    record_extraction("income", record.confidence)
    return IncomeSchema.from_record(record)

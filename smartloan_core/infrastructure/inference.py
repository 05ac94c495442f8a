"""Vision-to-text inference collaborator and the sequential document runner"""

import logging
import threading
from textwrap import dedent
from typing import Callable, List, Optional, Protocol, Sequence

from smartloan_core.domain.exceptions import ExtractionSequenceError, InferenceError
from smartloan_core.domain.extraction import DocumentKind, FieldExtractor
from smartloan_core.domain.merging import build_dataset, merge_identities
from smartloan_core.domain.models import ApplicationDataset, IdentityRecord, IncomeRecord

logger = logging.getLogger(__name__)

IDENTITY_PROMPT = dedent(
    """
    Look at this Kenyan National ID card and extract the following information:
    - Full name
    - ID number (8 digits)
    - Date of birth
    - Any other visible details

    Please provide a clear, structured response with the extracted information.
    """
).strip()

INCOME_PROMPT = dedent(
    """
    Look at this payslip and extract the following information:
    - Employee name
    - Employer/Company name
    - Gross salary amount
    - Net salary amount
    - Pay period/month
    - All deductions (with names and amounts)
    - All allowances (with names and amounts)

    Please provide a clear, structured response with the extracted information.
    For deductions and allowances, list each item with its name and amount clearly.
    """
).strip()

PROMPTS = {
    DocumentKind.IDENTITY_FRONT: IDENTITY_PROMPT,
    DocumentKind.IDENTITY_BACK: IDENTITY_PROMPT,
    DocumentKind.INCOME: INCOME_PROMPT,
}


class InferenceEngine(Protocol):
    """
    Black-box image + prompt -> text model.

    Implementations keep conversational state between calls, so callers
    must use them one call at a time and reset the session in between.
    """

    def infer(self, image: bytes, prompt: str) -> str:
        ...

    def reset_session(self) -> None:
        ...


class DocumentExtractionRunner:
    """
    Drives an InferenceEngine over the documents of one application.

    Calls are strictly sequential: a second call while one is in flight
    raises ExtractionSequenceError, and the engine session is reset after
    every call whether it succeeded or not.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        extractor: FieldExtractor,
        on_record: Optional[Callable[[DocumentKind, float], None]] = None,
    ):
        self.engine = engine
        self.extractor = extractor
        self.on_record = on_record
        self._in_flight = threading.Lock()

    def infer_text(self, image: bytes, kind: DocumentKind) -> str:
        """
        Run one inference call for one document image.

        Raises:
            ExtractionSequenceError: Another call is still in progress
            InferenceError: The engine failed to answer or to reset
        """
        if not self._in_flight.acquire(blocking=False):
            raise ExtractionSequenceError("Inference engine is already processing a document")

        try:
            try:
                text = self.engine.infer(image, PROMPTS[kind])
            except Exception as e:
                self._reset()
                raise InferenceError(f"Inference failed for {kind.value} document: {e}") from e
            self._reset()
        finally:
            self._in_flight.release()

        logger.debug("Inference completed", extra={"document": kind.value, "response_length": len(text or "")})
        return text or ""

    def _reset(self) -> None:
        try:
            self.engine.reset_session()
        except Exception as e:
            raise InferenceError(f"Inference session reset failed: {e}") from e

    def _notify(self, kind: DocumentKind, confidence: float) -> None:
        if self.on_record is not None:
            self.on_record(kind, confidence)

    def extract_identity(self, front_image: Optional[bytes], back_image: Optional[bytes] = None) -> IdentityRecord:
        observations = []
        for kind, image in ((DocumentKind.IDENTITY_FRONT, front_image), (DocumentKind.IDENTITY_BACK, back_image)):
            if image is None:
                continue
            record = self.extractor.extract_identity(self.infer_text(image, kind))
            self._notify(kind, record.confidence)
            observations.append(record)
        return merge_identities(observations, self.extractor.min_confidence)

    def extract_income(self, image: bytes) -> IncomeRecord:
        record = self.extractor.extract_income(self.infer_text(image, DocumentKind.INCOME))
        self._notify(DocumentKind.INCOME, record.confidence)
        return record

    def extract_application(
        self,
        front_image: Optional[bytes],
        back_image: Optional[bytes],
        income_images: Sequence[bytes],
    ) -> ApplicationDataset:
        """Identity sides first, then each income document in capture order"""
        identity = self.extract_identity(front_image, back_image)
        income_records: List[IncomeRecord] = [self.extract_income(image) for image in income_images]

        logger.info(
            "Application documents extracted",
            extra={
                "identity_valid": identity.is_valid,
                "income_documents": len(income_records),
                "valid_income_documents": sum(1 for r in income_records if r.is_valid),
            },
        )
        return build_dataset(identity, income_records)

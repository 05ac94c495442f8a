"""Record merging - combines observations of the same identity document"""

import logging
from dataclasses import replace
from typing import Iterable, Optional, Sequence

from smartloan_core.domain.extraction import MISSING_CONFIDENCE
from smartloan_core.domain.models import (
    DEFAULT_MIN_CONFIDENCE,
    ApplicationDataset,
    IdentityRecord,
    IncomeRecord,
)

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("full_name", "id_number", "date_of_birth", "expiry_date", "place_of_birth")


def merge_identity(
    first: IdentityRecord,
    second: IdentityRecord,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> IdentityRecord:
    """
    Merge two observations (front/back) of one identity card.

    The higher-confidence record is primary (ties keep the first); its
    blank text fields are filled from the other. When both observations
    carry more than the missing-field confidence the result takes their
    mean, otherwise the primary's confidence is kept. Validity is
    recomputed on the merged record.
    """
    if second.is_blank():
        return first.validate(min_confidence)
    if first.is_blank():
        return second.validate(min_confidence)

    primary, secondary = (second, first) if second.confidence > first.confidence else (first, second)

    filled = {
        name: getattr(secondary, name)
        for name in _TEXT_FIELDS
        if not getattr(primary, name).strip() and getattr(secondary, name).strip()
    }

    if primary.confidence > MISSING_CONFIDENCE and secondary.confidence > MISSING_CONFIDENCE:
        confidence = (primary.confidence + secondary.confidence) / 2.0
    else:
        confidence = primary.confidence

    merged = replace(primary, confidence=confidence, **filled).validate(min_confidence)

    logger.debug(
        "Identity observations merged",
        extra={"filled_fields": sorted(filled), "confidence": merged.confidence, "is_valid": merged.is_valid},
    )
    return merged


def merge_identities(
    observations: Sequence[IdentityRecord],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> IdentityRecord:
    """Fold any number of observations; none at all yields an empty, invalid record"""
    merged: Optional[IdentityRecord] = None
    for record in observations:
        merged = record.validate(min_confidence) if merged is None else merge_identity(merged, record, min_confidence)
    return merged if merged is not None else IdentityRecord().validate(min_confidence)


def build_dataset(identity: IdentityRecord, income_records: Iterable[IncomeRecord] = ()) -> ApplicationDataset:
    """Income records are kept in capture order and never merged with each other"""
    return ApplicationDataset.assemble(identity, income_records)

"""Dependency injection for FastAPI endpoints"""

from datetime import timedelta
from functools import lru_cache

from fastapi import Request

from smartloan_core.config import settings
from smartloan_core.domain.policy import PolicyConfiguration
from smartloan_core.infrastructure.policy_store import load_policy
from smartloan_core.service import LoanAssessmentService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache(maxsize=1)
def get_policy() -> PolicyConfiguration:
    """Load the lending policy once per process; raises PolicyLoadError when unusable"""
    return load_policy(settings.policy_path or None)


@lru_cache(maxsize=1)
def get_service() -> LoanAssessmentService:
    """Provide the assessment service bound to the process-wide policy"""
    return LoanAssessmentService(
        get_policy(),
        offer_validity=timedelta(hours=settings.offer_validity_hours),
    )

"""Admission control and bounded scheduling of pipeline runs."""

from .admission import AdmissionDecision, RateLimiter
from .scheduler import AdmittedRequest, RequestScheduler, RequestStatus

__all__ = [
    "AdmissionDecision",
    "RateLimiter",
    "AdmittedRequest",
    "RequestScheduler",
    "RequestStatus",
]

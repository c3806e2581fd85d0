"""Pydantic schemas for the clearance portal API."""

from .common import WorkflowResponse
from .clearance import (
    DocumentIn,
    SubmitDocumentsRequest,
    ApproveSubmissionRequest,
    RejectSubmissionRequest,
    IdentityClaims,
)

__all__ = [
    "WorkflowResponse",
    "DocumentIn",
    "SubmitDocumentsRequest",
    "ApproveSubmissionRequest",
    "RejectSubmissionRequest",
    "IdentityClaims",
]

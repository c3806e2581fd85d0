"""Common schemas for the clearance portal API."""

from typing import Any, Optional
from pydantic import BaseModel


class WorkflowResponse(BaseModel):
    """Envelope for every workflow operation result."""
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None


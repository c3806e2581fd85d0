"""Translation of workflow results into HTTP responses."""

from typing import Any, Dict, Union

from fastapi import status
from fastapi.responses import JSONResponse

from clearance.core.errors import ErrorKind, WorkflowResult

ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.OUT_OF_SEQUENCE: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_PENDING: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_ACTIONED: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(kind: ErrorKind) -> int:
    return ERROR_STATUS_CODES.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


def respond(result: WorkflowResult) -> Union[Dict[str, Any], JSONResponse]:
    """Return the result body, or an error response with the mapped status code."""
    if result.success:
        return result.to_dict()
    return JSONResponse(status_code=status_code_for(result.error), content=result.to_dict())

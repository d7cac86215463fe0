from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ..core.errors import ErrorCategory, SettlementError


def status_for(error: SettlementError) -> int:
    """HTTP status for a typed settlement error."""
    if error.recoverable:
        return 503
    if error.category is ErrorCategory.AUTHENTICATION:
        return 401
    if error.category is ErrorCategory.VALIDATION:
        return 422
    if error.category in (ErrorCategory.CONTRACT, ErrorCategory.PROVIDER):
        return 502
    return 500


def to_http_exception(error: SettlementError) -> HTTPException:
    return HTTPException(status_code=status_for(error), detail=error.to_dict())


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    body: Dict[str, Any] = {"detail": exc.to_dict()}
    return JSONResponse(status_code=status_for(exc), content=body)

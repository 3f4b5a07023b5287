"""
Uniform JSON envelope for gateway responses.

Every response, including failures and the CORS preflight, carries the same
CORS headers so the mobile webview can read the body.
"""
from typing import Optional
from fastapi import status
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.errors import GatewayError
from app.schemas.gateway import GatewayFailure, GatewaySuccess

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def success_response(result: str) -> JSONResponse:
    """200 {"result": text}"""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=GatewaySuccess(result=result).model_dump(),
        headers=CORS_HEADERS,
    )


def failure_response(message: str, details: Optional[str] = None,
                     status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    """{"error", "details"?} envelope; details is omitted when empty."""
    body = GatewayFailure(error=message, details=details or None)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=CORS_HEADERS,
    )


def error_response(error: GatewayError) -> JSONResponse:
    """Map a GatewayError onto its status code and failure envelope."""
    return failure_response(error.message, details=error.details, status_code=error.status_code)


def preflight_response() -> PlainTextResponse:
    """Short-circuit for OPTIONS: empty 200 "ok"."""
    return PlainTextResponse("ok", status_code=status.HTTP_200_OK, headers=CORS_HEADERS)

"""
AI gateway endpoint.

Single POST endpoint proxying chat, diagnosis, insight and wakeup calls to
Gemini, plus the OPTIONS preflight. Every response carries CORS headers.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.auth_dependency import IdentityResolver, extract_bearer_token, get_identity_resolver
from app.core.errors import GatewayError
from app.core.rate_limit import RateLimiter
from app.core.responses import error_response, failure_response, preflight_response, success_response
from app.db.session import get_db
from app.llm.gemini_provider import GeminiProvider
from app.services.gateway_service import GatewayService, ProviderFactory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Gateway"])

GATEWAY_PATHS = ["/functions/v1/gemini-gateway", "/gateway"]


def get_provider_factory() -> ProviderFactory:
    """Provider factory dependency (overridden in tests)."""
    return GeminiProvider


def get_gateway_service(
    db: Session = Depends(get_db),
    identity: IdentityResolver = Depends(get_identity_resolver),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
) -> GatewayService:
    return GatewayService(
        rate_limiter=RateLimiter(db=db, identity=identity),
        provider_factory=provider_factory,
    )


async def gateway_preflight():
    """CORS preflight short-circuit."""
    return preflight_response()


async def gateway(
    request: Request,
    authorization: Optional[str] = Header(None),
    service: GatewayService = Depends(get_gateway_service),
):
    """
    Run one AI gateway call.

    Body: {mode, prompt?, image?, history?, model?, mimeType?, fileData?}
    Returns 200 {result} or {error, details} with 400/429/500.
    """
    raw_body = await request.body()
    token = extract_bearer_token(authorization)

    try:
        result = await run_in_threadpool(service.handle, raw_body, token)
    except GatewayError as e:
        if e.status_code >= 500:
            logger.error(f"Gateway failure: {e.message} ({e.details})")
        else:
            logger.info(f"Gateway request refused: {e.status_code} {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected gateway error")
        return failure_response("Internal gateway error", details=f"{type(e).__name__}: {e}")

    return success_response(result)


async def gateway_method_not_allowed():
    return failure_response("Method not allowed", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)


for path in GATEWAY_PATHS:
    router.add_api_route(path, gateway_preflight, methods=["OPTIONS"], include_in_schema=False)
    router.add_api_route(path, gateway, methods=["POST"])
    router.add_api_route(path, gateway_method_not_allowed, methods=["GET", "PUT", "PATCH", "DELETE"],
                         include_in_schema=False)

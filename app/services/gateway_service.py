"""
AI gateway orchestration.

One request flows: provider key check → JSON/variant parse → rate limit
(skipped for wakeup) → compose → invoke. Configuration and input errors are
raised before anything is written to the quota store or sent to the model.
"""
import json
import logging
from typing import Callable, Optional

from app.core import config
from app.core.errors import ConfigError, InputError, QuotaExceeded
from app.core.logging_config import sanitize_log_data
from app.core.rate_limit import Admission, RateLimiter
from app.llm.composer import compose
from app.llm.provider import LLMProvider
from app.llm.runner import ModelInvoker
from app.schemas.gateway import WakeupRequest, parse_gateway_request

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str], LLMProvider]


def decode_json_body(raw_body: bytes):
    """
    Decode the request body as JSON.

    Raises:
        InputError: body is empty or not valid JSON
    """
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InputError("Invalid JSON body", details=str(e))


class GatewayService:
    """Handles one gateway call end to end."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        provider_factory: ProviderFactory,
        daily_limit: int = config.DAILY_REQUEST_LIMIT,
        api_key_lookup: Callable[[], Optional[str]] = config.get_gemini_api_key,
    ):
        self.rate_limiter = rate_limiter
        self.provider_factory = provider_factory
        self.daily_limit = daily_limit
        self.api_key_lookup = api_key_lookup

    def handle(self, raw_body: bytes, token: Optional[str]) -> str:
        """
        Process a gateway request body.

        Args:
            raw_body: Raw POST body
            token: Bearer token, or None for anonymous callers

        Returns:
            Generated text

        Raises:
            ConfigError: provider key missing
            InputError: malformed body, unknown mode, missing fields
            QuotaExceeded: daily limit reached
            ProviderError: model call failed or returned nothing
        """
        api_key = self.api_key_lookup()
        if not api_key:
            logger.error("GEMINI_API_KEY is not configured")
            raise ConfigError("Missing API Key", details="GEMINI_API_KEY is not configured")

        payload = decode_json_body(raw_body)
        request = parse_gateway_request(payload)

        if isinstance(payload, dict):
            logger.info(f"Gateway request: {sanitize_log_data({k: v for k, v in payload.items() if k != 'history'})}")

        if not isinstance(request, WakeupRequest):
            decision = self.rate_limiter.check_and_increment(token, self.daily_limit)
            if decision.admission == Admission.REJECTED:
                raise QuotaExceeded(details=f"{decision.request_count}/{self.daily_limit} requests used today")
            if decision.admission == Admission.DEGRADED:
                logger.warning(f"Request admitted without metering: {decision.reason}")

        composed = compose(request)
        invoker = ModelInvoker(self.provider_factory(api_key))
        return invoker.invoke(composed)

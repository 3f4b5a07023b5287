"""
HTTP client for the AI gateway, as used by the mobile app.

Retry lives here, above the gateway: chat retries a fixed number of times
with a fixed delay before giving up with a canned reply. Other modes fail
fast with a mode-specific message.
"""
import logging
import time
from typing import Callable, List, Optional

import httpx
from pydantic import ValidationError

from app.schemas.gateway import DiagnosisReport

logger = logging.getLogger(__name__)

CHAT_MAX_ATTEMPTS = 3
CHAT_RETRY_DELAY_SECONDS = 2.0
DEFAULT_TIMEOUT_SECONDS = 65.0

CHAT_FAILURE_MESSAGE = "Sorry, I'm having trouble reaching the grow lab right now. Please try again in a moment."
DIAGNOSIS_FAILURE_MESSAGE = "Failed to connect to AI Doctor"
INSIGHT_FAILURE_MESSAGE = "Strain insight is unavailable right now."
DAILY_LIMIT_MESSAGE = "You've reached today's AI limit. It resets tomorrow."


class GatewayClientError(Exception):
    """User-facing failure from a gateway call."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


def _is_retryable(error: Exception) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, GatewayClientError):
        return error.status_code is not None and error.status_code >= 500
    return False


class GatewayClient:
    """Thin synchronous client for POST /functions/v1/gemini-gateway."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        path: str = "/functions/v1/gemini-gateway",
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.path = path
        self.access_token = access_token
        self.http = http_client or httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT_SECONDS)
        self.sleep = sleep

    def _post(self, body: dict) -> str:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        response = self.http.post(self.path, json=body, headers=headers)
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            raise GatewayClientError(
                data.get("error") or f"Gateway returned {response.status_code}",
                status_code=response.status_code,
                details=data.get("details"),
            )
        result = data.get("result")
        if not result:
            raise GatewayClientError("Empty gateway response", status_code=response.status_code)
        return result

    def chat(self, prompt: str, history: Optional[List[dict]] = None, image: Optional[str] = None,
             context: Optional[dict] = None) -> str:
        """
        Send a chat turn; returns the coach's reply or a canned apology.

        Retries transport errors and 5xx responses; a daily-limit rejection
        or a bad request is not retried.
        """
        body = {"mode": "chat", "prompt": prompt, "history": history or []}
        if image:
            body["image"] = image
        if context:
            body["context"] = context

        for attempt in range(1, CHAT_MAX_ATTEMPTS + 1):
            try:
                return self._post(body)
            except (httpx.HTTPError, GatewayClientError) as e:
                if isinstance(e, GatewayClientError) and e.status_code == 429:
                    return DAILY_LIMIT_MESSAGE
                if not _is_retryable(e) or attempt == CHAT_MAX_ATTEMPTS:
                    logger.warning(f"Chat failed after {attempt} attempt(s): {e}")
                    return CHAT_FAILURE_MESSAGE
                logger.info(f"Chat attempt {attempt} failed, retrying in {CHAT_RETRY_DELAY_SECONDS}s: {e}")
                self.sleep(CHAT_RETRY_DELAY_SECONDS)

        return CHAT_FAILURE_MESSAGE

    def diagnose(self, image: str, strain: Optional[str] = None, environment: str = "Indoor",
                 experience: str = "Intermediate", prompt: Optional[str] = None) -> DiagnosisReport:
        """
        Run a photo diagnosis and parse the report.

        Raises:
            GatewayClientError: "Failed to connect to AI Doctor" on any failure
        """
        body = {"mode": "diagnosis", "image": image, "environment": environment, "experience": experience}
        if strain:
            body["strain"] = strain
        if prompt:
            body["prompt"] = prompt

        try:
            result = self._post(body)
            return parse_diagnosis_report(result)
        except (httpx.HTTPError, GatewayClientError, ValidationError) as e:
            logger.warning(f"Diagnosis failed: {e}")
            status_code = getattr(e, "status_code", None)
            raise GatewayClientError(DIAGNOSIS_FAILURE_MESSAGE, status_code=status_code, details=str(e))

    def insight(self, prompt: str) -> str:
        """Strain genetics lookup."""
        try:
            return self._post({"mode": "insight", "prompt": prompt})
        except (httpx.HTTPError, GatewayClientError) as e:
            logger.warning(f"Insight failed: {e}")
            raise GatewayClientError(INSIGHT_FAILURE_MESSAGE, status_code=getattr(e, "status_code", None),
                                     details=str(e))

    def wakeup(self) -> bool:
        """Best-effort keep-warm ping; True when the gateway answered."""
        try:
            self._post({"mode": "wakeup"})
            return True
        except (httpx.HTTPError, GatewayClientError) as e:
            logger.debug(f"Wakeup ping failed: {e}")
            return False


def parse_diagnosis_report(text: str) -> DiagnosisReport:
    """
    Parse the model's diagnosis JSON, tolerating a markdown code fence.

    Raises:
        pydantic.ValidationError: text is not a valid report
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    return DiagnosisReport.model_validate_json(cleaned.strip())

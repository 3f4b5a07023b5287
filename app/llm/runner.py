"""
Model invoker: sends a composed request to the provider and extracts the text.

There is no retry here; the mobile client owns retry policy.
"""
import logging
import time
from typing import Optional

from app.core.errors import ProviderError
from app.llm.composer import ComposedRequest
from app.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class ModelInvoker:
    """Runs one composed request against an LLM provider."""

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    def _call(self, composed: ComposedRequest) -> LLMResponse:
        if composed.conversational:
            return self.provider.chat(
                model=composed.model,
                system_instruction=composed.system_instruction,
                history=composed.history,
                parts=composed.parts,
                settings=composed.settings,
            )
        return self.provider.generate(
            model=composed.model,
            system_instruction=composed.system_instruction,
            parts=composed.parts,
            settings=composed.settings,
        )

    def invoke(self, composed: ComposedRequest) -> str:
        """
        Call the model and return its text.

        Raises:
            ProviderError: the call failed or produced no text
        """
        started = time.monotonic()
        response = self._call(composed)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        text: Optional[str] = response.content.strip() if response.content else None
        if not text:
            finish_reason = response.metadata.get("finish_reason")
            logger.error(f"Empty model response: mode={composed.mode}, model={composed.model}, finish_reason={finish_reason}")
            raise ProviderError(
                "No response from AI",
                details=f"model={composed.model}, finish_reason={finish_reason}",
            )

        logger.info(
            f"Model call completed: mode={composed.mode}, model={composed.model}, "
            f"tokens={response.tokens_in + response.tokens_out}, elapsed_ms={elapsed_ms}"
        )
        return response.content

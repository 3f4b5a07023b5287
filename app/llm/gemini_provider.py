"""
Gemini provider implementation.
"""
import json
import logging
from typing import Optional, List

import httpx
from google import genai
from google.genai import errors, types

from app.core import config
from app.core.errors import ConfigError, ProviderError
from app.llm.provider import ContentPart, GenerationSettings, LLMProvider, LLMResponse, Turn

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = [
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
]


def describe_provider_error(error: Exception) -> str:
    """Serialize whatever diagnostic detail the provider exposes."""
    if isinstance(error, errors.APIError):
        return json.dumps({
            "type": type(error).__name__,
            "code": error.code,
            "status": error.status,
            "message": error.message,
        })
    return json.dumps({"type": type(error).__name__, "message": str(error)})


def to_genai_part(part: ContentPart) -> types.Part:
    if part.is_inline:
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    return types.Part.from_text(text=part.text or "")


class GeminiProvider(LLMProvider):
    """Gemini provider using the official google-genai SDK."""

    def __init__(self, api_key: Optional[str] = None, timeout_seconds: float = config.GEMINI_TIMEOUT_SECONDS):
        """Initialize Gemini client with a bounded request timeout."""
        self.api_key = api_key or config.get_gemini_api_key()
        if not self.api_key:
            raise ConfigError("Missing API Key", details="GEMINI_API_KEY is not configured")
        # google-genai expects the timeout in milliseconds
        self.client = genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
        )
        logger.info("Gemini provider initialized")

    def _build_config(self, system_instruction: str, settings: Optional[GenerationSettings]) -> types.GenerateContentConfig:
        settings = settings or GenerationSettings()
        kwargs = {"system_instruction": system_instruction}
        if settings.temperature is not None:
            kwargs["temperature"] = settings.temperature
        if settings.top_p is not None:
            kwargs["top_p"] = settings.top_p
        if settings.top_k is not None:
            kwargs["top_k"] = settings.top_k
        if settings.max_output_tokens is not None:
            kwargs["max_output_tokens"] = settings.max_output_tokens
        if settings.response_mime_type:
            kwargs["response_mime_type"] = settings.response_mime_type
        if settings.response_schema is not None:
            kwargs["response_schema"] = settings.response_schema
        if settings.thinking_level:
            kwargs["thinking_config"] = types.ThinkingConfig(thinking_level=settings.thinking_level)
        if settings.safety_threshold:
            kwargs["safety_settings"] = [
                types.SafetySetting(category=category, threshold=settings.safety_threshold)
                for category in SAFETY_CATEGORIES
            ]
        return types.GenerateContentConfig(**kwargs)

    def _to_response(self, response: types.GenerateContentResponse, model: str) -> LLMResponse:
        usage = response.usage_metadata
        finish_reason = None
        if response.candidates:
            finish_reason = response.candidates[0].finish_reason
        return LLMResponse(
            content=response.text or "",
            tokens_in=(usage.prompt_token_count or 0) if usage else 0,
            tokens_out=(usage.candidates_token_count or 0) if usage else 0,
            model=model,
            metadata={"finish_reason": str(finish_reason) if finish_reason else None},
        )

    def generate(
        self,
        model: str,
        system_instruction: str,
        parts: List[ContentPart],
        settings: Optional[GenerationSettings] = None,
    ) -> LLMResponse:
        """Single-shot generate_content call."""
        try:
            response = self.client.models.generate_content(
                model=model,
                contents=[types.Content(role="user", parts=[to_genai_part(p) for p in parts])],
                config=self._build_config(system_instruction, settings),
            )
        except (errors.APIError, httpx.HTTPError) as e:
            logger.error(f"Gemini API error: {e}", exc_info=True)
            raise ProviderError(str(e) or "Gemini request failed", details=describe_provider_error(e))
        return self._to_response(response, model)

    def chat(
        self,
        model: str,
        system_instruction: str,
        history: List[Turn],
        parts: List[ContentPart],
        settings: Optional[GenerationSettings] = None,
    ) -> LLMResponse:
        """Chat session seeded with history; sends the new turn's parts."""
        try:
            session = self.client.chats.create(
                model=model,
                config=self._build_config(system_instruction, settings),
                history=[
                    types.Content(role=turn.role, parts=[types.Part.from_text(text=turn.text)])
                    for turn in history
                ],
            )
            response = session.send_message([to_genai_part(p) for p in parts])
        except (errors.APIError, httpx.HTTPError) as e:
            logger.error(f"Gemini chat error: {e}", exc_info=True)
            raise ProviderError(str(e) or "Gemini chat failed", details=describe_provider_error(e))
        return self._to_response(response, model)

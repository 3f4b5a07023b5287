"""
LLM Provider interface for abstracting generative-AI implementations.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class ContentPart:
    """
    One unit of model input: plain text, or inline binary data with a MIME type.
    """
    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "ContentPart":
        return cls(data=data, mime_type=mime_type)

    @property
    def is_inline(self) -> bool:
        return self.data is not None


@dataclass
class Turn:
    """A prior conversation turn in provider terms ("user" or "model")."""
    role: str
    text: str


@dataclass
class GenerationSettings:
    """Sampling and safety knobs passed through to the provider."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_output_tokens: Optional[int] = None
    response_mime_type: Optional[str] = None
    response_schema: Any = None
    thinking_level: Optional[str] = None
    safety_threshold: Optional[str] = None


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def generate(
        self,
        model: str,
        system_instruction: str,
        parts: List[ContentPart],
        settings: Optional[GenerationSettings] = None,
    ) -> LLMResponse:
        """
        Single-shot generation.

        Args:
            model: Model identifier
            system_instruction: Persona/behaviour directive
            parts: Content parts of the single user turn
            settings: Optional generation settings

        Returns:
            LLMResponse; content may be empty when the model produced no text
        """
        pass

    @abstractmethod
    def chat(
        self,
        model: str,
        system_instruction: str,
        history: List[Turn],
        parts: List[ContentPart],
        settings: Optional[GenerationSettings] = None,
    ) -> LLMResponse:
        """
        Open a conversation seeded with history and send one new turn.

        Args:
            model: Model identifier
            system_instruction: Persona/behaviour directive
            history: Prior turns, already alternating and starting with "user"
            parts: Content parts of the new user turn
            settings: Optional generation settings

        Returns:
            LLMResponse; content may be empty when the model produced no text
        """
        pass

"""
Prompt/mode composer: turns a parsed gateway request into a model call.

Pure functions only. Each request variant has its own composer; the result
names the model, the system instruction, the content parts and, for chat,
the normalized history.
"""
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from app.core import config
from app.core.errors import InputError
from app.llm.provider import ContentPart, GenerationSettings, Turn
from app.llm.router import get_model_for_mode
from app.schemas.gateway import (
    ChatRequest,
    DiagnosisReport,
    DiagnosisRequest,
    GrowContext,
    HistoryTurn,
    InsightRequest,
    WakeupRequest,
    decode_base64_payload,
)

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"

DEFAULT_DIAGNOSIS_PROMPT = "Analyze this plant image."
WAKEUP_PING = "ping"
IMAGE_MIME_TYPE = "image/jpeg"

# Chat generation parameters and safety thresholds
CHAT_SETTINGS = GenerationSettings(
    temperature=0.7,
    top_p=0.95,
    top_k=40,
    max_output_tokens=2048,
    safety_threshold="BLOCK_MEDIUM_AND_ABOVE",
)

PROVIDER_ROLES = {"user": "user", "assistant": "model"}


@dataclass
class ComposedRequest:
    """Everything the model invoker needs for one call."""
    mode: str
    model: str
    system_instruction: str
    parts: List[ContentPart]
    history: List[Turn] = field(default_factory=list)
    conversational: bool = False
    settings: GenerationSettings = field(default_factory=GenerationSettings)


@lru_cache
def load_prompt_template(name: str, version: str = "v1") -> str:
    """Load a system-instruction template from app/llm/prompts."""
    prompt_path = PROMPTS_DIR / f"{name}_{version}.md"
    if prompt_path.exists():
        return prompt_path.read_text(encoding="utf-8").strip()
    logger.warning(f"Prompt template not found: {prompt_path}")
    return "You are MasterGrowbot. Be helpful, concise, and friendly."


def render_prompt(template: str, values: Dict[str, str]) -> str:
    """Substitute {placeholders}; other braces (e.g. JSON examples) are left alone."""
    prompt = template
    for key, value in values.items():
        prompt = prompt.replace(f"{{{key}}}", value or "")
    return prompt


def drop_leading_non_user_turns(history: Sequence[HistoryTurn]) -> List[HistoryTurn]:
    """
    Discard turns before the first "user" turn.

    The chat API requires the conversation to open with a user turn; an
    all-assistant history becomes empty.
    """
    for index, turn in enumerate(history):
        if turn.role == "user":
            return list(history[index:])
    return []


def merge_consecutive_turns(history: Sequence[HistoryTurn]) -> List[HistoryTurn]:
    """Join back-to-back turns from the same role so roles strictly alternate."""
    merged: List[HistoryTurn] = []
    for turn in history:
        if merged and merged[-1].role == turn.role:
            merged[-1] = HistoryTurn(role=turn.role, content=f"{merged[-1].content}\n\n{turn.content}")
        else:
            merged.append(HistoryTurn(role=turn.role, content=turn.content))
    return merged


def normalize_history(history: Sequence[HistoryTurn]) -> List[HistoryTurn]:
    """Alternating history that starts with a user turn."""
    return merge_consecutive_turns(drop_leading_non_user_turns(history))


def describe_grow_context(context: Optional[GrowContext]) -> str:
    if context is None:
        return ""

    lines = []
    if context.experience or context.grow_mode:
        lines.append(
            f"User Profile: {context.experience or 'Unknown'} experience, "
            f"{context.grow_mode or 'Unknown'} grow."
        )
    if context.goal:
        lines.append(f"Goal: {context.goal}.")
    if context.plant_name or context.strain:
        plant = f"Active Plant: {context.plant_name or 'Unnamed'} ({context.strain or 'Unknown'})."
        if context.stage:
            plant += f" Stage: {context.stage}."
        if context.health_score is not None:
            plant += f" Health: {context.health_score:g}/100."
        lines.append(plant)

    if not lines:
        return ""
    return "\nGROWER CONTEXT:\n" + "\n".join(lines)


def compose_wakeup(request: WakeupRequest) -> ComposedRequest:
    """Fixed ping with the cheapest model; ignores any prompt or image."""
    return ComposedRequest(
        mode="wakeup",
        model=get_model_for_mode("wakeup"),
        system_instruction=load_prompt_template("wakeup"),
        parts=[ContentPart.from_text(WAKEUP_PING)],
        settings=GenerationSettings(max_output_tokens=8),
    )


def compose_diagnosis(request: DiagnosisRequest) -> ComposedRequest:
    if not request.image:
        raise InputError("Missing required fields", details="image is required for diagnosis")

    instruction = render_prompt(load_prompt_template("diagnosis"), {
        "strain": (request.strain or "").strip() or "Unknown",
        "environment": request.environment,
        "experience": request.experience,
    })
    prompt = (request.prompt or "").strip() or DEFAULT_DIAGNOSIS_PROMPT

    return ComposedRequest(
        mode="diagnosis",
        model=get_model_for_mode("diagnosis", request.model),
        system_instruction=instruction,
        parts=[
            ContentPart.from_text(f"{instruction}\n\n{prompt}"),
            ContentPart.from_bytes(decode_base64_payload(request.image), IMAGE_MIME_TYPE),
        ],
        settings=GenerationSettings(
            response_mime_type="application/json",
            response_schema=DiagnosisReport,
            thinking_level=config.DIAGNOSIS_THINKING_LEVEL,
        ),
    )


def compose_chat(request: ChatRequest) -> ComposedRequest:
    instruction = render_prompt(load_prompt_template("chat"), {
        "grower_context": describe_grow_context(request.context),
    }).strip()

    history = normalize_history(request.history)
    parts: List[ContentPart] = []

    # The outgoing turn is a user turn; fold a trailing user turn into it
    if history and history[-1].role == "user":
        parts.append(ContentPart.from_text(history.pop().content))

    if request.prompt and request.prompt.strip():
        parts.append(ContentPart.from_text(request.prompt))
    if request.image:
        parts.append(ContentPart.from_bytes(decode_base64_payload(request.image), IMAGE_MIME_TYPE))
    if request.file_data:
        parts.append(ContentPart.from_bytes(decode_base64_payload(request.file_data), request.mime_type))

    return ComposedRequest(
        mode="chat",
        model=get_model_for_mode("chat", request.model),
        system_instruction=instruction,
        parts=parts,
        history=[Turn(role=PROVIDER_ROLES[t.role], text=t.content) for t in history],
        conversational=True,
        settings=CHAT_SETTINGS,
    )


def compose_insight(request: InsightRequest) -> ComposedRequest:
    return ComposedRequest(
        mode="insight",
        model=get_model_for_mode("insight", request.model),
        system_instruction=load_prompt_template("insight"),
        parts=[ContentPart.from_text(request.prompt)],
    )


COMPOSERS = {
    WakeupRequest: compose_wakeup,
    ChatRequest: compose_chat,
    DiagnosisRequest: compose_diagnosis,
    InsightRequest: compose_insight,
}


def compose(request) -> ComposedRequest:
    """
    Compose the model call for a parsed gateway request.

    Raises:
        InputError: the request is not a known variant
    """
    composer = COMPOSERS.get(type(request))
    if composer is None:
        raise InputError("Invalid mode", details=f"Unsupported request type: {type(request).__name__}")
    return composer(request)

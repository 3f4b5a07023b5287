"""
Unit tests for the prompt/mode composer.
Tests model routing, system instructions, content parts and chat history normalization.
"""
import base64
import pytest

from app.core import config
from app.core.errors import InputError
from app.llm.composer import (
    CHAT_SETTINGS,
    DEFAULT_DIAGNOSIS_PROMPT,
    compose,
    describe_grow_context,
    drop_leading_non_user_turns,
    merge_consecutive_turns,
    normalize_history,
)
from app.llm.router import get_model_for_mode
from app.schemas.gateway import (
    ChatRequest,
    DiagnosisReport,
    DiagnosisRequest,
    GrowContext,
    HistoryTurn,
    InsightRequest,
    WakeupRequest,
)


IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode()
PDF_BYTES = b"%PDF-1.4 feeding schedule"
PDF_B64 = base64.b64encode(PDF_BYTES).decode()


def turns(*pairs):
    return [HistoryTurn(role=role, content=content) for role, content in pairs]


def test_drop_leading_assistant_turns():
    """Test turns before the first user turn are discarded."""
    history = turns(("assistant", "Welcome!"), ("assistant", "Ask me anything"), ("user", "hi"), ("assistant", "hey"))

    result = drop_leading_non_user_turns(history)

    assert [t.content for t in result] == ["hi", "hey"]


def test_all_assistant_history_becomes_empty():
    """Test a history with no user turn normalizes to nothing."""
    assert normalize_history(turns(("assistant", "Welcome!"), ("assistant", "Still here"))) == []


def test_empty_history():
    """Test an empty history stays empty."""
    assert normalize_history([]) == []


def test_merge_consecutive_turns():
    """Test back-to-back turns from one role are joined."""
    history = turns(("user", "a"), ("user", "b"), ("assistant", "c"), ("assistant", "d"), ("user", "e"))

    result = merge_consecutive_turns(history)

    assert [(t.role, t.content) for t in result] == [
        ("user", "a\n\nb"),
        ("assistant", "c\n\nd"),
        ("user", "e"),
    ]


def test_normalized_history_alternates_and_starts_with_user():
    """Test the normalized history alternates roles and opens with a user turn."""
    history = turns(("assistant", "x"), ("user", "1"), ("user", "2"), ("assistant", "3"), ("user", "4"))

    result = normalize_history(history)

    assert result[0].role == "user"
    assert all(a.role != b.role for a, b in zip(result, result[1:]))


def test_compose_wakeup_uses_cheapest_model_and_fixed_ping():
    """Test wakeup ignores any prompt and sends a fixed ping."""
    composed = compose(WakeupRequest(mode="wakeup"))

    assert composed.model == config.WAKEUP_MODEL
    assert [p.text for p in composed.parts] == ["ping"]
    assert not composed.conversational
    assert "pong" in composed.system_instruction


def test_compose_diagnosis_defaults():
    """Test diagnosis fills in Unknown/Indoor/Intermediate and the default prompt."""
    composed = compose(DiagnosisRequest(mode="diagnosis", image=IMAGE_B64))

    assert composed.model == config.PRO_MODEL
    assert "Strain: Unknown" in composed.system_instruction
    assert "Cultivation Method: Indoor" in composed.system_instruction
    assert "Grower Experience: Intermediate" in composed.system_instruction
    assert "{strain}" not in composed.system_instruction


def test_compose_diagnosis_parts():
    """Test diagnosis sends [instruction + prompt text, inline JPEG] in that order."""
    composed = compose(DiagnosisRequest(
        mode="diagnosis",
        image=IMAGE_B64,
        strain="Blue Dream",
        environment="Outdoor",
        experience="Expert",
        prompt="Spots on the fan leaves",
    ))

    text_part, image_part = composed.parts
    assert text_part.text.startswith(composed.system_instruction)
    assert text_part.text.endswith("\n\nSpots on the fan leaves")
    assert "Strain: Blue Dream" in text_part.text
    assert "Cultivation Method: Outdoor" in text_part.text
    assert image_part.is_inline
    assert image_part.data == IMAGE_BYTES
    assert image_part.mime_type == "image/jpeg"


def test_compose_diagnosis_blank_prompt_uses_default():
    """Test a blank prompt falls back to the default analysis request."""
    composed = compose(DiagnosisRequest(mode="diagnosis", image=IMAGE_B64, prompt="   "))

    assert composed.parts[0].text.endswith(DEFAULT_DIAGNOSIS_PROMPT)


def test_compose_diagnosis_requests_json():
    """Test diagnosis asks the model for a JSON report."""
    composed = compose(DiagnosisRequest(mode="diagnosis", image=IMAGE_B64))

    assert composed.settings.response_mime_type == "application/json"
    assert composed.settings.response_schema is DiagnosisReport


def test_compose_diagnosis_without_image_raises():
    """Test the composer refuses a diagnosis without an image."""
    request = DiagnosisRequest.model_construct(mode="diagnosis", image=None, prompt=None, strain=None,
                                               environment="Indoor", experience="Intermediate", model=None)

    with pytest.raises(InputError) as exc_info:
        compose(request)
    assert exc_info.value.message == "Missing required fields"


def test_compose_chat_text_only():
    """Test a plain chat turn."""
    composed = compose(ChatRequest(mode="chat", prompt="When should I flip to flower?"))

    assert composed.model == config.FAST_MODEL
    assert composed.conversational
    assert composed.history == []
    assert [p.text for p in composed.parts] == ["When should I flip to flower?"]
    assert composed.settings == CHAT_SETTINGS
    assert "MasterGrowbot" in composed.system_instruction


def test_compose_chat_history_roles():
    """Test assistant turns are sent to the provider as model turns."""
    composed = compose(ChatRequest(
        mode="chat",
        prompt="And nitrogen?",
        history=[
            {"role": "assistant", "content": "Welcome to the grow lab!"},
            {"role": "user", "content": "My leaves are yellow"},
            {"role": "assistant", "content": "Which leaves?"},
        ],
    ))

    assert [(t.role, t.text) for t in composed.history] == [
        ("user", "My leaves are yellow"),
        ("model", "Which leaves?"),
    ]
    assert [p.text for p in composed.parts] == ["And nitrogen?"]


def test_compose_chat_folds_trailing_user_turn():
    """Test a history ending with a user turn is folded into the new message."""
    composed = compose(ChatRequest(
        mode="chat",
        prompt="Also, what pH?",
        history=[
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello grower"},
            {"role": "user", "content": "Lower leaves are curling"},
        ],
    ))

    assert [t.role for t in composed.history] == ["user", "model"]
    assert [p.text for p in composed.parts] == ["Lower leaves are curling", "Also, what pH?"]


def test_compose_chat_with_image():
    """Test a chat image is attached as inline JPEG after the text."""
    composed = compose(ChatRequest(mode="chat", prompt="Is this mold?", image=f"data:image/jpeg;base64,{IMAGE_B64}"))

    text_part, image_part = composed.parts
    assert text_part.text == "Is this mold?"
    assert image_part.data == IMAGE_BYTES
    assert image_part.mime_type == "image/jpeg"


def test_compose_chat_with_file_attachment():
    """Test a chat file attachment keeps its own MIME type."""
    composed = compose(ChatRequest(mode="chat", prompt="Review this", fileData=PDF_B64, mimeType="application/pdf"))

    assert composed.parts[-1].data == PDF_BYTES
    assert composed.parts[-1].mime_type == "application/pdf"


def test_compose_chat_image_only():
    """Test an image with no prompt is a valid chat turn."""
    composed = compose(ChatRequest(mode="chat", image=IMAGE_B64))

    assert len(composed.parts) == 1
    assert composed.parts[0].is_inline


def test_compose_chat_grower_context():
    """Test grower context is appended to the system instruction."""
    composed = compose(ChatRequest(
        mode="chat",
        prompt="How am I doing?",
        context={
            "experience": "Novice",
            "growMode": "Indoor",
            "goal": "Maximize Yield",
            "plantName": "Bertha",
            "strain": "Northern Lights",
            "stage": "Vegetative",
            "healthScore": 87,
        },
    ))

    assert "GROWER CONTEXT:" in composed.system_instruction
    assert "Novice experience, Indoor grow" in composed.system_instruction
    assert "Active Plant: Bertha (Northern Lights). Stage: Vegetative. Health: 87/100." in composed.system_instruction
    assert "{grower_context}" not in composed.system_instruction


def test_describe_empty_grow_context():
    """Test no context adds nothing."""
    assert describe_grow_context(None) == ""
    assert describe_grow_context(GrowContext()) == ""


def test_compose_insight_is_text_only():
    """Test insight sends only the prompt text."""
    composed = compose(InsightRequest(mode="insight", prompt="Gelato #41"))

    assert composed.model == config.FAST_MODEL
    assert [p.text for p in composed.parts] == ["Gelato #41"]
    assert not any(p.is_inline for p in composed.parts)
    assert "genetics" in composed.system_instruction


def test_compose_unknown_request_type():
    """Test an unknown request object is an invalid mode."""
    with pytest.raises(InputError) as exc_info:
        compose(object())
    assert exc_info.value.message == "Invalid mode"


def test_model_override_allow_listed(monkeypatch):
    """Test an allow-listed override replaces the routed model."""
    monkeypatch.setattr(config, "ALLOWED_MODELS", [config.FAST_MODEL, config.PRO_MODEL])

    assert get_model_for_mode("chat", config.PRO_MODEL) == config.PRO_MODEL


def test_model_override_not_allow_listed(monkeypatch):
    """Test an unknown override is ignored."""
    monkeypatch.setattr(config, "ALLOWED_MODELS", [config.FAST_MODEL])

    assert get_model_for_mode("diagnosis", "some-expensive-model") == config.PRO_MODEL


def test_model_override_ignored_for_wakeup(monkeypatch):
    """Test wakeup always uses the cheapest model."""
    monkeypatch.setattr(config, "ALLOWED_MODELS", [config.FAST_MODEL, config.PRO_MODEL])

    assert get_model_for_mode("wakeup", config.PRO_MODEL) == config.WAKEUP_MODEL

"""
Pydantic schemas for the AI gateway endpoint.

The request body is a tagged union on ``mode``. Each variant validates only
the fields its mode uses, so a missing image for a diagnosis or an unknown
mode fails at parse time, before any quota or provider call.
"""
import base64
import binascii
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator
from pydantic_core import PydanticCustomError

from app.core.errors import InputError

GrowMethod = Literal["Indoor", "Outdoor", "Greenhouse"]
ExperienceLevel = Literal["Novice", "Intermediate", "Expert"]
GrowthStage = Literal["Seedling", "Vegetative", "Early Flower", "Late Flower", "Harvest Ready"]


def decode_base64_payload(value: str) -> bytes:
    """Decode a base64 string, tolerating a leading data URL prefix."""
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"not valid base64: {e}")


def _check_base64(value: str) -> None:
    try:
        decode_base64_payload(value)
    except ValueError as e:
        raise PydanticCustomError("invalid_base64", "{error}", {"error": str(e)})


class HistoryTurn(BaseModel):
    """One prior chat turn."""
    role: Literal["user", "assistant"]
    content: str


class GrowContext(BaseModel):
    """Optional grower and plant context the chat coach can use."""
    model_config = ConfigDict(populate_by_name=True)

    experience: Optional[ExperienceLevel] = None
    grow_mode: Optional[GrowMethod] = Field(None, alias="growMode")
    goal: Optional[str] = None
    plant_name: Optional[str] = Field(None, alias="plantName")
    strain: Optional[str] = None
    stage: Optional[str] = None
    health_score: Optional[float] = Field(None, alias="healthScore")


class _GatewayRequestBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WakeupRequest(_GatewayRequestBase):
    """Keep-warm ping; needs nothing but the mode."""
    mode: Literal["wakeup"]


class ChatRequest(_GatewayRequestBase):
    """A turn with the grow coach, with optional history and attachment."""
    mode: Literal["chat"]
    model: Optional[str] = Field(None, description="Model override")
    prompt: Optional[str] = None
    image: Optional[str] = Field(None, description="Base64 JPEG")
    history: List[HistoryTurn] = Field(default_factory=list)
    mime_type: Optional[str] = Field(None, alias="mimeType")
    file_data: Optional[str] = Field(None, alias="fileData", description="Base64 attachment")
    context: Optional[GrowContext] = None

    @field_validator("image", "file_data")
    @classmethod
    def _valid_base64(cls, value: Optional[str]) -> Optional[str]:
        if value:
            _check_base64(value)
        return value or None

    @model_validator(mode="after")
    def _has_content(self):
        if not (self.prompt and self.prompt.strip()) and not self.image and not self.file_data:
            raise ValueError("prompt or image is required for chat")
        if self.file_data and not self.mime_type:
            raise ValueError("mimeType is required with fileData")
        return self


class DiagnosisRequest(_GatewayRequestBase):
    """Photo diagnosis; the image is mandatory."""
    mode: Literal["diagnosis"]
    model: Optional[str] = Field(None, description="Model override")
    image: Optional[str] = Field(None, description="Base64 JPEG")
    prompt: Optional[str] = None
    strain: Optional[str] = None
    environment: GrowMethod = "Indoor"
    experience: ExperienceLevel = "Intermediate"

    @field_validator("image")
    @classmethod
    def _valid_base64(cls, value: Optional[str]) -> Optional[str]:
        if value:
            _check_base64(value)
        return value or None

    @model_validator(mode="after")
    def _has_image(self):
        if not self.image:
            raise ValueError("image is required for diagnosis")
        return self


class InsightRequest(_GatewayRequestBase):
    """Strain genetics lookup; text only."""
    mode: Literal["insight"]
    model: Optional[str] = Field(None, description="Model override")
    prompt: Optional[str] = None

    @model_validator(mode="after")
    def _has_prompt(self):
        if not (self.prompt and self.prompt.strip()):
            raise ValueError("prompt is required for insight")
        return self


GatewayRequest = Annotated[
    Union[WakeupRequest, ChatRequest, DiagnosisRequest, InsightRequest],
    Field(discriminator="mode"),
]

_gateway_request_adapter = TypeAdapter(GatewayRequest)

_MODE_ERRORS = {"union_tag_invalid", "union_tag_not_found"}
_MISSING_ERRORS = {"missing", "value_error"}


def _describe(errors: list) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("wakeup", "chat", "diagnosis", "insight"))
        msg = err.get("msg", "")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def parse_gateway_request(payload) -> Union[WakeupRequest, ChatRequest, DiagnosisRequest, InsightRequest]:
    """
    Parse a decoded JSON body into its request variant.

    Raises:
        InputError: unknown mode, missing required fields, or invalid values
    """
    if not isinstance(payload, dict):
        raise InputError("Invalid JSON body", details="Request body must be a JSON object")

    try:
        return _gateway_request_adapter.validate_python(payload)
    except ValidationError as e:
        errors = e.errors()
        types = {err["type"] for err in errors}
        if types & _MODE_ERRORS:
            raise InputError("Invalid mode", details=f"Unsupported mode: {payload.get('mode')!r}")
        if types <= _MISSING_ERRORS:
            raise InputError("Missing required fields", details=_describe(errors))
        raise InputError("Invalid request fields", details=_describe(errors))


# ============================================
# Diagnosis report (model output contract)
# ============================================

class NutrientTargets(BaseModel):
    nitrogen: str = Field(..., description="Low / Medium / High")
    phosphorus: str
    potassium: str
    ph: Optional[str] = Field(None, description="Target pH range, e.g. 6.0-6.5")
    ec: Optional[str] = Field(None, description="Target EC, e.g. 1.4-1.8")


class EnvironmentTargets(BaseModel):
    temperature: str = Field(..., description="Target temperature range")
    humidity: str = Field(..., description="Target relative humidity range")
    vpd: Optional[str] = Field(None, description="Target VPD in kPa")
    light: Optional[str] = Field(None, description="Light schedule / intensity")


class DiagnosisReport(BaseModel):
    """JSON document the diagnosis mode instructs the model to return."""
    diagnosis: str
    severity: Literal["low", "medium", "high"]
    health_score: float = Field(..., alias="healthScore", ge=0, le=100)
    confidence: float = Field(..., ge=0, le=100)
    growth_stage: GrowthStage = Field(..., alias="growthStage")
    top_action: str = Field(..., alias="topAction")
    fix_steps: List[str] = Field(default_factory=list, alias="fixSteps")
    prevention_steps: List[str] = Field(default_factory=list, alias="preventionSteps")
    nutrient_targets: NutrientTargets = Field(..., alias="nutrientTargets")
    environment_targets: EnvironmentTargets = Field(..., alias="environmentTargets")
    yield_impact: str = Field(..., alias="yieldImpact")
    harvest_estimate: str = Field(..., alias="harvestEstimate")
    risk_score: float = Field(..., alias="riskScore", ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True)


# ============================================
# Response envelopes
# ============================================

class GatewaySuccess(BaseModel):
    result: str


class GatewayFailure(BaseModel):
    error: str
    details: Optional[str] = None

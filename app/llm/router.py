"""
Model router for selecting the model used by each gateway mode.
"""
import logging
from typing import Optional
from app.core import config

logger = logging.getLogger(__name__)

# Mode -> model mapping
MODEL_ROUTING = {
    "chat": config.FAST_MODEL,  # Fast/cheap for conversation
    "insight": config.FAST_MODEL,  # Fast/cheap for strain lookups
    "diagnosis": config.PRO_MODEL,  # Vision + reasoning
    "wakeup": config.WAKEUP_MODEL,  # Cheapest possible keep-warm ping
}


def get_model_for_mode(mode: str, override: Optional[str] = None) -> str:
    """
    Get the model for a gateway mode.

    Args:
        mode: Gateway mode ("chat", "diagnosis", "insight", "wakeup")
        override: Client-requested model id; honoured only when allow-listed,
            and never for wakeup

    Returns:
        Model identifier string
    """
    model = MODEL_ROUTING[mode]

    if override and mode != "wakeup":
        if override in config.ALLOWED_MODELS:
            return override
        logger.warning(f"Ignoring model override not in ALLOWED_MODELS: mode={mode}, model={override}")

    return model

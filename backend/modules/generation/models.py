"""Generation request/response models."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from modules.credits.models import Feature


class GenerationRequest(BaseModel):
    """Feature-specific input, forwarded to the gateway as-is."""

    payload: dict[str, Any] = Field(default_factory=dict)


class GenerationResult(BaseModel):
    """Gateway output plus what the call cost."""

    feature: Feature
    output: dict[str, Any]
    credits_charged: int
    credits_before: int
    new_balance: int
    history_entry_id: Optional[str] = None

"""Request/response models for the assistant endpoints."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

# --- Chat ---


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(..., min_length=1, max_length=8000)


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1, max_length=50)
    model: str | None = None


class ChatResponse(BaseModel):
    message: str
    model: str


# --- Models ---


class AssistantHealthResponse(BaseModel):
    status: Literal["healthy", "unavailable"]
    models: list[str] = []


class ModelsResponse(BaseModel):
    current: str
    allowed: list[str]
    available: list[dict[str, Any]]


class ModelSwitchRequest(BaseModel):
    model: str = Field(..., min_length=1, max_length=64)


class ModelSwitchResponse(BaseModel):
    success: bool = True
    model: str
    message: str = "Model switched successfully"


# --- Recommendations ---


class LabelAction(BaseModel):
    """A plain suggestion with nothing to navigate to."""

    kind: Literal["label"] = "label"
    label: str


class StepAction(BaseModel):
    """A concrete next step, optionally linking to where it is done."""

    kind: Literal["step"] = "step"
    title: str
    url: str | None = None


RecommendationAction = Annotated[Union[LabelAction, StepAction], Field(discriminator="kind")]


class Recommendation(BaseModel):
    type: Literal["strength_based", "improvement", "support"]
    title: str
    description: str
    priority: Literal["high", "medium", "low"]
    actions: list[RecommendationAction] = []


class RecommendationsResponse(BaseModel):
    recommendations: list[Recommendation]

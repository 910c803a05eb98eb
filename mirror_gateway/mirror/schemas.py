from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from mirror_gateway.core.schema import SchemaDescriptor

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]


# Request payloads


class GoalContext(BaseModel):
    title: str
    description: str | None = None

    model_config = ConfigDict(extra="allow")


class HistoryMessage(BaseModel):
    role: str
    content: str


class ChatTurnRequest(BaseModel):
    session_id: str
    goal: GoalContext
    user_message: str = Field(min_length=1)
    user_mood: str | None = None
    conversation_history: list[HistoryMessage] | None = None

    model_config = ConfigDict(extra="allow")


class ReframeRequest(BaseModel):
    session_id: str
    goal: GoalContext
    image_url: str = Field(pattern=r"^https?://")
    user_context_text: str | None = None


class ActionConstraints(BaseModel):
    max_minutes: float | None = None
    budget: Literal["free", "low", "any"] | None = None


class ActionContext(BaseModel):
    chat_summary: str
    future_deltas: list[Any] | None = None
    constraints: ActionConstraints | None = None


class ActionGenerateRequest(BaseModel):
    session_id: str
    goal: GoalContext
    context: ActionContext


class CheckinRequest(BaseModel):
    action_task_id: str
    photo_url: str = Field(pattern=r"^https?://")
    reflection_text: str | None = None
    goal: GoalContext
    session_context_summary: str | None = None


# Model outputs


class NextStep(BaseModel):
    suggest_photo_anchor: StrictBool
    suggest_action_collapse: StrictBool


class ChatOutput(BaseModel):
    reply: NonEmptyStr
    gentle_challenge_question: NonEmptyStr
    narrative_rewrite: NonEmptyStr
    next_step: NextStep


class FutureDelta(BaseModel):
    id: NonEmptyStr
    type: NonEmptyStr
    text: NonEmptyStr


class ActionSeed(BaseModel):
    hint: StrictStr | None = None


class ReframeOutput(BaseModel):
    future_deltas: list[FutureDelta] = Field(min_length=3, max_length=3)
    narration: NonEmptyStr
    action_seed: ActionSeed = Field(default_factory=ActionSeed)


class ActionTask(BaseModel):
    title: NonEmptyStr
    instructions: list[NonEmptyStr] = Field(min_length=1)
    rationale: NonEmptyStr
    estimated_minutes: Annotated[StrictInt, Field(ge=1, le=120)]
    requires_photo: StrictBool


class ActionOutput(BaseModel):
    action_task: ActionTask


class CheckinOutput(BaseModel):
    feedback: NonEmptyStr
    one_small_sustainment: NonEmptyStr
    next_prompt: NonEmptyStr


CHAT_SCHEMA = SchemaDescriptor("future_self_chat", ChatOutput)
REFRAME_SCHEMA = SchemaDescriptor("reframe", ReframeOutput)
ACTION_SCHEMA = SchemaDescriptor("action_task", ActionOutput)
CHECKIN_SCHEMA = SchemaDescriptor("checkin_feedback", CheckinOutput)

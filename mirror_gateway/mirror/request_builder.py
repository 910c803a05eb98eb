from __future__ import annotations

import json

from mirror_gateway.core.types import DEFAULT_MAX_ATTEMPTS, BinaryPart, GenerationRequest

from .schemas import (
    ACTION_SCHEMA,
    CHAT_SCHEMA,
    CHECKIN_SCHEMA,
    REFRAME_SCHEMA,
    ActionGenerateRequest,
    ChatTurnRequest,
    CheckinRequest,
    ReframeRequest,
)

_CHAT_SYSTEM = " ".join(
    (
        "You are the user's future self who has already achieved their goal. "
        "Speak warmly, specifically, without cliches.",
        "Output JSON with fields: reply, gentle_challenge_question, narrative_rewrite, next_step.",
        "Keep responses concise and practical. "
        "Avoid psychological diagnosis or quantum/universe promises.",
    )
)

_STREAM_SYSTEM = " ".join(
    (
        "You are the user's trusted friend from their future.",
        "Reply as one natural chat message, like WhatsApp.",
        "Be warm and specific; avoid cliches, diagnosis, and hype.",
        "Use 4-8 short sentences and keep it practical.",
    )
)

_REFRAME_SYSTEM = " ".join(
    (
        "Based on the reality scene image, generate 3 specific future differences "
        "(objects/layout/behavior traces/micro-rituals).",
        "Provide 80-150 words narration.",
        "Output JSON: future_deltas[{id,type,text}], narration, action_seed.hint.",
        "Avoid judging the present, only describe the achievable version.",
    )
)

_ACTION_SYSTEM = " ".join(
    (
        "Generate a 10-20 minute physical action that can be completed and photographed.",
        "Output JSON action_task{title,instructions[],rationale,estimated_minutes,"
        "requires_photo:true}.",
        "Avoid vague words, keep steps verifiable and concise.",
    )
)

_CHECKIN_SYSTEM = " ".join(
    (
        "Confirm user action, don't exaggerate, provide one small sustainable adjustment.",
        "Output JSON: feedback, one_small_sustainment, next_prompt.",
        "Keep tone simple and practical.",
    )
)

_HISTORY_LABELS = {"user": "User", "assistant": "Future self"}


def build_chat_request(
    payload: ChatTurnRequest,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> GenerationRequest:
    return GenerationRequest(
        task="future_self_chat",
        instruction=f"{_CHAT_SYSTEM}\nUser input: {_turn_context(payload)}",
        schema=CHAT_SCHEMA,
        temperature=0.6,
        max_attempts=max_attempts,
    )


def build_chat_stream_request(payload: ChatTurnRequest) -> GenerationRequest:
    return GenerationRequest(
        task="future_self_stream",
        instruction=f"{_STREAM_SYSTEM}\n\nContext:\n{_turn_context(payload)}",
        temperature=0.65,
        max_attempts=1,
    )


def build_reframe_request(
    payload: ReframeRequest,
    image: BinaryPart,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> GenerationRequest:
    instruction = (
        f"{_REFRAME_SYSTEM}\n"
        f"Related goal: {payload.goal.title}\n"
        f"User context: {payload.user_context_text or 'none'}"
    )
    return GenerationRequest(
        task="reframe",
        instruction=instruction,
        parts=(image,),
        schema=REFRAME_SCHEMA,
        temperature=0.6,
        max_attempts=max_attempts,
    )


def build_action_request(
    payload: ActionGenerateRequest,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> GenerationRequest:
    context = payload.context
    constraints = context.constraints.model_dump(exclude_none=True) if context.constraints else {}
    summary = " | ".join(
        (
            f"Goal: {payload.goal.title}",
            f"Chat summary: {context.chat_summary}",
            f"Future deltas: {json.dumps(context.future_deltas or [], ensure_ascii=False)}",
            f"Constraints: {json.dumps(constraints, ensure_ascii=False)}",
        )
    )
    return GenerationRequest(
        task="action_task",
        instruction=f"{_ACTION_SYSTEM}\nContext: {summary}",
        schema=ACTION_SCHEMA,
        temperature=0.5,
        max_attempts=max_attempts,
    )


def build_checkin_request(
    payload: CheckinRequest,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> GenerationRequest:
    summary = " | ".join(
        (
            f"Goal: {payload.goal.title}",
            f"Reflection: {payload.reflection_text or 'none'}",
            f"Session context: {payload.session_context_summary or 'none'}",
        )
    )
    return GenerationRequest(
        task="checkin_feedback",
        instruction=f"{_CHECKIN_SYSTEM}\nAction summary: {summary}",
        schema=CHECKIN_SCHEMA,
        temperature=0.5,
        max_attempts=max_attempts,
    )


def _turn_context(payload: ChatTurnRequest) -> str:
    lines = [
        f"Goal: {payload.goal.title}",
        f"Description: {payload.goal.description or 'none'}",
    ]
    if payload.user_mood:
        lines.append(f"Mood: {payload.user_mood}")

    if payload.conversation_history:
        lines.append("Conversation so far:")
        for message in payload.conversation_history:
            label = _HISTORY_LABELS.get(message.role.lower(), message.role.capitalize())
            lines.append(f"{label}: {message.content.strip()}")

    lines.append(f"User: {payload.user_message}")
    return "\n".join(lines)

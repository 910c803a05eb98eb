from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from .errors import StructuredOutputError
from .generation import TextGenerator
from .schema import Invalid
from .types import Attempt, AttemptOutcome, GenerationRequest

logger = logging.getLogger(__name__)

TRANSPORT_HINT = "Return strict JSON only. No markdown, no extra keys, no extra text."
PARSE_HINT = "Your last response was not valid JSON. Return one valid JSON object only."

_PREVIEW_CHARS = 300


def correction_hint(attempt: Attempt) -> str:
    if attempt.outcome is AttemptOutcome.TRANSPORT_FAILED:
        return TRANSPORT_HINT
    if attempt.outcome is AttemptOutcome.PARSE_FAILED:
        return PARSE_HINT
    if attempt.outcome is AttemptOutcome.VALIDATION_FAILED:
        issues = "; ".join(str(issue) for issue in attempt.issues)
        return f"Fix schema issues exactly: {issues}. Return one valid JSON object only."
    return ""


def attempt_instruction(instruction: str, previous: Attempt | None) -> str:
    hint = correction_hint(previous) if previous is not None else ""
    if not hint:
        return instruction
    return f"{instruction}\n\nIMPORTANT: {hint}"


class StructuredOutputEngine:
    """Drive sequential generator calls until the output validates.

    Every failure class (transport, parse, validation) consumes one attempt
    from the same budget. The next attempt's instruction carries a correction
    hint derived from the previous failure only.
    """

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    async def run(self, request: GenerationRequest) -> Any:
        if request.schema is None:
            raise ValueError(f"request for task '{request.task}' has no schema")

        total = max(1, request.max_attempts)
        attempts: list[Attempt] = []

        for index in range(1, total + 1):
            previous = attempts[-1] if attempts else None
            attempt_request = replace(
                request,
                instruction=attempt_instruction(request.instruction, previous),
            )

            try:
                raw_text = await self._generator.generate(attempt_request)
            except Exception as exc:
                attempt = Attempt(
                    index=index,
                    outcome=AttemptOutcome.TRANSPORT_FAILED,
                    status_code=getattr(exc, "status_code", None),
                    detail=str(exc) or type(exc).__name__,
                )
                attempts.append(attempt)
                logger.warning(
                    "[%s] request failed (attempt %d/%d): %s",
                    request.task,
                    index,
                    total,
                    attempt.detail,
                )
                continue

            try:
                parsed = json.loads(raw_text)
            except (TypeError, ValueError) as exc:
                attempt = Attempt(
                    index=index,
                    outcome=AttemptOutcome.PARSE_FAILED,
                    raw_text=raw_text,
                    detail=str(exc),
                )
                attempts.append(attempt)
                logger.warning(
                    "[%s] invalid JSON (attempt %d/%d): %s raw_preview=%r",
                    request.task,
                    index,
                    total,
                    attempt.detail,
                    _preview(raw_text),
                )
                continue

            result = request.schema.validate(parsed)
            if isinstance(result, Invalid):
                attempt = Attempt(
                    index=index,
                    outcome=AttemptOutcome.VALIDATION_FAILED,
                    raw_text=raw_text,
                    issues=result.issues,
                    detail=result.summary(),
                )
                attempts.append(attempt)
                logger.warning(
                    "[%s] schema validation failed (attempt %d/%d): %s raw_preview=%r",
                    request.task,
                    index,
                    total,
                    attempt.detail,
                    _preview(raw_text),
                )
                continue

            attempts.append(
                Attempt(index=index, outcome=AttemptOutcome.SUCCEEDED, raw_text=raw_text)
            )
            if index > 1:
                logger.info("[%s] succeeded on attempt %d/%d", request.task, index, total)
            return result.value

        last = attempts[-1]
        raise StructuredOutputError(
            task=request.task,
            outcome=last.outcome,
            detail=last.detail,
            attempts=attempts,
        )


def _preview(raw_text: str | None) -> str:
    return (raw_text or "")[:_PREVIEW_CHARS]

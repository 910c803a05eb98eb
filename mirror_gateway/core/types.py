from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .schema import SchemaDescriptor, ValidationIssue

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class BinaryPart:
    mime_type: str
    data: bytes

    def __repr__(self) -> str:
        return f"BinaryPart(mime_type={self.mime_type!r}, size={len(self.data)})"


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    task: str
    instruction: str
    parts: tuple[BinaryPart, ...] = ()
    schema: SchemaDescriptor | None = None
    temperature: float = 0.5
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @property
    def multimodal(self) -> bool:
        return bool(self.parts)


class AttemptOutcome(str, enum.Enum):
    TRANSPORT_FAILED = "transport_failed"
    PARSE_FAILED = "parse_failed"
    VALIDATION_FAILED = "validation_failed"
    SUCCEEDED = "succeeded"


@dataclass(slots=True)
class Attempt:
    index: int
    outcome: AttemptOutcome
    raw_text: str | None = None
    issues: tuple[ValidationIssue, ...] = ()
    status_code: int | None = None
    detail: str = ""


@dataclass(frozen=True, slots=True)
class TextChunk:
    text: str


@dataclass(frozen=True, slots=True)
class StreamEvent:
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def start(cls) -> StreamEvent:
        return cls("start", {"ok": True})

    @classmethod
    def delta(cls, text: str) -> StreamEvent:
        return cls("delta", {"text": text})

    @classmethod
    def error(cls, message: str) -> StreamEvent:
        return cls("error", {"message": message})

    @classmethod
    def done(cls, reply: str) -> StreamEvent:
        return cls("done", {"reply": reply})

    @property
    def terminal(self) -> bool:
        return self.kind in {"error", "done"}


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    session_id: str
    turn_id: str
    role: str
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import Attempt, AttemptOutcome


@dataclass
class GatewayError(Exception):
    status_code: int
    message: str
    code: str | None = None

    def __str__(self) -> str:
        return self.message

    def to_error(self) -> dict[str, str]:
        return {"error": self.message}


@dataclass
class TransportError(Exception):
    """The upstream call itself failed (unreachable, non-success status)."""

    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class StructuredOutputError(Exception):
    task: str
    outcome: "AttemptOutcome"
    detail: str
    attempts: list["Attempt"] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"[{self.task}] failed after {len(self.attempts)} attempts "
            f"({self.outcome.value}): {self.detail}"
        )


class StreamInitError(GatewayError):
    """Failure before any byte of the event stream was committed."""


class StreamRuntimeError(RuntimeError):
    """Failure after `start` was emitted; reported in-band."""


class EmptyReplyError(StreamRuntimeError):
    pass

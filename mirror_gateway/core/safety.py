from __future__ import annotations

from typing import Protocol

SAFETY_NOTICE = (
    "Safety notice: If you have thoughts of self-harm or extreme emotions, please "
    "immediately contact your local emergency helpline or a trusted person. This tool "
    "is for reflection and action planning only, not medical or psychological therapy."
)

_SELF_HARM_KEYWORDS = (
    "suicide",
    "kill myself",
    "hurt myself",
    "end my life",
    "don't want to live",
    "want to die",
    "self harm",
)


class SafetyScreen(Protocol):
    def screen(self, text: str) -> bool:
        """Return True when the message must be blocked before generation."""
        ...


class KeywordSafetyScreen:
    def __init__(self, keywords: tuple[str, ...] = _SELF_HARM_KEYWORDS) -> None:
        self._keywords = tuple(keyword.lower() for keyword in keywords)

    def screen(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self._keywords)

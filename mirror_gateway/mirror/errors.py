from __future__ import annotations

from google.genai import errors as genai_errors

from mirror_gateway.core.errors import GatewayError, StructuredOutputError, TransportError

UNUSABLE_OUTPUT_MESSAGE = "The assistant could not produce a usable result. Please try again."


def map_generation_error(exc: Exception) -> GatewayError:
    """Map generation failures onto an HTTP-facing ``GatewayError``."""

    if isinstance(exc, GatewayError):
        return exc

    if isinstance(exc, StructuredOutputError):
        last = exc.attempts[-1] if exc.attempts else None
        if last is not None and last.status_code == 429:
            return map_generation_error(TransportError(exc.detail, status_code=429))
        return GatewayError(
            status_code=502,
            message=UNUSABLE_OUTPUT_MESSAGE,
            code=f"structured_output_{exc.outcome.value}",
        )

    if isinstance(exc, TransportError):
        if exc.status_code == 429:
            return GatewayError(
                status_code=429,
                message="The assistant is busy right now. Please retry shortly.",
                code="rate_limited",
            )
        return GatewayError(
            status_code=502,
            message="The assistant service is unreachable.",
            code="upstream_unavailable",
        )

    if isinstance(exc, genai_errors.APIError):
        return map_generation_error(TransportError(message=str(exc), status_code=exc.code))

    return GatewayError(
        status_code=500,
        message="Unexpected server error.",
        code="internal_error",
    )

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

_HINT_KEYS = ("type", "properties", "required", "items", "enum", "description")


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, slots=True)
class Valid(Generic[ModelT]):
    value: ModelT
    ok = True


@dataclass(frozen=True, slots=True)
class Invalid:
    issues: tuple[ValidationIssue, ...]
    ok = False

    def summary(self) -> str:
        return "; ".join(str(issue) for issue in self.issues)


@dataclass(frozen=True, slots=True)
class SchemaDescriptor(Generic[ModelT]):
    """Declarative output shape backed by a pydantic model.

    The same descriptor biases generation (via :meth:`response_schema`) and
    validates the parsed result (via :meth:`validate`).
    """

    name: str
    model: type[ModelT]

    def validate(self, value: Any) -> Valid[ModelT] | Invalid:
        try:
            return Valid(self.model.model_validate(value))
        except PydanticValidationError as exc:
            return Invalid(tuple(_issues_from(exc)))

    def json_schema(self) -> dict[str, Any]:
        return self.model.model_json_schema()

    def response_schema(self) -> dict[str, Any]:
        schema = self.json_schema()
        return _to_hint(schema, schema.get("$defs", {}))


def _issues_from(exc: PydanticValidationError) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for error in exc.errors(include_url=False):
        path = ".".join(str(part) for part in error["loc"]) or "(root)"
        issues.append(ValidationIssue(path=path, message=error["msg"]))
    return issues


def _to_hint(node: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    # Provider schemas have no $ref/anyOf; inline refs and collapse Optional[X].
    if "$ref" in node:
        return _to_hint(defs[node["$ref"].rsplit("/", 1)[-1]], defs)

    if "anyOf" in node:
        variants = [v for v in node["anyOf"] if v.get("type") != "null"]
        hint = _to_hint(variants[0], defs) if variants else {"type": "STRING"}
        if len(variants) < len(node["anyOf"]):
            hint["nullable"] = True
        return hint

    if "allOf" in node and len(node["allOf"]) == 1:
        return _to_hint(node["allOf"][0], defs)

    hint: dict[str, Any] = {}
    for key in _HINT_KEYS:
        if key not in node:
            continue
        value = node[key]
        if key == "type":
            hint["type"] = str(value).upper()
        elif key == "properties":
            hint["properties"] = {
                name: _to_hint(child, defs) for name, child in value.items()
            }
        elif key == "items":
            hint["items"] = _to_hint(value, defs)
        else:
            hint[key] = value
    return hint

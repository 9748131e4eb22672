"""Function definitions offered to the model and the ``function_call`` option."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any

# ``function_call`` values that are sent as bare strings
_FUNCTION_CALL_MODES = ("none", "auto")


def _to_schema(value: Any) -> dict[str, Any]:
    """Coerce a JSON-schema-like value to a plain dict.

    Accepts a JSON string, a mapping, or a dataclass instance (``None``
    fields are dropped, matching how requests are serialized).
    """
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Function parameters are not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("Function parameters must be a JSON object")
        return parsed
    if isinstance(value, dict):
        return dict(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: v for k, v in dataclasses.asdict(value).items() if v is not None}
    raise ValueError(
        f"Cannot convert {type(value).__name__} into a JSON object for "
        "function parameters"
    )


@dataclass
class Function:
    """A function the model may ask the caller to invoke.

    ``name`` must be ``a-z``, ``A-Z``, ``0-9``, ``_`` or ``-`` (max 64
    chars); ``parameters`` is a JSON Schema object.
    """

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = field(default=None)

    def __post_init__(self) -> None:
        if self.parameters is not None:
            self.parameters = _to_schema(self.parameters)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            payload["description"] = self.description
        if self.parameters is not None:
            payload["parameters"] = self.parameters
        return payload


def serialize_function_call(value: str | dict[str, Any] | None) -> str | dict[str, Any] | None:
    """Wire form of the ``function_call`` request option.

    ``"none"`` and ``"auto"`` stay strings; any other name becomes
    ``{"name": ...}``.
    """
    if value is None or isinstance(value, dict):
        return value
    if value in _FUNCTION_CALL_MODES:
        return value
    return {"name": value}

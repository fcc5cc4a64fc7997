"""Loosely-typed generation service output, modelled as a tagged union.

The service answers with a plain string containing `SECTION:` labels, with a keyed object
whose key casing varies between prompts and models, or with either of those nested under a
wrapper key such as `response`. `decode_raw_response` turns decoded JSON into one of the
three shapes below; the normalizer is the only consumer.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from soapscribe.notes.content import SECTION_KEYS
from soapscribe.notes.errors import ParseError

# Keys the service (or a proxy in front of it) nests the actual answer under.
WRAPPER_KEYS = ("response", "summary")


@dataclass(frozen=True)
class StringForm:
    text: str


@dataclass(frozen=True)
class ObjectForm:
    fields: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Wrapped:
    key: str
    inner: StringForm | ObjectForm


RawGenerationResponse = Union[StringForm, ObjectForm, Wrapped]


def _coerce_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        parts = [_coerce_value(v) for v in value]
        return "\n".join(p for p in parts if p)
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def _object_form(payload: Mapping[Any, Any]) -> ObjectForm:
    fields: dict[str, str] = {}
    for key, value in payload.items():
        coerced = _coerce_value(value)
        if coerced is not None:
            fields[str(key)] = coerced
    return ObjectForm(fields=fields)


def _wrapper_key(payload: Mapping[Any, Any]) -> str | None:
    """
    Return the wrapper key when the mapping is an envelope around the real answer.

    A mapping that already carries a SOAP section key (any casing) is the answer itself,
    even if it also has a `response` field.
    """

    lowered = {str(k).lower() for k in payload}
    if lowered & set(SECTION_KEYS):
        return None
    for key in payload:
        if str(key).lower() in WRAPPER_KEYS and isinstance(payload[key], (str, Mapping)):
            return str(key)
    return None


def _decode_inner(payload: Any) -> StringForm | ObjectForm:
    if isinstance(payload, str):
        return StringForm(text=payload)
    if isinstance(payload, Mapping):
        return _object_form(payload)
    raise ParseError("unsupported_payload", f"Unsupported payload type: {type(payload).__name__}")


def decode_raw_response(payload: Any) -> RawGenerationResponse:
    """Classify decoded JSON (str or dict) as StringForm, ObjectForm or Wrapped."""

    if isinstance(payload, Mapping):
        key = _wrapper_key(payload)
        if key is not None:
            # One level only; a wrapper inside a wrapper is read as an ordinary object.
            return Wrapped(key=key, inner=_decode_inner(payload[key]))
    return _decode_inner(payload)

"""Conversion between domain dataclasses and the JSON records kept in the store."""

from __future__ import annotations

import typing
from dataclasses import MISSING, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, TypeVar

from prm.domain.rules import ValidationError

T = TypeVar("T")


def to_record(obj: Any) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for f in fields(obj):
        record[f.name] = _encode(getattr(obj, f.name))
    return record


def from_record(cls: type[T], data: dict[str, Any]) -> T:
    if not isinstance(data, dict):
        raise ValidationError(f"{cls.__name__} record must be a mapping.")
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            if f.default is MISSING and f.default_factory is MISSING:
                raise ValidationError(f"{cls.__name__} record is missing {f.name}.")
            continue
        kwargs[f.name] = _decode(data[f.name], hints[f.name], f.name)
    return cls(**kwargs)


def _encode(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def _decode(value: Any, hint: Any, name: str) -> Any:
    args = typing.get_args(hint)
    if value is None:
        if type(None) in args:
            return None
        raise ValidationError(f"{name} is required.")
    kinds = [arg for arg in args if arg is not type(None)] or [hint]
    if (date in kinds or datetime in kinds) and not isinstance(value, (str, date)):
        raise ValidationError(f"{name} is not a valid ISO date: {value!r}")
    if (int in kinds or float in kinds) and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise ValidationError(f"{name} must be a number, not {value!r}.")
    try:
        if datetime in kinds and isinstance(value, str):
            return datetime.fromisoformat(value)
        if date in kinds and isinstance(value, str):
            return date.fromisoformat(value[:10])
    except ValueError as exc:
        raise ValidationError(f"{name} is not a valid ISO date: {value!r}") from exc
    if typing.get_origin(hint) is list and not isinstance(value, list):
        return [value]
    return value

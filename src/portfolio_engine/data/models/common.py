"""
Shared helpers for engine data models.
"""

import math
from dataclasses import fields, is_dataclass
from datetime import datetime, date, timezone
from enum import Enum
from typing import Any, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Request records arrive as camelCase JSON but Python callers may use field names
ENGINE_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
    extra="ignore",
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a date-like value into a naive UTC datetime.

    Accepts datetime, date and ISO-8601 strings (a trailing ``Z`` is allowed).
    Returns None for anything that cannot be interpreted as a point in time.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return parse_timestamp(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None


def is_number(value: Any) -> bool:
    """True for finite ints and floats; bools are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_integral(value: Any) -> bool:
    """True for ints and integral floats; bools excluded."""
    if not is_number(value):
        return False
    return isinstance(value, int) or float(value).is_integer()


def to_jsonable(value: Any) -> Any:
    """
    Convert results into camelCase JSON-ready structures.

    Dataclass fields and pydantic aliases become camelCase keys; mapping keys
    supplied by callers (sector names, for instance) are kept as given.
    Non-finite floats become None.
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if is_dataclass(value) and not isinstance(value, type):
        return {to_camel(f.name): to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k.value if isinstance(k, Enum) else k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    return value

"""
Context Key Canonical JSON Encoding

Ensures semantically identical records produce identical byte representations,
so a detached signature verifies regardless of field insertion order.
"""

import json
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Union

from pydantic import BaseModel

from .errors import ValidationError


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes.

    Rules:
    - Object keys sorted lexicographically (Unicode code point order)
    - No whitespace between tokens (compact form)
    - UTF-8 encoding, no BOM, minimal escaping
    - Arrays preserve order
    - Non-finite numbers and non-JSON types are rejected

    pydantic models are dumped with unset optionals omitted.

    Raises:
        ValidationError: if the value cannot be represented faithfully
    """
    try:
        canonical = _canonicalize_value(obj, "$")
        return json.dumps(
            canonical,
            separators=(',', ':'),
            ensure_ascii=False,
            allow_nan=False,
        ).encode('utf-8')
    except RecursionError:
        raise ValidationError("$", "value is nested too deeply") from None


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def _canonicalize_value(value: Any, path: str) -> Any:
    """Recursively canonicalize a value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, int):
        return value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(path, "non-finite numbers cannot be signed")
        return value
    elif isinstance(value, str):
        return value
    elif isinstance(value, BaseModel):
        return _canonicalize_value(_model_plain(value.model_dump(exclude_none=True)), path)
    elif isinstance(value, dict):
        return _canonicalize_object(value, path)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value, path)
    else:
        raise ValidationError(path, f"cannot canonicalize type {type(value).__name__}")


def _model_plain(value: Any) -> Any:
    """
    Lower a python-mode model dump to JSON types.

    Timestamps use the same ISO 8601 form as the JSON wire format (UTC as
    "Z"). Floats are left untouched so non-finite values are still caught.
    """
    if isinstance(value, datetime):
        text = value.isoformat()
        return text[:-6] + "Z" if text.endswith("+00:00") else text
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, dict):
        return {k: _model_plain(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [_model_plain(v) for v in value]
    return value


def _canonicalize_object(obj: Dict[str, Any], path: str) -> Dict[str, Any]:
    """Canonicalize an object by sorting keys lexicographically."""
    for key in obj:
        if not isinstance(key, str):
            raise ValidationError(path, "object keys must be strings")
    return {k: _canonicalize_value(obj[k], f"{path}.{k}") for k in sorted(obj)}


def _canonicalize_array(arr: Union[List, tuple], path: str) -> List:
    """Canonicalize an array, preserving order."""
    return [_canonicalize_value(item, f"{path}[{i}]") for i, item in enumerate(arr)]

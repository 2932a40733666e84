"""JSON helpers that understand Decimal, dates, enums and pydantic models."""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union


def _encode_extra(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"{type(obj).__name__} is not JSON serialisable")


def dumps(obj: Any, **kwargs) -> str:
    return json.dumps(obj, default=_encode_extra, **kwargs)


def canonical_dumps(obj: Any) -> str:
    """Sorted keys, no whitespace. Used for payloads that are encrypted."""
    return json.dumps(obj, default=_encode_extra, sort_keys=True, separators=(",", ":"))


def loads(s: Union[str, bytes, bytearray], **kwargs) -> Any:
    return json.loads(s, **kwargs)

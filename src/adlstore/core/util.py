from __future__ import annotations
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def model_asdict(obj: Any, *, fields: Iterable[str] | None = None) -> Dict[str, Any]:
    """Return a JSON-serialisable dict of a model dataclass (skip None), optionally filtered."""
    if not is_dataclass(obj):
        raise TypeError(f"not a model object: {type(obj).__name__}")
    payload = {k: _plain(v) for k, v in asdict(obj).items() if v is not None}
    if fields:
        wanted = set(fields)
        payload = {k: v for k, v in payload.items() if k in wanted}
    return payload


def error_asdict(err: Exception) -> Dict[str, Any]:
    """JSON-serialisable description of a failed command."""
    payload: Dict[str, Any] = {"success": False, "error": str(err), "type": type(err).__name__}
    status = getattr(err, "status_code", 0)
    if status:
        payload["status_code"] = status
    return payload

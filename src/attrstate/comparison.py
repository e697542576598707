"""
Stable comparison keys for change tracking.

``comparison_key`` serializes a value structurally so that equal structures
compare equal regardless of instance identity or insertion order: mapping
entries and set members are sorted, dataclasses and plain objects are
reduced to their type name and fields, and identified values (``get_uid()``)
are replaced by their uid so nested entities are tracked by identity only.
"""
import enum
import json
from dataclasses import fields, is_dataclass
from typing import Any, Set

from attrstate.capabilities import get_uid_or_none

_PRIMITIVES = (str, int, float, bool, type(None))


def _normalize(value: Any, seen: Set[int]) -> Any:
    if isinstance(value, _PRIMITIVES):
        return value

    uid = get_uid_or_none(value)
    if uid is not None:
        return {'$uid': _normalize(uid, seen)}

    if isinstance(value, enum.Enum):
        return {'$enum': f"{type(value).__qualname__}.{value.name}"}

    marker = id(value)
    if marker in seen:
        return {'$cycle': type(value).__qualname__}
    seen = seen | {marker}

    if isinstance(value, dict):
        items = [(_dump(_normalize(k, seen)), _normalize(v, seen)) for k, v in value.items()]
        return {'$map': sorted(items, key=lambda kv: kv[0])}
    if isinstance(value, (set, frozenset)):
        return {'$set': sorted(_dump(_normalize(v, seen)) for v in value)}
    if isinstance(value, (list, tuple)):
        return [_normalize(v, seen) for v in value]
    if isinstance(value, bytes):
        return {'$bytes': value.hex()}
    if is_dataclass(value) and not isinstance(value, type):
        return {
            '$type': type(value).__qualname__,
            'fields': {f.name: _normalize(getattr(value, f.name), seen) for f in fields(value)},
        }
    if hasattr(value, '__dict__') and not isinstance(value, type):
        return {
            '$type': type(value).__qualname__,
            'fields': {k: _normalize(v, seen) for k, v in vars(value).items()},
        }
    return {'$repr': repr(value)}


def _dump(normalized: Any) -> str:
    return json.dumps(normalized, sort_keys=True, separators=(',', ':'))


def comparison_key(value: Any) -> str:
    """Return the stable structural key of ``value``."""
    return _dump(_normalize(value, set()))

"""
Serialization for topmodel.

Turns typed field values into plain, JSON-compatible data. Mappings drop
keys whose value serializes to None; lists keep every slot.

Example:
    from topmodel.serialization import serialize

    serialize({'a': 1, 'b': None, 'c': [None, 2]})  # {'a': 1, 'c': [None, 2]}
"""

import datetime
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Sequence

Serializer = Callable[[Any], Any]

_SCALAR_TYPES = (bool, int, float, str)

# Types whose plain form is their isoformat() text
_ISO_TYPES = (datetime.datetime, datetime.date, datetime.time)

# Types whose plain form is their str() text
_STR_TYPES = (uuid.UUID, Decimal)


def _is_model_class(typ: Any) -> bool:
    return isinstance(typ, type) and hasattr(typ, '__topmodel_model__')


def serialize(value: Any) -> Any:
    """Recursively convert ``value`` to plain data.

    Handles scalars, models, objects with a ``to_json()`` method, dates and
    times, UUIDs, decimals, sequences and mappings. Anything else is
    returned unchanged.
    """
    if value is None:
        return None
    if isinstance(value, _SCALAR_TYPES):
        return value
    if hasattr(value, '__topmodel_model__'):
        return value.serialize()
    to_json = getattr(value, 'to_json', None)
    if callable(to_json):
        return to_json()
    if isinstance(value, _ISO_TYPES):
        return value.isoformat()
    if isinstance(value, _STR_TYPES):
        return str(value)
    if isinstance(value, Mapping):
        return serialize_object(value)
    if isinstance(value, (list, tuple)):
        return serialize_array(value)
    return value


def serialize_object(value: Any) -> Any:
    """Serialize a mapping, dropping None entries.

    An object field may hold anything its converter copied; values that are
    not mappings serialize as they would anywhere else.
    """
    if not isinstance(value, Mapping):
        return serialize(value)
    output: Dict[str, Any] = {}
    for key, item in value.items():
        item = serialize(item)
        if item is not None:
            output[key] = item
    return output


def serialize_array(value: Sequence[Any]) -> List[Any]:
    return [serialize(item) for item in value]


def _identity(value: Any) -> Any:
    return value


def _serialize_model(value: Any) -> Any:
    return value.serialize()


def _serialize_to_json(value: Any) -> Any:
    return value.to_json()


def _serialize_isoformat(value: Any) -> Any:
    return value.isoformat()


def get_serializer(field_type: Any) -> Serializer:
    """Return the function serializing values of ``field_type``."""
    if field_type is dict:
        return serialize_object
    if field_type is list:
        return serialize_array
    if _is_model_class(field_type):
        return _serialize_model
    if isinstance(field_type, type):
        if callable(getattr(field_type, 'to_json', None)):
            return _serialize_to_json
        if issubclass(field_type, _ISO_TYPES):
            return _serialize_isoformat
        if issubclass(field_type, _STR_TYPES):
            return str
    return _identity


__all__ = [
    "Serializer",
    "serialize",
    "serialize_object",
    "serialize_array",
    "get_serializer",
]

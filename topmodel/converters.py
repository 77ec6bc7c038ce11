"""
Type conversion for topmodel.

get_converter() resolves a declared field type to a function coercing any
raw input into that type. Scalar conversions are loose and never raise:
a number field given junk holds NaN, the way a loose numeric cast does.

Example:
    from topmodel.converters import get_converter

    to_int = get_converter(int)
    to_int('42', {})      # 42
    to_int('junk', {})    # nan
"""

import copy
import datetime
import math
from typing import Any, Callable, Dict

from .errors import InvalidFieldTypeError, TypeMismatchError

Converter = Callable[[Any, Dict[str, Any]], Any]

_ISO_TYPES = (datetime.datetime, datetime.date, datetime.time)


def deep_copy(value: Any) -> Any:
    """Deep-copy a plain value. Input must not contain cycles through models."""
    return copy.deepcopy(value)


def to_number(value: Any) -> Any:
    """Loose numeric cast returning an int, a float, or NaN."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, bytes)):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def _convert_bool(value: Any, options: Dict[str, Any]) -> bool:
    if not isinstance(value, bool):
        value = bool(value)
    return value


def _convert_float(value: Any, options: Dict[str, Any]) -> float:
    return float(to_number(value))


def _convert_int(value: Any, options: Dict[str, Any]) -> Any:
    number = to_number(value)
    if isinstance(number, float):
        if not math.isfinite(number):
            return number
        return int(number)
    return number


def _convert_str(value: Any, options: Dict[str, Any]) -> str:
    if not isinstance(value, str):
        value = str(value)
    return value


def _convert_dict(value: Any, options: Dict[str, Any]) -> Any:
    return deep_copy(value)


def _convert_list(value: Any, options: Dict[str, Any]) -> list:
    if not isinstance(value, (list, tuple)):
        raise TypeMismatchError('array', value)
    return list(deep_copy(value))


_SCALAR_CONVERTERS: Dict[type, Converter] = {
    bool: _convert_bool,
    float: _convert_float,
    int: _convert_int,
    str: _convert_str,
    dict: _convert_dict,
    list: _convert_list,
}


def _is_model_class(typ: Any) -> bool:
    return isinstance(typ, type) and hasattr(typ, '__topmodel_model__')


def get_converter(field_type: Any) -> Converter:
    """Return the ``(value, options) -> typed`` converter for ``field_type``.

    Raises:
        InvalidFieldTypeError: if ``field_type`` is not a class.
    """
    if not isinstance(field_type, type):
        raise InvalidFieldTypeError(field_type)

    converter = _SCALAR_CONVERTERS.get(field_type)
    if converter is not None:
        return converter

    if _is_model_class(field_type):
        def convert_model(value: Any, options: Dict[str, Any]) -> Any:
            return field_type(value, **options)
        return convert_model

    if issubclass(field_type, _ISO_TYPES):
        def convert_iso(value: Any, options: Dict[str, Any]) -> Any:
            if isinstance(value, field_type):
                return value
            text = str(value)
            # fromisoformat() only reads a 'Z' UTC suffix from Python 3.11
            if text.endswith(('Z', 'z')):
                text = text[:-1] + '+00:00'
            return field_type.fromisoformat(text)
        return convert_iso

    def convert_instance(value: Any, options: Dict[str, Any]) -> Any:
        return field_type(value)
    return convert_instance


__all__ = ["Converter", "deep_copy", "to_number", "get_converter"]

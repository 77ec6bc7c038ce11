"""
Model implementation for topmodel.

A Model class declares typed fields; its instances convert loose input
into typed values, remember which values changed, serialize to plain data
and validate themselves. An instance can also be re-typed in place
(specialize) or take over the class and state of another instance
(mutate).

Example:
    from topmodel import Model, field, on

    class Person(Model):
        name: str
        is_alive: bool = True
        country: str = field(default_value=lambda: 'France')

    person = Person({'name': 'Dupont'})
    person.serialize()
    # {'name': 'Dupont', 'is_alive': True, 'country': 'France'}

    Person.unserialize({'name': 'Dupont'}).serialize()
    # {'name': 'Dupont'}

    class Hero(Person):
        power: str

    person.specialize(Hero)
    person.power = 'invisible'
"""

import inspect
import json as _json
import logging
from typing import (
    Any, ClassVar, Dict, Mapping, Optional, Type, Union,
    get_origin,
)

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

from .config import ConfigDict, get_config_value
from .errors import (
    InvalidArgumentError, InvalidDirectionError, MissingParameterError,
    UndefinedFieldError, ValidationError,
)
from .events import EventEmitter
from .fields import (
    Field, FieldInfo, _MISSING, declare_field, iter_fields, lookup_field,
    resolve_annotation,
)
from .serialization import serialize
from .validation import Validation, Validity, validator

logger = logging.getLogger(__name__)

DID_CHANGE = 'did_change'

# Values compared by type and equality; anything else compares by identity
_SCALAR_TYPES = (bool, int, float, str, bytes)


def _strictly_equal(old: Any, new: Any) -> bool:
    if old is new:
        # NaN never equals itself, even as the same object
        return not (isinstance(old, float) and old != old)
    if old is None or new is None:
        return False
    if type(old) is type(new) and isinstance(old, _SCALAR_TYPES):
        return old == new
    return False


def _is_classvar(annotation: Any) -> bool:
    return annotation is ClassVar or get_origin(annotation) is ClassVar


class _ModelMeta(type):
    """Metaclass for Model that declares fields from the class body."""

    def __new__(mcs, name: str, bases: tuple, namespace: dict, **kwargs: Any) -> type:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        if not any(hasattr(base, '__topmodel_model__') for base in bases):
            # Model itself
            return cls

        # Get model_config from class or inherit from parent
        model_config: Optional[ConfigDict] = namespace.get('model_config')
        if model_config is None:
            for base in bases:
                if getattr(base, 'model_config', None) is not None:
                    model_config = base.model_config
                    break
        cls.model_config = model_config

        annotations = inspect.get_annotations(cls, eval_str=True)
        for field_name, annotation in annotations.items():
            if field_name.startswith('_') or _is_classvar(annotation):
                continue

            field_type, info = resolve_annotation(annotation)
            options: Dict[str, Any] = {}
            if info is not None:
                options.update(info.options)
                if info.type is not None:
                    field_type = resolve_annotation(info.type)[0]

            # Class-level value: field(...) options or a plain default
            value = namespace.get(field_name, _MISSING)
            if isinstance(value, FieldInfo):
                options.update(value.options)
                if value.type is not None:
                    field_type = resolve_annotation(value.type)[0]
            elif value is not _MISSING:
                options['default_value'] = value

            declare_field(cls, field_name, field_type, **options)

        # field(type, ...) assignments without annotation
        for attr_name, value in namespace.items():
            if isinstance(value, FieldInfo) and attr_name not in annotations:
                if value.type is None:
                    raise MissingParameterError('type')
                field_type = resolve_annotation(value.type)[0]
                declare_field(cls, attr_name, field_type, **value.options)

        return cls


class Model(EventEmitter, Validation, metaclass=_ModelMeta):
    """Base class for models.

    Fields are declared with class annotations:

        class Person(Model):
            name: str                                   # plain field
            age: int = field(validators='positive')     # with options
            country: str = 'France'                     # with default value

    or imperatively with Model.declare_field().

    Instances hold one value per field. Assigning a field converts the
    value to the field type and emits 'did_change' when the value changed.
    Model equality is identity; use is_equal_to() for structural equality.
    """

    __topmodel_model__ = True

    model_config: ClassVar[Optional[ConfigDict]] = None

    def __init__(self, value: Any = None, *, use_default_values: Optional[bool] = None) -> None:
        """Build an instance from ``value``.

        Args:
            value: None, a mapping of field names to raw values, another
                model (its serialized form is used), or any object whose
                attributes are read.
            use_default_values: Apply field default values to fields left
                unset. Defaults to the model_config setting (True).
        """
        if use_default_values is None:
            use_default_values = get_config_value(type(self).model_config, 'use_default_values')
        changed = self._write_values(value, use_default_values)
        if use_default_values and self.apply_default_values():
            changed = True
        if changed:
            self.emit(DID_CHANGE)

    # --- Field declaration ---

    @classmethod
    def declare_field(cls, name: str, type: Any, **options: Any) -> Field:
        """Declare a field on this class. See topmodel.fields.declare_field."""
        return declare_field(cls, name, type, **options)

    @classmethod
    def get_field(cls, name: str) -> Optional[Field]:
        """The effective Field named ``name``, or None."""
        return lookup_field(cls, name)

    @classmethod
    def get_fields(cls) -> Dict[str, Field]:
        """Effective fields by name, ancestors' fields first."""
        return {f.name: f for f in iter_fields(cls)}

    # --- Values ---

    def _get_values(self, create: bool = False) -> Optional[Dict[str, Any]]:
        values = self.__dict__.get('_field_values')
        if values is None and create:
            values = {}
            self.__dict__['_field_values'] = values
        return values

    def _input_mapping(self, value: Any) -> Optional[Mapping[str, Any]]:
        cls = type(self)
        if value is None:
            return None
        if isinstance(value, Model):
            return value.serialize()
        if isinstance(value, Mapping):
            if get_config_value(cls.model_config, 'extra') == 'forbid':
                for key in value:
                    if lookup_field(cls, key) is None:
                        raise UndefinedFieldError(cls, key)
            return value
        return {f.name: getattr(value, f.name) for f in iter_fields(cls) if hasattr(value, f.name)}

    def _write_values(self, value: Any, use_default_values: bool) -> bool:
        data = self._input_mapping(value)
        changed = False
        for f in iter_fields(type(self)):
            raw = data.get(f.name) if data is not None else None
            if self.set_field_value(f.name, raw, use_default_values=use_default_values):
                changed = True
        return changed

    def get_field_value(self, name: str) -> Any:
        """Current value of field ``name``, None when unset."""
        values = self._get_values()
        if values is None:
            return None
        return values.get(name)

    def set_field_value(self, name: str, value: Any, **options: Any) -> bool:
        """Convert ``value`` and store it as field ``name``.

        Does not emit 'did_change'; the caller does, once per batch.

        Returns:
            True if the stored value changed. Scalars compare by type and
            equality; any other value (dict, list, model, object) compares
            by identity, so reassigning one always counts as a change.

        Raises:
            UndefinedFieldError: if ``name`` is not a field of this model.
        """
        f = lookup_field(type(self), name)
        if f is None:
            raise UndefinedFieldError(type(self), name)
        if value is not None:
            value = f.convert(value, **options)

        values = self._get_values(value is not None)
        old = values.get(name) if values is not None else None
        if _strictly_equal(old, value):
            return False
        if value is None:
            del values[name]
        else:
            values[name] = value
        return True

    def assign_field_value(self, name: str, value: Any) -> bool:
        """Attribute assignment: set_field_value, then emit on change."""
        changed = self.set_field_value(name, value)
        if changed:
            self.emit(DID_CHANGE)
        if get_config_value(type(self).model_config, 'validate_assignment'):
            validity = self.check_field_validity(name)
            if not validity.valid:
                raise ValidationError(validity.reasons)
        return changed

    def set_value(self, value: Any = None, *, use_default_values: Optional[bool] = None) -> bool:
        """Replace every field from ``value``; fields it lacks are cleared.

        Emits 'did_change' once if any field changed.
        """
        if use_default_values is None:
            use_default_values = get_config_value(type(self).model_config, 'use_default_values')
        changed = self._write_values(value, use_default_values)
        if use_default_values and self.apply_default_values():
            changed = True
        if changed:
            self.emit(DID_CHANGE)
        return changed

    def replace_value(self, value: Any) -> bool:
        """set_value() without default values."""
        return self.set_value(value, use_default_values=False)

    def apply_default_values(self) -> bool:
        """Give unset fields their default value. Returns True on change."""
        changed = False
        for f in iter_fields(type(self)):
            if not f.has_default or self.get_field_value(f.name) is not None:
                continue
            default = f.get_default(self)
            if default is not None and self.set_field_value(f.name, default):
                changed = True
        return changed

    # --- Serialization ---

    def serialize(self) -> Dict[str, Any]:
        """Plain data for every field holding a value; unset fields are omitted."""
        result: Dict[str, Any] = {}
        values = self._get_values()
        if not values:
            return result
        for f in iter_fields(type(self)):
            value = values.get(f.name)
            if value is not None:
                result[f.name] = f.serialize(value)
        return result

    @classmethod
    def unserialize(cls, data: Any) -> Self:
        """Rebuild an instance from serialized data, without default values."""
        return cls(data, use_default_values=False)

    def serialize_json(self, *, indent: Optional[int] = None) -> str:
        """serialize() as a JSON string."""
        return _json.dumps(self.serialize(), indent=indent, ensure_ascii=False)

    @classmethod
    def unserialize_json(cls, json_data: Union[str, bytes]) -> Self:
        """unserialize() from a JSON string or bytes.

        Example:
            person = Person.unserialize_json('{"name": "Dupont"}')
        """
        if isinstance(json_data, bytes):
            json_data = json_data.decode('utf-8')
        return cls.unserialize(_json.loads(json_data))

    def clone(self) -> Self:
        """Deep structural copy of this instance."""
        return type(self).unserialize(self.serialize())

    def __copy__(self) -> Self:
        return self.clone()

    def __deepcopy__(self, memo: Dict[int, Any]) -> Self:
        return self.clone()

    def is_equal_to(self, other: Any) -> bool:
        """Structural equality with another model or with plain data."""
        if other is self:
            return True
        if other is None:
            return False
        return self.serialize() == serialize(other)

    # --- Validation ---

    @validator
    def _validate_fields(self, path: str) -> Validity:
        reasons = []
        for f in iter_fields(type(self)):
            field_path = f'{path}.{f.name}' if path else f.name
            validity = f.check_validity(self.get_field_value(f.name), field_path)
            reasons.extend(validity.reasons)
        return Validity.from_reasons(reasons)

    def check_field_validity(self, name: str) -> Validity:
        """Run the validators of field ``name`` against its current value."""
        f = lookup_field(type(self), name)
        if f is None:
            raise UndefinedFieldError(type(self), name)
        return f.check_validity(self.get_field_value(name), name)

    # --- Specialization ---

    def specialize(self, target: Type['Model'], strict: Optional[bool] = None) -> None:
        """Change the class of this instance to ``target``, keeping its values.

        Values of fields that ``target`` does not declare are kept but
        ignored; fields new to ``target`` start unset.

        Args:
            target: A Model subclass.
            strict: Only allow strict subclasses of the current class.
                Defaults to the model_config strict_specialization setting.

        Raises:
            InvalidArgumentError: if ``target`` is not a Model class.
            InvalidDirectionError: in strict mode, if ``target`` is not a
                subclass of the current class.
        """
        current = type(self)
        if target is current:
            return
        if not (isinstance(target, type) and issubclass(target, Model)):
            raise InvalidArgumentError(f"Cannot specialize to {target!r}: not a Model class")
        if strict is None:
            strict = get_config_value(current.model_config, 'strict_specialization')
        if strict and not issubclass(target, current):
            raise InvalidDirectionError(current, target)

        logger.debug("Specializing %s instance to %s", current.__name__, target.__name__)
        self.__class__ = target

    def mutate(self, other: Any, target: Optional[Type['Model']] = None,
               strict: Optional[bool] = None) -> None:
        """Take the class and the values of ``other``, keeping this identity.

        The value store is replaced wholesale: values kept hidden by an
        earlier specialize() are dropped, and no default values are applied.
        Emits 'did_change' once if any stored value changed.

        Args:
            other: A model instance (or plain data, with ``target`` given).
            target: Class to specialize to; defaults to other's class.
            strict: See specialize().

        Raises:
            InvalidArgumentError: if ``other`` is None or ``target`` is invalid.
            InvalidDirectionError: see specialize().
        """
        if other is None:
            raise InvalidArgumentError("'other' parameter is missing")
        if target is None:
            target = type(other) if isinstance(other, Model) else type(self)

        self.specialize(target, strict)
        logger.debug("Mutating %s instance from %r", target.__name__, other)

        # The whole store is replaced, hidden values of other classes included
        data = self._input_mapping(other)
        old_values = self.__dict__.pop('_field_values', None) or {}
        try:
            self._write_values(data, False)
        except Exception:
            self.__dict__['_field_values'] = old_values
            raise
        new_values = self._get_values() or {}
        if any(not _strictly_equal(old_values.get(name), new_values.get(name))
               for name in old_values.keys() | new_values.keys()):
            self.emit(DID_CHANGE)

    def __repr__(self) -> str:
        """String representation of the model."""
        parts = []
        values = self._get_values() or {}
        for f in iter_fields(type(self)):
            if f.name in values:
                parts.append(f"{f.name}={values[f.name]!r}")
        return f"{type(self).__name__}({', '.join(parts)})"


__all__ = ["Model", "DID_CHANGE"]

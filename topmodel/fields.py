"""
Field declaration for topmodel.

A Field describes one named, typed slot of a model: how raw input is
converted to the declared type, how the typed value is serialized, its
default value and its validators.

Fields are registered per class. A class's registry only holds the fields
declared on that class; lookups walk the class MRO, so a subclass sees its
ancestors' fields and a re-declaration on a subclass shadows the
ancestor's field without touching it.

Example:
    from typing import Annotated, List
    from topmodel import Model, field

    class Person(Model):
        name: str
        age: Annotated[int, field(validators='positive')]
        tags: List[str] = field(default_value=list)
        country: str = 'France'
"""

import logging
from types import UnionType
from typing import (
    Annotated, Any, Callable, Dict, Iterator, List, Optional, Tuple, Union,
    get_args, get_origin,
)

from .converters import get_converter
from .errors import (
    InvalidFieldTypeError, MissingParameterError, ReservedFieldNameError, UnknownOptionError,
)
from .serialization import get_serializer
from .validation import Validation, accepted_positional_args, resolve_validators

logger = logging.getLogger(__name__)

_MISSING = object()  # Sentinel for unset defaults

FIELD_OPTIONS = ('converter', 'serializer', 'default_value', 'validators')

# Attribute holding the FieldRegistry declared directly on a class
_REGISTRY_ATTR = '__topmodel_fields__'

# Attribute caching a class's effective fields, keyed by declaration count
_EFFECTIVE_ATTR = '__topmodel_effective_fields__'

_declaration_count = 0


class FieldInfo:
    """Options for a field declared through class syntax.

    This is the object returned by field(); it can be assigned as the class
    attribute or used as Annotated metadata.
    """

    __slots__ = ('type', 'options')

    def __init__(self, type: Any = None, **options: Any):
        self.type = type
        self.options = options

    def __repr__(self) -> str:
        parts = [] if self.type is None else [f"type={self.type!r}"]
        parts.extend(f"{key}={value!r}" for key, value in self.options.items())
        return f"FieldInfo({', '.join(parts)})"


def field(type: Any = None, **options: Any) -> FieldInfo:
    """Declare a field's options in a class body.

    Args:
        type: Field type, when not given by the annotation.
        converter: Callable replacing the type's conversion of raw input.
        serializer: Callable replacing the type's serialization.
        default_value: Value, or callable producing it (called with the
            model instance when it accepts an argument).
        validators: Validator or list of validators.

    Example:
        class Person(Model):
            name: str = field(validators=['required', 'minLength(2)'])
            country = field(str, converter=lambda v: v.upper())
    """
    return FieldInfo(type, **options)


def resolve_annotation(annotation: Any) -> Tuple[Any, Optional[FieldInfo]]:
    """Reduce a type annotation to a field type and optional FieldInfo.

    Handles:
    - Plain types: str, int, Person
    - Optional[X] and X | None: X
    - Generic containers: List[int] -> list, Dict[str, int] -> dict
    - tuple and Tuple[...]: list
    - Annotated[X, field(...)]: X with the FieldInfo
    """
    info = None
    origin = get_origin(annotation)
    if origin is Annotated:
        args = get_args(annotation)
        annotation = args[0]
        for meta in args[1:]:
            if isinstance(meta, FieldInfo):
                info = meta
        inner, nested_info = resolve_annotation(annotation)
        return inner, info or nested_info

    if origin is Union or origin is UnionType:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) != 1:
            raise InvalidFieldTypeError(annotation)
        return resolve_annotation(args[0])

    if annotation is tuple or origin in (list, tuple):
        return list, None
    if origin is dict:
        return dict, None
    return annotation, None


class Field(Validation):
    """One field of a model class.

    Resolves its converter and serializer from the declared type when
    created; both can be replaced through options.
    """

    def __init__(self, name: str, type: Any, **options: Any):
        if not isinstance(name, str) or not name:
            raise MissingParameterError('name')
        if type is None:
            raise MissingParameterError('type')

        self.name = name
        self.type = type
        try:
            self._convert = get_converter(type)
        except InvalidFieldTypeError:
            raise InvalidFieldTypeError(type, name)
        self._serialize = get_serializer(type)
        self.default_value = _MISSING

        for key, value in options.items():
            if key == 'converter':
                self._convert = _user_converter(value)
            elif key == 'serializer':
                self._serialize = value
            elif key == 'default_value':
                self.default_value = value
            elif key == 'validators':
                for rule in resolve_validators(value):
                    self.add_validator(rule)
            else:
                raise UnknownOptionError(key)

    @property
    def has_default(self) -> bool:
        return self.default_value is not _MISSING

    def convert(self, value: Any, **options: Any) -> Any:
        """Convert raw input to this field's type."""
        return self._convert(value, options)

    def serialize(self, value: Any) -> Any:
        """Convert a typed value to plain data."""
        return self._serialize(value)

    def get_default(self, model: Any = None) -> Any:
        """Evaluate the default value, calling producers with ``model``."""
        default = self.default_value
        if default is _MISSING:
            return None
        if isinstance(default, type):
            return default()
        if callable(default):
            if accepted_positional_args(default, 1):
                return default(model)
            return default()
        return default

    def __repr__(self) -> str:
        type_name = getattr(self.type, '__name__', repr(self.type))
        return f"Field({self.name!r}, {type_name})"


def _user_converter(converter: Callable[[Any], Any]) -> Callable[[Any, Dict[str, Any]], Any]:
    def convert(value: Any, options: Dict[str, Any]) -> Any:
        return converter(value)
    return convert


class FieldRegistry:
    """Fields declared directly on one class, in declaration order."""

    __slots__ = ('owner', '_fields')

    def __init__(self, owner: type):
        self.owner = owner
        self._fields: Dict[str, Field] = {}

    def add(self, new_field: Field) -> None:
        self._fields[new_field.name] = new_field

    def get(self, name: str) -> Optional[Field]:
        return self._fields.get(name)

    def names(self) -> List[str]:
        return list(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields.values()))

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"FieldRegistry({self.owner.__name__}, {self.names()!r})"


def get_registry(cls: type, create: bool = False) -> Optional[FieldRegistry]:
    """Return the registry of fields declared on ``cls`` itself."""
    registry = cls.__dict__.get(_REGISTRY_ATTR)
    if registry is None and create:
        registry = FieldRegistry(cls)
        setattr(cls, _REGISTRY_ATTR, registry)
    return registry


class FieldProperty:
    """Class attribute giving attribute access to a field's value.

    Reading returns the stored value (None when unset); assigning goes
    through the model's set_field_value and emits did_change on change.
    Accessed on the class, it returns the Field.
    """

    __slots__ = ('name',)

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return lookup_field(owner, self.name)
        return instance.get_field_value(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.assign_field_value(self.name, value)

    def __delete__(self, instance: Any) -> None:
        instance.assign_field_value(self.name, None)


def declare_field(cls: type, name: str, type: Any, **options: Any) -> Field:
    """Declare field ``name`` of ``type`` on ``cls``.

    Raises:
        MissingParameterError: if ``name`` or ``type`` is missing.
        InvalidFieldTypeError: if ``type`` cannot be converted to.
        UnknownOptionError: if an option is not one of FIELD_OPTIONS.
        ReservedFieldNameError: if ``name`` is a method or attribute inherited
            by ``cls`` (anything but another field).
        UnknownValidatorError: if a validator cannot be resolved.
    """
    global _declaration_count

    # Ancestors' fields may be shadowed; their methods and attributes may not
    for klass in cls.__mro__[1:]:
        inherited = klass.__dict__.get(name, _MISSING)
        if inherited is not _MISSING and not isinstance(inherited, FieldProperty):
            raise ReservedFieldNameError(cls, name)

    new_field = Field(name, type, **options)
    get_registry(cls, True).add(new_field)
    if not isinstance(cls.__dict__.get(name), FieldProperty):
        setattr(cls, name, FieldProperty(name))
    _declaration_count += 1
    logger.debug("Declared field %s.%s (%r)", cls.__name__, name, type)
    return new_field


def lookup_field(cls: type, name: str) -> Optional[Field]:
    """Find the field ``name`` visible on ``cls``, most derived first."""
    for klass in cls.__mro__:
        registry = klass.__dict__.get(_REGISTRY_ATTR)
        if registry is not None and name in registry:
            return registry.get(name)
    return None


def iter_fields(cls: type) -> Iterator[Field]:
    """Iterate the effective fields of ``cls``, each name once.

    Ancestors' fields come first. A field re-declared on a subclass is
    yielded once, as the subclass's Field.
    """
    cached = cls.__dict__.get(_EFFECTIVE_ATTR)
    if cached is None or cached[0] != _declaration_count:
        names: Dict[str, None] = {}
        for klass in reversed(cls.__mro__):
            registry = klass.__dict__.get(_REGISTRY_ATTR)
            if registry is not None:
                for name in registry.names():
                    names.setdefault(name)
        fields = tuple(lookup_field(cls, name) for name in names)
        cached = (_declaration_count, fields)
        setattr(cls, _EFFECTIVE_ATTR, cached)
    return iter(cached[1])


def for_each_field(cls: type, visitor: Callable[[Field], Any]) -> None:
    for f in iter_fields(cls):
        visitor(f)


__all__ = [
    "Field",
    "FieldInfo",
    "FieldRegistry",
    "FieldProperty",
    "FIELD_OPTIONS",
    "field",
    "resolve_annotation",
    "get_registry",
    "declare_field",
    "lookup_field",
    "iter_fields",
    "for_each_field",
]

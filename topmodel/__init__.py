"""
topmodel - typed-field object modeling for Python

Declare models with typed fields, build instances from loose input,
track changes, round-trip to plain data, validate, and re-type live
instances.

Example:
    from topmodel import Model, field, on

    class Person(Model):
        name: str = field(validators=['required', 'minLength(2)'])
        age: int = field(validators='positive')
        country: str = 'France'

        @on
        def did_change(self):
            print('changed')

    person = Person({'name': 'Dupont', 'age': '42'})   # prints 'changed'
    person.age                                         # 42
    person.serialize()
    # {'name': 'Dupont', 'age': 42, 'country': 'France'}
    person.check_validity().valid                      # True
"""

__version__ = "0.3.0"

# --- Errors ---
from .errors import (
    TopModelError,
    MissingParameterError,
    InvalidFieldTypeError,
    UnknownOptionError,
    ReservedFieldNameError,
    UnknownValidatorError,
    TypeMismatchError,
    InvalidArgumentError,
    InvalidDirectionError,
    UndefinedFieldError,
    ValidationError,
)

# --- Config ---
from .config import ConfigDict

# --- Events ---
from .events import EventEmitter, on

# --- Fields ---
from .fields import (
    Field, FieldInfo, FieldRegistry, field,
    declare_field, lookup_field, iter_fields, for_each_field,
)

# --- Validation ---
from .validation import Validity, Validation, Rule, validator

# --- Serialization ---
from .serialization import serialize

# --- Model ---
from .model import Model, DID_CHANGE


__all__ = [
    # Errors
    "TopModelError", "MissingParameterError", "InvalidFieldTypeError",
    "UnknownOptionError", "ReservedFieldNameError", "UnknownValidatorError",
    "TypeMismatchError",
    "InvalidArgumentError", "InvalidDirectionError", "UndefinedFieldError",
    "ValidationError",

    # Config
    "ConfigDict",

    # Events
    "EventEmitter", "on",

    # Fields
    "Field", "FieldInfo", "FieldRegistry", "field",
    "declare_field", "lookup_field", "iter_fields", "for_each_field",

    # Validation
    "Validity", "Validation", "Rule", "validator",

    # Serialization
    "serialize",

    # Model
    "Model", "DID_CHANGE",
]

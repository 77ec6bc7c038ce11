"""
Error types for topmodel.

Every error raised by topmodel derives from TopModelError and from the
closest builtin exception, so callers may catch either.

Example:
    from topmodel import Model, ValidationError, field

    class Person(Model):
        name: str = field(validators='filled')

    try:
        Person().validate()
    except ValidationError as e:
        print(e.reasons)  # [{'failed_validator': 'filled', 'path': 'name'}]
"""

from typing import Any, Dict, List, Optional


class TopModelError(Exception):
    """Base class for all topmodel errors."""


class MissingParameterError(TopModelError, ValueError):
    """A required argument was not given."""

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"'{parameter}' parameter is missing")


class InvalidFieldTypeError(TopModelError, TypeError):
    """The declared type of a field cannot be converted to."""

    def __init__(self, field_type: Any, field_name: Optional[str] = None):
        self.field_type = field_type
        self.field_name = field_name
        where = f" for field '{field_name}'" if field_name else ''
        super().__init__(f"Invalid type {field_type!r}{where}")


class UnknownOptionError(TopModelError, TypeError):
    """A field was declared with an option that does not exist."""

    def __init__(self, option: str):
        self.option = option
        super().__init__(f"Option '{option}' is unknown")


class ReservedFieldNameError(TopModelError, ValueError):
    """A field name would hide a method or attribute of the model class."""

    def __init__(self, model: type, name: str):
        self.model = model
        self.field_name = name
        super().__init__(
            f"Field '{name}' cannot be declared on {model.__name__}: the name is already used"
        )


class UnknownValidatorError(TopModelError, ValueError):
    """A validator name, pattern or parameter could not be resolved."""

    def __init__(self, validator: Any, detail: Optional[str] = None):
        self.validator = validator
        message = f"Validator {validator!r} is unknown"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class TypeMismatchError(TopModelError, TypeError):
    """A list field was given something that is not a list."""

    def __init__(self, expected: str, value: Any):
        self.expected = expected
        self.value = value
        super().__init__(
            f"Type mismatch (an {expected} was expected, got {type(value).__name__})"
        )


class InvalidArgumentError(TopModelError, ValueError):
    """Bad argument given to specialize() or mutate()."""


class InvalidDirectionError(TopModelError, ValueError):
    """A strict specialization targeted a class that is not a descendant."""

    def __init__(self, current: type, target: type):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot specialize {current.__name__} to {target.__name__}: "
            f"{target.__name__} is not a subclass of {current.__name__}"
        )


class UndefinedFieldError(TopModelError, AttributeError):
    """A field name is not declared on the model."""

    def __init__(self, model: type, name: str):
        self.model = model
        self.name = name
        super().__init__(f"Field '{name}' is not defined on {model.__name__}")


class ValidationError(TopModelError, ValueError):
    """Raised by validate() when the checked object is invalid.

    Attributes:
        reasons: list of {'failed_validator': str, 'path': str} dicts.
    """

    def __init__(self, reasons: List[Dict[str, str]]):
        self.reasons = list(reasons)
        super().__init__(f"Validation failed (reasons={self.reasons!r})")


__all__ = [
    "TopModelError",
    "MissingParameterError",
    "InvalidFieldTypeError",
    "UnknownOptionError",
    "ReservedFieldNameError",
    "UnknownValidatorError",
    "TypeMismatchError",
    "InvalidArgumentError",
    "InvalidDirectionError",
    "UndefinedFieldError",
    "ValidationError",
]

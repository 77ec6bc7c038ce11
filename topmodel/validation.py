"""
Validation for topmodel.

Validators are attached to fields (``field(validators=...)``) or to model
classes (``@validator`` methods). They are resolved once, when declared,
into Rule objects; checking only calls them.

A validator may be:
- the name of a standard validator: 'required', 'filled', 'positive',
  'negative';
- a parameterized standard validator: 'minLength(3)', 'maxLength(50)',
  'match(/^[a-z]+$/i)'. The parameter is a /pattern/flags literal or JSON;
- a compiled regular expression (same as match);
- any callable taking the value (and optionally the path).

A validator returning a Validity (or a mapping with a 'valid' key) has its
reasons merged; any other falsy result fails with the validator's name.

Example:
    from topmodel import Model, field, validator

    class Person(Model):
        name: str = field(validators=['required', 'minLength(2)'])
        age: int = field(validators='positive')

        @validator
        def adult(self):
            return self.age is not None and self.age >= 18

    Person({'name': 'D', 'age': 12}).check_validity().reasons
    # [{'failed_validator': 'adult', 'path': ''},
    #  {'failed_validator': 'minLength(2)', 'path': 'name'}]
"""

import inspect
import json
import re
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .errors import MissingParameterError, UnknownValidatorError, ValidationError

Reason = Dict[str, str]

# Attribute holding the validators declared directly on a class or instance
_VALIDATORS_ATTR = '__topmodel_validators__'

# Sentinel: check_validity() called without a value checks the object itself
_SELF = object()


class Validity:
    """Result of check_validity(): ``valid`` plus the failure ``reasons``."""

    __slots__ = ('valid', 'reasons')

    def __init__(self, valid: bool = True, reasons: Optional[List[Reason]] = None):
        self.valid = valid
        self.reasons = list(reasons) if reasons else []

    @classmethod
    def from_reasons(cls, reasons: List[Reason]) -> 'Validity':
        return cls(not reasons, reasons)

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {'valid': True}
        return {'valid': False, 'reasons': list(self.reasons)}

    def __bool__(self) -> bool:
        return self.valid

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Validity):
            return self.valid == other.valid and self.reasons == other.reasons
        if isinstance(other, Mapping):
            return self.to_dict() == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        if self.valid:
            return 'Validity(valid=True)'
        return f'Validity(valid=False, reasons={self.reasons!r})'


def accepted_positional_args(func: Callable, limit: int) -> int:
    """How many of ``limit`` positional arguments ``func`` can take."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return 1 if limit else 0
    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return limit
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY,
                          inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return min(count, limit)


class Rule:
    """A resolved validator: a name for failure reports and a function."""

    __slots__ = ('name', 'func', 'arity')

    def __init__(self, name: str, func: Callable, arity: Optional[int] = None):
        self.name = name
        self.func = func
        self.arity = accepted_positional_args(func, 2) if arity is None else arity

    def __call__(self, value: Any, path: str) -> Any:
        if self.arity >= 2:
            return self.func(value, path)
        if self.arity == 1:
            return self.func(value)
        return self.func()

    def __repr__(self) -> str:
        return f'Rule({self.name!r})'


# --- Standard validators ---

def required(value: Any) -> bool:
    return value is not None


def filled(value: Any) -> bool:
    return bool(value)


def positive(value: Any) -> bool:
    try:
        return value > 0
    except TypeError:
        return False


def negative(value: Any) -> bool:
    try:
        return value < 0
    except TypeError:
        return False


def min_length(length: int) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if value is None:
            return False
        try:
            return len(value) >= length
        except TypeError:
            return False
    return check


def max_length(length: int) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if value is None:
            return True
        try:
            return len(value) <= length
        except TypeError:
            return False
    return check


def match(pattern: 're.Pattern[str]') -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if value is None:
            return False
        return pattern.search(value if isinstance(value, str) else str(value)) is not None
    return check


STANDARD_VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    'required': required,
    'filled': filled,
    'positive': positive,
    'negative': negative,
}


def _length_param(name: str, param: Any) -> int:
    if isinstance(param, bool) or not isinstance(param, int) or param < 0:
        raise UnknownValidatorError(name, 'expected a non-negative integer parameter')
    return param


def _pattern_param(name: str, param: Any) -> 're.Pattern[str]':
    if isinstance(param, re.Pattern):
        return param
    if isinstance(param, str):
        try:
            return re.compile(param)
        except re.error as e:
            raise UnknownValidatorError(name, f'invalid pattern: {e}')
    raise UnknownValidatorError(name, 'expected a regular expression parameter')


# name -> (parameter check, validator constructor)
PARAMETERIZED_VALIDATORS: Dict[str, Any] = {
    'minLength': (_length_param, min_length),
    'min_length': (_length_param, min_length),
    'maxLength': (_length_param, max_length),
    'max_length': (_length_param, max_length),
    'match': (_pattern_param, match),
}

_RULE_SYNTAX = re.compile(r'^\s*(\w+)\s*(?:\((.*)\))?\s*$', re.DOTALL)
_REGEX_LITERAL = re.compile(r'^/(.*)/([a-z]*)$', re.DOTALL)
_REGEX_FLAGS = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
    'x': re.VERBOSE,
    'u': 0,
    'g': 0,
    'y': 0,
}


def parse_param(text: str, spec: Any = None) -> Any:
    """Parse a rule parameter: a /pattern/flags literal or a JSON value."""
    text = text.strip()
    literal = _REGEX_LITERAL.match(text)
    if literal:
        pattern, flag_letters = literal.groups()
        flags = 0
        for letter in flag_letters:
            if letter not in _REGEX_FLAGS:
                raise UnknownValidatorError(spec or text, f"unknown regex flag '{letter}'")
            flags |= _REGEX_FLAGS[letter]
        try:
            return re.compile(pattern, flags)
        except re.error as e:
            raise UnknownValidatorError(spec or text, f'invalid pattern: {e}')
    try:
        return json.loads(text)
    except ValueError:
        raise UnknownValidatorError(spec or text, f'cannot parse parameter {text!r}')


def render_param(param: Any) -> str:
    if isinstance(param, re.Pattern):
        letters = ''.join(
            letter for letter, flag in (('i', re.IGNORECASE), ('m', re.MULTILINE),
                                        ('s', re.DOTALL), ('x', re.VERBOSE))
            if param.flags & flag
        )
        return f'/{param.pattern}/{letters}'
    return json.dumps(param)


def _build_rule(name: str, has_param: bool, param: Any, spec: Any) -> Rule:
    if name in STANDARD_VALIDATORS:
        if has_param:
            raise UnknownValidatorError(spec, f"'{name}' takes no parameter")
        return Rule(spec if isinstance(spec, str) else name, STANDARD_VALIDATORS[name], 1)
    if name in PARAMETERIZED_VALIDATORS:
        if not has_param:
            raise UnknownValidatorError(spec, f"'{name}' requires a parameter")
        check_param, build = PARAMETERIZED_VALIDATORS[name]
        func = build(check_param(name, param))
        label = spec if isinstance(spec, str) else f'{name}({render_param(param)})'
        return Rule(label, func, 1)
    raise UnknownValidatorError(spec)


def resolve_validator(spec: Any) -> Rule:
    """Resolve a validator declaration into a Rule.

    Raises:
        MissingParameterError: if ``spec`` is empty.
        UnknownValidatorError: if ``spec`` cannot be resolved.
    """
    if isinstance(spec, Rule):
        return spec
    if spec is None or spec == '' or spec == ():
        raise MissingParameterError('validator')
    if isinstance(spec, str):
        syntax = _RULE_SYNTAX.match(spec)
        if not syntax:
            raise UnknownValidatorError(spec)
        name, param_text = syntax.groups()
        if param_text is None or not param_text.strip():
            return _build_rule(name, False, None, spec)
        return _build_rule(name, True, parse_param(param_text, spec), spec)
    if isinstance(spec, re.Pattern):
        return _build_rule('match', True, spec, spec)
    if callable(spec):
        return Rule(getattr(spec, '__name__', None) or repr(spec), spec)
    raise UnknownValidatorError(spec, 'a validator should be a string, a pattern or a callable')


def resolve_validators(specs: Any) -> List[Rule]:
    """Resolve one validator or a list of them."""
    if not isinstance(specs, (list, tuple)):
        specs = [specs]
    return [resolve_validator(spec) for spec in specs]


def validator(func: Callable) -> Callable:
    """Decorator registering a method as a model-level validator.

    The method receives the model (and, if it accepts it, the path) and
    returns a truthy value when valid. Validators of every class in the
    hierarchy run; a subclass never hides its ancestors' validators.

    Example:
        class Period(Model):
            start: int
            end: int

            @validator
            def ordered(self):
                return self.start <= self.end
    """
    func.__topmodel_validator__ = True
    return func


class Validation:
    """Mixin holding validator chains and evaluating them."""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        rules = [
            Rule(attr_name, getattr(raw_attr, '__func__', raw_attr))
            for attr_name, raw_attr in cls.__dict__.items()
            if getattr(raw_attr, '__topmodel_validator__', False)
        ]
        if rules:
            setattr(cls, _VALIDATORS_ATTR, rules)

    def get_validators(self, create: bool = False) -> Optional[List[Rule]]:
        """Validators declared on this object itself (not on its classes)."""
        rules = self.__dict__.get(_VALIDATORS_ATTR)
        if rules is None and create:
            rules = []
            self.__dict__[_VALIDATORS_ATTR] = rules
        return rules

    def add_validator(self, spec: Any) -> Rule:
        rule = resolve_validator(spec)
        self.get_validators(True).append(rule)
        return rule

    def iter_validators(self) -> Iterator[Rule]:
        """Own validators first, then each class's own, most derived first."""
        own = self.get_validators()
        if own:
            yield from own
        for klass in type(self).__mro__:
            yield from klass.__dict__.get(_VALIDATORS_ATTR, ())

    def check_validity(self, value: Any = _SELF, path: str = '') -> Validity:
        """Evaluate the validator chain against ``value`` (default: self).

        Never raises for failed rules; exceptions raised by a validator
        propagate.
        """
        if value is _SELF:
            value = self

        reasons: List[Reason] = []
        for rule in self.iter_validators():
            result = rule(value, path)
            if isinstance(result, Validity) or (
                    isinstance(result, Mapping) and 'valid' in result):
                if not result_valid(result):
                    reasons.extend(
                        result_reasons(result)
                        or [{'failed_validator': rule.name, 'path': path}]
                    )
            elif not result:
                reasons.append({'failed_validator': rule.name, 'path': path})

        # Values that validate themselves (nested models)
        if value is not None and value is not self:
            check = getattr(value, 'check_validity', None)
            if callable(check):
                validity = check(value, path)
                if not result_valid(validity):
                    reasons.extend(result_reasons(validity))

        return Validity.from_reasons(reasons)

    def validate(self) -> None:
        """Raise ValidationError when check_validity() fails."""
        validity = self.check_validity()
        if not validity.valid:
            raise ValidationError(validity.reasons)


def result_valid(result: Union[Validity, Mapping[str, Any]]) -> bool:
    if isinstance(result, Validity):
        return result.valid
    return bool(result['valid'])


def result_reasons(result: Union[Validity, Mapping[str, Any]]) -> List[Reason]:
    if isinstance(result, Validity):
        return list(result.reasons)
    return list(result.get('reasons') or [])


__all__ = [
    "Reason",
    "Validity",
    "Rule",
    "Validation",
    "STANDARD_VALIDATORS",
    "PARAMETERIZED_VALIDATORS",
    "required",
    "filled",
    "positive",
    "negative",
    "min_length",
    "max_length",
    "match",
    "parse_param",
    "render_param",
    "resolve_validator",
    "resolve_validators",
    "accepted_positional_args",
    "validator",
]

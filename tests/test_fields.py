"""
Tests for field declaration, the per-class field registry, type
conversion and serializers.
"""

import math
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Annotated, ClassVar, Dict, List, Optional, Union

import pytest

from topmodel import (
    Field, Model, field, declare_field, lookup_field, iter_fields, for_each_field,
    TopModelError, InvalidFieldTypeError, MissingParameterError, TypeMismatchError,
    ReservedFieldNameError, UnknownOptionError,
)
from topmodel.converters import get_converter, to_number
from topmodel.fields import get_registry, resolve_annotation
from topmodel.serialization import get_serializer, serialize


# ============================================================
# Test: Field construction
# ============================================================

class TestField:
    """Field construction and per-field conversion."""

    def test_missing_name(self):
        with pytest.raises(MissingParameterError) as exc_info:
            Field('', str)
        assert str(exc_info.value) == "'name' parameter is missing"

    def test_missing_type(self):
        with pytest.raises(MissingParameterError):
            Field('name', None)

    @pytest.mark.parametrize('bad_type', [42, 'str', List[int]])
    def test_invalid_type(self, bad_type):
        """Only classes can be field types"""
        with pytest.raises(InvalidFieldTypeError) as exc_info:
            Field('name', bad_type)
        assert exc_info.value.field_name == 'name'

    def test_unknown_option(self):
        with pytest.raises(UnknownOptionError) as exc_info:
            Field('name', str, colour='red')
        assert exc_info.value.option == 'colour'

    def test_errors_share_a_base(self):
        assert issubclass(InvalidFieldTypeError, TopModelError)
        assert issubclass(InvalidFieldTypeError, TypeError)
        assert issubclass(MissingParameterError, ValueError)

    def test_convert_and_serialize(self):
        f = Field('age', int)
        assert f.convert('42') == 42
        assert f.serialize(42) == 42
        assert repr(f) == "Field('age', int)"

    def test_user_converter_and_serializer(self):
        f = Field('code', str, converter=str.upper, serializer=lambda value: value[:2])
        assert f.convert('abc') == 'ABC'
        assert f.serialize('ABC') == 'AB'

    def test_defaults(self):
        assert not Field('name', str).has_default
        assert Field('name', str).get_default() is None
        assert Field('name', str, default_value='x').get_default() == 'x'
        assert Field('tags', list, default_value=list).get_default() == []
        assert Field('n', int, default_value=lambda: 3).get_default() == 3
        assert Field('n', int, default_value=lambda model: model * 2).get_default(4) == 8


# ============================================================
# Test: Declaring fields on models
# ============================================================

class TestDeclaration:
    """Declaring fields through class bodies and declare_field()."""

    def test_imperative_declaration(self):
        class Person(Model):
            pass

        declare_field(Person, 'name', str)
        Person.declare_field('age', int, validators='positive')

        person = Person({'name': 1, 'age': '3'})
        assert person.serialize() == {'name': '1', 'age': 3}
        assert isinstance(Person.name, Field)
        assert Person.get_field('age').type is int
        assert list(Person.get_fields()) == ['name', 'age']

    def test_unknown_option_in_class_body(self):
        with pytest.raises(UnknownOptionError):
            class Person(Model):
                name: str = field(colour='red')

    def test_field_without_annotation(self):
        class Person(Model):
            country = field(str, default_value='France')

        assert Person().country == 'France'
        assert Person.get_field('country').type is str

    def test_field_without_any_type(self):
        with pytest.raises(MissingParameterError):
            class Person(Model):
                country = field(default_value='France')

    def test_union_is_rejected(self):
        """A union has no single conversion target"""
        with pytest.raises(InvalidFieldTypeError):
            class Value(Model):
                content: Union[int, str]

    def test_skipped_annotations(self):
        """ClassVar and private annotations are not fields"""
        class Person(Model):
            kind: ClassVar[str] = 'person'
            _cache: dict
            name: str

        assert list(Person.get_fields()) == ['name']
        assert Person.kind == 'person'

    def test_annotated_options(self):
        class Person(Model):
            age: Annotated[int, field(validators='positive')]
            nickname: Annotated[Optional[str], field(default_value='Jeannot')]

        assert Person({'age': -1}).check_validity().reasons == [
            {'failed_validator': 'positive', 'path': 'age'},
        ]
        assert Person().nickname == 'Jeannot'

    def test_field_type_overrides_annotation(self):
        class Person(Model):
            age: object = field(int)

        assert Person({'age': '3'}).age == 3

    def test_resolve_annotation(self):
        assert resolve_annotation(str) == (str, None)
        assert resolve_annotation(Optional[int]) == (int, None)
        assert resolve_annotation(List[str]) == (list, None)
        assert resolve_annotation(Dict[str, int]) == (dict, None)
        assert resolve_annotation(int | None) == (int, None)
        assert resolve_annotation(tuple) == (list, None)

    def test_tuple_annotation_is_a_list(self):
        """Bare tuple and Tuple[...] both hold lists"""
        class Point(Model):
            coords: tuple

        assert Point({'coords': (1, 2)}).coords == [1, 2]
        with pytest.raises(TypeMismatchError):
            Point({'coords': 'ab'})

    @pytest.mark.parametrize('name', ['validate', 'serialize', 'clone', 'on', 'emit', 'model_config'])
    def test_reserved_names(self, name):
        """A field cannot hide a model method or attribute"""
        class Person(Model):
            pass

        with pytest.raises(ReservedFieldNameError) as exc_info:
            Person.declare_field(name, str)
        assert exc_info.value.field_name == name
        assert get_registry(Person) is None

    def test_reserved_name_in_class_body(self):
        with pytest.raises(ReservedFieldNameError):
            class Person(Model):
                serialize: str

    def test_inherited_field_is_not_reserved(self):
        class Person(Model):
            name: str

        class Hero(Person):
            name: int

        assert Hero({'name': '3'}).name == 3


# ============================================================
# Test: Registry and inheritance
# ============================================================

class TestRegistry:
    """Per-class registries chained through the MRO."""

    def test_subclass_sees_ancestor_fields(self):
        class Person(Model):
            name: str

        class Hero(Person):
            power: str

        assert [f.name for f in iter_fields(Hero)] == ['name', 'power']
        assert [f.name for f in iter_fields(Person)] == ['name']
        assert get_registry(Hero).names() == ['power']
        assert lookup_field(Hero, 'name') is lookup_field(Person, 'name')

    def test_redeclaration_shadows(self):
        """Re-declaring on a subclass leaves the ancestor untouched"""
        class Measure(Model):
            value: str
            unit: str

        class Count(Measure):
            value: int

        assert lookup_field(Count, 'value').type is int
        assert lookup_field(Measure, 'value').type is str
        assert [f.name for f in iter_fields(Count)] == ['value', 'unit']

        assert Count({'value': '3'}).value == 3
        assert Measure({'value': 3}).value == '3'

    def test_late_declaration_is_visible_to_subclasses(self):
        """Effective fields are recomputed after a new declaration"""
        class Person(Model):
            name: str

        class Hero(Person):
            power: str

        assert len(list(iter_fields(Hero))) == 2
        Person.declare_field('age', int)
        assert [f.name for f in iter_fields(Hero)] == ['name', 'age', 'power']
        assert Hero({'age': '3'}).age == 3

    def test_for_each_field(self):
        class Person(Model):
            name: str
            age: int

        names = []
        for_each_field(Person, lambda f: names.append(f.name))
        assert names == ['name', 'age']

    def test_registry_container(self):
        class Person(Model):
            name: str
            age: int

        registry = get_registry(Person)
        assert 'name' in registry
        assert 'power' not in registry
        assert len(registry) == 2
        assert [f.name for f in registry] == ['name', 'age']
        assert get_registry(Model) is None


# ============================================================
# Test: Converters
# ============================================================

class TestConverters:
    """Converters resolved from field types."""

    def test_to_number(self):
        assert to_number(True) == 1
        assert to_number('42') == 42
        assert to_number(' 4.5 ') == 4.5
        assert to_number('') == 0
        assert math.isnan(to_number('junk'))
        assert math.isnan(to_number(object()))

    def test_int(self):
        """int truncates finite numbers, keeps NaN"""
        convert = get_converter(int)
        assert convert('42', {}) == 42
        assert convert('3.7', {}) == 3
        assert convert(-3.7, {}) == -3
        assert math.isnan(convert('junk', {}))

    def test_float(self):
        convert = get_converter(float)
        assert convert(True, {}) == 1.0
        assert convert('2', {}) == 2.0
        assert isinstance(convert('2', {}), float)

    def test_bool(self):
        convert = get_converter(bool)
        assert convert('absolutely', {}) is True
        assert convert('', {}) is False
        assert convert(0, {}) is False

    def test_str(self):
        assert get_converter(str)(12, {}) == '12'

    def test_list(self):
        """list accepts lists and tuples only, copied deeply"""
        convert = get_converter(list)
        inner = [1]
        value = convert((inner, 2), {})
        assert value == [[1], 2]
        assert value[0] is not inner
        with pytest.raises(TypeMismatchError):
            convert('abc', {})
        with pytest.raises(TypeMismatchError):
            convert({'a': 1}, {})

    def test_dict(self):
        source = {'a': {'b': 1}}
        value = get_converter(dict)(source, {})
        assert value == source
        assert value['a'] is not source['a']

    def test_dates(self):
        assert get_converter(datetime)('2015-08-12T09:39:21', {}) == datetime(2015, 8, 12, 9, 39, 21)
        assert get_converter(date)('2015-08-12', {}) == date(2015, 8, 12)
        assert get_converter(time)('09:39', {}) == time(9, 39)
        today = date.today()
        assert get_converter(date)(today, {}) is today

    def test_utc_suffix(self):
        """A trailing Z reads as UTC"""
        expected = datetime(2015, 8, 12, 9, 39, 21, 226000, tzinfo=timezone.utc)
        assert get_converter(datetime)('2015-08-12T09:39:21.226Z', {}) == expected
        assert get_converter(time)('09:39Z', {}) == time(9, 39, tzinfo=timezone.utc)

    def test_value_classes(self):
        identifier = uuid.uuid4()
        assert get_converter(uuid.UUID)(str(identifier), {}) == identifier
        assert get_converter(Decimal)('1.5', {}) == Decimal('1.5')

    def test_model_options_are_forwarded(self):
        class Address(Model):
            country: str = 'France'

        convert = get_converter(Address)
        assert convert({}, {}).country == 'France'
        assert convert({}, {'use_default_values': False}).country is None

    def test_not_a_type(self):
        with pytest.raises(InvalidFieldTypeError):
            get_converter('str')


# ============================================================
# Test: Serializers
# ============================================================

class TestSerializers:
    """Plain-data serialization."""

    def test_serialize_drops_null_object_entries(self):
        value = {'a': 1, 'b': None, 'c': [None, 2], 'd': {'e': None}}
        assert serialize(value) == {'a': 1, 'c': [None, 2], 'd': {}}

    def test_serialize_values(self):
        identifier = uuid.UUID('12345678-1234-5678-1234-567812345678')
        assert serialize(None) is None
        assert serialize(date(2024, 1, 31)) == '2024-01-31'
        assert serialize(identifier) == '12345678-1234-5678-1234-567812345678'
        assert serialize(Decimal('1.50')) == '1.50'
        assert serialize((1, 2)) == [1, 2]

    def test_serialize_models(self):
        class Person(Model):
            name: str

        assert serialize([Person({'name': 'Jean'}), None]) == [{'name': 'Jean'}, None]

    def test_get_serializer(self):
        assert get_serializer(dict)({'a': None, 'b': 1}) == {'b': 1}
        assert get_serializer(list)([None, 1]) == [None, 1]
        assert get_serializer(datetime)(datetime(2020, 1, 2, 3, 4)) == '2020-01-02T03:04:00'
        assert get_serializer(str)('abc') == 'abc'
        assert get_serializer(Decimal)(Decimal('2')) == '2'

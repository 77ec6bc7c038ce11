"""
Tests for re-typing live instances with specialize() and mutate().
"""

import pytest

from topmodel import (
    ConfigDict, Model, on,
    InvalidArgumentError, InvalidDirectionError, TypeMismatchError,
)


class Element(Model):
    id: str


class Person(Element):
    name: str


class Robot(Element):
    serial: str


class Citizen(Element):
    country: str = 'France'


# ============================================================
# Test: specialize()
# ============================================================

class TestSpecialize:
    def test_specialize_to_subclass(self):
        element = Element({'id': 'abc123'})
        reference = element
        element.specialize(Person)

        assert element is reference
        assert isinstance(element, Person)
        assert element.id == 'abc123'
        assert element.name is None

        element.name = 'Manu'
        assert element.serialize() == {'id': 'abc123', 'name': 'Manu'}

    def test_strict_specialization_rejects_ancestors(self):
        element = Element({'id': 'abc123'})
        element.specialize(Person)
        with pytest.raises(InvalidDirectionError):
            element.specialize(Element, strict=True)
        assert type(element) is Person

    def test_strict_specialization_rejects_siblings(self):
        person = Person({'id': 'abc123'})
        with pytest.raises(InvalidDirectionError):
            person.specialize(Robot, strict=True)
        person.specialize(Robot)
        assert type(person) is Robot

    def test_generalize_keeps_hidden_values(self):
        element = Person({'id': 'abc123', 'name': 'Manu'})
        element.specialize(Element)
        assert type(element) is Element
        assert element.serialize() == {'id': 'abc123'}

        element.specialize(Person)
        assert element.name == 'Manu'

    def test_same_class_is_a_no_op(self):
        person = Person({'id': 'abc123'})
        person.specialize(Person, strict=True)
        assert type(person) is Person

    @pytest.mark.parametrize('target', [None, 'Person', dict, object()])
    def test_invalid_target(self, target):
        with pytest.raises(InvalidArgumentError):
            Element().specialize(target)

    def test_strict_from_config(self):
        class Strict(Model):
            model_config = ConfigDict(strict_specialization=True)
            id: str

        class Special(Strict):
            tag: str

        special = Special({'id': 'a'})
        with pytest.raises(InvalidDirectionError):
            special.specialize(Strict)
        special.specialize(Strict, strict=False)
        assert type(special) is Strict

    def test_specialize_does_not_emit(self):
        changes = []
        element = Element({'id': 'a'})
        element.on('did_change', lambda: changes.append(1))
        element.specialize(Person)
        assert changes == []


# ============================================================
# Test: mutate()
# ============================================================

class TestMutate:
    def test_mutate_same_class(self):
        element = Element({'id': 'abc123'})
        element2 = Element({'id': 'xyz789'})
        element2.mutate(element)
        assert type(element2) is Element
        assert element2.id == 'abc123'

    def test_mutate_to_subclass(self):
        element = Element({'id': 'abc123'})
        person = Person({'id': 'xyz789', 'name': 'Manu'})
        reference = element

        element.mutate(person)
        assert element is reference
        assert isinstance(element, Person)
        assert element.serialize() == {'id': 'xyz789', 'name': 'Manu'}
        assert element.is_equal_to(person)

    def test_mutate_strict(self):
        person = Person({'id': 'abc123', 'name': 'Manu'})
        with pytest.raises(InvalidDirectionError):
            person.mutate(Element({'id': 'x'}), strict=True)

    def test_mutate_requires_other(self):
        with pytest.raises(InvalidArgumentError):
            Element().mutate(None)

    def test_mutate_from_plain_data(self):
        element = Element({'id': 'abc123'})
        element.mutate({'id': 'q'})
        assert type(element) is Element
        assert element.id == 'q'

        element.mutate({'id': 'r', 'name': 'Manu'}, Person)
        assert type(element) is Person
        assert element.serialize() == {'id': 'r', 'name': 'Manu'}

    def test_mutate_replaces_values_without_defaults(self):
        element = Element({'id': 'abc123'})
        element.mutate(Citizen.unserialize({'id': 'a'}))
        assert type(element) is Citizen
        assert element.serialize() == {'id': 'a'}

    def test_mutate_values_are_independent(self):
        class Tagged(Element):
            tags: list

        tagged = Tagged({'id': 'a', 'tags': ['x']})
        element = Element()
        element.mutate(tagged)
        element.tags.append('y')
        assert tagged.tags == ['x']

    def test_mutate_emits_once(self):
        changes = []

        class Watched(Element):
            name: str

            @on
            def did_change(self):
                changes.append(1)

        watched = Watched({'id': 'a', 'name': 'b'})
        other = Watched({'id': 'c', 'name': 'd'})
        changes.clear()
        watched.mutate(other)
        assert len(changes) == 1

        watched.mutate(Watched({'id': 'c', 'name': 'd'}))
        assert len(changes) == 2
        changes.clear()
        watched.mutate({'id': 'c', 'name': 'd'})
        assert changes == []

    def test_mutate_drops_hidden_values(self):
        """Values hidden by an earlier specialize() do not survive a mutate"""
        person = Person({'id': 'a', 'name': 'Manu'})
        person.mutate(Element({'id': 'b'}))
        assert type(person) is Element
        person.specialize(Person)
        assert person.name is None
        assert person.serialize() == {'id': 'b'}

    def test_failed_mutate_keeps_values(self):
        class Tagged(Element):
            tags: list

        tagged = Tagged({'id': 'a', 'tags': ['x']})
        with pytest.raises(TypeMismatchError):
            tagged.mutate({'id': 'b', 'tags': 'y'})
        assert tagged.serialize() == {'id': 'a', 'tags': ['x']}

    def test_mutate_from_itself(self):
        person = Person({'id': 'a', 'name': 'Manu'})
        person.mutate(person)
        assert person.serialize() == {'id': 'a', 'name': 'Manu'}

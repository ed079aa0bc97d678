"""
Activation cache tests
"""

import pytest

from shieldmodel.app import ActivationCache

from sample_types import Customer, Person


def test_activator_is_created_once(factory):
    """The same activator is reused for every instance"""
    generated = factory.shielded_type(Person)
    activators = ActivationCache()

    first = activators.activator_for(generated)

    assert activators.activator_for(generated) is first
    assert first.__qualname__ == "ShieldedPerson.activate"


def test_instances_run_the_full_constructor(factory):
    """Activated instances have a container and ran the base constructor"""
    generated = factory.shielded_type(Customer)

    customer = ActivationCache().instantiate(generated)

    assert type(customer) is generated
    assert customer.changes == []
    assert customer.age is None


def test_only_generated_types_are_activated():
    """Plain classes are refused"""
    with pytest.raises(TypeError):
        ActivationCache().instantiate(Person)


def test_metaclass_call_is_respected(factory):
    """Classes whose metaclass constructs instances keep that path"""
    created = []

    class Tracking(type):
        def __call__(cls, *args, **kwargs):
            instance = super().__call__(*args, **kwargs)
            created.append(instance)
            return instance

    class Tracked(metaclass=Tracking):
        @property
        def value(self):
            return None

        @value.setter
        def value(self, value):
            pass

    instance = factory.new_shielded(Tracked)

    assert created == [instance]
    assert factory.is_generated(type(instance))


def test_new_shielded_builds_type_on_demand(factory):
    """new_shielded generates the type first when needed"""
    person = factory.new_shielded(Person)

    assert isinstance(person, Person)
    assert factory.types.get(Person) is type(person)
    assert type(person) in factory.activators

"""Tests for AttributeRegistry.initialize and registration."""
import pytest

from attrstate import (
    AlreadyInitialized,
    AttributeRegistry,
    AttributeSpec,
    CellState,
    DuplicateAttribute,
    Flag,
    InvalidValue,
    MissingRequired,
    Mode,
    NotYetInitialized,
    RegistrationClosed,
    UndefinedAttribute,
    Unreadable,
    Unwriteable,
    Validator,
)


class TestRegistration:
    def test_duplicate_name(self, registry):
        with pytest.raises(DuplicateAttribute):
            registry.add('name')

    def test_registration_closes_after_initialize(self, registry):
        registry.initialize({'name': 'Alice'})
        with pytest.raises(RegistrationClosed):
            registry.add('email')
        with pytest.raises(RegistrationClosed):
            registry.set_remainder_handler(lambda remainder: None)

    def test_lazy_registry_rejects_eager_registration(self, owner):
        registry = AttributeRegistry(owner, lazy=True, builder=lambda name: None)
        with pytest.raises(RegistrationClosed):
            registry.add('x')

    def test_builder_requires_lazy_registry(self, registry):
        with pytest.raises(RegistrationClosed):
            registry.set_builder(lambda name: None)

    def test_access_before_initialize(self, registry):
        with pytest.raises(NotYetInitialized):
            registry.get('name')
        with pytest.raises(NotYetInitialized):
            registry.set('name', 'Bob')


class TestInitialize:
    """Initialize validates everything, then commits."""

    def test_named_values(self, registry):
        registry.initialize({'name': 'Alice', 'age': '30'})
        assert registry.is_initialized()
        assert registry.get('name') == 'Alice'
        assert registry.get('age') == 30

    def test_defaults_apply(self, registry):
        registry.initialize({'name': 'Alice'})
        assert registry.get('age') == 0
        assert registry.defaulted('age')

    def test_positional_values_map_onto_required_names(self, owner):
        registry = AttributeRegistry(owner)
        registry.add('first', flags=Flag.REQUIRED)
        registry.add('second', flags=Flag.REQUIRED)
        registry.add('third', default=None)
        registry.initialize({0: 'a', 1: 'b'})
        assert registry.get_many(['first', 'second']) == {'first': 'a', 'second': 'b'}

    def test_missing_required_names_reported_together(self, owner):
        registry = AttributeRegistry(owner)
        registry.add('first', flags=Flag.REQUIRED)
        registry.add('second', flags=Flag.REQUIRED)
        with pytest.raises(MissingRequired) as exc_info:
            registry.initialize({})
        assert exc_info.value.names == ('first', 'second')
        assert not registry.is_initialized()

    def test_undefined_names_reported_together(self, registry):
        with pytest.raises(UndefinedAttribute) as exc_info:
            registry.initialize({'name': 'Alice', 'colour': 'red', 'size': 3})
        assert set(exc_info.value.names) == {'colour', 'size'}

    def test_invalid_values_reported_together(self, owner):
        registry = AttributeRegistry(owner)
        registry.add('a', validator=Validator.of_type(int))
        registry.add('b', validator=Validator.of_type(int))
        with pytest.raises(InvalidValue) as exc_info:
            registry.initialize({'a': 'x', 'b': 'y'})
        error = exc_info.value
        assert error.names == ('a', 'b')
        assert error.values == {'a': 'x', 'b': 'y'}
        assert set(error.errors) == {'a', 'b'}

    def test_failure_writes_nothing(self, registry):
        with pytest.raises(InvalidValue):
            registry.initialize({'name': 'Alice', 'age': 'not a number'})
        assert not registry.is_initialized()
        assert registry.descriptor('name').state is CellState.UNSET

        registry.initialize({'name': 'Alice', 'age': 5})
        assert registry.get('age') == 5

    def test_second_initialize_mutates_nothing(self, registry):
        registry.initialize({'name': 'Alice'})
        with pytest.raises(AlreadyInitialized):
            registry.initialize({'name': 'Bob'})
        assert registry.get('name') == 'Alice'

    def test_reentrant_initialize(self, registry):
        registry.set_remainder_handler(lambda remainder: registry.initialize({'name': 'Bob'}))
        with pytest.raises(AlreadyInitialized):
            registry.initialize({'name': 'Alice'})
        assert not registry.is_initialized()
        assert not registry.is_initializing()

    def test_automatic_rejected_unless_persisted(self, registry):
        with pytest.raises(Unwriteable) as exc_info:
            registry.initialize({'name': 'Alice', 'id': 3})
        assert exc_info.value.names == ('id',)

    def test_persisted_initialize(self, registry):
        registry.initialize({'name': 'Alice', 'id': 3}, persisted=True)
        assert registry.is_persisted()
        assert registry.get('id') == 3
        assert registry.compute_change_map() == []

    def test_failed_persisted_initialize_stays_unpersisted(self, registry):
        with pytest.raises(InvalidValue):
            registry.initialize({'name': 1, 'id': 3}, persisted=True)
        assert not registry.is_persisted()

    def test_strict_read_only_and_auto_immutable_rejected(self, owner):
        registry = AttributeRegistry(owner)
        registry.add('created', mode=Mode.STRICT_READ_ONLY, default='now')
        registry.add('serial', flags=Flag.AUTO_IMMUTABLE)
        with pytest.raises(Unwriteable) as exc_info:
            registry.initialize({'created': 'then', 'serial': 1}, persisted=True)
        assert set(exc_info.value.names) == {'created', 'serial'}


class TestRemainder:
    def test_remainder_collects_unknown_and_extra_positions(self, registry):
        remainder = registry.initialize({0: 'Alice', 1: 'extra', 2: 'more', 'colour': 'red'}, want_remainder=True)
        assert remainder == {0: 'extra', 1: 'more', 'colour': 'red'}
        assert registry.get('name') == 'Alice'

    def test_no_remainder_unless_requested(self, registry):
        assert registry.initialize({'name': 'Alice'}) is None

    def test_handler_called_once_even_when_empty(self, registry):
        calls = []
        registry.set_remainder_handler(calls.append)
        registry.initialize({'name': 'Alice'})
        assert calls == [{}]

    def test_handler_runs_before_writes(self, registry):
        seen = []
        registry.set_remainder_handler(lambda remainder: seen.append(registry.descriptor('name').state))
        registry.initialize({'name': 'Alice', 'extra': 1})
        assert seen == [CellState.UNSET]


class TestAliases:
    def test_alias_renamed_to_canonical_name(self, registry):
        registry.add_alias('full_name', 'name')
        registry.initialize({'full_name': 'Alice'})
        assert registry.get('name') == 'Alice'
        assert registry.get('full_name') == 'Alice'
        assert registry.aliases_of('name') == ['full_name']

    def test_canonical_name_wins(self, registry):
        registry.add_alias('full_name', 'name')
        registry.initialize({'name': 'Alice', 'full_name': 'Bob'}, want_remainder=True)
        assert registry.get('name') == 'Alice'

    def test_schema_aliases(self, owner):
        registry = AttributeRegistry(owner, schema=[AttributeSpec('name', aliases=('label',))])
        registry.initialize({'label': 'x'})
        assert registry.get('name') == 'x'


class TestWriteOnceModes:
    def test_write_once_accepts_single_initial_write(self, owner):
        registry = AttributeRegistry(owner)
        registry.add('token', mode=Mode.WRITE_ONCE)
        registry.initialize({'token': 'secret'})
        with pytest.raises(Unwriteable):
            registry.set('token', 'other')
        with pytest.raises(Unreadable):
            registry.get('token')
        assert registry.get_all_initializable() == {'token': 'secret'}

    def test_transient_descriptor_discarded(self, owner):
        registry = AttributeRegistry(owner)
        registry.add('password', mode=Mode.WRITE_ONCE_TRANSIENT)
        registry.add('user', default='root')
        registry.initialize({'password': 'hunter2'})
        assert not registry.has('password')
        assert registry.names == ['user']
        with pytest.raises(UndefinedAttribute):
            registry.set('password', 'x')


class TestLazyRegistry:
    """Descriptors built on first access from a schema table."""

    @pytest.fixture
    def lazy_registry(self, owner):
        return AttributeRegistry(owner, lazy=True, schema=[
            AttributeSpec('name', flags=Flag.REQUIRED, validator=Validator.of_type(str)),
            AttributeSpec('age', default=0),
        ])

    def test_required_names_come_from_schema(self, lazy_registry):
        assert lazy_registry.required_names() == ['name']
        with pytest.raises(MissingRequired):
            lazy_registry.initialize({})

    def test_descriptors_built_on_demand(self, lazy_registry):
        lazy_registry.initialize({'name': 'Alice'})
        assert lazy_registry.loaded('name')
        assert not lazy_registry.loaded('age')
        assert lazy_registry.get('age') == 0
        assert lazy_registry.loaded('age')
        assert lazy_registry.descriptor('age').is_initialized()

    def test_unknown_name(self, lazy_registry):
        lazy_registry.initialize({'name': 'Alice'})
        assert not lazy_registry.has('missing')
        with pytest.raises(UndefinedAttribute):
            lazy_registry.get('missing')

    def test_custom_builder(self, owner):
        from attrstate import AttributeDescriptor

        registry = AttributeRegistry(owner, lazy=True)
        registry.set_builder(lambda name: AttributeDescriptor(name, default=name.upper()) if name.startswith('x') else None)
        registry.initialize()
        assert registry.get('xy') == 'XY'
        assert not registry.has('y')

    def test_strict_read_only_base_refuses_required_names(self, owner):
        registry = AttributeRegistry(owner, base_mode='r', lazy=True, builder=lambda name: None)
        with pytest.raises(RegistrationClosed):
            registry.add_required_names(['x'])

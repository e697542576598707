"""Pytest configuration and shared fixtures."""
import pytest

from attrstate import AttributeRegistry, Entity, Flag, Mode, Validator, clear_schema_cache, reset_defaults


class Owner:
    """Plain object owning a registry in tests."""

    def __init__(self, name: str = "owner"):
        self.name = name


class DictFallback:
    """Fallback store backed by a dict."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def has(self, name):
        return name in self.values

    def get(self, name, lazy=False):
        return self.values[name]

    def set(self, name, value, force=False):
        self.values[name] = value

    def unset(self, name):
        self.values.pop(name, None)

    def get_all(self, lazy=False):
        return dict(self.values)


@pytest.fixture(autouse=True)
def reset_attrstate_state():
    """Restore process-wide defaults, schema cache and entity store around each test."""
    reset_defaults()
    clear_schema_cache()
    Entity.store.clear()

    yield

    reset_defaults()
    clear_schema_cache()
    Entity.store.clear()


@pytest.fixture
def owner():
    return Owner()


@pytest.fixture
def registry(owner):
    """Uninitialized registry with an id, a required name and an optional age."""
    attrs = AttributeRegistry(owner)
    attrs.add('id', mode=Mode.READ_ONLY, flags=Flag.AUTOMATIC, validator=Validator.of_type(int))
    attrs.add('name', flags=Flag.REQUIRED, validator=Validator.of_type(str))
    attrs.add('age', validator=Validator.of_type(int, coerce=int), default=0)
    return attrs


@pytest.fixture
def store_calls():
    """Recording inserter/updater/deleter collaborators."""
    class Calls:
        def __init__(self):
            self.inserted = []
            self.updated = []
            self.deleted = []
            self.next_id = 7

        def inserter(self, values):
            self.inserted.append(values)
            return {'id': self.next_id}

        def updater(self, old, new, changed):
            self.updated.append((old, new, changed))
            return {}

        def deleter(self, values):
            self.deleted.append(values)

    return Calls()


@pytest.fixture
def make_fallback():
    return DictFallback

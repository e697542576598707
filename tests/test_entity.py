"""Tests for Entity over class-level schemas and the memory store."""
import pytest

from attrstate import (
    AttributeSpec,
    Entity,
    Flag,
    Inaccessible,
    InvalidValue,
    MemoryStore,
    MissingRequired,
    Mode,
    Unreadable,
    Unwriteable,
    Validator,
)


class User(Entity):
    __attributes__ = (
        AttributeSpec('id', mode=Mode.READ_ONLY, flags=Flag.AUTOMATIC),
        AttributeSpec('name', flags=Flag.REQUIRED, validator=Validator.of_type(str)),
        AttributeSpec('email', validator=Validator.of_type(str, nullable=True), default=None),
    )


class Admin(User):
    __attributes__ = (
        AttributeSpec('level', validator=Validator.of_type(int, coerce=int), default=1),
        AttributeSpec('email', validator=Validator.of_type(str), default='root@localhost'),
    )


class Team(Entity):
    __attributes__ = (
        AttributeSpec('id', mode=Mode.READ_ONLY, flags=Flag.AUTOMATIC),
        AttributeSpec('lead', validator=Validator(predicate=lambda value: isinstance(value, User))),
    )


class Credentials(Entity):
    __attributes__ = (
        AttributeSpec('login', flags=Flag.REQUIRED),
        AttributeSpec('password', mode=Mode.WRITE_ONLY, default=''),
    )


class TestAttributes:
    def test_construct_and_read(self):
        user = User(name='Alice')
        assert user.name == 'Alice'
        assert user.email is None

    def test_positional_mapping(self):
        assert User({0: 'Alice'}).name == 'Alice'

    def test_required(self):
        with pytest.raises(MissingRequired):
            User()

    def test_set_and_delete(self):
        user = User(name='Alice', email='a@example.com')
        user.email = 'b@example.com'
        assert user.email == 'b@example.com'
        del user.email
        assert user.email is None
        with pytest.raises(InvalidValue):
            user.name = 42

    def test_unknown_attribute(self):
        user = User(name='Alice')
        with pytest.raises(AttributeError):
            user.colour

    def test_write_only_attribute_reads_as_missing(self):
        credentials = Credentials(login='alice', password='secret')
        with pytest.raises(AttributeError) as excinfo:
            credentials.password
        assert isinstance(excinfo.value.__cause__, Unreadable)
        assert not hasattr(credentials, 'password')
        assert getattr(credentials, 'password', 'hidden') == 'hidden'
        assert credentials.login == 'alice'

    def test_plain_private_attributes(self):
        user = User(name='Alice')
        user._cache = 1
        assert user._cache == 1

    def test_subclass_extends_and_overrides_schema(self):
        assert Admin.schema().names == ['id', 'name', 'email', 'level']
        admin = Admin(name='Root', level='3')
        assert admin.level == 3
        assert admin.email == 'root@localhost'
        assert User.schema().get('email').default is None

    def test_to_dict(self):
        assert User(name='Alice').to_dict() == {'name': 'Alice', 'email': None}


class TestPersistence:
    def test_persist_assigns_id_and_uid(self):
        user = User(name='Alice')
        with pytest.raises(AttributeError) as excinfo:
            user.id
        assert isinstance(excinfo.value.__cause__, Inaccessible)
        assert not hasattr(user, 'id')
        assert getattr(user, 'id', None) is None
        assert user.get_uid() is None
        user.persist()
        assert user.id == 1
        assert user.get_uid() == ('User', 1)
        assert user.is_persisted()
        assert User.exists(1)

    def test_id_not_writable(self):
        user = User(name='Alice').persist()
        with pytest.raises(Unwriteable):
            user.id = 5

    def test_update_and_load(self):
        user = User(name='Alice').persist()
        user.name = 'Bob'
        user.persist()
        loaded = User.load(user.id)
        assert loaded.name == 'Bob'
        assert loaded.is_persisted()
        assert loaded.attributes.compute_change_map() == []

    def test_load_missing(self):
        with pytest.raises(KeyError):
            User.load(99)

    def test_unpersist(self):
        user = User(name='Alice').persist()
        user.unpersist()
        assert not User.exists(1)
        assert not user.is_persisted()
        assert user.get_uid() is None

    def test_reload(self):
        user = User(name='Alice').persist()
        other = User.load(1)
        other.name = 'Carol'
        other.persist()
        user.reload()
        assert user.name == 'Carol'

    def test_scopes_per_class(self):
        User(name='Alice').persist()
        admin = Admin(name='Root').persist()
        assert admin.get_uid() == ('Admin', 1)

    def test_nested_entity_stored_by_uid(self):
        lead = User(name='Alice')
        team = Team(lead=lead)
        team.persist(recursive=True)
        assert lead.is_persisted()
        assert Entity.store.load('Team', 1)['lead'] == ('User', 1)
        assert team.is_persisted(recursive=True)

    def test_custom_store(self):
        class Note(Entity):
            store = MemoryStore()
            __attributes__ = (
                AttributeSpec('id', mode=Mode.READ_ONLY, flags=Flag.AUTOMATIC),
                AttributeSpec('text', default=''),
            )

        Note(text='hi').persist()
        assert Note.store.exists('Note', 1)
        assert not Entity.store.exists('Note', 1)

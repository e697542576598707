"""
Entity: a persistable object whose attributes come from a class-level schema.

Subclasses declare ``__attributes__`` as a tuple of ``AttributeSpec``; a
subclass extends (and may override) the schema of its bases. The merged
schema is built once per class through the shared schema cache. Each
instance owns its values in its own registry.

Example:
    class User(Entity):
        __attributes__ = (
            AttributeSpec('id', mode=Mode.READ_ONLY, flags=Flag.AUTOMATIC),
            AttributeSpec('name', flags=Flag.REQUIRED, validator=Validator.of_type(str)),
        )

    user = User(name='Alice')
    user.persist()
    User.load(user.id).name  # 'Alice'
"""
import logging
from typing import Any, Dict, Hashable, Mapping, Optional, Tuple

from attrstate.exceptions import Inaccessible, Unreadable
from attrstate.modes import Mode
from attrstate.registry import AttributeRegistry
from attrstate.schema import AttributeSpec, Schema, get_class_schema
from attrstate.stores import MemoryStore

logger = logging.getLogger(__name__)


class Entity:
    """Base class for schema-declared, store-backed objects."""

    __attributes__: Tuple[AttributeSpec, ...] = ()
    __base_mode__: Optional[Mode] = None
    id_attribute = 'id'
    store: MemoryStore = MemoryStore()

    def __init__(self, values: Optional[Mapping[Any, Any]] = None, **kwargs):
        self._init_registry()
        initial = dict(values or {})
        initial.update(kwargs)
        self.attributes.initialize(initial)

    def _init_registry(self) -> None:
        object.__setattr__(
            self, 'attributes',
            AttributeRegistry(self, base_mode=self.__base_mode__, schema=self.schema()),
        )

    @classmethod
    def schema(cls) -> Schema:
        return get_class_schema(cls)

    @classmethod
    def scope(cls) -> str:
        return cls.__name__

    def __repr__(self):
        return f"{type(self).__name__}({self.attributes.get_all()!r})"

    # ==================== ATTRIBUTE ACCESS ====================

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        if name.startswith('_') or name == 'attributes':
            raise AttributeError(name)
        registry = self.__dict__.get('attributes')
        if registry is None or not registry.has(name):
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")
        try:
            return registry.get(name)
        except (Unreadable, Inaccessible) as e:
            raise AttributeError(f"{type(self).__name__!r} attribute {name!r} is not readable: {e}") from e

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith('_') or not self.attributes.has(name):
            object.__setattr__(self, name, value)
            return
        self.attributes.set(name, value)

    def __delattr__(self, name: str) -> None:
        if name.startswith('_') or not self.attributes.has(name):
            object.__delattr__(self, name)
            return
        self.attributes.unset(name)

    def to_dict(self) -> Dict[str, Any]:
        return self.attributes.get_all()

    # ==================== IDENTITY ====================

    def _id(self) -> Any:
        descriptor = self.attributes.lookup(self.id_attribute)
        if descriptor is None or not descriptor.is_gettable():
            return None
        return descriptor.get_value()

    def get_uid(self) -> Optional[Tuple[str, Hashable]]:
        """(class name, id) once the store assigned an id, None before."""
        uid = self._id()
        return (self.scope(), uid) if uid is not None else None

    # ==================== PERSISTENCE ====================

    def persist(self, recursive: bool = False) -> 'Entity':
        store, scope = self.store, self.scope()
        self.attributes.persist(
            store.inserter(scope),
            store.updater(scope, self._id),
            recursive=recursive,
        )
        return self

    def unpersist(self, recursive: bool = False) -> 'Entity':
        self.attributes.unpersist(self.store.deleter(self.scope()), recursive=recursive)
        return self

    def reload(self) -> 'Entity':
        self.attributes.reload(self.store.loader(self.scope(), self._id))
        return self

    def is_persisted(self, recursive: bool = False) -> bool:
        return self.attributes.is_persisted(recursive)

    @classmethod
    def exists(cls, uid: Hashable) -> bool:
        return cls.store.exists(cls.scope(), uid)

    @classmethod
    def load(cls, uid: Hashable) -> 'Entity':
        """Build a persisted instance from the store record ``uid``."""
        record = cls.store.load(cls.scope(), uid)
        if record is None:
            raise KeyError(f"No {cls.scope()} record {uid!r}")
        entity = cls.__new__(cls)
        entity._init_registry()
        entity.attributes.initialize(record, persisted=True)
        logger.debug(f"Loaded {cls.scope()} {uid!r}")
        return entity

"""
AttributeRegistry: the attribute set of one owner.

Lifecycle: Uninitialized -> Initializing -> Initialized (irreversible).
Once initialized, the registry cycles between unpersisted and persisted
through the persistence orchestrator (persist/unpersist/reload).

Descriptors are either registered eagerly before initialization (``add``,
``add_spec``, a schema table) or, in lazy mode, built on first access by a
builder (``name -> descriptor | None``, a ``SchemaBuilder`` by default).

Thread safety: Not thread-safe. One registry belongs to one owner instance;
callers sharing it across threads must serialize access.
"""
import logging
import weakref
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Type

from attrstate import config
from attrstate.capabilities import FallbackStore, Persistable
from attrstate.descriptor import MISSING, AttributeDescriptor
from attrstate.exceptions import (
    AlreadyInitialized,
    AttributeStateError,
    DuplicateAttribute,
    Inaccessible,
    InvalidValue,
    MissingRequired,
    NotYetInitialized,
    RegistrationClosed,
    UndefinedAttribute,
    Unwriteable,
)
from attrstate.guard import UNPERSISTED_SCOPE, AccessGuard
from attrstate.modes import Flag, Mode
from attrstate.persistence import PersistenceOrchestrator
from attrstate.schema import AttributeSpec, Schema, SchemaBuilder
from attrstate.tracker import ChangeTracker

logger = logging.getLogger(__name__)

Builder = Callable[[str], Optional[AttributeDescriptor]]
RemainderHandler = Callable[[Dict[Any, Any]], None]


class AttributeRegistry:
    """Schema-driven attribute manager for one owner object.

    Args:
        owner: The object the attributes belong to. Only weakly referenced.
        base_mode: Default mode of every attribute, constraining the modes
                   attributes may request (see ``attrstate.modes``).
        lazy: Build descriptors on first access instead of up front.
        schema: Optional schema table; registered eagerly, or used as the
                builder in lazy mode.
        builder: Custom lazy-mode builder (overrides the schema builder).
        fallback: Store consulted for names not defined locally.
    """

    def __init__(
        self,
        owner: Any = None,
        base_mode: Optional[Any] = None,
        lazy: Optional[bool] = None,
        schema: Optional[Iterable[AttributeSpec]] = None,
        builder: Optional[Builder] = None,
        fallback: Optional[FallbackStore] = None,
    ):
        self._owner_ref = weakref.ref(owner) if owner is not None else None
        self.base_mode: Mode = Mode.coerce(base_mode) if base_mode is not None else config.get_default_base_mode()
        self._lazy: bool = config.get_default_lazy() if lazy is None else bool(lazy)

        self._descriptors: Dict[str, AttributeDescriptor] = {}
        self._aliases: Dict[str, str] = {}
        self._discarded: Set[str] = set()
        self._required_names: List[str] = []
        self._builder: Optional[Builder] = None
        self._remainder_handler: Optional[RemainderHandler] = None
        self._fallback: Optional[FallbackStore] = fallback

        # === Lifecycle flags ===
        self._initialized = False
        self._initializing = False
        self._readonly = False
        self._persisted = False

        self.guard = AccessGuard(self)
        self.tracker = ChangeTracker()
        self.persistence = PersistenceOrchestrator(self)

        if schema is not None:
            schema = schema if isinstance(schema, Schema) else Schema(schema)
            if self._lazy:
                self._builder = SchemaBuilder(schema)
                self.add_required_names(schema.required_names())
            else:
                for spec in schema:
                    self.add_spec(spec)
            for spec in schema:
                for alias in spec.aliases:
                    self.add_alias(alias, spec.name)
        if builder is not None:
            self.set_builder(builder)

    def __repr__(self):
        owner = self.owner
        owner_name = type(owner).__name__ if owner is not None else None
        return (
            f"AttributeRegistry(owner={owner_name}, base_mode={self.base_mode.value!r}, "
            f"attributes={list(self._descriptors)})"
        )

    # ==================== STATE ====================

    @property
    def owner(self) -> Any:
        return self._owner_ref() if self._owner_ref is not None else None

    def is_lazy(self) -> bool:
        return self._lazy

    def is_initialized(self) -> bool:
        return self._initialized

    def is_initializing(self) -> bool:
        return self._initializing

    def is_readonly(self) -> bool:
        return self._readonly

    def set_as_readonly(self) -> 'AttributeRegistry':
        """Lock every attribute against set/unset. Irreversible."""
        self._require_initialized()
        if not self._readonly:
            self._readonly = True
            logger.debug(f"Registry of {self._owner_name()} locked read-only")
        return self

    def is_persisted(self, recursive: bool = False) -> bool:
        if not self._persisted:
            return False
        if recursive:
            for descriptor in self._descriptors.values():
                if not descriptor.is_gettable() or descriptor.has_lazy_value():
                    continue
                value = descriptor.get_value()
                if isinstance(value, Persistable) and not value.is_persisted(recursive=True):
                    return False
        return True

    def _set_persisted(self, persisted: bool) -> None:
        self._persisted = persisted

    def _owner_name(self) -> str:
        owner = self.owner
        return type(owner).__name__ if owner is not None else "<no owner>"

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotYetInitialized(self.owner)

    def _require_open(self, action: str) -> None:
        if self._initialized or self._initializing:
            raise RegistrationClosed(message=f"Cannot {action} after initialization", owner=self.owner)

    # ==================== REGISTRATION ====================

    def add(
        self,
        name: str,
        mode: Optional[Any] = None,
        flags: Flag = Flag.NONE,
        validator: Optional[Callable[[Any], Any]] = None,
        default: Any = MISSING,
        default_factory: Optional[Callable[[], Any]] = None,
    ) -> AttributeDescriptor:
        """Register an attribute (eager registries only, before initialize)."""
        descriptor = AttributeDescriptor(
            name, mode=mode, flags=flags, validator=validator,
            default=default, default_factory=default_factory,
        )
        return self.add_descriptor(descriptor)

    def add_spec(self, spec: AttributeSpec) -> AttributeDescriptor:
        return self.add_descriptor(spec.build())

    def add_descriptor(self, descriptor: AttributeDescriptor) -> AttributeDescriptor:
        if self._lazy:
            raise RegistrationClosed(
                (descriptor.name,),
                message=f"Cannot add attribute {descriptor.name!r} to a lazy registry, use a builder instead",
                owner=self.owner,
            )
        self._require_open(f"add attribute {descriptor.name!r}")
        if descriptor.name in self._descriptors:
            raise DuplicateAttribute((descriptor.name,), owner=self.owner)
        descriptor.bind(self)
        self._descriptors[descriptor.name] = descriptor
        logger.debug(f"Registered attribute {descriptor.name!r} (mode={descriptor.mode.value}) on {self._owner_name()}")
        return descriptor

    def set_builder(self, builder: Builder) -> 'AttributeRegistry':
        if not self._lazy:
            raise RegistrationClosed(message="A builder can only be set on a lazy registry", owner=self.owner)
        self._require_open("set a builder")
        self._builder = builder
        return self

    def add_required_names(self, names: Iterable[str]) -> 'AttributeRegistry':
        """Declare required names (lazy registries only, before initialize)."""
        names = list(names)
        if not self._lazy:
            raise RegistrationClosed(
                names,
                message="Required names of an eager registry come from its attributes' REQUIRED flag",
                owner=self.owner,
            )
        self._require_open("add required names")
        if names and self.base_mode is Mode.STRICT_READ_ONLY:
            raise RegistrationClosed(
                names, message="Strictly read-only attributes cannot be required", owner=self.owner
            )
        for name in names:
            if name not in self._required_names:
                self._required_names.append(name)
        return self

    def is_required_name(self, name: str) -> bool:
        if self._lazy:
            return name in self._required_names
        descriptor = self._descriptors.get(name)
        return descriptor is not None and descriptor.is_required()

    def required_names(self) -> List[str]:
        if self._lazy:
            return list(self._required_names)
        return [name for name, d in self._descriptors.items() if d.is_required()]

    def add_alias(self, alias: str, name: str) -> 'AttributeRegistry':
        if alias == name:
            raise ValueError(f"Alias {alias!r} cannot name itself")
        self._aliases[alias] = name
        return self

    def resolve_name(self, name: str) -> str:
        return self._aliases.get(name, name)

    def aliases_of(self, name: str) -> List[str]:
        return [alias for alias, canonical in self._aliases.items() if canonical == name]

    def set_remainder_handler(self, handler: RemainderHandler) -> 'AttributeRegistry':
        """Register a handler receiving leftover initialize() values, called once."""
        self._require_open("set a remainder handler")
        self._remainder_handler = handler
        return self

    def set_fallback(self, fallback: FallbackStore) -> 'AttributeRegistry':
        self._fallback = fallback
        return self

    def clear_fallback(self) -> 'AttributeRegistry':
        self._fallback = None
        return self

    @property
    def fallback(self) -> Optional[FallbackStore]:
        return self._fallback

    # ==================== LOOKUP ====================

    def descriptors(self) -> Iterator[AttributeDescriptor]:
        """Loaded descriptors in declaration (or build) order."""
        return iter(list(self._descriptors.values()))

    @property
    def names(self) -> List[str]:
        return list(self._descriptors)

    def lookup(self, name: str) -> Optional[AttributeDescriptor]:
        """Resolve a (possibly aliased) name, building its descriptor if needed."""
        name = self.resolve_name(name)
        descriptor = self._descriptors.get(name)
        if descriptor is not None or self._builder is None or name in self._discarded:
            return descriptor

        descriptor = self._builder(name)
        if descriptor is None:
            return None
        if descriptor.name != name:
            raise AttributeStateError(
                (name,), message=f"Builder returned attribute {descriptor.name!r} for name {name!r}", owner=self.owner
            )
        descriptor.bind(self)
        if self._initialized and not descriptor.is_initialized():
            if self._persisted or not descriptor.is_automatic():
                descriptor.mark_initialized()
        self._descriptors[name] = descriptor
        logger.debug(f"Built attribute {name!r} on {self._owner_name()}")
        return descriptor

    def descriptor(self, name: str) -> AttributeDescriptor:
        descriptor = self.lookup(name)
        if descriptor is None:
            raise UndefinedAttribute((name,), owner=self.owner)
        return descriptor

    def _local_or_fallback(self, name: str) -> Tuple[Optional[AttributeDescriptor], bool]:
        """Return (descriptor, delegated) for ``name``; raise when undefined everywhere."""
        descriptor = self.lookup(name)
        if descriptor is not None:
            return descriptor, False
        if self._fallback is not None and self._fallback.has(self.resolve_name(name)):
            return None, True
        raise UndefinedAttribute((name,), owner=self.owner)

    def _deny(self, error: Type[AttributeStateError], names: Iterable[str]) -> AttributeStateError:
        if error is Inaccessible:
            return Inaccessible(names, scope=UNPERSISTED_SCOPE, owner=self.owner)
        return error(names, owner=self.owner)

    # ==================== INITIALIZE ====================

    def initialize(
        self,
        values: Optional[Mapping[Any, Any]] = None,
        persisted: bool = False,
        want_remainder: bool = False,
    ) -> Optional[Dict[Any, Any]]:
        """Give the attributes their initial values. Allowed exactly once.

        Integer keys are positional values for the required attributes, in
        declaration order. Validation is all-or-nothing: when any value is
        missing, undefined, unwriteable or invalid, nothing is written and the
        registry stays uninitialized.

        Args:
            values: Initial values by name, alias or position.
            persisted: The values come from the backing store; the registry
                       starts persisted with a snapshot of them.
            want_remainder: Return unknown names and extra positional values
                            instead of rejecting them.

        Returns:
            The remainder when requested (or when a remainder handler is
            set), None otherwise.
        """
        if self._initialized or self._initializing:
            raise AlreadyInitialized(self.owner)
        if self._lazy and self._builder is None:
            raise RegistrationClosed(message="Lazy registry has no builder", owner=self.owner)

        values = dict(values or {})
        self._initializing = True
        self._persisted = persisted
        try:
            remainder = self._initialize(values, persisted, want_remainder)
        except BaseException:
            self._persisted = False
            raise
        finally:
            self._initializing = False
        self._initialized = True
        logger.debug(f"Initialized registry of {self._owner_name()} (persisted={persisted})")
        return remainder

    def _initialize(self, values: Dict[Any, Any], persisted: bool, want_remainder: bool) -> Optional[Dict[Any, Any]]:
        for alias, canonical in self._aliases.items():
            if alias in values and canonical not in values:
                values[canonical] = values.pop(alias)

        required = self.required_names()
        for key in list(values):
            if _is_position(key) and 0 <= key < len(required):
                values[required[key]] = values.pop(key)

        missing = [name for name in required if name not in values]
        if missing:
            raise MissingRequired(missing, owner=self.owner)

        remainder = None
        if want_remainder or self._remainder_handler is not None:
            remainder = {}
            for key in list(values):
                if _is_position(key):
                    remainder[key - len(required)] = values.pop(key)
                elif self._initial_descriptor(key) is None:
                    remainder[key] = values.pop(key)
            if self._remainder_handler is not None:
                handler, self._remainder_handler = self._remainder_handler, None
                handler(remainder)

        staged = self._stage(values, persisted)
        for descriptor, value in staged:
            descriptor.store_evaluated(value)

        for name, descriptor in list(self._descriptors.items()):
            if not descriptor.is_initialized() and (persisted or not descriptor.is_automatic()):
                descriptor.mark_initialized()
            if descriptor.mode is Mode.WRITE_ONCE_TRANSIENT:
                del self._descriptors[name]
                self._discarded.add(name)
                logger.debug(f"Discarded transient attribute {name!r}")

        if persisted:
            self.tracker.capture(self._descriptors.values(), "initialize")
        return remainder

    def _initial_descriptor(self, key: Any) -> Optional[AttributeDescriptor]:
        # Alias keys left at this point duplicate a canonical key
        if not isinstance(key, str) or key in self._aliases:
            return None
        return self.lookup(key)

    def _stage(self, values: Mapping[Any, Any], persisted: bool) -> List[Tuple[AttributeDescriptor, Any]]:
        """Validate initial values, collecting every offending name per stage."""
        undefined: List[str] = []
        unwriteable: List[str] = []
        invalid_values: Dict[str, Any] = {}
        errors: Dict[str, Any] = {}
        staged = []
        for name, raw in values.items():
            descriptor = self._initial_descriptor(name)
            if descriptor is None:
                undefined.append(str(name))
                continue
            if self.guard.check_initialize(descriptor, persisted) is not None:
                unwriteable.append(name)
                continue
            result = descriptor.evaluate(raw)
            if not result.ok:
                invalid_values[name] = raw
                errors[name] = result.error
                continue
            staged.append((descriptor, result.value))

        if undefined:
            raise UndefinedAttribute(undefined, owner=self.owner)
        if unwriteable:
            raise Unwriteable(unwriteable, owner=self.owner)
        if invalid_values:
            raise InvalidValue(list(invalid_values), invalid_values, errors, owner=self.owner)
        return staged

    # ==================== ACCESS ====================

    def has(self, name: str) -> bool:
        if self.lookup(name) is not None:
            return True
        return self._fallback is not None and self._fallback.has(self.resolve_name(name))

    def loaded(self, name: str) -> bool:
        return self.resolve_name(name) in self._descriptors

    def get(self, name: str, lazy: bool = False) -> Any:
        self._require_initialized()
        descriptor, delegated = self._local_or_fallback(name)
        if delegated:
            return self._fallback.get(self.resolve_name(name), lazy)
        denial = self.guard.check_get(descriptor)
        if denial is not None:
            raise self._deny(denial, (name,))
        return descriptor.get_value(lazy)

    def get_many(self, names: Iterable[str], lazy: bool = False) -> Dict[str, Any]:
        """Get several attributes; every offending name is reported at once."""
        self._require_initialized()
        names = list(names)
        resolved = self._resolve_batch(names)
        self._raise_denials((name, self.guard.check_get(d)) for name, d in resolved if d is not None)
        return {
            name: (d.get_value(lazy) if d is not None else self._fallback.get(self.resolve_name(name), lazy))
            for name, d in resolved
        }

    def is_set(self, name: str) -> bool:
        """True when the attribute reads as a value other than None."""
        if self.lookup(name) is None and self._fallback is not None and self._fallback.has(self.resolve_name(name)):
            return self._fallback.get(self.resolve_name(name)) is not None
        return self.get(name) is not None

    def is_true(self, name: str) -> bool:
        """Read a boolean attribute."""
        value = self.get(name)
        if not isinstance(value, bool):
            raise InvalidValue((name,), {name: value}, {name: "not a boolean"}, owner=self.owner)
        return value

    def defaulted(self, name: str) -> bool:
        return self.descriptor(name).is_defaulted()

    def set(self, name: str, value: Any, force: bool = False) -> 'AttributeRegistry':
        self._require_initialized()
        descriptor, delegated = self._local_or_fallback(name)
        if delegated:
            self._fallback.set(self.resolve_name(name), value, force)
            return self
        denial = self.guard.check_set(descriptor)
        if denial is not None:
            raise self._deny(denial, (name,))
        if not descriptor.set_value(value, force=force):
            raise InvalidValue((name,), {name: value}, {name: descriptor.last_error}, owner=self.owner)
        return self

    def set_many(self, values: Mapping[str, Any], force: bool = False) -> 'AttributeRegistry':
        """Set several attributes atomically; every offending name is reported at once."""
        self._require_initialized()
        resolved = self._resolve_batch(list(values))
        self._raise_denials((name, self.guard.check_set(d)) for name, d in resolved if d is not None)

        invalid_values: Dict[str, Any] = {}
        errors: Dict[str, Any] = {}
        staged = []
        for name, descriptor in resolved:
            if descriptor is None:
                continue
            raw = values[name]
            if descriptor.is_lazy() and not force:
                staged.append((descriptor, raw, False))
                continue
            result = descriptor.evaluate(raw)
            if not result.ok:
                invalid_values[name] = raw
                errors[name] = result.error
            else:
                staged.append((descriptor, result.value, True))
        if invalid_values:
            raise InvalidValue(list(invalid_values), invalid_values, errors, owner=self.owner)

        for descriptor, value, evaluated in staged:
            if evaluated:
                descriptor.store_evaluated(value)
            else:
                descriptor.set_value(value)
        for name, descriptor in resolved:
            if descriptor is None:
                self._fallback.set(self.resolve_name(name), values[name], force)
        return self

    def unset(self, name: str) -> 'AttributeRegistry':
        """Clear an attribute, or restore its persisted value when it has one."""
        self._require_initialized()
        descriptor, delegated = self._local_or_fallback(name)
        if delegated:
            self._fallback.unset(self.resolve_name(name))
            return self
        denial = self.guard.check_unset(descriptor)
        if denial is not None:
            raise self._deny(denial, (name,))
        self._unset(descriptor)
        return self

    def unset_many(self, names: Iterable[str]) -> 'AttributeRegistry':
        self._require_initialized()
        resolved = self._resolve_batch(list(names))
        self._raise_denials((name, self.guard.check_unset(d)) for name, d in resolved if d is not None)
        for name, descriptor in resolved:
            if descriptor is None:
                self._fallback.unset(self.resolve_name(name))
            else:
                self._unset(descriptor)
        return self

    def _unset(self, descriptor: AttributeDescriptor) -> None:
        if self.guard.restores_snapshot(descriptor):
            descriptor.store_evaluated(self.tracker.value(descriptor.name))
        else:
            descriptor.unset_value()

    def _resolve_batch(self, names: List[str]) -> List[Tuple[str, Optional[AttributeDescriptor]]]:
        resolved = []
        undefined = []
        for name in names:
            descriptor = self.lookup(name)
            if descriptor is None and not (self._fallback is not None and self._fallback.has(self.resolve_name(name))):
                undefined.append(name)
            resolved.append((name, descriptor))
        if undefined:
            raise UndefinedAttribute(undefined, owner=self.owner)
        return resolved

    def _raise_denials(self, checks: Iterable[Tuple[str, Optional[Type[AttributeStateError]]]]) -> None:
        grouped: Dict[Type[AttributeStateError], List[str]] = {}
        for name, denial in checks:
            if denial is not None:
                grouped.setdefault(denial, []).append(name)
        for denial, names in grouped.items():
            raise self._deny(denial, names)

    def get_all(self, lazy: bool = False) -> Dict[str, Any]:
        """Values of every readable, accessible attribute, then the fallback's."""
        self._require_initialized()
        values = {
            d.name: d.get_value(lazy) for d in self.descriptors()
            if self.guard.check_get(d) is None
        }
        get_all = getattr(self._fallback, 'get_all', None)
        if get_all is not None:
            for name, value in get_all(lazy).items():
                values.setdefault(name, value)
        return values

    def get_all_initializable(self, lazy: bool = False) -> Dict[str, Any]:
        """Values of every attribute that initialize() accepts, readable or not."""
        self._require_initialized()
        return {
            d.name: d.get_value(lazy) for d in self.descriptors()
            if d.mode is not Mode.STRICT_READ_ONLY and d.is_gettable()
        }

    # ==================== CHANGE TRACKING & PERSISTENCE ====================

    def compute_change_map(self, names: Optional[Iterable[str]] = None) -> List[str]:
        if names is not None:
            names = [self.resolve_name(n) for n in names]
        return self.tracker.compute_change_map(self._descriptors.values(), names)

    def persist(
        self,
        inserter: Callable[[Dict[str, Any]], Mapping[str, Any]],
        updater: Callable[[Dict[str, Any], Dict[str, Any], List[str]], Mapping[str, Any]],
        changes_only: Optional[bool] = None,
        recursive: bool = False,
    ) -> bool:
        return self.persistence.persist(inserter, updater, changes_only, recursive)

    def unpersist(self, deleter: Optional[Callable[[Dict[str, Any]], None]] = None, recursive: bool = False) -> bool:
        return self.persistence.unpersist(deleter, recursive)

    def reload(self, loader: Callable[[], Mapping[str, Any]]) -> bool:
        return self.persistence.reload(loader)

    def add_pre_persist_hook(self, name: str, hook: Callable[[Any, Any], None]) -> 'AttributeRegistry':
        self.persistence.add_pre_hook(self.resolve_name(name), hook)
        return self

    def add_post_persist_hook(self, name: str, hook: Callable[[Any, Any], None]) -> 'AttributeRegistry':
        self.persistence.add_post_hook(self.resolve_name(name), hook)
        return self


def _is_position(key: Any) -> bool:
    return isinstance(key, int) and not isinstance(key, bool)

"""
Schema tables and the class-scoped shared schema cache.

A schema is an explicit, ordered list of ``AttributeSpec`` entries registered
at construction time. Registries build descriptors from it, either all at
once (eager) or on first access (lazy, via ``SchemaBuilder``).

Schemas declared on classes are merged along the MRO once per class and kept
in a process-wide cache. The cache holds metadata only, never values, so it
can be read from any thread once built.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

from attrstate.descriptor import MISSING, AttributeDescriptor
from attrstate.exceptions import DuplicateAttribute
from attrstate.modes import Flag, Mode
from attrstate.validation import Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttributeSpec:
    """Declarative entry of a schema table: (name, mode, flags, validator, default)."""
    name: str
    mode: Optional[Mode] = None
    flags: Flag = Flag.NONE
    validator: Optional[Callable[[Any], Result]] = None
    default: Any = MISSING
    default_factory: Optional[Callable[[], Any]] = None
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def build(self) -> AttributeDescriptor:
        """Create a fresh, unbound descriptor for this entry."""
        return AttributeDescriptor(
            self.name,
            mode=self.mode,
            flags=self.flags,
            validator=self.validator,
            default=self.default,
            default_factory=self.default_factory,
        )


class Schema:
    """Immutable ordered collection of attribute specs."""

    def __init__(self, specs: Iterable[AttributeSpec] = ()):
        self._specs: Dict[str, AttributeSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise DuplicateAttribute((spec.name,))
            self._specs[spec.name] = spec

    def __iter__(self):
        return iter(self._specs.values())

    def __len__(self):
        return len(self._specs)

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def get(self, name: str) -> Optional[AttributeSpec]:
        return self._specs.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._specs)

    def required_names(self) -> List[str]:
        return [
            s.name for s in self
            if Flag.REQUIRED in s.flags and Flag.AUTOMATIC not in s.flags
            and s.default is MISSING and s.default_factory is None
        ]

    def extend(self, specs: Iterable[AttributeSpec]) -> 'Schema':
        """Return a new schema; entries in ``specs`` override same-named ones."""
        merged = dict(self._specs)
        for spec in specs:
            merged[spec.name] = spec
        return Schema(merged.values())


class SchemaBuilder:
    """Lazy-mode builder backed by a schema table (``name -> descriptor | None``)."""

    def __init__(self, schema: Schema):
        self.schema = schema

    def __call__(self, name: str) -> Optional[AttributeDescriptor]:
        spec = self.schema.get(name)
        return spec.build() if spec is not None else None


# ==================== CLASS-SCOPED SCHEMA CACHE ====================

_schema_cache: Dict[Type, Schema] = {}
_schema_cache_lock = threading.Lock()


def _collect_class_schema(cls: Type, attribute_name: str) -> Schema:
    schema = Schema()
    for klass in reversed(cls.__mro__):
        declared = klass.__dict__.get(attribute_name)
        if declared:
            schema = schema.extend(declared)
    return schema


def get_class_schema(cls: Type, attribute_name: str = '__attributes__') -> Schema:
    """Return the merged schema declared on ``cls`` and its bases.

    Built once per class under a lock; later calls are lock-free reads.
    """
    schema = _schema_cache.get(cls)
    if schema is not None:
        return schema
    with _schema_cache_lock:
        schema = _schema_cache.get(cls)
        if schema is None:
            schema = _collect_class_schema(cls, attribute_name)
            _schema_cache[cls] = schema
            logger.debug(f"Built schema for {cls.__name__}: {schema.names}")
    return schema


def clear_schema_cache() -> None:
    """Drop all cached class schemas. For testing only."""
    with _schema_cache_lock:
        _schema_cache.clear()

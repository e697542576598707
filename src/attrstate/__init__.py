"""
Schema-driven attribute management with a persistence lifecycle.

This package gives an object a registry of named attributes with access
modes, validation and lazy coercion, and tracks what changed since the
backing store last saw them.

Key Features:
- Per-attribute access modes narrowed by a registry base mode
- Required/Automatic/Immutable/Volatile/Lazy attribute flags
- Atomic initialize with positional values, aliases and remainders
- Change tracking against the last persisted snapshot
- Persist/unpersist/reload through injected store callables, with hooks

Quick Start:
    >>> from attrstate import AttributeRegistry, Flag, Mode
    >>>
    >>> attrs = AttributeRegistry(owner)
    >>> attrs.add('id', mode=Mode.READ_ONLY, flags=Flag.AUTOMATIC)
    >>> attrs.add('name', flags=Flag.REQUIRED)
    >>> attrs.initialize({'name': 'Alice'})
    >>> attrs.persist(inserter=lambda values: {'id': 7}, updater=save)
    >>> attrs.set('name', 'Bob')
    >>> attrs.compute_change_map()
    ['name']

Modules:
    - modes: Access modes, base-mode narrowing and flags
    - validation: Validator results and the predicate/transform validator
    - descriptor: Per-attribute metadata and value cell
    - schema: Schema tables and the class-scoped schema cache
    - registry: The attribute registry (initialize and access)
    - guard: Mode, read-only and persistence-phase checks
    - tracker: Persisted snapshot and change maps
    - persistence: persist/unpersist/reload orchestration
    - entity: Entity base class over a class-level schema
    - stores: In-memory backing store
    - config: Process-wide registry defaults
"""

# Modes
from attrstate.modes import Mode, Flag, effective_mode, is_compatible

# Validation
from attrstate.validation import Result, Rejected, Validator, ANY

# Descriptors and schemas
from attrstate.descriptor import AttributeDescriptor, CellState, MISSING
from attrstate.schema import (
    AttributeSpec,
    Schema,
    SchemaBuilder,
    get_class_schema,
    clear_schema_cache,
)

# Registry
from attrstate.registry import AttributeRegistry
from attrstate.comparison import comparison_key
from attrstate.snapshot_model import AttributeSnapshot, PersistenceSnapshot

# Capabilities
from attrstate.capabilities import Identified, Persistable, FallbackStore

# Entities and stores
from attrstate.entity import Entity
from attrstate.stores import MemoryStore

# Configuration
from attrstate.config import (
    set_default_base_mode,
    get_default_base_mode,
    set_default_lazy,
    get_default_lazy,
    set_changes_only_default,
    get_changes_only_default,
    reset_defaults,
)

# Errors
from attrstate.exceptions import (
    AttributeStateError,
    MissingRequired,
    UndefinedAttribute,
    Inaccessible,
    Unreadable,
    Unwriteable,
    Ununsettable,
    InvalidValue,
    MissingAutomatic,
    AlreadyInitialized,
    NotYetInitialized,
    ModeConflict,
    DuplicateAttribute,
    RegistrationClosed,
    CoercionFault,
)

__all__ = [
    # Modes
    'Mode',
    'Flag',
    'effective_mode',
    'is_compatible',
    # Validation
    'Result',
    'Rejected',
    'Validator',
    'ANY',
    # Descriptors and schemas
    'AttributeDescriptor',
    'CellState',
    'MISSING',
    'AttributeSpec',
    'Schema',
    'SchemaBuilder',
    'get_class_schema',
    'clear_schema_cache',
    # Registry
    'AttributeRegistry',
    'comparison_key',
    'AttributeSnapshot',
    'PersistenceSnapshot',
    # Capabilities
    'Identified',
    'Persistable',
    'FallbackStore',
    # Entities and stores
    'Entity',
    'MemoryStore',
    # Configuration
    'set_default_base_mode',
    'get_default_base_mode',
    'set_default_lazy',
    'get_default_lazy',
    'set_changes_only_default',
    'get_changes_only_default',
    'reset_defaults',
    # Errors
    'AttributeStateError',
    'MissingRequired',
    'UndefinedAttribute',
    'Inaccessible',
    'Unreadable',
    'Unwriteable',
    'Ununsettable',
    'InvalidValue',
    'MissingAutomatic',
    'AlreadyInitialized',
    'NotYetInitialized',
    'ModeConflict',
    'DuplicateAttribute',
    'RegistrationClosed',
    'CoercionFault',
]

__version__ = '1.0.0'
__description__ = 'Schema-driven attribute management with a persistence lifecycle'

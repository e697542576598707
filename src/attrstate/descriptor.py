"""
AttributeDescriptor: per-attribute metadata plus a tri-state value cell.

Cell states:
- UNSET: no value given (the default, if any, is what reads return)
- LAZY: raw value stored as given, coerced on first non-lazy read
- EVALUATED: validated and coerced value

The descriptor never raises for a rejected value: ``set_value`` reports it by
returning False and the owning registry decides whether that is fatal.
"""
import enum
import logging
from typing import Any, Callable, Optional, TYPE_CHECKING

from attrstate.exceptions import CoercionFault, InvalidValue, ModeConflict
from attrstate.modes import Flag, Mode, effective_mode
from attrstate.validation import Result, as_validator

if TYPE_CHECKING:
    from attrstate.registry import AttributeRegistry

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self):
        return 'MISSING'


MISSING: Any = _Missing()


class CellState(enum.Enum):
    UNSET = 'unset'
    LAZY = 'lazy'
    EVALUATED = 'evaluated'


class AttributeDescriptor:
    """Metadata and value cell of one attribute.

    Mode and requiredness depend on the owning registry, so a descriptor is
    only usable once bound to one (``bind``). An unbound descriptor keeps the
    mode it was requested with; binding narrows it by the registry base mode.
    """

    def __init__(
        self,
        name: str,
        mode: Optional[Any] = None,
        flags: Flag = Flag.NONE,
        validator: Optional[Callable[[Any], Result]] = None,
        default: Any = MISSING,
        default_factory: Optional[Callable[[], Any]] = None,
    ):
        if default is not MISSING and default_factory is not None:
            raise ValueError(f"Attribute {name!r} cannot have both a default and a default_factory")
        self.name = name
        self.flags = flags
        self.validator = as_validator(validator)
        self._requested_mode: Optional[Mode] = Mode.coerce(mode) if mode is not None else None
        self._mode: Optional[Mode] = self._requested_mode
        self._default = default
        self._default_factory = default_factory
        self._registry: Optional['AttributeRegistry'] = None

        # === Value cell ===
        self._state = CellState.UNSET
        self._value: Any = None
        self._initialized = False
        self.last_error: Any = None

    def __repr__(self):
        mode = self._mode.value if self._mode else None
        return f"AttributeDescriptor({self.name!r}, mode={mode!r}, state={self._state.value})"

    # ==================== BINDING ====================

    def bind(self, registry: 'AttributeRegistry') -> 'AttributeDescriptor':
        """Attach to a registry, resolving the effective mode."""
        if self._registry is not None and self._registry is not registry:
            raise ValueError(f"Attribute {self.name!r} is already bound to another registry")
        mode = effective_mode(registry.base_mode, self._requested_mode)
        if mode is None:
            raise ModeConflict(self.name, self._requested_mode, registry.base_mode)
        self._registry = registry
        self._mode = mode

        if self._default is not MISSING:
            result = self.validator(self._default)
            if not result.ok:
                raise InvalidValue((self.name,), {self.name: self._default}, {self.name: result.error})
            self._default = result.value
        return self

    @property
    def registry(self) -> Optional['AttributeRegistry']:
        return self._registry

    @property
    def mode(self) -> Mode:
        if self._mode is None:
            raise RuntimeError(f"Attribute {self.name!r} is not bound to a registry")
        return self._mode

    @property
    def state(self) -> CellState:
        return self._state

    # ==================== PREDICATES ====================

    def _persisted(self) -> bool:
        return self._registry is not None and self._registry.is_persisted()

    def is_required(self) -> bool:
        if self._registry is not None and self._registry.is_lazy():
            return self._registry.is_required_name(self.name)
        if Flag.REQUIRED not in self.flags or self.has_default():
            return False
        return not (self.is_automatic() and not self._persisted())

    def is_automatic(self) -> bool:
        return Flag.AUTOMATIC in self.flags

    def is_immutable(self) -> bool:
        return Flag.IMMUTABLE in self.flags

    def is_auto_immutable(self) -> bool:
        return Flag.AUTO_IMMUTABLE in self.flags

    def is_volatile(self) -> bool:
        return Flag.VOLATILE in self.flags

    def is_lazy(self) -> bool:
        return Flag.LAZY in self.flags

    def is_readable(self) -> bool:
        return self.mode.is_readable

    def is_initialized(self) -> bool:
        return self._initialized

    def has_lazy_value(self) -> bool:
        return self._state is CellState.LAZY

    def has_default(self) -> bool:
        return self._default is not MISSING or self._default_factory is not None

    def is_defaulted(self) -> bool:
        return self.has_default() and self._state is CellState.UNSET

    def is_gettable(self) -> bool:
        """True when a read would return a given or default value."""
        return self._state is not CellState.UNSET or self.has_default()

    def is_settable(self, initializing: bool = False) -> bool:
        """Whether a value may be written now, given mode and persistence phase."""
        mode = self.mode
        if initializing:
            if not mode.is_initializable:
                return False
        elif not mode.is_writable:
            return False
        if self.is_auto_immutable():
            return False
        persisted = self._persisted()
        if self.is_automatic() and not persisted:
            return False
        if self.is_immutable() and persisted and not initializing:
            return False
        return True

    def is_store_settable(self) -> bool:
        """Whether a value returned by the store may be written."""
        if self.is_automatic():
            return True
        if self.mode is Mode.STRICT_READ_ONLY:
            return False
        return not (self.is_immutable() and self._persisted())

    # ==================== VALUE CELL ====================

    def evaluate(self, raw: Any) -> Result:
        """Run the validator without touching the cell."""
        return self.validator(raw)

    def set_value(self, raw: Any, force: bool = False, during_init: bool = False) -> bool:
        if self.is_lazy() and not force and not during_init:
            self._value = raw
            self._state = CellState.LAZY
            self._initialized = True
            logger.debug(f"Attribute {self.name!r}: stored lazy value")
            return True

        result = self.evaluate(raw)
        if not result.ok:
            self.last_error = result.error
            logger.debug(f"Attribute {self.name!r}: rejected {raw!r} ({result.error})")
            return False
        self.store_evaluated(result.value)
        return True

    def store_evaluated(self, value: Any) -> None:
        """Store an already validated value."""
        self._value = value
        self._state = CellState.EVALUATED
        self._initialized = True

    def get_value(self, lazy: bool = False) -> Any:
        if self._state is CellState.LAZY:
            if lazy:
                return self._value
            result = self.evaluate(self._value)
            if not result.ok:
                raise CoercionFault(self.name, self._value, result.error)
            self.store_evaluated(result.value)
        if self._state is CellState.EVALUATED:
            return self._value
        return self.default_value()

    def default_value(self) -> Any:
        if self._default is not MISSING:
            return self._default
        if self._default_factory is None:
            return None
        value = self._default_factory()
        result = self.evaluate(value)
        if not result.ok:
            raise CoercionFault(self.name, value, result.error)
        return result.value

    def unset_value(self) -> None:
        self._value = None
        self._state = CellState.UNSET

    def mark_initialized(self) -> None:
        self._initialized = True

    def uninitialize(self) -> None:
        """Drop the value and the initialized mark (store-assigned values)."""
        self.unset_value()
        self._initialized = False

"""
Error taxonomy for attribute registries.

Every manager-level rejection carries the full tuple of offending names so
batch operations can report all of them at once. Errors raised by injected
collaborators (validators, inserters, updaters, deleters, loaders) are never
wrapped in these types.
"""
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple


def _format_names(names: Tuple[str, ...]) -> str:
    return ", ".join(repr(n) for n in names)


class AttributeStateError(Exception):
    """Base class for all attribute registry errors."""

    subject = "attribute"

    def __init__(self, names: Iterable[str] = (), message: Optional[str] = None, owner: Any = None):
        self.names: Tuple[str, ...] = tuple(names)
        self.owner = owner
        super().__init__(message or self._default_message())

    def _default_message(self) -> str:
        plural = "s" if len(self.names) != 1 else ""
        text = f"{self.describe()} {self.subject}{plural} {_format_names(self.names)}"
        if self.owner is not None:
            text += f" in {type(self.owner).__name__}"
        return text

    def describe(self) -> str:
        return "Invalid"


class MissingRequired(AttributeStateError):
    def describe(self) -> str:
        return "Missing required"


class UndefinedAttribute(AttributeStateError, LookupError):
    def describe(self) -> str:
        return "Undefined"


class Inaccessible(AttributeStateError):
    """Attribute exists but cannot be reached in the current scope or phase."""

    def __init__(self, names: Iterable[str] = (), scope: str = "", message: Optional[str] = None, owner: Any = None):
        self.scope = scope
        super().__init__(names, message, owner)

    def describe(self) -> str:
        return f"Inaccessible ({self.scope})" if self.scope else "Inaccessible"


class Unreadable(AttributeStateError):
    def describe(self) -> str:
        return "Unreadable"


class Unwriteable(AttributeStateError):
    def describe(self) -> str:
        return "Unwriteable"


class Ununsettable(Unwriteable):
    def describe(self) -> str:
        return "Ununsettable"


class InvalidValue(AttributeStateError, ValueError):
    """One or more values were rejected by their validators."""

    def __init__(
        self,
        names: Iterable[str] = (),
        values: Optional[Mapping[str, Any]] = None,
        errors: Optional[Mapping[str, Any]] = None,
        message: Optional[str] = None,
        owner: Any = None,
    ):
        self.values: Dict[str, Any] = dict(values or {})
        self.errors: Dict[str, Any] = dict(errors or {})
        super().__init__(names, message, owner)

    def _default_message(self) -> str:
        parts = []
        for name in self.names:
            part = f"{name} = {self.values.get(name)!r}"
            error = self.errors.get(name)
            if error:
                part += f" ({error})"
            parts.append(part)
        plural = "s" if len(self.names) != 1 else ""
        return f"Invalid value{plural} given: " + "; ".join(parts)


class MissingAutomatic(AttributeStateError):
    """The inserter did not return a value for every automatic attribute."""

    def describe(self) -> str:
        return "Missing automatically generated"


class AlreadyInitialized(AttributeStateError):
    def __init__(self, owner: Any = None):
        super().__init__((), "Attribute registry already initialized", owner)


class NotYetInitialized(AttributeStateError):
    def __init__(self, owner: Any = None):
        super().__init__((), "Attribute registry not initialized yet", owner)


# ==================== REGISTRATION ====================

class ModeConflict(AttributeStateError, ValueError):
    """Requested attribute mode is not permitted by the registry base mode."""

    def __init__(self, name: str, mode: Any, base_mode: Any):
        self.mode = mode
        self.base_mode = base_mode
        super().__init__(
            (name,),
            f"Mode {getattr(mode, 'value', mode)!r} of attribute {name!r} is not allowed "
            f"with base mode {getattr(base_mode, 'value', base_mode)!r}",
        )


class DuplicateAttribute(AttributeStateError, ValueError):
    def describe(self) -> str:
        return "Already defined"


class RegistrationClosed(AttributeStateError):
    """Schema changes are only allowed before initialization."""


class CoercionFault(RuntimeError):
    """A value accepted once failed coercion later on (internal inconsistency)."""

    def __init__(self, name: str, value: Any, error: Any = None):
        self.name = name
        self.value = value
        self.error = error
        super().__init__(f"Value {value!r} previously accepted for attribute {name!r} failed coercion: {error}")

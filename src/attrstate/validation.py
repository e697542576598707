"""
Value validation and coercion.

A validator is any callable ``raw -> Result``. ``Validator`` covers the common
predicate-plus-transform case. A rejected value is reported through a failed
``Result``; any exception raised by a predicate or transform propagates to the
caller untouched.
"""
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, Union


@dataclass(frozen=True)
class Result:
    """Outcome of validating one raw value."""
    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any) -> 'Result':
        return cls(True, value, None)

    @classmethod
    def failure(cls, error: str) -> 'Result':
        return cls(False, None, error)


class Rejected(Exception):
    """Raised by a transform to reject a value instead of failing outright."""


@dataclass(frozen=True)
class Validator:
    """Predicate + transform validator.

    The predicate decides whether the raw value is acceptable at all; the
    transform turns an accepted raw value into the stored value. A transform
    may raise ``Rejected`` to turn the value down.
    """
    predicate: Optional[Callable[[Any], bool]] = None
    transform: Optional[Callable[[Any], Any]] = None
    description: str = "value"

    def __call__(self, raw: Any) -> Result:
        if self.predicate is not None and not self.predicate(raw):
            return Result.failure(f"expected {self.description}")
        if self.transform is None:
            return Result.success(raw)
        try:
            return Result.success(self.transform(raw))
        except Rejected as e:
            return Result.failure(str(e) or f"expected {self.description}")

    @classmethod
    def of_type(
        cls,
        types: Union[Type, Tuple[Type, ...]],
        coerce: Optional[Callable[[Any], Any]] = None,
        nullable: bool = False,
    ) -> 'Validator':
        """Accept instances of ``types``, optionally coercing other values first.

        With ``coerce``, a value that is not already an instance is passed to
        it; ValueError/TypeError from the coercion rejects the value.
        """
        types = types if isinstance(types, tuple) else (types,)
        names = " or ".join(t.__name__ for t in types)
        description = f"{names} or None" if nullable else names

        def transform(raw):
            if raw is None and nullable:
                return None
            if isinstance(raw, types) and not (isinstance(raw, bool) and bool not in types):
                return raw
            if coerce is not None and raw is not None:
                try:
                    value = coerce(raw)
                except (ValueError, TypeError) as e:
                    raise Rejected(f"expected {description}: {e}") from e
                if isinstance(value, types):
                    return value
            raise Rejected(f"expected {description}, got {type(raw).__name__}")

        return cls(transform=transform, description=description)


ANY = Validator(description="any value")


def as_validator(validator: Optional[Callable[[Any], Any]]) -> Callable[[Any], Result]:
    """Normalize ``None`` to the accept-anything validator."""
    return ANY if validator is None else validator

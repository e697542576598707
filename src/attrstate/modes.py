"""
Access modes and attribute flags.

A registry has a base mode that every attribute defaults to. An attribute may
request its own mode, but only within what the base mode allows, and the
requested mode is narrowed by the base mode into the effective one:

    base r    : r, r+, rw           -> all become r
    base r+   : r, r+, rw           -> r, r+, r+
    base rw   : every mode          -> unchanged
    base w    : rw, w, w-, w--      -> w, w, w-, w--
    base w-   : rw, w, w-, w--      -> w-, w-, w-, w--
    base w--  : rw, w, w-, w--      -> all become w--
"""
import enum
from typing import Dict, Optional


class Mode(enum.Enum):
    """Read/write capability of an attribute."""
    STRICT_READ_ONLY = 'r'
    READ_ONLY = 'r+'
    READ_WRITE = 'rw'
    WRITE_ONLY = 'w'
    WRITE_ONCE = 'w-'
    WRITE_ONCE_TRANSIENT = 'w--'

    @property
    def is_readable(self) -> bool:
        return self.value[0] == 'r'

    @property
    def is_writable(self) -> bool:
        """Writable after initialization (through set/unset)."""
        return self in (Mode.READ_WRITE, Mode.WRITE_ONLY)

    @property
    def is_initializable(self) -> bool:
        """Accepts a value during initialization."""
        return self is not Mode.STRICT_READ_ONLY

    @property
    def is_write_once(self) -> bool:
        return self in (Mode.WRITE_ONCE, Mode.WRITE_ONCE_TRANSIENT)

    @classmethod
    def coerce(cls, mode) -> 'Mode':
        """Accept a Mode or its short string form ('r', 'rw', 'w-', ...)."""
        if isinstance(mode, cls):
            return mode
        return cls(mode)


_R, _RP, _RW = Mode.STRICT_READ_ONLY, Mode.READ_ONLY, Mode.READ_WRITE
_W, _WO, _WOT = Mode.WRITE_ONLY, Mode.WRITE_ONCE, Mode.WRITE_ONCE_TRANSIENT

# base mode -> requested mode -> effective mode
MODE_NARROWING: Dict[Mode, Dict[Mode, Mode]] = {
    _R: {_R: _R, _RP: _R, _RW: _R},
    _RP: {_R: _R, _RP: _RP, _RW: _RP},
    _RW: {_R: _R, _RP: _RP, _RW: _RW, _W: _W, _WO: _WO, _WOT: _WOT},
    _W: {_RW: _W, _W: _W, _WO: _WO, _WOT: _WOT},
    _WO: {_RW: _WO, _W: _WO, _WO: _WO, _WOT: _WOT},
    _WOT: {_RW: _WOT, _W: _WOT, _WO: _WOT, _WOT: _WOT},
}


def effective_mode(base: Mode, requested: Optional[Mode]) -> Optional[Mode]:
    """Return the effective mode, or None when base does not permit requested."""
    if requested is None:
        return base
    return MODE_NARROWING[base].get(requested)


def is_compatible(base: Mode, requested: Mode) -> bool:
    return requested in MODE_NARROWING[base]


class Flag(enum.Flag):
    """Per-attribute behavior flags."""
    NONE = 0
    REQUIRED = enum.auto()
    AUTOMATIC = enum.auto()
    IMMUTABLE = enum.auto()
    VOLATILE = enum.auto()
    LAZY = enum.auto()
    # Assigned by the store and never writable afterwards
    AUTO_IMMUTABLE = AUTOMATIC | IMMUTABLE

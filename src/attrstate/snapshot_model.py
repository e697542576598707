"""
Persistence snapshot dataclasses.

A snapshot records what the backing store last acknowledged for one registry:
the persisted value of every tracked attribute and its comparison key.

Design Philosophy: Correct by Construction
- Immutable snapshots (frozen dataclass)
- UUID-based identity for snapshots
- Values and keys captured together, never one without the other
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
import uuid
import time


@dataclass(frozen=True)
class AttributeSnapshot:
    """Persisted value of a single attribute and its comparison key."""
    value: Any
    key: str


@dataclass(frozen=True)
class PersistenceSnapshot:
    """Immutable snapshot of all tracked attributes of one registry.

    Taken after every successful persist or reload.
    """
    id: str  # UUID string
    timestamp: float
    label: str
    attributes: Mapping[str, AttributeSnapshot] = field(default_factory=dict)

    @classmethod
    def create(cls, label: str, attributes: Dict[str, AttributeSnapshot]) -> 'PersistenceSnapshot':
        """Create a new snapshot with auto-generated ID and timestamp."""
        return cls(
            id=str(uuid.uuid4()),
            timestamp=time.time(),
            label=label,
            attributes=MappingProxyType(dict(attributes)),
        )

    def __contains__(self, name: str) -> bool:
        return name in self.attributes

    def value(self, name: str, default: Any = None) -> Any:
        entry = self.attributes.get(name)
        return entry.value if entry is not None else default

    def key(self, name: str) -> Optional[str]:
        entry = self.attributes.get(name)
        return entry.key if entry is not None else None

    @property
    def values(self) -> Dict[str, Any]:
        return {name: entry.value for name, entry in self.attributes.items()}

    def to_dict(self) -> Dict:
        """Export keys and metadata (values are not required to be serializable)."""
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'label': self.label,
            'keys': {name: entry.key for name, entry in self.attributes.items()},
        }

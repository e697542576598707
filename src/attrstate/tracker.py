"""
ChangeTracker: last persisted snapshot and minimal change sets.

Tracked attributes are the non-volatile ones whose cell is gettable. Lazy
cells are evaluated when captured or compared.
"""
import copy
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from attrstate.capabilities import Identified
from attrstate.comparison import comparison_key
from attrstate.descriptor import AttributeDescriptor
from attrstate.snapshot_model import AttributeSnapshot, PersistenceSnapshot

logger = logging.getLogger(__name__)

_NONE_KEY = comparison_key(None)


def detached(value):
    """Deep copy of a tracked value; identified values are kept by reference."""
    if isinstance(value, Identified):
        return value
    return copy.deepcopy(value)


def tracked_values(descriptors: Iterable[AttributeDescriptor]) -> Iterator[Tuple[str, object]]:
    """Yield (name, value) for every non-volatile gettable attribute."""
    for descriptor in descriptors:
        if descriptor.is_volatile() or not descriptor.is_gettable():
            continue
        yield descriptor.name, descriptor.get_value()


class ChangeTracker:
    """Holds the persistence snapshot of one registry."""

    def __init__(self):
        self._snapshot: Optional[PersistenceSnapshot] = None

    @property
    def snapshot(self) -> Optional[PersistenceSnapshot]:
        return self._snapshot

    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    def has_value(self, name: str) -> bool:
        return self._snapshot is not None and name in self._snapshot

    def value(self, name: str, default=None):
        """Persisted value of ``name``, detached from the snapshot."""
        if self._snapshot is None or name not in self._snapshot:
            return default
        return detached(self._snapshot.value(name))

    def values(self) -> Dict[str, object]:
        if self._snapshot is None:
            return {}
        return {name: detached(value) for name, value in self._snapshot.values.items()}

    def capture(self, descriptors: Iterable[AttributeDescriptor], label: str = "") -> PersistenceSnapshot:
        """Replace the snapshot with the current tracked state."""
        entries = {
            name: AttributeSnapshot(detached(value), comparison_key(value))
            for name, value in tracked_values(descriptors)
        }
        self._snapshot = PersistenceSnapshot.create(label, entries)
        logger.debug(f"Captured snapshot '{label}' ({len(entries)} attributes)")
        return self._snapshot

    def clear(self) -> None:
        self._snapshot = None

    def compute_change_map(
        self,
        descriptors: Iterable[AttributeDescriptor],
        names: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """Names whose current key differs from the snapshot, in declaration order.

        Without a snapshot, every attribute with a non-None value is changed.
        """
        descriptors = list(descriptors)
        order = {d.name: i for i, d in enumerate(descriptors)}
        selected = set(names) if names is not None else None
        current = {
            name: value for name, value in tracked_values(descriptors)
            if selected is None or name in selected
        }

        if self._snapshot is None:
            return [name for name, value in current.items() if value is not None]

        changed = []
        candidates = list(current)
        for name in self._snapshot.attributes:
            if name not in current and (selected is None or name in selected):
                candidates.append(name)
        for name in candidates:
            current_key = comparison_key(current[name]) if name in current else _NONE_KEY
            saved_key = self._snapshot.key(name)
            if saved_key is None:
                saved_key = _NONE_KEY
            if current_key != saved_key:
                changed.append(name)
                logger.debug(f"Changed attribute {name!r}: saved={saved_key} current={current_key}")
        changed.sort(key=lambda n: order.get(n, len(order)))
        return changed

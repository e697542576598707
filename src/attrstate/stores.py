"""
In-memory backing store.

Records are kept per scope (usually an entity class name) and keyed by an
auto-incremented id. The ``inserter``/``updater``/``deleter``/``loader``
methods build the collaborator callables a registry's persist, unpersist and
reload operations expect.
"""
import copy
import logging
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional

logger = logging.getLogger(__name__)


class MemoryStore:
    """Dict-backed store with auto-increment ids per scope.

    Args:
        id_attribute: Name of the attribute holding the record id.
    """

    def __init__(self, id_attribute: str = 'id'):
        self.id_attribute = id_attribute
        self._records: Dict[str, Dict[Hashable, Dict[str, Any]]] = {}
        self._next_ids: Dict[str, int] = {}

    def __repr__(self):
        counts = {scope: len(records) for scope, records in self._records.items()}
        return f"MemoryStore({counts})"

    # ==================== RECORDS ====================

    def insert(self, scope: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Store a new record; returns the store-assigned values (the id)."""
        records = self._records.setdefault(scope, {})
        record = copy.deepcopy(dict(values))
        uid = record.get(self.id_attribute)
        if uid is None:
            uid = self._next_ids.get(scope, 1)
            while uid in records:
                uid += 1
            record[self.id_attribute] = uid
        elif uid in records:
            raise KeyError(f"{scope} record {uid!r} already exists")
        if isinstance(uid, int):
            self._next_ids[scope] = max(self._next_ids.get(scope, 1), uid + 1)
        records[uid] = record
        logger.debug(f"Inserted {scope} record {uid!r}")
        return {self.id_attribute: uid}

    def update(self, scope: str, uid: Hashable, values: Mapping[str, Any]) -> Dict[str, Any]:
        record = self._record(scope, uid)
        record.update(copy.deepcopy(dict(values)))
        record[self.id_attribute] = uid
        logger.debug(f"Updated {scope} record {uid!r}: {sorted(values)}")
        return {}

    def delete(self, scope: str, uid: Hashable) -> None:
        self._record(scope, uid)
        del self._records[scope][uid]
        logger.debug(f"Deleted {scope} record {uid!r}")

    def load(self, scope: str, uid: Hashable) -> Optional[Dict[str, Any]]:
        """Return a copy of the record, or None when there is none."""
        record = self._records.get(scope, {}).get(uid)
        return copy.deepcopy(record) if record is not None else None

    def exists(self, scope: str, uid: Hashable) -> bool:
        return uid in self._records.get(scope, {})

    def ids(self, scope: str) -> List[Hashable]:
        return list(self._records.get(scope, {}))

    def clear(self) -> None:
        self._records.clear()
        self._next_ids.clear()

    def _record(self, scope: str, uid: Hashable) -> Dict[str, Any]:
        try:
            return self._records[scope][uid]
        except KeyError:
            raise KeyError(f"No {scope} record {uid!r}") from None

    # ==================== COLLABORATORS ====================

    def inserter(self, scope: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
        return lambda values: self.insert(scope, values)

    def updater(self, scope: str, uid: Callable[[], Hashable]) -> Callable[..., Dict[str, Any]]:
        """Build an updater; ``uid`` is called at update time for the record id."""
        def update(old_values: Dict[str, Any], new_values: Dict[str, Any], changed: List[str]) -> Dict[str, Any]:
            return self.update(scope, uid(), {name: new_values[name] for name in changed if name in new_values})
        return update

    def deleter(self, scope: str) -> Callable[[Dict[str, Any]], None]:
        return lambda values: self.delete(scope, values[self.id_attribute])

    def loader(self, scope: str, uid: Callable[[], Hashable]) -> Callable[[], Dict[str, Any]]:
        def load() -> Dict[str, Any]:
            record = self.load(scope, uid())
            if record is None:
                raise KeyError(f"No {scope} record {uid()!r}")
            return record
        return load

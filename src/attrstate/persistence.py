"""
PersistenceOrchestrator: persist/unpersist/reload of one registry.

The backing store is never touched directly: inserters, updaters, deleters
and loaders are injected per call and their errors propagate unchanged.
Store-facing maps carry uid-substituted values; hooks see the raw values.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING

from attrstate import config
from attrstate.capabilities import nested_persistables, storable_values
from attrstate.exceptions import MissingAutomatic, Unwriteable
from attrstate.tracker import tracked_values

if TYPE_CHECKING:
    from attrstate.registry import AttributeRegistry

logger = logging.getLogger(__name__)

Hook = Callable[[Any, Any], None]
Inserter = Callable[[Dict[str, Any]], Optional[Mapping[str, Any]]]
Updater = Callable[[Dict[str, Any], Dict[str, Any], List[str]], Optional[Mapping[str, Any]]]
Deleter = Callable[[Dict[str, Any]], None]
Loader = Callable[[], Optional[Mapping[str, Any]]]


class PersistenceOrchestrator:
    """Drives the Unpersisted <-> Persisted cycle of a registry."""

    def __init__(self, registry: 'AttributeRegistry'):
        self._registry = registry
        self._pre_hooks: Dict[str, List[Hook]] = {}
        self._post_hooks: Dict[str, List[Hook]] = {}

    # ==================== HOOKS ====================

    def _add_hook(self, hooks: Dict[str, List[Hook]], name: str, hook: Hook) -> None:
        registry = self._registry
        registry.descriptor(name)
        if registry.is_readonly():
            raise Unwriteable((name,), message=f"Cannot add persistence hooks to read-only attribute {name!r}",
                              owner=registry.owner)
        hooks.setdefault(name, []).append(hook)

    def add_pre_hook(self, name: str, hook: Hook) -> None:
        """Register ``hook(old, new)``, called before the store sees a change of ``name``."""
        self._add_hook(self._pre_hooks, name, hook)

    def add_post_hook(self, name: str, hook: Hook) -> None:
        """Register ``hook(old, new)``, called after the store applied a change of ``name``."""
        self._add_hook(self._post_hooks, name, hook)

    def remove_pre_hook(self, name: str, hook: Hook) -> None:
        if hook in self._pre_hooks.get(name, []):
            self._pre_hooks[name].remove(hook)

    def remove_post_hook(self, name: str, hook: Hook) -> None:
        if hook in self._post_hooks.get(name, []):
            self._post_hooks[name].remove(hook)

    def _fire(self, hooks: Dict[str, List[Hook]], name: str, old: Any, new: Any) -> None:
        for hook in list(hooks.get(name, [])):
            hook(old, new)

    # ==================== PERSIST ====================

    def _current_values(self) -> Dict[str, Any]:
        return dict(tracked_values(self._registry.descriptors()))

    def persist(
        self,
        inserter: Inserter,
        updater: Updater,
        changes_only: Optional[bool] = None,
        recursive: bool = False,
    ) -> bool:
        """Insert or update the store with the current values.

        Returns:
            True when the store was called, False when nothing changed.
        """
        registry = self._registry
        registry._require_initialized()
        if changes_only is None:
            changes_only = config.get_changes_only_default()

        if recursive:
            for child in nested_persistables(self._current_values().values()):
                child.persist(recursive=True)

        changed = registry.compute_change_map()
        if not changed:
            logger.debug(f"Nothing to persist for {registry._owner_name()}")
            return False

        tracker = registry.tracker
        persisted = registry.is_persisted()
        new_values = self._current_values()
        for name in changed:
            self._fire(self._pre_hooks, name, tracker.value(name), new_values.get(name))

        if not persisted:
            logger.info(f"Inserting {registry._owner_name()} ({len(new_values)} attributes)")
            result = dict(inserter(storable_values(new_values)) or {})
            missing = [
                d.name for d in registry.descriptors()
                if d.is_automatic() and not d.is_gettable() and d.name not in result
            ]
            if missing:
                raise MissingAutomatic(missing, owner=registry.owner)
        else:
            old_values = tracker.values()
            if changes_only:
                old_values = {n: v for n, v in old_values.items() if n in changed}
                new_values = {n: v for n, v in new_values.items() if n in changed}
            logger.info(f"Updating {registry._owner_name()} (changed: {changed})")
            result = dict(updater(storable_values(old_values), storable_values(new_values), list(changed)) or {})

        self._apply(result)

        applied = self._current_values()
        for name in changed:
            self._fire(self._post_hooks, name, tracker.value(name), applied.get(name))

        registry._set_persisted(True)
        tracker.capture(registry.descriptors(), "persist")
        return True

    def _apply(self, values: Mapping[str, Any]) -> None:
        """Write store-returned values, skipping unknown, volatile and locked names."""
        registry = self._registry
        for name, value in values.items():
            descriptor = registry.lookup(name) if isinstance(name, str) else None
            if descriptor is None:
                logger.warning(f"Ignoring store value for unknown attribute {name!r}")
                continue
            if descriptor.is_volatile():
                logger.debug(f"Ignoring store value for volatile attribute {name!r}")
                continue
            if not descriptor.is_store_settable():
                logger.warning(f"Ignoring store value for non-writable attribute {name!r}")
                continue
            if not descriptor.set_value(value, force=True):
                logger.warning(
                    f"Ignoring store value {value!r} rejected by attribute {name!r}: {descriptor.last_error}"
                )

    # ==================== UNPERSIST / RELOAD ====================

    def unpersist(self, deleter: Optional[Deleter] = None, recursive: bool = False) -> bool:
        """Delete from the store; automatic attributes return to Unset.

        Returns:
            False when the registry was not persisted (nothing happens).
        """
        registry = self._registry
        if not registry.is_persisted():
            return False

        values = self._current_values()
        children = nested_persistables(values.values()) if recursive else []
        for name, value in values.items():
            self._fire(self._pre_hooks, name, value, None)

        logger.info(f"Deleting {registry._owner_name()}")
        if deleter is not None:
            deleter(storable_values(values))

        for descriptor in registry.descriptors():
            if descriptor.is_automatic():
                descriptor.uninitialize()

        for name, value in values.items():
            self._fire(self._post_hooks, name, value, None)

        for child in children:
            child.unpersist(recursive=True)

        registry._set_persisted(False)
        registry.tracker.clear()
        return True

    def reload(self, loader: Loader) -> bool:
        """Refresh values from the store. No-op while unpersisted."""
        registry = self._registry
        if not registry.is_persisted():
            return False
        logger.info(f"Reloading {registry._owner_name()}")
        self._apply(dict(loader() or {}))
        registry.tracker.capture(registry.descriptors(), "reload")
        return True

"""Action dispatch and deactivation hooks.

Jobs are fired by name: the cron engine only knows the job name and its
arguments, and :class:`HookRegistry` maps that name to the callbacks bound to
it.  Owners (usually the extension that created the jobs) can also register
callbacks to run when they are switched off.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, List

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


class HookRegistry:
    """Registry of named actions and per-owner deactivation hooks."""

    def __init__(self) -> None:
        self._actions: Dict[str, List[Callback]] = {}
        self._deactivation: Dict[Hashable, List[Callback]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Actions
    def add_action(self, name: str, callback: Callback) -> None:
        """Bind ``callback`` to ``name``. Binding the same callback twice is a no-op."""

        with self._lock:
            callbacks = self._actions.setdefault(name, [])
            if callback not in callbacks:
                callbacks.append(callback)

    def remove_action(self, name: str, callback: Callback | None = None) -> None:
        with self._lock:
            if callback is None:
                self._actions.pop(name, None)
                return
            callbacks = self._actions.get(name, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._actions.pop(name, None)

    def has_action(self, name: str) -> bool:
        with self._lock:
            return bool(self._actions.get(name))

    def do_action(self, name: str, *args: Any) -> int:
        """Invoke every callback bound to ``name`` and return how many ran."""

        with self._lock:
            callbacks = list(self._actions.get(name, []))
        if not callbacks:
            logger.debug("No callbacks bound to '%s'", name)
        for callback in callbacks:
            callback(*args)
        return len(callbacks)

    # ------------------------------------------------------------------
    # Deactivation
    def register_deactivation_hook(self, owner: Hashable, callback: Callback) -> None:
        with self._lock:
            callbacks = self._deactivation.setdefault(owner, [])
            if callback not in callbacks:
                callbacks.append(callback)

    def deactivate(self, owner: Hashable) -> int:
        """Run the deactivation hooks registered for ``owner``."""

        with self._lock:
            callbacks = list(self._deactivation.get(owner, []))
        for callback in callbacks:
            callback()
        return len(callbacks)

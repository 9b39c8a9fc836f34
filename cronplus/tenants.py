"""Site directory for multi-tenant deployments."""

from __future__ import annotations

from contextlib import contextmanager
import threading
from typing import Iterable, Iterator, List


class TenantDirectory:
    """Track the known sites and which one is currently active.

    Parameters
    ----------
    sites:
        Identifiers of every site in the network.
    current:
        Site active when the directory is created. Defaults to the first site.
    multisite:
        Whether the deployment runs as a network of sites at all.
    large_network_threshold:
        Networks with more sites than this are considered large and skip
        per-site bookkeeping.

    The active site is tracked per thread. A thread that never switched sees
    ``current``.
    """

    def __init__(
        self,
        sites: Iterable[int] = (1,),
        *,
        current: int | None = None,
        multisite: bool = False,
        large_network_threshold: int = 10000,
    ) -> None:
        self._sites: List[int] = list(dict.fromkeys(int(s) for s in sites))
        if current is None:
            current = self._sites[0] if self._sites else 1
        if current not in self._sites:
            self._sites.append(current)
        self._root = current
        self._local = threading.local()
        self._multisite = multisite
        self.large_network_threshold = large_network_threshold
        self._lock = threading.RLock()

    def _stack(self) -> List[int]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = [self._root]
        return stack

    def sites(self) -> List[int]:
        with self._lock:
            return list(self._sites)

    def add_site(self, site_id: int) -> None:
        with self._lock:
            if site_id not in self._sites:
                self._sites.append(site_id)

    def current_site(self) -> int:
        return self._stack()[-1]

    def is_multisite(self) -> bool:
        return self._multisite

    def is_large_network(self) -> bool:
        with self._lock:
            return len(self._sites) > self.large_network_threshold

    def switch_to(self, site_id: int) -> None:
        """Make ``site_id`` the active site until :meth:`restore` is called."""

        with self._lock:
            if site_id not in self._sites:
                raise ValueError(f"Unknown site: {site_id}")
        self._stack().append(site_id)

    def restore(self) -> None:
        """Return to the site that was active before the last switch."""

        stack = self._stack()
        if len(stack) > 1:
            stack.pop()

    @contextmanager
    def switched_to(self, site_id: int) -> Iterator[int]:
        self.switch_to(site_id)
        try:
            yield site_id
        finally:
            self.restore()

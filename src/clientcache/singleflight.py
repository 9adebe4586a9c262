"""Per-key duplicate call suppression for concurrent callers.

:class:`SingleFlight` guarantees that, for a given key, only one call to the
supplied function is in flight at a time.  Callers that arrive while a call
for the same key is running block until it finishes and then receive the
same result, or the same exception.  Once the call completes the key is
forgotten; a later call starts a fresh computation, so callers are expected
to consult their own cache first.

Used by :class:`~clientcache.cache.ClientCache` so that concurrent requests
for an unresolved version negotiate once and construct one client.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Share one in-flight computation per key between concurrent callers.

    Example::

        group: SingleFlight[Configuration] = SingleFlight()
        config = group.do("v1", lambda: negotiate("v1"))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, Future[T]] = {}

    def do(self, key: str, fn: Callable[[], T]) -> T:
        """Run *fn* for *key*, or wait for the call already running for *key*.

        Args:
            key: Deduplication key.
            fn: Zero-argument callable producing the value.

        Returns:
            The value produced by whichever call ran *fn*.

        Raises:
            Exception: Whatever *fn* raised, re-raised in every waiting caller.
        """
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            return future.result()

        try:
            result = fn()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                del self._calls[key]

    def in_flight(self, key: str) -> bool:
        """Return ``True`` while a call for *key* is running."""
        with self._lock:
            return key in self._calls

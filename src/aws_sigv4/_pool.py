# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from threading import Lock


class ResourcePool[T]:
    """A bounded pool of reusable objects.

    ``acquire`` never waits: it hands out a pooled object when one is available and
    otherwise builds a new one with the factory. ``release`` keeps the object only if
    the pool holds fewer than ``max_size`` objects and silently drops it otherwise.

    The pool does not reset objects. Callers are responsible for clearing any state
    before reuse and for releasing what they acquire, which :py:meth:`lease` does on
    every exit path.
    """

    def __init__(self, *, factory: Callable[[], T], max_size: int) -> None:
        if max_size < 0:
            raise ValueError(f"max_size must be non-negative, got {max_size}")
        self._factory = factory
        self._max_size = max_size
        self._items: deque[T] = deque()
        self._lock = Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def acquire(self) -> T:
        with self._lock:
            if self._items:
                return self._items.pop()
        return self._factory()

    def release(self, item: T) -> None:
        with self._lock:
            if len(self._items) < self._max_size:
                self._items.append(item)

    @contextmanager
    def lease(self) -> Iterator[T]:
        item = self.acquire()
        try:
            yield item
        finally:
            self.release(item)

    def __len__(self) -> int:
        """The number of idle objects currently held by the pool."""
        return len(self._items)

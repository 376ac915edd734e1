# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Final

from ._locks import ReadWriteLock
from .clock import to_utc

logger: Final = logging.getLogger(__name__)

DEFAULT_CACHE_CAPACITY = 300

_EPOCH: Final = date(1970, 1, 1)


def day_stamp(instant: datetime) -> int:
    """Whole days between the Unix epoch and the UTC calendar day of ``instant``."""
    return (to_utc(instant).date() - _EPOCH).days


@dataclass(frozen=True)
class SigningKey:
    """A derived signing key and the UTC day it was derived for."""

    key: bytes = field(repr=False)
    day_stamp: int

    @classmethod
    def for_instant(cls, key: bytes, instant: datetime) -> "SigningKey":
        return cls(key=key, day_stamp=day_stamp(instant))

    def is_valid_for(self, instant: datetime) -> bool:
        """Whether this key may sign a request stamped at ``instant``.

        A key is scoped to the date in its credential scope, so it is only usable on
        the same UTC calendar day.
        """
        return self.day_stamp == day_stamp(instant)


@dataclass(frozen=True)
class CacheKey:
    """Identifies the credential and scope a signing key was derived for."""

    secret_access_key: str = field(repr=False)
    region: str
    service: str
    _hash: int = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_hash", hash((self.secret_access_key, self.region, self.service))
        )

    def __hash__(self) -> int:
        return self._hash


class SigningKeyCache:
    """A fixed-capacity cache of derived signing keys.

    Entries are evicted in insertion order: when a put takes the cache over capacity
    the oldest inserted entry is dropped, no matter how recently it was read.
    Overwriting a key counts as a new insertion.

    Reads share a lock and run concurrently; writes are exclusive.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[CacheKey, SigningKey] = OrderedDict()
        self._lock = ReadWriteLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: CacheKey) -> SigningKey | None:
        with self._lock.read_lock():
            return self._entries.get(key)

    def put(self, key: CacheKey, value: SigningKey) -> None:
        with self._lock.write_lock():
            self._entries.pop(key, None)
            self._entries[key] = value
            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(
                    "Evicted signing key for %s/%s from cache.",
                    evicted.region,
                    evicted.service,
                )

    def clear(self) -> None:
        with self._lock.write_lock():
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock.read_lock():
            return key in self._entries

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._entries)

    def __repr__(self) -> str:
        return f"SigningKeyCache(capacity={self._capacity}, size={len(self)})"

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import threading
from datetime import UTC, datetime, timedelta, timezone

import pytest
from aws_sigv4.cache import CacheKey, SigningKey, SigningKeyCache, day_stamp

KEY_BYTES = bytes(range(32))


def cache_key(index: int = 0) -> CacheKey:
    return CacheKey(
        secret_access_key=f"secret-{index}", region="us-east-1", service="service"
    )


def signing_key(day: int = 0) -> SigningKey:
    return SigningKey(key=KEY_BYTES, day_stamp=day)


def test_day_stamp() -> None:
    assert day_stamp(datetime(1970, 1, 1, tzinfo=UTC)) == 0
    assert day_stamp(datetime(1970, 1, 2, 0, 0, 1, tzinfo=UTC)) == 1
    assert day_stamp(datetime(2015, 8, 30, 12, 36, tzinfo=UTC)) == 16677


def test_day_stamp_uses_utc_calendar_day() -> None:
    minus_five = timezone(timedelta(hours=-5))
    # 2024-01-01T22:00-05:00 is already 2024-01-02 in UTC.
    local = datetime(2024, 1, 1, 22, 0, tzinfo=minus_five)
    assert day_stamp(local) == day_stamp(datetime(2024, 1, 2, tzinfo=UTC))


def test_signing_key_valid_for_whole_utc_day() -> None:
    derived_at = datetime(2024, 1, 1, 23, 59, 59, tzinfo=UTC)
    key = SigningKey.for_instant(KEY_BYTES, derived_at)
    assert key.is_valid_for(datetime(2024, 1, 1, 0, 0, 0, tzinfo=UTC))
    assert key.is_valid_for(datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC))
    assert key.is_valid_for(datetime(2024, 1, 1, 23, 59, 59, tzinfo=UTC))
    assert not key.is_valid_for(datetime(2024, 1, 2, 0, 0, 0, tzinfo=UTC))
    assert not key.is_valid_for(datetime(2023, 12, 31, 23, 59, 59, tzinfo=UTC))


def test_signing_key_repr_hides_key() -> None:
    key = SigningKey(key=b"\xde\xad\xbe\xef" * 8, day_stamp=1)
    assert "key=" not in repr(key)
    assert "day_stamp=1" in repr(key)


def test_cache_key_equality_and_hash() -> None:
    first = CacheKey(secret_access_key="s", region="r", service="svc")
    second = CacheKey(secret_access_key="s", region="r", service="svc")
    assert first == second
    assert hash(first) == hash(second)
    assert first != CacheKey(secret_access_key="s", region="r2", service="svc")
    assert first != CacheKey(secret_access_key="s2", region="r", service="svc")
    assert first != CacheKey(secret_access_key="s", region="r", service="svc2")


def test_cache_key_repr_hides_secret() -> None:
    key = CacheKey(secret_access_key="TOPSECRET", region="us-east-1", service="s3")
    assert "TOPSECRET" not in repr(key)
    assert "us-east-1" in repr(key)


def test_get_and_put() -> None:
    cache = SigningKeyCache(capacity=2)
    assert cache.get(cache_key()) is None
    value = signing_key()
    cache.put(cache_key(), value)
    assert cache.get(cache_key()) is value
    assert cache_key() in cache
    assert len(cache) == 1


def test_put_overwrites() -> None:
    cache = SigningKeyCache(capacity=2)
    cache.put(cache_key(), signing_key(day=1))
    cache.put(cache_key(), signing_key(day=2))
    assert len(cache) == 1
    entry = cache.get(cache_key())
    assert entry is not None
    assert entry.day_stamp == 2


def test_overflow_evicts_first_inserted_regardless_of_reads() -> None:
    cache = SigningKeyCache(capacity=3)
    for index in range(3):
        cache.put(cache_key(index), signing_key())

    # Reads don't refresh an entry's position.
    for _ in range(10):
        assert cache.get(cache_key(0)) is not None

    cache.put(cache_key(3), signing_key())
    assert len(cache) == 3
    assert cache_key(0) not in cache
    for index in (1, 2, 3):
        assert cache_key(index) in cache


def test_overwrite_moves_entry_to_newest_position() -> None:
    cache = SigningKeyCache(capacity=2)
    cache.put(cache_key(0), signing_key())
    cache.put(cache_key(1), signing_key())
    cache.put(cache_key(0), signing_key(day=1))

    cache.put(cache_key(2), signing_key())
    assert cache_key(0) in cache
    assert cache_key(1) not in cache
    assert cache_key(2) in cache


def test_eviction_is_logged_without_secret(caplog: pytest.LogCaptureFixture) -> None:
    cache = SigningKeyCache(capacity=1)
    with caplog.at_level("DEBUG", logger="aws_sigv4.cache"):
        cache.put(cache_key(0), signing_key())
        cache.put(cache_key(1), signing_key())
    assert "Evicted signing key for us-east-1/service" in caplog.text
    assert "secret-0" not in caplog.text


def test_clear() -> None:
    cache = SigningKeyCache(capacity=2)
    cache.put(cache_key(), signing_key())
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity(capacity: int) -> None:
    with pytest.raises(ValueError):
        SigningKeyCache(capacity=capacity)


def test_default_capacity() -> None:
    assert SigningKeyCache().capacity == 300


def test_concurrent_access_stays_within_capacity() -> None:
    cache = SigningKeyCache(capacity=16)
    errors: list[BaseException] = []

    def worker(offset: int) -> None:
        try:
            for index in range(200):
                key = cache_key(offset * 1000 + index)
                cache.put(key, signing_key())
                cache.get(key)
                cache.get(cache_key(index))
                assert len(cache) <= 16
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert not errors
    assert len(cache) == 16

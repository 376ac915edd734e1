# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Time sources used to stamp signed requests."""

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """A source of the current instant."""

    def now(self) -> datetime:
        """Get the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def __repr__(self) -> str:
        return "SystemClock()"


class FixedClock:
    """Clock that always reports the same instant.

    Naive datetimes are interpreted as UTC.
    """

    def __init__(self, instant: datetime):
        self._instant = to_utc(instant)

    @classmethod
    def from_isoformat(cls, timestamp: str) -> "FixedClock":
        """Create a clock from an ISO-8601 timestamp such as
        ``2015-08-30T12:36:00Z``."""
        return cls(datetime.fromisoformat(timestamp))

    def now(self) -> datetime:
        return self._instant

    def __repr__(self) -> str:
        return f"FixedClock({self._instant.isoformat()!r})"


def to_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Self

from .cache import DEFAULT_CACHE_CAPACITY

DEFAULT_POOL_SIZE = 32
DEFAULT_SCRATCH_BUFFER_SIZE = 512

ENV_KEY_CACHE_SIZE = "AWS_SIGV4_KEY_CACHE_SIZE"
ENV_RESOURCE_POOL_SIZE = "AWS_SIGV4_RESOURCE_POOL_SIZE"
ENV_SCRATCH_BUFFER_SIZE = "AWS_SIGV4_SCRATCH_BUFFER_SIZE"


@dataclass(kw_only=True, frozen=True)
class SigV4SignerConfig:
    """Sizing for the state a signer keeps between calls."""

    cache_capacity: int = DEFAULT_CACHE_CAPACITY
    """The number of derived signing keys kept before the oldest is evicted."""

    pool_size: int = DEFAULT_POOL_SIZE
    """The number of idle scratch resource bundles kept for reuse."""

    scratch_buffer_size: int = DEFAULT_SCRATCH_BUFFER_SIZE
    """Character size past which a scratch buffer is replaced instead of reused."""

    def __post_init__(self) -> None:
        if self.cache_capacity < 1:
            raise ValueError(
                f"cache_capacity must be at least 1, got {self.cache_capacity}"
            )
        if self.pool_size < 0:
            raise ValueError(f"pool_size must be non-negative, got {self.pool_size}")
        if self.scratch_buffer_size < 1:
            raise ValueError(
                "scratch_buffer_size must be at least 1, "
                f"got {self.scratch_buffer_size}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> Self:
        """Build a config from environment variables.

        Unset variables fall back to the defaults.

        :param environ: The environment to read. Defaults to ``os.environ``.
        :raises ValueError: If a variable is set to something other than an integer.
        """
        return cls(
            cache_capacity=_read_int(
                environ, ENV_KEY_CACHE_SIZE, DEFAULT_CACHE_CAPACITY
            ),
            pool_size=_read_int(environ, ENV_RESOURCE_POOL_SIZE, DEFAULT_POOL_SIZE),
            scratch_buffer_size=_read_int(
                environ, ENV_SCRATCH_BUFFER_SIZE, DEFAULT_SCRATCH_BUFFER_SIZE
            ),
        )


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(
            f"Environment variable {name} must be an integer, got {raw!r}."
        ) from e

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from collections.abc import AsyncIterable, AsyncIterator
from inspect import iscoroutinefunction
from io import BytesIO
from typing import Self

from .interfaces.io import AsyncByteStream

# The default chunk size for iterating streams.
_DEFAULT_CHUNK_SIZE = 1024


class AsyncBytesReader:
    """A file-like object with an async read method.

    Wraps bytes, a synchronous file-like object, an async file-like object or an
    async iterable of bytes so that the signer can consume any of them with
    ``async for``.
    """

    def __init__(
        self,
        data: bytes | bytearray | BytesIO | AsyncByteStream | AsyncIterable[bytes],
    ):
        self._remainder = b""
        self._data: BytesIO | AsyncByteStream | AsyncIterable[bytes] | None
        if isinstance(data, bytes | bytearray):
            self._data = BytesIO(data)
        else:
            self._data = data

    async def read(self, size: int = -1) -> bytes:
        """Read a number of bytes from the stream.

        :param size: The maximum number of bytes to read. If less than 0, all bytes will
            be read.
        """
        if self._data is None:
            raise ValueError("I/O operation on closed file.")

        if isinstance(self._data, BytesIO):
            return self._data.read(size)

        if isinstance(self._data, AsyncByteStream) and iscoroutinefunction(  # type: ignore
            self._data.read
        ):
            return await self._data.read(size)

        return await self._read_from_iterable(self._data, size)  # type: ignore

    async def _read_from_iterable(
        self, iterator: AsyncIterable[bytes], size: int
    ) -> bytes:
        result = self._remainder
        if size < 0:
            async for element in iterator:
                result += element
            self._remainder = b""
            return result

        if len(result) < size:
            async for element in iterator:
                result += element
                if len(result) >= size:
                    break

        self._remainder = result[size:]
        return result[:size]

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    async def iter_chunks(
        self, chunk_size: int = _DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Iterate over the reader in chunks of a given size."""
        while chunk := await self.read(chunk_size):
            yield chunk

    @property
    def closed(self) -> bool:
        return self._data is None

    async def close(self) -> None:
        self._data = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Minimal HTTP request model consumed and produced by the signers."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import AsyncIterable, Iterable, Iterator
from copy import deepcopy
from dataclasses import dataclass
from functools import cached_property
from urllib.parse import urlunparse

type Body = bytes | bytearray | Iterable[bytes] | AsyncIterable[bytes]
"""Payload types accepted by :py:class:`AWSRequest`."""

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}


class Field:
    """A header name with an ordered list of values.

    Field names are case insensitive. The name is preserved as given for
    transmission, but lookups in :py:class:`Fields` are done on the lowercased name.
    """

    def __init__(self, *, name: str, values: Iterable[str] | None = None):
        self.name = name
        self.values: list[str] = list(values) if values is not None else []

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def as_string(self, delimiter: str = ",") -> str:
        """Get the values joined by ``delimiter``.

        Values are joined as-is, which is the form used on the wire and in the
        canonical request.
        """
        return delimiter.join(self.values)

    def __eq__(self, other: object) -> bool:
        """Name and values must match, values in order."""
        if not isinstance(other, Field):
            return False
        return self.name == other.name and self.values == other.values

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, values={self.values!r})"


class Fields:
    def __init__(self, initial: Iterable[Field] | None = None):
        """Collection of header entries keyed by lowercased name.

        :param initial: Initial list of ``Field`` objects. Names must be unique once
            lowercased.
        """
        self.entries: OrderedDict[str, Field] = OrderedDict()
        for field in initial or ():
            key = self._normalize_field_name(field.name)
            if key in self.entries:
                raise ValueError(
                    "Field names of the initial list of fields must be unique. "
                    f"{key!r} appears more than once."
                )
            self.entries[key] = field

    @classmethod
    def from_tuples(cls, pairs: Iterable[tuple[str, str]]) -> Fields:
        """Build fields from ``(name, value)`` pairs, merging repeated names."""
        fields = cls()
        for name, value in pairs:
            if name in fields:
                fields[name].add(value)
            else:
                fields.set_field(Field(name=name, values=[value]))
        return fields

    def set_field(self, field: Field) -> None:
        """Set or replace the entry for ``field.name``."""
        self.entries[self._normalize_field_name(field.name)] = field

    def get(self, key: str, default: Field | None = None) -> Field | None:
        return self[key] if key in self else default

    def __getitem__(self, name: str) -> Field:
        return self.entries[self._normalize_field_name(name)]

    def to_dict(self) -> dict[str, list[str]]:
        """Lowercased names mapped to value lists, in insertion order."""
        return {key: list(field.values) for key, field in self.entries.items()}

    def _normalize_field_name(self, name: str) -> str:
        return name.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return False
        return self.entries == other.entries

    def __iter__(self) -> Iterator[Field]:
        yield from self.entries.values()

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Fields({list(self.entries.values())!r})"

    def __contains__(self, key: str) -> bool:
        return self._normalize_field_name(key) in self.entries


@dataclass(kw_only=True, frozen=True)
class URI:
    """Universal Resource Identifier, target location for an :py:class:`AWSRequest`."""

    scheme: str = "https"
    """For example ``http`` or ``https``."""

    username: str | None = None
    """Username part of the userinfo URI component."""

    password: str | None = None
    """Password part of the userinfo URI component."""

    host: str
    """The hostname, for example ``amazonaws.com``."""

    port: int | None = None
    """An explicit port number."""

    path: str | None = None
    """Decoded path component of the URI."""

    query: str | None = None
    """Raw query component of the URI, without the leading ``?``."""

    fragment: str | None = None
    """Part of the URI specification, but never transmitted or signed."""

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{username}:{password}@{host}:{port}``

        ``username``, ``password``, and ``port`` are only included if set. ``password``
        is ignored, unless ``username`` is also set.
        """
        return self._netloc

    # cached_property allows setting, so it sits behind a read-only property.
    @cached_property
    def _netloc(self) -> str:
        if self.username is not None:
            password = "" if self.password is None else f":{self.password}"
            userinfo = f"{self.username}{password}@"
        else:
            userinfo = ""
        return f"{userinfo}{self.authority}"

    @property
    def authority(self) -> str:
        """``host`` or ``host:port``, omitting the port when it is the scheme
        default.

        This is the value signed as the ``host`` header.
        """
        if self.port is None or DEFAULT_PORTS.get(self.scheme) == self.port:
            return self.host
        return f"{self.host}:{self.port}"

    def build(self) -> str:
        """Construct URI string representation.

        Returns a string of the form
        ``{scheme}://{username}:{password}@{host}:{port}{path}?{query}#{fragment}``
        """
        components = (
            self.scheme,
            self.netloc,
            self.path or "",
            "",  # params
            self.query,
            self.fragment,
        )
        return urlunparse(components)


class AWSRequest:
    def __init__(
        self,
        *,
        destination: URI,
        method: str,
        body: Body | None,
        fields: Fields,
        content_length: int | None = None,
    ):
        """A request to be signed.

        :param destination: Where the request is sent.
        :param method: The HTTP method.
        :param body: The payload. Byte strings have a known length; iterables and
            async iterables are treated as streams unless ``content_length`` is set.
        :param fields: The request headers.
        :param content_length: The payload length, if known ahead of reading it.
        """
        self.destination = destination
        self.method = method
        self.body = body
        self.fields = fields
        self.content_length = content_length

    @property
    def has_known_length(self) -> bool:
        """Whether the payload length is known without reading the body."""
        return (
            self.body is None
            or isinstance(self.body, bytes | bytearray)
            or self.content_length is not None
        )

    def __deepcopy__(self, memo: dict[int, object] | None = None) -> AWSRequest:
        if memo is None:
            memo = {}

        if id(self) in memo:
            return memo[id(self)]  # type: ignore

        # The destination is immutable and the body may be a one-shot iterator, so
        # both are shared rather than copied.
        new_instance = self.__class__(
            destination=self.destination,
            body=self.body,
            method=self.method,
            fields=deepcopy(self.fields, memo),
            content_length=self.content_length,
        )
        memo[id(self)] = new_instance
        return new_instance

    def __repr__(self) -> str:
        return (
            f"AWSRequest(method={self.method!r}, "
            f"destination={self.destination.build()!r}, fields={self.fields!r})"
        )

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Canonical request construction for the SigV4 algorithm.

The canonical request is the normalized form of an HTTP request that is hashed into
the string to sign. Both the client and the service build it independently, so every
byte of it is defined by the signing algorithm::

    <HTTPMethod>\\n
    <CanonicalURI>\\n
    <CanonicalQueryString>\\n
    <CanonicalHeaders>\\n
    <SignedHeaders>\\n
    <HashedPayload>
"""

import io
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final
from urllib.parse import quote, unquote_to_bytes

from ._http import URI, Field

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
)

_HEADER_WHITESPACE: Final = " \t\n\x0b\r\x0c"
_HEADER_WHITESPACE_RUN: Final = re.compile(f"[{re.escape(_HEADER_WHITESPACE)}]+")
_CONSECUTIVE_SLASHES: Final = re.compile("/{2,}")


@dataclass(frozen=True)
class CanonicalRequest:
    """A built canonical request and the header names it signs."""

    text: str
    signed_headers: tuple[str, ...]

    @property
    def encoded(self) -> bytes:
        """The UTF-8 bytes that are hashed into the string to sign."""
        return self.text.encode("utf-8")

    @property
    def signed_headers_value(self) -> str:
        """The ``SignedHeaders`` value, names joined by ``;``."""
        return ";".join(self.signed_headers)

    def __str__(self) -> str:
        return self.text


class CanonicalRequestBuilder:
    """Builds canonical requests.

    :param buffer: Scratch buffer the request is assembled in. It is cleared at the
        start of every build, so a builder must not be shared between concurrent
        callers. A fresh buffer is used when omitted.
    """

    def __init__(self, buffer: io.StringIO | None = None) -> None:
        self._buffer = buffer if buffer is not None else io.StringIO()

    def build(
        self,
        *,
        method: str,
        uri: URI,
        fields: Iterable[Field],
        payload_hash: str,
    ) -> CanonicalRequest:
        canonical_fields = self.canonical_headers(fields)
        signed_headers = tuple(canonical_fields)

        buffer = self._buffer
        buffer.seek(0)
        buffer.truncate()
        buffer.write(method.upper())
        buffer.write("\n")
        buffer.write(self.canonical_uri(uri.path))
        buffer.write("\n")
        buffer.write(self.canonical_query_string(uri.query))
        buffer.write("\n")
        for name, value in canonical_fields.items():
            buffer.write(f"{name}:{value}\n")
        buffer.write("\n")
        buffer.write(";".join(signed_headers))
        buffer.write("\n")
        buffer.write(payload_hash)
        return CanonicalRequest(text=buffer.getvalue(), signed_headers=signed_headers)

    def canonical_uri(self, path: str | None) -> str:
        """Normalize and percent-encode a decoded request path.

        Dot segments and repeated slashes are removed, and every character other
        than an unreserved character or ``/`` is percent-encoded as UTF-8.
        """
        if not path:
            return "/"
        if not path.startswith("/"):
            path = f"/{path}"
        normalized = _remove_dot_segments(path) or "/"
        return quote(normalized, safe="/")

    def canonical_query_string(self, query: str | None) -> str:
        """Sort and re-encode the parameters of a raw query string.

        Keys and values are decoded to raw octets before they are encoded again, so
        octets that were already percent-encoded are neither encoded twice nor
        altered. Parameters with the same
        key are kept and ordered by value.
        """
        if not query:
            return ""

        params: list[tuple[str, str]] = []
        for param in query.split("&"):
            if not param:
                continue
            key, _, value = param.partition("=")
            params.append((_uri_encode(key), _uri_encode(value)))
        return "&".join(f"{key}={value}" for key, value in sorted(params))

    def canonical_headers(self, fields: Iterable[Field]) -> dict[str, str]:
        """Lowercased signable header names mapped to their normalized values,
        sorted by name."""
        normalized: dict[str, str] = {}
        for field in fields:
            name = field.name.lower()
            if name in HEADERS_EXCLUDED_FROM_SIGNING:
                continue
            values = [_normalize_header_value(value) for value in field.values]
            if name in normalized:
                values.insert(0, normalized[name])
            normalized[name] = ",".join(values)
        return dict(sorted(normalized.items()))


def _uri_encode(value: str) -> str:
    return quote(unquote_to_bytes(value), safe="")


def _normalize_header_value(value: str) -> str:
    return _HEADER_WHITESPACE_RUN.sub(" ", value.strip(_HEADER_WHITESPACE))


def _remove_dot_segments(path: str) -> str:
    """Removes dot segments from a path per :rfc:`3986#section-5.2.4`, then
    collapses runs of slashes.

    :param path: The path to modify.
    :returns: The path with dot segments removed.
    """
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    return _CONSECUTIVE_SLASHES.sub("/", "/".join(output))

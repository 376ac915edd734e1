# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Runner for SigV4 conformance fixtures.

Each fixture is a directory holding three files:

``request.txt``
    The unsigned request in a minimal HTTP/1.1 message format::

        GET /path?query HTTP/1.1
        Host:example.amazonaws.com
        X-Amz-Date:20150830T123600Z

        optional body

    Header lines that start with whitespace continue the previous header and add
    another value to it.

``signed.txt``
    The expected signed request, in the same format.

``context.json``
    The credentials and signing properties::

        {
            "credentials": {
                "access_key_id": "AKIDEXAMPLE",
                "secret_access_key": "...",
                "token": "optional session token"
            },
            "properties": {
                "region": "us-east-1",
                "service": "service",
                "timestamp": "2015-08-30T12:36:00Z"
            }
        }
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Self
from urllib.parse import unquote

from ._http import URI, AWSRequest, Fields
from ._identity import AWSCredentialIdentity
from .clock import FixedClock
from .exceptions import UnsupportedRequestFormatError
from .signers import AsyncSigV4Signer, SigV4Signer, SigV4SigningProperties

REQUEST_FILE = "request.txt"
SIGNED_REQUEST_FILE = "signed.txt"
CONTEXT_FILE = "context.json"

_HTTP_VERSION = "HTTP/1.1"


def parse_request(raw: str, *, scheme: str = "https") -> AWSRequest:
    """Parse a request in the fixture message format.

    :param raw: The request text.
    :param scheme: The scheme of the built destination, which the message format
        does not carry.
    :raises UnsupportedRequestFormatError: If the request line is malformed, uses an
        HTTP version other than 1.1, or there is no ``Host`` header.
    """
    lines = [line.removesuffix("\r") for line in raw.split("\n")]
    # A final line terminator ends the last line, it isn't part of the body.
    if lines[-1] == "":
        lines.pop()
    try:
        blank = lines.index("")
    except ValueError:
        head, body = lines, []
    else:
        head, body = lines[:blank], lines[blank + 1 :]
    if not head:
        raise UnsupportedRequestFormatError("Request has no request line.")
    method, target = _parse_request_line(head[0])

    pairs: list[tuple[str, list[str]]] = []
    for line in head[1:]:
        if line[0] in " \t":
            if not pairs:
                raise UnsupportedRequestFormatError(
                    f"Header continuation line {line!r} does not follow a header."
                )
            pairs[-1][1].append(line.strip())
            continue
        name, sep, value = line.partition(":")
        if not sep:
            raise UnsupportedRequestFormatError(f"Malformed header line: {line!r}")
        pairs.append((name, [value]))

    fields = Fields.from_tuples(
        (name, value) for name, values in pairs for value in values
    )

    host = fields.get("host")
    if host is None or not host.values:
        raise UnsupportedRequestFormatError("Request has no Host header.")
    hostname, _, port = host.values[0].partition(":")

    path, _, query = target.partition("?")
    destination = URI(
        scheme=scheme,
        host=hostname,
        port=int(port) if port else None,
        path=unquote(path),
        query=query or None,
    )
    return AWSRequest(
        destination=destination,
        method=method,
        body="\n".join(body).encode("utf-8") or None,
        fields=fields,
    )


def _parse_request_line(line: str) -> tuple[str, str]:
    words = line.split(" ")
    if len(words) < 3:
        raise UnsupportedRequestFormatError(f"Malformed request line: {line!r}")
    if words[-1] != _HTTP_VERSION:
        raise UnsupportedRequestFormatError(
            f"Unsupported HTTP version {words[-1]!r}, "
            f"only {_HTTP_VERSION} is supported."
        )
    # Paths in the fixtures may contain unencoded spaces.
    return words[0], " ".join(words[1:-1])


@dataclass(kw_only=True, frozen=True)
class SigningContext:
    """The identity and signing properties a fixture is signed with."""

    identity: AWSCredentialIdentity
    properties: SigV4SigningProperties

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        credentials = data["credentials"]
        properties = data["properties"]
        return cls(
            identity=AWSCredentialIdentity(
                access_key_id=credentials["access_key_id"],
                secret_access_key=credentials["secret_access_key"],
                session_token=credentials.get("token"),
            ),
            properties=SigV4SigningProperties(
                region=properties["region"],
                signing_name=properties["service"],
                clock=FixedClock.from_isoformat(properties["timestamp"]),
            ),
        )

    @classmethod
    def load(cls, path: Path) -> Self:
        return cls.from_dict(json.loads(path.read_text(encoding="utf-8")))


def requests_match(expected: AWSRequest, actual: AWSRequest) -> bool:
    """Whether two requests have the same method, destination and header values.

    Header names are compared case-insensitively. Bodies are not compared.
    """
    return (
        expected.method == actual.method
        and expected.destination.build() == actual.destination.build()
        and expected.fields.to_dict() == actual.fields.to_dict()
    )


@dataclass(frozen=True)
class SigningTestResult:
    name: str
    expected: AWSRequest
    actual: AWSRequest

    @property
    def is_valid(self) -> bool:
        return requests_match(self.expected, self.actual)

    def unwrap(self) -> AWSRequest:
        """Get the signed request.

        :raises AssertionError: If it doesn't match the expected request.
        """
        if not self.is_valid:
            raise AssertionError(
                f"Signed request for {self.name!r} did not match.\n"
                f"Expected: {self.expected!r}\n"
                f"Actual:   {self.actual!r}"
            )
        return self.actual


@dataclass(kw_only=True, frozen=True)
class SigningTestCase:
    name: str
    request: AWSRequest
    expected: AWSRequest
    context: SigningContext

    @classmethod
    def from_directory(cls, directory: Path) -> Self:
        return cls(
            name=directory.name,
            request=parse_request(
                (directory / REQUEST_FILE).read_text(encoding="utf-8")
            ),
            expected=parse_request(
                (directory / SIGNED_REQUEST_FILE).read_text(encoding="utf-8")
            ),
            context=SigningContext.load(directory / CONTEXT_FILE),
        )

    def run(self, signer: SigV4Signer) -> SigningTestResult:
        actual = signer.sign(
            request=self.request,
            identity=self.context.identity,
            properties=self.context.properties,
        )
        return SigningTestResult(name=self.name, expected=self.expected, actual=actual)

    async def run_async(self, signer: AsyncSigV4Signer) -> SigningTestResult:
        actual = await signer.sign(
            request=self.request,
            identity=self.context.identity,
            properties=self.context.properties,
        )
        return SigningTestResult(name=self.name, expected=self.expected, actual=actual)


def load_test_cases(directory: Path) -> list[SigningTestCase]:
    """Load every fixture directory directly under ``directory``, sorted by name."""
    return [
        SigningTestCase.from_directory(path)
        for path in sorted(directory.iterdir())
        if path.is_dir()
    ]

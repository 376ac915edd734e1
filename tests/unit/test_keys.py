# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
from hashlib import sha256

from aws_sigv4 import SigningKeyDeriver
from aws_sigv4.keys import hmac_sha256

SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"


def test_derive_known_key() -> None:
    key = SigningKeyDeriver().derive(
        secret_access_key=SECRET_KEY,
        date_stamp="20120215",
        region="us-east-1",
        service="iam",
    )
    assert key.hex() == (
        "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"
    )


def test_derive_chains_hmacs() -> None:
    def step(key: bytes, value: str) -> bytes:
        return hmac.new(key, value.encode(), sha256).digest()

    expected = step(
        step(step(step(f"AWS4{SECRET_KEY}".encode(), "20150830"), "us-east-1"), "s3"),
        "aws4_request",
    )
    key = SigningKeyDeriver().derive(
        secret_access_key=SECRET_KEY,
        date_stamp="20150830",
        region="us-east-1",
        service="s3",
    )
    assert len(key) == 32
    assert key == expected


def test_derive_uses_injected_mac() -> None:
    calls: list[tuple[bytes, bytes]] = []

    def recording_mac(key: bytes, msg: bytes) -> bytes:
        calls.append((key, msg))
        return hmac_sha256(key, msg)

    SigningKeyDeriver(mac=recording_mac).derive(
        secret_access_key="secret",
        date_stamp="20150830",
        region="us-east-1",
        service="s3",
    )
    assert [msg for _, msg in calls] == [
        b"20150830",
        b"us-east-1",
        b"s3",
        b"aws4_request",
    ]
    assert calls[0][0] == b"AWS4secret"
    # Each step is keyed with the output of the one before.
    for previous, current in zip(calls, calls[1:], strict=False):
        assert current[0] == hmac_sha256(*previous)

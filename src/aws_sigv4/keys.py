# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
from collections.abc import Callable

type Mac = Callable[[bytes, bytes], bytes]
"""An HMAC-SHA256 function taking ``(key, message)`` and returning the digest."""

SCOPE_TERMINATOR = "aws4_request"


def hmac_sha256(key: bytes, msg: bytes) -> bytes:
    return hmac.digest(key, msg, "sha256")


class SigningKeyDeriver:
    """Derives the scope-bound SigV4 signing key from a secret access key.

    The key is computed through a chain of HMAC-SHA256 operations, each keyed with
    the output of the one before::

        kDate    = HMAC("AWS4" + <SecretAccessKey>, <YYYYMMDD>)
        kRegion  = HMAC(kDate, <aws-region>)
        kService = HMAC(kRegion, <aws-service>)
        kSigning = HMAC(kService, "aws4_request")
    """

    def __init__(self, mac: Mac = hmac_sha256) -> None:
        self._mac = mac

    def derive(
        self, *, secret_access_key: str, date_stamp: str, region: str, service: str
    ) -> bytes:
        k_date = self._sign(f"AWS4{secret_access_key}".encode(), date_stamp)
        k_region = self._sign(k_date, region)
        k_service = self._sign(k_region, service)
        return self._sign(k_service, SCOPE_TERMINATOR)

    def _sign(self, key: bytes, value: str) -> bytes:
        return self._mac(key, value.encode("utf-8"))

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS SigV4 provides stand-alone Signature Version 4 request signing with cached
signing keys and pooled scratch state, for use with any HTTP client."""

from __future__ import annotations

from ._http import URI, AWSRequest, Field, Fields
from ._identity import AWSCredentialIdentity
from ._io import AsyncBytesReader
from .cache import SigningKey, SigningKeyCache
from .canonical import CanonicalRequest, CanonicalRequestBuilder
from .clock import Clock, FixedClock, SystemClock
from .config import SigV4SignerConfig
from .keys import SigningKeyDeriver
from .signers import (
    AsyncSigV4Signer,
    SigV4Signer,
    SigV4SigningProperties,
)

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "AWSCredentialIdentity",
    "AWSRequest",
    "AsyncBytesReader",
    "AsyncSigV4Signer",
    "CanonicalRequest",
    "CanonicalRequestBuilder",
    "Clock",
    "Field",
    "Fields",
    "FixedClock",
    "SigV4Signer",
    "SigV4SignerConfig",
    "SigV4SigningProperties",
    "SigningKey",
    "SigningKeyCache",
    "SigningKeyDeriver",
    "SystemClock",
)

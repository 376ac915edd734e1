# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hashlib
import hmac
import io
import logging
from collections.abc import AsyncIterable, Iterable
from copy import deepcopy
from datetime import datetime
from functools import partial
from inspect import iscoroutinefunction
from typing import Final, Required, TypedDict

from ._http import AWSRequest, Field
from ._io import AsyncBytesReader
from ._pool import ResourcePool
from .cache import CacheKey, SigningKey, SigningKeyCache
from .canonical import (
    HEADERS_EXCLUDED_FROM_SIGNING,
    CanonicalRequest,
    CanonicalRequestBuilder,
)
from .clock import Clock, SystemClock, to_utc
from .config import DEFAULT_SCRATCH_BUFFER_SIZE, SigV4SignerConfig
from .exceptions import CryptoUnavailableError, MissingExpectedParameterException
from .interfaces.identity import AWSCredentialsIdentity
from .interfaces.io import AsyncSeekable, Seekable
from .keys import SCOPE_TERMINATOR, SigningKeyDeriver

__all__ = (
    "EMPTY_SHA256_HASH",
    "HEADERS_EXCLUDED_FROM_SIGNING",
    "SIGV4_TIMESTAMP_FORMAT",
    "AsyncSigV4Signer",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SigningResources",
)

logger: Final = logging.getLogger(__name__)

SIGNING_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
SIGV4_DATE_FORMAT: str = "%Y%m%d"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

_SYSTEM_CLOCK: Final = SystemClock()


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    """The region the request is scoped to, for example ``us-east-1``."""

    signing_name: Required[str]
    """The service signing name, for example ``s3``."""

    clock: Clock
    """Source of the signing time. The system clock is used when omitted."""


class SigningResources:
    """Scratch state for a single in-flight signing operation.

    Holds a string buffer for assembling the canonical request, a SHA-256 prototype
    that digests are copied from, and an HMAC-SHA256 function. Instances are pooled
    by the signer and must only be used by one call at a time.

    :param scratch_buffer_size: Size past which the string buffer is replaced on
        :py:meth:`reset` rather than cleared, so one oversized request does not pin
        a large buffer in the pool.
    :raises CryptoUnavailableError: If the runtime does not provide SHA-256 or
        HMAC-SHA256.
    """

    def __init__(self, *, scratch_buffer_size: int = DEFAULT_SCRATCH_BUFFER_SIZE):
        try:
            self._digest_prototype = hashlib.new("sha256")
            hmac.digest(b"", b"", "sha256")
        except ValueError as e:
            raise CryptoUnavailableError(
                "SHA-256 and HMAC-SHA256 are required for SigV4 signing but are not "
                "available in this runtime."
            ) from e
        self._scratch_buffer_size = scratch_buffer_size
        self.buffer = io.StringIO()
        self.canonical_builder = CanonicalRequestBuilder(self.buffer)
        self.key_deriver = SigningKeyDeriver(mac=self.hmac)

    def new_digest(self) -> "hashlib._Hash":
        """Get an empty SHA-256 digest."""
        return self._digest_prototype.copy()

    def hmac(self, key: bytes, msg: bytes) -> bytes:
        return hmac.digest(key, msg, "sha256")

    def reset(self) -> None:
        """Clear the scratch buffer, replacing it if it has grown too large."""
        if self.buffer.seek(0, io.SEEK_END) > self._scratch_buffer_size:
            self.buffer = io.StringIO()
            self.canonical_builder = CanonicalRequestBuilder(self.buffer)
        else:
            self.buffer.seek(0)
            self.buffer.truncate()


class _BaseSigV4Signer:
    def __init__(
        self,
        *,
        config: SigV4SignerConfig | None = None,
        cache: SigningKeyCache | None = None,
        pool: ResourcePool[SigningResources] | None = None,
    ):
        """Shared setup and signing steps for the sync and async signers.

        :param config: Sizes for the cache and resource pool built by the signer.
        :param cache: A signing key cache to use instead of a private one. Pass the
            same cache to several signers to share derived keys between them.
        :param pool: A resource pool to use instead of a private one.
        :raises CryptoUnavailableError: If the runtime cannot compute SHA-256 or
            HMAC-SHA256.
        """
        self._config = config if config is not None else SigV4SignerConfig()
        self._cache = (
            cache
            if cache is not None
            else SigningKeyCache(capacity=self._config.cache_capacity)
        )
        if pool is None:
            pool = ResourcePool(
                factory=partial(
                    SigningResources,
                    scratch_buffer_size=self._config.scratch_buffer_size,
                ),
                max_size=self._config.pool_size,
            )
        # Warm the pool with one instance, which also surfaces missing crypto
        # support at construction instead of on the first request.
        pool.release(pool.acquire())
        self._pool = pool

    @property
    def config(self) -> SigV4SignerConfig:
        return self._config

    @property
    def cache(self) -> SigningKeyCache:
        return self._cache

    def canonical_request(self, *, request: AWSRequest, payload_hash: str) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        The SigV4 specification defines the canonical request to be:
            <HTTPMethod>\\n
            <CanonicalURI>\\n
            <CanonicalQueryString>\\n
            <CanonicalHeaders>\\n
            <SignedHeaders>\\n
            <HashedPayload>

        :param request: A request that already carries every header to be signed,
            such as one returned by ``sign``.
        :param payload_hash: Hex encoded SHA-256 hash of the request body.
        """
        return self._build_canonical_request(
            builder=CanonicalRequestBuilder(),
            request=request,
            payload_hash=payload_hash,
        ).text

    def string_to_sign(
        self,
        *,
        canonical_request: str,
        request_time: datetime,
        properties: SigV4SigningProperties,
    ) -> str:
        """The string to sign is the second step of our signing algorithm which
        concatenates the formal identifier of our signing algorithm, the signing
        DateTime, the scope of our credentials, and a hash of our previously generated
        canonical request. This is another checkpoint that can be used to ensure we're
        constructing our signature as intended.

        The SigV4 specification defines the string to sign as:
            Algorithm \\n
            RequestDateTime \\n
            CredentialScope  \\n
            HashedCanonicalRequest

        :param canonical_request: String generated from the ``canonical_request``
            method.
        :param request_time: The signing time.
        :param properties: The region and signing name the request is scoped to.
        """
        region, signing_name = self._validate_properties(properties=properties)
        request_time = to_utc(request_time)
        return self._format_string_to_sign(
            timestamp=request_time.strftime(SIGV4_TIMESTAMP_FORMAT),
            scope=self._scope(
                request_time=request_time, region=region, signing_name=signing_name
            ),
            canonical_request_hash=hashlib.sha256(
                canonical_request.encode("utf-8")
            ).hexdigest(),
        )

    def generate_authorization_field(
        self, *, credential: str, signed_headers: str, signature: str
    ) -> Field:
        """Generate the ``Authorization`` field.

        :param credential: Credential scope string for generating the Authorization
            header. Defined as ``<access_key>/<date>/<region>/<service>/aws4_request``
        :param signed_headers: The signed header names joined by ``;``.
        :param signature: Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        auth_str = (
            f"{SIGNING_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        return Field(name="authorization", values=[auth_str])

    def _validate_properties(
        self, *, properties: SigV4SigningProperties
    ) -> tuple[str, str]:
        region = properties.get("region")
        if not region:
            raise MissingExpectedParameterException(
                "Cannot sign a request without a region in the signing properties. "
                f"Current value: {region!r}"
            )
        signing_name = properties.get("signing_name")
        if not signing_name:
            raise MissingExpectedParameterException(
                "Cannot sign a request without a signing_name in the signing "
                f"properties. Current value: {signing_name!r}"
            )
        return region, signing_name

    def _validate_identity(self, *, identity: AWSCredentialsIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, AWSCredentialsIdentity):  # pyright: ignore
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        elif identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _signing_time(self, *, properties: SigV4SigningProperties) -> datetime:
        clock = properties.get("clock", _SYSTEM_CLOCK)
        return to_utc(clock.now())

    def _generate_new_request(self, *, request: AWSRequest) -> AWSRequest:
        return deepcopy(request)

    def _hash_bytes(
        self, *, body: bytes | bytearray, resources: SigningResources
    ) -> str:
        digest = resources.new_digest()
        digest.update(body)
        return digest.hexdigest()

    def _apply_required_fields(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        timestamp: str,
        payload_hash: str | None,
    ) -> None:
        fields = request.fields
        fields.set_field(Field(name="host", values=[request.destination.authority]))
        fields.set_field(Field(name="x-amz-date", values=[timestamp]))
        # The content hash is only sent when the service can't derive the body
        # length on its own.
        if payload_hash is not None:
            fields.set_field(Field(name="x-amz-content-sha256", values=[payload_hash]))
        if identity.session_token is not None:
            fields.set_field(
                Field(name="x-amz-security-token", values=[identity.session_token])
            )

    def _build_canonical_request(
        self,
        *,
        builder: CanonicalRequestBuilder,
        request: AWSRequest,
        payload_hash: str,
    ) -> CanonicalRequest:
        return builder.build(
            method=request.method,
            uri=request.destination,
            fields=request.fields,
            payload_hash=payload_hash,
        )

    def _scope(self, *, request_time: datetime, region: str, signing_name: str) -> str:
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        date_stamp = request_time.strftime(SIGV4_DATE_FORMAT)
        return f"{date_stamp}/{region}/{signing_name}/{SCOPE_TERMINATOR}"

    def _format_string_to_sign(
        self, *, timestamp: str, scope: str, canonical_request_hash: str
    ) -> str:
        return f"{SIGNING_ALGORITHM}\n{timestamp}\n{scope}\n{canonical_request_hash}"

    def _signing_key(
        self,
        *,
        identity: AWSCredentialsIdentity,
        region: str,
        signing_name: str,
        request_time: datetime,
        scope: str,
        resources: SigningResources,
    ) -> bytes:
        cache_key = CacheKey(
            secret_access_key=identity.secret_access_key,
            region=region,
            service=signing_name,
        )
        cached = self._cache.get(cache_key)
        if cached is not None and cached.is_valid_for(request_time):
            return cached.key

        logger.debug("Signing key cache miss, deriving key for scope %s.", scope)
        key = resources.key_deriver.derive(
            secret_access_key=identity.secret_access_key,
            date_stamp=request_time.strftime(SIGV4_DATE_FORMAT),
            region=region,
            service=signing_name,
        )
        self._cache.put(cache_key, SigningKey.for_instant(key, request_time))
        return key

    def _finish_signing(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        region: str,
        signing_name: str,
        request_time: datetime,
        payload_hash: str,
        known_length: bool,
        resources: SigningResources,
    ) -> AWSRequest:
        """Apply the required fields to a request copy whose payload has been
        hashed, then compute and attach its signature."""
        timestamp = request_time.strftime(SIGV4_TIMESTAMP_FORMAT)
        self._apply_required_fields(
            request=request,
            identity=identity,
            timestamp=timestamp,
            payload_hash=None if known_length else payload_hash,
        )

        canonical_request = self._build_canonical_request(
            builder=resources.canonical_builder,
            request=request,
            payload_hash=payload_hash,
        )
        scope = self._scope(
            request_time=request_time, region=region, signing_name=signing_name
        )
        canonical_digest = resources.new_digest()
        canonical_digest.update(canonical_request.encoded)
        string_to_sign = self._format_string_to_sign(
            timestamp=timestamp,
            scope=scope,
            canonical_request_hash=canonical_digest.hexdigest(),
        )
        logger.debug("String to sign:\n%s", string_to_sign)

        signing_key = self._signing_key(
            identity=identity,
            region=region,
            signing_name=signing_name,
            request_time=request_time,
            scope=scope,
            resources=resources,
        )
        signature = resources.hmac(signing_key, string_to_sign.encode("utf-8")).hex()

        request.fields.set_field(
            self.generate_authorization_field(
                credential=f"{identity.access_key_id}/{scope}",
                signed_headers=canonical_request.signed_headers_value,
                signature=signature,
            )
        )
        return request


class SigV4Signer(_BaseSigV4Signer):
    """Request signer for applying the AWS Signature Version 4 algorithm to requests
    with synchronous bodies."""

    def sign(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        properties: SigV4SigningProperties,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        :param request: An AWSRequest to sign prior to sending to the service. Its
            body must be bytes or an ``Iterable[bytes]``.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        :param properties: SigV4SigningProperties naming the region and service the
            signature is scoped to.
        :returns: A signed copy of ``request``. The original's fields are not modified.
        """
        region, signing_name = self._validate_properties(properties=properties)
        self._validate_identity(identity=identity)
        request_time = self._signing_time(properties=properties)

        with self._pool.lease() as resources:
            resources.reset()
            new_request = self._generate_new_request(request=request)
            known_length = new_request.has_known_length
            payload_hash = self._compute_payload_hash(
                request=new_request, resources=resources
            )
            return self._finish_signing(
                request=new_request,
                identity=identity,
                region=region,
                signing_name=signing_name,
                request_time=request_time,
                payload_hash=payload_hash,
                known_length=known_length,
                resources=resources,
            )

    def _compute_payload_hash(
        self, *, request: AWSRequest, resources: SigningResources
    ) -> str:
        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, bytes | bytearray):
            return self._hash_bytes(body=body, resources=resources)

        if not isinstance(body, Iterable):
            raise TypeError(
                "An async body was attached to a synchronous signer. Please use "
                "AsyncSigV4Signer for async AWSRequests or ensure your body is "
                "of type Iterable[bytes]."
            )

        checksum = resources.new_digest()
        if isinstance(body, Seekable):
            position = body.tell()
            for chunk in body:
                checksum.update(chunk)
            body.seek(position)
        else:
            logger.debug("Buffering non-seekable request body to hash the payload.")
            buffer = io.BytesIO()
            for chunk in body:
                buffer.write(chunk)
                checksum.update(chunk)
            buffer.seek(0)
            request.body = buffer
        return checksum.hexdigest()


class AsyncSigV4Signer(_BaseSigV4Signer):
    """Request signer for applying the AWS Signature Version 4 algorithm to requests
    with asynchronous bodies."""

    async def sign(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        properties: SigV4SigningProperties,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        Reading the body is the only point at which this coroutine suspends. If the
        read fails or is cancelled, the error propagates and the supplied request is
        left as it was.

        :param request: An AWSRequest to sign prior to sending to the service. Its
            body must be bytes or an ``AsyncIterable[bytes]``.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        :param properties: SigV4SigningProperties naming the region and service the
            signature is scoped to.
        :returns: A signed copy of ``request``. The original's fields are not modified.
        """
        region, signing_name = self._validate_properties(properties=properties)
        self._validate_identity(identity=identity)
        request_time = self._signing_time(properties=properties)

        with self._pool.lease() as resources:
            resources.reset()
            new_request = self._generate_new_request(request=request)
            known_length = new_request.has_known_length
            payload_hash = await self._compute_payload_hash(
                request=new_request, resources=resources
            )
            return self._finish_signing(
                request=new_request,
                identity=identity,
                region=region,
                signing_name=signing_name,
                request_time=request_time,
                payload_hash=payload_hash,
                known_length=known_length,
                resources=resources,
            )

    async def _compute_payload_hash(
        self, *, request: AWSRequest, resources: SigningResources
    ) -> str:
        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, bytes | bytearray):
            return self._hash_bytes(body=body, resources=resources)

        if not isinstance(body, AsyncIterable):
            raise TypeError(
                "A sync body was attached to an asynchronous signer. Please use "
                "SigV4Signer for sync AWSRequests or ensure your body is "
                "of type AsyncIterable[bytes]."
            )

        checksum = resources.new_digest()
        if isinstance(body, AsyncSeekable) and iscoroutinefunction(body.seek):
            position = body.tell()
            async for chunk in body:
                checksum.update(chunk)
            await body.seek(position)
        else:
            logger.debug("Buffering non-seekable request body to hash the payload.")
            buffer = io.BytesIO()
            async for chunk in body:
                buffer.write(chunk)
                checksum.update(chunk)
            buffer.seek(0)
            request.body = AsyncBytesReader(buffer)
        return checksum.hexdigest()

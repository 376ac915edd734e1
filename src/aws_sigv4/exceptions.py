# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class BaseAWSSDKException(Exception):
    """Top-level exception to capture SDK-related errors."""


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """Some APIs require specific signing properties to be present."""


class CryptoUnavailableError(BaseAWSSDKException, RuntimeError):
    """The runtime is missing a hash or MAC algorithm required for signing."""


class UnsupportedRequestFormatError(BaseAWSSDKException, ValueError):
    """A raw request could not be parsed into an :py:class:`AWSRequest`."""

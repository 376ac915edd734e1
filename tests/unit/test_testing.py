# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import json
import pathlib
from datetime import UTC, datetime

import pytest
from aws_sigv4 import URI, AWSRequest, Field, Fields, SigV4Signer
from aws_sigv4.exceptions import UnsupportedRequestFormatError
from aws_sigv4.testing import (
    SigningContext,
    SigningTestCase,
    SigningTestResult,
    load_test_cases,
    parse_request,
    requests_match,
)

CONTEXT = {
    "credentials": {
        "access_key_id": "AKIDEXAMPLE",
        "secret_access_key": "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        "token": "SESSION",
    },
    "properties": {
        "region": "us-east-1",
        "service": "service",
        "timestamp": "2015-08-30T12:36:00Z",
    },
}


def test_parse_request() -> None:
    request = parse_request(
        "POST /a b/c?x=1&y=2 HTTP/1.1\n"
        "Host:example.amazonaws.com:8443\n"
        "My-Header1:value1\n"
        "  value2\n"
        "My-Header1:value3\n"
        "\n"
        "body text"
    )
    assert request.method == "POST"
    assert request.destination == URI(
        host="example.amazonaws.com", port=8443, path="/a b/c", query="x=1&y=2"
    )
    assert request.fields.to_dict() == {
        "host": ["example.amazonaws.com:8443"],
        "my-header1": ["value1", "value2", "value3"],
    }
    assert request.body == b"body text"


@pytest.mark.parametrize(
    "raw,body",
    [
        ("POST / HTTP/1.1\nHost:example.com\n\nParam1=value1\n", b"Param1=value1"),
        (
            "POST / HTTP/1.1\r\nHost:example.com\r\n\r\nline1\r\nline2\r\n",
            b"line1\nline2",
        ),
        ("POST / HTTP/1.1\nHost:example.com\n\nParam1=value1\n\n", b"Param1=value1\n"),
        ("POST / HTTP/1.1\nHost:example.com\n\n", None),
    ],
)
def test_parse_request_body_drops_final_line_terminator(
    raw: str, body: bytes | None
) -> None:
    assert parse_request(raw).body == body


def test_parse_request_without_body() -> None:
    request = parse_request("GET /%E1%88%B4 HTTP/1.1\r\nHost:example.com\r\n")
    assert request.body is None
    assert request.destination.path == "/ሴ"
    assert request.destination.query is None


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "GET / HTTP/1.0\nHost:example.com\n",
        "GET / HTTP/2\nHost:example.com\n",
        "GET /\nHost:example.com\n",
        "GET\nHost:example.com\n",
        "GET / HTTP/1.1\nX-Header:value\n",
        "GET / HTTP/1.1\nHost:example.com\nno colon here\n",
        "GET / HTTP/1.1\n continuation\nHost:example.com\n",
    ],
)
def test_parse_request_rejects_malformed_requests(raw: str) -> None:
    with pytest.raises(UnsupportedRequestFormatError):
        parse_request(raw)


def test_signing_context_from_dict() -> None:
    context = SigningContext.from_dict(CONTEXT)
    assert context.identity.access_key_id == "AKIDEXAMPLE"
    assert context.identity.session_token == "SESSION"
    assert context.properties["region"] == "us-east-1"
    assert context.properties["signing_name"] == "service"
    assert context.properties["clock"].now() == datetime(
        2015, 8, 30, 12, 36, tzinfo=UTC
    )


def test_requests_match_ignores_header_name_case() -> None:
    first = AWSRequest(
        destination=URI(host="example.com"),
        method="GET",
        body=None,
        fields=Fields([Field(name="X-Amz-Date", values=["20150830T123600Z"])]),
    )
    second = AWSRequest(
        destination=URI(host="example.com"),
        method="GET",
        body=b"ignored",
        fields=Fields([Field(name="x-amz-date", values=["20150830T123600Z"])]),
    )
    assert requests_match(first, second)

    second.fields["x-amz-date"].values = ["20150831T000000Z"]
    assert not requests_match(first, second)


def test_result_unwrap_raises_on_mismatch() -> None:
    expected = parse_request("GET / HTTP/1.1\nHost:example.com\n")
    actual = parse_request("GET /other HTTP/1.1\nHost:example.com\n")
    result = SigningTestResult(name="mismatch", expected=expected, actual=actual)
    assert not result.is_valid
    with pytest.raises(AssertionError, match="mismatch"):
        result.unwrap()

    assert SigningTestResult(name="ok", expected=expected, actual=expected).unwrap()


def write_case(directory: pathlib.Path, signed: str) -> None:
    directory.mkdir()
    (directory / "request.txt").write_text(
        "GET / HTTP/1.1\nHost:example.amazonaws.com\n", encoding="utf-8"
    )
    (directory / "signed.txt").write_text(signed, encoding="utf-8")
    (directory / "context.json").write_text(json.dumps(CONTEXT), encoding="utf-8")


def test_load_and_run_test_cases(tmp_path: pathlib.Path) -> None:
    write_case(tmp_path / "b-unsigned", "GET / HTTP/1.1\nHost:example.amazonaws.com\n")
    write_case(tmp_path / "a-unsigned", "GET / HTTP/1.1\nHost:example.amazonaws.com\n")
    (tmp_path / "README").write_text("not a case", encoding="utf-8")

    cases = load_test_cases(tmp_path)
    assert [case.name for case in cases] == ["a-unsigned", "b-unsigned"]
    assert isinstance(cases[0], SigningTestCase)

    result = cases[0].run(SigV4Signer())
    # The expected request carries no signature, so the signed one can't match.
    assert not result.is_valid
    assert result.actual.fields["x-amz-security-token"].values == ["SESSION"]
    assert "authorization" in result.actual.fields

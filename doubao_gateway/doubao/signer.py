"""HMAC-chained request signing for the object-storage control plane.

The Apply and Commit calls of the upload pipeline are authorized with an
AWS Signature Version 4 compatible scheme, keyed by the short-lived STS
credential of one upload:

1. canonical query: RFC 3986 encoded keys and values, sorted by key
2. canonical headers: ``host``, ``x-amz-date``, ``x-amz-security-token``
   (when a session token exists) and ``x-amz-content-sha256`` (when content
   hash signing is requested), sorted by name
3. canonical request, string-to-sign and the ``date -> region -> service ->
   aws4_request`` signing key chain
4. ``Authorization: AWS4-HMAC-SHA256 Credential=..., SignedHeaders=...,
   Signature=...``

The URL actually sent must use :attr:`SignedRequest.canonical_query`
verbatim; any encoding difference between the sent query and the signed one
is rejected upstream. Timestamps are single-use, so every call is signed
afresh.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Union
from urllib.parse import quote

from ..base.models import UploadCredential

ALGORITHM = "AWS4-HMAC-SHA256"
DEFAULT_REGION = "cn-north-1"
DEFAULT_SERVICE = "imagex"

EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()


def sha256_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def rfc3986_encode(value: str) -> str:
    """Percent-encode everything except the RFC 3986 unreserved characters."""
    return quote(str(value), safe="-_.~")


def canonical_query(params: Mapping[str, object]) -> str:
    """Encode, sort by key and ``&``-join query parameters."""
    return "&".join(
        f"{rfc3986_encode(k)}={rfc3986_encode('' if params[k] is None else params[k])}"
        for k in sorted(params)
    )


def amz_dates(now: Optional[datetime] = None) -> tuple[str, str]:
    """Return ``(YYYYMMDDTHHMMSSZ, YYYYMMDD)`` for ``now`` (UTC, second granularity)."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%SZ"), moment.strftime("%Y%m%d")


def signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    k_date = _hmac(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


@dataclass(frozen=True)
class SignedRequest:
    """Result of signing one call.

    Attributes:
        authorization: Value of the ``Authorization`` header.
        amz_date: The ``x-amz-date`` timestamp that was signed.
        payload_hash: Hex SHA-256 of the body (of ``""`` for GET).
        canonical_query: Exact query string to send.
        session_token: STS session token (empty when absent).
        content_sha256_signed: Whether ``x-amz-content-sha256`` was signed.
    """

    authorization: str
    amz_date: str
    payload_hash: str
    canonical_query: str
    session_token: str = ""
    content_sha256_signed: bool = False

    def headers(self) -> Dict[str, str]:
        """Headers to send alongside the signature."""
        out = {"authorization": self.authorization, "x-amz-date": self.amz_date}
        if self.session_token:
            out["x-amz-security-token"] = self.session_token
        if self.content_sha256_signed:
            out["x-amz-content-sha256"] = self.payload_hash
        return out

    def url(self, host: str, path: str = "/") -> str:
        return f"https://{host}{path}?{self.canonical_query}"


def sign_request(
    method: str,
    host: str,
    path: str,
    query: Mapping[str, object],
    credential: UploadCredential,
    *,
    payload_hash: Optional[str] = None,
    sign_content_sha256: bool = False,
    region: str = DEFAULT_REGION,
    service: str = DEFAULT_SERVICE,
    now: Optional[datetime] = None,
) -> SignedRequest:
    """Sign one call to the control plane.

    Parameters:
        method: HTTP method (``GET`` for Apply, ``POST`` for Commit).
        host: Control plane host (the credential's upload host).
        path: Request path, usually ``/``.
        query: Query parameters; values are stringified.
        credential: STS credential of the current upload.
        payload_hash: Hex SHA-256 of the body; defaults to the empty-body hash.
        sign_content_sha256: Include ``x-amz-content-sha256`` in the signed headers.
        now: Signing time (tests pass a fixed value).
    """
    amz_date, date_stamp = amz_dates(now)
    query_string = canonical_query(query)
    body_hash = payload_hash or EMPTY_PAYLOAD_HASH

    signed: Dict[str, str] = {"host": host, "x-amz-date": amz_date}
    if credential.session_token:
        signed["x-amz-security-token"] = credential.session_token
    if sign_content_sha256:
        signed["x-amz-content-sha256"] = body_hash
    names = sorted(signed)
    canonical_headers = "".join(f"{name}:{signed[name]}\n" for name in names)
    signed_headers = ";".join(names)

    canonical_request = "\n".join(
        [method.upper(), path, query_string, canonical_headers, signed_headers, body_hash]
    )
    scope = f"{date_stamp}/{region}/{service}/aws4_request"
    string_to_sign = "\n".join([ALGORITHM, amz_date, scope, sha256_hex(canonical_request)])
    signature = hmac.new(
        signing_key(credential.secret_key, date_stamp, region, service),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={credential.access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    return SignedRequest(
        authorization=authorization,
        amz_date=amz_date,
        payload_hash=body_hash,
        canonical_query=query_string,
        session_token=credential.session_token,
        content_sha256_signed=sign_content_sha256,
    )


__all__ = [
    "ALGORITHM",
    "EMPTY_PAYLOAD_HASH",
    "SignedRequest",
    "sign_request",
    "canonical_query",
    "rfc3986_encode",
    "sha256_hex",
    "signing_key",
    "amz_dates",
]

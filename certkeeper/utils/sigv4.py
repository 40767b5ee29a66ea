#!/usr/bin/env python3
#
# certkeeper/utils/sigv4.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""AWS Signature Version 4 request signing (used for the Route53 API).

Pure and deterministic: given the same inputs and timestamp, the produced
headers are byte-identical, which makes the signer verifiable against the
published AWS SigV4 test-suite vectors.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qsl, quote, urlsplit

ALGORITHM = "AWS4-HMAC-SHA256"
DEFAULT_SERVICE = "route53"


def _sha256_hex(data: bytes) -> str:
	return hashlib.sha256(data).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
	return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
	"""HMAC chain: secret -> date -> region -> service -> aws4_request."""
	k_date = _hmac(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
	k_region = _hmac(k_date, region)
	k_service = _hmac(k_region, service)
	return _hmac(k_service, "aws4_request")


def _canonical_query(query: str) -> str:
	"""Sort query parameters and apply RFC 3986 encoding."""
	if not query:
		return ""
	pairs = parse_qsl(query, keep_blank_values=True)
	encoded = [(quote(k, safe="-_.~"), quote(v, safe="-_.~")) for k, v in pairs]
	return "&".join(f"{k}={v}" for k, v in sorted(encoded))


def sign_request(
	method: str,
	url: str,
	*,
	access_key: str,
	secret_key: str,
	region: str,
	service: str = DEFAULT_SERVICE,
	body: Optional[str] = None,
	content_type: str = "application/xml",
	now: Optional[datetime] = None,
) -> dict[str, str]:
	"""Compute the headers AWS requires to accept a request.

	Returns ``Host``, ``X-Amz-Date``, ``Content-Type`` (only when a body is
	present) and ``Authorization``.

	Raises:
		ValueError: on empty region/service/credentials (programming error)
	"""
	if not region or not service:
		raise ValueError("region and service must be non-empty")
	if not access_key or not secret_key:
		raise ValueError("access_key and secret_key must be non-empty")

	now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
	amz_date = now.strftime("%Y%m%dT%H%M%SZ")
	date_stamp = amz_date[:8]

	parts = urlsplit(url)
	headers = {
		"Host": parts.netloc,
		"X-Amz-Date": amz_date,
	}
	if body:
		headers["Content-Type"] = content_type

	lowered = sorted((k.lower(), " ".join(v.strip().split())) for k, v in headers.items())
	canonical_headers = "".join(f"{k}:{v}\n" for k, v in lowered)
	signed_headers = ";".join(k for k, _ in lowered)
	payload_hash = _sha256_hex((body or "").encode("utf-8"))

	canonical_request = "\n".join([
		method.upper(),
		parts.path or "/",
		_canonical_query(parts.query),
		canonical_headers,
		signed_headers,
		payload_hash,
	])

	credential_scope = f"{date_stamp}/{region}/{service}/aws4_request"
	string_to_sign = "\n".join([
		ALGORITHM,
		amz_date,
		credential_scope,
		_sha256_hex(canonical_request.encode("utf-8")),
	])

	signing_key = derive_signing_key(secret_key, date_stamp, region, service)
	signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

	headers["Authorization"] = (
		f"{ALGORITHM} Credential={access_key}/{credential_scope}, "
		f"SignedHeaders={signed_headers}, Signature={signature}"
	)
	return headers

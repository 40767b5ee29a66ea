#!/usr/bin/env python3
#
# certkeeper/acme/client.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Lightweight async ACME v2 (RFC 8555) client.

The client drives a whole order through caller-supplied callbacks:
``fulfill`` publishes a challenge response, ``cleanup`` withdraws it and
always runs once ``fulfill`` has been attempted.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.x509.oid import NameOID

from ..errors import ProtocolError
from .providers import EabCredentials

_log = logging.getLogger(__name__)

HTTP_TIMEOUT = 30.0
_POLL_ATTEMPTS = 30
_POLL_DELAY = 2.0


@dataclass(frozen=True)
class AcmeChallenge:
	"""One challenge offered inside an authorization."""
	type: str
	url: str
	token: str
	identifier: str


ChallengeCallback = Callable[[AcmeChallenge, str], Awaitable[None]]


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------

def b64url(data: bytes) -> str:
	"""Base64url encode without padding."""
	return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
	return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def account_jwk(key: ec.EllipticCurvePrivateKey) -> dict:
	"""JWK representation of a P-256 account key."""
	numbers = key.public_key().public_numbers()
	return {
		"kty": "EC",
		"crv": "P-256",
		"x": b64url(numbers.x.to_bytes(32, "big")),
		"y": b64url(numbers.y.to_bytes(32, "big")),
	}


def jwk_thumbprint(jwk: dict) -> str:
	"""RFC 7638 thumbprint: SHA-256 over the canonical required members."""
	if jwk.get("kty") == "EC":
		canonical = {"crv": jwk["crv"], "kty": "EC", "x": jwk["x"], "y": jwk["y"]}
	elif jwk.get("kty") == "RSA":
		canonical = {"e": jwk["e"], "kty": "RSA", "n": jwk["n"]}
	else:
		raise ValueError(f"Unsupported key type: {jwk.get('kty')}")
	canonical_json = json.dumps(canonical, separators=(",", ":"), sort_keys=True)
	return b64url(hashlib.sha256(canonical_json.encode("utf-8")).digest())


def key_authorization(token: str, key: ec.EllipticCurvePrivateKey) -> str:
	return f"{token}.{jwk_thumbprint(account_jwk(key))}"


def dns01_txt_value(key_auth: str) -> str:
	"""TXT record content for DNS-01: base64url(SHA-256(key authorization))."""
	return b64url(hashlib.sha256(key_auth.encode("utf-8")).digest())


def eab_jws(eab: EabCredentials, jwk: dict, url: str) -> dict:
	"""External Account Binding inner JWS (HS256 over the account JWK)."""
	protected = b64url(json.dumps({"alg": "HS256", "kid": eab.kid, "url": url}).encode("utf-8"))
	payload = b64url(json.dumps(jwk).encode("utf-8"))
	mac = hmac.new(b64url_decode(eab.hmac_key), f"{protected}.{payload}".encode("ascii"), hashlib.sha256)
	return {"protected": protected, "payload": payload, "signature": b64url(mac.digest())}


def parse_acme_error(resp: httpx.Response) -> str:
	"""Extract ``detail (type)`` from an RFC 7807 problem document."""
	try:
		error = resp.json()
		detail = error.get("detail", "")
		error_type = error.get("type", "")
		if detail:
			return f"{detail} ({error_type})" if error_type else detail
	except (ValueError, AttributeError):
		pass
	return resp.text or f"HTTP {resp.status_code}"


def _json_object(resp: httpx.Response, what: str) -> dict:
	"""Decode a JSON object body; anything else is a ProtocolError."""
	try:
		body = resp.json()
	except ValueError as exc:
		raise ProtocolError(f"Invalid JSON in {what} response from {resp.request.url}") from exc
	if not isinstance(body, dict):
		raise ProtocolError(f"Unexpected {what} response from {resp.request.url}")
	return body


def _require(body: dict, key: str, what: str) -> str:
	value = body.get(key)
	if not isinstance(value, str) or not value:
		raise ProtocolError(f"ACME {what} has no '{key}' URL")
	return value


def _csr_identifiers(csr_der: bytes) -> list[str]:
	csr = x509.load_der_x509_csr(csr_der)
	try:
		san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
		names = san.value.get_values_for_type(x509.DNSName)
	except x509.ExtensionNotFound:
		names = []
	if not names:
		names = [a.value for a in csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]
	return list(dict.fromkeys(str(n) for n in names))


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class AcmeClient:
	"""ACME v2 client bound to one directory and one account key."""

	def __init__(
		self,
		directory_url: str,
		account_key: ec.EllipticCurvePrivateKey,
		*,
		http_client: Optional[httpx.AsyncClient] = None,
		poll_attempts: int = _POLL_ATTEMPTS,
		poll_delay: float = _POLL_DELAY,
	) -> None:
		self.directory_url = directory_url
		self.account_key = account_key
		self.account_url: Optional[str] = None
		self.directory: dict = {}
		self._nonce: Optional[str] = None
		self._http_client = http_client
		self._owns_client = http_client is None
		self._poll_attempts = poll_attempts
		self._poll_delay = poll_delay

	async def __aenter__(self) -> "AcmeClient":
		if self._http_client is None:
			self._http_client = httpx.AsyncClient(timeout=HTTP_TIMEOUT)
		return self

	async def __aexit__(self, *args) -> None:
		if self._owns_client and self._http_client is not None:
			await self._http_client.aclose()
			self._http_client = None

	@property
	def http(self) -> httpx.AsyncClient:
		if self._http_client is None:
			raise RuntimeError("HTTP client not initialized")
		return self._http_client

	# -- transport ---------------------------------------------------------

	async def _fetch_directory(self) -> None:
		if self.directory:
			return
		try:
			resp = await self.http.get(self.directory_url)
		except httpx.HTTPError as exc:
			raise ProtocolError(f"Cannot reach ACME directory {self.directory_url}: {exc}") from exc
		if resp.status_code != 200:
			raise ProtocolError(f"ACME directory returned {resp.status_code}: {parse_acme_error(resp)}")
		self.directory = _json_object(resp, "directory")

	async def _get_nonce(self) -> str:
		if self._nonce:
			nonce, self._nonce = self._nonce, None
			return nonce
		try:
			resp = await self.http.head(_require(self.directory, "newNonce", "directory"))
		except httpx.HTTPError as exc:
			raise ProtocolError(f"Failed to obtain ACME nonce: {exc}") from exc
		nonce = resp.headers.get("Replay-Nonce")
		if not nonce:
			raise ProtocolError("Failed to obtain ACME nonce")
		return nonce

	def _sign(self, data: bytes) -> bytes:
		"""ES256: raw r || s, 32 bytes each."""
		sig_der = self.account_key.sign(data, ec.ECDSA(hashes.SHA256()))
		r, s = decode_dss_signature(sig_der)
		return r.to_bytes(32, "big") + s.to_bytes(32, "big")

	async def _post(self, url: str, payload: Optional[dict], *, accept: Optional[str] = None) -> httpx.Response:
		"""Signed JWS POST (``payload=None`` is POST-as-GET); retries once on badNonce."""
		for attempt in range(2):
			protected: dict = {"alg": "ES256", "nonce": await self._get_nonce(), "url": url}
			if self.account_url:
				protected["kid"] = self.account_url
			else:
				protected["jwk"] = account_jwk(self.account_key)

			protected_b64 = b64url(json.dumps(protected).encode("utf-8"))
			payload_b64 = "" if payload is None else b64url(json.dumps(payload).encode("utf-8"))
			signature = self._sign(f"{protected_b64}.{payload_b64}".encode("ascii"))

			headers = {"Content-Type": "application/jose+json"}
			if accept:
				headers["Accept"] = accept
			try:
				resp = await self.http.post(
					url,
					json={"protected": protected_b64, "payload": payload_b64, "signature": b64url(signature)},
					headers=headers,
				)
			except httpx.HTTPError as exc:
				raise ProtocolError(f"ACME request to {url} failed: {exc}") from exc

			if "Replay-Nonce" in resp.headers:
				self._nonce = resp.headers["Replay-Nonce"]

			if resp.status_code == 400 and attempt == 0 and "badNonce" in resp.text:
				_log.debug("ACME badNonce on %s, retrying", url)
				continue
			return resp
		return resp

	async def _poll(self, url: str, done: set[str], what: str) -> dict:
		"""POST-as-GET ``url`` until its status is in ``done``; fail on invalid."""
		for _ in range(self._poll_attempts):
			resp = await self._post(url, None)
			if resp.status_code != 200:
				raise ProtocolError(f"Failed to poll {what}: {parse_acme_error(resp)}")
			body = _json_object(resp, what)
			status = body.get("status")
			if status in done:
				return body
			if status in ("invalid", "expired", "revoked", "deactivated"):
				raise ProtocolError(f"{what.capitalize()} failed: {status}{_challenge_error(body)}")
			await asyncio.sleep(self._poll_delay)
		raise ProtocolError(f"Timeout waiting for {what}")

	# -- public API --------------------------------------------------------

	async def create_account(self, contact_email: str, eab: Optional[EabCredentials] = None) -> str:
		"""Register a new account or fetch the existing one for this key."""
		await self._fetch_directory()
		new_account = _require(self.directory, "newAccount", "directory")
		payload: dict = {
			"termsOfServiceAgreed": True,
			"contact": [f"mailto:{contact_email}"],
		}
		if eab is not None:
			payload["externalAccountBinding"] = eab_jws(eab, account_jwk(self.account_key), new_account)

		resp = await self._post(new_account, payload)
		if resp.status_code not in (200, 201):
			raise ProtocolError(f"Failed to register account: {parse_acme_error(resp)}")
		self.account_url = resp.headers.get("Location")
		if not self.account_url:
			raise ProtocolError("No account URL in response")
		_log.info(
			"ACME %s account %s",
			"registered" if resp.status_code == 201 else "reusing",
			self.account_url,
		)
		return self.account_url

	def create_csr(self, common_name: str) -> tuple[str, bytes]:
		"""Fresh RSA-2048 key and DER CSR (CN + SAN) for ``common_name``."""
		domain_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
		csr = (
			x509.CertificateSigningRequestBuilder()
			.subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
			.add_extension(x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False)
			.sign(domain_key, hashes.SHA256())
		)
		key_pem = domain_key.private_bytes(
			encoding=serialization.Encoding.PEM,
			format=serialization.PrivateFormat.PKCS8,
			encryption_algorithm=serialization.NoEncryption(),
		).decode("ascii")
		return key_pem, csr.public_bytes(serialization.Encoding.DER)

	async def run_order(
		self,
		csr: bytes,
		fulfill: ChallengeCallback,
		cleanup: ChallengeCallback,
		challenge_priority: Sequence[str],
	) -> str:
		"""Order, authorize, finalize and download; returns the PEM chain."""
		if not self.account_url:
			raise ProtocolError("Account not registered")
		identifiers = _csr_identifiers(csr)
		if not identifiers:
			raise ProtocolError("CSR carries no DNS identifiers")

		resp = await self._post(
			_require(self.directory, "newOrder", "directory"),
			{"identifiers": [{"type": "dns", "value": name} for name in identifiers]},
		)
		if resp.status_code not in (200, 201):
			raise ProtocolError(f"Failed to create order: {parse_acme_error(resp)}")
		order_url = resp.headers.get("Location")
		order = _json_object(resp, "order")
		if not order_url:
			raise ProtocolError("No order URL in response")
		_log.info("ACME created order %s for %s", order_url, ",".join(identifiers))

		for authz_url in order.get("authorizations") or []:
			await self._authorize(authz_url, fulfill, cleanup, challenge_priority)

		order = await self._poll(order_url, {"ready", "valid"}, "order")
		if order.get("status") == "ready":
			resp = await self._post(_require(order, "finalize", "order"), {"csr": b64url(csr)})
			if resp.status_code not in (200, 201):
				raise ProtocolError(f"Failed to finalize order: {parse_acme_error(resp)}")
			order = _json_object(resp, "finalize")
			if order.get("status") != "valid":
				order = await self._poll(order_url, {"valid"}, "certificate issuance")

		cert_url = order.get("certificate")
		if not cert_url:
			raise ProtocolError("No certificate URL in order")
		cert_resp = await self._post(cert_url, None, accept="application/pem-certificate-chain")
		if cert_resp.status_code != 200:
			raise ProtocolError(f"Failed to download certificate: {parse_acme_error(cert_resp)}")
		return cert_resp.text

	async def _authorize(
		self,
		authz_url: str,
		fulfill: ChallengeCallback,
		cleanup: ChallengeCallback,
		challenge_priority: Sequence[str],
	) -> None:
		resp = await self._post(authz_url, None)
		if resp.status_code != 200:
			raise ProtocolError(f"Failed to get authorization: {parse_acme_error(resp)}")
		authz = _json_object(resp, "authorization")
		identifier = authz.get("identifier", {}).get("value", "")
		if authz.get("status") == "valid":
			_log.debug("ACME authorization for %s already valid", identifier)
			return

		challenge = select_challenge(authz, challenge_priority)
		key_auth = key_authorization(challenge.token, self.account_key)
		try:
			await fulfill(challenge, key_auth)
			resp = await self._post(challenge.url, {})
			if resp.status_code not in (200, 202):
				raise ProtocolError(f"Failed to respond to challenge: {parse_acme_error(resp)}")
			await self._poll(authz_url, {"valid"}, f"authorization for {identifier}")
		finally:
			try:
				await cleanup(challenge, key_auth)
			except Exception as exc:
				_log.warning("ACME challenge cleanup failed for %s: %s", identifier, exc)


def select_challenge(authz: dict, challenge_priority: Sequence[str]) -> AcmeChallenge:
	"""First offered challenge whose type appears in ``challenge_priority``.

	No fallback to other types: a mismatch is a ProtocolError.
	"""
	identifier = authz.get("identifier", {}).get("value", "")
	offered = {c.get("type"): c for c in authz.get("challenges") or []}
	for wanted in challenge_priority:
		c = offered.get(wanted)
		if c is not None:
			if not c.get("url") or not c.get("token"):
				raise ProtocolError(f"Malformed {wanted} challenge for {identifier}")
			return AcmeChallenge(type=wanted, url=c["url"], token=c["token"], identifier=identifier)
	raise ProtocolError(
		f"No acceptable challenge for {identifier} (wanted {', '.join(challenge_priority)}; "
		f"offered {', '.join(sorted(t for t in offered if t)) or 'none'})"
	)


def _challenge_error(body: dict) -> str:
	for c in body.get("challenges") or []:
		err = c.get("error")
		if err and err.get("detail"):
			return f" - {err['detail']}"
	return ""

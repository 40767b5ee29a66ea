#!/usr/bin/env python3
#
# certkeeper/dns_providers/base.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Common capability surface for DNS-01 providers."""

from __future__ import annotations

import abc
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from ..errors import ProviderError

_log = logging.getLogger(__name__)

# Timeout for a single provider API call (seconds)
HTTP_TIMEOUT = 30.0

# TTL used for challenge TXT records
CHALLENGE_TTL = 120


@dataclass(frozen=True)
class DnsChallenge:
	"""A TXT record that proves control of ``domain``."""
	domain: str
	record_name: str   # e.g. "_acme-challenge.example.com"
	record_value: str  # base64url SHA-256 of the key authorization


def root_domain(domain: str) -> str:
	"""Return the zone that owns ``domain`` (its last two labels).

	Multi-label public suffixes such as ``co.uk`` are not special-cased:
	``shop.example.co.uk`` maps to ``co.uk``.
	"""
	labels = [label for label in domain.strip().rstrip(".").lower().split(".") if label]
	return ".".join(labels[-2:])


def relative_name(record_name: str, domain: str) -> str:
	"""Strip the zone suffix from a fully-qualified record name.

	``_acme-challenge.www.example.com`` -> ``_acme-challenge.www``.
	The zone apex itself is returned as ``@``.
	"""
	zone = root_domain(domain)
	name = record_name.rstrip(".").lower()
	if name == zone:
		return "@"
	suffix = "." + zone
	if name.endswith(suffix):
		return name[: -len(suffix)]
	return name


def _error_text(resp: httpx.Response) -> str:
	"""Best-effort extraction of a provider error message."""
	text = resp.text.strip()
	return text[:500] if text else resp.reason_phrase


class DnsProvider(abc.ABC):
	"""Create/delete TXT records for DNS-01 validation.

	Adapters share one HTTP helper; an ``httpx.AsyncClient`` may be injected
	(tests use ``httpx.MockTransport``), otherwise a short-lived client is
	opened per call.
	"""

	name: str = ""

	def __init__(self, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
		self._http_client = http_client

	@abc.abstractmethod
	async def create_record(self, domain: str, record_name: str, record_value: str) -> None:
		"""Publish the TXT record. Raises ProviderError on any failure."""

	@abc.abstractmethod
	async def delete_record(self, domain: str, record_name: str, record_value: str) -> None:
		"""Remove the TXT record. An already-absent record is not an error."""

	async def verify_credentials(self) -> bool:
		"""Check that the configured credentials are accepted."""
		return True

	@asynccontextmanager
	async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
		if self._http_client is not None:
			yield self._http_client
			return
		async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
			yield client

	async def _request(
		self,
		method: str,
		url: str,
		*,
		allow_404: bool = False,
		**kwargs,
	) -> httpx.Response:
		"""Issue a request, translating failures into ProviderError."""
		try:
			async with self._client() as client:
				resp = await client.request(method, url, **kwargs)
		except httpx.HTTPError as exc:
			raise ProviderError(self.name, f"request to {url} failed: {exc}") from exc

		if resp.status_code == 404 and allow_404:
			_log.debug("DNS provider=%s %s %s -> 404 (ignored)", self.name, method, url)
			return resp
		if resp.is_error:
			raise ProviderError(
				self.name,
				f"API error {resp.status_code}: {_error_text(resp)}",
				status_code=resp.status_code,
			)
		return resp

	async def _probe(self, method: str, url: str, **kwargs) -> Optional[httpx.Response]:
		"""Request helper for credential checks: never raises."""
		try:
			return await self._request(method, url, **kwargs)
		except ProviderError as exc:
			_log.info("DNS provider=%s credential check failed: %s", self.name, exc)
			return None

	def _json(self, resp: httpx.Response) -> dict:
		"""Decode a JSON object body; anything else is a ProviderError."""
		try:
			body = resp.json()
		except ValueError as exc:
			raise ProviderError(self.name, f"invalid JSON from {resp.request.url}", status_code=resp.status_code) from exc
		if not isinstance(body, dict):
			raise ProviderError(self.name, f"unexpected response from {resp.request.url}", status_code=resp.status_code)
		return body

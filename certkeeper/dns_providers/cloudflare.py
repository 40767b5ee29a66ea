#!/usr/bin/env python3
#
# certkeeper/dns_providers/cloudflare.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Cloudflare DNS-01 provider (API token auth)."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..errors import ProviderError
from .base import CHALLENGE_TTL, DnsProvider, root_domain

_log = logging.getLogger(__name__)

API_BASE = "https://api.cloudflare.com/client/v4"


class CloudflareProvider(DnsProvider):
	"""Manage TXT records through the Cloudflare v4 API."""

	name = "cloudflare"

	def __init__(self, api_token: str, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
		super().__init__(http_client=http_client)
		self._headers = {"Authorization": f"Bearer {api_token}"}

	async def _find_zone_id(self, domain: str) -> Optional[str]:
		resp = await self._request(
			"GET", f"{API_BASE}/zones", params={"name": root_domain(domain)}, headers=self._headers,
		)
		result = self._json(resp).get("result") or []
		if not result or not result[0].get("id"):
			return None
		return result[0]["id"]

	async def _zone_id(self, domain: str) -> str:
		zone_id = await self._find_zone_id(domain)
		if zone_id is None:
			raise ProviderError(self.name, f"zone not found for: {root_domain(domain)}")
		return zone_id

	async def create_record(self, domain: str, record_name: str, record_value: str) -> None:
		zone_id = await self._zone_id(domain)
		await self._request(
			"POST",
			f"{API_BASE}/zones/{zone_id}/dns_records",
			headers=self._headers,
			json={
				"type": "TXT",
				"name": record_name,
				"content": record_value,
				"ttl": CHALLENGE_TTL,
			},
		)
		_log.info("DNS provider=cloudflare created TXT %s", record_name)

	async def delete_record(self, domain: str, record_name: str, record_value: str) -> None:
		"""Remove every TXT record with the challenge name.

		A zone that does not exist holds no record, so that is success too.
		"""
		zone_id = await self._find_zone_id(domain)
		if zone_id is None:
			_log.debug("DNS provider=cloudflare no zone for %s, nothing to remove", domain)
			return
		resp = await self._request(
			"GET",
			f"{API_BASE}/zones/{zone_id}/dns_records",
			params={"type": "TXT", "name": record_name},
			headers=self._headers,
			allow_404=True,
		)
		if resp.status_code == 404:
			return
		records = [r for r in self._json(resp).get("result") or [] if r.get("id")]
		for record in records:
			await self._request(
				"DELETE",
				f"{API_BASE}/zones/{zone_id}/dns_records/{record['id']}",
				headers=self._headers,
				allow_404=True,
			)
		_log.info("DNS provider=cloudflare removed %d TXT record(s) for %s", len(records), record_name)

	async def verify_credentials(self) -> bool:
		resp = await self._probe("GET", f"{API_BASE}/user/tokens/verify", headers=self._headers)
		if resp is None:
			return False
		try:
			return self._json(resp).get("success") is True
		except ProviderError:
			return False

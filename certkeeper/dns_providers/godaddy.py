#!/usr/bin/env python3
#
# certkeeper/dns_providers/godaddy.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""GoDaddy DNS-01 provider (sso-key auth)."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .base import DnsProvider, relative_name, root_domain

_log = logging.getLogger(__name__)

API_BASE = "https://api.godaddy.com/v1"

# GoDaddy enforces a minimum TTL of 600 seconds
GODADDY_TTL = 600


class GoDaddyProvider(DnsProvider):
	"""Replace/delete the single named TXT record via the GoDaddy v1 API."""

	name = "godaddy"

	def __init__(self, api_key: str, api_secret: str, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
		super().__init__(http_client=http_client)
		self._headers = {"Authorization": f"sso-key {api_key}:{api_secret}"}

	def _record_url(self, domain: str, record_name: str) -> str:
		return f"{API_BASE}/domains/{root_domain(domain)}/records/TXT/{relative_name(record_name, domain)}"

	async def create_record(self, domain: str, record_name: str, record_value: str) -> None:
		await self._request(
			"PUT",
			self._record_url(domain, record_name),
			headers=self._headers,
			json=[{"data": record_value, "ttl": GODADDY_TTL}],
		)
		_log.info("DNS provider=godaddy set TXT %s", record_name)

	async def delete_record(self, domain: str, record_name: str, record_value: str) -> None:
		resp = await self._request(
			"DELETE",
			self._record_url(domain, record_name),
			headers=self._headers,
			allow_404=True,
		)
		if resp.status_code == 404:
			_log.debug("DNS provider=godaddy TXT %s already absent", record_name)
			return
		_log.info("DNS provider=godaddy deleted TXT %s", record_name)

	async def verify_credentials(self) -> bool:
		resp = await self._probe("GET", f"{API_BASE}/domains", params={"limit": 1}, headers=self._headers)
		return resp is not None

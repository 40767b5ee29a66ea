#!/usr/bin/env python3
#
# certkeeper/dns_providers/digitalocean.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""DigitalOcean DNS-01 provider (bearer token auth)."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .base import CHALLENGE_TTL, DnsProvider, relative_name, root_domain

_log = logging.getLogger(__name__)

API_BASE = "https://api.digitalocean.com/v2"


class DigitalOceanProvider(DnsProvider):
	"""Manage TXT records through the DigitalOcean v2 domains API."""

	name = "digitalocean"

	def __init__(self, api_token: str, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
		super().__init__(http_client=http_client)
		self._headers = {"Authorization": f"Bearer {api_token}"}

	async def create_record(self, domain: str, record_name: str, record_value: str) -> None:
		zone = root_domain(domain)
		await self._request(
			"POST",
			f"{API_BASE}/domains/{zone}/records",
			headers=self._headers,
			json={
				"type": "TXT",
				"name": relative_name(record_name, domain),
				"data": record_value,
				"ttl": CHALLENGE_TTL,
			},
		)
		_log.info("DNS provider=digitalocean created TXT %s", record_name)

	async def delete_record(self, domain: str, record_name: str, record_value: str) -> None:
		"""Delete only the record carrying this challenge value.

		Other TXT records sharing the name (SPF, parallel challenges) stay.
		"""
		zone = root_domain(domain)
		# The list filter expects the fully-qualified record name
		resp = await self._request(
			"GET",
			f"{API_BASE}/domains/{zone}/records",
			params={"type": "TXT", "name": record_name.rstrip(".")},
			headers=self._headers,
			allow_404=True,
		)
		if resp.status_code == 404:
			return
		removed = 0
		for record in self._json(resp).get("domain_records") or []:
			if record.get("data") != record_value:
				continue
			await self._request(
				"DELETE",
				f"{API_BASE}/domains/{zone}/records/{record['id']}",
				headers=self._headers,
				allow_404=True,
			)
			removed += 1
		_log.info("DNS provider=digitalocean removed %d TXT record(s) for %s", removed, record_name)

	async def verify_credentials(self) -> bool:
		resp = await self._probe("GET", f"{API_BASE}/account", headers=self._headers)
		return resp is not None

#!/usr/bin/env python3
#
# certkeeper/dns_providers/route53.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""AWS Route53 DNS-01 provider.

Talks to the Route53 REST/XML API directly, signing every request with
the SigV4 signer (no AWS SDK).
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Literal, Optional
from urllib.parse import urlencode
from xml.sax.saxutils import escape

import httpx

from ..errors import ProviderError
from ..utils.sigv4 import sign_request
from .base import CHALLENGE_TTL, DnsProvider, root_domain

_log = logging.getLogger(__name__)

API_BASE = "https://route53.amazonaws.com/2013-04-01"
_NS = {"r53": "https://route53.amazonaws.com/doc/2013-04-01/"}

_CHANGE_BATCH = """<?xml version="1.0" encoding="UTF-8"?>
<ChangeResourceRecordSetsRequest xmlns="https://route53.amazonaws.com/doc/2013-04-01/">
  <ChangeBatch>
    <Changes>
      <Change>
        <Action>{action}</Action>
        <ResourceRecordSet>
          <Name>{name}</Name>
          <Type>TXT</Type>
          <TTL>{ttl}</TTL>
          <ResourceRecords>
            <ResourceRecord>
              <Value>{value}</Value>
            </ResourceRecord>
          </ResourceRecords>
        </ResourceRecordSet>
      </Change>
    </Changes>
  </ChangeBatch>
</ChangeResourceRecordSetsRequest>"""


def change_batch_xml(action: Literal["UPSERT", "DELETE"], record_name: str, record_value: str) -> str:
	"""Single-record change batch; TXT values are sent quoted."""
	return _CHANGE_BATCH.format(
		action=action,
		name=escape(record_name),
		ttl=CHALLENGE_TTL,
		value=escape(f'"{record_value}"'),
	)


def parse_hosted_zone_id(xml_text: str, zone: str) -> Optional[str]:
	"""Pick the hosted zone whose name matches ``zone`` exactly.

	``hostedzonesbyname`` lists zones starting at ``dnsname`` in
	lexicographic order, so the first entry is not necessarily ours.
	"""
	try:
		root = ET.fromstring(xml_text)
	except ET.ParseError:
		return None
	wanted = zone.rstrip(".").lower() + "."
	for hz in root.iterfind(".//r53:HostedZone", _NS):
		name = (hz.findtext("r53:Name", default="", namespaces=_NS) or "").lower()
		zone_id = hz.findtext("r53:Id", default="", namespaces=_NS) or ""
		if name == wanted and zone_id:
			return zone_id.rsplit("/", 1)[-1]
	return None


class Route53Provider(DnsProvider):
	"""Manage TXT records through the Route53 API."""

	name = "route53"

	def __init__(
		self,
		access_key_id: str,
		secret_access_key: str,
		region: str = "us-east-1",
		*,
		http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		super().__init__(http_client=http_client)
		self._access_key_id = access_key_id
		self._secret_access_key = secret_access_key
		self._region = region

	def _sign(self, method: str, url: str, body: Optional[str] = None) -> dict[str, str]:
		return sign_request(
			method,
			url,
			access_key=self._access_key_id,
			secret_key=self._secret_access_key,
			region=self._region,
			body=body,
		)

	async def _signed(self, method: str, url: str, body: Optional[str] = None, **kwargs) -> httpx.Response:
		return await self._request(method, url, headers=self._sign(method, url, body), content=body, **kwargs)

	async def _hosted_zone_id(self, domain: str) -> str:
		zone = root_domain(domain)
		query = urlencode({"dnsname": zone + "."})
		resp = await self._signed("GET", f"{API_BASE}/hostedzonesbyname?{query}")
		zone_id = parse_hosted_zone_id(resp.text, zone)
		if not zone_id:
			raise ProviderError(self.name, f"hosted zone not found for: {zone}")
		return zone_id

	async def _change(self, action: Literal["UPSERT", "DELETE"], domain: str, record_name: str, record_value: str) -> None:
		zone_id = await self._hosted_zone_id(domain)
		await self._signed(
			"POST",
			f"{API_BASE}/hostedzone/{zone_id}/rrset",
			body=change_batch_xml(action, record_name, record_value),
		)

	async def create_record(self, domain: str, record_name: str, record_value: str) -> None:
		await self._change("UPSERT", domain, record_name, record_value)
		_log.info("DNS provider=route53 upserted TXT %s", record_name)

	async def delete_record(self, domain: str, record_name: str, record_value: str) -> None:
		try:
			await self._change("DELETE", domain, record_name, record_value)
		except ProviderError as exc:
			# Route53 rejects deletion of a missing record set with 400 InvalidChangeBatch
			if exc.status_code == 404 or (exc.status_code == 400 and "not found" in str(exc).lower()):
				_log.debug("DNS provider=route53 TXT %s already absent", record_name)
				return
			raise
		_log.info("DNS provider=route53 deleted TXT %s", record_name)

	async def verify_credentials(self) -> bool:
		url = f"{API_BASE}/hostedzone?maxitems=1"
		resp = await self._probe("GET", url, headers=self._sign("GET", url))
		return resp is not None

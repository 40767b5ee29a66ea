#!/usr/bin/env python3
#
# tests/dns_providers/test_dns_adapters.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for the DNS provider adapters using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from certkeeper.dns_providers.cloudflare import CloudflareProvider
from certkeeper.dns_providers.digitalocean import DigitalOceanProvider
from certkeeper.dns_providers.godaddy import GoDaddyProvider
from certkeeper.dns_providers.manual import ManualProvider, PendingChallengeStore
from certkeeper.dns_providers.route53 import Route53Provider, change_batch_xml, parse_hosted_zone_id
from certkeeper.errors import ProviderError

RECORD = "_acme-challenge.example.com"
VALUE = "abc123-txt-value"


def _recorder(responder):
	"""MockTransport client that keeps every request it sees."""
	seen: list[httpx.Request] = []

	def handler(request: httpx.Request) -> httpx.Response:
		seen.append(request)
		return responder(request)

	return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


def _run(coro_factory, client):
	async def go():
		try:
			return await coro_factory()
		finally:
			await client.aclose()
	return asyncio.run(go())


# ---------------------------------------------------------------------------
# Cloudflare
# ---------------------------------------------------------------------------


class TestCloudflare:
	def test_create_looks_up_zone_then_posts(self):
		def respond(req):
			if req.method == "GET":
				return httpx.Response(200, json={"success": True, "result": [{"id": "z1"}]})
			return httpx.Response(200, json={"success": True, "result": {"id": "r1"}})

		client, seen = _recorder(respond)
		provider = CloudflareProvider("cf-token", http_client=client)
		_run(lambda: provider.create_record("www.example.com", RECORD, VALUE), client)

		assert seen[0].url.path == "/client/v4/zones"
		assert seen[0].url.params["name"] == "example.com"
		assert seen[0].headers["Authorization"] == "Bearer cf-token"
		assert seen[1].method == "POST"
		assert seen[1].url.path == "/client/v4/zones/z1/dns_records"
		body = json.loads(seen[1].content)
		assert body == {"type": "TXT", "name": RECORD, "content": VALUE, "ttl": 120}

	def test_missing_zone_raises(self):
		client, _ = _recorder(lambda req: httpx.Response(200, json={"success": True, "result": []}))
		provider = CloudflareProvider("cf-token", http_client=client)
		with pytest.raises(ProviderError, match="zone not found for: example.com"):
			_run(lambda: provider.create_record("example.com", RECORD, VALUE), client)

	def test_delete_removes_every_listed_record(self):
		def respond(req):
			if req.method == "GET" and req.url.path.endswith("/zones"):
				return httpx.Response(200, json={"result": [{"id": "z1"}]})
			if req.method == "GET":
				return httpx.Response(200, json={"result": [{"id": "r1"}, {"id": "r2"}]})
			return httpx.Response(200, json={"result": {"id": "x"}})

		client, seen = _recorder(respond)
		provider = CloudflareProvider("cf-token", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)

		deleted = [r.url.path for r in seen if r.method == "DELETE"]
		assert deleted == [
			"/client/v4/zones/z1/dns_records/r1",
			"/client/v4/zones/z1/dns_records/r2",
		]

	def test_delete_with_no_records_is_success(self):
		def respond(req):
			if req.url.path.endswith("/zones"):
				return httpx.Response(200, json={"result": [{"id": "z1"}]})
			return httpx.Response(200, json={"result": []})

		client, seen = _recorder(respond)
		provider = CloudflareProvider("cf-token", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)
		assert [r.method for r in seen] == ["GET", "GET"]

	def test_delete_when_listing_404s_is_success(self):
		def respond(req):
			if req.url.path.endswith("/zones"):
				return httpx.Response(200, json={"result": [{"id": "z1"}]})
			return httpx.Response(404, json={"success": False})

		client, seen = _recorder(respond)
		provider = CloudflareProvider("cf-token", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)
		assert not any(r.method == "DELETE" for r in seen)

	def test_delete_without_zone_is_success(self):
		client, seen = _recorder(lambda req: httpx.Response(200, json={"success": True, "result": []}))
		provider = CloudflareProvider("cf-token", http_client=client)
		_run(lambda: provider.delete_record("gone.example", "_acme-challenge.gone.example", VALUE), client)
		assert len(seen) == 1

	def test_non_json_body_raises_provider_error(self):
		client, _ = _recorder(lambda req: httpx.Response(200, text="<html>captive portal</html>"))
		provider = CloudflareProvider("cf-token", http_client=client)
		with pytest.raises(ProviderError, match="invalid JSON"):
			_run(lambda: provider.create_record("example.com", RECORD, VALUE), client)

	def test_api_error_carries_status(self):
		client, _ = _recorder(lambda req: httpx.Response(403, text="forbidden"))
		provider = CloudflareProvider("bad", http_client=client)
		with pytest.raises(ProviderError) as excinfo:
			_run(lambda: provider.create_record("example.com", RECORD, VALUE), client)
		assert excinfo.value.status_code == 403
		assert str(excinfo.value).startswith("cloudflare: API error 403")

	def test_verify_credentials_false_on_error(self):
		client, _ = _recorder(lambda req: httpx.Response(401, json={"success": False}))
		provider = CloudflareProvider("bad", http_client=client)
		assert _run(provider.verify_credentials, client) is False


# ---------------------------------------------------------------------------
# Route53
# ---------------------------------------------------------------------------

ZONES_XML = """<?xml version="1.0"?>
<ListHostedZonesByNameResponse xmlns="https://route53.amazonaws.com/doc/2013-04-01/">
  <HostedZones>
    <HostedZone><Id>/hostedzone/ZOTHER</Id><Name>example.co.</Name></HostedZone>
    <HostedZone><Id>/hostedzone/Z1</Id><Name>example.com.</Name></HostedZone>
  </HostedZones>
</ListHostedZonesByNameResponse>"""


class TestRoute53:
	def test_change_batch_quotes_value(self):
		xml = change_batch_xml("UPSERT", RECORD, VALUE)
		assert "<Action>UPSERT</Action>" in xml
		assert f"<Value>&quot;{VALUE}&quot;</Value>" in xml
		assert "<TTL>120</TTL>" in xml

	def test_zone_match_is_exact(self):
		assert parse_hosted_zone_id(ZONES_XML, "example.com") == "Z1"
		assert parse_hosted_zone_id(ZONES_XML, "example.net") is None
		assert parse_hosted_zone_id("not xml", "example.com") is None

	def test_create_signs_and_upserts(self):
		def respond(req):
			if req.method == "GET":
				return httpx.Response(200, text=ZONES_XML)
			return httpx.Response(200, text="<ChangeInfo/>")

		client, seen = _recorder(respond)
		provider = Route53Provider("AKID", "SECRET", http_client=client)
		_run(lambda: provider.create_record("www.example.com", RECORD, VALUE), client)

		assert seen[0].url.params["dnsname"] == "example.com."
		post = seen[1]
		assert post.url.path == "/2013-04-01/hostedzone/Z1/rrset"
		assert post.headers["Authorization"].startswith("AWS4-HMAC-SHA256 Credential=AKID/")
		assert "/us-east-1/route53/aws4_request" in post.headers["Authorization"]
		assert "X-Amz-Date" in post.headers
		assert b"<Action>UPSERT</Action>" in post.content

	def test_delete_of_missing_record_is_success(self):
		def respond(req):
			if req.method == "GET":
				return httpx.Response(200, text=ZONES_XML)
			return httpx.Response(
				400,
				text="<ErrorResponse><Error><Code>InvalidChangeBatch</Code>"
				"<Message>Tried to delete resource record set but it was not found</Message>"
				"</Error></ErrorResponse>",
			)

		client, _ = _recorder(respond)
		provider = Route53Provider("AKID", "SECRET", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)

	def test_other_errors_propagate(self):
		client, _ = _recorder(lambda req: httpx.Response(403, text="<Error>AccessDenied</Error>"))
		provider = Route53Provider("AKID", "SECRET", http_client=client)
		with pytest.raises(ProviderError):
			_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)

	def test_unknown_zone(self):
		client, _ = _recorder(lambda req: httpx.Response(200, text=ZONES_XML))
		provider = Route53Provider("AKID", "SECRET", http_client=client)
		with pytest.raises(ProviderError, match="hosted zone not found"):
			_run(lambda: provider.create_record("example.net", "_acme-challenge.example.net", VALUE), client)

	def test_verify_credentials_signs_request(self):
		client, seen = _recorder(lambda req: httpx.Response(200, text="<ListHostedZonesResponse/>"))
		provider = Route53Provider("AKID", "SECRET", http_client=client)
		assert _run(provider.verify_credentials, client) is True
		assert seen[0].url.params["maxitems"] == "1"
		assert seen[0].headers["Authorization"].startswith("AWS4-HMAC-SHA256 Credential=AKID/")

	def test_verify_credentials_false_on_error(self):
		client, _ = _recorder(lambda req: httpx.Response(403, text="<Error>AccessDenied</Error>"))
		provider = Route53Provider("AKID", "SECRET", http_client=client)
		assert _run(provider.verify_credentials, client) is False


# ---------------------------------------------------------------------------
# GoDaddy
# ---------------------------------------------------------------------------


class TestGoDaddy:
	def test_create_puts_relative_record(self):
		client, seen = _recorder(lambda req: httpx.Response(200))
		provider = GoDaddyProvider("key", "secret", http_client=client)
		_run(lambda: provider.create_record("www.example.com", "_acme-challenge.www.example.com", VALUE), client)

		req = seen[0]
		assert req.method == "PUT"
		assert str(req.url) == "https://api.godaddy.com/v1/domains/example.com/records/TXT/_acme-challenge.www"
		assert req.headers["Authorization"] == "sso-key key:secret"
		assert json.loads(req.content) == [{"data": VALUE, "ttl": 600}]

	def test_delete_404_is_success(self):
		client, seen = _recorder(lambda req: httpx.Response(404, json={"code": "NOT_FOUND"}))
		provider = GoDaddyProvider("key", "secret", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)
		assert seen[0].method == "DELETE"
		assert seen[0].url.path == "/v1/domains/example.com/records/TXT/_acme-challenge"

	def test_delete_server_error_raises(self):
		client, _ = _recorder(lambda req: httpx.Response(500, text="boom"))
		provider = GoDaddyProvider("key", "secret", http_client=client)
		with pytest.raises(ProviderError):
			_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)


# ---------------------------------------------------------------------------
# DigitalOcean
# ---------------------------------------------------------------------------


class TestDigitalOcean:
	def test_create_posts_relative_name(self):
		client, seen = _recorder(lambda req: httpx.Response(201, json={"domain_record": {"id": 1}}))
		provider = DigitalOceanProvider("do-token", http_client=client)
		_run(lambda: provider.create_record("example.com", RECORD, VALUE), client)

		assert seen[0].url.path == "/v2/domains/example.com/records"
		assert json.loads(seen[0].content) == {
			"type": "TXT", "name": "_acme-challenge", "data": VALUE, "ttl": 120,
		}

	def test_delete_only_matching_value(self):
		def respond(req):
			if req.method == "GET":
				return httpx.Response(200, json={"domain_records": [
					{"id": 10, "data": "v=spf1 -all"},
					{"id": 11, "data": VALUE},
				]})
			return httpx.Response(204)

		client, seen = _recorder(respond)
		provider = DigitalOceanProvider("do-token", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)

		assert seen[0].url.params["name"] == RECORD
		deleted = [r.url.path for r in seen if r.method == "DELETE"]
		assert deleted == ["/v2/domains/example.com/records/11"]

	def test_delete_with_no_records_is_success(self):
		client, seen = _recorder(lambda req: httpx.Response(200, json={"domain_records": []}))
		provider = DigitalOceanProvider("do-token", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)
		assert [r.method for r in seen] == ["GET"]

	def test_delete_with_only_other_values_is_success(self):
		client, seen = _recorder(lambda req: httpx.Response(200, json={"domain_records": [
			{"id": 10, "data": "v=spf1 -all"},
		]}))
		provider = DigitalOceanProvider("do-token", http_client=client)
		_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)
		assert not any(r.method == "DELETE" for r in seen)

	def test_delete_non_json_listing_raises_provider_error(self):
		client, _ = _recorder(lambda req: httpx.Response(200, text="<html>maintenance</html>"))
		provider = DigitalOceanProvider("do-token", http_client=client)
		with pytest.raises(ProviderError, match="invalid JSON"):
			_run(lambda: provider.delete_record("example.com", RECORD, VALUE), client)


# ---------------------------------------------------------------------------
# Manual
# ---------------------------------------------------------------------------


class TestManual:
	def test_create_records_pending_challenge(self):
		pending = PendingChallengeStore()
		provider = ManualProvider(pending)
		asyncio.run(provider.create_record("example.com", RECORD, VALUE))

		challenge = pending.get("example.com")
		assert challenge is not None
		assert challenge.record_name == RECORD
		assert challenge.record_value == VALUE

		asyncio.run(provider.delete_record("example.com", RECORD, VALUE))
		assert pending.all() == []

	def test_verify_always_true(self):
		assert asyncio.run(ManualProvider().verify_credentials()) is True

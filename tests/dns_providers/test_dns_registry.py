#!/usr/bin/env python3
#
# tests/dns_providers/test_dns_registry.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.dns_providers.registry."""

from __future__ import annotations

import pytest

from certkeeper.dns_providers.cloudflare import CloudflareProvider
from certkeeper.dns_providers.manual import ManualProvider
from certkeeper.dns_providers.route53 import Route53Provider
from certkeeper.errors import ConfigurationError, UnknownProviderError
from certkeeper.dns_providers.registry import DnsProviderRegistry


class TestCreate:
	def test_missing_credentials_named(self):
		registry = DnsProviderRegistry({})
		with pytest.raises(ConfigurationError) as excinfo:
			registry.create("route53")
		assert excinfo.value.missing == ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"]
		assert "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are not configured" in str(excinfo.value)

	def test_partially_configured_names_only_missing(self):
		registry = DnsProviderRegistry({"GODADDY_API_KEY": "k", "GODADDY_API_SECRET": "  "})
		with pytest.raises(ConfigurationError) as excinfo:
			registry.create("godaddy")
		assert excinfo.value.missing == ["GODADDY_API_SECRET"]

	def test_configured_provider_built(self):
		registry = DnsProviderRegistry({"CLOUDFLARE_API_TOKEN": "tok"})
		assert isinstance(registry.create("cloudflare"), CloudflareProvider)

	def test_route53_region_defaults(self):
		registry = DnsProviderRegistry({"AWS_ACCESS_KEY_ID": "a", "AWS_SECRET_ACCESS_KEY": "b"})
		provider = registry.create("route53")
		assert isinstance(provider, Route53Provider)
		assert provider._region == "us-east-1"

	def test_manual_needs_nothing_and_shares_pending(self):
		registry = DnsProviderRegistry({})
		provider = registry.create("manual")
		assert isinstance(provider, ManualProvider)
		assert provider.pending is registry.pending

	def test_unknown_name(self):
		with pytest.raises(UnknownProviderError, match="Unknown DNS provider: bind"):
			DnsProviderRegistry({}).create("bind")


class TestListAvailable:
	def test_configured_flags(self):
		registry = DnsProviderRegistry({"DIGITALOCEAN_API_TOKEN": "tok"})
		listing = {p["name"]: p for p in registry.list_available()}
		assert set(listing) == {"cloudflare", "route53", "godaddy", "digitalocean", "manual"}
		assert listing["digitalocean"]["configured"] is True
		assert listing["cloudflare"]["configured"] is False
		assert listing["manual"]["configured"] is True
		assert listing["route53"]["required_env"] == ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"]

	def test_is_known(self):
		registry = DnsProviderRegistry({})
		assert registry.is_known("godaddy")
		assert not registry.is_known("bind")
		assert not registry.is_known(None)

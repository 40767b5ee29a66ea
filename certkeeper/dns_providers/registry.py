#!/usr/bin/env python3
#
# certkeeper/dns_providers/registry.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Construct DNS providers by name from environment credentials."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import httpx

from ..errors import ConfigurationError, UnknownProviderError
from .base import DnsProvider
from .cloudflare import CloudflareProvider
from .digitalocean import DigitalOceanProvider
from .godaddy import GoDaddyProvider
from .manual import ManualProvider, PendingChallengeStore
from .route53 import Route53Provider

_log = logging.getLogger(__name__)

__all__ = ["DnsProviderRegistry", "ProviderSpec", "PROVIDERS"]

_Factory = Callable[[Mapping[str, str], "DnsProviderRegistry"], DnsProvider]


@dataclass(frozen=True)
class ProviderSpec:
	"""Static description of one DNS provider."""
	name: str
	label: str
	required_env: tuple[str, ...]
	factory: _Factory


PROVIDERS: dict[str, ProviderSpec] = {
	spec.name: spec
	for spec in (
		ProviderSpec(
			"cloudflare",
			"Cloudflare",
			("CLOUDFLARE_API_TOKEN",),
			lambda env, reg: CloudflareProvider(env["CLOUDFLARE_API_TOKEN"], http_client=reg.http_client),
		),
		ProviderSpec(
			"route53",
			"AWS Route53",
			("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"),
			lambda env, reg: Route53Provider(
				env["AWS_ACCESS_KEY_ID"],
				env["AWS_SECRET_ACCESS_KEY"],
				env.get("AWS_REGION") or "us-east-1",
				http_client=reg.http_client,
			),
		),
		ProviderSpec(
			"godaddy",
			"GoDaddy",
			("GODADDY_API_KEY", "GODADDY_API_SECRET"),
			lambda env, reg: GoDaddyProvider(
				env["GODADDY_API_KEY"], env["GODADDY_API_SECRET"], http_client=reg.http_client,
			),
		),
		ProviderSpec(
			"digitalocean",
			"DigitalOcean",
			("DIGITALOCEAN_API_TOKEN",),
			lambda env, reg: DigitalOceanProvider(env["DIGITALOCEAN_API_TOKEN"], http_client=reg.http_client),
		),
		ProviderSpec(
			"manual",
			"Manual (Add TXT record yourself)",
			(),
			lambda env, reg: ManualProvider(reg.pending),
		),
	)
}


class DnsProviderRegistry:
	"""Selects and constructs DNS providers.

	Credentials are read from ``environ`` (``os.environ`` by default) on
	every ``create()`` so rotated secrets are picked up without restart.
	"""

	def __init__(
		self,
		environ: Optional[Mapping[str, str]] = None,
		*,
		pending: Optional[PendingChallengeStore] = None,
		http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self._environ = environ
		self.pending = pending if pending is not None else PendingChallengeStore()
		self.http_client = http_client

	@property
	def environ(self) -> Mapping[str, str]:
		return self._environ if self._environ is not None else os.environ

	def names(self) -> list[str]:
		return list(PROVIDERS)

	def is_known(self, name: Optional[str]) -> bool:
		return bool(name) and name in PROVIDERS

	def _missing(self, spec: ProviderSpec) -> list[str]:
		env = self.environ
		return [var for var in spec.required_env if not (env.get(var) or "").strip()]

	def create(self, name: str) -> DnsProvider:
		"""Build the named provider.

		Raises:
			UnknownProviderError: name is not registered
			ConfigurationError: any required credential variable is unset
		"""
		spec = PROVIDERS.get(name)
		if spec is None:
			raise UnknownProviderError("DNS", name)
		missing = self._missing(spec)
		if missing:
			raise ConfigurationError.for_variables(*missing)
		_log.debug("DNS provider=%s constructed", name)
		return spec.factory(self.environ, self)

	def list_available(self) -> list[dict]:
		"""Every known provider with its label and credential status."""
		return [
			{
				"name": spec.name,
				"label": spec.label,
				"configured": not self._missing(spec),
				"required_env": list(spec.required_env),
			}
			for spec in PROVIDERS.values()
		]

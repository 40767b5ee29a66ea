#!/usr/bin/env python3
#
# certkeeper/acme/providers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Catalog of supported ACME certificate authorities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import UnknownProviderError

DEFAULT_PROVIDER = "letsencrypt"


@dataclass(frozen=True)
class AcmeProvider:
	"""One ACME CA endpoint."""
	name: str
	label: str
	directory_url: str
	website: str
	cert_validity_days: int
	staging_url: Optional[str] = None
	requires_eab: bool = False
	eab_kid_env: Optional[str] = None
	eab_hmac_env: Optional[str] = None

	@property
	def eab_env_vars(self) -> tuple[str, ...]:
		if not self.requires_eab:
			return ()
		return tuple(v for v in (self.eab_kid_env, self.eab_hmac_env) if v)


@dataclass(frozen=True)
class EabCredentials:
	"""External Account Binding key id + base64url HMAC key."""
	kid: str
	hmac_key: str


ACME_PROVIDERS: dict[str, AcmeProvider] = {
	p.name: p
	for p in (
		AcmeProvider(
			name="letsencrypt",
			label="Let's Encrypt",
			directory_url="https://acme-v02.api.letsencrypt.org/directory",
			staging_url="https://acme-staging-v02.api.letsencrypt.org/directory",
			website="https://letsencrypt.org",
			cert_validity_days=90,
		),
		AcmeProvider(
			name="zerossl",
			label="ZeroSSL",
			directory_url="https://acme.zerossl.com/v2/DV90",
			website="https://zerossl.com",
			cert_validity_days=90,
			requires_eab=True,
			eab_kid_env="ZEROSSL_EAB_KID",
			eab_hmac_env="ZEROSSL_EAB_HMAC_KEY",
		),
		AcmeProvider(
			name="buypass",
			label="Buypass Go",
			directory_url="https://api.buypass.com/acme/directory",
			staging_url="https://api.test4.buypass.no/acme/directory",
			website="https://www.buypass.com/ssl/products/acme",
			cert_validity_days=180,
		),
		AcmeProvider(
			name="google",
			label="Google Trust Services",
			directory_url="https://dv.acme-v02.api.pki.goog/directory",
			staging_url="https://dv.acme-v02.test-api.pki.goog/directory",
			website="https://pki.goog",
			cert_validity_days=90,
			requires_eab=True,
			eab_kid_env="GOOGLE_EAB_KID",
			eab_hmac_env="GOOGLE_EAB_HMAC_KEY",
		),
		AcmeProvider(
			name="sslcom",
			label="SSL.com",
			directory_url="https://acme.ssl.com/sslcom-dv-rsa",
			website="https://ssl.com",
			cert_validity_days=90,
			requires_eab=True,
			eab_kid_env="SSLCOM_EAB_KID",
			eab_hmac_env="SSLCOM_EAB_HMAC_KEY",
		),
	)
}


def get_provider(name: str) -> AcmeProvider:
	"""Look up a CA by catalog key.

	Raises:
		UnknownProviderError: name is not in the catalog
	"""
	provider = ACME_PROVIDERS.get(name)
	if provider is None:
		raise UnknownProviderError("ACME", name)
	return provider


def resolve_directory(name: str, use_staging: bool) -> str:
	"""Directory URL; staging only when requested AND offered."""
	provider = get_provider(name)
	if use_staging and provider.staging_url:
		return provider.staging_url
	return provider.directory_url


def resolve_eab_credentials(name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[EabCredentials]:
	"""EAB credentials for ``name``, or None when not required or not set."""
	provider = get_provider(name)
	if not provider.requires_eab or not provider.eab_kid_env or not provider.eab_hmac_env:
		return None
	env = environ if environ is not None else os.environ
	kid = (env.get(provider.eab_kid_env) or "").strip()
	hmac_key = (env.get(provider.eab_hmac_env) or "").strip()
	if not kid or not hmac_key:
		return None
	return EabCredentials(kid=kid, hmac_key=hmac_key)


def list_available(environ: Optional[Mapping[str, str]] = None) -> list[dict]:
	"""Every CA with its EAB requirement and whether it is usable now."""
	return [
		{
			"name": p.name,
			"label": p.label,
			"website": p.website,
			"configured": (not p.requires_eab) or resolve_eab_credentials(p.name, environ) is not None,
			"requires_eab": p.requires_eab,
			"cert_validity_days": p.cert_validity_days,
			"has_staging": p.staging_url is not None,
		}
		for p in ACME_PROVIDERS.values()
	]

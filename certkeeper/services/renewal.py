#!/usr/bin/env python3
#
# certkeeper/services/renewal.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate issuance and renewal.

``RenewalOrchestrator.issue_or_renew`` drives one certificate through an
ACME order. Cheap configuration checks (CA name, EAB credentials, DNS
provider credentials) all run before the CA is contacted. Challenge
artifacts are withdrawn whatever the outcome of the order.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Mapping, Optional

from cryptography.hazmat.primitives.asymmetric import ec

from ..acme.client import AcmeChallenge, AcmeClient, dns01_txt_value
from ..acme.keys import AccountKeyRegistry
from ..acme.providers import (
	DEFAULT_PROVIDER,
	AcmeProvider,
	EabCredentials,
	get_provider,
	resolve_directory,
	resolve_eab_credentials,
)
from ..dns_providers.base import DnsProvider
from ..dns_providers.registry import DnsProviderRegistry
from ..errors import (
	ConfigurationError,
	ProtocolError,
	ProviderError,
	UnknownProviderError,
)
from ..models.certificates import CertificateRecord
from ..utils.time import utcnow
from .hooks import HookExecutor

_log = logging.getLogger(__name__)

DEFAULT_PROPAGATION_SECONDS = 10.0
DEFAULT_ORDER_TIMEOUT_SECONDS = 600.0

AcmeClientFactory = Callable[[str, ec.EllipticCurvePrivateKey], Any]


@dataclass(frozen=True)
class RenewalResult:
	"""Outcome reported to API callers and batch jobs."""
	success: bool
	message: str
	certificate_id: int


@dataclass(frozen=True)
class _OrderPlan:
	provider: AcmeProvider
	directory_url: str
	eab: Optional[EabCredentials]
	dns: Optional[DnsProvider]
	challenge_priority: tuple[str, ...]


def challenge_record_name(domain: str) -> str:
	return f"_acme-challenge.{domain}"


class RenewalOrchestrator:
	"""Issues or renews certificates held in the record store."""

	def __init__(
		self,
		store,
		*,
		key_registry: AccountKeyRegistry,
		dns_registry: DnsProviderRegistry,
		hook_executor: HookExecutor,
		contact_email: str,
		acme_client_factory: AcmeClientFactory = AcmeClient,
		use_staging: bool = False,
		default_provider: str = DEFAULT_PROVIDER,
		environ: Optional[Mapping[str, str]] = None,
		order_timeout: float = DEFAULT_ORDER_TIMEOUT_SECONDS,
		propagation_delay: float = DEFAULT_PROPAGATION_SECONDS,
		now: Callable[[], datetime] = utcnow,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
	) -> None:
		self._store = store
		self._keys = key_registry
		self._dns_registry = dns_registry
		self._hooks = hook_executor
		self._contact_email = contact_email
		self._client_factory = acme_client_factory
		self._use_staging = use_staging
		self._default_provider = default_provider
		self._environ = environ
		self._order_timeout = order_timeout
		self._propagation_delay = propagation_delay
		self._now = now
		self._sleep = sleep

	@property
	def environ(self) -> Mapping[str, str]:
		return os.environ if self._environ is None else self._environ

	# -- planning (no network) ---------------------------------------------

	def _plan(self, record: CertificateRecord) -> _OrderPlan:
		"""Resolve everything that can fail without contacting anyone.

		Raises:
			UnknownProviderError: CA or DNS provider name not known
			ConfigurationError: EAB or DNS credentials missing
		"""
		name = record.acme_provider or self._default_provider
		provider = get_provider(name)
		directory_url = resolve_directory(name, self._use_staging)

		eab = None
		if provider.requires_eab:
			eab = resolve_eab_credentials(name, self.environ)
			if eab is None:
				missing = [v for v in provider.eab_env_vars if not (self.environ.get(v) or "").strip()]
				raise ConfigurationError.for_variables(*(missing or provider.eab_env_vars))

		dns = None
		if record.challenge_type == "dns":
			if not record.dns_provider:
				raise ConfigurationError("dns_provider is required for DNS-01 challenges")
			dns = self._dns_registry.create(record.dns_provider)
			priority = ("dns-01",)
		else:
			priority = ("http-01",)

		return _OrderPlan(
			provider=provider,
			directory_url=directory_url,
			eab=eab,
			dns=dns,
			challenge_priority=priority,
		)

	# -- challenge callbacks -----------------------------------------------

	def _callbacks(self, record: CertificateRecord, dns: Optional[DnsProvider]):
		domain = record.domain
		record_name = challenge_record_name(domain)

		async def fulfill(challenge: AcmeChallenge, key_auth: str) -> None:
			if dns is None:
				self._store.save_challenge_token(domain, challenge.token, key_auth)
				_log.debug("RENEW domain=%s stored http-01 token", domain)
				return
			await dns.create_record(domain, record_name, dns01_txt_value(key_auth))
			_log.info("RENEW domain=%s TXT published, waiting %.0fs for propagation", domain, self._propagation_delay)
			await self._sleep(self._propagation_delay)

		async def cleanup(challenge: AcmeChallenge, key_auth: str) -> None:
			if dns is None:
				self._store.delete_challenge_tokens(domain)
				return
			try:
				await dns.delete_record(domain, record_name, dns01_txt_value(key_auth))
			except ProviderError as exc:
				_log.warning("RENEW domain=%s TXT cleanup failed: %s", domain, exc)

		return fulfill, cleanup

	# -- ACME ---------------------------------------------------------------

	async def _issue(self, record: CertificateRecord, plan: _OrderPlan) -> tuple[str, str]:
		"""Run the order; returns (certificate PEM, private key PEM)."""
		account_key = await self._keys.get(plan.provider.name)
		fulfill, cleanup = self._callbacks(record, plan.dns)
		async with self._client_factory(plan.directory_url, account_key) as client:
			await client.create_account(self._contact_email, plan.eab)
			key_pem, csr = await asyncio.to_thread(client.create_csr, record.domain)
			certificate = await client.run_order(csr, fulfill, cleanup, list(plan.challenge_priority))
		return certificate, key_pem

	def _fail(self, record: CertificateRecord, message: str) -> RenewalResult:
		self._store.update(record.id, status="error")
		_log.error("RENEW domain=%s failed: %s", record.domain, message)
		return RenewalResult(success=False, message=message, certificate_id=record.id)

	async def issue_or_renew(self, certificate_id: int) -> RenewalResult:
		"""Issue (or re-issue) the certificate; failures come back as a RenewalResult."""
		record = self._store.get(certificate_id)
		if record is None:
			return RenewalResult(success=False, message=f"Certificate {certificate_id} not found", certificate_id=certificate_id)

		try:
			plan = self._plan(record)
		except (ConfigurationError, UnknownProviderError) as exc:
			return self._fail(record, str(exc))

		_log.info(
			"RENEW domain=%s ca=%s challenge=%s starting",
			record.domain, plan.provider.name, plan.challenge_priority[0],
		)
		try:
			certificate, private_key = await asyncio.wait_for(self._issue(record, plan), timeout=self._order_timeout)
		except asyncio.TimeoutError:
			return self._fail(record, f"ACME order timed out after {self._order_timeout:.0f}s")
		except (ProtocolError, ProviderError) as exc:
			return self._fail(record, str(exc))
		except Exception as exc:
			_log.exception("RENEW domain=%s unexpected error during ACME order", record.domain)
			return self._fail(record, f"Unexpected error: {exc.__class__.__name__}: {exc}")

		issued_at = self._now()
		expires_at = issued_at + timedelta(days=plan.provider.cert_validity_days)
		self._store.update(
			record.id,
			status="valid",
			certificate=certificate,
			private_key=private_key,
			issued_at=issued_at,
			expires_at=expires_at,
		)
		self._store.clear_notifications_for_certificate(record.id)
		_log.info("RENEW domain=%s issued, expires %s", record.domain, expires_at.date().isoformat())

		if record.hook_script:
			await self._hooks.run(
				record.id,
				record.hook_script,
				domain=record.domain,
				certificate=certificate,
				private_key=private_key,
			)
		return RenewalResult(success=True, message="Certificate issued", certificate_id=record.id)

#!/usr/bin/env python3
#
# certkeeper/dns_providers/manual.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Manual DNS-01 provider: the operator adds the TXT record by hand."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .base import DnsChallenge, DnsProvider

_log = logging.getLogger(__name__)


class PendingChallengeStore:
	"""In-memory map of domain -> challenge awaiting manual publication.

	Scoped to a registry instance; nothing here is process-global.
	"""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._pending: dict[str, DnsChallenge] = {}

	def put(self, challenge: DnsChallenge) -> None:
		with self._lock:
			self._pending[challenge.domain] = challenge

	def discard(self, domain: str) -> None:
		with self._lock:
			self._pending.pop(domain, None)

	def get(self, domain: str) -> Optional[DnsChallenge]:
		with self._lock:
			return self._pending.get(domain)

	def all(self) -> list[DnsChallenge]:
		with self._lock:
			return list(self._pending.values())


class ManualProvider(DnsProvider):
	"""Records the challenge for display; never touches the network."""

	name = "manual"

	def __init__(self, pending: Optional[PendingChallengeStore] = None) -> None:
		super().__init__()
		self.pending = pending if pending is not None else PendingChallengeStore()

	async def create_record(self, domain: str, record_name: str, record_value: str) -> None:
		self.pending.put(DnsChallenge(domain, record_name, record_value))
		_log.warning(
			"DNS provider=manual ACTION REQUIRED: add TXT record name=%s value=%s (domain=%s)",
			record_name, record_value, domain,
		)

	async def delete_record(self, domain: str, record_name: str, record_value: str) -> None:
		self.pending.discard(domain)
		_log.info("DNS provider=manual TXT record %s can now be removed", record_name)

	async def verify_credentials(self) -> bool:
		return True

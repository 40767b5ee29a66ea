#!/usr/bin/env python3
#
# certkeeper/acme/keys.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Per-CA account key cache with single-flight generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from cryptography.hazmat.primitives.asymmetric import ec

_log = logging.getLogger(__name__)


def generate_account_key() -> ec.EllipticCurvePrivateKey:
	"""New P-256 key for ES256 JWS signatures."""
	return ec.generate_private_key(ec.SECP256R1())


class AccountKeyRegistry:
	"""One account key per CA provider name for the registry's lifetime.

	Concurrent ``get()`` calls for the same provider wait on a per-name
	lock, so the first caller generates the key and everyone else reuses it.
	Keys are never persisted; losing the registry means re-registering.
	"""

	def __init__(self, key_factory: Callable[[], ec.EllipticCurvePrivateKey] = generate_account_key) -> None:
		self._key_factory = key_factory
		self._keys: dict[str, ec.EllipticCurvePrivateKey] = {}
		self._locks: dict[str, asyncio.Lock] = {}
		self._locks_guard = asyncio.Lock()

	async def _lock_for(self, provider: str) -> asyncio.Lock:
		async with self._locks_guard:
			lock = self._locks.get(provider)
			if lock is None:
				lock = self._locks[provider] = asyncio.Lock()
			return lock

	async def get(self, provider: str) -> ec.EllipticCurvePrivateKey:
		"""Return the cached key for ``provider``, generating it at most once."""
		key = self._keys.get(provider)
		if key is not None:
			return key
		async with await self._lock_for(provider):
			key = self._keys.get(provider)
			if key is None:
				# Key generation is CPU-bound; keep the event loop responsive
				key = await asyncio.to_thread(self._key_factory)
				self._keys[provider] = key
				_log.info("ACME generated account key provider=%s", provider)
			return key

	def peek(self, provider: str) -> Optional[ec.EllipticCurvePrivateKey]:
		return self._keys.get(provider)

	def forget(self, provider: str) -> None:
		"""Drop a cached key (forces a new account on next use)."""
		self._keys.pop(provider, None)

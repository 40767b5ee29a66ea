#!/usr/bin/env python3
#
# tests/acme/test_acme_keys.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.acme.keys."""

from __future__ import annotations

import asyncio

from certkeeper.acme.keys import AccountKeyRegistry, generate_account_key


class TestAccountKeyRegistry:
	def test_concurrent_get_generates_once(self):
		calls = []

		def factory():
			calls.append(1)
			return generate_account_key()

		registry = AccountKeyRegistry(factory)

		async def go():
			return await asyncio.gather(*(registry.get("letsencrypt") for _ in range(8)))

		keys = asyncio.run(go())
		assert len(calls) == 1
		assert all(k is keys[0] for k in keys)

	def test_keys_are_per_provider(self):
		registry = AccountKeyRegistry()

		async def go():
			return await registry.get("letsencrypt"), await registry.get("zerossl")

		a, b = asyncio.run(go())
		assert a is not b
		assert registry.peek("zerossl") is b

	def test_forget(self):
		registry = AccountKeyRegistry()
		first = asyncio.run(registry.get("buypass"))
		registry.forget("buypass")
		assert registry.peek("buypass") is None
		assert asyncio.run(registry.get("buypass")) is not first

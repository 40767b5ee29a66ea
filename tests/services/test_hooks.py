#!/usr/bin/env python3
#
# tests/services/test_hooks.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.services.hooks."""

from __future__ import annotations

import asyncio
import sys

import pytest

from certkeeper.services.hooks import HookExecutor, hook_environment

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="hooks run through a POSIX shell")


def _run(executor, record_id, script):
	return asyncio.run(executor.run(
		record_id,
		script,
		domain="example.com",
		certificate="CERT-PEM",
		private_key="KEY-PEM",
	))


class TestHookEnvironment:
	def test_variables_set(self):
		env = hook_environment("example.com", "C", "K", base={"PATH": "/bin"})
		assert env == {"PATH": "/bin", "CERT_DOMAIN": "example.com", "CERT_CERTIFICATE": "C", "CERT_PRIVATE_KEY": "K"}


class TestHookExecutor:
	def test_success_captures_output(self, store):
		record = store.create("example.com")
		log = _run(HookExecutor(store), record.id, 'echo "$CERT_DOMAIN"; echo "$CERT_CERTIFICATE"')
		assert log.success is True
		assert log.output == "example.com\nCERT-PEM\n"
		assert store.get_hook_logs(record.id)[0].output == log.output

	def test_stderr_merged(self, store):
		record = store.create("example.com")
		log = _run(HookExecutor(store), record.id, "echo oops >&2")
		assert "oops" in log.output

	def test_non_zero_exit_recorded_as_failure(self, store):
		record = store.create("example.com")
		log = _run(HookExecutor(store), record.id, "echo broken; exit 3")
		assert log.success is False
		assert "broken" in log.output
		assert store.get_hook_logs(record.id)[0].success is False

	def test_silent_failure_reports_exit_code(self, store):
		record = store.create("example.com")
		log = _run(HookExecutor(store), record.id, "exit 2")
		assert log.output == "Hook exited with code 2"

	def test_timeout(self, store):
		record = store.create("example.com")
		log = _run(HookExecutor(store, timeout_seconds=0.2), record.id, "sleep 5")
		assert log.success is False
		assert "timed out" in log.output

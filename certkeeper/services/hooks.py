#!/usr/bin/env python3
#
# certkeeper/services/hooks.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Deployment hook execution.

The hook is an operator-supplied shell command. It receives the issued
material through ``CERT_DOMAIN``, ``CERT_CERTIFICATE`` and
``CERT_PRIVATE_KEY`` on top of the service's own environment, so anything
it prints or spawns can see the private key.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Mapping, Optional

from ..errors import HookExecutionError
from ..models.certificates import HookExecutionLog

_log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0


async def _communicate_with_timeout(
	proc: asyncio.subprocess.Process,
	*,
	timeout_seconds: float,
) -> tuple[Optional[bytes], Optional[bytes]]:
	"""Wait for subprocess with timeout; kill on timeout and re-raise."""
	try:
		return await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
	except asyncio.TimeoutError:
		if proc.returncode is None:
			proc.kill()
			await proc.communicate()
		raise


def hook_environment(
	domain: str,
	certificate: str,
	private_key: str,
	base: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
	env = dict(os.environ if base is None else base)
	env["CERT_DOMAIN"] = domain
	env["CERT_CERTIFICATE"] = certificate
	env["CERT_PRIVATE_KEY"] = private_key
	return env


class HookExecutor:
	"""Runs hooks and appends one log entry per run to the store."""

	def __init__(self, store, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS, environ: Optional[Mapping[str, str]] = None) -> None:
		self._store = store
		self._timeout = timeout_seconds
		self._environ = environ

	async def _execute(self, script: str, env: dict[str, str]) -> str:
		"""Run ``script`` and return its combined output.

		Raises:
			HookExecutionError: non-zero exit, timeout or launch failure
		"""
		try:
			proc = await asyncio.create_subprocess_shell(
				script,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.STDOUT,
				env=env,
			)
		except OSError as exc:
			raise HookExecutionError(f"Failed to start hook: {exc}") from exc

		try:
			stdout, _ = await _communicate_with_timeout(proc, timeout_seconds=self._timeout)
		except asyncio.TimeoutError as exc:
			raise HookExecutionError(f"Hook timed out after {self._timeout:.0f}s") from exc

		output = (stdout or b"").decode("utf-8", errors="replace")
		if proc.returncode != 0:
			raise HookExecutionError(output or f"Hook exited with code {proc.returncode}")
		return output

	async def run(
		self,
		certificate_id: int,
		script: str,
		*,
		domain: str,
		certificate: str,
		private_key: str,
	) -> HookExecutionLog:
		"""Execute the hook; failures are logged and recorded, never raised."""
		env = hook_environment(domain, certificate, private_key, self._environ)
		try:
			output = await self._execute(script, env)
			success = True
			_log.info("HOOK cert=%s domain=%s succeeded", certificate_id, domain)
		except HookExecutionError as exc:
			output = str(exc)
			success = False
			_log.warning("HOOK cert=%s domain=%s failed: %s", certificate_id, domain, output.strip()[:200])
		return self._store.log_hook_execution(certificate_id, success, output)

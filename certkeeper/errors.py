#!/usr/bin/env python3
#
# certkeeper/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Error taxonomy shared by the certificate lifecycle services.

- ConfigurationError: missing credentials/secrets, never retried
- UnknownProviderError: bad provider name (input or programming error)
- ProviderError: a DNS API rejected a request
- ProtocolError: an ACME order failed
- HookExecutionError: deployment hook failed (captured, logged only)
- NotFoundError: certificate record does not exist
"""

from __future__ import annotations

from typing import Iterable, Optional


class CertkeeperError(Exception):
	"""Base class for all lifecycle errors."""


class ConfigurationError(CertkeeperError):
	"""Required configuration (usually environment variables) is missing."""

	def __init__(self, message: str, missing: Iterable[str] = ()) -> None:
		self.missing = list(missing)
		if self.missing and not all(name in message for name in self.missing):
			message = f"{message} (missing: {', '.join(self.missing)})"
		super().__init__(message)

	@classmethod
	def for_variables(cls, *names: str) -> "ConfigurationError":
		"""Build an error naming every missing environment variable."""
		joined = " and ".join(names)
		verb = "is" if len(names) == 1 else "are"
		return cls(f"{joined} {verb} not configured", missing=names)


class UnknownProviderError(CertkeeperError):
	"""Provider name is not present in the relevant catalog/registry."""

	def __init__(self, kind: str, name: str) -> None:
		self.kind = kind
		self.name = name
		super().__init__(f"Unknown {kind} provider: {name}")


class ProviderError(CertkeeperError):
	"""DNS provider API rejected a request or could not be reached."""

	def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
		self.provider = provider
		self.status_code = status_code
		super().__init__(f"{provider}: {message}")


class ProtocolError(CertkeeperError):
	"""ACME interaction failed (transport or protocol level)."""


class HookExecutionError(CertkeeperError):
	"""Deployment hook exited non-zero or could not be started."""


class NotFoundError(CertkeeperError):
	"""Requested record does not exist."""

#!/usr/bin/env python3
#
# certkeeper/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and app-level defaults."""

from __future__ import annotations

import logging
import os
import sys
import threading
from dataclasses import dataclass
from pathlib import Path

_log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
	"""Resolved runtime configuration derived from env and defaults."""
	base_dir: Path
	data_dir: Path
	db_path: Path
	log_level: str = "INFO"
	secret_key: str = ""
	acme_email: str = "admin@example.com"
	acme_staging: bool = False
	acme_default_provider: str = "letsencrypt"
	cron_secret: str | None = None
	renew_before_days: int = 30
	order_timeout_seconds: float = 600.0
	hook_timeout_seconds: float = 300.0
	dns_propagation_seconds: float = 10.0
	renew_interval_seconds: float = 43200.0


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments."""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Load simple KEY=VALUE pairs from settings.env.

	Behavior:
	- Ignores blank lines and comments (# ...)
	- Handles `export KEY=VALUE` syntax
	- Respects quoted values (doesn't strip # inside quotes)
	- Does not override already-set environment variables
	"""
	project_root = Path(__file__).resolve().parents[2]
	dotenv_path = dotenv_path or (project_root / "settings.env")
	if not dotenv_path.exists():
		return
	for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
		line = raw_line.strip()
		if not line or line.startswith("#") or "=" not in line:
			continue
		key, value = line.split("=", 1)
		key = key.strip()
		if key.startswith("export "):
			key = key[7:].strip()
		if not key:
			continue
		os.environ.setdefault(key, _parse_value(value))


def env_flag(name: str, default: bool = False) -> bool:
	"""Read a boolean-ish environment variable."""
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	return raw.strip().lower() in _TRUTHY


def _env_number(name: str, default: float, *, minimum: float = 0.0) -> float:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ConfigValidationError(f"{name} must be a number, got {raw!r}") from exc
	if value < minimum:
		raise ConfigValidationError(f"{name} must be >= {minimum}, got {value}")
	return value


def load_config() -> Config:
	"""Load configuration from environment variables (optionally via settings.env)."""
	load_dotenv()
	project_root = Path(__file__).resolve().parents[2]

	data_dir = Path(os.getenv("CERTKEEPER_DATA_DIR", str(project_root / "data"))).resolve()
	db_path = (data_dir / "certkeeper.db").resolve()

	try:
		if data_dir.exists() and not data_dir.is_dir():
			raise ConfigValidationError(f"Path exists but is not a directory: {data_dir}")
		data_dir.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		raise ConfigValidationError(f"Cannot create data directory: {exc}") from exc

	allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
	log_level = os.getenv("LOG_LEVEL", "INFO").upper()
	if log_level not in allowed_levels:
		log_level = "INFO"

	# Private keys are encrypted at rest with this pepper
	secret_key = os.getenv("CERTKEEPER_SECRET_KEY", "")
	if not secret_key:
		if "pytest" not in sys.modules and "PYTEST_CURRENT_TEST" not in os.environ:
			raise ConfigValidationError(
				"CERTKEEPER_SECRET_KEY is not set. "
				"Refusing to start without a secret key. "
				"Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
			)
		secret_key = "test-only-secret-do-not-use-in-production"
		_log.debug("Using test-only secret key")

	return Config(
		base_dir=project_root,
		data_dir=data_dir,
		db_path=db_path,
		log_level=log_level,
		secret_key=secret_key,
		acme_email=os.getenv("ACME_EMAIL", "").strip() or "admin@example.com",
		acme_staging=env_flag("ACME_STAGING"),
		acme_default_provider=os.getenv("ACME_DEFAULT_PROVIDER", "").strip() or "letsencrypt",
		cron_secret=os.getenv("CRON_SECRET") or None,
		renew_before_days=int(_env_number("RENEW_BEFORE_DAYS", 30, minimum=1)),
		order_timeout_seconds=_env_number("ORDER_TIMEOUT_SECONDS", 600.0, minimum=1.0),
		hook_timeout_seconds=_env_number("HOOK_TIMEOUT_SECONDS", 300.0, minimum=1.0),
		dns_propagation_seconds=_env_number("DNS_PROPAGATION_SECONDS", 10.0),
		renew_interval_seconds=_env_number("RENEW_INTERVAL_SECONDS", 43200.0, minimum=60.0),
	)


# Global config singleton with thread-safe lazy initialization
_config: Config | None = None
_config_lock = threading.Lock()


def get_config() -> Config:
	"""Get the global config singleton (thread-safe)."""
	global _config
	if _config is None:
		with _config_lock:
			if _config is None:
				_config = load_config()
	return _config


def reset_config() -> None:
	"""Reset the cached config. Intended for tests only."""
	global _config
	with _config_lock:
		_config = None

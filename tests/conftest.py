#!/usr/bin/env python3
#
# tests/conftest.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Root conftest for the certkeeper test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from certkeeper.db.store import SqliteRecordStore
from certkeeper.utils.config import reset_config
from certkeeper.utils.rate_limit import limiter

# Every credential / channel variable the registries and channels read
CREDENTIAL_VARS = (
	"CLOUDFLARE_API_TOKEN",
	"AWS_ACCESS_KEY_ID",
	"AWS_SECRET_ACCESS_KEY",
	"AWS_REGION",
	"GODADDY_API_KEY",
	"GODADDY_API_SECRET",
	"DIGITALOCEAN_API_TOKEN",
	"ZEROSSL_EAB_KID",
	"ZEROSSL_EAB_HMAC_KEY",
	"GOOGLE_EAB_KID",
	"GOOGLE_EAB_HMAC_KEY",
	"SSLCOM_EAB_KID",
	"SSLCOM_EAB_HMAC_KEY",
	"SMTP_HOST",
	"SMTP_PORT",
	"SMTP_USER",
	"SMTP_PASS",
	"NOTIFY_EMAIL",
	"NOTIFY_WEBHOOK_URL",
	"TELEGRAM_BOT_TOKEN",
	"TELEGRAM_CHAT_ID",
	"CRON_SECRET",
)

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Environment isolation: autouse so no test sees the developer's secrets
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
	for name in CREDENTIAL_VARS:
		monkeypatch.delenv(name, raising=False)
	reset_config()
	limiter.reset()
	yield
	reset_config()


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------


@pytest.fixture()
def store():
	"""In-memory SQLite store with the full schema."""
	s = SqliteRecordStore.open(":memory:", pepper="test-pepper")
	yield s
	s.close()


@pytest.fixture()
def fixed_now() -> datetime:
	return FIXED_NOW

#!/usr/bin/env python3
#
# tests/models/test_models.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.models.certificates."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from certkeeper.models.certificates import (
	CertificateCreate,
	CertificateRecord,
	computed_status,
	is_valid_domain,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestComputedStatus:
	@pytest.mark.parametrize(
		"expires_at,expected",
		[
			(None, "pending"),
			(NOW - timedelta(days=1), "expired"),
			(NOW + timedelta(days=29, hours=23), "expiring"),
			(NOW + timedelta(days=30), "valid"),
		],
	)
	def test_classification(self, expires_at, expected):
		assert computed_status(expires_at, NOW) == expected


class TestCertificateRecord:
	def test_public_view_hides_key(self):
		record = CertificateRecord(
			id=1,
			domain="example.com",
			status="valid",
			expires_at=NOW + timedelta(days=10),
			private_key="secret",
		)
		public = record.to_public(NOW)
		assert "private_key" not in public
		assert public["has_private_key"] is True
		assert public["days_until_expiry"] == 10
		assert public["computed_status"] == "expiring"


class TestCertificateCreate:
	def test_domain_normalized(self):
		assert CertificateCreate(domain="WWW.Example.com").domain == "www.example.com"

	def test_dns_needs_provider(self):
		with pytest.raises(ValidationError):
			CertificateCreate(domain="example.com", challenge_type="dns")

	def test_wildcards_rejected(self):
		assert not is_valid_domain("*.example.com")
		assert is_valid_domain("a-b.example.com")

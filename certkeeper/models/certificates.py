#!/usr/bin/env python3
#
# certkeeper/models/certificates.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate lifecycle records and API payload models."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.time import days_until

CertificateStatus = Literal["pending", "valid", "expired", "error"]
ChallengeType = Literal["http", "dns"]

# RFC 1123 hostname (no wildcard support)
DOMAIN_PATTERN = r"^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$"

# Threshold below which a valid certificate is reported as "expiring"
EXPIRING_WINDOW_DAYS = 30


@dataclass
class CertificateRecord:
	"""One managed certificate, keyed by domain."""
	id: int
	domain: str
	status: CertificateStatus = "pending"
	issued_at: Optional[datetime] = None
	expires_at: Optional[datetime] = None
	certificate: Optional[str] = None
	private_key: Optional[str] = None
	challenge_type: ChallengeType = "http"
	dns_provider: Optional[str] = None
	acme_provider: Optional[str] = None
	auto_renew: bool = True
	hook_script: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def to_public(self, now: datetime) -> dict:
		"""Serializable view without the private key."""
		return {
			"id": self.id,
			"domain": self.domain,
			"status": self.status,
			"computed_status": computed_status(self.expires_at, now),
			"days_until_expiry": days_until(self.expires_at, now) if self.expires_at else None,
			"issued_at": self.issued_at.isoformat() if self.issued_at else None,
			"expires_at": self.expires_at.isoformat() if self.expires_at else None,
			"certificate": self.certificate,
			"has_private_key": self.private_key is not None,
			"challenge_type": self.challenge_type,
			"dns_provider": self.dns_provider,
			"acme_provider": self.acme_provider,
			"auto_renew": self.auto_renew,
			"hook_script": self.hook_script,
		}


@dataclass(frozen=True)
class ChallengeToken:
	"""HTTP-01 token awaiting validation by the CA."""
	domain: str
	token: str
	key_authorization: str


@dataclass(frozen=True)
class NotificationRecord:
	"""A threshold notification already delivered on one channel."""
	certificate_id: int
	notification_type: str
	channel: str


@dataclass(frozen=True)
class HookExecutionLog:
	"""Append-only record of one deployment hook run."""
	certificate_id: int
	executed_at: datetime
	success: bool
	output: str


def computed_status(expires_at: Optional[datetime], now: datetime) -> str:
	"""Classify a certificate by remaining validity."""
	if expires_at is None:
		return "pending"
	days = days_until(expires_at, now)
	if days < 0:
		return "expired"
	if days < EXPIRING_WINDOW_DAYS:
		return "expiring"
	return "valid"


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

class CertificateCreate(BaseModel):
	"""Certificate creation payload."""
	domain: str = Field(..., min_length=1, max_length=253, pattern=DOMAIN_PATTERN)
	challenge_type: ChallengeType = "http"
	dns_provider: Optional[str] = Field(None, max_length=32)
	acme_provider: Optional[str] = Field(None, max_length=32)
	auto_renew: bool = True
	hook_script: Optional[str] = Field(None, max_length=4096)
	issue_now: bool = False

	@field_validator("domain")
	@classmethod
	def normalize_domain(cls, v: str) -> str:
		return v.strip().lower()

	@model_validator(mode="after")
	def dns_requires_provider(self) -> "CertificateCreate":
		if self.challenge_type == "dns" and not self.dns_provider:
			raise ValueError("dns_provider is required when challenge_type is 'dns'")
		return self


class CertificateUpdate(BaseModel):
	"""Certificate settings update payload (lifecycle fields are not editable)."""
	challenge_type: Optional[ChallengeType] = None
	dns_provider: Optional[str] = Field(None, max_length=32)
	acme_provider: Optional[str] = Field(None, max_length=32)
	auto_renew: Optional[bool] = None
	hook_script: Optional[str] = Field(None, max_length=4096)


class NotificationSettingUpdate(BaseModel):
	"""Enable or disable a notification channel."""
	channel: Literal["email", "webhook", "telegram"]
	enabled: bool


def is_valid_domain(domain: str) -> bool:
	"""Check a hostname against the RFC 1123 pattern."""
	return bool(re.fullmatch(DOMAIN_PATTERN, domain or ""))

#!/usr/bin/env python3
#
# certkeeper/db/sqlite_certificates.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Certificate row CRUD and renewal-window queries."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from typing import Any, Optional

from ..utils.time import utcnow
from .sqlite_runtime import transaction

# Columns writable through update_certificate
UPDATABLE_COLUMNS = frozenset({
	"status",
	"issued_at",
	"expires_at",
	"certificate",
	"private_key",
	"challenge_type",
	"dns_provider",
	"acme_provider",
	"auto_renew",
	"hook_script",
})


def get_certificate(conn: sqlite3.Connection, certificate_id: int) -> Optional[sqlite3.Row]:
	cur = conn.execute("SELECT * FROM certificates WHERE id = ?", (certificate_id,))
	return cur.fetchone()


def get_certificate_by_domain(conn: sqlite3.Connection, domain: str) -> Optional[sqlite3.Row]:
	"""Domains are stored lowercase, so plain equality can use the index."""
	cur = conn.execute("SELECT * FROM certificates WHERE domain = ?", (domain.strip().lower(),))
	return cur.fetchone()


def list_certificates(conn: sqlite3.Connection) -> list[sqlite3.Row]:
	cur = conn.execute("SELECT * FROM certificates ORDER BY domain")
	return cur.fetchall()


def create_certificate(
	conn: sqlite3.Connection,
	domain: str,
	*,
	challenge_type: str = "http",
	dns_provider: Optional[str] = None,
	acme_provider: Optional[str] = None,
	auto_renew: bool = True,
	hook_script: Optional[str] = None,
) -> int:
	"""Insert a pending certificate and return its id.

	Raises:
		sqlite3.IntegrityError: domain already exists
	"""
	now = utcnow()
	with transaction(conn):
		cur = conn.execute(
			"""
			INSERT INTO certificates (
				domain, status, challenge_type, dns_provider, acme_provider,
				auto_renew, hook_script, created_at, updated_at
			) VALUES (?, 'pending', ?, ?, ?, ?, ?, ?, ?)
			""",
			(domain.strip().lower(), challenge_type, dns_provider, acme_provider, int(auto_renew), hook_script, now, now),
		)
		return cur.lastrowid


def update_certificate(conn: sqlite3.Connection, certificate_id: int, fields: dict[str, Any]) -> bool:
	"""Apply a partial update; returns False when the row does not exist."""
	unknown = set(fields) - UPDATABLE_COLUMNS
	if unknown:
		raise ValueError(f"Cannot update column(s): {', '.join(sorted(unknown))}")
	if not fields:
		return get_certificate(conn, certificate_id) is not None

	values = dict(fields)
	if "auto_renew" in values:
		values["auto_renew"] = int(bool(values["auto_renew"]))
	values["updated_at"] = utcnow()
	assignments = ", ".join(f"{col} = ?" for col in values)
	with transaction(conn):
		cur = conn.execute(
			f"UPDATE certificates SET {assignments} WHERE id = ?",
			(*values.values(), certificate_id),
		)
		return cur.rowcount > 0


def delete_certificate(conn: sqlite3.Connection, certificate_id: int) -> bool:
	"""Delete a certificate; hook logs and notification records cascade."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM certificates WHERE id = ?", (certificate_id,))
		return cur.rowcount > 0


def list_for_auto_renew(conn: sqlite3.Connection, within_days: int, now: Optional[datetime] = None) -> list[sqlite3.Row]:
	"""Auto-renew certificates never issued or expiring inside the window."""
	cutoff = (now or utcnow()) + timedelta(days=within_days)
	cur = conn.execute(
		"""
		SELECT * FROM certificates
		WHERE auto_renew = 1 AND (expires_at IS NULL OR expires_at <= ?)
		ORDER BY expires_at IS NOT NULL, expires_at, domain
		""",
		(cutoff,),
	)
	return cur.fetchall()


def list_expiring(conn: sqlite3.Connection, within_days: int, now: Optional[datetime] = None) -> list[sqlite3.Row]:
	"""Certificates with an expiry inside the window (expired ones included)."""
	cutoff = (now or utcnow()) + timedelta(days=within_days)
	cur = conn.execute(
		"SELECT * FROM certificates WHERE expires_at IS NOT NULL AND expires_at <= ? ORDER BY expires_at",
		(cutoff,),
	)
	return cur.fetchall()

#!/usr/bin/env python3
#
# certkeeper/db/sqlite_schema.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite schema initialization."""

from __future__ import annotations

import logging
import sqlite3

from .sqlite_runtime import transaction

_log = logging.getLogger(__name__)


def init_schema(conn: sqlite3.Connection) -> None:
	"""Create the complete schema (idempotent)."""
	with transaction(conn):
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS certificates (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				domain TEXT NOT NULL UNIQUE,
				status TEXT NOT NULL DEFAULT 'pending'
					CHECK (status IN ('pending', 'valid', 'expired', 'error')),
				issued_at timestamp,
				expires_at timestamp,
				certificate TEXT,
				private_key TEXT,
				challenge_type TEXT NOT NULL DEFAULT 'http' CHECK (challenge_type IN ('http', 'dns')),
				dns_provider TEXT,
				acme_provider TEXT,
				auto_renew INTEGER NOT NULL DEFAULT 1,
				hook_script TEXT,
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_certificates_expires_at ON certificates(expires_at)")

		# HTTP-01 tokens; several may coexist per domain while an order runs
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS challenge_tokens (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				domain TEXT NOT NULL,
				token TEXT NOT NULL UNIQUE,
				key_authorization TEXT NOT NULL,
				created_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_challenge_tokens_domain ON challenge_tokens(domain)")

		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS hook_logs (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				certificate_id INTEGER NOT NULL,
				executed_at timestamp NOT NULL,
				success INTEGER NOT NULL,
				output TEXT NOT NULL DEFAULT '',
				FOREIGN KEY(certificate_id) REFERENCES certificates(id) ON DELETE CASCADE
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_hook_logs_certificate ON hook_logs(certificate_id)")

		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS notification_settings (
				channel TEXT PRIMARY KEY,
				enabled INTEGER NOT NULL DEFAULT 1,
				updated_at timestamp NOT NULL
			)
			"""
		)

		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS notifications_sent (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				certificate_id INTEGER NOT NULL,
				notification_type TEXT NOT NULL,
				channel TEXT NOT NULL,
				sent_at timestamp NOT NULL,
				UNIQUE(certificate_id, notification_type, channel),
				FOREIGN KEY(certificate_id) REFERENCES certificates(id) ON DELETE CASCADE
			)
			"""
		)

		# Leader election (multi-worker safety)
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS app_lock (
				id INTEGER PRIMARY KEY CHECK (id = 1),
				pid INTEGER NOT NULL,
				acquired_at timestamp NOT NULL
			)
			"""
		)
	_log.debug("DB schema ready")

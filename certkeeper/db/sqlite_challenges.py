#!/usr/bin/env python3
#
# certkeeper/db/sqlite_challenges.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""HTTP-01 challenge token storage."""

from __future__ import annotations

import sqlite3
from typing import Optional

from ..utils.time import utcnow
from .sqlite_runtime import transaction


def save_challenge_token(conn: sqlite3.Connection, domain: str, token: str, key_authorization: str) -> None:
	"""Store (or replace) a token; the same token re-issued overwrites."""
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO challenge_tokens (domain, token, key_authorization, created_at)
			VALUES (?, ?, ?, ?)
			ON CONFLICT(token) DO UPDATE SET
				domain = excluded.domain,
				key_authorization = excluded.key_authorization,
				created_at = excluded.created_at
			""",
			(domain, token, key_authorization, utcnow()),
		)


def get_challenge_token(conn: sqlite3.Connection, token: str) -> Optional[sqlite3.Row]:
	cur = conn.execute("SELECT * FROM challenge_tokens WHERE token = ?", (token,))
	return cur.fetchone()


def delete_challenge_tokens(conn: sqlite3.Connection, domain: str) -> int:
	"""Remove every token for ``domain``; returns the number deleted."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM challenge_tokens WHERE domain = ?", (domain,))
		return cur.rowcount

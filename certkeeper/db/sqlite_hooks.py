#!/usr/bin/env python3
#
# certkeeper/db/sqlite_hooks.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Append-only deployment hook log."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from .sqlite_runtime import transaction

# Output beyond this is truncated before storage
MAX_OUTPUT_CHARS = 64 * 1024


def insert_hook_log(conn: sqlite3.Connection, certificate_id: int, executed_at: datetime, success: bool, output: str) -> int:
	with transaction(conn):
		cur = conn.execute(
			"INSERT INTO hook_logs (certificate_id, executed_at, success, output) VALUES (?, ?, ?, ?)",
			(certificate_id, executed_at, int(success), (output or "")[:MAX_OUTPUT_CHARS]),
		)
		return cur.lastrowid


def list_hook_logs(conn: sqlite3.Connection, certificate_id: int, limit: int = 50) -> list[sqlite3.Row]:
	"""Newest first."""
	cur = conn.execute(
		"SELECT * FROM hook_logs WHERE certificate_id = ? ORDER BY executed_at DESC, id DESC LIMIT ?",
		(certificate_id, limit),
	)
	return cur.fetchall()

#!/usr/bin/env python3
#
# certkeeper/db/sqlite_leader.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Leader election so only one worker runs scheduled lifecycle passes."""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import timedelta

from ..utils.time import utcnow

_log = logging.getLogger(__name__)

# A lock not refreshed for this long may be taken over
STALE_AFTER = timedelta(seconds=60)


def _owner_is_dead(owner_pid: int, pid: int) -> bool:
	if owner_pid <= 0 or owner_pid == pid:
		return False
	try:
		os.kill(owner_pid, 0)
	except ProcessLookupError:
		return True
	except OSError:
		# Other UID / PID namespace: leave it to the staleness check
		return False
	return False


def try_acquire_leader_lock(conn: sqlite3.Connection) -> bool:
	"""Take or refresh the single-row leader lock for this process."""
	pid = os.getpid()
	now = utcnow()
	started_tx = False
	try:
		if not conn.in_transaction:
			conn.execute("BEGIN IMMEDIATE")
			started_tx = True

		row = conn.execute("SELECT pid FROM app_lock WHERE id = 1").fetchone()
		takeover = 0
		if row is not None:
			try:
				takeover = int(_owner_is_dead(int(row["pid"]), pid))
			except (TypeError, ValueError):
				takeover = 1

		conn.execute(
			"""
			INSERT INTO app_lock (id, pid, acquired_at)
			VALUES (1, ?, ?)
			ON CONFLICT(id) DO UPDATE SET pid = excluded.pid, acquired_at = excluded.acquired_at
			WHERE pid = ? OR acquired_at < ? OR ? = 1
			""",
			(pid, now, pid, now - STALE_AFTER, takeover),
		)

		row = conn.execute("SELECT pid FROM app_lock WHERE id = 1").fetchone()
		acquired = row is not None and row["pid"] == pid
		if started_tx:
			conn.commit()
		return acquired
	except sqlite3.Error as e:
		if started_tx and conn.in_transaction:
			conn.rollback()
		_log.warning("LEADER acquire failed: %s", e)
		return False


def release_leader_lock(conn: sqlite3.Connection) -> bool:
	"""Release the lock if held by this process."""
	try:
		conn.execute("DELETE FROM app_lock WHERE id = 1 AND pid = ?", (os.getpid(),))
		conn.commit()
		return True
	except sqlite3.Error as e:
		_log.warning("LEADER release failed: %s", e)
		return False


def is_leader(conn: sqlite3.Connection) -> bool:
	try:
		row = conn.execute("SELECT pid FROM app_lock WHERE id = 1").fetchone()
	except sqlite3.Error:
		return False
	return row is not None and row["pid"] == os.getpid()

#!/usr/bin/env python3
#
# certkeeper/tasks/maintenance.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Periodic database housekeeping."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

import aiosqlite

from ..utils.time import utcnow

_log = logging.getLogger(__name__)

__all__ = ["sqlite_maintenance", "purge_stale_challenge_tokens"]

# HTTP-01 tokens older than this belong to orders that died mid-flight
STALE_TOKEN_AGE = timedelta(hours=24)


async def sqlite_maintenance(db_path: Path) -> None:
	"""WAL checkpoint, ANALYZE and PRAGMA optimize on a side connection."""
	if not Path(db_path).exists():
		_log.warning("MAINTENANCE SQLite database not found at %s", db_path)
		return
	try:
		async with aiosqlite.connect(db_path) as db:
			await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
			await db.execute("ANALYZE")
			await db.execute("PRAGMA optimize")
	except Exception:
		_log.exception("MAINTENANCE SQLite maintenance failed")
		raise
	_log.info("MAINTENANCE SQLite maintenance completed")


async def purge_stale_challenge_tokens(db_path: Path, max_age: timedelta = STALE_TOKEN_AGE) -> int:
	"""Delete HTTP-01 tokens left behind by crashed processes."""
	if not Path(db_path).exists():
		return 0
	cutoff = (utcnow() - max_age).isoformat().replace("+00:00", "Z")
	async with aiosqlite.connect(db_path) as db:
		cursor = await db.execute("DELETE FROM challenge_tokens WHERE created_at < ?", (cutoff,))
		await db.commit()
		deleted = cursor.rowcount
	if deleted > 0:
		_log.info("MAINTENANCE purged %d stale challenge token(s)", deleted)
	return deleted

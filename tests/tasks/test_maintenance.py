#!/usr/bin/env python3
#
# tests/tasks/test_maintenance.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.tasks.maintenance."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from certkeeper.db.store import SqliteRecordStore
from certkeeper.tasks.maintenance import purge_stale_challenge_tokens, sqlite_maintenance
from certkeeper.utils.time import utcnow


class TestPurgeStaleChallengeTokens:
	def test_only_old_tokens_removed(self, tmp_path):
		db_path = tmp_path / "certkeeper.db"
		store = SqliteRecordStore.open(db_path, pepper="p")
		try:
			store.save_challenge_token("example.com", "fresh", "fresh.thumb")
			store.conn.execute(
				"INSERT INTO challenge_tokens (domain, token, key_authorization, created_at) VALUES (?, ?, ?, ?)",
				("example.com", "stale", "stale.thumb", utcnow() - timedelta(days=2)),
			)
			store.conn.commit()

			assert asyncio.run(purge_stale_challenge_tokens(db_path)) == 1
			assert store.get_challenge_token("fresh") is not None
			assert store.get_challenge_token("stale") is None
		finally:
			store.close()

	def test_missing_database(self, tmp_path):
		assert asyncio.run(purge_stale_challenge_tokens(tmp_path / "absent.db")) == 0


class TestSqliteMaintenance:
	def test_runs_on_existing_database(self, tmp_path):
		db_path = tmp_path / "certkeeper.db"
		SqliteRecordStore.open(db_path, pepper="p").close()
		asyncio.run(sqlite_maintenance(db_path))

	def test_missing_database_is_noop(self, tmp_path):
		asyncio.run(sqlite_maintenance(tmp_path / "absent.db"))

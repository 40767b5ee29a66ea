#!/usr/bin/env python3
#
# certkeeper/db/sqlite_notifications.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Notification channel settings and sent-notification bookkeeping."""

from __future__ import annotations

import sqlite3
from typing import Optional

from ..utils.time import utcnow
from .sqlite_runtime import transaction


# ---------------------------------------------------------------------------
# Channel settings
# ---------------------------------------------------------------------------

def get_notification_settings(conn: sqlite3.Connection) -> dict[str, bool]:
	"""Stored ``{channel: enabled}``; channels never stored are absent."""
	cur = conn.execute("SELECT channel, enabled FROM notification_settings")
	return {row["channel"]: bool(row["enabled"]) for row in cur.fetchall()}


def upsert_notification_setting(conn: sqlite3.Connection, channel: str, enabled: bool) -> None:
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO notification_settings (channel, enabled, updated_at) VALUES (?, ?, ?)
			ON CONFLICT(channel) DO UPDATE SET enabled = excluded.enabled, updated_at = excluded.updated_at
			""",
			(channel, int(enabled), utcnow()),
		)


# ---------------------------------------------------------------------------
# Sent notifications
# ---------------------------------------------------------------------------

def has_notification_been_sent(
	conn: sqlite3.Connection,
	certificate_id: int,
	notification_type: str,
	channel: Optional[str] = None,
) -> bool:
	"""Whether the type was recorded, on ``channel`` or on any channel when None."""
	if channel is None:
		cur = conn.execute(
			"SELECT 1 FROM notifications_sent WHERE certificate_id = ? AND notification_type = ? LIMIT 1",
			(certificate_id, notification_type),
		)
	else:
		cur = conn.execute(
			"""
			SELECT 1 FROM notifications_sent
			WHERE certificate_id = ? AND notification_type = ? AND channel = ? LIMIT 1
			""",
			(certificate_id, notification_type, channel),
		)
	return cur.fetchone() is not None


def record_notification(conn: sqlite3.Connection, certificate_id: int, notification_type: str, channel: str) -> None:
	"""Idempotent: recording the same triple twice keeps one row."""
	with transaction(conn):
		conn.execute(
			"""
			INSERT OR IGNORE INTO notifications_sent (certificate_id, notification_type, channel, sent_at)
			VALUES (?, ?, ?, ?)
			""",
			(certificate_id, notification_type, channel, utcnow()),
		)


def list_notifications(conn: sqlite3.Connection, certificate_id: int) -> list[sqlite3.Row]:
	cur = conn.execute(
		"SELECT * FROM notifications_sent WHERE certificate_id = ? ORDER BY sent_at, id",
		(certificate_id,),
	)
	return cur.fetchall()


def clear_notifications(conn: sqlite3.Connection, certificate_id: int) -> int:
	with transaction(conn):
		cur = conn.execute("DELETE FROM notifications_sent WHERE certificate_id = ?", (certificate_id,))
		return cur.rowcount

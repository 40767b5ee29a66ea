#!/usr/bin/env python3
#
# certkeeper/db/store.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Record store consumed by the lifecycle services.

Wraps the ``sqlite_*`` helpers behind one object that speaks in model
dataclasses. Every method is synchronous and atomic; a process-wide lock
serializes access to the shared connection.
"""

from __future__ import annotations

import functools
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from ..errors import NotFoundError
from ..models.certificates import CertificateRecord, ChallengeToken, HookExecutionLog, NotificationRecord
from ..utils import vault
from ..utils.time import utcnow
from . import sqlite_certificates as certs
from . import sqlite_challenges as challenges
from . import sqlite_hooks as hooks
from . import sqlite_leader as leader
from . import sqlite_notifications as notifications
from .sqlite_runtime import close_connection, connect
from .sqlite_schema import init_schema

_log = logging.getLogger(__name__)


class SqliteRecordStore:
	"""Certificates, challenge tokens, hook logs and notification state."""

	def __init__(self, conn: sqlite3.Connection, *, pepper: str) -> None:
		if not pepper:
			raise ValueError("A secret key is required to store private keys")
		self.conn = conn
		self._pepper = pepper
		self._lock = threading.RLock()
		# PBKDF2 per row is slow; cache plaintext by ciphertext
		self._decrypt = functools.lru_cache(maxsize=256)(self._decrypt_uncached)

	@classmethod
	def open(cls, db_path: Union[Path, str], *, pepper: str) -> "SqliteRecordStore":
		"""Connect, create the schema if needed, and wrap the connection."""
		conn = connect(db_path)
		init_schema(conn)
		return cls(conn, pepper=pepper)

	def close(self) -> None:
		with self._lock:
			close_connection(self.conn)

	# -- mapping -----------------------------------------------------------

	def _decrypt_uncached(self, stored: str) -> str:
		return vault.decrypt(stored, self._pepper)

	def _to_record(self, row: Optional[sqlite3.Row]) -> Optional[CertificateRecord]:
		if row is None:
			return None
		private_key = row["private_key"]
		return CertificateRecord(
			id=row["id"],
			domain=row["domain"],
			status=row["status"],
			issued_at=row["issued_at"],
			expires_at=row["expires_at"],
			certificate=row["certificate"],
			private_key=self._decrypt(private_key) if private_key else None,
			challenge_type=row["challenge_type"],
			dns_provider=row["dns_provider"],
			acme_provider=row["acme_provider"],
			auto_renew=bool(row["auto_renew"]),
			hook_script=row["hook_script"],
			created_at=row["created_at"],
			updated_at=row["updated_at"],
		)

	# -- certificates ------------------------------------------------------

	def get(self, certificate_id: int) -> Optional[CertificateRecord]:
		with self._lock:
			return self._to_record(certs.get_certificate(self.conn, certificate_id))

	def get_by_domain(self, domain: str) -> Optional[CertificateRecord]:
		with self._lock:
			return self._to_record(certs.get_certificate_by_domain(self.conn, domain))

	def list(self) -> list[CertificateRecord]:
		with self._lock:
			return [self._to_record(row) for row in certs.list_certificates(self.conn)]

	def create(
		self,
		domain: str,
		*,
		challenge_type: str = "http",
		dns_provider: Optional[str] = None,
		acme_provider: Optional[str] = None,
		auto_renew: bool = True,
		hook_script: Optional[str] = None,
	) -> CertificateRecord:
		"""Insert a pending certificate.

		Raises:
			ValueError: domain already managed
		"""
		with self._lock:
			try:
				certificate_id = certs.create_certificate(
					self.conn,
					domain,
					challenge_type=challenge_type,
					dns_provider=dns_provider,
					acme_provider=acme_provider,
					auto_renew=auto_renew,
					hook_script=hook_script,
				)
			except sqlite3.IntegrityError as exc:
				raise ValueError(f"Certificate for {domain} already exists") from exc
			_log.info("STORE created certificate id=%s domain=%s", certificate_id, domain)
			return self.get(certificate_id)

	def update(self, certificate_id: int, **fields: Any) -> CertificateRecord:
		"""Partial update; ``private_key`` is encrypted before it is written.

		Raises:
			NotFoundError: no such certificate
		"""
		if fields.get("private_key"):
			fields["private_key"] = vault.encrypt(fields["private_key"], self._pepper)
		with self._lock:
			if not certs.update_certificate(self.conn, certificate_id, fields):
				raise NotFoundError(f"Certificate {certificate_id} not found")
			return self.get(certificate_id)

	def delete(self, certificate_id: int) -> bool:
		with self._lock:
			return certs.delete_certificate(self.conn, certificate_id)

	def list_for_auto_renew(self, within_days: int, now: Optional[datetime] = None) -> list[CertificateRecord]:
		with self._lock:
			return [self._to_record(row) for row in certs.list_for_auto_renew(self.conn, within_days, now)]

	def list_expiring(self, within_days: int, now: Optional[datetime] = None) -> list[CertificateRecord]:
		with self._lock:
			return [self._to_record(row) for row in certs.list_expiring(self.conn, within_days, now)]

	# -- HTTP-01 tokens ----------------------------------------------------

	def save_challenge_token(self, domain: str, token: str, key_authorization: str) -> None:
		with self._lock:
			challenges.save_challenge_token(self.conn, domain, token, key_authorization)

	def get_challenge_token(self, token: str) -> Optional[ChallengeToken]:
		with self._lock:
			row = challenges.get_challenge_token(self.conn, token)
		if row is None:
			return None
		return ChallengeToken(domain=row["domain"], token=row["token"], key_authorization=row["key_authorization"])

	def delete_challenge_tokens(self, domain: str) -> int:
		with self._lock:
			return challenges.delete_challenge_tokens(self.conn, domain)

	# -- hook logs ---------------------------------------------------------

	def log_hook_execution(
		self,
		certificate_id: int,
		success: bool,
		output: str,
		executed_at: Optional[datetime] = None,
	) -> HookExecutionLog:
		entry = HookExecutionLog(
			certificate_id=certificate_id,
			executed_at=executed_at or utcnow(),
			success=success,
			output=output or "",
		)
		with self._lock:
			hooks.insert_hook_log(self.conn, entry.certificate_id, entry.executed_at, entry.success, entry.output)
		return entry

	def get_hook_logs(self, certificate_id: int, limit: int = 50) -> list[HookExecutionLog]:
		with self._lock:
			rows = hooks.list_hook_logs(self.conn, certificate_id, limit)
		return [
			HookExecutionLog(
				certificate_id=row["certificate_id"],
				executed_at=row["executed_at"],
				success=bool(row["success"]),
				output=row["output"],
			)
			for row in rows
		]

	# -- notifications -----------------------------------------------------

	def get_notification_settings(self) -> dict[str, bool]:
		with self._lock:
			return notifications.get_notification_settings(self.conn)

	def upsert_notification_setting(self, channel: str, enabled: bool) -> None:
		with self._lock:
			notifications.upsert_notification_setting(self.conn, channel, enabled)

	def has_notification_been_sent(self, certificate_id: int, notification_type: str, channel: Optional[str] = None) -> bool:
		with self._lock:
			return notifications.has_notification_been_sent(self.conn, certificate_id, notification_type, channel)

	def record_notification(self, certificate_id: int, notification_type: str, channel: str) -> None:
		with self._lock:
			notifications.record_notification(self.conn, certificate_id, notification_type, channel)

	def list_notifications(self, certificate_id: int) -> list[NotificationRecord]:
		with self._lock:
			rows = notifications.list_notifications(self.conn, certificate_id)
		return [
			NotificationRecord(
				certificate_id=row["certificate_id"],
				notification_type=row["notification_type"],
				channel=row["channel"],
			)
			for row in rows
		]

	def clear_notifications_for_certificate(self, certificate_id: int) -> int:
		with self._lock:
			return notifications.clear_notifications(self.conn, certificate_id)

	# -- leader election ---------------------------------------------------

	def try_acquire_leader(self) -> bool:
		with self._lock:
			return leader.try_acquire_leader_lock(self.conn)

	def release_leader(self) -> bool:
		with self._lock:
			return leader.release_leader_lock(self.conn)

	def is_leader(self) -> bool:
		with self._lock:
			return leader.is_leader(self.conn)

#!/usr/bin/env python3
#
# certkeeper/services/notifications.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Expiry notifications with per-threshold deduplication.

Each pass maps a certificate's remaining days to the first threshold in
``NOTIFICATION_THRESHOLDS`` it falls under (``expiry_7d`` etc.). A type
already recorded for the certificate is not sent again until a renewal
clears the records. Channels succeed or fail independently.
"""

from __future__ import annotations

import asyncio
import logging
import os
import smtplib
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import AsyncIterator, Callable, Iterable, Mapping, Optional

import httpx

from ..models.certificates import CertificateRecord
from ..utils.time import days_until, utcnow

_log = logging.getLogger(__name__)

NOTIFICATION_THRESHOLDS = (30, 14, 7, 3, 1)
HTTP_TIMEOUT = 15.0
SMTP_TIMEOUT = 30.0
TELEGRAM_API = "https://api.telegram.org"


def notification_type_for(days: int) -> Optional[str]:
	"""First threshold in list order with ``days <= threshold``."""
	for threshold in NOTIFICATION_THRESHOLDS:
		if days <= threshold:
			return f"expiry_{threshold}d"
	return None


@dataclass(frozen=True)
class NotificationMessage:
	title: str
	body: str
	domain: str
	days_until_expiry: int
	expires_at: datetime


def build_message(record: CertificateRecord, days: int) -> NotificationMessage:
	plural = "" if days == 1 else "s"
	return NotificationMessage(
		title=f"Certificate Expiring: {record.domain}",
		body=(
			f"Your SSL certificate for {record.domain} will expire in {days} day{plural} "
			f"({record.expires_at.date().isoformat()})."
		),
		domain=record.domain,
		days_until_expiry=days,
		expires_at=record.expires_at,
	)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

class NotificationChannel(ABC):
	"""One delivery mechanism; ``send`` returns False instead of raising."""

	name: str = ""
	required_env: tuple[str, ...] = ()

	def __init__(self, environ: Optional[Mapping[str, str]] = None, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
		self._environ = environ
		self._http_client = http_client

	@property
	def environ(self) -> Mapping[str, str]:
		return os.environ if self._environ is None else self._environ

	def _env(self, name: str, default: str = "") -> str:
		return (self.environ.get(name) or default).strip()

	def is_configured(self) -> bool:
		return all(self._env(name) for name in self.required_env)

	@asynccontextmanager
	async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
		if self._http_client is not None:
			yield self._http_client
			return
		async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
			yield client

	@abstractmethod
	async def send(self, message: NotificationMessage) -> bool:
		...


class EmailChannel(NotificationChannel):
	"""SMTP delivery; implicit TLS on port 465, STARTTLS otherwise."""

	name = "email"
	required_env = ("SMTP_HOST", "SMTP_USER", "SMTP_PASS", "NOTIFY_EMAIL")

	def _deliver(self, message: NotificationMessage) -> None:
		host = self._env("SMTP_HOST")
		port = int(self._env("SMTP_PORT", "587"))
		user = self._env("SMTP_USER")

		msg = MIMEMultipart("alternative")
		msg["Subject"] = message.title
		msg["From"] = user
		msg["To"] = self._env("NOTIFY_EMAIL")
		msg.attach(MIMEText(message.body, "plain", "utf-8"))
		msg.attach(MIMEText(f"<h2>{escape(message.title)}</h2><p>{escape(message.body)}</p>", "html", "utf-8"))

		smtp_cls = smtplib.SMTP_SSL if port == 465 else smtplib.SMTP
		with smtp_cls(host, port, timeout=SMTP_TIMEOUT) as server:
			if port != 465:
				server.ehlo()
				server.starttls()
				server.ehlo()
			server.login(user, self._env("SMTP_PASS"))
			server.sendmail(user, [msg["To"]], msg.as_string())

	async def send(self, message: NotificationMessage) -> bool:
		if not self.is_configured():
			_log.debug("NOTIFY channel=email not configured, skipping")
			return False
		try:
			await asyncio.to_thread(self._deliver, message)
		except (smtplib.SMTPException, OSError, ValueError) as exc:
			_log.error("NOTIFY channel=email domain=%s failed: %s", message.domain, exc)
			return False
		_log.info("NOTIFY channel=email domain=%s sent", message.domain)
		return True


class WebhookChannel(NotificationChannel):
	"""JSON POST to ``NOTIFY_WEBHOOK_URL``."""

	name = "webhook"
	required_env = ("NOTIFY_WEBHOOK_URL",)

	async def send(self, message: NotificationMessage) -> bool:
		if not self.is_configured():
			_log.debug("NOTIFY channel=webhook not configured, skipping")
			return False
		payload = {
			"event": "certificate_expiring",
			"domain": message.domain,
			"days_until_expiry": message.days_until_expiry,
			"expires_at": message.expires_at.isoformat(),
			"title": message.title,
			"body": message.body,
		}
		try:
			async with self._client() as client:
				resp = await client.post(self._env("NOTIFY_WEBHOOK_URL"), json=payload)
		except httpx.HTTPError as exc:
			_log.error("NOTIFY channel=webhook domain=%s failed: %s", message.domain, exc)
			return False
		if not resp.is_success:
			_log.error("NOTIFY channel=webhook domain=%s rejected: HTTP %d", message.domain, resp.status_code)
			return False
		_log.info("NOTIFY channel=webhook domain=%s sent", message.domain)
		return True


class TelegramChannel(NotificationChannel):
	"""Bot API ``sendMessage`` with Markdown formatting."""

	name = "telegram"
	required_env = ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID")

	async def send(self, message: NotificationMessage) -> bool:
		if not self.is_configured():
			_log.debug("NOTIFY channel=telegram not configured, skipping")
			return False
		url = f"{TELEGRAM_API}/bot{self._env('TELEGRAM_BOT_TOKEN')}/sendMessage"
		payload = {
			"chat_id": self._env("TELEGRAM_CHAT_ID"),
			"text": f"\U0001F514 *{message.title}*\n\n{message.body}",
			"parse_mode": "Markdown",
		}
		try:
			async with self._client() as client:
				resp = await client.post(url, json=payload)
		except httpx.HTTPError as exc:
			# str(exc) can embed the URL and with it the bot token
			_log.error("NOTIFY channel=telegram domain=%s failed: %s", message.domain, type(exc).__name__)
			return False
		if not resp.is_success:
			_log.error("NOTIFY channel=telegram domain=%s rejected: HTTP %d", message.domain, resp.status_code)
			return False
		_log.info("NOTIFY channel=telegram domain=%s sent", message.domain)
		return True


def default_channels(
	environ: Optional[Mapping[str, str]] = None,
	*,
	http_client: Optional[httpx.AsyncClient] = None,
) -> list[NotificationChannel]:
	return [
		EmailChannel(environ),
		WebhookChannel(environ, http_client=http_client),
		TelegramChannel(environ, http_client=http_client),
	]


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class NotificationScheduler:
	"""Evaluates certificates against thresholds and fans out to channels."""

	def __init__(
		self,
		store,
		channels: Optional[Iterable[NotificationChannel]] = None,
		*,
		now: Callable[[], datetime] = utcnow,
	) -> None:
		self._store = store
		self._channels = list(channels) if channels is not None else default_channels()
		self._now = now

	@property
	def channels(self) -> list[NotificationChannel]:
		return list(self._channels)

	def _enabled_channels(self) -> list[NotificationChannel]:
		settings = self._store.get_notification_settings()
		return [c for c in self._channels if settings.get(c.name, True)]

	async def notify_certificate(self, record: CertificateRecord) -> list[str]:
		"""Run one certificate through the pass; returns channels that sent."""
		if record.expires_at is None:
			return []
		days = days_until(record.expires_at, self._now())
		notification_type = notification_type_for(days)
		if notification_type is None:
			return []
		if self._store.has_notification_been_sent(record.id, notification_type):
			_log.debug("NOTIFY domain=%s type=%s already sent", record.domain, notification_type)
			return []

		message = build_message(record, days)
		sent: list[str] = []
		for channel in self._enabled_channels():
			if self._store.has_notification_been_sent(record.id, notification_type, channel.name):
				continue
			try:
				delivered = await channel.send(message)
			except Exception:
				_log.exception("NOTIFY channel=%s domain=%s crashed", channel.name, record.domain)
				delivered = False
			if delivered:
				self._store.record_notification(record.id, notification_type, channel.name)
				sent.append(channel.name)
		if sent:
			_log.info("NOTIFY domain=%s type=%s channels=%s", record.domain, notification_type, ",".join(sent))
		return sent

	async def notify_all(self) -> dict[str, list[str]]:
		"""Sequential pass over every certificate with an expiry.

		Returns ``{domain: [channels]}`` for certificates that sent anything.
		"""
		results: dict[str, list[str]] = {}
		for record in self._store.list():
			if record.expires_at is None:
				continue
			sent = await self.notify_certificate(record)
			if sent:
				results[record.domain] = sent
		return results

	def list_channel_status(self) -> list[dict]:
		settings = self._store.get_notification_settings()
		return [
			{
				"channel": c.name,
				"enabled": settings.get(c.name, True),
				"configured": c.is_configured(),
				"required_env": list(c.required_env),
			}
			for c in self._channels
		]

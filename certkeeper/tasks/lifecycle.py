#!/usr/bin/env python3
#
# certkeeper/tasks/lifecycle.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Batch renewal and notification passes."""

from __future__ import annotations

import logging
from typing import TypedDict

from ..services.notifications import NotificationScheduler
from ..services.renewal import RenewalOrchestrator
from ..utils.time import utcnow

_log = logging.getLogger(__name__)

__all__ = ["renew_all", "notify_all", "run_lifecycle_pass"]


class RenewFailure(TypedDict):
	domain: str
	error: str


class LifecycleSummary(TypedDict):
	processed_at: str
	renewed: list[str]
	renew_failed: list[RenewFailure]
	notified: dict[str, list[str]]


async def renew_all(store, orchestrator: RenewalOrchestrator, within_days: int) -> tuple[list[str], list[RenewFailure]]:
	"""Renew due auto-renew certificates one at a time.

	Sequential to stay under CA rate limits; each attempt is bounded by the
	orchestrator's own order timeout.
	"""
	renewed: list[str] = []
	failed: list[RenewFailure] = []
	due = store.list_for_auto_renew(within_days)
	if due:
		_log.info("LIFECYCLE %d certificate(s) due for renewal", len(due))
	for record in due:
		result = await orchestrator.issue_or_renew(record.id)
		if result.success:
			renewed.append(record.domain)
		else:
			failed.append({"domain": record.domain, "error": result.message})
	return renewed, failed


async def notify_all(notifier: NotificationScheduler) -> dict[str, list[str]]:
	return await notifier.notify_all()


async def run_lifecycle_pass(
	store,
	orchestrator: RenewalOrchestrator,
	notifier: NotificationScheduler,
	*,
	within_days: int = 30,
	renew: bool = True,
	notify: bool = True,
) -> LifecycleSummary:
	"""Renew first, then notify, so fresh certificates do not alert."""
	renewed: list[str] = []
	failed: list[RenewFailure] = []
	if renew:
		renewed, failed = await renew_all(store, orchestrator, within_days)
	notified = await notify_all(notifier) if notify else {}
	_log.info(
		"LIFECYCLE pass done renewed=%d failed=%d notified=%d",
		len(renewed), len(failed), len(notified),
	)
	return {
		"processed_at": utcnow().isoformat(),
		"renewed": renewed,
		"renew_failed": failed,
		"notified": notified,
	}

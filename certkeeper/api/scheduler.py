#!/usr/bin/env python3
#
# certkeeper/api/scheduler.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Scheduler status and the externally triggered lifecycle pass."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..models.certificates import EXPIRING_WINDOW_DAYS
from ..tasks.lifecycle import run_lifecycle_pass
from ..utils.deps import get_config, get_notifier, get_orchestrator, get_store
from ..utils.rate_limit import RATE_LIMIT_SCHEDULER, limiter
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["scheduler"])


def _check_cron_secret(request: Request, secret: str | None) -> None:
	if not secret:
		return
	supplied = request.headers.get("authorization", "")
	if not hmac.compare_digest(supplied.encode("utf-8"), f"Bearer {secret}".encode("utf-8")):
		_log.warning("SCHEDULER unauthorized trigger from %s", request.client.host if request.client else "?")
		raise HTTPException(status_code=401, detail="Unauthorized")


def _brief(records) -> list[dict]:
	return [
		{"domain": r.domain, "expires_at": r.expires_at.isoformat() if r.expires_at else None}
		for r in records
	]


@router.get("")
def scheduler_status(request: Request, store=Depends(get_store), cfg=Depends(get_config)):
	scheduler = getattr(request.app.state, "scheduler", None)
	return ok_response(
		data={
			"pending_renewals": _brief(store.list_for_auto_renew(cfg.renew_before_days)),
			"expiring_soon": _brief(store.list_expiring(EXPIRING_WINDOW_DAYS)),
			"is_leader": store.is_leader(),
			"jobs": scheduler.get_status() if scheduler is not None else [],
		}
	)


@router.post("")
@limiter.limit(RATE_LIMIT_SCHEDULER)
async def trigger_pass(
	request: Request,
	store=Depends(get_store),
	orchestrator=Depends(get_orchestrator),
	notifier=Depends(get_notifier),
	cfg=Depends(get_config),
):
	"""Renew due certificates then send notifications (cron entry point)."""
	_check_cron_secret(request, cfg.cron_secret)
	summary = await run_lifecycle_pass(store, orchestrator, notifier, within_days=cfg.renew_before_days)
	return ok_response(data=summary)

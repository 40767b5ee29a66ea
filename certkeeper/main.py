#!/usr/bin/env python3
#
# certkeeper/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI application factory and startup lifecycle wiring."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .acme.keys import AccountKeyRegistry
from .api import certificates as certificates_api
from .api import challenges as challenges_api
from .api import notifications as notifications_api
from .api import providers as providers_api
from .api import scheduler as scheduler_api
from .db.sqlite_runtime import close_all_connections
from .db.store import SqliteRecordStore
from .dns_providers.registry import DnsProviderRegistry
from .services.hooks import HookExecutor
from .services.notifications import NotificationChannel, NotificationScheduler
from .services.renewal import AcmeClientFactory, RenewalOrchestrator
from .tasks.lifecycle import run_lifecycle_pass
from .tasks.maintenance import purge_stale_challenge_tokens, sqlite_maintenance
from .utils.config import Config, load_config
from .utils.rate_limit import limiter
from .utils.request_id import RequestIDMiddleware
from .utils.scheduler import Scheduler

_log = logging.getLogger(__name__)

# ANSI color codes for log levels (if TTY)
_LOG_COLORS = {
	"DEBUG": "\033[36m",
	"INFO": "\033[32m",
	"WARNING": "\033[33m",
	"ERROR": "\033[31m",
	"CRITICAL": "\033[35m",
}
_RESET = "\033[0m"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEADER_HEARTBEAT_SECONDS = 30.0


class _ColoredFormatter(logging.Formatter):
	"""Pads and colours the level name for terminals."""

	def format(self, record):
		orig_levelname = record.levelname
		color = _LOG_COLORS.get(orig_levelname)
		if color:
			record.levelname = f"{color}{orig_levelname:<8}{_RESET}"
		try:
			return super().format(record)
		finally:
			record.levelname = orig_levelname


def _setup_logging(log_level: str) -> None:
	"""Configure unified logging for the entire application."""
	level = getattr(logging, log_level, logging.INFO)
	if sys.stdout.isatty():
		formatter: logging.Formatter = _ColoredFormatter(
			fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
			datefmt=_DATE_FORMAT,
		)
	else:
		formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

	# force=True drops handlers installed earlier (e.g. by uvicorn)
	logging.basicConfig(level=level, handlers=[logging.StreamHandler(sys.stdout)], force=True)
	for handler in logging.root.handlers:
		handler.setFormatter(formatter)

	for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
		logger = logging.getLogger(name)
		logger.handlers.clear()
		logger.setLevel(level)
		logger.propagate = True

	# Per-request lines from the HTTP stack would drown the lifecycle logs
	for name in ("httpx", "httpcore"):
		logging.getLogger(name).setLevel(logging.WARNING)


def _build_scheduler(app: FastAPI, cfg: Config) -> Scheduler:
	store = app.state.store

	async def _lifecycle_pass() -> None:
		await run_lifecycle_pass(
			store,
			app.state.orchestrator,
			app.state.notifier,
			within_days=cfg.renew_before_days,
		)

	async def _leader_heartbeat() -> None:
		if not store.try_acquire_leader():
			_log.warning("LEADER lock lost (pid=%d)", os.getpid())

	async def _maintenance() -> None:
		await sqlite_maintenance(cfg.db_path)

	async def _purge_tokens() -> None:
		await purge_stale_challenge_tokens(cfg.db_path)

	scheduler = Scheduler()
	scheduler.add(
		"lifecycle-pass",
		interval_seconds=cfg.renew_interval_seconds,
		func=_lifecycle_pass,
		run_on_start=True,
		initial_delay=30.0,
	)
	scheduler.add("leader-heartbeat", interval_seconds=_LEADER_HEARTBEAT_SECONDS, func=_leader_heartbeat)
	scheduler.add(
		"sqlite-maintenance",
		interval_seconds=21600,
		func=_maintenance,
		run_on_start=True,
		initial_delay=60.0,
		timeout=60.0,
	)
	scheduler.add("challenge-token-purge", interval_seconds=3600, func=_purge_tokens, timeout=30.0)
	return scheduler


@asynccontextmanager
async def _lifespan(app: FastAPI):
	"""Leader election and background jobs; the store already exists."""
	store: SqliteRecordStore = app.state.store
	scheduler: Optional[Scheduler] = None
	is_leader = False

	if app.state.enable_scheduler:
		is_leader = store.try_acquire_leader()
		if is_leader:
			_log.info("LEADER acquired (pid=%d), starting scheduler", os.getpid())
			scheduler = _build_scheduler(app, app.state.cfg)
			await scheduler.start()
		else:
			_log.info("LEADER held by another worker, scheduler disabled (pid=%d)", os.getpid())

	app.state.scheduler = scheduler
	_log.info("Certkeeper started (leader=%s, pid=%d)", is_leader, os.getpid())

	yield

	if scheduler is not None:
		await scheduler.stop_graceful(timeout=5.0)
	if is_leader:
		store.release_leader()
	if app.state.owns_store:
		store.close()
		_log.info("SQLITE_SHUTDOWN connections_closed=%d", close_all_connections())
	_log.info("Certkeeper shutdown complete")


def create_app(
	cfg: Optional[Config] = None,
	*,
	store: Optional[SqliteRecordStore] = None,
	dns_registry: Optional[DnsProviderRegistry] = None,
	acme_client_factory: Optional[AcmeClientFactory] = None,
	notification_channels: Optional[Iterable[NotificationChannel]] = None,
	enable_scheduler: bool = True,
) -> FastAPI:
	"""Application factory; collaborators can be injected for tests."""
	cfg = cfg or load_config()
	_setup_logging(cfg.log_level)

	owns_store = store is None
	if store is None:
		store = SqliteRecordStore.open(cfg.db_path, pepper=cfg.secret_key)
	dns_registry = dns_registry or DnsProviderRegistry()

	orchestrator_kwargs = {}
	if acme_client_factory is not None:
		orchestrator_kwargs["acme_client_factory"] = acme_client_factory
	orchestrator = RenewalOrchestrator(
		store,
		key_registry=AccountKeyRegistry(),
		dns_registry=dns_registry,
		hook_executor=HookExecutor(store, timeout_seconds=cfg.hook_timeout_seconds),
		contact_email=cfg.acme_email,
		use_staging=cfg.acme_staging,
		default_provider=cfg.acme_default_provider,
		order_timeout=cfg.order_timeout_seconds,
		propagation_delay=cfg.dns_propagation_seconds,
		**orchestrator_kwargs,
	)
	notifier = NotificationScheduler(store, notification_channels)

	app = FastAPI(
		title="Certkeeper",
		description="ACME certificate lifecycle orchestrator",
		version="0.1.0",
		lifespan=_lifespan,
		docs_url="/api/docs",
		redoc_url="/api/redoc",
	)

	app.state.cfg = cfg
	app.state.store = store
	app.state.owns_store = owns_store
	app.state.dns_registry = dns_registry
	app.state.orchestrator = orchestrator
	app.state.notifier = notifier
	app.state.enable_scheduler = enable_scheduler
	app.state.scheduler = None

	app.add_middleware(RequestIDMiddleware)

	app.state.limiter = limiter
	app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

	app.include_router(challenges_api.router)
	app.include_router(certificates_api.router, prefix="/api/certificates")
	app.include_router(providers_api.router, prefix="/api/providers")
	app.include_router(notifications_api.router, prefix="/api/notifications")
	app.include_router(scheduler_api.router, prefix="/api/scheduler")

	return app

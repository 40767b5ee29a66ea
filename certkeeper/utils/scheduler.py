#!/usr/bin/env python3
#
# certkeeper/utils/scheduler.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Async fixed-interval scheduler for the periodic lifecycle pass."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypedDict

from .time import utcnow

_log = logging.getLogger(__name__)

__all__ = ["Scheduler", "JobStatus"]

_MIN_INTERVAL = 1.0
_MAX_BACKOFF = 300.0


class JobStatus(TypedDict):
	name: str
	interval_seconds: float
	last_success: Optional[str]
	last_attempt: Optional[str]
	is_running: bool
	run_count: int
	fail_count: int


@dataclass
class _Job:
	name: str
	interval_seconds: float
	func: Callable[[], Awaitable[None]]
	run_on_start: bool = False
	initial_delay: float = 0.0
	timeout: Optional[float] = None
	last_success: Optional[datetime] = None
	last_attempt: Optional[datetime] = None
	run_count: int = 0
	fail_count: int = 0


def backoff_seconds(consecutive_failures: int) -> float:
	"""2, 4, 8, ... seconds, capped at five minutes."""
	return min(2.0 ** consecutive_failures, _MAX_BACKOFF)


class Scheduler:
	"""Runs registered coroutines at fixed intervals until stopped.

	Failed runs back off exponentially; the regular rhythm resumes with the
	next interval slot after the backoff. Jobs can only be added while the
	scheduler is stopped.
	"""

	def __init__(self) -> None:
		self._jobs: dict[str, _Job] = {}
		self._tasks: dict[str, asyncio.Task] = {}
		self._stop_event: Optional[asyncio.Event] = None
		self._started = False

	@property
	def running(self) -> bool:
		return self._started

	def add(
		self,
		name: str,
		interval_seconds: float,
		func: Callable[[], Awaitable[None]],
		*,
		run_on_start: bool = False,
		initial_delay: float = 0.0,
		timeout: Optional[float] = None,
	) -> None:
		"""Register a periodic job.

		Raises:
			RuntimeError: scheduler already running
			ValueError: duplicate name, interval below one second, or a
				negative / orphan ``initial_delay``
		"""
		if self._started:
			raise RuntimeError(f"Cannot add job {name!r} while scheduler is running")
		if name in self._jobs:
			raise ValueError(f"Job {name!r} is already registered")
		if interval_seconds < _MIN_INTERVAL:
			raise ValueError(f"interval_seconds must be >= {_MIN_INTERVAL}, got {interval_seconds}")
		if initial_delay < 0:
			raise ValueError(f"initial_delay must be >= 0, got {initial_delay}")
		if initial_delay > 0 and not run_on_start:
			raise ValueError("initial_delay requires run_on_start=True")
		self._jobs[name] = _Job(
			name=name,
			interval_seconds=interval_seconds,
			func=func,
			run_on_start=run_on_start,
			initial_delay=initial_delay,
			timeout=timeout,
		)

	async def start(self) -> None:
		"""Spawn one task per job. Needs a running event loop."""
		if self._started:
			return
		self._started = True
		self._stop_event = asyncio.Event()
		for job in self._jobs.values():
			self._tasks[job.name] = asyncio.create_task(self._run_loop(job, self._stop_event))
			_log.info("SCHEDULER job=%s interval=%ds started", job.name, job.interval_seconds)

	async def stop_graceful(self, timeout: float = 5.0) -> None:
		"""Signal all loops, wait up to ``timeout``, then cancel stragglers."""
		if not self._started:
			return
		self._started = False
		if self._stop_event is not None:
			self._stop_event.set()

		pending = [t for t in self._tasks.values() if not t.done()]
		if pending:
			_, not_done = await asyncio.wait(pending, timeout=timeout)
			if not_done:
				_log.warning("SCHEDULER %d tasks did not stop gracefully, forcing cancel", len(not_done))
				for task in not_done:
					task.cancel()
				await asyncio.gather(*not_done, return_exceptions=True)
		self._tasks.clear()
		_log.info("SCHEDULER stopped")

	async def _sleep(self, stop_event: asyncio.Event, delay: float) -> bool:
		"""Wait ``delay`` seconds; True when stop was requested meanwhile."""
		try:
			await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, delay))
			return True
		except asyncio.TimeoutError:
			return not self._started

	async def _run_loop(self, job: _Job, stop_event: asyncio.Event) -> None:
		loop = asyncio.get_running_loop()
		failures = 0
		if job.run_on_start:
			next_run = loop.time() + job.initial_delay
		else:
			next_run = loop.time() + job.interval_seconds

		try:
			while True:
				if await self._sleep(stop_event, next_run - loop.time()):
					return
				ok = await self._execute(job)
				now = loop.time()
				if ok:
					failures = 0
					next_run += job.interval_seconds
					if next_run <= now:
						skipped = int((now - next_run) / job.interval_seconds) + 1
						next_run += skipped * job.interval_seconds
						_log.warning("SCHEDULER job=%s skipped %d intervals", job.name, skipped)
				else:
					failures += 1
					delay = backoff_seconds(failures)
					_log.error("SCHEDULER job=%s failed (%d consecutive), backing off %.0fs", job.name, failures, delay)
					while next_run < now + delay:
						next_run += job.interval_seconds
		except asyncio.CancelledError:
			_log.debug("SCHEDULER job=%s cancelled", job.name)
			raise

	async def _execute(self, job: _Job) -> bool:
		"""Run once; never raises (except cancellation)."""
		job.last_attempt = utcnow()
		try:
			if job.timeout is not None:
				await asyncio.wait_for(job.func(), timeout=job.timeout)
			else:
				await job.func()
		except asyncio.TimeoutError:
			job.fail_count += 1
			_log.error("SCHEDULER job=%s timed out after %.1fs (fail #%d)", job.name, job.timeout, job.fail_count)
			return False
		except Exception:
			job.fail_count += 1
			_log.exception("SCHEDULER job=%s failed (fail #%d)", job.name, job.fail_count)
			return False
		job.last_success = job.last_attempt
		job.run_count += 1
		_log.info("SCHEDULER job=%s completed (run #%d)", job.name, job.run_count)
		return True

	def get_status(self) -> list[JobStatus]:
		return [
			{
				"name": job.name,
				"interval_seconds": job.interval_seconds,
				"last_success": job.last_success.isoformat() if job.last_success else None,
				"last_attempt": job.last_attempt.isoformat() if job.last_attempt else None,
				"is_running": job.name in self._tasks and not self._tasks[job.name].done(),
				"run_count": job.run_count,
				"fail_count": job.fail_count,
			}
			for job in self._jobs.values()
		]

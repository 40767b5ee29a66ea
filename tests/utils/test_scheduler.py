#!/usr/bin/env python3
#
# tests/utils/test_scheduler.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.utils.scheduler."""

from __future__ import annotations

import asyncio

import pytest

from certkeeper.utils.scheduler import Scheduler, backoff_seconds


async def _noop():
	return None


class TestAdd:
	def test_rejects_duplicates_and_bad_intervals(self):
		scheduler = Scheduler()
		scheduler.add("job", 10, _noop)
		with pytest.raises(ValueError):
			scheduler.add("job", 10, _noop)
		with pytest.raises(ValueError):
			scheduler.add("fast", 0.5, _noop)
		with pytest.raises(ValueError):
			scheduler.add("orphan-delay", 10, _noop, initial_delay=5)

	def test_no_add_while_running(self):
		async def go():
			scheduler = Scheduler()
			await scheduler.start()
			try:
				with pytest.raises(RuntimeError):
					scheduler.add("late", 10, _noop)
			finally:
				await scheduler.stop_graceful()

		asyncio.run(go())


class TestBackoff:
	def test_doubles_and_caps(self):
		assert [backoff_seconds(n) for n in (1, 2, 3)] == [2, 4, 8]
		assert backoff_seconds(20) == 300


class TestRun:
	def test_run_on_start_and_failure_counted(self):
		calls = []

		async def ok():
			calls.append("ok")

		async def broken():
			calls.append("broken")
			raise RuntimeError("nope")

		async def go():
			scheduler = Scheduler()
			scheduler.add("ok", 60, ok, run_on_start=True)
			scheduler.add("broken", 60, broken, run_on_start=True)
			await scheduler.start()
			await asyncio.sleep(0.1)
			status = {s["name"]: s for s in scheduler.get_status()}
			await scheduler.stop_graceful(timeout=1.0)
			return status

		status = asyncio.run(go())
		assert sorted(calls) == ["broken", "ok"]
		assert status["ok"]["run_count"] == 1
		assert status["ok"]["last_success"] is not None
		assert status["broken"]["fail_count"] == 1
		assert status["broken"]["last_success"] is None

	def test_timeout_counts_as_failure(self):
		async def slow():
			await asyncio.sleep(5)

		async def go():
			scheduler = Scheduler()
			scheduler.add("slow", 60, slow, run_on_start=True, timeout=0.05)
			await scheduler.start()
			await asyncio.sleep(0.2)
			status = scheduler.get_status()[0]
			await scheduler.stop_graceful(timeout=1.0)
			return status

		assert asyncio.run(go())["fail_count"] == 1

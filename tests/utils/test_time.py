#!/usr/bin/env python3
#
# tests/utils/test_time.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for certkeeper.utils.time."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from certkeeper.utils.time import days_until

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestDaysUntil:
	def test_whole_days(self):
		assert days_until(NOW + timedelta(days=5), NOW) == 5

	def test_partial_day_is_floored(self):
		assert days_until(NOW + timedelta(days=4, hours=23), NOW) == 4

	def test_past_is_negative(self):
		assert days_until(NOW - timedelta(hours=12), NOW) == -1

	def test_naive_rejected(self):
		with pytest.raises(ValueError):
			days_until(datetime(2026, 3, 2), NOW)

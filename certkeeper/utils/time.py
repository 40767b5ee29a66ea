#!/usr/bin/env python3
#
# certkeeper/utils/time.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Timezone-aware time utilities."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

_SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
	"""Return the current UTC time as a timezone-aware datetime."""
	return datetime.now(timezone.utc)


def days_until(expires_at: datetime, now: Optional[datetime] = None) -> int:
	"""Whole days from ``now`` until ``expires_at``, floored.

	Already-expired timestamps yield negative values (-0.5 days -> -1).
	"""
	if expires_at.tzinfo is None:
		raise ValueError("Naive datetime not allowed - must be timezone-aware")
	now = now or utcnow()
	return math.floor((expires_at - now).total_seconds() / _SECONDS_PER_DAY)

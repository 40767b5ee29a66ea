#!/usr/bin/env python3
#
# certkeeper/utils/rate_limit.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Rate limiting configuration using slowapi."""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

RATE_LIMIT_API = "120/minute"
# Issuance hits CA rate limits, keep manual triggers scarce
RATE_LIMIT_RENEW = "5/minute"
RATE_LIMIT_SCHEDULER = "2/minute"

limiter = Limiter(key_func=get_remote_address)

__all__ = [
	"RATE_LIMIT_API",
	"RATE_LIMIT_RENEW",
	"RATE_LIMIT_SCHEDULER",
	"limiter",
]
